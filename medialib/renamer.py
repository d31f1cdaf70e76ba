#!/usr/bin/env python3
"""
In-place renames with a destination pre-check

A rename never overwrites: an existing destination raises RenameCollision
and the source is left untouched. Renames stay inside the source's parent
folder, so os.rename() is always a same-filesystem operation.
"""

import logging
import os
from pathlib import Path

from medialib.errors import RenameCollision

logger = logging.getLogger(__name__)


def _is_same_entry(source: Path, destination: Path) -> bool:
    # Case-only renames on case-insensitive filesystems
    try:
        return source.exists() and destination.exists() and os.path.samefile(source, destination)
    except OSError:
        return False


class Renamer:
    """Rename files and folders next to themselves; dry_run only logs"""

    def __init__(self, dry_run: bool = True):
        self.dry_run = dry_run
        self.renamed = 0

    def rename(self, source: Path, new_name: str) -> Path:
        """
        Rename source to new_name in the same folder.

        Returns:
            The new path (also in dry-run mode) or source when the name is
            unchanged

        Raises:
            RenameCollision: destination already exists
            OSError: the rename itself failed
        """
        source = Path(source)
        if new_name == source.name:
            return source

        destination = source.parent / new_name
        if destination.exists() and not _is_same_entry(source, destination):
            raise RenameCollision(source, destination)

        if self.dry_run:
            logger.info(f"[DRY RUN] Would rename: {source.name} → {new_name}")
            return destination

        os.rename(source, destination)
        self.renamed += 1
        logger.info(f"RENAMED: {source.name} → {new_name}")
        return destination
