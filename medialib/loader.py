#!/usr/bin/env python3
"""
Tree loader: snapshot a root directory as FileSystemNode objects

Traversal short-circuits at self-contained units. A disc-rip folder
(BDMV / VIDEO_TS ...) and a TV series folder are loaded with their direct
children only; nothing below them is walked.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from medialib.constants import (
    BDRIP_MARKERS,
    DVDRIP_MARKERS,
    MAX_SCAN_DEPTH,
    PAREN_YEAR_RE,
    SERIES_EPISODE_RE,
    VIDEO_EXTENSIONS,
)
from medialib.models import FileSystemNode, ItemType, NodeKind

logger = logging.getLogger(__name__)


def is_video_file(name: str) -> bool:
    return Path(name).suffix.lower() in VIDEO_EXTENSIONS


def rip_type(folder_names: Iterable[str]) -> Optional[ItemType]:
    """BDRipRoot / DVDRipRoot if any child folder is a disc authoring marker"""
    lowered = {name.lower() for name in folder_names}
    if lowered.intersection(BDRIP_MARKERS):
        return ItemType.BDRIP_ROOT
    if lowered.intersection(DVDRIP_MARKERS):
        return ItemType.DVDRIP_ROOT
    return None


def is_series_folder(file_names: Iterable[str]) -> bool:
    """
    Episode heuristic over a folder's direct file names.

    True when there are at least two video files, at least half of them
    carry an episode marker, and fewer than half carry a "(YYYY)" year
    (numbered movie collections do).
    """
    videos = [name for name in file_names if is_video_file(name)]
    if len(videos) < 2:
        return False

    episodes = [name for name in videos if SERIES_EPISODE_RE.search(name)]
    if len(episodes) < len(videos) / 2:
        return False

    with_years = [name for name in videos if PAREN_YEAR_RE.search(name)]
    return len(with_years) < len(videos) / 2


def _list_dir(path: Path) -> List[Path]:
    return sorted(
        (p for p in path.iterdir() if not p.name.startswith('.')),
        key=lambda p: p.name.lower(),
    )


def _shallow_node(path: Path) -> FileSystemNode:
    kind = NodeKind.FOLDER if path.is_dir() else NodeKind.FILE
    return FileSystemNode(name=path.name, path=path, kind=kind)


def _load_folder(path: Path, depth: int, max_depth: int) -> FileSystemNode:
    try:
        entries = _list_dir(path)
    except OSError as e:
        logger.warning(f"Cannot read folder {path}: {e}")
        return FileSystemNode(name=path.name, path=path, kind=NodeKind.FOLDER)

    folder_names = [p.name for p in entries if p.is_dir()]
    file_names = [p.name for p in entries if p.is_file()]

    # Self-contained units: direct children only
    if depth > 0 and (rip_type(folder_names) or is_series_folder(file_names)):
        children = tuple(_shallow_node(p) for p in entries)
        return FileSystemNode(name=path.name, path=path, kind=NodeKind.FOLDER, children=children)

    children = []
    for entry in entries:
        if entry.is_dir():
            if depth + 1 > max_depth:
                logger.debug(f"Depth limit reached, not descending into {entry}")
                children.append(_shallow_node(entry))
            else:
                children.append(_load_folder(entry, depth + 1, max_depth))
        elif entry.is_file():
            children.append(_shallow_node(entry))

    return FileSystemNode(name=path.name, path=path, kind=NodeKind.FOLDER, children=tuple(children))


def load_tree(root: Path, max_depth: int = MAX_SCAN_DEPTH) -> FileSystemNode:
    """
    Load the tree under root.

    Raises:
        FileNotFoundError / NotADirectoryError: root is unusable (fatal to
        the run, unlike unreadable subfolders which are logged and skipped)
    """
    root = Path(root)
    if not root.exists():
        raise FileNotFoundError(f"Root folder does not exist: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Root is not a folder: {root}")

    tree = _load_folder(root, 0, max_depth)
    logger.debug(f"Loaded {root} with {len(tree.children)} top-level entries")
    return tree
