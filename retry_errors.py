#!/usr/bin/env python3
"""
retry_errors.py — Retry pass over quarantined catalog entries

Every entry with status 'error' is classified and resolved again from its
current path:
  - path gone                   → entry becomes 'deleted'
  - still failing               → error_message refreshed, entry stays
  - resolved but rating missing → skipped, entry stays
  - resolved                    → renamed, replaced by a fresh active entry

Safety:
  - Dry-run is the DEFAULT: the pass runs against a throwaway copy of the
    catalog and renames nothing. Pass --execute to apply.

Usage:
  python retry_errors.py                        # dry-run
  python retry_errors.py --execute              # apply
  python retry_errors.py --config my.yaml -v    # custom config, debug logging
"""

import sys
import shutil
import logging
import argparse
import tempfile
from pathlib import Path

from medialib.catalog import SqlCatalogStore
from medialib.config import DEFAULT_CONFIG_PATH, load_settings
from medialib.errors import ScanInProgress
from medialib.reconciler import ScanLock, build_reconciler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_summary(result, dry_run: bool) -> None:
    print()
    print("=" * 60)
    print("DRY RUN — catalog copy discarded, nothing renamed" if dry_run else "RETRY PASS COMPLETE")
    print("=" * 60)
    print(f"\nError entries:  {result.scanned}")
    print(f"  fixed:        {result.created}")
    print(f"  gone:         {result.deleted}")
    print(f"  still failing:{result.errors:>3}")
    print(f"  warnings:     {result.warnings}")
    print()


def main() -> int:
    parser = argparse.ArgumentParser(
        description='Re-identify catalog entries in error (dry-run by default)',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        '--execute',
        action='store_true',
        default=False,
        help='Apply renames and update the catalog (default: dry-run only)',
    )
    parser.add_argument(
        '--config',
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f'Config file (default: {DEFAULT_CONFIG_PATH})',
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        default=False,
        help='Debug logging',
    )

    args = parser.parse_args()
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    settings = load_settings(args.config)
    if not settings.database_path.exists():
        logger.error(f"Catalog not found: {settings.database_path}")
        logger.error("Run scan.py --execute first.")
        return 1

    if not args.execute:
        with tempfile.TemporaryDirectory() as tmpdir:
            scratch = Path(tmpdir) / settings.database_path.name
            shutil.copy2(settings.database_path, scratch)
            reconciler = build_reconciler(settings, SqlCatalogStore.from_path(scratch), execute=False)
            result = reconciler.retry_errors(settings.roots)
            reconciler.store.engine.dispose()
        print_summary(result, dry_run=True)
        return 0

    try:
        with ScanLock(settings.lock_path):
            reconciler = build_reconciler(settings, SqlCatalogStore.from_path(settings.database_path), execute=True)
            result = reconciler.retry_errors(settings.roots)
    except ScanInProgress as e:
        logger.error(f"{e} (remove the lock file if no scan is running)")
        return 1

    print_summary(result, dry_run=False)
    return 0


if __name__ == '__main__':
    sys.exit(main())
