#!/usr/bin/env python3
"""
scan.py — Scan media roots and reconcile them with the catalog

Pipeline per root:
  load tree → classify → normalize → resolve (TMDb/OMDb) → validate →
  rename to canonical name → catalog entry (active / error) → NFO + poster

Safety:
  - Dry-run is the DEFAULT: the catalog is in memory, nothing is renamed,
    no NFO or poster is written. Pass --execute to apply.
  - A missing root aborts the run before anything changes.
  - Only one --execute run at a time (lock file next to the database).

Usage:
  python scan.py                                 # dry-run over configured roots
  python scan.py --execute                       # apply renames, update catalog
  python scan.py --root /media/Movies            # override configured roots
  python scan.py --no-api                        # offline: classify only
  python scan.py --config my_config.yaml -v      # custom config, debug logging
"""

import sys
import logging
import argparse
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


def print_summary(result, cache_stats: dict, dry_run: bool) -> None:
    """Print a human-readable summary of one reconciliation run."""
    print()
    print("=" * 60)
    if dry_run:
        print("DRY RUN — catalog kept in memory, nothing renamed")
    else:
        print("SCAN COMPLETE")
    print("=" * 60)

    print(f"\nItems scanned:  {result.scanned}")
    print(f"  updated:      {result.updated}")
    print(f"  created:      {result.created}")
    print(f"  deleted:      {result.deleted}")
    print(f"  errors:       {result.errors}")
    print(f"  warnings:     {result.warnings}")

    if cache_stats.get('total_queries'):
        print(f"\nTMDb cache: {cache_stats['hits']} hits / {cache_stats['misses']} misses "
              f"({cache_stats['hit_rate']:.1f}% hit rate, {cache_stats['cache_size']} entries)")

    if dry_run and result.created:
        print("\nReview the log, then run with --execute to apply renames.")
    print()


def main() -> int:
    parser = argparse.ArgumentParser(
        description='Scan media roots and reconcile the catalog (dry-run by default)',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        '--execute',
        action='store_true',
        default=False,
        help='Apply renames and write the catalog (default: dry-run only)',
    )
    parser.add_argument(
        '--config',
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f'Config file (default: {DEFAULT_CONFIG_PATH})',
    )
    parser.add_argument(
        '--root',
        type=Path,
        action='append',
        default=None,
        dest='roots',
        help='Root folder to scan (repeatable; overrides config roots)',
    )
    parser.add_argument(
        '--no-api',
        action='store_true',
        default=False,
        dest='no_api',
        help='Disable TMDb/OMDb/LLM lookups',
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

    dry_run = not args.execute
    settings = load_settings(args.config)
    roots = args.roots or settings.roots

    if not roots:
        logger.error(f"No roots to scan. Pass --root or set roots in {args.config}")
        return 1

    # Hard gate: every root must exist (drives must be mounted)
    for root in roots:
        if not root.is_dir():
            logger.error(f"Root folder not found: {root}")
            logger.error("Is the drive mounted?")
            return 1

    print()
    print("=" * 60)
    print("DRY RUN MODE — nothing will be renamed" if dry_run else "EXECUTING SCAN")
    for root in roots:
        print(f"Root:     {root}")
    print(f"Catalog:  {'(in memory)' if dry_run else settings.database_path}")
    print("=" * 60)

    if dry_run:
        store = SqlCatalogStore('sqlite://')
        reconciler = build_reconciler(settings, store, execute=False, use_api=not args.no_api)
        result = reconciler.scan(roots)
    else:
        try:
            with ScanLock(settings.lock_path):
                store = SqlCatalogStore.from_path(settings.database_path)
                reconciler = build_reconciler(settings, store, execute=True, use_api=not args.no_api)
                result = reconciler.scan(roots)
        except ScanInProgress as e:
            logger.error(f"{e} (remove the lock file if no scan is running)")
            return 1

    print_summary(result, reconciler.provider.get_cache_stats(), dry_run)
    return 0


if __name__ == '__main__':
    sys.exit(main())
