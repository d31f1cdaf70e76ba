#!/usr/bin/env python3
"""
audit.py - Catalog Audit: counts per status and the quarantine list

Read-only. Never touches files, never calls APIs.

Prints how many entries are active / error / deleted and lists every error
entry with its reason, so failures can be fixed by hand (rename the file,
add a year) before running retry_errors.py.

Usage:
    python audit.py                           # uses config_external.yaml
    python audit.py --database output/x.db    # explicit catalog path
    python audit.py --output output/audit.csv # also export every entry as CSV
    python audit.py --status error --output output/errors.csv
"""

import sys
import csv
import argparse
from collections import Counter
from pathlib import Path

from medialib.catalog import SqlCatalogStore
from medialib.config import DEFAULT_CONFIG_PATH, load_settings
from medialib.models import EntryStatus

FIELDNAMES = [
    'id', 'status', 'item_type', 'title', 'year', 'rating', 'imdb_id',
    'current_path', 'original_file_name', 'error_message', 'last_scanned_at',
]


def entry_row(entry) -> dict:
    return {
        'id': entry.id,
        'status': entry.status,
        'item_type': entry.item_type or '',
        'title': entry.title or '',
        'year': entry.year or '',
        'rating': f"{entry.rating:.1f}" if entry.rating is not None else '',
        'imdb_id': entry.imdb_id or '',
        'current_path': entry.current_path,
        'original_file_name': entry.original_file_name,
        'error_message': entry.error_message or '',
        'last_scanned_at': entry.last_scanned_at.isoformat() if entry.last_scanned_at else '',
    }


def error_reasons(entries) -> Counter:
    """Group error entries by reason prefix (text before the first ':')"""
    return Counter((entry.error_message or 'unknown').split(':', 1)[0] for entry in entries)


def main():
    parser = argparse.ArgumentParser(
        description='Report catalog status counts and quarantined entries',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--database', '-d', type=Path, default=None,
                        help='Catalog database (default: from config)')
    parser.add_argument('--output', '-o', type=Path, default=None,
                        help='Export entries to this CSV')
    parser.add_argument('--status', choices=[s.value for s in EntryStatus], default=None,
                        help='Only export entries with this status')
    parser.add_argument('--config', type=Path, default=DEFAULT_CONFIG_PATH,
                        help=f'Config file (default: {DEFAULT_CONFIG_PATH})')
    args = parser.parse_args()

    database = args.database or load_settings(args.config).database_path
    if not database.exists():
        print(f"Error: catalog not found: {database}")
        return 1

    store = SqlCatalogStore.from_path(database)
    counts = store.count_by_status()
    errors = store.find_all(EntryStatus.ERROR)

    print()
    print("=" * 60)
    print(f"CATALOG AUDIT: {database}")
    print("=" * 60)
    print(f"\nTotal entries: {sum(counts.values())}")
    for status in EntryStatus:
        print(f"  {status.value:<8} {counts.get(status.value, 0)}")

    if errors:
        print("\nError reasons:")
        for reason, count in error_reasons(errors).most_common():
            print(f"  {count:>4}  {reason}")
        print("\nQuarantined entries:")
        for entry in errors:
            print(f"  [{entry.id}] {entry.current_path}")
            print(f"        {entry.error_message}")

    if args.output:
        rows = [entry_row(e) for e in store.find_all(args.status)]
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with open(args.output, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=FIELDNAMES, quoting=csv.QUOTE_ALL)
            writer.writeheader()
            writer.writerows(rows)
        print(f"\nExported {len(rows)} entries to {args.output}")

    print()
    return 0


if __name__ == '__main__':
    sys.exit(main())
