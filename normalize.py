#!/usr/bin/env python3
"""
normalize.py — Classification and name-cleaning preview

Pure PRECISION operation. Loads and classifies a root, then writes what the
normalizer makes of every node to a CSV. Never calls APIs, never renames,
never touches the catalog.

Review the preview before the first `scan.py --execute`: the
canonical_candidate column is the name a folder-type item would get, and
the cleaned title a movie would be looked up with.

Usage:
  python normalize.py <root>                        # write output/normalize_preview.csv
  python normalize.py <root> --output PATH          # custom preview path
  python normalize.py <root> --catalogued-only      # skip plain folders, subtitles, etc.
"""

import sys
import csv
import logging
import argparse
from collections import Counter
from pathlib import Path

from medialib.classifier import ItemClassifier
from medialib.config import DEFAULT_CONFIG_PATH, load_settings
from medialib.constants import MAX_SCAN_DEPTH, TRANSLIT_THRESHOLD
from medialib.loader import load_tree
from medialib.models import CATALOGUED_TYPES, ClassifiedItem

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

FIELDNAMES = [
    'original_name', 'item_type', 'clean_name', 'year', 'season', 'episode',
    'is_tv_episode', 'is_audio_file', 'is_translit', 'canonical_candidate',
]


def preview_row(item: ClassifiedItem) -> dict:
    return {
        'original_name': item.node.name,
        'item_type': item.item_type.value,
        'clean_name': item.clean_title,
        'year': item.year or '',
        'season': item.season if item.season is not None else '',
        'episode': item.episode if item.episode is not None else '',
        'is_tv_episode': item.is_tv_episode,
        'is_audio_file': item.is_audio_file,
        'is_translit': item.is_translit,
        'canonical_candidate': item.canonical_name,
    }


def run_preview(
    root: Path,
    output_path: Path,
    catalogued_only: bool = False,
    max_depth: int = MAX_SCAN_DEPTH,
    translit_threshold: float = TRANSLIT_THRESHOLD,
) -> Counter:
    """
    Classify root and write one preview row per node (the root itself excluded).

    Returns:
        Counter of item_type values across all rows written
    """
    tree = load_tree(root, max_depth)
    classified = ItemClassifier(root.name, translit_threshold=translit_threshold).classify_tree(tree)
    stats: Counter = Counter()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', newline='', encoding='utf-8') as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=FIELDNAMES)
        writer.writeheader()

        for top in classified.children:
            for item in top.walk():
                if catalogued_only and item.item_type not in CATALOGUED_TYPES:
                    continue
                writer.writerow(preview_row(item))
                stats[item.item_type.value] += 1

    return stats


def print_summary(stats: Counter, output_path: Path) -> None:
    print()
    print("=" * 60)
    print("NORMALIZATION PREVIEW — nothing was renamed")
    print("=" * 60)
    print(f"\nNodes classified: {sum(stats.values())}")
    for item_type, count in stats.most_common():
        print(f"  {item_type:<18} {count}")
    print(f"\nPreview written to: {output_path}")
    print()


def main() -> int:
    parser = argparse.ArgumentParser(
        description='Preview classification and cleaned names for a media root',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        'root',
        type=Path,
        help='Root folder to preview',
    )
    parser.add_argument(
        '--output',
        type=Path,
        default=Path('output/normalize_preview.csv'),
        help='Output path for the preview CSV (default: output/normalize_preview.csv)',
    )
    parser.add_argument(
        '--catalogued-only',
        action='store_true',
        default=False,
        dest='catalogued_only',
        help='Only write items that become catalog entries',
    )
    parser.add_argument(
        '--config',
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f'Config file for max_depth / translit_threshold (default: {DEFAULT_CONFIG_PATH})',
    )

    args = parser.parse_args()

    # Hard gate: root must exist (drive must be mounted)
    if not args.root.exists():
        logger.error(f"Root folder not found: {args.root}")
        logger.error("Is the drive mounted?")
        return 1

    if not args.root.is_dir():
        logger.error(f"Not a directory: {args.root}")
        return 1

    settings = load_settings(args.config)
    stats = run_preview(
        root=args.root,
        output_path=args.output,
        catalogued_only=args.catalogued_only,
        max_depth=settings.max_depth,
        translit_threshold=settings.translit_threshold,
    )

    print_summary(stats, args.output)
    return 0


if __name__ == '__main__':
    sys.exit(main())
