#!/usr/bin/env python3
"""
Item classifier: assign exactly one ItemType to every node of a loaded tree

Folder rules, first match wins:
  1. Disc-rip marker child folder      → BDRipRoot / DVDRipRoot
  2. "Season N" / "Сезон N" name       → SeasonFolder
     (also any folder with SxxExx files inside a series)
  3. Episode-numbered video files      → TVSeriesRoot
  4. Name contains "collection"        → CollectionFolder
  5. Heuristic parse assist says series → TVSeriesRoot
  6. Anything else                     → PlainFolder (children are classified)

File rules:
  sidecar extension → SubtitleFile
  canonical "Title (Year) (IMDB x.x).ext" → SingleMovie, name kept
  episode marker inside a series → TVEpisode
  other video → SingleMovie candidate
  anything else → Unclassified

No provider calls happen here; resolution is the Identifier's job.
"""

import logging
import re
from pathlib import Path
from typing import List, Optional

from medialib.constants import (
    COLLECTION_RE,
    EPISODE_RUSSIAN_RES,
    EPISODE_SIMPLE_RE,
    EPISODE_STANDARD_RE,
    GENERIC_SEASON_RE,
    SIDECAR_EXTENSIONS,
    TRANSLIT_THRESHOLD,
)
from medialib.context import ScanContext
from medialib.errors import ClassificationAmbiguous, MediaCatalogError
from medialib.interfaces import HeuristicParseAssist
from medialib.loader import is_series_folder, is_video_file, rip_type
from medialib.models import ClassifiedItem, FileSystemNode, ItemType
from medialib.normalizer import (
    build_episode_name,
    build_folder_name,
    clean_movie_name,
    parse_canonical_name,
    parse_series_name,
)

logger = logging.getLogger(__name__)

_SEASON_NUMBER_RES = [
    re.compile(r'[-\s](\d+)$'),
    re.compile(r'Season\s*(\d+)', re.IGNORECASE),
    re.compile(r'S(\d{1,2})(?!\d)', re.IGNORECASE),
]
_COLLECTION_SUFFIX_RE = re.compile(r'\s+Collection$', re.IGNORECASE)
_RECENT_YEAR_RE = re.compile(r'\b(20\d{2})\b')


def is_root_sentinel(parent_name: Optional[str], root_name: str) -> bool:
    """A parent named like the scanned root is the library itself, never a show title"""
    return parent_name is None or parent_name == root_name


def extract_season_number(folder_name: str) -> int:
    """Season number from "Show-2", "Show 2", "Season 2" or "S02"; default 1"""
    for pattern in _SEASON_NUMBER_RES:
        match = pattern.search(folder_name)
        if match:
            return int(match.group(1))
    return 1


def extract_year_from_files(folder_name: str, file_names: List[str]) -> Optional[int]:
    """First 20xx year in the folder name, then in the file names"""
    for name in [folder_name] + list(file_names):
        match = _RECENT_YEAR_RE.search(name)
        if match:
            return int(match.group(1))
    return None


def franchise_from_collection(folder_name: str) -> str:
    return _COLLECTION_SUFFIX_RE.sub('', folder_name).strip()


def with_franchise_prefix(title: str, franchise: Optional[str]) -> str:
    """'Franchise: Title' unless the title already starts with the franchise"""
    if not franchise or title.lower().startswith(franchise.lower()):
        return title
    return f"{franchise}: {title}"


def parse_episode_numbers(file_name: str, default_season: int = 1):
    """
    (season, episode) from an episode file name, or None.

    Precedence: S01E02, then Russian "02 сер" / "серия 02", then a leading
    "02." / "02 -" number.
    """
    match = EPISODE_STANDARD_RE.search(file_name)
    if match:
        return int(match.group(1)), int(match.group(2))
    for pattern in EPISODE_RUSSIAN_RES:
        match = pattern.search(file_name)
        if match:
            return default_season, int(match.group(1))
    match = EPISODE_SIMPLE_RE.search(file_name)
    if match:
        return default_season, int(match.group(1))
    return None


class ItemClassifier:
    """
    Classify a loaded tree top-down, carrying collection and series context
    to descendants.
    """

    def __init__(
        self,
        root_name: str,
        parse_assist: Optional[HeuristicParseAssist] = None,
        context: Optional[ScanContext] = None,
        translit_threshold: float = TRANSLIT_THRESHOLD,
    ):
        self.root_name = root_name
        self.parse_assist = parse_assist
        self.context = context if context is not None else ScanContext()
        self.translit_threshold = translit_threshold

    def classify_tree(self, tree: FileSystemNode) -> ClassifiedItem:
        """The root itself is a PlainFolder; everything below is classified"""
        root = ClassifiedItem(node=tree, item_type=ItemType.PLAIN_FOLDER, canonical_name=tree.name)
        root.children = self._classify_children(tree, franchise=None, series=None, season=None)
        return root

    def classify(
        self,
        node: FileSystemNode,
        parent_name: Optional[str] = None,
        franchise: Optional[str] = None,
        series: Optional[str] = None,
        season: Optional[int] = None,
    ) -> ClassifiedItem:
        if node.is_folder:
            return self._classify_folder(node, parent_name, franchise, series, season)
        try:
            return self._classify_file(node, franchise, series, season)
        except ClassificationAmbiguous as e:
            logger.debug(f"Unclassified: {node.name} ({e})")
            return ClassifiedItem(node=node, item_type=ItemType.UNCLASSIFIED, canonical_name=node.name)

    def _classify_children(self, node, franchise, series, season) -> List[ClassifiedItem]:
        return [
            self.classify(child, node.name, franchise, series, season)
            for child in node.children
        ]

    # === Folders ===

    def _classify_folder(self, node, parent_name, franchise, series, season) -> ClassifiedItem:
        name = node.name
        file_names = [child.name for child in node.files()]

        kind = rip_type(child.name for child in node.folders())
        if kind is not None:
            return self._rip_folder(node, kind, franchise)

        if GENERIC_SEASON_RE.match(name) or (series and self._has_standard_episodes(file_names)):
            return self._season_folder(node, parent_name, series)

        if is_series_folder(file_names):
            return self._series_root(node)

        if COLLECTION_RE.search(name):
            item = ClassifiedItem(
                node=node,
                item_type=ItemType.COLLECTION_FOLDER,
                canonical_name=name,
                franchise=franchise_from_collection(name),
            )
            item.children = self._classify_children(node, item.franchise, series, season)
            return item

        analysis = self._analyze_folder(node)
        if analysis.get('is_series'):
            return self._series_root(node, analysis.get('series_name'))

        item = ClassifiedItem(node=node, item_type=ItemType.PLAIN_FOLDER, canonical_name=name, franchise=franchise)
        item.children = self._classify_children(node, franchise, series, season)
        return item

    @staticmethod
    def _has_standard_episodes(file_names: List[str]) -> bool:
        return any(EPISODE_STANDARD_RE.search(name) for name in file_names if is_video_file(name))

    def _rip_folder(self, node, kind: ItemType, franchise) -> ClassifiedItem:
        existing = parse_canonical_name(node.name + '.mkv')
        if existing:
            title, year, rating, _ = existing
            return ClassifiedItem(
                node=node,
                item_type=kind,
                canonical_name=node.name,
                clean_title=title,
                year=year,
                rating=rating,
                franchise=franchise,
                already_canonical=True,
            )

        parsed = clean_movie_name(node.name, is_folder=True)
        return ClassifiedItem(
            node=node,
            item_type=kind,
            canonical_name=node.name,
            clean_title=parsed.clean_name,
            year=parsed.year,
            franchise=franchise,
            is_audio_file=parsed.is_audio_file,
        )

    def _season_folder(self, node, parent_name, series) -> ClassifiedItem:
        season_number = extract_season_number(node.name)

        if series:
            show = series
        elif not is_root_sentinel(parent_name, self.root_name):
            show = parse_series_name(parent_name, self.translit_threshold).clean_name
        else:
            logger.debug(f"Root sentinel: '{node.name}' sits directly under the library root")
            show = parse_series_name(node.name, self.translit_threshold).clean_name

        item = ClassifiedItem(
            node=node,
            item_type=ItemType.SEASON_FOLDER,
            canonical_name=f"{show} S{season_number:02d}",
            clean_title=show,
            season=season_number,
            series_name=show,
        )
        item.children = self._classify_children(node, None, show, season_number)
        return item

    def _series_root(self, node, series_name: Optional[str] = None) -> ClassifiedItem:
        parsed = parse_series_name(node.name, self.translit_threshold)
        title = series_name or parsed.clean_name
        year = parsed.year or extract_year_from_files(node.name, [c.name for c in node.files()])

        item = ClassifiedItem(
            node=node,
            item_type=ItemType.TV_SERIES_ROOT,
            canonical_name=build_folder_name(title, year, parsed.season),
            clean_title=title,
            year=year,
            season=parsed.season,
            series_name=title,
            is_translit=parsed.is_translit,
        )
        item.children = self._classify_children(node, None, title, parsed.season)
        return item

    def _analyze_folder(self, node) -> dict:
        if self.parse_assist is None:
            return {}
        key = node.name.lower()
        cache = self.context.folder_analysis
        if key in cache:
            logger.debug(f"Folder analysis cache hit: {node.name}")
            return cache[key]

        try:
            analysis = self.parse_assist.analyze_folder(node.name, [c.name for c in node.files()]) or {}
        except MediaCatalogError as e:
            # Failures are not cached; the folder is read as plain this time
            logger.warning(f"Folder analysis failed for {node.name}: {e}")
            return {}
        cache[key] = analysis
        return analysis

    # === Files ===

    def _classify_file(self, node, franchise, series, season) -> ClassifiedItem:
        name = node.name
        extension = Path(name).suffix.lower()

        if extension in SIDECAR_EXTENSIONS:
            return ClassifiedItem(node=node, item_type=ItemType.SUBTITLE_FILE, canonical_name=name)

        if not is_video_file(name):
            raise ClassificationAmbiguous(f"not a video or sidecar file: {name}")

        existing = parse_canonical_name(name)
        if existing:
            title, year, rating, _ = existing
            return ClassifiedItem(
                node=node,
                item_type=ItemType.SINGLE_MOVIE,
                canonical_name=name,
                clean_title=title,
                year=year,
                rating=rating,
                franchise=franchise,
                already_canonical=True,
            )

        if series:
            numbers = parse_episode_numbers(name, season or 1)
            if numbers:
                season_number, episode = numbers
                return ClassifiedItem(
                    node=node,
                    item_type=ItemType.TV_EPISODE,
                    canonical_name=build_episode_name(series, season_number, episode, extension),
                    clean_title=series,
                    season=season_number,
                    episode=episode,
                    series_name=series,
                    is_tv_episode=True,
                )

        parsed = clean_movie_name(name)
        return ClassifiedItem(
            node=node,
            item_type=ItemType.SINGLE_MOVIE,
            canonical_name=name,
            clean_title=parsed.clean_name,
            year=parsed.year,
            franchise=franchise,
            is_tv_episode=parsed.is_tv_episode,
            is_audio_file=parsed.is_audio_file,
        )
