#!/usr/bin/env python3
"""
Data model shared by the loader, classifier, resolver and reconciler
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple


class NodeKind(str, Enum):
    FILE = 'file'
    FOLDER = 'folder'


class ItemType(str, Enum):
    """Closed taxonomy: every scanned node gets exactly one of these"""
    SINGLE_MOVIE = 'SingleMovie'
    TV_EPISODE = 'TVEpisode'
    TV_SERIES_ROOT = 'TVSeriesRoot'
    SEASON_FOLDER = 'SeasonFolder'
    BDRIP_ROOT = 'BDRipRoot'
    DVDRIP_ROOT = 'DVDRipRoot'
    COLLECTION_FOLDER = 'CollectionFolder'
    SUBTITLE_FILE = 'SubtitleFile'
    PLAIN_FOLDER = 'PlainFolder'
    UNCLASSIFIED = 'Unclassified'


# Item types that become one catalog entry each
CATALOGUED_TYPES = (
    ItemType.SINGLE_MOVIE,
    ItemType.TV_SERIES_ROOT,
    ItemType.SEASON_FOLDER,
    ItemType.BDRIP_ROOT,
    ItemType.DVDRIP_ROOT,
)

SERIES_TYPES = (ItemType.TV_SERIES_ROOT, ItemType.SEASON_FOLDER)


class EntryStatus(str, Enum):
    ACTIVE = 'active'
    DELETED = 'deleted'
    ERROR = 'error'


class MediaKind(str, Enum):
    MOVIE = 'movie'
    SERIES = 'series'


@dataclass(frozen=True)
class FileSystemNode:
    """Immutable snapshot of one file or folder, valid for a single scan"""
    name: str
    path: Path
    kind: NodeKind
    children: Tuple['FileSystemNode', ...] = ()

    @property
    def is_folder(self) -> bool:
        return self.kind == NodeKind.FOLDER

    @property
    def extension(self) -> str:
        if self.is_folder:
            return ''
        return self.path.suffix.lower()

    def child_names(self) -> List[str]:
        return [child.name for child in self.children]

    def files(self) -> List['FileSystemNode']:
        return [child for child in self.children if not child.is_folder]

    def folders(self) -> List['FileSystemNode']:
        return [child for child in self.children if child.is_folder]


@dataclass
class ItemMetadata:
    """
    Provider-neutral metadata record.

    Only title and year are required; every other field is None when the
    provider did not supply it.
    """
    title: str
    year: int
    original_title: Optional[str] = None
    imdb_id: Optional[str] = None
    provider_id: Optional[int] = None
    rating: Optional[float] = None
    plot: Optional[str] = None
    genre: Optional[str] = None
    country: Optional[str] = None
    language: Optional[str] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None

    @property
    def external_ids(self) -> Dict[str, object]:
        ids = {}
        if self.imdb_id:
            ids['imdb'] = self.imdb_id
        if self.provider_id is not None:
            ids['provider'] = self.provider_id
        return ids

    def to_dict(self) -> Dict:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: Dict) -> 'ItemMetadata':
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class Candidate:
    """One entry of a provider's search result list, before re-ranking"""
    provider_id: int
    title: str
    original_title: Optional[str] = None
    year: Optional[int] = None
    original_language: Optional[str] = None
    vote_count: int = 0
    popularity: float = 0.0
    rating: float = 0.0


@dataclass
class ClassifiedItem:
    """
    A node with its ItemType and everything the normalizer extracted from it.

    canonical_name is the name the node should carry on disk; for movies it
    is only final once metadata is attached.
    """
    node: FileSystemNode
    item_type: ItemType
    canonical_name: str
    clean_title: str = ''
    year: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    franchise: Optional[str] = None
    series_name: Optional[str] = None
    is_tv_episode: bool = False
    is_audio_file: bool = False
    is_translit: bool = False
    already_canonical: bool = False
    rating: Optional[float] = None
    metadata: Optional[ItemMetadata] = None
    children: List['ClassifiedItem'] = field(default_factory=list)

    @property
    def path(self) -> Path:
        return self.node.path

    @property
    def kind(self) -> MediaKind:
        if self.item_type in SERIES_TYPES or self.item_type == ItemType.TV_EPISODE:
            return MediaKind.SERIES
        return MediaKind.MOVIE

    def walk(self):
        """Yield this item and every descendant in traversal order"""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class MatchResult:
    """Outcome of one title comparison; never persisted"""
    is_match: bool
    confidence: float
    method: str  # exact | normalized | fuzzy | semantic
    reasoning: Optional[str] = None


@dataclass
class ScanResult:
    """Counters for one reconciliation run"""
    scanned: int = 0
    updated: int = 0
    created: int = 0
    deleted: int = 0
    errors: int = 0
    warnings: int = 0

    def as_dict(self) -> Dict[str, int]:
        return dict(self.__dict__)
