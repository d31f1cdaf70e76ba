#!/usr/bin/env python3
"""
Collaborator contracts consumed by the identification engine

Concrete implementations live in tmdb.py, assist.py, catalog.py and
sinks.py; tests substitute fixed fakes with the same methods.
"""

from pathlib import Path
from typing import Dict, List, Optional, Protocol

from medialib.models import Candidate, ItemMetadata, MediaKind


class MetadataProvider(Protocol):
    def search_candidates(self, title: str, year: Optional[int], kind: MediaKind) -> List[Candidate]:
        ...

    def get_details(self, candidate: Candidate, kind: MediaKind) -> Optional[ItemMetadata]:
        ...


class SemanticTitleComparator(Protocol):
    def compare(self, title1: str, title2: str, year: Optional[int] = None) -> Dict:
        """Return {'is_match': bool, 'confidence': float, 'reasoning': str}"""
        ...


class ScriptAssist(Protocol):
    def detect_language(self, text: str) -> str:
        ...

    def translate(self, text: str, source_lang: str) -> str:
        ...

    def transliterate(self, text: str) -> str:
        ...


class HeuristicParseAssist(Protocol):
    def parse_name(self, raw: str) -> Optional[Dict]:
        """Return {title, year, is_series, is_episode, is_audio, confidence}"""
        ...

    def analyze_folder(self, name: str, child_names: List[str]) -> Dict:
        """Return {is_series, series_name}"""
        ...


class MetadataSink(Protocol):
    def write(self, metadata: ItemMetadata, target: Path, is_series: bool = False) -> Optional[Path]:
        ...
