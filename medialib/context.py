#!/usr/bin/env python3
"""
Per-scan caches

A ScanContext is created at the start of a scan, passed by reference to the
classifier and resolver, and discarded when the scan ends. Nothing in it
outlives the run; persistent caching belongs to the provider clients.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from medialib.models import ItemMetadata, MediaKind

MetadataKey = Tuple[str, Optional[int], MediaKind]

_MISSING = object()


@dataclass
class ScanContext:
    metadata: Dict[MetadataKey, Optional[ItemMetadata]] = field(default_factory=dict)
    transliterations: Dict[str, str] = field(default_factory=dict)
    folder_analysis: Dict[str, Dict] = field(default_factory=dict)
    translations: Dict[str, str] = field(default_factory=dict)
    metadata_hits: int = 0
    metadata_misses: int = 0

    def lookup_metadata(self, key: MetadataKey):
        """Cached metadata for key, or the module sentinel when never resolved"""
        value = self.metadata.get(key, _MISSING)
        if value is _MISSING:
            self.metadata_misses += 1
        else:
            self.metadata_hits += 1
        return value

    def store_metadata(self, key: MetadataKey, value: Optional[ItemMetadata]):
        # A miss is remembered as None so the provider is asked once per scan
        self.metadata[key] = value

    @staticmethod
    def is_missing(value) -> bool:
        return value is _MISSING

    def get_stats(self) -> Dict:
        return {
            'metadata_entries': len(self.metadata),
            'metadata_hits': self.metadata_hits,
            'metadata_misses': self.metadata_misses,
            'transliterations': len(self.transliterations),
            'folder_analysis': len(self.folder_analysis),
            'translations': len(self.translations),
        }
