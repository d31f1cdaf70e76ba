#!/usr/bin/env python3
"""
Identification pipeline: normalize → resolve → validate for one item

The classifier has already assigned the ItemType and parsed the name. The
Identifier attaches ItemMetadata and the final canonical_name, or raises
one of the per-item failures from medialib.errors:

  NotAMovie         episode or audio file where a movie was expected
  MetadataNotFound  provider had no candidate
  TitleMismatch     best candidate failed the title cascade
  ProviderUnavailable  propagated from the provider
"""

import logging
from dataclasses import replace
from typing import List, Optional

from medialib.classifier import with_franchise_prefix
from medialib.errors import MetadataNotFound, NotAMovie, TitleMismatch
from medialib.interfaces import HeuristicParseAssist
from medialib.matcher import TitleMatcher
from medialib.models import CATALOGUED_TYPES, ClassifiedItem, ItemMetadata, ItemType, MatchResult, MediaKind
from medialib.normalizer import build_canonical_name, build_folder_name
from medialib.resolver import MetadataResolver

logger = logging.getLogger(__name__)

EPISODE_REASON = 'TV episode - not a movie'
AUDIO_REASON = 'Audio/music file - not a movie'


class Identifier:
    """Resolve and validate catalogued items against a metadata provider"""

    def __init__(
        self,
        resolver: MetadataResolver,
        matcher: Optional[TitleMatcher] = None,
        parse_assist: Optional[HeuristicParseAssist] = None,
    ):
        self.resolver = resolver
        self.matcher = matcher if matcher is not None else TitleMatcher()
        self.parse_assist = parse_assist

    def identify(self, item: ClassifiedItem) -> ClassifiedItem:
        """Attach metadata and canonical_name to a catalogued item (in place)"""
        if item.item_type not in CATALOGUED_TYPES:
            raise ValueError(f"{item.item_type.value} items are not identified")

        if item.item_type == ItemType.TV_SERIES_ROOT:
            return self._identify_series(item)
        if item.item_type == ItemType.SEASON_FOLDER:
            return self._identify_season(item)
        return self._identify_movie(item)

    # === Movies and rips ===

    def _identify_movie(self, item: ClassifiedItem) -> ClassifiedItem:
        if item.is_tv_episode:
            raise NotAMovie(EPISODE_REASON)
        if item.is_audio_file:
            raise NotAMovie(AUDIO_REASON)

        if item.already_canonical:
            return self._enrich_canonical(item)

        queries = [item.clean_title]
        year = item.year
        metadata = self.resolver.resolve(item.clean_title, year, MediaKind.MOVIE) if item.clean_title else None

        if metadata is None and self.parse_assist is not None:
            parsed = self.parse_assist.parse_name(item.node.name)
            if parsed:
                if parsed.get('is_episode'):
                    raise NotAMovie(EPISODE_REASON)
                if parsed.get('is_audio'):
                    raise NotAMovie(AUDIO_REASON)
                title = parsed.get('title')
                if title and title != item.clean_title:
                    logger.info(f"Parse assist retitled '{item.node.name}' → '{title}'")
                    queries.append(title)
                    year = parsed.get('year') or year
                    metadata = self.resolver.resolve(title, year, MediaKind.MOVIE)

        if metadata is None:
            raise MetadataNotFound(f"Movie not found: '{item.clean_title}' ({item.year})")

        self._validate(queries, metadata, year)
        metadata = MetadataResolver.choose_title(metadata, item.node.name)

        release_year = metadata.year or item.year
        if not release_year:
            raise MetadataNotFound(f"No release year for '{metadata.title}'")

        title = with_franchise_prefix(metadata.title, item.franchise)
        item.metadata = replace(metadata, title=title, year=release_year)
        item.rating = metadata.rating
        item.canonical_name = build_canonical_name(
            title,
            release_year,
            metadata.rating or 0.0,
            item.node.extension,
        )
        return item

    def _enrich_canonical(self, item: ClassifiedItem) -> ClassifiedItem:
        """Canonical names are kept; a lookup only fills NFO/poster fields"""
        metadata = self.resolver.resolve(item.clean_title, item.year, MediaKind.MOVIE)
        if metadata is not None and self._matches([item.clean_title], metadata, item.year):
            item.metadata = replace(metadata, title=item.clean_title, year=item.year, rating=item.rating)
        else:
            item.metadata = ItemMetadata(title=item.clean_title, year=item.year, rating=item.rating)
        item.canonical_name = item.node.name
        return item

    # === Series ===

    def _identify_series(self, item: ClassifiedItem) -> ClassifiedItem:
        metadata = self.resolver.resolve(item.clean_title, None, MediaKind.SERIES, item.is_translit)
        if metadata is None:
            raise MetadataNotFound(f"Series not found: '{item.clean_title}'")

        self._validate(self.resolver.query_variants(item.clean_title), metadata, item.year)
        metadata = MetadataResolver.choose_title(metadata, item.node.name)

        year = item.year or metadata.year
        item.metadata = replace(metadata, year=year)
        item.series_name = metadata.title
        item.rating = metadata.rating
        item.canonical_name = build_folder_name(metadata.title, year, item.season)
        return item

    def _identify_season(self, item: ClassifiedItem) -> ClassifiedItem:
        """
        Season folders keep the name derived from their show; metadata is
        attached when the show resolves and validates, otherwise left empty.
        """
        metadata = self.resolver.resolve(item.clean_title, None, MediaKind.SERIES, item.is_translit)
        if metadata is not None and self._matches(self.resolver.query_variants(item.clean_title), metadata):
            item.metadata = MetadataResolver.choose_title(metadata, item.node.name)
            item.rating = metadata.rating
        return item

    # === Validation ===

    def _matches(self, queries: List[str], metadata: ItemMetadata, year: Optional[int] = None) -> bool:
        return self._best_match(queries, metadata, year).is_match

    def _best_match(self, queries: List[str], metadata: ItemMetadata, year: Optional[int] = None):
        best = None
        for query in queries:
            if not query:
                continue
            result = self.matcher.matches_any(query, [metadata.title, metadata.original_title], year)
            if result.is_match:
                return result
            if best is None or result.confidence > best.confidence:
                best = result
        return best if best is not None else MatchResult(False, 0.0, 'exact')

    def _validate(self, queries: List[str], metadata: ItemMetadata, year: Optional[int]):
        result = self._best_match(queries, metadata, year)
        if not result.is_match:
            logger.warning(
                f"Title mismatch: '{queries[0]}' vs '{metadata.title}' "
                f"({result.method}, {result.confidence:.2f})"
            )
            raise TitleMismatch(queries[0], metadata.title, result.confidence)
        logger.debug(f"Validated '{queries[0]}' ≈ '{metadata.title}' via {result.method} ({result.confidence:.2f})")
