#!/usr/bin/env python3
"""
Metadata resolver: provider search + deterministic re-ranking

Ranking, given a provider's candidate list for a clean title:
  1. Pool = candidates whose title or original title normalizes to the
     query; all candidates when none do
  2. With a known year, keep candidates within ±1 year (unless none are)
  3. Score = 1000 if original language is the expected one
           + ln(max(vote_count, 1)) * 100
           + popularity * 0.5
           + rating * 5
  4. Highest score wins; ties keep provider order

Results, including misses, are memoized per scan in the ScanContext.
"""

import logging
import math
from dataclasses import replace
from typing import List, Optional

from medialib.assist import detect_language
from medialib.constants import (
    CYRILLIC_RE,
    DEFAULT_EXPECTED_LANGUAGE,
    LANGUAGE_BONUS,
    POPULARITY_WEIGHT,
    RATING_WEIGHT,
    VOTE_COUNT_WEIGHT,
    YEAR_TOLERANCE,
)
from medialib.context import ScanContext
from medialib.interfaces import MetadataProvider, ScriptAssist
from medialib.matcher import normalize_title
from medialib.models import Candidate, ItemMetadata, MediaKind

logger = logging.getLogger(__name__)


def score_candidate(candidate: Candidate, expected_language: str) -> float:
    score = 0.0
    if candidate.original_language == expected_language:
        score += LANGUAGE_BONUS
    score += math.log(max(candidate.vote_count, 1)) * VOTE_COUNT_WEIGHT
    score += candidate.popularity * POPULARITY_WEIGHT
    score += candidate.rating * RATING_WEIGHT
    return score


def rank_candidates(
    candidates: List[Candidate],
    clean_title: str,
    year: Optional[int] = None,
    expected_language: str = DEFAULT_EXPECTED_LANGUAGE,
) -> List[Candidate]:
    """Return the ranked pool, best first (empty when there are no candidates)"""
    wanted = normalize_title(clean_title)
    pool = [
        c for c in candidates
        if normalize_title(c.title) == wanted
        or (c.original_title and normalize_title(c.original_title) == wanted)
    ] or list(candidates)

    if year:
        in_range = [c for c in pool if c.year and abs(c.year - year) <= YEAR_TOLERANCE]
        if in_range:
            pool = in_range

    # sorted() is stable, so equal scores keep provider order
    return sorted(pool, key=lambda c: score_candidate(c, expected_language), reverse=True)


class MetadataResolver:
    """Resolve clean titles to ItemMetadata through an injected provider"""

    def __init__(
        self,
        provider: MetadataProvider,
        context: Optional[ScanContext] = None,
        script_assist: Optional[ScriptAssist] = None,
        expected_language: str = DEFAULT_EXPECTED_LANGUAGE,
    ):
        self.provider = provider
        self.context = context if context is not None else ScanContext()
        self.script_assist = script_assist
        self.expected_language = expected_language

    def resolve(
        self,
        clean_title: str,
        year: Optional[int],
        kind: MediaKind,
        is_translit: bool = False,
    ) -> Optional[ItemMetadata]:
        """
        Best metadata for a clean title, or None.

        Retries once with an English translation (non-English, non-Russian
        queries) and, for transliterated series names, once with the Cyrillic
        spelling.

        Raises:
            ProviderUnavailable: propagated from the provider, not memoized
        """
        metadata = self._resolve_once(clean_title, year, kind)
        if metadata is not None or self.script_assist is None:
            return metadata

        language = detect_language(clean_title)
        if language not in ('en', 'ru'):
            translated = self._translate(clean_title, language)
            if translated and translated != clean_title:
                logger.info(f"Retrying '{clean_title}' as translated '{translated}'")
                metadata = self._resolve_once(translated, year, kind)
                if metadata is not None:
                    return metadata

        if kind == MediaKind.SERIES and is_translit:
            cyrillic = self._transliterate(clean_title)
            if cyrillic and cyrillic != clean_title:
                logger.info(f"Retrying '{clean_title}' as Cyrillic '{cyrillic}'")
                metadata = self._resolve_once(cyrillic, year, kind)

        return metadata

    def query_variants(self, clean_title: str) -> List[str]:
        """The title plus any translation or Cyrillic spelling tried this scan"""
        variants = [clean_title]
        key = clean_title.lower()
        for cache in (self.context.translations, self.context.transliterations):
            value = cache.get(key)
            if value and value not in variants:
                variants.append(value)
        return variants

    def _resolve_once(self, title: str, year: Optional[int], kind: MediaKind) -> Optional[ItemMetadata]:
        key = (normalize_title(title), year, kind)
        cached = self.context.lookup_metadata(key)
        if not ScanContext.is_missing(cached):
            logger.debug(f"Metadata cache hit: '{title}' ({year}) [{kind.value}]")
            return cached

        candidates = self.provider.search_candidates(title, year, kind)
        expected = self.expected_language if kind == MediaKind.MOVIE else detect_language(title)
        ranked = rank_candidates(candidates, title, year, expected)

        metadata = None
        if ranked:
            best = ranked[0]
            logger.debug(f"Best candidate for '{title}': '{best.title}' ({best.year}) of {len(candidates)}")
            metadata = self.provider.get_details(best, kind)

        self.context.store_metadata(key, metadata)
        return metadata

    @staticmethod
    def choose_title(metadata: ItemMetadata, query: str) -> ItemMetadata:
        """Keep Russian titles in Cyrillic: the original title wins for a Cyrillic query or original"""
        original = metadata.original_title
        if original and (CYRILLIC_RE.search(query) or CYRILLIC_RE.search(original)):
            return replace(metadata, title=original)
        return metadata

    def _translate(self, text: str, language: str) -> str:
        cache = self.context.translations
        key = text.lower()
        if key not in cache:
            cache[key] = self.script_assist.translate(text, language)
        return cache[key]

    def _transliterate(self, text: str) -> str:
        cache = self.context.transliterations
        key = text.lower()
        if key not in cache:
            cache[key] = self.script_assist.transliterate(text)
        return cache[key]
