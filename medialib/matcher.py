#!/usr/bin/env python3
"""
Title matching cascade

Tiers run cheapest first and stop at the first accepted match:
  1. exact      - identical strings
  2. normalized - equal after normalize_title(), or one contains the other
  3. fuzzy      - significant-word overlap weighted by length ratio
  4. semantic   - injected comparator (LLM), only when the cheap tiers fail

Typical use is validating a provider result against the parsed filename:
"Transformers - Dark of the Moon" must match "Transformers: Dark of the Moon",
"Alien" must NOT match "Aliens".
"""

import html
import logging
import re
import unicodedata
from typing import List, Optional

from medialib.constants import (
    CONTAINMENT_CONFIDENCE,
    CONTAINMENT_MIN_RATIO,
    EXACT_CONFIDENCE,
    FUZZY_MATCH_THRESHOLD,
    NORMALIZED_CONFIDENCE,
    SEMANTIC_MATCH_THRESHOLD,
)
from medialib.errors import MediaCatalogError
from medialib.interfaces import SemanticTitleComparator
from medialib.models import MatchResult

logger = logging.getLogger(__name__)


def normalize_title(title: str) -> str:
    """
    Normalize a title for comparison.

    Steps: lowercase, decode HTML entities, strip accents (NFD), drop a
    leading "the " / trailing ", the", punctuation to spaces, collapse
    whitespace.

    Examples:
        >>> normalize_title("Transformers: Dark of the Moon")
        'transformers dark of the moon'
        >>> normalize_title("Batman, The")
        'batman'
        >>> normalize_title("Amélie")
        'amelie'
    """
    text = html.unescape(title.lower())
    text = unicodedata.normalize('NFD', text)
    text = ''.join(c for c in text if unicodedata.category(c) != 'Mn')
    text = re.sub(r'^the\s+', '', text)
    text = re.sub(r',\s*the$', '', text)
    text = re.sub(r'[^\w\s]', ' ', text)
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def significant_words(title: str) -> List[str]:
    """Words longer than two characters of the normalized title"""
    return [word for word in normalize_title(title).split(' ') if len(word) > 2]


class TitleMatcher:
    """Four-tier title comparison with an optional semantic fallback"""

    def __init__(
        self,
        comparator: Optional[SemanticTitleComparator] = None,
        semantic_threshold: float = SEMANTIC_MATCH_THRESHOLD,
        fuzzy_threshold: float = FUZZY_MATCH_THRESHOLD,
    ):
        self.comparator = comparator
        self.semantic_threshold = semantic_threshold
        self.fuzzy_threshold = fuzzy_threshold

    def match(self, title1: str, title2: str, year: Optional[int] = None) -> MatchResult:
        """
        Decide whether two titles name the same work.

        Returns:
            MatchResult; on a non-match without a comparator the confidence is
            the fuzzy score
        """
        if self.exact(title1, title2):
            return MatchResult(True, EXACT_CONFIDENCE, 'exact', 'Exact string match')

        normalized = self.normalized(title1, title2)
        if normalized.is_match:
            return normalized

        fuzzy = self.fuzzy(title1, title2)
        if fuzzy.is_match:
            return fuzzy

        if self.comparator is not None:
            return self.semantic(title1, title2, year)

        return MatchResult(
            False,
            fuzzy.confidence,
            'fuzzy',
            f"No match: '{title1}' vs '{title2}'",
        )

    @staticmethod
    def exact(title1: str, title2: str) -> bool:
        return title1 == title2

    def normalized(self, title1: str, title2: str) -> MatchResult:
        n1 = normalize_title(title1)
        n2 = normalize_title(title2)

        if n1 == n2:
            return MatchResult(True, NORMALIZED_CONFIDENCE, 'normalized', f"Normalized match: '{n1}'")

        if n1 and n2 and (n1 in n2 or n2 in n1):
            shorter, longer = (n1, n2) if len(n1) < len(n2) else (n2, n1)
            ratio = len(shorter) / len(longer)
            # Alien vs Aliens are different films
            plural = longer in (shorter + 's', shorter + 'es')
            if ratio >= CONTAINMENT_MIN_RATIO and not plural:
                return MatchResult(
                    True,
                    CONTAINMENT_CONFIDENCE,
                    'normalized',
                    'Partial match: one title contains the other',
                )

        return MatchResult(False, 0.0, 'normalized')

    def fuzzy(self, title1: str, title2: str) -> MatchResult:
        words1 = significant_words(title1)
        words2 = significant_words(title2)
        if not words1 or not words2:
            return MatchResult(False, 0.0, 'fuzzy')

        common = [word for word in words1 if word in words2]
        min_words = min(len(words1), len(words2))
        max_words = max(len(words1), len(words2))
        confidence = (len(common) / min_words) * (min_words / max_words)

        return MatchResult(
            confidence >= self.fuzzy_threshold,
            confidence,
            'fuzzy',
            f"Word overlap: {len(common)}/{min_words} words match ({confidence * 100:.0f}%)",
        )

    def semantic(self, title1: str, title2: str, year: Optional[int] = None) -> MatchResult:
        try:
            verdict = self.comparator.compare(title1, title2, year)
        except MediaCatalogError as e:
            logger.warning(f"Semantic comparison failed for '{title1}' vs '{title2}': {e}")
            return MatchResult(False, 0.0, 'semantic', f"Comparator error: {e}")

        is_same = bool(verdict.get('is_match', False))
        confidence = float(verdict.get('confidence', 0.0) or 0.0)
        accepted = is_same and confidence >= self.semantic_threshold
        return MatchResult(accepted, confidence, 'semantic', verdict.get('reasoning'))

    def matches_any(self, parsed_title: str, candidates: List[Optional[str]], year: Optional[int] = None) -> MatchResult:
        """
        Best result of matching parsed_title against each non-empty candidate.

        Stops at the first accepted match; otherwise returns the highest
        confidence non-match.
        """
        best = MatchResult(False, 0.0, 'exact')
        for candidate in candidates:
            if not candidate:
                continue
            result = self.match(parsed_title, candidate, year)
            if result.is_match:
                return result
            if result.confidence > best.confidence:
                best = result
        return best
