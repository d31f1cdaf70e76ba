#!/usr/bin/env python3
"""
OMDb API client with persistent JSON caching

Only used for IMDb ratings: TMDb supplies the imdb id, OMDb the rating.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)


class OMDbClient:
    """Interface to the Open Movie Database API with persistent caching"""

    def __init__(self, api_key: str, cache_path: Path):
        self.api_key = api_key
        self.base_url = "http://www.omdbapi.com/"
        self.cache_path = Path(cache_path)
        self.cache = self._load_cache()
        self.cache_hits = 0
        self.cache_misses = 0

    def _load_cache(self) -> Dict:
        """Load cache from JSON file"""
        if self.cache_path.exists():
            try:
                with open(self.cache_path, 'r', encoding='utf-8') as f:
                    cache = json.load(f)
                logger.info(f"Loaded OMDb cache with {len(cache)} entries")
                return cache
            except (OSError, ValueError) as e:
                logger.warning(f"Could not load OMDb cache: {e}. Starting fresh.")
                return {}
        return {}

    def _save_cache(self):
        """Save cache to JSON file"""
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_path, 'w', encoding='utf-8') as f:
                json.dump(self.cache, f, indent=2, ensure_ascii=False)
            logger.debug(f"Saved OMDb cache with {len(self.cache)} entries")
        except OSError as e:
            logger.error(f"Could not save OMDb cache: {e}")

    def get_rating(self, imdb_id: str) -> Optional[float]:
        """
        IMDb rating for an imdb id ("tt0133093"), or None.

        Lookup failures are logged and not cached; callers fall back to the
        provider's own vote average.
        """
        if not self.api_key or not imdb_id or not imdb_id.startswith('tt'):
            return None

        if imdb_id in self.cache:
            self.cache_hits += 1
            logger.debug(f"OMDb cache hit: {imdb_id}")
            return self.cache[imdb_id]

        self.cache_misses += 1
        logger.debug(f"OMDb cache miss: {imdb_id} - querying OMDb")

        try:
            response = requests.get(
                self.base_url,
                params={'apikey': self.api_key, 'i': imdb_id},
                timeout=5
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout:
            logger.warning(f"OMDb API timeout for {imdb_id}")
            return None
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"OMDb API error for {imdb_id}: {e}")
            return None

        rating = None
        raw = data.get('imdbRating')
        if data.get('Response') == 'True' and raw and raw != 'N/A':
            try:
                rating = float(raw)
            except ValueError:
                logger.debug(f"Unparseable OMDb rating for {imdb_id}: {raw!r}")

        self.cache[imdb_id] = rating
        self._save_cache()
        return rating

    def get_cache_stats(self) -> Dict:
        """Get cache performance statistics"""
        total = self.cache_hits + self.cache_misses
        hit_rate = (self.cache_hits / total * 100) if total > 0 else 0

        return {
            'hits': self.cache_hits,
            'misses': self.cache_misses,
            'total_queries': total,
            'hit_rate': hit_rate,
            'cache_size': len(self.cache)
        }
