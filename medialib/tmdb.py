#!/usr/bin/env python3
"""
TMDb API client with persistent JSON caching

Search results are cached as candidate lists keyed by "title|year|kind";
details are cached per TMDb id. Retryable failures (timeouts, connection
errors, 429 and 5xx) raise ProviderUnavailable and are never cached, so the
retry pass can pick the item up later.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

import requests

from medialib.constants import TMDB_IMAGE_BASE
from medialib.errors import ProviderTimeout, ProviderUnavailable
from medialib.models import Candidate, ItemMetadata, MediaKind

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _year_from_date(date: Optional[str]) -> Optional[int]:
    if date and len(date) >= 4 and date[:4].isdigit():
        return int(date[:4])
    return None


def _image_url(path: Optional[str]) -> Optional[str]:
    return f"{TMDB_IMAGE_BASE}{path}" if path else None


class TMDbClient:
    """Interface to The Movie Database API with persistent caching"""

    def __init__(self, api_key: str, cache_path: Path, omdb=None):
        self.api_key = api_key
        self.base_url = "https://api.themoviedb.org/3"
        self.cache_path = Path(cache_path)
        self.omdb = omdb
        self.cache = self._load_cache()
        self.cache_hits = 0
        self.cache_misses = 0

    def _load_cache(self) -> Dict:
        """Load cache from JSON file"""
        if self.cache_path.exists():
            try:
                with open(self.cache_path, 'r', encoding='utf-8') as f:
                    cache = json.load(f)
                logger.info(f"Loaded TMDb cache with {len(cache)} entries")
                return cache
            except (OSError, ValueError) as e:
                logger.warning(f"Could not load cache: {e}. Starting fresh.")
                return {}
        return {}

    def _save_cache(self):
        """Save cache to JSON file"""
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.cache_path, 'w', encoding='utf-8') as f:
                json.dump(self.cache, f, indent=2, ensure_ascii=False)
            logger.debug(f"Saved TMDb cache with {len(self.cache)} entries")
        except OSError as e:
            logger.error(f"Could not save cache: {e}")

    def _make_cache_key(self, title: str, year: Optional[int], kind: MediaKind) -> str:
        """Generate cache key from title, year and media kind"""
        return f"{title}|{year if year else 'None'}|{kind.value}"

    def _get(self, endpoint: str, params: Dict) -> Optional[Dict]:
        """
        GET an endpoint and return the decoded JSON.

        Raises:
            ProviderTimeout: request timed out
            ProviderUnavailable: connection failure, 429 or 5xx
        """
        params = dict(params, api_key=self.api_key)
        try:
            response = requests.get(f"{self.base_url}{endpoint}", params=params, timeout=10)
        except requests.exceptions.Timeout as e:
            raise ProviderTimeout(f"TMDb timeout on {endpoint}") from e
        except requests.exceptions.ConnectionError as e:
            raise ProviderUnavailable(f"TMDb unreachable on {endpoint}: {e}") from e

        if response.status_code in RETRYABLE_STATUS:
            raise ProviderUnavailable(f"TMDb returned {response.status_code} on {endpoint}")

        try:
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            logger.warning(f"TMDb API HTTP error on {endpoint}: {e}")
            return None
        except ValueError as e:
            logger.warning(f"TMDb returned invalid JSON on {endpoint}: {e}")
            return None

    # === Search ===

    def search_candidates(self, title: str, year: Optional[int], kind: MediaKind) -> List[Candidate]:
        """
        Search TMDb and return candidates in provider order (with caching).

        A search with a year that finds nothing is retried once without it.
        """
        if not self.api_key or not title:
            return []

        cache_key = self._make_cache_key(title, year, kind)

        if cache_key in self.cache:
            self.cache_hits += 1
            logger.debug(f"Cache hit: {title} ({year}) [{kind.value}]")
            return [Candidate(**row) for row in self.cache[cache_key]]

        self.cache_misses += 1
        logger.debug(f"Cache miss: {title} ({year}) [{kind.value}] - querying TMDb")

        results = self._search(title, year, kind)
        if not results and year:
            logger.debug(f"No TMDb results for '{title}' with year {year}, trying without")
            results = self._search(title, None, kind)

        candidates = [self._to_candidate(row, kind) for row in results]

        # Cache result (even if empty)
        self.cache[cache_key] = [c.__dict__ for c in candidates]
        self._save_cache()

        return candidates

    def _search(self, title: str, year: Optional[int], kind: MediaKind) -> List[Dict]:
        params = {
            'query': title,
            'language': 'en-US',
            'include_adult': 'false',
        }
        if kind == MediaKind.SERIES:
            endpoint = '/search/tv'
            if year:
                params['first_air_date_year'] = year
        else:
            endpoint = '/search/movie'
            if year:
                params['year'] = year
                params['primary_release_year'] = year

        data = self._get(endpoint, params)
        if not data:
            return []
        return data.get('results') or []

    @staticmethod
    def _to_candidate(row: Dict, kind: MediaKind) -> Candidate:
        if kind == MediaKind.SERIES:
            title = row.get('name') or row.get('original_name') or ''
            original = row.get('original_name')
            date = row.get('first_air_date')
        else:
            title = row.get('title') or row.get('original_title') or ''
            original = row.get('original_title')
            date = row.get('release_date')

        return Candidate(
            provider_id=row['id'],
            title=title,
            original_title=original,
            year=_year_from_date(date),
            original_language=row.get('original_language'),
            vote_count=row.get('vote_count') or 0,
            popularity=row.get('popularity') or 0.0,
            rating=row.get('vote_average') or 0.0,
        )

    # === Details ===

    def get_details(self, candidate: Candidate, kind: MediaKind) -> Optional[ItemMetadata]:
        """Full metadata for a chosen candidate (with caching)"""
        if not self.api_key:
            return None

        cache_key = f"details|{kind.value}|{candidate.provider_id}"
        if cache_key in self.cache:
            self.cache_hits += 1
            cached = self.cache[cache_key]
            return ItemMetadata.from_dict(cached) if cached else None

        self.cache_misses += 1

        if kind == MediaKind.SERIES:
            data = self._get(f"/tv/{candidate.provider_id}", {
                'language': 'en-US',
                'append_to_response': 'external_ids',
            })
        else:
            data = self._get(f"/movie/{candidate.provider_id}", {'language': 'en-US'})

        metadata = self._to_metadata(data, candidate, kind) if data else None

        self.cache[cache_key] = metadata.to_dict() if metadata else None
        self._save_cache()

        if metadata:
            logger.info(f"TMDb: '{candidate.title}' → '{metadata.title}' ({metadata.year}) rating:{metadata.rating}")
        return metadata

    def _to_metadata(self, data: Dict, candidate: Candidate, kind: MediaKind) -> ItemMetadata:
        tmdb_id = data.get('id', candidate.provider_id)

        if kind == MediaKind.SERIES:
            title = data.get('name') or candidate.title
            original_title = data.get('original_name') or candidate.original_title
            year = _year_from_date(data.get('first_air_date'))
            imdb_id = (data.get('external_ids') or {}).get('imdb_id')
        else:
            title = data.get('title') or candidate.title
            original_title = data.get('original_title') or candidate.original_title
            year = _year_from_date(data.get('release_date'))
            imdb_id = data.get('imdb_id')

        rating = None
        if self.omdb is not None and imdb_id:
            rating = self.omdb.get_rating(imdb_id)
        if rating is None:
            rating = data.get('vote_average')

        countries = data.get('production_countries') or []
        languages = data.get('spoken_languages') or []
        genres = [g.get('name') for g in data.get('genres') or [] if g.get('name')]

        return ItemMetadata(
            title=title,
            year=year or candidate.year or 0,
            original_title=original_title,
            imdb_id=imdb_id or f"tmdb{tmdb_id}",
            provider_id=tmdb_id,
            rating=round(float(rating), 1) if rating is not None else None,
            plot=data.get('overview') or None,
            genre=', '.join(genres) or None,
            country=countries[0].get('name') if countries else None,
            language=languages[0].get('name') if languages else None,
            poster_url=_image_url(data.get('poster_path')),
            backdrop_url=_image_url(data.get('backdrop_path')),
        )

    # === Convenience ===

    def search_movie(self, title: str, year: Optional[int] = None) -> Optional[ItemMetadata]:
        """Top search result's details, without re-ranking"""
        candidates = self.search_candidates(title, year, MediaKind.MOVIE)
        return self.get_details(candidates[0], MediaKind.MOVIE) if candidates else None

    def search_series(self, title: str, year: Optional[int] = None) -> Optional[ItemMetadata]:
        candidates = self.search_candidates(title, year, MediaKind.SERIES)
        return self.get_details(candidates[0], MediaKind.SERIES) if candidates else None

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
