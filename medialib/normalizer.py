#!/usr/bin/env python3
"""
medialib/normalizer.py — Name normalization pipelines

Pure string work: no filesystem access, no API calls. Each pipeline is an
explicit ordered list of Rule objects; a rule runs only when its predicate
holds, and a rule may finish the pipeline early.

Movie pipeline (file and folder names):
  1. Strip the extension
  2. Detect audio/demo files (soundtrack, atmos mix, ...)
  3. Detect parenthesised year → numbered collection entry vs episode prefix
  4. Strip the leading NN prefix (collection entries and episodes only)
  5. Extract the year (first 19xx/20xx token)
  6. Strip release-group decorations (trailing -GROUP, "i Ton", "i.Ton")
  7. Strip quality / codec / audio / language / folder-quality tokens
  8. Truncate at the year
  9. Collapse brackets, dots, underscores and whitespace

TV series pipeline (folder names):
  1. "Title - S01" short-circuit
  2. "Title (YYYY)" / "Title (YYYY) (IMDB x.x)" / "Title (YYYY) S01" short-circuit
  3. Year from a dotted/spaced 4-digit token
  4. First quality tag
  5. Season from Sxx (everything after it is dropped) or a trailing -N
  6. Drop everything from a dotted/spaced year token on
  7. Strip quality, source/codec, audio tags and release groups
  8. Dots → spaces
  9. Strip a trailing " - Group"
 10. Tidy whitespace and stray dashes
"""

import re
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Tuple

from medialib.constants import (
    CANONICAL_NAME_RE,
    CYRILLIC_RE,
    FOLDER_QUALITY_RE,
    EPISODE_PREFIX_RE,
    KNOWN_TRANSLIT_WORDS,
    MOVIE_AUDIO_FILE_RE,
    MOVIE_AUDIO_RE,
    MOVIE_CODEC_RE,
    MOVIE_LANGUAGE_RE,
    MOVIE_QUALITY_RE,
    MOVIE_YEAR_RE,
    PAREN_YEAR_RE,
    RELEASE_GROUPS,
    SERIES_AUDIO_TAGS,
    SERIES_QUALITY_TAGS,
    SERIES_SOURCE_CODEC_TAGS,
    TRANSLIT_COMBOS,
    TRANSLIT_PATTERNS,
    TRANSLIT_THRESHOLD,
    TV_EPISODE_RE,
)


# === Rule machinery ===

@dataclass(frozen=True)
class NameState:
    """Working state threaded through a rule list"""
    name: str
    original: str
    is_folder: bool = False
    year: Optional[int] = None
    season: Optional[int] = None
    quality: Optional[str] = None
    has_paren_year: bool = False
    is_collection_item: bool = False
    is_tv_episode: bool = False
    is_audio_file: bool = False
    finished: bool = False


def _always(state: NameState) -> bool:
    return True


@dataclass(frozen=True)
class Rule:
    """One deterministic cleaning step"""
    name: str
    transform: Callable[[NameState], NameState]
    predicate: Callable[[NameState], bool] = _always

    def apply(self, state: NameState) -> NameState:
        if state.finished or not self.predicate(state):
            return state
        return self.transform(state)


def run_rules(rules: List[Rule], state: NameState) -> NameState:
    for rule in rules:
        state = rule.apply(state)
        if state.finished:
            break
    return state


def _token_pattern(tag: str) -> str:
    """Token-bounded pattern so short tags don't eat real words"""
    escaped = re.escape(tag).replace(r'\ ', r'[.\s]+')
    return r'(?<![A-Za-z0-9])' + escaped + r'(?![A-Za-z0-9])'


def _compile_tags(tags: List[str]) -> re.Pattern:
    # Longest first so "DTS-HD.MA" wins over "DTS"
    ordered = sorted(tags, key=len, reverse=True)
    return re.compile('|'.join(_token_pattern(t) for t in ordered), re.IGNORECASE)


_SERIES_QUALITY_PATTERNS = [(tag, re.compile(_token_pattern(tag), re.IGNORECASE)) for tag in SERIES_QUALITY_TAGS]
_SERIES_TAGS_RE = _compile_tags(SERIES_QUALITY_TAGS + SERIES_SOURCE_CODEC_TAGS + SERIES_AUDIO_TAGS)
_RELEASE_GROUP_RE = re.compile(
    r'\[?(?:' + '|'.join(_token_pattern(g) for g in RELEASE_GROUPS) + r')\]?',
    re.IGNORECASE
)


# === Movie rules ===

_COLLECTION_ITEM_RE = re.compile(r'^(\d{1,2})[-.].*\((?:19|20)\d{2}\)')
_NUMBER_PREFIX_RE = re.compile(r'^(\d{1,2})[-.\s]+')
_TRAILING_GROUP_RE = re.compile(r'-[A-Za-z0-9]+$')
_DECORATION_SPACE_RE = re.compile(r'\b[a-z]\s+[A-Z][a-z]+$')
_DECORATION_DOT_RE = re.compile(r'\b[a-z]\.\s*[A-Z][a-z]+$')
_RELEASE_CONTEXT_RES = [MOVIE_YEAR_RE, MOVIE_QUALITY_RE, MOVIE_CODEC_RE, MOVIE_AUDIO_RE]
_BRACKETS_RE = re.compile(r'[\[\](){}]')
_DOTS_UNDERSCORES_RE = re.compile(r'[._]')
_MULTI_SPACE_RE = re.compile(r'\s+')


def _strip_extension(state: NameState) -> NameState:
    idx = state.name.rfind('.')
    if idx > 0:
        return replace(state, name=state.name[:idx])
    return state


def _detect_audio_file(state: NameState) -> NameState:
    return replace(state, is_audio_file=bool(MOVIE_AUDIO_FILE_RE.search(state.name)))


def _detect_year_context(state: NameState) -> NameState:
    has_paren_year = bool(PAREN_YEAR_RE.search(state.name))
    is_collection_item = bool(_COLLECTION_ITEM_RE.search(state.name))
    # A parenthesised year always wins over an episode-looking prefix
    is_tv_episode = (
        not has_paren_year
        and not is_collection_item
        and bool(EPISODE_PREFIX_RE.search(state.name) or TV_EPISODE_RE.search(state.name))
    )
    return replace(
        state,
        has_paren_year=has_paren_year,
        is_collection_item=is_collection_item,
        is_tv_episode=is_tv_episode,
    )


def _strip_number_prefix(state: NameState) -> NameState:
    return replace(state, name=_NUMBER_PREFIX_RE.sub('', state.name, count=1))


def _extract_year(state: NameState) -> NameState:
    match = MOVIE_YEAR_RE.search(state.name)
    return replace(state, year=int(match.group(1)) if match else None)


def _has_release_context(name: str) -> bool:
    return any(pattern.search(name) for pattern in _RELEASE_CONTEXT_RES)


def _strip_release_group(state: NameState) -> NameState:
    name = state.name
    # Only a tagged release carries a group; "Spider-Man" and "X-Men" keep their dash
    if _has_release_context(name):
        name = _TRAILING_GROUP_RE.sub(' ', name)
    name = _DECORATION_SPACE_RE.sub(' ', name)
    name = _DECORATION_DOT_RE.sub(' ', name)
    return replace(state, name=name)


def _strip_tokens(state: NameState) -> NameState:
    name = state.name
    for pattern in (MOVIE_QUALITY_RE, MOVIE_CODEC_RE, MOVIE_AUDIO_RE, MOVIE_LANGUAGE_RE, FOLDER_QUALITY_RE):
        name = pattern.sub(' ', name)
    return replace(state, name=name)


def _truncate_at_year(state: NameState) -> NameState:
    idx = state.name.find(str(state.year))
    if idx > 0:
        return replace(state, name=state.name[:idx])
    return state


def _collapse_noise(state: NameState) -> NameState:
    name = _BRACKETS_RE.sub(' ', state.name)
    name = _DOTS_UNDERSCORES_RE.sub(' ', name)
    name = _MULTI_SPACE_RE.sub(' ', name).strip()
    return replace(state, name=name)


MOVIE_RULES = [
    Rule('strip_extension', _strip_extension, lambda s: not s.is_folder),
    Rule('detect_audio_file', _detect_audio_file),
    Rule('detect_year_context', _detect_year_context),
    Rule('strip_number_prefix', _strip_number_prefix, lambda s: s.is_collection_item or s.is_tv_episode),
    Rule('extract_year', _extract_year),
    Rule('strip_release_group', _strip_release_group),
    Rule('strip_tokens', _strip_tokens),
    Rule('truncate_at_year', _truncate_at_year, lambda s: s.year is not None),
    Rule('collapse_noise', _collapse_noise),
]


# === Series rules ===

_DASH_SEASON_RE = re.compile(r'^(.+?)\s*-\s*S(\d{1,2})$', re.IGNORECASE)
_FOLDER_CANONICAL_RE = re.compile(
    r'^(.+?)\s*\((\d{4})\)\s*(?:\(IMDB\s*[\d.]+\))?\s*(?:S(\d{1,2}))?$',
    re.IGNORECASE
)
_SERIES_YEAR_RE = re.compile(r'[.\s](19\d{2}|20\d{2})(?:[.\s]|$)')
_SEASON_RE = re.compile(r'S(\d{1,2})(?:\.|$|\s)', re.IGNORECASE)
_SEASON_TAIL_RE = re.compile(r'\.?S\d{1,2}.*$', re.IGNORECASE)
_SEQUEL_SUFFIX_RE = re.compile(r'-(\d{1,2})$')
_TRAILING_DASH_GROUP_RE = re.compile(r'\s-\s*[A-Z][A-Za-z0-9]*\s*$')


def _dash_season(state: NameState) -> NameState:
    match = _DASH_SEASON_RE.match(state.name)
    if not match:
        return state
    return replace(state, name=match.group(1).strip(), season=int(match.group(2)), finished=True)


def _folder_canonical(state: NameState) -> NameState:
    match = _FOLDER_CANONICAL_RE.match(state.name)
    if not match:
        return state
    season = int(match.group(3)) if match.group(3) else None
    return replace(
        state,
        name=match.group(1).strip(),
        year=int(match.group(2)),
        season=season,
        finished=True,
    )


def _series_year(state: NameState) -> NameState:
    match = _SERIES_YEAR_RE.search(state.original)
    return replace(state, year=int(match.group(1)) if match else None)


def _series_quality(state: NameState) -> NameState:
    spaced = state.original.replace('.', ' ')
    for tag, pattern in _SERIES_QUALITY_PATTERNS:
        if pattern.search(spaced):
            return replace(state, quality=tag)
    return state


def _series_season(state: NameState) -> NameState:
    match = _SEASON_RE.search(state.name)
    if match:
        return replace(
            state,
            season=int(match.group(1)),
            name=_SEASON_TAIL_RE.sub('', state.name, count=1),
        )
    sequel = _SEQUEL_SUFFIX_RE.search(state.name)
    if sequel:
        # "Луны-2": numbered part stays in the title
        return replace(state, season=int(sequel.group(1)))
    return state


def _series_truncate_at_year(state: NameState) -> NameState:
    match = _SERIES_YEAR_RE.search(state.name)
    if match and match.start() > 0 and int(match.group(1)) == state.year:
        return replace(state, name=state.name[:match.start()])
    return state


def _series_tags(state: NameState) -> NameState:
    name = _SERIES_TAGS_RE.sub(' ', state.name)
    name = _RELEASE_GROUP_RE.sub(' ', name)
    return replace(state, name=name)


def _series_dots(state: NameState) -> NameState:
    return replace(state, name=state.name.replace('.', ' '))


def _series_trailing_group(state: NameState) -> NameState:
    return replace(state, name=_TRAILING_DASH_GROUP_RE.sub('', state.name))


def _series_tidy(state: NameState) -> NameState:
    name = _MULTI_SPACE_RE.sub(' ', state.name).strip()
    name = re.sub(r'\s+-\s*$', '', name)
    name = re.sub(r'^-\s*', '', name)
    return replace(state, name=name.strip())


SERIES_RULES = [
    Rule('dash_season', _dash_season),
    Rule('folder_canonical', _folder_canonical),
    Rule('series_year', _series_year),
    Rule('series_quality', _series_quality),
    Rule('series_season', _series_season),
    Rule('series_truncate_at_year', _series_truncate_at_year, lambda s: s.year is not None),
    Rule('series_tags', _series_tags),
    Rule('series_dots', _series_dots),
    Rule('series_trailing_group', _series_trailing_group),
    Rule('series_tidy', _series_tidy),
]


# === Results ===

@dataclass
class MovieNameResult:
    clean_name: str
    year: Optional[int] = None
    is_tv_episode: bool = False
    is_audio_file: bool = False


@dataclass
class TranslitResult:
    is_translit: bool
    confidence: float
    language: Optional[str] = None


@dataclass
class SeriesNameResult:
    clean_name: str
    original_name: str
    season: Optional[int] = None
    year: Optional[int] = None
    quality: Optional[str] = None
    is_translit: bool = False
    language: Optional[str] = None
    suggested_search_terms: List[str] = field(default_factory=list)


# === Public API ===

def clean_movie_name(name: str, is_folder: bool = False) -> MovieNameResult:
    """
    Run the movie pipeline over a file or folder name.

    Args:
        name: Raw file or folder name
        is_folder: Folder names have no extension to strip

    Returns:
        MovieNameResult with clean_name, year and episode/audio flags
    """
    state = run_rules(MOVIE_RULES, NameState(name=name, original=name, is_folder=is_folder))
    return MovieNameResult(
        clean_name=state.name,
        year=state.year,
        is_tv_episode=state.is_tv_episode,
        is_audio_file=state.is_audio_file,
    )


def clean_series_name(folder_name: str) -> SeriesNameResult:
    """Run the TV series pipeline over a folder name (no translit detection)"""
    state = run_rules(SERIES_RULES, NameState(name=folder_name, original=folder_name, is_folder=True))
    return SeriesNameResult(
        clean_name=state.name,
        original_name=folder_name,
        season=state.season,
        year=state.year,
        quality=state.quality,
    )


def detect_translit(name: str, threshold: float = TRANSLIT_THRESHOLD) -> TranslitResult:
    """
    Score how likely a Latin-script name is transliterated Russian.

    +2 per known transliterated word, +1 per letter-cluster pattern hit,
    +1.5 per uncommon consonant combination; confidence = min(1, score / 5).
    """
    lower = name.lower()
    score = 0.0

    for word in lower.split():
        if word in KNOWN_TRANSLIT_WORDS:
            score += 2

    for pattern in TRANSLIT_PATTERNS:
        if pattern.search(name):
            score += 1

    for combo in TRANSLIT_COMBOS:
        if combo in lower:
            score += 1.5

    confidence = min(1.0, score / 5)
    is_translit = confidence >= threshold
    return TranslitResult(
        is_translit=is_translit,
        confidence=confidence,
        language='ru' if is_translit else None,
    )


def parse_series_name(folder_name: str, translit_threshold: float = TRANSLIT_THRESHOLD) -> SeriesNameResult:
    """Clean a series folder name and flag transliterated titles"""
    result = clean_series_name(folder_name)
    if CYRILLIC_RE.search(result.clean_name):
        result.language = 'ru'
    else:
        translit = detect_translit(result.clean_name, translit_threshold)
        result.is_translit = translit.is_translit
        result.language = translit.language

    terms = [result.clean_name]
    without_sequel = _SEQUEL_SUFFIX_RE.sub('', result.clean_name).strip()
    if without_sequel and without_sequel != result.clean_name:
        terms.append(without_sequel)
    result.suggested_search_terms = terms
    return result


# === Canonical names ===

_UNSAFE_CHARS_RE = re.compile(r'[/\\\x00]')


def sanitize_title(title: str) -> str:
    """Remove characters no filesystem accepts in a single path component"""
    return _MULTI_SPACE_RE.sub(' ', _UNSAFE_CHARS_RE.sub('-', title)).strip()


def build_canonical_name(title: str, year: int, rating: float, extension: str) -> str:
    """'Title (Year) (IMDB X.X).ext' — extension may be '' for folders"""
    return f"{sanitize_title(title)} ({year}) (IMDB {rating:.1f}){extension}"


def parse_canonical_name(filename: str) -> Optional[Tuple[str, int, float, str]]:
    """Return (title, year, rating, extension) for an already-processed name"""
    match = CANONICAL_NAME_RE.match(filename)
    if not match:
        return None
    title, year, rating, extension = match.groups()
    try:
        return title, int(year), float(rating), extension
    except ValueError:
        return None


def build_folder_name(title: str, year: Optional[int], season: Optional[int] = None) -> str:
    """'Title (Year)' with an optional ' S01' suffix for single-season folders"""
    name = sanitize_title(title)
    if year:
        name = f"{name} ({year})"
    if season is not None:
        name = f"{name} S{season:02d}"
    return name


def build_episode_name(series: str, season: int, episode: int, extension: str) -> str:
    return f"{sanitize_title(series)} S{season:02d}E{episode:02d}{extension}"
