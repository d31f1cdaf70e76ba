#!/usr/bin/env python3
"""
Shared constants for the media catalog

Single source of truth for extensions, release tokens, rip markers and
matching thresholds. DO NOT duplicate these lists in other modules - import
from here instead.
"""

import re

# Video containers recognised as movie/episode payloads
VIDEO_EXTENSIONS = [
    '.mkv',
    '.mp4',
    '.avi',
    '.mov',
    '.wmv',
    '.flv',
    '.webm',
    '.m4v',
    '.mpg',
    '.mpeg',
    '.m2v',
    '.3gp',
    '.ogv',
]

# Subtitle and external-audio sidecars: kept as-is, never catalogued
SIDECAR_EXTENSIONS = [
    '.srt',
    '.sub',
    '.idx',
    '.ass',
    '.ssa',
    '.vtt',
    '.ac3',
    '.dts',
    '.mka',
]

# Disc authoring directories (lowercase) that mark a self-contained rip
BDRIP_MARKERS = [
    'bdmv',
    'certificate',
    'backup',
    'playlist',
    'clipinf',
    'stream',
]

DVDRIP_MARKERS = [
    'video_ts',
    'audio_ts',
]

# Tree loader recursion limit
MAX_SCAN_DEPTH = 5

# Thresholds are empirical; tune from config, not in code
SEMANTIC_MATCH_THRESHOLD = 0.7
FUZZY_MATCH_THRESHOLD = 0.8
TRANSLIT_THRESHOLD = 0.4

# Normalized-tier confidences
EXACT_CONFIDENCE = 1.0
NORMALIZED_CONFIDENCE = 0.95
CONTAINMENT_CONFIDENCE = 0.85
CONTAINMENT_MIN_RATIO = 0.7

# Resolver ranking weights
LANGUAGE_BONUS = 1000
VOTE_COUNT_WEIGHT = 100
POPULARITY_WEIGHT = 0.5
RATING_WEIGHT = 5
YEAR_TOLERANCE = 1

DEFAULT_EXPECTED_LANGUAGE = 'en'

# Canonical "Title (Year) (IMDB X.X).ext" shape - must stay bit-exact
CANONICAL_NAME_RE = re.compile(r'^(.+)\s\((\d{4})\)\s\(IMDB\s([\d.]+)\)(\.\w+)$')

CYRILLIC_RE = re.compile(r'[\u0400-\u04FF]')
LATIN_RE = re.compile(r'[a-zA-Z]')

# === Movie filename tokens ===

MOVIE_AUDIO_FILE_RE = re.compile(r'\b(atmos\s*mix|music|soundtrack|ost|audio\s*track)\b', re.IGNORECASE)
MOVIE_YEAR_RE = re.compile(r'\b(19\d{2}|20\d{2})\b')
MOVIE_QUALITY_RE = re.compile(
    r'\b(480p|720p|1080p|2160p|4k|hd|uhd|bluray|brrip|bdrip|dvdrip|webrip|web-dl|web|hdtv|kp)\b',
    re.IGNORECASE
)
MOVIE_CODEC_RE = re.compile(r'\b(x264|x265|h264|h265|hevc|xvid|divx|avc)\b', re.IGNORECASE)
MOVIE_AUDIO_RE = re.compile(r'\b(aac|ac3|dts|truehd|atmos|dd5\.1|dd7\.1)\b', re.IGNORECASE)
MOVIE_LANGUAGE_RE = re.compile(r'\b(rus|ukr|eng|english|russian|ukrainian|multi|dual)\b', re.IGNORECASE)
FOLDER_QUALITY_RE = re.compile(
    r'\b(\d+\s*fps|60fps|30fps|24fps|ai\s*upscale|remaster(?:ed)?)\b',
    re.IGNORECASE
)

# Leading "06." / "06 " prefix and SxxExx / season / episode words
EPISODE_PREFIX_RE = re.compile(r'^(\d{1,2})[.\s-]+')
TV_EPISODE_RE = re.compile(r'\b(s\d{1,2}[.\s]?e\d{1,2}|season\s*\d+|episode\s*\d+)\b', re.IGNORECASE)

# Episode markers used when deciding whether a folder is a series
SERIES_EPISODE_RE = re.compile(
    r'^(\d{1,2})[.\s-]+|s\d{1,2}[.\s]?e\d{1,2}|\d{1,2}\s*сер|\bсерия\s*\d+|\bсер\.?\s*\d+',
    re.IGNORECASE
)
PAREN_YEAR_RE = re.compile(r'\((?:19|20)\d{2}\)')

# Episode numbering inside a series folder, in precedence order
EPISODE_STANDARD_RE = re.compile(r'S(\d{1,2})[.\s]*E(\d{1,2})', re.IGNORECASE)
EPISODE_RUSSIAN_RES = [
    re.compile(r'(\d{1,2})\s*сер', re.IGNORECASE),
    re.compile(r'серия\s*(\d{1,2})', re.IGNORECASE),
]
EPISODE_SIMPLE_RE = re.compile(r'^(\d{1,2})[.\s-]')

GENERIC_SEASON_RE = re.compile(r'^(season|сезон)\s*\d+$', re.IGNORECASE)
COLLECTION_RE = re.compile(r'collection', re.IGNORECASE)

# === TV series folder tokens ===

SERIES_QUALITY_TAGS = [
    '2160p', '4K', 'UHD', '1080p', '1080i', '720p', '480p',
    'HDR', 'HDR10', 'HDR10+', 'DV', 'Dolby Vision', 'SDR',
]

SERIES_SOURCE_CODEC_TAGS = [
    'WEB-DL', 'WEBDL', 'WEBRip', 'WEB', 'BluRay', 'BDRip', 'BRRip', 'Blu-ray',
    'DVDRip', 'DVDScr', 'HDTV', 'PDTV',
    'HEVC', 'x265', 'H.265', 'H265', 'x264', 'H.264', 'H264', 'AVC', 'AV1', 'VP9',
    'REMUX', 'Hybrid',
]

SERIES_AUDIO_TAGS = [
    'DTS', 'DTS-HD', 'DTS-HD.MA', 'DTS-X', 'TrueHD', 'Atmos', 'AC3', 'AAC', 'FLAC',
    'EAC3', 'DD5.1', 'DDP5.1', 'LPCM', 'PCM', '7.1', '5.1', '2.0',
]

RELEASE_GROUPS = [
    'RARBG', 'YIFY', 'YTS', 'FGT', 'NTb', 'LOL', 'DEMAND', 'FLUX',
    'ExKinoRay', 'KinoRay', 'Jaskier', 'NewStudio', 'LostFilm', 'Kerob',
    'HDRezka', 'Hamster', 'NewComers', 'SPARKS', 'GECKOS', 'TERMINAL', 'EPSILON',
]

# === Transliteration detection ===

TRANSLIT_PATTERNS = [
    re.compile(r'\b\w+iy\b', re.IGNORECASE),
    re.compile(r'\b\w+aya?\b', re.IGNORECASE),
    re.compile(r'\b\w+ova?\b', re.IGNORECASE),
    re.compile(r'\b\w+sky?\b', re.IGNORECASE),
    re.compile(r'\b\w+nya\b', re.IGNORECASE),
    re.compile(r'\b\w+tsy?a?\b', re.IGNORECASE),
    re.compile(r'\b\w+shch\w*', re.IGNORECASE),
    re.compile(r'\b\w+zh\w*', re.IGNORECASE),
    re.compile(r'\b\w+ch\w*', re.IGNORECASE),
    re.compile(r'\b\w+kh\w*', re.IGNORECASE),
    re.compile(r'\b\w+ts\w*', re.IGNORECASE),
    re.compile(r'\bya\b|\byu\b|\bye\b', re.IGNORECASE),
]

TRANSLIT_COMBOS = ['kh', 'zh', 'shch', 'tsy', 'iya', 'iye']

KNOWN_TRANSLIT_WORDS = {
    'barankiny', 'kamni', 'sily', 'brigada', 'likvidatsiya', 'ottepel',
    'chernobyl', 'zona', 'otchuzhdeniya', 'metod', 'brat', 'voyna', 'mir',
    'lyubov', 'smert', 'zhizn', 'dom', 'noch', 'den', 'gorod', 'chelovek',
    'devushka', 'muzhchina', 'vremya', 'leto', 'zima', 'vesna', 'osen',
    'nebo', 'zemlya', 'voda', 'ogon', 'solntse', 'luna', 'zvezda',
    'slovo', 'delo', 'put', 'doroga', 'konets', 'nachalo',
}

# TMDb image CDN (original = full resolution)
TMDB_IMAGE_BASE = 'https://image.tmdb.org/t/p/original'
