#!/usr/bin/env python3
"""
Assist clients: script detection, LLM title comparison and parsing

LLMAssist talks to any OpenAI-compatible /chat/completions endpoint over
plain requests. It plays three roles for the engine:
  - SemanticTitleComparator (compare)
  - HeuristicParseAssist (parse_name, analyze_folder)
  - ScriptAssist (detect_language, translate, transliterate)

OfflineScriptAssist is the no-key fallback: script detection only.
"""

import json
import logging
from typing import Dict, List, Optional

import requests

from medialib.constants import CYRILLIC_RE, LATIN_RE
from medialib.errors import ProviderTimeout, ProviderUnavailable

logger = logging.getLogger(__name__)

DEFAULT_LLM_BASE_URL = 'https://api.openai.com/v1'
DEFAULT_LLM_MODEL = 'gpt-4o-mini'
LLM_TIMEOUT = 30
RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def detect_language(text: str) -> str:
    """'ru' for any Cyrillic, 'en' for Latin letters, otherwise 'auto'"""
    if CYRILLIC_RE.search(text):
        return 'ru'
    if LATIN_RE.search(text):
        return 'en'
    return 'auto'


COMPARE_PROMPT = """Determine if these two strings refer to the SAME movie title.

Title 1: "{title1}"
Title 2: "{title2}"
{year_line}

Consider:
- Punctuation differences (colon vs dash vs hyphen: ":" "-" "–" "—")
- Subtitle separators may vary
- Minor spelling variations
- "The" prefix/suffix variations
- Numbering formats (2, II, Two)

Only return true if these titles clearly refer to the same specific movie.
Do NOT match different movies that happen to share some words.

Examples of SAME movie:
- "Transformers - Dark of the Moon" and "Transformers: Dark of the Moon" → SAME
- "The Lord of the Rings: The Two Towers" and "Lord of the Rings: Two Towers" → SAME

Examples of DIFFERENT movies:
- "The Baker" and "Christmas at the Amish Bakery" → DIFFERENT
- "Dune" and "Dune: Part Two" → DIFFERENT (they are sequels)

Respond in JSON format only:
{{"isSame": true/false, "confidence": 0.0-1.0, "reasoning": "Brief explanation"}}"""

PARSE_PROMPT = """Analyze this movie/video filename and extract information.

Filename: "{name}"

Determine the actual title (without quality tags, release groups, codecs),
the year if present, and whether this is a TV series folder, a single TV
episode, or an audio/music file.

Rules:
- Words before quality tags (720p, 1080p, BluRay, ...) are part of the title
- Release groups usually follow a dash after the quality tags: -YIFY, -RARBG
- "Atmos Mix", "OST", "Soundtrack", "Demo" mark audio files
- Russian episodes: "01 сер", "серия 01"; English: S01E01, "01. Title"

Respond in JSON format only:
{{"title": "Clean title", "year": 2023 or null, "isTVSeries": true/false,
"isTVEpisode": true/false, "isAudioFile": true/false, "confidence": 0.0-1.0}}"""

FOLDER_PROMPT = """Analyze this folder and its contents to determine if it's a TV series.

Folder name: "{name}"
Files inside:
{files}

Respond in JSON format only:
{{"isTVSeries": true/false, "seriesName": "Name of the series" or null, "confidence": 0.0-1.0}}"""

TRANSLATE_PROMPT = """Translate this movie or TV series title from {source} to English.
If it is a well-known work, give its official English title.

Title: "{text}"

Respond with ONLY the translated title, nothing else."""

TRANSLITERATE_PROMPT = """Convert this transliterated Russian text back to Cyrillic.

Input: "{text}"

Rules:
- This is Russian text written in Latin letters
- Examples:
  - "Barankiny i kamni sily" → "Баранкины и камни силы"
  - "Autsors" → "Аутсорс"
  - "Obratnaya storona luny" → "Обратная сторона луны"
- If the text is NOT transliterated Russian, return it unchanged

Respond with ONLY the converted text, nothing else."""


class LLMAssist:
    """OpenAI-compatible chat client used as comparator, parser and script assist"""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_LLM_BASE_URL,
        model: str = DEFAULT_LLM_MODEL,
        timeout: int = LLM_TIMEOUT,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.timeout = timeout
        self.calls = 0

    def _chat(self, prompt: str, json_mode: bool = False) -> Optional[str]:
        """
        Send one user message and return the reply text.

        Raises:
            ProviderTimeout / ProviderUnavailable: timeout, connection error,
            429 or 5xx
        """
        payload = {
            'model': self.model,
            'messages': [{'role': 'user', 'content': prompt}],
            'temperature': 0.1,
        }
        if json_mode:
            payload['response_format'] = {'type': 'json_object'}

        headers = {
            'Authorization': f"Bearer {self.api_key}",
            'Content-Type': 'application/json',
        }

        self.calls += 1
        try:
            response = requests.post(
                f"{self.base_url}/chat/completions",
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ProviderTimeout('LLM request timed out') from e
        except requests.exceptions.ConnectionError as e:
            raise ProviderUnavailable(f"LLM endpoint unreachable: {e}") from e

        if response.status_code in RETRYABLE_STATUS:
            raise ProviderUnavailable(f"LLM endpoint returned {response.status_code}")
        if response.status_code >= 400:
            logger.warning(f"LLM request failed with HTTP {response.status_code}")
            return None

        try:
            content = response.json()['choices'][0]['message']['content']
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"Unexpected LLM response shape: {e}")
            return None
        return content.strip() if content else None

    def _chat_json(self, prompt: str) -> Optional[Dict]:
        content = self._chat(prompt, json_mode=True)
        if not content:
            return None
        try:
            parsed = json.loads(content)
        except ValueError:
            logger.warning(f"LLM returned malformed JSON: {content[:200]}")
            return None
        return parsed if isinstance(parsed, dict) else None

    # === SemanticTitleComparator ===

    def compare(self, title1: str, title2: str, year: Optional[int] = None) -> Dict:
        year_line = f"Expected Year: {year}" if year else ''
        parsed = self._chat_json(COMPARE_PROMPT.format(title1=title1, title2=title2, year_line=year_line))
        if parsed is None:
            return {'is_match': False, 'confidence': 0.0, 'reasoning': 'No usable LLM response'}

        return {
            'is_match': bool(parsed.get('isSame', False)),
            'confidence': float(parsed.get('confidence', 0.5) or 0.0),
            'reasoning': parsed.get('reasoning'),
        }

    # === HeuristicParseAssist ===

    def parse_name(self, raw: str) -> Optional[Dict]:
        parsed = self._chat_json(PARSE_PROMPT.format(name=raw))
        if parsed is None or not parsed.get('title'):
            return None

        year = parsed.get('year')
        return {
            'title': parsed['title'],
            'year': int(year) if isinstance(year, (int, str)) and str(year).isdigit() else None,
            'is_series': bool(parsed.get('isTVSeries', False)),
            'is_episode': bool(parsed.get('isTVEpisode', False)),
            'is_audio': bool(parsed.get('isAudioFile', False)),
            'confidence': float(parsed.get('confidence', 0.5) or 0.0),
        }

    def analyze_folder(self, name: str, child_names: List[str]) -> Dict:
        listing = '\n'.join(f"{i}. {child}" for i, child in enumerate(child_names[:20], 1))
        if len(child_names) > 20:
            listing += f"\n... and {len(child_names) - 20} more files"

        parsed = self._chat_json(FOLDER_PROMPT.format(name=name, files=listing))
        if parsed is None:
            return {'is_series': False, 'series_name': None}
        return {
            'is_series': bool(parsed.get('isTVSeries', False)),
            'series_name': parsed.get('seriesName') or None,
        }

    # === ScriptAssist ===

    def detect_language(self, text: str) -> str:
        return detect_language(text)

    def translate(self, text: str, source_lang: str) -> str:
        content = self._chat(TRANSLATE_PROMPT.format(source=source_lang, text=text))
        return content.strip('"') if content else text

    def transliterate(self, text: str) -> str:
        if CYRILLIC_RE.search(text):
            return text
        content = self._chat(TRANSLITERATE_PROMPT.format(text=text))
        if content:
            logger.info(f"Transliterated '{text}' → '{content}'")
            return content.strip('"')
        return text


class OfflineScriptAssist:
    """Script detection without a model; translation is the identity"""

    def detect_language(self, text: str) -> str:
        return detect_language(text)

    def translate(self, text: str, source_lang: str) -> str:
        return text

    def transliterate(self, text: str) -> str:
        return text
