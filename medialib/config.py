#!/usr/bin/env python3
"""
Configuration loading

The YAML file holds API keys, roots and tuning knobs; every key except the
roots is optional. CLIs call load_settings() once and pass the resulting
ScanSettings down.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from medialib.constants import (
    DEFAULT_EXPECTED_LANGUAGE,
    FUZZY_MATCH_THRESHOLD,
    MAX_SCAN_DEPTH,
    SEMANTIC_MATCH_THRESHOLD,
    TRANSLIT_THRESHOLD,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path('config_external.yaml')


@dataclass
class ScanSettings:
    roots: List[Path] = field(default_factory=list)
    database_path: Path = Path('output/catalog.db')
    cache_dir: Path = Path('output')
    tmdb_api_key: Optional[str] = None
    omdb_api_key: Optional[str] = None
    llm_api_key: Optional[str] = None
    llm_base_url: str = 'https://api.openai.com/v1'
    llm_model: str = 'gpt-4o-mini'
    expected_language: str = DEFAULT_EXPECTED_LANGUAGE
    semantic_threshold: float = SEMANTIC_MATCH_THRESHOLD
    fuzzy_threshold: float = FUZZY_MATCH_THRESHOLD
    translit_threshold: float = TRANSLIT_THRESHOLD
    write_nfo: bool = True
    fetch_posters: bool = True
    max_depth: int = MAX_SCAN_DEPTH

    @property
    def lock_path(self) -> Path:
        return self.database_path.with_name(self.database_path.name + '.lock')


def load_config(config_path: Path) -> dict:
    """Load configuration from YAML file"""
    with open(config_path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def load_root_folders(roots_file: Path) -> List[Path]:
    """
    One root folder per line; '#' starts a comment, blank lines are ignored.
    """
    roots = []
    with open(roots_file, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.split('#', 1)[0].strip()
            if line:
                roots.append(Path(line))
    return roots


def settings_from_dict(config: dict, base_dir: Optional[Path] = None) -> ScanSettings:
    """Resolve a raw config dict into ScanSettings (relative roots_file is resolved against base_dir)"""
    roots = [Path(p) for p in config.get('roots') or []]

    roots_file = config.get('roots_file')
    if roots_file:
        roots_path = Path(roots_file)
        if base_dir is not None and not roots_path.is_absolute():
            roots_path = base_dir / roots_path
        if roots_path.exists():
            roots.extend(load_root_folders(roots_path))
        else:
            logger.warning(f"Roots file not found: {roots_path}")

    defaults = ScanSettings()
    return ScanSettings(
        roots=roots,
        database_path=Path(config.get('database_path') or defaults.database_path),
        cache_dir=Path(config.get('cache_dir') or defaults.cache_dir),
        tmdb_api_key=config.get('tmdb_api_key') or None,
        omdb_api_key=config.get('omdb_api_key') or None,
        llm_api_key=config.get('llm_api_key') or None,
        llm_base_url=config.get('llm_base_url') or defaults.llm_base_url,
        llm_model=config.get('llm_model') or defaults.llm_model,
        expected_language=config.get('expected_language') or defaults.expected_language,
        semantic_threshold=float(config.get('semantic_threshold', defaults.semantic_threshold)),
        fuzzy_threshold=float(config.get('fuzzy_threshold', defaults.fuzzy_threshold)),
        translit_threshold=float(config.get('translit_threshold', defaults.translit_threshold)),
        write_nfo=bool(config.get('write_nfo', defaults.write_nfo)),
        fetch_posters=bool(config.get('fetch_posters', defaults.fetch_posters)),
        max_depth=int(config.get('max_depth', defaults.max_depth)),
    )


def load_settings(config_path: Optional[Path] = None) -> ScanSettings:
    """
    Load ScanSettings from YAML; a missing file gives defaults (no roots, no
    API keys).
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        logger.warning(f"Config file not found: {path} (using defaults)")
        return ScanSettings()
    return settings_from_dict(load_config(path), base_dir=path.parent)
