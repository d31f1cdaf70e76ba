#!/usr/bin/env python3
"""
Metadata sinks for media-center players

NfoWriter writes Kodi-style XML next to the media; PosterFetcher downloads
the poster image. Both are fire-and-forget: failures are logged, never
raised, and never affect the catalog entry.
"""

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional

import requests

from medialib.models import ItemMetadata

logger = logging.getLogger(__name__)

POSTER_TIMEOUT = 30


def nfo_path_for(target: Path, is_series: bool = False) -> Path:
    """tvshow.nfo / movie.nfo inside folders, {base}.nfo next to files"""
    if is_series:
        return target / 'tvshow.nfo'
    if target.is_dir():
        return target / 'movie.nfo'
    return target.with_suffix('.nfo')


def poster_path_for(target: Path) -> Path:
    """poster.jpg inside folders, {base}-poster.jpg next to files"""
    if target.is_dir():
        return target / 'poster.jpg'
    return target.with_name(f"{target.stem}-poster.jpg")


def has_poster(target: Path) -> bool:
    return poster_path_for(Path(target)).exists()


def build_nfo(metadata: ItemMetadata, is_series: bool = False) -> ET.Element:
    root = ET.Element('tvshow' if is_series else 'movie')

    def add(tag: str, value, **attrs):
        if value is None or value == '':
            return None
        element = ET.SubElement(root, tag, attrs)
        element.text = str(value)
        return element

    add('title', metadata.title)
    add('originaltitle', metadata.original_title or metadata.title)
    add('year', metadata.year)
    if metadata.rating is not None:
        add('rating', f"{metadata.rating:.1f}")
    add('plot', metadata.plot)
    add('genre', metadata.genre)
    add('country', metadata.country)
    if metadata.imdb_id and metadata.imdb_id.startswith('tt'):
        add('uniqueid', metadata.imdb_id, type='imdb', default='true')
    if metadata.provider_id is not None:
        add('uniqueid', metadata.provider_id, type='tmdb')
    add('thumb', metadata.poster_url, aspect='poster')
    return root


class NfoWriter:
    def __init__(self):
        self.written = 0

    def write(self, metadata: ItemMetadata, target: Path, is_series: bool = False) -> Optional[Path]:
        """Write the NFO for target; returns its path, or None on failure"""
        path = nfo_path_for(Path(target), is_series)
        try:
            tree = ET.ElementTree(build_nfo(metadata, is_series))
            ET.indent(tree)
            tree.write(path, encoding='utf-8', xml_declaration=True)
        except OSError as e:
            logger.warning(f"Could not write NFO {path}: {e}")
            return None
        self.written += 1
        logger.debug(f"NFO written: {path}")
        return path


class PosterFetcher:
    def __init__(self, timeout: int = POSTER_TIMEOUT):
        self.timeout = timeout
        self.downloaded = 0

    def write(self, metadata: ItemMetadata, target: Path, is_series: bool = False) -> Optional[Path]:
        return self.fetch(metadata.poster_url, Path(target))

    def fetch(self, url: Optional[str], target: Path) -> Optional[Path]:
        """Download url to the poster path for target; existing posters are kept"""
        if not url or url == 'N/A':
            return None

        path = poster_path_for(Path(target))
        if path.exists():
            logger.debug(f"Poster already present: {path}")
            return path

        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
            path.write_bytes(response.content)
        except (requests.exceptions.RequestException, OSError) as e:
            logger.warning(f"Could not download poster for {target.name}: {e}")
            return None

        self.downloaded += 1
        logger.info(f"Poster downloaded: {path.name}")
        return path
