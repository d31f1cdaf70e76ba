#!/usr/bin/env python3
"""
Test suite for medialib/renamer.py and medialib/sinks.py
"""

import pytest
import sys
import tempfile
import xml.etree.ElementTree as ET
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

sys.path.insert(0, str(Path(__file__).parent.parent))

from medialib.errors import RenameCollision
from medialib.models import ItemMetadata
from medialib.renamer import Renamer
from medialib.sinks import NfoWriter, PosterFetcher, build_nfo, has_poster, nfo_path_for, poster_path_for

MATRIX = ItemMetadata(
    title="The Matrix",
    year=1999,
    original_title="The Matrix",
    imdb_id="tt0133093",
    provider_id=603,
    rating=8.7,
    plot="A hacker learns the truth.",
    genre="Action, Science Fiction",
    country="United States of America",
    poster_url="https://image.tmdb.org/t/p/original/matrix.jpg",
)


class TestRenamer:
    """In-place renames with a destination pre-check"""

    def test_rename(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "The.Matrix.1999.mkv"
            source.touch()
            renamer = Renamer(dry_run=False)
            new_path = renamer.rename(source, "The Matrix (1999) (IMDB 8.7).mkv")
            assert new_path.exists()
            assert not source.exists()
            assert renamer.renamed == 1

    def test_dry_run_touches_nothing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "The.Matrix.1999.mkv"
            source.touch()
            new_path = Renamer(dry_run=True).rename(source, "The Matrix (1999) (IMDB 8.7).mkv")
            assert new_path == Path(tmpdir) / "The Matrix (1999) (IMDB 8.7).mkv"
            assert source.exists()
            assert not new_path.exists()

    def test_unchanged_name(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "Heat (1995) (IMDB 8.3).mkv"
            source.touch()
            assert Renamer(dry_run=False).rename(source, source.name) == source

    def test_collision_refused(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "a.mkv"
            target = Path(tmpdir) / "b.mkv"
            source.write_text("a")
            target.write_text("b")
            with pytest.raises(RenameCollision):
                Renamer(dry_run=False).rename(source, "b.mkv")
            assert target.read_text() == "b"
            assert source.exists()

    def test_folder_rename(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "Breaking.Bad.S01"
            source.mkdir()
            (source / "ep.mkv").touch()
            new_path = Renamer(dry_run=False).rename(source, "Breaking Bad (2008) S01")
            assert (new_path / "ep.mkv").exists()


class TestSinkPaths:
    def test_file_targets(self):
        target = Path("/media/The Matrix (1999) (IMDB 8.7).mkv")
        assert nfo_path_for(target) == Path("/media/The Matrix (1999) (IMDB 8.7).nfo")
        assert poster_path_for(target) == Path("/media/The Matrix (1999) (IMDB 8.7)-poster.jpg")

    def test_folder_targets(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            folder = Path(tmpdir)
            assert nfo_path_for(folder) == folder / "movie.nfo"
            assert nfo_path_for(folder, is_series=True) == folder / "tvshow.nfo"
            assert poster_path_for(folder) == folder / "poster.jpg"


class TestNfo:
    def test_movie_fields(self):
        root = build_nfo(MATRIX)
        assert root.tag == 'movie'
        assert root.findtext('title') == "The Matrix"
        assert root.findtext('year') == "1999"
        assert root.findtext('rating') == "8.7"
        ids = {el.get('type'): el.text for el in root.findall('uniqueid')}
        assert ids == {'imdb': 'tt0133093', 'tmdb': '603'}

    def test_series_root_tag_and_missing_fields(self):
        root = build_nfo(ItemMetadata(title="Dark", year=2017), is_series=True)
        assert root.tag == 'tvshow'
        assert root.find('plot') is None
        assert root.find('rating') is None

    def test_write_next_to_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "The Matrix (1999) (IMDB 8.7).mkv"
            target.touch()
            writer = NfoWriter()
            path = writer.write(MATRIX, target)
            assert path == Path(tmpdir) / "The Matrix (1999) (IMDB 8.7).nfo"
            assert ET.parse(path).getroot().findtext('title') == "The Matrix"
            assert writer.written == 1

    def test_write_failure_is_logged_not_raised(self):
        writer = NfoWriter()
        assert writer.write(MATRIX, Path("/nonexistent/dir/film.mkv")) is None
        assert writer.written == 0


class TestPosterFetcher:
    def test_download(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "film.mkv"
            target.touch()
            response = MagicMock()
            response.content = b"\xff\xd8jpeg"
            response.raise_for_status = MagicMock()

            fetcher = PosterFetcher()
            with patch('requests.get', return_value=response) as mock_get:
                path = fetcher.write(MATRIX, target)

            assert path == Path(tmpdir) / "film-poster.jpg"
            assert path.read_bytes() == b"\xff\xd8jpeg"
            assert has_poster(target)
            assert fetcher.downloaded == 1
            mock_get.assert_called_once_with(MATRIX.poster_url, timeout=30)

    def test_existing_poster_kept(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            folder = Path(tmpdir)
            (folder / "poster.jpg").write_bytes(b"old")
            with patch('requests.get') as mock_get:
                PosterFetcher().fetch(MATRIX.poster_url, folder)
            mock_get.assert_not_called()
            assert (folder / "poster.jpg").read_bytes() == b"old"

    def test_no_url(self):
        assert PosterFetcher().fetch(None, Path("/media/film.mkv")) is None

    def test_network_error_is_logged_not_raised(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "film.mkv"
            with patch('requests.get', side_effect=requests.exceptions.ConnectionError("down")):
                assert PosterFetcher().fetch(MATRIX.poster_url, target) is None
            assert not has_poster(target)
