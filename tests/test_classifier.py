#!/usr/bin/env python3
"""
Test suite for medialib/classifier.py — ItemType precedence and context

Trees are built in memory; the classifier never touches the filesystem.
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from medialib.classifier import (
    ItemClassifier,
    extract_season_number,
    is_root_sentinel,
    parse_episode_numbers,
    with_franchise_prefix,
)
from medialib.context import ScanContext
from medialib.errors import ProviderTimeout
from medialib.models import FileSystemNode, ItemType, NodeKind

BASE = Path('/media')


def f(name):
    return FileSystemNode(name=name, path=BASE / name, kind=NodeKind.FILE)


def d(name, *children):
    return FileSystemNode(name=name, path=BASE / name, kind=NodeKind.FOLDER, children=tuple(children))


class FakeFolderAssist:
    """Says every folder is a series named by the mapping"""

    def __init__(self, names):
        self.names = names
        self.calls = 0

    def analyze_folder(self, name, child_names):
        self.calls += 1
        if name in self.names:
            return {'is_series': True, 'series_name': self.names[name]}
        return {'is_series': False, 'series_name': None}

    def parse_name(self, raw):
        return None


class FailingFolderAssist:
    """Folder analysis endpoint that always times out"""

    def __init__(self):
        self.calls = 0

    def analyze_folder(self, name, child_names):
        self.calls += 1
        raise ProviderTimeout("LLM request timed out")

    def parse_name(self, raw):
        return None


@pytest.fixture
def classifier():
    return ItemClassifier('Movies')


class TestHelpers:
    """Season, episode and franchise helpers"""

    def test_root_sentinel(self):
        assert is_root_sentinel(None, 'TV')
        assert is_root_sentinel('TV', 'TV')
        assert not is_root_sentinel('Dark', 'TV')

    def test_season_number(self):
        assert extract_season_number("Show-2") == 2
        assert extract_season_number("Season 3") == 3
        assert extract_season_number("S04") == 4
        assert extract_season_number("Specials") == 1

    def test_episode_numbers(self):
        assert parse_episode_numbers("Show.S02E05.mkv") == (2, 5)
        assert parse_episode_numbers("03 серия.mkv") == (1, 3)
        assert parse_episode_numbers("серия 4.avi", 2) == (2, 4)
        assert parse_episode_numbers("07 - Title.mkv") == (1, 7)
        assert parse_episode_numbers("Title.mkv") is None

    def test_franchise_prefix(self):
        assert with_franchise_prefix("Resurrection", "Alien") == "Alien: Resurrection"
        assert with_franchise_prefix("Aliens", "Alien") == "Aliens"
        assert with_franchise_prefix("Heat", None) == "Heat"


class TestRipFolders:
    """Disc-rip markers win over every other folder rule"""

    def test_rip_beats_series_heuristic(self, classifier):
        node = d("Show.S01", d("BDMV"), f("Show.S01E01.mkv"), f("Show.S01E02.mkv"))
        assert classifier.classify(node, 'Movies').item_type == ItemType.BDRIP_ROOT

    def test_dvd_rip(self, classifier):
        item = classifier.classify(d("Alien.1979.DVDRip", d("VIDEO_TS")), 'Movies')
        assert item.item_type == ItemType.DVDRIP_ROOT
        assert item.clean_title == "Alien"
        assert item.year == 1979

    def test_canonical_rip_folder(self, classifier):
        item = classifier.classify(d("Inception (2010) (IMDB 8.8)", d("BDMV")), 'Movies')
        assert item.item_type == ItemType.BDRIP_ROOT
        assert item.already_canonical
        assert item.clean_title == "Inception"
        assert item.rating == 8.8


class TestSeries:
    """Series roots, season folders and episodes"""

    def test_series_root_with_episodes(self, classifier):
        node = d(
            "Breaking.Bad.S01",
            f("Breaking.Bad.S01E01.mkv"),
            f("Breaking.Bad.S01E01.srt"),
            f("Breaking.Bad.S01E02.mkv"),
        )
        item = classifier.classify(node, 'Movies')
        assert item.item_type == ItemType.TV_SERIES_ROOT
        assert item.clean_title == "Breaking Bad"
        assert item.season == 1
        assert item.canonical_name == "Breaking Bad S01"

        types = [c.item_type for c in item.children]
        assert types == [ItemType.TV_EPISODE, ItemType.SUBTITLE_FILE, ItemType.TV_EPISODE]
        assert item.children[0].canonical_name == "Breaking Bad S01E01.mkv"
        assert item.children[2].episode == 2

    def test_season_folder_takes_show_from_parent(self):
        classifier = ItemClassifier('TV')
        node = d("Dark", d("Season 1", f("Dark.S01E01.mkv"), f("Dark.S01E02.mkv")))
        show = classifier.classify(node, 'TV')
        season = show.children[0]
        assert season.item_type == ItemType.SEASON_FOLDER
        assert season.series_name == "Dark"
        assert season.canonical_name == "Dark S01"
        assert season.children[1].canonical_name == "Dark S01E02.mkv"

    def test_root_is_never_the_show(self):
        """A season folder directly under the root uses its own name"""
        classifier = ItemClassifier('TV')
        item = classifier.classify(d("Season 2", f("x.S02E01.mkv")), 'TV')
        assert item.item_type == ItemType.SEASON_FOLDER
        assert item.season == 2
        assert item.series_name != 'TV'

    def test_assist_marks_series_once_per_scan(self):
        assist = FakeFolderAssist({'Brigada': 'Brigada'})
        context = ScanContext()
        classifier = ItemClassifier('TV', parse_assist=assist, context=context)
        node = d("Brigada", f("Part one.mkv"), f("Part two.mkv"))

        first = classifier.classify(node, 'TV')
        second = classifier.classify(node, 'TV')

        assert first.item_type == ItemType.TV_SERIES_ROOT
        assert second.clean_title == "Brigada"
        assert assist.calls == 1
        assert 'brigada' in context.folder_analysis

    def test_assist_failure_leaves_plain_folder(self):
        """A failed analysis is not cached and the folder stays plain"""
        assist = FailingFolderAssist()
        context = ScanContext()
        classifier = ItemClassifier('TV', parse_assist=assist, context=context)
        node = d("Brigada", f("Part one.mkv"), f("Part two.mkv"))

        item = classifier.classify(node, 'TV')
        assert item.item_type == ItemType.PLAIN_FOLDER
        assert [c.item_type for c in item.children] == [ItemType.SINGLE_MOVIE, ItemType.SINGLE_MOVIE]
        assert context.folder_analysis == {}

        classifier.classify(node, 'TV')
        assert assist.calls == 2

    def test_canonical_file_inside_series_is_not_an_episode(self, classifier):
        node = d(
            "Breaking.Bad.S01",
            f("Breaking.Bad.S01E01.mkv"),
            f("Breaking.Bad.S01E02.mkv"),
            f("21 (2008) (IMDB 6.8).mkv"),
        )
        item = classifier.classify(node, 'Movies')
        assert item.item_type == ItemType.TV_SERIES_ROOT
        movie = item.children[2]
        assert movie.item_type == ItemType.SINGLE_MOVIE
        assert movie.already_canonical
        assert movie.canonical_name == "21 (2008) (IMDB 6.8).mkv"
        assert movie.year == 2008


class TestMoviesAndCollections:
    def test_collection_passes_franchise(self, classifier):
        node = d("Alien Collection", f("Alien.1979.mkv"), f("Resurrection.1997.mkv"))
        item = classifier.classify(node, 'Movies')
        assert item.item_type == ItemType.COLLECTION_FOLDER
        assert item.franchise == "Alien"
        assert all(c.item_type == ItemType.SINGLE_MOVIE for c in item.children)
        assert item.children[1].franchise == "Alien"

    def test_canonical_movie_file(self, classifier):
        item = classifier.classify(f("The Matrix (1999) (IMDB 8.7).mkv"), 'Movies')
        assert item.item_type == ItemType.SINGLE_MOVIE
        assert item.already_canonical
        assert item.rating == 8.7

    def test_plain_movie_file(self, classifier):
        item = classifier.classify(f("Heat.1995.1080p.mkv"), 'Movies')
        assert item.item_type == ItemType.SINGLE_MOVIE
        assert item.clean_title == "Heat"
        assert item.year == 1995
        assert not item.already_canonical

    def test_non_video_is_unclassified(self, classifier):
        assert classifier.classify(f("notes.txt"), 'Movies').item_type == ItemType.UNCLASSIFIED

    def test_classify_tree_root_is_plain(self, classifier):
        root = classifier.classify_tree(d("Movies", f("Heat.1995.mkv"), d("Misc", f("Up.2009.mkv"))))
        assert root.item_type == ItemType.PLAIN_FOLDER
        assert [c.item_type for c in root.children] == [ItemType.SINGLE_MOVIE, ItemType.PLAIN_FOLDER]
        assert [i.node.name for i in root.walk()] == ["Movies", "Heat.1995.mkv", "Misc", "Up.2009.mkv"]
