#!/usr/bin/env python3
"""
Test suite for medialib/pipeline.py — identify classified items against a fake provider
"""

import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from medialib.classifier import ItemClassifier
from medialib.errors import MetadataNotFound, NotAMovie, ProviderUnavailable, TitleMismatch
from medialib.matcher import normalize_title
from medialib.models import Candidate, FileSystemNode, ItemMetadata, ItemType, NodeKind
from medialib.pipeline import Identifier
from medialib.resolver import MetadataResolver

BASE = Path('/media')


def f(name):
    return FileSystemNode(name=name, path=BASE / name, kind=NodeKind.FILE)


def d(name, *children):
    return FileSystemNode(name=name, path=BASE / name, kind=NodeKind.FOLDER, children=tuple(children))


class FakeProvider:
    """One candidate per normalized title; details keyed by candidate id"""

    def __init__(self, works=None, error=None):
        self.results = {}
        self.details = {}
        self.error = error
        for provider_id, (query, metadata) in enumerate((works or {}).items(), 1):
            self.results[normalize_title(query)] = [
                Candidate(provider_id, metadata.title, original_title=metadata.original_title, year=metadata.year)
            ]
            self.details[provider_id] = metadata

    def search_candidates(self, title, year, kind):
        if self.error:
            raise self.error
        return list(self.results.get(normalize_title(title), []))

    def get_details(self, candidate, kind):
        return self.details.get(candidate.provider_id)


class FakeParseAssist:
    def __init__(self, parsed):
        self.parsed = parsed
        self.calls = []

    def parse_name(self, raw):
        self.calls.append(raw)
        return self.parsed

    def analyze_folder(self, name, child_names):
        return {'is_series': False, 'series_name': None}


MATRIX = ItemMetadata("The Matrix", 1999, original_title="The Matrix", imdb_id="tt0133093", provider_id=603, rating=8.7)
BREAKING_BAD = ItemMetadata("Breaking Bad", 2008, original_title="Breaking Bad", imdb_id="tt0903747", rating=9.5)


def identifier_for(works, parse_assist=None):
    return Identifier(MetadataResolver(FakeProvider(works)), parse_assist=parse_assist)


def classify(node, root='Movies'):
    return ItemClassifier(root).classify(node, root)


class TestMovies:
    """Movie files and rip folders get 'Title (Year) (IMDB X.X)'"""

    def test_movie_file(self):
        item = classify(f("The.Matrix.1999.1080p.BluRay.x264-YIFY.mkv"))
        identifier_for({"The Matrix": MATRIX}).identify(item)
        assert item.canonical_name == "The Matrix (1999) (IMDB 8.7).mkv"
        assert item.metadata.imdb_id == "tt0133093"
        assert item.rating == 8.7

    def test_rip_folder_has_no_extension(self):
        item = classify(d("The.Matrix.1999.BDRip", d("BDMV")))
        assert item.item_type == ItemType.BDRIP_ROOT
        identifier_for({"The Matrix": MATRIX}).identify(item)
        assert item.canonical_name == "The Matrix (1999) (IMDB 8.7)"

    def test_missing_rating_renders_zero(self):
        unrated = ItemMetadata("Heat", 1995, provider_id=949)
        item = classify(f("Heat.1995.mkv"))
        identifier_for({"Heat": unrated}).identify(item)
        assert item.canonical_name == "Heat (1995) (IMDB 0.0).mkv"

    def test_franchise_prefix(self):
        resurrection = ItemMetadata("Resurrection", 1997, provider_id=8078, rating=6.3)
        collection = classify(d("Alien Collection", f("Resurrection.1997.mkv")))
        item = collection.children[0]
        identifier_for({"Resurrection": resurrection}).identify(item)
        assert item.canonical_name == "Alien: Resurrection (1997) (IMDB 6.3).mkv"

    def test_canonical_name_is_kept(self):
        """Lookup only enriches; the on-disk name and rating stay"""
        rerated = ItemMetadata("The Matrix", 1999, imdb_id="tt0133093", provider_id=603, rating=8.2, plot="Neo.")
        item = classify(f("The Matrix (1999) (IMDB 8.7).mkv"))
        identifier_for({"The Matrix": rerated}).identify(item)
        assert item.canonical_name == "The Matrix (1999) (IMDB 8.7).mkv"
        assert item.metadata.rating == 8.7
        assert item.metadata.plot == "Neo."

    def test_canonical_name_without_provider_match(self):
        item = classify(f("Obscure Film (1971) (IMDB 6.1).mkv"))
        identifier_for({}).identify(item)
        assert item.canonical_name == "Obscure Film (1971) (IMDB 6.1).mkv"
        assert item.metadata.title == "Obscure Film"
        assert item.metadata.imdb_id is None


class TestMovieFailures:
    def test_episode_is_not_a_movie(self):
        item = classify(f("Show.S01E05.mkv"))
        with pytest.raises(NotAMovie, match="TV episode"):
            identifier_for({}).identify(item)

    def test_audio_is_not_a_movie(self):
        item = classify(f("Dune Soundtrack.mp4"))
        with pytest.raises(NotAMovie, match="Audio"):
            identifier_for({}).identify(item)

    def test_not_found(self):
        item = classify(f("Nothing.Here.2001.mkv"))
        with pytest.raises(MetadataNotFound, match="Movie not found"):
            identifier_for({}).identify(item)

    def test_mismatch(self):
        wrong = ItemMetadata("Cold Mountain", 2003, provider_id=2289)
        item = classify(f("Heat.1995.mkv"))
        with pytest.raises(TitleMismatch) as excinfo:
            identifier_for({"Heat": wrong}).identify(item)
        assert excinfo.value.candidate_title == "Cold Mountain"

    def test_provider_failure_propagates(self):
        identifier = Identifier(MetadataResolver(FakeProvider(error=ProviderUnavailable("TMDb down"))))
        with pytest.raises(ProviderUnavailable):
            identifier.identify(classify(f("Heat.1995.mkv")))

    def test_uncatalogued_type_rejected(self):
        item = classify(f("notes.txt"))
        with pytest.raises(ValueError):
            identifier_for({}).identify(item)


class TestParseAssist:
    """Second attempt with an assisted parse of the raw name"""

    def test_retitled_lookup(self):
        brat = ItemMetadata("Brat", 1997, original_title="Brat", provider_id=20992, rating=7.9)
        assist = FakeParseAssist({'title': 'Brat', 'year': 1997, 'is_episode': False, 'is_audio': False})
        item = classify(f("Bratishka.1997.mkv"))
        identifier_for({"Brat": brat}, parse_assist=assist).identify(item)
        assert item.canonical_name == "Brat (1997) (IMDB 7.9).mkv"
        assert assist.calls == ["Bratishka.1997.mkv"]

    def test_assist_flags_episode(self):
        assist = FakeParseAssist({'title': 'Pilot', 'year': None, 'is_episode': True, 'is_audio': False})
        with pytest.raises(NotAMovie):
            identifier_for({}, parse_assist=assist).identify(classify(f("Pilot.Episode.mkv")))

    def test_assist_not_asked_when_found(self):
        assist = FakeParseAssist(None)
        identifier_for({"The Matrix": MATRIX}, parse_assist=assist).identify(classify(f("The.Matrix.1999.mkv")))
        assert assist.calls == []


class TestSeries:
    def test_series_root(self):
        node = d("Breaking.Bad.S01", f("Breaking.Bad.S01E01.mkv"), f("Breaking.Bad.S01E02.mkv"))
        item = classify(node, 'TV')
        identifier_for({"Breaking Bad": BREAKING_BAD}).identify(item)
        assert item.canonical_name == "Breaking Bad (2008) S01"
        assert item.series_name == "Breaking Bad"
        assert item.metadata.year == 2008

    def test_series_not_found(self):
        node = d("Unknown.Show.S01", f("Unknown.Show.S01E01.mkv"), f("Unknown.Show.S01E02.mkv"))
        with pytest.raises(MetadataNotFound, match="Series not found"):
            identifier_for({}).identify(classify(node, 'TV'))

    def test_season_folder_keeps_its_name(self):
        dark = ItemMetadata("Dark", 2017, original_title="Dark", imdb_id="tt5753856", rating=8.7)
        show = classify(d("Dark", d("Season 1", f("Dark.S01E01.mkv"))), 'TV')
        season = show.children[0]
        identifier_for({"Dark": dark}).identify(season)
        assert season.canonical_name == "Dark S01"
        assert season.metadata.imdb_id == "tt5753856"

    def test_unresolved_season_is_not_an_error(self):
        show = classify(d("Dark", d("Season 1", f("Dark.S01E01.mkv"))), 'TV')
        season = show.children[0]
        identifier_for({}).identify(season)
        assert season.metadata is None
        assert season.canonical_name == "Dark S01"
