#!/usr/bin/env python3
"""
Test suite for medialib/loader.py — tree snapshot and unit short-circuits
"""

import pytest
import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from medialib.loader import is_series_folder, is_video_file, load_tree, rip_type
from medialib.models import ItemType, NodeKind


def make_tree(base: Path, files):
    """Create empty files (and their folders) under base"""
    for rel in files:
        path = base / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()


def child(node, name):
    return next(c for c in node.children if c.name == name)


class TestHeuristics:
    """Folder-level detection helpers"""

    def test_video_extension(self):
        assert is_video_file("Movie.MKV")
        assert not is_video_file("Movie.srt")

    def test_rip_markers(self):
        assert rip_type(["BDMV", "CERTIFICATE"]) == ItemType.BDRIP_ROOT
        assert rip_type(["VIDEO_TS"]) == ItemType.DVDRIP_ROOT
        assert rip_type(["Extras"]) is None

    def test_series_folder(self):
        assert is_series_folder(["Show S01E01.mkv", "Show S01E02.mkv", "Show S01E01.srt"])

    def test_single_video_is_not_series(self):
        assert not is_series_folder(["Show S01E01.mkv"])

    def test_numbered_movie_collection_is_not_series(self):
        """'01. Title (1999)' entries carry years: a collection, not episodes"""
        assert not is_series_folder(["01. Film (1999).mkv", "02. Film Two (2001).mkv"])

    def test_minority_of_episode_markers(self):
        assert not is_series_folder(["Alpha.mkv", "Beta.mkv", "S01E01.mkv"])


class TestLoadTree:
    """Snapshot of a real directory"""

    def test_files_sorted_and_hidden_skipped(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, ["b.mkv", "A.mkv", ".hidden.mkv"])
            tree = load_tree(root)
            assert tree.kind == NodeKind.FOLDER
            assert tree.child_names() == ["A.mkv", "b.mkv"]

    def test_series_folder_loaded_shallow(self):
        """Nothing below a series folder is walked"""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, [
                "Breaking.Bad.S01/Breaking.Bad.S01E01.mkv",
                "Breaking.Bad.S01/Breaking.Bad.S01E02.mkv",
                "Breaking.Bad.S01/extras/featurette.mkv",
            ])
            series = child(load_tree(root), "Breaking.Bad.S01")
            extras = child(series, "extras")
            assert extras.is_folder
            assert extras.children == ()

    def test_rip_folder_loaded_shallow(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, ["Inception.2010/BDMV/STREAM/00001.m2ts"])
            rip = child(load_tree(root), "Inception.2010")
            assert rip.child_names() == ["BDMV"]
            assert child(rip, "BDMV").children == ()

    def test_depth_limit(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, ["Deep/a/b/film.mkv"])
            deep = child(load_tree(root, max_depth=1), "Deep")
            assert deep.child_names() == ["a"]
            assert child(deep, "a").children == ()

    def test_paths_are_absolute_children_of_root(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            make_tree(root, ["Films/Alien.1979.mkv"])
            film = child(child(load_tree(root), "Films"), "Alien.1979.mkv")
            assert film.path == root / "Films" / "Alien.1979.mkv"
            assert film.extension == ".mkv"

    def test_missing_root_is_fatal(self):
        with pytest.raises(FileNotFoundError):
            load_tree(Path("/nonexistent/media/root"))

    def test_file_root_is_fatal(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "film.mkv"
            path.touch()
            with pytest.raises(NotADirectoryError):
                load_tree(path)
