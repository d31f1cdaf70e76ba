#!/usr/bin/env python3
"""
Test suite for the command-line scripts: normalize.py, scan.py, retry_errors.py, audit.py
"""

import csv
import sys
import tempfile
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

import audit
import normalize
import retry_errors
import scan
from medialib.catalog import SqlCatalogStore
from medialib.models import EntryStatus


@pytest.fixture
def library():
    with tempfile.TemporaryDirectory() as tmpdir:
        base = Path(tmpdir)
        root = base / "Movies"
        show = root / "Breaking.Bad.S01"
        show.mkdir(parents=True)
        (show / "Breaking.Bad.S01E01.mkv").touch()
        (show / "Breaking.Bad.S01E02.mkv").touch()
        (root / "Heat.1995.mkv").touch()
        (root / "notes.txt").touch()
        yield base


def read_csv(path):
    with open(path, newline='', encoding='utf-8') as f:
        return list(csv.DictReader(f))


# ─── normalize.py ────────────────────────────────────────────────────────────

class TestNormalizePreview:
    """Read-only preview CSV"""

    def test_rows_and_stats(self, library):
        output = library / "out" / "preview.csv"
        stats = normalize.run_preview(library / "Movies", output)

        rows = read_csv(output)
        assert [r['original_name'] for r in rows] == [
            "Breaking.Bad.S01",
            "Breaking.Bad.S01E01.mkv",
            "Breaking.Bad.S01E02.mkv",
            "Heat.1995.mkv",
            "notes.txt",
        ]
        assert list(rows[0].keys()) == normalize.FIELDNAMES
        assert rows[0]['canonical_candidate'] == "Breaking Bad S01"
        assert rows[3]['clean_name'] == "Heat"
        assert rows[3]['year'] == "1995"
        assert stats == {'TVSeriesRoot': 1, 'TVEpisode': 2, 'SingleMovie': 1, 'Unclassified': 1}

    def test_catalogued_only(self, library):
        output = library / "preview.csv"
        normalize.run_preview(library / "Movies", output, catalogued_only=True)
        assert [r['item_type'] for r in read_csv(output)] == ['TVSeriesRoot', 'SingleMovie']

    def test_nothing_renamed(self, library):
        normalize.run_preview(library / "Movies", library / "preview.csv")
        assert (library / "Movies" / "Heat.1995.mkv").exists()


# ─── scan.py ─────────────────────────────────────────────────────────────────

class TestScanCli:
    def test_missing_root(self, library):
        argv = ['scan.py', '--root', str(library / "nope"), '--config', str(library / "none.yaml")]
        with patch('sys.argv', argv):
            assert scan.main() == 1

    def test_no_roots(self, library):
        with patch('sys.argv', ['scan.py', '--config', str(library / "none.yaml")]):
            assert scan.main() == 1

    def test_offline_dry_run(self, library):
        argv = ['scan.py', '--root', str(library / "Movies"), '--no-api', '--config', str(library / "none.yaml")]
        with patch('sys.argv', argv):
            assert scan.main() == 0
        assert (library / "Movies" / "Heat.1995.mkv").exists()
        assert (library / "Movies" / "Breaking.Bad.S01" / "Breaking.Bad.S01E01.mkv").exists()

    def test_offline_execute_quarantines(self, library):
        config = library / "config.yaml"
        config.write_text(
            f"database_path: {library / 'catalog.db'}\n"
            f"cache_dir: {library / 'cache'}\n"
        )
        argv = ['scan.py', '--root', str(library / "Movies"), '--no-api', '--execute', '--config', str(config)]
        with patch('sys.argv', argv):
            assert scan.main() == 0

        store = SqlCatalogStore.from_path(library / "catalog.db")
        assert store.count_by_status() == {'error': 2}
        assert not (library / "catalog.db.lock").exists()
        store.engine.dispose()

        (library / "Movies" / "Heat.1995.mkv").unlink()
        with patch('sys.argv', ['retry_errors.py', '--config', str(config)]):
            assert retry_errors.main() == 0

        # dry run works on a copy
        store = SqlCatalogStore.from_path(library / "catalog.db")
        assert store.count_by_status() == {'error': 2}
        store.engine.dispose()

    def test_retry_without_catalog(self, library):
        config = library / "config.yaml"
        config.write_text(f"database_path: {library / 'missing.db'}\n")
        with patch('sys.argv', ['retry_errors.py', '--config', str(config)]):
            assert retry_errors.main() == 1


# ─── audit.py ────────────────────────────────────────────────────────────────

class TestAudit:
    def test_error_reasons(self):
        entries = [
            SimpleNamespace(error_message="Movie not found: 'Nothing Here' (2001)"),
            SimpleNamespace(error_message="Movie not found: 'Other' (None)"),
            SimpleNamespace(error_message="TV episode - not a movie"),
            SimpleNamespace(error_message=None),
        ]
        assert audit.error_reasons(entries) == {
            'Movie not found': 2,
            'TV episode - not a movie': 1,
            'unknown': 1,
        }

    def test_export(self, library):
        db_path = library / "catalog.db"
        store = SqlCatalogStore.from_path(db_path)
        path = library / "Movies" / "Heat (1995) (IMDB 8.3).mkv"
        store.create(
            original_path=path, current_path=path, file_name=path.name, original_file_name="Heat.1995.mkv",
            title="Heat", year=1995, rating=8.3, status=EntryStatus.ACTIVE,
        )
        broken = library / "Movies" / "notes.mkv"
        store.create(
            original_path=broken, current_path=broken, file_name=broken.name, original_file_name=broken.name,
            status=EntryStatus.ERROR, error_message="Movie not found: 'notes' (None)",
        )
        store.engine.dispose()

        output = library / "audit.csv"
        with patch('sys.argv', ['audit.py', '--database', str(db_path), '--output', str(output)]):
            assert audit.main() == 0

        rows = read_csv(output)
        assert [r['status'] for r in rows] == ['active', 'error']
        assert rows[0]['rating'] == "8.3"
        assert rows[0]['original_file_name'] == "Heat.1995.mkv"
        assert rows[1]['error_message'].startswith("Movie not found")

    def test_status_filter(self, library):
        db_path = library / "catalog.db"
        store = SqlCatalogStore.from_path(db_path)
        path = library / "Movies" / "Heat.1995.mkv"
        store.create(original_path=path, current_path=path, file_name=path.name,
                     original_file_name=path.name, status=EntryStatus.ERROR, error_message="x")
        store.engine.dispose()

        output = library / "errors.csv"
        argv = ['audit.py', '-d', str(db_path), '-o', str(output), '--status', 'active']
        with patch('sys.argv', argv):
            assert audit.main() == 0
        assert read_csv(output) == []

    def test_missing_database(self, library):
        with patch('sys.argv', ['audit.py', '--database', str(library / "none.db")]):
            assert audit.main() == 1
