#!/usr/bin/env python3
"""
Scan-to-catalog reconciliation

One scan:
  1. Load and classify each root (Loader → Classifier)
  2. Visit catalogued items in traversal order, collecting live paths
       active entry at path      → refresh last_scanned_at (updated)
       error / deleted at path   → delete the entry, treat the path as new
       new path                  → identify, create active entry, rename,
                                   run sinks; or create an error entry
  3. Every active entry whose path was not seen becomes deleted

A second run over an unchanged tree creates and deletes nothing. A failure
on one item is recorded on that item and never stops the scan; only an
unusable root is fatal.

The retry pass re-identifies error entries and replaces the ones that now
resolve with fresh active entries.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Set

from medialib.assist import LLMAssist, OfflineScriptAssist
from medialib.catalog import CatalogEntry, SqlCatalogStore
from medialib.classifier import ItemClassifier, franchise_from_collection
from medialib.config import ScanSettings
from medialib.constants import COLLECTION_RE
from medialib.context import ScanContext
from medialib.errors import MediaCatalogError, RenameCollision, ScanInProgress
from medialib.interfaces import HeuristicParseAssist, MetadataProvider, ScriptAssist, SemanticTitleComparator
from medialib.loader import load_tree
from medialib.matcher import TitleMatcher
from medialib.models import (
    CATALOGUED_TYPES,
    SERIES_TYPES,
    ClassifiedItem,
    EntryStatus,
    FileSystemNode,
    ItemType,
    NodeKind,
    ScanResult,
)
from medialib.normalizer import build_episode_name
from medialib.omdb import OMDbClient
from medialib.pipeline import Identifier
from medialib.renamer import Renamer
from medialib.resolver import MetadataResolver
from medialib.sinks import NfoWriter, PosterFetcher, has_poster
from medialib.tmdb import TMDbClient

logger = logging.getLogger(__name__)


class ScanLock:
    """Exclusive run-lock file; a second holder raises ScanInProgress"""

    def __init__(self, lock_path: Path):
        self.lock_path = Path(lock_path)
        self._fd = None

    def __enter__(self):
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as e:
            raise ScanInProgress(f"Another run holds {self.lock_path}") from e
        os.write(self._fd, str(os.getpid()).encode())
        return self

    def __exit__(self, exc_type, exc, tb):
        os.close(self._fd)
        self.lock_path.unlink(missing_ok=True)
        return False


class CatalogReconciler:
    """Keep the catalog in sync with the media roots"""

    def __init__(
        self,
        store: SqlCatalogStore,
        provider: MetadataProvider,
        renamer: Optional[Renamer] = None,
        comparator: Optional[SemanticTitleComparator] = None,
        script_assist: Optional[ScriptAssist] = None,
        parse_assist: Optional[HeuristicParseAssist] = None,
        nfo_writer: Optional[NfoWriter] = None,
        poster_fetcher: Optional[PosterFetcher] = None,
        settings: Optional[ScanSettings] = None,
    ):
        self.store = store
        self.provider = provider
        self.renamer = renamer if renamer is not None else Renamer(dry_run=True)
        self.comparator = comparator
        self.script_assist = script_assist
        self.parse_assist = parse_assist
        self.nfo_writer = nfo_writer
        self.poster_fetcher = poster_fetcher
        self.settings = settings if settings is not None else ScanSettings()
        self.context: Optional[ScanContext] = None

    # === Per-scan wiring ===

    def _new_scan(self):
        self.context = ScanContext()
        resolver = MetadataResolver(
            self.provider,
            self.context,
            self.script_assist,
            self.settings.expected_language,
        )
        matcher = TitleMatcher(
            self.comparator,
            semantic_threshold=self.settings.semantic_threshold,
            fuzzy_threshold=self.settings.fuzzy_threshold,
        )
        self.identifier = Identifier(resolver, matcher, self.parse_assist)

    def _classifier(self, root_name: str) -> ItemClassifier:
        return ItemClassifier(
            root_name,
            parse_assist=self.parse_assist,
            context=self.context,
            translit_threshold=self.settings.translit_threshold,
        )

    @property
    def _sinks(self) -> list:
        return [sink for sink in (self.nfo_writer, self.poster_fetcher) if sink is not None]

    # === Scan ===

    def scan(self, roots: Iterable[Path]) -> ScanResult:
        """
        Reconcile every root against the catalog.

        Raises:
            FileNotFoundError / NotADirectoryError: a root is unusable
        """
        self._new_scan()
        result = ScanResult()
        live: Set[str] = set()

        for root in roots:
            root = Path(root)
            logger.info(f"Scanning {root}")
            tree = load_tree(root, self.settings.max_depth)
            classified = self._classifier(root.name).classify_tree(tree)
            for child in classified.children:
                self._visit(child, root, result, live)

        for path in sorted(self.store.all_active_paths() - live):
            if self.store.mark_deleted(path):
                logger.info(f"DELETED: {path}")
                result.deleted += 1

        return result

    def _visit(self, item: ClassifiedItem, parent_path: Path, result: ScanResult, live: Set[str]):
        path = parent_path / item.node.name

        if item.item_type in CATALOGUED_TYPES:
            path = self._process(item, path, result, live)
        elif not item.node.is_folder:
            return

        for child in item.children:
            self._visit(child, path, result, live)

    def _process(self, item: ClassifiedItem, path: Path, result: ScanResult, live: Set[str]) -> Path:
        """Reconcile one catalogued item; returns its path after any rename"""
        result.scanned += 1
        entry = self.store.find_by_path(path)

        if entry is not None and entry.status == EntryStatus.ACTIVE.value:
            self._refresh(entry, item, path)
            live.add(str(path))
            result.updated += 1
            return path

        if entry is not None:
            logger.debug(f"Recreating {entry.status} entry for {path}")
            self.store.delete(entry.id)

        try:
            self.identifier.identify(item)
        except MediaCatalogError as e:
            self._quarantine(item, path, str(e))
            result.errors += 1
            return path
        except Exception as e:
            logger.exception(f"Unexpected error identifying {path}: {e}")
            self._quarantine(item, path, f"Unexpected error: {e}")
            result.errors += 1
            return path

        new_path, warning = self._rename(path, item.canonical_name)
        if warning:
            result.warnings += 1

        self.store.create(**self._entry_fields(item, path, new_path), error_message=warning)
        result.created += 1
        live.add(str(new_path))
        logger.info(f"CREATED: {item.item_type.value} '{new_path.name}'")

        if item.item_type in SERIES_TYPES:
            result.warnings += self._rename_episodes(item, new_path)
        self._run_sinks(item, new_path)
        return new_path

    def _refresh(self, entry: CatalogEntry, item: ClassifiedItem, path: Path):
        self.store.touch(entry.id)
        if self.poster_fetcher is None or has_poster(path):
            return

        # Poster missing: resolve again only for the sinks, never rename
        try:
            self.identifier.identify(item)
        except MediaCatalogError as e:
            logger.debug(f"Poster refresh skipped for {path.name}: {e}")
            return
        except Exception as e:
            logger.exception(f"Unexpected error refreshing {path}: {e}")
            return

        self._run_sinks(item, path)
        if item.metadata is not None and item.metadata.poster_url:
            self.store.update(entry.id, poster_url=item.metadata.poster_url)

    def _quarantine(self, item: ClassifiedItem, path: Path, reason: str):
        logger.warning(f"ERROR: {path.name} - {reason}")
        self.store.create(
            original_path=path,
            current_path=path,
            file_name=path.name,
            original_file_name=path.name,
            title=item.clean_title or None,
            year=item.year,
            is_folder=item.node.is_folder,
            item_type=item.item_type.value,
            status=EntryStatus.ERROR,
            error_message=reason,
        )

    def _rename(self, path: Path, new_name: str):
        """(new path, warning or None); failures keep the old path"""
        try:
            return self.renamer.rename(path, new_name), None
        except RenameCollision as e:
            logger.warning(f"SKIP (dest exists): {path.name} → {new_name}")
            return path, str(e)
        except OSError as e:
            logger.warning(f"Rename failed: {path.name} → {new_name}: {e}")
            return path, f"Rename failed: {e}"

    def _rename_episodes(self, item: ClassifiedItem, folder: Path) -> int:
        """Rename episode files directly inside a new series unit; returns warnings"""
        series = item.series_name or item.clean_title
        warnings = 0
        for child in item.children:
            if child.item_type != ItemType.TV_EPISODE:
                continue
            new_name = build_episode_name(series, child.season, child.episode, child.node.extension)
            _, warning = self._rename(folder / child.node.name, new_name)
            if warning:
                warnings += 1
        return warnings

    def _run_sinks(self, item: ClassifiedItem, path: Path):
        if item.metadata is None:
            return
        is_series = item.item_type in SERIES_TYPES
        for sink in self._sinks:
            sink.write(item.metadata, path, is_series)

    @staticmethod
    def _entry_fields(item: ClassifiedItem, original: Path, current: Path) -> dict:
        metadata = item.metadata
        return {
            'original_path': original,
            'current_path': current,
            'file_name': current.name,
            'original_file_name': original.name,
            'title': metadata.title if metadata else item.clean_title,
            'year': (metadata.year if metadata else None) or item.year,
            'rating': metadata.rating if metadata else item.rating,
            'imdb_id': metadata.imdb_id if metadata else None,
            'provider_id': metadata.provider_id if metadata else None,
            'is_folder': item.node.is_folder,
            'item_type': item.item_type.value,
            'poster_url': metadata.poster_url if metadata else None,
            'status': EntryStatus.ACTIVE,
        }

    # === Retry pass ===

    def retry_errors(self, roots: Iterable[Path] = ()) -> ScanResult:
        """
        Re-identify every error entry.

        Missing paths become deleted; items whose rating is missing or not
        positive stay in error; the rest are renamed and replaced by fresh
        active entries.
        """
        self._new_scan()
        result = ScanResult()
        roots = [Path(r) for r in roots]

        for entry in self.store.find_all(EntryStatus.ERROR):
            result.scanned += 1
            path = Path(entry.current_path)

            if not path.exists():
                self.store.update(entry.id, status=EntryStatus.DELETED)
                logger.info(f"DELETED (gone): {path}")
                result.deleted += 1
                continue

            item = self._classify_path(path, roots)
            if item.item_type not in CATALOGUED_TYPES:
                logger.info(f"Not catalogued any more: {path.name} ({item.item_type.value})")
                result.errors += 1
                continue

            try:
                self.identifier.identify(item)
            except MediaCatalogError as e:
                logger.info(f"Still failing: {path.name} - {e}")
                self.store.update(entry.id, error_message=str(e))
                self.store.touch(entry.id)
                result.errors += 1
                continue
            except Exception as e:
                logger.exception(f"Unexpected error retrying {path}: {e}")
                self.store.update(entry.id, error_message=f"Unexpected error: {e}")
                self.store.touch(entry.id)
                result.errors += 1
                continue

            rating = item.metadata.rating if item.metadata else None
            if item.item_type not in SERIES_TYPES and (rating is None or rating <= 0):
                logger.info(f"Invalid rating for {path.name}: {rating}")
                result.errors += 1
                continue

            new_path, warning = self._rename(path, item.canonical_name)
            if warning:
                result.warnings += 1

            self.store.delete(entry.id)
            self.store.create(**self._entry_fields(item, Path(entry.original_path), new_path), error_message=warning)
            result.created += 1
            logger.info(f"FIXED: {path.name} → {new_path.name}")

            if item.item_type in SERIES_TYPES:
                result.warnings += self._rename_episodes(item, new_path)
            self._run_sinks(item, new_path)

        return result

    def _classify_path(self, path: Path, roots: List[Path]) -> ClassifiedItem:
        root_name = next((r.name for r in roots if r in path.parents), '')
        if path.is_dir():
            node = load_tree(path, max_depth=1)
        else:
            node = FileSystemNode(name=path.name, path=path, kind=NodeKind.FILE)

        parent = path.parent.name
        franchise = franchise_from_collection(parent) if COLLECTION_RE.search(parent) else None
        return self._classifier(root_name).classify(node, parent_name=parent, franchise=franchise)


def build_reconciler(
    settings: ScanSettings,
    store: SqlCatalogStore,
    execute: bool = False,
    use_api: bool = True,
) -> CatalogReconciler:
    """
    Wire clients from settings.

    Without API keys (or with use_api=False) the provider finds nothing and
    every new item is quarantined. Without an LLM key there is no semantic
    comparator and no parse assist; script assist stays offline.
    """
    omdb = None
    if use_api and settings.omdb_api_key:
        omdb = OMDbClient(settings.omdb_api_key, settings.cache_dir / 'omdb_cache.json')
        logger.info("OMDb ratings enabled (with caching)")

    tmdb_key = settings.tmdb_api_key if use_api else None
    provider = TMDbClient(tmdb_key, settings.cache_dir / 'tmdb_cache.json', omdb=omdb)
    if not use_api:
        logger.info("API lookups disabled (--no-api): new items will be quarantined")
    elif not tmdb_key:
        logger.warning("TMDb disabled (no API key in config)")

    llm = None
    if use_api and settings.llm_api_key:
        llm = LLMAssist(settings.llm_api_key, settings.llm_base_url, settings.llm_model)
        logger.info(f"LLM assist enabled ({settings.llm_model})")

    return CatalogReconciler(
        store=store,
        provider=provider,
        renamer=Renamer(dry_run=not execute),
        comparator=llm,
        script_assist=llm if llm is not None else OfflineScriptAssist(),
        parse_assist=llm,
        nfo_writer=NfoWriter() if execute and settings.write_nfo else None,
        poster_fetcher=PosterFetcher() if execute and settings.fetch_posters else None,
        settings=settings,
    )
