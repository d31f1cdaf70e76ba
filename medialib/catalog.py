#!/usr/bin/env python3
"""
Persistent catalog of identified media (SQLAlchemy 2.0, SQLite)

One CatalogEntry per catalogued path. Status lifecycle:
  (none) → active → deleted
  error / deleted entries are deleted and recreated when their path
  reappears, never patched in place

current_path is unique. Writing an entry to a path still held by a
non-active entry removes that stale entry first.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text, create_engine, delete, func, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from medialib.models import EntryStatus

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class CatalogEntry(Base):
    __tablename__ = "catalog_entries"
    # ids of deleted rows are never reused
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    original_path: Mapped[str] = mapped_column(String(2000), nullable=False)
    current_path: Mapped[str] = mapped_column(String(2000), nullable=False, unique=True, index=True)
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    original_file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    imdb_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    provider_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_folder: Mapped[bool] = mapped_column(Boolean, default=False)
    item_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    poster_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=EntryStatus.ACTIVE.value, index=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_scanned_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)

    def __repr__(self) -> str:
        return f"<CatalogEntry(id={self.id}, status='{self.status}', path='{self.current_path}')>"


class SqlCatalogStore:
    """
    CatalogStore backed by SQLAlchemy.

    Use 'sqlite://' for an in-memory catalog (dry runs, tests).
    """

    def __init__(self, database_url: str = 'sqlite://'):
        self.engine = create_engine(database_url, echo=False, future=True)
        Base.metadata.create_all(self.engine)
        self._session_factory = sessionmaker(self.engine, expire_on_commit=False)

    @classmethod
    def from_path(cls, db_path: PathLike) -> 'SqlCatalogStore':
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return cls(f"sqlite:///{db_path}")

    def _session(self) -> Session:
        return self._session_factory()

    # === Queries ===

    def find_by_path(self, path: PathLike) -> Optional[CatalogEntry]:
        with self._session() as session:
            return session.scalars(
                select(CatalogEntry).where(CatalogEntry.current_path == str(path))
            ).first()

    def find_by_id(self, entry_id: int) -> Optional[CatalogEntry]:
        with self._session() as session:
            return session.get(CatalogEntry, entry_id)

    def find_all(self, status: Optional[EntryStatus] = None) -> List[CatalogEntry]:
        query = select(CatalogEntry).order_by(CatalogEntry.id)
        if status is not None:
            query = query.where(CatalogEntry.status == EntryStatus(status).value)
        with self._session() as session:
            return list(session.scalars(query))

    def all_active_paths(self) -> Set[str]:
        with self._session() as session:
            return set(session.scalars(
                select(CatalogEntry.current_path).where(CatalogEntry.status == EntryStatus.ACTIVE.value)
            ))

    def count_by_status(self) -> Dict[str, int]:
        with self._session() as session:
            rows = session.execute(
                select(CatalogEntry.status, func.count(CatalogEntry.id)).group_by(CatalogEntry.status)
            ).all()
        return {status: count for status, count in rows}

    # === Mutations ===

    @staticmethod
    def _purge_inactive_at(session: Session, path: str, keep_id: Optional[int] = None):
        query = delete(CatalogEntry).where(
            CatalogEntry.current_path == path,
            CatalogEntry.status != EntryStatus.ACTIVE.value,
        )
        if keep_id is not None:
            query = query.where(CatalogEntry.id != keep_id)
        session.execute(query)

    def create(self, **fields) -> CatalogEntry:
        """
        Insert a new entry.

        Required: original_path, current_path, file_name, original_file_name.
        """
        for key in ('original_path', 'current_path'):
            fields[key] = str(fields[key])
        if isinstance(fields.get('status'), EntryStatus):
            fields['status'] = fields['status'].value
        fields.setdefault('last_scanned_at', _now())

        entry = CatalogEntry(**fields)
        with self._session() as session:
            self._purge_inactive_at(session, entry.current_path)
            session.add(entry)
            session.commit()
        logger.debug(f"Catalog create: {entry}")
        return entry

    def update(self, entry_id: int, **fields) -> Optional[CatalogEntry]:
        if 'current_path' in fields:
            fields['current_path'] = str(fields['current_path'])
        if isinstance(fields.get('status'), EntryStatus):
            fields['status'] = fields['status'].value

        with self._session() as session:
            entry = session.get(CatalogEntry, entry_id)
            if entry is None:
                return None
            if 'current_path' in fields:
                self._purge_inactive_at(session, fields['current_path'], keep_id=entry_id)
            for key, value in fields.items():
                setattr(entry, key, value)
            session.commit()
            return entry

    def touch(self, entry_id: int) -> Optional[CatalogEntry]:
        return self.update(entry_id, last_scanned_at=_now())

    def mark_deleted(self, path: PathLike) -> bool:
        """Soft-delete the active entry at path; False when there is none"""
        with self._session() as session:
            entry = session.scalars(
                select(CatalogEntry).where(
                    CatalogEntry.current_path == str(path),
                    CatalogEntry.status == EntryStatus.ACTIVE.value,
                )
            ).first()
            if entry is None:
                return False
            entry.status = EntryStatus.DELETED.value
            session.commit()
        return True

    def delete(self, entry_id: int) -> bool:
        with self._session() as session:
            entry = session.get(CatalogEntry, entry_id)
            if entry is None:
                return False
            session.delete(entry)
            session.commit()
        return True
