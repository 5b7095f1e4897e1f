"""
Database layer for Trello Sync.
Stores the Trello relations plus the controller tables deliverables are read from.
"""

import asyncio
import contextlib
import threading
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, TypeVar

from sqlalchemy import (
    create_engine, Column, Integer, String, DateTime, Index, ForeignKey, event, text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from trello_sync import config

Base = declarative_base()

T = TypeVar("T")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the timezone-less DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ---------------------------------------------------------------------------
# Trello relations
# ---------------------------------------------------------------------------

class TrelloRelation(Base):
    """
    Binds one controller object to one Trello object for one tax season.

    Rows are archived, never deleted.  At most one unarchived row may exist
    per (controller_id, tax_season_id, type, board_type).
    """
    __tablename__ = "trello_relations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    controller_id = Column(String(64), nullable=False)
    trello_id = Column(String(64), nullable=False)
    tax_season_id = Column(String(64), nullable=False)
    type = Column(String(16), nullable=False)         # board, client, split_card, deliverable
    board_type = Column(String(32), nullable=False)   # tax_return, financial_statements
    archived = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index(
            "uq_trello_relations_active",
            "controller_id", "tax_season_id", "type", "board_type",
            unique=True,
            sqlite_where=text("archived IS NULL"),
            postgresql_where=text("archived IS NULL"),
        ),
        Index("ix_trello_relations_lookup", "controller_id", "type", "board_type"),
    )


# ---------------------------------------------------------------------------
# Controller tables (owned by the internal application)
# ---------------------------------------------------------------------------

class ClientRow(Base):
    __tablename__ = "clients"

    id = Column(String(64), primary_key=True)
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)
    rank = Column(String(32), nullable=True)


class EntityRow(Base):
    __tablename__ = "entities"

    id = Column(String(64), primary_key=True)
    client_id = Column(String(64), ForeignKey("clients.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)


class DeliverableTypeRow(Base):
    """Top-level type, e.g. "Tax Return" or "Financial Statements"."""
    __tablename__ = "deliverable_types"

    id = Column(String(64), primary_key=True)
    name = Column(String(128), nullable=False)


class DeliverableTypeDetailRow(Base):
    """Finer type shown on the checklist item, e.g. "T1"."""
    __tablename__ = "deliverable_type_details"

    id = Column(String(64), primary_key=True)
    type_id = Column(String(64), ForeignKey("deliverable_types.id"), nullable=False)
    name = Column(String(128), nullable=False)


class DeliverableRow(Base):
    __tablename__ = "deliverables"

    id = Column(String(64), primary_key=True)
    entity_id = Column(String(64), ForeignKey("entities.id"), nullable=False, index=True)
    type_detail_id = Column(String(64), ForeignKey("deliverable_type_details.id"), nullable=False)
    tax_season_id = Column(String(64), nullable=False, index=True)


class PreparerRow(Base):
    __tablename__ = "preparers"

    id = Column(String(64), primary_key=True)
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)


class ClientPreparerRow(Base):
    """The preparer assigned to a client for one tax season."""
    __tablename__ = "client_preparers"

    client_id = Column(String(64), ForeignKey("clients.id"), primary_key=True)
    tax_season_id = Column(String(64), primary_key=True)
    preparer_id = Column(String(64), ForeignKey("preparers.id"), nullable=False)


# ---------------------------------------------------------------------------
# Engine / session management
# ---------------------------------------------------------------------------

class Database:
    """Owns the engine and session factory for one database URL.

    SQLite engines share a single connection (StaticPool), so sessions on
    them are serialized with a lock; other backends use a regular pool.
    """

    def __init__(self, url: str = config.DATABASE_URL, echo: bool = False) -> None:
        self.url = url
        self.engine: Engine = _make_engine(url, echo=echo)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False)
        self._lock: Optional[threading.Lock] = (
            threading.Lock() if self.engine.dialect.name == "sqlite" else None
        )

    def init_db(self) -> None:
        """Create all tables if they don't exist."""
        Base.metadata.create_all(bind=self.engine)

    @contextlib.contextmanager
    def session(self) -> Iterator[Session]:
        guard = self._lock if self._lock is not None else contextlib.nullcontext()
        with guard:
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

    async def run(self, fn: Callable[[Session], T]) -> T:
        """Run ``fn(session)`` in a worker thread."""
        def _sync() -> T:
            with self.session() as db:
                return fn(db)

        return await asyncio.to_thread(_sync)

    def ping(self) -> bool:
        try:
            with self.session() as db:
                db.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    def dispose(self) -> None:
        self.engine.dispose()


def _make_engine(url: str, echo: bool = False) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    engine = create_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        if ":memory:" not in url:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    return engine


_DATABASE: Optional[Database] = None


def get_database() -> Database:
    """Process-wide database built from ``config.DATABASE_URL``."""
    global _DATABASE
    if _DATABASE is None:
        _DATABASE = Database(config.DATABASE_URL)
    return _DATABASE


def init_db() -> None:
    get_database().init_db()
