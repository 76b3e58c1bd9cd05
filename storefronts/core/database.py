"""
SQL backing for the document store.

One `documents` table holds every collection: rows are keyed by
(collection, doc_id) and carry the document body as JSON.
"""
from contextlib import contextmanager
from typing import Optional
import os

from sqlalchemy import create_engine, MetaData, Table, Column, String, DateTime, JSON, Index, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func

from storefronts.core.config import settings


metadata = MetaData()

# Pool sizing for server databases; SQLite ignores these
POOL_SIZE = 5
MAX_OVERFLOW = 10
POOL_RECYCLE = 1800

_engine: Optional[Engine] = None
_session_factory = None


documents = Table(
    "documents",
    metadata,
    Column("collection", String(128), primary_key=True),
    Column("doc_id", String(512), primary_key=True),
    Column("data", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Index("idx_documents_collection", "collection"),
)


def resolve_database_url() -> str:
    # TEST_DATABASE_URL wins so a test run never touches the configured database
    url = os.getenv("TEST_DATABASE_URL") or settings.DATABASE_URL
    if not url:
        raise ValueError("DATABASE_URL is not configured")
    return url


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def _build_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(
            url,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_recycle=POOL_RECYCLE,
            pool_pre_ping=True,
        )
    # Threadpool workers share SQLite connections; an in-memory database
    # only exists on the one connection StaticPool keeps.
    kwargs = {"connect_args": {"check_same_thread": False}}
    if _is_memory_sqlite(url):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def get_engine() -> Engine:
    global _engine, _session_factory
    if _engine is None:
        _engine = _build_engine(resolve_database_url())
        _session_factory = sessionmaker(bind=_engine, autoflush=False)
    return _engine


@contextmanager
def get_db_session():
    """Session that commits on success and rolls back on any error."""
    get_engine()
    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables() -> None:
    """Create the documents table if it is missing."""
    metadata.create_all(bind=get_engine())


def reset_database() -> None:
    """Drop and recreate the documents table. Tests only."""
    engine = get_engine()
    metadata.drop_all(bind=engine)
    metadata.create_all(bind=engine)


def check_connection() -> bool:
    """True when the database answers and the documents table exists."""
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        return inspect(engine).has_table("documents")
    except Exception:
        return False
