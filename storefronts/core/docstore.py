"""
Document store client.

A small get/set/query/delete surface over named collections, plus `transform`
for atomic read-modify-write of a single document. Two backends:

- SqlDocumentStore: one JSON `documents` table via SQLAlchemy. Blocking calls
  run in the Starlette threadpool so callers can await them.
- InMemoryDocumentStore: process-local dicts (DOCSTORE_BACKEND=memory, tests).

Backends raise StoreUnavailableError for storage failures. Exceptions raised by
a transform callback abort the write and propagate unchanged.
"""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from sqlalchemy import select, insert, update, delete
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from storefronts.core.config import settings
from storefronts.core.database import documents, get_db_session, get_engine
from storefronts.core.errors import StoreUnavailableError

Document = Dict[str, Any]
TransformFn = Callable[[Optional[Document]], Optional[Document]]

_MISSING = object()


@dataclass(frozen=True)
class StoredDocument:
    id: str
    data: Document


def get_path(data: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Read a dotted path (e.g. ``settings.enabled``) from nested dicts."""
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current


def matches(data: Mapping[str, Any], where: Optional[Mapping[str, Any]]) -> bool:
    if not where:
        return True
    return all(get_path(data, path, _MISSING) == expected for path, expected in where.items())


class DocumentStore(Protocol):
    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        ...

    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    async def query(
        self,
        collection: str,
        where: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[StoredDocument]:
        ...

    async def transform(self, collection: str, doc_id: str, fn: TransformFn) -> Optional[Document]:
        ...


class InMemoryDocumentStore:
    """Dict-backed store. Documents are deep-copied in and out."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._lock = threading.Lock()

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    async def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self._collections.get(collection, {}).pop(doc_id, None)

    async def query(
        self,
        collection: str,
        where: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[StoredDocument]:
        with self._lock:
            items = sorted(self._collections.get(collection, {}).items())
            found = [StoredDocument(id=doc_id, data=copy.deepcopy(data)) for doc_id, data in items if matches(data, where)]
        return found[:limit] if limit is not None else found

    async def transform(self, collection: str, doc_id: str, fn: TransformFn) -> Optional[Document]:
        with self._lock:
            bucket = self._collections.setdefault(collection, {})
            current = bucket.get(doc_id)
            new = fn(copy.deepcopy(current) if current is not None else None)
            if new is None:
                return copy.deepcopy(current) if current is not None else None
            bucket[doc_id] = copy.deepcopy(new)
            return copy.deepcopy(new)

    def clear(self) -> None:
        with self._lock:
            self._collections.clear()


class SqlDocumentStore:
    """Documents stored as JSON rows keyed by (collection, doc_id)."""

    def __init__(self):
        # SQLite shares one connection across threadpool workers, so every
        # statement is serialized; other dialects only serialize writes.
        self._serialize_all = get_engine().dialect.name == "sqlite"
        self._write_lock = threading.Lock()

    def _guard(self, write: bool):
        if write or self._serialize_all:
            return self._write_lock
        return nullcontext()

    @contextmanager
    def _store_errors(self, operation: str, collection: str):
        try:
            yield
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(
                "Document store unavailable",
                detail=f"{operation} {collection}: {exc.__class__.__name__}: {exc}",
            ) from exc

    def _get_sync(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._store_errors("get", collection), self._guard(write=False):
            with get_db_session() as session:
                row = session.execute(
                    select(documents.c.data).where(
                        documents.c.collection == collection,
                        documents.c.doc_id == doc_id,
                    )
                ).first()
                return copy.deepcopy(row.data) if row else None

    def _query_sync(self, collection: str, where: Optional[Mapping[str, Any]], limit: Optional[int]) -> List[StoredDocument]:
        with self._store_errors("query", collection), self._guard(write=False):
            with get_db_session() as session:
                rows = session.execute(
                    select(documents.c.doc_id, documents.c.data)
                    .where(documents.c.collection == collection)
                    .order_by(documents.c.doc_id)
                ).all()
        found = [StoredDocument(id=row.doc_id, data=copy.deepcopy(row.data)) for row in rows if matches(row.data, where)]
        return found[:limit] if limit is not None else found

    def _delete_sync(self, collection: str, doc_id: str) -> None:
        with self._store_errors("delete", collection), self._guard(write=True):
            with get_db_session() as session:
                session.execute(
                    delete(documents).where(
                        documents.c.collection == collection,
                        documents.c.doc_id == doc_id,
                    )
                )

    def _transform_sync(self, collection: str, doc_id: str, fn: TransformFn) -> Optional[Document]:
        with self._store_errors("transform", collection), self._guard(write=True):
            with get_db_session() as session:
                row = session.execute(
                    select(documents.c.data)
                    .where(
                        documents.c.collection == collection,
                        documents.c.doc_id == doc_id,
                    )
                    .with_for_update()
                ).first()
                current = copy.deepcopy(row.data) if row else None
                new = fn(copy.deepcopy(current) if current is not None else None)
                if new is None:
                    return current

                now = datetime.now(timezone.utc)
                if row:
                    session.execute(
                        update(documents)
                        .where(
                            documents.c.collection == collection,
                            documents.c.doc_id == doc_id,
                        )
                        .values(data=new, updated_at=now)
                    )
                else:
                    session.execute(
                        insert(documents).values(
                            collection=collection,
                            doc_id=doc_id,
                            data=new,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                return copy.deepcopy(new)

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        return await run_in_threadpool(self._get_sync, collection, doc_id)

    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        payload = copy.deepcopy(data)
        await run_in_threadpool(self._transform_sync, collection, doc_id, lambda _current: payload)

    async def delete(self, collection: str, doc_id: str) -> None:
        await run_in_threadpool(self._delete_sync, collection, doc_id)

    async def query(
        self,
        collection: str,
        where: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[StoredDocument]:
        return await run_in_threadpool(self._query_sync, collection, where, limit)

    async def transform(self, collection: str, doc_id: str, fn: TransformFn) -> Optional[Document]:
        return await run_in_threadpool(self._transform_sync, collection, doc_id, fn)


_store: Optional[DocumentStore] = None


def build_document_store(backend: Optional[str] = None) -> DocumentStore:
    choice = (backend or settings.DOCSTORE_BACKEND).lower()
    if choice == "memory":
        return InMemoryDocumentStore()
    if choice == "sql":
        return SqlDocumentStore()
    raise ValueError(f"Unknown DOCSTORE_BACKEND: {choice}")


def get_document_store() -> DocumentStore:
    """Process-wide store for the configured backend."""
    global _store
    if _store is None:
        _store = build_document_store()
    return _store


def set_document_store(store: Optional[DocumentStore]) -> None:
    """Replace the process-wide store (None rebuilds it on next use)."""
    global _store
    _store = store
