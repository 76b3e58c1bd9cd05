# storefronts/conftest.py
import asyncio
import os

# Configure before any storefronts module builds its settings singleton.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DOCSTORE_BACKEND"] = "sql"
os.environ["MAIN_DOMAIN"] = "platform.test"
os.environ["ENV"] = "test"
os.environ.pop("STOREFRONT_DOMAIN", None)
os.environ.pop("REGISTERED_DOMAINS", None)

import pytest

from storefronts.core.database import reset_database
from storefronts.core.docstore import InMemoryDocumentStore, set_document_store
from storefronts.core.errors import StoreUnavailableError
from storefronts.core.metrics import METRICS


@pytest.fixture(autouse=True)
def reset_state():
    """Fresh document table, metrics and store singleton for every test."""
    reset_database()
    METRICS.reset()
    set_document_store(None)
    yield
    set_document_store(None)


@pytest.fixture
def memory_store():
    return InMemoryDocumentStore()


@pytest.fixture
def installed_memory_store(memory_store):
    """Make the in-memory store the process-wide one (API tests)."""
    set_document_store(memory_store)
    return memory_store


class FailingStore:
    """Every call fails the way an unreachable backend does."""

    def __init__(self):
        self.calls = []

    async def _fail(self, operation, *args, **kwargs):
        self.calls.append(operation)
        raise StoreUnavailableError("Document store unavailable", detail=f"{operation}: connection refused")

    async def get(self, collection, doc_id):
        return await self._fail("get", collection, doc_id)

    async def set(self, collection, doc_id, data):
        return await self._fail("set", collection, doc_id)

    async def delete(self, collection, doc_id):
        return await self._fail("delete", collection, doc_id)

    async def query(self, collection, where=None, limit=None):
        return await self._fail("query", collection)

    async def transform(self, collection, doc_id, fn):
        return await self._fail("transform", collection, doc_id)


class SlowStore(InMemoryDocumentStore):
    """In-memory store whose reads take `delay` seconds."""

    def __init__(self, delay: float):
        super().__init__()
        self.delay = delay

    async def get(self, collection, doc_id):
        await asyncio.sleep(self.delay)
        return await super().get(collection, doc_id)


@pytest.fixture
def failing_store():
    return FailingStore()


@pytest.fixture
def slow_store():
    return SlowStore(delay=0.5)
