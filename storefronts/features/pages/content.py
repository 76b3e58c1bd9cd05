"""Resolve the content a page setting points at.

Static pages return their inline payload. Dynamic pages read another
collection in the document store or fetch JSON from an external endpoint.
Collections must belong to the page's tenant (`<name>_<tenantId>`).
Every failure degrades to None so one broken source never takes a page
down with it.
"""

import logging
from typing import Any, List, Optional

import httpx

from storefronts.core.config import settings
from storefronts.core.docstore import DocumentStore
from storefronts.core.metrics import store_degraded_reads_total
from storefronts.core.tracing import start_span
from storefronts.features.plans.service import PLANS_COLLECTION, USER_PLANS_COLLECTION
from storefronts.models.page_setting import PAGE_SETTINGS_COLLECTION, ApiSource, CollectionSource, PageSetting, StaticSource

logger = logging.getLogger("storefronts")

# Service-owned collections are never served as page content.
INTERNAL_COLLECTIONS = frozenset({PAGE_SETTINGS_COLLECTION, PLANS_COLLECTION, USER_PLANS_COLLECTION})


def collection_allowed(collection: str, tenant_id: str) -> bool:
    """A page may only read a collection scoped to its tenant, e.g. testimonials_<tenant>."""
    if collection in INTERNAL_COLLECTIONS:
        return False
    return collection.endswith(f"_{tenant_id}") and len(collection) > len(tenant_id) + 1


class ContentResolver:
    def __init__(
        self,
        store: DocumentStore,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.store = store
        self.timeout = timeout if timeout is not None else settings.CONTENT_FETCH_TIMEOUT_SECONDS
        self.transport = transport

    async def resolve(self, setting: PageSetting) -> Any:
        source = setting.data_source
        with start_span("pages.resolve_content", {"page_id": setting.id, "source": source.type}):
            try:
                if setting.content_type == "static":
                    if isinstance(source, StaticSource):
                        return source.static_data or None
                    return None
                if isinstance(source, CollectionSource):
                    if not collection_allowed(source.collection, setting.tenant_id):
                        logger.warning(
                            "pages.collection_refused",
                            extra={"page_id": setting.id, "tenant_id": setting.tenant_id, "collection": source.collection},
                        )
                        return None
                    return await self._from_collection(source.collection)
                if isinstance(source, ApiSource):
                    return await self._from_api(source.api_endpoint)
                return None
            except Exception as exc:
                if source.type == "collection":
                    store_degraded_reads_total.inc(labels={"operation": "resolve_content"})
                logger.warning(
                    "pages.content_unavailable",
                    extra={
                        "page_id": setting.id,
                        "tenant_id": setting.tenant_id,
                        "source": source.type,
                        "error_message": f"{exc.__class__.__name__}: {exc}",
                    },
                )
                return None

    async def _from_collection(self, collection: str) -> List[dict]:
        found = await self.store.query(collection)
        return [{"id": doc.id, **doc.data} for doc in found]

    async def _from_api(self, url: str) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(url)
        if not response.is_success:
            logger.info("pages.api_source_status", extra={"url": url, "status": response.status_code})
            return None
        return response.json()
