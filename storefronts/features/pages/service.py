"""
storefronts/features/pages/service.py

Page configuration store.

Persists per-tenant page settings in the `page_settings` collection under
deterministic ids, and answers the lookups the storefront renderer needs.

Reads degrade: a store failure is logged and reported as "nothing found"
so the storefront can still render. Writes propagate StoreUnavailableError.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx
from pydantic import ValidationError as PydanticValidationError

from storefronts.core.docstore import Document, DocumentStore, get_document_store
from storefronts.core.errors import ConflictError, NotFoundError, StoreUnavailableError, ValidationError
from storefronts.core.metrics import store_degraded_reads_total
from storefronts.core.tracing import start_span
from storefronts.features.pages.content import ContentResolver
from storefronts.models.page_setting import (
    PAGE_SETTINGS_COLLECTION,
    CollectionSource,
    PageSetting,
    PageSettings,
    PageSettingUpdate,
    StaticSource,
    make_page_setting_id,
)

logger = logging.getLogger("storefronts")

_SETTINGS_ALIASES = {name: field.alias or name for name, field in PageSettings.model_fields.items()}


def default_pages(tenant_id: str, owner_id: str) -> List[PageSetting]:
    """Standard pages seeded for a new storefront. All start disabled."""
    return [
        PageSetting.build(
            owner_id=owner_id,
            tenant_id=tenant_id,
            page_type="testimonial",
            route="/testimonials",
            content_type="dynamic",
            data_source=CollectionSource(collection=f"testimonials_{tenant_id}"),
            order=1,
            settings=PageSettings(
                enabled=False,
                show_in_menu=False,
                show_in_footer=True,
                meta_title="Testimonials",
                meta_description="Customer testimonials and reviews",
            ),
        ),
        PageSetting.build(
            owner_id=owner_id,
            tenant_id=tenant_id,
            page_type="about",
            route="/about",
            data_source=StaticSource(static_data={"title": "About Us", "content": "Welcome to our store..."}),
            order=2,
            settings=PageSettings(
                enabled=False,
                show_in_menu=True,
                show_in_footer=True,
                meta_title="About Us",
                meta_description="Learn more about our company",
            ),
        ),
        PageSetting.build(
            owner_id=owner_id,
            tenant_id=tenant_id,
            page_type="contact",
            route="/contact",
            data_source=StaticSource(static_data={"title": "Contact Us", "content": "Get in touch with us..."}),
            order=3,
            settings=PageSettings(
                enabled=False,
                show_in_menu=True,
                show_in_footer=True,
                meta_title="Contact Us",
                meta_description="Get in touch with us",
            ),
        ),
    ]


def coverage_route(page_type: str) -> str:
    return "/" if page_type == "home" else f"/{page_type}"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _normalize_settings_patch(patch: Dict[str, Any]) -> Dict[str, Any]:
    """Accept both snake_case and camelCase keys for the known settings."""
    return {_SETTINGS_ALIASES.get(key, key): value for key, value in patch.items()}


def _merge(current: Document, changes: Dict[str, Any]) -> Document:
    merged = dict(current)
    for key, value in changes.items():
        if key == "settings" and isinstance(value, dict):
            merged["settings"] = {**(current.get("settings") or {}), **_normalize_settings_patch(value)}
        else:
            merged[key] = value
    return merged


def _validate(document: Document) -> PageSetting:
    try:
        return PageSetting.model_validate(document)
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        raise ValidationError("Invalid page setting", detail=problems) from exc


class PageConfigurationStore:
    """CRUD and lookups for page settings."""

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._store = store
        self._transport = transport

    @property
    def store(self) -> DocumentStore:
        return self._store or get_document_store()

    def _degraded(self, operation: str, exc: StoreUnavailableError, **context) -> None:
        store_degraded_reads_total.inc(labels={"operation": operation})
        logger.warning(
            "pages.read_degraded",
            extra={"operation": operation, "error_code": exc.code, "error_message": exc.detail or exc.message, **context},
        )

    def _parse(self, doc_id: str, data: Document) -> Optional[PageSetting]:
        try:
            return PageSetting.model_validate({**data, "id": data.get("id") or doc_id})
        except PydanticValidationError:
            logger.warning("pages.malformed_setting", extra={"page_id": doc_id})
            return None

    # ===== WRITES =====

    async def upsert(self, setting: PageSetting) -> str:
        """Write a setting under its deterministic id and return that id.

        Rewriting the same (owner, tenant, pageType) keeps the original
        createdAt and replaces everything else.
        """
        page_id = make_page_setting_id(setting.owner_id, setting.tenant_id, setting.page_type)
        document = setting.model_copy(update={"id": page_id}).to_document()

        def apply(current: Optional[Document]) -> Document:
            if current and current.get("createdAt"):
                document["createdAt"] = current["createdAt"]
            return document

        with start_span("pages.upsert", {"page_id": page_id, "tenant_id": setting.tenant_id}):
            await self.store.transform(PAGE_SETTINGS_COLLECTION, page_id, apply)
        logger.info("pages.upserted", extra={"page_id": page_id, "tenant_id": setting.tenant_id})
        return page_id

    async def update(self, page_id: str, changes: Union[PageSettingUpdate, Dict[str, Any]]) -> PageSetting:
        """Apply a partial update. `settings` keys merge into the stored ones."""
        if not isinstance(changes, PageSettingUpdate):
            try:
                changes = PageSettingUpdate.model_validate(changes)
            except PydanticValidationError as exc:
                raise ValidationError("Invalid page update", detail=str(exc)) from exc
        patch = changes.changes()

        current = await self.store.get(PAGE_SETTINGS_COLLECTION, page_id)
        if current is None:
            raise NotFoundError(f"Page setting {page_id} not found")
        candidate = _validate({**_merge(current, patch), "id": page_id})
        if candidate.settings.enabled:
            await self.ensure_route_available(candidate.tenant_id, candidate.route, exclude_id=page_id)

        def apply(existing: Optional[Document]) -> Document:
            if existing is None:
                raise NotFoundError(f"Page setting {page_id} not found")
            merged = _validate({**_merge(existing, patch), "id": page_id}).to_document()
            merged["updatedAt"] = _utcnow_iso()
            return merged

        with start_span("pages.update", {"page_id": page_id}):
            updated = await self.store.transform(PAGE_SETTINGS_COLLECTION, page_id, apply)
        return PageSetting.model_validate(updated)

    async def remove(self, page_id: str) -> bool:
        """Delete a setting. Returns False when there was nothing to delete."""
        existing = await self.store.get(PAGE_SETTINGS_COLLECTION, page_id)
        if existing is None:
            return False
        await self.store.delete(PAGE_SETTINGS_COLLECTION, page_id)
        logger.info("pages.removed", extra={"page_id": page_id})
        return True

    async def ensure_route_available(self, tenant_id: str, route: str, exclude_id: Optional[str] = None) -> None:
        """Raise ConflictError if another enabled page already serves `route`."""
        found = await self.store.query(
            PAGE_SETTINGS_COLLECTION,
            {"storefrontId": tenant_id, "route": route, "settings.enabled": True},
        )
        for doc in found:
            if doc.id != exclude_id:
                raise ConflictError(
                    f"Route {route} is already served by page '{doc.data.get('pageType')}'",
                    detail=doc.id,
                )

    async def _create_if_absent(self, setting: PageSetting) -> bool:
        document = setting.to_document()
        created = []

        def apply(current: Optional[Document]) -> Optional[Document]:
            if current is not None:
                return None
            created.append(True)
            return document

        await self.store.transform(PAGE_SETTINGS_COLLECTION, setting.id, apply)
        return bool(created)

    async def bootstrap_defaults(self, tenant_id: str, owner_id: str) -> List[str]:
        """Seed the standard page set, leaving pages that already exist alone."""
        created = []
        with start_span("pages.bootstrap", {"tenant_id": tenant_id, "user_id": owner_id}):
            for page in default_pages(tenant_id, owner_id):
                if await self._create_if_absent(page):
                    created.append(page.id)
        logger.info("pages.bootstrapped", extra={"tenant_id": tenant_id, "created_count": len(created)})
        return created

    async def ensure_coverage(self, tenant_id: str, owner_id: str, page_types: Sequence[str]) -> List[str]:
        """Create an enabled static page for every page type with no setting yet.

        A page type whose natural route is already served is created
        disabled instead.
        """
        created = []
        with start_span("pages.ensure_coverage", {"tenant_id": tenant_id, "user_id": owner_id}):
            for page_type in page_types:
                if await self.find(tenant_id, page_type) is not None:
                    continue
                route = coverage_route(page_type)
                route_taken = await self.get_by_route(tenant_id, route, only_enabled=True) is not None
                page = PageSetting.build(
                    owner_id=owner_id,
                    tenant_id=tenant_id,
                    page_type=page_type,
                    route=route,
                    order=0,
                    settings=PageSettings(
                        enabled=not route_taken,
                        show_in_menu=page_type != "home",
                        show_in_footer=True,
                        meta_title=page_type[:1].upper() + page_type[1:],
                    ),
                )
                if await self._create_if_absent(page):
                    created.append(page.id)
        if created:
            logger.info("pages.coverage_created", extra={"tenant_id": tenant_id, "created_count": len(created)})
        return created

    # ===== READS =====

    async def find(self, tenant_id: str, page_type: str, owner_id: Optional[str] = None) -> Optional[PageSetting]:
        """Look a setting up by key. Store failures propagate.

        With an owner the deterministic id is tried first. Either way the
        fallback is a scan by (tenant, pageType) alone, so a page written by
        another owner, or before owner ids existed, is still found.
        """
        if owner_id:
            page_id = make_page_setting_id(owner_id, tenant_id, page_type)
            data = await self.store.get(PAGE_SETTINGS_COLLECTION, page_id)
            if data is not None:
                return self._parse(page_id, data)

        where = {"storefrontId": tenant_id, "pageType": page_type}
        for doc in await self.store.query(PAGE_SETTINGS_COLLECTION, where, limit=1):
            return self._parse(doc.id, doc.data)
        return None

    async def get_by_key(self, tenant_id: str, page_type: str, owner_id: Optional[str] = None) -> Optional[PageSetting]:
        try:
            return await self.find(tenant_id, page_type, owner_id)
        except StoreUnavailableError as exc:
            self._degraded("get_by_key", exc, tenant_id=tenant_id, page_type=page_type)
            return None

    async def list_by_tenant(
        self,
        tenant_id: str,
        only_enabled: bool = True,
        owner_id: Optional[str] = None,
    ) -> List[PageSetting]:
        where: Dict[str, Any] = {"storefrontId": tenant_id}
        if only_enabled:
            where["settings.enabled"] = True
        if owner_id:
            where["userId"] = owner_id
        try:
            found = await self.store.query(PAGE_SETTINGS_COLLECTION, where)
        except StoreUnavailableError as exc:
            self._degraded("list_by_tenant", exc, tenant_id=tenant_id)
            return []
        pages = [page for page in (self._parse(doc.id, doc.data) for doc in found) if page is not None]
        return sorted(pages, key=lambda page: (page.order, page.page_type))

    async def get_by_route(
        self,
        tenant_id: str,
        route: str,
        only_enabled: bool = True,
        owner_id: Optional[str] = None,
    ) -> Optional[PageSetting]:
        where: Dict[str, Any] = {"storefrontId": tenant_id, "route": route}
        if only_enabled:
            where["settings.enabled"] = True
        if owner_id:
            where["userId"] = owner_id
        try:
            found = await self.store.query(PAGE_SETTINGS_COLLECTION, where, limit=1)
        except StoreUnavailableError as exc:
            self._degraded("get_by_route", exc, tenant_id=tenant_id, route=route)
            return None
        for doc in found:
            return self._parse(doc.id, doc.data)
        return None

    async def resolve_content(self, setting: PageSetting) -> Any:
        return await ContentResolver(self.store, transport=self._transport).resolve(setting)


_page_store: Optional[PageConfigurationStore] = None


def get_page_store() -> PageConfigurationStore:
    global _page_store
    if _page_store is None:
        _page_store = PageConfigurationStore()
    return _page_store
