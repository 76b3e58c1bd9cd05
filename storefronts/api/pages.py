"""Page settings API for one storefront.

Provides REST API for:
- Listing a tenant's pages
- Creating pages against the owner's page quota
- Partial updates and deletes keyed by pageType
- Seeding the default page set and backfilling missing page types
"""

from typing import Optional

from fastapi import APIRouter, Query, Request

from storefronts.core.errors import ValidationError
from storefronts.core.logging import get_request_id
from storefronts.core.tracing import start_span
from storefronts.features.lifecycle.service import get_page_lifecycle
from storefronts.features.pages.models import BootstrapPagesRequest, CreatePageRequest, EnsureCoverageRequest
from storefronts.features.pages.service import get_page_store
from storefronts.models.page_setting import PageSettingUpdate


router = APIRouter(prefix="/api/storefront/{tenant_id}/pages", tags=["pages"])


def _rid(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or get_request_id()


@router.get("")
async def list_pages(
    tenant_id: str,
    request: Request,
    all: bool = Query(False),
    user_id: Optional[str] = Query(None, alias="userId"),
):
    """Enabled pages for the tenant; `all=true` includes disabled ones."""
    with start_span("api.pages.list", {"tenant_id": tenant_id}):
        pages = await get_page_store().list_by_tenant(tenant_id, only_enabled=not all, owner_id=user_id)
    return {"data": [page.to_document() for page in pages], "request_id": _rid(request)}


@router.post("")
async def create_page(tenant_id: str, body: CreatePageRequest, request: Request):
    """Create a page.

    400 on missing fields or a route without a leading slash, 403 with
    `limit: {current, max}` when the page quota is used up, 409 when an
    enabled page already serves the route.
    """
    created = await get_page_lifecycle().create(
        owner_id=body.user_id or "",
        tenant_id=tenant_id,
        page_type=body.page_type or "",
        route=body.route or "",
        content_type=body.content_type,
        data_source=body.data_source,
        settings=body.settings,
        parent_id=body.parent_id,
        order=body.order,
    )
    return {
        "data": {
            "pageId": created.id,
            "message": "Page created successfully",
            "limit": created.limit.limit(),
        },
        "request_id": _rid(request),
    }


@router.patch("")
async def update_page(
    tenant_id: str,
    body: PageSettingUpdate,
    request: Request,
    page_type: Optional[str] = Query(None, alias="pageType"),
    user_id: Optional[str] = Query(None, alias="userId"),
):
    if not page_type:
        raise ValidationError("Page type is required")
    page = await get_page_lifecycle().update(tenant_id, page_type, body, owner_id=user_id)
    return {"data": page.to_document(), "request_id": _rid(request)}


@router.delete("")
async def delete_page(
    tenant_id: str,
    request: Request,
    page_type: Optional[str] = Query(None, alias="pageType"),
    user_id: Optional[str] = Query(None, alias="userId"),
):
    """Delete a page. Quota is only given back when userId is passed."""
    if not page_type:
        raise ValidationError("Page type is required")
    page_id = await get_page_lifecycle().delete(tenant_id, page_type, owner_id=user_id)
    return {"data": {"pageId": page_id, "message": "Page deleted successfully"}, "request_id": _rid(request)}


@router.post("/bootstrap")
async def bootstrap_pages(tenant_id: str, body: BootstrapPagesRequest, request: Request):
    created = await get_page_store().bootstrap_defaults(tenant_id, body.user_id)
    return {"data": {"created": created}, "request_id": _rid(request)}


@router.post("/ensure")
async def ensure_pages(tenant_id: str, body: EnsureCoverageRequest, request: Request):
    created = await get_page_store().ensure_coverage(tenant_id, body.user_id, body.page_types)
    return {"data": {"created": created}, "request_id": _rid(request)}
