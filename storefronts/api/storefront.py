"""Storefront page resolution.

Requests reach these routes through the edge rewrite, which leaves the
routing decision on request.state.storefront. Without one there is no
tenant to serve and the request is a 404.
"""

import logging

from fastapi import APIRouter, Request

from storefronts.core.errors import NotFoundError
from storefronts.core.logging import get_request_id
from storefronts.core.tracing import start_span
from storefronts.features.pages.navigation import build_footer, build_menu, standard_page_type
from storefronts.features.pages.service import get_page_store
from storefronts.features.routing.models import STOREFRONT_PREFIX

logger = logging.getLogger("storefronts")

router = APIRouter(prefix=STOREFRONT_PREFIX, tags=["storefront"])


async def _render(request: Request, route: str) -> dict:
    decision = getattr(request.state, "storefront", None)
    if decision is None:
        raise NotFoundError("Storefront not found")

    tenant_id = decision.tenant_id
    store = get_page_store()
    with start_span("storefront.render", {"tenant_id": tenant_id, "route": route}):
        page = await store.get_by_route(tenant_id, route)
        if page is not None:
            page_type = page.page_type
            content = await store.resolve_content(page)
        else:
            page_type = standard_page_type(route)
            content = None
            if page_type is None:
                raise NotFoundError(f"No page at {route}")

        pages = await store.list_by_tenant(tenant_id)

    logger.debug("storefront.rendered", extra={"route": route, "page_type": page_type})
    return {
        "data": {
            "tenantId": tenant_id,
            "isCustomDomain": decision.is_custom_domain,
            "route": route,
            "pageType": page_type,
            "page": page.to_document() if page is not None else None,
            "content": content,
            "menu": build_menu(pages),
            "footer": build_footer(pages),
        },
        "request_id": getattr(request.state, "request_id", None) or get_request_id(),
    }


@router.get("")
async def storefront_home(request: Request):
    return await _render(request, "/")


@router.get("/{path:path}")
async def storefront_page(path: str, request: Request):
    return await _render(request, "/" + path.strip("/"))
