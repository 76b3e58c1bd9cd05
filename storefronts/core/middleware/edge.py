"""Apply edge routing decisions to incoming requests."""

import logging
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from storefronts.core.logging import tenant_id_ctx_var
from storefronts.core.metrics import edge_decisions_total
from storefronts.features.routing.models import STOREFRONT_PREFIX, RoutingConfig
from storefronts.features.routing.service import resolve

logger = logging.getLogger("storefronts")

STOREFRONT_ID_HEADER = "x-storefront-id"
STOREFRONT_SUBDOMAIN_HEADER = "x-storefront-subdomain"
CUSTOM_DOMAIN_HEADER = "x-is-custom-domain"

_CONTEXT_HEADERS = {
    STOREFRONT_ID_HEADER.encode("latin-1"),
    STOREFRONT_SUBDOMAIN_HEADER.encode("latin-1"),
    CUSTOM_DOMAIN_HEADER.encode("latin-1"),
}


class EdgeRoutingMiddleware(BaseHTTPMiddleware):
    """Rewrite storefront traffic into the /storefront namespace.

    Routing context travels both as request.state.storefront and as the
    x-storefront-* headers. Client-supplied copies of those headers are
    always dropped.
    """

    def __init__(self, app, config: Optional[RoutingConfig] = None):
        super().__init__(app)
        self.config = config

    async def dispatch(self, request: Request, call_next):
        scope = request.scope
        scope["headers"] = [(k, v) for k, v in scope["headers"] if k.lower() not in _CONTEXT_HEADERS]

        decision = resolve(request.headers.get("host", ""), scope["path"], self.config)
        if decision.pass_through:
            edge_decisions_total.inc(labels={"outcome": "pass_through", "reason": decision.reason})
            request.state.storefront = None
            return await call_next(request)

        edge_decisions_total.inc(labels={"outcome": "storefront", "reason": "custom_domain" if decision.is_custom_domain else "subdomain"})
        scope["headers"] = scope["headers"] + [
            (STOREFRONT_ID_HEADER.encode("latin-1"), decision.tenant_id.encode("latin-1", "replace")),
            (STOREFRONT_SUBDOMAIN_HEADER.encode("latin-1"), (decision.raw_subdomain or "").encode("latin-1", "replace")),
            (CUSTOM_DOMAIN_HEADER.encode("latin-1"), b"true" if decision.is_custom_domain else b"false"),
        ]
        original_raw = scope.get("raw_path") or scope["path"].encode("utf-8")
        scope["raw_path"] = STOREFRONT_PREFIX.encode("latin-1") + (b"" if scope["path"] == "/" else original_raw)
        scope["path"] = decision.rewritten_path
        request.state.storefront = decision

        logger.debug("edge.rewrite", extra={"tenant_id": decision.tenant_id, "path": decision.rewritten_path})
        token = tenant_id_ctx_var.set(decision.tenant_id)
        try:
            return await call_next(request)
        finally:
            tenant_id_ctx_var.reset(token)
