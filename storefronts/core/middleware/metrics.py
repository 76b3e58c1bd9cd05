from starlette.middleware.base import BaseHTTPMiddleware

from storefronts.core.metrics import http_requests_total, normalize_path
from storefronts.features.routing.models import STOREFRONT_PREFIX


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count requests by method, route and status."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        http_requests_total.inc(labels={
            "method": request.method.upper(),
            "path": metric_path(request.scope),
            "status": str(response.status_code),
        })
        return response


def metric_path(scope) -> str:
    """Series name for a request path.

    Tenant ids and storefront paths are tenant-controlled, so matched routes
    report their template (/api/storefront/{tenant_id}/pages) and everything
    under the storefront prefix shares one series.
    """
    path = scope.get("path", "")
    if path == STOREFRONT_PREFIX or path.startswith(STOREFRONT_PREFIX + "/"):
        return STOREFRONT_PREFIX + "/*"
    route = scope.get("route")
    template = getattr(route, "path", None)
    if template:
        return template
    return normalize_path(path)
