import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from storefronts.core.logging import latency_bucket_ms, request_id_ctx_var

logger = logging.getLogger("storefronts")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind an x-request-id to the request and log one line when it completes.

    The completion line names the storefront tenant when the edge router
    rewrote the request, so platform and storefront traffic can be told apart.
    """

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)
        response.headers[self.header_name] = rid

        storefront = getattr(request.state, "storefront", None)
        logger.info(
            "request.complete",
            extra={
                "request_id": rid,
                "tenant_id": storefront.tenant_id if storefront is not None else None,
                "traffic": "storefront" if storefront is not None else "platform",
                "path": request.url.path,
                "method": request.method,
                "status": response.status_code,
                "latency_bucket": latency_bucket_ms((time.perf_counter() - started) * 1000),
            },
        )
        return response
