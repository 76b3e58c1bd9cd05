"""Liveness and readiness probes."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from storefronts.core.config import settings
from storefronts.core.database import check_connection

logger = logging.getLogger("storefronts")

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Readiness check: the document table answers (sql backend only)."""
    if settings.DOCSTORE_BACKEND == "memory":
        return {"status": "ok", "backend": "memory"}
    if not check_connection():
        logger.warning("readyz.document_store_unreachable")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "document store unreachable"})
    return {"status": "ok", "backend": "sql"}
