"""Error taxonomy and FastAPI handlers."""

import logging
from typing import Optional
from uuid import uuid4

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.requests import Request

from storefronts.core.logging import get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id
        self.detail = detail

    def payload_extras(self) -> dict:
        return {}


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class NotFoundError(AppError, LookupError):
    code = "not_found"
    status_code = 404


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class QuotaExceededError(AppError):
    """Plan limit reached; carries the counter and the limit it hit."""

    code = "quota_exceeded"
    status_code = 403

    def __init__(self, message: str, *, current: int, max: int, **kwargs):
        super().__init__(message, **kwargs)
        self.current = current
        self.max = max

    def payload_extras(self) -> dict:
        return {"limit": {"current": self.current, "max": self.max}}


class StoreUnavailableError(AppError):
    """The document store failed or timed out."""

    code = "store_unavailable"
    status_code = 500


logger = logging.getLogger("storefronts")


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or str(uuid4())


def _respond(
    request_id: str,
    status_code: int,
    code: str,
    message: str,
    detail: Optional[str] = None,
    extras: Optional[dict] = None,
) -> JSONResponse:
    """Render the error contract: {"error": {code, message, request_id, detail?}, "detail": message}."""
    error = {"code": code, "message": message, "request_id": request_id}
    if detail:
        error["detail"] = detail
    payload = {"error": error, "detail": message}
    payload.update(extras or {})
    response = JSONResponse(status_code=status_code, content=payload)
    response.headers["x-request-id"] = request_id
    return response


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _request_id(request)
    logger.log(
        logging.ERROR if exc.status_code >= 500 else logging.WARNING,
        "app.error",
        extra={
            "request_id": rid,
            "error_code": exc.code,
            "error_message": exc.message,
            "error_detail": exc.detail,
            "status": exc.status_code,
        },
    )
    return _respond(rid, exc.status_code, exc.code, exc.message, exc.detail, exc.payload_extras())


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Body/query validation failures are 400s, not FastAPI's 422."""
    rid = _request_id(request)
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    logger.warning("request.invalid", extra={"request_id": rid, "error_code": "validation_error", "status": 400})
    return _respond(rid, 400, "validation_error", "Invalid request", "; ".join(problems) or None)


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    return _respond(rid, exc.status_code, code, str(exc.detail or "HTTP error"))


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _request_id(request)
    logger.error("unhandled.exception", exc_info=exc, extra={"request_id": rid, "error_code": "internal_error"})
    return _respond(rid, 500, "internal_error", "Unexpected error")
