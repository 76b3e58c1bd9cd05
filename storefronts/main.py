import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException

# Load env from the repository root
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(os.path.dirname(package_dir), ".env"))

from storefronts.core.config import settings, validate_config
from storefronts.core.database import create_all_tables
from storefronts.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_error_handler,
    unhandled_exception_handler,
)
from storefronts.core.logging import configure_logging
from storefronts.core.middleware.edge import EdgeRoutingMiddleware
from storefronts.core.middleware.metrics import MetricsMiddleware
from storefronts.core.middleware.request_id import RequestIdMiddleware
from storefronts.core.tracing import setup_tracing
from storefronts.api import health, limits, metrics, pages, storefront
from storefronts.features.plans.service import get_quota_tracker

configure_logging(settings.ENV)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))
setup_tracing(enabled=settings.OTEL_ENABLED)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("storefronts")
    logger.info("Starting storefronts service...")
    if settings.DOCSTORE_BACKEND == "sql":
        create_all_tables()
    await get_quota_tracker().seed_plans()
    try:
        yield
    finally:
        logging.getLogger("storefronts").info("Stopping storefronts service...")


app = FastAPI(title="Storefronts", lifespan=lifespan)

# Middlewares (last added runs first)
app.add_middleware(MetricsMiddleware)
app.add_middleware(EdgeRoutingMiddleware)
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(pages.router)
app.include_router(limits.router)
app.include_router(storefront.router)
app.include_router(health.router)
app.include_router(metrics.router)
