"""Prometheus scrape endpoint for the in-process counters."""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from storefronts.core.metrics import METRICS

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

router = APIRouter(tags=["metrics"])


@router.get("/metrics", include_in_schema=False)
def metrics_endpoint():
    """Edge decisions, quota denials, degraded reads and HTTP request counts."""
    return PlainTextResponse(METRICS.export_prometheus(), headers={"content-type": PROMETHEUS_CONTENT_TYPE})
