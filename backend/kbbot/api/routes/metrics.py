"""Metrics endpoint for monitoring."""
from fastapi import APIRouter
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

# Imported so the sync and answer counters are registered before the first scrape
from kbbot.utils import metrics  # noqa: F401

router = APIRouter()


@router.get("/metrics")
async def get_metrics():
    """
    Get Prometheus-compatible metrics.

    Returns:
        Prometheus metrics in text format, including the sync and answer counters
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
