"""
Metrics Router - Prometheus Metrics Endpoint

Exposes /metrics for scraping: HTTP traffic, reservations created,
booking rejections by reason and price override writes.
"""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from ..utils.metrics import format_prometheus_metrics

router = APIRouter(prefix="/metrics", tags=["Metrics"])


@router.get("", response_class=PlainTextResponse)
async def get_metrics():
    return PlainTextResponse(
        content=format_prometheus_metrics(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )
