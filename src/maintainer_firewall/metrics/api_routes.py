"""FastAPI routes for dashboard metrics."""

from typing import Any

from fastapi import APIRouter, HTTPException

from ..common import MetricsWindow, StoreError
from .aggregator import get_metrics_aggregator

metrics_router = APIRouter(prefix="/api/metrics", tags=["metrics"])


def _parse_window(window: str) -> MetricsWindow:
    try:
        return MetricsWindow.parse(window)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"ok": False, "message": str(e)})


@metrics_router.get("/overview")
async def metrics_overview(window: str = "24h") -> dict[str, Any]:
    """
    Aggregate counts for a rolling window.

    Args:
        window: One of 6h, 12h, 24h.
    """
    parsed = _parse_window(window)
    try:
        overview = await get_metrics_aggregator().overview(parsed)
    except StoreError as e:
        raise HTTPException(status_code=500, detail={"ok": False, "message": f"get metrics overview failed: {e}"})

    return {
        "ok": True,
        "window": parsed.value,
        "since": overview.since.isoformat(),
        "overview": overview.model_dump(mode="json"),
    }


@metrics_router.get("/timeseries")
async def metrics_timeseries(window: str = "24h", interval_minutes: int = 60) -> dict[str, Any]:
    """
    Bucketed counts for a rolling window.

    Args:
        window: One of 6h, 12h, 24h.
        interval_minutes: Bucket width; non-positive values fall back to 60.
    """
    parsed = _parse_window(window)
    if interval_minutes <= 0:
        interval_minutes = 60
    try:
        aggregator = get_metrics_aggregator()
        items = await aggregator.timeseries(parsed, interval_minutes)
    except StoreError as e:
        raise HTTPException(status_code=500, detail={"ok": False, "message": f"get metrics timeseries failed: {e}"})

    return {
        "ok": True,
        "window": parsed.value,
        "interval_minutes": interval_minutes,
        "since": aggregator.window_start(parsed).isoformat(),
        "items": [item.model_dump(mode="json") for item in items],
    }
