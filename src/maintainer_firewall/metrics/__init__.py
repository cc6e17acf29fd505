"""Windowed metrics aggregation."""

from .aggregator import MetricsAggregator, get_metrics_aggregator, set_metrics_aggregator
from .api_routes import metrics_router

__all__ = [
    "MetricsAggregator",
    "get_metrics_aggregator",
    "set_metrics_aggregator",
    "metrics_router",
]
