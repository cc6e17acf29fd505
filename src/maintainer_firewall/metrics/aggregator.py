"""Rolling-window metrics over events, alerts, failures and deliveries.

``since`` is ``clock.now() - window`` in UTC and is compared against UTC
timestamps stamped by the same clock on the write path.
"""

import logging
from datetime import datetime, timedelta, timezone

from ..common import Clock, MetricsOverview, MetricsTimePoint, MetricsWindow, ensure_utc, get_clock
from ..storage import Database, get_database

logger = logging.getLogger("maintainer_firewall.metrics")

P95 = 0.95
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class MetricsAggregator:
    """Computes windowed aggregates for the dashboard."""

    def __init__(self, db: Database | None = None, clock: Clock | None = None):
        self._db = db or get_database()
        self._clock = clock or get_clock()

    def window_start(self, window: MetricsWindow) -> datetime:
        """Start of the window ending now, in UTC."""
        return ensure_utc(self._clock.now()) - window.duration

    async def overview(self, window: MetricsWindow | str) -> MetricsOverview:
        """Counts, delivery success rate and p95 latency for the window."""
        if isinstance(window, str):
            window = MetricsWindow.parse(window)
        since = self.window_start(window)

        deliveries = await self._db.delivery_metrics_since(since)
        latencies = sorted(ms for _, ms in deliveries)
        successes = sum(1 for ok, _ in deliveries if ok)

        return MetricsOverview(
            window=window,
            since=since,
            events=await self._db.count_events_since(since),
            alerts=await self._db.count_alerts_since(since),
            failures=await self._db.count_failures_since(since),
            success_rate=(successes / len(deliveries)) * 100 if deliveries else 0.0,
            p95_latency_ms=float(latencies[int((len(latencies) - 1) * P95)]) if latencies else 0.0,
        )

    async def timeseries(
        self,
        window: MetricsWindow | str,
        interval_minutes: int = 60,
    ) -> list[MetricsTimePoint]:
        """Per-bucket counts from the window start to now, empty buckets included."""
        if isinstance(window, str):
            window = MetricsWindow.parse(window)
        if interval_minutes <= 0:
            interval_minutes = 60

        step = timedelta(minutes=interval_minutes)
        now = ensure_utc(self._clock.now())
        since = now - window.duration
        start = _floor(since, step)

        buckets: dict[datetime, MetricsTimePoint] = {}
        bucket = start
        while bucket <= now:
            buckets[bucket] = MetricsTimePoint(bucket_start=bucket)
            bucket += step

        def fill(timestamps: list[datetime], field: str) -> None:
            for ts in timestamps:
                point = buckets.get(_floor(ensure_utc(ts), step))
                if point is not None:
                    setattr(point, field, getattr(point, field) + 1)

        fill(await self._db.event_timestamps_since(since), "events")
        fill(await self._db.alert_timestamps_since(since), "alerts")
        fill(await self._db.failure_timestamps_since(since), "failures")

        return list(buckets.values())


def _floor(value: datetime, step: timedelta) -> datetime:
    """Truncate a UTC datetime to a multiple of ``step`` since the epoch."""
    return _EPOCH + ((value - _EPOCH) // step) * step


# Global instance
_metrics_aggregator: MetricsAggregator | None = None


def get_metrics_aggregator() -> MetricsAggregator:
    """Get the global metrics aggregator instance."""
    global _metrics_aggregator
    if _metrics_aggregator is None:
        _metrics_aggregator = MetricsAggregator()
    return _metrics_aggregator


def set_metrics_aggregator(aggregator: MetricsAggregator | None) -> None:
    """Set the global metrics aggregator instance (for testing)."""
    global _metrics_aggregator
    _metrics_aggregator = aggregator
