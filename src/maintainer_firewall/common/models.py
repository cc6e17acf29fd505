"""Shared Pydantic models for Maintainer Firewall."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .clock import utc_now


class SuggestionType(str, Enum):
    """Kinds of remote action a rule can suggest."""

    LABEL = "label"
    COMMENT = "comment"


class ActionStatus(str, Enum):
    """Status of an action attempt."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RetryStatus(str, Enum):
    """Outcome of the latest manual retry of an action failure."""

    NEVER = "never"
    SUCCESS = "success"
    FAILED = "failed"


class WebhookEvent(BaseModel):
    """A received webhook delivery. Immutable once stored."""

    id: int | None = None
    delivery_id: str
    event_type: str
    action: str = ""
    repository_full_name: str = "unknown"
    sender_login: str = "unknown"
    payload: dict[str, Any] = Field(default_factory=dict)
    received_at: datetime


class RecentEvent(BaseModel):
    """An event listed from the GitHub user events feed, not yet stored."""

    delivery_id: str
    event_type: str
    action: str = "unknown"
    repository_full_name: str = "unknown"
    sender_login: str = "unknown"
    payload: dict[str, Any] = Field(default_factory=dict)


class SyncStatus(BaseModel):
    """Progress of the periodic GitHub events sync."""

    running: bool = False
    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_success_at: datetime | None = None
    last_saved: int = 0
    last_total: int = 0
    last_error: str = ""
    success_count: int = 0
    failure_count: int = 0


class Rule(BaseModel):
    """A maintainer-configured matching rule."""

    id: int
    event_type: str
    keyword: str
    suggestion_type: SuggestionType
    suggestion_value: str
    reason: str = ""
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)


class RuleCreate(BaseModel):
    """Fields required to create a rule."""

    event_type: str
    keyword: str
    suggestion_type: SuggestionType
    suggestion_value: str
    reason: str = ""
    is_active: bool = True


class Suggestion(BaseModel):
    """Result of one rule matching one event."""

    rule_id: int
    suggestion_type: SuggestionType
    suggestion_value: str
    reason: str = ""
    keyword: str = ""


class Alert(BaseModel):
    """A persisted rule hit, linked to its event by delivery_id."""

    id: int | None = None
    delivery_id: str
    rule_id: int
    event_type: str
    action: str = ""
    suggestion_type: SuggestionType
    suggestion_value: str
    reason: str = ""
    created_at: datetime


class ActionFailure(BaseModel):
    """A remote action that exhausted its retry budget."""

    id: int | None = None
    delivery_id: str
    repository_full_name: str
    number: int
    action_kind: SuggestionType
    payload: dict[str, Any] = Field(default_factory=dict)
    error: str
    attempt_count: int
    failed_at: datetime
    retry_count: int = 0
    last_retry_status: RetryStatus = RetryStatus.NEVER
    last_retry_message: str = ""
    last_retry_at: datetime | None = None
    is_resolved: bool = False


class DeliveryMetric(BaseModel):
    """Timing and outcome of one webhook delivery."""

    event_type: str
    delivery_id: str
    success: bool
    processing_ms: int
    recorded_at: datetime


class MetricsWindow(str, Enum):
    """Supported rolling windows for aggregate metrics."""

    SIX_HOURS = "6h"
    TWELVE_HOURS = "12h"
    DAY = "24h"

    @property
    def duration(self) -> timedelta:
        return _WINDOW_DURATIONS[self]

    @classmethod
    def parse(cls, value: str) -> "MetricsWindow":
        """Parse a window name, accepting ``1d`` and ``day`` for ``24h``.

        Raises:
            ValueError: If the value names no supported window.
        """
        normalized = value.strip().lower()
        if normalized in ("1d", "day"):
            return cls.DAY
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError("window must be one of: 6h, 12h, 24h") from None


_WINDOW_DURATIONS = {
    MetricsWindow.SIX_HOURS: timedelta(hours=6),
    MetricsWindow.TWELVE_HOURS: timedelta(hours=12),
    MetricsWindow.DAY: timedelta(hours=24),
}


class MetricsOverview(BaseModel):
    """Rolling-window counts over events, alerts, failures and deliveries."""

    window: MetricsWindow
    since: datetime
    events: int = 0
    alerts: int = 0
    failures: int = 0
    success_rate: float = 0.0  # Percentage of successful deliveries
    p95_latency_ms: float = 0.0


class MetricsTimePoint(BaseModel):
    """Counts for one time bucket."""

    bucket_start: datetime
    events: int = 0
    alerts: int = 0
    failures: int = 0
