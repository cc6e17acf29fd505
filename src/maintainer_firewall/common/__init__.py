"""Common utilities and models for Maintainer Firewall."""

from .clock import Clock, FixedClock, SystemClock, ensure_utc, get_clock, utc_now
from .errors import (
    ActionValidationError,
    FailureNotFoundError,
    InvalidPayloadError,
    InvalidSignatureError,
    MaintainerFirewallError,
    MisconfiguredError,
    RemoteActionError,
    StoreError,
    SyncInProgressError,
)
from .models import (
    ActionFailure,
    ActionStatus,
    Alert,
    DeliveryMetric,
    MetricsOverview,
    MetricsTimePoint,
    MetricsWindow,
    RecentEvent,
    RetryStatus,
    Rule,
    RuleCreate,
    Suggestion,
    SuggestionType,
    SyncStatus,
    WebhookEvent,
)

__all__ = [
    # Clock
    "Clock",
    "FixedClock",
    "SystemClock",
    "ensure_utc",
    "get_clock",
    "utc_now",
    # Errors
    "MaintainerFirewallError",
    "InvalidSignatureError",
    "MisconfiguredError",
    "InvalidPayloadError",
    "ActionValidationError",
    "RemoteActionError",
    "StoreError",
    "FailureNotFoundError",
    "SyncInProgressError",
    # Models
    "ActionFailure",
    "ActionStatus",
    "Alert",
    "DeliveryMetric",
    "MetricsOverview",
    "MetricsTimePoint",
    "MetricsWindow",
    "RecentEvent",
    "RetryStatus",
    "Rule",
    "RuleCreate",
    "Suggestion",
    "SuggestionType",
    "SyncStatus",
    "WebhookEvent",
]
