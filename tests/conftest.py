"""Shared fixtures: an in-memory database, a recording executor and a fixed clock."""

import hashlib
import hmac
from datetime import datetime, timezone

import pytest

from maintainer_firewall.actions import ActionExecutor
from maintainer_firewall.common import (
    ActionFailure,
    ActionValidationError,
    Alert,
    DeliveryMetric,
    FailureNotFoundError,
    FixedClock,
    RemoteActionError,
    RetryStatus,
    Rule,
    RuleCreate,
    StoreError,
    SuggestionType,
    WebhookEvent,
    ensure_utc,
)

WEBHOOK_SECRET = "test-webhook-secret"
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    """Build an X-Hub-Signature-256 header value for ``body``."""
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class InMemoryDatabase:
    """In-memory mock database for testing.

    Mirrors the storage contract: delivery_id is unique, timestamps are
    normalized to UTC, and failures are only counted while unresolved.
    """

    def __init__(self):
        self.events: dict[str, WebhookEvent] = {}
        self.rules: list[Rule] = []
        self.alerts: list[Alert] = []
        self.failures: dict[int, ActionFailure] = {}
        self.delivery_metrics: list[DeliveryMetric] = []
        self.fail_alert_writes = False
        self.fail_failure_writes = False

    async def connect(self):
        pass

    async def close(self):
        pass

    # Events

    async def record_event(
        self, delivery_id, event_type, action, repository_full_name, sender_login, payload, received_at
    ):
        existing = self.events.get(delivery_id)
        if existing is not None:
            return existing, False
        event = WebhookEvent(
            id=len(self.events) + 1,
            delivery_id=delivery_id,
            event_type=event_type,
            action=action,
            repository_full_name=repository_full_name,
            sender_login=sender_login,
            payload=payload,
            received_at=ensure_utc(received_at),
        )
        self.events[delivery_id] = event
        return event, True

    async def count_events_since(self, since):
        return len(await self.event_timestamps_since(since))

    async def event_timestamps_since(self, since):
        since = ensure_utc(since)
        return [e.received_at for e in self.events.values() if e.received_at >= since]

    # Rules

    async def list_active_rules(self, event_type):
        return [
            r for r in self.rules if r.is_active and r.event_type.lower() == event_type.lower()
        ]

    async def create_rule(self, rule: RuleCreate, created_at):
        stored = Rule(id=len(self.rules) + 1, created_at=ensure_utc(created_at), **rule.model_dump())
        self.rules.append(stored)
        return stored

    async def set_rule_active(self, rule_id, is_active):
        for rule in self.rules:
            if rule.id == rule_id:
                rule.is_active = is_active
                return True
        return False

    async def count_rules(self):
        return len(self.rules)

    def add_rule(self, event_type, keyword, suggestion_type, value, is_active=True) -> Rule:
        rule = Rule(
            id=len(self.rules) + 1,
            event_type=event_type,
            keyword=keyword,
            suggestion_type=suggestion_type,
            suggestion_value=value,
            reason=f"contains {keyword} keyword",
            is_active=is_active,
            created_at=NOW,
        )
        self.rules.append(rule)
        return rule

    # Alerts

    async def record_alert(self, event, suggestion, created_at):
        if self.fail_alert_writes:
            raise StoreError("insert alert: connection reset")
        alert = Alert(
            id=len(self.alerts) + 1,
            delivery_id=event.delivery_id,
            rule_id=suggestion.rule_id,
            event_type=event.event_type,
            action=event.action,
            suggestion_type=suggestion.suggestion_type,
            suggestion_value=suggestion.suggestion_value,
            reason=suggestion.reason,
            created_at=ensure_utc(created_at),
        )
        self.alerts.append(alert)
        return alert

    async def count_alerts_since(self, since):
        return len(await self.alert_timestamps_since(since))

    async def alert_timestamps_since(self, since):
        since = ensure_utc(since)
        return [a.created_at for a in self.alerts if a.created_at >= since]

    # Action failures

    async def record_action_failure(self, failure):
        if self.fail_failure_writes:
            raise StoreError("insert action failure: connection reset")
        stored = failure.model_copy(update={"id": len(self.failures) + 1, "failed_at": ensure_utc(failure.failed_at)})
        self.failures[stored.id] = stored
        return stored

    async def get_action_failure(self, failure_id):
        if failure_id not in self.failures:
            raise FailureNotFoundError(f"action failure {failure_id} not found")
        return self.failures[failure_id]

    async def update_action_failure_retry(self, failure_id, success, message, retried_at):
        failure = await self.get_action_failure(failure_id)
        updated = failure.model_copy(
            update={
                "retry_count": failure.retry_count + 1,
                "last_retry_status": RetryStatus.SUCCESS if success else RetryStatus.FAILED,
                "last_retry_message": message.strip(),
                "last_retry_at": ensure_utc(retried_at),
                "is_resolved": failure.is_resolved or success,
            }
        )
        self.failures[failure_id] = updated
        return updated

    async def count_failures_since(self, since):
        since = ensure_utc(since)
        return sum(1 for f in self.failures.values() if f.failed_at >= since and not f.is_resolved)

    async def failure_timestamps_since(self, since):
        since = ensure_utc(since)
        return [f.failed_at for f in self.failures.values() if f.failed_at >= since]

    # Delivery metrics

    async def record_delivery_metric(self, metric):
        self.delivery_metrics.append(metric.model_copy(update={"recorded_at": ensure_utc(metric.recorded_at)}))

    async def delivery_metrics_since(self, since):
        since = ensure_utc(since)
        return [(m.success, m.processing_ms) for m in self.delivery_metrics if m.recorded_at >= since]


class RecordingExecutor(ActionExecutor):
    """Executor that records calls and fails according to a script.

    ``errors`` is consumed one entry per remote call; ``None`` means success.
    Once exhausted, calls succeed.
    """

    def __init__(self, errors=None, token="test-token"):
        self.errors = list(errors or [])
        self.token = token
        self.calls: list[tuple[SuggestionType, str, int, str]] = []
        self.closed = False

    def _check(self, repo, number, value, what):
        if not self.token:
            raise ActionValidationError("github token is not configured")
        if not repo or repo == "unknown":
            raise ActionValidationError("invalid repository full name")
        if number <= 0:
            raise ActionValidationError("invalid issue/pull_request number")
        if not value.strip():
            raise ActionValidationError(f"empty {what}")

    def check_label(self, repo, number, label):
        self._check(repo, number, label, "label")

    def check_comment(self, repo, number, body):
        self._check(repo, number, body, "comment")

    async def _call(self, kind, repo, number, value):
        self.calls.append((kind, repo, number, value))
        error = self.errors.pop(0) if self.errors else None
        if error is not None:
            raise error

    async def apply_label(self, repo, number, label):
        await self._call(SuggestionType.LABEL, repo, number, label)

    async def add_comment(self, repo, number, body):
        await self._call(SuggestionType.COMMENT, repo, number, body)

    async def close(self):
        self.closed = True


def server_error(status: int = 500) -> RemoteActionError:
    return RemoteActionError("Internal Server Error", status=status)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def mock_db():
    """Create an in-memory database."""
    return InMemoryDatabase()


@pytest.fixture
def clock():
    """Create a clock fixed at NOW (UTC)."""
    return FixedClock(NOW)


@pytest.fixture
def executor():
    """Create an executor whose calls all succeed."""
    return RecordingExecutor()


@pytest.fixture
def sleep():
    """Create a sleep that returns immediately."""
    return RecordingSleep()
