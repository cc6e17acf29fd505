"""Webhook intake pipeline.

verify signature -> record event (idempotent) -> match active rules ->
for each suggestion: record alert, then dispatch its action.

Everything up to and including the alert inserts happens before ``receive``
returns. There is no transaction across the event, alert and action steps;
an event stored with only some alerts, or alerts whose action never ran, is
an expected partial state.
"""

import json
import logging
import time
from uuid import uuid4

from pydantic import BaseModel, Field

from ..actions import ActionAttempt, ActionDispatcher, build_action, get_action_dispatcher
from ..common import (
    Alert,
    Clock,
    DeliveryMetric,
    InvalidPayloadError,
    StoreError,
    Suggestion,
    WebhookEvent,
    get_clock,
)
from ..common.payload import (
    UNKNOWN,
    extract_action,
    extract_repository_full_name,
    extract_sender_login,
    extract_target_number,
)
from ..config import settings
from ..rules import RuleMatcher, get_rule_matcher
from ..storage import Database, get_database
from .signature import require_valid_signature

logger = logging.getLogger("maintainer_firewall.intake")


class IntakeResult(BaseModel):
    """Outcome of one accepted delivery."""

    event: WebhookEvent
    is_new: bool
    suggestions: list[Suggestion] = Field(default_factory=list)
    alerts: list[Alert] = Field(default_factory=list)
    attempts: list[ActionAttempt] = Field(default_factory=list)

    @property
    def duplicate(self) -> bool:
        return not self.is_new


class IntakeService:
    """Accepts signed webhook deliveries and drives them through the pipeline."""

    def __init__(
        self,
        db: Database | None = None,
        matcher: RuleMatcher | None = None,
        dispatcher: ActionDispatcher | None = None,
        clock: Clock | None = None,
        secret: str | None = None,
    ):
        self._db = db or get_database()
        self._matcher = matcher or get_rule_matcher()
        self._dispatcher = dispatcher or get_action_dispatcher()
        self._clock = clock or get_clock()
        self._secret = secret if secret is not None else settings.github_webhook_secret

    async def receive(
        self,
        raw_body: bytes,
        signature_header: str | None,
        event_type_header: str | None,
        delivery_id_header: str | None,
    ) -> IntakeResult:
        """
        Process one webhook delivery.

        Args:
            raw_body: Request body exactly as received.
            signature_header: Value of X-Hub-Signature-256.
            event_type_header: Value of X-GitHub-Event.
            delivery_id_header: Value of X-GitHub-Delivery.

        Raises:
            MisconfiguredError: No webhook secret is configured.
            InvalidSignatureError: The signature does not match; nothing is stored.
            InvalidPayloadError: The body is not a JSON object.
            StoreError: The event or rules could not be read or written.
        """
        started = time.monotonic()
        event_type = (event_type_header or "").strip() or UNKNOWN
        delivery_id = (delivery_id_header or "").strip()
        if not delivery_id:
            delivery_id = f"missing-{uuid4().hex}"
            logger.warning(f"Delivery without X-GitHub-Delivery header, assigned {delivery_id}")

        success = False
        try:
            result = await self._process(raw_body, signature_header, event_type, delivery_id)
            success = True
            return result
        finally:
            await self._record_delivery(event_type, delivery_id, success, started)

    async def _process(
        self,
        raw_body: bytes,
        signature_header: str | None,
        event_type: str,
        delivery_id: str,
    ) -> IntakeResult:
        require_valid_signature(raw_body, signature_header, self._secret)

        # Parse JSON from already-verified bytes
        try:
            payload = json.loads(raw_body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidPayloadError(f"invalid JSON payload: {e}") from e
        if not isinstance(payload, dict):
            raise InvalidPayloadError("JSON payload must be an object")

        event, is_new = await self._db.record_event(
            delivery_id=delivery_id,
            event_type=event_type,
            action=extract_action(payload),
            repository_full_name=extract_repository_full_name(payload),
            sender_login=extract_sender_login(payload),
            payload=payload,
            received_at=self._clock.now(),
        )
        if not is_new:
            logger.info(f"Duplicate delivery {delivery_id} ({event_type}), skipping rule evaluation")
            return IntakeResult(event=event, is_new=False)

        rules = await self._db.list_active_rules(event.event_type)
        suggestions = self._matcher.match(event, rules)
        result = IntakeResult(event=event, is_new=True, suggestions=suggestions)
        if not suggestions:
            return result

        number = extract_target_number(event.event_type, event.payload)
        for suggestion in suggestions:
            alert = await self._record_alert(event, suggestion)
            if alert is not None:
                result.alerts.append(alert)

            attempt = ActionAttempt(
                alert_id=alert.id if alert else None,
                delivery_id=event.delivery_id,
                action=build_action(suggestion, event.repository_full_name, number),
            )
            result.attempts.append(await self._dispatcher.dispatch(attempt))

        logger.info(
            f"Delivery {delivery_id} ({event_type}/{event.action}) on {event.repository_full_name}: "
            f"{len(suggestions)} suggestion(s), {len(result.alerts)} alert(s) stored"
        )
        return result

    async def _record_alert(self, event: WebhookEvent, suggestion: Suggestion) -> Alert | None:
        """Persist an alert. Failure is logged and does not block the action."""
        try:
            return await self._db.record_alert(event, suggestion, created_at=self._clock.now())
        except StoreError:
            logger.exception(
                f"Failed to persist alert for {event.delivery_id} rule {suggestion.rule_id}; "
                f"dispatching action anyway"
            )
            return None

    async def _record_delivery(self, event_type: str, delivery_id: str, success: bool, started: float) -> None:
        metric = DeliveryMetric(
            event_type=event_type,
            delivery_id=delivery_id,
            success=success,
            processing_ms=int((time.monotonic() - started) * 1000),
            recorded_at=self._clock.now(),
        )
        try:
            await self._db.record_delivery_metric(metric)
        except StoreError as e:
            logger.warning(f"Failed to record delivery metric for {delivery_id}: {e}")


# Global instance
_intake_service: IntakeService | None = None


def get_intake_service() -> IntakeService:
    """Get the global intake service instance."""
    global _intake_service
    if _intake_service is None:
        _intake_service = IntakeService()
    return _intake_service


def set_intake_service(service: IntakeService | None) -> None:
    """Set the global intake service instance (for testing)."""
    global _intake_service
    _intake_service = service
