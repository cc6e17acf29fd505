"""PostgreSQL database access for events, rules, alerts and action failures."""

import json
from datetime import datetime
from typing import Any

import asyncpg

from ..common import (
    ActionFailure,
    Alert,
    DeliveryMetric,
    FailureNotFoundError,
    RetryStatus,
    Rule,
    RuleCreate,
    StoreError,
    Suggestion,
    SuggestionType,
    WebhookEvent,
    ensure_utc,
)
from ..config import settings

# Errors that mean the store could not complete an operation
_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class Database:
    """PostgreSQL database interface for the webhook pipeline.

    Every timestamp is normalized to UTC on the way in; asyncpg hands
    ``TIMESTAMPTZ`` values back as aware UTC datetimes.
    """

    def __init__(self, database_url: str | None = None):
        self._database_url = database_url or settings.database_url
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """Establish database connection pool.

        Note: Schema is managed by Alembic migrations. Run migrations before
        starting the application:
            alembic upgrade head
        """
        self._pool = await asyncpg.create_pool(
            self._database_url,
            min_size=2,
            max_size=10,
        )

    async def close(self) -> None:
        """Close database connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None

    async def _get_pool(self) -> asyncpg.Pool:
        """Get the connection pool, connecting if needed."""
        if self._pool is None:
            try:
                await self.connect()
            except _STORE_ERRORS as e:
                raise StoreError(f"connect to database: {e}") from e
        return self._pool  # type: ignore

    # Event operations

    async def record_event(
        self,
        delivery_id: str,
        event_type: str,
        action: str,
        repository_full_name: str,
        sender_login: str,
        payload: dict[str, Any],
        received_at: datetime,
    ) -> tuple[WebhookEvent, bool]:
        """Insert a webhook event unless its delivery_id is already stored.

        The unique index on delivery_id decides concurrent redeliveries:
        exactly one insert returns a row, the others read the winner's row.

        Returns:
            Tuple of (stored event, whether this call inserted it).
        """
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                """
                INSERT INTO events
                (delivery_id, event_type, action, repository_full_name, sender_login, payload, received_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT (delivery_id) DO NOTHING
                RETURNING *
                """,
                delivery_id,
                event_type,
                action,
                repository_full_name,
                sender_login,
                json.dumps(payload),
                ensure_utc(received_at),
            )
            if row is not None:
                return self._row_to_event(row), True

            existing = await pool.fetchrow(
                "SELECT * FROM events WHERE delivery_id = $1",
                delivery_id,
            )
        except _STORE_ERRORS as e:
            raise StoreError(f"insert webhook event: {e}") from e

        if existing is None:
            raise StoreError(f"webhook event {delivery_id} conflicted but could not be read back")
        return self._row_to_event(existing), False

    async def list_events(
        self,
        limit: int = 20,
        offset: int = 0,
        event_type: str | None = None,
        action: str | None = None,
    ) -> tuple[list[WebhookEvent], int]:
        """List events newest first with optional equality filters."""
        where, params = self._build_filters({"event_type": event_type, "action": action})
        return await self._list_page("events", where, params, "received_at", limit, offset, self._row_to_event)

    async def count_events_since(self, since: datetime) -> int:
        return await self._count_since("SELECT COUNT(*) FROM events WHERE received_at >= $1", since)

    async def event_timestamps_since(self, since: datetime) -> list[datetime]:
        return await self._timestamps_since("SELECT received_at FROM events WHERE received_at >= $1", since)

    def _row_to_event(self, row: asyncpg.Record) -> WebhookEvent:
        """Convert a database row to a WebhookEvent."""
        return WebhookEvent(
            id=row["id"],
            delivery_id=row["delivery_id"],
            event_type=row["event_type"],
            action=row["action"],
            repository_full_name=row["repository_full_name"],
            sender_login=row["sender_login"],
            payload=_load_json(row["payload"]),
            received_at=row["received_at"],
        )

    # Rule operations

    async def list_active_rules(self, event_type: str) -> list[Rule]:
        """Get active rules whose event_type matches, ignoring case."""
        pool = await self._get_pool()
        try:
            rows = await pool.fetch(
                """
                SELECT * FROM rules
                WHERE is_active AND LOWER(event_type) = LOWER($1)
                ORDER BY id ASC
                """,
                event_type,
            )
        except _STORE_ERRORS as e:
            raise StoreError(f"load rules: {e}") from e
        return [self._row_to_rule(row) for row in rows]

    async def create_rule(self, rule: RuleCreate, created_at: datetime) -> Rule:
        """Insert a new rule."""
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                """
                INSERT INTO rules
                (event_type, keyword, suggestion_type, suggestion_value, reason, is_active, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING *
                """,
                rule.event_type.strip(),
                rule.keyword,
                rule.suggestion_type.value,
                rule.suggestion_value.strip(),
                rule.reason.strip(),
                rule.is_active,
                ensure_utc(created_at),
            )
        except _STORE_ERRORS as e:
            raise StoreError(f"insert rule: {e}") from e
        return self._row_to_rule(row)

    async def set_rule_active(self, rule_id: int, is_active: bool) -> bool:
        """Activate or deactivate a rule. Returns False if no such rule exists."""
        pool = await self._get_pool()
        try:
            result = await pool.execute(
                "UPDATE rules SET is_active = $2 WHERE id = $1",
                rule_id,
                is_active,
            )
        except _STORE_ERRORS as e:
            raise StoreError(f"update rule: {e}") from e
        return result != "UPDATE 0"

    async def count_rules(self) -> int:
        pool = await self._get_pool()
        try:
            return await pool.fetchval("SELECT COUNT(*) FROM rules")
        except _STORE_ERRORS as e:
            raise StoreError(f"count rules: {e}") from e

    def _row_to_rule(self, row: asyncpg.Record) -> Rule:
        """Convert a database row to a Rule."""
        return Rule(
            id=row["id"],
            event_type=row["event_type"],
            keyword=row["keyword"],
            suggestion_type=SuggestionType(row["suggestion_type"]),
            suggestion_value=row["suggestion_value"],
            reason=row["reason"],
            is_active=row["is_active"],
            created_at=row["created_at"],
        )

    # Alert operations

    async def record_alert(
        self,
        event: WebhookEvent,
        suggestion: Suggestion,
        created_at: datetime,
    ) -> Alert:
        """Insert an alert for one suggestion on one event."""
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                """
                INSERT INTO alerts
                (delivery_id, rule_id, event_type, action, suggestion_type, suggestion_value, reason, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING *
                """,
                event.delivery_id,
                suggestion.rule_id,
                event.event_type,
                event.action,
                suggestion.suggestion_type.value,
                suggestion.suggestion_value,
                suggestion.reason,
                ensure_utc(created_at),
            )
        except _STORE_ERRORS as e:
            raise StoreError(f"insert alert: {e}") from e
        return self._row_to_alert(row)

    async def list_alerts(
        self,
        limit: int = 20,
        offset: int = 0,
        event_type: str | None = None,
        action: str | None = None,
        suggestion_type: SuggestionType | None = None,
        delivery_id: str | None = None,
    ) -> tuple[list[Alert], int]:
        """List alerts newest first with optional equality filters."""
        where, params = self._build_filters(
            {
                "event_type": event_type,
                "action": action,
                "suggestion_type": suggestion_type.value if suggestion_type else None,
                "delivery_id": delivery_id,
            }
        )
        return await self._list_page("alerts", where, params, "created_at", limit, offset, self._row_to_alert)

    async def count_alerts_since(self, since: datetime) -> int:
        return await self._count_since("SELECT COUNT(*) FROM alerts WHERE created_at >= $1", since)

    async def alert_timestamps_since(self, since: datetime) -> list[datetime]:
        return await self._timestamps_since("SELECT created_at FROM alerts WHERE created_at >= $1", since)

    def _row_to_alert(self, row: asyncpg.Record) -> Alert:
        """Convert a database row to an Alert."""
        return Alert(
            id=row["id"],
            delivery_id=row["delivery_id"],
            rule_id=row["rule_id"],
            event_type=row["event_type"],
            action=row["action"],
            suggestion_type=SuggestionType(row["suggestion_type"]),
            suggestion_value=row["suggestion_value"],
            reason=row["reason"],
            created_at=row["created_at"],
        )

    # Action failure operations

    async def record_action_failure(self, failure: ActionFailure) -> ActionFailure:
        """Insert a terminal action failure."""
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                """
                INSERT INTO action_failures
                (delivery_id, repository_full_name, number, action_kind, payload, error,
                 attempt_count, failed_at, retry_count, last_retry_status, last_retry_message,
                 last_retry_at, is_resolved)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, 0, 'never', '', NULL, FALSE)
                RETURNING *
                """,
                failure.delivery_id,
                failure.repository_full_name,
                failure.number,
                failure.action_kind.value,
                json.dumps(failure.payload),
                failure.error,
                failure.attempt_count,
                ensure_utc(failure.failed_at),
            )
        except _STORE_ERRORS as e:
            raise StoreError(f"insert action failure: {e}") from e
        return self._row_to_failure(row)

    async def get_action_failure(self, failure_id: int) -> ActionFailure:
        """Get an action failure by ID.

        Raises:
            FailureNotFoundError: If no failure has this ID.
        """
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow("SELECT * FROM action_failures WHERE id = $1", failure_id)
        except _STORE_ERRORS as e:
            raise StoreError(f"get action failure: {e}") from e
        if row is None:
            raise FailureNotFoundError(f"action failure {failure_id} not found")
        return self._row_to_failure(row)

    async def update_action_failure_retry(
        self,
        failure_id: int,
        success: bool,
        message: str,
        retried_at: datetime,
    ) -> ActionFailure:
        """Record the outcome of a manual retry. Success resolves the failure."""
        status = RetryStatus.SUCCESS if success else RetryStatus.FAILED
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                """
                UPDATE action_failures
                SET retry_count = retry_count + 1,
                    last_retry_status = $2,
                    last_retry_message = $3,
                    last_retry_at = $4,
                    is_resolved = is_resolved OR $5
                WHERE id = $1
                RETURNING *
                """,
                failure_id,
                status.value,
                message.strip(),
                ensure_utc(retried_at),
                success,
            )
        except _STORE_ERRORS as e:
            raise StoreError(f"update action failure retry result: {e}") from e
        if row is None:
            raise FailureNotFoundError(f"action failure {failure_id} not found")
        return self._row_to_failure(row)

    async def list_action_failures(
        self,
        limit: int = 20,
        offset: int = 0,
        include_resolved: bool = False,
        delivery_id: str | None = None,
    ) -> tuple[list[ActionFailure], int]:
        """List action failures newest first."""
        where, params = self._build_filters({"delivery_id": delivery_id})
        if not include_resolved:
            where += " AND NOT is_resolved"
        return await self._list_page(
            "action_failures", where, params, "failed_at", limit, offset, self._row_to_failure
        )

    async def count_failures_since(self, since: datetime) -> int:
        """Count unresolved failures in the window."""
        return await self._count_since(
            "SELECT COUNT(*) FROM action_failures WHERE failed_at >= $1 AND NOT is_resolved",
            since,
        )

    async def failure_timestamps_since(self, since: datetime) -> list[datetime]:
        return await self._timestamps_since(
            "SELECT failed_at FROM action_failures WHERE failed_at >= $1",
            since,
        )

    def _row_to_failure(self, row: asyncpg.Record) -> ActionFailure:
        """Convert a database row to an ActionFailure."""
        return ActionFailure(
            id=row["id"],
            delivery_id=row["delivery_id"],
            repository_full_name=row["repository_full_name"],
            number=row["number"],
            action_kind=SuggestionType(row["action_kind"]),
            payload=_load_json(row["payload"]),
            error=row["error"],
            attempt_count=row["attempt_count"],
            failed_at=row["failed_at"],
            retry_count=row["retry_count"],
            last_retry_status=RetryStatus(row["last_retry_status"]),
            last_retry_message=row["last_retry_message"],
            last_retry_at=row["last_retry_at"],
            is_resolved=row["is_resolved"],
        )

    # Delivery metric operations

    async def record_delivery_metric(self, metric: DeliveryMetric) -> None:
        """Insert timing and outcome for one delivery."""
        pool = await self._get_pool()
        try:
            await pool.execute(
                """
                INSERT INTO delivery_metrics (event_type, delivery_id, success, processing_ms, recorded_at)
                VALUES ($1, $2, $3, $4, $5)
                """,
                metric.event_type.strip(),
                metric.delivery_id.strip(),
                metric.success,
                metric.processing_ms,
                ensure_utc(metric.recorded_at),
            )
        except _STORE_ERRORS as e:
            raise StoreError(f"insert delivery metric: {e}") from e

    async def delivery_metrics_since(self, since: datetime) -> list[tuple[bool, int]]:
        """Get (success, processing_ms) for deliveries in the window, fastest first."""
        pool = await self._get_pool()
        try:
            rows = await pool.fetch(
                """
                SELECT success, processing_ms FROM delivery_metrics
                WHERE recorded_at >= $1
                ORDER BY processing_ms ASC
                """,
                ensure_utc(since),
            )
        except _STORE_ERRORS as e:
            raise StoreError(f"query delivery metrics: {e}") from e
        return [(row["success"], row["processing_ms"]) for row in rows]

    # Shared helpers

    async def _count_since(self, query: str, since: datetime) -> int:
        pool = await self._get_pool()
        try:
            return await pool.fetchval(query, ensure_utc(since))
        except _STORE_ERRORS as e:
            raise StoreError(f"count metrics: {e}") from e

    async def _timestamps_since(self, query: str, since: datetime) -> list[datetime]:
        pool = await self._get_pool()
        try:
            rows = await pool.fetch(query, ensure_utc(since))
        except _STORE_ERRORS as e:
            raise StoreError(f"query metrics timeseries: {e}") from e
        return [row[0] for row in rows]

    def _build_filters(self, filters: dict[str, str | None]) -> tuple[str, list]:
        """Build a WHERE clause from non-empty equality filters."""
        where = "WHERE 1=1"
        params: list = []
        for column, value in filters.items():
            if value is None or not str(value).strip():
                continue
            params.append(str(value).strip())
            where += f" AND {column} = ${len(params)}"
        return where, params

    async def _list_page(self, table, where, params, order_column, limit, offset, convert):
        pool = await self._get_pool()
        param_num = len(params) + 1
        try:
            total = await pool.fetchval(f"SELECT COUNT(*) FROM {table} {where}", *params)
            rows = await pool.fetch(
                f"SELECT * FROM {table} {where} ORDER BY {order_column} DESC, id DESC"
                f" LIMIT ${param_num} OFFSET ${param_num + 1}",
                *params,
                limit,
                offset,
            )
        except _STORE_ERRORS as e:
            raise StoreError(f"list {table}: {e}") from e
        return [convert(row) for row in rows], total


def _load_json(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    return json.loads(value) if isinstance(value, str) else dict(value)


# Global instance
_database: Database | None = None


def get_database() -> Database:
    """Get the global database instance."""
    global _database
    if _database is None:
        _database = Database()
    return _database


def set_database(database: Database) -> None:
    """Set the global database instance (for testing)."""
    global _database
    _database = database
