"""Bounded-retry execution of remote actions with terminal-failure bookkeeping.

Each attempt is driven through an explicit state machine (see ActionAttempt):

    pending --(2xx on try k <= bound)--------> succeeded
    pending --(ActionValidationError)--------> failed   (no retry, no failure row)
    pending --(RemoteActionError on try bound)-> failed (one ActionFailure row)

Attempt state lives in memory only. A crash mid-loop abandons the attempt
without replay; a caller that needs durability across restarts has to
persist attempt state before each try.

Retrying a comment after an ambiguous failure (e.g. a timeout after the
server accepted the write) can post it twice. With
``retry_non_idempotent_actions=False`` comments get a single try.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from ..common import (
    ActionFailure,
    ActionStatus,
    ActionValidationError,
    Clock,
    RemoteActionError,
    StoreError,
    get_clock,
)
from ..config import settings
from ..storage import Database, get_database
from .github_executor import get_action_executor
from .public_api import ActionAttempt, ActionExecutor, action_from_payload

logger = logging.getLogger("maintainer_firewall.actions")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """How many remote calls an action gets, and how long to wait between them."""

    max_attempts: int = 3
    initial_delay_seconds: float = 0.1
    backoff_factor: float = 2.0
    max_delay_seconds: float = 2.0
    retry_non_idempotent: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.action_max_attempts,
            initial_delay_seconds=settings.action_retry_initial_delay_seconds,
            backoff_factor=settings.action_retry_backoff_factor,
            max_delay_seconds=settings.action_retry_max_delay_seconds,
            retry_non_idempotent=settings.retry_non_idempotent_actions,
        )

    def attempts_for(self, idempotent: bool) -> int:
        if idempotent or self.retry_non_idempotent:
            return self.max_attempts
        return 1

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after failed try number ``attempt`` (1-based)."""
        delay = self.initial_delay_seconds * (self.backoff_factor ** (attempt - 1))
        return min(delay, self.max_delay_seconds)


class ActionRunner:
    """
    Drives ActionAttempts to a terminal state.

    Validation errors are terminal immediately. Remote errors are retried up
    to the policy bound; on exhaustion exactly one ActionFailure is persisted.
    """

    def __init__(
        self,
        executor: ActionExecutor | None = None,
        db: Database | None = None,
        policy: RetryPolicy | None = None,
        clock: Clock | None = None,
        sleep: Sleep | None = None,
    ):
        self._executor = executor or get_action_executor()
        self._db = db or get_database()
        self._policy = policy or RetryPolicy.from_settings()
        self._clock = clock or get_clock()
        self._sleep = sleep or asyncio.sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def run(self, attempt: ActionAttempt) -> ActionAttempt:
        """Run an attempt until it succeeds, is rejected, or exhausts its budget."""
        action = attempt.action
        label = f"{action.kind.value} on {action.repository_full_name}#{action.number}"

        try:
            action.check(self._executor)
        except ActionValidationError as e:
            attempt.mark_failed(str(e))
            logger.warning(f"{attempt.delivery_id}: rejected {label}: {e}")
            return attempt

        bound = self._policy.attempts_for(action.idempotent)
        while attempt.status == ActionStatus.PENDING:
            attempt.record_try()
            try:
                await action.perform(self._executor)
            except ActionValidationError as e:
                attempt.mark_failed(str(e))
                logger.warning(f"{attempt.delivery_id}: rejected {label}: {e}")
            except RemoteActionError as e:
                attempt.record_error(str(e))
                if attempt.attempt_count >= bound:
                    attempt.mark_failed(str(e))
                    logger.error(
                        f"{attempt.delivery_id}: {label} failed after "
                        f"{attempt.attempt_count} attempt(s): {e}"
                    )
                    await self._record_failure(attempt)
                else:
                    delay = self._policy.delay_after(attempt.attempt_count)
                    logger.warning(
                        f"{attempt.delivery_id}: {label} attempt "
                        f"{attempt.attempt_count}/{bound} failed: {e}; retrying in {delay:.2f}s"
                    )
                    await self._sleep(delay)
            else:
                attempt.mark_succeeded()
                logger.info(f"{attempt.delivery_id}: {label} succeeded (attempt {attempt.attempt_count})")

        return attempt

    async def retry_failure(self, failure_id: int) -> ActionFailure:
        """Retry a recorded failure once and record the outcome on the failure row.

        Raises:
            FailureNotFoundError: If no failure has this ID.
            ActionValidationError: If the stored action can no longer be valid.
            RemoteActionError: If the retry call failed.
        """
        failure = await self._db.get_action_failure(failure_id)
        action = action_from_payload(
            failure.action_kind,
            failure.repository_full_name,
            failure.number,
            failure.payload,
        )

        try:
            action.check(self._executor)
            await action.perform(self._executor)
        except (ActionValidationError, RemoteActionError) as e:
            await self._db.update_action_failure_retry(failure_id, False, str(e), self._clock.now())
            logger.warning(f"Manual retry of action failure {failure_id} failed: {e}")
            raise

        logger.info(f"Manual retry of action failure {failure_id} succeeded")
        return await self._db.update_action_failure_retry(failure_id, True, "retry succeeded", self._clock.now())

    async def _record_failure(self, attempt: ActionAttempt) -> None:
        action = attempt.action
        failure = ActionFailure(
            delivery_id=attempt.delivery_id,
            repository_full_name=action.repository_full_name,
            number=action.number,
            action_kind=action.kind,
            payload=action.payload(),
            error=attempt.last_error or "",
            attempt_count=attempt.attempt_count,
            failed_at=self._clock.now(),
        )
        try:
            await self._db.record_action_failure(failure)
        except StoreError:
            logger.exception(f"{attempt.delivery_id}: could not persist action failure")


# Global instance
_action_runner: ActionRunner | None = None


def get_action_runner() -> ActionRunner:
    """Get the global action runner instance."""
    global _action_runner
    if _action_runner is None:
        _action_runner = ActionRunner()
    return _action_runner


def set_action_runner(runner: ActionRunner | None) -> None:
    """Set the global action runner instance (for testing)."""
    global _action_runner
    _action_runner = runner
