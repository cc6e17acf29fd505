"""Background loop that stores recent GitHub events as webhook events."""

import asyncio
import logging

from ..actions import EventSource, get_action_executor
from ..common import (
    Clock,
    MaintainerFirewallError,
    MisconfiguredError,
    RemoteActionError,
    SyncInProgressError,
    SyncStatus,
    get_clock,
)
from ..config import settings
from ..storage import Database, get_database

logger = logging.getLogger("maintainer_firewall.sync")


class EventSyncWorker:
    """
    Copies the token owner's recent GitHub events into the events table.

    Each run lists the feed once and records every item under its
    ``gh-<id>`` delivery id, so re-listing an event never stores it twice.
    Synced events are stored only; rules are not evaluated against them.
    At most one run is active at a time.
    """

    def __init__(
        self,
        source: EventSource | None = None,
        db: Database | None = None,
        clock: Clock | None = None,
        interval_seconds: float | None = None,
        run_timeout_seconds: float | None = None,
    ):
        self._source = source or _default_source()
        self._db = db or get_database()
        self._clock = clock or get_clock()
        self._interval = (
            interval_seconds if interval_seconds is not None else settings.github_sync_interval_minutes * 60
        )
        self._run_timeout = run_timeout_seconds or settings.github_sync_timeout_seconds
        self._status = SyncStatus()
        self._saved = 0
        self._total = 0
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def enabled(self) -> bool:
        return self._interval > 0

    @property
    def status(self) -> SyncStatus:
        """Snapshot of the current sync status."""
        return self._status.model_copy()

    async def sync_once(self) -> tuple[int, int]:
        """
        Run one sync.

        Returns:
            Tuple of (events newly stored, events listed).

        Raises:
            SyncInProgressError: Another run has not finished.
            MisconfiguredError: No GitHub token is configured.
            RemoteActionError: Listing failed or the run timed out.
            StoreError: An event could not be stored.
        """
        if self._status.running:
            raise SyncInProgressError("github events sync is already running")
        self._status.running = True
        self._status.last_started_at = self._clock.now()
        self._saved = 0
        self._total = 0

        try:
            await asyncio.wait_for(self._store_recent_events(), timeout=self._run_timeout)
        except asyncio.TimeoutError as e:
            error = RemoteActionError(f"events sync timed out after {self._run_timeout}s")
            self._record_failure(error)
            raise error from e
        except Exception as e:
            self._record_failure(e)
            raise
        else:
            self._status.last_error = ""
            self._status.success_count += 1
            self._status.last_success_at = self._clock.now()
        finally:
            self._status.running = False
            self._status.last_finished_at = self._clock.now()
            self._status.last_saved = self._saved
            self._status.last_total = self._total

        return self._saved, self._total

    async def _store_recent_events(self) -> None:
        events = await self._source.list_recent_events()
        self._total = len(events)
        for event in events:
            _, inserted = await self._db.record_event(
                delivery_id=event.delivery_id,
                event_type=event.event_type,
                action=event.action,
                repository_full_name=event.repository_full_name,
                sender_login=event.sender_login,
                payload=event.payload,
                received_at=self._clock.now(),
            )
            if inserted:
                self._saved += 1

    def _record_failure(self, error: Exception) -> None:
        self._status.last_error = str(error)
        self._status.failure_count += 1

    async def start(self) -> None:
        """Start the periodic loop. No-op when the interval is not positive."""
        if self._running or not self.enabled:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"GitHub events sync started (interval={self._interval}s)")

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            try:
                saved, total = await self.sync_once()
                logger.info(f"GitHub events sync done: saved={saved} total={total}")
            except MaintainerFirewallError as e:
                logger.warning(f"GitHub events sync failed: {e}")
            except Exception:
                logger.exception("Error in GitHub events sync")


def _default_source() -> EventSource:
    executor = get_action_executor()
    if not isinstance(executor, EventSource):
        raise MisconfiguredError("configured action executor cannot list events")
    return executor


# Global instance
_worker: EventSyncWorker | None = None


def get_event_sync_worker() -> EventSyncWorker:
    """Get the global events sync worker instance."""
    global _worker
    if _worker is None:
        _worker = EventSyncWorker()
    return _worker


def set_event_sync_worker(worker: EventSyncWorker) -> None:
    """Set the global events sync worker instance (for testing)."""
    global _worker
    _worker = worker
