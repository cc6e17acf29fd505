"""Inline or queued dispatch of action attempts."""

import asyncio
import functools
import logging
from typing import Literal

from ..config import settings
from .public_api import ActionAttempt
from .runner import ActionRunner, get_action_runner

logger = logging.getLogger("maintainer_firewall.dispatcher")

DispatchMode = Literal["inline", "background"]


class ActionDispatcher:
    """
    Hands action attempts to the runner.

    In ``inline`` mode ``dispatch`` awaits the attempt to a terminal state.
    In ``background`` mode attempts go onto a bounded in-memory queue; a
    consumer starts one task per attempt, at most ``max_concurrent`` at a
    time. Attempts target independent remote resources, so no ordering is
    kept between them. On shutdown, queued and in-flight attempts are
    marked failed ("dispatcher stopped").
    """

    def __init__(
        self,
        runner: ActionRunner | None = None,
        mode: DispatchMode | None = None,
        max_concurrent: int | None = None,
        max_size: int | None = None,
    ):
        self._runner = runner or get_action_runner()
        self._mode: DispatchMode = mode or settings.action_dispatch_mode
        self._queue: asyncio.Queue[ActionAttempt] = asyncio.Queue(
            maxsize=max_size or settings.action_queue_max_size
        )
        self._semaphore = asyncio.Semaphore(max_concurrent or settings.max_concurrent_actions)
        self._tasks: set[asyncio.Task] = set()
        self._running = False
        self._consumer_task: asyncio.Task | None = None

    @property
    def mode(self) -> DispatchMode:
        return self._mode

    async def dispatch(self, attempt: ActionAttempt) -> ActionAttempt:
        """Run (inline) or enqueue (background) an attempt.

        Returns the attempt; in background mode it is still pending.
        """
        if self._mode == "inline":
            return await self._runner.run(attempt)

        try:
            self._queue.put_nowait(attempt)
        except asyncio.QueueFull:
            attempt.mark_failed("action queue full")
            logger.error(
                f"Action queue full ({self._queue.maxsize}), dropping "
                f"{attempt.action.kind.value} for {attempt.delivery_id}"
            )
        return attempt

    async def _run_one(self, attempt: ActionAttempt) -> None:
        try:
            await self._runner.run(attempt)
        except Exception:
            logger.exception(f"Unexpected error running action for {attempt.delivery_id}")

    def _finish(self, task: asyncio.Task, attempt: ActionAttempt) -> None:
        """Release the slot held by ``task``. Runs even if it was cancelled before starting."""
        self._tasks.discard(task)
        if task.cancelled() and not attempt.is_terminal:
            attempt.mark_failed("dispatcher stopped")
        self._semaphore.release()
        self._queue.task_done()

    async def _consume_loop(self) -> None:
        """Main consumer loop that starts a task per queued attempt.

        A slot is taken before an attempt leaves the queue, so at most
        ``max_concurrent`` attempts run and at most ``max_size`` wait.
        """
        while self._running:
            await self._semaphore.acquire()
            try:
                attempt = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                self._semaphore.release()
                continue
            except asyncio.CancelledError:
                self._semaphore.release()
                raise
            task = asyncio.create_task(self._run_one(attempt))
            self._tasks.add(task)
            task.add_done_callback(functools.partial(self._finish, attempt=attempt))

    async def start(self) -> None:
        """Start the background consumer. No-op in inline mode."""
        if self._running or self._mode == "inline":
            return
        self._running = True
        self._consumer_task = asyncio.create_task(self._consume_loop())
        logger.info("Action dispatcher started (mode=background)")

    async def stop(self) -> None:
        """Stop the consumer, cancel in-flight attempts and fail queued ones."""
        self._running = False
        if self._consumer_task:
            self._consumer_task.cancel()
            try:
                await self._consumer_task
            except asyncio.CancelledError:
                pass
            self._consumer_task = None
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        dropped = 0
        while True:
            try:
                attempt = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            attempt.mark_failed("dispatcher stopped")
            self._queue.task_done()
            dropped += 1
        if dropped:
            logger.warning(f"Action dispatcher stopped with {dropped} queued attempt(s) dropped")

    async def wait_until_empty(self) -> None:
        """Wait until every queued attempt has reached a terminal state."""
        await self._queue.join()

    @property
    def pending_count(self) -> int:
        """Number of attempts waiting to be started."""
        return self._queue.qsize()


# Global instance
_dispatcher: ActionDispatcher | None = None


def get_action_dispatcher() -> ActionDispatcher:
    """Get the global action dispatcher instance."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = ActionDispatcher()
    return _dispatcher
