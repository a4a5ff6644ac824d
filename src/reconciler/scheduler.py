"""Work queue driving reconcile cycles.

Keys enter the queue at startup, on every spec change reported by the store
and when a previous cycle asked to run again. A bounded pool of worker tasks
drains the queue. A key is never reconciled by two workers at once: a key
enqueued while its cycle is running is held back and queued again when the
cycle ends.
"""

import asyncio
import contextlib
import logging
from typing import Protocol

from .interfaces import ResourceStore
from .models import ReconcileResult, ResourceKey

logger = logging.getLogger(__name__)


class Reconciler(Protocol):
    """Anything that can run one reconcile cycle for a key."""

    async def reconcile(self, key: ResourceKey) -> ReconcileResult: ...


class ReconcileScheduler:
    """Schedules reconcile cycles with per-key exclusivity and failure backoff."""

    def __init__(
        self,
        reconciler: Reconciler,
        store: ResourceStore,
        max_concurrent: int = 4,
        backoff_base: float = 1.0,
        backoff_max: float = 300.0,
    ):
        """Initialize the scheduler.

        Args:
            reconciler: Runs the cycles
            store: Source of the initial key list and change notifications
            max_concurrent: Number of worker tasks
            backoff_base: Delay in seconds before the first retry of a failed key
            backoff_max: Upper bound for the retry delay in seconds
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

        self.reconciler = reconciler
        self.store = store
        self.max_concurrent = max_concurrent
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max

        self.queue: asyncio.Queue[ResourceKey] = asyncio.Queue()
        self._queued: set[ResourceKey] = set()
        self._running: set[ResourceKey] = set()
        self._dirty: set[ResourceKey] = set()
        self._timers: dict[ResourceKey, asyncio.TimerHandle] = {}
        self._failures: dict[ResourceKey, int] = {}

        self._workers: list[asyncio.Task[None]] = []
        self._watch_task: asyncio.Task[None] | None = None

        self.stats: dict[str, int] = {
            "cycles": 0,
            "successful_cycles": 0,
            "failed_cycles": 0,
        }

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def failure_count(self, key: ResourceKey) -> int:
        """Consecutive failed cycles for a key."""
        return self._failures.get(key, 0)

    def is_scheduled(self, key: ResourceKey) -> bool:
        """Whether a delayed run is pending for a key."""
        return key in self._timers

    def enqueue(self, key: ResourceKey) -> None:
        """Queue a key for an immediate cycle."""
        self._cancel_timer(key)

        if key in self._running:
            self._dirty.add(key)
        elif key not in self._queued:
            self._queued.add(key)
            self.queue.put_nowait(key)

    def enqueue_after(self, key: ResourceKey, delay: float) -> None:
        """Queue a key once ``delay`` seconds have passed."""
        self._cancel_timer(key)
        loop = asyncio.get_running_loop()
        self._timers[key] = loop.call_later(max(0.0, delay), self._fire, key)

    def backoff_delay(self, failures: int) -> float:
        """Retry delay after ``failures`` consecutive failed cycles."""
        delay = self.backoff_base * 2 ** max(0, failures - 1)
        return float(min(delay, self.backoff_max))

    def _fire(self, key: ResourceKey) -> None:
        self._timers.pop(key, None)
        self.enqueue(key)

    def _cancel_timer(self, key: ResourceKey) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()

    async def start(self) -> None:
        """Queue every known key and start the workers and the watch loop."""
        if self.running:
            return

        keys = await self.store.list_keys()
        for key in keys:
            self.enqueue(key)

        self._workers = [
            asyncio.create_task(self._worker()) for _ in range(self.max_concurrent)
        ]
        self._watch_task = asyncio.create_task(self._watch_loop())

        logger.info(
            f"Reconcile scheduler started with {self.max_concurrent} workers "
            f"and {len(keys)} resources"
        )

    async def stop(self) -> None:
        """Stop workers, cancelling cycles in flight, and drop pending timers."""
        for key in list(self._timers):
            self._cancel_timer(key)

        tasks: list[asyncio.Task[None]] = list(self._workers)
        if self._watch_task is not None:
            tasks.append(self._watch_task)

        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        self._workers = []
        self._watch_task = None
        logger.info("Reconcile scheduler stopped")

    async def _watch_loop(self) -> None:
        failures = 0
        while True:
            try:
                if failures:
                    # Changes may have been missed while unsubscribed
                    for key in await self.store.list_keys():
                        self.enqueue(key)
                async for key in self.store.watch():
                    failures = 0
                    logger.debug(f"Change notification for {key}")
                    self.enqueue(key)
                return
            except Exception:
                failures += 1
                delay = self.backoff_delay(failures)
                logger.exception(
                    f"Resource watch failed {failures} time(s), "
                    f"resubscribing in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

    async def _worker(self) -> None:
        while True:
            key = await self.queue.get()
            self._queued.discard(key)
            self._running.add(key)
            try:
                result = await self.reconciler.reconcile(key)
            except Exception as e:
                logger.exception(f"Unhandled error reconciling {key}")
                result = ReconcileResult(success=False, error=e)
            finally:
                self._running.discard(key)
                self.queue.task_done()

            self._handle_result(key, result)

            if key in self._dirty:
                self._dirty.discard(key)
                self.enqueue(key)

    def _handle_result(self, key: ResourceKey, result: ReconcileResult) -> None:
        self.stats["cycles"] += 1

        if result.success:
            self.stats["successful_cycles"] += 1
            self._failures.pop(key, None)
        else:
            self.stats["failed_cycles"] += 1
            self._failures[key] = self._failures.get(key, 0) + 1

        if not result.requeue:
            self._cancel_timer(key)
            return

        delay: float | None = (
            result.next_run_after.total_seconds()
            if result.next_run_after is not None
            else None
        )
        if not result.success:
            retry = self.backoff_delay(self._failures[key])
            delay = retry if delay is None else min(delay, retry)
            logger.warning(
                f"Reconcile of {key} failed {self._failures[key]} time(s), "
                f"retrying in {delay:.1f}s"
            )

        if delay is not None:
            self.enqueue_after(key, delay)
