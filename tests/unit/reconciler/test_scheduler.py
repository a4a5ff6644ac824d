"""
Unit tests for the reconcile scheduler.

Why: The scheduler decides when each resource is reconciled; it must never
     run one key twice at once, must retry failures with growing delays and
     must react to spec changes reported by the store.

What: Tests ReconcileScheduler queueing, exclusivity, requeue, backoff,
      watch handling and shutdown.

How: Drives the scheduler with a scripted fake reconciler and an in-memory
     store, polling for the expected state with short timeouts.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from datetime import timedelta

import pytest
import pytest_asyncio

from src.reconciler.exceptions import ResourceStoreError
from src.reconciler.models import ReconcileResult, RepoSpec, ResourceKey
from src.reconciler.scheduler import ReconcileScheduler
from src.store.memory import InMemoryResourceStore

KEY_A = ResourceKey(namespace="default", name="a")
KEY_B = ResourceKey(namespace="default", name="b")


async def wait_until(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not condition():
            await asyncio.sleep(0.005)


class FakeReconciler:
    """Records calls and returns scripted results."""

    def __init__(self, result: ReconcileResult | None = None):
        self.result = result or ReconcileResult(success=True, requeue=False)
        self.calls: list[ResourceKey] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None

    async def reconcile(self, key: ResourceKey) -> ReconcileResult:
        self.calls.append(key)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if self.error is not None:
                raise self.error
            return self.result
        finally:
            self.in_flight -= 1


class FlakyWatchStore(InMemoryResourceStore):
    """In-memory store whose first watch subscriptions fail."""

    def __init__(self, failures: int = 1):
        super().__init__()
        self.failures = failures
        self.subscriptions = 0

    async def watch(self) -> AsyncIterator[ResourceKey]:
        self.subscriptions += 1
        if self.failures:
            self.failures -= 1
            raise ResourceStoreError("Failed to list repos: database is unavailable")
        async for key in super().watch():
            yield key


@pytest_asyncio.fixture
async def store() -> InMemoryResourceStore:
    store = InMemoryResourceStore()
    await store.put(KEY_A, RepoSpec(owner="acme", name="a"))
    await store.put(KEY_B, RepoSpec(owner="acme", name="b"))
    return store


class TestBackoff:
    """Test backoff_delay."""

    def test_backoff_doubles_and_caps(self) -> None:
        """
        Why: Persistent failures should back off without exceeding a ceiling.
        What: Tests the delay sequence for consecutive failures.
        How: Evaluates backoff_delay for increasing failure counts.
        """
        scheduler = ReconcileScheduler(
            FakeReconciler(), InMemoryResourceStore(), backoff_base=1.0, backoff_max=10.0
        )

        delays = [scheduler.backoff_delay(n) for n in range(1, 7)]

        assert delays == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]

    def test_invalid_worker_count(self) -> None:
        """Test that at least one worker is required."""
        with pytest.raises(ValueError):
            ReconcileScheduler(FakeReconciler(), InMemoryResourceStore(), max_concurrent=0)


class TestReconcileScheduler:
    """Test ReconcileScheduler."""

    @pytest.mark.asyncio
    async def test_start_reconciles_every_key(
        self, store: InMemoryResourceStore
    ) -> None:
        """Test that all stored keys are reconciled after start."""
        reconciler = FakeReconciler()
        scheduler = ReconcileScheduler(reconciler, store)

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.stats["cycles"] == 2)
        finally:
            await scheduler.stop()

        assert sorted(reconciler.calls) == [KEY_A, KEY_B]
        assert scheduler.stats["successful_cycles"] == 2

    @pytest.mark.asyncio
    async def test_successful_cycle_scheduled_for_resync(
        self, store: InMemoryResourceStore
    ) -> None:
        """
        Why: Repositories change continuously, so every key is revisited
             after the resync interval.
        What: Tests that next_run_after leaves a pending timer.
        How: Returns a 5 minute resync and inspects is_scheduled.
        """
        reconciler = FakeReconciler(
            ReconcileResult(success=True, next_run_after=timedelta(minutes=5))
        )
        scheduler = ReconcileScheduler(reconciler, store)

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.stats["cycles"] == 2)
            assert scheduler.is_scheduled(KEY_A)
            assert scheduler.is_scheduled(KEY_B)
        finally:
            await scheduler.stop()

        assert not scheduler.is_scheduled(KEY_A)

    @pytest.mark.asyncio
    async def test_no_requeue_leaves_no_timer(
        self, store: InMemoryResourceStore
    ) -> None:
        """Test that requeue=False results are not scheduled again."""
        scheduler = ReconcileScheduler(FakeReconciler(), store)

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.stats["cycles"] == 2)
            assert not scheduler.is_scheduled(KEY_A)
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_key_never_runs_concurrently(self) -> None:
        """
        Why: Two overlapping cycles for one repository could both observe the
             same closed issues and double count them.
        What: Tests that a key enqueued mid-cycle runs again only afterwards.
        How: Blocks the first cycle on a gate, enqueues the key again, then
             releases the gate.
        """
        store = InMemoryResourceStore()
        await store.put(KEY_A, RepoSpec(owner="acme", name="a"))
        reconciler = FakeReconciler()
        reconciler.gate = asyncio.Event()
        scheduler = ReconcileScheduler(reconciler, store, max_concurrent=4)

        await scheduler.start()
        try:
            await wait_until(lambda: reconciler.in_flight == 1)
            scheduler.enqueue(KEY_A)
            scheduler.enqueue(KEY_A)
            await asyncio.sleep(0.02)
            assert len(reconciler.calls) == 1

            reconciler.gate.set()
            await wait_until(lambda: scheduler.stats["cycles"] == 2)
        finally:
            await scheduler.stop()

        assert reconciler.calls == [KEY_A, KEY_A]
        assert reconciler.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_worker_pool_bounds_concurrency(self) -> None:
        """Test that no more than max_concurrent cycles run at once."""
        store = InMemoryResourceStore()
        for n in range(5):
            await store.put(
                ResourceKey(namespace="default", name=f"r{n}"),
                RepoSpec(owner="acme", name=f"r{n}"),
            )
        reconciler = FakeReconciler()
        reconciler.gate = asyncio.Event()
        scheduler = ReconcileScheduler(reconciler, store, max_concurrent=2)

        await scheduler.start()
        try:
            await wait_until(lambda: reconciler.in_flight == 2)
            await asyncio.sleep(0.02)
            assert reconciler.in_flight == 2

            reconciler.gate.set()
            await wait_until(lambda: scheduler.stats["cycles"] == 5)
        finally:
            await scheduler.stop()

        assert reconciler.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_failure_retried_with_backoff(self) -> None:
        """
        Why: Transient GitHub failures should be retried sooner than the
             regular resync, with a delay that grows per failure.
        What: Tests failure counting and retries driven by backoff.
        How: Fails every cycle with a tiny backoff base and waits for
             several retries.
        """
        store = InMemoryResourceStore()
        await store.put(KEY_A, RepoSpec(owner="acme", name="a"))
        reconciler = FakeReconciler(
            ReconcileResult(success=False, next_run_after=timedelta(minutes=5))
        )
        scheduler = ReconcileScheduler(
            reconciler, store, backoff_base=0.01, backoff_max=0.02
        )

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.failure_count(KEY_A) >= 3)
        finally:
            await scheduler.stop()

        assert scheduler.stats["failed_cycles"] >= 3
        assert len(reconciler.calls) >= 3

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self) -> None:
        """Test that a successful cycle clears the consecutive failure count."""
        store = InMemoryResourceStore()
        await store.put(KEY_A, RepoSpec(owner="acme", name="a"))
        reconciler = FakeReconciler(ReconcileResult(success=False))
        scheduler = ReconcileScheduler(reconciler, store, backoff_base=0.01)

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.failure_count(KEY_A) >= 1)
            reconciler.result = ReconcileResult(success=True, requeue=False)
            await wait_until(lambda: scheduler.stats["successful_cycles"] == 1)
        finally:
            await scheduler.stop()

        assert scheduler.failure_count(KEY_A) == 0

    @pytest.mark.asyncio
    async def test_unhandled_error_counts_as_failure(self) -> None:
        """Test that an exception escaping the reconciler keeps the worker alive."""
        store = InMemoryResourceStore()
        await store.put(KEY_A, RepoSpec(owner="acme", name="a"))
        reconciler = FakeReconciler()
        reconciler.error = RuntimeError("boom")
        scheduler = ReconcileScheduler(
            reconciler, store, max_concurrent=1, backoff_base=0.01
        )

        await scheduler.start()
        try:
            await wait_until(lambda: scheduler.failure_count(KEY_A) >= 1)
            reconciler.error = None
            await wait_until(lambda: scheduler.stats["successful_cycles"] == 1)
        finally:
            await scheduler.stop()

        assert scheduler.stats["failed_cycles"] >= 1

    @pytest.mark.asyncio
    async def test_spec_change_triggers_cycle(self) -> None:
        """
        Why: Editing a watched repository should take effect without waiting
             for the resync interval.
        What: Tests that store notifications enqueue the changed key.
        How: Starts with an empty store and adds a resource afterwards.
        """
        store = InMemoryResourceStore()
        reconciler = FakeReconciler()
        scheduler = ReconcileScheduler(reconciler, store)

        await scheduler.start()
        try:
            await asyncio.sleep(0.01)
            await store.put(KEY_A, RepoSpec(owner="acme", name="a"))
            await wait_until(lambda: reconciler.calls == [KEY_A])
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_watch_failure_resubscribes(self) -> None:
        """
        Why: A store outage must not silently stop change detection for the
             rest of the process, nor break a later shutdown.
        What: Tests that a failing watch is retried and that stop() succeeds.
        How: Uses a store whose first two subscriptions raise, then adds a
             resource once the scheduler has subscribed again.
        """
        store = FlakyWatchStore(failures=2)
        reconciler = FakeReconciler()
        scheduler = ReconcileScheduler(reconciler, store, backoff_base=0.01)

        await scheduler.start()
        try:
            await wait_until(lambda: store.subscriptions == 3)
            await store.put(KEY_A, RepoSpec(owner="acme", name="a"))
            await wait_until(lambda: reconciler.calls == [KEY_A])
        finally:
            await scheduler.stop()

        assert not scheduler.running

    @pytest.mark.asyncio
    async def test_immediate_enqueue_replaces_timer(
        self, store: InMemoryResourceStore
    ) -> None:
        """Test that an immediate enqueue cancels a pending delayed run."""
        scheduler = ReconcileScheduler(FakeReconciler(), store)

        scheduler.enqueue_after(KEY_A, 60)
        assert scheduler.is_scheduled(KEY_A)

        scheduler.enqueue(KEY_A)

        assert not scheduler.is_scheduled(KEY_A)
        assert scheduler.queue.qsize() == 1

    @pytest.mark.asyncio
    async def test_stop_is_safe_when_not_started(
        self, store: InMemoryResourceStore
    ) -> None:
        """Test stopping a scheduler that never started."""
        scheduler = ReconcileScheduler(FakeReconciler(), store)

        await scheduler.stop()

        assert not scheduler.running
