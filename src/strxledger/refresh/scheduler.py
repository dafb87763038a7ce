"""
Refresh Scheduler

Runs one recurring job per data class on its own fixed interval:
- ledger pages (bridge feed, per-user action feeds)
- pool state snapshot
- rewards pool balance
- token price

Jobs never touch engine state directly. Each poll posts a RefreshMessage onto
a queue and a single dispatcher applies it, so refresh cadence is decoupled
from whatever consumes the results.

Failure policy:
- A failed poll keeps the last good value in place
- A job is reported degraded only once `failure_window` consecutive polls failed
- The next scheduled interval is the retry
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..engine.ledger import LedgerAccumulator
from ..engine.pool_state import SnapshotHolder
from ..errors import TransientFetchFailure

logger = logging.getLogger(__name__)

# Returned by a fetch that had nothing to do this round; the dispatcher
# records neither a success nor a failure for it.
SKIPPED = object()


@dataclass
class RefreshMessage:
    """Outcome of one poll, posted to the dispatcher."""
    job: str
    payload: Any = None
    error: Optional[Exception] = None


@dataclass
class RefreshJob:
    """A recurring fetch and the handler its results are applied with."""
    name: str
    interval: float
    fetch: Callable[[], Awaitable[Any]]
    apply: Optional[Callable[[Any], None]] = None

    attempts: int = 0
    consecutive_failures: int = 0
    last_success: Optional[datetime] = None
    last_error: Optional[str] = None


class RefreshScheduler:
    """
    Recurring refresh of every data class the engine depends on.

    Usage:
        scheduler = RefreshScheduler(failure_window=3)
        scheduler.add_snapshot_job("pool_state", 60, client.fetch_pool_state, holder)
        scheduler.add_ledger_job("bridge", 120, bridge_ledger)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(self, failure_window: int = 3):
        self.failure_window = failure_window
        self._jobs: Dict[str, RefreshJob] = {}
        self._queue: Optional["asyncio.Queue[RefreshMessage]"] = None
        self._tasks: List[asyncio.Task] = []
        self._running = False

        # Last good payload per job
        self.latest: Dict[str, Any] = {}

    # =========================================================================
    # Job registration
    # =========================================================================

    def add_job(
        self,
        name: str,
        interval: float,
        fetch: Callable[[], Awaitable[Any]],
        apply: Optional[Callable[[Any], None]] = None
    ) -> RefreshJob:
        """Register a recurring job. Names are unique.

        A job added while the scheduler is running starts polling immediately.
        """
        if name in self._jobs:
            raise ValueError(f"Duplicate refresh job: {name}")
        if interval <= 0:
            raise ValueError(f"Refresh interval must be positive, got {interval}")
        job = RefreshJob(name=name, interval=interval, fetch=fetch, apply=apply)
        self._jobs[name] = job
        if self._running:
            self._tasks.append(asyncio.create_task(self._job_loop(job)))
        return job

    def add_snapshot_job(
        self,
        name: str,
        interval: float,
        fetch: Callable[[], Awaitable[Any]],
        holder: SnapshotHolder
    ) -> RefreshJob:
        """Pool snapshot reload; accepted snapshots replace the held one wholesale."""
        return self.add_job(name, interval, fetch, holder.replace)

    def add_ledger_job(self, name: str, interval: float, ledger: LedgerAccumulator) -> RefreshJob:
        """Periodic re-fetch of a ledger's current page."""

        async def fetch() -> Any:
            failed_before = ledger.failed_fetches
            task = ledger.refresh()
            if task is None:
                # A page is already in flight; its result lands on its own.
                return SKIPPED
            # wait() leaves the page task alone if this poll is cancelled
            await asyncio.wait({task})
            if task.cancelled():
                # The ledger was reset mid-fetch
                return SKIPPED
            added = task.result()
            if ledger.failed_fetches > failed_before:
                raise TransientFetchFailure(f"{ledger.name} page fetch errored")
            return added

        return self.add_job(name, interval, fetch)

    def status(self, name: str) -> RefreshJob:
        return self._jobs[name]

    def is_degraded(self, name: str) -> bool:
        """True once every poll in the failure window has failed."""
        return self._jobs[name].consecutive_failures >= self.failure_window

    # =========================================================================
    # Running
    # =========================================================================

    async def start(self):
        """Start one loop per job plus the dispatcher."""
        if self._running:
            return
        self._running = True
        self._queue = self._queue or asyncio.Queue()
        self._tasks = [asyncio.create_task(self._dispatch_loop())]
        self._tasks.extend(asyncio.create_task(self._job_loop(job)) for job in self._jobs.values())
        logger.info("Refresh scheduler started with %d jobs", len(self._jobs))

    async def stop(self):
        """Cancel all loops and wait for them to finish."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Refresh scheduler stopped")

    async def run_once(self):
        """Poll every job once and apply the results before returning."""
        self._queue = self._queue or asyncio.Queue()
        await asyncio.gather(*(self._poll(job) for job in self._jobs.values()))
        while not self._queue.empty():
            self._apply(self._queue.get_nowait())

    async def _job_loop(self, job: RefreshJob):
        while self._running:
            await self._poll(job)
            await asyncio.sleep(job.interval)

    async def _dispatch_loop(self):
        while True:
            message = await self._queue.get()
            self._apply(message)

    async def _poll(self, job: RefreshJob):
        job.attempts += 1
        try:
            payload = await job.fetch()
        except TransientFetchFailure as e:
            await self._queue.put(RefreshMessage(job=job.name, error=e))
            return
        except Exception as e:
            # Unexpected payloads count as a failed poll; the loop keeps running
            logger.exception("%s refresh raised %s", job.name, type(e).__name__)
            await self._queue.put(RefreshMessage(job=job.name, error=e))
            return
        await self._queue.put(RefreshMessage(job=job.name, payload=payload))

    def _apply(self, message: RefreshMessage):
        job = self._jobs[message.job]
        if message.payload is SKIPPED:
            return

        if message.error is not None:
            job.consecutive_failures += 1
            job.last_error = str(message.error)
            if self.is_degraded(job.name):
                logger.error(
                    "%s degraded: %d consecutive failures, last: %s",
                    job.name, job.consecutive_failures, message.error
                )
            else:
                logger.warning("%s refresh failed, keeping last good value: %s", job.name, message.error)
            return

        job.consecutive_failures = 0
        job.last_error = None
        job.last_success = datetime.now(timezone.utc)
        if message.payload is not None:
            self.latest[job.name] = message.payload
            if job.apply is not None:
                job.apply(message.payload)
