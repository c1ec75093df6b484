"""
Aggregate cache for daily and monthly stats snapshots.

Reads are served straight from the snapshot store. When a snapshot is
missing, explicitly invalidated, or (for monthly keys) older than the
freshness window, a recomputation is scheduled in the background and the
caller gets whatever is stored right now.

Per-key lifecycle: MISSING -> COMPUTING -> FRESH -> STALE -> COMPUTING -> ...
Recomputation is a full rebuild from the ledger. Writes for a key are
serialized, and a computation started before an invalidation never
overwrites one started after it.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar, Union

from dailyledger.config import STATS_FRESHNESS_SECONDS
from dailyledger.db.stats import StatsRepository
from dailyledger.errors import ComputeFailure
from dailyledger.models import DailyStats, MonthlyStats

logger = logging.getLogger(__name__)

T = TypeVar("T")

Snapshot = Union[DailyStats, MonthlyStats]
ComputeFn = Callable[[], Awaitable[Snapshot]]
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def run_io(func: Callable[..., T], *args, **kwargs) -> T:
    """Run a blocking repository call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


class SnapshotKind(str, Enum):
    DAILY = "daily"
    MONTHLY = "monthly"


class CacheState(str, Enum):
    MISSING = "missing"
    COMPUTING = "computing"
    FRESH = "fresh"
    STALE = "stale"


@dataclass(frozen=True)
class SnapshotKey:
    kind: SnapshotKind
    user_id: str
    period: str  # YYYY-MM-DD for daily, YYYY-MM for monthly

    @classmethod
    def daily(cls, user_id: str, for_date: date) -> "SnapshotKey":
        return cls(SnapshotKind.DAILY, user_id, for_date.isoformat())

    @classmethod
    def monthly(cls, user_id: str, month_year: str) -> "SnapshotKey":
        return cls(SnapshotKind.MONTHLY, user_id, month_year)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.user_id}:{self.period}"


class AggregateCache:
    """
    Stale-while-revalidate cache over the snapshot store.

    The store is injected so tests (and shared-list views) can run against
    their own database.
    """

    def __init__(
        self,
        store: StatsRepository,
        freshness_seconds: float = STATS_FRESHNESS_SECONDS,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.freshness_seconds = freshness_seconds
        self._clock = clock or utc_now
        self._states: dict[SnapshotKey, CacheState] = {}
        # Bumped on every invalidation; a computation that started under an
        # older generation cannot mark the key FRESH.
        self._generations: dict[SnapshotKey, int] = {}
        self._running: dict[SnapshotKey, int] = {}
        self._scheduled: dict[SnapshotKey, int] = {}
        self._pending: dict[SnapshotKey, asyncio.Task] = {}
        # Generation of the newest snapshot written per key
        self._written: dict[SnapshotKey, int] = {}
        self._write_locks: dict[SnapshotKey, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task] = set()

    # =========================================================================
    # State
    # =========================================================================

    def state(self, key: SnapshotKey) -> CacheState:
        if self._running.get(key):
            return CacheState.COMPUTING
        return self._states.get(key, CacheState.MISSING)

    def invalidate(self, key: SnapshotKey):
        """Mark a key STALE so the next read recomputes it."""
        self._generations[key] = self._generations.get(key, 0) + 1
        if self._states.get(key, CacheState.MISSING) is not CacheState.MISSING:
            self._states[key] = CacheState.STALE
        logger.debug(f"Invalidated snapshot {key}")

    async def invalidate_user(self, user_id: str):
        """
        Drop every stored snapshot of a user.

        Used when a change rewrites history for all periods (a member's
        target edited, a member deleted). Every key reads as MISSING next.
        """
        known = set(self._states) | set(self._pending) | set(self._running)
        for key in [k for k in known if k.user_id == user_id]:
            self._generations[key] = self._generations.get(key, 0) + 1
            self._written[key] = self._generations[key]
            self._states[key] = CacheState.MISSING
        await run_io(self.store.clear_user, user_id)

    def is_expired(self, key: SnapshotKey, snapshot: Snapshot) -> bool:
        """Monthly snapshots expire after the freshness window."""
        if key.kind is not SnapshotKind.MONTHLY or snapshot.updated_at is None:
            return False
        age = (self._clock() - snapshot.updated_at).total_seconds()
        return age > self.freshness_seconds

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    # =========================================================================
    # Store access
    # =========================================================================

    async def _read(self, key: SnapshotKey) -> Optional[Snapshot]:
        if key.kind is SnapshotKind.DAILY:
            return await run_io(
                self.store.read_daily, key.user_id, date.fromisoformat(key.period)
            )
        return await run_io(self.store.read_monthly, key.user_id, key.period)

    def _write_lock(self, key: SnapshotKey) -> asyncio.Lock:
        lock = self._write_locks.get(key)
        if lock is None:
            lock = self._write_locks[key] = asyncio.Lock()
        return lock

    async def _write(self, key: SnapshotKey, snapshot: Snapshot) -> Snapshot:
        if key.kind is SnapshotKind.DAILY:
            return await run_io(self.store.write_daily, key.user_id, snapshot)
        return await run_io(self.store.write_monthly, key.user_id, snapshot)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_or_compute(
        self, key: SnapshotKey, compute_fn: ComputeFn
    ) -> Optional[Snapshot]:
        """
        Return the stored snapshot immediately, scheduling a recompute when needed.

        Returns None when nothing has been stored yet; the recompute that
        populates the key is already scheduled by then.
        """
        snapshot = await self._read(key)

        if snapshot is None:
            if self.state(key) is not CacheState.COMPUTING:
                self._states[key] = CacheState.MISSING
            self.schedule(key, compute_fn)
            return None

        current = self._states.get(key)
        if current is None or current is CacheState.MISSING:
            # Stored by an earlier process or written directly
            self._states[key] = CacheState.FRESH
        elif current is CacheState.STALE:
            self.schedule(key, compute_fn)
            return snapshot

        if self.is_expired(key, snapshot):
            self._states[key] = CacheState.STALE
            self.schedule(key, compute_fn)

        return snapshot

    # =========================================================================
    # Recomputation
    # =========================================================================

    def schedule(self, key: SnapshotKey, compute_fn: ComputeFn) -> asyncio.Task:
        """
        Start a background recompute without waiting for it.

        A recompute already queued or running for the current generation of
        the key is returned instead of starting a duplicate.
        """
        generation = self._generations.get(key, 0)
        pending = self._pending.get(key)
        if (
            pending is not None
            and not pending.done()
            and self._scheduled.get(key) == generation
        ):
            return pending

        self._scheduled[key] = generation
        task = asyncio.get_running_loop().create_task(
            self._compute(key, compute_fn, raise_errors=False)
        )
        self._pending[key] = task
        self._tasks.add(task)
        task.add_done_callback(functools.partial(self._forget, key))
        return task

    def _forget(self, key: SnapshotKey, task: asyncio.Task):
        self._tasks.discard(task)
        if self._pending.get(key) is task:
            del self._pending[key]

    async def refresh(self, key: SnapshotKey, compute_fn: ComputeFn) -> Snapshot:
        """
        Recompute a key now and wait for the result.

        Raises:
            ComputeFailure: If the computation or the write fails
        """
        return await self._compute(key, compute_fn, raise_errors=True)

    async def _compute(
        self, key: SnapshotKey, compute_fn: ComputeFn, raise_errors: bool
    ) -> Optional[Snapshot]:
        generation = self._generations.get(key, 0)
        had_snapshot = self._states.get(key, CacheState.MISSING) is not CacheState.MISSING
        self._running[key] = self._running.get(key, 0) + 1
        superseded = False

        try:
            snapshot = await compute_fn()
            snapshot.updated_at = self._clock()
            async with self._write_lock(key):
                if generation < self._written.get(key, -1):
                    superseded = True
                else:
                    snapshot = await self._write(key, snapshot)
                    self._written[key] = generation
        except Exception as e:
            failure = ComputeFailure(str(key), e)
            # Prior snapshot stays in the store; the next read retries.
            logger.error(str(failure), exc_info=True)
            self._states[key] = CacheState.STALE if had_snapshot else CacheState.MISSING
            if raise_errors:
                raise failure from e
            return None
        finally:
            self._running[key] -= 1
            if not self._running[key]:
                del self._running[key]

        if superseded:
            logger.debug(f"Discarded superseded recompute of {key}")
            return snapshot
        if self._generations.get(key, 0) == generation:
            self._states[key] = CacheState.FRESH
        else:
            self._states[key] = CacheState.STALE
        logger.debug(f"Recomputed snapshot {key}")
        return snapshot

    async def drain(self):
        """Wait for every background recompute to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
