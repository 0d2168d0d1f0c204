"""
Query Cache

Client-side cache of server state, keyed by tuples such as ("expenses",)
and ("expenses", 7). Each key has one entry holding the last fetched (or
optimistically written) value, its status and freshness, and the fetch
currently in flight.

Rules:
- Values go in and come out as deep copies; callers never share state
  with the cache
- Every fetch carries a generation number; a result whose generation is
  no longer current is discarded
- One fetch per key at a time; `fetch` joins the one in flight
- Failures are recorded on the entry; only `fetch` re-raises them
- Data older than `stale_after_seconds` since its last fetch is stale
"""

import asyncio
import copy
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel


logger = structlog.get_logger(__name__)


class _Pending:
    """Sentinel returned by `read` while a key has no data yet."""

    def __repr__(self) -> str:
        return "PENDING"

    def __bool__(self) -> bool:
        return False


PENDING = _Pending()


class QueryStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class CacheEntry:
    """State of one query key."""

    data: Any = None
    status: QueryStatus = QueryStatus.PENDING
    is_stale: bool = False
    error: Optional[Exception] = None
    updated_at: Optional[float] = None
    fetched_at: Optional[float] = None
    version: int = 0
    generation: int = 0
    task: Optional[asyncio.Task] = None
    invalidations: int = 0
    observed: bool = False

    @property
    def has_data(self) -> bool:
        return self.data is not None

    @property
    def is_fetching(self) -> bool:
        return self.task is not None and not self.task.done()


Fetcher = Callable[[tuple], Awaitable[Any]]
Subscriber = Callable[[tuple], None]


def structural_copy(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_copy(deep=True)
    return copy.deepcopy(value)


class QueryCache:
    """
    Keyed cache of fetched values with cancellation and invalidation.

    Usage:
        cache = QueryCache(fetcher)
        view = cache.read(("expenses",))      # PENDING, fetch started
        await cache.drain()
        view = cache.read(("expenses",))      # ExpenseList
    """

    def __init__(
        self,
        fetcher: Fetcher,
        clock: Callable[[], float] = time.time,
        stale_after_seconds: Optional[float] = None,
    ):
        """
        Args:
            fetcher: Coroutine function loading the value of a key
            clock: Source of `updated_at` and `fetched_at` timestamps
            stale_after_seconds: Age after which fetched data is refetched on
                                 read. None keeps data until invalidated.
        """
        self._fetcher = fetcher
        self._clock = clock
        self._stale_after = stale_after_seconds
        self._entries: dict[tuple, CacheEntry] = {}
        self._subscribers: dict[tuple, list[Subscriber]] = {}
        self._tasks: set[asyncio.Task] = set()

    def _entry(self, key: tuple) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry()
            self._entries[key] = entry
        return entry

    def entry(self, key: tuple) -> Optional[CacheEntry]:
        """The entry of a key, for inspection. Do not mutate it."""
        return self._entries.get(key)

    # =========================================================================
    # READS
    # =========================================================================

    def read(self, key: tuple) -> Any:
        """
        Current value of a key, or PENDING.

        Starts a background fetch when there is no data or the data is
        stale, unless one is already running. Stale data is still returned
        while the refetch runs.
        """
        entry = self._entry(key)
        entry.observed = True
        if self._expired(entry):
            entry.is_stale = True
        if (not entry.has_data or entry.is_stale) and not entry.is_fetching:
            self._start_fetch(key)
        if not entry.has_data:
            return PENDING
        return structural_copy(entry.data)

    async def fetch(self, key: tuple) -> Any:
        """
        Fetch a key now and return the fresh value.

        Joins the fetch already in flight for the key, if any. When that
        fetch is cancelled by `cancel` or `remove`, the value now in the
        cache is returned instead.

        Raises:
            Exception: Whatever the fetcher raised; it is also recorded
                       on the entry
        """
        entry = self._entry(key)
        entry.observed = True
        task = entry.task if entry.is_fetching else self._start_fetch(key)
        while True:
            try:
                data = await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
                entry = self._entries.get(key)
                if entry is None or not entry.is_fetching:
                    return self.get_data(key)
                task = entry.task
                continue
            return structural_copy(data)

    def get_data(self, key: tuple) -> Any:
        """A copy of the cached value, or None."""
        entry = self._entries.get(key)
        if entry is None or not entry.has_data:
            return None
        return structural_copy(entry.data)

    def invalidation_count(self, key: tuple) -> int:
        entry = self._entries.get(key)
        return entry.invalidations if entry else 0

    # =========================================================================
    # WRITES
    # =========================================================================

    def set_data(self, key: tuple, value: Any) -> None:
        """
        Replace the cached value of a key. None clears it.

        Does not renew the age of fetched data: a restored snapshot is as
        old as the fetch it came from.
        """
        entry = self._entry(key)
        entry.data = structural_copy(value)
        entry.status = QueryStatus.SUCCESS if value is not None else QueryStatus.PENDING
        entry.is_stale = False
        entry.error = None
        entry.updated_at = self._clock()
        if entry.fetched_at is None:
            entry.fetched_at = entry.updated_at
        entry.version += 1
        self._notify(key)

    def cancel(self, key: tuple) -> None:
        """Cancel the fetch in flight for a key; its result, if any, is dropped."""
        entry = self._entries.get(key)
        if entry is None:
            return
        if entry.is_fetching:
            logger.debug("query_fetch_cancelled", key=key)
        self._next_generation(entry)

    def invalidate(self, key: tuple) -> None:
        """Mark a key stale and refetch it in the background if it has been read."""
        entry = self._entry(key)
        entry.invalidations += 1
        entry.is_stale = True
        if entry.observed:
            self._start_fetch(key)

    def remove(self, key: tuple) -> None:
        """Drop a key entirely."""
        entry = self._entries.pop(key, None)
        if entry is not None:
            self._next_generation(entry)
            self._notify(key)

    def subscribe(self, key: tuple, callback: Subscriber) -> Callable[[], None]:
        """
        Call `callback(key)` whenever the key's value or status changes.

        Returns:
            A function that removes the subscription
        """
        callbacks = self._subscribers.setdefault(key, [])
        callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    async def drain(self) -> None:
        """Wait for every background fetch, including ones started meanwhile."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _next_generation(self, entry: CacheEntry) -> int:
        if entry.is_fetching:
            entry.task.cancel()
        entry.task = None
        entry.generation += 1
        return entry.generation

    def _start_fetch(self, key: tuple) -> asyncio.Task:
        entry = self._entry(key)
        generation = self._next_generation(entry)
        task = asyncio.create_task(self._run_fetch(key, generation))
        entry.task = task
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        # Failures are already recorded on the entry; mark them retrieved
        if not task.cancelled():
            task.exception()

    async def _run_fetch(self, key: tuple, generation: int) -> Any:
        try:
            data = await self._fetcher(key)
        except Exception as e:
            self._record_error(key, generation, e)
            raise
        self._record_success(key, generation, data)
        return data

    def _expired(self, entry: CacheEntry) -> bool:
        if self._stale_after is None or entry.fetched_at is None:
            return False
        return self._clock() - entry.fetched_at >= self._stale_after

    def _is_current(self, key: tuple, generation: int) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None or entry.generation != generation:
            logger.debug("query_result_discarded", key=key, generation=generation)
            return None
        return entry

    def _record_success(self, key: tuple, generation: int, data: Any) -> None:
        entry = self._is_current(key, generation)
        if entry is None:
            return
        entry.task = None
        entry.data = structural_copy(data)
        entry.status = QueryStatus.SUCCESS
        entry.is_stale = False
        entry.error = None
        entry.updated_at = self._clock()
        entry.fetched_at = entry.updated_at
        entry.version += 1
        self._notify(key)

    def _record_error(self, key: tuple, generation: int, error: Exception) -> None:
        logger.warning("query_fetch_failed", key=key, error=str(error), error_type=type(error).__name__)
        entry = self._is_current(key, generation)
        if entry is None:
            return
        entry.task = None
        entry.status = QueryStatus.ERROR
        entry.error = error
        self._notify(key)

    def _notify(self, key: tuple) -> None:
        for callback in list(self._subscribers.get(key, [])):
            callback(key)
