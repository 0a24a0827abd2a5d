"""In-memory cache of remote query results.

Entries are immutable ``CacheEntry`` values; the cache swaps them as fetches
start and settle. Callers only ever see entries, never the bookkeeping slot
behind them, and change the cache through the methods below.

Each key carries a fetch generation. Starting, cancelling or superseding a
fetch bumps it, and a response is only applied when its generation is still
current, so a late or cancelled response can never overwrite newer data.

The cache keeps at most ``max_entries`` keys. When a new key would exceed
that, the least recently used entries that are neither fetching nor held
are dropped.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Sequence

from .cache_keys import CacheKey, as_predicate
from .models import PaginatedResult, Task

logger = logging.getLogger(__name__)

EMPTY = "empty"
LOADING = "loading"
FRESH = "fresh"
STALE = "stale"
ERROR = "error"

DEFAULT_MAX_ENTRIES = 100

Loader = Callable[[], Awaitable[Any]]
ItemsMapper = Callable[[Sequence[Task]], Sequence[Task]]


@dataclass(frozen=True)
class CacheEntry:
    key: CacheKey
    data: Any = None
    status: str = EMPTY
    last_error: Optional[str] = None
    fetching: bool = False
    updated_at: float = 0.0

    @property
    def has_data(self) -> bool:
        return self.data is not None

    @property
    def is_loading(self) -> bool:
        """True only when there is nothing to show yet."""
        return self.fetching and self.data is None


@dataclass
class _Slot:
    entry: CacheEntry
    generation: int = 0
    task: Optional[asyncio.Task] = None


class QueryCache:
    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._slots: "OrderedDict[CacheKey, _Slot]" = OrderedDict()
        self._holds: Dict[object, Callable[[CacheKey], bool]] = {}
        self._listeners: List[Callable[[], None]] = []

    # -----------------------------
    # Observation
    # -----------------------------
    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("cache listener failed")

    def get(self, key: CacheKey) -> Optional[CacheEntry]:
        """Peek at an entry without triggering a fetch."""
        slot = self._slots.get(key)
        return slot.entry if slot else None

    def entries(self, selector=None) -> List[CacheEntry]:
        pred = as_predicate(selector) if selector is not None else (lambda _k: True)
        return [s.entry for k, s in self._slots.items() if pred(k)]

    def in_flight(self, key: CacheKey) -> bool:
        slot = self._slots.get(key)
        return bool(slot and slot.task is not None)

    # -----------------------------
    # Reads
    # -----------------------------
    def read(self, key: CacheKey, loader: Loader) -> CacheEntry:
        """Return the entry now; start a fetch if it is missing or stale.

        Errored entries are not refetched by reading them again; invalidate
        the key (or call ``refetch``) to retry.
        """
        slot = self._use(key)
        if slot.task is None and slot.entry.status in (EMPTY, STALE) and not self._is_held(key):
            self._start_fetch(slot, loader)
        return slot.entry

    async def fetch(self, key: CacheKey, loader: Loader) -> CacheEntry:
        """Like ``read`` but waits for the in-flight fetch (shared) to settle."""
        while True:
            entry = self.read(key, loader)
            slot = self._slots[key]
            task = slot.task
            if task is None:
                return entry
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
                # superseded or cancelled; look again

    def _use(self, key: CacheKey) -> _Slot:
        """Return the slot for ``key`` as most recently used, creating it if needed."""
        slot = self._slots.get(key)
        if slot is not None:
            self._slots.move_to_end(key)
            return slot
        slot = _Slot(CacheEntry(key))
        self._slots[key] = slot
        self._evict()
        return slot

    def _evict(self) -> None:
        excess = len(self._slots) - self.max_entries
        if excess <= 0:
            return
        # oldest first; the newest slot is the one being used
        victims: List[CacheKey] = []
        for key, slot in list(self._slots.items())[:-1]:
            if len(victims) >= excess:
                break
            if slot.task is not None or self._is_held(key):
                continue
            victims.append(key)
        for key in victims:
            del self._slots[key]
        if victims:
            logger.debug("evicted %d cache entries", len(victims))

    def refetch(self, key: CacheKey, loader: Loader) -> CacheEntry:
        self.invalidate(lambda k: k == key)
        return self.read(key, loader)

    def _start_fetch(self, slot: _Slot, loader: Loader) -> None:
        slot.generation += 1
        generation = slot.generation
        entry = slot.entry
        status = LOADING if entry.data is None else entry.status
        slot.entry = replace(entry, status=status, fetching=True)
        slot.task = asyncio.get_running_loop().create_task(self._run_fetch(entry.key, generation, loader))
        logger.debug("fetch started for %s (gen %d)", entry.key, generation)
        self._notify()

    async def _run_fetch(self, key: CacheKey, generation: int, loader: Loader) -> None:
        try:
            data = await loader()
        except asyncio.CancelledError:
            logger.debug("fetch cancelled for %s (gen %d)", key, generation)
            raise
        except Exception as exc:
            self._settle(key, generation, error=exc)
            return
        self._settle(key, generation, data=data)

    def _settle(self, key: CacheKey, generation: int, *, data: Any = None, error: Optional[BaseException] = None) -> None:
        slot = self._slots.get(key)
        if slot is None or slot.generation != generation:
            logger.debug("discarding superseded response for %s (gen %d)", key, generation)
            return
        slot.task = None
        if error is not None:
            # keep last known good data
            logger.warning("fetch failed for %s: %s", key, error)
            slot.entry = replace(slot.entry, status=ERROR, last_error=str(error) or type(error).__name__, fetching=False)
        else:
            slot.entry = replace(
                slot.entry,
                data=data,
                status=FRESH,
                last_error=None,
                fetching=False,
                updated_at=time.monotonic(),
            )
        self._notify()

    def _supersede(self, slot: _Slot) -> bool:
        """Drop the slot's in-flight fetch; its response will be discarded."""
        slot.generation += 1
        task, slot.task = slot.task, None
        if task is None:
            return False
        task.cancel()
        return True

    # -----------------------------
    # Writes
    # -----------------------------
    def write(self, key: CacheKey, data: Any) -> CacheEntry:
        slot = self._use(key)
        self._supersede(slot)
        slot.entry = replace(
            slot.entry,
            data=data,
            status=FRESH,
            last_error=None,
            fetching=False,
            updated_at=time.monotonic(),
        )
        self._notify()
        return slot.entry

    def patch(self, selector, mapper: ItemsMapper) -> List[CacheKey]:
        """Rewrite the item list of matching paginated entries.

        Display-only: status is left alone. Entries without data, or whose
        items the mapper leaves unchanged, are skipped.
        """
        pred = as_predicate(selector)
        patched: List[CacheKey] = []
        for key, slot in self._slots.items():
            data = slot.entry.data
            if not pred(key) or not isinstance(data, PaginatedResult):
                continue
            new_items = tuple(mapper(data.items))
            if new_items == data.items:
                continue
            slot.entry = replace(slot.entry, data=replace(data, items=new_items))
            patched.append(key)
        if patched:
            self._notify()
        return patched

    def invalidate(self, selector) -> List[CacheKey]:
        """Mark matching entries stale; their data stays visible until refetched."""
        pred = as_predicate(selector)
        marked: List[CacheKey] = []
        for key, slot in self._slots.items():
            if not pred(key):
                continue
            self._supersede(slot)
            status = STALE if slot.entry.data is not None else EMPTY
            slot.entry = replace(slot.entry, status=status, fetching=False)
            marked.append(key)
        if marked:
            logger.debug("invalidated %d entries", len(marked))
            self._notify()
        return marked

    # -----------------------------
    # Optimistic update support
    # -----------------------------
    def cancel(self, selector) -> List[CacheKey]:
        pred = as_predicate(selector)
        cancelled: List[CacheKey] = []
        for key, slot in self._slots.items():
            if pred(key) and self._supersede(slot):
                status = EMPTY if slot.entry.data is None else slot.entry.status
                slot.entry = replace(slot.entry, status=status, fetching=False)
                cancelled.append(key)
        if cancelled:
            logger.debug("cancelled %d in-flight fetches", len(cancelled))
            self._notify()
        return cancelled

    def snapshot(self, selector) -> Dict[CacheKey, Any]:
        pred = as_predicate(selector)
        return {k: s.entry.data for k, s in self._slots.items() if pred(k) and s.entry.data is not None}

    def restore(self, snapshot: Dict[CacheKey, Any]) -> List[CacheKey]:
        """Put snapshotted data back verbatim; status is left alone."""
        restored: List[CacheKey] = []
        for key, data in snapshot.items():
            slot = self._slots.get(key)
            if slot is None:
                continue
            slot.entry = replace(slot.entry, data=data)
            restored.append(key)
        if restored:
            self._notify()
        return restored

    @contextlib.contextmanager
    def hold(self, selector) -> Iterator[None]:
        """Suspend new fetches for matching keys while the block runs."""
        token = object()
        self._holds[token] = as_predicate(selector)
        try:
            yield
        finally:
            del self._holds[token]

    def _is_held(self, key: CacheKey) -> bool:
        return any(pred(key) for pred in self._holds.values())
