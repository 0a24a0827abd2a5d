"""Write path: remote mutations plus the cache bookkeeping around them.

Form-driven mutations (create/update/delete, project CRUD) never touch cached
data; they invalidate what they made stale and let the next read refetch.

Toggle-complete is optimistic and runs in three phases:

1. snapshot: capture every cached task page, cancel in-flight task-list
   fetches and hold new ones for the captured pages only; other task-list
   keys load as usual;
2. apply: flip ``completed`` for the task in every snapshotted page;
3. commit or rollback: on success keep the patch, on failure put the
   snapshot back. Either way the task namespace is invalidated once the
   call settles so the next read reconciles with the store.

Repeated toggles of one task while a call is in flight are coalesced: the
display flips at once, and when the in-flight call returns a single
follow-up call is made only if the store's state differs from the last
requested one.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from . import invalidation as inv
from .cache_keys import TASKS, CacheKey
from .errors import error_message
from .filters import ApiFilter
from .models import Task, TaskExport, TaskFields
from .query_cache import QueryCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationResult:
    ok: bool
    value: Any = None
    error: Optional[str] = None


@dataclass
class _ToggleChain:
    task_id: int
    done: asyncio.Future
    snapshot: Dict[CacheKey, Any] = field(default_factory=dict)
    # data this chain last wrote, per key
    written: Dict[CacheKey, Any] = field(default_factory=dict)
    requested: int = 0
    confirmed: int = 0

    def owns(self, key: CacheKey) -> bool:
        return key in self.snapshot


def _flip(task_id: int) -> Callable[[Sequence[Task]], List[Task]]:
    def _mapper(items: Sequence[Task]) -> List[Task]:
        return [t.with_completed(not t.completed) if t.id == task_id else t for t in items]
    return _mapper


class MutationCoordinator:
    def __init__(self, store, cache: QueryCache, policy: Optional[inv.InvalidationPolicy] = None) -> None:
        self.store = store
        self.cache = cache
        self.policy = policy or inv.InvalidationPolicy()
        self._toggles: Dict[int, _ToggleChain] = {}

    async def _run(self, kind: str, call: Callable[[], Awaitable[Any]], fallback: str) -> MutationResult:
        try:
            value = await call()
        except Exception as exc:
            msg = error_message(exc, fallback)
            logger.warning("%s failed: %s", kind, msg)
            self.policy.apply(self.cache, kind, succeeded=False)
            return MutationResult(ok=False, error=msg)
        self.policy.apply(self.cache, kind, succeeded=True)
        logger.info("%s succeeded", kind)
        return MutationResult(ok=True, value=value)

    # -----------------------------
    # Tasks
    # -----------------------------
    async def create_task(self, fields: TaskFields) -> MutationResult:
        return await self._run(inv.CREATE_TASK, lambda: self.store.create_task(fields), "Failed to create task")

    async def update_task(self, task_id: int, fields: TaskFields) -> MutationResult:
        return await self._run(inv.UPDATE_TASK, lambda: self.store.update_task(task_id, fields), "Failed to update task")

    async def delete_task(self, task_id: int) -> MutationResult:
        return await self._run(inv.DELETE_TASK, lambda: self.store.delete_task(task_id), "Failed to delete task")

    def toggle_pending(self, task_id: int) -> bool:
        return task_id in self._toggles

    async def toggle_task_complete(self, task_id: int) -> MutationResult:
        chain = self._toggles.get(task_id)
        if chain is not None:
            chain.requested += 1
            self._apply_flip(chain)
            logger.info("toggle for task %d coalesced (%d requested, %d confirmed)",
                        task_id, chain.requested, chain.confirmed)
            return await asyncio.shield(chain.done)

        chain = _ToggleChain(task_id=task_id, done=asyncio.get_running_loop().create_future())
        self._toggles[task_id] = chain
        result = MutationResult(ok=False, error="Toggle cancelled")
        try:
            chain.snapshot = self.cache.snapshot(TASKS)
            with self.cache.hold(chain.owns):
                self.cache.cancel(TASKS)
                chain.requested = 1
                self._apply_flip(chain)
                result = await self._run_toggle_chain(chain)
        finally:
            del self._toggles[task_id]
            self.policy.apply(self.cache, inv.TOGGLE_TASK, succeeded=result.ok)
            if not chain.done.done():
                chain.done.set_result(result)
        return result

    def _apply_flip(self, chain: _ToggleChain) -> None:
        # pages loaded after the snapshot came from the store; leave them be
        for key in self.cache.patch(chain.owns, _flip(chain.task_id)):
            entry = self.cache.get(key)
            if entry is not None:
                chain.written[key] = entry.data

    async def _run_toggle_chain(self, chain: _ToggleChain) -> MutationResult:
        last: Optional[Task] = None
        while (chain.requested - chain.confirmed) % 2 == 1:
            try:
                last = await self.store.toggle_task_complete(chain.task_id)
            except Exception as exc:
                msg = error_message(exc, "Failed to update task")
                logger.warning("toggle for task %d failed: %s; rolling back", chain.task_id, msg)
                self._rollback(chain)
                return MutationResult(ok=False, error=msg)
            chain.confirmed += 1
        logger.info("task %d toggled (%d calls)", chain.task_id, chain.confirmed)
        return MutationResult(ok=True, value=last)

    def _rollback(self, chain: _ToggleChain) -> None:
        """Return every snapshotted page to the store's last confirmed state.

        Pages still holding exactly what this chain wrote are restored
        verbatim. Pages touched by someone else since only get this task's
        item put back, so the other change survives.
        """
        flipped = chain.confirmed % 2 == 1
        current = self.cache.snapshot(TASKS)
        verbatim: Dict[CacheKey, Any] = {}
        for key, before in chain.snapshot.items():
            now = current.get(key)
            if now is None or key not in chain.written:
                continue
            if not flipped and now is chain.written[key]:
                verbatim[key] = before
                continue
            original = before.find(chain.task_id)
            if original is None:
                continue
            target = original.with_completed(not original.completed) if flipped else original

            def _repair(items, target=target):
                return [target if t.id == target.id else t for t in items]

            self.cache.patch(lambda k, key=key: k == key, _repair)
        self.cache.restore(verbatim)

    # -----------------------------
    # Projects
    # -----------------------------
    async def create_project(self, name: str) -> MutationResult:
        return await self._run(inv.CREATE_PROJECT, lambda: self.store.create_project(name), "Failed to create project")

    async def rename_project(self, project_id: int, name: str) -> MutationResult:
        return await self._run(
            inv.RENAME_PROJECT, lambda: self.store.rename_project(project_id, name), "Failed to rename project"
        )

    async def delete_project(self, project_id: int) -> MutationResult:
        return await self._run(
            inv.DELETE_PROJECT, lambda: self.store.delete_project(project_id), "Failed to delete project"
        )

    # -----------------------------
    # Profile / export
    # -----------------------------
    async def set_display_name(self, name: str) -> MutationResult:
        return await self._run(
            inv.SET_DISPLAY_NAME, lambda: self.store.set_display_name(name), "Failed to update display name"
        )

    async def export_tasks(self, api_filter: ApiFilter) -> MutationResult:
        try:
            rows: List[TaskExport] = await self.store.export_tasks(api_filter)
        except Exception as exc:
            msg = error_message(exc, "Failed to export tasks")
            logger.warning("export failed: %s", msg)
            return MutationResult(ok=False, error=msg)
        return MutationResult(ok=True, value=rows)
