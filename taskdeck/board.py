"""The task board: filter state, query cache and mutations wired together.

This is what a front end drives. It owns the user-facing side of failures:
optimistic and list actions report through ``notices`` (transient), form
actions keep their error on the board so the form can stay open with it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from . import view
from .cache_keys import PROJECTS, TASKS, CacheKey, display_name_key, projects_key, task_list_key
from .export import tasks_to_csv
from .filters import FilterStore
from .models import PaginatedResult, Project, TaskFields
from .mutations import MutationCoordinator, MutationResult
from .query_cache import FRESH, CacheEntry, QueryCache

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


@dataclass(frozen=True)
class Notice:
    level: str  # "info" or "error"
    text: str


@dataclass(frozen=True)
class CsvExport:
    text: str
    rows: int


class TaskBoard:
    def __init__(
        self,
        store,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        cache: Optional[QueryCache] = None,
        filters: Optional[FilterStore] = None,
        mutations: Optional[MutationCoordinator] = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.store = store
        self.page_size = page_size
        self.cache = cache or QueryCache()
        self.filters = filters or FilterStore()
        self.mutations = mutations or MutationCoordinator(store, self.cache)
        self.notices: List[Notice] = []
        self.task_form_error: Optional[str] = None
        self.project_form_error: Optional[str] = None
        self.display_name_error: Optional[str] = None

    # -----------------------------
    # Notices
    # -----------------------------
    def _info(self, text: str) -> None:
        self.notices.append(Notice("info", text))

    def _error(self, text: str) -> None:
        self.notices.append(Notice("error", text))

    def pop_notices(self) -> List[Notice]:
        out, self.notices = self.notices, []
        return out

    # -----------------------------
    # Queries
    # -----------------------------
    def _tasks_query(self) -> Tuple[CacheKey, Callable[[], Awaitable[Any]]]:
        # key and loader come from the same state so they always agree
        state = self.filters.state
        api_filter = state.api_filter
        page = state.current_page
        key = task_list_key(api_filter, page, self.page_size)

        async def _load() -> PaginatedResult:
            return await self.store.list_tasks(api_filter, page, self.page_size)

        return key, _load

    def tasks_key(self) -> CacheKey:
        return self._tasks_query()[0]

    def read_tasks(self) -> CacheEntry:
        key, loader = self._tasks_query()
        entry = self.cache.read(key, loader)
        if self._clamp_page(entry):
            key, loader = self._tasks_query()
            entry = self.cache.read(key, loader)
        return entry

    async def load_tasks(self) -> CacheEntry:
        key, loader = self._tasks_query()
        entry = await self.cache.fetch(key, loader)
        if self._clamp_page(entry):
            key, loader = self._tasks_query()
            entry = await self.cache.fetch(key, loader)
        return entry

    def _clamp_page(self, entry: CacheEntry) -> bool:
        """Step back when the store reports fewer pages than we are on."""
        data = entry.data
        if entry.status != FRESH or not isinstance(data, PaginatedResult):
            return False
        page = self.filters.state.current_page
        if page <= max(1, data.total_pages):
            return False
        self.filters.clamp_page(data.total_pages)
        return self.filters.state.current_page != page

    def read_projects(self) -> CacheEntry:
        return self.cache.read(projects_key(), self.store.list_projects)

    async def load_projects(self) -> CacheEntry:
        return await self.cache.fetch(projects_key(), self.store.list_projects)

    def projects(self) -> List[Project]:
        entry = self.cache.get(projects_key())
        return list(entry.data) if entry is not None and entry.data is not None else []

    def selected_project_name(self) -> Optional[str]:
        selected = self.filters.state.project_id
        if selected is None:
            return None
        for p in self.projects():
            if p.id == selected:
                return p.name
        return None

    def read_display_name(self) -> CacheEntry:
        return self.cache.read(display_name_key(), self.store.get_display_name)

    def refresh(self) -> None:
        self.cache.invalidate(TASKS)
        self.cache.invalidate(PROJECTS)

    def empty_state(self) -> view.EmptyState:
        return view.empty_state(self.filters.has_active_filters)

    def title(self) -> str:
        return self.selected_project_name() or "All Tasks"

    # -----------------------------
    # Task actions
    # -----------------------------
    async def toggle_complete(self, task_id: int) -> MutationResult:
        return await self.begin_toggle(task_id)

    def begin_toggle(self, task_id: int) -> Awaitable[MutationResult]:
        """Post the toggle notice now; the returned awaitable runs the mutation."""
        entry = self.cache.get(self.tasks_key())
        task = entry.data.find(task_id) if entry is not None and isinstance(entry.data, PaginatedResult) else None
        if task is not None and not task.completed:
            self._info("Task completed")
        else:
            self._info("Task marked incomplete")
        return self._finish_toggle(task_id)

    async def _finish_toggle(self, task_id: int) -> MutationResult:
        result = await self.mutations.toggle_task_complete(task_id)
        if not result.ok:
            self._error("Failed to update task")
        return result

    async def submit_task(self, fields: TaskFields, task_id: Optional[int] = None) -> MutationResult:
        self.task_form_error = None
        if task_id is not None:
            result = await self.mutations.update_task(task_id, fields)
        else:
            result = await self.mutations.create_task(fields)
        if not result.ok:
            self.task_form_error = result.error or ("Failed to update task" if task_id is not None else "Failed to create task")
        return result

    async def delete_task(self, task_id: int) -> MutationResult:
        result = await self.mutations.delete_task(task_id)
        if not result.ok:
            self._error("Failed to delete task")
        return result

    # -----------------------------
    # Project actions
    # -----------------------------
    async def submit_project(self, name: str, project_id: Optional[int] = None) -> MutationResult:
        self.project_form_error = None
        if project_id is not None:
            result = await self.mutations.rename_project(project_id, name)
        else:
            result = await self.mutations.create_project(name)
            if result.ok and result.value is not None:
                self.filters.set_project_id(result.value.id)
        if not result.ok:
            self.project_form_error = result.error
        return result

    async def delete_project(self, project_id: int) -> MutationResult:
        result = await self.mutations.delete_project(project_id)
        if result.ok:
            if self.filters.state.project_id == project_id:
                self.filters.set_project_id(None)
        else:
            self._error(result.error or "Failed to delete project")
        return result

    async def update_display_name(self, name: str) -> MutationResult:
        self.display_name_error = None
        result = await self.mutations.set_display_name(name)
        if not result.ok:
            self.display_name_error = result.error
        return result

    # -----------------------------
    # Export
    # -----------------------------
    async def export_csv(self) -> Optional[CsvExport]:
        result = await self.mutations.export_tasks(self.filters.api_filter)
        if not result.ok:
            self._error("Failed to export tasks")
            return None
        if not result.value:
            self._error("No tasks to export")
            return None
        rows = len(result.value)
        self._info("Tasks exported")
        logger.info("exported %d tasks", rows)
        return CsvExport(tasks_to_csv(result.value), rows)
