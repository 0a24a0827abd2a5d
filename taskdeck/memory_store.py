"""In-process task store for offline demos (``--mock``) and tests.

Implements the same contract as the remote store: filtering, sorting and
1-indexed pagination happen here, never in the client.
"""

from __future__ import annotations

import datetime as dt
import itertools
import logging
import threading
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from .errors import RemoteRejectedError
from .filters import ApiFilter
from .models import PaginatedResult, Project, Task, TaskExport, TaskFields

logger = logging.getLogger(__name__)

PRIORITY_WEIGHT = {"high": 3, "medium": 2, "low": 1}


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class MemoryTaskStore:
    def __init__(self, *, latency: float = 0.0, clock: Callable[[], dt.datetime] = _utcnow) -> None:
        self.latency = latency
        self.clock = clock
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._tasks: Dict[int, Task] = {}
        self._projects: Dict[int, Project] = {}
        self._display_name: Optional[str] = None

    def _pause(self) -> None:
        if self.latency > 0:
            time.sleep(self.latency)

    def _require_task(self, task_id: int) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise RemoteRejectedError(f"Task {task_id} not found")
        return task

    def _require_project(self, project_id: int) -> Project:
        project = self._projects.get(project_id)
        if project is None:
            raise RemoteRejectedError(f"Project {project_id} not found")
        return project

    def _check_project_name(self, name: str, exclude: Optional[int] = None) -> str:
        clean = (name or "").strip()
        if not clean:
            raise RemoteRejectedError("Project name is required")
        for p in self._projects.values():
            if p.id != exclude and p.name.casefold() == clean.casefold():
                raise RemoteRejectedError(f"A project named '{clean}' already exists")
        return clean

    # -----------------------------
    # Query
    # -----------------------------
    def _matches(self, t: Task, f: ApiFilter, today: dt.date) -> bool:
        if f.project_id is not None and t.project_id != f.project_id:
            return False
        if f.priority is not None and t.priority != f.priority:
            return False
        if f.status == "active" and t.completed:
            return False
        if f.status == "completed" and not t.completed:
            return False
        if f.view in ("today", "upcoming"):
            if t.due_date is None:
                return False
            due = t.due_date.astimezone().date()
            if f.view == "today" and due != today:
                return False
            if f.view == "upcoming" and due <= today:
                return False
        if f.search_query:
            needle = f.search_query.casefold()
            hay = f"{t.title}\n{t.description or ''}".casefold()
            if needle not in hay:
                return False
        return True

    def _sorted(self, rows: List[Task], sort_by: str) -> List[Task]:
        field_name, _, direction = sort_by.rpartition("_")
        reverse = direction == "desc"
        if field_name == "due_date":
            dated = sorted((t for t in rows if t.due_date), key=lambda t: (t.due_date, t.id), reverse=reverse)
            # undated tasks always trail
            return dated + sorted((t for t in rows if not t.due_date), key=lambda t: t.id)
        if field_name == "priority":
            return sorted(rows, key=lambda t: (PRIORITY_WEIGHT.get(t.priority, 0), -t.id if reverse else t.id), reverse=reverse)
        if field_name == "created":
            return sorted(rows, key=lambda t: (t.created_at, t.id), reverse=reverse)
        return sorted(rows, key=lambda t: (t.title.casefold(), t.id), reverse=reverse)

    def _query(self, f: ApiFilter) -> List[Task]:
        today = self.clock().astimezone().date()
        rows = [t for t in self._tasks.values() if self._matches(t, f, today)]
        return self._sorted(rows, f.sort_by)

    def list_tasks(self, api_filter: ApiFilter, page: int, page_size: int) -> PaginatedResult:
        self._pause()
        with self._lock:
            rows = self._query(api_filter)
        page = max(1, int(page))
        start = (page - 1) * page_size
        return PaginatedResult.build(rows[start:start + page_size], len(rows), page, page_size)

    def export_tasks(self, api_filter: ApiFilter) -> List[TaskExport]:
        self._pause()
        with self._lock:
            rows = self._query(api_filter)
            names = {p.id: p.name for p in self._projects.values()}
        return [
            TaskExport(
                id=t.id,
                title=t.title,
                priority=t.priority,
                completed=t.completed,
                created_at=t.created_at,
                description=t.description,
                due_date=t.due_date,
                project_name=names.get(t.project_id) if t.project_id is not None else None,
            )
            for t in rows
        ]

    # -----------------------------
    # Task mutations
    # -----------------------------
    def create_task(self, fields: TaskFields) -> Task:
        self._pause()
        with self._lock:
            if fields.project_id is not None:
                self._require_project(fields.project_id)
            now = self.clock()
            task = Task(
                id=next(self._ids),
                title=fields.title.strip(),
                priority=fields.priority,
                completed=False,
                created_at=now,
                updated_at=now,
                description=fields.description or None,
                due_date=fields.due_date,
                project_id=fields.project_id,
            )
            self._tasks[task.id] = task
        logger.debug("memory store: created task %d", task.id)
        return task

    def update_task(self, task_id: int, fields: TaskFields) -> Task:
        self._pause()
        with self._lock:
            task = self._require_task(task_id)
            if fields.project_id is not None:
                self._require_project(fields.project_id)
            task = replace(
                task,
                title=fields.title.strip(),
                priority=fields.priority,
                description=fields.description or None,
                due_date=fields.due_date,
                project_id=fields.project_id,
                updated_at=self.clock(),
            )
            self._tasks[task_id] = task
        return task

    def delete_task(self, task_id: int) -> None:
        self._pause()
        with self._lock:
            self._require_task(task_id)
            del self._tasks[task_id]

    def toggle_task_complete(self, task_id: int) -> Task:
        self._pause()
        with self._lock:
            task = self._require_task(task_id)
            task = replace(task, completed=not task.completed, updated_at=self.clock())
            self._tasks[task_id] = task
        return task

    # -----------------------------
    # Projects / profile
    # -----------------------------
    def list_projects(self) -> List[Project]:
        self._pause()
        with self._lock:
            return sorted(self._projects.values(), key=lambda p: (p.created_at, p.id))

    def create_project(self, name: str) -> Project:
        self._pause()
        with self._lock:
            clean = self._check_project_name(name)
            project = Project(id=next(self._ids), name=clean, created_at=self.clock())
            self._projects[project.id] = project
        return project

    def rename_project(self, project_id: int, name: str) -> Project:
        self._pause()
        with self._lock:
            project = self._require_project(project_id)
            project = replace(project, name=self._check_project_name(name, exclude=project_id))
            self._projects[project_id] = project
        return project

    def delete_project(self, project_id: int) -> None:
        self._pause()
        with self._lock:
            self._require_project(project_id)
            del self._projects[project_id]
            for t in list(self._tasks.values()):
                if t.project_id == project_id:
                    self._tasks[t.id] = replace(t, project_id=None, updated_at=self.clock())

    def get_display_name(self) -> Optional[str]:
        return self._display_name

    def set_display_name(self, name: str) -> None:
        self._display_name = (name or "").strip() or None


def seed_demo(store: MemoryTaskStore) -> None:
    """Fill a store with a few projects and tasks spread around today."""
    now = store.clock()
    projects = [store.create_project(name) for name in ("Home", "Work", "Errands")]
    priorities = ("high", "medium", "low")
    for i, project in enumerate(projects, start=1):
        for d_off in range(-2, 6):
            due = None if (i + d_off) % 5 == 0 else now + dt.timedelta(days=d_off, hours=i)
            task = store.create_task(TaskFields(
                title=f"{project.name} task {i}{d_off + 3}",
                priority=priorities[(i + d_off) % 3],
                description="Demo task" if d_off % 2 else None,
                due_date=due,
                project_id=project.id,
            ))
            if (i + d_off) % 4 == 0:
                store.toggle_task_complete(task.id)
