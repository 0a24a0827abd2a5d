"""Remote task store boundary.

``TaskStore`` is the async contract the cache and coordinator talk to.
``HttpTaskStore`` is a blocking JSON-over-HTTP client; ``AsyncTaskStore``
runs any blocking store in the loop's executor so the event loop never waits
on the network.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from typing import Callable, Dict, List, Optional, Protocol

import requests

from .errors import RemoteRejectedError, TransportError
from .filters import ApiFilter
from .models import PaginatedResult, Project, Task, TaskExport, TaskFields, projects_from_wire

logger = logging.getLogger(__name__)

# Safe to repeat after a dropped connection.
READ_METHODS = frozenset({"getTasks", "getTasksForExport", "getAllProjects", "getDisplayName"})
RETRY_STATUSES = (429, 502, 503, 504)
# The request was refused before reaching the store, so writes may repeat it.
WRITE_RETRY_STATUSES = (429, 503)


class TaskStore(Protocol):
    async def list_tasks(self, api_filter: ApiFilter, page: int, page_size: int) -> PaginatedResult: ...
    async def create_task(self, fields: TaskFields) -> Task: ...
    async def update_task(self, task_id: int, fields: TaskFields) -> Task: ...
    async def delete_task(self, task_id: int) -> None: ...
    async def toggle_task_complete(self, task_id: int) -> Task: ...
    async def list_projects(self) -> List[Project]: ...
    async def create_project(self, name: str) -> Project: ...
    async def rename_project(self, project_id: int, name: str) -> Project: ...
    async def delete_project(self, project_id: int) -> None: ...
    async def export_tasks(self, api_filter: ApiFilter) -> List[TaskExport]: ...
    async def get_display_name(self) -> Optional[str]: ...
    async def set_display_name(self, name: str) -> None: ...


# -----------------------------
# HTTP transport
# -----------------------------
def _session(token: Optional[str]) -> requests.Session:
    s = requests.Session()
    if token:
        s.headers["Authorization"] = f"Bearer {token}"
    s.headers["Accept"] = "application/json"
    return s


def _retry_sleep(seconds: float, on_wait: Optional[Callable[[str], None]] = None) -> None:
    msg = f"Remote busy; waiting {int(seconds)}s…"
    if on_wait:
        on_wait(msg)
    else:
        logger.info(msg)
    time.sleep(max(0.0, seconds))


def _parse_retry_after_seconds(resp: Optional[requests.Response]) -> Optional[int]:
    if resp is None:
        return None
    ra = resp.headers.get("Retry-After") if resp.headers is not None else None
    if ra:
        try:
            return int(float(ra))
        except ValueError:
            pass
    return None


def _error_text(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "").strip()[:200] or f"HTTP {resp.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {resp.status_code}"


class HttpTaskStore:
    """Blocking client for the task store's JSON endpoints.

    Each call is ``POST {base_url}/{method}`` with a JSON object of arguments.
    A 2xx answer carries ``{"result": ...}``; a refusal carries
    ``{"error": "..."}`` (either with a 4xx status or alongside a 2xx).
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        timeout: float = 30.0,
        max_total_wait: float = 60.0,
        session: Optional[requests.Session] = None,
        on_wait: Optional[Callable[[str], None]] = None,
    ) -> None:
        if not base_url:
            raise ValueError("HttpTaskStore needs a base_url")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_total_wait = max_total_wait
        self.session = session or _session(token)
        self.on_wait = on_wait

    def call(self, method: str, payload: Optional[Dict[str, object]] = None) -> object:
        """Invoke one remote method with retry on transient failures.

        - HTTP 429/503 wait for Retry-After (or back off) and retry.
        - HTTP 502/504, timeouts and dropped connections are retried for read
          methods only; a write may already have been applied.
        """
        url = f"{self.base_url}/{method}"
        retry_statuses = RETRY_STATUSES if method in READ_METHODS else WRITE_RETRY_STATUSES
        backoff = 1.0
        total_wait = 0.0
        while True:
            try:
                resp = self.session.post(url, json=payload or {}, timeout=self.timeout)
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as exc:
                if method not in READ_METHODS:
                    raise TransportError(f"{method}: {exc}", method=method) from exc
                wait_s = min(30.0, backoff)
                backoff = min(30.0, backoff * 2)
                if total_wait + wait_s > self.max_total_wait:
                    raise TransportError(f"{method}: {exc}", method=method) from exc
                _retry_sleep(wait_s, self.on_wait)
                total_wait += wait_s
                continue
            except requests.exceptions.RequestException as exc:
                raise TransportError(f"{method}: {exc}", method=method) from exc

            if resp.status_code in retry_statuses:
                wait_s = _parse_retry_after_seconds(resp)
                if wait_s is None:
                    wait_s = min(30.0, backoff)
                    backoff = min(30.0, backoff * 2)
                if total_wait + wait_s > self.max_total_wait:
                    raise TransportError(f"{method}: HTTP {resp.status_code}", method=method, status=resp.status_code)
                _retry_sleep(wait_s, self.on_wait)
                total_wait += wait_s
                continue
            if resp.status_code >= 500:
                raise TransportError(f"{method}: {_error_text(resp)}", method=method, status=resp.status_code)
            if resp.status_code >= 400:
                raise RemoteRejectedError(_error_text(resp), method=method, status=resp.status_code)
            try:
                body = resp.json()
            except ValueError as exc:
                raise TransportError(f"{method}: malformed response", method=method, status=resp.status_code) from exc
            if isinstance(body, dict) and body.get("error"):
                raise RemoteRejectedError(str(body["error"]), method=method, status=resp.status_code)
            return body.get("result") if isinstance(body, dict) else body

    # -- tasks
    def list_tasks(self, api_filter: ApiFilter, page: int, page_size: int) -> PaginatedResult:
        raw = self.call("getTasks", {"filter": api_filter.to_wire(), "page": page, "limit": page_size})
        return PaginatedResult.from_wire(raw or {})  # type: ignore[arg-type]

    def create_task(self, fields: TaskFields) -> Task:
        return Task.from_wire(self.call("createTask", fields.to_wire()))  # type: ignore[arg-type]

    def update_task(self, task_id: int, fields: TaskFields) -> Task:
        payload = dict(fields.to_wire(), id=task_id)
        return Task.from_wire(self.call("updateTask", payload))  # type: ignore[arg-type]

    def delete_task(self, task_id: int) -> None:
        self.call("deleteTask", {"id": task_id})

    def toggle_task_complete(self, task_id: int) -> Task:
        return Task.from_wire(self.call("toggleTaskComplete", {"id": task_id}))  # type: ignore[arg-type]

    def export_tasks(self, api_filter: ApiFilter) -> List[TaskExport]:
        raw = self.call("getTasksForExport", {"filter": api_filter.to_wire()}) or []
        return [TaskExport.from_wire(t) for t in raw]  # type: ignore[union-attr]

    # -- projects
    def list_projects(self) -> List[Project]:
        return projects_from_wire(self.call("getAllProjects") or [])  # type: ignore[arg-type]

    def create_project(self, name: str) -> Project:
        return Project.from_wire(self.call("createProject", {"name": name}))  # type: ignore[arg-type]

    def rename_project(self, project_id: int, name: str) -> Project:
        return Project.from_wire(self.call("renameProject", {"id": project_id, "name": name}))  # type: ignore[arg-type]

    def delete_project(self, project_id: int) -> None:
        self.call("deleteProject", {"id": project_id})

    # -- profile
    def get_display_name(self) -> Optional[str]:
        raw = self.call("getDisplayName")
        return str(raw) if raw else None

    def set_display_name(self, name: str) -> None:
        self.call("setDisplayName", {"displayName": name})


class AsyncTaskStore:
    """Run a blocking store's methods in the event loop's default executor."""

    def __init__(self, store) -> None:
        self._store = store

    async def _run(self, name: str, *args):
        loop = asyncio.get_running_loop()
        func = functools.partial(getattr(self._store, name), *args)
        return await loop.run_in_executor(None, func)

    async def list_tasks(self, api_filter: ApiFilter, page: int, page_size: int) -> PaginatedResult:
        return await self._run("list_tasks", api_filter, page, page_size)

    async def create_task(self, fields: TaskFields) -> Task:
        return await self._run("create_task", fields)

    async def update_task(self, task_id: int, fields: TaskFields) -> Task:
        return await self._run("update_task", task_id, fields)

    async def delete_task(self, task_id: int) -> None:
        await self._run("delete_task", task_id)

    async def toggle_task_complete(self, task_id: int) -> Task:
        return await self._run("toggle_task_complete", task_id)

    async def list_projects(self) -> List[Project]:
        return await self._run("list_projects")

    async def create_project(self, name: str) -> Project:
        return await self._run("create_project", name)

    async def rename_project(self, project_id: int, name: str) -> Project:
        return await self._run("rename_project", project_id, name)

    async def delete_project(self, project_id: int) -> None:
        await self._run("delete_project", project_id)

    async def export_tasks(self, api_filter: ApiFilter) -> List[TaskExport]:
        return await self._run("export_tasks", api_filter)

    async def get_display_name(self) -> Optional[str]:
        return await self._run("get_display_name")

    async def set_display_name(self, name: str) -> None:
        await self._run("set_display_name", name)
