"""View parameters for the task list: time window, project, search, priority,
status, sort and page.

Every change other than an explicit page change lands on page 1 in the same
update, so no listener ever observes a new filter paired with an old page.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional

from .models import (
    DEFAULT_SORT,
    PRIORITIES,
    SORT_OPTIONS,
    SORT_TO_WIRE,
    STATUS_FILTERS,
    TIME_WINDOWS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiFilter:
    """Normalized query parameters sent to the remote store."""
    view: str = "all"
    project_id: Optional[int] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    search_query: Optional[str] = None
    sort_by: str = DEFAULT_SORT

    def to_wire(self) -> Dict[str, object]:
        out: Dict[str, object] = {"view": self.view, "sortBy": SORT_TO_WIRE[self.sort_by]}
        if self.project_id is not None:
            out["projectId"] = self.project_id
        if self.priority is not None:
            out["priority"] = self.priority
        if self.status is not None:
            out["status"] = self.status
        if self.search_query:
            out["searchQuery"] = self.search_query
        return out


@dataclass(frozen=True)
class FilterState:
    time_window: str = "all"
    project_id: Optional[int] = None
    search_query: str = ""
    priority_filter: Optional[str] = None
    status_filter: str = "all"
    sort_by: str = DEFAULT_SORT
    current_page: int = 1

    @property
    def has_active_filters(self) -> bool:
        # project and time window are navigation, not filters
        return (
            self.search_query.strip() != ""
            or self.status_filter != "all"
            or self.priority_filter is not None
        )

    @property
    def api_filter(self) -> ApiFilter:
        search = self.search_query.strip()
        return ApiFilter(
            view=self.time_window,
            project_id=self.project_id,
            priority=self.priority_filter,
            status=None if self.status_filter == "all" else self.status_filter,
            search_query=search or None,
            sort_by=self.sort_by,
        )


def _check(value: Optional[str], allowed, what: str, *, optional: bool = False) -> None:
    if value is None and optional:
        return
    if value not in allowed:
        raise ValueError(f"Unknown {what}: {value!r}")


Listener = Callable[[FilterState], None]


class FilterStore:
    """Owns the current FilterState; the only way to change it."""

    def __init__(self, initial: Optional[FilterState] = None) -> None:
        self._state = initial or FilterState()
        self._listeners: List[Listener] = []

    @property
    def state(self) -> FilterState:
        return self._state

    @property
    def has_active_filters(self) -> bool:
        return self._state.has_active_filters

    @property
    def api_filter(self) -> ApiFilter:
        return self._state.api_filter

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _commit(self, new_state: FilterState) -> None:
        if new_state == self._state:
            return
        self._state = new_state
        logger.debug("filter state -> %s", new_state)
        for listener in list(self._listeners):
            listener(new_state)

    def _set_filter(self, **changes: object) -> None:
        self._commit(replace(self._state, current_page=1, **changes))  # type: ignore[arg-type]

    # setters that reset pagination
    def set_time_window(self, window: str) -> None:
        _check(window, TIME_WINDOWS, "time window")
        self._set_filter(time_window=window)

    def set_project_id(self, project_id: Optional[int]) -> None:
        self._set_filter(project_id=project_id)

    def set_search_query(self, query: str) -> None:
        self._set_filter(search_query=query or "")

    def set_priority_filter(self, priority: Optional[str]) -> None:
        _check(priority, PRIORITIES, "priority", optional=True)
        self._set_filter(priority_filter=priority)

    def set_status_filter(self, status: str) -> None:
        _check(status, STATUS_FILTERS, "status filter")
        self._set_filter(status_filter=status)

    def set_sort_by(self, sort_by: str) -> None:
        # reordering changes which items sit on which page
        _check(sort_by, SORT_OPTIONS, "sort option")
        self._set_filter(sort_by=sort_by)

    # page controls
    def set_current_page(self, page: int) -> None:
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        self._commit(replace(self._state, current_page=page))

    def reset_page(self) -> None:
        self._commit(replace(self._state, current_page=1))

    def clamp_page(self, total_pages: int) -> None:
        """Pull the page back inside ``1..total_pages``."""
        last = max(1, total_pages)
        if self._state.current_page > last:
            logger.info("page %d is past the last page %d; clamping", self._state.current_page, last)
            self._commit(replace(self._state, current_page=last))

    def clear_filters(self) -> None:
        # sort order and project selection survive a clear
        self._commit(replace(
            self._state,
            time_window="all",
            search_query="",
            status_filter="all",
            priority_filter=None,
            current_page=1,
        ))
