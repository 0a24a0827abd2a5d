"""Task/project records and their wire representation.

Ids and timestamps cross the remote boundary as integers (timestamps are
nanoseconds since the epoch). They are converted here, once, so nothing past
this module ever compares wire values.
"""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple


# -----------------------------
# Vocabulary
# -----------------------------
PRIORITIES: Tuple[str, ...] = ("high", "medium", "low")
TIME_WINDOWS: Tuple[str, ...] = ("all", "today", "upcoming")
STATUS_FILTERS: Tuple[str, ...] = ("all", "active", "completed")
SORT_OPTIONS: Tuple[str, ...] = (
    "due_date_asc",
    "due_date_desc",
    "priority_desc",
    "priority_asc",
    "created_desc",
    "created_asc",
    "alpha_asc",
    "alpha_desc",
)
DEFAULT_SORT = "due_date_asc"

SORT_TO_WIRE: Dict[str, str] = {
    "due_date_asc": "dueDateAsc",
    "due_date_desc": "dueDateDesc",
    "priority_asc": "priorityAsc",
    "priority_desc": "priorityDesc",
    "created_asc": "createdAsc",
    "created_desc": "createdDesc",
    "alpha_asc": "alphaAsc",
    "alpha_desc": "alphaDesc",
}
SORT_FROM_WIRE: Dict[str, str] = {v: k for k, v in SORT_TO_WIRE.items()}

NS_PER_SECOND = 1_000_000_000
_EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)


def ns_to_datetime(value: object) -> Optional[dt.datetime]:
    """Nanoseconds since epoch (int or decimal string) -> aware UTC datetime."""
    if value is None or value == "":
        return None
    ns = int(value)  # type: ignore[arg-type]
    seconds, rem = divmod(ns, NS_PER_SECOND)
    return _EPOCH + dt.timedelta(seconds=seconds, microseconds=rem // 1000)


def datetime_to_ns(when: Optional[dt.datetime]) -> Optional[int]:
    if when is None:
        return None
    if when.tzinfo is None:
        # naive values are local wall-clock time
        when = when.astimezone()
    delta = when - _EPOCH
    return (delta.days * 86400 + delta.seconds) * NS_PER_SECOND + delta.microseconds * 1000


def _opt_int(value: object) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)  # type: ignore[arg-type]


def _opt_str(value: object) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def normalize_priority(value: object) -> str:
    text = str(value or "").strip().lower()
    if text not in PRIORITIES:
        raise ValueError(f"Unknown priority: {value!r}")
    return text


# -----------------------------
# Records
# -----------------------------
@dataclass(frozen=True)
class Task:
    id: int
    title: str
    priority: str
    completed: bool
    created_at: dt.datetime
    updated_at: dt.datetime
    description: Optional[str] = None
    due_date: Optional[dt.datetime] = None
    project_id: Optional[int] = None

    @classmethod
    def from_wire(cls, raw: Mapping[str, object]) -> "Task":
        created = ns_to_datetime(raw.get("createdAt")) or _EPOCH
        return cls(
            id=int(raw["id"]),  # type: ignore[arg-type]
            title=str(raw.get("title") or ""),
            priority=normalize_priority(raw.get("priority") or "medium"),
            completed=bool(raw.get("completed")),
            created_at=created,
            updated_at=ns_to_datetime(raw.get("updatedAt")) or created,
            description=_opt_str(raw.get("description")),
            due_date=ns_to_datetime(raw.get("dueDate")),
            project_id=_opt_int(raw.get("projectId")),
        )

    def to_wire(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "dueDate": datetime_to_ns(self.due_date),
            "priority": self.priority,
            "projectId": self.project_id,
            "completed": self.completed,
            "createdAt": datetime_to_ns(self.created_at),
            "updatedAt": datetime_to_ns(self.updated_at),
        }

    def with_completed(self, completed: bool) -> "Task":
        return replace(self, completed=completed)


@dataclass(frozen=True)
class TaskFields:
    """Writable task fields shared by create and update."""
    title: str
    priority: str = "medium"
    description: Optional[str] = None
    due_date: Optional[dt.datetime] = None
    project_id: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValueError("Task title is required")
        object.__setattr__(self, "priority", normalize_priority(self.priority))

    def to_wire(self) -> Dict[str, object]:
        return {
            "title": self.title.strip(),
            "description": self.description or None,
            "dueDate": datetime_to_ns(self.due_date),
            "priority": self.priority,
            "projectId": self.project_id,
        }


@dataclass(frozen=True)
class Project:
    id: int
    name: str
    created_at: dt.datetime

    @classmethod
    def from_wire(cls, raw: Mapping[str, object]) -> "Project":
        return cls(
            id=int(raw["id"]),  # type: ignore[arg-type]
            name=str(raw.get("name") or ""),
            created_at=ns_to_datetime(raw.get("createdAt")) or _EPOCH,
        )

    def to_wire(self) -> Dict[str, object]:
        return {"id": self.id, "name": self.name, "createdAt": datetime_to_ns(self.created_at)}


@dataclass(frozen=True)
class TaskExport:
    id: int
    title: str
    priority: str
    completed: bool
    created_at: dt.datetime
    description: Optional[str] = None
    due_date: Optional[dt.datetime] = None
    project_name: Optional[str] = None

    @classmethod
    def from_wire(cls, raw: Mapping[str, object]) -> "TaskExport":
        return cls(
            id=int(raw["id"]),  # type: ignore[arg-type]
            title=str(raw.get("title") or ""),
            priority=str(raw.get("priority") or ""),
            completed=bool(raw.get("completed")),
            created_at=ns_to_datetime(raw.get("createdAt")) or _EPOCH,
            description=_opt_str(raw.get("description")),
            due_date=ns_to_datetime(raw.get("dueDate")),
            project_name=_opt_str(raw.get("projectName")),
        )

    def to_wire(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "dueDate": datetime_to_ns(self.due_date),
            "priority": self.priority,
            "projectName": self.project_name,
            "completed": self.completed,
            "createdAt": datetime_to_ns(self.created_at),
        }


@dataclass(frozen=True)
class PaginatedResult:
    items: Tuple[Task, ...] = field(default_factory=tuple)
    total_items: int = 0
    total_pages: int = 0
    current_page: int = 1
    has_next_page: bool = False
    has_prev_page: bool = False

    @classmethod
    def build(cls, items: Iterable[Task], total_items: int, current_page: int, page_size: int) -> "PaginatedResult":
        """Build a page, deriving the page count and navigation flags."""
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        rows = tuple(items)
        if len(rows) > page_size:
            raise ValueError(f"page holds {len(rows)} items, page_size is {page_size}")
        total_pages = math.ceil(total_items / page_size) if total_items > 0 else 0
        return cls(
            items=rows,
            total_items=total_items,
            total_pages=total_pages,
            current_page=current_page,
            has_next_page=current_page < total_pages,
            has_prev_page=current_page > 1,
        )

    @classmethod
    def from_wire(cls, raw: Mapping[str, object]) -> "PaginatedResult":
        items = raw.get("items") or []
        return cls(
            items=tuple(Task.from_wire(t) for t in items),  # type: ignore[union-attr]
            total_items=int(raw.get("totalItems") or 0),  # type: ignore[arg-type]
            total_pages=int(raw.get("totalPages") or 0),  # type: ignore[arg-type]
            current_page=int(raw.get("currentPage") or 1),  # type: ignore[arg-type]
            has_next_page=bool(raw.get("hasNextPage")),
            has_prev_page=bool(raw.get("hasPrevPage")),
        )

    def to_wire(self) -> Dict[str, object]:
        return {
            "items": [t.to_wire() for t in self.items],
            "totalItems": self.total_items,
            "totalPages": self.total_pages,
            "currentPage": self.current_page,
            "hasNextPage": self.has_next_page,
            "hasPrevPage": self.has_prev_page,
        }

    def contains(self, task_id: int) -> bool:
        return any(t.id == task_id for t in self.items)

    def find(self, task_id: int) -> Optional[Task]:
        for t in self.items:
            if t.id == task_id:
                return t
        return None


def empty_page() -> PaginatedResult:
    return PaginatedResult()


def projects_from_wire(raw: Iterable[Mapping[str, object]]) -> List[Project]:
    return [Project.from_wire(p) for p in raw]
