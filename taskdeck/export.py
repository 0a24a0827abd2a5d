from __future__ import annotations

import datetime as dt
from typing import Iterable, Optional

from .models import TaskExport

CSV_HEADER = "id,title,description,dueDate,priority,project,completed,createdAt"


def _escape(text: str) -> str:
    if "," in text or '"' in text or "\n" in text:
        return '"' + text.replace('"', '""') + '"'
    return text


def _fmt(when: Optional[dt.datetime]) -> str:
    if when is None:
        return ""
    return when.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def tasks_to_csv(tasks: Iterable[TaskExport]) -> str:
    """Render export rows as CSV text (header first, newline-terminated)."""
    lines = [CSV_HEADER]
    for t in tasks:
        lines.append(",".join([
            str(t.id),
            _escape(t.title),
            _escape(t.description or ""),
            _fmt(t.due_date),
            t.priority,
            _escape(t.project_name or ""),
            "Yes" if t.completed else "No",
            _fmt(t.created_at),
        ]))
    return "\n".join(lines) + "\n"
