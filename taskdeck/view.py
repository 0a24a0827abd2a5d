"""Presentation helpers shared by the board and the terminal UI."""

from __future__ import annotations

import datetime as dt
import unicodedata
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from prompt_toolkit.utils import get_cwidth

ELLIPSIS = "..."

SORT_LABELS: Dict[str, str] = {
    "due_date_asc": "Due Date (Earliest)",
    "due_date_desc": "Due Date (Latest)",
    "priority_desc": "Priority (High First)",
    "priority_asc": "Priority (Low First)",
    "created_desc": "Newest First",
    "created_asc": "Oldest First",
    "alpha_asc": "A-Z",
    "alpha_desc": "Z-A",
}

TIME_WINDOW_LABELS: Dict[str, str] = {"all": "All", "today": "Today", "upcoming": "Upcoming"}
STATUS_LABELS: Dict[str, str] = {"all": "All", "active": "Active", "completed": "Completed"}
PRIORITY_LABELS: Dict[str, str] = {"high": "High", "medium": "Medium", "low": "Low"}


@dataclass(frozen=True)
class EmptyState:
    message: str
    show_clear_action: bool
    hint: Optional[str] = None


def empty_state(has_active_filters: bool) -> EmptyState:
    if has_active_filters:
        return EmptyState("No tasks match your filters", show_clear_action=True)
    return EmptyState("No tasks yet", show_clear_action=False, hint="Create a task to get started")


def page_numbers(current_page: int, total_pages: int) -> List[Union[int, str]]:
    """Page buttons to show: every page up to 7, otherwise a window with gaps."""
    if total_pages <= 7:
        return list(range(1, total_pages + 1))
    if current_page <= 3:
        return [1, 2, 3, 4, ELLIPSIS, total_pages]
    if current_page >= total_pages - 2:
        return [1, ELLIPSIS, total_pages - 3, total_pages - 2, total_pages - 1, total_pages]
    return [1, ELLIPSIS, current_page - 1, current_page, current_page + 1, ELLIPSIS, total_pages]


def _clock(when: dt.datetime) -> str:
    hour = when.hour % 12 or 12
    return f"{hour}:{when.minute:02d} {'AM' if when.hour < 12 else 'PM'}"


def format_due_date(when: Optional[dt.datetime], now: Optional[dt.datetime] = None) -> Optional[str]:
    if when is None:
        return None
    now = (now or dt.datetime.now().astimezone()).astimezone()
    local = when.astimezone()
    time_part = _clock(local)
    if local.date() == now.date():
        return f"Today at {time_part}"
    if local.date() == now.date() + dt.timedelta(days=1):
        return f"Tomorrow at {time_part}"
    day = f"{local.strftime('%b')} {local.day}"
    if local.year != now.year:
        day = f"{day}, {local.year}"
    return f"{day} at {time_part}"


def is_overdue(when: Optional[dt.datetime], now: Optional[dt.datetime] = None) -> bool:
    if when is None:
        return False
    now = now or dt.datetime.now(dt.timezone.utc)
    return when < now


DUE_INPUT_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d")


def format_due_input(when: Optional[dt.datetime]) -> str:
    if when is None:
        return ""
    return when.astimezone().strftime("%Y-%m-%d %H:%M")


def parse_due_input(text: Optional[str]) -> Optional[dt.datetime]:
    """Local 'YYYY-MM-DD' or 'YYYY-MM-DD HH:MM'; blank means no due date."""
    text = (text or "").strip()
    if not text:
        return None
    for fmt in DUE_INPUT_FORMATS:
        try:
            return dt.datetime.strptime(text, fmt).astimezone()
        except ValueError:
            continue
    raise ValueError("Due date must be YYYY-MM-DD or YYYY-MM-DD HH:MM")


# -----------------------------
# Cell layout
# -----------------------------
def _char_width(ch: str) -> int:
    if unicodedata.combining(ch) or unicodedata.category(ch) == "Cf":
        return 0
    return max(0, get_cwidth(ch))


def display_width(text: str) -> int:
    return sum(_char_width(ch) for ch in text)


def truncate(s: Optional[str], maxlen: int) -> str:
    """Truncate to a display width, preserving whole glyphs."""
    s = (s or "").replace("\n", " ").replace("\r", " ")
    if maxlen <= 0:
        return ""
    if display_width(s) <= maxlen:
        return s
    out: List[str] = []
    width = 0
    for ch in s:
        ch_w = _char_width(ch)
        if width + ch_w + 1 > maxlen:
            break
        out.append(ch)
        width += ch_w
    return "".join(out) + "…"


def pad(text: Optional[str], width: int, align: str = "left") -> str:
    raw = truncate(text, width)
    gap = max(0, width - display_width(raw))
    if align == "right":
        return " " * gap + raw
    return raw + " " * gap
