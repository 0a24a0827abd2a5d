"""Full-screen terminal front end.

Hotkeys
  j/k, arrows  move selection
  space        toggle completion of the selected task
  a / e / d    add task, edit selected task, delete selected task
  A / R / D    add project, rename or delete the selected project
  N            set display name
  /            search (typing is debounced into the filter); Enter keeps it, Esc clears it
  n / p        next / previous page
  s / S        cycle sort presets forward / backward
  f            cycle status filter (all, active, completed)
  r            cycle priority filter
  t            cycle time window (all, today, upcoming)
  P            cycle project
  c            clear filters
  u            refresh
  x            export the current view to CSV
  q            quit

Forms are filled in on the footer line: Enter moves to the next field and saves
on the last one, Shift-Tab goes back, Space or arrows change a choice, Esc
cancels. A rejected save keeps the form open with the error shown.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import json
import logging
import os
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from prompt_toolkit import Application
from prompt_toolkit.filters import Condition
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.styles import Style
from prompt_toolkit.widgets import Frame

from . import view
from .board import TaskBoard
from .debounce import DEFAULT_DELAY, DebouncedInput
from .models import PRIORITIES, SORT_OPTIONS, STATUS_FILTERS, TIME_WINDOWS, PaginatedResult, Task, TaskFields
from .query_cache import ERROR, CacheEntry

logger = logging.getLogger(__name__)

Fragments = List[Tuple[str, str]]

PRIORITY_CYCLE: Tuple[Optional[str], ...] = (None,) + PRIORITIES

STYLE = {
    "header": "bold",
    "selected": "reverse",
    "overdue": "fg:ansired",
    "done": "fg:ansibrightblack",
    "pending": "fg:ansiyellow",
    "muted": "fg:ansibrightblack",
    "error": "fg:ansired bold",
    "current-page": "bold underline",
}


def default_state_path() -> str:
    return os.path.expanduser("~/.taskdeck.ui.json")


def _cycle(options: Sequence, current, step: int = 1):
    options = list(options)
    if current not in options:
        return options[0]
    return options[(options.index(current) + step) % len(options)]


# -----------------------------
# UI state file
# -----------------------------
def load_ui_state(path: str) -> dict:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("ignoring unreadable UI state %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def save_ui_state(path: str, data: dict) -> None:
    try:
        d = os.path.dirname(path)
        if d and not os.path.isdir(d):
            os.makedirs(d, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
    except OSError as exc:
        logger.warning("could not save UI state to %s: %s", path, exc)


# -----------------------------
# Rendering
# -----------------------------
DUE_W = 22
PRIORITY_W = 8
PROJECT_W = 14
TITLE_W = 48


def build_fragments(
    tasks: Sequence[Task],
    selected: int = 0,
    *,
    project_names: Optional[Dict[int, str]] = None,
    pending: Iterable[int] = (),
    now: Optional[dt.datetime] = None,
    empty: Optional[view.EmptyState] = None,
) -> Fragments:
    """Return a list of (style, text) tuples for FormattedTextControl."""
    if not tasks:
        if empty is None:
            return [("class:muted", "Nothing to show.")]
        frags: Fragments = [("bold", empty.message)]
        if empty.show_clear_action:
            frags += [("", " Press "), ("bold", "c"), ("", " to clear filters.")]
        elif empty.hint:
            frags += [("", "\n"), ("class:muted", empty.hint)]
        return frags

    names = project_names or {}
    pending_ids: Set[int] = set(pending)
    header = "     " + "  ".join([
        view.pad("Due", DUE_W),
        view.pad("Priority", PRIORITY_W),
        view.pad("Project", PROJECT_W),
        "Title",
    ])
    frags = [("class:header", header), ("", "\n")]
    for i, t in enumerate(tasks):
        row = "class:selected" if i == selected else ""
        if t.completed:
            row = f"{row} class:done".strip()
        mark = ("[x]" if t.completed else "[ ]") + ("*" if t.id in pending_ids else " ")
        due_style = row
        if not t.completed and view.is_overdue(t.due_date, now):
            due_style = f"{row} class:overdue".strip()
        frags.append((f"{row} class:pending".strip() if t.id in pending_ids else row, mark + " "))
        frags.append((due_style, view.pad(view.format_due_date(t.due_date, now) or "-", DUE_W)))
        frags.append((row, "  " + view.pad(view.PRIORITY_LABELS.get(t.priority, t.priority), PRIORITY_W)))
        project = names.get(t.project_id, "-") if t.project_id is not None else "-"
        frags.append((row, "  " + view.pad(project, PROJECT_W)))
        frags.append((row, "  " + view.pad(t.title, TITLE_W)))
        frags.append(("", "\n"))

    if frags and frags[-1] == ("", "\n"):
        frags.pop()
    return frags


def pagination_fragments(result: PaginatedResult) -> Fragments:
    total = f"{result.total_items} task" + ("" if result.total_items == 1 else "s")
    if result.total_pages <= 1:
        return [("", total)]
    frags: Fragments = [("", f"Page {result.current_page} of {result.total_pages} ({total})  ")]
    for n in view.page_numbers(result.current_page, result.total_pages):
        if n == result.current_page:
            frags.append(("class:current-page", f"[{n}]"))
        else:
            frags.append(("", f" {n} "))
    return frags


# -----------------------------
# Forms
# -----------------------------
TEXT = "text"
CHOICE = "choice"
CONFIRM = "confirm"

# (field, label, input kind)
TASK_STEPS = (
    ("title", "Title", TEXT),
    ("description", "Description", TEXT),
    ("due", "Due (YYYY-MM-DD [HH:MM])", TEXT),
    ("priority", "Priority", CHOICE),
    ("project_id", "Project", CHOICE),
)
PROJECT_STEPS = (("name", "Name", TEXT),)
DISPLAY_NAME_STEPS = (("name", "Display name", TEXT),)


# -----------------------------
# Controller
# -----------------------------
class UiController:
    """Key handling and rendering for the board, independent of the Application."""

    def __init__(
        self,
        board: TaskBoard,
        *,
        state_path: Optional[str] = None,
        debounce_delay: float = DEFAULT_DELAY,
        export_path: str = "tasks.csv",
        spawn: Optional[Callable] = None,
        loop=None,
    ) -> None:
        self.board = board
        self.state_path = state_path
        self.export_path = export_path
        self.selected = 0
        self.in_search = False
        self.form: Optional[dict] = None
        self.status_line = ""
        self.on_change: Callable[[], None] = lambda: None
        self._spawn = spawn or self._create_task
        self._background: Set[asyncio.Task] = set()
        self.search = DebouncedInput(
            board.filters.set_search_query,
            debounce_delay,
            initial=board.filters.state.search_query,
            loop=loop,
        )
        board.filters.subscribe(self._on_filters)
        if state_path:
            sort_by = load_ui_state(state_path).get("sort_by")
            if sort_by in SORT_OPTIONS:
                board.filters.set_sort_by(sort_by)

    def _create_task(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _on_filters(self, _state) -> None:
        self.selected = 0

    def _take_notices(self) -> None:
        notices = self.board.pop_notices()
        if notices:
            self.status_line = notices[-1].text
        self.on_change()

    def save_state(self) -> None:
        if self.state_path:
            save_ui_state(self.state_path, {"sort_by": self.board.filters.state.sort_by})

    def close(self) -> None:
        self.search.close()
        self.save_state()

    # -- rows
    def page(self) -> Optional[PaginatedResult]:
        entry = self.board.cache.get(self.board.tasks_key())
        if entry is not None and isinstance(entry.data, PaginatedResult):
            return entry.data
        return None

    def rows(self) -> Sequence[Task]:
        data = self.page()
        return data.items if data is not None else ()

    def selected_task(self) -> Optional[Task]:
        rows = self.rows()
        if 0 <= self.selected < len(rows):
            return rows[self.selected]
        return None

    def move(self, delta: int) -> None:
        n = len(self.rows())
        self.selected = max(0, min(n - 1, self.selected + delta)) if n else 0

    # -- actions
    def toggle_selected(self):
        task = self.selected_task()
        if task is None:
            return None
        pending = self.board.begin_toggle(task.id)
        self._take_notices()
        return self._spawn(self._settle_toggle(pending))

    async def _settle_toggle(self, pending) -> None:
        await pending
        self._take_notices()

    def next_page(self) -> None:
        data = self.page()
        if data is not None and data.has_next_page:
            self.board.filters.set_current_page(self.board.filters.state.current_page + 1)

    def prev_page(self) -> None:
        page = self.board.filters.state.current_page
        if page > 1:
            self.board.filters.set_current_page(page - 1)

    def cycle_sort(self, step: int = 1) -> None:
        filters = self.board.filters
        filters.set_sort_by(_cycle(SORT_OPTIONS, filters.state.sort_by, step))
        self.status_line = f"Sort: {view.SORT_LABELS[filters.state.sort_by]}"
        self.save_state()

    def cycle_status(self) -> None:
        filters = self.board.filters
        filters.set_status_filter(_cycle(STATUS_FILTERS, filters.state.status_filter))
        self.status_line = f"Status: {view.STATUS_LABELS[filters.state.status_filter]}"

    def cycle_priority(self) -> None:
        filters = self.board.filters
        filters.set_priority_filter(_cycle(PRIORITY_CYCLE, filters.state.priority_filter))
        p = filters.state.priority_filter
        self.status_line = f"Priority: {view.PRIORITY_LABELS[p] if p else 'All'}"

    def cycle_time_window(self) -> None:
        filters = self.board.filters
        filters.set_time_window(_cycle(TIME_WINDOWS, filters.state.time_window))
        self.status_line = f"View: {view.TIME_WINDOW_LABELS[filters.state.time_window]}"

    def cycle_project(self) -> None:
        options: List[Optional[int]] = [None] + [p.id for p in self.board.projects()]
        self.board.filters.set_project_id(_cycle(options, self.board.filters.state.project_id))
        self.status_line = f"Project: {self.board.title()}"

    def clear_filters(self) -> None:
        self.board.filters.clear_filters()
        self.search.sync("")
        self.status_line = "Filters cleared"

    def refresh(self) -> None:
        self.board.refresh()
        self.status_line = "Refreshing..."

    def export(self):
        return self._spawn(self._export())

    async def _export(self) -> None:
        export = await self.board.export_csv()
        if export is not None:
            try:
                with open(self.export_path, 'w', encoding='utf-8', newline='') as f:
                    f.write(export.text)
            except OSError as exc:
                logger.error("export write to %s failed: %s", self.export_path, exc)
                self.board.pop_notices()
                self.status_line = f"Failed to write {self.export_path}"
                self.on_change()
                return
        self._take_notices()
        if export is not None:
            self.status_line = f"Exported {export.rows} tasks to {self.export_path}"

    # -- forms
    @property
    def in_form(self) -> bool:
        return self.form is not None

    def form_input(self) -> Optional[str]:
        """Input kind of the active form field (TEXT, CHOICE or CONFIRM)."""
        form = self.form
        if form is None:
            return None
        if form['kind'] == CONFIRM:
            return CONFIRM
        return form['steps'][form['index']][2]

    def _open_form(self, kind: str, title: str, steps=(), values=None, target=None) -> None:
        self.form = {
            'kind': kind,
            'title': title,
            'steps': steps,
            'index': 0,
            'values': dict(values or {}),
            'target': target,
            'error': None,
            'busy': False,
        }
        self.on_change()

    def open_task_form(self, edit: bool = False) -> bool:
        if not edit:
            self._open_form('task', 'New task', TASK_STEPS, {
                'title': '',
                'description': '',
                'due': '',
                'priority': 'medium',
                'project_id': self.board.filters.state.project_id,
            })
            return True
        task = self.selected_task()
        if task is None:
            self.status_line = "No task selected"
            return False
        self._open_form('task', 'Edit task', TASK_STEPS, {
            'title': task.title,
            'description': task.description or '',
            'due': view.format_due_input(task.due_date),
            'priority': task.priority,
            'project_id': task.project_id,
        }, target=task.id)
        return True

    def open_project_form(self, rename: bool = False) -> bool:
        if not rename:
            self._open_form('project', 'New project', PROJECT_STEPS, {'name': ''})
            return True
        name = self.board.selected_project_name()
        if name is None:
            self.status_line = "Select a project first (P)"
            return False
        self._open_form('project', 'Rename project', PROJECT_STEPS, {'name': name},
                        target=self.board.filters.state.project_id)
        return True

    def open_display_name_form(self) -> None:
        current = self.board.read_display_name().data or ''
        self._open_form('display_name', 'Profile', DISPLAY_NAME_STEPS, {'name': current})

    def confirm_delete_task(self) -> bool:
        task = self.selected_task()
        if task is None:
            self.status_line = "No task selected"
            return False
        self._open_form(CONFIRM, f"Delete task '{view.truncate(task.title, 40)}'?", target=('task', task.id))
        return True

    def confirm_delete_project(self) -> bool:
        name = self.board.selected_project_name()
        if name is None:
            self.status_line = "Select a project first (P)"
            return False
        self._open_form(CONFIRM, f"Delete project '{name}'? Its tasks are kept.",
                        target=('project', self.board.filters.state.project_id))
        return True

    def close_form(self, message: Optional[str] = None) -> None:
        self.form = None
        if message is not None:
            self.status_line = message
        self.on_change()

    def cancel_form(self) -> None:
        if self.form is not None:
            self.close_form("Cancelled")

    def form_type(self, ch: str) -> None:
        if self.form_input() != TEXT or not ch or ch in ('\n', '\r'):
            return
        field = self.form['steps'][self.form['index']][0]
        values = self.form['values']
        values[field] = values.get(field, '') + ch
        self.on_change()

    def form_backspace(self) -> None:
        if self.form_input() != TEXT:
            return
        field = self.form['steps'][self.form['index']][0]
        values = self.form['values']
        values[field] = values.get(field, '')[:-1]
        self.on_change()

    def _choices(self, field: str) -> List:
        if field == 'priority':
            return list(PRIORITIES)
        return [None] + [p.id for p in self.board.projects()]

    def _choice_label(self, field: str, value) -> str:
        if field == 'priority':
            return view.PRIORITY_LABELS.get(value, str(value))
        if value is None:
            return "None"
        names = {p.id: p.name for p in self.board.projects()}
        return names.get(value, f"#{value}")

    def form_cycle(self, step: int = 1) -> None:
        if self.form_input() != CHOICE:
            return
        field = self.form['steps'][self.form['index']][0]
        values = self.form['values']
        values[field] = _cycle(self._choices(field), values.get(field), step)
        self.on_change()

    def form_back(self) -> None:
        form = self.form
        if form is not None and form['index'] > 0:
            form['index'] -= 1
            self.on_change()

    def form_next(self):
        """Move to the next field, or save when on the last one."""
        form = self.form
        if form is None or form['busy']:
            return None
        if form['kind'] != CONFIRM and form['index'] < len(form['steps']) - 1:
            form['index'] += 1
            self.on_change()
            return None
        form['busy'] = True
        form['error'] = None
        self.on_change()
        return self._spawn(self._submit_form(form))

    async def _submit_form(self, form: dict) -> None:
        if form['kind'] == CONFIRM:
            self.close_form()
            what, ident = form['target']
            if what == 'task':
                result = await self.board.delete_task(ident)
                done = "Task deleted"
            else:
                result = await self.board.delete_project(ident)
                done = "Project deleted"
            self._take_notices()
            if result.ok:
                self.status_line = done
            return
        try:
            error, done = await self._save_form(form)
        finally:
            form['busy'] = False
        if error is not None:
            logger.info("%s form rejected: %s", form['kind'], error)
            form['error'] = error
            if self.form is not form:
                self.status_line = error
            self.on_change()
            return
        if self.form is form:
            self.close_form(done)
        else:
            self.status_line = done
            self.on_change()

    async def _save_form(self, form: dict) -> Tuple[Optional[str], str]:
        """Run the form's mutation; returns (error, success message)."""
        board = self.board
        values = form['values']
        target = form['target']
        if form['kind'] == 'task':
            try:
                fields = TaskFields(
                    title=values['title'],
                    priority=values['priority'],
                    description=values['description'].strip() or None,
                    due_date=view.parse_due_input(values['due']),
                    project_id=values['project_id'],
                )
            except ValueError as exc:
                return str(exc), ""
            result = await board.submit_task(fields, task_id=target)
            if not result.ok:
                return board.task_form_error or "Failed to save task", ""
            return None, "Task updated" if target is not None else "Task created"

        name = values['name'].strip()
        if form['kind'] == 'project':
            if not name:
                return "Project name is required", ""
            result = await board.submit_project(name, project_id=target)
            if not result.ok:
                return board.project_form_error or "Failed to save project", ""
            return None, "Project renamed" if target is not None else f"Project created: {name}"

        if not name:
            return "Display name is required", ""
        result = await board.update_display_name(name)
        if not result.ok:
            return board.display_name_error or "Failed to update display name", ""
        return None, "Display name updated"

    def form_fragments(self) -> Fragments:
        form = self.form
        if form is None:
            return []
        if form['kind'] == CONFIRM:
            frags: Fragments = [("bold", form['title']), ("", " (y/n)")]
        else:
            steps = form['steps']
            index = form['index']
            field, label, kind = steps[index]
            value = form['values'].get(field)
            shown = self._choice_label(field, value) if kind == CHOICE else (value or '')
            last = index == len(steps) - 1
            hint = "Enter to save" if last else "Enter for next"
            if kind == CHOICE:
                hint = "Space to change, " + hint
            frags = [("bold", f"{form['title']} [{index + 1}/{len(steps)}]  {label}: "), ("", shown)]
            frags.append(("class:muted", f"  ({hint}, Esc to cancel)"))
        if form['busy']:
            frags.append(("class:muted", "  Saving..."))
        if form['error']:
            frags.append(("class:error", f"  {form['error']}"))
        return frags

    # -- search
    def start_search(self) -> None:
        self.in_search = True

    def search_type(self, ch: str) -> None:
        if ch:
            self.search.type(self.search.value + ch)

    def search_backspace(self) -> None:
        if self.search.value:
            self.search.type(self.search.value[:-1])

    def finish_search(self) -> None:
        self.search.submit()
        self.in_search = False

    def cancel_search(self) -> None:
        self.search.sync("")
        self.board.filters.set_search_query("")
        self.in_search = False

    # -- fragments
    def header_fragments(self) -> Fragments:
        board = self.board
        board.read_projects()
        st = board.filters.state
        frags: Fragments = [("class:header", board.title())]
        parts = [
            f"View: {view.TIME_WINDOW_LABELS[st.time_window]}",
            f"Status: {view.STATUS_LABELS[st.status_filter]}",
            f"Priority: {view.PRIORITY_LABELS[st.priority_filter] if st.priority_filter else 'All'}",
            f"Sort: {view.SORT_LABELS[st.sort_by]}",
        ]
        if st.search_query.strip():
            parts.append(f"Search: {st.search_query.strip()}")
        frags.append(("", "  |  " + "  ".join(parts)))
        name = board.read_display_name().data
        if name:
            frags.append(("class:muted", f"  |  {name}"))
        return frags

    def body_fragments(self) -> Fragments:
        entry: CacheEntry = self.board.read_tasks()
        if entry.data is None:
            if entry.status == ERROR:
                return [
                    ("class:error", f"Failed to load tasks: {entry.last_error}"),
                    ("", " Press "), ("bold", "u"), ("", " to retry."),
                ]
            return [("class:muted", "Loading tasks...")]
        rows = entry.data.items
        self.selected = max(0, min(self.selected, len(rows) - 1)) if rows else 0
        names = {p.id: p.name for p in self.board.projects()}
        pending = [t.id for t in rows if self.board.mutations.toggle_pending(t.id)]
        return build_fragments(rows, self.selected, project_names=names, pending=pending, empty=self.board.empty_state())

    def footer_fragments(self) -> Fragments:
        if self.in_search:
            return [("bold", "Search: "), ("", self.search.value)]
        if self.in_form:
            return self.form_fragments()
        entry = self.board.read_tasks()
        frags: Fragments = []
        if isinstance(entry.data, PaginatedResult):
            frags.extend(pagination_fragments(entry.data))
            if entry.status == ERROR:
                frags.append(("class:error", "  (refresh failed; showing last loaded tasks)"))
        if self.status_line:
            frags.append(("", ("  " if frags else "") + self.status_line))
        return frags


# -----------------------------
# TUI
# -----------------------------
def run_ui(
    board: TaskBoard,
    *,
    state_path: Optional[str] = None,
    debounce_delay: float = DEFAULT_DELAY,
    export_path: str = "tasks.csv",
) -> None:
    app: Optional[Application] = None

    def spawn(coro):
        assert app is not None
        return app.create_background_task(coro)

    ui = UiController(
        board,
        state_path=state_path or default_state_path(),
        debounce_delay=debounce_delay,
        export_path=export_path,
        spawn=spawn,
    )

    def invalidate(*_args) -> None:
        if app is not None:
            app.invalidate()

    ui.on_change = invalidate
    board.cache.subscribe(invalidate)
    board.filters.subscribe(invalidate)

    kb = KeyBindings()
    is_search = Condition(lambda: ui.in_search)
    is_form = Condition(lambda: ui.in_form)
    is_form_text = Condition(lambda: ui.form_input() == TEXT)
    is_form_choice = Condition(lambda: ui.form_input() == CHOICE)
    is_confirm = Condition(lambda: ui.form_input() == CONFIRM)
    is_normal = ~(is_search | is_form)

    @kb.add('q', filter=is_normal)
    @kb.add('c-c')
    def _(event):
        ui.close()
        event.app.exit()

    @kb.add('j', filter=is_normal)
    @kb.add('down', filter=is_normal)
    def _(event):
        ui.move(1); invalidate()

    @kb.add('k', filter=is_normal)
    @kb.add('up', filter=is_normal)
    def _(event):
        ui.move(-1); invalidate()

    @kb.add(' ', filter=is_normal)
    def _(event):
        ui.toggle_selected()

    @kb.add('n', filter=is_normal)
    def _(event):
        ui.next_page()

    @kb.add('p', filter=is_normal)
    def _(event):
        ui.prev_page()

    @kb.add('s', filter=is_normal)
    def _(event):
        ui.cycle_sort(1)

    @kb.add('S', filter=is_normal)
    def _(event):
        ui.cycle_sort(-1)

    @kb.add('f', filter=is_normal)
    def _(event):
        ui.cycle_status()

    @kb.add('r', filter=is_normal)
    def _(event):
        ui.cycle_priority()

    @kb.add('t', filter=is_normal)
    def _(event):
        ui.cycle_time_window()

    @kb.add('P', filter=is_normal)
    def _(event):
        ui.cycle_project()

    @kb.add('c', filter=is_normal)
    def _(event):
        ui.clear_filters()

    @kb.add('u', filter=is_normal)
    def _(event):
        ui.refresh()

    @kb.add('x', filter=is_normal)
    def _(event):
        ui.status_line = "Exporting..."
        ui.export(); invalidate()

    # search mode
    @kb.add('/', filter=is_normal)
    def _(event):
        ui.start_search(); invalidate()

    @kb.add('enter', filter=is_search)
    def _(event):
        ui.finish_search(); invalidate()

    @kb.add('escape', filter=is_search)
    def _(event):
        ui.cancel_search(); invalidate()

    @kb.add('backspace', filter=is_search)
    def _(event):
        ui.search_backspace(); invalidate()

    # printable characters while searching; special keys have empty event.data
    @kb.add(Keys.Any, filter=is_search)
    def _(event):
        ui.search_type(event.data or ""); invalidate()

    # task / project / profile forms
    @kb.add('a', filter=is_normal)
    def _(event):
        ui.open_task_form()

    @kb.add('e', filter=is_normal)
    def _(event):
        ui.open_task_form(edit=True); invalidate()

    @kb.add('d', filter=is_normal)
    def _(event):
        ui.confirm_delete_task(); invalidate()

    @kb.add('A', filter=is_normal)
    def _(event):
        ui.open_project_form()

    @kb.add('R', filter=is_normal)
    def _(event):
        ui.open_project_form(rename=True); invalidate()

    @kb.add('D', filter=is_normal)
    def _(event):
        ui.confirm_delete_project(); invalidate()

    @kb.add('N', filter=is_normal)
    def _(event):
        ui.open_display_name_form()

    @kb.add('escape', filter=is_form)
    def _(event):
        ui.cancel_form()

    @kb.add('enter', filter=is_form)
    @kb.add('y', filter=is_confirm)
    def _(event):
        ui.form_next()

    @kb.add('n', filter=is_confirm)
    def _(event):
        ui.cancel_form()

    @kb.add('s-tab', filter=is_form)
    def _(event):
        ui.form_back()

    @kb.add('backspace', filter=is_form_text)
    def _(event):
        ui.form_backspace()

    @kb.add(' ', filter=is_form_choice)
    @kb.add('right', filter=is_form_choice)
    def _(event):
        ui.form_cycle(1)

    @kb.add('left', filter=is_form_choice)
    def _(event):
        ui.form_cycle(-1)

    @kb.add(Keys.Any, filter=is_form_text)
    def _(event):
        ui.form_type(event.data or "")

    header = Window(height=1, content=FormattedTextControl(text=ui.header_fragments))
    body = Frame(body=Window(content=FormattedTextControl(text=ui.body_fragments), wrap_lines=False, always_hide_cursor=True))
    footer = Window(height=1, content=FormattedTextControl(text=ui.footer_fragments))
    app = Application(
        layout=Layout(HSplit([header, body, footer])),
        key_bindings=kb,
        full_screen=True,
        style=Style.from_dict(STYLE),
    )
    try:
        app.run()
    finally:
        ui.close()
