from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from . import view
from .board import TaskBoard
from .config import Config, load_config, resolve_token
from .logging_setup import setup_logging
from .memory_store import MemoryTaskStore, seed_demo
from .models import PaginatedResult
from .query_cache import ERROR, QueryCache
from .remote import AsyncTaskStore, HttpTaskStore

logger = logging.getLogger(__name__)

MOCK_ENV = "TASKDECK_MOCK"


def build_board(cfg: Config, *, mock: bool = False, token: Optional[str] = None) -> TaskBoard:
    if mock:
        logger.info("mock mode; using a seeded in-memory store")
        blocking = MemoryTaskStore()
        seed_demo(blocking)
    else:
        if not cfg.base_url:
            raise ValueError("Config: 'base_url' is required unless --mock is given.")
        blocking = HttpTaskStore(
            cfg.base_url,
            token,
            timeout=cfg.request_timeout,
            max_total_wait=cfg.max_retry_wait,
        )
    return TaskBoard(
        AsyncTaskStore(blocking),
        page_size=cfg.page_size,
        cache=QueryCache(max_entries=cfg.cache_max_entries),
    )


async def summary_lines(board: TaskBoard) -> List[str]:
    """Plain-text rendering of the first page for ``--no-ui``."""
    await board.load_projects()
    entry = await board.load_tasks()
    if not isinstance(entry.data, PaginatedResult):
        raise RuntimeError(f"Failed to load tasks: {entry.last_error}")
    result = entry.data
    names = {p.id: p.name for p in board.projects()}
    lines = [board.title()]
    if entry.status == ERROR:
        lines.append(f"(refresh failed: {entry.last_error})")
    if not result.items:
        empty = board.empty_state()
        lines.append(empty.message)
        if empty.hint:
            lines.append(empty.hint)
        return lines
    lines.append(f"Page {result.current_page} of {result.total_pages} ({result.total_items} tasks)")
    for t in result.items:
        due = view.format_due_date(t.due_date) or "-"
        project = names.get(t.project_id, "-") if t.project_id is not None else "-"
        lines.append("  ".join([
            "[x]" if t.completed else "[ ]",
            view.pad(due, 22),
            view.pad(view.PRIORITY_LABELS.get(t.priority, t.priority), 8),
            view.pad(project, 14),
            t.title,
        ]))
    return lines


def export_to(board: TaskBoard, path: str) -> int:
    export = asyncio.run(board.export_csv())
    notices = board.pop_notices()
    if export is None:
        msg = notices[-1].text if notices else "Failed to export tasks"
        print(msg, file=sys.stderr)
        return 1
    try:
        with open(path, 'w', encoding='utf-8', newline='') as f:
            f.write(export.text)
    except OSError as e:
        print(f"Failed to write export: {e}", file=sys.stderr)
        return 2
    print(f"Wrote {export.rows} tasks to {path}")
    return 0


# -----------------------------
# CLI
# -----------------------------
def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Terminal task board")
    ap.add_argument("--config", required=True, help="Path to YAML config")
    ap.add_argument("--mock", action="store_true", help="Use a seeded in-memory store (offline demo)")
    ap.add_argument("--no-ui", action="store_true", help="Print the first page and exit")
    ap.add_argument("--export-csv", metavar="PATH", help="Export tasks matching the default view to PATH and exit")
    ap.add_argument("--log-level", default="ERROR", help="File log level (DEBUG, INFO, WARNING, ERROR)")
    ap.add_argument("--state", metavar="PATH", help="UI state file (default ~/.taskdeck.ui.json)")
    args = ap.parse_args(argv)

    setup_logging(log_level=args.log_level)
    try:
        cfg = load_config(args.config)
        mock = args.mock or os.environ.get(MOCK_ENV) == "1"
        board = build_board(cfg, mock=mock, token=None if mock else resolve_token())
    except (OSError, ValueError) as e:
        print(str(e), file=sys.stderr)
        sys.exit(2)

    if args.export_csv:
        sys.exit(export_to(board, args.export_csv))

    if args.no_ui:
        try:
            lines = asyncio.run(summary_lines(board))
        except RuntimeError as e:
            print(str(e), file=sys.stderr)
            sys.exit(1)
        print("\n".join(lines))
        return

    # imported late so --no-ui and export runs never touch the terminal
    from .tui import run_ui
    run_ui(board, state_path=args.state, debounce_delay=cfg.debounce_seconds, export_path=cfg.export_path)
