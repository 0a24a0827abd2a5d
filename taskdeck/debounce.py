"""Keystroke coalescing for the search box."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.3


class Debouncer:
    """Collapse calls made within ``delay`` seconds into one trailing call.

    Only the last call's arguments are delivered. Each call restarts the
    window; ``cancel`` drops the pending call, ``flush`` delivers it now.
    """

    def __init__(self, callback: Callable[..., None], delay: float = DEFAULT_DELAY, *, loop=None) -> None:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        self.callback = callback
        self.delay = delay
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._args: Tuple[object, ...] = ()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, *args: object) -> None:
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._args = args
        self._handle = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        args, self._args = self._args, ()
        self.callback(*args)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            self._args = ()

    def flush(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._fire()


class DebouncedInput:
    """Text input whose local value updates on every keystroke while the
    downstream setter only sees the value once typing pauses."""

    def __init__(self, setter: Callable[[str], None], delay: float = DEFAULT_DELAY, *, initial: str = "", loop=None) -> None:
        self.value = initial
        self._debouncer = Debouncer(setter, delay, loop=loop)

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    def type(self, text: str) -> None:
        self.value = text
        self._debouncer(text)

    def sync(self, text: str) -> None:
        """Adopt a value set elsewhere (e.g. clear filters) without sending it back."""
        self._debouncer.cancel()
        self.value = text

    def submit(self) -> None:
        self._debouncer.flush()

    def close(self) -> None:
        self._debouncer.cancel()
