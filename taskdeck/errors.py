from __future__ import annotations

from typing import Optional


class TaskdeckError(Exception):
    """Base for errors raised by taskdeck."""


class RemoteError(TaskdeckError):
    """A remote store call did not succeed."""

    def __init__(self, message: str, *, method: Optional[str] = None, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.method = method
        self.status = status


class TransportError(RemoteError):
    """The call could not complete (connection, timeout, retry budget spent)."""


class RemoteRejectedError(RemoteError):
    """The store answered, but refused the request (e.g. duplicate project name)."""


def error_message(exc: BaseException, fallback: str) -> str:
    text = str(exc).strip()
    return text or fallback
