"""Cache identities for remote queries.

A key is a namespace plus a tuple of ``(name, value)`` pairs. Keys are frozen
dataclasses, so two keys built from value-equal inputs are equal and hash the
same no matter which objects they came from.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Tuple

from .filters import ApiFilter

TASKS = "tasks"
PROJECTS = "projects"
DISPLAY_NAME = "display_name"


@dataclass(frozen=True)
class CacheKey:
    namespace: str
    params: Tuple[Tuple[str, object], ...] = ()

    def param(self, name: str, default: object = None) -> object:
        for k, v in self.params:
            if k == name:
                return v
        return default

    def __str__(self) -> str:
        inner = ",".join(f"{k}={v}" for k, v in self.params)
        return f"{self.namespace}[{inner}]"


KeyPredicate = Callable[[CacheKey], bool]


def task_list_key(api_filter: ApiFilter, page: int, page_size: int) -> CacheKey:
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    return CacheKey(TASKS, (
        ("view", api_filter.view),
        ("project_id", api_filter.project_id),
        ("priority", api_filter.priority),
        ("status", api_filter.status),
        ("search_query", api_filter.search_query or None),
        ("sort_by", api_filter.sort_by),
        ("page", int(page)),
        ("page_size", int(page_size)),
    ))


def projects_key() -> CacheKey:
    return CacheKey(PROJECTS)


def display_name_key() -> CacheKey:
    return CacheKey(DISPLAY_NAME)


def is_namespace(namespace: str) -> KeyPredicate:
    def _match(key: CacheKey) -> bool:
        return key.namespace == namespace
    return _match


def as_predicate(selector) -> KeyPredicate:
    """Accept a namespace name or a predicate."""
    if isinstance(selector, str):
        return is_namespace(selector)
    if callable(selector):
        return selector
    raise TypeError(f"Expected namespace or predicate, got {type(selector).__name__}")
