"""taskdeck: a terminal task board over a remote task store."""

from .board import Notice, TaskBoard
from .filters import ApiFilter, FilterState, FilterStore
from .models import PaginatedResult, Project, Task, TaskExport, TaskFields
from .mutations import MutationCoordinator, MutationResult
from .query_cache import CacheEntry, QueryCache

__version__ = "0.1.0"

__all__ = [
    "ApiFilter",
    "CacheEntry",
    "FilterState",
    "FilterStore",
    "MutationCoordinator",
    "MutationResult",
    "Notice",
    "PaginatedResult",
    "Project",
    "QueryCache",
    "Task",
    "TaskBoard",
    "TaskExport",
    "TaskFields",
]
