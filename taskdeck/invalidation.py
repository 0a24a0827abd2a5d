"""Which cached namespaces go stale after each kind of mutation, and when."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from .cache_keys import DISPLAY_NAME, PROJECTS, TASKS, CacheKey

logger = logging.getLogger(__name__)

# phases
ON_SUCCESS = "success"
ON_SETTLED = "settled"

CREATE_TASK = "create_task"
UPDATE_TASK = "update_task"
DELETE_TASK = "delete_task"
TOGGLE_TASK = "toggle_task_complete"
CREATE_PROJECT = "create_project"
RENAME_PROJECT = "rename_project"
DELETE_PROJECT = "delete_project"
SET_DISPLAY_NAME = "set_display_name"


@dataclass(frozen=True)
class InvalidationRule:
    namespaces: Tuple[str, ...]
    phase: str = ON_SUCCESS


DEFAULT_RULES: Dict[str, InvalidationRule] = {
    CREATE_TASK: InvalidationRule((TASKS,)),
    UPDATE_TASK: InvalidationRule((TASKS,)),
    DELETE_TASK: InvalidationRule((TASKS,)),
    TOGGLE_TASK: InvalidationRule((TASKS,), ON_SETTLED),
    CREATE_PROJECT: InvalidationRule((PROJECTS,)),
    RENAME_PROJECT: InvalidationRule((PROJECTS,)),
    # tasks may still point at the removed project
    DELETE_PROJECT: InvalidationRule((PROJECTS, TASKS)),
    SET_DISPLAY_NAME: InvalidationRule((DISPLAY_NAME,), ON_SETTLED),
}


class InvalidationPolicy:
    def __init__(self, rules: Optional[Mapping[str, InvalidationRule]] = None) -> None:
        self._rules: Dict[str, InvalidationRule] = dict(DEFAULT_RULES if rules is None else rules)

    def rule_for(self, kind: str) -> InvalidationRule:
        try:
            return self._rules[kind]
        except KeyError:
            raise ValueError(f"No invalidation rule for mutation {kind!r}") from None

    def stale_namespaces(self, kind: str, *, succeeded: bool) -> Tuple[str, ...]:
        rule = self.rule_for(kind)
        if succeeded or rule.phase == ON_SETTLED:
            return rule.namespaces
        return ()

    def apply(self, cache, kind: str, *, succeeded: bool) -> List[CacheKey]:
        marked: List[CacheKey] = []
        for namespace in self.stale_namespaces(kind, succeeded=succeeded):
            marked.extend(cache.invalidate(namespace))
        logger.debug("%s (%s): %d entries marked stale", kind, "ok" if succeeded else "failed", len(marked))
        return marked
