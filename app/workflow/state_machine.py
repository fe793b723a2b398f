# app/workflow/state_machine.py
from __future__ import annotations

from typing import Optional

from app.workflow.errors import InvalidTransition
from app.workflow.statuses import ActorRole, EntityKind, coerce_kind, coerce_role, coerce_status
from app.workflow.transitions import DEFAULT_WORKFLOW, TransitionRule, WorkflowConfig


class StatusValidator:
    """
    Pure legality check against the injected transition tables.
    Unknown kinds, roles or statuses are treated as illegal, never coerced
    into something valid.
    """

    def __init__(self, config: WorkflowConfig = DEFAULT_WORKFLOW):
        self.config = config

    def find_rule(self, kind, current, desired, role) -> Optional[TransitionRule]:
        k = coerce_kind(kind)
        r = coerce_role(role)
        if k is None or r is None:
            return None
        cur = coerce_status(k, current)
        new = coerce_status(k, desired)
        if cur is None or new is None:
            return None
        return self.config.table(k).find(cur, new, r)

    def is_valid_transition(self, kind, current, desired, role) -> bool:
        return self.find_rule(kind, current, desired, role) is not None

    def assert_transition(self, kind, current, desired, role, *, entity_id=None) -> TransitionRule:
        found = self.find_rule(kind, current, desired, role)
        if found is None:
            detail = None
            k = coerce_kind(kind)
            if k is None:
                detail = "unknown entity kind"
            elif coerce_role(role) is None:
                detail = "unknown actor role"
            elif coerce_status(k, desired) is None:
                detail = "unknown target status"
            elif coerce_status(k, current) is None:
                detail = "unknown current status"
            elif coerce_status(k, current) == coerce_status(k, desired):
                detail = "already in that status"
            raise InvalidTransition(kind, current, desired, role, entity_id=entity_id, detail=detail)
        return found

    def next_statuses(self, kind: EntityKind, current, role: Optional[ActorRole] = None) -> list:
        k = coerce_kind(kind)
        if k is None:
            return []
        cur = coerce_status(k, current)
        if cur is None:
            return []
        return self.config.table(k).next_statuses(cur, coerce_role(role) if role is not None else None)


_default_validator = StatusValidator()


def is_valid_transition(kind, current, desired, role) -> bool:
    return _default_validator.is_valid_transition(kind, current, desired, role)


def assert_transition(kind, current, desired, role) -> TransitionRule:
    return _default_validator.assert_transition(kind, current, desired, role)
