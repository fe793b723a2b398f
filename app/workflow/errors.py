# app/workflow/errors.py
from __future__ import annotations

from enum import Enum
from typing import Any, Optional


def _v(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class WorkflowError(Exception):
    code = "WORKFLOW_ERROR"


class EntityNotFound(WorkflowError):
    code = "ENTITY_NOT_FOUND"

    def __init__(self, kind, entity_id):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{_v(kind)} {entity_id} not found")


class InvalidTransition(WorkflowError):
    code = "INVALID_TRANSITION"

    def __init__(self, kind, current, desired, role=None, *, entity_id=None, detail: Optional[str] = None):
        self.kind = kind
        self.current = current
        self.desired = desired
        self.role = role
        self.entity_id = entity_id
        msg = f"Illegal {_v(kind)} transition: {_v(current)} -> {_v(desired)}"
        if role is not None:
            msg += f" (role={_v(role)})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class PersistenceFailure(WorkflowError):
    code = "PERSISTENCE_FAILURE"

    def __init__(self, kind, entity_id, cause: Optional[BaseException] = None):
        self.kind = kind
        self.entity_id = entity_id
        self.cause = cause
        msg = f"Failed to persist status for {_v(kind)} {entity_id}"
        if cause is not None:
            msg += f": {type(cause).__name__}: {cause}"
        super().__init__(msg)


class CascadeInconsistency(WorkflowError):
    """
    Invoice side committed, quote side did not follow.
    Not self-healing; a reconciler retry or an operator has to finish it.
    """

    code = "CASCADE_INCONSISTENCY"

    def __init__(self, invoice_id, quote_id, invoice_status, expected_quote_status, cause: Optional[BaseException] = None):
        self.invoice_id = invoice_id
        self.quote_id = quote_id
        self.invoice_status = invoice_status
        self.expected_quote_status = expected_quote_status
        self.cause = cause
        msg = (
            f"Invoice {invoice_id} is {_v(invoice_status)} but quote {quote_id} "
            f"could not be moved to {_v(expected_quote_status)}"
        )
        if cause is not None:
            msg += f" ({cause})"
        super().__init__(msg)
