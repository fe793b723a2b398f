# app/workflow/mutator.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from app.workflow.errors import EntityNotFound, InvalidTransition, PersistenceFailure
from app.workflow.model import Actor
from app.workflow.state_machine import StatusValidator
from app.workflow.statuses import EntityKind, InvoiceStatus, Status, coerce_status
from app.workflow.store import EntityStore
from app.workflow.transitions import TransitionRule

logger = logging.getLogger("catering.workflow")

# invoice timestamp columns stamped when the invoice enters the status
INVOICE_STATUS_TIMESTAMPS = {
    InvoiceStatus.SENT: "sent_at",
    InvoiceStatus.VIEWED: "viewed_at",
    InvoiceStatus.PAID: "paid_at",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AppliedTransition:
    kind: EntityKind
    entity_id: str
    previous_status: Status
    new_status: Status
    rule: TransitionRule
    actor: Actor
    changed_at: datetime
    reason: Optional[str] = None


class StateMutator:
    def __init__(
        self,
        store: EntityStore,
        validator: StatusValidator,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.validator = validator
        self.clock = clock

    def _read_status(self, kind: EntityKind, entity_id: str) -> Optional[str]:
        try:
            return self.store.get_status(kind, entity_id)
        except Exception as exc:
            raise PersistenceFailure(kind, entity_id, exc) from exc

    def _bookkeeping(self, kind: EntityKind, new_status: Status, actor: Actor, now: datetime) -> dict[str, Any]:
        changes: dict[str, Any] = {
            "last_status_change": now,
            "status_changed_by": actor.tag,
        }
        if kind is EntityKind.INVOICE:
            column = INVOICE_STATUS_TIMESTAMPS.get(new_status)
            if column:
                changes[column] = now
            changes["is_draft"] = new_status in (InvoiceStatus.DRAFT, InvoiceStatus.PENDING_REVIEW)
        return changes

    def apply_transition(
        self,
        kind: EntityKind,
        entity_id: str,
        desired,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> AppliedTransition:
        """
        Read the persisted status, re-validate, then write conditioned on the
        status that was read. Nothing is written unless the validator approves.
        """
        entity_id = str(entity_id)
        raw_current = self._read_status(kind, entity_id)
        if raw_current is None:
            raise EntityNotFound(kind, entity_id)

        rule = self.validator.assert_transition(kind, raw_current, desired, actor.role, entity_id=entity_id)
        current = coerce_status(kind, raw_current)
        new_status = rule.to_status
        now = self.clock()

        try:
            ok = self.store.update_status(
                kind,
                entity_id,
                expected_status=current.value,
                new_status=new_status.value,
                changes=self._bookkeeping(kind, new_status, actor, now),
            )
        except Exception as exc:
            logger.error(
                "status write failed kind=%s id=%s %s->%s err=%s",
                kind.value, entity_id, current.value, new_status.value, exc,
            )
            raise PersistenceFailure(kind, entity_id, exc) from exc

        if not ok:
            # lost the compare-and-swap: someone moved the entity after our read
            fresh = self._read_status(kind, entity_id)
            if fresh is None:
                raise EntityNotFound(kind, entity_id)
            raise InvalidTransition(
                kind,
                fresh,
                new_status,
                actor.role,
                entity_id=entity_id,
                detail=f"status changed concurrently (expected {current.value})",
            )

        logger.info(
            "status changed kind=%s id=%s %s->%s by=%s",
            kind.value, entity_id, current.value, new_status.value, actor.tag,
        )
        return AppliedTransition(
            kind=kind,
            entity_id=entity_id,
            previous_status=current,
            new_status=new_status,
            rule=rule,
            actor=actor,
            changed_at=now,
            reason=reason,
        )
