# app/workflow/service.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.notifications.dispatcher import NotificationDispatcher
from app.workflow.model import Actor, TransitionRecord
from app.workflow.mutator import AppliedTransition, StateMutator
from app.workflow.state_machine import StatusValidator
from app.workflow.statuses import EntityKind, Status
from app.workflow.store import EntityStore
from services.audit_log import AuditLogger


@dataclass(frozen=True)
class TransitionOutcome:
    applied: AppliedTransition
    audit_record: Optional[TransitionRecord]
    notified: bool

    @property
    def new_status(self) -> Status:
        return self.applied.new_status


class WorkflowService:
    """
    Entry point for every status change: validate, write, audit, notify.

    Only validation and the write can fail the call. Audit and notification
    run after the write committed and report failure through the outcome.
    """

    def __init__(
        self,
        store: EntityStore,
        validator: StatusValidator,
        audit: AuditLogger,
        dispatcher: Optional[NotificationDispatcher] = None,
    ):
        self.store = store
        self.validator = validator
        self.audit = audit
        self.dispatcher = dispatcher
        self.mutator = StateMutator(store, validator)

    def transition(
        self,
        kind: EntityKind,
        entity_id: str,
        desired,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> TransitionOutcome:
        applied = self.mutator.apply_transition(kind, entity_id, desired, actor, reason)

        record = self.audit.record_transition(
            kind,
            applied.entity_id,
            applied.previous_status,
            applied.new_status,
            actor,
            reason,
        )

        notified = False
        if applied.rule.notify and self.dispatcher is not None:
            notified = self.dispatcher.dispatch(kind, applied.entity_id, applied.rule)

        return TransitionOutcome(applied=applied, audit_record=record, notified=notified)

    def transition_quote(self, quote_id: str, desired, actor: Actor, reason: Optional[str] = None) -> TransitionOutcome:
        return self.transition(EntityKind.QUOTE, quote_id, desired, actor, reason)

    def transition_invoice(self, invoice_id: str, desired, actor: Actor, reason: Optional[str] = None) -> TransitionOutcome:
        return self.transition(EntityKind.INVOICE, invoice_id, desired, actor, reason)

    def history(self, kind: EntityKind, entity_id: str) -> list[TransitionRecord]:
        return self.audit.get_history(kind, entity_id)

    def next_statuses(self, kind: EntityKind, current, role=None) -> list:
        return self.validator.next_statuses(kind, current, role)
