from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from app.workflow.errors import CascadeInconsistency, EntityNotFound, WorkflowError
from app.workflow.model import SYSTEM_ACTOR, PaymentMilestone
from app.workflow.service import TransitionOutcome, WorkflowService
from app.workflow.statuses import (
    EntityKind,
    InvoiceStatus,
    MilestoneStatus,
    QuoteStatus,
    Status,
    coerce_status,
)
from app.workflow.store import EntityStore

logger = logging.getLogger("catering.reconcile")

# quote status that must follow each reconciled invoice status
QUOTE_STATUS_FOR_INVOICE = {
    InvoiceStatus.PARTIALLY_PAID: QuoteStatus.AWAITING_PAYMENT,
    InvoiceStatus.PAID: QuoteStatus.PAID,
}

# intermediate hops taken before the reconciled target
INVOICE_LEAD_INS = {InvoiceStatus.APPROVED: InvoiceStatus.PAYMENT_PENDING}
QUOTE_LEAD_INS = {
    QuoteStatus.ESTIMATED: QuoteStatus.APPROVED,
    QuoteStatus.APPROVED: QuoteStatus.AWAITING_PAYMENT,
}

# invoices a full reconcile run looks at
RECONCILABLE_INVOICE_STATUSES = (
    InvoiceStatus.APPROVED,
    InvoiceStatus.PAYMENT_PENDING,
    InvoiceStatus.PARTIALLY_PAID,
    InvoiceStatus.OVERDUE,
    InvoiceStatus.PAID,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PaymentProgress:
    invoice_id: str
    total_amount: int
    paid_amount: int
    remaining_amount: int
    percent_paid: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "invoice_id": self.invoice_id,
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "remaining_amount": self.remaining_amount,
            "percent_paid": self.percent_paid,
        }


def payment_progress(store: EntityStore, invoice_id: str) -> PaymentProgress:
    """
    How much of the invoice total the settled milestones cover.
    A zero total reports 0 percent; remaining never goes below zero.
    """
    invoice = store.get_invoice(invoice_id)
    if invoice is None:
        raise EntityNotFound(EntityKind.INVOICE, invoice_id)

    paid = sum(m.amount for m in store.list_milestones(invoice.id) if m.is_settled)
    total = invoice.total_amount
    percent = round(paid * 100 / total, 2) if total > 0 else 0.0
    return PaymentProgress(
        invoice_id=invoice.id,
        total_amount=total,
        paid_amount=paid,
        remaining_amount=max(total - paid, 0),
        percent_paid=min(percent, 100.0),
    )


def derive_invoice_target(milestones: Iterable[PaymentMilestone]) -> Optional[InvoiceStatus]:
    items = list(milestones)
    if not items:
        return None
    settled = sum(1 for m in items if m.is_settled)
    if settled == len(items):
        return InvoiceStatus.PAID
    if settled > 0:
        return InvoiceStatus.PARTIALLY_PAID
    return None


@dataclass
class ReconcileResult:
    invoice_id: str
    quote_id: Optional[str] = None
    target: Optional[InvoiceStatus] = None
    invoice_status: Optional[Status] = None
    quote_status: Optional[Status] = None
    applied: list[TransitionOutcome] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.applied)

    def as_dict(self) -> dict[str, Any]:
        return {
            "invoice_id": self.invoice_id,
            "quote_id": self.quote_id,
            "target": self.target.value if self.target else None,
            "invoice_status": self.invoice_status.value if self.invoice_status else None,
            "quote_status": self.quote_status.value if self.quote_status else None,
            "transitions": [
                {
                    "entity_kind": o.applied.kind.value,
                    "entity_id": o.applied.entity_id,
                    "from": o.applied.previous_status.value,
                    "to": o.applied.new_status.value,
                }
                for o in self.applied
            ],
        }


class PaymentReconciler:
    """
    Keeps invoice and quote status in line with milestone payments.

    Every move goes through WorkflowService as the system actor, so rules,
    audit and notifications apply exactly as for a manual change. Re-running
    is safe: entities already at (or past) their target are left alone.
    """

    def __init__(self, service: WorkflowService, store: Optional[EntityStore] = None):
        self.service = service
        self.store = store or service.store

    def _current(self, kind: EntityKind, entity_id: str) -> Status:
        raw = self.store.get_status(kind, entity_id)
        if raw is None:
            raise EntityNotFound(kind, entity_id)
        current = coerce_status(kind, raw)
        if current is None:
            raise WorkflowError(f"{kind.value} {entity_id} has unknown status {raw!r}")
        return current

    def _drive(
        self,
        kind: EntityKind,
        entity_id: str,
        target: Status,
        lead_ins: dict,
        reason: str,
        applied: list[TransitionOutcome],
    ) -> Status:
        table = self.service.validator.config.table(kind)
        downstream = table.reachable_from(target)
        # each lead-in is taken at most once, then the target itself
        for _ in range(len(lead_ins) + 1):
            current = self._current(kind, entity_id)
            if current == target or current in downstream:
                return current
            if current.value == "cancelled":
                logger.warning("reconcile skipped cancelled %s id=%s target=%s", kind.value, entity_id, target.value)
                return current
            step = lead_ins.get(current, target)
            outcome = self.service.transition(kind, entity_id, step, SYSTEM_ACTOR, reason)
            applied.append(outcome)
        return self._current(kind, entity_id)

    def reconcile_invoice(self, invoice_id: str) -> ReconcileResult:
        invoice_id = str(invoice_id)
        invoice = self.store.get_invoice(invoice_id)
        if invoice is None:
            raise EntityNotFound(EntityKind.INVOICE, invoice_id)

        result = ReconcileResult(invoice_id=invoice_id, quote_id=invoice.quote_id, invoice_status=invoice.status)
        target = derive_invoice_target(self.store.list_milestones(invoice_id))
        result.target = target
        if target is None:
            logger.debug("reconcile nothing settled invoice=%s", invoice_id)
            return result

        reason = "All payment milestones settled" if target is InvoiceStatus.PAID else "Partial payment received"
        result.invoice_status = self._drive(
            EntityKind.INVOICE, invoice_id, target, INVOICE_LEAD_INS, reason, result.applied
        )
        if result.invoice_status.value == "cancelled":
            return result

        quote_target = QUOTE_STATUS_FOR_INVOICE[target]
        try:
            result.quote_status = self._drive(
                EntityKind.QUOTE, invoice.quote_id, quote_target, QUOTE_LEAD_INS, reason, result.applied
            )
        except WorkflowError as exc:
            err = CascadeInconsistency(invoice_id, invoice.quote_id, result.invoice_status, quote_target, cause=exc)
            logger.critical("%s", err)
            raise err from exc

        if result.changed:
            logger.info(
                "reconciled invoice=%s invoice_status=%s quote=%s quote_status=%s steps=%d",
                invoice_id,
                result.invoice_status.value,
                invoice.quote_id,
                result.quote_status.value,
                len(result.applied),
            )
        return result

    def on_milestone_status_changed(self, milestone_id: str, status) -> ReconcileResult:
        milestone = self.store.set_milestone_status(str(milestone_id), MilestoneStatus(status))
        if milestone is None:
            raise EntityNotFound("milestone", milestone_id)
        logger.info("milestone status milestone=%s invoice=%s status=%s", milestone.id, milestone.invoice_id, milestone.status.value)
        return self.reconcile_invoice(milestone.invoice_id)


def run_reconcile(reconciler: PaymentReconciler, *, invoice_ids: Optional[Iterable[str]] = None) -> dict[str, Any]:
    """Reconcile every invoice in a payment status (or the given ids) and summarise."""
    run_at = _utcnow()
    if invoice_ids is None:
        invoice_ids = [inv.id for inv in reconciler.store.list_invoices(RECONCILABLE_INVOICE_STATUSES)]

    items: list[dict[str, Any]] = []
    summary = {
        "checked": 0,
        "transitioned": 0,
        "cascade_inconsistent": 0,
        "errors": 0,
    }

    for invoice_id in invoice_ids:
        summary["checked"] += 1
        try:
            result = reconciler.reconcile_invoice(invoice_id)
        except CascadeInconsistency as exc:
            summary["cascade_inconsistent"] += 1
            items.append({"category": "cascade_inconsistent", "invoice_id": str(invoice_id), "error": str(exc)})
            continue
        except WorkflowError as exc:
            summary["errors"] += 1
            items.append({"category": exc.code.lower(), "invoice_id": str(invoice_id), "error": str(exc)})
            continue

        if result.changed:
            summary["transitioned"] += 1
            items.append({"category": "transitioned", **result.as_dict()})

    return {"run_at": run_at.isoformat(), "summary": summary, "items": items}
