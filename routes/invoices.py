from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from app.workflow.errors import WorkflowError
from app.workflow.factory import Workflow
from app.workflow.model import Actor, Invoice, PaymentMilestone
from app.workflow.statuses import EntityKind
from deps.admin import require_admin
from deps.auth import get_current_actor
from deps.workflow import workflow_dep
from routes.quotes import invoice_out, transition_out
from schemas import (
    InvoiceOut,
    MilestoneOut,
    MilestoneScheduleRequest,
    NextStatusesOut,
    PaymentProgressOut,
    StatusChangeRequest,
    TransitionOut,
    TransitionRecordOut,
)
from services.milestones import build_payment_schedule
from services.reconcile import RECONCILABLE_INVOICE_STATUSES, payment_progress

logger = logging.getLogger("catering.reconcile")

router = APIRouter(prefix="/v1/invoices", tags=["invoices"])


def milestone_out(m: PaymentMilestone) -> MilestoneOut:
    return MilestoneOut(
        id=m.id,
        invoice_id=m.invoice_id,
        amount=m.amount,
        status=m.status.value,
        milestone_type=m.milestone_type,
        percentage=m.percentage,
        due_date=m.due_date,
        description=m.description,
    )


def _get_invoice_or_404(wf: Workflow, invoice_id: str) -> Invoice:
    inv = wf.store.get_invoice(invoice_id)
    if inv is None:
        raise HTTPException(status_code=404, detail="INVOICE_NOT_FOUND")
    return inv


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    invoice_id: str,
    _actor: Actor = Depends(get_current_actor),
    wf: Workflow = Depends(workflow_dep),
):
    return invoice_out(_get_invoice_or_404(wf, invoice_id))


@router.post("/{invoice_id}/status", response_model=TransitionOut)
def change_invoice_status(
    invoice_id: str,
    body: StatusChangeRequest,
    actor: Actor = Depends(get_current_actor),
    wf: Workflow = Depends(workflow_dep),
):
    outcome = wf.service.transition(EntityKind.INVOICE, invoice_id, body.status, actor, body.reason)
    return transition_out(outcome)


@router.get("/{invoice_id}/history", response_model=list[TransitionRecordOut])
def invoice_history(
    invoice_id: str,
    _actor: Actor = Depends(get_current_actor),
    wf: Workflow = Depends(workflow_dep),
):
    _get_invoice_or_404(wf, invoice_id)
    return [TransitionRecordOut(**r.as_dict()) for r in wf.service.history(EntityKind.INVOICE, invoice_id)]


@router.get("/{invoice_id}/next-statuses", response_model=NextStatusesOut)
def invoice_next_statuses(
    invoice_id: str,
    actor: Actor = Depends(get_current_actor),
    wf: Workflow = Depends(workflow_dep),
):
    inv = _get_invoice_or_404(wf, invoice_id)
    return NextStatusesOut(
        entity_kind=EntityKind.INVOICE.value,
        entity_id=inv.id,
        current_status=inv.status.value,
        next_statuses=[s.value for s in wf.service.next_statuses(EntityKind.INVOICE, inv.status, actor.role)],
    )


@router.get("/{invoice_id}/milestones", response_model=list[MilestoneOut])
def list_invoice_milestones(
    invoice_id: str,
    _actor: Actor = Depends(get_current_actor),
    wf: Workflow = Depends(workflow_dep),
):
    _get_invoice_or_404(wf, invoice_id)
    return [milestone_out(m) for m in wf.store.list_milestones(invoice_id)]


@router.post("/{invoice_id}/milestones", response_model=list[MilestoneOut])
def generate_invoice_milestones(
    invoice_id: str,
    body: MilestoneScheduleRequest,
    _admin: Actor = Depends(require_admin),
    wf: Workflow = Depends(workflow_dep),
):
    """Generate the payment schedule once; an existing schedule is returned as is."""
    inv = _get_invoice_or_404(wf, invoice_id)
    existing = wf.store.list_milestones(inv.id)
    if existing:
        return [milestone_out(m) for m in existing]

    quote = wf.store.get_quote(inv.quote_id)
    schedule = build_payment_schedule(
        inv.id,
        inv.total_amount,
        quote.event_date if quote else None,
        date.today(),
        is_government=body.is_government,
        already_paid=body.already_paid,
    )
    added = wf.store.add_milestones(schedule)

    # prior payments already settle part of the schedule
    if any(m.is_settled for m in added) and inv.status in RECONCILABLE_INVOICE_STATUSES:
        try:
            wf.reconciler.reconcile_invoice(inv.id)
        except WorkflowError as exc:
            # the schedule stands; the next reconcile run picks the invoice up again
            logger.warning("reconcile after schedule failed invoice=%s err=%s", inv.id, exc)
    return [milestone_out(m) for m in added]


@router.get("/{invoice_id}/payment-progress", response_model=PaymentProgressOut)
def invoice_payment_progress(
    invoice_id: str,
    _actor: Actor = Depends(get_current_actor),
    wf: Workflow = Depends(workflow_dep),
):
    inv = _get_invoice_or_404(wf, invoice_id)
    return PaymentProgressOut(**payment_progress(wf.store, inv.id).as_dict())


@router.post("/{invoice_id}/reconcile")
def reconcile_invoice(
    invoice_id: str,
    _admin: Actor = Depends(require_admin),
    wf: Workflow = Depends(workflow_dep),
):
    return wf.reconciler.reconcile_invoice(invoice_id).as_dict()
