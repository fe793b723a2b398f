from __future__ import annotations

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from app.workflow.factory import Workflow
from app.workflow.model import Actor, Invoice, Quote, compute_totals, LineItem
from app.workflow.service import TransitionOutcome
from app.workflow.statuses import DocumentType, EntityKind, QuoteStatus
from deps.admin import require_admin
from deps.auth import get_current_actor
from deps.workflow import workflow_dep
from schemas import (
    InvoiceCreateRequest,
    InvoiceOut,
    NextStatusesOut,
    QuoteCreateRequest,
    QuoteOut,
    StatusChangeRequest,
    TransitionOut,
    TransitionRecordOut,
)

router = APIRouter(prefix="/v1/quotes", tags=["quotes"])


def quote_out(q: Quote) -> QuoteOut:
    return QuoteOut(
        id=q.id,
        status=q.status.value,
        contact_name=q.contact_name,
        email=q.email,
        phone=q.phone,
        event_name=q.event_name,
        event_date=q.event_date,
        guest_count=q.guest_count,
        location=q.location,
        last_status_change=q.last_status_change,
        status_changed_by=q.status_changed_by,
    )


def invoice_out(inv: Invoice) -> InvoiceOut:
    return InvoiceOut(
        id=inv.id,
        quote_id=inv.quote_id,
        status=inv.status.value,
        document_type=inv.document_type.value,
        is_draft=inv.is_draft,
        subtotal=inv.subtotal,
        tax_amount=inv.tax_amount,
        total_amount=inv.total_amount,
        due_date=inv.due_date,
        sent_at=inv.sent_at,
        viewed_at=inv.viewed_at,
        paid_at=inv.paid_at,
        last_status_change=inv.last_status_change,
        status_changed_by=inv.status_changed_by,
    )


def transition_out(outcome: TransitionOutcome) -> TransitionOut:
    applied = outcome.applied
    return TransitionOut(
        entity_kind=applied.kind.value,
        entity_id=applied.entity_id,
        previous_status=applied.previous_status.value,
        new_status=applied.new_status.value,
        changed_at=applied.changed_at,
        audited=outcome.audit_record is not None,
        notified=outcome.notified,
    )


def _get_quote_or_404(wf: Workflow, quote_id: str) -> Quote:
    q = wf.store.get_quote(quote_id)
    if q is None:
        raise HTTPException(status_code=404, detail="QUOTE_NOT_FOUND")
    return q


@router.post("", response_model=QuoteOut, status_code=201)
def submit_quote(
    body: QuoteCreateRequest,
    _actor: Actor = Depends(get_current_actor),
    wf: Workflow = Depends(workflow_dep),
):
    quote = Quote(
        id=str(uuid.uuid4()),
        contact_name=body.contact_name.strip(),
        email=body.email.strip().lower(),
        phone=body.phone,
        event_name=body.event_name,
        event_date=body.event_date,
        guest_count=body.guest_count,
        location=body.location,
        status=QuoteStatus.PENDING,
        created_at=datetime.now(timezone.utc),
    )
    return quote_out(wf.store.create_quote(quote))


@router.get("/{quote_id}", response_model=QuoteOut)
def get_quote(
    quote_id: str,
    _actor: Actor = Depends(get_current_actor),
    wf: Workflow = Depends(workflow_dep),
):
    return quote_out(_get_quote_or_404(wf, quote_id))


@router.post("/{quote_id}/status", response_model=TransitionOut)
def change_quote_status(
    quote_id: str,
    body: StatusChangeRequest,
    actor: Actor = Depends(get_current_actor),
    wf: Workflow = Depends(workflow_dep),
):
    outcome = wf.service.transition(EntityKind.QUOTE, quote_id, body.status, actor, body.reason)
    return transition_out(outcome)


@router.get("/{quote_id}/history", response_model=list[TransitionRecordOut])
def quote_history(
    quote_id: str,
    _actor: Actor = Depends(get_current_actor),
    wf: Workflow = Depends(workflow_dep),
):
    _get_quote_or_404(wf, quote_id)
    return [TransitionRecordOut(**r.as_dict()) for r in wf.service.history(EntityKind.QUOTE, quote_id)]


@router.get("/{quote_id}/next-statuses", response_model=NextStatusesOut)
def quote_next_statuses(
    quote_id: str,
    actor: Actor = Depends(get_current_actor),
    wf: Workflow = Depends(workflow_dep),
):
    q = _get_quote_or_404(wf, quote_id)
    return NextStatusesOut(
        entity_kind=EntityKind.QUOTE.value,
        entity_id=q.id,
        current_status=q.status.value,
        next_statuses=[s.value for s in wf.service.next_statuses(EntityKind.QUOTE, q.status, actor.role)],
    )


@router.post("/{quote_id}/invoice", response_model=InvoiceOut)
def create_invoice_for_quote(
    quote_id: str,
    body: InvoiceCreateRequest,
    _admin: Actor = Depends(require_admin),
    wf: Workflow = Depends(workflow_dep),
):
    """Create the draft estimate for a quote, or return the one that already exists."""
    q = _get_quote_or_404(wf, quote_id)
    existing = wf.store.get_invoice_for_quote(q.id)
    if existing is not None:
        return invoice_out(existing)

    try:
        totals = compute_totals(
            [LineItem(i.description, i.quantity, i.unit_price) for i in body.line_items],
            body.tax_rate_bps,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    invoice = Invoice(
        id=str(uuid.uuid4()),
        quote_id=q.id,
        subtotal=totals.subtotal,
        tax_amount=totals.tax_amount,
        total_amount=totals.total_amount,
        document_type=DocumentType.ESTIMATE,
        due_date=body.due_date,
        created_at=datetime.now(timezone.utc),
    )
    return invoice_out(wf.store.create_invoice(invoice))
