# app/workflow/automation.py
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Optional

from app.workflow.errors import WorkflowError
from app.workflow.model import SYSTEM_ACTOR
from app.workflow.service import WorkflowService
from app.workflow.statuses import EntityKind, InvoiceStatus, MilestoneStatus, QuoteStatus
from app.workflow.store import EntityStore

logger = logging.getLogger("catering.workflow")

OVERDUE_CANDIDATES = (
    InvoiceStatus.SENT,
    InvoiceStatus.APPROVED,
    InvoiceStatus.PAYMENT_PENDING,
    InvoiceStatus.PARTIALLY_PAID,
)

REASON_OVERDUE = "Payment past due date"
REASON_AUTO_CONFIRM = "Payment received - event auto-confirmed"
REASON_EVENT_PASSED = "Event date passed"

REMINDER_TYPE = "payment_due_soon"
REMINDER_WINDOW_DAYS = 3
# invoices that no longer take payment reminders
NO_REMINDER_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.PAID, InvoiceStatus.CANCELLED)


def _record_error(summary: dict[str, Any], kind: EntityKind, entity_id: str, exc: WorkflowError) -> None:
    logger.warning("auto workflow step failed kind=%s id=%s err=%s", kind.value, entity_id, exc)
    summary["errors"].append({"entity_kind": kind.value, "entity_id": entity_id, "code": exc.code, "error": str(exc)})


def run_auto_workflow(
    service: WorkflowService,
    store: Optional[EntityStore] = None,
    today: Optional[date] = None,
) -> dict[str, Any]:
    """
    Periodic system transitions: overdue invoices, auto-confirmation of paid
    quotes, completion of past events. Then one reminder per invoice and day
    for pending milestones falling due within REMINDER_WINDOW_DAYS. One
    failing entity does not stop the sweep; it lands in ``errors``.
    """
    store = store or service.store
    today = today or date.today()
    summary: dict[str, Any] = {
        "marked_overdue": 0,
        "auto_confirmed": 0,
        "auto_completed": 0,
        "reminders_sent": 0,
        "errors": [],
    }

    for inv in store.list_invoices(OVERDUE_CANDIDATES):
        if inv.due_date is None or inv.due_date >= today:
            continue
        try:
            service.transition(EntityKind.INVOICE, inv.id, InvoiceStatus.OVERDUE, SYSTEM_ACTOR, REASON_OVERDUE)
        except WorkflowError as exc:
            _record_error(summary, EntityKind.INVOICE, inv.id, exc)
            continue
        summary["marked_overdue"] += 1

    for quote in store.list_quotes([QuoteStatus.PAID]):
        inv = store.get_invoice_for_quote(quote.id)
        if inv is None or inv.status is not InvoiceStatus.PAID:
            continue
        try:
            service.transition(EntityKind.QUOTE, quote.id, QuoteStatus.CONFIRMED, SYSTEM_ACTOR, REASON_AUTO_CONFIRM)
        except WorkflowError as exc:
            _record_error(summary, EntityKind.QUOTE, quote.id, exc)
            continue
        summary["auto_confirmed"] += 1

    cutoff = today - timedelta(days=1)
    for quote in store.list_quotes([QuoteStatus.CONFIRMED, QuoteStatus.IN_PROGRESS]):
        if quote.event_date is None or quote.event_date >= cutoff:
            continue
        try:
            service.transition(EntityKind.QUOTE, quote.id, QuoteStatus.COMPLETED, SYSTEM_ACTOR, REASON_EVENT_PASSED)
        except WorkflowError as exc:
            _record_error(summary, EntityKind.QUOTE, quote.id, exc)
            continue
        summary["auto_completed"] += 1

    summary["reminders_sent"] = _send_payment_reminders(service, store, today, summary)

    logger.info(
        "auto workflow run today=%s overdue=%d confirmed=%d completed=%d reminders=%d errors=%d",
        today.isoformat(),
        summary["marked_overdue"],
        summary["auto_confirmed"],
        summary["auto_completed"],
        summary["reminders_sent"],
        len(summary["errors"]),
    )
    return summary


def _send_payment_reminders(service: WorkflowService, store: EntityStore, today: date, summary: dict[str, Any]) -> int:
    dispatcher = service.dispatcher
    if dispatcher is None:
        return 0

    sent = 0
    attempted: set[str] = set()
    window_end = today + timedelta(days=REMINDER_WINDOW_DAYS)
    for milestone in store.list_milestones_due(today, window_end, MilestoneStatus.PENDING):
        invoice_id = milestone.invoice_id
        if invoice_id in attempted or store.reminder_logged(invoice_id, REMINDER_TYPE, today):
            continue
        invoice = store.get_invoice(invoice_id)
        if invoice is None or invoice.status in NO_REMINDER_STATUSES:
            continue
        attempted.add(invoice_id)

        contact = dispatcher.send_payment_reminder(milestone)
        if contact is None:
            logger.warning("payment reminder not sent invoice=%s milestone=%s", invoice_id, milestone.id)
            summary["errors"].append(
                {
                    "entity_kind": EntityKind.INVOICE.value,
                    "entity_id": invoice_id,
                    "code": "REMINDER_NOT_SENT",
                    "error": f"payment reminder for milestone {milestone.id} was not sent",
                }
            )
            continue
        if store.log_reminder(invoice_id, REMINDER_TYPE, contact.email, today):
            sent += 1
    return sent
