# app/workflow/store.py
from __future__ import annotations

import dataclasses
from datetime import date
from threading import Lock
from typing import Any, Iterable, Optional, Protocol

from app.workflow.model import Invoice, PaymentMilestone, Quote
from app.workflow.statuses import EntityKind, InvoiceStatus, MilestoneStatus, QuoteStatus

# bookkeeping columns a status update may touch besides the status itself
UPDATABLE_FIELDS = frozenset(
    {
        "last_status_change",
        "status_changed_by",
        "sent_at",
        "viewed_at",
        "paid_at",
        "is_draft",
    }
)


class EntityStore(Protocol):
    def get_status(self, kind: EntityKind, entity_id: str) -> Optional[str]: ...

    def update_status(
        self,
        kind: EntityKind,
        entity_id: str,
        *,
        expected_status: str,
        new_status: str,
        changes: dict[str, Any],
    ) -> bool: ...

    def get_quote(self, quote_id: str) -> Optional[Quote]: ...

    def get_invoice(self, invoice_id: str) -> Optional[Invoice]: ...

    def get_invoice_for_quote(self, quote_id: str) -> Optional[Invoice]: ...

    def list_quotes(self, statuses: Iterable[QuoteStatus]) -> list[Quote]: ...

    def list_invoices(self, statuses: Iterable[InvoiceStatus]) -> list[Invoice]: ...

    def create_quote(self, quote: Quote) -> Quote: ...

    def create_invoice(self, invoice: Invoice) -> Invoice: ...

    def list_milestones(self, invoice_id: str) -> list[PaymentMilestone]: ...

    def add_milestones(self, milestones: Iterable[PaymentMilestone]) -> list[PaymentMilestone]: ...

    def get_milestone(self, milestone_id: str) -> Optional[PaymentMilestone]: ...

    def set_milestone_status(self, milestone_id: str, status: MilestoneStatus) -> Optional[PaymentMilestone]: ...

    def list_milestones_due(self, start: date, end: date, status: MilestoneStatus) -> list[PaymentMilestone]: ...

    def reminder_logged(self, invoice_id: str, reminder_type: str, on_date: date) -> bool: ...

    def log_reminder(self, invoice_id: str, reminder_type: str, recipient_email: str, on_date: date) -> bool: ...


class InMemoryEntityStore:
    """
    Process-local store. Status updates are compare-and-swap under a lock,
    same contract as the PostgreSQL store's conditional UPDATE.
    """

    def __init__(self):
        self._lock = Lock()
        self._quotes: dict[str, Quote] = {}
        self._invoices: dict[str, Invoice] = {}
        self._milestones: dict[str, PaymentMilestone] = {}
        self._reminders: dict[tuple[str, str, date], str] = {}

    def _bucket(self, kind: EntityKind) -> dict:
        return self._quotes if kind is EntityKind.QUOTE else self._invoices

    def get_status(self, kind: EntityKind, entity_id: str) -> Optional[str]:
        with self._lock:
            row = self._bucket(kind).get(str(entity_id))
        return row.status.value if row else None

    def update_status(
        self,
        kind: EntityKind,
        entity_id: str,
        *,
        expected_status: str,
        new_status: str,
        changes: dict[str, Any],
    ) -> bool:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"unsupported fields in status update: {sorted(unknown)}")

        enum_cls = QuoteStatus if kind is EntityKind.QUOTE else InvoiceStatus
        with self._lock:
            bucket = self._bucket(kind)
            row = bucket.get(str(entity_id))
            if row is None or row.status.value != expected_status:
                return False
            bucket[str(entity_id)] = dataclasses.replace(row, status=enum_cls(new_status), **changes)
            return True

    def get_quote(self, quote_id: str) -> Optional[Quote]:
        with self._lock:
            return self._quotes.get(str(quote_id))

    def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        with self._lock:
            return self._invoices.get(str(invoice_id))

    def get_invoice_for_quote(self, quote_id: str) -> Optional[Invoice]:
        with self._lock:
            for inv in self._invoices.values():
                if inv.quote_id == str(quote_id):
                    return inv
        return None

    def list_quotes(self, statuses: Iterable[QuoteStatus]) -> list[Quote]:
        wanted = set(statuses)
        with self._lock:
            return [q for q in self._quotes.values() if q.status in wanted]

    def list_invoices(self, statuses: Iterable[InvoiceStatus]) -> list[Invoice]:
        wanted = set(statuses)
        with self._lock:
            return [i for i in self._invoices.values() if i.status in wanted]

    def create_quote(self, quote: Quote) -> Quote:
        with self._lock:
            if quote.id in self._quotes:
                raise ValueError(f"quote {quote.id} already exists")
            self._quotes[quote.id] = quote
        return quote

    def create_invoice(self, invoice: Invoice) -> Invoice:
        with self._lock:
            if invoice.quote_id not in self._quotes:
                raise ValueError(f"quote {invoice.quote_id} does not exist")
            if invoice.id in self._invoices:
                raise ValueError(f"invoice {invoice.id} already exists")
            self._invoices[invoice.id] = invoice
        return invoice

    def list_milestones(self, invoice_id: str) -> list[PaymentMilestone]:
        with self._lock:
            return [m for m in self._milestones.values() if m.invoice_id == str(invoice_id)]

    def add_milestones(self, milestones: Iterable[PaymentMilestone]) -> list[PaymentMilestone]:
        added = list(milestones)
        with self._lock:
            missing = {m.invoice_id for m in added if m.invoice_id not in self._invoices}
            if missing:
                raise ValueError(f"invoice(s) do not exist: {sorted(missing)}")
            for m in added:
                self._milestones[m.id] = m
        return added

    def get_milestone(self, milestone_id: str) -> Optional[PaymentMilestone]:
        with self._lock:
            return self._milestones.get(str(milestone_id))

    def set_milestone_status(self, milestone_id: str, status: MilestoneStatus) -> Optional[PaymentMilestone]:
        with self._lock:
            m = self._milestones.get(str(milestone_id))
            if m is None:
                return None
            updated = dataclasses.replace(m, status=MilestoneStatus(status))
            self._milestones[m.id] = updated
            return updated

    def list_milestones_due(self, start: date, end: date, status: MilestoneStatus) -> list[PaymentMilestone]:
        with self._lock:
            return sorted(
                (
                    m for m in self._milestones.values()
                    if m.status is status and m.due_date is not None and start <= m.due_date <= end
                ),
                key=lambda m: (m.due_date, m.invoice_id),
            )

    def reminder_logged(self, invoice_id: str, reminder_type: str, on_date: date) -> bool:
        with self._lock:
            return (str(invoice_id), reminder_type, on_date) in self._reminders

    def log_reminder(self, invoice_id: str, reminder_type: str, recipient_email: str, on_date: date) -> bool:
        """False when a reminder of this type was already logged for the invoice that day."""
        key = (str(invoice_id), reminder_type, on_date)
        with self._lock:
            if key in self._reminders:
                return False
            self._reminders[key] = recipient_email
            return True
