# app/workflow/repository.py
from __future__ import annotations

from datetime import date
from typing import Any, Callable, Iterable, Optional

from psycopg2.extras import RealDictCursor

from db import as_uuid, get_conn
from app.workflow.model import Invoice, PaymentMilestone, Quote
from app.workflow.statuses import (
    DocumentType,
    EntityKind,
    InvoiceStatus,
    MilestoneStatus,
    QuoteStatus,
)
from app.workflow.store import UPDATABLE_FIELDS

_TABLES = {
    EntityKind.QUOTE: "app.quote_requests",
    EntityKind.INVOICE: "app.invoices",
}

_QUOTE_COLUMNS = """
  q.id::text AS id,
  q.contact_name,
  q.email,
  q.phone,
  q.event_name,
  q.event_date,
  q.guest_count,
  q.location,
  q.workflow_status,
  q.last_status_change,
  q.status_changed_by,
  q.created_at
"""

_INVOICE_COLUMNS = """
  i.id::text AS id,
  i.quote_request_id::text AS quote_request_id,
  i.subtotal,
  i.tax_amount,
  i.total_amount,
  i.workflow_status,
  i.is_draft,
  i.document_type,
  i.due_date,
  i.sent_at,
  i.viewed_at,
  i.paid_at,
  i.last_status_change,
  i.status_changed_by,
  i.created_at
"""

_MILESTONE_COLUMNS = """
  m.id::text AS id,
  m.invoice_id::text AS invoice_id,
  m.amount_cents,
  m.status,
  m.milestone_type,
  m.percentage,
  m.due_date,
  m.description
"""


def _quote_from_row(row: dict) -> Quote:
    return Quote(
        id=row["id"],
        contact_name=row["contact_name"],
        email=row["email"],
        phone=row.get("phone"),
        event_name=row.get("event_name"),
        event_date=row.get("event_date"),
        guest_count=row.get("guest_count"),
        location=row.get("location"),
        status=QuoteStatus(row["workflow_status"]),
        last_status_change=row.get("last_status_change"),
        status_changed_by=row.get("status_changed_by"),
        created_at=row.get("created_at"),
    )


def _invoice_from_row(row: dict) -> Invoice:
    return Invoice(
        id=row["id"],
        quote_id=row["quote_request_id"],
        subtotal=int(row["subtotal"] or 0),
        tax_amount=int(row["tax_amount"] or 0),
        total_amount=int(row["total_amount"] or 0),
        status=InvoiceStatus(row["workflow_status"]),
        is_draft=bool(row["is_draft"]),
        document_type=DocumentType(row["document_type"]),
        due_date=row.get("due_date"),
        sent_at=row.get("sent_at"),
        viewed_at=row.get("viewed_at"),
        paid_at=row.get("paid_at"),
        last_status_change=row.get("last_status_change"),
        status_changed_by=row.get("status_changed_by"),
        created_at=row.get("created_at"),
    )


def _milestone_from_row(row: dict) -> PaymentMilestone:
    return PaymentMilestone(
        id=row["id"],
        invoice_id=row["invoice_id"],
        amount=int(row["amount_cents"] or 0),
        status=MilestoneStatus(row["status"]),
        milestone_type=row.get("milestone_type") or "FULL",
        percentage=row.get("percentage"),
        due_date=row.get("due_date"),
        description=row.get("description"),
    )


class PostgresEntityStore:
    """
    psycopg2-backed store. Every call runs in its own transaction from
    `conn_factory` (defaults to db.get_conn, which commits on success).
    Ids that are not uuids never reach the database: reads answer "not found"
    and updates report no row changed.
    """

    def __init__(self, conn_factory: Optional[Callable[[], Any]] = None):
        self._conn_factory = conn_factory or get_conn

    # ==========================================================
    # Status
    # ==========================================================

    def get_status(self, kind: EntityKind, entity_id: str) -> Optional[str]:
        entity_id = as_uuid(entity_id)
        if entity_id is None:
            return None
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT workflow_status FROM {_TABLES[kind]} WHERE id = %s::uuid",
                    (str(entity_id),),
                )
                row = cur.fetchone()
        return row[0] if row else None

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
        entity_id = as_uuid(entity_id)
        if entity_id is None:
            return False

        # column names come from the whitelist above, values are bound
        cols = sorted(changes)
        set_sql = "".join(f",\n              {c} = %s" for c in cols)
        params = [new_status, *[changes[c] for c in cols], str(entity_id), expected_status]

        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    UPDATE {_TABLES[kind]}
                    SET
                      workflow_status = %s{set_sql},
                      updated_at = now()
                    WHERE id = %s::uuid
                      AND workflow_status = %s
                    """,
                    params,
                )
                return cur.rowcount == 1

    # ==========================================================
    # Reads
    # ==========================================================

    def get_quote(self, quote_id: str) -> Optional[Quote]:
        quote_id = as_uuid(quote_id)
        if quote_id is None:
            return None
        with self._conn_factory() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"SELECT {_QUOTE_COLUMNS} FROM app.quote_requests q WHERE q.id = %s::uuid",
                    (str(quote_id),),
                )
                row = cur.fetchone()
        return _quote_from_row(dict(row)) if row else None

    def get_invoice(self, invoice_id: str) -> Optional[Invoice]:
        invoice_id = as_uuid(invoice_id)
        if invoice_id is None:
            return None
        with self._conn_factory() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"SELECT {_INVOICE_COLUMNS} FROM app.invoices i WHERE i.id = %s::uuid",
                    (str(invoice_id),),
                )
                row = cur.fetchone()
        return _invoice_from_row(dict(row)) if row else None

    def get_invoice_for_quote(self, quote_id: str) -> Optional[Invoice]:
        quote_id = as_uuid(quote_id)
        if quote_id is None:
            return None
        with self._conn_factory() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {_INVOICE_COLUMNS}
                    FROM app.invoices i
                    WHERE i.quote_request_id = %s::uuid
                    ORDER BY i.created_at DESC
                    LIMIT 1
                    """,
                    (str(quote_id),),
                )
                row = cur.fetchone()
        return _invoice_from_row(dict(row)) if row else None

    def list_quotes(self, statuses: Iterable[QuoteStatus]) -> list[Quote]:
        values = [QuoteStatus(s).value for s in statuses]
        with self._conn_factory() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {_QUOTE_COLUMNS}
                    FROM app.quote_requests q
                    WHERE q.workflow_status = ANY(%s)
                    ORDER BY q.created_at
                    """,
                    (values,),
                )
                rows = cur.fetchall()
        return [_quote_from_row(dict(r)) for r in rows]

    def list_invoices(self, statuses: Iterable[InvoiceStatus]) -> list[Invoice]:
        values = [InvoiceStatus(s).value for s in statuses]
        with self._conn_factory() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {_INVOICE_COLUMNS}
                    FROM app.invoices i
                    WHERE i.workflow_status = ANY(%s)
                    ORDER BY i.created_at
                    """,
                    (values,),
                )
                rows = cur.fetchall()
        return [_invoice_from_row(dict(r)) for r in rows]

    def list_milestones(self, invoice_id: str) -> list[PaymentMilestone]:
        invoice_id = as_uuid(invoice_id)
        if invoice_id is None:
            return []
        with self._conn_factory() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {_MILESTONE_COLUMNS}
                    FROM app.payment_milestones m
                    WHERE m.invoice_id = %s::uuid
                    ORDER BY m.due_date NULLS LAST, m.created_at
                    """,
                    (str(invoice_id),),
                )
                rows = cur.fetchall()
        return [_milestone_from_row(dict(r)) for r in rows]

    def get_milestone(self, milestone_id: str) -> Optional[PaymentMilestone]:
        milestone_id = as_uuid(milestone_id)
        if milestone_id is None:
            return None
        with self._conn_factory() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"SELECT {_MILESTONE_COLUMNS} FROM app.payment_milestones m WHERE m.id = %s::uuid",
                    (str(milestone_id),),
                )
                row = cur.fetchone()
        return _milestone_from_row(dict(row)) if row else None

    # ==========================================================
    # Writes
    # ==========================================================

    def create_quote(self, quote: Quote) -> Quote:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app.quote_requests (
                      id, contact_name, email, phone,
                      event_name, event_date, guest_count, location,
                      workflow_status, last_status_change, status_changed_by
                    )
                    VALUES (%s::uuid, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        quote.id,
                        quote.contact_name,
                        quote.email,
                        quote.phone,
                        quote.event_name,
                        quote.event_date,
                        quote.guest_count,
                        quote.location,
                        quote.status.value,
                        quote.last_status_change,
                        quote.status_changed_by,
                    ),
                )
        return quote

    def create_invoice(self, invoice: Invoice) -> Invoice:
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app.invoices (
                      id, quote_request_id, subtotal, tax_amount, total_amount,
                      workflow_status, is_draft, document_type, due_date
                    )
                    VALUES (%s::uuid, %s::uuid, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        invoice.id,
                        invoice.quote_id,
                        invoice.subtotal,
                        invoice.tax_amount,
                        invoice.total_amount,
                        invoice.status.value,
                        invoice.is_draft,
                        invoice.document_type.value,
                        invoice.due_date,
                    ),
                )
        return invoice

    def add_milestones(self, milestones: Iterable[PaymentMilestone]) -> list[PaymentMilestone]:
        added = list(milestones)
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                for m in added:
                    cur.execute(
                        """
                        INSERT INTO app.payment_milestones (
                          id, invoice_id, milestone_type, percentage,
                          amount_cents, due_date, status, description
                        )
                        VALUES (%s::uuid, %s::uuid, %s, %s, %s, %s, %s, %s)
                        """,
                        (
                            m.id,
                            m.invoice_id,
                            m.milestone_type,
                            m.percentage,
                            m.amount,
                            m.due_date,
                            m.status.value,
                            m.description,
                        ),
                    )
        return added

    def set_milestone_status(self, milestone_id: str, status: MilestoneStatus) -> Optional[PaymentMilestone]:
        milestone_id = as_uuid(milestone_id)
        if milestone_id is None:
            return None
        with self._conn_factory() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    UPDATE app.payment_milestones m
                    SET status = %s, updated_at = now()
                    WHERE m.id = %s::uuid
                    RETURNING {_MILESTONE_COLUMNS}
                    """,
                    (MilestoneStatus(status).value, str(milestone_id)),
                )
                row = cur.fetchone()
        return _milestone_from_row(dict(row)) if row else None

    # ==========================================================
    # Payment reminders
    # ==========================================================

    def list_milestones_due(self, start: date, end: date, status: MilestoneStatus) -> list[PaymentMilestone]:
        with self._conn_factory() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"""
                    SELECT {_MILESTONE_COLUMNS}
                    FROM app.payment_milestones m
                    WHERE m.status = %s
                      AND m.due_date BETWEEN %s AND %s
                    ORDER BY m.due_date, m.invoice_id
                    """,
                    (MilestoneStatus(status).value, start, end),
                )
                rows = cur.fetchall()
        return [_milestone_from_row(dict(r)) for r in rows]

    def reminder_logged(self, invoice_id: str, reminder_type: str, on_date: date) -> bool:
        invoice_id = as_uuid(invoice_id)
        if invoice_id is None:
            return False
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT 1
                    FROM app.reminder_logs
                    WHERE invoice_id = %s::uuid
                      AND reminder_type = %s
                      AND sent_on = %s
                    LIMIT 1
                    """,
                    (invoice_id, reminder_type, on_date),
                )
                return cur.fetchone() is not None

    def log_reminder(self, invoice_id: str, reminder_type: str, recipient_email: str, on_date: date) -> bool:
        invoice_id = as_uuid(invoice_id)
        if invoice_id is None:
            return False
        with self._conn_factory() as conn:
            with conn.cursor() as cur:
                # the unique (invoice_id, reminder_type, sent_on) key makes this once per day
                cur.execute(
                    """
                    INSERT INTO app.reminder_logs (invoice_id, reminder_type, recipient_email, sent_on)
                    VALUES (%s::uuid, %s, %s, %s)
                    ON CONFLICT (invoice_id, reminder_type, sent_on) DO NOTHING
                    """,
                    (invoice_id, reminder_type, recipient_email, on_date),
                )
                return cur.rowcount == 1
