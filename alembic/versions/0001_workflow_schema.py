"""workflow schema: quotes, invoices, payment milestones, transition log

Revision ID: 0001_workflow_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0001_workflow_schema"
down_revision = None
branch_labels = None
depends_on = None

QUOTE_STATUSES = (
    "pending", "under_review", "quoted", "estimated", "approved", "awaiting_payment",
    "paid", "confirmed", "in_progress", "completed", "cancelled",
)
INVOICE_STATUSES = (
    "draft", "pending_review", "sent", "viewed", "approved", "payment_pending",
    "partially_paid", "paid", "overdue", "cancelled",
)


def _in_list(values: tuple[str, ...]) -> str:
    return ", ".join(f"'{v}'" for v in values)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")
    op.execute("CREATE SCHEMA IF NOT EXISTS app;")

    op.execute(
        f"""
        CREATE TABLE IF NOT EXISTS app.quote_requests (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            contact_name text NOT NULL,
            email text NOT NULL,
            phone text,
            event_name text,
            event_date date,
            guest_count integer CHECK (guest_count IS NULL OR guest_count > 0),
            location text,
            workflow_status text NOT NULL DEFAULT 'pending'
                CHECK (workflow_status IN ({_in_list(QUOTE_STATUSES)})),
            last_status_change timestamptz,
            status_changed_by text,
            created_at timestamptz NOT NULL DEFAULT now(),
            updated_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_quote_requests_status ON app.quote_requests (workflow_status);"
    )

    op.execute(
        f"""
        CREATE TABLE IF NOT EXISTS app.invoices (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            quote_request_id uuid NOT NULL REFERENCES app.quote_requests(id),
            subtotal bigint NOT NULL DEFAULT 0 CHECK (subtotal >= 0),
            tax_amount bigint NOT NULL DEFAULT 0 CHECK (tax_amount >= 0),
            total_amount bigint NOT NULL DEFAULT 0,
            workflow_status text NOT NULL DEFAULT 'draft'
                CHECK (workflow_status IN ({_in_list(INVOICE_STATUSES)})),
            is_draft boolean NOT NULL DEFAULT true,
            document_type text NOT NULL DEFAULT 'estimate'
                CHECK (document_type IN ('estimate', 'invoice')),
            due_date date,
            sent_at timestamptz,
            viewed_at timestamptz,
            paid_at timestamptz,
            last_status_change timestamptz,
            status_changed_by text,
            created_at timestamptz NOT NULL DEFAULT now(),
            updated_at timestamptz NOT NULL DEFAULT now(),
            CONSTRAINT invoices_total_matches CHECK (total_amount = subtotal + tax_amount)
        );
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_invoices_quote ON app.invoices (quote_request_id);")
    op.execute("CREATE INDEX IF NOT EXISTS ix_invoices_status ON app.invoices (workflow_status);")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.payment_milestones (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            invoice_id uuid NOT NULL REFERENCES app.invoices(id),
            milestone_type text NOT NULL DEFAULT 'FULL'
                CHECK (milestone_type IN ('DEPOSIT', 'MILESTONE', 'FINAL', 'FULL')),
            percentage integer,
            amount_cents bigint NOT NULL CHECK (amount_cents >= 0),
            due_date date,
            status text NOT NULL DEFAULT 'pending'
                CHECK (status IN ('pending', 'paid', 'completed', 'failed')),
            description text,
            created_at timestamptz NOT NULL DEFAULT now(),
            updated_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_payment_milestones_invoice ON app.payment_milestones (invoice_id);")

    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.workflow_state_log (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            seq bigserial NOT NULL,
            entity_type text NOT NULL CHECK (entity_type IN ('quote_requests', 'invoices')),
            entity_id uuid NOT NULL,
            previous_status text NOT NULL,
            new_status text NOT NULL,
            changed_by text NOT NULL,
            change_reason text,
            request_id text,
            created_at timestamptz NOT NULL DEFAULT now()
        );
        """
    )
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS ix_workflow_state_log_entity
        ON app.workflow_state_log (entity_type, entity_id, created_at DESC, seq DESC);
        """
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS app.workflow_state_log;")
    op.execute("DROP TABLE IF EXISTS app.payment_milestones;")
    op.execute("DROP TABLE IF EXISTS app.invoices;")
    op.execute("DROP TABLE IF EXISTS app.quote_requests;")
