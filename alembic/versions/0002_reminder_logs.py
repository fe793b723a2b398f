"""reminder_logs: one payment reminder per invoice, type and day

Revision ID: 0002_reminder_logs
Revises: 0001_workflow_schema
Create Date: 2026-10-19 00:00:00.000000

"""

from __future__ import annotations

from alembic import op


revision = "0002_reminder_logs"
down_revision = "0001_workflow_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS app.reminder_logs (
            id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
            invoice_id uuid NOT NULL REFERENCES app.invoices(id),
            reminder_type text NOT NULL,
            recipient_email text NOT NULL,
            urgency text NOT NULL DEFAULT 'medium',
            sent_on date NOT NULL DEFAULT CURRENT_DATE,
            sent_at timestamptz NOT NULL DEFAULT now(),
            CONSTRAINT uq_reminder_logs_invoice_type_day UNIQUE (invoice_id, reminder_type, sent_on)
        );
        """
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_payment_milestones_due ON app.payment_milestones (status, due_date);"
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS app.ix_payment_milestones_due;")
    op.execute("DROP TABLE IF EXISTS app.reminder_logs;")
