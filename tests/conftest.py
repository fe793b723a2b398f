# tests/conftest.py

import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from app.workflow.factory import Workflow, build_workflow
from app.workflow.model import CustomerContact, Invoice, PaymentMilestone, Quote
from app.workflow.statuses import InvoiceStatus, MilestoneStatus, QuoteStatus
from app.workflow.store import InMemoryEntityStore
from deps.workflow import workflow_dep
from main import create_app
from security import create_access_token
from services.audit_log import InMemoryAuditSink


@dataclass
class RecordingSender:
    """Notification sender double: records every call, optionally fails."""

    fail_with: Optional[Exception] = None
    result: bool = True
    sent: List[Dict[str, Any]] = field(default_factory=list)

    def send(self, contact: CustomerContact, template: str, payload: Dict[str, Any]) -> bool:
        self.sent.append({"contact": contact, "template": template, "payload": payload})
        if self.fail_with is not None:
            raise self.fail_with
        return self.result


# ---------------------------
# Workflow wiring
# ---------------------------

@pytest.fixture()
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture()
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture()
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture()
def workflow(store, audit_sink, sender) -> Workflow:
    return build_workflow(store=store, audit_sink=audit_sink, sender=sender)


@pytest.fixture()
def client(workflow: Workflow) -> TestClient:
    app = create_app()
    app.dependency_overrides[workflow_dep] = lambda: workflow
    # Needed so tests can assert 500s instead of pytest re-raising server exceptions
    return TestClient(app, raise_server_exceptions=False)


# ---------------------------
# Auth Helpers
# ---------------------------

def _auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="session")
def admin_token() -> str:
    return create_access_token("admin-1", "admin")


@pytest.fixture(scope="session")
def customer_token() -> str:
    return create_access_token("customer-1", "customer")


# ---------------------------
# Seed Helpers
# ---------------------------

def make_quote(
    store: InMemoryEntityStore,
    status: QuoteStatus = QuoteStatus.PENDING,
    *,
    event_date: Optional[date] = None,
    email: str = "jane.doe@example.com",
) -> Quote:
    return store.create_quote(
        Quote(
            id=str(uuid.uuid4()),
            contact_name="Jane Doe",
            email=email,
            phone="+15551234567",
            event_name="Spring Gala",
            event_date=event_date,
            guest_count=120,
            status=status,
        )
    )


def make_invoice(
    store: InMemoryEntityStore,
    quote_id: str,
    status: InvoiceStatus = InvoiceStatus.DRAFT,
    *,
    total: int = 100_000,
    due_date: Optional[date] = None,
) -> Invoice:
    return store.create_invoice(
        Invoice(
            id=str(uuid.uuid4()),
            quote_id=quote_id,
            subtotal=total,
            tax_amount=0,
            total_amount=total,
            status=status,
            is_draft=status in (InvoiceStatus.DRAFT, InvoiceStatus.PENDING_REVIEW),
            due_date=due_date,
        )
    )


def add_milestones(
    store: InMemoryEntityStore,
    invoice_id: str,
    statuses: List[MilestoneStatus],
    *,
    due_date: Optional[date] = None,
) -> List[PaymentMilestone]:
    return store.add_milestones(
        PaymentMilestone(id=str(uuid.uuid4()), invoice_id=invoice_id, amount=1000, status=s, due_date=due_date)
        for s in statuses
    )
