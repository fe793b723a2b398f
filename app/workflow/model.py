from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Optional

from app.workflow.statuses import (
    ActorRole,
    DocumentType,
    EntityKind,
    InvoiceStatus,
    MilestoneStatus,
    QuoteStatus,
    SETTLED_MILESTONE_STATUSES,
)


@dataclass(frozen=True)
class Actor:
    role: ActorRole
    actor_id: Optional[str] = None

    @property
    def tag(self) -> str:
        if self.actor_id:
            return f"{self.role.value}:{self.actor_id}"
        return self.role.value


SYSTEM_ACTOR = Actor(ActorRole.SYSTEM)


@dataclass(frozen=True)
class CustomerContact:
    name: str
    email: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class Quote:
    id: str
    contact_name: str
    email: str
    status: QuoteStatus = QuoteStatus.PENDING
    phone: Optional[str] = None
    event_name: Optional[str] = None
    event_date: Optional[date] = None
    guest_count: Optional[int] = None
    location: Optional[str] = None
    last_status_change: Optional[datetime] = None
    status_changed_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def contact(self) -> CustomerContact:
        return CustomerContact(name=self.contact_name, email=self.email, phone=self.phone)


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: int
    unit_price: int  # minor currency units

    @property
    def total(self) -> int:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: int
    tax_amount: int
    total_amount: int


def compute_totals(line_items: Iterable[LineItem], tax_rate_bps: int = 0) -> InvoiceTotals:
    """
    Subtotal is the sum of line totals; tax is charged in basis points and
    rounded half up to the nearest minor unit.
    """
    if tax_rate_bps < 0:
        raise ValueError("tax_rate_bps must be >= 0")
    subtotal = 0
    for item in line_items:
        if item.quantity < 0 or item.unit_price < 0:
            raise ValueError(f"negative line item: {item.description}")
        subtotal += item.total
    tax = (subtotal * tax_rate_bps + 5000) // 10000
    return InvoiceTotals(subtotal=subtotal, tax_amount=tax, total_amount=subtotal + tax)


@dataclass(frozen=True)
class Invoice:
    id: str
    quote_id: str
    subtotal: int = 0
    tax_amount: int = 0
    total_amount: int = 0
    status: InvoiceStatus = InvoiceStatus.DRAFT
    is_draft: bool = True
    document_type: DocumentType = DocumentType.ESTIMATE
    due_date: Optional[date] = None
    sent_at: Optional[datetime] = None
    viewed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    last_status_change: Optional[datetime] = None
    status_changed_by: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        # Invariant: total = subtotal + tax
        if self.total_amount != self.subtotal + self.tax_amount:
            raise ValueError(
                f"invoice {self.id}: total_amount {self.total_amount} != "
                f"subtotal {self.subtotal} + tax {self.tax_amount}"
            )


@dataclass(frozen=True)
class PaymentMilestone:
    id: str
    invoice_id: str
    amount: int
    status: MilestoneStatus = MilestoneStatus.PENDING
    milestone_type: str = "FULL"
    percentage: Optional[int] = None
    due_date: Optional[date] = None
    description: Optional[str] = None

    @property
    def is_settled(self) -> bool:
        return self.status in SETTLED_MILESTONE_STATUSES


@dataclass(frozen=True)
class TransitionRecord:
    entity_kind: EntityKind
    entity_id: str
    previous_status: str
    new_status: str
    actor: str
    created_at: datetime
    reason: Optional[str] = None
    request_id: Optional[str] = None
    id: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_kind": self.entity_kind.value,
            "entity_id": self.entity_id,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "actor": self.actor,
            "reason": self.reason,
            "request_id": self.request_id,
            "created_at": self.created_at.isoformat(),
        }
