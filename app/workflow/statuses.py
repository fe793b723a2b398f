# app/workflow/statuses.py
from __future__ import annotations

from enum import Enum
from typing import Optional, Type, Union


class EntityKind(str, Enum):
    QUOTE = "quote"
    INVOICE = "invoice"


class ActorRole(str, Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"
    SYSTEM = "system"


class QuoteStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    QUOTED = "quoted"
    ESTIMATED = "estimated"
    APPROVED = "approved"
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    SENT = "sent"
    VIEWED = "viewed"
    APPROVED = "approved"
    PAYMENT_PENDING = "payment_pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class MilestoneStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    COMPLETED = "completed"
    FAILED = "failed"


class DocumentType(str, Enum):
    ESTIMATE = "estimate"
    INVOICE = "invoice"


Status = Union[QuoteStatus, InvoiceStatus]

STATUS_ENUMS: dict[EntityKind, Type[Enum]] = {
    EntityKind.QUOTE: QuoteStatus,
    EntityKind.INVOICE: InvoiceStatus,
}

# milestone statuses that count toward an invoice being paid
SETTLED_MILESTONE_STATUSES = frozenset({MilestoneStatus.PAID, MilestoneStatus.COMPLETED})


def coerce_kind(value: Union[str, EntityKind, None]) -> Optional[EntityKind]:
    if isinstance(value, EntityKind):
        return value
    try:
        return EntityKind(value)
    except ValueError:
        return None


def coerce_role(value: Union[str, ActorRole, None]) -> Optional[ActorRole]:
    if isinstance(value, ActorRole):
        return value
    try:
        return ActorRole(value)
    except ValueError:
        return None


def coerce_status(kind: EntityKind, value) -> Optional[Status]:
    """
    Map a raw value onto the kind's status enum by exact value.
    Unknown values (or a member of the other kind's enum) return None;
    case and whitespace are not forgiven here.
    """
    enum_cls = STATUS_ENUMS[kind]
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, Enum):
        return None
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None


def status_label(status: Union[str, Enum]) -> str:
    raw = status.value if isinstance(status, Enum) else str(status)
    return " ".join(word.capitalize() for word in raw.split("_"))
