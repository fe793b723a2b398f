# schemas.py
from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from typing import Optional, List, Literal


# -------- QUOTES --------
class QuoteCreateRequest(BaseModel):
    contact_name: str = Field(min_length=1, max_length=200)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=320)
    phone: Optional[str] = Field(default=None, max_length=40)
    event_name: Optional[str] = Field(default=None, max_length=200)
    event_date: Optional[date] = None
    guest_count: Optional[int] = Field(default=None, ge=1)
    location: Optional[str] = Field(default=None, max_length=500)


class QuoteOut(BaseModel):
    id: str
    status: str
    contact_name: str
    email: str
    phone: Optional[str] = None
    event_name: Optional[str] = None
    event_date: Optional[date] = None
    guest_count: Optional[int] = None
    location: Optional[str] = None
    last_status_change: Optional[datetime] = None
    status_changed_by: Optional[str] = None


# -------- STATUS CHANGES --------
class StatusChangeRequest(BaseModel):
    status: str = Field(min_length=1, max_length=40)
    reason: Optional[str] = Field(default=None, max_length=500)

    @field_validator("status")
    @classmethod
    def _normalise_status(cls, v: str) -> str:
        # clients send labels like "Under_Review"; the engine matches exact values
        return v.strip().lower()


class TransitionOut(BaseModel):
    entity_kind: str
    entity_id: str
    previous_status: str
    new_status: str
    changed_at: datetime
    audited: bool
    notified: bool


class TransitionRecordOut(BaseModel):
    id: Optional[str] = None
    entity_kind: str
    entity_id: str
    previous_status: str
    new_status: str
    actor: str
    reason: Optional[str] = None
    request_id: Optional[str] = None
    created_at: datetime


class NextStatusesOut(BaseModel):
    entity_kind: str
    entity_id: str
    current_status: str
    next_statuses: List[str]


# -------- INVOICES --------
class LineItemIn(BaseModel):
    description: str = Field(min_length=1, max_length=300)
    quantity: int = Field(ge=0)
    unit_price: int = Field(ge=0)


class InvoiceCreateRequest(BaseModel):
    line_items: List[LineItemIn] = Field(default_factory=list)
    tax_rate_bps: int = Field(default=0, ge=0, le=10000)
    due_date: Optional[date] = None


class InvoiceOut(BaseModel):
    id: str
    quote_id: str
    status: str
    document_type: str
    is_draft: bool
    subtotal: int
    tax_amount: int
    total_amount: int
    due_date: Optional[date] = None
    sent_at: Optional[datetime] = None
    viewed_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    last_status_change: Optional[datetime] = None
    status_changed_by: Optional[str] = None


# -------- MILESTONES / PAYMENTS --------
class MilestoneScheduleRequest(BaseModel):
    is_government: bool = False
    already_paid: int = Field(default=0, ge=0)


class MilestoneOut(BaseModel):
    id: str
    invoice_id: str
    amount: int
    status: str
    milestone_type: str
    percentage: Optional[int] = None
    due_date: Optional[date] = None
    description: Optional[str] = None


class PaymentProgressOut(BaseModel):
    invoice_id: str
    total_amount: int
    paid_amount: int
    remaining_amount: int
    percent_paid: float


class PaymentWebhookEvent(BaseModel):
    event_id: Optional[str] = Field(default=None, max_length=200)
    milestone_id: str = Field(min_length=1, max_length=100)
    status: Literal["pending", "paid", "completed", "failed"]


# -------- ADMIN --------
class AutoWorkflowRequest(BaseModel):
    today: Optional[date] = None
