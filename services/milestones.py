from __future__ import annotations

import dataclasses
import uuid
from datetime import date, timedelta
from typing import Optional

from app.workflow.model import PaymentMilestone
from app.workflow.statuses import MilestoneStatus

RUSH_WINDOW_DAYS = 14
SHORT_NOTICE_DAYS = 30
MID_RANGE_DAYS = 44
GOVERNMENT_NET_DAYS = 30


def _percent_of(total: int, pct: int) -> int:
    # half up, integer minor units
    return (total * pct + 50) // 100


def _milestone(invoice_id: str, milestone_type: str, pct: int, amount: int, due: date, description: str) -> PaymentMilestone:
    return PaymentMilestone(
        id=str(uuid.uuid4()),
        invoice_id=str(invoice_id),
        amount=amount,
        milestone_type=milestone_type,
        percentage=pct,
        due_date=due,
        description=description,
    )


def _apply_paid(milestones: list[PaymentMilestone], already_paid: int) -> list[PaymentMilestone]:
    """
    Mark leading milestones paid while the prior payments cover them in full.
    With nothing paid, nothing is marked, zero-amount milestones included.
    """
    remaining = already_paid
    out: list[PaymentMilestone] = []
    waterfall_open = already_paid > 0
    for m in milestones:
        if waterfall_open and remaining >= m.amount:
            remaining -= m.amount
            out.append(dataclasses.replace(m, status=MilestoneStatus.PAID))
        else:
            waterfall_open = False
            out.append(m)
    return out


def build_payment_schedule(
    invoice_id: str,
    total_amount: int,
    event_date: Optional[date],
    today: Optional[date] = None,
    *,
    is_government: bool = False,
    already_paid: int = 0,
) -> list[PaymentMilestone]:
    """
    Split an invoice total into payment milestones based on lead time:

    - government customers pay in full net 30 after the event
    - rush events (14 days or less) pay in full now
    - up to 30 days: 60% now, the rest 7 days before the event
    - up to 44 days: 60% now, the rest 14 days before the event
    - otherwise 10% now, 50% 30 days before, the rest 14 days before

    Amounts always sum to ``total_amount``.
    """
    if total_amount < 0:
        raise ValueError("total_amount must be >= 0")
    if already_paid < 0:
        raise ValueError("already_paid must be >= 0")

    today = today or date.today()
    event = event_date or today
    days_until_event = (event - today).days

    if is_government:
        schedule = [
            _milestone(
                invoice_id, "FULL", 100, total_amount,
                event + timedelta(days=GOVERNMENT_NET_DAYS),
                "Full payment due 30 days after event (Net 30)",
            )
        ]
    elif days_until_event <= RUSH_WINDOW_DAYS:
        schedule = [
            _milestone(invoice_id, "FULL", 100, total_amount, today, "Full payment due immediately (rush event)")
        ]
    elif days_until_event <= MID_RANGE_DAYS:
        final_days = 7 if days_until_event <= SHORT_NOTICE_DAYS else 14
        deposit = _percent_of(total_amount, 60)
        schedule = [
            _milestone(invoice_id, "DEPOSIT", 60, deposit, today, "60% deposit due now"),
            _milestone(
                invoice_id, "FINAL", 40, total_amount - deposit,
                event - timedelta(days=final_days),
                f"Final 40% due {final_days} days before event",
            ),
        ]
    else:
        booking = _percent_of(total_amount, 10)
        mid = _percent_of(total_amount, 50)
        schedule = [
            _milestone(invoice_id, "DEPOSIT", 10, booking, today, "10% booking deposit due now"),
            _milestone(invoice_id, "MILESTONE", 50, mid, event - timedelta(days=30), "50% due 30 days before event"),
            _milestone(
                invoice_id, "FINAL", 40, total_amount - booking - mid,
                event - timedelta(days=14),
                "Final 40% due 14 days before event",
            ),
        ]

    return _apply_paid(schedule, already_paid)
