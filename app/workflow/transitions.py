# app/workflow/transitions.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from app.workflow.statuses import (
    ActorRole,
    EntityKind,
    InvoiceStatus,
    QuoteStatus,
    STATUS_ENUMS,
    Status,
)

WILDCARD = "*"

ADMIN = ActorRole.ADMIN
CUSTOMER = ActorRole.CUSTOMER
SYSTEM = ActorRole.SYSTEM


@dataclass(frozen=True)
class TransitionRule:
    from_status: Union[Status, str]
    to_status: Status
    allowed_roles: frozenset
    notify: bool = False
    description: str = ""
    template: Optional[str] = None

    @property
    def is_wildcard(self) -> bool:
        return self.from_status == WILDCARD

    def matches(self, current: Status, desired: Status, role: ActorRole) -> bool:
        if self.to_status != desired or role not in self.allowed_roles:
            return False
        if self.is_wildcard:
            # wildcard never stands in for an explicit same-state rule
            return current != desired
        return self.from_status == current


def rule(
    from_status,
    to_status,
    *roles: ActorRole,
    notify: bool = False,
    description: str = "",
    template: Optional[str] = None,
) -> TransitionRule:
    return TransitionRule(
        from_status=from_status,
        to_status=to_status,
        allowed_roles=frozenset(roles),
        notify=notify,
        description=description,
        template=template,
    )


class TransitionTable:
    """
    Ordered, immutable rule set for one entity kind.

    Construction validates the rules: every status must belong to the kind's
    enum and the wildcard source may only target the kind's ``cancelled``
    status.
    """

    def __init__(self, kind: EntityKind, rules: Iterable[TransitionRule]):
        self.kind = kind
        self._rules = tuple(rules)
        self._validate()

    def _validate(self) -> None:
        enum_cls = STATUS_ENUMS[self.kind]
        cancelled = enum_cls("cancelled")
        for r in self._rules:
            if not isinstance(r.to_status, enum_cls):
                raise ValueError(f"{self.kind.value} rule targets foreign status {r.to_status!r}")
            if r.is_wildcard:
                if r.to_status is not cancelled:
                    raise ValueError(f"wildcard rule may only target cancelled, got {r.to_status.value}")
            elif not isinstance(r.from_status, enum_cls):
                raise ValueError(f"{self.kind.value} rule starts from foreign status {r.from_status!r}")
            if not r.allowed_roles:
                raise ValueError(f"rule {r.from_status} -> {r.to_status.value} has no allowed roles")
            for role in r.allowed_roles:
                if not isinstance(role, ActorRole):
                    raise ValueError(f"unknown actor role {role!r}")

    @property
    def rules(self) -> tuple[TransitionRule, ...]:
        return self._rules

    def find(self, current: Status, desired: Status, role: ActorRole) -> Optional[TransitionRule]:
        for r in self._rules:
            if r.matches(current, desired, role):
                return r
        return None

    def next_statuses(self, current: Status, role: Optional[ActorRole] = None) -> list[Status]:
        out: list[Status] = []
        for r in self._rules:
            if role is not None and role not in r.allowed_roles:
                continue
            if r.is_wildcard:
                ok = current != r.to_status
            else:
                ok = r.from_status == current
            if ok and r.to_status not in out:
                out.append(r.to_status)
        return out

    def reachable_from(self, status: Status) -> frozenset:
        """Statuses downstream of `status` via explicit (non-wildcard) rules."""
        seen: set = set()
        frontier = [status]
        while frontier:
            cur = frontier.pop()
            for r in self._rules:
                if r.is_wildcard or r.from_status != cur:
                    continue
                if r.to_status not in seen and r.to_status != status:
                    seen.add(r.to_status)
                    frontier.append(r.to_status)
        return frozenset(seen)


@dataclass(frozen=True)
class WorkflowConfig:
    quote: TransitionTable
    invoice: TransitionTable
    _by_kind: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.quote.kind is not EntityKind.QUOTE or self.invoice.kind is not EntityKind.INVOICE:
            raise ValueError("workflow tables are attached to the wrong entity kinds")
        object.__setattr__(self, "_by_kind", {EntityKind.QUOTE: self.quote, EntityKind.INVOICE: self.invoice})

    def table(self, kind: EntityKind) -> TransitionTable:
        return self._by_kind[kind]


Q = QuoteStatus
I = InvoiceStatus

QUOTE_RULES = (
    rule(Q.PENDING, Q.UNDER_REVIEW, ADMIN, SYSTEM, description="Your request is being reviewed"),
    rule(Q.UNDER_REVIEW, Q.QUOTED, ADMIN, notify=True, description="Your quote is ready", template="quote_ready"),
    rule(Q.QUOTED, Q.ESTIMATED, ADMIN, notify=True, description="Your estimate is ready for review", template="estimate_ready"),
    rule(Q.ESTIMATED, Q.UNDER_REVIEW, CUSTOMER, ADMIN, description="Changes requested on the estimate"),
    rule(Q.ESTIMATED, Q.APPROVED, CUSTOMER, ADMIN, SYSTEM, description="Estimate approved"),
    rule(Q.APPROVED, Q.AWAITING_PAYMENT, ADMIN, SYSTEM, notify=True, description="Payment is now due", template="payment_request"),
    rule(Q.AWAITING_PAYMENT, Q.PAID, SYSTEM, notify=True, description="Payment received in full", template="payment_confirmation"),
    rule(Q.PAID, Q.CONFIRMED, ADMIN, SYSTEM, notify=True, description="Your event is confirmed", template="event_confirmed"),
    rule(Q.CONFIRMED, Q.IN_PROGRESS, ADMIN, SYSTEM, description="Event in progress"),
    rule(Q.CONFIRMED, Q.COMPLETED, ADMIN, SYSTEM, notify=True, description="Thank you for choosing us", template="event_completed"),
    rule(Q.IN_PROGRESS, Q.COMPLETED, ADMIN, SYSTEM, notify=True, description="Thank you for choosing us", template="event_completed"),
    rule(WILDCARD, Q.CANCELLED, ADMIN, notify=True, description="Your request has been cancelled", template="cancelled"),
)

INVOICE_RULES = (
    rule(I.DRAFT, I.PENDING_REVIEW, ADMIN, description="Submitted for internal review"),
    rule(I.PENDING_REVIEW, I.DRAFT, ADMIN, description="Returned to draft"),
    rule(I.DRAFT, I.SENT, ADMIN, notify=True, description="Your estimate is ready", template="estimate_ready"),
    rule(I.PENDING_REVIEW, I.SENT, ADMIN, notify=True, description="Your estimate is ready", template="estimate_ready"),
    rule(I.SENT, I.VIEWED, CUSTOMER, SYSTEM, description="Estimate viewed"),
    rule(I.SENT, I.PENDING_REVIEW, CUSTOMER, description="Changes requested"),
    rule(I.VIEWED, I.PENDING_REVIEW, CUSTOMER, description="Changes requested"),
    rule(I.VIEWED, I.APPROVED, CUSTOMER, description="Estimate approved"),
    rule(I.APPROVED, I.PAYMENT_PENDING, ADMIN, SYSTEM, notify=True, description="Payment is now due", template="payment_request"),
    rule(I.PAYMENT_PENDING, I.PARTIALLY_PAID, SYSTEM, notify=True, description="Deposit received", template="payment_confirmation"),
    rule(I.PAYMENT_PENDING, I.PAID, SYSTEM, notify=True, description="Payment received in full", template="payment_confirmation"),
    rule(I.PARTIALLY_PAID, I.PAID, SYSTEM, notify=True, description="Payment received in full", template="payment_confirmation"),
    rule(I.SENT, I.OVERDUE, SYSTEM, notify=True, description="Payment is past due", template="payment_reminder"),
    rule(I.APPROVED, I.OVERDUE, SYSTEM, notify=True, description="Payment is past due", template="payment_reminder"),
    rule(I.PAYMENT_PENDING, I.OVERDUE, SYSTEM, notify=True, description="Payment is past due", template="payment_reminder"),
    rule(I.PARTIALLY_PAID, I.OVERDUE, SYSTEM, notify=True, description="Payment is past due", template="payment_reminder"),
    rule(I.OVERDUE, I.PAID, SYSTEM, notify=True, description="Payment received in full", template="payment_confirmation"),
    rule(WILDCARD, I.CANCELLED, ADMIN, notify=True, description="Your invoice has been cancelled", template="cancelled"),
)

DEFAULT_WORKFLOW = WorkflowConfig(
    quote=TransitionTable(EntityKind.QUOTE, QUOTE_RULES),
    invoice=TransitionTable(EntityKind.INVOICE, INVOICE_RULES),
)
