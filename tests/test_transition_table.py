import itertools

import pytest

from app.workflow.state_machine import is_valid_transition
from app.workflow.statuses import ActorRole, EntityKind, InvoiceStatus, QuoteStatus
from app.workflow.transitions import (
    DEFAULT_WORKFLOW,
    WILDCARD,
    TransitionTable,
    WorkflowConfig,
    rule,
)

A, C, S = "admin", "customer", "system"

QUOTE_ALLOWED = {
    ("pending", "under_review"): {A, S},
    ("under_review", "quoted"): {A},
    ("quoted", "estimated"): {A},
    ("estimated", "under_review"): {C, A},
    ("estimated", "approved"): {C, A, S},
    ("approved", "awaiting_payment"): {A, S},
    ("awaiting_payment", "paid"): {S},
    ("paid", "confirmed"): {A, S},
    ("confirmed", "in_progress"): {A, S},
    ("confirmed", "completed"): {A, S},
    ("in_progress", "completed"): {A, S},
}

INVOICE_ALLOWED = {
    ("draft", "pending_review"): {A},
    ("pending_review", "draft"): {A},
    ("draft", "sent"): {A},
    ("pending_review", "sent"): {A},
    ("sent", "viewed"): {C, S},
    ("sent", "pending_review"): {C},
    ("viewed", "pending_review"): {C},
    ("viewed", "approved"): {C},
    ("approved", "payment_pending"): {A, S},
    ("payment_pending", "partially_paid"): {S},
    ("payment_pending", "paid"): {S},
    ("partially_paid", "paid"): {S},
    ("sent", "overdue"): {S},
    ("approved", "overdue"): {S},
    ("payment_pending", "overdue"): {S},
    ("partially_paid", "overdue"): {S},
    ("overdue", "paid"): {S},
}


def _expected(allowed, current, desired, role):
    if desired == "cancelled" and current != "cancelled":
        return role == A
    return role in allowed.get((current, desired), set())


@pytest.mark.parametrize(
    "kind,enum_cls,allowed",
    [
        (EntityKind.QUOTE, QuoteStatus, QUOTE_ALLOWED),
        (EntityKind.INVOICE, InvoiceStatus, INVOICE_ALLOWED),
    ],
)
def test_every_triple_matches_the_table(kind, enum_cls, allowed):
    statuses = [s.value for s in enum_cls]
    for current, desired, role in itertools.product(statuses, statuses, (A, C, S)):
        got = is_valid_transition(kind, current, desired, role)
        assert got == _expected(allowed, current, desired, role), (kind.value, current, desired, role)


def test_same_state_is_never_valid():
    for kind, enum_cls in ((EntityKind.QUOTE, QuoteStatus), (EntityKind.INVOICE, InvoiceStatus)):
        for s in enum_cls:
            for role in ActorRole:
                assert not is_valid_transition(kind, s, s, role)


def test_cancellation_admin_only_from_every_live_state():
    for s in QuoteStatus:
        if s is QuoteStatus.CANCELLED:
            continue
        assert is_valid_transition("quote", s, "cancelled", "admin")
        assert not is_valid_transition("quote", s, "cancelled", "customer")
        assert not is_valid_transition("quote", s, "cancelled", "system")


def test_unknown_inputs_are_rejected_not_coerced():
    assert not is_valid_transition("quote", "pending", "bogus", "admin")
    assert not is_valid_transition("quote", "bogus", "under_review", "admin")
    assert not is_valid_transition("quote", "pending", "under_review", "superuser")
    assert not is_valid_transition("contract", "pending", "under_review", "admin")
    # statuses are per kind: an invoice-only status is not a quote status
    assert not is_valid_transition("quote", "approved", "payment_pending", "admin")


def test_string_inputs_must_match_exactly():
    assert is_valid_transition("quote", "pending", "under_review", "admin")
    assert not is_valid_transition("quote", " PENDING ", "under_review", "admin")
    assert not is_valid_transition("quote", "pending", "Under_Review", "admin")
    assert not is_valid_transition("QUOTE", "pending", "under_review", "admin")
    assert not is_valid_transition("quote", "pending", "under_review", "Admin")


def test_next_statuses_filters_by_role():
    table = DEFAULT_WORKFLOW.table(EntityKind.QUOTE)
    assert set(table.next_statuses(QuoteStatus.ESTIMATED, ActorRole.CUSTOMER)) == {
        QuoteStatus.UNDER_REVIEW,
        QuoteStatus.APPROVED,
    }
    assert QuoteStatus.CANCELLED in table.next_statuses(QuoteStatus.ESTIMATED, ActorRole.ADMIN)
    assert table.next_statuses(QuoteStatus.CANCELLED) == []


def test_reachable_from_follows_explicit_rules_only():
    table = DEFAULT_WORKFLOW.table(EntityKind.QUOTE)
    assert table.reachable_from(QuoteStatus.PAID) == {
        QuoteStatus.CONFIRMED,
        QuoteStatus.IN_PROGRESS,
        QuoteStatus.COMPLETED,
    }
    assert QuoteStatus.CANCELLED not in table.reachable_from(QuoteStatus.PENDING)
    assert DEFAULT_WORKFLOW.table(EntityKind.INVOICE).reachable_from(InvoiceStatus.PAID) == frozenset()


def test_wildcard_must_target_cancelled():
    with pytest.raises(ValueError):
        TransitionTable(EntityKind.QUOTE, [rule(WILDCARD, QuoteStatus.APPROVED, ActorRole.ADMIN)])


def test_table_rejects_foreign_statuses_and_empty_roles():
    with pytest.raises(ValueError):
        TransitionTable(EntityKind.QUOTE, [rule(QuoteStatus.PENDING, InvoiceStatus.SENT, ActorRole.ADMIN)])
    with pytest.raises(ValueError):
        TransitionTable(EntityKind.INVOICE, [rule(QuoteStatus.PENDING, InvoiceStatus.SENT, ActorRole.ADMIN)])
    with pytest.raises(ValueError):
        TransitionTable(EntityKind.QUOTE, [rule(QuoteStatus.PENDING, QuoteStatus.QUOTED)])


def test_workflow_config_rejects_swapped_tables():
    with pytest.raises(ValueError):
        WorkflowConfig(
            quote=DEFAULT_WORKFLOW.invoice,
            invoice=DEFAULT_WORKFLOW.quote,
        )
