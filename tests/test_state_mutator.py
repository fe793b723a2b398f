from datetime import datetime, timezone

import pytest

from app.workflow.errors import EntityNotFound, InvalidTransition, PersistenceFailure
from app.workflow.model import Actor
from app.workflow.mutator import StateMutator
from app.workflow.state_machine import StatusValidator
from app.workflow.statuses import ActorRole, EntityKind, InvoiceStatus, QuoteStatus
from app.workflow.store import InMemoryEntityStore
from tests.conftest import make_invoice, make_quote

ADMIN = Actor(ActorRole.ADMIN, "admin-7")
FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FailingWriteStore(InMemoryEntityStore):
    def update_status(self, *args, **kwargs):
        raise ConnectionError("db down")


class RacingStore(InMemoryEntityStore):
    """Moves the entity to `interloper_status` right before the conditional write."""

    def __init__(self, interloper_status):
        super().__init__()
        self.interloper_status = interloper_status

    def update_status(self, kind, entity_id, *, expected_status, new_status, changes):
        super().update_status(
            kind, entity_id,
            expected_status=expected_status,
            new_status=self.interloper_status.value,
            changes={},
        )
        return super().update_status(
            kind, entity_id, expected_status=expected_status, new_status=new_status, changes=changes
        )


def _mutator(store):
    return StateMutator(store, StatusValidator(), clock=lambda: FIXED_NOW)


def test_apply_updates_status_and_bookkeeping(store):
    q = make_quote(store, QuoteStatus.UNDER_REVIEW)
    applied = _mutator(store).apply_transition(EntityKind.QUOTE, q.id, "quoted", ADMIN)

    assert applied.previous_status is QuoteStatus.UNDER_REVIEW
    assert applied.new_status is QuoteStatus.QUOTED
    fresh = store.get_quote(q.id)
    assert fresh.status is QuoteStatus.QUOTED
    assert fresh.last_status_change == FIXED_NOW
    assert fresh.status_changed_by == "admin:admin-7"


def test_second_identical_call_is_rejected(store):
    q = make_quote(store, QuoteStatus.UNDER_REVIEW)
    m = _mutator(store)
    m.apply_transition(EntityKind.QUOTE, q.id, "quoted", ADMIN)
    with pytest.raises(InvalidTransition):
        m.apply_transition(EntityKind.QUOTE, q.id, "quoted", ADMIN)


def test_invoice_send_stamps_sent_at_and_clears_draft(store):
    q = make_quote(store, QuoteStatus.ESTIMATED)
    inv = make_invoice(store, q.id, InvoiceStatus.DRAFT)
    _mutator(store).apply_transition(EntityKind.INVOICE, inv.id, InvoiceStatus.SENT, ADMIN)

    fresh = store.get_invoice(inv.id)
    assert fresh.status is InvoiceStatus.SENT
    assert fresh.sent_at == FIXED_NOW
    assert fresh.is_draft is False
    assert fresh.paid_at is None


def test_missing_entity_raises_not_found(store):
    with pytest.raises(EntityNotFound):
        _mutator(store).apply_transition(EntityKind.QUOTE, "nope", "under_review", ADMIN)


def test_illegal_transition_writes_nothing(store):
    q = make_quote(store, QuoteStatus.PENDING)
    with pytest.raises(InvalidTransition):
        _mutator(store).apply_transition(EntityKind.QUOTE, q.id, "approved", ADMIN)
    assert store.get_quote(q.id).status is QuoteStatus.PENDING
    assert store.get_quote(q.id).last_status_change is None


def test_store_failure_becomes_persistence_failure():
    store = FailingWriteStore()
    q = make_quote(store, QuoteStatus.PENDING)
    with pytest.raises(PersistenceFailure) as exc:
        _mutator(store).apply_transition(EntityKind.QUOTE, q.id, "under_review", ADMIN)
    assert "ConnectionError" in str(exc.value)
    assert store.get_quote(q.id).status is QuoteStatus.PENDING


def test_lost_compare_and_swap_names_the_fresh_status():
    store = RacingStore(QuoteStatus.CANCELLED)
    q = make_quote(store, QuoteStatus.PENDING)
    with pytest.raises(InvalidTransition) as exc:
        _mutator(store).apply_transition(EntityKind.QUOTE, q.id, "under_review", ADMIN)
    assert "cancelled -> under_review" in str(exc.value)
    assert "concurrently" in str(exc.value)
    assert store.get_quote(q.id).status is QuoteStatus.CANCELLED
