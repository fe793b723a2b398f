import pytest

from app.workflow.errors import InvalidTransition
from app.workflow.state_machine import StatusValidator, assert_transition
from app.workflow.statuses import ActorRole, EntityKind, QuoteStatus
from app.workflow.transitions import DEFAULT_WORKFLOW, TransitionTable, WorkflowConfig, rule


def test_valid_transitions_return_the_rule():
    r = assert_transition("quote", "under_review", "quoted", "admin")
    assert r.notify is True
    assert r.template == "quote_ready"
    assert r.to_status is QuoteStatus.QUOTED


def test_invalid_transition_names_statuses_and_role():
    with pytest.raises(InvalidTransition) as exc:
        assert_transition("quote", "quoted", "estimated", "customer")
    msg = str(exc.value)
    assert "quoted -> estimated" in msg
    assert "role=customer" in msg
    assert exc.value.code == "INVALID_TRANSITION"


def test_invalid_transition_skipping_states():
    with pytest.raises(InvalidTransition):
        assert_transition("quote", "pending", "approved", "admin")


def test_cancelled_to_cancelled_explains_itself():
    with pytest.raises(InvalidTransition) as exc:
        assert_transition("invoice", "cancelled", "cancelled", "admin")
    assert "already in that status" in str(exc.value)


def test_unknown_target_is_reported():
    with pytest.raises(InvalidTransition) as exc:
        assert_transition("invoice", "draft", "archived", "admin")
    assert "unknown target status" in str(exc.value)


def test_injected_config_replaces_the_defaults():
    custom = WorkflowConfig(
        quote=TransitionTable(
            EntityKind.QUOTE,
            [rule(QuoteStatus.PENDING, QuoteStatus.APPROVED, ActorRole.CUSTOMER)],
        ),
        invoice=DEFAULT_WORKFLOW.invoice,
    )
    validator = StatusValidator(custom)

    assert validator.is_valid_transition("quote", "pending", "approved", "customer")
    assert not validator.is_valid_transition("quote", "pending", "under_review", "admin")
    # default validator is untouched
    with pytest.raises(InvalidTransition):
        assert_transition("quote", "pending", "approved", "customer")


def test_next_statuses_for_unknown_status_is_empty():
    assert StatusValidator().next_statuses("quote", "bogus") == []
