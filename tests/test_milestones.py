from datetime import date, timedelta

import pytest

from app.workflow.statuses import MilestoneStatus
from services.milestones import build_payment_schedule

TODAY = date(2026, 4, 1)


def _schedule(days_out, total=100_000, **kwargs):
    return build_payment_schedule("inv-1", total, TODAY + timedelta(days=days_out), TODAY, **kwargs)


def test_rush_event_is_paid_in_full_now():
    ms = _schedule(10)
    assert [(m.milestone_type, m.amount, m.due_date) for m in ms] == [("FULL", 100_000, TODAY)]


def test_short_notice_is_sixty_forty():
    event = TODAY + timedelta(days=25)
    ms = _schedule(25)
    assert [(m.milestone_type, m.percentage, m.amount) for m in ms] == [
        ("DEPOSIT", 60, 60_000),
        ("FINAL", 40, 40_000),
    ]
    assert ms[1].due_date == event - timedelta(days=7)


def test_mid_range_final_is_due_two_weeks_before():
    event = TODAY + timedelta(days=40)
    ms = _schedule(40)
    assert [m.milestone_type for m in ms] == ["DEPOSIT", "FINAL"]
    assert ms[1].due_date == event - timedelta(days=14)


def test_standard_schedule_has_three_parts():
    event = TODAY + timedelta(days=90)
    ms = _schedule(90)
    assert [(m.milestone_type, m.amount) for m in ms] == [
        ("DEPOSIT", 10_000),
        ("MILESTONE", 50_000),
        ("FINAL", 40_000),
    ]
    assert ms[0].due_date == TODAY
    assert ms[1].due_date == event - timedelta(days=30)
    assert ms[2].due_date == event - timedelta(days=14)


def test_government_is_net_thirty_after_event():
    event = TODAY + timedelta(days=5)
    ms = _schedule(5, is_government=True)
    assert len(ms) == 1
    assert ms[0].milestone_type == "FULL"
    assert ms[0].due_date == event + timedelta(days=30)


@pytest.mark.parametrize("total", [1, 7, 99_999, 123_457])
def test_amounts_always_sum_to_total(total):
    for days in (3, 20, 40, 120):
        assert sum(m.amount for m in _schedule(days, total=total)) == total


def test_prior_payments_settle_leading_milestones():
    ms = _schedule(90, already_paid=65_000)
    assert [m.status for m in ms] == [MilestoneStatus.PAID, MilestoneStatus.PAID, MilestoneStatus.PENDING]


def test_partial_prior_payment_does_not_skip_ahead():
    ms = _schedule(90, already_paid=5_000)
    assert all(m.status is MilestoneStatus.PENDING for m in ms)


def test_negative_total_is_rejected():
    with pytest.raises(ValueError):
        _schedule(30, total=-1)


def test_zero_amount_milestones_are_never_pre_paid():
    ms = _schedule(90, total=0)
    assert all(m.amount == 0 for m in ms)
    assert all(m.status is MilestoneStatus.PENDING for m in ms)

    # 10% of 4 rounds down to 0; nothing has been paid
    tiny = _schedule(90, total=4)
    assert tiny[0].amount == 0
    assert all(m.status is MilestoneStatus.PENDING for m in tiny)

    # once something is paid, a zero-amount step does not stop the waterfall
    settled = _schedule(90, total=4, already_paid=4)
    assert all(m.status is MilestoneStatus.PAID for m in settled)
