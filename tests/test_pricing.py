import pytest

from app.workflow.model import Invoice, LineItem, compute_totals


def test_totals_sum_lines_and_round_tax_half_up():
    totals = compute_totals(
        [LineItem("Buffet", 100, 2_450), LineItem("Service staff", 4, 12_500)],
        tax_rate_bps=825,
    )
    assert totals.subtotal == 295_000
    assert totals.tax_amount == 24_338  # 24_337.5 rounds up
    assert totals.total_amount == totals.subtotal + totals.tax_amount


def test_no_lines_is_zero():
    totals = compute_totals([])
    assert (totals.subtotal, totals.tax_amount, totals.total_amount) == (0, 0, 0)


def test_negative_inputs_are_rejected():
    with pytest.raises(ValueError):
        compute_totals([LineItem("Refund", -1, 100)])
    with pytest.raises(ValueError):
        compute_totals([], tax_rate_bps=-5)


def test_invoice_rejects_inconsistent_total():
    with pytest.raises(ValueError):
        Invoice(id="i-1", quote_id="q-1", subtotal=100, tax_amount=10, total_amount=120)
    Invoice(id="i-2", quote_id="q-1", subtotal=100, tax_amount=10, total_amount=110)
