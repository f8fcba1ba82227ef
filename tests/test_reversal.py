"""
Tests for ITC reversal calculations.
"""

import pytest
from datetime import date
from decimal import Decimal

from itc_recon.engine.reversal import ReversalCalculator, is_non_payment_due
from itc_recon.errors import ValidationError
from itc_recon.models.itc import ReversalContext, ReversalReason


@pytest.fixture
def calculator():
    return ReversalCalculator()


class TestNonPayment:
    def test_interest_from_day_181(self, calculator):
        ctx = ReversalContext(invoice_date=date(2024, 1, 1), as_of=date(2024, 7, 29))
        reversal = calculator.reverse(Decimal("18000"), ReversalReason.NON_PAYMENT_180_DAYS, ctx)
        assert reversal.reversed_amount == Decimal("18000.00")
        assert reversal.interest_days == 30
        assert reversal.interest_amount == Decimal("266.30")
        assert reversal.total_amount == Decimal("18266.30")
        assert reversal.event_date == date(2024, 7, 29)
        assert "Rule 37" in reversal.statutory_reference

    def test_late_payment_stops_interest(self, calculator):
        ctx = ReversalContext(invoice_date=date(2024, 1, 1), payment_date=date(2024, 7, 9), as_of=date(2024, 9, 1))
        reversal = calculator.reverse(Decimal("18000"), ReversalReason.NON_PAYMENT_180_DAYS, ctx)
        assert reversal.interest_days == 10
        assert reversal.interest_amount == Decimal("88.77")

    def test_requires_invoice_date(self, calculator):
        with pytest.raises(ValidationError) as exc:
            calculator.reverse(Decimal("18000"), ReversalReason.NON_PAYMENT_180_DAYS,
                               ReversalContext(as_of=date(2024, 7, 29)))
        assert exc.value.field == "invoice_date"

    def test_requires_an_end_date(self, calculator):
        with pytest.raises(ValidationError):
            calculator.reverse(Decimal("18000"), ReversalReason.NON_PAYMENT_180_DAYS,
                               ReversalContext(invoice_date=date(2024, 1, 1)))

    def test_is_non_payment_due(self):
        invoice = date(2024, 1, 1)
        assert is_non_payment_due(invoice, None, date(2024, 6, 29)) is False
        assert is_non_payment_due(invoice, None, date(2024, 6, 30)) is True
        assert is_non_payment_due(invoice, date(2024, 3, 1), date(2024, 9, 1)) is False
        assert is_non_payment_due(invoice, date(2024, 7, 9), date(2024, 9, 1)) is True
        assert is_non_payment_due(invoice, None, date(2024, 2, 1), window_days=30) is True


class TestProportionalReversals:
    def test_goods_lost(self, calculator):
        ctx = ReversalContext(loss_percentage=Decimal("40"))
        reversal = calculator.reverse(Decimal("18000"), ReversalReason.GOODS_LOST, ctx)
        assert reversal.reversed_amount == Decimal("7200.00")
        assert reversal.interest_amount == Decimal("0")

    def test_usage_change(self, calculator):
        ctx = ReversalContext(personal_use_percentage=Decimal("25"))
        reversal = calculator.reverse(Decimal("18000"), ReversalReason.USAGE_CHANGE_PERSONAL, ctx)
        assert reversal.reversed_amount == Decimal("4500.00")

    def test_missing_percentage(self, calculator):
        with pytest.raises(ValidationError) as exc:
            calculator.reverse(Decimal("18000"), ReversalReason.GOODS_LOST)
        assert exc.value.field == "loss_percentage"

    def test_credit_note_tax_given(self, calculator):
        ctx = ReversalContext(credit_note_tax=Decimal("180"))
        assert calculator.reverse(Decimal("1800"), ReversalReason.CREDIT_NOTE, ctx).reversed_amount == Decimal("180.00")

    def test_credit_note_tax_derived(self, calculator):
        ctx = ReversalContext(credit_note_value=Decimal("1180"), gst_rate=Decimal("18"))
        assert calculator.reverse(Decimal("1800"), ReversalReason.CREDIT_NOTE, ctx).reversed_amount == Decimal("180.00")

    def test_credit_note_needs_context(self, calculator):
        with pytest.raises(ValidationError):
            calculator.reverse(Decimal("1800"), ReversalReason.CREDIT_NOTE, ReversalContext(credit_note_value=Decimal("1180")))

    def test_exempt_increase_from_percentages(self, calculator):
        ctx = ReversalContext(previous_exempt_percentage=Decimal("10"), new_exempt_percentage=Decimal("25"))
        reversal = calculator.reverse(Decimal("20000"), ReversalReason.EXEMPT_SUPPLY_INCREASE, ctx)
        assert reversal.reversed_amount == Decimal("3000.00")

    def test_exempt_decrease_reverses_nothing(self, calculator):
        ctx = ReversalContext(previous_exempt_percentage=Decimal("25"), new_exempt_percentage=Decimal("10"))
        reversal = calculator.reverse(Decimal("20000"), ReversalReason.EXEMPT_SUPPLY_INCREASE, ctx)
        assert reversal.reversed_amount == Decimal("0.00")

    def test_exempt_increase_direct(self, calculator):
        ctx = ReversalContext(exempt_share_increase=Decimal("5"))
        reversal = calculator.reverse(Decimal("20000"), ReversalReason.EXEMPT_SUPPLY_INCREASE, ctx)
        assert reversal.reversed_amount == Decimal("1000.00")


class TestCapitalGoods:
    def test_year_three_of_five(self, calculator):
        ctx = ReversalContext(disposal_year=3)
        reversal = calculator.reverse(Decimal("180000"), ReversalReason.CAPITAL_GOODS_DISPOSAL, ctx)
        assert reversal.reversed_amount == Decimal("72000.00")

    def test_applies_to_claim_passed_in(self, calculator):
        ctx = ReversalContext(disposal_year=3)
        reversal = calculator.reverse(Decimal("144000"), ReversalReason.CAPITAL_GOODS_DISPOSAL, ctx)
        assert reversal.reversed_amount == Decimal("57600.00")

    def test_year_derived_from_dates(self, calculator):
        ctx = ReversalContext(capitalisation_date=date(2022, 4, 1), disposal_date=date(2024, 6, 1))
        reversal = calculator.reverse(Decimal("180000"), ReversalReason.CAPITAL_GOODS_DISPOSAL, ctx)
        assert reversal.reversed_amount == Decimal("72000.00")
        assert reversal.event_date == date(2024, 6, 1)
        assert "year 3 of 5" in reversal.description

    @pytest.mark.parametrize("year", [5, 7])
    def test_after_useful_life(self, calculator, year):
        ctx = ReversalContext(disposal_year=year)
        reversal = calculator.reverse(Decimal("180000"), ReversalReason.CAPITAL_GOODS_DISPOSAL, ctx)
        assert reversal.reversed_amount == Decimal("0.00")

    def test_custom_life(self, calculator):
        ctx = ReversalContext(disposal_year=1, asset_life_years=4)
        reversal = calculator.reverse(Decimal("40000"), ReversalReason.CAPITAL_GOODS_DISPOSAL, ctx)
        assert reversal.reversed_amount == Decimal("30000.00")

    def test_disposal_before_capitalisation(self, calculator):
        ctx = ReversalContext(capitalisation_date=date(2024, 6, 1), disposal_date=date(2024, 1, 1))
        with pytest.raises(ValidationError):
            calculator.reverse(Decimal("180000"), ReversalReason.CAPITAL_GOODS_DISPOSAL, ctx)

    def test_needs_year_or_dates(self, calculator):
        with pytest.raises(ValidationError):
            calculator.reverse(Decimal("180000"), ReversalReason.CAPITAL_GOODS_DISPOSAL)


class TestReversalRecord:
    def test_negative_claim_rejected(self, calculator):
        with pytest.raises(ValidationError):
            calculator.reverse(Decimal("-1"), ReversalReason.GOODS_LOST, ReversalContext(loss_percentage=Decimal("10")))

    def test_id_is_deterministic(self, calculator):
        ctx = ReversalContext(loss_percentage=Decimal("40"), as_of=date(2025, 4, 1))
        first = calculator.reverse(Decimal("18000"), ReversalReason.GOODS_LOST, ctx, record_id="PR-1")
        second = calculator.reverse(Decimal("18000"), ReversalReason.GOODS_LOST, ctx, record_id="PR-1")
        other = calculator.reverse(Decimal("18000"), ReversalReason.GOODS_LOST, ctx, record_id="PR-2")
        assert first.reversal_id == second.reversal_id
        assert first.reversal_id != other.reversal_id
        assert first.record_id == "PR-1"

    def test_custom_interest_rate(self):
        calc = ReversalCalculator(interest_rate_pct=Decimal("24"))
        ctx = ReversalContext(invoice_date=date(2024, 1, 1), as_of=date(2024, 7, 29))
        reversal = calc.reverse(Decimal("18000"), ReversalReason.NON_PAYMENT_180_DAYS, ctx)
        assert reversal.interest_amount == Decimal("355.07")
