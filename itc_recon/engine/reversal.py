"""
ITC Reversal Calculator.

Computes the amount of previously claimed credit that must be paid back
when something happens after the claim. Reversals are additive ledger
entries; they never modify the eligibility result of the original claim.
"""

from typing import Callable, Dict, Optional, Tuple
from datetime import date, timedelta
from decimal import Decimal
from loguru import logger

from itc_recon.config import settings
from itc_recon.errors import ValidationError
from itc_recon.models.itc import ITCReversal, ReversalContext, ReversalReason
from itc_recon.utils.helpers import HUNDRED, ZERO, calculate_interest, generate_uid, money

STATUTORY_REFERENCES = {
    ReversalReason.NON_PAYMENT_180_DAYS: "Rule 37 CGST Rules; interest u/s 50 CGST Act",
    ReversalReason.GOODS_LOST: "Section 17(5)(h) CGST Act",
    ReversalReason.USAGE_CHANGE_PERSONAL: "Section 17(1) CGST Act; Rule 42 CGST Rules",
    ReversalReason.CREDIT_NOTE: "Section 34 CGST Act",
    ReversalReason.EXEMPT_SUPPLY_INCREASE: "Rule 42 CGST Rules",
    ReversalReason.CAPITAL_GOODS_DISPOSAL: "Section 18(6) CGST Act; Rule 44 CGST Rules",
}

# (reversed amount, interest, interest days, event date, description)
Computation = Tuple[Decimal, Decimal, int, Optional[date], str]


def is_non_payment_due(
    invoice_date: date,
    payment_date: Optional[date],
    as_of: date,
    window_days: Optional[int] = None,
) -> bool:
    """True when the supplier was not paid within the payment window and the window has passed."""
    window = settings.PAYMENT_WINDOW_DAYS if window_days is None else window_days
    cutoff = invoice_date + timedelta(days=window)
    if as_of <= cutoff:
        return False
    return payment_date is None or payment_date > cutoff


class ReversalCalculator:
    """Reversal amounts per statutory trigger, dispatched on the reason code."""

    def __init__(
        self,
        interest_rate_pct: Optional[Decimal] = None,
        payment_window_days: Optional[int] = None,
        capital_goods_life_years: Optional[int] = None,
    ):
        self.interest_rate_pct = interest_rate_pct if interest_rate_pct is not None else settings.INTEREST_RATE_PCT
        self.payment_window_days = (
            payment_window_days if payment_window_days is not None else settings.PAYMENT_WINDOW_DAYS
        )
        self.capital_goods_life_years = capital_goods_life_years or settings.CAPITAL_GOODS_LIFE_YEARS
        self._handlers: Dict[ReversalReason, Callable[[Decimal, ReversalContext], Computation]] = {
            ReversalReason.NON_PAYMENT_180_DAYS: self._non_payment,
            ReversalReason.GOODS_LOST: self._goods_lost,
            ReversalReason.USAGE_CHANGE_PERSONAL: self._usage_change,
            ReversalReason.CREDIT_NOTE: self._credit_note,
            ReversalReason.EXEMPT_SUPPLY_INCREASE: self._exempt_increase,
            ReversalReason.CAPITAL_GOODS_DISPOSAL: self._capital_goods_disposal,
        }

    def reverse(
        self,
        original_claim: Decimal,
        reason: ReversalReason,
        context: Optional[ReversalContext] = None,
        record_id: Optional[str] = None,
        vendor_gstin: Optional[str] = None,
        invoice_number: Optional[str] = None,
    ) -> ITCReversal:
        """
        Compute one reversal.

        Raises ValidationError when the context lacks what the reason needs
        or the original claim is negative.
        """
        context = context or ReversalContext()
        if original_claim < ZERO:
            raise ValidationError("Original claim cannot be negative", field="original_claim", value=original_claim)

        reversed_amount, interest, interest_days, event_date, description = self._handlers[reason](
            original_claim, context,
        )
        reversal = ITCReversal(
            reversal_id=generate_uid(
                "reversal", reason.value, record_id or "", invoice_number or "",
                original_claim, event_date or "",
            ),
            reason=reason,
            statutory_reference=STATUTORY_REFERENCES[reason],
            description=description,
            original_claim=original_claim,
            reversed_amount=reversed_amount,
            interest_amount=interest,
            interest_days=interest_days,
            event_date=event_date,
            record_id=record_id,
            vendor_gstin=vendor_gstin,
            invoice_number=invoice_number,
        )
        logger.debug(
            f"Reversal {reversal.reversal_id} [{reason.value}]: reversed {reversed_amount}, interest {interest}"
        )
        return reversal

    # ──────────────────────────── Handlers ────────────────────────────

    @staticmethod
    def _require(value, field: str, reason: ReversalReason):
        if value is None:
            raise ValidationError(f"{reason.value} reversal requires {field}", field=field)
        return value

    def _non_payment(self, original: Decimal, ctx: ReversalContext) -> Computation:
        reason = ReversalReason.NON_PAYMENT_180_DAYS
        invoice_date = self._require(ctx.invoice_date, "invoice_date", reason)
        end = ctx.payment_date or ctx.as_of
        if end is None:
            raise ValidationError(f"{reason.value} reversal requires payment_date or as_of", field="as_of")

        cutoff = invoice_date + timedelta(days=self.payment_window_days)
        days = max(0, (end - cutoff).days)
        reversed_amount = money(original)
        interest = calculate_interest(reversed_amount, self.interest_rate_pct, days)
        return (
            reversed_amount, interest, days, end,
            f"Supplier not paid within {self.payment_window_days} days of invoice dated "
            f"{invoice_date.isoformat()}; interest for {days} days",
        )

    def _goods_lost(self, original: Decimal, ctx: ReversalContext) -> Computation:
        pct = self._require(ctx.loss_percentage, "loss_percentage", ReversalReason.GOODS_LOST)
        return (
            money(original * pct / HUNDRED), ZERO, 0, ctx.as_of,
            f"Goods lost, stolen or destroyed - {pct}% reversal required",
        )

    def _usage_change(self, original: Decimal, ctx: ReversalContext) -> Computation:
        pct = self._require(ctx.personal_use_percentage, "personal_use_percentage", ReversalReason.USAGE_CHANGE_PERSONAL)
        return (
            money(original * pct / HUNDRED), ZERO, 0, ctx.as_of,
            f"Changed to personal use - {pct}% reversal required",
        )

    def _credit_note(self, original: Decimal, ctx: ReversalContext) -> Computation:
        if ctx.credit_note_tax is not None:
            tax = ctx.credit_note_tax
        elif ctx.credit_note_value is not None and ctx.gst_rate is not None:
            tax = ctx.credit_note_value * ctx.gst_rate / (HUNDRED + ctx.gst_rate)
        else:
            raise ValidationError(
                "CREDIT_NOTE reversal requires credit_note_tax, or credit_note_value with gst_rate",
                field="credit_note_tax",
            )
        return money(tax), ZERO, 0, ctx.as_of, "Credit note received from supplier - ITC reversal required"

    def _exempt_increase(self, original: Decimal, ctx: ReversalContext) -> Computation:
        if ctx.exempt_share_increase is not None:
            increase = ctx.exempt_share_increase
        elif ctx.new_exempt_percentage is not None and ctx.previous_exempt_percentage is not None:
            increase = max(ZERO, ctx.new_exempt_percentage - ctx.previous_exempt_percentage)
        else:
            raise ValidationError(
                "EXEMPT_SUPPLY_INCREASE reversal requires exempt_share_increase, "
                "or previous and new exempt percentages",
                field="exempt_share_increase",
            )
        return (
            money(original * increase / HUNDRED), ZERO, 0, ctx.as_of,
            f"Exempt supply share increased by {increase} percentage points - additional reversal required",
        )

    def _capital_goods_disposal(self, original: Decimal, ctx: ReversalContext) -> Computation:
        life = ctx.asset_life_years or self.capital_goods_life_years
        if ctx.disposal_year is not None:
            year = ctx.disposal_year
        elif ctx.capitalisation_date is not None and ctx.disposal_date is not None:
            held_days = (ctx.disposal_date - ctx.capitalisation_date).days
            if held_days < 0:
                raise ValidationError(
                    "Disposal date is before capitalisation date", field="disposal_date", value=ctx.disposal_date,
                )
            year = held_days // 365 + 1
        else:
            raise ValidationError(
                "CAPITAL_GOODS_DISPOSAL reversal requires disposal_year, "
                "or capitalisation_date and disposal_date",
                field="disposal_year",
            )

        remaining = max(0, life - year)
        reversed_amount = money(original * Decimal(remaining) / Decimal(life))
        return (
            reversed_amount, ZERO, 0, ctx.disposal_date or ctx.as_of,
            f"Capital goods disposed in year {year} of {life} - reversal of ITC for remaining {remaining} years",
        )
