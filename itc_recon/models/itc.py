"""Pydantic models for ITC eligibility results and reversal events."""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date
from decimal import Decimal
from enum import Enum


class ITCEligibility(str, Enum):
    ELIGIBLE = "ELIGIBLE"
    PARTIAL = "PARTIAL"
    BLOCKED = "BLOCKED"


class BlockingCategory(str, Enum):
    """Why credit was withheld, for reporting."""
    MOTOR_VEHICLE = "MOTOR_VEHICLE"
    FOOD_BEVERAGE = "FOOD_BEVERAGE"
    MEMBERSHIP = "MEMBERSHIP"
    INSURANCE = "INSURANCE"
    WORKS_CONTRACT = "WORKS_CONTRACT"
    PERSONAL_USE = "PERSONAL_USE"
    IMPORT_DUTY_UNPAID = "IMPORT_DUTY_UNPAID"
    REVERSE_CHARGE_UNPAID = "REVERSE_CHARGE_UNPAID"
    CONDITIONS_NOT_MET = "CONDITIONS_NOT_MET"
    TIME_BARRED = "TIME_BARRED"


class ReductionFactor(str, Enum):
    BUSINESS_USE = "BUSINESS_USE"
    EXEMPT_SUPPLY = "EXEMPT_SUPPLY"


class ITCConditions(BaseModel):
    """The four Section 16(2) conditions."""
    valid_invoice: bool = False
    goods_received: bool = False
    tax_paid: bool = False
    return_filed: bool = False

    @property
    def all_met(self) -> bool:
        return self.valid_invoice and self.goods_received and self.tax_paid and self.return_filed

    @property
    def failed(self) -> List[str]:
        labels = {
            "valid_invoice": "Valid tax invoice required",
            "goods_received": "Goods/services must be received",
            "tax_paid": "Tax must be paid by supplier",
            "return_filed": "Own periodic return must be filed",
        }
        return [label for name, label in labels.items() if not getattr(self, name)]


class ITCEligibilityResult(BaseModel):
    """Eligibility outcome for one purchase line item."""
    record_id: str
    line_id: str
    vendor_gstin: Optional[str] = None
    invoice_number: Optional[str] = None

    total_gst: Decimal = Field(..., ge=0)
    eligible_amount: Decimal = Field(..., ge=0)
    blocked_amount: Decimal = Field(..., ge=0)
    partial_amount: Optional[Decimal] = None

    status: ITCEligibility
    blocking_category: Optional[BlockingCategory] = None
    blocked_reason: Optional[str] = None
    reduction_factors: List[ReductionFactor] = Field(default_factory=list)

    conditions: ITCConditions = Field(default_factory=ITCConditions)
    window_lapsed: bool = False
    claim_deadline: Optional[date] = None
    notes: List[str] = Field(default_factory=list)

    @property
    def is_eligible(self) -> bool:
        return self.eligible_amount > 0


class ReversalReason(str, Enum):
    NON_PAYMENT_180_DAYS = "NON_PAYMENT_180_DAYS"
    GOODS_LOST = "GOODS_LOST"
    USAGE_CHANGE_PERSONAL = "USAGE_CHANGE_PERSONAL"
    CREDIT_NOTE = "CREDIT_NOTE"
    EXEMPT_SUPPLY_INCREASE = "EXEMPT_SUPPLY_INCREASE"
    CAPITAL_GOODS_DISPOSAL = "CAPITAL_GOODS_DISPOSAL"


class ReversalContext(BaseModel):
    """Facts a reversal reason needs. Only the fields for the chosen reason are read."""
    as_of: Optional[date] = None

    # NON_PAYMENT_180_DAYS
    invoice_date: Optional[date] = None
    payment_date: Optional[date] = None

    # GOODS_LOST
    loss_percentage: Optional[Decimal] = Field(None, ge=0, le=100)

    # USAGE_CHANGE_PERSONAL
    personal_use_percentage: Optional[Decimal] = Field(None, ge=0, le=100)

    # CREDIT_NOTE
    credit_note_tax: Optional[Decimal] = Field(None, ge=0)
    credit_note_value: Optional[Decimal] = Field(None, ge=0)
    gst_rate: Optional[Decimal] = Field(None, ge=0)

    # EXEMPT_SUPPLY_INCREASE
    exempt_share_increase: Optional[Decimal] = Field(None, ge=0, le=100)
    previous_exempt_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    new_exempt_percentage: Optional[Decimal] = Field(None, ge=0, le=100)

    # CAPITAL_GOODS_DISPOSAL
    asset_life_years: Optional[int] = Field(None, gt=0)
    disposal_year: Optional[int] = Field(None, gt=0)
    capitalisation_date: Optional[date] = None
    disposal_date: Optional[date] = None


class ReversalEvent(BaseModel):
    """A trigger recorded by the surrounding application against a purchase record."""
    reason: ReversalReason
    context: ReversalContext = Field(default_factory=ReversalContext)


class ITCReversal(BaseModel):
    """Additive ledger entry against a period's ITC register."""
    reversal_id: str
    reason: ReversalReason
    statutory_reference: str
    description: str
    original_claim: Decimal
    reversed_amount: Decimal = Field(..., ge=0)
    interest_amount: Decimal = Field(default=Decimal("0"), ge=0)
    interest_days: int = 0
    event_date: Optional[date] = None
    record_id: Optional[str] = None
    vendor_gstin: Optional[str] = None
    invoice_number: Optional[str] = None

    @property
    def total_amount(self) -> Decimal:
        return self.reversed_amount + self.interest_amount
