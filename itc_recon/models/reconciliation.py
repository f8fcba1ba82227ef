"""Pydantic models for matching, mismatch classification and period reports."""

from pydantic import BaseModel, Field, model_validator
from typing import Any, Dict, List, Optional
from datetime import date
from decimal import Decimal
from enum import Enum

from itc_recon.config import settings
from itc_recon.models.itc import ITCEligibilityResult, ITCReversal
from itc_recon.models.purchase import PurchaseRecord
from itc_recon.models.returns import ReturnEntry


class MatchType(str, Enum):
    EXACT = "EXACT"
    PARTIAL = "PARTIAL"
    FUZZY = "FUZZY"
    NO_MATCH = "NO_MATCH"


class Severity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class MismatchField(str, Enum):
    INVOICE_NUMBER = "invoice_number"
    INVOICE_DATE = "invoice_date"
    INVOICE_VALUE = "invoice_value"


class VendorStatus(str, Enum):
    RECONCILED = "RECONCILED"
    PARTIALLY_RECONCILED = "PARTIALLY_RECONCILED"
    PENDING = "PENDING"
    DISCREPANCIES = "DISCREPANCIES"


class MatchingOptions(BaseModel):
    """Tunable knobs of the matching engine. Defaults come from settings."""
    amount_tolerance_pct: Decimal = Field(default_factory=lambda: settings.MATCH_AMOUNT_TOLERANCE_PCT, ge=0)
    date_tolerance_days: int = Field(default_factory=lambda: settings.MATCH_DATE_TOLERANCE_DAYS, ge=0)
    fuzzy_threshold: float = Field(default_factory=lambda: settings.FUZZY_MATCH_THRESHOLD, ge=0, le=1)
    auto_accept_exact: bool = Field(default_factory=lambda: settings.AUTO_ACCEPT_EXACT_MATCHES)
    require_review_for_fuzzy: bool = Field(default_factory=lambda: settings.REQUIRE_REVIEW_FOR_FUZZY)
    weight_invoice_number: float = Field(default_factory=lambda: settings.WEIGHT_INVOICE_NUMBER, ge=0)
    weight_invoice_date: float = Field(default_factory=lambda: settings.WEIGHT_INVOICE_DATE, ge=0)
    weight_amount: float = Field(default_factory=lambda: settings.WEIGHT_AMOUNT, ge=0)
    amount_decay_span: Decimal = Field(default_factory=lambda: settings.AMOUNT_DECAY_SPAN, gt=0)
    date_decay_days: int = Field(default_factory=lambda: settings.DATE_DECAY_DAYS, ge=0)
    tax_rate_tolerance_pct: Decimal = Field(default_factory=lambda: settings.TAX_RATE_TOLERANCE_PCT, ge=0)

    @model_validator(mode="after")
    def check_weights(self):
        if self.weight_invoice_number + self.weight_invoice_date + self.weight_amount <= 0:
            raise ValueError("At least one match weight must be positive")
        return self


class FieldMismatch(BaseModel):
    """A field-level difference between a return entry and a purchase record."""
    field: MismatchField
    return_value: Any
    books_value: Any
    tolerance: Decimal
    severity: Severity
    description: str


class ComponentScores(BaseModel):
    invoice_number: float = Field(..., ge=0, le=1)
    invoice_date: float = Field(..., ge=0, le=1)
    amount: float = Field(..., ge=0, le=1)


class ReconciliationMatch(BaseModel):
    """Pairs one return entry with at most one purchase record."""
    match_id: str
    return_entry: ReturnEntry
    purchase_record: Optional[PurchaseRecord] = None
    match_type: MatchType = MatchType.NO_MATCH
    confidence: float = Field(default=0.0, ge=0, le=1)
    component_scores: Optional[ComponentScores] = None
    mismatches: List[FieldMismatch] = Field(default_factory=list)
    requires_review: bool = False

    @property
    def is_paired(self) -> bool:
        return self.match_type != MatchType.NO_MATCH and self.purchase_record is not None

    def mismatch_for(self, field: MismatchField) -> Optional[FieldMismatch]:
        for m in self.mismatches:
            if m.field == field:
                return m
        return None


class CandidateScore(BaseModel):
    """A ranked candidate offered for manual matching."""
    record_id: str
    invoice_number: str
    confidence: float = Field(..., ge=0, le=1)
    date_gap_days: int


# ──────────────────────────── Mismatch classification ────────────────────────────

class MissingInvoice(BaseModel):
    invoice_number: str
    invoice_date: date
    vendor_gstin: str
    vendor_name: Optional[str] = None
    source: str = Field(..., description="RETURN | BOOKS: where the document was found")
    amount: Decimal
    itc_amount: Decimal
    reference: str = Field(..., description="Entry key or purchase record id")


class AmountMismatch(BaseModel):
    invoice_number: str
    vendor_gstin: str
    return_amount: Decimal
    books_amount: Decimal
    difference: Decimal = Field(..., ge=0)
    percentage_diff: Decimal
    tax_difference: Decimal = Field(..., ge=0)
    match_id: str


class DateMismatch(BaseModel):
    invoice_number: str
    vendor_gstin: str
    return_date: date
    books_date: date
    days_difference: int = Field(..., description="Return date minus books date")
    match_id: str


class TaxRateMismatch(BaseModel):
    invoice_number: str
    vendor_gstin: str
    return_rate: Decimal
    books_rate: Decimal
    tax_difference: Decimal = Field(..., ge=0)
    match_id: str


class DuplicateGroup(BaseModel):
    invoice_number: str
    invoice_date: date
    vendor_gstin: str
    return_period: str
    occurrences: int = Field(..., ge=2)
    total_amount: Decimal
    total_itc: Decimal
    excess_itc: Decimal = Field(..., description="ITC counted more than once")
    entry_keys: List[str] = Field(default_factory=list)


class MismatchClassification(BaseModel):
    missing_in_books: List[MissingInvoice] = Field(default_factory=list)
    missing_in_return: List[MissingInvoice] = Field(default_factory=list)
    amount_mismatches: List[AmountMismatch] = Field(default_factory=list)
    date_mismatches: List[DateMismatch] = Field(default_factory=list)
    tax_rate_mismatches: List[TaxRateMismatch] = Field(default_factory=list)
    duplicates: List[DuplicateGroup] = Field(default_factory=list)

    @property
    def total_discrepancies(self) -> int:
        return (
            len(self.missing_in_books) + len(self.missing_in_return)
            + len(self.amount_mismatches) + len(self.date_mismatches)
            + len(self.tax_rate_mismatches) + len(self.duplicates)
        )


class VendorMismatchSummary(BaseModel):
    vendor_gstin: str
    vendor_name: Optional[str] = None
    total_discrepancies: int = 0
    amount_mismatches: int = 0
    date_mismatches: int = 0
    tax_rate_mismatches: int = 0
    missing_invoices: int = 0
    duplicates: int = 0
    total_impact: Decimal = Decimal("0")


class MismatchReport(BaseModel):
    """Vendor-grouped mismatch counts and monetary impact for one period."""
    period: str
    generated_on: date
    vendor_mismatches: List[VendorMismatchSummary] = Field(default_factory=list)
    classification: MismatchClassification = Field(default_factory=MismatchClassification)
    total_discrepancies: int = 0
    total_impact: Decimal = Decimal("0")


# ──────────────────────────── Period report ────────────────────────────

class VendorReconciliation(BaseModel):
    vendor_gstin: str
    vendor_name: Optional[str] = None
    total_invoices: int = 0
    matched_invoices: int = 0
    mismatched_invoices: int = 0
    missing_invoices: int = 0
    pending_review: int = 0
    total_value: Decimal = Decimal("0")
    total_itc: Decimal = Decimal("0")
    matched_value: Decimal = Decimal("0")
    mismatched_value: Decimal = Decimal("0")
    missing_value: Decimal = Decimal("0")
    status: VendorStatus = VendorStatus.PENDING
    action_items: List[str] = Field(default_factory=list)


class ReconciliationSummary(BaseModel):
    """Period totals. Always re-derivable from the run inputs."""
    run_id: str
    gstin: Optional[str] = None
    return_period: str
    as_of: date
    total_return_entries: int = 0
    total_purchase_records: int = 0
    exact_matches: int = 0
    partial_matches: int = 0
    fuzzy_matches: int = 0
    no_matches: int = 0
    missing_in_books: int = 0
    missing_in_return: int = 0
    pending_review: int = 0
    total_mismatches: int = 0
    total_itc_available: Decimal = Decimal("0")
    total_itc_claimed: Decimal = Decimal("0")
    total_itc_pending: Decimal = Decimal("0")
    excess_claimed: Decimal = Decimal("0")
    total_itc_blocked: Decimal = Decimal("0")
    total_itc_reversed: Decimal = Decimal("0")
    total_reversal_interest: Decimal = Decimal("0")
    by_match_type: Dict[str, int] = Field(default_factory=dict)


class ReconciliationReport(BaseModel):
    summary: ReconciliationSummary
    vendors: List[VendorReconciliation] = Field(default_factory=list)
    matches: List[ReconciliationMatch] = Field(default_factory=list)
    eligibility: List[ITCEligibilityResult] = Field(default_factory=list)
    reversals: List[ITCReversal] = Field(default_factory=list)
    mismatch_report: MismatchReport
