"""
ITC Eligibility Rule Evaluator.

Decides, per purchase line item, how much input tax credit may be claimed:
Section 17(5) blocked categories, import and reverse-charge payment checks,
the Section 16(2) conditions, the Section 16(4) time limit and finally the
business-use / exempt-supply apportionment.
"""

from typing import Callable, Dict, List, Optional, Tuple
from datetime import date
from decimal import Decimal
from loguru import logger
from pydantic import BaseModel, Field

from itc_recon.config import settings
from itc_recon.models.itc import (
    BlockingCategory, ITCConditions, ITCEligibility, ITCEligibilityResult, ReductionFactor,
)
from itc_recon.models.purchase import (
    BusinessPurpose, ConstructionType, DocumentType, ExpenseCategory, ImportType,
    PurchaseLineItem, PurchaseRecord, VehicleKind,
)
from itc_recon.utils.helpers import HUNDRED, ZERO, financial_year_end, financial_year_from_date, money

MIN_EXEMPT_SEATING = 13
TRANSPORT_PURPOSES = {
    BusinessPurpose.PASSENGER_TRANSPORT,
    BusinessPurpose.GOODS_TRANSPORT,
    BusinessPurpose.IMPARTING_TRAINING,
}

BlockOutcome = Optional[Tuple[BlockingCategory, str]]


# ──────────────────────────── Section 17(5) rule table ────────────────────────────

def _never_blocked(line: PurchaseLineItem) -> BlockOutcome:
    return None


def _motor_vehicle(line: PurchaseLineItem) -> BlockOutcome:
    if line.seating_capacity is not None and line.seating_capacity > MIN_EXEMPT_SEATING:
        return None
    if line.business_purpose in TRANSPORT_PURPOSES:
        return None
    if line.vehicle_kind == VehicleKind.GOODS_CARRIAGE:
        return None
    seats = line.seating_capacity if line.seating_capacity is not None else "unknown"
    return (
        BlockingCategory.MOTOR_VEHICLE,
        f"Section 17(5)(a) - motor vehicle with seating capacity {seats} not used for transport business",
    )


def _food_beverage(line: PurchaseLineItem) -> BlockOutcome:
    if line.is_statutory_requirement:
        return None
    return (
        BlockingCategory.FOOD_BEVERAGE,
        "Section 17(5)(b)(i) - food and beverages, outdoor catering (except when statutory requirement)",
    )


def _membership(line: PurchaseLineItem) -> BlockOutcome:
    return (
        BlockingCategory.MEMBERSHIP,
        "Section 17(5)(b)(ii) - membership of clubs, health and fitness centres",
    )


def _life_health_insurance(line: PurchaseLineItem) -> BlockOutcome:
    if line.is_statutory_requirement:
        return None
    kind = "health" if line.category == ExpenseCategory.HEALTH_INSURANCE else "life"
    return (
        BlockingCategory.INSURANCE,
        f"Section 17(5)(b)(iii) - {kind} insurance (except when statutory requirement)",
    )


def _works_contract(line: PurchaseLineItem) -> BlockOutcome:
    if line.business_purpose == BusinessPurpose.SALE_DEVELOPMENT:
        return None
    if line.construction_type == ConstructionType.PLANT_MACHINERY:
        return None
    return (
        BlockingCategory.WORKS_CONTRACT,
        "Section 17(5)(c)/(d) - works contract for construction of immovable property (except developers)",
    )


def _personal_consumption(line: PurchaseLineItem) -> BlockOutcome:
    return (
        BlockingCategory.PERSONAL_USE,
        "Section 17(5)(g) - goods or services for personal consumption",
    )


RULES: Dict[ExpenseCategory, Callable[[PurchaseLineItem], BlockOutcome]] = {
    ExpenseCategory.GENERAL: _never_blocked,
    ExpenseCategory.MOTOR_VEHICLE: _motor_vehicle,
    ExpenseCategory.FOOD_BEVERAGE: _food_beverage,
    ExpenseCategory.OUTDOOR_CATERING: _food_beverage,
    ExpenseCategory.CLUB_MEMBERSHIP: _membership,
    ExpenseCategory.FITNESS_MEMBERSHIP: _membership,
    ExpenseCategory.LIFE_INSURANCE: _life_health_insurance,
    ExpenseCategory.HEALTH_INSURANCE: _life_health_insurance,
    ExpenseCategory.GENERAL_INSURANCE: _never_blocked,
    ExpenseCategory.WORKS_CONTRACT: _works_contract,
    ExpenseCategory.PERSONAL_CONSUMPTION: _personal_consumption,
}

_unruled = set(ExpenseCategory) - set(RULES)
if _unruled:
    raise RuntimeError(f"No eligibility rule for categories: {sorted(c.value for c in _unruled)}")


# ──────────────────────────── Input ────────────────────────────

class EligibilityInput(BaseModel):
    """A line item together with the invoice-level facts the rules need."""
    record_id: str
    vendor_gstin: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_date: date
    document_type: DocumentType = DocumentType.INVOICE
    line: PurchaseLineItem

    goods_received: bool = True
    supplier_tax_paid: bool = True
    return_filed: bool = True
    receipt_date: Optional[date] = None
    annual_return_date: Optional[date] = None

    reverse_charge: bool = False
    reverse_charge_tax_paid: bool = False
    self_invoice_date: Optional[date] = None

    import_type: Optional[ImportType] = None
    bill_of_entry_number: Optional[str] = None
    customs_igst_paid: bool = False

    notes: List[str] = Field(default_factory=list)

    @classmethod
    def from_purchase(cls, record: PurchaseRecord, line: PurchaseLineItem) -> "EligibilityInput":
        return cls(
            record_id=record.record_id,
            vendor_gstin=record.vendor_gstin,
            invoice_number=record.invoice_number,
            invoice_date=record.invoice_date,
            document_type=record.document_type,
            line=line,
            goods_received=record.goods_received,
            supplier_tax_paid=record.supplier_tax_paid,
            return_filed=record.return_filed,
            receipt_date=record.receipt_date,
            annual_return_date=record.annual_return_date,
            reverse_charge=record.reverse_charge,
            reverse_charge_tax_paid=record.reverse_charge_tax_paid,
            self_invoice_date=record.self_invoice_date,
            import_type=record.import_type,
            bill_of_entry_number=record.bill_of_entry_number,
            customs_igst_paid=record.customs_igst_paid,
        )

    @property
    def has_valid_document(self) -> bool:
        if self.import_type == ImportType.GOODS:
            return bool(self.bill_of_entry_number)
        return bool(self.invoice_number and self.invoice_number.strip())

    @property
    def tax_paid(self) -> bool:
        """Who must have paid the tax depends on how it is charged."""
        if self.import_type == ImportType.GOODS:
            return self.customs_igst_paid
        if self.import_type == ImportType.SERVICES or self.reverse_charge:
            return self.reverse_charge_tax_paid
        return self.supplier_tax_paid


# ──────────────────────────── Evaluator ────────────────────────────

class EligibilityEvaluator:
    """Evaluates ITC eligibility line by line. Pure; the claim date is injected."""

    def __init__(self, self_invoice_window_days: Optional[int] = None):
        self.self_invoice_window_days = (
            settings.SELF_INVOICE_WINDOW_DAYS if self_invoice_window_days is None else self_invoice_window_days
        )

    @staticmethod
    def claim_deadline(invoice_date: date, annual_return_date: Optional[date] = None) -> date:
        """
        Section 16(4): 30 September following the end of the invoice's
        financial year, or the annual return filing date if that is earlier.
        """
        deadline = date(financial_year_end(invoice_date).year, 9, 30)
        if annual_return_date is not None and annual_return_date < deadline:
            return annual_return_date
        return deadline

    def evaluate(self, item: EligibilityInput, claim_date: date) -> ITCEligibilityResult:
        line = item.line
        total = money(line.total_gst)
        notes = list(item.notes)

        conditions = ITCConditions(
            valid_invoice=item.has_valid_document,
            goods_received=item.goods_received,
            tax_paid=item.tax_paid,
            return_filed=item.return_filed,
        )
        deadline = self.claim_deadline(item.invoice_date, item.annual_return_date)
        window_lapsed = claim_date > deadline

        def blocked(category: Optional[BlockingCategory], reason: str) -> ITCEligibilityResult:
            logger.debug(f"Line {item.record_id}/{line.line_id} blocked: {reason}")
            return ITCEligibilityResult(
                record_id=item.record_id,
                line_id=line.line_id,
                vendor_gstin=item.vendor_gstin,
                invoice_number=item.invoice_number,
                total_gst=total,
                eligible_amount=ZERO,
                blocked_amount=total,
                status=ITCEligibility.BLOCKED,
                blocking_category=category,
                blocked_reason=reason,
                conditions=conditions,
                window_lapsed=window_lapsed,
                claim_deadline=deadline,
                notes=notes,
            )

        # 1. Section 17(5)
        outcome = RULES[line.category](line)
        if outcome is not None:
            return blocked(*outcome)

        # 2. Imports and reverse charge
        if item.import_type == ImportType.GOODS:
            if not (item.customs_igst_paid and item.bill_of_entry_number):
                return blocked(
                    BlockingCategory.IMPORT_DUTY_UNPAID,
                    "Section 16(2) - IGST on imported goods not paid at customs or bill of entry missing",
                )
        elif item.import_type == ImportType.SERVICES or item.reverse_charge:
            self._self_invoice_note(item, notes)
            if not item.reverse_charge_tax_paid:
                return blocked(
                    BlockingCategory.REVERSE_CHARGE_UNPAID,
                    "Section 9(3)/9(4) - tax payable under reverse charge not yet paid",
                )

        # 3. Section 16(2) conditions
        if not conditions.all_met:
            return blocked(
                BlockingCategory.CONDITIONS_NOT_MET,
                "Section 16(2) - " + "; ".join(conditions.failed),
            )

        # 4. Section 16(4) time limit
        if window_lapsed:
            return blocked(
                BlockingCategory.TIME_BARRED,
                f"Section 16(4) - credit for FY {financial_year_from_date(item.invoice_date)} had to be claimed "
                f"by {deadline.isoformat()}; claim date {claim_date.isoformat()}",
            )

        # 5. Apportionment
        eligible, factors = self._apportion(line, total)
        if line.is_capital_goods:
            life = line.asset_life_years or settings.CAPITAL_GOODS_LIFE_YEARS
            notes.append(
                f"Capital goods - credit taken in the year of purchase; reversible over {life} years "
                f"on disposal or change of use (Rule 43/44)"
            )

        if eligible == total:
            status = ITCEligibility.ELIGIBLE
        elif eligible == ZERO:
            status = ITCEligibility.BLOCKED
        else:
            status = ITCEligibility.PARTIAL

        reason = None
        if factors:
            reason = "Rule 42/43 - credit apportioned for " + " and ".join(
                "non-business use" if f == ReductionFactor.BUSINESS_USE else "exempt supplies" for f in factors
            )

        return ITCEligibilityResult(
            record_id=item.record_id,
            line_id=line.line_id,
            vendor_gstin=item.vendor_gstin,
            invoice_number=item.invoice_number,
            total_gst=total,
            eligible_amount=eligible,
            blocked_amount=total - eligible,
            partial_amount=eligible if status == ITCEligibility.PARTIAL else None,
            status=status,
            blocked_reason=reason,
            reduction_factors=factors,
            conditions=conditions,
            window_lapsed=False,
            claim_deadline=deadline,
            notes=notes,
        )

    def evaluate_many(self, items: List[EligibilityInput], claim_date: date) -> List[ITCEligibilityResult]:
        results = [self.evaluate(item, claim_date) for item in items]
        blocked = sum(1 for r in results if r.status == ITCEligibility.BLOCKED)
        logger.info(f"Evaluated ITC eligibility for {len(results)} line items: {blocked} blocked")
        return results

    def evaluate_record(self, record: PurchaseRecord, claim_date: date) -> List[ITCEligibilityResult]:
        """Evaluate every line of a purchase record."""
        return [
            self.evaluate(EligibilityInput.from_purchase(record, line), claim_date)
            for line in record.effective_line_items()
        ]

    def _self_invoice_note(self, item: EligibilityInput, notes: List[str]) -> None:
        if item.self_invoice_date is None or item.receipt_date is None:
            return
        delay = (item.self_invoice_date - item.receipt_date).days
        if delay > self.self_invoice_window_days:
            notes.append(
                f"Self-invoice raised {delay} days after receipt; "
                f"Rule 47 requires it within {self.self_invoice_window_days} days"
            )

    @staticmethod
    def _apportion(line: PurchaseLineItem, total: Decimal) -> Tuple[Decimal, List[ReductionFactor]]:
        factors = []
        share = line.business_use_percentage / HUNDRED
        if line.business_use_percentage < HUNDRED:
            factors.append(ReductionFactor.BUSINESS_USE)
        # Exempt-supply share is not applied to capital goods in the year of purchase
        if not line.is_capital_goods and line.exempt_supply_percentage > ZERO:
            share = share * (1 - line.exempt_supply_percentage / HUNDRED)
            factors.append(ReductionFactor.EXEMPT_SUPPLY)
        return money(total * share), factors
