"""Pydantic models for the business's own purchase records (read-only to the engine)."""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional
from datetime import date
from decimal import Decimal
from enum import Enum
import re

from itc_recon.models.itc import ReversalEvent
from itc_recon.utils.gstin import validate_gstin


# ──────────────────────────── Enums ────────────────────────────

class DocumentType(str, Enum):
    INVOICE = "INVOICE"
    CREDIT_NOTE = "CREDIT_NOTE"
    DEBIT_NOTE = "DEBIT_NOTE"


class ExpenseCategory(str, Enum):
    """Statutory rule category of a purchase line. Every member has a rule."""
    GENERAL = "GENERAL"
    MOTOR_VEHICLE = "MOTOR_VEHICLE"
    FOOD_BEVERAGE = "FOOD_BEVERAGE"
    OUTDOOR_CATERING = "OUTDOOR_CATERING"
    CLUB_MEMBERSHIP = "CLUB_MEMBERSHIP"
    FITNESS_MEMBERSHIP = "FITNESS_MEMBERSHIP"
    LIFE_INSURANCE = "LIFE_INSURANCE"
    HEALTH_INSURANCE = "HEALTH_INSURANCE"
    GENERAL_INSURANCE = "GENERAL_INSURANCE"
    WORKS_CONTRACT = "WORKS_CONTRACT"
    PERSONAL_CONSUMPTION = "PERSONAL_CONSUMPTION"


class BusinessPurpose(str, Enum):
    GENERAL = "GENERAL"
    OFFICE_USE = "OFFICE_USE"
    PASSENGER_TRANSPORT = "PASSENGER_TRANSPORT"
    GOODS_TRANSPORT = "GOODS_TRANSPORT"
    IMPARTING_TRAINING = "IMPARTING_TRAINING"
    SALE_DEVELOPMENT = "SALE_DEVELOPMENT"


class VehicleKind(str, Enum):
    PASSENGER = "PASSENGER"
    GOODS_CARRIAGE = "GOODS_CARRIAGE"


class ConstructionType(str, Enum):
    IMMOVABLE_PROPERTY = "IMMOVABLE_PROPERTY"
    PLANT_MACHINERY = "PLANT_MACHINERY"


class ImportType(str, Enum):
    GOODS = "GOODS"
    SERVICES = "SERVICES"


VALID_GST_RATES = {Decimal(r) for r in ("0", "0.25", "3", "5", "12", "18", "28")}


# ──────────────────────────── Records ────────────────────────────

class PurchaseLineItem(BaseModel):
    """A line of a purchase record with the attributes the eligibility rules read."""
    line_id: str = Field(..., min_length=1, max_length=50)
    description: str = Field(default="", max_length=500)
    hsn_code: Optional[str] = Field(None, description="HSN (goods) or SAC (services) code")
    gst_rate: Optional[Decimal] = None
    taxable_value: Decimal = Field(..., ge=0)
    igst: Decimal = Field(default=Decimal("0"), ge=0)
    cgst: Decimal = Field(default=Decimal("0"), ge=0)
    sgst: Decimal = Field(default=Decimal("0"), ge=0)
    cess: Decimal = Field(default=Decimal("0"), ge=0)

    category: ExpenseCategory = ExpenseCategory.GENERAL
    business_purpose: BusinessPurpose = BusinessPurpose.GENERAL
    seating_capacity: Optional[int] = Field(None, ge=0)
    vehicle_kind: Optional[VehicleKind] = None
    construction_type: ConstructionType = ConstructionType.IMMOVABLE_PROPERTY
    is_statutory_requirement: bool = False

    business_use_percentage: Decimal = Field(default=Decimal("100"), ge=0, le=100)
    exempt_supply_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    is_capital_goods: bool = False
    asset_life_years: Optional[int] = Field(None, gt=0)

    @field_validator("hsn_code")
    @classmethod
    def validate_hsn(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not re.match(r"^\d{4,8}$", v):
            raise ValueError(f"Invalid HSN/SAC code: {v}. Expected 4-8 digits.")
        return v

    @field_validator("gst_rate")
    @classmethod
    def validate_gst_rate(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v not in VALID_GST_RATES:
            raise ValueError(f"Invalid GST rate {v}%. Must be one of {sorted(VALID_GST_RATES)}")
        return v

    @property
    def total_gst(self) -> Decimal:
        return self.igst + self.cgst + self.sgst + self.cess


class PurchaseRecord(BaseModel):
    """The business's own record of a purchase document."""
    record_id: str = Field(..., min_length=1, max_length=64)
    vendor_gstin: Optional[str] = Field(None, description="None for imports of goods")
    vendor_name: Optional[str] = None
    document_type: DocumentType = DocumentType.INVOICE
    invoice_number: str = Field(..., min_length=1, max_length=50)
    invoice_date: date
    invoice_value: Optional[Decimal] = Field(None, ge=0)
    taxable_value: Decimal = Field(..., ge=0)
    igst: Decimal = Field(default=Decimal("0"), ge=0)
    cgst: Decimal = Field(default=Decimal("0"), ge=0)
    sgst: Decimal = Field(default=Decimal("0"), ge=0)
    cess: Decimal = Field(default=Decimal("0"), ge=0)

    # Section 16(2) facts
    goods_received: bool = True
    supplier_tax_paid: bool = True
    return_filed: bool = True
    receipt_date: Optional[date] = None
    payment_date: Optional[date] = None
    annual_return_date: Optional[date] = None

    # Reverse charge
    reverse_charge: bool = False
    reverse_charge_tax_paid: bool = False
    self_invoice_date: Optional[date] = None

    # Imports
    import_type: Optional[ImportType] = None
    bill_of_entry_number: Optional[str] = None
    customs_igst_paid: bool = False

    line_items: List[PurchaseLineItem] = Field(default_factory=list)
    reversal_events: List[ReversalEvent] = Field(default_factory=list)

    @field_validator("vendor_gstin")
    @classmethod
    def validate_vendor_gstin(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        v = v.strip().upper()
        if not validate_gstin(v):
            raise ValueError(f"Invalid GSTIN format: {v}")
        return v

    @model_validator(mode="after")
    def check_vendor_identity(self):
        if self.vendor_gstin is None and self.import_type is None:
            raise ValueError("vendor_gstin is required unless the purchase is an import")
        return self

    @property
    def total_tax(self) -> Decimal:
        return self.igst + self.cgst + self.sgst + self.cess

    @property
    def total_value(self) -> Decimal:
        if self.invoice_value is not None:
            return self.invoice_value
        return self.taxable_value + self.total_tax

    @property
    def is_import(self) -> bool:
        return self.import_type is not None

    def effective_line_items(self) -> List[PurchaseLineItem]:
        """Line items, or one synthetic GENERAL line covering the whole record."""
        if self.line_items:
            return list(self.line_items)
        return [PurchaseLineItem(
            line_id=f"{self.record_id}-1",
            description="Whole document",
            taxable_value=self.taxable_value,
            igst=self.igst, cgst=self.cgst, sgst=self.sgst, cess=self.cess,
        )]
