"""Pydantic models for normalized GSTR-2A/2B return entries."""

from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional
from datetime import date
from decimal import Decimal
from enum import Enum

from itc_recon.models.validation import RowError
from itc_recon.utils.gstin import normalize_gstin, normalize_invoice_number
from itc_recon.utils.helpers import generate_uid


class ReturnSection(str, Enum):
    B2B = "B2B"
    B2BA = "B2BA"
    CDNR = "CDNR"
    CDNRA = "CDNRA"
    IMPG = "IMPG"
    IMPGSEZ = "IMPGSEZ"


class EntryKind(str, Enum):
    INVOICE = "INVOICE"
    AMENDED_INVOICE = "AMENDED_INVOICE"
    CREDIT_NOTE = "CREDIT_NOTE"
    DEBIT_NOTE = "DEBIT_NOTE"
    AMENDED_CREDIT_NOTE = "AMENDED_CREDIT_NOTE"
    AMENDED_DEBIT_NOTE = "AMENDED_DEBIT_NOTE"
    IMPORT_GOODS = "IMPORT_GOODS"
    IMPORT_SEZ = "IMPORT_SEZ"


AMENDMENT_KINDS = {EntryKind.AMENDED_INVOICE, EntryKind.AMENDED_CREDIT_NOTE, EntryKind.AMENDED_DEBIT_NOTE}
CREDIT_KINDS = {EntryKind.CREDIT_NOTE, EntryKind.AMENDED_CREDIT_NOTE}
IMPORT_KINDS = {EntryKind.IMPORT_GOODS, EntryKind.IMPORT_SEZ}
NOTE_KINDS = {
    EntryKind.CREDIT_NOTE, EntryKind.DEBIT_NOTE,
    EntryKind.AMENDED_CREDIT_NOTE, EntryKind.AMENDED_DEBIT_NOTE,
}


class ReturnEntry(BaseModel):
    """One line of an authority return. Immutable once imported."""
    model_config = ConfigDict(frozen=True)

    return_gstin: str = Field(..., min_length=15, max_length=15)
    return_period: str = Field(..., min_length=6, max_length=6, description="MMYYYY")
    section: ReturnSection
    kind: EntryKind
    row_index: int = Field(..., ge=0, description="Position within its section")

    vendor_gstin: str = Field(default="", description="Empty for imports")
    vendor_name: Optional[str] = None
    invoice_number: str = Field(..., min_length=1)
    invoice_date: date
    invoice_value: Decimal
    taxable_value: Decimal = Field(..., ge=0)
    igst: Decimal = Decimal("0")
    cgst: Decimal = Decimal("0")
    sgst: Decimal = Decimal("0")
    cess: Decimal = Decimal("0")

    itc_available: bool = True
    exclusion_reason: Optional[str] = None
    source_type: Optional[str] = None

    # Amendments point at the document they supersede
    original_invoice_number: Optional[str] = None
    original_invoice_date: Optional[date] = None

    # Imports
    port_code: Optional[str] = None

    @property
    def total_tax(self) -> Decimal:
        return self.igst + self.cgst + self.sgst + self.cess

    @property
    def itc_amount(self) -> Decimal:
        """Creditable tax on the entry; credit notes reduce ITC."""
        if self.kind in CREDIT_KINDS:
            return -self.total_tax
        return self.total_tax

    @property
    def is_amendment(self) -> bool:
        return self.kind in AMENDMENT_KINDS

    @property
    def is_import(self) -> bool:
        return self.kind in IMPORT_KINDS

    @property
    def entry_key(self) -> str:
        return generate_uid(
            self.return_gstin, self.return_period, self.section.value, self.row_index,
            normalize_gstin(self.vendor_gstin), self.invoice_number,
        )

    @property
    def document_family(self) -> str:
        """NOTE for credit/debit notes, IMPORT for imports, INVOICE otherwise."""
        if self.kind in NOTE_KINDS:
            return "NOTE"
        if self.kind in IMPORT_KINDS:
            return "IMPORT"
        return "INVOICE"

    @property
    def document_key(self) -> tuple:
        return (normalize_gstin(self.vendor_gstin), self.document_family, normalize_invoice_number(self.invoice_number))

    @property
    def supersedes_key(self) -> Optional[tuple]:
        """
        (vendor, family, normalized number, original date) of the document
        this amendment replaces. The date is None when the amendment does
        not carry one.
        """
        if not self.is_amendment or not self.original_invoice_number:
            return None
        return (
            normalize_gstin(self.vendor_gstin),
            self.document_family,
            normalize_invoice_number(self.original_invoice_number),
            self.original_invoice_date,
        )


class ReturnSummary(BaseModel):
    """Totals over the entries of one normalized return."""
    total_entries: int = 0
    entries_by_kind: Dict[str, int] = Field(default_factory=dict)
    total_taxable_value: Decimal = Decimal("0")
    total_igst: Decimal = Decimal("0")
    total_cgst: Decimal = Decimal("0")
    total_sgst: Decimal = Decimal("0")
    total_cess: Decimal = Decimal("0")
    total_itc_available: Decimal = Decimal("0")


class NormalizedReturn(BaseModel):
    """Output of the return normalizer for one return document."""
    gstin: str
    return_period: str
    entries: List[ReturnEntry] = Field(default_factory=list)
    summary: ReturnSummary = Field(default_factory=ReturnSummary)
    errors: List[RowError] = Field(default_factory=list, description="Populated in validate-only mode")

    @property
    def is_valid(self) -> bool:
        return not self.errors


def effective_entries(entries: List[ReturnEntry]) -> List[ReturnEntry]:
    """
    Drop original entries that an amendment in the same set supersedes.

    An amendment only supersedes a document of the same family (invoice or
    note), and only one of the original date when it names one. Originals
    are left untouched; they are simply not considered further.
    """
    dated = set()
    undated = set()
    for e in entries:
        key = e.supersedes_key
        if key is None:
            continue
        if key[3] is None:
            undated.add(key[:3])
        else:
            dated.add(key)
    if not dated and not undated:
        return list(entries)

    def superseded(e: ReturnEntry) -> bool:
        key = e.document_key
        return key in undated or key + (e.invoice_date,) in dated

    return [e for e in entries if e.is_amendment or not superseded(e)]
