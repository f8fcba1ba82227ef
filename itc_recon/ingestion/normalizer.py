"""
Return Entry Normalizer.

Turns one GSTR-2A/2B JSON document (one taxpayer, one filing period) into
typed ReturnEntry rows. Document-level problems fail the whole import;
row-level problems fail the row, or are collected in validate-only mode.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple
from datetime import date
from decimal import Decimal
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from itc_recon.config import settings
from itc_recon.errors import StructuralError, ValidationError
from itc_recon.models.returns import (
    EntryKind, NormalizedReturn, ReturnEntry, ReturnSection, ReturnSummary,
)
from itc_recon.models.validation import RowError
from itc_recon.utils.gstin import normalize_gstin, validate_gstin
from itc_recon.utils.helpers import (
    ZERO, is_valid_return_period, parse_return_date, to_decimal,
)

# Sections whose rows are grouped under a supplier block, and the key of the nested list
SUPPLIER_SECTIONS = {
    ReturnSection.B2B: "inv",
    ReturnSection.B2BA: "inv",
    ReturnSection.CDNR: "nt",
    ReturnSection.CDNRA: "nt",
}
IMPORT_SECTIONS = (ReturnSection.IMPG, ReturnSection.IMPGSEZ)
SECTION_KEYS = {s: s.value.lower() for s in ReturnSection}

TAX_HEADS = ("igst", "cgst", "sgst", "cess")


class ReturnNormalizer:
    """Normalizes authority return documents into ReturnEntry rows."""

    def __init__(self, verify_checksum: Optional[bool] = None):
        self.verify_checksum = (
            settings.GSTIN_VERIFY_CHECKSUM if verify_checksum is None else verify_checksum
        )

    def normalize(self, document: Dict[str, Any], validate_only: bool = False) -> NormalizedReturn:
        """
        Normalize one return document.

        Raises StructuralError for a malformed document. A bad row raises
        ValidationError, unless ``validate_only`` is set, in which case every
        row error is collected on the result and the valid rows are kept.
        """
        self._check_structure(document)
        gstin = normalize_gstin(document["gstin"])
        period = document["fp"]
        logger.info(f"Normalizing return for GSTIN={gstin}, period={period}")

        entries: List[ReturnEntry] = []
        errors: List[RowError] = []

        for section, row_index, supplier, row in self._iter_rows(document):
            try:
                entries.append(self._build_entry(gstin, period, section, row_index, supplier, row))
            except ValidationError as e:
                logger.warning(f"Rejected {section.value} row {row_index}: {e}")
                if not validate_only:
                    raise
                errors.append(e.to_row_error())

        summary = summarize_entries(entries)
        logger.info(
            f"Normalized {len(entries)} entries for {gstin}/{period}"
            + (f", {len(errors)} row errors" if errors else "")
        )
        return NormalizedReturn(
            gstin=gstin,
            return_period=period,
            entries=entries,
            summary=summary,
            errors=errors,
        )

    def normalize_many(self, documents: List[Dict[str, Any]], validate_only: bool = False) -> List[NormalizedReturn]:
        return [self.normalize(doc, validate_only=validate_only) for doc in documents]

    # ──────────────────────────── Structure ────────────────────────────

    def _check_structure(self, document: Any) -> None:
        if not isinstance(document, dict):
            raise StructuralError("Return document must be a JSON object", value=type(document).__name__)

        gstin = document.get("gstin")
        if not gstin or not isinstance(gstin, str):
            raise StructuralError("Missing return GSTIN", field="gstin", value=gstin)
        gstin = normalize_gstin(gstin)
        if len(gstin) != 15 or not validate_gstin(gstin, verify_checksum=self.verify_checksum):
            raise StructuralError("Invalid return GSTIN", field="gstin", value=gstin)

        period = document.get("fp")
        if not isinstance(period, str) or not is_valid_return_period(period):
            raise StructuralError("Missing or invalid return period (MMYYYY)", field="fp", value=period)

        present = [s for s in ReturnSection if SECTION_KEYS[s] in document]
        if not present:
            raise StructuralError("Return document has no entry collections")

        for section in present:
            key = SECTION_KEYS[section]
            block = document[key]
            if not isinstance(block, list):
                raise StructuralError(f"Collection {key!r} must be a list", field=key, value=type(block).__name__)
            nested = SUPPLIER_SECTIONS.get(section)
            if nested is None:
                continue
            for pos, supplier in enumerate(block):
                if not isinstance(supplier, dict):
                    raise StructuralError(f"Supplier block {pos} in {key!r} must be an object", field=key)
                if not supplier.get("ctin"):
                    raise StructuralError(f"Supplier block {pos} in {key!r} has no ctin", field=f"{key}.ctin")
                if not isinstance(supplier.get(nested), list):
                    raise StructuralError(
                        f"Supplier block {pos} in {key!r} has no {nested!r} list",
                        field=f"{key}.{nested}", value=supplier.get(nested),
                    )

    def _iter_rows(self, document: Dict[str, Any]) -> Iterator[Tuple[ReturnSection, int, Optional[dict], Any]]:
        """Yield (section, row_index, supplier_block, row) in document order."""
        for section in ReturnSection:
            key = SECTION_KEYS[section]
            if key not in document:
                continue
            nested = SUPPLIER_SECTIONS.get(section)
            row_index = 0
            if nested is None:
                for row in document[key]:
                    yield section, row_index, None, row
                    row_index += 1
                continue
            for supplier in document[key]:
                for row in supplier[nested]:
                    yield section, row_index, supplier, row
                    row_index += 1

    # ──────────────────────────── Rows ────────────────────────────

    def _build_entry(
        self,
        gstin: str,
        period: str,
        section: ReturnSection,
        row_index: int,
        supplier: Optional[dict],
        row: Any,
    ) -> ReturnEntry:
        if not isinstance(row, dict):
            raise ValidationError("Row must be an object", row_index=row_index, section=section.value)

        ctx = _RowContext(section, row_index)

        if section in IMPORT_SECTIONS:
            fields = self._import_fields(ctx, row)
        else:
            fields = self._supplier_fields(ctx, supplier, row)

        fields.update(return_gstin=gstin, return_period=period, section=section, row_index=row_index)
        try:
            return ReturnEntry(**fields)
        except PydanticValidationError as exc:
            err = exc.errors()[0]
            field = ".".join(str(p) for p in err["loc"])
            raise ValidationError(err["msg"], row_index=row_index, field=field, value=err.get("input"), section=section.value)

    def _supplier_fields(self, ctx: "_RowContext", supplier: dict, row: dict) -> dict:
        section = ctx.section
        vendor = normalize_gstin(str(supplier["ctin"]))
        if not validate_gstin(vendor, verify_checksum=self.verify_checksum):
            raise ctx.error("Invalid supplier GSTIN", "ctin", supplier["ctin"])

        is_note = section in (ReturnSection.CDNR, ReturnSection.CDNRA)
        number_key, date_key = ("ntnum", "ntdt") if is_note else ("inum", "idt")

        fields = {
            "vendor_gstin": vendor,
            "vendor_name": supplier.get("trdnm"),
            "invoice_number": ctx.required_text(row, number_key),
            "invoice_date": ctx.date(row, date_key),
            "invoice_value": ctx.amount(row, "val", required=True),
            "taxable_value": ctx.taxable(row),
            "itc_available": str(row.get("itcavl", "Y")).upper() != "N",
            "exclusion_reason": row.get("rsn") or None,
            "source_type": row.get("srctyp"),
        }
        for head in TAX_HEADS:
            fields[head] = ctx.amount(row, head)

        if is_note:
            note_type = str(row.get("typ", "")).upper()
            if note_type not in ("C", "D"):
                raise ctx.error("Note type must be 'C' or 'D'", "typ", row.get("typ"))
            if section == ReturnSection.CDNR:
                fields["kind"] = EntryKind.CREDIT_NOTE if note_type == "C" else EntryKind.DEBIT_NOTE
            else:
                fields["kind"] = EntryKind.AMENDED_CREDIT_NOTE if note_type == "C" else EntryKind.AMENDED_DEBIT_NOTE
                fields["original_invoice_number"] = row.get("ontnum") or None
                fields["original_invoice_date"] = ctx.date(row, "ontdt") if row.get("ontdt") else None
        elif section == ReturnSection.B2BA:
            fields["kind"] = EntryKind.AMENDED_INVOICE
            fields["original_invoice_number"] = row.get("oinum") or None
            fields["original_invoice_date"] = ctx.date(row, "oidt") if row.get("oidt") else None
        else:
            fields["kind"] = EntryKind.INVOICE
        return fields

    def _import_fields(self, ctx: "_RowContext", row: dict) -> dict:
        taxable = ctx.taxable(row)
        igst = ctx.amount(row, "igst")
        cess = ctx.amount(row, "cess")
        vendor = ""
        if row.get("ctin"):
            vendor = normalize_gstin(str(row["ctin"]))
            if not validate_gstin(vendor, verify_checksum=self.verify_checksum):
                raise ctx.error("Invalid SEZ supplier GSTIN", "ctin", row["ctin"])
        return {
            "kind": EntryKind.IMPORT_GOODS if ctx.section == ReturnSection.IMPG else EntryKind.IMPORT_SEZ,
            "vendor_gstin": vendor,
            "vendor_name": row.get("trdnm"),
            "invoice_number": ctx.required_text(row, "benum"),
            "invoice_date": ctx.date(row, "bedt"),
            "invoice_value": taxable + igst + cess,
            "taxable_value": taxable,
            "igst": igst,
            "cess": cess,
            "port_code": row.get("portcd"),
        }


class _RowContext:
    """Field readers that raise ValidationError tagged with the row's position."""

    def __init__(self, section: ReturnSection, row_index: int):
        self.section = section
        self.row_index = row_index

    def error(self, message: str, field: str, value: Any = None) -> ValidationError:
        return ValidationError(message, row_index=self.row_index, field=field, value=value, section=self.section.value)

    def required_text(self, row: dict, key: str) -> str:
        value = row.get(key)
        if value is None or not str(value).strip():
            raise self.error(f"Missing required field {key!r}", key, value)
        return str(value).strip()

    def date(self, row: dict, key: str) -> date:
        value = row.get(key)
        try:
            return parse_return_date(value)
        except ValueError as e:
            raise self.error(str(e), key, value)

    def amount(self, row: dict, key: str, required: bool = False) -> Decimal:
        value = row.get(key)
        if value is None or value == "":
            if required:
                raise self.error(f"Missing required amount {key!r}", key, value)
            return ZERO
        try:
            return to_decimal(value)
        except ValueError as e:
            raise self.error(str(e), key, value)

    def taxable(self, row: dict) -> Decimal:
        value = self.amount(row, "txval", required=True)
        if value < ZERO:
            raise self.error("Taxable value cannot be negative", "txval", row.get("txval"))
        return value


def summarize_entries(entries: List[ReturnEntry]) -> ReturnSummary:
    """Counts per kind and tax totals. ITC counts only entries not flagged unavailable."""
    by_kind: Dict[str, int] = {}
    summary = ReturnSummary(total_entries=len(entries))
    for e in entries:
        by_kind[e.kind.value] = by_kind.get(e.kind.value, 0) + 1
        summary.total_taxable_value += e.taxable_value
        summary.total_igst += e.igst
        summary.total_cgst += e.cgst
        summary.total_sgst += e.sgst
        summary.total_cess += e.cess
        if e.itc_available:
            summary.total_itc_available += e.itc_amount
    summary.entries_by_kind = by_kind
    return summary
