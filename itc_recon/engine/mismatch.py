"""
Mismatch Classifier.

Buckets the outcome of a matching run into the discrepancy types a tax
team acts on. It reads the field mismatches the matcher already found and
never re-scores anything.
"""

from typing import Dict, List, Optional
from datetime import date
from decimal import Decimal
from loguru import logger

from itc_recon.models.purchase import PurchaseRecord
from itc_recon.models.reconciliation import (
    AmountMismatch, DateMismatch, DuplicateGroup, MatchType, MatchingOptions,
    MismatchClassification, MismatchField, MismatchReport, MissingInvoice,
    ReconciliationMatch, TaxRateMismatch, VendorMismatchSummary,
)
from itc_recon.models.returns import ReturnEntry
from itc_recon.utils.helpers import HUNDRED, ZERO, money, percentage_difference

RATE_PLACES = Decimal("0.01")


def effective_rate(tax: Decimal, taxable: Decimal) -> Optional[Decimal]:
    if taxable <= ZERO:
        return None
    return (tax / taxable * HUNDRED).quantize(RATE_PLACES)


class MismatchClassifier:
    """Classifies matched and unmatched documents of one run."""

    def __init__(self, options: Optional[MatchingOptions] = None):
        self.options = options or MatchingOptions()

    def classify(
        self,
        matches: List[ReconciliationMatch],
        entries: Optional[List[ReturnEntry]] = None,
        records: Optional[List[PurchaseRecord]] = None,
        options: Optional[MatchingOptions] = None,
    ) -> MismatchClassification:
        opts = options or self.options
        if entries is None:
            entries = [m.return_entry for m in matches]
        records = records or []

        result = MismatchClassification()
        paired_ids = set()

        for m in matches:
            entry = m.return_entry
            if not m.is_paired:
                result.missing_in_books.append(MissingInvoice(
                    invoice_number=entry.invoice_number,
                    invoice_date=entry.invoice_date,
                    vendor_gstin=entry.vendor_gstin,
                    vendor_name=entry.vendor_name,
                    source="RETURN",
                    amount=entry.invoice_value,
                    itc_amount=entry.itc_amount,
                    reference=entry.entry_key,
                ))
                continue

            record = m.purchase_record
            paired_ids.add(record.record_id)

            amount_mm = m.mismatch_for(MismatchField.INVOICE_VALUE)
            if amount_mm is not None:
                result.amount_mismatches.append(AmountMismatch(
                    invoice_number=entry.invoice_number,
                    vendor_gstin=entry.vendor_gstin,
                    return_amount=entry.invoice_value,
                    books_amount=record.total_value,
                    difference=abs(entry.invoice_value - record.total_value),
                    percentage_diff=percentage_difference(entry.invoice_value, record.total_value).quantize(RATE_PLACES),
                    tax_difference=abs(entry.total_tax - record.total_tax),
                    match_id=m.match_id,
                ))

            if m.mismatch_for(MismatchField.INVOICE_DATE) is not None:
                result.date_mismatches.append(DateMismatch(
                    invoice_number=entry.invoice_number,
                    vendor_gstin=entry.vendor_gstin,
                    return_date=entry.invoice_date,
                    books_date=record.invoice_date,
                    days_difference=(entry.invoice_date - record.invoice_date).days,
                    match_id=m.match_id,
                ))

            return_rate = effective_rate(entry.total_tax, entry.taxable_value)
            books_rate = effective_rate(record.total_tax, record.taxable_value)
            if (
                return_rate is not None and books_rate is not None
                and abs(return_rate - books_rate) > opts.tax_rate_tolerance_pct
            ):
                result.tax_rate_mismatches.append(TaxRateMismatch(
                    invoice_number=entry.invoice_number,
                    vendor_gstin=entry.vendor_gstin,
                    return_rate=return_rate,
                    books_rate=books_rate,
                    tax_difference=abs(entry.total_tax - record.total_tax),
                    match_id=m.match_id,
                ))

        for rec in records:
            if rec.record_id in paired_ids:
                continue
            result.missing_in_return.append(MissingInvoice(
                invoice_number=rec.invoice_number,
                invoice_date=rec.invoice_date,
                vendor_gstin=rec.vendor_gstin or "",
                vendor_name=rec.vendor_name,
                source="BOOKS",
                amount=rec.total_value,
                itc_amount=rec.total_tax,
                reference=rec.record_id,
            ))

        result.duplicates = find_duplicates(entries)

        logger.info(
            f"Classified discrepancies: {len(result.missing_in_books)} missing in books, "
            f"{len(result.missing_in_return)} missing in return, {len(result.amount_mismatches)} amount, "
            f"{len(result.date_mismatches)} date, {len(result.tax_rate_mismatches)} tax rate, "
            f"{len(result.duplicates)} duplicate groups"
        )
        return result

    def build_report(
        self,
        classification: MismatchClassification,
        period: str,
        generated_on: date,
    ) -> MismatchReport:
        """Group a classification by vendor with counts and monetary impact."""
        vendors: Dict[str, VendorMismatchSummary] = {}

        def vendor(gstin: str, name: Optional[str] = None) -> VendorMismatchSummary:
            summary = vendors.get(gstin)
            if summary is None:
                summary = vendors[gstin] = VendorMismatchSummary(vendor_gstin=gstin, vendor_name=name)
            elif summary.vendor_name is None and name:
                summary.vendor_name = name
            return summary

        for item in classification.missing_in_books + classification.missing_in_return:
            v = vendor(item.vendor_gstin, item.vendor_name)
            v.missing_invoices += 1
            v.total_impact += abs(item.itc_amount)
        for item in classification.amount_mismatches:
            v = vendor(item.vendor_gstin)
            v.amount_mismatches += 1
            v.total_impact += item.tax_difference
        for item in classification.date_mismatches:
            vendor(item.vendor_gstin).date_mismatches += 1
        for item in classification.tax_rate_mismatches:
            v = vendor(item.vendor_gstin)
            v.tax_rate_mismatches += 1
            # Already counted when the amount also differs
            if not any(a.match_id == item.match_id for a in classification.amount_mismatches):
                v.total_impact += item.tax_difference
        for item in classification.duplicates:
            v = vendor(item.vendor_gstin)
            v.duplicates += 1
            v.total_impact += item.excess_itc

        for v in vendors.values():
            v.total_discrepancies = (
                v.missing_invoices + v.amount_mismatches + v.date_mismatches
                + v.tax_rate_mismatches + v.duplicates
            )
            v.total_impact = money(v.total_impact)

        ordered = sorted(vendors.values(), key=lambda v: (-v.total_impact, v.vendor_gstin))
        return MismatchReport(
            period=period,
            generated_on=generated_on,
            vendor_mismatches=ordered,
            classification=classification,
            total_discrepancies=classification.total_discrepancies,
            total_impact=money(sum((v.total_impact for v in ordered), ZERO)),
        )


def find_duplicates(entries: List[ReturnEntry]) -> List[DuplicateGroup]:
    """Same vendor, number, date and document kind more than once in one return."""
    groups: Dict[tuple, List[ReturnEntry]] = {}
    for e in entries:
        key = (
            e.return_gstin, e.return_period, e.vendor_gstin, e.kind.value,
            e.invoice_number.strip().upper(), e.invoice_date,
        )
        groups.setdefault(key, []).append(e)

    duplicates = []
    for (_, period, vendor_gstin, _, _, inv_date), group in groups.items():
        if len(group) < 2:
            continue
        total_itc = sum((e.itc_amount for e in group), ZERO)
        duplicates.append(DuplicateGroup(
            invoice_number=group[0].invoice_number,
            invoice_date=inv_date,
            vendor_gstin=vendor_gstin,
            return_period=period,
            occurrences=len(group),
            total_amount=sum((e.invoice_value for e in group), ZERO),
            total_itc=total_itc,
            excess_itc=abs(total_itc - group[0].itc_amount),
            entry_keys=[e.entry_key for e in group],
        ))
    return duplicates
