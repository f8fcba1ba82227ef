"""
Reconciliation orchestrator: normalizes the return data, matches it against
the purchase register, classifies discrepancies, evaluates eligibility and
reversals, and rolls everything up into one period report.
"""

from typing import Any, Dict, List, Optional, Union
from datetime import date
from decimal import Decimal
from loguru import logger

from itc_recon.engine.eligibility import EligibilityEvaluator
from itc_recon.engine.matching import InvoiceMatcher, vendor_key
from itc_recon.engine.mismatch import MismatchClassifier
from itc_recon.engine.reversal import ReversalCalculator, is_non_payment_due
from itc_recon.ingestion.normalizer import ReturnNormalizer
from itc_recon.ingestion.validator import validate_purchase_records
from itc_recon.models.itc import ITCEligibilityResult, ITCReversal, ReversalContext, ReversalReason
from itc_recon.models.purchase import DocumentType, PurchaseRecord
from itc_recon.models.reconciliation import (
    MatchType, MatchingOptions, MismatchClassification, ReconciliationMatch,
    ReconciliationReport, ReconciliationSummary, VendorReconciliation, VendorStatus,
)
from itc_recon.models.returns import NormalizedReturn, ReturnEntry, effective_entries
from itc_recon.utils.helpers import ZERO, format_inr, generate_uid, money


class ReconciliationEngine:
    """
    Runs one reconciliation for a period.

    The report is a projection of its inputs: running again with the same
    documents, records, options and ``as_of`` date gives the same report.
    """

    def __init__(
        self,
        options: Optional[MatchingOptions] = None,
        normalizer: Optional[ReturnNormalizer] = None,
        matcher: Optional[InvoiceMatcher] = None,
        classifier: Optional[MismatchClassifier] = None,
        evaluator: Optional[EligibilityEvaluator] = None,
        reversal_calculator: Optional[ReversalCalculator] = None,
    ):
        self.options = options or MatchingOptions()
        self.normalizer = normalizer or ReturnNormalizer()
        self.matcher = matcher or InvoiceMatcher(self.options)
        self.classifier = classifier or MismatchClassifier(self.options)
        self.evaluator = evaluator or EligibilityEvaluator()
        self.reversals = reversal_calculator or ReversalCalculator()

    def run(
        self,
        return_documents: List[Union[Dict[str, Any], NormalizedReturn]],
        purchase_records: List[Union[Dict[str, Any], PurchaseRecord]],
        period: str,
        as_of: date,
        options: Optional[MatchingOptions] = None,
        claim_date: Optional[date] = None,
    ) -> ReconciliationReport:
        """
        Reconcile the return documents of ``period`` against the purchase records.

        ``as_of`` fixes "today" for the 180-day payment rule and the report
        date; ``claim_date`` (default ``as_of``) is the date the credit is
        being claimed on for the Section 16(4) time limit.
        """
        opts = options or self.options
        claim_date = claim_date or as_of

        returns = [
            doc if isinstance(doc, NormalizedReturn) else self.normalizer.normalize(doc)
            for doc in return_documents
        ]
        all_entries = [e for r in returns for e in r.entries]
        entries = effective_entries(all_entries)
        records = validate_purchase_records(purchase_records, validate_only=False).records

        gstins = sorted({r.gstin for r in returns})
        gstin = gstins[0] if len(gstins) == 1 else None
        run_id = generate_uid(
            "run", ",".join(gstins), period, as_of.isoformat(),
            ",".join(sorted(e.entry_key for e in entries)),
            ",".join(sorted(r.record_id for r in records)),
        )
        logger.info(
            f"Starting reconciliation run {run_id} for period={period}: "
            f"{len(entries)} return entries ({len(all_entries) - len(entries)} superseded), "
            f"{len(records)} purchase records"
        )

        # ── Matching and classification ──
        matches = self.matcher.match_all(entries, records, opts)
        classification = self.classifier.classify(matches, entries, records, opts)
        mismatch_report = self.classifier.build_report(classification, period, as_of)

        # ── Eligibility ──
        eligibility: List[ITCEligibilityResult] = []
        for rec in records:
            if rec.document_type == DocumentType.CREDIT_NOTE:
                continue
            eligibility.extend(self.evaluator.evaluate_record(rec, claim_date))

        eligible_by_record: Dict[str, Decimal] = {}
        for res in eligibility:
            eligible_by_record[res.record_id] = eligible_by_record.get(res.record_id, ZERO) + res.eligible_amount

        # ── Reversals ──
        reversals = self._reversals(records, eligible_by_record, as_of)

        vendors = self._vendor_rollups(matches, records, classification)
        summary = self._summarize(
            run_id, gstin, period, as_of, entries, records, matches,
            classification, eligibility, eligible_by_record, reversals,
        )

        logger.info(
            f"Reconciliation {run_id} complete: {summary.exact_matches} exact, "
            f"{summary.partial_matches} partial, {summary.fuzzy_matches} fuzzy, "
            f"{summary.no_matches} unmatched, {format_inr(summary.total_itc_claimed)} ITC claimable, "
            f"{format_inr(summary.excess_claimed)} excess"
        )

        return ReconciliationReport(
            summary=summary,
            vendors=vendors,
            matches=matches,
            eligibility=eligibility,
            reversals=reversals,
            mismatch_report=mismatch_report,
        )

    # ──────────────────────────── Reversals ────────────────────────────

    def _reversals(
        self,
        records: List[PurchaseRecord],
        eligible_by_record: Dict[str, Decimal],
        as_of: date,
    ) -> List[ITCReversal]:
        reversals = []
        for rec in records:
            ref = dict(record_id=rec.record_id, vendor_gstin=rec.vendor_gstin, invoice_number=rec.invoice_number)
            claimed = eligible_by_record.get(rec.record_id, ZERO)
            recorded = {ev.reason for ev in rec.reversal_events}

            if rec.document_type == DocumentType.CREDIT_NOTE:
                if ReversalReason.CREDIT_NOTE not in recorded:
                    reversals.append(self.reversals.reverse(
                        rec.total_tax, ReversalReason.CREDIT_NOTE,
                        ReversalContext(as_of=as_of, credit_note_tax=rec.total_tax), **ref,
                    ))
            elif (
                ReversalReason.NON_PAYMENT_180_DAYS not in recorded
                and claimed > ZERO
                and is_non_payment_due(rec.invoice_date, rec.payment_date, as_of, self.reversals.payment_window_days)
            ):
                reversals.append(self.reversals.reverse(
                    claimed, ReversalReason.NON_PAYMENT_180_DAYS,
                    ReversalContext(as_of=as_of, invoice_date=rec.invoice_date, payment_date=rec.payment_date),
                    **ref,
                ))

            for event in rec.reversal_events:
                defaults = {"as_of": as_of, "invoice_date": rec.invoice_date, "payment_date": rec.payment_date}
                updates = {k: v for k, v in defaults.items() if getattr(event.context, k) is None}
                context = event.context.model_copy(update=updates)
                original = rec.total_tax if event.reason == ReversalReason.CREDIT_NOTE else claimed
                reversals.append(self.reversals.reverse(original, event.reason, context, **ref))

        if reversals:
            logger.info(f"Computed {len(reversals)} ITC reversals")
        return reversals

    # ──────────────────────────── Vendor rollups ────────────────────────────

    def _vendor_rollups(
        self,
        matches: List[ReconciliationMatch],
        records: List[PurchaseRecord],
        classification: MismatchClassification,
    ) -> List[VendorReconciliation]:
        vendors: Dict[str, VendorReconciliation] = {}

        def vendor(gstin: Optional[str], name: Optional[str]) -> VendorReconciliation:
            key = vendor_key(gstin)
            v = vendors.get(key)
            if v is None:
                v = vendors[key] = VendorReconciliation(vendor_gstin=key, vendor_name=name)
            elif v.vendor_name is None and name:
                v.vendor_name = name
            return v

        paired_ids = set()
        for m in matches:
            entry = m.return_entry
            v = vendor(entry.vendor_gstin, entry.vendor_name)
            label = entry.vendor_name or entry.vendor_gstin or "customs"
            v.total_invoices += 1
            v.total_value += entry.invoice_value
            if entry.itc_available:
                v.total_itc += entry.itc_amount

            if not m.is_paired:
                v.missing_invoices += 1
                v.missing_value += entry.invoice_value
                v.action_items.append(
                    f"Record invoice {entry.invoice_number} from {label} in the purchase register "
                    f"or confirm it was not received"
                )
                continue

            paired_ids.add(m.purchase_record.record_id)
            v.matched_invoices += 1
            v.matched_value += entry.invoice_value
            if m.mismatches:
                v.mismatched_invoices += 1
                v.mismatched_value += entry.invoice_value
                fields = ", ".join(mm.field.value for mm in m.mismatches)
                v.action_items.append(f"Resolve {fields} difference on invoice {entry.invoice_number} with {label}")
            if m.requires_review:
                v.pending_review += 1
                v.action_items.append(
                    f"Review {m.match_type.value.lower()} match of invoice {entry.invoice_number} "
                    f"(confidence {m.confidence:.0%})"
                )

        for rec in records:
            if rec.record_id in paired_ids:
                continue
            v = vendor(rec.vendor_gstin, rec.vendor_name)
            v.total_invoices += 1
            v.total_value += rec.total_value
            v.missing_invoices += 1
            v.missing_value += rec.total_value
            v.action_items.append(
                f"Follow up with vendor {rec.vendor_name or rec.vendor_gstin or 'customs'} "
                f"for invoice {rec.invoice_number}"
            )

        amount_issues = {vendor_key(a.vendor_gstin) for a in classification.amount_mismatches}
        rate_issues = {vendor_key(t.vendor_gstin) for t in classification.tax_rate_mismatches}
        duplicate_issues = {vendor_key(d.vendor_gstin) for d in classification.duplicates}
        for d in classification.duplicates:
            vendor(d.vendor_gstin, None).action_items.append(
                f"Ask vendor to correct duplicate reporting of invoice {d.invoice_number} "
                f"({d.occurrences} occurrences)"
            )
        for t in classification.tax_rate_mismatches:
            vendor(t.vendor_gstin, None).action_items.append(
                f"Verify tax rate on invoice {t.invoice_number}: return {t.return_rate}%, books {t.books_rate}%"
            )

        for key, v in vendors.items():
            has_discrepancy = (
                v.missing_invoices > 0 or key in amount_issues or key in rate_issues or key in duplicate_issues
            )
            if v.matched_invoices == 0:
                v.status = VendorStatus.PENDING
            elif not has_discrepancy and v.mismatched_invoices == 0 and v.pending_review == 0:
                v.status = VendorStatus.RECONCILED
            elif has_discrepancy:
                v.status = VendorStatus.DISCREPANCIES
            else:
                v.status = VendorStatus.PARTIALLY_RECONCILED

        return [vendors[k] for k in sorted(vendors)]

    # ──────────────────────────── Summary ────────────────────────────

    def _summarize(
        self,
        run_id: str,
        gstin: Optional[str],
        period: str,
        as_of: date,
        entries: List[ReturnEntry],
        records: List[PurchaseRecord],
        matches: List[ReconciliationMatch],
        classification: MismatchClassification,
        eligibility: List[ITCEligibilityResult],
        eligible_by_record: Dict[str, Decimal],
        reversals: List[ITCReversal],
    ) -> ReconciliationSummary:
        by_type = {t.value: 0 for t in MatchType}
        for m in matches:
            by_type[m.match_type.value] += 1

        available = sum((e.itc_amount for e in entries if e.itc_available), ZERO)
        claimed = sum((r.eligible_amount for r in eligibility), ZERO)
        blocked = sum((r.blocked_amount for r in eligibility), ZERO)

        awaiting = {m.purchase_record.record_id for m in matches if m.is_paired and m.requires_review}
        missing = {item.reference for item in classification.missing_in_return}
        pending = sum((eligible_by_record.get(rid, ZERO) for rid in sorted(awaiting | missing)), ZERO)

        return ReconciliationSummary(
            run_id=run_id,
            gstin=gstin,
            return_period=period,
            as_of=as_of,
            total_return_entries=len(entries),
            total_purchase_records=len(records),
            exact_matches=by_type[MatchType.EXACT.value],
            partial_matches=by_type[MatchType.PARTIAL.value],
            fuzzy_matches=by_type[MatchType.FUZZY.value],
            no_matches=by_type[MatchType.NO_MATCH.value],
            missing_in_books=len(classification.missing_in_books),
            missing_in_return=len(classification.missing_in_return),
            pending_review=sum(1 for m in matches if m.requires_review),
            total_mismatches=classification.total_discrepancies,
            total_itc_available=money(available),
            total_itc_claimed=money(claimed),
            total_itc_pending=money(pending),
            excess_claimed=money(max(ZERO, claimed - available)),
            total_itc_blocked=money(blocked),
            total_itc_reversed=money(sum((r.reversed_amount for r in reversals), ZERO)),
            total_reversal_interest=money(sum((r.interest_amount for r in reversals), ZERO)),
            by_match_type=by_type,
        )
