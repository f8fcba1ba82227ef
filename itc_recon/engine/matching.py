"""
Invoice Matching Engine.

Pairs return entries with the business's purchase records. Vendor identity
is a hard gate: only records of the same supplier GSTIN are candidates.
Within a vendor, invoice number, date and amount are scored separately and
combined into one confidence score.
"""

from typing import Dict, List, Optional
from dataclasses import dataclass, field
from decimal import Decimal
from loguru import logger

from itc_recon.engine.scoring import (
    AmountScorer, DateScorer, FuzzRatioScorer, InvoiceNumberScorer,
    LinearAmountScorer, LinearDateScorer,
)
from itc_recon.models.purchase import ImportType, PurchaseRecord
from itc_recon.models.reconciliation import (
    CandidateScore, ComponentScores, FieldMismatch, MatchType, MatchingOptions,
    MismatchField, ReconciliationMatch, Severity,
)
from itc_recon.models.returns import ReturnEntry
from itc_recon.utils.gstin import normalize_gstin
from itc_recon.utils.helpers import ZERO, generate_uid, percentage_difference

HIGH_DATE_GAP_DAYS = 7
HIGH_AMOUNT_GAP_PCT = Decimal("5")
HIGH_NUMBER_SIMILARITY = 0.9


@dataclass
class ScoredCandidate:
    """One vendor-local (entry, record) pair with its scores."""
    entry_index: int
    record: PurchaseRecord
    confidence: float
    components: ComponentScores
    mismatches: List[FieldMismatch] = field(default_factory=list)
    invoice_exact: bool = True
    date_gap: int = 0
    match_type: MatchType = MatchType.NO_MATCH

    @property
    def sort_key(self) -> tuple:
        return (-self.confidence, self.date_gap, self.entry_index, self.record.record_id)


def vendor_key(gstin: Optional[str]) -> str:
    return normalize_gstin(gstin)


def is_candidate(entry: ReturnEntry, record: PurchaseRecord) -> bool:
    """Same supplier GSTIN; import entries only pair with goods-import records."""
    if vendor_key(entry.vendor_gstin) != vendor_key(record.vendor_gstin):
        return False
    if entry.is_import:
        return record.import_type == ImportType.GOODS
    return True


def books_number(entry: ReturnEntry, record: PurchaseRecord) -> str:
    """Number on the books side comparable to the entry: bill of entry for imports."""
    if entry.is_import and record.bill_of_entry_number:
        return record.bill_of_entry_number
    return record.invoice_number


class InvoiceMatcher:
    """Scores and pairs return entries against purchase records."""

    def __init__(
        self,
        options: Optional[MatchingOptions] = None,
        invoice_scorer: Optional[InvoiceNumberScorer] = None,
        date_scorer: Optional[DateScorer] = None,
        amount_scorer: Optional[AmountScorer] = None,
    ):
        self.options = options or MatchingOptions()
        self.invoice_scorer = invoice_scorer or FuzzRatioScorer()
        self.date_scorer = date_scorer or LinearDateScorer()
        self.amount_scorer = amount_scorer or LinearAmountScorer()

    # ──────────────────────────── Public API ────────────────────────────

    def match(
        self,
        entry: ReturnEntry,
        candidate_records: List[PurchaseRecord],
        options: Optional[MatchingOptions] = None,
    ) -> ReconciliationMatch:
        """Best match for a single entry among ``candidate_records``."""
        opts = options or self.options
        scored = self._score_candidates(0, entry, candidate_records, opts)
        if not scored:
            return self._no_match(entry, 0.0)
        best = min(scored, key=lambda c: c.sort_key)
        if best.match_type == MatchType.NO_MATCH:
            return self._no_match(entry, best.confidence)
        return self._to_match(entry, best, opts)

    def match_all(
        self,
        entries: List[ReturnEntry],
        records: List[PurchaseRecord],
        options: Optional[MatchingOptions] = None,
    ) -> List[ReconciliationMatch]:
        """
        One-to-one matching of a batch of entries against a batch of records.

        Every qualifying vendor-local pair is scored, then pairs are taken
        greedily by score (ties: nearest date, entry order, record id) so no
        entry or record is used twice. Results follow the order of ``entries``.
        """
        opts = options or self.options
        by_vendor = self._partition(records)
        logger.info(f"Matching {len(entries)} return entries against {len(records)} purchase records "
                    f"across {len(by_vendor)} vendors")

        best_seen: Dict[int, float] = {}
        qualifying: List[ScoredCandidate] = []
        for idx, entry in enumerate(entries):
            scored = self._score_candidates(idx, entry, by_vendor.get(vendor_key(entry.vendor_gstin), []), opts)
            best_seen[idx] = max((c.confidence for c in scored), default=0.0)
            qualifying.extend(c for c in scored if c.match_type != MatchType.NO_MATCH)

        assigned: Dict[int, ScoredCandidate] = {}
        used_records = set()
        for cand in sorted(qualifying, key=lambda c: c.sort_key):
            if cand.entry_index in assigned or cand.record.record_id in used_records:
                continue
            assigned[cand.entry_index] = cand
            used_records.add(cand.record.record_id)

        results = []
        for idx, entry in enumerate(entries):
            if idx in assigned:
                results.append(self._to_match(entry, assigned[idx], opts))
            else:
                results.append(self._no_match(entry, best_seen[idx]))

        counts = {t: sum(1 for r in results if r.match_type == t) for t in MatchType}
        logger.info(
            f"Matching results: {counts[MatchType.EXACT]} exact, {counts[MatchType.PARTIAL]} partial, "
            f"{counts[MatchType.FUZZY]} fuzzy, {counts[MatchType.NO_MATCH]} unmatched"
        )
        return results

    def find_potential_matches(
        self,
        entry: ReturnEntry,
        records: List[PurchaseRecord],
        limit: int = 5,
        options: Optional[MatchingOptions] = None,
    ) -> List[CandidateScore]:
        """Ranked vendor-local candidates for manual review, regardless of threshold."""
        opts = options or self.options
        scored = sorted(self._score_candidates(0, entry, records, opts), key=lambda c: c.sort_key)
        return [
            CandidateScore(
                record_id=c.record.record_id,
                invoice_number=c.record.invoice_number,
                confidence=c.confidence,
                date_gap_days=c.date_gap,
            )
            for c in scored[:limit]
        ]

    # ──────────────────────────── Scoring ────────────────────────────

    def _partition(self, records: List[PurchaseRecord]) -> Dict[str, List[PurchaseRecord]]:
        by_vendor: Dict[str, List[PurchaseRecord]] = {}
        for rec in records:
            by_vendor.setdefault(vendor_key(rec.vendor_gstin), []).append(rec)
        return by_vendor

    def _score_candidates(
        self, entry_index: int, entry: ReturnEntry, records: List[PurchaseRecord], opts: MatchingOptions,
    ) -> List[ScoredCandidate]:
        return [
            self.score_pair(entry, rec, opts, entry_index)
            for rec in records
            if is_candidate(entry, rec)
        ]

    def score_pair(
        self,
        entry: ReturnEntry,
        record: PurchaseRecord,
        options: Optional[MatchingOptions] = None,
        entry_index: int = 0,
    ) -> ScoredCandidate:
        """Score one pair and classify it. Assumes the vendor gate already passed."""
        opts = options or self.options
        books_no = books_number(entry, record)

        number_score = self.invoice_scorer.score(entry.invoice_number, books_no)
        invoice_exact = self.invoice_scorer.is_exact(entry.invoice_number, books_no)
        date_gap = abs((entry.invoice_date - record.invoice_date).days)
        date_score = self.date_scorer.score(
            entry.invoice_date, record.invoice_date, opts.date_tolerance_days, opts.date_decay_days,
        )
        amount_score = self.amount_scorer.score(
            entry.invoice_value, record.total_value, opts.amount_tolerance_pct, opts.amount_decay_span,
        )

        weights = (opts.weight_invoice_number, opts.weight_invoice_date, opts.weight_amount)
        scores = (number_score, date_score, amount_score)
        total = sum(w * s for w, s in zip(weights, scores))
        confidence = min(1.0, max(0.0, total / sum(weights)))

        mismatches = self._field_mismatches(entry, record, books_no, number_score, invoice_exact, date_gap, opts)

        if confidence == 1.0 and not mismatches:
            match_type = MatchType.EXACT
        elif confidence >= opts.fuzzy_threshold and invoice_exact:
            match_type = MatchType.PARTIAL
        elif confidence >= opts.fuzzy_threshold:
            match_type = MatchType.FUZZY
        else:
            match_type = MatchType.NO_MATCH

        return ScoredCandidate(
            entry_index=entry_index,
            record=record,
            confidence=confidence,
            components=ComponentScores(invoice_number=number_score, invoice_date=date_score, amount=amount_score),
            mismatches=mismatches,
            invoice_exact=invoice_exact,
            date_gap=date_gap,
            match_type=match_type,
        )

    def _field_mismatches(
        self,
        entry: ReturnEntry,
        record: PurchaseRecord,
        books_no: str,
        number_score: float,
        invoice_exact: bool,
        date_gap: int,
        opts: MatchingOptions,
    ) -> List[FieldMismatch]:
        mismatches = []

        if not invoice_exact:
            mismatches.append(FieldMismatch(
                field=MismatchField.INVOICE_NUMBER,
                return_value=entry.invoice_number,
                books_value=books_no,
                tolerance=Decimal(str(opts.fuzzy_threshold)),
                severity=Severity.HIGH if number_score < HIGH_NUMBER_SIMILARITY else Severity.MEDIUM,
                description=f"Invoice number differs (similarity {number_score:.0%})",
            ))

        # A difference exactly at the tolerance is still reported
        if date_gap > 0 and date_gap >= opts.date_tolerance_days:
            mismatches.append(FieldMismatch(
                field=MismatchField.INVOICE_DATE,
                return_value=entry.invoice_date,
                books_value=record.invoice_date,
                tolerance=Decimal(opts.date_tolerance_days),
                severity=Severity.HIGH if date_gap > HIGH_DATE_GAP_DAYS else Severity.MEDIUM,
                description=f"Date difference of {date_gap} days",
            ))

        books_value = record.total_value
        pct = percentage_difference(entry.invoice_value, books_value)
        if pct > ZERO and pct >= opts.amount_tolerance_pct:
            mismatches.append(FieldMismatch(
                field=MismatchField.INVOICE_VALUE,
                return_value=entry.invoice_value,
                books_value=books_value,
                tolerance=opts.amount_tolerance_pct,
                severity=Severity.HIGH if pct > HIGH_AMOUNT_GAP_PCT else Severity.MEDIUM,
                description=(
                    "Amount difference beyond tolerance" if pct > opts.amount_tolerance_pct
                    else "Amount difference at tolerance limit"
                ),
            ))

        return mismatches

    # ──────────────────────────── Results ────────────────────────────

    def _to_match(self, entry: ReturnEntry, cand: ScoredCandidate, opts: MatchingOptions) -> ReconciliationMatch:
        if cand.match_type == MatchType.EXACT:
            review = not opts.auto_accept_exact
        elif cand.match_type == MatchType.PARTIAL:
            review = any(m.severity == Severity.HIGH for m in cand.mismatches)
        else:
            review = opts.require_review_for_fuzzy

        return ReconciliationMatch(
            match_id=generate_uid("match", entry.entry_key, cand.record.record_id),
            return_entry=entry,
            purchase_record=cand.record,
            match_type=cand.match_type,
            confidence=cand.confidence,
            component_scores=cand.components,
            mismatches=cand.mismatches,
            requires_review=review,
        )

    def _no_match(self, entry: ReturnEntry, best_confidence: float) -> ReconciliationMatch:
        return ReconciliationMatch(
            match_id=generate_uid("match", entry.entry_key, ""),
            return_entry=entry,
            purchase_record=None,
            match_type=MatchType.NO_MATCH,
            confidence=best_confidence,
        )
