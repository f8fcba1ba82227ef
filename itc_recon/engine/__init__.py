from itc_recon.engine.scoring import (
    InvoiceNumberScorer, FuzzRatioScorer, DateScorer, LinearDateScorer,
    AmountScorer, LinearAmountScorer,
)
from itc_recon.engine.matching import InvoiceMatcher
from itc_recon.engine.mismatch import MismatchClassifier
from itc_recon.engine.eligibility import EligibilityEvaluator, EligibilityInput, RULES
from itc_recon.engine.reversal import ReversalCalculator, is_non_payment_due
from itc_recon.engine.reconciliation import ReconciliationEngine

__all__ = [
    "InvoiceNumberScorer", "FuzzRatioScorer", "DateScorer", "LinearDateScorer",
    "AmountScorer", "LinearAmountScorer",
    "InvoiceMatcher", "MismatchClassifier",
    "EligibilityEvaluator", "EligibilityInput", "RULES",
    "ReversalCalculator", "is_non_payment_due",
    "ReconciliationEngine",
]
