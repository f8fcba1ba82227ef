"""
ITC reconciliation and eligibility engine.

Reconciles a business's purchase register against GSTR-2A/2B return data
and works out how much input tax credit may be claimed or must be reversed.
"""

from itc_recon.config import settings, configure_logging
from itc_recon.errors import ITCReconError, StructuralError, ValidationError
from itc_recon.ingestion import ReturnNormalizer, validate_purchase_records
from itc_recon.engine import (
    InvoiceMatcher, MismatchClassifier, EligibilityEvaluator, EligibilityInput,
    ReversalCalculator, ReconciliationEngine,
)

__version__ = "1.0.0"

__all__ = [
    "settings", "configure_logging",
    "ITCReconError", "StructuralError", "ValidationError",
    "ReturnNormalizer", "validate_purchase_records",
    "InvoiceMatcher", "MismatchClassifier", "EligibilityEvaluator", "EligibilityInput",
    "ReversalCalculator", "ReconciliationEngine",
]
