from itc_recon.models.validation import RowError, BatchValidationResult
from itc_recon.models.returns import (
    ReturnSection, EntryKind, ReturnEntry, ReturnSummary, NormalizedReturn,
    effective_entries,
)
from itc_recon.models.itc import (
    ITCEligibility, BlockingCategory, ReductionFactor, ITCConditions,
    ITCEligibilityResult, ReversalReason, ReversalContext, ReversalEvent, ITCReversal,
)
from itc_recon.models.purchase import (
    DocumentType, ExpenseCategory, BusinessPurpose, VehicleKind, ConstructionType,
    ImportType, PurchaseLineItem, PurchaseRecord,
)
from itc_recon.models.reconciliation import (
    MatchType, Severity, MismatchField, VendorStatus, MatchingOptions,
    FieldMismatch, ComponentScores, ReconciliationMatch, CandidateScore,
    MissingInvoice, AmountMismatch, DateMismatch, TaxRateMismatch, DuplicateGroup,
    MismatchClassification, VendorMismatchSummary, MismatchReport,
    VendorReconciliation, ReconciliationSummary, ReconciliationReport,
)

__all__ = [
    "RowError", "BatchValidationResult",
    "ReturnSection", "EntryKind", "ReturnEntry", "ReturnSummary", "NormalizedReturn",
    "effective_entries",
    "ITCEligibility", "BlockingCategory", "ReductionFactor", "ITCConditions",
    "ITCEligibilityResult", "ReversalReason", "ReversalContext", "ReversalEvent", "ITCReversal",
    "DocumentType", "ExpenseCategory", "BusinessPurpose", "VehicleKind", "ConstructionType",
    "ImportType", "PurchaseLineItem", "PurchaseRecord",
    "MatchType", "Severity", "MismatchField", "VendorStatus", "MatchingOptions",
    "FieldMismatch", "ComponentScores", "ReconciliationMatch", "CandidateScore",
    "MissingInvoice", "AmountMismatch", "DateMismatch", "TaxRateMismatch", "DuplicateGroup",
    "MismatchClassification", "VendorMismatchSummary", "MismatchReport",
    "VendorReconciliation", "ReconciliationSummary", "ReconciliationReport",
]
