from itc_recon.ingestion.normalizer import ReturnNormalizer, summarize_entries
from itc_recon.ingestion.validator import validate_purchase_records

__all__ = ["ReturnNormalizer", "summarize_entries", "validate_purchase_records"]
