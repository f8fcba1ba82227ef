"""Engine configuration loaded from environment variables."""

import sys
from decimal import Decimal
from loguru import logger
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration for the ITC reconciliation engine."""

    # Matching
    MATCH_AMOUNT_TOLERANCE_PCT: Decimal = Decimal("1.0")   # ±1% of invoice value
    MATCH_DATE_TOLERANCE_DAYS: int = 2
    FUZZY_MATCH_THRESHOLD: float = 0.80
    AUTO_ACCEPT_EXACT_MATCHES: bool = True
    REQUIRE_REVIEW_FOR_FUZZY: bool = True
    AMOUNT_DECAY_SPAN: Decimal = Decimal("10")             # score hits 0 at 10x tolerance
    DATE_DECAY_DAYS: int = 10                              # score hits 0 this many days past tolerance

    # Weights of the invoice-number / date / amount sub-scores
    WEIGHT_INVOICE_NUMBER: float = 0.4
    WEIGHT_INVOICE_DATE: float = 0.2
    WEIGHT_AMOUNT: float = 0.3

    # Mismatch classification
    TAX_RATE_TOLERANCE_PCT: Decimal = Decimal("0.5")

    # Statutory constants
    INTEREST_RATE_PCT: Decimal = Decimal("18")             # Section 50 CGST Act
    PAYMENT_WINDOW_DAYS: int = 180                         # Rule 37 CGST Rules
    CAPITAL_GOODS_LIFE_YEARS: int = 5                      # Rule 44 CGST Rules
    SELF_INVOICE_WINDOW_DAYS: int = 30                     # Rule 47 CGST Rules

    # GSTIN validation
    GSTIN_VERIFY_CHECKSUM: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()


def configure_logging(level: str = None, sink=None) -> int:
    """Route the engine's loguru output to ``sink`` (stderr by default) at ``level``."""
    logger.remove()
    return logger.add(sink or sys.stderr, level=(level or settings.LOG_LEVEL).upper())
