"""Shared helper utilities: deterministic ids, periods, dates and money."""

import hashlib
import re
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional, Tuple

PAISE = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

RETURN_PERIOD_PATTERN = re.compile(r"^(0[1-9]|1[0-2])(\d{4})$")
RETURN_DATE_PATTERN = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$")


def generate_uid(*parts: Any) -> str:
    """Generate a deterministic UID from parts."""
    combined = "|".join(str(p) for p in parts)
    return hashlib.sha256(combined.encode()).hexdigest()[:16]


def to_decimal(value: Any) -> Decimal:
    """
    Convert a number or numeric string to Decimal.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1"), not the binary
    expansion. Raises ValueError for anything non-numeric.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a numeric amount: {value!r}")
    try:
        result = Decimal(str(value).strip()) if isinstance(value, (str, float)) else Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Not a numeric amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return result


def money(value: Decimal) -> Decimal:
    """Quantize to paise."""
    return value.quantize(PAISE, rounding=ROUND_HALF_UP)


def percentage_difference(base: Decimal, other: Decimal) -> Decimal:
    """Absolute difference as a percentage of ``base`` (100 when base is zero and they differ)."""
    diff = abs(base - other)
    if diff == ZERO:
        return ZERO
    if base == ZERO:
        return HUNDRED
    return diff / abs(base) * HUNDRED


def parse_return_date(value: str) -> date:
    """
    Parse the authority's DD-MM-YYYY (or DD/MM/YYYY) date text.

    A value that is not a real calendar date raises ValueError; nothing is
    clamped or defaulted.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Invalid date: empty value")
    match = RETURN_DATE_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid date format: {value!r}. Expected DD-MM-YYYY.")
    day, month, year = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        raise ValueError(f"Invalid calendar date: {value!r}")


def parse_return_period(period: str) -> Tuple[int, int]:
    """Split an MMYYYY return period into (month, year)."""
    match = RETURN_PERIOD_PATTERN.match(period or "")
    if not match:
        raise ValueError(f"Invalid return period format: {period!r}. Expected MMYYYY.")
    return int(match.group(1)), int(match.group(2))


def is_valid_return_period(period: Optional[str]) -> bool:
    try:
        parse_return_period(period)
    except ValueError:
        return False
    return True


def financial_year_from_date(d: date) -> str:
    """Get financial year string (e.g., '2024-25') from a date."""
    if d.month >= 4:
        return f"{d.year}-{str(d.year + 1)[-2:]}"
    return f"{d.year - 1}-{str(d.year)[-2:]}"


def financial_year_end(d: date) -> date:
    """31 March closing the financial year that contains ``d``."""
    if d.month >= 4:
        return date(d.year + 1, 3, 31)
    return date(d.year, 3, 31)


def calculate_interest(principal: Decimal, rate_pct: Decimal = Decimal("18"), days: int = 30) -> Decimal:
    """Simple interest u/s 50 CGST Act, pro-rated daily. Default 18% p.a."""
    if days <= 0:
        return money(ZERO)
    return money(principal * rate_pct / HUNDRED * Decimal(days) / Decimal(365))


def format_inr(amount: Decimal) -> str:
    return f"₹{money(amount):,.2f}"
