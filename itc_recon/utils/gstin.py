"""GSTIN validation and identifier normalization."""

import re
from typing import Optional

# Indian state codes (first 2 digits of GSTIN)
STATE_CODES = {
    "01": "Jammu & Kashmir", "02": "Himachal Pradesh", "03": "Punjab",
    "04": "Chandigarh", "05": "Uttarakhand", "06": "Haryana",
    "07": "Delhi", "08": "Rajasthan", "09": "Uttar Pradesh",
    "10": "Bihar", "11": "Sikkim", "12": "Arunachal Pradesh",
    "13": "Nagaland", "14": "Manipur", "15": "Mizoram",
    "16": "Tripura", "17": "Meghalaya", "18": "Assam",
    "19": "West Bengal", "20": "Jharkhand", "21": "Odisha",
    "22": "Chhattisgarh", "23": "Madhya Pradesh", "24": "Gujarat",
    "26": "Dadra & Nagar Haveli and Daman & Diu", "27": "Maharashtra",
    "29": "Karnataka", "30": "Goa", "31": "Lakshadweep", "32": "Kerala",
    "33": "Tamil Nadu", "34": "Puducherry", "35": "Andaman & Nicobar",
    "36": "Telangana", "37": "Andhra Pradesh", "38": "Ladakh",
    "97": "Other Territory",
}

GSTIN_PATTERN = re.compile(r"^([0-9]{2})([A-Z]{5}[0-9]{4}[A-Z])([1-9A-Z])([Z])([0-9A-Z])$")
CHECKSUM_CHARS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"

# Separators stripped before comparing invoice numbers for candidate lookup
INVOICE_SEPARATORS = re.compile(r"[\s\-/\\.#@_:;,|~]+")


def normalize_gstin(gstin: Optional[str]) -> str:
    """Uppercase and strip whitespace. Empty string for a missing GSTIN."""
    if not gstin:
        return ""
    return re.sub(r"\s+", "", gstin).upper()


def validate_gstin(gstin: str, verify_checksum: bool = False) -> bool:
    """
    Validate GSTIN format: 2-digit state + 10-char PAN + entity + Z + check.

    The check character is only verified when ``verify_checksum`` is set;
    by default the validation is structural (format and state code).
    """
    if not gstin or len(gstin) != 15:
        return False
    match = GSTIN_PATTERN.match(gstin)
    if not match:
        return False
    if match.group(1) not in STATE_CODES:
        return False
    if verify_checksum:
        return generate_gstin_check_digit(gstin[:14]) == gstin[14]
    return True


def generate_gstin_check_digit(gstin_without_check: str) -> str:
    """Modulus-36 check character for a 14-character GSTIN prefix."""
    factor = 1
    total = 0
    for ch in gstin_without_check:
        idx = CHECKSUM_CHARS.index(ch) * factor
        total += (idx // 36) + (idx % 36)
        factor = 2 if factor == 1 else 1
    remainder = total % 36
    return CHECKSUM_CHARS[(36 - remainder) % 36]


def normalize_invoice_number(inv_no: Optional[str]) -> str:
    """
    Normalize an invoice number for lookups:
    - Uppercase
    - Remove whitespace and separator characters (-, /, ., #, _ ...)
    """
    if not inv_no:
        return ""
    return INVOICE_SEPARATORS.sub("", str(inv_no).strip().upper())
