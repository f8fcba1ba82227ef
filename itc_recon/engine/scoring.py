"""
Sub-score strategies used by the matching engine.

Each scorer returns a similarity in [0, 1]. The matcher combines them with
the configured weights; swapping a scorer changes one dimension only.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from fuzzywuzzy import fuzz

from itc_recon.utils.helpers import ZERO, percentage_difference


class InvoiceNumberScorer(ABC):
    @abstractmethod
    def score(self, return_number: str, books_number: str) -> float:
        ...

    @staticmethod
    def is_exact(return_number: str, books_number: str) -> bool:
        return (return_number or "").strip() == (books_number or "").strip()


class FuzzRatioScorer(InvoiceNumberScorer):
    """1.0 on exact (trimmed) equality, else the Levenshtein ratio of the upper-cased strings."""

    def score(self, return_number: str, books_number: str) -> float:
        if self.is_exact(return_number, books_number):
            return 1.0
        a = (return_number or "").strip().upper()
        b = (books_number or "").strip().upper()
        return fuzz.ratio(a, b) / 100


class DateScorer(ABC):
    @abstractmethod
    def score(self, return_date: date, books_date: date, tolerance_days: int, decay_days: int) -> float:
        ...


class LinearDateScorer(DateScorer):
    """
    Linear decay from 1.0 on the same day, reaching zero ``decay_days``
    past the tolerance window.
    """

    def score(self, return_date: date, books_date: date, tolerance_days: int, decay_days: int) -> float:
        days = abs((return_date - books_date).days)
        if days == 0:
            return 1.0
        limit = tolerance_days + decay_days
        if limit <= 0:
            return 0.0
        return max(0.0, 1.0 - days / limit)


class AmountScorer(ABC):
    @abstractmethod
    def score(self, return_amount: Decimal, books_amount: Decimal, tolerance_pct: Decimal, span: Decimal) -> float:
        ...


class LinearAmountScorer(AmountScorer):
    """
    Decays with the percentage difference (relative to the return amount),
    reaching zero at ``span`` times the tolerance.
    """

    def score(self, return_amount: Decimal, books_amount: Decimal, tolerance_pct: Decimal, span: Decimal) -> float:
        pct = percentage_difference(return_amount, books_amount)
        if pct == ZERO:
            return 1.0
        limit = tolerance_pct * span
        if limit <= ZERO:
            return 0.0
        return float(max(ZERO, 1 - pct / limit))
