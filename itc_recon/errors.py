"""Error taxonomy for the reconciliation and eligibility engine.

Only structural and field-level failures are exceptions. Ambiguous matches
and blocked credit are ordinary result values.
"""

from typing import Any, Optional


class ITCReconError(Exception):
    """Base class for all engine errors."""


class StructuralError(ITCReconError):
    """A return document is malformed or incomplete. Fails the whole import."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        self.message = message
        self.field = field
        self.value = value
        super().__init__(self._format())

    def _format(self) -> str:
        if self.field is None:
            return self.message
        return f"{self.message} (field={self.field!r}, value={self.value!r})"


class ValidationError(ITCReconError):
    """A single purchase record or return row failed a field-level check."""

    def __init__(
        self,
        message: str,
        row_index: Optional[int] = None,
        field: Optional[str] = None,
        value: Any = None,
        section: Optional[str] = None,
    ):
        self.message = message
        self.row_index = row_index
        self.field = field
        self.value = value
        self.section = section
        super().__init__(self._format())

    def _format(self) -> str:
        where = []
        if self.section:
            where.append(f"section={self.section}")
        if self.row_index is not None:
            where.append(f"row={self.row_index}")
        if self.field:
            where.append(f"field={self.field}")
        if not where:
            return self.message
        return f"{self.message} ({', '.join(where)}, value={self.value!r})"

    def to_row_error(self):
        from itc_recon.models.validation import RowError

        return RowError(
            row_index=self.row_index,
            section=self.section,
            field=self.field,
            value=None if self.value is None else str(self.value),
            message=self.message,
        )
