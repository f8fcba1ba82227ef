"""Row-level validation report models."""

from pydantic import BaseModel, Field
from typing import List, Optional


class RowError(BaseModel):
    """A single field-level failure, with enough context to display or log."""
    row_index: Optional[int] = None
    section: Optional[str] = None
    field: Optional[str] = None
    value: Optional[str] = None
    message: str


class BatchValidationResult(BaseModel):
    """Outcome of validating a batch of rows before anything is committed."""
    total_rows: int = 0
    valid_rows: int = 0
    errors: List[RowError] = Field(default_factory=list)
    records: list = Field(default_factory=list, description="Parsed records for rows without errors")

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def failed_rows(self) -> List[int]:
        return sorted({e.row_index for e in self.errors if e.row_index is not None})
