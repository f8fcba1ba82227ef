"""
Batch validator for purchase records.

Checks every row before anything is used, so a caller can show all the
problems in a file at once instead of failing on the first one.
"""

from typing import Any, Iterable, List, Set
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from itc_recon.errors import ValidationError
from itc_recon.models.purchase import PurchaseRecord
from itc_recon.models.validation import BatchValidationResult, RowError


def _row_errors(row_index: int, exc: PydanticValidationError) -> List[RowError]:
    errors = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or None
        value = err.get("input")
        errors.append(RowError(
            row_index=row_index,
            field=loc,
            value=None if value is None or isinstance(value, dict) else str(value),
            message=err["msg"],
        ))
    return errors


def validate_purchase_records(rows: Iterable[Any], validate_only: bool = True) -> BatchValidationResult:
    """
    Parse and validate purchase record rows.

    In validate-only mode every row is checked and all row errors are
    returned together with the records that parsed cleanly. Otherwise the
    first bad row raises ValidationError.
    """
    result = BatchValidationResult()
    seen_ids: Set[str] = set()

    for row_index, row in enumerate(rows):
        result.total_rows += 1
        errors: List[RowError] = []
        record = None

        if isinstance(row, PurchaseRecord):
            record = row
        elif not isinstance(row, dict):
            errors.append(RowError(row_index=row_index, value=type(row).__name__, message="Row must be an object"))
        else:
            try:
                record = PurchaseRecord.model_validate(row)
            except PydanticValidationError as exc:
                errors.extend(_row_errors(row_index, exc))

        if record is not None:
            if record.record_id in seen_ids:
                errors.append(RowError(
                    row_index=row_index, field="record_id", value=record.record_id,
                    message="Duplicate record_id in batch",
                ))
            else:
                seen_ids.add(record.record_id)

        if errors:
            for e in errors:
                logger.warning(f"Purchase row {row_index} rejected: {e.field}: {e.message}")
            if not validate_only:
                first = errors[0]
                raise ValidationError(first.message, row_index=row_index, field=first.field, value=first.value)
            result.errors.extend(errors)
            continue

        result.valid_rows += 1
        result.records.append(record)

    logger.info(
        f"Validated {result.total_rows} purchase rows: "
        f"{result.valid_rows} valid, {len(result.failed_rows)} failed"
    )
    return result
