"""
Row schema validation.

Projects raw file rows through the column mapping and validates them with
the dataset's canonical schema. Errors are collected per row, never raised
one by one, so callers can render a full report or error CSV.
"""

import csv
from io import StringIO
from typing import Any, Optional

import pydantic
import structlog

from exceptions import MappingValidationError
from models.imports import RowError, ValidationReport, ValidRow
from models.rows import DatasetType, ROW_MODELS
from parsers.header_matcher import missing_required_fields, unknown_fields
from services.diff_engine import natural_key

logger = structlog.get_logger(__name__)

HEADER_OFFSET = 2  # spreadsheet line of data row 0 (1-based + header line)


def project_row(raw: dict[str, Any], column_mapping: dict[str, str]) -> dict[str, Any]:
    """
    Build the candidate object of one row: {field: cell of mapped header}.

    Fields whose header is blank or missing from the row are left out so
    schema defaults apply.
    """
    projected: dict[str, Any] = {}
    for field, header in column_mapping.items():
        if not header or header not in raw:
            continue
        projected[field] = raw[header]
    return projected


def _error_message(error: dict) -> str:
    if error.get("type") == "missing":
        return "Required field is missing"
    if error.get("type") == "extra_forbidden":
        return "Unknown field"
    message = error.get("msg", "Invalid value")
    return message.removeprefix("Value error, ")


def validate_row(
    raw: dict[str, Any],
    column_mapping: dict[str, str],
    dataset_type: DatasetType,
    row_number: int,
) -> tuple[Optional[dict[str, Any]], list[RowError]]:
    """
    Validate and coerce one raw row.

    Returns:
        (typed row, []) on success, (None, errors) on failure
    """
    candidate = project_row(raw, column_mapping)
    model = ROW_MODELS[DatasetType(dataset_type)]

    try:
        typed = model.model_validate(candidate)
    except pydantic.ValidationError as e:
        errors = []
        for err in e.errors():
            field = str(err["loc"][0]) if err.get("loc") else "row"
            errors.append(RowError(
                row=row_number,
                field=field,
                message=_error_message(err),
                value=candidate.get(field),
            ))
        return None, errors

    return typed.model_dump(), []


def validate_rows(
    rows: list[dict[str, Any]],
    column_mapping: dict[str, str],
    dataset_type: DatasetType,
    line_numbers: Optional[list[int]] = None,
) -> ValidationReport:
    """
    Validate every row of a file.

    Rows are validated independently. Among valid rows sharing a natural
    key, the first one is kept and each later one is reported as a warning
    and excluded.

    Args:
        rows: Raw rows keyed by header
        column_mapping: {field: header}
        dataset_type: Target dataset
        line_numbers: Spreadsheet line per row (defaults to index + 2)

    Returns:
        ValidationReport with valid rows, errors and duplicate warnings
    """
    dataset_type = DatasetType(dataset_type)
    report = ValidationReport(dataset_type=dataset_type, total_lines=len(rows))
    first_line_by_key: dict[str, int] = {}

    for idx, raw in enumerate(rows):
        row_number = line_numbers[idx] if line_numbers else idx + HEADER_OFFSET
        typed, errors = validate_row(raw, column_mapping, dataset_type, row_number)
        if errors:
            report.errors.extend(errors)
            continue

        key = natural_key(typed, dataset_type)
        if key in first_line_by_key:
            report.warnings.append(RowError(
                row=row_number,
                field="natural_key",
                message=f"Duplicate key, line {first_line_by_key[key]} is kept",
                value=key,
            ))
            continue

        first_line_by_key[key] = row_number
        report.valid_rows.append(ValidRow(row=row_number, data=typed))

    logger.info(
        "rows_validated",
        dataset_type=dataset_type.value,
        total=len(rows),
        valid=len(report.valid_rows),
        errors=len(report.errors),
        duplicates=len(report.warnings),
    )
    return report


def errors_to_csv(errors: list[RowError]) -> str:
    """Render row errors as CSV text (row, field, message, value)."""
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["row", "field", "message", "value"])
    for e in errors:
        writer.writerow([e.row, e.field, e.message, "" if e.value is None else e.value])
    return output.getvalue()


def validate_column_mapping(column_mapping: dict[str, str], dataset_type: DatasetType) -> None:
    """
    Reject a mapping that leaves required fields unmapped or names unknown fields.

    Raises:
        MappingValidationError: With the missing and unknown field lists
    """
    missing = missing_required_fields(column_mapping, dataset_type)
    unknown = unknown_fields(column_mapping, dataset_type)
    if missing or unknown:
        logger.warning(
            "column_mapping_rejected",
            dataset_type=DatasetType(dataset_type).value,
            missing=missing,
            unknown=unknown,
        )
        raise MappingValidationError(missing=missing, unknown=unknown)
