"""
Import file reader.

Reads an uploaded CSV or Excel file into a header list plus one dict per
data row (header -> cell). Only the first sheet of a workbook is read.
CSV delimiter is sniffed (comma or semicolon exports both occur) and
quoted fields may contain delimiters.
"""

from dataclasses import dataclass, field
from io import BytesIO, StringIO
from typing import Any
import structlog

import pandas as pd

from exceptions import ImportFileParseError

logger = structlog.get_logger(__name__)

EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
CSV_EXTENSIONS = (".csv", ".txt")


@dataclass
class ParsedSheet:
    """Headers and non-blank data rows of an uploaded file."""
    headers: list[str] = field(default_factory=list)
    rows: list[dict[str, Any]] = field(default_factory=list)
    line_numbers: list[int] = field(default_factory=list)  # spreadsheet line of each row

    @property
    def total_lines(self) -> int:
        return len(self.rows)


def is_csv(file_name: str) -> bool:
    return file_name.lower().endswith(CSV_EXTENSIONS)


def read_import_file(content: bytes, file_name: str) -> ParsedSheet:
    """
    Parse an uploaded import file.

    Args:
        content: Raw file bytes
        file_name: Original file name (extension selects the reader)

    Returns:
        ParsedSheet with trimmed headers and rows keyed by header

    Raises:
        ImportFileParseError: If the file is empty, unsupported or unreadable
    """
    logger.info("parsing_import_file", file_name=file_name, size_bytes=len(content))

    if not content:
        raise ImportFileParseError("File is empty", details={"file_name": file_name})

    lower = file_name.lower()
    try:
        if lower.endswith(CSV_EXTENSIONS):
            df = _read_csv(content)
        elif lower.endswith(EXCEL_EXTENSIONS):
            df = pd.read_excel(BytesIO(content), sheet_name=0, dtype=object, engine="openpyxl")
        else:
            raise ImportFileParseError(
                "Unsupported file type (expected .csv or .xlsx)",
                details={"file_name": file_name}
            )
    except ImportFileParseError:
        raise
    except Exception as e:
        logger.error("import_file_read_failed", file_name=file_name, error=str(e))
        raise ImportFileParseError(
            message="Failed to read file",
            details={"file_name": file_name, "original_error": str(e)}
        )

    sheet = _to_sheet(df)

    logger.info(
        "import_file_parsed",
        file_name=file_name,
        columns=len(sheet.headers),
        rows=sheet.total_lines
    )
    return sheet


def _read_csv(content: bytes) -> pd.DataFrame:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        # Excel "CSV (séparateur: point-virgule)" exports are cp1252
        text = content.decode("cp1252")

    return pd.read_csv(
        StringIO(text),
        sep=None,            # sniff delimiter
        engine="python",
        quotechar='"',
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=False,  # keep line numbers aligned with the file
    )


def _to_sheet(df: pd.DataFrame) -> ParsedSheet:
    headers = [str(col).strip() for col in df.columns]
    df.columns = headers
    df = df.astype(object).where(pd.notna(df), None)

    sheet = ParsedSheet(headers=headers)
    for idx, record in enumerate(df.to_dict(orient="records")):
        cleaned = {k: (v.strip() if isinstance(v, str) else v) for k, v in record.items()}
        if all(v is None or v == "" for v in cleaned.values()):
            continue
        sheet.rows.append(cleaned)
        sheet.line_numbers.append(idx + 2)  # 1-indexed + header

    return sheet
