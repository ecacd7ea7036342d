"""
Unit tests for the import file reader.

Run: pytest tests/unit/test_import_file_parser.py -v
"""

from io import BytesIO

import pandas as pd
import pytest

from exceptions import ImportFileParseError
from parsers.import_file_parser import read_import_file


def _xlsx(df: pd.DataFrame) -> bytes:
    buffer = BytesIO()
    df.to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


class TestReadCsv:
    """Tests for CSV files"""

    def test_semicolon_delimiter(self):
        content = "Marque;Cat Fab;Segment\nSKF;ROUL;S1\nFAG;JOINT;S2\n".encode("utf-8")

        sheet = read_import_file(content, "mappings.csv")

        assert sheet.headers == ["Marque", "Cat Fab", "Segment"]
        assert sheet.rows[1] == {"Marque": "FAG", "Cat Fab": "JOINT", "Segment": "S2"}
        assert sheet.line_numbers == [2, 3]

    def test_comma_delimiter(self):
        content = b"Marque,Cat Fab\nSKF,ROUL\n"

        sheet = read_import_file(content, "mappings.csv")

        assert sheet.rows == [{"Marque": "SKF", "Cat Fab": "ROUL"}]

    def test_quoted_field_keeps_delimiter(self):
        content = b'Marque;Libelle\nSKF;"Roulements; billes"\n'

        sheet = read_import_file(content, "mappings.csv")

        assert sheet.rows[0]["Libelle"] == "Roulements; billes"

    def test_headers_and_cells_are_trimmed(self):
        content = b" Marque ;Cat Fab\n  SKF ;ROUL\n"

        sheet = read_import_file(content, "mappings.csv")

        assert sheet.headers == ["Marque", "Cat Fab"]
        assert sheet.rows[0]["Marque"] == "SKF"

    def test_cells_stay_text(self):
        """Should not turn codes like 010 into numbers."""
        content = b"Code;Designation\n010;Transmission\n"

        sheet = read_import_file(content, "classif.csv")

        assert sheet.rows[0]["Code"] == "010"

    def test_cp1252_export_is_decoded(self):
        content = "Marque;Libellé\nSKF;Roulé\n".encode("cp1252")

        sheet = read_import_file(content, "mappings.csv")

        assert sheet.headers == ["Marque", "Libellé"]
        assert sheet.rows[0]["Libellé"] == "Roulé"

    def test_blank_lines_are_skipped(self):
        content = b"Marque;Cat Fab\nSKF;ROUL\n;\nFAG;JOINT\n"

        sheet = read_import_file(content, "mappings.csv")

        assert sheet.total_lines == 2
        assert sheet.line_numbers == [2, 4]

    def test_empty_lines_keep_file_line_numbers(self):
        """Should number rows after an empty line by their real line."""
        content = b"Marque;Cat\nSKF;A\n\nFAG;B\n"

        sheet = read_import_file(content, "mappings.csv")

        assert [r["Marque"] for r in sheet.rows] == ["SKF", "FAG"]
        assert sheet.line_numbers == [2, 4]


class TestReadExcel:
    """Tests for Excel workbooks"""

    def test_reads_first_sheet(self):
        # Arrange
        df = pd.DataFrame({"Marque": ["SKF", "FAG"], "FSMEGA": [1, 2]})

        # Act
        sheet = read_import_file(_xlsx(df), "mappings.xlsx")

        # Assert
        assert sheet.headers == ["Marque", "FSMEGA"]
        assert sheet.rows[0]["Marque"] == "SKF"
        assert sheet.rows[1]["FSMEGA"] == 2

    def test_empty_cells_become_none(self):
        df = pd.DataFrame({"Marque": ["SKF", "FAG"], "Libelle": ["Roulements", None]})

        sheet = read_import_file(_xlsx(df), "mappings.xlsx")

        assert sheet.rows[1]["Libelle"] is None

    def test_empty_rows_are_skipped(self):
        df = pd.DataFrame({"Marque": ["SKF", None, "FAG"], "Cat": ["A", None, "B"]})

        sheet = read_import_file(_xlsx(df), "mappings.xlsx")

        assert [r["Marque"] for r in sheet.rows] == ["SKF", "FAG"]


class TestReadErrors:
    """Tests for unreadable input"""

    def test_empty_content(self):
        with pytest.raises(ImportFileParseError) as exc_info:
            read_import_file(b"", "mappings.csv")

        assert exc_info.value.message == "File is empty"

    def test_unsupported_extension(self):
        with pytest.raises(ImportFileParseError):
            read_import_file(b"data", "mappings.pdf")

    def test_corrupt_workbook(self):
        with pytest.raises(ImportFileParseError) as exc_info:
            read_import_file(b"not a zip file", "mappings.xlsx")

        assert exc_info.value.message == "Failed to read file"
