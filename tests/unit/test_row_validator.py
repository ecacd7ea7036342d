"""
Unit tests for canonical row validation.

Run: pytest tests/unit/test_row_validator.py -v
"""

import pytest

from exceptions import MappingValidationError
from models.rows import DatasetType
from services.row_validator import (
    errors_to_csv,
    project_row,
    validate_column_mapping,
    validate_row,
    validate_rows,
)

from tests.factories import (
    CLASSIFICATION_COLUMN_MAPPING,
    MAPPING_COLUMN_MAPPING,
    ClassificationRowFactory,
    MappingRowFactory,
)


def _validate_mapping(**cells):
    raw = MappingRowFactory.sheet_row(**cells)
    return validate_row(raw, MAPPING_COLUMN_MAPPING, DatasetType.MAPPING, row_number=2)


class TestProjectRow:
    """Tests for project_row()"""

    def test_projects_mapped_headers(self):
        raw = {"Marque": "SKF", "Prix": "12"}

        assert project_row(raw, {"marque": "Marque"}) == {"marque": "SKF"}

    def test_skips_blank_and_absent_headers(self):
        raw = {"Marque": "SKF"}

        projected = project_row(raw, {"marque": "Marque", "segment": "", "cat_fab": "Cat"})

        assert projected == {"marque": "SKF"}


class TestMappingRowCoercion:
    """Tests for MappingRow coercion through validate_row()"""

    @pytest.mark.parametrize("cell,expected", [
        ("oui", 1),
        ("OUI", 1),
        ("true", 1),
        ("non", 0),
        ("1", 1),
        ("", 0),
    ])
    def test_strategiq_flag(self, cell, expected):
        typed, errors = _validate_mapping(strategiq=cell)

        assert errors == []
        assert typed["strategiq"] == expected

    def test_blank_fsmega_defaults_to_one(self):
        typed, errors = _validate_mapping(fsmega="")

        assert errors == []
        assert typed["fsmega"] == 1

    def test_blank_family_codes_default_to_99(self):
        typed, _ = _validate_mapping(fsfam="", fssfa=None)

        assert typed["fsfam"] == 99
        assert typed["fssfa"] == 99

    def test_cat_fab_is_trimmed_and_uppercased(self):
        typed, _ = _validate_mapping(cat_fab="  roul ")

        assert typed["cat_fab"] == "ROUL"

    def test_integral_float_is_accepted(self):
        typed, errors = _validate_mapping(fsfam=12.0)

        assert errors == []
        assert typed["fsfam"] == 12

    def test_fractional_number_is_rejected(self):
        """Should report 5.5 as a non-integer, not round it."""
        # Act
        typed, errors = _validate_mapping(fsmega="5.5")

        # Assert
        assert typed is None
        assert len(errors) == 1
        assert errors[0].field == "fsmega"
        assert errors[0].message == "Must be an integer"
        assert errors[0].value == "5.5"
        assert errors[0].row == 2

    def test_out_of_range_strategiq_is_rejected(self):
        typed, errors = _validate_mapping(strategiq="2")

        assert typed is None
        assert errors[0].field == "strategiq"

    def test_blank_required_text_is_rejected(self):
        typed, errors = _validate_mapping(segment="   ")

        assert typed is None
        assert errors[0].field == "segment"
        assert errors[0].message == "Required field is empty"

    def test_unmapped_required_field_is_missing(self):
        raw = MappingRowFactory.sheet_row()
        mapping = {k: v for k, v in MAPPING_COLUMN_MAPPING.items() if k != "segment"}

        typed, errors = validate_row(raw, mapping, DatasetType.MAPPING, row_number=5)

        assert typed is None
        assert errors[0].field == "segment"
        assert errors[0].message == "Required field is missing"

    def test_collects_every_failing_field(self):
        _, errors = _validate_mapping(segment="", fsmega="abc", fsfam="1.5")

        assert {e.field for e in errors} == {"segment", "fsmega", "fsfam"}


class TestClassificationRowCoercion:
    """Tests for ClassificationRow coercion"""

    def test_combined_code_is_derived(self):
        raw = ClassificationRowFactory.sheet_row(fsmega="1", fsfam="10", fssfa="5")

        typed, errors = validate_row(raw, CLASSIFICATION_COLUMN_MAPPING, DatasetType.CLASSIFICATION, 2)

        assert errors == []
        assert typed["combined_code"] == "1 10 5"

    def test_explicit_combined_code_is_kept(self):
        raw = {**ClassificationRowFactory.sheet_row(), "Code": "X-1"}
        mapping = {**CLASSIFICATION_COLUMN_MAPPING, "combined_code": "Code"}

        typed, _ = validate_row(raw, mapping, DatasetType.CLASSIFICATION, 2)

        assert typed["combined_code"] == "X-1"

    def test_codes_are_required(self):
        raw = ClassificationRowFactory.sheet_row(fsfam="")

        typed, errors = validate_row(raw, CLASSIFICATION_COLUMN_MAPPING, DatasetType.CLASSIFICATION, 3)

        assert typed is None
        assert errors[0].field == "fsfam_code"


class TestCoercionIsStable:
    """A typed row written back as text validates to the same row."""

    @staticmethod
    def _as_text(row: dict) -> dict:
        return {field: "" if value is None else str(value) for field, value in row.items()}

    @pytest.mark.parametrize("dataset_type,raw,mapping", [
        (
            DatasetType.MAPPING,
            MappingRowFactory.sheet_row(marque=" skf ", cat_fab="roul", strategiq="oui", fsmega="", fsfam="7.0"),
            MAPPING_COLUMN_MAPPING,
        ),
        (
            DatasetType.CLASSIFICATION,
            ClassificationRowFactory.sheet_row(fsmega="3", fsfam="12", fssfa="4"),
            CLASSIFICATION_COLUMN_MAPPING,
        ),
    ])
    def test_revalidating_typed_row_changes_nothing(self, dataset_type, raw, mapping):
        # Arrange
        typed, errors = validate_row(raw, mapping, dataset_type, row_number=2)
        assert errors == []
        identity = {field: field for field in typed}

        # Act
        again, again_errors = validate_row(self._as_text(typed), identity, dataset_type, row_number=2)

        # Assert
        assert again_errors == []
        assert again == typed


class TestValidateRows:
    """Tests for validate_rows()"""

    def test_separates_valid_rows_and_errors(self):
        """Should keep validating after a failing row."""
        # Arrange
        rows = [
            MappingRowFactory.sheet_row(marque="SKF", cat_fab="A"),
            MappingRowFactory.sheet_row(marque="SKF", cat_fab="B", fsmega="x"),
            MappingRowFactory.sheet_row(marque="SKF", cat_fab="C"),
        ]

        # Act
        report = validate_rows(rows, MAPPING_COLUMN_MAPPING, DatasetType.MAPPING)

        # Assert
        assert report.total_lines == 3
        assert [v.row for v in report.valid_rows] == [2, 4]
        assert report.errors[0].row == 3
        assert report.error_lines == 1
        assert report.success is False

    def test_uses_given_line_numbers(self):
        rows = [MappingRowFactory.sheet_row(fsmega="x")]

        report = validate_rows(rows, MAPPING_COLUMN_MAPPING, DatasetType.MAPPING, line_numbers=[7])

        assert report.errors[0].row == 7

    def test_duplicate_keys_keep_first_row(self):
        """Should keep the first row of a natural key and warn on the others."""
        # Arrange
        rows = [
            MappingRowFactory.sheet_row(marque="SKF", cat_fab="roul", segment="S1"),
            MappingRowFactory.sheet_row(marque="skf", cat_fab="ROUL", segment="S2"),
        ]

        # Act
        report = validate_rows(rows, MAPPING_COLUMN_MAPPING, DatasetType.MAPPING)

        # Assert
        assert len(report.valid_rows) == 1
        assert report.valid_rows[0].data["segment"] == "S1"
        assert len(report.warnings) == 1
        assert report.warnings[0].row == 3
        assert report.warnings[0].field == "natural_key"
        assert report.warnings[0].message == "Duplicate key, line 2 is kept"
        assert report.warnings[0].value == "skf|ROUL"
        assert report.success is True


class TestValidateColumnMapping:
    """Tests for validate_column_mapping()"""

    def test_complete_mapping_passes(self):
        validate_column_mapping(MAPPING_COLUMN_MAPPING, DatasetType.MAPPING)

    def test_missing_and_unknown_are_reported(self):
        with pytest.raises(MappingValidationError) as exc_info:
            validate_column_mapping({"marque": "Marque", "price": "Prix"}, DatasetType.MAPPING)

        assert exc_info.value.status_code == 422
        assert exc_info.value.details["missing"] == ["segment", "cat_fab"]
        assert exc_info.value.details["unknown"] == ["price"]


class TestErrorsToCsv:
    """Tests for errors_to_csv()"""

    def test_renders_header_and_rows(self):
        rows = [MappingRowFactory.sheet_row(fsmega="5.5")]
        report = validate_rows(rows, MAPPING_COLUMN_MAPPING, DatasetType.MAPPING)

        text = errors_to_csv(report.errors)
        lines = text.strip().splitlines()

        assert lines[0] == "row,field,message,value"
        assert lines[1] == "2,fsmega,Must be an integer,5.5"

    def test_empty_report_has_header_only(self):
        assert errors_to_csv([]).strip() == "row,field,message,value"
