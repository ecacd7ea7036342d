"""
Canonical row schemas for imported datasets.

One schema per dataset type, used by every import path (wizard apply,
process-import job, bulk replace) so that coercion rules never drift.
"""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class DatasetType(str, Enum):
    """Importable datasets."""
    MAPPING = "mapping"                  # brand_category_mappings
    CLASSIFICATION = "classification"    # cir_classifications


TRUE_WORDS = {"oui", "true"}
FALSE_WORDS = {"non", "false"}


# ===================
# CELL COERCION
# ===================

def _cell_to_text(value: Any) -> Optional[str]:
    """Turn a spreadsheet cell into trimmed text (None for blank cells)."""
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            value = int(value)
    text = str(value).strip()
    return text or None


def _required_text(value: Any) -> str:
    text = _cell_to_text(value)
    if text is None:
        raise ValueError("Required field is empty")
    return text


def _to_int(value: Any, default: Optional[int] = None) -> int:
    """
    Parse an integer cell.

    Blank cells take `default`; without a default they are a violation.
    Integral floats (5.0 from spreadsheets) are accepted, 5.5 is not.
    """
    if isinstance(value, bool):
        raise ValueError("Must be an integer")
    if isinstance(value, str):
        value = value.strip()
        if value == "":
            value = None
    if isinstance(value, float) and math.isnan(value):
        value = None

    if value is None:
        if default is None:
            raise ValueError("Required field is empty")
        return default

    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValueError("Must be an integer")

    try:
        return int(str(value))
    except ValueError:
        pass
    try:
        parsed = float(str(value))
    except ValueError:
        raise ValueError("Must be an integer")
    if not math.isfinite(parsed) or not parsed.is_integer():
        raise ValueError("Must be an integer")
    return int(parsed)


class RowSchema(BaseModel):
    """Base for canonical row schemas: unknown fields are rejected."""
    model_config = ConfigDict(extra="forbid", validate_assignment=False)


# ===================
# BRAND / CATEGORY MAPPING
# ===================

class MappingRow(RowSchema):
    """
    Brand/category pricing mapping (table brand_category_mappings).

    Natural key: lower(marque) | upper(cat_fab).
    """
    segment: str
    marque: str
    cat_fab: str
    cat_fab_l: Optional[str] = None
    strategiq: int = Field(0, ge=0, le=1)
    fsmega: int = Field(1, ge=1, le=999)
    fsfam: int = Field(99, ge=0, le=999)
    fssfa: int = Field(99, ge=0, le=999)
    codif_fair: Optional[str] = None

    @field_validator("segment", "marque", mode="before")
    @classmethod
    def required_trimmed(cls, v: Any) -> str:
        return _required_text(v)

    @field_validator("cat_fab", mode="before")
    @classmethod
    def cat_fab_uppercase(cls, v: Any) -> str:
        """Manufacturer category is stored trimmed and uppercase."""
        return _required_text(v).upper()

    @field_validator("cat_fab_l", "codif_fair", mode="before")
    @classmethod
    def optional_trimmed(cls, v: Any) -> Optional[str]:
        return _cell_to_text(v)

    @field_validator("strategiq", mode="before")
    @classmethod
    def strategiq_flag(cls, v: Any) -> int:
        """Accept oui/non, true/false and 0/1; blank means 0."""
        if isinstance(v, str):
            word = v.strip().lower()
            if word in TRUE_WORDS:
                return 1
            if word in FALSE_WORDS:
                return 0
        return _to_int(v, default=0)

    @field_validator("fsmega", mode="before")
    @classmethod
    def fsmega_int(cls, v: Any) -> int:
        return _to_int(v, default=1)

    @field_validator("fsfam", "fssfa", mode="before")
    @classmethod
    def family_int(cls, v: Any) -> int:
        return _to_int(v, default=99)


# ===================
# CIR CLASSIFICATION
# ===================

class ClassificationRow(RowSchema):
    """
    CIR product classification (table cir_classifications).

    combined_code defaults to the three codes joined by spaces ("1 10 10").
    """
    fsmega_code: int
    fsmega_designation: str
    fsfam_code: int
    fsfam_designation: str
    fssfa_code: int
    fssfa_designation: str
    combined_code: Optional[str] = None
    combined_designation: Optional[str] = None

    @field_validator("fsmega_code", "fsfam_code", "fssfa_code", mode="before")
    @classmethod
    def required_int(cls, v: Any) -> int:
        return _to_int(v)

    @field_validator("fsmega_designation", "fsfam_designation", "fssfa_designation", mode="before")
    @classmethod
    def required_trimmed(cls, v: Any) -> str:
        return _required_text(v)

    @field_validator("combined_code", "combined_designation", mode="before")
    @classmethod
    def optional_trimmed(cls, v: Any) -> Optional[str]:
        return _cell_to_text(v)

    @model_validator(mode="after")
    def derive_combined_code(self) -> "ClassificationRow":
        if not self.combined_code:
            self.combined_code = f"{self.fsmega_code} {self.fsfam_code} {self.fssfa_code}"
        return self


ROW_MODELS: dict[DatasetType, type[RowSchema]] = {
    DatasetType.MAPPING: MappingRow,
    DatasetType.CLASSIFICATION: ClassificationRow,
}


# ===================
# FIELD DEFINITIONS
# ===================

REQUIRED_FIELDS: dict[DatasetType, list[str]] = {
    DatasetType.MAPPING: ["segment", "marque", "cat_fab"],
    DatasetType.CLASSIFICATION: [
        "fsmega_code", "fsmega_designation",
        "fsfam_code", "fsfam_designation",
        "fssfa_code", "fssfa_designation",
    ],
}


def dataset_fields(dataset_type: DatasetType) -> list[str]:
    """All canonical field keys of a dataset, in declaration order."""
    return list(ROW_MODELS[dataset_type].model_fields.keys())
