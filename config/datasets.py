"""
Dataset table configuration.

Describes, per importable dataset, where rows live and how they are keyed,
compared and written.
"""

from dataclasses import dataclass
from typing import Optional

from models.rows import DatasetType


# Columns the database computes itself; never sent in update payloads
GENERATED_COLUMNS = frozenset({
    "id",
    "classif_cir",
    "natural_key",
    "created_at",
    "updated_at",
    "created_by",
    "batch_id",
    "version",
})


@dataclass(frozen=True)
class DatasetConfig:
    """Static description of one dataset's table."""
    dataset_type: DatasetType
    table: str
    key_columns: tuple[str, ...]          # natural key constituents, also the upsert target
    lookup_column: str                    # column filtered with IN(...) when fetching existing rows
    sensitive_fields: tuple[str, ...]     # mismatch => conflict
    non_sensitive_fields: tuple[str, ...] # mismatch => update
    change_reason: str                    # audit reason for wizard and job writes
    replace_reason: str                   # audit reason for replace-all imports
    batch_column: Optional[str] = None    # column stamped with the batch id, if the table has one
    source_type: Optional[str] = None     # value of source_type on rows written by imports

    @property
    def tracked_fields(self) -> tuple[str, ...]:
        return self.sensitive_fields + self.non_sensitive_fields

    @property
    def conflict_target(self) -> str:
        return ",".join(self.key_columns)


MAPPING_CONFIG = DatasetConfig(
    dataset_type=DatasetType.MAPPING,
    table="brand_category_mappings",
    key_columns=("marque", "cat_fab"),
    lookup_column="cat_fab",
    sensitive_fields=("segment", "marque", "cat_fab", "strategiq", "fsmega", "fsfam", "fssfa"),
    non_sensitive_fields=("cat_fab_l", "codif_fair"),
    change_reason="mapping_import",
    replace_reason="cir_segment_import",
    batch_column="batch_id",
    source_type="excel_upload",
)

# Classification has no sensitive split: every difference is an update
CLASSIFICATION_CONFIG = DatasetConfig(
    dataset_type=DatasetType.CLASSIFICATION,
    table="cir_classifications",
    key_columns=("combined_code",),
    lookup_column="combined_code",
    sensitive_fields=(),
    non_sensitive_fields=(
        "fsmega_code", "fsmega_designation",
        "fsfam_code", "fsfam_designation",
        "fssfa_code", "fssfa_designation",
        "combined_code", "combined_designation",
    ),
    change_reason="classification_import",
    replace_reason="cir_classification_import",
)

DATASETS: dict[DatasetType, DatasetConfig] = {
    DatasetType.MAPPING: MAPPING_CONFIG,
    DatasetType.CLASSIFICATION: CLASSIFICATION_CONFIG,
}


def get_dataset_config(dataset_type: DatasetType) -> DatasetConfig:
    return DATASETS[DatasetType(dataset_type)]
