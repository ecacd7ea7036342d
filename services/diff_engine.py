"""
Diff engine.

Classifies each validated row against what is already stored:
unchanged, create, update (only non-sensitive fields differ) or conflict
(at least one sensitive field differs).
"""

from typing import Any, Optional

import structlog

from config import get_supabase_client
from config.datasets import get_dataset_config
from config.settings import settings
from exceptions import DatabaseError
from models.imports import DiffCounts, DiffItem, DiffResult, DiffStatus, ValidRow
from models.rows import DatasetType

logger = structlog.get_logger(__name__)


def natural_key(row: dict[str, Any], dataset_type: DatasetType) -> str:
    """
    Identity of a row inside its dataset.

    Mapping: "lower(marque)|upper(cat_fab)". Classification: combined_code.
    """
    if DatasetType(dataset_type) == DatasetType.MAPPING:
        marque = str(row.get("marque") or "").strip().lower()
        cat_fab = str(row.get("cat_fab") or "").strip().upper()
        return f"{marque}|{cat_fab}"
    return str(row.get("combined_code") or "").strip()


def _as_text(value: Any) -> str:
    # 1 and "1" compare equal, None and "" compare equal
    return "" if value is None else str(value)


def changed_fields(
    before: dict[str, Any],
    after: dict[str, Any],
    fields: tuple[str, ...],
) -> list[str]:
    """Tracked fields whose string forms differ."""
    return [f for f in fields if _as_text(before.get(f)) != _as_text(after.get(f))]


def classify_row(
    after: dict[str, Any],
    before: Optional[dict[str, Any]],
    dataset_type: DatasetType,
) -> DiffItem:
    """Build the diff item of one validated row."""
    config = get_dataset_config(dataset_type)
    key = natural_key(after, dataset_type)

    if before is None:
        return DiffItem(key=key, status=DiffStatus.CREATE, after=after)

    changed = changed_fields(before, after, config.tracked_fields)
    if not changed:
        status = DiffStatus.UNCHANGED
    elif any(f in config.sensitive_fields for f in changed):
        status = DiffStatus.CONFLICT
    else:
        status = DiffStatus.UPDATE

    return DiffItem(key=key, status=status, before=before, after=after, changed_fields=changed)


def compute_diff(
    valid_rows: list[ValidRow],
    existing_by_key: dict[str, dict[str, Any]],
    dataset_type: DatasetType,
) -> DiffResult:
    """
    Diff validated rows against existing rows.

    Args:
        valid_rows: Rows that passed validation (input order is kept)
        existing_by_key: Stored rows indexed by natural key
        dataset_type: Dataset being imported

    Returns:
        DiffResult with per-status counts and one item per row
    """
    result = DiffResult()
    counts = DiffCounts()

    for valid in valid_rows:
        key = natural_key(valid.data, dataset_type)
        item = classify_row(valid.data, existing_by_key.get(key), dataset_type)
        result.items.append(item)
        setattr(counts, item.status.value, getattr(counts, item.status.value) + 1)

    result.counts = counts
    logger.info(
        "diff_computed",
        dataset_type=DatasetType(dataset_type).value,
        **counts.model_dump(),
    )
    return result


class ExistingRowRepository:
    """
    Reads the stored rows an import is compared against.
    """

    def __init__(self):
        self.db = get_supabase_client()

    def fetch_by_keys(
        self,
        keys: list[str],
        dataset_type: DatasetType,
    ) -> dict[str, dict[str, Any]]:
        """
        Fetch stored rows for a set of natural keys.

        Keys are deduplicated and queried in pages on the dataset's lookup
        column. Mapping lookups go by cat_fab, so rows of other brands can
        come back; the natural key is recomputed locally and only requested
        keys are kept.

        Args:
            keys: Natural keys of the imported rows
            dataset_type: Dataset being imported

        Returns:
            {natural key: stored row}

        Raises:
            DatabaseError: If a page query fails
        """
        config = get_dataset_config(dataset_type)
        wanted = set(keys)
        if not wanted:
            return {}

        if config.dataset_type == DatasetType.MAPPING:
            lookup_values = sorted({k.split("|", 1)[1] for k in wanted})
        else:
            lookup_values = sorted(wanted)

        page_size = settings.lookup_page_size
        existing: dict[str, dict[str, Any]] = {}

        for start in range(0, len(lookup_values), page_size):
            page = lookup_values[start:start + page_size]
            try:
                result = (
                    self.db.table(config.table)
                    .select("*")
                    .in_(config.lookup_column, page)
                    .execute()
                )
            except Exception as e:
                logger.error(
                    "existing_rows_fetch_failed",
                    table=config.table,
                    page_start=start,
                    error=str(e)
                )
                raise DatabaseError("select", str(e), details={"table": config.table})

            for row in result.data or []:
                key = natural_key(row, dataset_type)
                if key in wanted:
                    existing[key] = row

        logger.info(
            "existing_rows_fetched",
            table=config.table,
            requested=len(wanted),
            found=len(existing),
            pages=-(-len(lookup_values) // page_size),
        )
        return existing


_repository: Optional[ExistingRowRepository] = None


def get_existing_row_repository() -> ExistingRowRepository:
    global _repository
    if _repository is None:
        _repository = ExistingRowRepository()
    return _repository
