"""
Conflict resolution and merge.

Turns a diff item plus the user's decision into the row that gets written,
or None when the item is skipped.
"""

from typing import Any, Optional

import structlog

from models.imports import (
    DiffItem,
    DiffStatus,
    FieldChoice,
    Resolution,
    ResolutionAction,
)

logger = structlog.get_logger(__name__)

DEFAULT_RESOLUTION = Resolution(action=ResolutionAction.REPLACE)


def resolve_item(item: DiffItem, resolution: Optional[Resolution] = None) -> Optional[dict[str, Any]]:
    """
    Row to persist for one diff item.

    - unchanged: always skipped
    - create: keep skips, replace and merge write the imported row
    - update/conflict:
        keep    -> skipped
        replace -> stored row overlaid with the imported values
        merge   -> stored row, with each changed field taken from the import
                   only when its choice is "import"

    A missing resolution means replace.

    Returns:
        The merged row, or None when nothing should be written
    """
    resolution = resolution or DEFAULT_RESOLUTION

    if item.status == DiffStatus.UNCHANGED:
        return None

    if item.status == DiffStatus.CREATE:
        if resolution.action == ResolutionAction.KEEP:
            return None
        return dict(item.after)

    before = item.before or {}

    if resolution.action == ResolutionAction.KEEP:
        return None

    if resolution.action == ResolutionAction.REPLACE:
        return {**before, **item.after}

    merged = dict(before)
    for field in item.changed_fields:
        if resolution.field_choices.get(field) == FieldChoice.IMPORT:
            merged[field] = item.after.get(field)
    return merged


def partition_items(
    items: list[DiffItem],
    resolutions: dict[str, Resolution],
) -> tuple[list[dict[str, Any]], list[tuple[DiffItem, dict[str, Any]]], int]:
    """
    Split resolved items into rows to insert and rows to update.

    Returns:
        (rows to insert, [(item, merged row)] to update, skipped count)
    """
    to_insert: list[dict[str, Any]] = []
    to_update: list[tuple[DiffItem, dict[str, Any]]] = []
    skipped = 0

    for item in items:
        merged = resolve_item(item, resolutions.get(item.key))
        if merged is None:
            skipped += 1
        elif item.status == DiffStatus.CREATE:
            to_insert.append(merged)
        else:
            to_update.append((item, merged))

    return to_insert, to_update, skipped


class ResolutionStore:
    """
    Per-session resolutions keyed by natural key.
    """

    def __init__(self, resolutions: Optional[dict[str, Resolution]] = None):
        self._resolutions: dict[str, Resolution] = dict(resolutions or {})

    def set(self, key: str, resolution: Resolution) -> None:
        self._resolutions[key] = resolution

    def get(self, key: str) -> Resolution:
        return self._resolutions.get(key, DEFAULT_RESOLUTION)

    def clear(self) -> None:
        self._resolutions.clear()

    def bulk_resolve(
        self,
        items: list[DiffItem],
        status_filter: str,
        action: ResolutionAction,
    ) -> int:
        """
        Apply one action to every item whose status matches the filter.

        "all" matches every item. Items of other statuses keep their
        resolution.

        Returns:
            Number of items touched
        """
        touched = 0
        for item in items:
            if status_filter != "all" and item.status.value != status_filter:
                continue
            self._resolutions[item.key] = Resolution(action=action)
            touched += 1

        logger.info(
            "bulk_resolution_applied",
            status_filter=status_filter,
            action=action.value,
            touched=touched,
        )
        return touched

    def as_dict(self) -> dict[str, Resolution]:
        return dict(self._resolutions)
