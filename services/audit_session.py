"""
Audit session for import writes.

Every row mutation made by an import goes through an AuditSession. The
session sets the database audit context (current batch id and change
reason) on entry, clears it on exit, and stamps rows with the batch id on
tables that carry one. History triggers read that context to attribute
each change.

Usage:
    with AuditSession(batch_id, "mapping_import", batch_column="batch_id") as audit:
        audit.insert("brand_category_mappings", rows)
"""

from typing import Any, Optional

import structlog
from supabase import Client

from config import get_supabase_client
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


class AuditSession:
    """
    Write API bound to one (batch id, change reason) pair.
    """

    def __init__(
        self,
        batch_id: str,
        reason: str,
        batch_column: Optional[str] = None,
        client: Optional[Client] = None,
    ):
        self.batch_id = batch_id
        self.reason = reason
        self.batch_column = batch_column
        self.db = client or get_supabase_client()
        self.writes = 0

    def __enter__(self) -> "AuditSession":
        try:
            self.db.rpc("set_current_batch_id", {"batch_uuid": self.batch_id}).execute()
            self.db.rpc("set_change_reason", {"reason": self.reason}).execute()
        except Exception as e:
            logger.error(
                "audit_context_set_failed",
                batch_id=self.batch_id,
                reason=self.reason,
                error=str(e)
            )
            raise DatabaseError("rpc", str(e), details={"function": "set_current_batch_id"})

        logger.debug("audit_context_set", batch_id=self.batch_id, reason=self.reason)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            self.db.rpc("clear_audit_context", {}).execute()
            logger.debug("audit_context_cleared", batch_id=self.batch_id, writes=self.writes)
        except Exception as clear_err:
            # Never let cleanup replace the import's own outcome
            logger.warning(
                "audit_context_clear_failed",
                batch_id=self.batch_id,
                error=str(clear_err),
            )
        return False

    # ===================
    # WRITES
    # ===================

    def _stamp(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        if not self.batch_column:
            return rows
        return [{**row, self.batch_column: self.batch_id} for row in rows]

    def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict]:
        """Insert rows in one request."""
        if not rows:
            return []
        try:
            result = self.db.table(table).insert(self._stamp(rows)).execute()
        except Exception as e:
            logger.error("audited_insert_failed", table=table, batch_id=self.batch_id, rows=len(rows), error=str(e))
            raise DatabaseError("insert", str(e), details={"table": table, "batch_id": self.batch_id})
        self.writes += len(rows)
        return result.data or []

    def upsert(self, table: str, rows: list[dict[str, Any]], on_conflict: str) -> list[dict]:
        """Insert rows, updating those whose conflict target already exists."""
        if not rows:
            return []
        try:
            result = (
                self.db.table(table)
                .upsert(self._stamp(rows), on_conflict=on_conflict)
                .execute()
            )
        except Exception as e:
            logger.error("audited_upsert_failed", table=table, batch_id=self.batch_id, rows=len(rows), error=str(e))
            raise DatabaseError("upsert", str(e), details={"table": table, "batch_id": self.batch_id})
        self.writes += len(rows)
        return result.data or []

    def update(self, table: str, values: dict[str, Any], match: dict[str, Any]) -> list[dict]:
        """Update the rows whose columns equal every value of `match`."""
        payload = self._stamp([values])[0]
        try:
            query = self.db.table(table).update(payload)
            for column, value in match.items():
                query = query.eq(column, value)
            result = query.execute()
        except Exception as e:
            logger.error("audited_update_failed", table=table, batch_id=self.batch_id, match=match, error=str(e))
            raise DatabaseError("update", str(e), details={"table": table, "batch_id": self.batch_id})
        self.writes += 1
        return result.data or []

    def delete_all(self, table: str, key_column: str) -> None:
        """
        Purge a table.

        PostgREST refuses unfiltered deletes, so rows are matched on a
        non-null key column.
        """
        try:
            self.db.table(table).delete().not_.is_(key_column, "null").execute()
        except Exception as e:
            logger.error("audited_purge_failed", table=table, batch_id=self.batch_id, error=str(e))
            raise DatabaseError("delete", str(e), details={"table": table, "batch_id": self.batch_id})
        logger.info("table_purged", table=table, batch_id=self.batch_id)
