"""
Unit tests for ImportBatchService and batch status rules.

Run: pytest tests/unit/test_import_batch_service.py -v
"""

import pytest

from exceptions import (
    BatchNotFoundError,
    DatabaseError,
    InvalidStatusTransitionError,
)
from models.batch import (
    BatchStatus,
    ImportBatchCreate,
    is_valid_batch_status_transition,
)
from services.import_batch_service import ImportBatchService, get_import_batch_service

from tests.factories import ImportBatchFactory


class TestBatchStatusTransitionValidation:
    """Tests for is_valid_batch_status_transition()"""

    @pytest.mark.parametrize("current,new", [
        (BatchStatus.PENDING, BatchStatus.PROCESSING),
        (BatchStatus.PENDING, BatchStatus.FAILED),
        (BatchStatus.PROCESSING, BatchStatus.PROCESSING),
        (BatchStatus.PROCESSING, BatchStatus.COMPLETED),
        (BatchStatus.PROCESSING, BatchStatus.FAILED),
    ])
    def test_allowed(self, current, new):
        assert is_valid_batch_status_transition(current, new) is True

    @pytest.mark.parametrize("current,new", [
        (BatchStatus.PENDING, BatchStatus.COMPLETED),
        (BatchStatus.COMPLETED, BatchStatus.PROCESSING),
        (BatchStatus.COMPLETED, BatchStatus.FAILED),
        (BatchStatus.FAILED, BatchStatus.PROCESSING),
        (BatchStatus.PROCESSING, BatchStatus.PENDING),
    ])
    def test_refused(self, current, new):
        assert is_valid_batch_status_transition(current, new) is False


class TestImportBatchServiceRead:
    """Tests for get() and get_all()"""

    def test_get_returns_batch(self, mock_db, mock_supabase):
        batch = ImportBatchFactory.create(status="processing", processed_lines=10)
        mock_supabase.set_table_data("import_batches", [batch])

        result = ImportBatchService().get(batch["id"])

        assert result.id == batch["id"]
        assert result.status == BatchStatus.PROCESSING
        assert result.processed_lines == 10

    def test_get_missing_raises_not_found(self, mock_db, mock_supabase):
        with pytest.raises(BatchNotFoundError) as exc_info:
            ImportBatchService().get("missing")

        assert exc_info.value.status_code == 404

    def test_get_all_filters_and_orders(self, mock_db, mock_supabase):
        """Should return the newest batches first, filtered by status."""
        # Arrange
        mock_supabase.set_table_data("import_batches", [
            ImportBatchFactory.create(id="old", status="completed", created_at="2026-01-01T00:00:00Z"),
            ImportBatchFactory.create(id="new", status="completed", created_at="2026-03-01T00:00:00Z"),
            ImportBatchFactory.create(id="failed", status="failed", created_at="2026-02-01T00:00:00Z"),
        ])

        # Act
        batches, total = ImportBatchService().get_all(status=BatchStatus.COMPLETED)

        # Assert
        assert [b.id for b in batches] == ["new", "old"]
        assert total == 2

    def test_get_all_paginates(self, mock_db, mock_supabase):
        mock_supabase.set_table_data(
            "import_batches",
            [ImportBatchFactory.create() for _ in range(5)],
        )

        batches, total = ImportBatchService().get_all(page=2, page_size=2)

        assert len(batches) == 2
        assert total == 5


class TestImportBatchServiceWrite:
    """Tests for create(), transition() and progress"""

    def test_create_starts_pending(self, mock_db, mock_supabase):
        # Arrange
        data = ImportBatchCreate(
            filename="mappings.xlsx",
            user_id="user-1",
            dataset_type="mapping",
            total_lines=42,
            diff_summary={"create": 40, "update": 2},
        )

        # Act
        batch = ImportBatchService().create(data)

        # Assert
        assert batch.status == BatchStatus.PENDING
        assert batch.total_lines == 42
        assert batch.processed_lines == 0
        stored = mock_supabase.tables["import_batches"][0]
        assert stored["user_id"] == "user-1"
        assert stored["diff_summary"] == {"create": 40, "update": 2}

    def test_create_keeps_given_id(self, mock_db, mock_supabase):
        data = ImportBatchCreate(id="b-1", filename="f.csv", user_id="u", dataset_type="mapping")

        batch = ImportBatchService().create(data)

        assert batch.id == "b-1"

    def test_transition_writes_status_and_fields(self, mock_db, mock_supabase):
        batch = ImportBatchFactory.create(status="processing")
        mock_supabase.set_table_data("import_batches", [batch])

        result = ImportBatchService().transition(
            batch["id"], BatchStatus.COMPLETED, processed_lines=3, created_count=3,
        )

        assert result.status == BatchStatus.COMPLETED
        assert result.created_count == 3
        stored = mock_supabase.tables["import_batches"][0]
        assert stored["status"] == "completed"
        assert stored["processed_lines"] == 3

    def test_transition_from_terminal_is_refused(self, mock_db, mock_supabase):
        batch = ImportBatchFactory.create(status="completed")
        mock_supabase.set_table_data("import_batches", [batch])

        with pytest.raises(InvalidStatusTransitionError):
            ImportBatchService().transition(batch["id"], BatchStatus.PROCESSING)

        assert mock_supabase.calls_for("import_batches", "update") == []

    def test_update_progress(self, mock_db, mock_supabase):
        batch = ImportBatchFactory.create(status="processing")
        mock_supabase.set_table_data("import_batches", [batch])

        ImportBatchService().update_progress(batch["id"], 500)

        assert mock_supabase.tables["import_batches"][0]["processed_lines"] == 500

    def test_update_progress_failure_raises(self, mock_db, mock_supabase):
        mock_supabase.fail_on("import_batches", "update")

        with pytest.raises(DatabaseError):
            ImportBatchService().update_progress("b-1", 1)


class TestMarkFailed:
    """Tests for mark_failed()"""

    def test_marks_processing_batch_failed(self, mock_db, mock_supabase):
        batch = ImportBatchFactory.create(status="processing")
        mock_supabase.set_table_data("import_batches", [batch])

        ImportBatchService().mark_failed(batch["id"], "boom")

        stored = mock_supabase.tables["import_batches"][0]
        assert stored["status"] == "failed"
        assert stored["comment"] == "boom"

    def test_terminal_batch_is_left_alone(self, mock_db, mock_supabase):
        batch = ImportBatchFactory.create(status="completed")
        mock_supabase.set_table_data("import_batches", [batch])

        ImportBatchService().mark_failed(batch["id"], "late error")

        assert mock_supabase.tables["import_batches"][0]["status"] == "completed"

    def test_never_raises(self, mock_db, mock_supabase):
        """Should swallow its own failures so the original error surfaces."""
        mock_supabase.fail_on("import_batches", "select")

        ImportBatchService().mark_failed("b-1", "boom")


class TestRollback:
    """Tests for rollback()"""

    def test_rollback_completed_batch_calls_rpc(self, mock_db, mock_supabase):
        batch = ImportBatchFactory.create(status="completed")
        mock_supabase.set_table_data("import_batches", [batch])

        ImportBatchService().rollback(batch["id"])

        assert mock_supabase.rpc_calls == [("rollback_import_batch", {"p_batch_id": batch["id"]})]

    @pytest.mark.parametrize("status", ["pending", "processing", "failed"])
    def test_rollback_requires_completed(self, mock_db, mock_supabase, status):
        batch = ImportBatchFactory.create(status=status)
        mock_supabase.set_table_data("import_batches", [batch])

        with pytest.raises(InvalidStatusTransitionError):
            ImportBatchService().rollback(batch["id"])

        assert mock_supabase.rpc_calls == []

    def test_rollback_rpc_failure_raises(self, mock_db, mock_supabase):
        batch = ImportBatchFactory.create(status="completed")
        mock_supabase.set_table_data("import_batches", [batch])
        mock_supabase.rpc_failures.add("rollback_import_batch")

        with pytest.raises(DatabaseError):
            ImportBatchService().rollback(batch["id"])


class TestSingleton:
    def test_get_import_batch_service_is_cached(self, mock_db):
        assert get_import_batch_service() is get_import_batch_service()
