"""
Unit tests for the exception hierarchy.
"""

import pytest

from tenantsync.exceptions import (
    BackupError,
    BackupNotFoundError,
    MigrationInProgressError,
    NotFoundError,
    PartialFailureError,
    RepairError,
    StoreError,
    TenantSyncError,
    ValidationError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc",
        [
            ValidationError("bad"),
            NotFoundError("Module", "m"),
            BackupNotFoundError("b"),
            PartialFailureError("some failed", {"a": "x"}),
            RepairError("r", "boom"),
            BackupError("t1", "boom"),
            MigrationInProgressError("t1"),
            StoreError("t", "read"),
        ],
    )
    def test_all_derive_from_base(self, exc: Exception) -> None:
        assert isinstance(exc, TenantSyncError)

    def test_backup_not_found_is_not_found(self) -> None:
        assert isinstance(BackupNotFoundError("b"), NotFoundError)


class TestMessages:
    def test_validation_error_field(self) -> None:
        exc = ValidationError("bad table", field="table")
        assert exc.field == "table"
        assert str(exc) == "bad table"

    def test_not_found(self) -> None:
        exc = BackupNotFoundError("backup-t1-1")
        assert str(exc) == "Backup not found: backup-t1-1"
        assert exc.kind == "Backup"
        assert exc.identifier == "backup-t1-1"

    def test_partial_failure(self) -> None:
        exc = PartialFailureError("Migration m-1 had failures", {"a": "x", "b": "y"})
        assert str(exc) == "Migration m-1 had failures (2 failed)"
        assert exc.failures == {"a": "x", "b": "y"}

    def test_in_progress(self) -> None:
        assert "already in progress" in str(MigrationInProgressError("t1")).lower()

    def test_store_error_details(self) -> None:
        assert str(StoreError("t", "write")) == "Store write failed on table t"
        assert str(StoreError("t", "write", "timeout")) == "Store write failed on table t: timeout"
