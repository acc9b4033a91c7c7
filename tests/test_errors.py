"""Tests for the error taxonomy and operation logging."""

import pytest
from loguru import logger

from db_backup.errors import (
    BackupError,
    DataRetrievalError,
    InvalidArchiveError,
    InvalidIdError,
    NotFoundError,
    RateLimitedError,
    SizeLimitExceededError,
    StorageError,
    UnauthorizedError,
    UnsupportedFormatError,
    UnsupportedValueError,
    ValidationError,
    format_error,
)
from db_backup.log import log_operation


class TestTaxonomy:
    @pytest.mark.parametrize(
        "error, code, status",
        [
            (UnauthorizedError("no"), "UNAUTHORIZED", 401),
            (ValidationError("bad"), "VALIDATION_ERROR", 400),
            (InvalidIdError("bad id"), "INVALID_ID", 400),
            (UnsupportedFormatError("xml"), "UNSUPPORTED_FORMAT", 400),
            (RateLimitedError("download", 3), "RATE_LIMITED", 429),
            (NotFoundError("gone"), "NOT_FOUND", 404),
            (SizeLimitExceededError(10, 5), "SIZE_LIMIT_EXCEEDED", 413),
            (DataRetrievalError("read failed", table="users"), "DATA_RETRIEVAL_ERROR", 500),
            (UnsupportedValueError("cards", "meta", {}), "UNSUPPORTED_VALUE", 500),
            (InvalidArchiveError(["x"]), "INVALID_ARCHIVE", 400),
            (StorageError("disk"), "STORAGE_ERROR", 500),
        ],
    )
    def test_codes_and_statuses(self, error, code, status):
        body, status_code = format_error(error)
        assert body["code"] == code
        assert status_code == status
        assert isinstance(error, BackupError)

    def test_id_and_format_errors_are_validation_errors(self):
        assert issubclass(InvalidIdError, ValidationError)
        assert issubclass(UnsupportedFormatError, ValidationError)

    def test_invalid_archive_lists_every_error(self):
        error = InvalidArchiveError(["a", "b"])
        assert error.to_dict() == {
            "error": "Invalid backup archive: a; b",
            "code": "INVALID_ARCHIVE",
            "details": ["a", "b"],
        }

    def test_size_limit_body(self):
        assert format_error(SizeLimitExceededError(10, 5))[0]["limitBytes"] == 5


class TestLogOperation:
    @pytest.fixture
    def records(self):
        captured: list = []
        handler_id = logger.add(captured.append, level="DEBUG", format="{message}")
        yield captured
        logger.remove(handler_id)

    def test_success_logged_at_info(self, records):
        log_operation("create_backup", {"operator": "admin-1", "duration_ms": 12})
        record = records[-1].record
        assert record["level"].name == "INFO"
        assert record["extra"]["operation"] == "create_backup"
        assert record["extra"]["operator"] == "admin-1"

    def test_caller_error_logged_at_warning(self, records):
        log_operation("export_sql", {"operator": "admin-1"}, error=NotFoundError("gone"))
        record = records[-1].record
        assert record["level"].name == "WARNING"
        assert record["extra"]["error_code"] == "NOT_FOUND"

    def test_internal_error_logged_at_error(self, records):
        log_operation("create_backup", {}, error=RuntimeError("boom"))
        record = records[-1].record
        assert record["level"].name == "ERROR"
        assert record["extra"]["error_code"] == "INTERNAL_ERROR"
