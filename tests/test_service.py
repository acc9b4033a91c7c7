"""Service-level scenarios for BackupService.

Uses an AsyncMock adapter, a tmp_path store and a fake clock for the
rate limiter.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from loguru import logger

from db_backup.backup.collector import SnapshotCollector
from db_backup.backup.models import Archive, BackupMetadata, Operator, is_valid_backup_id
from db_backup.backup.registry import ColumnDef, ForeignKey, TableDef, TableRegistry
from db_backup.backup.store import ArchiveStore
from db_backup.errors import (
    BackupError,
    DataRetrievalError,
    InvalidArchiveError,
    InvalidIdError,
    NotFoundError,
    RateLimitedError,
    SizeLimitExceededError,
    UnauthorizedError,
    UnsupportedFormatError,
    ValidationError,
    format_error,
)
from db_backup.rate_limit import CREATE_BACKUP, DOWNLOAD, RateLimiter
from db_backup.service import BackupService, export_filename


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _sample_registry() -> TableRegistry:
    return TableRegistry(
        tables=[
            TableDef(
                name="users",
                columns=[ColumnDef.pk(), ColumnDef(name="email"), ColumnDef(name="passwordHash")],
            ),
            TableDef(name="categories", columns=[ColumnDef.pk(), ColumnDef(name="name")]),
            TableDef(
                name="cards",
                columns=[ColumnDef.pk(), ColumnDef(name="categoryId"), ColumnDef(name="name")],
                foreign_keys=[ForeignKey(table="categories", field="categoryId")],
            ),
        ]
    )


ROWS = {
    "users": [{"id": "u1", "email": "a@example.com", "passwordHash": "$2b$10$abc"}],
    "categories": [{"id": "c1", "name": "Basics"}],
    "cards": [{"id": "k1", "categoryId": "c1", "name": "Hello, World"}],
}


def _make_mock_adapter(fail: str | None = None) -> AsyncMock:
    adapter = AsyncMock()

    async def _select(table, columns="*"):
        if table == fail:
            raise TimeoutError("statement timeout")
        return [dict(r) for r in ROWS[table]]

    adapter.select = AsyncMock(side_effect=_select)
    adapter.close = AsyncMock()
    return adapter


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def admin() -> Operator:
    return Operator(id="admin-1")


@pytest.fixture
def adapter() -> AsyncMock:
    return _make_mock_adapter()


@pytest.fixture
def service(tmp_path, clock, adapter) -> BackupService:
    registry = _sample_registry()
    return BackupService(
        collector=SnapshotCollector(adapter, registry),
        store=ArchiveStore(tmp_path / "backups"),
        rate_limiter=RateLimiter({CREATE_BACKUP: 30, DOWNLOAD: 10}, clock=clock),
        registry=registry,
        max_export_records=1000,
    )


def _archive_files(service: BackupService) -> list[str]:
    if not service.store.directory.exists():
        return []
    return sorted(p.name for p in service.store.directory.iterdir())


# ------------------------------------------------------------------
# create_backup
# ------------------------------------------------------------------


class TestCreateBackup:
    async def test_creates_archive(self, service, admin):
        result = await service.create_backup(admin, "nightly", "before migration")

        assert is_valid_backup_id(result.id)
        assert result.name == "nightly"
        assert result.description == "before migration"
        assert result.table_count == 3
        assert result.total_records == 3
        assert result.size_bytes > 0
        assert _archive_files(service) == [f"{result.id}.json"]

    async def test_archive_is_sanitized_and_ordered(self, service, admin):
        result = await service.create_backup(admin, "nightly")
        archive = service.store.load(result.id)
        assert list(archive.data) == ["users", "categories", "cards"]
        assert "passwordHash" not in archive.data["users"][0]
        assert archive.metadata.created_by == "admin-1"

    async def test_name_is_trimmed(self, service, admin):
        result = await service.create_backup(admin, "  weekly  ")
        assert result.name == "weekly"

    async def test_success_logged_with_backup_name(self, service, admin):
        captured: list = []
        handler_id = logger.add(captured.append, level="DEBUG", format="{message}")
        try:
            result = await service.create_backup(admin, "nightly")
        finally:
            logger.remove(handler_id)

        extras = [m.record["extra"] for m in captured if m.record["extra"].get("operation") == "create_backup"]
        assert extras[-1]["name"] == "nightly"
        assert extras[-1]["backup_id"] == result.id
        assert extras[-1]["operator"] == "admin-1"

    async def test_second_call_inside_cooldown_is_limited(self, service, admin, clock):
        await service.create_backup(admin, "first")
        clock.advance(5)

        with pytest.raises(RateLimitedError) as exc_info:
            await service.create_backup(admin, "second")

        assert 0 < exc_info.value.retry_after <= 30
        assert len(_archive_files(service)) == 1

    async def test_second_call_after_cooldown_succeeds(self, service, admin, clock):
        await service.create_backup(admin, "first")
        clock.advance(30)
        await service.create_backup(admin, "second")
        assert len(_archive_files(service)) == 2

    @pytest.mark.parametrize("name", ["", "   ", "bad/name", "semi;colon", "x" * 101])
    async def test_invalid_name_rejected_before_io(self, service, admin, adapter, name):
        with pytest.raises(ValidationError):
            await service.create_backup(admin, name)
        adapter.select.assert_not_awaited()
        assert service.rate_limiter.can_perform(admin.id, CREATE_BACKUP)

    async def test_description_too_long(self, service, admin):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_backup(admin, "nightly", "d" * 501)
        assert exc_info.value.details

    async def test_non_admin_rejected(self, service, adapter):
        with pytest.raises(UnauthorizedError):
            await service.create_backup(Operator(id="u1", role="user"), "nightly")
        adapter.select.assert_not_awaited()

    async def test_missing_operator_rejected(self, service):
        with pytest.raises(UnauthorizedError):
            await service.create_backup(None, "nightly")

    async def test_read_failure_saves_nothing(self, tmp_path, clock, admin):
        registry = _sample_registry()
        service = BackupService(
            SnapshotCollector(_make_mock_adapter(fail="cards"), registry),
            ArchiveStore(tmp_path / "backups"),
            RateLimiter(clock=clock),
            registry,
        )
        with pytest.raises(DataRetrievalError) as exc_info:
            await service.create_backup(admin, "nightly")
        assert exc_info.value.table == "cards"
        assert _archive_files(service) == []

    async def test_size_ceiling(self, tmp_path, clock, admin, adapter):
        registry = _sample_registry()
        service = BackupService(
            SnapshotCollector(adapter, registry),
            ArchiveStore(tmp_path / "backups", max_bytes=100),
            RateLimiter(clock=clock),
            registry,
        )
        with pytest.raises(SizeLimitExceededError):
            await service.create_backup(admin, "nightly")
        assert _archive_files(service) == []

    async def test_unexpected_error_wrapped_with_step(self, service, admin):
        service.store = MagicMock(spec=ArchiveStore)
        service.store.save.side_effect = RuntimeError("disk on fire")

        with pytest.raises(BackupError) as exc_info:
            await service.create_backup(admin, "nightly")

        assert type(exc_info.value) is BackupError
        assert "save" in exc_info.value.message
        assert "disk on fire" not in exc_info.value.message
        assert isinstance(exc_info.value.__cause__, RuntimeError)


# ------------------------------------------------------------------
# list / get / delete / validate
# ------------------------------------------------------------------


class TestManageBackups:
    async def test_list_newest_first(self, service, admin, clock):
        first = await service.create_backup(admin, "first")
        clock.advance(30)
        second = await service.create_backup(admin, "second")

        summaries = service.list_backups(admin)
        assert [s.id for s in summaries] == [second.id, first.id]

    def test_list_empty(self, service, admin):
        assert service.list_backups(admin) == []

    async def test_get_backup(self, service, admin):
        result = await service.create_backup(admin, "nightly")
        summary = service.get_backup(admin, result.id)
        assert summary.total_records == 3

    def test_get_missing(self, service, admin):
        with pytest.raises(NotFoundError):
            service.get_backup(admin, "backup-2026-01-01T00-00-00-000000Z")

    async def test_delete_twice(self, service, admin):
        result = await service.create_backup(admin, "nightly")
        service.delete_backup(admin, result.id)
        with pytest.raises(NotFoundError):
            service.delete_backup(admin, result.id)
        assert _archive_files(service) == []

    def test_delete_invalid_id(self, service, admin):
        with pytest.raises(InvalidIdError):
            service.delete_backup(admin, "../backup.toml")

    async def test_validate_backup(self, service, admin):
        result = await service.create_backup(admin, "nightly")
        report = service.validate_backup(admin, result.id)
        assert report["valid"] is True
        assert report["warnings"] == []

    def test_list_wraps_unexpected_errors(self, service, admin):
        service.store = MagicMock(spec=ArchiveStore)
        service.store.list.side_effect = PermissionError("denied")
        with pytest.raises(BackupError, match="during list"):
            service.list_backups(admin)


# ------------------------------------------------------------------
# export_sql
# ------------------------------------------------------------------


class TestExportSQL:
    async def test_complete_export(self, service, admin):
        result = await service.create_backup(admin, "nightly")
        export = await service.export_sql(admin, result.id)

        assert export.filename == f"{result.id}.sql"
        assert export.content_type == "application/sql"
        assert 'CREATE TABLE "cards"' in export.content
        assert "'Hello, World'" in export.content

    async def test_typed_filename(self, service, admin):
        result = await service.create_backup(admin, "nightly")
        export = await service.export_sql(admin, result.id, "data")
        assert export.filename == f"{result.id}_data.sql"
        assert "CREATE TABLE" not in export.content

    async def test_download_rate_limited(self, service, admin, clock):
        result = await service.create_backup(admin, "nightly")
        await service.export_sql(admin, result.id, "structure")
        with pytest.raises(RateLimitedError):
            await service.export_sql(admin, result.id, "structure")
        clock.advance(10)
        await service.export_sql(admin, result.id, "structure")

    async def test_invalid_id_checked_before_rate_limit(self, service, admin):
        with pytest.raises(InvalidIdError):
            await service.export_sql(admin, "../../etc/passwd")
        assert service.rate_limiter.can_perform(admin.id, DOWNLOAD)

    async def test_unsupported_type(self, service, admin):
        with pytest.raises(UnsupportedFormatError) as exc_info:
            await service.export_sql(admin, "backup-2026-01-01T00-00-00-000000Z", "xml")
        body, status = format_error(exc_info.value)
        assert status == 400
        assert body["code"] == "UNSUPPORTED_FORMAT"

    async def test_missing_archive(self, service, admin):
        with pytest.raises(NotFoundError):
            await service.export_sql(admin, "backup-2026-01-01T00-00-00-000000Z")

    async def test_missing_referenced_table_is_invalid(self, service, admin):
        """An archive whose cards reference a categories table it lacks."""
        archive = Archive(
            metadata=BackupMetadata.new(name="partial", created_by=admin.id),
            data={"users": [], "cards": [{"id": "k1", "categoryId": "c1", "name": "x"}]},
        )
        service.store.save(archive)

        with pytest.raises(InvalidArchiveError) as exc_info:
            await service.export_sql(admin, archive.metadata.id, "data")

        assert "Missing referenced table: categories" in exc_info.value.errors
        assert format_error(exc_info.value)[1] == 400

    async def test_record_ceiling(self, service, admin):
        service.max_export_records = 2
        result = await service.create_backup(admin, "nightly")
        with pytest.raises(InvalidArchiveError, match="too large"):
            await service.export_sql(admin, result.id)

    async def test_export_matches_before_and_after_reload(self, service, admin, clock):
        """Two exports of the same stored archive are byte-identical."""
        result = await service.create_backup(admin, "nightly")
        first = await service.export_sql(admin, result.id, "data")
        clock.advance(10)
        second = await service.export_sql(admin, result.id, "data")
        assert first.content == second.content


class TestExportFilename:
    def test_complete(self):
        assert export_filename("backup-1Z", "complete") == "backup-1Z.sql"

    def test_typed(self):
        assert export_filename("backup-1Z", "structure") == "backup-1Z_structure.sql"


class TestFormatError:
    def test_rate_limited_body(self):
        body, status = format_error(RateLimitedError(CREATE_BACKUP, retry_after=12))
        assert status == 429
        assert body["code"] == "RATE_LIMITED"
        assert body["retryAfter"] == 12

    def test_unknown_error_hides_detail(self):
        body, status = format_error(KeyError("internal_table_name"))
        assert status == 500
        assert body == {"error": "An unexpected error occurred", "code": "INTERNAL_ERROR"}
        assert "internal_table_name" not in json.dumps(body)
