"""Tests for ArchiveStore: round trip, ceilings, listing, atomic writes."""

import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from db_backup.backup.models import Archive, BackupMetadata
from db_backup.backup.store import ArchiveStore, deserialize_archive, serialize_archive
from db_backup.errors import (
    InvalidArchiveError,
    InvalidIdError,
    NotFoundError,
    SizeLimitExceededError,
    StorageError,
)

BASE = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _archive(name: str = "nightly", now: datetime = BASE, data: dict | None = None) -> Archive:
    if data is None:
        data = {
            "categories": [{"id": "c1", "name": "Basics"}],
            "cards": [{"id": "k1", "categoryId": "c1", "attack": 3}, {"id": "k2", "categoryId": None, "attack": 5}],
        }
    return Archive(
        metadata=BackupMetadata.new(name=name, description="test", created_by="admin-1", now=now),
        data=data,
    )


@pytest.fixture
def store(tmp_path) -> ArchiveStore:
    return ArchiveStore(tmp_path / "backups")


class TestRoundTrip:
    def test_save_then_load(self, store):
        archive = _archive()
        size = store.save(archive)
        loaded = store.load(archive.metadata.id)

        assert size == store.path_for(archive.metadata.id).stat().st_size
        assert loaded.metadata.id == archive.metadata.id
        assert loaded.metadata.created_at == BASE
        assert loaded.data == archive.data

    def test_table_order_preserved(self, store):
        data = {"zeta": [], "alpha": [{"id": "a"}], "mid": []}
        archive = _archive(data=data)
        store.save(archive)
        assert list(store.load(archive.metadata.id).data) == ["zeta", "alpha", "mid"]

    def test_temporal_and_decimal_values_encoded(self):
        archive = _archive(data={"events": [{
            "id": "e1",
            "at": datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone(timedelta(hours=2))),
            "day": date(2026, 1, 2),
            "whole": Decimal("7"),
            "ratio": Decimal("0.25"),
            "price": Decimal("12.34"),
            "exact": Decimal("0.1000000000000000000001"),
        }]})
        loaded = deserialize_archive(serialize_archive(archive))
        record = loaded.data["events"][0]
        assert record["at"] == "2026-01-02T01:04:05+00:00"
        assert record["day"] == "2026-01-02"
        assert record["whole"] == 7
        assert record["ratio"] == Decimal("0.25")
        assert record["price"] == Decimal("12.34")
        assert isinstance(record["price"], Decimal)
        assert record["exact"] == "0.1000000000000000000001"

    def test_metadata_on_second_line(self):
        lines = serialize_archive(_archive()).decode().splitlines()
        assert lines[0] == "{"
        head = json.loads(lines[1][len('"metadata": '):].rstrip(","))
        assert head["tableCounts"] == {"categories": 1, "cards": 2}
        assert head["version"] == "1.0"

    def test_file_is_plain_json(self, store):
        archive = _archive()
        store.save(archive)
        document = json.loads(store.path_for(archive.metadata.id).read_text())
        assert set(document) == {"metadata", "data"}
        assert document["metadata"]["createdBy"] == "admin-1"


class TestCeilingsAndErrors:
    def test_size_limit_leaves_no_files(self, tmp_path):
        store = ArchiveStore(tmp_path / "backups", max_bytes=64)
        with pytest.raises(SizeLimitExceededError) as exc_info:
            store.save(_archive())
        assert exc_info.value.limit_bytes == 64
        assert exc_info.value.status_code == 413
        directory = tmp_path / "backups"
        assert not directory.exists() or list(directory.iterdir()) == []

    def test_duplicate_id_rejected(self, store):
        archive = _archive()
        store.save(archive)
        with pytest.raises(StorageError, match="already exists"):
            store.save(archive)

    def test_no_temp_files_after_save(self, store):
        store.save(_archive())
        names = [p.name for p in store.directory.iterdir()]
        assert len(names) == 1
        assert names[0].endswith(".json")

    def test_load_missing(self, store):
        with pytest.raises(NotFoundError):
            store.load("backup-2026-01-01T00-00-00-000000Z")

    def test_delete_twice(self, store):
        archive = _archive()
        store.save(archive)
        store.delete(archive.metadata.id)
        with pytest.raises(NotFoundError):
            store.delete(archive.metadata.id)

    @pytest.mark.parametrize("bad_id", ["", "../secrets", "backup-../../x", "nightly", "backup-2026/01"])
    def test_invalid_ids(self, store, bad_id):
        with pytest.raises(InvalidIdError):
            store.load(bad_id)

    def test_corrupt_file(self, store):
        store.directory.mkdir(parents=True)
        path = store.directory / "backup-2026-01-01T00-00-00-000000Z.json"
        path.write_text("{ truncated")
        with pytest.raises(InvalidArchiveError):
            store.load("backup-2026-01-01T00-00-00-000000Z")

    def test_undecodable_file(self, store):
        store.directory.mkdir(parents=True)
        path = store.directory / "backup-2026-01-01T00-00-00-000000Z.json"
        path.write_bytes(b"\xff\xfe\x00garbage\n")
        with pytest.raises(InvalidArchiveError):
            store.load("backup-2026-01-01T00-00-00-000000Z")
        with pytest.raises(InvalidArchiveError):
            store.summarize(path)


class TestListing:
    def test_empty_when_directory_missing(self, store):
        assert store.list() == []

    def test_newest_first(self, store):
        for i, name in enumerate(["first", "second", "third"]):
            store.save(_archive(name=name, now=BASE + timedelta(hours=i)))
        assert [s.name for s in store.list()] == ["third", "second", "first"]

    def test_summary_counts(self, store):
        archive = _archive()
        store.save(archive)
        [summary] = store.list()
        assert summary.id == archive.metadata.id
        assert summary.table_count == 2
        assert summary.total_records == 3
        assert summary.size_bytes > 0

    def test_skips_unreadable_and_foreign_files(self, store):
        store.save(_archive())
        (store.directory / "backup-2026-01-01T00-00-00-000000Z.json").write_text("garbage")
        (store.directory / "backup-2020-01-01T00-00-00-000000Z.json").write_bytes(b"\xff\xfe\x00garbage\n")
        (store.directory / "notes.txt").write_text("hello")
        (store.directory / ".backup-x.tmp").write_text("partial")
        assert len(store.list()) == 1

    def test_full_parse_fallback(self, store):
        """Files without the compact metadata line are still listed."""
        store.directory.mkdir(parents=True)
        backup_id = "backup-2026-02-01T00-00-00-000000Z"
        document = {
            "metadata": {"id": backup_id, "name": "imported", "createdAt": "2026-02-01T00:00:00Z", "version": "1.0"},
            "data": {"categories": [{"id": "c1"}, {"id": "c2"}]},
        }
        (store.directory / f"{backup_id}.json").write_text(json.dumps(document, indent=2))
        [summary] = store.list()
        assert summary.name == "imported"
        assert summary.total_records == 2
