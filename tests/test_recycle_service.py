"""回收站测试：删除、恢复（含重名避让与回滚）、彻底删除与过期清理。"""

import io
from datetime import datetime, timedelta, timezone

import pytest

from hcloud.core.exceptions import ForbiddenError, NotFoundError, StorageIOError, ValidationError
from hcloud.crud.directory_entry import directory_entry_crud
from hcloud.crud.file_entry import file_entry_crud
from hcloud.crud.recycle_item import recycle_item_crud
from hcloud.services import recycle_service
from hcloud.services.recycle_service import RecycleBin, restore_candidate

OWNER = 1
T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _upload(files, db, name, payload=b"content", path="/", owner=OWNER):
    return files.upload(db, owner_id=owner, dir_path=path, filename=name, size=len(payload), stream=io.BytesIO(payload))


def _read(files, db, file_id):
    _, handle = files.open_file(db, owner_id=OWNER, file_id=file_id)
    with handle:
        return handle.read()


def test_report_lifecycle_until_purge(db, files, directories, recycle_bin: RecycleBin):
    directories.create_directory(db, owner_id=OWNER, parent_path="/", name="docs")
    entry = _upload(files, db, "report.pdf", b"x" * 2097152, path="/docs")

    record = recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=entry.id, now=T0)
    assert record.item_type == "file"
    assert record.original_path == "docs/report.pdf"
    assert record.size == 2097152
    assert files.list_directory(db, owner_id=OWNER, dir_path="/docs").files == []
    assert [r.id for r in recycle_bin.list_quarantined(db, owner_id=OWNER)] == [record.id]

    report = recycle_bin.purge_expired(db, now=T0 + timedelta(days=30))
    assert report.purged == 1
    assert not report.partial
    assert recycle_bin.list_quarantined(db, owner_id=OWNER) == []


def test_expire_at_follows_retention(db, files, recycle_bin: RecycleBin):
    entry = _upload(files, db, "a.txt")
    record = recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=entry.id, now=T0)
    expire_at = record.expire_at if record.expire_at.tzinfo else record.expire_at.replace(tzinfo=timezone.utc)
    assert expire_at == T0 + timedelta(days=30)


def test_restore_round_trip_without_collision(db, files, directories, recycle_bin: RecycleBin):
    directories.create_directory(db, owner_id=OWNER, parent_path="/", name="docs")
    entry = _upload(files, db, "a.txt", b"original", path="/docs")
    stored_path = entry.stored_path
    record = recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=entry.id)

    result = recycle_bin.restore(db, owner_id=OWNER, item_id=record.id)
    assert result.path == "/docs/a.txt"
    assert not result.renamed
    assert result.entry.stored_path == stored_path
    assert _read(files, db, result.entry.id) == b"original"
    assert recycle_item_crud.get(db, record.id) is None


def test_restore_with_collisions_increments_suffix(db, files, recycle_bin: RecycleBin):
    first = _upload(files, db, "report.pdf", b"v1")
    rec1 = recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=first.id)
    second = _upload(files, db, "report.pdf", b"v2")
    rec2 = recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=second.id)
    _upload(files, db, "report.pdf", b"v3")

    r1 = recycle_bin.restore(db, owner_id=OWNER, item_id=rec1.id)
    r2 = recycle_bin.restore(db, owner_id=OWNER, item_id=rec2.id)
    assert r1.path == "/report_恢复1.pdf"
    assert r2.path == "/report_恢复2.pdf"
    assert r1.renamed and r2.renamed

    by_name = {f.name: f for f in file_entry_crud.list_in_directory(db, owner_id=OWNER, directory_id=None)}
    assert _read(files, db, by_name["report.pdf"].id) == b"v3"
    assert _read(files, db, by_name["report_恢复1.pdf"].id) == b"v1"
    assert _read(files, db, by_name["report_恢复2.pdf"].id) == b"v2"


def test_restore_candidate_names():
    assert restore_candidate("report.pdf", 0, is_directory=False) == "report.pdf"
    assert restore_candidate("report.pdf", 2, is_directory=False) == "report_恢复2.pdf"
    assert restore_candidate("archive.tar.gz", 1, is_directory=False) == "archive.tar_恢复1.gz"
    assert restore_candidate("v1.2", 1, is_directory=True) == "v1.2_恢复1"


def test_restore_rolls_back_move_when_metadata_fails(db, files, engine, recycle_bin: RecycleBin, monkeypatch):
    entry = _upload(files, db, "a.txt")
    stored_path = entry.stored_path
    record = recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=entry.id)
    key = record.quarantine_path
    record_id = record.id

    def _boom(*args, **kwargs):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(file_entry_crud, "create", _boom)
    with pytest.raises(RuntimeError):
        recycle_bin.restore(db, owner_id=OWNER, item_id=record_id)

    assert engine.quarantine_exists(OWNER, key)
    assert not engine.file_exists(OWNER, stored_path)
    assert recycle_item_crud.get(db, record_id) is not None


def test_restore_when_parent_directory_is_gone(db, files, directories, recycle_bin: RecycleBin):
    folder = directories.create_directory(db, owner_id=OWNER, parent_path="/", name="tmp")
    entry = _upload(files, db, "a.txt", b"keep", path="/tmp")
    record = recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=entry.id)
    recycle_bin.quarantine_directory(db, owner_id=OWNER, directory_id=folder.id)

    result = recycle_bin.restore(db, owner_id=OWNER, item_id=record.id)
    assert result.path == "/a.txt"
    assert _read(files, db, result.entry.id) == b"keep"


def test_directory_quarantine_requires_empty_directory(db, files, directories, recycle_bin: RecycleBin):
    folder = directories.create_directory(db, owner_id=OWNER, parent_path="/", name="full")
    _upload(files, db, "a.txt", path="/full")
    with pytest.raises(ValidationError):
        recycle_bin.quarantine_directory(db, owner_id=OWNER, directory_id=folder.id)

    empty = directories.create_directory(db, owner_id=OWNER, parent_path="/", name="empty")
    record = recycle_bin.quarantine_directory(db, owner_id=OWNER, directory_id=empty.id)
    assert record.item_type == "directory"
    assert directory_entry_crud.get(db, empty.id) is None

    result = recycle_bin.restore(db, owner_id=OWNER, item_id=record.id)
    assert result.path == "/empty"
    assert directories.get_by_path(db, owner_id=OWNER, path="/empty") is not None


def test_mapped_directory_cannot_be_quarantined(db, directories, recycle_bin: RecycleBin, tmp_path):
    external = tmp_path / "ext"
    external.mkdir()
    entry = directories.map_directory(db, owner_id=OWNER, source_path=str(external), target_name="ext")
    with pytest.raises(ValidationError):
        recycle_bin.quarantine_directory(db, owner_id=OWNER, directory_id=entry.id)


def test_ownership_checks(db, files, recycle_bin: RecycleBin):
    entry = _upload(files, db, "a.txt")
    with pytest.raises(ForbiddenError):
        recycle_bin.quarantine_file(db, owner_id=2, file_id=entry.id)
    record = recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=entry.id)
    with pytest.raises(ForbiddenError):
        recycle_bin.restore(db, owner_id=2, item_id=record.id)
    with pytest.raises(ForbiddenError):
        recycle_bin.purge_one(db, owner_id=2, item_id=record.id)
    with pytest.raises(NotFoundError):
        recycle_bin.restore(db, owner_id=OWNER, item_id=9999)


def test_purge_one(db, files, engine, recycle_bin: RecycleBin):
    entry = _upload(files, db, "a.txt")
    record = recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=entry.id)
    key = record.quarantine_path
    record_id = record.id
    recycle_bin.purge_one(db, owner_id=OWNER, item_id=record_id)
    assert not engine.quarantine_exists(OWNER, key)
    assert recycle_item_crud.get(db, record_id) is None
    with pytest.raises(NotFoundError):
        recycle_bin.purge_one(db, owner_id=OWNER, item_id=record_id)


def test_purge_expired_boundaries(db, files, recycle_bin: RecycleBin):
    old = recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=_upload(files, db, "old.txt").id, now=T0)
    edge = recycle_bin.quarantine_file(
        db, owner_id=OWNER, file_id=_upload(files, db, "edge.txt").id, now=T0 + timedelta(days=1)
    )
    fresh = recycle_bin.quarantine_file(
        db, owner_id=OWNER, file_id=_upload(files, db, "fresh.txt").id, now=T0 + timedelta(days=2)
    )
    old_id, edge_id, fresh_id = old.id, edge.id, fresh.id

    # now 恰好等于 edge 的过期时间
    report = recycle_bin.purge_expired(db, now=T0 + timedelta(days=31))
    assert report.purged == 2
    remaining = [r.id for r in recycle_bin.list_quarantined(db, owner_id=OWNER)]
    assert remaining == [fresh_id]
    assert old_id not in remaining and edge_id not in remaining


def test_purge_expired_continues_past_failures(db, files, engine, recycle_bin: RecycleBin, monkeypatch):
    a = recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=_upload(files, db, "a.txt").id, now=T0)
    b = recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=_upload(files, db, "b.txt").id, now=T0)
    bad_key, good_key = a.quarantine_path, b.quarantine_path
    bad_id = a.id
    original = engine.remove_quarantined

    def _flaky(user_id, key):
        if key == bad_key:
            raise StorageIOError("disk error")
        return original(user_id, key)

    monkeypatch.setattr(engine, "remove_quarantined", _flaky)
    report = recycle_bin.purge_expired(db, now=T0 + timedelta(days=60))

    assert report.purged == 2
    assert report.partial
    assert [f.item_id for f in report.failures] == [bad_id]
    assert not engine.quarantine_exists(OWNER, good_key)
    assert recycle_bin.list_quarantined(db, owner_id=OWNER) == []


def test_empty_all_only_touches_owner(db, files, recycle_bin: RecycleBin):
    for name in ("a.txt", "b.txt"):
        recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=_upload(files, db, name).id)
    other = _upload(files, db, "c.txt", owner=2)
    recycle_bin.quarantine_file(db, owner_id=2, file_id=other.id)

    assert recycle_bin.empty_all(db, owner_id=OWNER) == 2
    assert recycle_bin.list_quarantined(db, owner_id=OWNER) == []
    assert len(recycle_bin.list_quarantined(db, owner_id=2)) == 1


def _capture_exception_logs(monkeypatch):
    logged = []
    monkeypatch.setattr(recycle_service.logger, "exception", lambda msg, *args: logged.append(msg % args))
    return logged


def test_failed_restore_rollback_keeps_original_error(db, files, engine, recycle_bin: RecycleBin, monkeypatch):
    entry = _upload(files, db, "a.txt")
    record = recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=entry.id)
    record_id, key = record.id, record.quarantine_path

    def _insert_failed(*args, **kwargs):
        raise RuntimeError("insert failed")

    def _disk_gone(*args, **kwargs):
        raise StorageIOError("磁盘不可用")

    monkeypatch.setattr(file_entry_crud, "create", _insert_failed)
    monkeypatch.setattr(engine, "return_to_quarantine", _disk_gone)
    logged = _capture_exception_logs(monkeypatch)

    with pytest.raises(RuntimeError, match="insert failed"):
        recycle_bin.restore(db, owner_id=OWNER, item_id=record_id)
    assert len(logged) == 1 and key in logged[0]


def test_failed_quarantine_rollback_keeps_original_error(db, files, engine, recycle_bin: RecycleBin, monkeypatch):
    entry = _upload(files, db, "a.txt")
    file_id, stored_path = entry.id, entry.stored_path

    def _insert_failed(*args, **kwargs):
        raise RuntimeError("insert failed")

    def _disk_gone(*args, **kwargs):
        raise StorageIOError("磁盘不可用")

    monkeypatch.setattr(recycle_item_crud, "create", _insert_failed)
    monkeypatch.setattr(engine, "restore_from_quarantine", _disk_gone)
    logged = _capture_exception_logs(monkeypatch)

    with pytest.raises(RuntimeError, match="insert failed"):
        recycle_bin.quarantine_file(db, owner_id=OWNER, file_id=file_id)
    assert len(logged) == 1 and stored_path in logged[0]
