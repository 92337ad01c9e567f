"""存储引擎测试：保存/读取、失败清理、目录映射、隔离区与容量统计。"""

import io
import os

import pytest

from hcloud.core.exceptions import NotFoundError, StorageIOError, ValidationError
from hcloud.services.storage_engine import StorageEngine, next_storage_stamp


class _FailingStream:
    """读出若干字节后抛出 I/O 错误，模拟中途断开的上传。"""

    def __init__(self, payload: bytes):
        self._buffer = io.BytesIO(payload)
        self._reads = 0

    def read(self, size=-1):
        self._reads += 1
        if self._reads > 1:
            raise OSError("connection reset")
        return self._buffer.read(size)


def _files_under(root):
    return sorted(
        os.path.relpath(os.path.join(dirpath, name), root)
        for dirpath, _, names in os.walk(root)
        for name in names
    )


@pytest.mark.parametrize("size", [0, 1, 4096, 3 * 1024 * 1024 + 7])
def test_save_then_get_round_trip(engine: StorageEngine, size):
    payload = os.urandom(size)
    saved = engine.save_file(1, "docs", "blob.bin", size, io.BytesIO(payload))

    assert saved.stored_path.startswith("docs/")
    assert saved.stored_path.endswith("_blob.bin")
    assert saved.size == size
    with engine.get_file(1, saved.stored_path) as handle:
        assert handle.read() == payload


def test_storage_keys_are_distinct_for_same_name(engine: StorageEngine):
    first = engine.save_file(1, "", "a.txt", 1, io.BytesIO(b"1"))
    second = engine.save_file(1, "", "a.txt", 1, io.BytesIO(b"2"))
    assert first.stored_path != second.stored_path
    assert next_storage_stamp() < next_storage_stamp()


def test_failed_stream_leaves_no_partial_file(engine: StorageEngine, layout):
    user_dir = layout.storage_root.resolve() / "user_1"
    with pytest.raises(StorageIOError):
        engine.save_file(1, "uploads", "big.bin", None, _FailingStream(b"x" * 2048))
    assert _files_under(user_dir) == []


def test_stream_longer_than_declared_is_rejected_and_cleaned(engine: StorageEngine, layout):
    with pytest.raises(ValidationError):
        engine.save_file(1, "", "a.txt", 3, io.BytesIO(b"too long"))
    assert _files_under(layout.storage_root.resolve() / "user_1") == []


def test_users_are_partitioned(engine: StorageEngine):
    saved = engine.save_file(1, "", "mine.txt", 2, io.BytesIO(b"hi"))
    with pytest.raises(NotFoundError):
        engine.get_file(2, saved.stored_path)


def test_traversal_never_escapes_user_root(engine: StorageEngine):
    with pytest.raises(ValidationError):
        engine.get_file(1, "../user_2/secret.txt")
    with pytest.raises(ValidationError):
        engine.save_file(1, "../../etc", "x.txt", 1, io.BytesIO(b"x"))


def test_delete_file(engine: StorageEngine):
    saved = engine.save_file(1, "", "gone.txt", 1, io.BytesIO(b"x"))
    engine.delete_file(1, saved.stored_path)
    assert not engine.file_exists(1, saved.stored_path)
    with pytest.raises(NotFoundError):
        engine.delete_file(1, saved.stored_path)


def test_create_directory_is_idempotent(engine: StorageEngine):
    assert engine.create_directory(1, "", "photos") == "photos"
    assert engine.create_directory(1, "", "photos") == "photos"
    assert engine.create_directory(1, "photos", "2024") == "photos/2024"
    assert engine.directory_exists(1, "photos/2024")


def test_list_directory_is_single_level(engine: StorageEngine):
    engine.create_directory(1, "", "a")
    engine.create_directory(1, "a", "nested")
    engine.save_file(1, "a", "f.txt", 3, io.BytesIO(b"abc"))

    items = {item.name: item for item in engine.list_directory(1, "a")}
    assert items["nested"].is_directory
    file_item = next(item for name, item in items.items() if name.endswith("_f.txt"))
    assert file_item.size == 3
    assert not file_item.is_directory
    assert len(items) == 2


def test_list_missing_directory(engine: StorageEngine):
    with pytest.raises(NotFoundError):
        engine.list_directory(1, "nope")


def test_map_and_unmap_directory(engine: StorageEngine, tmp_path):
    external = tmp_path / "external"
    external.mkdir()
    (external / "readme.txt").write_text("hello")

    link = engine.map_directory(1, str(external), "ext")
    assert link.is_symlink()
    names = [item.name for item in engine.list_directory(1, "ext", mapped=True)]
    assert names == ["readme.txt"]

    with pytest.raises(StorageIOError):
        engine.map_directory(1, str(external), "ext")

    engine.unmap_directory(1, "ext")
    assert not link.exists()
    assert (external / "readme.txt").exists()


def test_map_requires_existing_source(engine: StorageEngine, tmp_path):
    with pytest.raises(NotFoundError):
        engine.map_directory(1, str(tmp_path / "missing"), "ext")


def test_quarantine_round_trip(engine: StorageEngine):
    saved = engine.save_file(1, "", "q.txt", 1, io.BytesIO(b"q"))
    key = engine.move_to_quarantine(1, saved.stored_path, "q.txt")
    assert key.endswith("_q.txt")
    assert engine.quarantine_exists(1, key)
    assert not engine.file_exists(1, saved.stored_path)

    engine.restore_from_quarantine(1, key, saved.stored_path)
    assert engine.file_exists(1, saved.stored_path)

    engine.return_to_quarantine(1, saved.stored_path, key)
    engine.remove_quarantined(1, key)
    assert not engine.quarantine_exists(1, key)
    # 已删除的内容再次删除视为成功
    engine.remove_quarantined(1, key)


def test_system_storage_info(engine: StorageEngine):
    info = engine.get_system_storage_info()
    assert info.total > 0
    assert info.used == info.total - info.free
