"""目录服务测试：创建冲突、并发失败方、重命名与映射。"""

import io

import pytest

from hcloud.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from hcloud.crud.directory_entry import directory_entry_crud
from hcloud.services.directory_service import DirectoryService

OWNER = 1


def test_create_directory_records_entry_and_physical_dir(db, directories: DirectoryService, engine):
    entry = directories.create_directory(db, owner_id=OWNER, parent_path="/", name="photos")
    assert entry.path == "photos"
    assert entry.parent_id is None
    assert engine.directory_exists(OWNER, entry.storage_path)

    child = directories.create_directory(db, owner_id=OWNER, parent_path="/photos/", name="2024")
    assert child.path == "photos/2024"
    assert child.parent_id == entry.id


def test_duplicate_logical_directory_conflicts(db, directories: DirectoryService):
    directories.create_directory(db, owner_id=OWNER, parent_path="/", name="photos")
    with pytest.raises(ConflictError):
        directories.create_directory(db, owner_id=OWNER, parent_path="/", name="photos")


def test_losing_concurrent_insert_gets_conflict(db, directories: DirectoryService, engine, monkeypatch):
    directories.create_directory(db, owner_id=OWNER, parent_path="/", name="photos")
    # 模拟另一个请求在预检查之后抢先插入：预检查放行，唯一约束拒绝
    monkeypatch.setattr(DirectoryService, "name_taken", lambda self, db, **kwargs: False)

    with pytest.raises(ConflictError):
        directories.create_directory(db, owner_id=OWNER, parent_path="/", name="photos")

    rows = directory_entry_crud.list_by_owner(db, owner_id=OWNER)
    assert [row.path for row in rows] == ["photos"]
    physical = [item.name for item in engine.list_directory(OWNER, "")]
    assert physical == ["photos"]


def test_same_name_for_different_users(db, directories: DirectoryService):
    directories.create_directory(db, owner_id=1, parent_path="/", name="photos")
    other = directories.create_directory(db, owner_id=2, parent_path="/", name="photos")
    assert other.owner_id == 2


def test_create_under_missing_parent(db, directories: DirectoryService):
    with pytest.raises(NotFoundError):
        directories.create_directory(db, owner_id=OWNER, parent_path="/missing", name="x")


def test_invalid_names_rejected(db, directories: DirectoryService):
    with pytest.raises(ValidationError):
        directories.create_directory(db, owner_id=OWNER, parent_path="/", name="../evil")
    with pytest.raises(ValidationError):
        directories.create_directory(db, owner_id=OWNER, parent_path="/../", name="ok")


def test_rename_is_logical_and_rewrites_descendants(db, directories: DirectoryService):
    top = directories.create_directory(db, owner_id=OWNER, parent_path="/", name="docs")
    mid = directories.create_directory(db, owner_id=OWNER, parent_path="/docs", name="2024")
    leaf = directories.create_directory(db, owner_id=OWNER, parent_path="/docs/2024", name="q1")
    # 名称中的下划线不能被当作通配符误匹配
    sibling = directories.create_directory(db, owner_id=OWNER, parent_path="/", name="docs_old")

    renamed = directories.rename_directory(db, owner_id=OWNER, directory_id=top.id, new_name="archive")
    assert renamed.path == "archive"
    assert renamed.storage_path == "docs"

    db.refresh(mid)
    db.refresh(leaf)
    db.refresh(sibling)
    assert mid.path == "archive/2024"
    assert leaf.path == "archive/2024/q1"
    assert leaf.storage_path == "docs/2024/q1"
    assert sibling.path == "docs_old"


def test_rename_conflict(db, directories: DirectoryService):
    a = directories.create_directory(db, owner_id=OWNER, parent_path="/", name="a")
    directories.create_directory(db, owner_id=OWNER, parent_path="/", name="b")
    with pytest.raises(ConflictError):
        directories.rename_directory(db, owner_id=OWNER, directory_id=a.id, new_name="b")


def test_recreating_renamed_name_gets_new_storage_path(db, directories: DirectoryService):
    first = directories.create_directory(db, owner_id=OWNER, parent_path="/", name="a")
    directories.rename_directory(db, owner_id=OWNER, directory_id=first.id, new_name="b")
    second = directories.create_directory(db, owner_id=OWNER, parent_path="/", name="a")
    assert second.path == "a"
    assert second.storage_path != first.storage_path


def test_ownership_enforced(db, directories: DirectoryService):
    entry = directories.create_directory(db, owner_id=1, parent_path="/", name="private")
    with pytest.raises(ForbiddenError):
        directories.rename_directory(db, owner_id=2, directory_id=entry.id, new_name="mine")
    with pytest.raises(ForbiddenError):
        directories.list_directories(db, owner_id=2, parent_id=entry.id)


def test_list_directories(db, directories: DirectoryService):
    root = directories.create_directory(db, owner_id=OWNER, parent_path="/", name="b")
    directories.create_directory(db, owner_id=OWNER, parent_path="/", name="a")
    directories.create_directory(db, owner_id=OWNER, parent_path="/b", name="c")
    assert [d.name for d in directories.list_directories(db, owner_id=OWNER)] == ["a", "b"]
    assert [d.name for d in directories.list_directories(db, owner_id=OWNER, parent_id=root.id)] == ["c"]


def test_map_and_unmap(db, directories: DirectoryService, files, tmp_path):
    external = tmp_path / "nas"
    external.mkdir()
    (external / "movie.mkv").write_bytes(b"frames")

    entry = directories.map_directory(db, owner_id=OWNER, source_path=str(external), target_name="nas")
    assert entry.is_mapping
    assert entry.mapping_target == str(external)

    listing = files.list_directory(db, owner_id=OWNER, dir_path="/nas")
    assert [item.name for item in listing.mapped_items] == ["movie.mkv"]

    with pytest.raises(ValidationError):
        files.upload(db, owner_id=OWNER, dir_path="/nas", filename="x.txt", size=1, stream=io.BytesIO(b"x"))

    directories.unmap_directory(db, owner_id=OWNER, directory_id=entry.id)
    assert directory_entry_crud.get(db, entry.id) is None
    assert (external / "movie.mkv").exists()


def test_map_removes_link_when_insert_fails(db, directories: DirectoryService, engine, tmp_path, monkeypatch):
    external = tmp_path / "nas"
    external.mkdir()

    def _boom(*args, **kwargs):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(directory_entry_crud, "create", _boom)
    with pytest.raises(RuntimeError):
        directories.map_directory(db, owner_id=OWNER, source_path=str(external), target_name="nas")
    assert not engine.resolve_mapped(OWNER, "nas").is_symlink()


def test_unmap_rejects_regular_directory(db, directories: DirectoryService):
    entry = directories.create_directory(db, owner_id=OWNER, parent_path="/", name="plain")
    with pytest.raises(ValidationError):
        directories.unmap_directory(db, owner_id=OWNER, directory_id=entry.id)
