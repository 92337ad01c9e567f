"""存储引擎：统一封装用户存储根、回收站根与映射根下的物理文件操作。

物理路径一律由「根目录 + 用户子目录 + 归一化后的逻辑路径」拼接而成，
从不直接拼接未经校验的用户输入；所有操作只作用于调用者自己的用户子目录。
"""

from __future__ import annotations

import hashlib
import os
import shutil
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from hcloud.core.constants import USER_DIR_TEMPLATE
from hcloud.core.exceptions import (
    ConflictError,
    NotFoundError,
    StorageIOError,
    ValidationError,
)
from hcloud.core.logger import logger
from hcloud.utils.path_utils import sanitize_path, validate_name, validate_path

COPY_CHUNK_SIZE = 1024 * 1024


# ------------------------------------------
# 公共数据结构
# ------------------------------------------

@dataclass(frozen=True)
class StorageLayout:
    """启动时确定、之后只读的目录布局。"""

    storage_root: Path
    mapped_root: Path
    recycle_root: Path


@dataclass(frozen=True)
class ListItem:
    name: str
    size: int
    mod_time: datetime
    is_directory: bool


@dataclass(frozen=True)
class SavedFile:
    stored_path: str
    size: int
    content_hash: str


@dataclass(frozen=True)
class StorageInfo:
    total: int
    used: int
    free: int


_stamp_lock = threading.Lock()
_last_stamp = 0


def next_storage_stamp() -> int:
    """纳秒时间戳，在进程内严格递增，用作存储键前缀。"""
    global _last_stamp
    with _stamp_lock:
        stamp = max(time.time_ns(), _last_stamp + 1)
        _last_stamp = stamp
        return stamp


class StorageEngine:
    def __init__(self, layout: StorageLayout):
        self.layout = StorageLayout(
            storage_root=Path(layout.storage_root).resolve(),
            mapped_root=Path(layout.mapped_root).resolve(),
            recycle_root=Path(layout.recycle_root).resolve(),
        )
        for root in (self.layout.storage_root, self.layout.mapped_root, self.layout.recycle_root):
            self._ensure_dir(root)

    # ----------------------------
    # 路径解析
    # ----------------------------
    @staticmethod
    def _user_dir_name(user_id: int) -> str:
        return USER_DIR_TEMPLATE.format(user_id=int(user_id))

    def user_root(self, user_id: int) -> Path:
        return self.layout.storage_root / self._user_dir_name(user_id)

    def user_recycle_root(self, user_id: int) -> Path:
        return self.layout.recycle_root / self._user_dir_name(user_id)

    def user_mapped_root(self, user_id: int) -> Path:
        return self.layout.mapped_root / self._user_dir_name(user_id)

    @staticmethod
    def _resolve(base: Path, rel: Optional[str], *, follow_links: bool = True) -> Path:
        """安全拼接，防止路径遍历；映射根下的链接指向外部目录，因此只做词法校验。"""
        rel_norm = sanitize_path(validate_path(rel if rel is not None else ""))
        candidate = base / rel_norm if rel_norm else base
        if follow_links:
            checked, anchor = candidate.resolve(), base.resolve()
        else:
            checked, anchor = Path(os.path.normpath(candidate)), Path(os.path.normpath(base))
        try:
            checked.relative_to(anchor)
        except ValueError as exc:
            raise ValidationError("非法路径: 越权访问", field="path") from exc
        return candidate

    def resolve_storage(self, user_id: int, rel: Optional[str]) -> Path:
        return self._resolve(self.user_root(user_id), rel)

    def resolve_recycle(self, user_id: int, key: str) -> Path:
        return self._resolve(self.user_recycle_root(user_id), key)

    def resolve_mapped(self, user_id: int, rel: Optional[str]) -> Path:
        return self._resolve(self.user_mapped_root(user_id), rel, follow_links=False)

    @staticmethod
    def _ensure_dir(path: Path) -> None:
        """幂等创建目录；已存在不是错误，但同名文件占位会导致失败。"""
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Failed to create directory %s: %s", path, exc)
            raise StorageIOError("创建目录失败", exc) from exc

    @staticmethod
    def _relative(base: Path, target: Path) -> str:
        return target.relative_to(base).as_posix()

    # ----------------------------
    # 文件
    # ----------------------------
    def save_file(
        self,
        user_id: int,
        dir_path: str,
        filename: str,
        size: Optional[int],
        stream: BinaryIO,
        *,
        max_bytes: Optional[int] = None,
    ) -> SavedFile:
        """流式写入新文件并返回相对用户目录的存储键；失败时删除半成品后再抛出。

        ``size`` 是客户端声明的大小，``max_bytes`` 是分类得出的上限；
        任一被超过时立即中止写入，已写部分随即删除。
        """
        validate_name(filename)
        user_dir = self.user_root(user_id)
        self._ensure_dir(user_dir)
        target_dir = self.resolve_storage(user_id, dir_path)
        self._ensure_dir(target_dir)

        target, handle = self._create_unique(target_dir, filename)
        digest = hashlib.sha256()
        written = 0
        try:
            with handle:
                while True:
                    chunk = stream.read(COPY_CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if size is not None and written > size:
                        raise ValidationError("上传内容超过声明的文件大小", field="file")
                    if max_bytes is not None and written > max_bytes:
                        raise ValidationError("文件大小超过限制", field="file")
                    digest.update(chunk)
                    handle.write(chunk)
        except BaseException as exc:
            self._discard_partial(target)
            if isinstance(exc, OSError):
                raise StorageIOError("保存文件失败", exc) from exc
            raise

        stored_path = self._relative(user_dir, target)
        logger.debug("Saved %s bytes for user %s as %s", written, user_id, stored_path)
        return SavedFile(stored_path=stored_path, size=written, content_hash=digest.hexdigest())

    @staticmethod
    def _create_unique(target_dir: Path, filename: str) -> tuple[Path, BinaryIO]:
        # 独占创建；跨进程极小概率撞键时换一个时间戳重试
        for _ in range(3):
            target = target_dir / f"{next_storage_stamp()}_{filename}"
            try:
                return target, open(target, "xb")
            except FileExistsError:
                continue
            except OSError as exc:
                raise StorageIOError("创建文件失败", exc) from exc
        raise StorageIOError("无法生成唯一的存储键")

    @staticmethod
    def _discard_partial(target: Path) -> None:
        try:
            target.unlink()
            logger.warning("Removed partial upload %s", target)
        except FileNotFoundError:
            pass
        except OSError:
            logger.exception("Failed to remove partial upload %s", target)

    def get_file(self, user_id: int, rel_path: str) -> BinaryIO:
        """打开文件用于读取；关闭句柄是调用方的责任。"""
        target = self.resolve_storage(user_id, rel_path)
        if not target.is_file():
            raise NotFoundError("文件不存在")
        try:
            return open(target, "rb")
        except OSError as exc:
            raise StorageIOError("读取文件失败", exc) from exc

    def file_exists(self, user_id: int, rel_path: str) -> bool:
        return self.resolve_storage(user_id, rel_path).is_file()

    def delete_file(self, user_id: int, rel_path: str) -> None:
        """仅删除物理文件，不经过回收站。"""
        target = self.resolve_storage(user_id, rel_path)
        if not target.exists() or target.is_dir():
            raise NotFoundError("文件不存在")
        try:
            target.unlink()
        except OSError as exc:
            raise StorageIOError("删除文件失败", exc) from exc

    # ----------------------------
    # 目录
    # ----------------------------
    def create_directory(self, user_id: int, parent_path: str, name: str) -> str:
        """幂等创建物理目录，返回相对用户目录的路径。"""
        validate_name(name)
        user_dir = self.user_root(user_id)
        self._ensure_dir(user_dir)
        parent = self.resolve_storage(user_id, parent_path)
        target = parent / name
        self._ensure_dir(target)
        return self._relative(user_dir, target)

    def directory_exists(self, user_id: int, rel_path: str) -> bool:
        return self.resolve_storage(user_id, rel_path).is_dir()

    def path_occupied(self, user_id: int, rel_path: str) -> bool:
        return os.path.lexists(self.resolve_storage(user_id, rel_path))

    def remove_empty_directory(self, user_id: int, rel_path: str) -> None:
        target = self.resolve_storage(user_id, rel_path)
        if not rel_path or not target.is_dir():
            return
        try:
            target.rmdir()
        except OSError as exc:
            raise StorageIOError("删除目录失败", exc) from exc

    def list_directory(self, user_id: int, dir_path: str, *, mapped: bool = False) -> Iterator[ListItem]:
        """读取单层目录；返回惰性、有限、不可重复迭代的序列。"""
        base = self.resolve_mapped(user_id, dir_path) if mapped else self.resolve_storage(user_id, dir_path)
        if not base.is_dir():
            raise NotFoundError("目录不存在")
        try:
            scanner = os.scandir(base)
        except OSError as exc:
            raise StorageIOError("无法读取目录内容", exc) from exc
        return self._iter_entries(scanner)

    @staticmethod
    def _iter_entries(scanner) -> Iterator[ListItem]:
        with scanner:
            for entry in scanner:
                try:
                    st = entry.stat()
                    is_dir = entry.is_dir()
                except OSError:
                    # 失效的链接等无法 stat 的条目直接跳过
                    continue
                yield ListItem(
                    name=entry.name,
                    size=0 if is_dir else int(st.st_size),
                    mod_time=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
                    is_directory=is_dir,
                )

    # ----------------------------
    # 目录映射
    # ----------------------------
    def map_directory(self, user_id: int, source_path: str, target_path: str) -> Path:
        """在用户映射根下创建指向外部目录的符号链接。"""
        source = Path(os.path.abspath(source_path))
        if not source.is_dir():
            raise NotFoundError("源目录不存在")
        target_rel = sanitize_path(validate_path(target_path))
        if not target_rel:
            raise ValidationError("映射目标不能为根目录", field="targetPath")
        self._ensure_dir(self.user_mapped_root(user_id))
        link = self.resolve_mapped(user_id, target_rel)
        self._ensure_dir(link.parent)
        try:
            os.symlink(source, link, target_is_directory=True)
        except OSError as exc:
            logger.error("Failed to map %s -> %s: %s", source, link, exc)
            raise StorageIOError("映射目录失败", exc) from exc
        return link

    def unmap_directory(self, user_id: int, target_path: str) -> None:
        """只删除链接本身，绝不触碰外部目录。"""
        link = self.resolve_mapped(user_id, target_path)
        if not link.is_symlink():
            raise NotFoundError("映射目录不存在")
        try:
            link.unlink()
        except OSError as exc:
            raise StorageIOError("取消映射失败", exc) from exc

    # ----------------------------
    # 回收站隔离区
    # ----------------------------
    def move_to_quarantine(self, user_id: int, rel_path: str, name: str) -> str:
        """把文件或目录移入回收站根，返回防冲突的隔离键。"""
        source = self.resolve_storage(user_id, rel_path)
        if not os.path.lexists(source):
            raise NotFoundError("文件不存在")
        self._ensure_dir(self.user_recycle_root(user_id))
        key = f"{uuid.uuid4().hex}_{name}"
        destination = self.resolve_recycle(user_id, key)
        try:
            shutil.move(str(source), str(destination))
        except OSError as exc:
            raise StorageIOError("移入回收站失败", exc) from exc
        return key

    def restore_from_quarantine(self, user_id: int, key: str, rel_path: str) -> None:
        source = self.resolve_recycle(user_id, key)
        if not os.path.lexists(source):
            raise NotFoundError("回收站内容不存在")
        destination = self.resolve_storage(user_id, rel_path)
        if os.path.lexists(destination):
            raise ConflictError("目标位置已存在")
        self._ensure_dir(destination.parent)
        try:
            shutil.move(str(source), str(destination))
        except OSError as exc:
            raise StorageIOError("恢复文件失败", exc) from exc

    def return_to_quarantine(self, user_id: int, rel_path: str, key: str) -> None:
        """恢复的逆操作，用于元数据写入失败后的回滚。"""
        source = self.resolve_storage(user_id, rel_path)
        destination = self.resolve_recycle(user_id, key)
        self._ensure_dir(destination.parent)
        try:
            shutil.move(str(source), str(destination))
        except OSError as exc:
            raise StorageIOError("回滚恢复操作失败", exc) from exc

    def quarantine_exists(self, user_id: int, key: str) -> bool:
        return os.path.lexists(self.resolve_recycle(user_id, key))

    def remove_quarantined(self, user_id: int, key: str) -> None:
        """彻底删除隔离区内容；内容已不存在视为成功。"""
        target = self.resolve_recycle(user_id, key)
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif os.path.lexists(target):
                target.unlink()
        except OSError as exc:
            raise StorageIOError("删除回收站内容失败", exc) from exc

    # ----------------------------
    # 容量
    # ----------------------------
    def get_system_storage_info(self) -> StorageInfo:
        """读取存储根所在卷的容量（字节），used = total - free。"""
        try:
            if hasattr(os, "statvfs"):
                st = os.statvfs(self.layout.storage_root)
                total = int(st.f_blocks) * int(st.f_frsize)
                free = int(st.f_bavail) * int(st.f_frsize)
            else:  # pragma: no cover - 非 POSIX 平台
                usage = shutil.disk_usage(self.layout.storage_root)
                total, free = int(usage.total), int(usage.free)
        except OSError as exc:
            raise StorageIOError("获取存储信息失败", exc) from exc
        return StorageInfo(total=total, used=total - free, free=free)
