"""Path utilities: validate user-supplied names/paths and normalize logical paths.

These helpers centralize the rules used by every service before anything
touches the filesystem:
- A name is a single path segment: non-empty, at most 255 characters, no
  traversal sequences, no shell/Windows-reserved characters, not hidden;
- A path may be the root ('/' or '') or a slash-separated relative/absolute
  POSIX path without any '..' segment;
- ``sanitize_path`` turns an accepted path into the storage-relative form:
  no leading slash, no '.' or empty segments, root represented by ''.

Validation failures raise ``ValidationError``; nothing here performs I/O.
"""

from __future__ import annotations

import posixpath
import re

from hcloud.core.constants import MAX_NAME_LENGTH
from hcloud.core.exceptions import ValidationError

DANGEROUS_NAME_SEQUENCES = ("../", "..\\", "<", ">", ":", '"', "|", "?", "*")

_WINDOWS_ABS_RE = re.compile(r"^(?:[A-Za-z]:|\\\\|\\)")
_SEGMENT_SPLIT_RE = re.compile(r"[\\/]")
_DRIVE_PREFIX_RE = re.compile(r"^[A-Za-z]:")


def validate_name(name: str | None) -> str:
    """Return ``name`` unchanged when it is a safe single segment."""
    if not name:
        raise ValidationError("文件名不能为空", field="name")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError("文件名过长", field="name")
    for seq in DANGEROUS_NAME_SEQUENCES:
        if seq in name:
            raise ValidationError(f"文件名包含非法字符: {seq}", field="name")
    if "/" in name or "\\" in name or "\x00" in name:
        raise ValidationError("文件名不能包含路径分隔符", field="name")
    if name.startswith("."):
        raise ValidationError("不允许使用隐藏文件名", field="name")
    return name


def validate_path(path: str | None) -> str:
    """Return ``path`` unchanged when it is safe to sanitize and join under a root.

    The literal root ('/') and its sanitized form ('') bypass segment checks.
    """
    if path is None:
        raise ValidationError("路径不能为空", field="path")
    if path in ("/", ""):
        return path
    if "\x00" in path:
        raise ValidationError("路径包含非法字符", field="path")
    if _WINDOWS_ABS_RE.match(path):
        raise ValidationError("不允许使用非 Unix 风格的绝对路径", field="path")
    if ".." in _SEGMENT_SPLIT_RE.split(path):
        raise ValidationError("检测到路径遍历攻击", field="path")
    if ".." in posixpath.normpath(path).split("/"):
        raise ValidationError("检测到路径遍历攻击", field="path")
    return path


def sanitize_path(path: str | None) -> str:
    """Normalize a logical path into its storage-relative form (idempotent).

    Every output is accepted by ``validate_path``: backslashes become '/',
    NUL bytes and leading drive markers are dropped, and '..' cannot climb
    above the root.
    """
    s = (path or "").replace("\x00", "").replace("\\", "/")
    while True:
        # 以根目录为锚点做词法归一化，任何越过根目录的 '..' 都会被吸收
        normalized = posixpath.normpath("/" + s.strip()).lstrip("/").strip()
        candidate = _DRIVE_PREFIX_RE.sub("", normalized)
        if candidate == s:
            break
        s = candidate
    return "" if s == "." else s


def join_logical(parent: str, name: str) -> str:
    """Join a sanitized parent path and a validated name."""
    return f"{parent}/{name}" if parent else name


def split_logical(path: str) -> tuple[str, str]:
    """Split a sanitized path into (parent, name); the root's parent is ''."""
    parent, _, name = path.rpartition("/")
    return parent, name


def to_display_path(p: str | None) -> str:
    """Absolute, user-facing form of a logical path: always starts with '/'."""
    s = sanitize_path(p)
    return "/" + s
