from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path, PurePath


UNSAFE_FILENAME_RE = re.compile(r'[\\/<>:"|?*\x00-\x1f]+')


def sanitize_filename(value: str, fallback: str, max_length: int = 200) -> str:
    """Turn a title-like string into a single path component."""

    normalized = UNSAFE_FILENAME_RE.sub("-", value.strip())
    normalized = re.sub("-+", "-", normalized)
    normalized = normalized.strip(" .-")
    if len(normalized) > max_length:
        normalized = normalized[:max_length].rstrip(" .-")
    return normalized or fallback


def normalize_path(value: str | PurePath) -> str:
    return str(value).replace(os.sep, "/").replace("\\", "/")


def relative_to_workspace(path: Path, workspace: Path) -> str:
    relative = os.path.relpath(path, workspace)
    return normalize_path(relative)


def atomic_write(path: Path, data: str, encoding: str = "utf-8") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", delete=False, dir=path.parent, encoding=encoding) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
    os.replace(tmp.name, path)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("wb", delete=False, dir=path.parent, prefix=".", suffix=".part") as tmp:
        try:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        except BaseException:
            tmp.close()
            os.unlink(tmp.name)
            raise
    os.replace(tmp.name, path)


def partial_path(path: Path) -> Path:
    return path.with_name(f".{path.name}.part")
