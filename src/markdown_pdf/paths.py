"""Workspace containment and glob pattern expansion."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Sequence

GLOB_CHARS = frozenset("*?[")


class WorkspaceError(RuntimeError):
    """Raised when a supplied path escapes the workspace."""


@dataclass(frozen=True, slots=True)
class GlobPattern:
    source: str
    negate: bool
    regex: re.Pattern[str]
    search_root: str

    def matches(self, relative: str) -> bool:
        # A pattern that names a directory also matches everything beneath it.
        candidate = relative
        while candidate:
            if self.regex.fullmatch(candidate):
                return True
            candidate = candidate.rpartition("/")[0]
        return False


def resolve_workspace(explicit: str | Path | None = None) -> Path:
    root = Path(explicit) if explicit else Path.cwd()
    return root.expanduser().resolve()


def is_path_inside(child: Path, parent: Path) -> bool:
    try:
        relative = os.path.relpath(child, parent)
    except ValueError:
        # Different drives on Windows.
        return False
    if relative == os.curdir:
        return True
    return not (relative == os.pardir or relative.startswith(os.pardir + os.sep)) and not os.path.isabs(relative)


def ensure_in_workspace(candidate: Path, workspace: Path, label: str) -> Path:
    resolved = Path(os.path.realpath(candidate))
    if not is_path_inside(resolved, workspace):
        raise WorkspaceError(f"Cannot use {label} outside workspace: {candidate}")
    return resolved


def normalize_exclude(pattern: str) -> str:
    return pattern if pattern.startswith("!") else f"!{pattern}"


def _translate_segment(segment: str) -> str:
    parts: list[str] = []
    index = 0
    length = len(segment)
    while index < length:
        char = segment[index]
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "[":
            close = segment.find("]", index + 2 if segment[index + 1 : index + 2] in {"!", "^"} else index + 1)
            if close == -1:
                parts.append(re.escape(char))
            else:
                body = segment[index + 1 : close]
                if body[:1] in {"!", "^"}:
                    body = "^" + body[1:]
                parts.append(f"[{body.replace(chr(92), chr(92) * 2)}]")
                index = close
        else:
            parts.append(re.escape(char))
        index += 1
    return "".join(parts)


def _translate(pattern: str) -> str:
    segments = pattern.split("/")
    regex: list[str] = []
    for position, segment in enumerate(segments):
        last = position == len(segments) - 1
        if segment == "**":
            regex.append(".*" if last else "(?:[^/]+/)*")
            continue
        regex.append(_translate_segment(segment))
        if not last:
            regex.append("/")
    return "".join(regex)


def _search_root(pattern: str) -> str:
    literal: list[str] = []
    for segment in pattern.split("/"):
        if any(char in GLOB_CHARS for char in segment):
            break
        literal.append(segment)
    return "/".join(literal)


def compile_pattern(raw: str, workspace: Path) -> GlobPattern | None:
    text = raw.strip()
    if not text or text.startswith("#"):
        return None
    negate = False
    while text.startswith("!"):
        negate = not negate
        text = text[1:].lstrip()
    text = text.replace("\\", "/") if os.sep == "\\" else text
    if os.path.isabs(text):
        if not is_path_inside(Path(text), workspace):
            return None
        text = os.path.relpath(text, workspace).replace(os.sep, "/")
    while text.startswith("./"):
        text = text[2:]
    text = text.rstrip("/")
    if text in {"", "."}:
        text = "**"
    if any(segment == ".." for segment in text.split("/")):
        normalized = os.path.normpath(text).replace(os.sep, "/")
        if normalized == ".." or normalized.startswith("../"):
            return None
        text = normalized
    return GlobPattern(
        source=raw,
        negate=negate,
        regex=re.compile(_translate(text), re.DOTALL),
        search_root=_search_root(text),
    )


def _walk_files(root: Path) -> Iterator[Path]:
    if root.is_symlink() and not root.is_dir():
        yield root
        return
    if root.is_file():
        yield root
        return
    if not root.is_dir() or root.is_symlink():
        return
    for dirpath, _dirnames, filenames in os.walk(root, followlinks=False):
        for name in filenames:
            yield Path(dirpath) / name


def _search_roots(patterns: Sequence[GlobPattern], workspace: Path) -> list[Path]:
    roots: list[str] = sorted({pattern.search_root for pattern in patterns if not pattern.negate})
    collapsed: list[str] = []
    for root in roots:
        if any(root == kept or kept == "" or root.startswith(kept + "/") for kept in collapsed):
            continue
        collapsed.append(root)
    return [workspace / root if root else workspace for root in collapsed]


def expand_patterns(patterns: Iterable[str], workspace: Path) -> list[Path]:
    """Expand ordered include/``!``exclude patterns into sorted workspace files.

    The last pattern that matches a file decides whether it is kept. Symbolic
    links to directories are never descended and any match whose real path
    lies outside ``workspace`` is dropped.
    """

    compiled = [pattern for raw in patterns if (pattern := compile_pattern(raw, workspace)) is not None]
    if not any(not pattern.negate for pattern in compiled):
        return []

    unique: set[Path] = set()
    for root in _search_roots(compiled, workspace):
        for path in _walk_files(root):
            relative = os.path.relpath(path, workspace).replace(os.sep, "/")
            included = False
            for pattern in compiled:
                if pattern.negate:
                    if included and pattern.matches(relative):
                        included = False
                elif not included and pattern.matches(relative):
                    included = True
            if not included:
                continue
            real = Path(os.path.realpath(path))
            if not real.is_file() or not is_path_inside(real, workspace):
                continue
            unique.add(Path(os.path.abspath(path)))
    return sorted(unique, key=str)


__all__ = [
    "GlobPattern",
    "WorkspaceError",
    "compile_pattern",
    "ensure_in_workspace",
    "expand_patterns",
    "is_path_inside",
    "normalize_exclude",
    "resolve_workspace",
]
