"""Per-document stylesheet resolution."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Sequence

from .frontmatter import FrontMatter
from .paths import WorkspaceError, ensure_in_workspace
from .utils import relative_to_workspace

StyleSet = tuple[Path, ...]


class StyleError(RuntimeError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class CssCache:
    """Stylesheet contents keyed by absolute path, valid for one run."""

    def __init__(self) -> None:
        self._contents: dict[Path, str] = {}

    def __contains__(self, path: Path) -> bool:
        return path in self._contents

    def __len__(self) -> int:
        return len(self._contents)

    def read(self, path: Path) -> str:
        cached = self._contents.get(path)
        if cached is None:
            cached = path.read_text(encoding="utf-8")
            self._contents[path] = cached
        return cached


class StyleResolver:
    def __init__(
        self,
        workspace: Path,
        global_css: Sequence[Path] = (),
        *,
        fail_on_missing_css: bool = False,
    ) -> None:
        self._workspace = workspace
        self._global_css = tuple(Path(os.path.abspath(path)) for path in global_css)
        self._fail_on_missing_css = fail_on_missing_css

    @property
    def global_css(self) -> StyleSet:
        return self._global_css

    def resolve(self, source: Path, front_matter: FrontMatter) -> StyleSet:
        """Global CSS plus declared ``css`` entries, or the directory scan when none are declared."""

        directory = source.parent
        collected: dict[Path, None] = dict.fromkeys(self._global_css)
        declared = front_matter.css
        if declared is not None:
            for entry in declared:
                collected[self._resolve_declared(directory, entry)] = None
        else:
            for candidate in self._scan_directory(directory):
                collected[candidate] = None

        styles = tuple(sorted(collected, key=str))
        if not styles and self._fail_on_missing_css:
            raise StyleError(
                "CSS_MISSING",
                f"No CSS files found for {relative_to_workspace(source, self._workspace)}",
            )
        return styles

    def _resolve_declared(self, directory: Path, entry: str) -> Path:
        candidate = Path(os.path.abspath(directory / entry))
        try:
            ensure_in_workspace(candidate, self._workspace, "front matter css")
        except WorkspaceError as exc:
            raise StyleError("OUTSIDE_WORKSPACE", str(exc)) from exc
        if not candidate.is_file():
            raise StyleError("CSS_NOT_FOUND", f"CSS file does not exist: {entry} ({candidate})")
        return candidate

    def _scan_directory(self, directory: Path) -> list[Path]:
        found: list[Path] = []
        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.name.lower().endswith(".css") and entry.is_file(follow_symlinks=False):
                    found.append(Path(os.path.abspath(entry.path)))
        return found


__all__ = ["CssCache", "StyleError", "StyleResolver", "StyleSet"]
