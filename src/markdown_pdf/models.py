"""Domain models for the markdown to PDF pipeline."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator

from .frontmatter import FrontMatter


class JobState(str, Enum):
    DISCOVERED = "discovered"
    PARSED = "parsed"
    SKIPPED = "skipped"
    STYLES_RESOLVED = "styles_resolved"
    RENDERED = "rendered"
    HTML_WRITTEN = "html_written"
    PDF_WRITTEN = "pdf_written"
    RECORDED = "recorded"


@dataclass(slots=True)
class DocumentJob:
    """One markdown file travelling through the pipeline."""

    source: Path
    relative: str
    raw: str = ""
    front_matter: FrontMatter = field(default_factory=FrontMatter)
    body: str = ""
    title: str = ""
    lang: str = ""
    base_name: str = ""
    css: tuple[Path, ...] = ()
    state: JobState = JobState.DISCOVERED


@dataclass(frozen=True, slots=True)
class RenderedDocument:
    html: str
    title: str
    lang: str


@dataclass(frozen=True, slots=True)
class ConversionResult:
    """Workspace-relative, forward-slash paths for one converted document."""

    markdown: str
    html: str | None
    pdf: str
    css: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "markdown": self.markdown,
            "html": self.html,
            "pdf": self.pdf,
            "css": list(self.css),
        }


@dataclass(slots=True)
class Manifest:
    entries: list[ConversionResult] = field(default_factory=list)

    def append(self, result: ConversionResult) -> None:
        self.entries.append(result)

    def __iter__(self) -> Iterator[ConversionResult]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def to_json(self) -> str:
        return json.dumps([entry.to_dict() for entry in self.entries], ensure_ascii=False)


@dataclass(slots=True)
class BatchResult:
    """Aggregate outcome of one run."""

    manifest: Manifest
    output_dir: str
    skipped: list[str] = field(default_factory=list)
    html_enabled: bool = True

    @property
    def count(self) -> int:
        return len(self.manifest)


__all__ = [
    "BatchResult",
    "ConversionResult",
    "DocumentJob",
    "JobState",
    "Manifest",
    "RenderedDocument",
]
