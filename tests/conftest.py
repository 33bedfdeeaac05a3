from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest

from markdown_pdf.pdf import RenderError


@dataclass
class FakePdfEngine:
    """Writes a stub PDF and remembers what it was asked to render."""

    fail_on: str | None = None
    calls: list[dict[str, object]] = field(default_factory=list)

    async def render(self, html_path: Path, pdf_path: Path, *, timeout_ms: int, disable_sandbox: bool) -> None:
        self.calls.append(
            {
                "html_path": html_path,
                "pdf_path": pdf_path,
                "html": html_path.read_text(encoding="utf-8"),
                "timeout_ms": timeout_ms,
                "disable_sandbox": disable_sandbox,
            }
        )
        if self.fail_on and html_path.name.startswith(self.fail_on):
            raise RenderError(f"Rendering {html_path.name} failed: boom", "console.error: broken")
        pdf_path.parent.mkdir(parents=True, exist_ok=True)
        pdf_path.write_bytes(b"%PDF-1.4\n% fake\n")


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def fake_engine() -> FakePdfEngine:
    return FakePdfEngine()

