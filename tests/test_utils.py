from pathlib import Path

from markdown_pdf.utils import atomic_write, normalize_path, relative_to_workspace, sanitize_filename


def test_sanitize_filename_keeps_readable_titles() -> None:
    assert sanitize_filename("My Resume", fallback="doc") == "My Resume"


def test_sanitize_filename_strips_separators() -> None:
    assert sanitize_filename("../etc/passwd", fallback="doc") == "etc-passwd"
    assert sanitize_filename('a<b>:c"d|e?f*g', fallback="doc") == "a-b-c-d-e-f-g"


def test_sanitize_filename_falls_back_when_empty() -> None:
    assert sanitize_filename(" ... ", fallback="doc") == "doc"


def test_normalize_path_uses_forward_slashes() -> None:
    assert normalize_path("docs\\guide\\a.md") == "docs/guide/a.md"


def test_relative_to_workspace(tmp_path: Path) -> None:
    assert relative_to_workspace(tmp_path / "docs" / "a.md", tmp_path) == "docs/a.md"
    assert relative_to_workspace(tmp_path, tmp_path) == "."


def test_atomic_write_creates_parents(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "out.html"
    atomic_write(target, "<p>x</p>")
    assert target.read_text(encoding="utf-8") == "<p>x</p>"
    assert [p.name for p in target.parent.iterdir()] == ["out.html"]
