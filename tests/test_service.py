from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest

from markdown_pdf.config import AppConfig, InputConfig, OutputConfig
from markdown_pdf.context import ConsoleContext
from markdown_pdf.core import ConversionError, ConversionService
from markdown_pdf.models import DocumentJob, JobState

from conftest import FakePdfEngine


def _touch(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def build_config(**output: object) -> AppConfig:
    config = AppConfig()
    return replace(config, output=replace(OutputConfig(), **output))


def _service(workspace: Path, engine: FakePdfEngine, config: AppConfig | None = None) -> tuple[ConversionService, ConsoleContext]:
    context = ConsoleContext({}, verbose=True)
    service = ConversionService(config or build_config(), context, workspace=workspace, engine=engine)
    return service, context


def test_converts_document_with_sibling_css(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "docs" / "a.md", "# Hi\n")
    _touch(workspace / "docs" / "a.css", "body { color: red; }\n")
    service, context = _service(workspace, fake_engine)

    result = service.run()

    html = (workspace / "output" / "docs" / "a.html").read_text(encoding="utf-8")
    assert "color: red" in html
    assert "<h1>Hi</h1>" in html
    assert "<title>a</title>" in html
    assert (workspace / "output" / "docs" / "a.pdf").read_bytes().startswith(b"%PDF")
    assert result.count == 1
    assert json.loads(context.outputs["files"]) == [
        {
            "markdown": "docs/a.md",
            "html": "output/docs/a.html",
            "pdf": "output/docs/a.pdf",
            "css": ["docs/a.css"],
        }
    ]
    assert context.outputs["count"] == "1"
    assert context.outputs["output_dir"] == "output"
    assert fake_engine.calls[0]["timeout_ms"] == 20000


def test_publish_false_is_skipped(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "a.md", "---\npublish: false\n---\n# Draft\n")
    _touch(workspace / "b.md", "# Kept\n")
    service, context = _service(workspace, fake_engine)

    result = service.run()

    assert result.count == 1
    assert result.skipped == ["a.md"]
    assert context.outputs["count"] == "1"
    assert [entry["markdown"] for entry in json.loads(context.outputs["files"])] == ["b.md"]
    assert not (workspace / "output" / "a.pdf").exists()
    assert len(fake_engine.calls) == 1


def test_all_documents_skipped_still_publishes(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "a.md", "---\ndraft: true\n---\nbody\n")
    service, context = _service(workspace, fake_engine)

    result = service.run()

    assert result.count == 0
    assert context.outputs["count"] == "0"
    assert context.outputs["files"] == "[]"
    assert fake_engine.calls == []


def test_html_disabled_removes_temporary_file(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "notes" / "n.md", "text\n")
    service, context = _service(workspace, fake_engine, build_config(generate_html=False))

    service.run()

    rendered_from = fake_engine.calls[0]["html_path"]
    assert isinstance(rendered_from, Path)
    assert rendered_from.name.endswith(".tmp.html")
    assert not rendered_from.exists()
    output_dir = workspace / "output" / "notes"
    assert sorted(path.name for path in output_dir.iterdir()) == ["n.pdf"]
    assert json.loads(context.outputs["files"])[0]["html"] is None
    assert "HTML output is disabled" in context.summaries[0]


def test_render_failure_aborts_run(workspace: Path) -> None:
    _touch(workspace / "a.md", "# A\n")
    _touch(workspace / "b.md", "# B\n")
    engine = FakePdfEngine(fail_on="b")
    service, context = _service(workspace, engine)

    with pytest.raises(ConversionError) as exc:
        service.run()

    assert exc.value.code == "RENDER_FAILED"
    assert "b.md" in str(exc.value)
    assert "console.error: broken" in str(exc.value)
    assert context.outputs == {}
    assert context.summaries == []


def test_failure_with_html_disabled_cleans_temporary_file(workspace: Path) -> None:
    _touch(workspace / "a.md", "# A\n")
    engine = FakePdfEngine(fail_on=".a")
    service, _ = _service(workspace, engine, build_config(generate_html=False))

    with pytest.raises(ConversionError):
        service.run()

    assert not any(path.name.endswith(".tmp.html") for path in (workspace / "output").iterdir())


def test_no_files_matched(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "notes.txt", "not markdown")
    service, _ = _service(workspace, fake_engine)

    with pytest.raises(ConversionError) as exc:
        service.run()

    assert exc.value.code == "NO_FILES"


def test_readme_is_ignored_unless_requested(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "README.md", "# Readme\n")
    _touch(workspace / "guide.md", "# Guide\n")
    service, _ = _service(workspace, fake_engine)
    assert [path.name for path in service.discover_markdown()] == ["guide.md"]

    config = replace(AppConfig(), inputs=InputConfig(include_readme=True))
    service, _ = _service(workspace, fake_engine, config)
    assert [path.name for path in service.discover_markdown()] == ["README.md", "guide.md"]


def test_exclude_patterns_apply(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "docs" / "keep.md", "# Keep\n")
    _touch(workspace / "docs" / "drafts" / "wip.md", "# WIP\n")
    config = replace(AppConfig(), inputs=InputConfig(files=("docs/**/*.md",), exclude=("docs/drafts",)))
    service, _ = _service(workspace, fake_engine, config)

    assert [path.name for path in service.discover_markdown()] == ["keep.md"]


def test_output_name_and_title_choose_base_name(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "one.md", "---\noutput_name: Final Report\ntitle: Ignored\n---\nx\n")
    _touch(workspace / "two.md", "---\ntitle: 'Q3 Results/Summary'\n---\nx\n")
    service, context = _service(workspace, fake_engine)

    service.run()

    pdfs = [entry["pdf"] for entry in json.loads(context.outputs["files"])]
    assert pdfs == ["output/Final Report.pdf", "output/Q3 Results-Summary.pdf"]
    assert "<title>Ignored</title>" in str(fake_engine.calls[0]["html"])


def test_language_from_front_matter(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "fr.md", "---\nlang: fr\n---\nBonjour\n")
    _touch(workspace / "en.md", "Hello\n")
    service, _ = _service(workspace, fake_engine)

    service.run()

    htmls = {Path(str(call["pdf_path"])).stem: str(call["html"]) for call in fake_engine.calls}
    assert '<html lang="fr">' in htmls["fr"]
    assert '<html lang="en">' in htmls["en"]


def test_output_dir_outside_workspace_rejected(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "a.md", "# A\n")
    service, _ = _service(workspace, fake_engine, build_config(output_dir="../elsewhere"))

    with pytest.raises(ConversionError) as exc:
        service.run()

    assert exc.value.code == "OUTSIDE_WORKSPACE"
    assert not (workspace.parent / "elsewhere").exists()


def test_missing_declared_css_aborts(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "a.md", "---\ncss: missing.css\n---\n# A\n")
    service, _ = _service(workspace, fake_engine)

    with pytest.raises(ConversionError) as exc:
        service.run()

    assert exc.value.code == "CSS_NOT_FOUND"
    assert exc.value.args[0].startswith("a.md: ")


def test_malformed_front_matter_aborts(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "a.md", "---\ntitle: [unclosed\n---\nbody\n")
    service, _ = _service(workspace, fake_engine)

    with pytest.raises(ConversionError) as exc:
        service.run()

    assert exc.value.code == "FRONT_MATTER"


def test_global_css_joins_document_styles(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "theme" / "base.css", "/* base */\n")
    _touch(workspace / "docs" / "local.css", "/* local */\n")
    _touch(workspace / "docs" / "a.md", "# A\n")
    config = replace(AppConfig(), inputs=InputConfig(files=("docs/*.md",), global_css=("theme/*.css",)))
    service, context = _service(workspace, fake_engine, config)

    service.run()

    html = str(fake_engine.calls[0]["html"])
    assert html.index("/* local */") < html.index("/* base */")
    assert json.loads(context.outputs["files"])[0]["css"] == ["docs/local.css", "theme/base.css"]


def test_run_log_records_each_document(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "a.md", "# A\n")
    _touch(workspace / "b.md", "---\nskip: yes\n---\n")
    service, _ = _service(workspace, fake_engine, build_config(run_log="logs/run.jsonl"))

    service.run()

    lines = (workspace / "logs" / "run.jsonl").read_text(encoding="utf-8").splitlines()
    entries = [json.loads(line) for line in lines]
    assert [(entry["markdown"], entry["status"]) for entry in entries] == [("a.md", "converted"), ("b.md", "skipped")]
    assert entries[0]["pdf"] == "output/a.pdf"
    assert set(entries[0]["timings"]) == {"parse_ms", "style_ms", "render_ms", "pdf_ms"}


def test_summary_lists_documents(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "a.md", "# A\n")
    service, context = _service(workspace, fake_engine)

    service.run()

    summary = context.summaries[0]
    assert summary.startswith("### Summary")
    assert "Converted 1 Markdown to PDF." in summary
    assert "| a.md | output/a.pdf | output/a.html |  |" in summary


def test_parse_advances_job_state(workspace: Path, fake_engine: FakePdfEngine) -> None:
    source = _touch(workspace / "guide.md", "---\ntitle: Guide\n---\nbody\n")
    service, _ = _service(workspace, fake_engine)
    job = DocumentJob(source=source, relative="guide.md")

    service._parse(job)

    assert job.state is JobState.PARSED
    assert job.title == "Guide"
    assert job.lang == "en"
    assert job.base_name == "Guide"
    assert job.body == "body\n"


def test_non_utf8_css_is_reported(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "a.md", "# A\n")
    (workspace / "a.css").write_bytes(b"\xff\xfe body { color: red; }")
    service, _ = _service(workspace, fake_engine)

    with pytest.raises(ConversionError) as exc:
        service.run()

    assert exc.value.code == "READ_FAILED"
    assert exc.value.args[0].startswith("a.md: ")
    assert fake_engine.calls == []


def test_output_dir_that_is_a_file_is_reported(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "a.md", "# A\n")
    _touch(workspace / "output", "not a directory")
    service, _ = _service(workspace, fake_engine)

    with pytest.raises(ConversionError) as exc:
        service.run()

    assert exc.value.code == "WRITE_FAILED"


def test_html_write_failure_names_document(workspace: Path, fake_engine: FakePdfEngine) -> None:
    _touch(workspace / "docs" / "a.md", "# A\n")
    _touch(workspace / "output" / "docs", "blocks the mirrored directory")
    service, context = _service(workspace, fake_engine)

    with pytest.raises(ConversionError) as exc:
        service.run()

    assert exc.value.code == "WRITE_FAILED"
    assert exc.value.args[0].startswith("docs/a.md: ")
    assert context.outputs == {}


class _DiskFullEngine:
    async def render(self, html_path: Path, pdf_path: Path, *, timeout_ms: int, disable_sandbox: bool) -> None:
        raise OSError(28, "No space left on device")


def test_pdf_write_failure_is_reported(workspace: Path) -> None:
    _touch(workspace / "a.md", "# A\n")
    service = ConversionService(build_config(), ConsoleContext({}), workspace=workspace, engine=_DiskFullEngine())

    with pytest.raises(ConversionError) as exc:
        service.run()

    assert exc.value.code == "WRITE_FAILED"
    assert "No space left on device" in str(exc.value)
