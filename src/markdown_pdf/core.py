from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass, field
from pathlib import Path

from .browser import BrowserNotFoundError, detect_chrome_executable
from .config import AppConfig
from .constraint import DEFAULT_LANG
from .context import ContextError, ExecutionContext
from .frontmatter import FrontMatter, FrontMatterError, split_front_matter
from .logging import RunLogEntry, RunLogger, StageTimings
from .models import BatchResult, ConversionResult, DocumentJob, JobState, Manifest
from .paths import WorkspaceError, ensure_in_workspace, expand_patterns, normalize_exclude
from .pdf import PdfEngine, RenderError, RenderTimeoutError, create_engine
from .renderer import render_document
from .styles import CssCache, StyleError, StyleResolver
from .summary import build_summary
from .utils import atomic_write, relative_to_workspace, sanitize_filename

README_NAME = "readme.md"


class ConversionError(RuntimeError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass(slots=True)
class _RunState:
    output_root: Path
    resolver: StyleResolver
    engine: PdfEngine
    logger: RunLogger
    cache: CssCache = field(default_factory=CssCache)
    manifest: Manifest = field(default_factory=Manifest)
    skipped: list[str] = field(default_factory=list)
    written: set[Path] = field(default_factory=set)


class ConversionService:
    """Sequential batch conversion of workspace markdown files to PDF."""

    def __init__(
        self,
        config: AppConfig,
        context: ExecutionContext,
        *,
        workspace: Path,
        engine: PdfEngine | None = None,
    ) -> None:
        self._config = config
        self._context = context
        self._workspace = workspace
        self._engine = engine

    @property
    def workspace(self) -> Path:
        return self._workspace

    def run(self) -> BatchResult:
        return asyncio.run(self.run_async())

    async def run_async(self) -> BatchResult:
        markdown_files = self.discover_markdown()
        output_root = self._resolve_output_root()
        try:
            output_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConversionError("WRITE_FAILED", f"Cannot create output directory {output_root}: {exc}") from exc

        global_css = expand_patterns(self._config.inputs.global_css, self._workspace)
        if global_css:
            self._context.debug(
                "Global CSS: " + ", ".join(relative_to_workspace(path, self._workspace) for path in global_css)
            )
        state = _RunState(
            output_root=output_root,
            resolver=StyleResolver(
                self._workspace,
                global_css,
                fail_on_missing_css=self._config.render.fail_on_missing_css,
            ),
            engine=self._engine or self._create_engine(),
            logger=RunLogger(self._resolve_run_log()),
        )

        for source in markdown_files:
            job = DocumentJob(source=source, relative=relative_to_workspace(source, self._workspace))
            self._context.start_group(f"Processing {job.relative}")
            try:
                await self._convert_document(job, state)
            finally:
                self._context.end_group()

        result = BatchResult(
            manifest=state.manifest,
            output_dir=relative_to_workspace(output_root, self._workspace),
            skipped=state.skipped,
            html_enabled=self._config.output.generate_html,
        )
        self._publish(result)
        return result

    def discover_markdown(self) -> list[Path]:
        inputs = self._config.inputs
        patterns = [*inputs.files, *(normalize_exclude(pattern) for pattern in inputs.exclude)]
        markdown_files = [
            path
            for path in expand_patterns(patterns, self._workspace)
            if path.name.lower().endswith(".md")
            and (inputs.include_readme or path.name.lower() != README_NAME)
        ]
        if not markdown_files:
            raise ConversionError("NO_FILES", "No markdown files matched the requested patterns.")
        return markdown_files

    def _resolve_output_root(self) -> Path:
        candidate = Path(os.path.abspath(self._workspace / self._config.output.output_dir))
        try:
            ensure_in_workspace(candidate, self._workspace, "output_dir")
        except WorkspaceError as exc:
            raise ConversionError("OUTSIDE_WORKSPACE", str(exc)) from exc
        return candidate

    def _resolve_run_log(self) -> Path | None:
        if not self._config.output.run_log:
            return None
        candidate = Path(os.path.abspath(self._workspace / self._config.output.run_log))
        try:
            ensure_in_workspace(candidate, self._workspace, "run_log")
        except WorkspaceError as exc:
            raise ConversionError("OUTSIDE_WORKSPACE", str(exc)) from exc
        return candidate

    def _create_engine(self) -> PdfEngine:
        render = self._config.render
        try:
            executable = detect_chrome_executable(render.chrome_path)
        except BrowserNotFoundError as exc:
            raise ConversionError("BROWSER_NOT_FOUND", str(exc)) from exc
        self._context.info(f"Using Chrome binary at: {executable}")
        try:
            return create_engine(render.engine, executable, self._context.debug)
        except KeyError as exc:
            raise ConversionError("CONFIG", str(exc.args[0])) from exc

    def _advance(self, job: DocumentJob, state: JobState) -> None:
        job.state = state
        self._context.debug(f"{job.relative}: {state.value}")

    async def _convert_document(self, job: DocumentJob, state: _RunState) -> None:
        timings = StageTimings()

        started = time.perf_counter()
        self._parse(job)
        timings.parse_ms = (time.perf_counter() - started) * 1000

        if job.front_matter.skipped:
            self._context.info("Skipping file because front matter marked it as draft/skip or publish=false.")
            self._advance(job, JobState.SKIPPED)
            state.skipped.append(job.relative)
            self._append_log(job, state, RunLogEntry(markdown=job.relative, status="skipped", timings=timings))
            return

        started = time.perf_counter()
        css_texts = self._resolve_styles(job, state)
        timings.style_ms = (time.perf_counter() - started) * 1000

        started = time.perf_counter()
        rendered = render_document(job, css_texts, self._config.render.extra_html_head)
        self._advance(job, JobState.RENDERED)
        timings.render_ms = (time.perf_counter() - started) * 1000

        relative_dir = Path(job.relative).parent
        target_dir = state.output_root / relative_dir
        html_path = target_dir / f"{job.base_name}.html"
        pdf_path = target_dir / f"{job.base_name}.pdf"
        if pdf_path in state.written:
            self._context.warning(
                f"{job.relative} overwrites {relative_to_workspace(pdf_path, self._workspace)} "
                "produced earlier in this run"
            )

        started = time.perf_counter()
        if self._config.output.generate_html:
            self._write_html(job, html_path, rendered.html)
            self._advance(job, JobState.HTML_WRITTEN)
            self._context.info(f"HTML written to {relative_to_workspace(html_path, self._workspace)}")
            await self._render_pdf(job, html_path, pdf_path, state)
        else:
            temp_html = target_dir / f".{job.base_name}.tmp.html"
            self._write_html(job, temp_html, rendered.html)
            try:
                await self._render_pdf(job, temp_html, pdf_path, state)
            finally:
                temp_html.unlink(missing_ok=True)
        timings.pdf_ms = (time.perf_counter() - started) * 1000
        self._advance(job, JobState.PDF_WRITTEN)
        self._context.info(f"PDF written to {relative_to_workspace(pdf_path, self._workspace)}")

        result = ConversionResult(
            markdown=job.relative,
            html=relative_to_workspace(html_path, self._workspace) if self._config.output.generate_html else None,
            pdf=relative_to_workspace(pdf_path, self._workspace),
            css=tuple(relative_to_workspace(path, self._workspace) for path in job.css),
        )
        state.manifest.append(result)
        state.written.add(pdf_path)
        self._append_log(
            job,
            state,
            RunLogEntry(
                markdown=result.markdown,
                status="converted",
                html=result.html,
                pdf=result.pdf,
                css=list(result.css),
                timings=timings,
            ),
        )
        self._advance(job, JobState.RECORDED)

    def _parse(self, job: DocumentJob) -> None:
        try:
            job.raw = job.source.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConversionError("READ_FAILED", f"{job.relative}: {exc}") from exc
        try:
            metadata, body = split_front_matter(job.raw)
        except FrontMatterError as exc:
            raise ConversionError("FRONT_MATTER", f"{job.relative}: {exc}") from exc
        job.front_matter = FrontMatter(metadata)
        job.body = body
        stem = job.source.stem
        job.title = job.front_matter.title or stem
        job.lang = job.front_matter.lang or DEFAULT_LANG
        job.base_name = sanitize_filename(
            job.front_matter.output_name or job.front_matter.title or stem,
            fallback=stem,
        )
        self._advance(job, JobState.PARSED)

    def _resolve_styles(self, job: DocumentJob, state: _RunState) -> list[str]:
        try:
            job.css = state.resolver.resolve(job.source, job.front_matter)
        except StyleError as exc:
            raise ConversionError(exc.code, f"{job.relative}: {exc}") from exc
        self._advance(job, JobState.STYLES_RESOLVED)

        if job.css:
            self._context.info(
                "Including CSS files: " + ", ".join(relative_to_workspace(path, self._workspace) for path in job.css)
            )
        else:
            self._context.info("No CSS files detected for this markdown file.")

        texts: list[str] = []
        for path in job.css:
            try:
                texts.append(state.cache.read(path))
            except UnicodeDecodeError as exc:
                raise ConversionError(
                    "READ_FAILED",
                    f"{job.relative}: CSS file is not valid UTF-8: {path} ({exc})",
                ) from exc
            except OSError as exc:
                raise ConversionError(
                    "CSS_NOT_FOUND",
                    f"{job.relative}: CSS file referenced does not exist or is unreadable: {path} ({exc})",
                ) from exc
        return texts

    async def _render_pdf(self, job: DocumentJob, html_path: Path, pdf_path: Path, state: _RunState) -> None:
        render = self._config.render
        try:
            await state.engine.render(
                html_path,
                pdf_path,
                timeout_ms=render.pdf_timeout_ms,
                disable_sandbox=render.disable_sandbox,
            )
        except RenderTimeoutError as exc:
            raise ConversionError("RENDER_TIMEOUT", f"{job.relative}: {exc}") from exc
        except RenderError as exc:
            raise ConversionError("RENDER_FAILED", f"{job.relative}: {exc}") from exc
        except OSError as exc:
            raise ConversionError("WRITE_FAILED", f"{job.relative}: cannot write {pdf_path}: {exc}") from exc

    def _append_log(self, job: DocumentJob, state: _RunState, entry: RunLogEntry) -> None:
        try:
            state.logger.append(entry)
        except OSError as exc:
            raise ConversionError("WRITE_FAILED", f"{job.relative}: cannot append to run log: {exc}") from exc

    def _write_html(self, job: DocumentJob, path: Path, html: str) -> None:
        try:
            atomic_write(path, html)
        except OSError as exc:
            raise ConversionError("WRITE_FAILED", f"{job.relative}: cannot write {path}: {exc}") from exc

    def _publish(self, result: BatchResult) -> None:
        self._context.set_output("count", str(result.count))
        self._context.set_output("output_dir", result.output_dir)
        self._context.set_output("files", result.manifest.to_json())
        try:
            self._context.write_summary(build_summary(result))
        except (ContextError, OSError) as exc:
            self._context.debug(f"Skipping job summary: {exc}")


__all__ = ["ConversionError", "ConversionService"]
