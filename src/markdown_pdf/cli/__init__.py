from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ..browser import BrowserNotFoundError, detect_chrome_executable
from ..config import AppConfig, ConfigError, apply_inputs, dump_config, load_config
from ..context import ActionsContext, ConsoleContext, ExecutionContext
from ..core import ConversionError, ConversionService
from ..models import BatchResult
from ..paths import resolve_workspace
from ..settings import get_settings

console = Console()

app = typer.Typer(help="Convert Markdown documents into styled PDF (and HTML) files")


def _config_path(workspace: Path, config: Path | None) -> Path:
    path = config or get_settings().config_path
    return path if path.is_absolute() else workspace / path


def _flag(value: bool | None) -> str | None:
    if value is None:
        return None
    return "true" if value else "false"


def _lines(values: list[str] | None) -> str | None:
    if not values:
        return None
    return "\n".join(values)


def _run(context: ExecutionContext, workspace: Path, config_file: Path) -> BatchResult:
    try:
        config: AppConfig = apply_inputs(load_config(config_file), context)
        service = ConversionService(config, context, workspace=workspace)
        return service.run()
    except ConfigError as exc:
        context.set_failed(str(exc))
        raise typer.Exit(1) from exc
    except ConversionError as exc:
        context.set_failed(str(exc))
        raise typer.Exit(1) from exc


@app.command()
def action(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Run inside a GitHub Actions step using INPUT_* variables."""

    workspace = resolve_workspace(get_settings().workspace)
    context = ActionsContext()
    _run(context, workspace, _config_path(workspace, config))


@app.command()
def convert(
    workspace: Path | None = typer.Option(None, "--workspace", "-w", help="Workspace root"),
    files: list[str] | None = typer.Option(None, "--files", "-f", help="Include glob pattern (repeatable)"),
    exclude: list[str] | None = typer.Option(None, "--exclude", "-x", help="Exclude glob pattern (repeatable)"),
    global_css: list[str] | None = typer.Option(None, "--global-css", help="CSS applied to every document"),
    output_dir: str | None = typer.Option(None, "--output-dir", "-o", help="Output directory"),
    html: bool | None = typer.Option(None, "--html/--no-html", help="Persist the generated HTML"),
    include_readme: bool | None = typer.Option(None, "--include-readme/--skip-readme"),
    fail_on_missing_css: bool | None = typer.Option(None, "--fail-on-missing-css/--allow-missing-css"),
    disable_sandbox: bool | None = typer.Option(None, "--disable-sandbox/--enable-sandbox"),
    timeout_ms: int | None = typer.Option(None, "--timeout-ms", min=0, help="PDF rendering deadline"),
    chrome_path: str | None = typer.Option(None, "--chrome-path", help="Chrome or Chromium executable"),
    extra_head: str | None = typer.Option(None, "--extra-head", help="Markup inserted into <head>"),
    engine: str | None = typer.Option(None, "--engine", help="playwright or cli"),
    run_log: str | None = typer.Option(None, "--run-log", help="JSON-lines run log inside the workspace"),
    summary: Path | None = typer.Option(None, "--summary", help="Write the markdown summary here"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Convert markdown files in a local workspace."""

    root = resolve_workspace(workspace or get_settings().workspace)
    inputs = {
        "files": _lines(files),
        "exclude": _lines(exclude),
        "global_css": _lines(global_css),
        "output_dir": output_dir,
        "generate_html": _flag(html),
        "include_readme": _flag(include_readme),
        "fail_on_missing_css": _flag(fail_on_missing_css),
        "disable_sandbox": _flag(disable_sandbox),
        "pdf_timeout_ms": str(timeout_ms) if timeout_ms is not None else None,
        "chrome_path": chrome_path,
        "extra_html_head": extra_head,
        "pdf_engine": engine,
        "run_log": run_log,
    }
    context = ConsoleContext(inputs, verbose=verbose or bool(get_settings().verbose), summary_path=summary)
    result = _run(context, root, _config_path(root, config))

    table = Table(title="Converted documents")
    table.add_column("Markdown")
    table.add_column("PDF")
    if result.html_enabled:
        table.add_column("HTML")
    table.add_column("CSS")
    for entry in result.manifest:
        row = [entry.markdown, entry.pdf]
        if result.html_enabled:
            row.append(entry.html or "-")
        row.append(", ".join(entry.css) or "-")
        table.add_row(*row)
    console.print(table)
    console.print(
        f"[green]Success[/green]: converted {result.count} documents into {result.output_dir}"
        + (f", skipped {len(result.skipped)}" if result.skipped else "")
    )


@app.command("find-browser")
def find_browser(
    chrome_path: str | None = typer.Option(None, "--chrome-path", help="Explicit executable to verify"),
) -> None:
    try:
        executable = detect_chrome_executable(chrome_path)
    except BrowserNotFoundError as exc:
        console.print(f"[red]Not found[/red]: {exc}")
        raise typer.Exit(1) from exc
    console.print(str(executable))


@app.command("show-config")
def show_config(
    workspace: Path | None = typer.Option(None, "--workspace", "-w", help="Workspace root"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    root = resolve_workspace(workspace or get_settings().workspace)
    try:
        cfg = load_config(_config_path(root, config))
    except ConfigError as exc:
        console.print(f"[red]Invalid configuration[/red]: {exc}")
        raise typer.Exit(1) from exc
    console.print_json(dump_config(cfg))


if __name__ == "__main__":
    app()
