"""PDF production through an external Chromium instance.

Two strategies implement the same contract: ``PlaywrightPdfEngine`` drives the
browser through the Playwright driver, ``ChromeCliPdfEngine`` spawns a one-shot
headless process with ``--print-to-pdf``. Both navigate a ``file://`` URL so
relative assets resolve, enforce a single deadline on navigation plus
printing, never leave a partial PDF behind and always release the browser.
"""

from __future__ import annotations

import asyncio
import os
import signal
import sys
from pathlib import Path
from typing import Callable, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .utils import atomic_write_bytes, partial_path

LogFn = Callable[[str], None]

BASE_LAUNCH_ARGS: tuple[str, ...] = (
    "--disable-dev-shm-usage",
    "--no-first-run",
    "--no-default-browser-check",
)
SANDBOX_ARGS: tuple[str, ...] = ("--no-sandbox", "--disable-setuid-sandbox")
CLI_ARGS: tuple[str, ...] = (
    "--headless=new",
    "--disable-gpu",
    "--hide-scrollbars",
    "--run-all-compositor-stages-before-draw",
    "--no-pdf-header-footer",
    "--print-to-pdf-no-header",
)
MAX_DIAGNOSTIC_CHARS = 4000
FONTS_READY_SCRIPT = "() => document.fonts ? document.fonts.ready.then(() => true) : true"


class RenderError(RuntimeError):
    def __init__(self, message: str, diagnostics: str = "") -> None:
        if diagnostics:
            message = f"{message}\n{diagnostics}"
        super().__init__(message)
        self.diagnostics = diagnostics


class RenderTimeoutError(RenderError):
    """Raised when navigation plus printing exceeds the deadline."""


class PdfEngine(Protocol):
    async def render(
        self,
        html_path: Path,
        pdf_path: Path,
        *,
        timeout_ms: int,
        disable_sandbox: bool,
    ) -> None:
        diagnostics: list[str] = []
        try:
            async with async_playwright() as playwright:
                try:
                    browser = await playwright.chromium.launch(
                        executable_path=str(self._executable) if self._executable else None,
                        headless=True,
                        args=launch_args(disable_sandbox),
                        chromium_sandbox=not disable_sandbox,
                    )
                except PlaywrightError as exc:
                    raise RenderError(f"Failed to launch browser: {exc.message}") from exc
                try:
                    page = await browser.new_page()
                    page.on("console", lambda message: diagnostics.append(f"console.{message.type}: {message.text}"))
                    page.on("pageerror", lambda error: diagnostics.append(f"pageerror: {error}"))
                    pdf_bytes = await self._render_page(page, html_path, timeout_ms, diagnostics)
                finally:
                    await browser.close()
        except PlaywrightError as exc:
            raise RenderError(
                f"Rendering {html_path.name} failed: {exc.message}",
                _clip("\n".join(diagnostics)),
            ) from exc
        atomic_write_bytes(pdf_path, pdf_bytes)

    async def _render_page(self, page: Page, html_path: Path, timeout_ms: int, diagnostics: list[str]) -> bytes:
        loop = asyncio.get_running_loop()
        timeout = _timeout_seconds(timeout_ms)
        deadline = loop.time() + timeout if timeout is not None else None

        def remaining() -> float | None:
            if deadline is None:
                return None
            return max(deadline - loop.time(), 0.0)

        try:
            await asyncio.wait_for(
                page.goto(html_path.resolve().as_uri(), wait_until="networkidle", timeout=0),
                remaining(),
            )
            await self._wait_for_fonts(page, timeout)
            return await asyncio.wait_for(self._print(page), remaining())
        except (asyncio.TimeoutError, PlaywrightTimeoutError) as exc:
            raise RenderTimeoutError(
                f"Rendering {html_path.name} timed out after {timeout_ms} ms",
                _clip("\n".join(diagnostics)),
            ) from exc
        except PlaywrightError as exc:
            raise RenderError(
                f"Rendering {html_path.name} failed: {exc.message}",
                _clip("\n".join(diagnostics)),
            ) from exc

    async def _wait_for_fonts(self, page: Page, timeout: float | None) -> None:
        try:
            await asyncio.wait_for(page.evaluate(FONTS_READY_SCRIPT), timeout)
        except (asyncio.TimeoutError, PlaywrightError) as exc:
            self._log(f"Font readiness wait failed: {str(exc) or 'timed out'}")

    async def _print(self, page: Page) -> bytes:
        await page.emulate_media(media="print")
        return await page.pdf(
            print_background=True,
            prefer_css_page_size=True,
            display_header_footer=False,
        )


class ChromeCliPdfEngine:
    def __init__(self, executable: Path, log: LogFn | None = None) -> None:
        self._executable = executable
        self._log = log or _silent

    def command(self, html_path: Path, output: Path, disable_sandbox: bool) -> list[str]:
        return [
            str(self._executable),
            *launch_args(disable_sandbox),
            *CLI_ARGS,
            f"--print-to-pdf={output}",
            html_path.resolve().as_uri(),
        ]

    async def render(
        self,
        html_path: Path,
        pdf_path: Path,
        *,
        timeout_ms: int,
        disable_sandbox: bool,
    ) -> None:
        pdf_path.parent.mkdir(parents=True, exist_ok=True)
        staging = partial_path(pdf_path)
        staging.unlink(missing_ok=True)
        command = self.command(html_path, staging, disable_sandbox)
        self._log(f"Spawning {' '.join(command)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=sys.platform != "win32",
            )
        except OSError as exc:
            raise RenderError(f"Failed to launch browser {self._executable}: {exc}") from exc

        assert process.stderr is not None
        stderr_task = asyncio.ensure_future(process.stderr.read())
        try:
            await asyncio.wait_for(process.wait(), _timeout_seconds(timeout_ms))
        except asyncio.TimeoutError as exc:
            self._kill(process)
            await process.wait()
            diagnostics = await self._collect(stderr_task)
            staging.unlink(missing_ok=True)
            raise RenderTimeoutError(
                f"Rendering {html_path.name} timed out after {timeout_ms} ms", diagnostics
            ) from exc
        except BaseException:
            self._kill(process)
            stderr_task.cancel()
            staging.unlink(missing_ok=True)
            raise

        diagnostics = await self._collect(stderr_task)
        if process.returncode != 0:
            staging.unlink(missing_ok=True)
            raise RenderError(
                f"Browser exited with status {process.returncode} while rendering {html_path.name}",
                diagnostics,
            )
        if not staging.is_file() or staging.stat().st_size == 0:
            staging.unlink(missing_ok=True)
            raise RenderError(f"Browser produced no PDF for {html_path.name}", diagnostics)
        os.replace(staging, pdf_path)

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            if sys.platform != "win32":
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass

    @staticmethod
    async def _collect(task: asyncio.Future[bytes]) -> str:
        try:
            data = await asyncio.wait_for(task, 1.0)
        except asyncio.TimeoutError:
            task.cancel()
            return ""
        return _clip(data.decode("utf-8", errors="replace"))


ENGINES: dict[str, type[PlaywrightPdfEngine] | type[ChromeCliPdfEngine]] = {
    "playwright": PlaywrightPdfEngine,
    "cli": ChromeCliPdfEngine,
}


def create_engine(name: str, executable: Path, log: LogFn | None = None) -> PdfEngine:
    engine_cls = ENGINES.get(name.strip().lower())
    if engine_cls is None:
        raise KeyError(f"Unknown pdf engine {name!r}; expected one of {', '.join(sorted(ENGINES))}")
    return engine_cls(executable, log)


__all__ = [
    "ChromeCliPdfEngine",
    "PdfEngine",
    "PlaywrightPdfEngine",
    "RenderError",
    "RenderTimeoutError",
    "create_engine",
    "launch_args",
]
