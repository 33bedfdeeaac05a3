"""Host environment capabilities injected into the conversion service.

The service never reads environment variables or prints directly; it talks to
an ``ExecutionContext`` that can read configuration inputs, emit log lines,
publish structured outputs and write a run summary. ``ActionsContext`` maps
these onto the GitHub Actions runner protocol, ``ConsoleContext`` onto a
local terminal.
"""

from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Mapping, MutableMapping, Protocol

from rich.console import Console


class ContextError(RuntimeError):
    """Raised when the host cannot provide a requested capability."""


class ExecutionContext(Protocol):
    def get_input(self, name: str) -> str:  # pragma: no cover - interface
        ...

    def get_multiline_input(self, name: str) -> list[str]:  # pragma: no cover - interface
        ...

    def debug(self, message: str) -> None:  # pragma: no cover - interface
        ...

    def info(self, message: str) -> None:  # pragma: no cover - interface
        ...

    def warning(self, message: str) -> None:  # pragma: no cover - interface
        ...

    def error(self, message: str) -> None:  # pragma: no cover - interface
        ...

    def start_group(self, name: str) -> None:  # pragma: no cover - interface
        ...

    def end_group(self) -> None:  # pragma: no cover - interface
        ...

    def set_output(self, name: str, value: str) -> None:  # pragma: no cover - interface
        ...

    def write_summary(self, markdown: str) -> None:  # pragma: no cover - interface
        ...

    def set_failed(self, message: str) -> None:  # pragma: no cover - interface
        ...


def _split_lines(raw: str) -> list[str]:
    return [line.strip() for line in raw.splitlines() if line.strip()]


def escape_command_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def input_env_name(name: str) -> str:
    return f"INPUT_{name.replace(' ', '_').upper()}"


class ActionsContext:
    """GitHub Actions runner: ``INPUT_*`` variables, workflow commands and files."""

    def __init__(self, environ: Mapping[str, str] | None = None, console: Console | None = None) -> None:
        self._environ = os.environ if environ is None else environ
        self._console = console or Console(soft_wrap=True, highlight=False)
        self.failed = False

    def get_input(self, name: str) -> str:
        return self._environ.get(input_env_name(name), "").strip()

    def get_multiline_input(self, name: str) -> list[str]:
        return _split_lines(self._environ.get(input_env_name(name), ""))

    def _command(self, command: str, message: str) -> None:
        self._console.out(f"::{command}::{escape_command_data(message)}", highlight=False)

    def debug(self, message: str) -> None:
        self._command("debug", message)

    def info(self, message: str) -> None:
        self._console.out(message, highlight=False)

    def warning(self, message: str) -> None:
        self._command("warning", message)

    def error(self, message: str) -> None:
        self._command("error", message)

    def start_group(self, name: str) -> None:
        self._command("group", name)

    def end_group(self) -> None:
        self._console.out("::endgroup::", highlight=False)

    def set_output(self, name: str, value: str) -> None:
        output_file = self._environ.get("GITHUB_OUTPUT")
        if not output_file:
            self._console.out(f"::set-output name={name}::{escape_command_data(value)}", highlight=False)
            return
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        with open(output_file, "a", encoding="utf-8") as handle:
            handle.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")

    def write_summary(self, markdown: str) -> None:
        summary_file = self._environ.get("GITHUB_STEP_SUMMARY")
        if not summary_file:
            raise ContextError("Unable to find environment variable for $GITHUB_STEP_SUMMARY")
        with open(summary_file, "a", encoding="utf-8") as handle:
            handle.write(markdown)

    def set_failed(self, message: str) -> None:
        self.failed = True
        self.error(message)


class ConsoleContext:
    """Local terminal run; inputs come from a mapping built by the CLI."""

    def __init__(
        self,
        inputs: Mapping[str, str | None] | None = None,
        *,
        console: Console | None = None,
        verbose: bool = False,
        summary_path: Path | None = None,
    ) -> None:
        self._inputs = {key: value for key, value in (inputs or {}).items() if value is not None}
        self._console = console or Console(stderr=True, highlight=False)
        self._verbose = verbose
        self._summary_path = summary_path
        self._depth = 0
        self.outputs: MutableMapping[str, str] = {}
        self.summaries: list[str] = []
        self.failed = False

    def get_input(self, name: str) -> str:
        return str(self._inputs.get(name, "")).strip()

    def get_multiline_input(self, name: str) -> list[str]:
        return _split_lines(str(self._inputs.get(name, "")))

    def _line(self, message: str, style: str | None = None) -> None:
        self._console.print("  " * self._depth + message, style=style, markup=False, highlight=False)

    def debug(self, message: str) -> None:
        if self._verbose:
            self._line(message, style="dim")

    def info(self, message: str) -> None:
        self._line(message)

    def warning(self, message: str) -> None:
        self._line(f"warning: {message}", style="yellow")

    def error(self, message: str) -> None:
        self._line(f"error: {message}", style="red")

    def start_group(self, name: str) -> None:
        self._line(name, style="bold cyan")
        self._depth += 1

    def end_group(self) -> None:
        self._depth = max(0, self._depth - 1)

    def set_output(self, name: str, value: str) -> None:
        self.outputs[name] = value

    def write_summary(self, markdown: str) -> None:
        self.summaries.append(markdown)
        if self._summary_path is not None:
            self._summary_path.parent.mkdir(parents=True, exist_ok=True)
            with self._summary_path.open("a", encoding="utf-8") as handle:
                handle.write(markdown)

    def set_failed(self, message: str) -> None:
        self.failed = True
        self._depth = 0
        self.error(message)


__all__ = [
    "ActionsContext",
    "ConsoleContext",
    "ContextError",
    "ExecutionContext",
    "escape_command_data",
    "input_env_name",
]
