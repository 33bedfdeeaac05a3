from __future__ import annotations

import json
import sys
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable, Mapping

from .constraint import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_ENGINE,
    DEFAULT_MARKDOWN_PATTERNS,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_PDF_TIMEOUT_MS,
)
from .context import ExecutionContext
from .settings import parse_bool


class ConfigError(ValueError):
    """Raised for configuration values that cannot be interpreted."""


def default_disable_sandbox() -> bool:
    return sys.platform.startswith("linux")


@dataclass(slots=True)
class InputConfig:
    files: tuple[str, ...] = DEFAULT_MARKDOWN_PATTERNS
    exclude: tuple[str, ...] = ()
    global_css: tuple[str, ...] = ()
    include_readme: bool = False


@dataclass(slots=True)
class OutputConfig:
    output_dir: str = DEFAULT_OUTPUT_DIR
    generate_html: bool = True
    run_log: str | None = None


@dataclass(slots=True)
class RenderConfig:
    engine: str = DEFAULT_ENGINE
    pdf_timeout_ms: int = DEFAULT_PDF_TIMEOUT_MS
    disable_sandbox: bool = field(default_factory=default_disable_sandbox)
    chrome_path: str | None = None
    extra_html_head: str = ""
    fail_on_missing_css: bool = False


@dataclass(slots=True)
class AppConfig:
    inputs: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    render: RenderConfig = field(default_factory=RenderConfig)


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _coerce_bool(name: str, value: object, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    parsed = parse_bool(str(value))
    if parsed is None:
        raise ConfigError(
            f"Input does not meet YAML 1.2 \"Core Schema\" specification: {name}\n"
            "Support boolean input list: `true | True | TRUE | false | False | FALSE`"
        )
    return parsed


def _coerce_int(value: object, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def _tuple_of_strings(value: object | None, default: Iterable[str]) -> tuple[str, ...]:
    if value is None:
        return tuple(default)
    if isinstance(value, str):
        lines = tuple(line.strip() for line in value.splitlines() if line.strip())
        return lines or tuple(default)
    if isinstance(value, Iterable):
        items = tuple(str(item).strip() for item in value if str(item).strip())
        return items or tuple(default)
    raise ConfigError(f"Unsupported pattern configuration: {value!r}")


def _optional_string(value: object | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _table(raw: Mapping[str, object], key: str) -> Mapping[str, object]:
    data = raw.get(key)
    return data if isinstance(data, Mapping) else {}


def _build_inputs(data: Mapping[str, object]) -> InputConfig:
    return InputConfig(
        files=_tuple_of_strings(data.get("files"), DEFAULT_MARKDOWN_PATTERNS),
        exclude=_tuple_of_strings(data.get("exclude"), ()),
        global_css=_tuple_of_strings(data.get("global_css"), ()),
        include_readme=_coerce_bool("include_readme", data.get("include_readme"), False),
    )


def _build_output(data: Mapping[str, object]) -> OutputConfig:
    generate = data.get("generate_html", data.get("emit_html"))
    return OutputConfig(
        output_dir=_optional_string(data.get("output_dir")) or DEFAULT_OUTPUT_DIR,
        generate_html=_coerce_bool("generate_html", generate, True),
        run_log=_optional_string(data.get("run_log")),
    )


def _build_render(data: Mapping[str, object]) -> RenderConfig:
    return RenderConfig(
        engine=_optional_string(data.get("engine")) or DEFAULT_ENGINE,
        pdf_timeout_ms=_coerce_int(data.get("pdf_timeout_ms"), DEFAULT_PDF_TIMEOUT_MS),
        disable_sandbox=_coerce_bool("disable_sandbox", data.get("disable_sandbox"), default_disable_sandbox()),
        chrome_path=_optional_string(data.get("chrome_path")),
        extra_html_head=str(data.get("extra_html_head") or ""),
        fail_on_missing_css=_coerce_bool("fail_on_missing_css", data.get("fail_on_missing_css"), False),
    )


def load_config(path: Path | None = None) -> AppConfig:
    path = path or DEFAULT_CONFIG_PATH
    raw = _read_toml(path)
    return AppConfig(
        inputs=_build_inputs(_table(raw, "inputs")),
        output=_build_output(_table(raw, "output")),
        render=_build_render(_table(raw, "render")),
    )


def apply_inputs(config: AppConfig, context: ExecutionContext) -> AppConfig:
    """Overlay non-empty host inputs on top of the file configuration."""

    def multiline(name: str, current: tuple[str, ...]) -> tuple[str, ...]:
        values = context.get_multiline_input(name)
        return tuple(values) if values else current

    def text(name: str, current: str | None) -> str | None:
        value = context.get_input(name)
        return value if value else current

    def boolean(name: str, current: bool) -> bool:
        return _coerce_bool(name, context.get_input(name), current)

    generate_html = config.output.generate_html
    for name in ("emit_html", "generate_html"):
        generate_html = boolean(name, generate_html)

    timeout_raw = context.get_input("pdf_timeout_ms")
    timeout = _coerce_int(timeout_raw, config.render.pdf_timeout_ms)
    if timeout_raw and str(timeout) != timeout_raw.strip():
        context.warning(f"Ignoring invalid pdf_timeout_ms {timeout_raw!r}; using {timeout}")

    return AppConfig(
        inputs=replace(
            config.inputs,
            files=multiline("files", config.inputs.files),
            exclude=multiline("exclude", config.inputs.exclude),
            global_css=multiline("global_css", config.inputs.global_css),
            include_readme=boolean("include_readme", config.inputs.include_readme),
        ),
        output=replace(
            config.output,
            output_dir=text("output_dir", config.output.output_dir) or DEFAULT_OUTPUT_DIR,
            generate_html=generate_html,
            run_log=text("run_log", config.output.run_log),
        ),
        render=replace(
            config.render,
            engine=text("pdf_engine", config.render.engine) or DEFAULT_ENGINE,
            pdf_timeout_ms=timeout,
            disable_sandbox=boolean("disable_sandbox", config.render.disable_sandbox),
            chrome_path=text("chrome_path", config.render.chrome_path),
            extra_html_head=context.get_input("extra_html_head") or config.render.extra_html_head,
            fail_on_missing_css=boolean("fail_on_missing_css", config.render.fail_on_missing_css),
        ),
    )


def dump_config(config: AppConfig) -> str:
    payload = {
        "inputs": {
            "files": list(config.inputs.files),
            "exclude": list(config.inputs.exclude),
            "global_css": list(config.inputs.global_css),
            "include_readme": config.inputs.include_readme,
        },
        "output": {
            "output_dir": config.output.output_dir,
            "generate_html": config.output.generate_html,
            "run_log": config.output.run_log,
        },
        "render": {
            "engine": config.render.engine,
            "pdf_timeout_ms": config.render.pdf_timeout_ms,
            "disable_sandbox": config.render.disable_sandbox,
            "chrome_path": config.render.chrome_path,
            "extra_html_head": config.render.extra_html_head,
            "fail_on_missing_css": config.render.fail_on_missing_css,
        },
    }
    return json.dumps(payload, indent=2)


__all__ = [
    "AppConfig",
    "ConfigError",
    "InputConfig",
    "OutputConfig",
    "RenderConfig",
    "apply_inputs",
    "dump_config",
    "load_config",
]
