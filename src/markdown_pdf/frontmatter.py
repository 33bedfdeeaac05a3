"""YAML front matter splitting and typed metadata access."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping

import yaml

from .constraint import FALSE_TOKENS, TRUE_TOKENS

FM_PATTERN = re.compile(
    r"\A---[ \t]*\r?\n(?P<meta>.*?)^(?:---|\.\.\.)[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


class FrontMatterError(ValueError):
    """Raised when a front matter block cannot be parsed."""


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Return ``(metadata, body)``; documents without a block get ``{}``."""

    if text.startswith("\ufeff"):
        text = text[1:]
    match = FM_PATTERN.match(text)
    if not match:
        return {}, text
    try:
        data = yaml.safe_load(match.group("meta"))
    except yaml.YAMLError as exc:
        raise FrontMatterError(f"Invalid front matter: {exc}") from exc
    body = text[match.end() :]
    if not isinstance(data, dict):
        return {}, body
    return {str(key): value for key, value in data.items()}, body


def parse_booleanish(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in TRUE_TOKENS:
            return True
        if normalized in FALSE_TOKENS:
            return False
    return None


def _as_text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, tuple)):
        return None
    text = str(value).strip()
    return text or None


@dataclass(slots=True)
class FrontMatter:
    """Read-only view over the permissive metadata mapping."""

    data: Mapping[str, Any] = field(default_factory=dict)

    def has(self, key: str) -> bool:
        return key in self.data

    def get_str(self, key: str) -> str | None:
        return _as_text(self.data.get(key))

    def get_bool(self, key: str) -> bool | None:
        return parse_booleanish(self.data.get(key))

    def get_list(self, key: str) -> list[str] | None:
        """Return a scalar or list value as stripped strings, ``None`` when absent or blank."""

        value = self.data.get(key)
        if value is None:
            return None
        if isinstance(value, (list, tuple)):
            return [text for item in value if (text := _as_text(item)) is not None]
        text = _as_text(value)
        # Blank or structured scalars count as absent.
        return [text] if text is not None else None

    @property
    def title(self) -> str | None:
        return self.get_str("title")

    @property
    def lang(self) -> str | None:
        return self.get_str("lang")

    @property
    def output_name(self) -> str | None:
        return self.get_str("output_name")

    @property
    def css(self) -> list[str] | None:
        return self.get_list("css")

    @property
    def skipped(self) -> bool:
        return should_skip(self.data)


def should_skip(meta: Mapping[str, Any] | None) -> bool:
    """Draft, skip or an explicit ``publish: false`` keep a document out of the run."""

    if not meta:
        return False
    if parse_booleanish(meta.get("draft")) is True:
        return True
    if parse_booleanish(meta.get("skip")) is True:
        return True
    if "publish" in meta and parse_booleanish(meta.get("publish")) is False:
        return True
    return False


__all__ = [
    "FrontMatter",
    "FrontMatterError",
    "parse_booleanish",
    "should_skip",
    "split_front_matter",
]
