from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_PATH = Path("config.toml")
ENV_PREFIX = "MDPDF_"

DEFAULT_MARKDOWN_PATTERNS: tuple[str, ...] = ("**/*.md",)
DEFAULT_OUTPUT_DIR = "output"
DEFAULT_PDF_TIMEOUT_MS = 20000
DEFAULT_LANG = "en"
DEFAULT_ENGINE = "playwright"

TRUE_TOKENS = frozenset({"true", "1", "yes", "on"})
FALSE_TOKENS = frozenset({"false", "0", "no", "off"})

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "DEFAULT_MARKDOWN_PATTERNS",
    "DEFAULT_OUTPUT_DIR",
    "DEFAULT_PDF_TIMEOUT_MS",
    "DEFAULT_LANG",
    "DEFAULT_ENGINE",
    "TRUE_TOKENS",
    "FALSE_TOKENS",
]
