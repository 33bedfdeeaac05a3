"""Locating a Chrome or Chromium executable."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Mapping

ENV_HINTS: tuple[str, ...] = ("CHROME_PATH", "GOOGLE_CHROME_SHIM", "PLAYWRIGHT_BROWSERS_PATH")

POSIX_CANDIDATES: tuple[str, ...] = (
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/snap/bin/chromium",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
)

WINDOWS_CANDIDATES: tuple[str, ...] = (
    "C:/Program Files/Google/Chrome/Application/chrome.exe",
    "C:/Program Files (x86)/Google/Chrome/Application/chrome.exe",
)


class BrowserNotFoundError(FileNotFoundError):
    """Raised when no renderer executable can be located."""


def platform_candidates(
    platform: str | None = None, environ: Mapping[str, str] | None = None
) -> list[Path]:
    platform = platform or sys.platform
    environ = os.environ if environ is None else environ
    if platform == "win32":
        candidates = [Path(path) for path in WINDOWS_CANDIDATES]
        local_app_data = environ.get("LOCALAPPDATA")
        if local_app_data:
            candidates.append(Path(local_app_data) / "Google/Chrome/Application/chrome.exe")
        return candidates
    return [Path(path) for path in POSIX_CANDIDATES]


def detect_chrome_executable(
    explicit: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    candidates: list[Path] | None = None,
) -> Path:
    """Explicit path, then environment hints, then well-known install locations."""

    if explicit:
        resolved = Path(explicit).expanduser().resolve()
        if not resolved.exists():
            raise BrowserNotFoundError(f"Provided chrome_path does not exist: {resolved}")
        return resolved

    environ = os.environ if environ is None else environ
    for name in ENV_HINTS:
        hint = environ.get(name)
        if hint and Path(hint).is_file():
            return Path(hint).resolve()

    for candidate in candidates if candidates is not None else platform_candidates(environ=environ):
        if candidate.is_file():
            return candidate.resolve()

    raise BrowserNotFoundError(
        "Could not locate a Chrome or Chromium executable. "
        "Provide chrome_path input to specify it explicitly."
    )


__all__ = ["BrowserNotFoundError", "detect_chrome_executable", "platform_candidates"]
