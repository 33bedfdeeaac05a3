from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class StageTimings:
    parse_ms: float = 0.0
    style_ms: float = 0.0
    render_ms: float = 0.0
    pdf_ms: float = 0.0


@dataclass(slots=True)
class RunLogEntry:
    markdown: str
    status: str
    html: str | None = None
    pdf: str | None = None
    css: list[str] = field(default_factory=list)
    timings: StageTimings = field(default_factory=StageTimings)
    timestamp: str = field(default_factory=lambda: time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()))

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timings"] = asdict(self.timings)
        return payload


class RunLogger:
    def __init__(self, log_file: Path | None) -> None:
        self._log_file = log_file

    def append(self, entry: RunLogEntry) -> None:
        if self._log_file is None:
            return
        self._log_file.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._log_file.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
