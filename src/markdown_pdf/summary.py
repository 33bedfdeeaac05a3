from __future__ import annotations

from .models import BatchResult


def _cell(value: str) -> str:
    return value.replace("|", "\\|").replace("\n", " ")


def build_summary(result: BatchResult) -> str:
    """Markdown run summary: heading, count and one table row per document."""

    headers = ["Markdown input", "PDF output"]
    if result.html_enabled:
        headers.append("HTML output")
    headers.append("CSS styles used")

    lines = [
        "### Summary",
        "",
        f"Converted {result.count} Markdown to PDF.",
        "",
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join("---" for _ in headers) + " |",
    ]
    for entry in result.manifest:
        row = [entry.markdown, entry.pdf]
        if result.html_enabled:
            row.append(entry.html or "")
        row.append(", ".join(entry.css))
        lines.append("| " + " | ".join(_cell(value) for value in row) + " |")
    if not result.html_enabled:
        lines.extend(
            [
                "",
                "HTML output is disabled. Enable it by setting `generate_html: true` in your workflow.",
            ]
        )
    return "\n".join(lines) + "\n"


__all__ = ["build_summary"]
