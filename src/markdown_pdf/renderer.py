"""Markdown rendering and standalone HTML assembly."""

from __future__ import annotations

from functools import lru_cache
from typing import Sequence

from markdown_it import MarkdownIt

from .models import DocumentJob, RenderedDocument

HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
}


def escape_html(value: object) -> str:
    return "".join(HTML_ESCAPES.get(char, char) for char in str(value))


def build_markdown_parser() -> MarkdownIt:
    md = MarkdownIt("commonmark", {"html": True, "linkify": True, "typographer": True})
    md.enable(["linkify", "replacements", "smartquotes", "table", "strikethrough"])
    return md


@lru_cache(maxsize=1)
def _get_markdown_parser() -> MarkdownIt:
    return build_markdown_parser()


def render_markdown(body: str) -> str:
    return _get_markdown_parser().render(body)


def build_html_document(
    *,
    title: str,
    lang: str,
    css: Sequence[str],
    body_html: str,
    extra_head: str = "",
) -> str:
    """Assemble a complete document; title and lang are escaped, the rest is trusted markup."""

    head_extra = f"\n{extra_head}" if extra_head else ""
    inline_css = "\n\n".join(css)
    return (
        "<!DOCTYPE html>\n"
        f'<html lang="{escape_html(lang)}">\n'
        "<head>\n"
        '<meta charset="utf-8">\n'
        '<meta name="viewport" content="width=device-width, initial-scale=1">\n'
        f"<title>{escape_html(title)}</title>{head_extra}\n"
        "<style>\n"
        f"{inline_css}\n"
        "</style>\n"
        "</head>\n"
        "<body>\n"
        f"{body_html}"
        "</body>\n"
        "</html>\n"
    )


def render_document(job: DocumentJob, css: Sequence[str], extra_head: str = "") -> RenderedDocument:
    html = build_html_document(
        title=job.title,
        lang=job.lang,
        css=css,
        body_html=render_markdown(job.body),
        extra_head=extra_head,
    )
    return RenderedDocument(html=html, title=job.title, lang=job.lang)


__all__ = [
    "build_html_document",
    "build_markdown_parser",
    "escape_html",
    "render_document",
    "render_markdown",
]
