"""Markdown rendering for question text and explanations.

Question text is stored as the user typed it. API consumers receive both the
raw text and an HTML fragment so a client can show formulas and lists without
shipping its own Markdown parser. Math stays as ``$...$`` for the client to
typeset.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


@dataclass(slots=True)
class MarkdownRenderer:
    """Converts Markdown source into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str | None) -> str:
        sanitized = (markdown_text or "").strip()
        if not sanitized:
            return ""
        return self._markdown.render(sanitized)


# MarkdownIt only reads its configuration while rendering, so the API threads share this instance.
renderer = MarkdownRenderer()
