"""Markdown rendering for question prompts served over HTTP.

Prompts keep ``$...$`` math untouched so a client-side MathJax can typeset it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt

from quiz_engine.core.models import Question


@dataclass(slots=True)
class MarkdownRenderer:
    """Converts markdown prompt and option text into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        """Render a markdown string into a block-level HTML fragment."""
        sanitized = markdown_text.strip()
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        return self._markdown.render(sanitized)

    def render_inline(self, markdown_text: str) -> str:
        """Render a single line of markdown without a wrapping paragraph."""
        return self._markdown.renderInline(markdown_text.strip())

    def render_question(self, question: Question) -> tuple[str, list[str]]:
        """Return the prompt fragment and one inline fragment per option."""
        return (
            self.render_fragment(question.prompt),
            [self.render_inline(option) for option in question.options],
        )


renderer = MarkdownRenderer()
# MarkdownIt is safe to share for read-only renders, so the HTTP handlers
# reuse this instance.
