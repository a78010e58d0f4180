"""Markdown rendering for question text served to exam clients.

Math is left as `$...$` / `$$...$$` source and typeset by MathJax in the
student's browser, so stored exams stay independent of any math engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt

from exam_app.core.models import ExamQuestion


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Converts markdown-with-math into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        """Render a markdown string into an HTML fragment."""

        sanitized = markdown_text.strip()
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        return self._markdown.render(sanitized)

    def render_inline(self, markdown_text: str) -> str:
        """Render a short snippet (an option label) without a wrapping paragraph."""

        return self._markdown.renderInline(markdown_text.strip())

    def render_question(self, question: ExamQuestion) -> dict[str, object]:
        return {
            "text_html": self.render_fragment(question.text),
            "options_html": [self.render_inline(option) for option in question.options],
        }


renderer = MarkdownMathRenderer()
# MarkdownIt is safe for concurrent read-only renders, so the API threads share
# this instance.
