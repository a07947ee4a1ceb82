"""Markdown rendering for question prompts sent to students."""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt

from quizdesk.constants.quiz_constants import BLANK_MARKER

_BLANK_HTML = '<span class="blank">____</span>'
_BLANK_PLACEHOLDER = "QUIZDESKBLANKTOKEN"


@dataclass(slots=True)
class PromptRenderer:
    """Converts prompt markdown into HTML fragments.

    Raw HTML in prompts is escaped. The blank marker is swapped for a
    placeholder before rendering so markdown does not read it as emphasis.
    """

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        sanitized = markdown_text.strip()
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        html = self._markdown.render(sanitized.replace(BLANK_MARKER, _BLANK_PLACEHOLDER))
        return html.replace(_BLANK_PLACEHOLDER, _BLANK_HTML)


renderer = PromptRenderer()
# MarkdownIt is safe for concurrent read-only renders, so one shared instance
# serves every API worker thread.
