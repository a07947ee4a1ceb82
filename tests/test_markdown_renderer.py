"""
Tests for prompt rendering shown to students.
"""

from quizdesk.core.markdown_renderer import PromptRenderer


class TestPromptRenderer:
    def test_blank_marker_becomes_span(self):
        html = PromptRenderer().render_fragment("The capital of France is ___")
        assert html.strip() == '<p>The capital of France is <span class="blank">____</span></p>'

    def test_markdown_is_rendered_around_the_blank(self):
        html = PromptRenderer().render_fragment("**Bold** ___ *word*")
        assert "<strong>Bold</strong>" in html
        assert "<em>word</em>" in html
        assert '<span class="blank">____</span>' in html

    def test_blank_prompt_uses_placeholder_text(self):
        assert PromptRenderer().render_fragment("   ") == "<p><em>No content provided.</em></p>"

    def test_raw_html_is_escaped(self):
        html = PromptRenderer().render_fragment("<script>alert(1)</script>")
        assert "<script>" not in html
        assert "&lt;script&gt;" in html
