"""HTML rendering for question prompts, options and explanations.

Question text is markdown with ``$...$`` / ``$$...$$`` math. markdown-it turns
it into HTML on the server and MathJax typesets the math in the participant's
browser, so every client sees the same markup. Fill-in-the-blank prompts get
one ``<input>`` per ``[___]`` marker, carrying the same ``blank-N`` ids the
matchers use.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import html
from string import Template

from markdown_it import MarkdownIt

from study_quiz.constants.about import APP_NAME
from study_quiz.core.matchers import split_blanks

_MATHJAX_CDN = "https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"
_EMPTY_PROMPT_HTML = "<p><em>No content provided.</em></p>"
_PLACEHOLDER = "@@{}@@"

_PAGE = Template(
    """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width, initial-scale=1" />
<title>$title</title>
<script>
window.MathJax = {tex: {inlineMath: [['$$', '$$']], displayMath: [['$$$$', '$$$$']]}};
</script>
<script defer src="$mathjax"></script>
<style>input.quiz-blank { min-width: 8em; }</style>
</head>
<body>
<main class="quiz-question">$body</main>
</body>
</html>"""
)


def _blank_input(blank_id: str) -> str:
    escaped = html.escape(blank_id, quote=True)
    return f'<input type="text" class="quiz-blank" name="{escaped}" data-blank-id="{escaped}" autocomplete="off" />'


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Renders quiz markdown into HTML fragments or standalone pages.

    Raw HTML in the source is escaped unless ``allow_html`` is set; prompts
    come from a generation model and are not trusted.
    """

    allow_html: bool = False
    _md: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._md = MarkdownIt("commonmark", {"html": self.allow_html}).enable(["table", "strikethrough"])

    def render_fragment(self, markdown_text: str) -> str:
        source = (markdown_text or "").strip()
        return self._md.render(source) if source else _EMPTY_PROMPT_HTML

    def render_inline(self, markdown_text: str) -> str:
        """Render an option label without wrapping it in a paragraph."""
        return self._md.renderInline((markdown_text or "").strip())

    def render_with_blanks(self, text_with_blanks: str) -> str:
        """Render a fill-in-the-blank prompt with a text input per gap.

        Gaps are swapped for placeholder tokens before markdown runs, so a
        marker inside emphasis or a list item still ends up as an input.
        """
        parts: list[str] = []
        gaps: list[str] = []
        for segment in split_blanks(text_with_blanks):
            if segment.is_blank:
                gaps.append(segment.blank_id)
                parts.append(_PLACEHOLDER.format(segment.blank_id))
            else:
                parts.append(segment.text)
        rendered = self.render_fragment("".join(parts))
        for blank_id in gaps:
            rendered = rendered.replace(_PLACEHOLDER.format(blank_id), _blank_input(blank_id))
        return rendered

    def wrap_with_mathjax(self, body_html: str, title: str = APP_NAME) -> str:
        """Embed ``body_html`` in a page that loads MathJax."""
        return _PAGE.substitute(title=html.escape(title), mathjax=_MATHJAX_CDN, body=body_html)

    def render_full_document(self, markdown_text: str, title: str = APP_NAME) -> str:
        return self.wrap_with_mathjax(self.render_fragment(markdown_text), title=title)


renderer = MarkdownMathRenderer()
