"""
Markdown to HTML rendering for documorph.

markdown2 does the Markdown parsing; fenced code blocks are then highlighted
with Pygments and math placeholders are restored.
"""

from __future__ import annotations

import html

import markdown2
from bs4 import BeautifulSoup
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name, guess_lexer
from pygments.util import ClassNotFound

from .config import DocumentConfig, StyleSpec
from .latex import protect_math, restore_math
from .utils import print_info

MARKDOWN_EXTRAS = [
    "tables",
    "fenced-code-blocks",
    "strike",
    "task_list",
    "cuddled-lists",
    "highlightjs-lang",
]

PRE_STYLE = "white-space: pre"


def render_markdown(protected_text: str) -> str:
    """Render Markdown to HTML. Newlines inside paragraphs are not turned into breaks."""
    return str(markdown2.markdown(protected_text, extras=MARKDOWN_EXTRAS))


def _code_language(code) -> str | None:
    classes = code.get("class") or []
    for name in classes:
        if name.startswith("language-"):
            return name[len("language-") :]
    return classes[0] if classes else None


def _pick_lexer(code_text: str, language: str | None):
    if language:
        try:
            return get_lexer_by_name(language)
        except ClassNotFound:
            pass
    try:
        return guess_lexer(code_text)
    except ClassNotFound:
        return TextLexer()


def highlight_code_blocks(html_content: str) -> str:
    """Syntax-highlight every <pre><code> block and keep its whitespace intact."""
    soup = BeautifulSoup(html_content, "html.parser")
    formatter = HtmlFormatter(nowrap=True)

    for pre in soup.find_all("pre"):
        pre["style"] = PRE_STYLE
        code = pre.find("code")
        if code is None or code.find("span") is not None:
            # Already colored by markdown2
            continue

        code_text = code.get_text()
        if not code_text.strip():
            continue

        lexer = _pick_lexer(code_text, _code_language(code))
        alias = lexer.aliases[0] if lexer.aliases else "text"
        highlighted = highlight(code_text, lexer, formatter)
        new_code = BeautifulSoup(
            f'<code class="language-{alias}">{highlighted}</code>', "html.parser"
        ).code
        code.replace_with(new_code)
        pre["class"] = ["highlight"]

    return str(soup)


def markdown_to_html(content: str) -> str:
    """Full HTML pipeline: protect math, render Markdown, highlight code, restore math."""
    protected, fragments = protect_math(content)
    if fragments:
        print_info(f"Detected {len(fragments)} LaTeX formulas")
    rendered = render_markdown(protected)
    rendered = highlight_code_blocks(rendered)
    if fragments:
        rendered = restore_math(rendered, fragments)
    return rendered


def _style_css(selector: str, style: StyleSpec) -> str:
    return (
        f"{selector} {{ font-family: '{style.font_family}'; font-size: {style.font_size:g}pt; "
        f"color: #{style.color}; font-weight: {'bold' if style.bold else 'normal'}; "
        f"font-style: {'italic' if style.italic else 'normal'}; "
        f"text-decoration: {'underline' if style.underline else 'none'}; "
        f"text-align: {style.alignment}; margin: {style.margin_top:g}pt 0 {style.margin_bottom:g}pt 0; }}"
    )


def render_print_html(content: str, config: DocumentConfig | None = None, title: str = "Document") -> str:
    """Render Markdown into a standalone, print-ready HTML page."""
    if config is None:
        config = DocumentConfig()

    body = markdown_to_html(content)
    rules = [
        "@page { margin: 20mm; size: A4; }",
        "body { margin: 0; padding: 20px; line-height: 1.6; }",
        "* { print-color-adjust: exact; -webkit-print-color-adjust: exact; }",
        _style_css("h1", config.heading_1),
        _style_css("h2", config.heading_2),
        _style_css("h3, h4, h5, h6", config.heading_3),
        _style_css("p, li, td, th", config.paragraph),
        _style_css("blockquote", config.blockquote),
        "blockquote { border-left: 3px solid #cbd5e1; padding-left: 1em; }",
        _style_css("pre", config.code_block),
        "pre { background: #f5f5f5; padding: 12px; overflow-x: auto; }",
        f"code {{ font-family: '{config.code_block.font_family}'; color: #{config.code_block.color}; }}",
        f"a {{ color: #{config.link.color}; text-decoration: {'underline' if config.link.underline else 'none'}; }}",
        "table { border-collapse: collapse; width: 100%; }",
        "th, td { border: 1px solid #d1d5db; padding: 4px 8px; }",
        "th { background: #e0e0e0; }",
        f"img {{ max-width: {config.image.max_width}; }}",
        "div.math-block { text-align: center; margin: 12pt 0; }",
        ".math-error { color: #cc0000; }",
        HtmlFormatter().get_style_defs(".highlight"),
    ]
    css = "\n".join(rules)
    return (
        "<!DOCTYPE html>\n"
        '<html>\n<head>\n<meta charset="UTF-8">\n'
        f"<title>{html.escape(title)}</title>\n"
        f"<style>\n{css}\n</style>\n"
        f"</head>\n<body>\n{body}\n</body>\n</html>\n"
    )
