"""
LaTeX math handling for documorph.

Math spans are swapped for placeholders before Markdown rendering so the
Markdown parser cannot mangle them, then restored into the rendered HTML as
MathML wrapped in containers that carry the original TeX.
"""

from __future__ import annotations

import html
import re
from collections.abc import Callable
from typing import NamedTuple
from urllib.parse import quote, unquote

from latex2mathml.converter import convert as latex_to_mathml

from .utils import print_warn

BLOCK = "block"
INLINE = "inline"

LATEX_ATTR = "data-latex"

# Letters and digits only: markdown2 leaves these untouched
PLACEHOLDER = "MATHFENCE{ordinal}ENDMATH"
PLACEHOLDER_PATTERN = re.compile(r"MATHFENCE(\d+)ENDMATH")
PARAGRAPH_PLACEHOLDER_PATTERN = re.compile(r"<p>\s*MATHFENCE(\d+)ENDMATH\s*</p>")

BLOCK_FENCE_PATTERN = re.compile(r"\$\$([\s\S]*?)\$\$")
INLINE_FENCE_PATTERN = re.compile(r"\$([^$\n]+?)\$")


class MathFragment(NamedTuple):
    """A math span taken out of the source text."""

    kind: str
    tex: str
    ordinal: int

    @property
    def is_block(self) -> bool:
        return self.kind == BLOCK


def protect_math(text: str) -> tuple[str, list[MathFragment]]:
    """
    Replace math spans with placeholders.

    Block fences ($$...$$, may span lines) are taken first, then inline
    fences ($...$, single line, non-empty).

    Returns:
        The protected text and the fragments, indexed by ordinal.
    """
    fragments: list[MathFragment] = []

    def make_replacer(kind: str) -> Callable[[re.Match[str]], str]:
        def replace(match: re.Match[str]) -> str:
            fragment = MathFragment(kind, match.group(1).strip(), len(fragments))
            fragments.append(fragment)
            return PLACEHOLDER.format(ordinal=fragment.ordinal)

        return replace

    protected = BLOCK_FENCE_PATTERN.sub(make_replacer(BLOCK), text)
    protected = INLINE_FENCE_PATTERN.sub(make_replacer(INLINE), protected)
    return protected, fragments


def encode_latex_attr(tex: str) -> str:
    """Percent-encode TeX for an HTML attribute, like encodeURIComponent."""
    return quote(tex, safe="-_.!~*'()")


def decode_latex_attr(value: str) -> str:
    """Recover the TeX source stored in a math container attribute."""
    return unquote(value)


def typeset(tex: str, display_mode: bool = False) -> str:
    """Typeset TeX as MathML. Never raises; bad input gives a marked error span."""
    try:
        return latex_to_mathml(tex, display=BLOCK if display_mode else INLINE)
    except Exception as e:
        print_warn(f"Cannot typeset formula {tex!r}: {e}")
        return f'<span class="math-error" style="color:#cc0000">{html.escape(tex)}</span>'


def render_fragment(fragment: MathFragment) -> str:
    """Render a fragment into its HTML container."""
    rendered = typeset(fragment.tex, display_mode=fragment.is_block)
    tag = "div" if fragment.is_block else "span"
    class_name = "math-block" if fragment.is_block else "math-inline"
    return f'<{tag} class="{class_name}" {LATEX_ATTR}="{encode_latex_attr(fragment.tex)}">{rendered}</{tag}>'


def error_markup(fragment: MathFragment) -> str:
    """Visible replacement for a fragment whose rendering failed."""
    return f'<code class="math-error" style="color:#cc0000">{html.escape(fragment.tex)}</code>'


def restore_math(
    html_content: str,
    fragments: list[MathFragment],
    render: Callable[[MathFragment], str] = render_fragment,
) -> str:
    """
    Replace placeholders in rendered HTML with rendered math.

    A block fragment that fills a whole paragraph replaces the paragraph, so
    the display container ends up as a block of its own. Placeholders without
    a matching fragment are left as they are.
    """

    def substitute(fragment: MathFragment) -> str:
        try:
            return render(fragment)
        except Exception as e:
            print_warn(f"Failed to render formula {fragment.tex!r}: {e}")
            return error_markup(fragment)

    def lookup(match: re.Match[str]) -> MathFragment | None:
        ordinal = int(match.group(1))
        if ordinal < len(fragments):
            return fragments[ordinal]
        return None

    def replace_paragraph(match: re.Match[str]) -> str:
        fragment = lookup(match)
        if fragment is None or not fragment.is_block:
            return match.group(0)
        return substitute(fragment)

    def replace_inline(match: re.Match[str]) -> str:
        fragment = lookup(match)
        if fragment is None:
            return match.group(0)
        return substitute(fragment)

    restored = PARAGRAPH_PLACEHOLDER_PATTERN.sub(replace_paragraph, html_content)
    return PLACEHOLDER_PATTERN.sub(replace_inline, restored)
