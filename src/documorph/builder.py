"""
Build the document model from rendered HTML.

The HTML tree is walked in document order. Each element is classified by tag
and turned into block nodes; inline content becomes runs carrying a style
that is passed down by value, so an override only affects its own subtree.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable
from functools import partial
from pathlib import Path
from typing import Optional

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from .config import DocumentConfig, StyleSpec
from .images import fetch_image, get_image_dimensions, image_placeholder
from .latex import LATEX_ATTR, decode_latex_attr
from .model import (
    BlockNode,
    Blockquote,
    CodeBlock,
    Heading,
    Hyperlink,
    Image,
    InlineImage,
    InlineRun,
    LineBreak,
    ListBlock,
    MathDisplay,
    MathInline,
    Paragraph,
    Rule,
    Table,
    TableCell,
    TextRun,
    twips,
)
from .rasterizer import RasterImage, rasterize_latex
from .utils import print_info

FetchFunc = Callable[[str], Awaitable[Optional[bytes]]]
RasterizeFunc = Callable[[str, bool], Awaitable[Optional[RasterImage]]]

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
LIST_TAGS = ("ul", "ol")
SKIPPED_TAGS = ("script", "style", "head", "title", "meta", "link", "template")

MATH_FALLBACK_FONT = "Cambria Math"

WHITESPACE_PATTERN = re.compile(r"\s+")
INLINE_COLOR_PATTERN = re.compile(r"(?<![-\w])color\s*:\s*#?([0-9a-fA-F]{6})", flags=re.IGNORECASE)


def _is_text(node) -> bool:
    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString)


def _is_block_math(node) -> bool:
    return isinstance(node, Tag) and bool(node.get(LATEX_ATTR)) and "math-block" in (node.get("class") or [])


def inline_color(style_attr: str | None) -> str | None:
    """Color from an inline style declaration, as 'RRGGBB'."""
    if not style_attr:
        return None
    match = INLINE_COLOR_PATTERN.search(style_attr)
    return match.group(1).upper() if match else None


def has_content(runs: list[InlineRun]) -> bool:
    """Whether runs contain anything besides whitespace."""
    return any(not isinstance(run, TextRun) or run.text.strip() for run in runs)


def trim_runs(runs: list[InlineRun]) -> list[InlineRun]:
    """Drop whitespace at the start and end of a block's runs."""
    runs = list(runs)
    while runs and isinstance(runs[0], TextRun) and not runs[0].text.strip():
        runs.pop(0)
    while runs and isinstance(runs[-1], TextRun) and not runs[-1].text.strip():
        runs.pop()
    if runs and isinstance(runs[0], TextRun):
        runs[0] = TextRun(runs[0].text.lstrip(), runs[0].style)
    if runs and isinstance(runs[-1], TextRun):
        runs[-1] = TextRun(runs[-1].text.rstrip(), runs[-1].style)
    return runs


class DocumentBuilder:
    """Turns one HTML document into a list of block nodes."""

    def __init__(
        self,
        config: DocumentConfig,
        fetch: FetchFunc | None = None,
        rasterize: RasterizeFunc | None = None,
        base_dir: str | Path | None = None,
    ):
        self.config = config
        self.fetch = fetch or partial(
            fetch_image,
            timeout=config.image_download_timeout,
            user_agent=config.image_user_agent,
            base_dir=base_dir,
        )
        self.rasterize = rasterize or rasterize_latex

    async def build(self, html: str) -> list[BlockNode]:
        soup = BeautifulSoup(html, "html.parser")
        root = soup.body or soup

        nodes: list[BlockNode] = []
        for child in root.children:
            if isinstance(child, Tag):
                nodes.extend(await self.process_element(child))
        return nodes

    async def process_element(self, element: Tag) -> list[BlockNode]:
        """Convert one element into zero or more block nodes."""
        tag = element.name

        if element.get(LATEX_ATTR):
            return [await self._math_display(element)]
        if tag in SKIPPED_TAGS:
            return []
        if tag in HEADING_TAGS:
            return [await self._heading(element)]
        if tag == "p":
            if element.find(_is_block_math, recursive=False) is not None:
                return await self._split_paragraph(element)
            return await self._paragraph(element, self.config.paragraph)
        if tag == "blockquote":
            return [await self._blockquote(element)]
        if tag == "pre":
            return [self._code_block(element)]
        if tag in LIST_TAGS:
            return await self._list(element)
        if tag == "table":
            return await self._table(element)
        if tag == "hr":
            return [Rule()]
        if tag == "img":
            return [await self._image(element)]
        return await self._container(element)

    async def _math_display(self, element: Tag) -> MathDisplay:
        tex = decode_latex_attr(element.get(LATEX_ATTR))
        image = await self.rasterize(tex, True)
        paragraph = self.config.paragraph
        fallback_style = paragraph.override(
            font_family=MATH_FALLBACK_FONT,
            font_size=paragraph.font_size + 2,
            bold=False,
            italic=True,
            underline=False,
            alignment="center",
        )
        if image is None:
            print_info(f"Formula kept as text: {tex}")
        return MathDisplay(tex, image, fallback_style)

    async def _heading(self, element: Tag) -> Heading:
        level = int(element.name[1])
        style = self.config.heading_style(level)
        runs = trim_runs(await self.build_runs(element, style))
        return Heading(
            level=min(level, 3),
            runs=runs,
            alignment=style.alignment,
            space_before=twips(style.margin_top),
            space_after=twips(style.margin_bottom),
        )

    async def _paragraph(self, element: Tag, style: StyleSpec) -> list[BlockNode]:
        return self._paragraph_from_runs(await self.build_runs(element, style), style)

    async def _split_paragraph(self, element: Tag) -> list[BlockNode]:
        # Display formulas sharing a paragraph with text become their own blocks
        style = self.config.paragraph
        nodes: list[BlockNode] = []
        pending = []
        for child in element.children:
            if _is_block_math(child):
                nodes.extend(self._paragraph_from_runs(await self._child_runs(pending, style), style))
                pending = []
                nodes.append(await self._math_display(child))
            else:
                pending.append(child)
        nodes.extend(self._paragraph_from_runs(await self._child_runs(pending, style), style))
        return nodes

    def _paragraph_from_runs(self, runs: list[InlineRun], style: StyleSpec) -> list[BlockNode]:
        runs = trim_runs(runs)
        if not has_content(runs):
            return []
        return [
            Paragraph(
                runs=runs,
                alignment=style.alignment,
                space_before=twips(style.margin_top),
                space_after=twips(style.margin_bottom),
            )
        ]

    async def _blockquote(self, element: Tag) -> Blockquote:
        style = self.config.blockquote
        runs = trim_runs(await self.build_runs(element, style))
        return Blockquote(
            runs=runs,
            alignment=style.alignment,
            space_before=twips(style.margin_top),
            space_after=twips(style.margin_bottom),
        )

    def _code_block(self, element: Tag) -> CodeBlock:
        # Verbatim: inline markup inside the block is ignored
        style = self.config.code_block
        return CodeBlock(
            text=element.get_text().rstrip("\n"),
            style=style,
            space_before=twips(style.margin_top),
            space_after=twips(style.margin_bottom),
        )

    async def _list(self, element: Tag) -> list[BlockNode]:
        items: list[list[InlineRun]] = []
        await self._collect_list_items(element, items)
        if not items:
            return []
        return [
            ListBlock(
                items=items,
                ordered=element.name == "ol",
                alignment=self.config.paragraph.alignment,
            )
        ]

    async def _collect_list_items(self, list_element: Tag, items: list[list[InlineRun]]) -> None:
        # Nested lists become further items at the same level
        for item in list_element.children:
            if not isinstance(item, Tag):
                continue
            runs = trim_runs(await self.build_runs(item, self.config.paragraph, skip=LIST_TAGS))
            if has_content(runs):
                items.append(runs)
            for nested in item.find_all(list(LIST_TAGS), recursive=False):
                await self._collect_list_items(nested, items)

    async def _table(self, element: Tag) -> list[BlockNode]:
        rows = element.find_all("tr")
        if not rows:
            return []

        async def build_cell(cell: Tag, width_pct: float) -> TableCell:
            is_header = cell.name == "th"
            style = self.config.paragraph.override(bold=True) if is_header else self.config.paragraph
            runs = trim_runs(await self.build_runs(cell, style))
            return TableCell(runs=runs, is_header=is_header, width_pct=width_pct)

        async def build_row(row: Tag) -> list[TableCell]:
            cells = row.find_all(["th", "td"])
            if not cells:
                return []
            # Each row divides the width by its own cell count
            width_pct = 100 / len(cells)
            return list(await asyncio.gather(*(build_cell(cell, width_pct) for cell in cells)))

        # gather returns results in submission order, whatever finishes first
        built_rows = await asyncio.gather(*(build_row(row) for row in rows))
        return [Table(rows=list(built_rows))]

    async def _image(self, element: Tag) -> BlockNode:
        src = element.get("src")
        alt = element.get("alt") or ""
        data = await self.fetch(src) if src else None
        paragraph = self.config.paragraph
        if not data:
            print_info(f"Image unavailable, writing placeholder: {src}")
            return Paragraph(
                runs=[TextRun(image_placeholder(alt), paragraph)],
                alignment=paragraph.alignment,
                space_before=twips(paragraph.margin_top),
                space_after=twips(paragraph.margin_bottom),
            )

        width, height = get_image_dimensions(element.attrs)
        image_style = self.config.image
        return Image(
            source_url=src,
            data=data,
            width_px=width,
            height_px=height,
            alt=alt,
            alignment=image_style.alignment,
            space_before=twips(image_style.margin_top),
            space_after=twips(image_style.margin_bottom),
        )

    async def _container(self, element: Tag) -> list[BlockNode]:
        has_direct_text = any(_is_text(child) and child.strip() for child in element.children)
        if has_direct_text:
            return await self._paragraph(element, self.config.paragraph)

        nodes: list[BlockNode] = []
        for child in element.children:
            if isinstance(child, Tag):
                nodes.extend(await self.process_element(child))
        return nodes

    async def build_runs(self, element: Tag, style: StyleSpec, skip: tuple[str, ...] = ()) -> list[InlineRun]:
        """Build the inline runs for an element's children."""
        return await self._child_runs(element.children, style, skip)

    async def _child_runs(self, children, style: StyleSpec, skip: tuple[str, ...] = ()) -> list[InlineRun]:
        runs: list[InlineRun] = []
        for child in children:
            if _is_text(child):
                text = WHITESPACE_PATTERN.sub(" ", str(child))
                if text:
                    runs.append(TextRun(text, style))
            elif isinstance(child, Tag) and child.name not in skip and child.name not in SKIPPED_TAGS:
                runs.extend(await self._inline_element(child, style))
        return runs

    async def _inline_element(self, element: Tag, style: StyleSpec) -> list[InlineRun]:
        latex = element.get(LATEX_ATTR)
        if latex:
            # The children are the typeset rendering, not authored content
            tex = decode_latex_attr(latex)
            display = "math-block" in (element.get("class") or [])
            image = await self.rasterize(tex, display)
            return [MathInline(tex=tex, image=image, style=style, display=display)]

        tag = element.name
        if tag == "br":
            return [LineBreak()]

        if tag == "img":
            src = element.get("src")
            alt = element.get("alt") or ""
            data = await self.fetch(src) if src else None
            if not data:
                print_info(f"Image unavailable, writing placeholder: {src}")
                return [TextRun(image_placeholder(alt), style)]
            width, height = get_image_dimensions(element.attrs)
            return [InlineImage(data=data, width_px=width, height_px=height, alt=alt)]

        if tag == "a" and element.get("href"):
            link = self.config.link
            link_style = style.override(color=link.color, underline=link.underline)
            children = await self.build_runs(element, link_style)
            return [Hyperlink(href=element["href"], children=children)]

        if tag == "pre":
            code = self.config.code_block
            return [TextRun(element.get_text().rstrip("\n"), style.override(font_family=code.font_family))]

        overrides = {}
        if tag in ("strong", "b"):
            overrides["bold"] = True
        elif tag in ("em", "i"):
            overrides["italic"] = True
        elif tag == "u":
            overrides["underline"] = True

        if tag == "code":
            overrides["font_family"] = self.config.code_block.font_family
            overrides["color"] = self.config.code_block.color
        else:
            color = inline_color(element.get("style"))
            if color:
                overrides["color"] = color

        nested_style = style.override(**overrides) if overrides else style
        return await self.build_runs(element, nested_style)


async def build_document(
    html: str,
    config: DocumentConfig | None = None,
    fetch: FetchFunc | None = None,
    rasterize: RasterizeFunc | None = None,
    base_dir: str | Path | None = None,
) -> list[BlockNode]:
    """Build the document model for rendered HTML."""
    builder = DocumentBuilder(config or DocumentConfig(), fetch=fetch, rasterize=rasterize, base_dir=base_dir)
    return await builder.build(html)
