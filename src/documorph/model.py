"""
Document model produced by the builder and consumed by the serializer.

Block nodes hold inline runs. Spacing values are twips (1/20 point), the
unit Word uses internally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from .config import StyleSpec
from .rasterizer import RasterImage

TWIPS_PER_POINT = 20


def twips(points: float) -> int:
    """Convert points to twips."""
    return round(points * TWIPS_PER_POINT)


# Inline runs


@dataclass
class TextRun:
    text: str
    style: StyleSpec


@dataclass
class LineBreak:
    pass


@dataclass
class Hyperlink:
    href: str
    children: list[InlineRun] = field(default_factory=list)


@dataclass
class InlineImage:
    data: bytes
    width_px: float
    height_px: float
    alt: str = ""


@dataclass
class MathInline:
    """A formula inside a line of text; `image` is None when rasterizing failed."""

    tex: str
    image: RasterImage | None
    style: StyleSpec
    display: bool = False


InlineRun = Union[TextRun, LineBreak, Hyperlink, InlineImage, MathInline]


# Block nodes


@dataclass
class Heading:
    level: int  # 1-3
    runs: list[InlineRun]
    alignment: str = "left"
    space_before: int = 0
    space_after: int = 0


@dataclass
class Paragraph:
    runs: list[InlineRun]
    alignment: str = "left"
    space_before: int = 0
    space_after: int = 0


@dataclass
class Blockquote:
    runs: list[InlineRun]
    alignment: str = "left"
    space_before: int = 0
    space_after: int = 0


@dataclass
class CodeBlock:
    text: str
    style: StyleSpec
    space_before: int = 0
    space_after: int = 0


@dataclass
class ListBlock:
    """A bulleted or numbered list. Every item sits at the same level."""

    items: list[list[InlineRun]]
    ordered: bool = False
    alignment: str = "left"


@dataclass
class TableCell:
    runs: list[InlineRun]
    is_header: bool = False
    width_pct: float = 100.0


@dataclass
class Table:
    rows: list[list[TableCell]]


@dataclass
class Rule:
    pass


@dataclass
class Image:
    source_url: str
    data: bytes
    width_px: float
    height_px: float
    alt: str = ""
    alignment: str = "center"
    space_before: int = 0
    space_after: int = 0


@dataclass
class MathDisplay:
    """A display formula; `image` is None when rasterizing failed."""

    tex: str
    image: RasterImage | None
    fallback_style: StyleSpec


BlockNode = Union[Heading, Paragraph, Blockquote, CodeBlock, ListBlock, Table, Rule, Image, MathDisplay]
