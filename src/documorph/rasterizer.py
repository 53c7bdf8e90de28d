"""
Rasterize LaTeX formulas to PNG images for embedding in Word documents.

matplotlib's mathtext engine typesets the expression and draws it on an
off-screen Agg figure.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from io import BytesIO

import matplotlib
from matplotlib import rcParams
from matplotlib.figure import Figure
from matplotlib.font_manager import FontProperties
from matplotlib.mathtext import MathTextParser
from PIL import Image

from .utils import print_warn

matplotlib.use("Agg")

# Logical pixels per inch; the PNG is rendered at RASTER_SCALE times this
BASE_DPI = 96
RASTER_SCALE = 2

MAX_WIDTH_PX = 600
MAX_HEIGHT_PX = 400

DISPLAY_PADDING_PX = 16
INLINE_PADDING_PX = 4

MATH_FONT_SIZE = 12
DISPLAY_FONT_SCALE = 1.21

MATH_STYLE_ID = "documorph-mathtext"
MATH_STYLE = {
    "mathtext.fontset": "cm",
    "mathtext.default": "it",
}
STYLE_SETTLE_SECONDS = 0.1

_attached_styles: set[str] = set()


@dataclass(frozen=True)
class RasterImage:
    """A rasterized formula. Sizes are logical pixels."""

    data: bytes
    width_px: float
    height_px: float


async def ensure_math_style() -> None:
    """Attach the shared mathtext style once per process."""
    if MATH_STYLE_ID in _attached_styles:
        return
    rcParams.update(MATH_STYLE)
    _attached_styles.add(MATH_STYLE_ID)
    await asyncio.sleep(STYLE_SETTLE_SECONDS)


def reset_math_style() -> None:
    """Forget the attached style. Only meant for tests."""
    _attached_styles.discard(MATH_STYLE_ID)


def _render_png(tex: str, display_mode: bool) -> tuple[bytes, int, int]:
    # mathtext expressions are single-line
    expr = "$" + " ".join(tex.split()) + "$"
    padding = DISPLAY_PADDING_PX if display_mode else INLINE_PADDING_PX
    prop = FontProperties(size=MATH_FONT_SIZE * (DISPLAY_FONT_SCALE if display_mode else 1))

    # Raises ValueError for expressions mathtext cannot parse
    width, height, depth, _, _ = MathTextParser("path").parse(expr, dpi=BASE_DPI, prop=prop)

    fig_width = width + 2 * padding
    fig_height = height + 2 * padding
    fig = Figure(figsize=(fig_width / BASE_DPI, fig_height / BASE_DPI), facecolor="white")
    fig.text(
        padding / fig_width,
        (padding + depth) / fig_height,
        expr,
        fontproperties=prop,
        color="black",
    )

    buffer = BytesIO()
    fig.savefig(buffer, dpi=BASE_DPI * RASTER_SCALE, format="png", facecolor="white")
    data = buffer.getvalue()

    with Image.open(BytesIO(data)) as image:
        pixel_width, pixel_height = image.size
    return data, pixel_width, pixel_height


async def rasterize_latex(tex: str, display_mode: bool = False) -> RasterImage | None:
    """
    Render a formula to a PNG.

    Args:
        tex: LaTeX source without the $ delimiters
        display_mode: Block formula (larger type, more padding)

    Returns:
        The image with its size divided by the raster scale and clamped to
        600x400, or None when the formula cannot be rendered.
    """
    if not tex.strip():
        return None

    try:
        await ensure_math_style()
        data, pixel_width, pixel_height = _render_png(tex, display_mode)
    except Exception as e:
        print_warn(f"Failed to render formula to image {tex!r}: {e}")
        return None

    return RasterImage(
        data=data,
        width_px=min(pixel_width / RASTER_SCALE, MAX_WIDTH_PX),
        height_px=min(pixel_height / RASTER_SCALE, MAX_HEIGHT_PX),
    )
