"""
documorph - Convert Markdown with LaTeX math to Word documents.

A Python library and CLI tool that renders Markdown to HTML, walks the HTML
into a typed document model and writes it as a .docx package, rasterizing
formulas into images along the way.
"""

from .builder import DocumentBuilder, build_document
from .config import DEFAULT_CONFIG, DocumentConfig, ImageStyle, LinkStyle, StyleSpec
from .converter import convert, convert_file, generate_docx
from .exceptions import ConfigError, ConversionError, DocumorphError
from .latex import MathFragment, protect_math, restore_math
from .rasterizer import RasterImage, rasterize_latex
from .renderer import markdown_to_html, render_print_html
from .serializer import serialize

__version__ = "0.1.0"
__all__ = [
    "DocumentConfig",
    "StyleSpec",
    "LinkStyle",
    "ImageStyle",
    "DEFAULT_CONFIG",
    "DocumentBuilder",
    "build_document",
    "convert",
    "convert_file",
    "generate_docx",
    "markdown_to_html",
    "render_print_html",
    "protect_math",
    "restore_math",
    "MathFragment",
    "RasterImage",
    "rasterize_latex",
    "serialize",
    "DocumorphError",
    "ConfigError",
    "ConversionError",
]
