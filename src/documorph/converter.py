"""
Core converter module for documorph.
Converts Markdown content to Word documents.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from .builder import FetchFunc, RasterizeFunc, build_document
from .config import DocumentConfig
from .exceptions import ConversionError
from .renderer import markdown_to_html
from .serializer import serialize
from .utils import print_info


def strip_markdown_wrapper(markdown_content: str) -> str:
    """Remove a ```markdown code block wrapping the whole document."""
    if markdown_content.startswith("```markdown") and markdown_content.rstrip().endswith("```"):
        return markdown_content[len("```markdown") :].rstrip()[:-3]
    return markdown_content


async def generate_docx(
    markdown_content: str,
    config: DocumentConfig | None = None,
    *,
    fetch: FetchFunc | None = None,
    rasterize: RasterizeFunc | None = None,
    base_dir: str | Path | None = None,
    toc: bool = False,
    toc_title: str = "Contents",
    toc_max_level: int = 3,
) -> bytes:
    """
    Convert Markdown content to the bytes of a Word document.

    Args:
        markdown_content: Markdown text content
        config: Style configuration (uses defaults if None)
        fetch: Image fetcher, url -> bytes or None
        rasterize: Formula rasterizer, (tex, display_mode) -> RasterImage or None
        base_dir: Directory relative image paths are resolved against
        toc: Whether to add table of contents
        toc_title: TOC title
        toc_max_level: Maximum heading level for TOC

    Returns:
        The .docx package

    Raises:
        ConversionError: The document could not be converted as a whole
    """
    if config is None:
        config = DocumentConfig()

    try:
        html_content = markdown_to_html(markdown_content)
        nodes = await build_document(html_content, config, fetch=fetch, rasterize=rasterize, base_dir=base_dir)
        print_info(f"Built {len(nodes)} document blocks")
        return serialize(nodes, config, toc=toc, toc_title=toc_title, toc_max_level=toc_max_level)
    except ConversionError:
        raise
    except Exception as e:
        raise ConversionError(f"Conversion failed: {e}", cause=e) from e


def convert(
    markdown_content: str,
    output_path: str | Path,
    config: DocumentConfig | None = None,
    toc: bool = False,
    toc_title: str = "Contents",
    toc_max_level: int = 3,
    base_dir: str | Path | None = None,
) -> Path:
    """
    Convert Markdown content to Word document.

    Args:
        markdown_content: Markdown text content
        output_path: Output file path
        config: Configuration object (uses defaults if None)
        toc: Whether to add table of contents
        toc_title: TOC title
        toc_max_level: Maximum heading level for TOC
        base_dir: Directory relative image paths are resolved against

    Returns:
        Path to the output file
    """
    output_path = Path(output_path)

    data = asyncio.run(
        generate_docx(
            markdown_content,
            config,
            base_dir=base_dir,
            toc=toc,
            toc_title=toc_title,
            toc_max_level=toc_max_level,
        )
    )

    # Only written once the whole conversion succeeded
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)
    print_info(f"Document saved: {output_path}")

    return output_path


def convert_file(
    input_path: str | Path,
    output_path: str | Path | None = None,
    config: DocumentConfig | str | Path | None = None,
    toc: bool = False,
    toc_title: str = "Contents",
    toc_max_level: int = 3,
) -> Path:
    """
    Convert Markdown file to Word document.

    Args:
        input_path: Input Markdown file path
        output_path: Output file path (defaults to input with .docx extension)
        config: Configuration object or path to config file
        toc: Whether to add table of contents
        toc_title: TOC title
        toc_max_level: Maximum heading level for TOC

    Returns:
        Path to the output file
    """
    input_path = Path(input_path)
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    if output_path is None:
        output_path = input_path.with_suffix(".docx")
    else:
        output_path = Path(output_path)

    # Load config
    if config is None:
        config = DocumentConfig()
    elif isinstance(config, (str, Path)):
        config = DocumentConfig.from_file(config)

    markdown_content = strip_markdown_wrapper(input_path.read_text(encoding="utf-8"))

    return convert(
        markdown_content,
        output_path,
        config,
        toc=toc,
        toc_title=toc_title,
        toc_max_level=toc_max_level,
        base_dir=input_path.parent,
    )
