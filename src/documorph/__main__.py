"""
CLI entry point for documorph.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .config import DEFAULT_CONFIG, DocumentConfig
from .converter import convert_file, strip_markdown_wrapper
from .exceptions import DocumorphError
from .renderer import render_print_html
from .utils import print_error, print_info


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="documorph",
        description="Convert Markdown files (with LaTeX math) to Word documents (.docx)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  documorph input.md                    Convert to input.docx
  documorph input.md -o output.docx     Specify output file
  documorph input.md --toc              Add table of contents
  documorph input.md --html print.html  Also write a print-ready HTML page
  documorph input.md -c config.json     Use custom config file
  documorph --init-config               Generate default config file
        """,
    )
    parser.add_argument("input", nargs="?", help="Input Markdown file path")
    parser.add_argument("-o", "--output", help="Output Word file path (default: input with .docx extension)")
    parser.add_argument("-c", "--config", default="config.json", help="Config file path (default: config.json)")
    parser.add_argument("--toc", action="store_true", help="Add table of contents at the beginning")
    parser.add_argument("--toc-title", default="Contents", help="TOC title (default: Contents)")
    parser.add_argument("--toc-level", type=int, default=3, help="Maximum heading level for TOC (default: 3)")
    parser.add_argument("--html", metavar="PATH", help="Also write a print-ready HTML rendering")
    parser.add_argument("--init-config", action="store_true", help="Generate default config file")
    parser.add_argument("-v", "--version", action="store_true", help="Show version")

    args = parser.parse_args(argv)

    if args.version:
        from . import __version__

        print(f"documorph {__version__}")
        return 0

    if args.init_config:
        config_path = Path(args.config)
        if config_path.exists():
            print_error(f"Config file already exists: {config_path}")
            return 1
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(DEFAULT_CONFIG, f, ensure_ascii=False, indent=4)
        print_info(f"Config file created: {config_path}")
        return 0

    if not args.input:
        parser.print_help()
        return 1

    input_path = Path(args.input)
    if not input_path.exists():
        print_error(f"Input file not found: {input_path}")
        return 1

    try:
        config = DocumentConfig.from_file(args.config)
        convert_file(
            input_path,
            args.output,
            config,
            toc=args.toc,
            toc_title=args.toc_title,
            toc_max_level=args.toc_level,
        )
        if args.html:
            content = strip_markdown_wrapper(input_path.read_text(encoding="utf-8"))
            html_path = Path(args.html)
            html_path.write_text(render_print_html(content, config, title=input_path.stem), encoding="utf-8")
            print_info(f"HTML saved: {html_path}")
        return 0
    except DocumorphError as e:
        print_error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
