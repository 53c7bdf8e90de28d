"""Console helpers and small value conversions shared across documorph."""

from __future__ import annotations

import re

HEX_COLOR_PATTERN = re.compile(r"^#?([0-9a-fA-F]{6}|[0-9a-fA-F]{3})$")


def print_info(message: str) -> None:
    """Print info message."""
    print(f"[INFO] {message}")


def print_warn(message: str) -> None:
    """Print warning message."""
    print(f"[WARN] {message}")


def print_error(message: str) -> None:
    """Print error message."""
    print(f"[ERROR] {message}")


def normalize_color(value: str) -> str | None:
    """Normalize '#rrggbb', 'rrggbb' or '#rgb' to upper-case 'RRGGBB'."""
    if not isinstance(value, str):
        return None
    match = HEX_COLOR_PATTERN.match(value.strip())
    if not match:
        return None
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return digits.upper()


def hex_to_rgb(hex_color: str) -> tuple[int, int, int]:
    """Convert hex color to RGB tuple."""
    hex_color = hex_color.lstrip("#")
    r = int(hex_color[0:2], 16)
    g = int(hex_color[2:4], 16)
    b = int(hex_color[4:6], 16)
    return (r, g, b)
