"""Configuration classes for documorph."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .exceptions import ConfigError
from .utils import normalize_color, print_info, print_warn

ALIGNMENTS = ("left", "center", "right", "justify")

DEFAULT_FONT_SIZE = 11.0

# Names accepted in config files, mapped to DocumentConfig attributes
STYLE_ALIASES: dict[str, str] = {
    "h1": "heading_1",
    "h2": "heading_2",
    "h3": "heading_3",
    "p": "paragraph",
    "body": "paragraph",
    "quote": "blockquote",
    "code": "code_block",
}

STYLE_NAMES = ("heading_1", "heading_2", "heading_3", "paragraph", "blockquote", "code_block")


def parse_font_size(value: int | float | str) -> float:
    """Parse font size in points, supporting numbers and strings like '11pt'."""
    if isinstance(value, bool):
        value = str(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = re.fullmatch(r"\s*(\d+(?:\.\d+)?)\s*(?:pt)?\s*", value, flags=re.IGNORECASE)
        if match:
            return float(match.group(1))
    print_warn(f"Unrecognized font size: {value}, using default {DEFAULT_FONT_SIZE:g}pt")
    return DEFAULT_FONT_SIZE


def parse_color(value: Any, default: str = "000000") -> str:
    """Parse a hex color, warning and falling back to `default` when invalid."""
    color = normalize_color(value) if value is not None else None
    if color is None:
        print_warn(f"Unrecognized color: {value}, using #{default}")
        return default
    return color


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


@dataclass(frozen=True)
class StyleSpec:
    """Text style for one block category.

    Instances are immutable; use `override` to derive a nested style.
    """

    font_family: str = "Calibri"
    font_size: float = DEFAULT_FONT_SIZE
    color: str = "000000"
    bold: bool = False
    italic: bool = False
    underline: bool = False
    alignment: str = "left"  # left, center, right, justify
    margin_top: float = 0  # points
    margin_bottom: float = 6  # points

    def override(self, **changes: Any) -> StyleSpec:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: dict[str, Any], base: StyleSpec | None = None) -> StyleSpec:
        """Create StyleSpec from dictionary (snake_case or camelCase keys)."""
        base = base or cls()
        alignment = _pick(data, "alignment", default=base.alignment)
        if alignment not in ALIGNMENTS:
            print_warn(f"Unrecognized alignment: {alignment}, using {base.alignment}")
            alignment = base.alignment
        font_size = _pick(data, "font_size", "fontSize", default=None)
        color = _pick(data, "color", default=None)
        return cls(
            font_family=_pick(data, "font_family", "fontFamily", "font_name", default=base.font_family),
            font_size=parse_font_size(font_size) if font_size is not None else base.font_size,
            color=parse_color(color, base.color) if color is not None else base.color,
            bold=bool(_pick(data, "bold", default=base.bold)),
            italic=bool(_pick(data, "italic", default=base.italic)),
            underline=bool(_pick(data, "underline", default=base.underline)),
            alignment=alignment,
            margin_top=float(_pick(data, "margin_top", "marginTop", default=base.margin_top)),
            margin_bottom=float(_pick(data, "margin_bottom", "marginBottom", default=base.margin_bottom)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "font_family": self.font_family,
            "font_size": self.font_size,
            "color": f"#{self.color}",
            "bold": self.bold,
            "italic": self.italic,
            "underline": self.underline,
            "alignment": self.alignment,
            "margin_top": self.margin_top,
            "margin_bottom": self.margin_bottom,
        }


@dataclass(frozen=True)
class LinkStyle:
    """Color and underline applied to hyperlink text."""

    color: str = "0284C7"
    underline: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LinkStyle:
        base = cls()
        color = data.get("color")
        return cls(
            color=parse_color(color, base.color) if color is not None else base.color,
            underline=bool(data.get("underline", base.underline)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"color": f"#{self.color}", "underline": self.underline}


@dataclass(frozen=True)
class ImageStyle:
    """Placement of block-level images."""

    max_width: str = "100%"  # percentage of the text width, or pixels ("500px")
    alignment: str = "center"
    margin_top: float = 10
    margin_bottom: float = 10

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImageStyle:
        base = cls()
        alignment = data.get("alignment", base.alignment)
        if alignment not in ALIGNMENTS:
            print_warn(f"Unrecognized image alignment: {alignment}, using {base.alignment}")
            alignment = base.alignment
        return cls(
            max_width=str(_pick(data, "max_width", "maxWidth", default=base.max_width)),
            alignment=alignment,
            margin_top=float(_pick(data, "margin_top", "marginTop", default=base.margin_top)),
            margin_bottom=float(_pick(data, "margin_bottom", "marginBottom", default=base.margin_bottom)),
        )

    def max_width_px(self, content_width_px: float) -> float:
        """Resolve `max_width` against the available content width."""
        value = self.max_width.strip().lower()
        try:
            if value.endswith("%"):
                return content_width_px * float(value[:-1]) / 100
            if value.endswith("px"):
                return float(value[:-2])
            return float(value)
        except ValueError:
            print_warn(f"Unrecognized image max width: {self.max_width}, using 100%")
            return content_width_px

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_width": self.max_width,
            "alignment": self.alignment,
            "margin_top": self.margin_top,
            "margin_bottom": self.margin_bottom,
        }


@dataclass
class DocumentConfig:
    """Style configuration for one conversion. Treated as read-only by the builder."""

    heading_1: StyleSpec = field(
        default_factory=lambda: StyleSpec(font_size=24, bold=True, margin_top=24, margin_bottom=12)
    )
    heading_2: StyleSpec = field(
        default_factory=lambda: StyleSpec(font_size=18, bold=True, margin_top=18, margin_bottom=8)
    )
    heading_3: StyleSpec = field(
        default_factory=lambda: StyleSpec(font_size=14, bold=True, margin_top=12, margin_bottom=6)
    )
    paragraph: StyleSpec = field(default_factory=lambda: StyleSpec(margin_bottom=10))
    blockquote: StyleSpec = field(
        default_factory=lambda: StyleSpec(italic=True, color="4B5563", margin_top=12, margin_bottom=12)
    )
    code_block: StyleSpec = field(
        default_factory=lambda: StyleSpec(
            font_family="Courier New", font_size=10, color="DC2626", margin_top=10, margin_bottom=10
        )
    )
    link: LinkStyle = field(default_factory=LinkStyle)
    image: ImageStyle = field(default_factory=ImageStyle)
    image_download_timeout: float = 5.0
    image_user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

    @classmethod
    def from_file(cls, config_path: str | Path) -> DocumentConfig:
        """Load configuration from JSON file."""
        config_path = Path(config_path)
        if not config_path.exists():
            print_info(f"Config file not found: {config_path}, using defaults")
            return cls()

        try:
            with open(config_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {config_path} must contain a JSON object")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DocumentConfig:
        """Create DocumentConfig from dictionary.

        Styles may sit under a "styles" key or at the top level, and may use the
        short names (h1, p, quote, code) as well as the attribute names.
        """
        config = cls()

        styles_data = dict(data.get("styles", {}))
        for key, value in data.items():
            if key in STYLE_NAMES or key in STYLE_ALIASES:
                styles_data[key] = value

        for style_name, style_data in styles_data.items():
            attr = STYLE_ALIASES.get(style_name, style_name)
            if attr not in STYLE_NAMES:
                print_warn(f"Unknown style: {style_name}, ignored")
                continue
            setattr(config, attr, StyleSpec.from_dict(style_data, base=getattr(config, attr)))

        if "link" in data:
            config.link = LinkStyle.from_dict(data["link"])
        image_data = _pick(data, "image", "img", default={})
        if image_data:
            config.image = ImageStyle.from_dict(image_data)

        download = data.get("download", {})
        config.image_download_timeout = float(download.get("timeout", config.image_download_timeout))
        config.image_user_agent = download.get("user_agent", config.image_user_agent)

        return config

    def get_style(self, style_name: str) -> StyleSpec:
        """Get style by name, returns the paragraph style if not found."""
        attr = STYLE_ALIASES.get(style_name, style_name)
        if attr in STYLE_NAMES:
            return getattr(self, attr)
        return self.paragraph

    def heading_style(self, level: int) -> StyleSpec:
        """Style for a heading level; levels beyond 3 reuse the level-3 style."""
        return self.get_style(f"heading_{min(max(level, 1), 3)}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "styles": {name: getattr(self, name).to_dict() for name in STYLE_NAMES},
            "link": self.link.to_dict(),
            "image": self.image.to_dict(),
            "download": {
                "timeout": self.image_download_timeout,
                "user_agent": self.image_user_agent,
            },
        }

    def save(self, path: str | Path) -> None:
        """Save configuration to JSON file."""
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=4)


# Default configuration template
DEFAULT_CONFIG = {
    "styles": {
        "heading_1": {
            "font_family": "Inter",
            "font_size": 24,
            "color": "#1e293b",
            "bold": True,
            "alignment": "left",
            "margin_top": 24,
            "margin_bottom": 12,
        },
        "heading_2": {
            "font_family": "Inter",
            "font_size": 18,
            "color": "#334155",
            "bold": True,
            "alignment": "left",
            "margin_top": 18,
            "margin_bottom": 8,
        },
        "heading_3": {
            "font_family": "Inter",
            "font_size": 14,
            "color": "#475569",
            "bold": True,
            "alignment": "left",
            "margin_top": 12,
            "margin_bottom": 6,
        },
        "paragraph": {
            "font_family": "Merriweather",
            "font_size": 11,
            "color": "#374151",
            "alignment": "justify",
            "margin_top": 0,
            "margin_bottom": 10,
        },
        "blockquote": {
            "font_family": "Merriweather",
            "font_size": 11,
            "color": "#4b5563",
            "italic": True,
            "alignment": "left",
            "margin_top": 12,
            "margin_bottom": 12,
        },
        "code_block": {
            "font_family": "JetBrains Mono",
            "font_size": 10,
            "color": "#dc2626",
            "alignment": "left",
            "margin_top": 10,
            "margin_bottom": 10,
        },
    },
    "link": {
        "color": "#0284c7",
        "underline": True,
    },
    "image": {
        "max_width": "100%",
        "alignment": "center",
        "margin_top": 10,
        "margin_bottom": 10,
    },
    "download": {
        "timeout": 5,
        "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    },
}
