"""Image fetching and sizing for documorph."""

from __future__ import annotations

import asyncio
import base64
import re
from pathlib import Path
from typing import Mapping

import httpx

from .utils import print_error

DEFAULT_IMAGE_WIDTH = 400
DEFAULT_IMAGE_HEIGHT = 300

DEFAULT_TIMEOUT = 5.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

STYLE_WIDTH_PATTERN = re.compile(r"(?<![-\w])width\s*:\s*(\d+)(?:px)?", flags=re.IGNORECASE)
STYLE_HEIGHT_PATTERN = re.compile(r"(?<![-\w])height\s*:\s*(\d+)(?:px)?", flags=re.IGNORECASE)


def _leading_int(value: str | None) -> int | None:
    if not value:
        return None
    match = re.match(r"\s*(\d+)", value)
    return int(match.group(1)) if match else None


def get_image_dimensions(attrs: Mapping[str, str]) -> tuple[int, int]:
    """
    Read image size hints from img attributes.

    width/height attributes are read first and inline style declarations
    override them; without hints the size is 400x300.
    """
    width = DEFAULT_IMAGE_WIDTH
    height = DEFAULT_IMAGE_HEIGHT

    attr_width = _leading_int(attrs.get("width"))
    if attr_width is not None:
        width = attr_width
    attr_height = _leading_int(attrs.get("height"))
    if attr_height is not None:
        height = attr_height

    style = attrs.get("style")
    if style:
        width_match = STYLE_WIDTH_PATTERN.search(style)
        if width_match:
            width = int(width_match.group(1))
        height_match = STYLE_HEIGHT_PATTERN.search(style)
        if height_match:
            height = int(height_match.group(1))

    return width, height


def image_placeholder(alt: str | None) -> str:
    """Text written in place of an image that could not be loaded."""
    return f"[Image: {alt or 'Image'}]"


def decode_data_uri(data_uri: str) -> bytes | None:
    """Decode a base64 data URI."""
    if not data_uri.startswith("data:") or "base64," not in data_uri:
        print_error("Unsupported data URI, only base64 is handled")
        return None
    try:
        _, b64_data = data_uri.split("base64,", 1)
        return base64.b64decode(b64_data)
    except ValueError as e:
        print_error(f"Failed to decode data URI: {e}")
        return None


def read_local_image(src: str, base_dir: str | Path | None = None) -> bytes | None:
    """Read an image from disk, relative paths resolved against base_dir."""
    path = Path(src)
    if not path.is_absolute() and base_dir is not None:
        path = Path(base_dir) / path
    try:
        return path.read_bytes()
    except (OSError, ValueError) as e:
        print_error(f"Local image unavailable {src}: {e}")
        return None


async def _download(client: httpx.AsyncClient, url: str, user_agent: str) -> bytes:
    response = await client.get(url, headers={"User-Agent": user_agent}, follow_redirects=True)
    response.raise_for_status()
    return response.content


async def fetch_image(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    client: httpx.AsyncClient | None = None,
    user_agent: str = DEFAULT_USER_AGENT,
    base_dir: str | Path | None = None,
) -> bytes | None:
    """
    Fetch image bytes.

    http(s) URLs are downloaded, data URIs decoded and anything else read as
    a local path. The whole download is bounded by `timeout` seconds. Any
    failure returns None; nothing is retried.
    """
    if url.startswith("data:"):
        return decode_data_uri(url)
    if not url.startswith(("http://", "https://")):
        return read_local_image(url, base_dir)

    try:
        if client is not None:
            return await asyncio.wait_for(_download(client, url, user_agent), timeout)
        async with httpx.AsyncClient(timeout=timeout) as own_client:
            return await asyncio.wait_for(_download(own_client, url, user_agent), timeout)
    except asyncio.TimeoutError:
        print_error(f"Timed out fetching image {url} after {timeout:g}s")
        return None
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        print_error(f"Failed to download image {url}: {e}")
        return None
