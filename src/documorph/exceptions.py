"""Exception hierarchy for documorph.

Per-element problems (an image that cannot be fetched, an equation that
cannot be rasterized) never raise; they are replaced by visible fallback
content. Only failures of a whole conversion surface as exceptions.
"""

from __future__ import annotations


class DocumorphError(Exception):
    """Base exception for all documorph errors."""
    pass


class ConfigError(DocumorphError):
    """Raised when a configuration file cannot be read or parsed."""
    pass


class ConversionError(DocumorphError):
    """Raised when a conversion fails as a whole.

    No output file is written when this is raised.
    """

    def __init__(self, message: str, cause: BaseException | None = None):
        self.cause = cause
        super().__init__(message)
