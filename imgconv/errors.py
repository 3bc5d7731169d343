"""
Errors - Exception types raised across the package.
"""


class ImgconvError(Exception):
    """Base class for all package errors."""


class AttachmentStoreError(ImgconvError):
    """The attachment store itself failed (not a single item)."""


class SanitizeError(ImgconvError):
    """An SVG could not be sanitized."""


class ConfigError(ImgconvError):
    """A configuration file could not be read or parsed."""


class EncodeError(ImgconvError):
    """An engine failed to encode an image."""
