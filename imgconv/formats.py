"""
Formats - Target formats, quality clamping and MIME/extension lookup.
"""

import os
from enum import Enum
from typing import Dict


class Format(str, Enum):
    """Modern target formats an engine may encode to."""

    WEBP = 'webp'
    AVIF = 'avif'

    @property
    def extension(self) -> str:
        return self.value

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @property
    def label(self) -> str:
        """Upper-case name used in user facing messages."""
        return self.value.upper()

    @classmethod
    def parse(cls, value) -> 'Format':
        """
        Parse a format name, case-insensitively.

        Raises:
            ValueError: If the name is not a known target format
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown format: {value!r} (expected webp or avif)")


MIN_QUALITY = 1
MAX_QUALITY = 100


def clamp_quality(quality) -> int:
    """
    Clamp a quality value into [1, 100].

    Applying the clamp twice gives the same result as applying it once.

    Raises:
        ValueError, TypeError: If quality is not an integer-like value
    """
    return max(MIN_QUALITY, min(MAX_QUALITY, int(quality)))


EXTENSION_TO_MIME: Dict[str, str] = {
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'jpe': 'image/jpeg',
    'png': 'image/png',
    'gif': 'image/gif',
    'webp': 'image/webp',
    'avif': 'image/avif',
    'bmp': 'image/bmp',
    'tif': 'image/tiff',
    'tiff': 'image/tiff',
    'heic': 'image/heic',
    'heif': 'image/heif',
    'psd': 'image/vnd.adobe.photoshop',
    'jp2': 'image/jp2',
    'j2k': 'image/jp2',
    'jpf': 'image/jpx',
    'jpx': 'image/jpx',
    'jpm': 'image/jpm',
    'dng': 'image/x-adobe-dng',
    'arw': 'image/x-sony-arw',
    'cr2': 'image/x-canon-cr2',
    'cr3': 'image/x-canon-cr3',
    'nef': 'image/x-nikon-nef',
    'orf': 'image/x-olympus-orf',
    'rw2': 'image/x-panasonic-rw2',
    'raf': 'image/x-fuji-raf',
    'svg': 'image/svg+xml',
}

SVG_MIME = 'image/svg+xml'

# Used when no engine can report its readable formats.
FALLBACK_INPUT_MIME_TYPES = ('image/jpeg', 'image/png')


def mime_from_ext(path_or_ext: str, default: str = 'image/jpeg') -> str:
    """Get the MIME type for a filename or bare extension."""
    ext = os.path.splitext(path_or_ext)[1] or path_or_ext
    return EXTENSION_TO_MIME.get(ext.lstrip('.').lower(), default)
