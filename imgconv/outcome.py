"""
Outcome - Conversion requests and their success/failure results.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from .formats import Format, clamp_quality


class FailureReason(str, Enum):
    """Why a conversion did not produce output."""

    SOURCE_UNREADABLE = 'source_unreadable'
    UNSUPPORTED_FORMAT = 'unsupported_format'
    INSUFFICIENT_MEMORY = 'insufficient_memory'
    FILE_TOO_LARGE = 'file_too_large'
    PIXEL_COUNT_TOO_LARGE = 'pixel_count_too_large'
    ENCODE_FAILED = 'encode_failed'
    NO_ENGINE_AVAILABLE = 'no_engine_available'
    PARTIAL_OUTPUT_REMOVED = 'partial_output_removed'
    # Attachment level
    NOT_CONVERTED = 'not_converted'
    ORIGINALS_DELETED = 'originals_deleted'
    INVALID_FORMAT = 'invalid_format'


@dataclass
class ConversionRequest:
    """
    A single file to transcode.

    Attributes:
        source_path: Image to read
        dest_path: Where the encoded file should end up
        format: Target format
        quality: Requested quality; clamped to [1, 100] on construction
    """
    source_path: str
    dest_path: str
    format: Format
    quality: int = 85

    def __post_init__(self):
        self.format = Format.parse(self.format)
        self.quality = clamp_quality(self.quality)


@dataclass
class Success:
    bytes_written: int
    dest_path: str
    engine: str

    @property
    def ok(self) -> bool:
        return True


@dataclass
class Failure:
    reason: FailureReason
    message: str

    @property
    def ok(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"{self.reason.value}: {self.message}"


ConversionOutcome = Union[Success, Failure]
