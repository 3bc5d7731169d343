"""
Image conversion package: WebP/AVIF transcoding with derivative sizes.

Components:
    1. Engines: Pillow (in-process) and ImageMagick (via sh), probed live
    2. Guarded converter: resource pre-flight checks, atomic output
    3. Thumbnail generator: contain/cover derivative sizes
    4. Batch processor: chunked convert, revert and sanitize over a library
"""

__version__ = "1.0.0"

from .formats import Format, clamp_quality, mime_from_ext
from .errors import ImgconvError, AttachmentStoreError, SanitizeError, ConfigError, EncodeError
from .outcome import ConversionRequest, Success, Failure, FailureReason
from .engine import Engine, EngineInfo, ResourceLimits
from .pillow_engine import PillowEngine
from .imagemagick_engine import ImageMagickEngine
from .engine_registry import EngineRegistry, ValidationResult, default_registry
from .resource_guard import MemoryGauge
from .config import ConverterConfig
from .converter import GuardedConverter
from .geometry import ResizePlan, compute_resize_plan
from .size_profile import SizeProfile, load_profiles
from .thumbnail_generator import ThumbnailGenerator, DerivativeSet
from .conversion_record import ConversionRecord
from .attachment_store import AttachmentStore, MemoryAttachmentStore
from .library import Library
from .attachment_converter import AttachmentConverter, AttachmentResult
from .batch_stats import BatchStats
from .batch_progress import BatchProgress
from .batch_processor import BatchProcessor, BatchKind, BatchCursor, ChunkResult
from .library_scanner import LibraryScanner
from .reporter import Reporter

__all__ = [
    "Format",
    "clamp_quality",
    "mime_from_ext",
    "ImgconvError",
    "AttachmentStoreError",
    "SanitizeError",
    "ConfigError",
    "EncodeError",
    "ConversionRequest",
    "Success",
    "Failure",
    "FailureReason",
    "Engine",
    "EngineInfo",
    "ResourceLimits",
    "PillowEngine",
    "ImageMagickEngine",
    "EngineRegistry",
    "ValidationResult",
    "default_registry",
    "MemoryGauge",
    "ConverterConfig",
    "GuardedConverter",
    "ResizePlan",
    "compute_resize_plan",
    "SizeProfile",
    "load_profiles",
    "ThumbnailGenerator",
    "DerivativeSet",
    "ConversionRecord",
    "AttachmentStore",
    "MemoryAttachmentStore",
    "Library",
    "AttachmentConverter",
    "AttachmentResult",
    "BatchStats",
    "BatchProgress",
    "BatchProcessor",
    "BatchKind",
    "BatchCursor",
    "ChunkResult",
    "LibraryScanner",
    "Reporter",
]
