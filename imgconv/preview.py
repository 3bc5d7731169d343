"""
PreviewBuilder - Web previews for sources browsers cannot show (TIFF, PSD, RAW).
"""

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import ConverterConfig
from .converter import GuardedConverter
from .engine import Engine
from .engine_registry import EngineRegistry
from .formats import Format, mime_from_ext
from .outcome import ConversionRequest


ADVANCED_EXTENSIONS = (
    'tif', 'tiff', 'psd',
    'dng', 'arw', 'cr2', 'cr3', 'nef', 'orf', 'rw2', 'raf',
    'jp2', 'j2k', 'jpf', 'jpx', 'jpm',
    'heic', 'heif',
)

PREVIEW_QUALITY = {
    Format.AVIF: 60,
    Format.WEBP: 70,
}

PREVIEW_SUFFIX = '-preview'


@dataclass
class Preview:
    """
    A preview written for an advanced-format source.

    Attributes:
        path: Preview file
        format: Format of the preview
        engine: Engine that wrote it
        width: Preview width (0 if unknown)
        height: Preview height (0 if unknown)
    """
    path: str
    format: Format
    engine: str
    width: int = 0
    height: int = 0


class PreviewBuilder:
    """
    Writes a flattened WebP/AVIF preview of the first frame or layer.

    The preview format is the modern format that is not the conversion
    target when an engine can write it, so the preview can still be
    converted later; otherwise the target format itself.
    """

    def __init__(
        self,
        registry: EngineRegistry,
        config: Optional[ConverterConfig] = None,
        converter: Optional[GuardedConverter] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize preview builder.

        Args:
            registry: Engines to encode with
            config: Target format and preview size limit (default: ConverterConfig())
            converter: Guarded converter (default: one capped at max_preview_filesize_bytes)
            logger: Optional logger instance
        """
        self.registry = registry
        self.config = config or ConverterConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.converter = converter or GuardedConverter(
            dataclasses.replace(self.config, max_filesize_bytes=self.config.max_preview_filesize_bytes),
            logger=self.logger,
        )

    @staticmethod
    def is_advanced(path: str) -> bool:
        return os.path.splitext(path)[1].lstrip('.').lower() in ADVANCED_EXTENSIONS

    @staticmethod
    def preview_path(path: str, fmt: Format) -> str:
        return f"{os.path.splitext(path)[0]}{PREVIEW_SUFFIX}.{fmt.extension}"

    def preferred_formats(self) -> List[Format]:
        target = self.config.target_format
        return [fmt for fmt in Format if fmt is not target] + [target]

    def choose(self, source_path: str) -> Optional[Tuple[Format, Engine]]:
        """First (format, engine) pair able to read source_path and write the format."""
        mime_type = mime_from_ext(source_path, default='')
        for fmt in self.preferred_formats():
            for engine in self.registry.available_engines():
                if engine.supports_format(fmt) and mime_type in engine.input_formats():
                    return fmt, engine
        return None

    def build(self, source_path: str) -> Optional[Preview]:
        """
        Write the preview next to source_path.

        Returns:
            The Preview, or None when no engine can read the source or the
            guarded conversion failed (the reason is logged)
        """
        choice = self.choose(source_path)
        if choice is None:
            self.logger.info(f"No engine can write a preview of {os.path.basename(source_path)}")
            return None
        fmt, engine = choice

        dest_path = self.preview_path(source_path, fmt)
        outcome = self.converter.convert(
            ConversionRequest(source_path, dest_path, fmt, PREVIEW_QUALITY[fmt]), engine
        )
        if not outcome.ok:
            self.logger.warning(f"Preview of {os.path.basename(source_path)} skipped: {outcome}")
            return None

        preview = Preview(path=dest_path, format=fmt, engine=engine.name)
        try:
            preview.width, preview.height = engine.dimensions(dest_path)
        except Exception as e:
            self.logger.warning(f"Could not read dimensions of preview {dest_path}: {e}")

        self.logger.debug(f"Wrote preview {os.path.basename(dest_path)} with {engine.name}")
        return preview
