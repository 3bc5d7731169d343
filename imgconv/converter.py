"""
GuardedConverter - Single-image transcoding behind resource pre-flight checks.
"""

import logging
import os
from typing import Optional

from PIL import Image

from .config import ConverterConfig
from .engine import Engine
from .outcome import ConversionOutcome, ConversionRequest, Failure, FailureReason, Success
from .resource_guard import MemoryGauge


class GuardedConverter:
    """
    Converts one image with one engine, never raising.

    Pre-flight gates run in a fixed order, each with its own failure
    reason, and none of them decodes pixel data. Output is written to a
    hidden partial file and only moved into place when non-empty.
    """

    def __init__(
        self,
        config: Optional[ConverterConfig] = None,
        memory_gauge: Optional[MemoryGauge] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize converter.

        Args:
            config: Limits and defaults (default: ConverterConfig())
            memory_gauge: Headroom source (default: MemoryGauge on config limit)
            logger: Optional logger instance
        """
        self.config = config or ConverterConfig()
        self.memory_gauge = memory_gauge or MemoryGauge(self.config.memory_limit_bytes)
        self.logger = logger or logging.getLogger(__name__)

    def convert(self, request: ConversionRequest, engine: Optional[Engine]) -> ConversionOutcome:
        """
        Convert request.source_path into request.dest_path.

        Args:
            request: What to convert
            engine: Engine to use (None yields NO_ENGINE_AVAILABLE)

        Returns:
            Success or Failure
        """
        try:
            failure = self.preflight(request, engine)
        except Exception as e:
            failure = Failure(FailureReason.SOURCE_UNREADABLE, f"Pre-flight check failed: {e}")

        if failure is None:
            return self._encode(request, engine)

        self._log_failure(request, failure)
        return failure

    def preflight(self, request: ConversionRequest, engine: Optional[Engine]) -> Optional[Failure]:
        """Run the pre-flight gates; returns the first failure or None."""
        name = os.path.basename(request.source_path)

        if engine is None:
            return Failure(
                FailureReason.NO_ENGINE_AVAILABLE,
                f"No available engine supports {request.format.label} format."
            )

        if not os.path.isfile(request.source_path) or not os.access(request.source_path, os.R_OK):
            return Failure(FailureReason.SOURCE_UNREADABLE, f"Source file not readable: {name}")

        if not engine.supports_format(request.format):
            return Failure(
                FailureReason.UNSUPPORTED_FORMAT,
                f"Engine '{engine.name}' cannot encode {request.format.label}"
            )

        headroom = self.memory_gauge.headroom()
        if headroom is not None and headroom < self.config.min_free_memory_bytes:
            return Failure(
                FailureReason.INSUFFICIENT_MEMORY,
                f"Insufficient memory to convert {name}: {max(headroom, 0)} bytes free, "
                f"{self.config.min_free_memory_bytes} required"
            )

        size = os.path.getsize(request.source_path)
        if size > self.config.max_filesize_bytes:
            return Failure(
                FailureReason.FILE_TOO_LARGE,
                f"{name} is {size} bytes, limit is {self.config.max_filesize_bytes}"
            )

        try:
            width, height = engine.dimensions(request.source_path)
        except Image.DecompressionBombError as e:
            return Failure(FailureReason.PIXEL_COUNT_TOO_LARGE, f"{name}: {e}")
        except Exception as e:
            return Failure(FailureReason.SOURCE_UNREADABLE, f"Cannot read image header of {name}: {e}")

        if width * height > self.config.max_pixels:
            return Failure(
                FailureReason.PIXEL_COUNT_TOO_LARGE,
                f"{name} is {width}x{height} ({width * height} pixels), "
                f"limit is {self.config.max_pixels}"
            )

        return None

    def _encode(self, request: ConversionRequest, engine: Engine) -> ConversionOutcome:
        dest_dir = os.path.dirname(os.path.abspath(request.dest_path))
        partial_path = os.path.join(dest_dir, f".{os.path.basename(request.dest_path)}.part")

        try:
            os.makedirs(dest_dir, exist_ok=True)
            engine.encode(
                request.source_path,
                partial_path,
                request.format,
                request.quality,
                self.config.resource_limits,
            )
        except Exception as e:
            self._remove(partial_path)
            failure = Failure(FailureReason.ENCODE_FAILED, f"{engine.name}: {e}")
            self._log_failure(request, failure)
            return failure

        written = os.path.getsize(partial_path) if os.path.exists(partial_path) else 0
        if written <= 0:
            self._remove(partial_path)
            failure = Failure(
                FailureReason.PARTIAL_OUTPUT_REMOVED,
                f"{engine.name} produced no output for {os.path.basename(request.source_path)}"
            )
            self._log_failure(request, failure)
            return failure

        try:
            os.replace(partial_path, request.dest_path)
        except OSError as e:
            self._remove(partial_path)
            failure = Failure(FailureReason.ENCODE_FAILED, f"Could not move output into place: {e}")
            self._log_failure(request, failure)
            return failure

        self.logger.debug(
            f"Converted {request.source_path} -> {request.dest_path} "
            f"({written} bytes, {engine.name})"
        )
        return Success(bytes_written=written, dest_path=request.dest_path, engine=engine.name)

    def _remove(self, path: str) -> None:
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as e:
            self.logger.warning(f"Could not remove partial output {path}: {e}")

    def _log_failure(self, request: ConversionRequest, failure: Failure) -> None:
        self.logger.warning(
            f"Conversion of {request.source_path} failed [{failure.reason.value}]: {failure.message}"
        )
