"""
LibraryScanner - Registers a directory of images into a library.
"""

import logging
import os
import re
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .engine_registry import EngineRegistry
from .formats import EXTENSION_TO_MIME, SVG_MIME
from .library import Library
from .preview import PREVIEW_SUFFIX, PreviewBuilder


@dataclass
class ScanResult:
    """
    Outcome of a directory scan.

    Attributes:
        added: Files registered as new attachments
        already_registered: Files the library already had
        derivatives: Derivative sizes and converted copies that were not registered
        errors: Files whose header could not be read (still registered)
        previews: Advanced-format files registered through a web preview
        duration_seconds: How long the scan took
    """
    added: int = 0
    already_registered: int = 0
    derivatives: int = 0
    errors: List[str] = field(default_factory=list)
    previews: int = 0
    duration_seconds: float = 0.0


class LibraryScanner:
    """
    Walks a directory tree in sorted order and registers its images.
    """

    # Derivative filenames: base-150x150-c.jpg, base-300x200.jpg, base-768w.jpg, base-400h.jpg
    # Captures: (base, suffix)
    DERIVATIVE_PATTERN = re.compile(r'^(.+)-(\d+x\d+(?:-c)?|\d+w|\d+h)$')
    CONVERTED_EXTENSIONS = ('webp', 'avif')

    def __init__(
        self,
        library: Library,
        registry: Optional[EngineRegistry] = None,
        logger: Optional[logging.Logger] = None,
        preview_builder: Optional[PreviewBuilder] = None
    ):
        """
        Initialize scanner.

        Args:
            library: Library to register files into
            registry: Engine registry used to read image headers
            logger: Optional logger instance
            preview_builder: Writes previews of TIFF/PSD/RAW files (None registers them as they are)
        """
        self.library = library
        self.registry = registry
        self.logger = logger or logging.getLogger(__name__)
        self.preview_builder = preview_builder

    @classmethod
    def is_derivative(cls, filename: str, siblings) -> bool:
        """True if filename is a derivative size of a sibling file."""
        stem = os.path.splitext(filename)[0]
        match = cls.DERIVATIVE_PATTERN.match(stem)
        if not match:
            return False
        base = match.group(1)
        return any(os.path.splitext(s)[0] == base for s in siblings if s != filename)

    @classmethod
    def is_preview(cls, filename: str, siblings) -> bool:
        """True if filename is the web preview of a sibling file."""
        stem = os.path.splitext(filename)[0]
        if not stem.endswith(PREVIEW_SUFFIX):
            return False
        base = stem[:-len(PREVIEW_SUFFIX)]
        return any(os.path.splitext(s)[0] == base for s in siblings if s != filename)

    @classmethod
    def is_converted_copy(cls, filename: str, siblings) -> bool:
        """True if filename is the WebP/AVIF copy of a sibling in another format."""
        stem, ext = os.path.splitext(filename)
        if ext.lstrip('.').lower() not in cls.CONVERTED_EXTENSIONS:
            return False
        for sibling in siblings:
            sibling_stem, sibling_ext = os.path.splitext(sibling)
            if sibling_stem == stem and sibling_ext.lstrip('.').lower() not in cls.CONVERTED_EXTENSIONS:
                return True
        return False

    def scan(
        self,
        directory: Optional[str] = None,
        limit: Optional[int] = None
    ) -> ScanResult:
        """
        Register every image under directory.

        Args:
            directory: Directory to walk (default: library upload root)
            limit: Optional limit on number of new files (for testing)

        Returns:
            ScanResult with counts
        """
        start_time = time.time()
        root = os.path.abspath(directory or self.library.upload_root)
        result = ScanResult()

        self.logger.info(f"Scanning {root}")
        if limit:
            self.logger.info(f"Limit: {limit} images (testing mode)")

        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith('.'))
            visible = sorted(f for f in filenames if not f.startswith('.'))

            for filename in visible:
                if limit and result.added >= limit:
                    break
                self._scan_file(dirpath, filename, visible, result)

            if limit and result.added >= limit:
                self.logger.info(f"Limit of {limit} reached, stopping scan")
                break

        result.duration_seconds = time.time() - start_time
        self.logger.info(
            f"Scan complete: {result.added} added, {result.already_registered} already registered, "
            f"{result.derivatives} derivatives skipped ({result.duration_seconds:.1f}s)"
        )
        return result

    def _scan_file(self, dirpath: str, filename: str, siblings: List[str], result: ScanResult) -> None:
        ext = os.path.splitext(filename)[1].lstrip('.').lower()
        mime_type = EXTENSION_TO_MIME.get(ext)
        if mime_type is None:
            return

        if (self.is_derivative(filename, siblings) or self.is_converted_copy(filename, siblings)
                or self.is_preview(filename, siblings)):
            result.derivatives += 1
            return

        path = os.path.join(dirpath, filename)
        if self.library.find_by_file(self.library.relative_path(path)) is not None:
            result.already_registered += 1
            return

        if self.preview_builder and self.preview_builder.is_advanced(filename):
            preview = self.preview_builder.build(path)
            if preview is not None:
                self._register_preview(path, preview, result)
                return

        metadata = {'file': filename}
        if mime_type != SVG_MIME:
            dimensions = self._read_dimensions(path, result)
            if dimensions:
                metadata['width'], metadata['height'] = dimensions

        attachment_id = self.library.add_attachment(path, mime_type, metadata)
        result.added += 1
        self.logger.debug(f"Registered #{attachment_id}: {filename}")

        if result.added % 1000 == 0:
            self.logger.info(f"  Registered {result.added} images...")

    def _register_preview(self, path: str, preview, result: ScanResult) -> None:
        """Register the preview as the active file, keeping the original's path."""
        metadata = {
            'file': os.path.basename(preview.path),
            'original_file': self.library.relative_path(path),
        }
        if preview.width and preview.height:
            metadata['width'], metadata['height'] = preview.width, preview.height

        attachment_id = self.library.add_attachment(preview.path, preview.format.mime_type, metadata)
        result.added += 1
        result.previews += 1
        self.logger.debug(f"Registered #{attachment_id}: {os.path.basename(path)} via preview")

    def _read_dimensions(self, path: str, result: ScanResult):
        engine = self.registry.geometry_engine() if self.registry else None
        if engine is None and self.registry:
            available = self.registry.available_engines()
            engine = available[0] if available else None
        if engine is None:
            return None
        try:
            return engine.dimensions(path)
        except Exception as e:
            message = f"Cannot read header of {path}: {e}"
            self.logger.warning(message)
            result.errors.append(message)
            return None
