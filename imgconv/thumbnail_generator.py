"""
ThumbnailGenerator - Writes the derivative sizes of an image.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from .engine import Engine
from .formats import clamp_quality, mime_from_ext
from .geometry import compute_resize_plan
from .size_profile import SizeProfile


@dataclass
class DerivativeSet:
    """
    Result of a derivative generation run.

    Attributes:
        sizes: Profile name -> {file, width, height, mime-type, path}, in profile order
        width: Base image width
        height: Base image height
        skipped: True when no geometry engine was available
        errors: Profile name -> error message
    """
    sizes: Dict[str, dict] = field(default_factory=dict)
    width: int = 0
    height: int = 0
    skipped: bool = False
    errors: Dict[str, str] = field(default_factory=dict)

    def to_metadata(self, existing: Optional[dict] = None, prune: bool = False) -> dict:
        """
        Merge these sizes into attachment metadata.

        With prune, existing sizes of profiles that did not run are
        dropped, and a size that failed keeps its old entry. Nothing is
        pruned when the base dimensions could not be read.
        """
        metadata = dict(existing or {})
        if self.skipped:
            return metadata
        if self.width and self.height:
            metadata['width'] = self.width
            metadata['height'] = self.height
        sizes = dict(metadata.get('sizes') or {})
        if prune and '*' not in self.errors:
            sizes = {name: info for name, info in sizes.items() if name in self.errors}
        sizes.update(self.sizes)
        metadata['sizes'] = sizes
        return metadata


class ThumbnailGenerator:
    """
    Generates derivative sizes of a source image with a geometry engine.
    """

    def __init__(
        self,
        engine: Optional[Engine],
        quality: int = 82,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize thumbnail generator.

        Args:
            engine: Engine able to resize and crop (None disables generation)
            quality: Output quality for derivatives (default: 82)
            logger: Optional logger instance
        """
        self.engine = engine
        self.quality = clamp_quality(quality)
        self.logger = logger or logging.getLogger(__name__)

    def generate(
        self,
        source_path: str,
        profiles: Iterable[SizeProfile],
        quality: Optional[int] = None,
        metadata: Optional[dict] = None
    ) -> DerivativeSet:
        """
        Write one derivative per profile next to the source.

        A failing profile is logged and recorded; the others still run.

        Args:
            source_path: Full-size image
            profiles: Sizes to generate
            quality: Override the generator quality
            metadata: Existing metadata, used for the base width/height

        Returns:
            DerivativeSet describing what was written
        """
        if self.engine is None or not self.engine.supports_geometry or not self.engine.is_available():
            self.logger.info(f"No geometry engine available, leaving sizes of {source_path} untouched")
            return DerivativeSet(skipped=True)

        quality = clamp_quality(quality if quality is not None else self.quality)
        result = DerivativeSet()

        width, height = self._base_dimensions(source_path, metadata)
        result.width, result.height = width, height
        if not width or not height:
            result.errors['*'] = f"Cannot determine dimensions of {source_path}"
            self.logger.error(result.errors['*'])
            return result

        directory = os.path.dirname(source_path)
        basename, source_ext = os.path.splitext(os.path.basename(source_path))

        for profile in profiles:
            if profile.is_noop:
                continue
            try:
                result.sizes[profile.name] = self._render(
                    source_path, directory, basename, source_ext,
                    profile, width, height, quality
                )
            except Exception as e:
                result.errors[profile.name] = str(e)
                self.logger.error(f"Error generating size '{profile.name}' for {source_path}: {e}")

        return result

    def _render(
        self,
        source_path: str,
        directory: str,
        basename: str,
        source_ext: str,
        profile: SizeProfile,
        width: int,
        height: int,
        quality: int
    ) -> dict:
        crop = profile.crop and bool(profile.width and profile.height)
        plan = compute_resize_plan(width, height, profile.width, profile.height, crop)
        extension = profile.output_extension(source_ext)
        filename = f"{basename}-{profile.suffix}.{extension}"
        dest_path = os.path.join(directory, filename)

        size = self.engine.render_derivative(source_path, dest_path, plan, extension, quality)
        self.logger.debug(f"Generated {filename} ({plan.width}x{plan.height}, {size} bytes)")

        return {
            'file': filename,
            'width': plan.width,
            'height': plan.height,
            'mime-type': mime_from_ext(extension),
            'path': dest_path,
        }

    def _base_dimensions(self, source_path: str, metadata: Optional[dict]):
        metadata = metadata or {}
        width = int(metadata.get('width') or 0)
        height = int(metadata.get('height') or 0)
        if width and height:
            return width, height
        try:
            return self.engine.dimensions(source_path)
        except Exception as e:
            self.logger.warning(f"Could not read dimensions of {source_path}: {e}")
            return 0, 0
