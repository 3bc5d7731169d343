"""
PillowEngine - In-process codec backend built on Pillow.
"""

import logging
import os
from typing import Optional, Set, Tuple

import PIL
from PIL import Image, ImageOps, features

from .engine import Engine, ResourceLimits
from .errors import EncodeError
from .formats import Format


# EXIF orientations that swap width and height.
_TRANSPOSED_ORIENTATIONS = (5, 6, 7, 8)
_EXIF_ORIENTATION_TAG = 0x0112

# Info keys that carry EXIF/ICC/XMP metadata.
_METADATA_KEYS = ('exif', 'icc_profile', 'xmp', 'XML:com.adobe.xmp', 'photoshop')

# Sources whose frames are kept as an animation; other multi-frame
# containers (multi-page TIFF, layered PSD) encode their first frame.
_ANIMATED_FORMATS = ('GIF', 'WEBP', 'PNG')

# Modes holding more than 8 bits per sample.
_HIGH_DEPTH_MODES = ('I', 'I;16', 'I;16L', 'I;16B', 'I;16N')


class PillowEngine(Engine):
    """
    Codec backend using Pillow's plugin registry.

    Supports geometry, so it is the engine used for derivative sizes.
    Pillow has no per-call memory ceiling; the guarded converter's
    pre-flight checks bound the work instead.
    """

    name = 'pillow'
    supports_geometry = True

    PIL_FORMATS = {
        'jpg': 'JPEG',
        'jpeg': 'JPEG',
        'jpe': 'JPEG',
        'png': 'PNG',
        'gif': 'GIF',
        'webp': 'WEBP',
        'avif': 'AVIF',
        'bmp': 'BMP',
        'tif': 'TIFF',
        'tiff': 'TIFF',
    }

    def __init__(self, logger: Optional[logging.Logger] = None):
        super().__init__(logger)

    def is_available(self) -> bool:
        Image.init()
        return bool(Image.OPEN)

    def output_formats(self) -> Set[Format]:
        Image.init()
        supported = set()
        for fmt in Format:
            if fmt.label in Image.SAVE and self._codec_module_ok(fmt.value):
                supported.add(fmt)
        return supported

    def input_formats(self) -> Set[str]:
        Image.init()
        return {Image.MIME[name] for name in Image.OPEN if name in Image.MIME}

    def version(self) -> Optional[str]:
        return PIL.__version__

    @staticmethod
    def _codec_module_ok(module: str) -> bool:
        """Check a compiled codec module when Pillow knows about it."""
        if module in features.modules:
            return bool(features.check_module(module))
        # Provided by a plugin package that registered itself in Image.SAVE
        return True

    def dimensions(self, path: str) -> Tuple[int, int]:
        """Header-only (width, height), swapped when EXIF says the image is rotated."""
        with Image.open(path) as img:
            width, height = img.size
            try:
                orientation = img.getexif().get(_EXIF_ORIENTATION_TAG, 1)
            except Exception:
                orientation = 1
        if orientation in _TRANSPOSED_ORIENTATIONS:
            return height, width
        return width, height

    def encode(
        self,
        source_path: str,
        dest_path: str,
        fmt: Format,
        quality: int,
        limits: ResourceLimits
    ) -> None:
        fmt = Format.parse(fmt)
        params = self.encoder_params(fmt, quality)
        try:
            with Image.open(source_path) as img:
                if (fmt is Format.WEBP and img.format in _ANIMATED_FORMATS
                        and getattr(img, 'is_animated', False)):
                    self._strip_metadata(img)
                    img.save(dest_path, format=fmt.label, save_all=True, **params)
                    return

                image = ImageOps.exif_transpose(img)
                image = self._prepare_mode(image, fmt.label)
                self._strip_metadata(image)
                image.save(dest_path, format=fmt.label, **params)
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            raise EncodeError(f"Pillow could not encode {os.path.basename(source_path)}: {e}") from e

    @staticmethod
    def encoder_params(fmt: Format, quality: int) -> dict:
        """Map 1-100 quality onto the Pillow encoder options for fmt."""
        if fmt is Format.WEBP:
            if quality >= 95:
                return {'quality': quality, 'lossless': True, 'method': 6}
            return {'quality': quality, 'method': 6}
        if fmt is Format.AVIF:
            return {'quality': quality, 'speed': 6}
        return {'quality': quality}

    def render_derivative(
        self,
        source_path: str,
        dest_path: str,
        plan,
        extension: str,
        quality: int
    ) -> int:
        """
        Resize (and crop) an image into a derivative file.

        Args:
            source_path: Full-size image
            dest_path: Derivative file to write
            plan: ResizePlan to apply
            extension: Output container extension (e.g. 'jpg', 'webp')
            quality: Quality in [1, 100]

        Returns:
            Size of the written file in bytes
        """
        pil_format = self.PIL_FORMATS.get(extension.lower().lstrip('.'))
        if pil_format is None:
            raise EncodeError(f"No Pillow writer for extension '{extension}'")

        with Image.open(source_path) as img:
            image = ImageOps.exif_transpose(img)
            image = self._prepare_mode(image, pil_format)
            image = image.resize(
                (plan.resize_width, plan.resize_height),
                Image.Resampling.LANCZOS
            )
            if plan.crop_box:
                image = image.crop(plan.crop_box)
            self._strip_metadata(image)
            image.save(dest_path, format=pil_format, **self._save_params(pil_format, quality))

        return os.path.getsize(dest_path)

    def _save_params(self, pil_format: str, quality: int) -> dict:
        if pil_format == 'JPEG':
            return {'quality': quality, 'optimize': True}
        if pil_format == 'PNG':
            return {'optimize': True}
        if pil_format in ('WEBP', 'AVIF'):
            return self.encoder_params(Format.parse(pil_format), quality)
        return {}

    def _prepare_mode(self, img: Image.Image, pil_format: str) -> Image.Image:
        """Convert image to a color mode the target writer accepts."""
        img = self._reduce_depth(img)
        if pil_format in ('JPEG', 'BMP'):
            return self._convert_color_mode(img)
        has_alpha = img.mode in ('RGBA', 'LA') or (
            img.mode == 'P' and 'transparency' in img.info
        )
        if has_alpha:
            return img if img.mode == 'RGBA' else img.convert('RGBA')
        if img.mode != 'RGB':
            return img.convert('RGB')
        return img

    def _convert_color_mode(self, img: Image.Image) -> Image.Image:
        """Flatten alpha onto white for formats without transparency."""
        if img.mode in ('RGBA', 'LA'):
            background = Image.new('RGB', img.size, (255, 255, 255))
            if img.mode == 'LA':
                img = img.convert('RGBA')
            background.paste(img, mask=img.split()[-1])
            return background
        elif img.mode == 'P':
            img = img.convert('RGBA')
            background = Image.new('RGB', img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[-1])
            return background
        elif img.mode != 'RGB':
            return img.convert('RGB')
        return img

    @staticmethod
    def _strip_metadata(img: Image.Image) -> None:
        for key in _METADATA_KEYS:
            img.info.pop(key, None)

    @staticmethod
    def _reduce_depth(img: Image.Image) -> Image.Image:
        """Scale 16-bit integer samples down to 8-bit grayscale instead of clipping them."""
        if img.mode not in _HIGH_DEPTH_MODES:
            return img
        if img.mode != 'I':
            img = img.convert('I')
        return img.point(lambda v: v * (1 / 256)).convert('L')
