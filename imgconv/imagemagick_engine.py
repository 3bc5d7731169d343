"""
ImageMagickEngine - Codec backend that shells out to ImageMagick via sh.
"""

import logging
import os
import re
import shutil
from typing import Dict, List, Optional, Set, Tuple

import sh

from .engine import Engine, ResourceLimits
from .errors import EncodeError
from .formats import Format, EXTENSION_TO_MIME


class ImageMagickEngine(Engine):
    """
    Codec backend using the ImageMagick command line tools.

    Works with ImageMagick 7 (`magick`) or 6 (`convert`/`identify`).
    Resource limits are passed as arguments on every call; no global
    policy is changed.
    """

    name = 'imagemagick'

    # Lines of `-list format`, with or without the module column:
    #   "     WEBP* WEBP      rw+   WebP Image Format"
    #   "     WEBP* rw+   WebP Image Format"
    FORMAT_LINE = re.compile(
        r'^\s*([A-Z0-9][A-Z0-9_+-]*)\*?\s+(?:[A-Z0-9_+-]+\s+)?([r-])([w-])([+-])\s'
    )
    VERSION_LINE = re.compile(r'ImageMagick\s+([0-9][0-9A-Za-z.\-]*)')

    def __init__(
        self,
        binary: Optional[str] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the engine.

        Args:
            binary: Explicit path to `magick` or `convert` (default: search PATH)
            logger: Optional logger instance
        """
        super().__init__(logger)
        self.binary = binary
        # (binary path, mtime) -> {format name: (readable, writable)}
        self._format_cache: Dict[Tuple[str, float], Dict[str, Tuple[bool, bool]]] = {}

    def _resolve_binary(self) -> Optional[str]:
        if self.binary:
            return self.binary if os.path.exists(self.binary) else None
        return shutil.which('magick') or shutil.which('convert')

    def _is_v7(self, binary: str) -> bool:
        return os.path.basename(binary).startswith('magick')

    def _command(self, binary: str):
        return sh.Command(binary)

    def is_available(self) -> bool:
        return self._resolve_binary() is not None

    def _format_table(self) -> Dict[str, Tuple[bool, bool]]:
        """Parse `-list format`, cached per binary path and modification time."""
        binary = self._resolve_binary()
        if binary is None:
            return {}

        try:
            mtime = os.path.getmtime(binary)
        except OSError:
            mtime = 0.0
        key = (binary, mtime)
        if key in self._format_cache:
            return self._format_cache[key]

        output = str(self._command(binary)('-list', 'format'))
        table: Dict[str, Tuple[bool, bool]] = {}
        for line in output.splitlines():
            match = self.FORMAT_LINE.match(line)
            if match:
                name, read, write, _ = match.groups()
                table[name.upper()] = (read == 'r', write == 'w')

        self._format_cache = {key: table}
        return table

    def output_formats(self) -> Set[Format]:
        table = self._format_table()
        return {fmt for fmt in Format if table.get(fmt.label, (False, False))[1]}

    def input_formats(self) -> Set[str]:
        mime_types = set()
        for name, (readable, _) in self._format_table().items():
            mime = EXTENSION_TO_MIME.get(name.lower())
            if readable and mime:
                mime_types.add(mime)
        return mime_types

    def version(self) -> Optional[str]:
        binary = self._resolve_binary()
        if binary is None:
            return None
        output = str(self._command(binary)('-version'))
        match = self.VERSION_LINE.search(output)
        return match.group(1) if match else None

    def dimensions(self, path: str) -> Tuple[int, int]:
        binary = self._resolve_binary()
        if binary is None:
            raise OSError("ImageMagick is not installed")

        if self._is_v7(binary):
            identify = self._command(binary).bake('identify')
        else:
            identify_path = shutil.which('identify')
            if identify_path is None:
                raise OSError("ImageMagick identify is not installed")
            identify = self._command(identify_path)

        try:
            output = str(identify('-ping', '-format', '%w %h', f"{path}[0]")).strip()
            width, height = output.split()[:2]
            return int(width), int(height)
        except (sh.ErrorReturnCode, ValueError) as e:
            raise OSError(f"Cannot read image header of {path}: {e}") from e

    def build_encode_args(
        self,
        source_path: str,
        dest_path: str,
        fmt: Format,
        quality: int,
        limits: ResourceLimits
    ) -> List[str]:
        """Build the argument list for a single encode."""
        args = [
            '-limit', 'memory', str(limits.memory_bytes),
            '-limit', 'map', str(limits.map_bytes),
            '-limit', 'time', str(limits.time_seconds),
            source_path,
            '-auto-orient',
            '-strip',
            '-quality', str(quality),
        ]
        if fmt is Format.WEBP:
            if quality >= 95:
                args += ['-define', 'webp:lossless=true']
            else:
                args += ['-define', 'webp:method=6']
        elif fmt is Format.AVIF:
            args += ['-define', 'heic:speed=6']
        args.append(f"{fmt.label}:{dest_path}")
        return args

    def encode(
        self,
        source_path: str,
        dest_path: str,
        fmt: Format,
        quality: int,
        limits: ResourceLimits
    ) -> None:
        fmt = Format.parse(fmt)
        binary = self._resolve_binary()
        if binary is None:
            raise EncodeError("ImageMagick is not installed")

        args = self.build_encode_args(source_path, dest_path, fmt, quality, limits)
        self.logger.debug(f"Running {os.path.basename(binary)} {' '.join(args)}")

        try:
            self._command(binary)(*args, _timeout=limits.time_seconds)
        except sh.ErrorReturnCode as e:
            stderr = e.stderr.decode('utf-8', errors='replace').strip() if e.stderr else ''
            raise EncodeError(f"ImageMagick failed (exit {e.exit_code}): {stderr}") from e
        except sh.TimeoutException as e:
            raise EncodeError(f"ImageMagick timed out after {limits.time_seconds}s") from e
        except sh.CommandNotFound as e:
            raise EncodeError(f"ImageMagick is not installed: {e}") from e
