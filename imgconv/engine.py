"""
Engine - Codec backend interface and capability probe result.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Set, Tuple

from .formats import Format


MIB = 1024 * 1024


@dataclass
class ResourceLimits:
    """
    Per-call ceilings handed to an engine.

    Attributes:
        memory_bytes: Pixel cache memory ceiling
        map_bytes: Memory-mapped cache ceiling
        time_seconds: Wall clock ceiling for a single encode
    """
    memory_bytes: int = 256 * MIB
    map_bytes: int = 512 * MIB
    time_seconds: int = 60


@dataclass
class EngineInfo:
    """
    Result of probing an engine.

    Attributes:
        name: Engine key
        available: Whether the backing library/binary is usable right now
        version: Best-effort version string
        output_formats: Target format name -> supported
        input_formats: Sorted readable MIME types
        error: Probe error text, if the probe failed
    """
    name: str
    available: bool
    version: Optional[str] = None
    output_formats: Dict[str, bool] = field(default_factory=dict)
    input_formats: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def supports(self, fmt: Format) -> bool:
        return self.available and self.output_formats.get(Format.parse(fmt).value, False)

    def to_dict(self) -> dict:
        return asdict(self)


class Engine(ABC):
    """
    A codec backend able to decode and encode raster images.

    Availability and format support are queried live on every call; an
    engine constructed while its library is missing may become available
    later and vice versa.
    """

    name: str = ''
    # True when the engine can resize and crop (used for derivatives).
    supports_geometry: bool = False

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    @abstractmethod
    def is_available(self) -> bool:
        """Check whether the backend can be used right now."""

    @abstractmethod
    def output_formats(self) -> Set[Format]:
        """Target formats this backend can currently encode."""

    @abstractmethod
    def input_formats(self) -> Set[str]:
        """MIME types this backend can currently decode."""

    @abstractmethod
    def version(self) -> Optional[str]:
        """Best-effort backend version string."""

    @abstractmethod
    def dimensions(self, path: str) -> Tuple[int, int]:
        """
        Read (width, height) from the image header without decoding pixels.

        Raises:
            OSError: If the header cannot be read
        """

    @abstractmethod
    def encode(
        self,
        source_path: str,
        dest_path: str,
        fmt: Format,
        quality: int,
        limits: ResourceLimits
    ) -> None:
        """
        Encode source_path into dest_path.

        Args:
            source_path: Image to read
            dest_path: File to write (the caller owns cleanup)
            fmt: Target format
            quality: Quality in [1, 100]
            limits: Resource ceilings for this call

        Raises:
            EncodeError: If the backend fails
        """

    def render_derivative(
        self,
        source_path: str,
        dest_path: str,
        plan,
        extension: str,
        quality: int
    ) -> int:
        """Resize/crop source_path per plan and write it; returns bytes written."""
        raise NotImplementedError(f"Engine '{self.name}' cannot render derivatives")

    def supports_format(self, fmt) -> bool:
        """Check whether this engine is available and can encode fmt."""
        try:
            target = Format.parse(fmt)
        except ValueError:
            return False
        try:
            return self.is_available() and target in self.output_formats()
        except Exception as e:
            self.logger.warning(f"Engine '{self.name}' format query failed: {e}")
            return False

    def probe(self) -> EngineInfo:
        """
        Report presence, version and per-format support.

        Never raises; a failed probe is reported as an unavailable engine
        carrying the error text.
        """
        try:
            available = self.is_available()
            if not available:
                return EngineInfo(
                    name=self.name,
                    available=False,
                    output_formats={fmt.value: False for fmt in Format},
                )
            supported = self.output_formats()
            return EngineInfo(
                name=self.name,
                available=True,
                version=self.version(),
                output_formats={fmt.value: fmt in supported for fmt in Format},
                input_formats=sorted(self.input_formats()),
            )
        except Exception as e:
            self.logger.warning(f"Probe of engine '{self.name}' failed: {e}")
            return EngineInfo(
                name=self.name,
                available=False,
                output_formats={fmt.value: False for fmt in Format},
                error=str(e),
            )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
