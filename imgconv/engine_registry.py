"""
EngineRegistry - Chooses which engine handles a target format.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from .engine import Engine, EngineInfo
from .formats import Format, FALLBACK_INPUT_MIME_TYPES


DEFAULT_PRIORITY = ('pillow', 'imagemagick')


@dataclass
class ValidationResult:
    valid: bool
    message: str = ''


class EngineRegistry:
    """
    Registry of codec engines with a fixed selection priority.

    Engines listed in the priority tuple are tried first, in that order;
    any other registered engine follows in registration order.
    """

    def __init__(
        self,
        engines: Optional[Iterable[Engine]] = None,
        priority: Iterable[str] = DEFAULT_PRIORITY,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize registry.

        Args:
            engines: Engines to register up front
            priority: Engine names tried first, in order
            logger: Optional logger instance
        """
        self.priority = tuple(priority)
        self.logger = logger or logging.getLogger(__name__)
        self._engines: Dict[str, Engine] = {}
        for engine in engines or []:
            self.register_engine(engine)

    def register_engine(self, engine: Engine) -> None:
        """Register an engine, replacing any engine with the same name."""
        if not engine.name:
            raise ValueError("Engine must have a name")
        self._engines[engine.name] = engine

    def get_engine(self, name: str) -> Optional[Engine]:
        return self._engines.get(name)

    def all_engines(self) -> List[Engine]:
        """All registered engines in selection order."""
        ordered = [self._engines[n] for n in self.priority if n in self._engines]
        ordered += [e for n, e in self._engines.items() if n not in self.priority]
        return ordered

    def available_engines(self) -> List[Engine]:
        return [e for e in self.all_engines() if e.is_available()]

    def probe_all(self) -> List[EngineInfo]:
        return [e.probe() for e in self.all_engines()]

    def best_engine_for(self, fmt) -> Optional[Engine]:
        """
        First available engine, in selection order, that encodes fmt.

        Returns:
            The engine, or None if nothing can encode the format
        """
        for engine in self.all_engines():
            if engine.supports_format(fmt):
                return engine
        return None

    def engine_from_preference(self, preference: Optional[str], fmt) -> Optional[Engine]:
        """
        Resolve a configured engine preference for a format.

        'auto' (or empty) picks the best engine. A named engine that is
        unknown, unavailable or cannot encode fmt falls back to the best
        engine; the fallback is logged as an engine_fallback event.
        """
        if not preference or preference == 'auto':
            return self.best_engine_for(fmt)

        engine = self.get_engine(preference)
        if engine is not None and engine.supports_format(fmt):
            return engine

        fallback = self.best_engine_for(fmt)
        if engine is None:
            reason = 'unknown'
        elif not engine.is_available():
            reason = 'unavailable'
        else:
            reason = 'format_unsupported'
        self.logger.warning(
            f"Engine '{preference}' cannot encode {Format.parse(fmt).label} ({reason}); "
            f"using {fallback.name if fallback else 'no engine'}",
            extra={
                'event': 'engine_fallback',
                'requested_engine': preference,
                'format': Format.parse(fmt).value,
                'reason': reason,
                'fallback_engine': fallback.name if fallback else None,
            }
        )
        return fallback

    def validate(self, preference: Optional[str], fmt) -> ValidationResult:
        """Check a preference/format pair without falling back."""
        try:
            target = Format.parse(fmt)
        except ValueError as e:
            return ValidationResult(False, str(e))

        if not preference or preference == 'auto':
            if self.best_engine_for(target) is None:
                return ValidationResult(False, f"No available engine supports {target.label} format.")
            return ValidationResult(True)

        engine = self.get_engine(preference)
        if engine is None:
            return ValidationResult(False, f"Unknown engine: {preference}.")
        if not engine.is_available():
            return ValidationResult(False, f"Engine '{preference}' is not available on this system.")
        if not engine.supports_format(target):
            return ValidationResult(False, f"Engine '{preference}' does not support {target.label} format.")
        return ValidationResult(True)

    def engines_supporting(self, fmt) -> List[str]:
        return [e.name for e in self.all_engines() if e.supports_format(fmt)]

    def union_of_input_formats(self) -> Set[str]:
        """Readable MIME types across available engines, recomputed per call."""
        mime_types: Set[str] = set()
        for engine in self.available_engines():
            try:
                mime_types |= engine.input_formats()
            except Exception as e:
                self.logger.warning(f"Could not list input formats of '{engine.name}': {e}")
        return mime_types or set(FALLBACK_INPUT_MIME_TYPES)

    def is_mime_type_supported(self, mime_type: str) -> bool:
        return (mime_type or '').lower() in self.union_of_input_formats()

    def geometry_engine(self) -> Optional[Engine]:
        """Highest priority available engine that can resize and crop."""
        for engine in self.all_engines():
            if engine.supports_geometry and engine.is_available():
                return engine
        return None


def default_registry(logger: Optional[logging.Logger] = None) -> EngineRegistry:
    """Registry with the Pillow and ImageMagick engines."""
    from .pillow_engine import PillowEngine
    from .imagemagick_engine import ImageMagickEngine

    return EngineRegistry(
        engines=[PillowEngine(logger=logger), ImageMagickEngine(logger=logger)],
        logger=logger,
    )
