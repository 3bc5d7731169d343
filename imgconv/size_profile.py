"""
SizeProfile - Named derivative sizes and their loading rules.
"""

import logging
import re
from dataclasses import dataclass, asdict
from typing import Any, Iterable, List, Optional

from .geometry import suffix


NAME_PATTERN = re.compile(r'^[a-z0-9_]{2,32}$')

# 'inherit' keeps the source container; 'auto' is accepted as an alias.
PROFILE_FORMATS = ('inherit', 'webp', 'avif', 'jpeg', 'png')


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def _as_dimension(value: Any) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        return 0


@dataclass
class SizeProfile:
    """
    A named derivative size.

    Attributes:
        name: Identifier, [a-z0-9_]{2,32}
        width: Width bound in pixels (0 = unbounded)
        height: Height bound in pixels (0 = unbounded)
        crop: Cover the box exactly instead of fitting inside it
        format: Output container (inherit, webp, avif, jpeg, png)
    """
    name: str
    width: int = 0
    height: int = 0
    crop: bool = False
    format: str = 'inherit'

    @property
    def is_noop(self) -> bool:
        return self.width == 0 and self.height == 0

    @property
    def suffix(self) -> str:
        return suffix(self.width, self.height, self.crop and bool(self.width and self.height))

    def output_extension(self, source_extension: str) -> str:
        """Extension of the derivative file for a source with the given extension."""
        if self.format == 'inherit':
            return source_extension.lstrip('.').lower()
        if self.format == 'jpeg':
            return 'jpg'
        return self.format

    def describe(self) -> str:
        """Short human readable description of the resulting size."""
        if self.is_noop:
            return "no resize (skipped)"
        if self.width and self.height and self.crop:
            text = f"exactly {self.width} x {self.height}, cropped to fill"
        elif self.width and self.height:
            text = f"fits within {self.width} x {self.height}, proportional"
        elif self.width:
            text = f"{self.width}px wide, proportional height"
        else:
            text = f"{self.height}px tall, proportional width"
        if self.format != 'inherit':
            text += f", saved as {self.format.upper()}"
        return text

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'SizeProfile':
        """
        Create from a loosely typed dictionary.

        Raises:
            ValueError: If the name is missing or invalid
        """
        name = str(data.get('name', '')).strip().lower()
        if not NAME_PATTERN.match(name):
            raise ValueError(f"Invalid size profile name: {data.get('name')!r}")

        fmt = str(data.get('format') or 'inherit').strip().lower()
        if fmt == 'auto':
            fmt = 'inherit'
        if fmt not in PROFILE_FORMATS:
            raise ValueError(f"Invalid format {fmt!r} for size profile '{name}'")

        return cls(
            name=name,
            width=_as_dimension(data.get('width')),
            height=_as_dimension(data.get('height')),
            crop=_as_bool(data.get('crop', False)),
            format=fmt,
        )


DEFAULT_PROFILES = (
    SizeProfile('thumbnail', 150, 150, True),
    SizeProfile('medium', 300, 0),
    SizeProfile('medium_large', 768, 0),
    SizeProfile('large', 1024, 0),
    SizeProfile('xl', 1600, 0),
)


def default_profiles() -> List[SizeProfile]:
    return [SizeProfile(**p.to_dict()) for p in DEFAULT_PROFILES]


def load_profiles(
    rows: Optional[Iterable],
    logger: Optional[logging.Logger] = None
) -> List[SizeProfile]:
    """
    Build the profile list from configuration rows.

    Invalid rows are dropped with a warning. Duplicate names keep the
    first position and the last definition. An empty or unusable list
    yields the default profiles.
    """
    logger = logger or logging.getLogger(__name__)

    if not rows or isinstance(rows, (str, bytes, dict)):
        return default_profiles()

    profiles = {}
    for row in rows:
        if isinstance(row, SizeProfile):
            profiles[row.name] = row
            continue
        if not isinstance(row, dict):
            logger.warning(f"Ignoring malformed size profile: {row!r}")
            continue
        try:
            profile = SizeProfile.from_dict(row)
        except ValueError as e:
            logger.warning(f"Ignoring size profile: {e}")
            continue
        profiles[profile.name] = profile

    return list(profiles.values()) or default_profiles()
