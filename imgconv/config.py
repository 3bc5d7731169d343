"""
ConverterConfig - Conversion settings from defaults, environment or JSON.
"""

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional

from .engine import ResourceLimits
from .errors import ConfigError
from .formats import Format, clamp_quality
from .size_profile import SizeProfile, default_profiles, load_profiles


ENV_PREFIX = 'IMGCONV_'


def parse_bool(value: str, name: str) -> bool:
    """Parse an on/off setting such as 'true', '0' or 'no'."""
    lowered = value.strip().lower()
    if lowered in ('1', 'true', 'yes', 'on'):
        return True
    if lowered in ('0', 'false', 'no', 'off'):
        return False
    raise ConfigError(f"{name} must be true or false, got {value!r}")


@dataclass
class ConverterConfig:
    """
    Conversion settings.

    Attributes:
        engine: 'auto' or an engine name
        format: Target format name (webp or avif)
        quality: Target quality, clamped to [1, 100]
        thumbnail_quality: Quality used for derivative sizes
        size_profiles: Derivative sizes to generate
        max_filesize_bytes: Largest source file accepted
        max_pixels: Largest width*height accepted
        min_free_memory_bytes: Headroom required before decoding
        memory_limit_bytes: Explicit process memory ceiling (None = rlimit)
        batch_size: Items per batch chunk
        keep_originals: Keep source files after a successful conversion
        advanced_previews: Write web previews for TIFF/PSD/RAW and similar sources on import
        max_preview_filesize_bytes: Largest source a preview is written for
        resource_limits: Per-call ceilings passed to engines
    """
    engine: str = 'auto'
    format: str = 'webp'
    quality: int = 85
    thumbnail_quality: int = 82
    size_profiles: List[SizeProfile] = field(default_factory=default_profiles)
    max_filesize_bytes: int = 10 * 1024 * 1024
    max_pixels: int = 25_000_000
    min_free_memory_bytes: int = 64 * 1024 * 1024
    memory_limit_bytes: Optional[int] = None
    batch_size: int = 15
    keep_originals: bool = True
    advanced_previews: bool = True
    max_preview_filesize_bytes: int = 200 * 1024 * 1024
    resource_limits: ResourceLimits = field(default_factory=ResourceLimits)

    def __post_init__(self):
        self.quality = clamp_quality(self.quality)
        self.thumbnail_quality = clamp_quality(self.thumbnail_quality)

    @property
    def target_format(self) -> Format:
        return Format.parse(self.format)

    @classmethod
    def from_env(cls) -> 'ConverterConfig':
        """Create configuration from IMGCONV_* environment variables."""
        config = cls()
        for key in ('engine', 'format'):
            value = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
            if value:
                setattr(config, key, value.strip().lower())

        int_keys = (
            'quality', 'thumbnail_quality', 'max_filesize_bytes', 'max_pixels',
            'min_free_memory_bytes', 'memory_limit_bytes', 'batch_size',
            'max_preview_filesize_bytes',
        )
        for key in int_keys:
            value = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
            if value:
                try:
                    setattr(config, key, int(value))
                except ValueError:
                    raise ConfigError(f"{ENV_PREFIX}{key.upper()} must be an integer, got {value!r}")

        for key in ('keep_originals', 'advanced_previews'):
            value = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
            if value:
                setattr(config, key, parse_bool(value, f"{ENV_PREFIX}{key.upper()}"))

        profiles = os.environ.get(f"{ENV_PREFIX}SIZE_PROFILES")
        if profiles:
            try:
                config.size_profiles = load_profiles(json.loads(profiles))
            except json.JSONDecodeError as e:
                raise ConfigError(f"{ENV_PREFIX}SIZE_PROFILES is not valid JSON: {e}")

        config.__post_init__()
        return config

    @classmethod
    def from_dict(cls, data: dict) -> 'ConverterConfig':
        """Create from a dictionary; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        if 'size_profiles' in kwargs:
            kwargs['size_profiles'] = load_profiles(kwargs['size_profiles'])
        if isinstance(kwargs.get('resource_limits'), dict):
            kwargs['resource_limits'] = ResourceLimits(**kwargs['resource_limits'])
        return cls(**kwargs)

    @classmethod
    def load(cls, filepath: str) -> 'ConverterConfig':
        """Load configuration from a JSON file."""
        path = Path(filepath)
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {filepath}")
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config file {filepath} is not valid JSON: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {filepath} must contain a JSON object")
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        return {
            'engine': self.engine,
            'format': self.format,
            'quality': self.quality,
            'thumbnail_quality': self.thumbnail_quality,
            'size_profiles': [p.to_dict() for p in self.size_profiles],
            'max_filesize_bytes': self.max_filesize_bytes,
            'max_pixels': self.max_pixels,
            'min_free_memory_bytes': self.min_free_memory_bytes,
            'memory_limit_bytes': self.memory_limit_bytes,
            'batch_size': self.batch_size,
            'keep_originals': self.keep_originals,
            'advanced_previews': self.advanced_previews,
            'max_preview_filesize_bytes': self.max_preview_filesize_bytes,
        }

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []
        try:
            Format.parse(self.format)
        except ValueError as e:
            errors.append(str(e))
        if not self.engine:
            errors.append("engine must be 'auto' or an engine name")
        if self.max_filesize_bytes <= 0:
            errors.append("max_filesize_bytes must be positive")
        if self.max_pixels <= 0:
            errors.append("max_pixels must be positive")
        if self.min_free_memory_bytes < 0:
            errors.append("min_free_memory_bytes cannot be negative")
        if self.memory_limit_bytes is not None and self.memory_limit_bytes <= 0:
            errors.append("memory_limit_bytes must be positive when set")
        if self.batch_size < 1:
            errors.append("batch_size must be at least 1")
        if self.max_preview_filesize_bytes <= 0:
            errors.append("max_preview_filesize_bytes must be positive")
        return errors
