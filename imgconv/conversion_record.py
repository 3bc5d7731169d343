"""
ConversionRecord - Outcome of transcoding one attachment.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


@dataclass
class ConversionRecord:
    """
    Record of a converted attachment, stored under a single meta key.

    Attributes:
        converted: True once the full-size file converted
        format: Target format name ('webp' or 'avif')
        engine: Engine that encoded the full-size file
        converted_sizes: Size names that converted
        converted_files: Paths of every converted file written
        original_file: Full-size path relative to the upload root
        original_total_bytes: Bytes of the sources that converted
        converted_total_bytes: Bytes of the converted files
        bytes_saved: original_total_bytes - converted_total_bytes
        percent_saved: Savings as a percentage, 2 decimals
        timestamp: ISO timestamp of the conversion
        originals_deleted: The source files were removed after converting
    """
    converted: bool
    format: str
    engine: str
    converted_sizes: List[str] = field(default_factory=list)
    converted_files: List[str] = field(default_factory=list)
    original_file: str = ''
    original_total_bytes: int = 0
    converted_total_bytes: int = 0
    bytes_saved: int = 0
    percent_saved: float = 0.0
    timestamp: str = ''
    originals_deleted: bool = False

    @classmethod
    def create(
        cls,
        format: str,
        engine: str,
        original_file: str,
        original_total_bytes: int,
        converted_total_bytes: int,
        converted_sizes: Optional[List[str]] = None,
        converted_files: Optional[List[str]] = None
    ) -> 'ConversionRecord':
        """Build a record and compute the savings."""
        saved = original_total_bytes - converted_total_bytes
        percent = round(saved / original_total_bytes * 100, 2) if original_total_bytes > 0 else 0.0
        return cls(
            converted=True,
            format=format,
            engine=engine,
            converted_sizes=list(converted_sizes or []),
            converted_files=list(converted_files or []),
            original_file=original_file,
            original_total_bytes=original_total_bytes,
            converted_total_bytes=converted_total_bytes,
            bytes_saved=saved,
            percent_saved=percent,
            timestamp=datetime.now().isoformat(),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'converted': self.converted,
            'format': self.format,
            'engine': self.engine,
            'converted_sizes': list(self.converted_sizes),
            'converted_files': list(self.converted_files),
            'original_file': self.original_file,
            'original_total_bytes': self.original_total_bytes,
            'converted_total_bytes': self.converted_total_bytes,
            'bytes_saved': self.bytes_saved,
            'percent_saved': self.percent_saved,
            'timestamp': self.timestamp,
            'originals_deleted': self.originals_deleted,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'ConversionRecord':
        """Create from dictionary."""
        return cls(
            converted=bool(data.get('converted', False)),
            format=data.get('format', ''),
            engine=data.get('engine', ''),
            converted_sizes=list(data.get('converted_sizes', [])),
            converted_files=list(data.get('converted_files', [])),
            original_file=data.get('original_file', ''),
            original_total_bytes=int(data.get('original_total_bytes', 0)),
            converted_total_bytes=int(data.get('converted_total_bytes', 0)),
            bytes_saved=int(data.get('bytes_saved', 0)),
            percent_saved=float(data.get('percent_saved', 0.0)),
            timestamp=data.get('timestamp', ''),
            originals_deleted=bool(data.get('originals_deleted', False)),
        )

    def format_status(self, filename: str = '') -> str:
        """
        Format a human-readable status string.

        Returns:
            Status string like "photo.jpg - WEBP via pillow, saved 45.2 KB (38.5%)"
        """
        name = filename or self.original_file
        if not self.converted:
            return f"{name} - NOT converted"
        sizes = f", {len(self.converted_sizes)} sizes" if self.converted_sizes else ""
        return (
            f"{name} - {self.format.upper()} via {self.engine}{sizes}, "
            f"saved {self._format_bytes(self.bytes_saved)} ({self.percent_saved:.1f}%)"
        )

    @staticmethod
    def _format_bytes(bytes_val: Optional[int]) -> str:
        """Format bytes as human-readable string."""
        if bytes_val is None:
            return "unknown"
        sign = '-' if bytes_val < 0 else ''
        bytes_val = abs(bytes_val)
        for unit in ['B', 'KB', 'MB', 'GB']:
            if bytes_val < 1024:
                return f"{sign}{bytes_val:.1f} {unit}"
            bytes_val /= 1024
        return f"{sign}{bytes_val:.1f} TB"
