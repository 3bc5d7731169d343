"""
Reporter - Generates human-readable reports on engines and libraries.
"""

import logging
import math
import sys
from collections import defaultdict
from typing import Iterable, Optional, TextIO

from .attachment_converter import AttachmentConverter, ERRORS_META_KEY
from .batch_processor import BatchProcessor
from .config import ConverterConfig
from .engine_registry import EngineRegistry
from .formats import Format
from .library import Library
from .size_profile import SizeProfile


class Reporter:
    """
    Generates human-readable reports.
    """

    def __init__(
        self,
        output: Optional[TextIO] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize reporter.

        Args:
            output: Output stream (default: stdout)
            logger: Optional logger instance
        """
        self.output = output or sys.stdout
        self.logger = logger or logging.getLogger(__name__)

    def _print(self, text: str = "") -> None:
        """Print to output stream."""
        print(text, file=self.output)

    def _format_bytes(self, bytes_val: int) -> str:
        """Format bytes as human-readable string."""
        sign = '-' if bytes_val < 0 else ''
        bytes_val = abs(bytes_val)
        for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
            if bytes_val < 1024:
                return f"{sign}{bytes_val:.1f} {unit}"
            bytes_val /= 1024
        return f"{sign}{bytes_val:.1f} PB"

    def _format_duration(self, seconds: float) -> str:
        """Format duration as human-readable string."""
        if seconds < 60:
            return f"{seconds:.1f} seconds"
        elif seconds < 3600:
            return f"{seconds / 60:.1f} minutes"
        else:
            return f"{seconds / 3600:.1f} hours"

    def report_engines(self, registry: EngineRegistry, config: ConverterConfig) -> None:
        """
        Print engine availability and format support.

        Args:
            registry: Registry to probe
            config: Configuration whose engine/format pair is validated
        """
        self._print("=" * 60)
        self._print("ENGINE STATUS")
        self._print("=" * 60)
        self._print()

        header = f"  {'Engine':<14} {'Available':<10} {'Version':<14}"
        for fmt in Format:
            header += f" {fmt.label:<6}"
        self._print(header)
        self._print(f"  {'-'*14} {'-'*10} {'-'*14}" + f" {'-'*6}" * len(Format))

        for info in registry.probe_all():
            line = f"  {info.name:<14} {'yes' if info.available else 'no':<10} {(info.version or '-'):<14}"
            for fmt in Format:
                line += f" {'yes' if info.output_formats.get(fmt.value) else 'no':<6}"
            self._print(line)
            if info.error:
                self._print(f"    error: {info.error}")
        self._print()

        for fmt in Format:
            capable = registry.engines_supporting(fmt)
            line = f"  Best engine for {fmt.label:<5} {capable[0] if capable else 'none'}"
            if len(capable) > 1:
                line += f" (fallback: {', '.join(capable[1:])})"
            self._print(line)
        geometry = registry.geometry_engine()
        self._print(f"  Derivative sizes via: {geometry.name if geometry else 'none (sizes disabled)'}")
        self._print(f"  Readable types:       {', '.join(sorted(registry.union_of_input_formats()))}")
        self._print()

        result = registry.validate(config.engine, config.format)
        if result.valid:
            self._print(f"  ✓  Configuration OK: engine={config.engine}, format={config.format}")
        else:
            self._print(f"  ⚠️  {result.message}")
        self._print()

    def report_summary(self, library: Library, processor: BatchProcessor) -> None:
        """
        Print library totals and conversion savings.

        Args:
            library: The library to report on
            processor: Batch processor used for the counts
        """
        converter: AttachmentConverter = processor.converter
        stats = processor.image_stats()

        by_format = defaultdict(int)
        original_bytes = converted_bytes = 0
        with_errors = 0
        for attachment_id in library.iter_ids():
            record = converter.get_conversion_record(attachment_id)
            if record and record.converted:
                by_format[record.format] += 1
                original_bytes += record.original_total_bytes
                converted_bytes += record.converted_total_bytes
            if library.get_meta(attachment_id, ERRORS_META_KEY):
                with_errors += 1

        self._print("=" * 60)
        self._print("LIBRARY SUMMARY")
        self._print("=" * 60)
        self._print()
        self._print(f"  Library created: {library.created_at}")
        self._print(f"  Upload root:     {library.upload_root}")
        self._print()

        total = stats['total']
        converted = stats['converted']
        coverage = (converted / total * 100) if total > 0 else 0
        self._print(f"  Total Images:        {total:>10,}")
        self._print(f"  Converted:           {converted:>10,}  ({coverage:.1f}%)")
        self._print(f"  Remaining:           {stats['remaining']:>10,}")
        self._print(f"  SVG files:           {stats['svg_total']:>10,}")
        self._print(f"  With logged errors:  {with_errors:>10,}")
        self._print()

        if by_format:
            self._print("  Converted by format:")
            for fmt in sorted(by_format):
                self._print(f"    {fmt.upper():<6} {by_format[fmt]:>10,}")
            saved = original_bytes - converted_bytes
            percent = (saved / original_bytes * 100) if original_bytes > 0 else 0
            self._print()
            self._print(f"  Original size:       {self._format_bytes(original_bytes):>12}")
            self._print(f"  Converted size:      {self._format_bytes(converted_bytes):>12}")
            self._print(f"  Saved:               {self._format_bytes(saved):>12}  ({percent:.1f}%)")
            self._print()

    def report_detailed(self, library: Library, converter: AttachmentConverter) -> None:
        """Print one status line per attachment."""
        self._print("=" * 60)
        self._print("ATTACHMENTS")
        self._print("=" * 60)
        for attachment in library.iter_attachments():
            record = converter.get_conversion_record(attachment.id)
            if record:
                status = record.format_status(attachment.file)
            else:
                status = f"{attachment.file} - NOT converted"
            self._print(f"  #{attachment.id:<6} {status}")
            for error in library.get_meta(attachment.id, ERRORS_META_KEY) or []:
                self._print(f"           ! {error.get('message', '')}")
        self._print()

    def report_profiles(self, profiles: Iterable[SizeProfile]) -> None:
        """Print the configured derivative sizes."""
        self._print("Size profiles:")
        for profile in profiles:
            self._print(f"  {profile.name:<14} -{profile.suffix:<12} {profile.describe()}")
        self._print()

    def report_action_plan(
        self,
        processor: BatchProcessor,
        kind: str,
        cadence: float,
        seconds_per_item: float = 1.0
    ) -> None:
        """
        Print how a batch would be split into chunks and roughly how long it takes.

        Args:
            processor: Batch processor that would run the batch
            kind: 'convert', 'revert' or 'sanitize'
            cadence: Seconds between chunks
            seconds_per_item: Assumed processing time per item
        """
        total = processor.total_for(kind)
        chunks = math.ceil(total / processor.batch_size) if total else 0
        estimate = total * seconds_per_item + max(0, chunks - 1) * cadence

        self._print("=" * 60)
        self._print(f"ACTION PLAN: {kind.upper()}")
        self._print("=" * 60)
        self._print(f"  Items:        {total:,}")
        self._print(f"  Batch size:   {processor.batch_size}")
        self._print(f"  Chunks:       {chunks:,}")
        self._print(f"  Cadence:      {cadence}s between chunks")
        self._print(f"  Estimate:     {self._format_duration(estimate)} (at {seconds_per_item}s per item)")
        self._print()
