"""
AttachmentConverter - Converts, reverts and regenerates one attachment.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from .config import ConverterConfig
from .conversion_record import ConversionRecord
from .converter import GuardedConverter
from .engine_registry import EngineRegistry
from .formats import Format
from .outcome import ConversionRequest, FailureReason
from .size_profile import SizeProfile
from .attachment_store import AttachmentStore
from .thumbnail_generator import DerivativeSet, ThumbnailGenerator


RECORD_META_KEY = '_imgconv_conversion'
CONVERTING_META_KEY = '_imgconv_converting'
ERRORS_META_KEY = '_imgconv_errors'

MAX_LOGGED_ERRORS = 20


@dataclass
class AttachmentResult:
    """
    Result of an attachment level operation.

    Attributes:
        attachment_id: Attachment the operation ran on
        ok: Whether the operation succeeded
        reason: Failure reason (None on success)
        message: Human readable detail
        record: Conversion record written, for conversions
        errors: Non-fatal problems (e.g. sizes that failed)
    """
    attachment_id: int
    ok: bool
    reason: Optional[FailureReason] = None
    message: str = ''
    record: Optional[ConversionRecord] = None
    errors: Optional[List[str]] = None

    def __str__(self) -> str:
        if self.ok:
            return f"#{self.attachment_id}: {self.message or 'ok'}"
        return f"#{self.attachment_id}: {self.message}"


class AttachmentConverter:
    """
    Attachment level conversion on top of the guarded converter.

    The full-size file must convert; derivative sizes are best-effort.
    """

    def __init__(
        self,
        store: AttachmentStore,
        registry: EngineRegistry,
        converter: Optional[GuardedConverter] = None,
        config: Optional[ConverterConfig] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.store = store
        self.registry = registry
        self.config = config or (converter.config if converter else ConverterConfig())
        self.logger = logger or logging.getLogger(__name__)
        self.converter = converter or GuardedConverter(self.config, logger=self.logger)

    def get_conversion_record(self, attachment_id: int) -> Optional[ConversionRecord]:
        data = self.store.get_meta(attachment_id, RECORD_META_KEY)
        if not data:
            return None
        return ConversionRecord.from_dict(data)

    def is_converted(self, attachment_id: int) -> bool:
        record = self.get_conversion_record(attachment_id)
        return record is not None and record.converted

    def get_errors(self, attachment_id: int) -> List[dict]:
        return self.store.get_meta(attachment_id, ERRORS_META_KEY, []) or []

    def _fail(self, attachment_id: int, reason: FailureReason, message: str) -> AttachmentResult:
        self.log_error(attachment_id, message)
        return AttachmentResult(attachment_id, False, reason, message)

    def log_error(self, attachment_id: int, message: str) -> None:
        """Log an error and append it to the attachment's persistent error log."""
        self.logger.error(f"Attachment #{attachment_id}: {message}")
        if not self.store.exists(attachment_id):
            return
        errors = self.get_errors(attachment_id)
        errors.append({'time': datetime.now().isoformat(), 'message': message})
        self.store.set_meta(attachment_id, ERRORS_META_KEY, errors[-MAX_LOGGED_ERRORS:])

    def convert_attachment(self, attachment_id: int, fmt=None) -> AttachmentResult:
        """
        Convert an attachment's full-size file and its sizes.

        Args:
            attachment_id: Attachment to convert
            fmt: Target format (default: configured format)

        Returns:
            AttachmentResult with the written ConversionRecord on success
        """
        try:
            target = Format.parse(fmt or self.config.format)
        except ValueError as e:
            return self._fail(attachment_id, FailureReason.INVALID_FORMAT, str(e))

        if not self.store.exists(attachment_id):
            return self._fail(attachment_id, FailureReason.SOURCE_UNREADABLE, "Attachment not found.")

        previous = self.get_conversion_record(attachment_id)
        if previous and previous.originals_deleted:
            return self._fail(
                attachment_id, FailureReason.ORIGINALS_DELETED,
                "Original files were deleted; the image cannot be converted again."
            )

        source_path = self.store.get_file_path(attachment_id)
        if not os.path.isfile(source_path):
            return self._fail(
                attachment_id, FailureReason.SOURCE_UNREADABLE,
                f"File not found: {source_path}"
            )

        mime_type = self.store.get_mime_type(attachment_id)
        if not self.registry.is_mime_type_supported(mime_type):
            return self._fail(
                attachment_id, FailureReason.UNSUPPORTED_FORMAT,
                f"Unsupported image type: {mime_type}"
            )

        dest_path = self.converted_path(source_path, target)
        if os.path.abspath(dest_path) == os.path.abspath(source_path):
            return self._fail(
                attachment_id, FailureReason.INVALID_FORMAT,
                f"Image is already {target.label}."
            )

        engine = self.registry.engine_from_preference(self.config.engine, target)
        if engine is None:
            return self._fail(
                attachment_id, FailureReason.NO_ENGINE_AVAILABLE,
                f"No available engine supports {target.label} format."
            )

        self.store.set_meta(attachment_id, CONVERTING_META_KEY, datetime.now().isoformat())
        try:
            return self._convert(attachment_id, source_path, dest_path, target, engine)
        finally:
            self.store.delete_meta(attachment_id, CONVERTING_META_KEY)

    def _convert(self, attachment_id, source_path, dest_path, target, engine) -> AttachmentResult:
        outcome = self.converter.convert(
            ConversionRequest(source_path, dest_path, target, self.config.quality), engine
        )
        if not outcome.ok:
            return self._fail(attachment_id, outcome.reason, f"Conversion failed: {outcome.message}")

        original_total = os.path.getsize(source_path)
        converted_total = outcome.bytes_written
        converted_files = [self.store.relative_path(dest_path)]
        converted_sizes = []
        converted_sources = {source_path: dest_path}
        size_errors = []

        metadata = self.store.get_metadata(attachment_id)
        for size_name, size_path in self._size_paths(source_path, metadata):
            if not os.path.isfile(size_path):
                continue
            size_dest = self.converted_path(size_path, target)
            if os.path.abspath(size_dest) == os.path.abspath(size_path):
                continue
            size_outcome = self.converter.convert(
                ConversionRequest(size_path, size_dest, target, self.config.quality), engine
            )
            if size_outcome.ok:
                converted_sizes.append(size_name)
                converted_sources[size_path] = size_dest
                converted_files.append(self.store.relative_path(size_dest))
                original_total += os.path.getsize(size_path)
                converted_total += size_outcome.bytes_written
            else:
                size_errors.append(f"Size '{size_name}': {size_outcome}")

        previous = self.get_conversion_record(attachment_id)
        if previous:
            stale = set(previous.converted_files) - set(converted_files)
            self._remove_files(self.store.resolve_path(f) for f in stale)

        record = ConversionRecord.create(
            format=target.value,
            engine=outcome.engine,
            original_file=self.store.relative_path(source_path),
            original_total_bytes=original_total,
            converted_total_bytes=converted_total,
            converted_sizes=converted_sizes,
            converted_files=converted_files,
        )
        if not self.config.keep_originals:
            self._delete_originals(attachment_id, target, converted_sources)
            record.originals_deleted = True
        self.store.set_meta(attachment_id, RECORD_META_KEY, record.to_dict())

        for message in size_errors:
            self.log_error(attachment_id, message)

        self.logger.info(f"Converted #{attachment_id}: {record.format_status()}")
        return AttachmentResult(
            attachment_id, True,
            message=record.format_status(),
            record=record,
            errors=size_errors or None,
        )

    def revert_attachment(self, attachment_id: int) -> AttachmentResult:
        """Delete an attachment's converted files and its conversion record."""
        if not self.store.exists(attachment_id):
            return self._fail(attachment_id, FailureReason.SOURCE_UNREADABLE, "Attachment not found.")

        record = self.get_conversion_record(attachment_id)
        if record is None or not record.converted:
            return self._fail(attachment_id, FailureReason.NOT_CONVERTED, "Image is not converted.")
        if record.originals_deleted:
            return self._fail(
                attachment_id, FailureReason.ORIGINALS_DELETED,
                "Original files were deleted; the image cannot be reverted."
            )

        if record.converted_files:
            paths = [self.store.resolve_path(f) for f in record.converted_files]
        else:
            paths = self._convention_paths(attachment_id, [Format.parse(record.format)])

        removed = self._remove_files(paths)
        self.store.delete_meta(attachment_id, RECORD_META_KEY)
        self.store.delete_meta(attachment_id, ERRORS_META_KEY)

        self.logger.info(f"Reverted #{attachment_id}: removed {removed} files")
        return AttachmentResult(attachment_id, True, message=f"Removed {removed} converted files.")

    def delete_converted_files(self, attachment_id: int) -> int:
        """
        Remove every WebP and AVIF variant of an attachment.

        Returns:
            Number of files removed
        """
        if not self.store.exists(attachment_id):
            return 0
        paths = set(self._convention_paths(attachment_id, list(Format)))
        record = self.get_conversion_record(attachment_id)
        if record:
            paths.update(self.store.resolve_path(f) for f in record.converted_files)
        return self._remove_files(sorted(paths))

    def remove_attachment(self, attachment_id: int) -> AttachmentResult:
        """Delete an attachment's converted files and drop it from the store."""
        if not self.store.exists(attachment_id):
            return self._fail(attachment_id, FailureReason.SOURCE_UNREADABLE, "Attachment not found.")

        removed = self.delete_converted_files(attachment_id)
        self.store.remove_attachment(attachment_id)

        self.logger.info(f"Removed #{attachment_id} and {removed} converted files")
        return AttachmentResult(attachment_id, True, message=f"Removed {removed} converted files.")

    def regenerate_sizes(
        self,
        attachment_id: int,
        profiles: Optional[Iterable[SizeProfile]] = None,
        reconvert: bool = True
    ) -> DerivativeSet:
        """
        Regenerate derivative sizes and merge them into the metadata.

        With the configured profiles (profiles is None), sizes of
        profiles no longer configured are dropped from the metadata.
        When the attachment was converted and reconvert is set, it is
        converted again so the new sizes get converted copies too.
        """
        source_path = self.store.get_file_path(attachment_id)
        metadata = self.store.get_metadata(attachment_id)

        generator = ThumbnailGenerator(
            self.registry.geometry_engine(),
            quality=self.config.thumbnail_quality,
            logger=self.logger,
        )
        result = generator.generate(
            source_path,
            list(profiles) if profiles is not None else self.config.size_profiles,
            metadata=metadata,
        )
        if result.skipped:
            return result

        for info in result.sizes.values():
            info['path'] = self.store.relative_path(info['path'])
        self.store.set_metadata(attachment_id, result.to_metadata(metadata, prune=profiles is None))

        for name, message in result.errors.items():
            self.log_error(attachment_id, f"Size '{name}': {message}")

        record = self.get_conversion_record(attachment_id)
        if reconvert and record and record.converted and not record.originals_deleted:
            self.convert_attachment(attachment_id, record.format)

        return result

    @staticmethod
    def converted_path(path: str, fmt: Format) -> str:
        """Path of the converted copy of path: same directory, same stem."""
        return f"{os.path.splitext(path)[0]}.{fmt.extension}"

    def _size_paths(self, source_path: str, metadata: dict):
        """Yield (size name, absolute path) for each size in metadata."""
        directory = os.path.dirname(source_path)
        for size_name, info in (metadata.get('sizes') or {}).items():
            if not isinstance(info, dict):
                continue
            if info.get('path'):
                yield size_name, self.store.resolve_path(info['path'])
            elif info.get('file'):
                yield size_name, os.path.join(directory, info['file'])

    def _convention_paths(self, attachment_id: int, formats: List[Format]) -> List[str]:
        source_path = self.store.get_file_path(attachment_id)
        metadata = self.store.get_metadata(attachment_id)
        sources = [source_path] + [p for _, p in self._size_paths(source_path, metadata)]
        paths = []
        for fmt in formats:
            for path in sources:
                candidate = self.converted_path(path, fmt)
                if os.path.abspath(candidate) != os.path.abspath(path):
                    paths.append(candidate)
        return paths

    def _delete_originals(self, attachment_id: int, target: Format, converted_sources: dict) -> None:
        """
        Remove the sources that converted and point the attachment at the copies.

        Args:
            attachment_id: Attachment that was converted
            target: Format of the converted copies
            converted_sources: Source path -> converted path, full-size file first
        """
        source_path, dest_path = next(iter(converted_sources.items()))
        self._remove_files(list(converted_sources))

        metadata = self.store.get_metadata(attachment_id)
        for size_name, size_path in list(self._size_paths(source_path, metadata)):
            size_dest = converted_sources.get(size_path)
            if size_dest is None:
                continue
            info = metadata['sizes'][size_name]
            info['file'] = os.path.basename(size_dest)
            info['mime-type'] = target.mime_type
            if info.get('path'):
                info['path'] = self.store.relative_path(size_dest)
        if metadata.get('file'):
            metadata['file'] = os.path.join(os.path.dirname(metadata['file']), os.path.basename(dest_path))
        self.store.set_metadata(attachment_id, metadata)
        self.store.set_file_path(attachment_id, dest_path, target.mime_type)

        self.logger.info(f"Deleted {len(converted_sources)} original files of #{attachment_id}")

    def _remove_files(self, paths) -> int:
        removed = 0
        for path in paths:
            try:
                if os.path.isfile(path):
                    os.remove(path)
                    removed += 1
            except OSError as e:
                self.logger.warning(f"Could not remove {path}: {e}")
        return removed
