"""
BatchProcessor - Chunked convert/revert/sanitize over an attachment store.
"""

import importlib
import logging
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from itertools import islice
from typing import Callable, Iterator, List, Optional

from .attachment_converter import AttachmentConverter, AttachmentResult
from .attachment_store import AttachmentStore
from .batch_progress import BatchProgress
from .batch_stats import BatchStats
from .engine_registry import EngineRegistry
from .errors import AttachmentStoreError, SanitizeError
from .formats import SVG_MIME
from .outcome import FailureReason


# Takes raw SVG bytes, returns cleaned bytes or raises SanitizeError.
SvgSanitizer = Callable[[bytes], bytes]


class BatchKind(str, Enum):
    CONVERT = 'convert'
    REVERT = 'revert'
    SANITIZE = 'sanitize'


class CursorState(str, Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    COMPLETE = 'complete'
    FAILED = 'failed'


@dataclass
class BatchCursor:
    """
    Caller-held position of a batch between chunk requests.

    Attributes:
        kind: What the batch does
        total: Items matching the kind when the batch started
        offset: Offset to send with the next request
        processed: Sum of batch sizes seen so far
        state: Where the batch is in its lifecycle
        message: Failure message when state is FAILED
    """
    kind: BatchKind
    total: int
    offset: int = 0
    processed: int = 0
    state: CursorState = CursorState.IDLE
    message: str = ''

    def advance(self, response: dict) -> None:
        """Apply one chunk response."""
        if response.get('failed'):
            self.state = CursorState.FAILED
            self.message = response.get('message', '')
            return

        batch_size = response.get('batch_size', 0)
        self.processed += batch_size
        self.offset = response.get('next_offset', self.processed)

        if self.processed >= self.total or batch_size == 0:
            self.state = CursorState.COMPLETE
        else:
            self.state = CursorState.RUNNING

    @property
    def is_complete(self) -> bool:
        return self.state == CursorState.COMPLETE

    @property
    def is_finished(self) -> bool:
        return self.state in (CursorState.COMPLETE, CursorState.FAILED)

    def to_dict(self) -> dict:
        return {
            'kind': self.kind.value,
            'total': self.total,
            'offset': self.offset,
            'processed': self.processed,
            'state': self.state.value,
        }


@dataclass
class ChunkResult:
    count_done: int
    count_total: int
    errors: List[str] = field(default_factory=list)
    bytes_saved: int = 0


def load_sanitizer(target: str) -> SvgSanitizer:
    """
    Import a sanitizer given as 'package.module:callable'.

    Raises:
        ValueError: If the target is malformed or not callable
        ImportError: If the module cannot be imported
    """
    module_name, _, attr = target.partition(':')
    if not module_name or not attr:
        raise ValueError(f"Sanitizer must be 'module:callable', got {target!r}")
    sanitizer = getattr(importlib.import_module(module_name), attr, None)
    if not callable(sanitizer):
        raise ValueError(f"{target} is not callable")
    return sanitizer


class BatchProcessor:
    """
    Processes the attachment store in small chunks.

    Holds no state between requests: the caller keeps a BatchCursor and
    sends its offset with every request. Items fail independently; only
    a failure of the store itself stops a chunk.
    """

    def __init__(
        self,
        store: AttachmentStore,
        attachment_converter: AttachmentConverter,
        registry: Optional[EngineRegistry] = None,
        sanitizer: Optional[SvgSanitizer] = None,
        batch_size: int = 15,
        cadence: float = 0.0,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize batch processor.

        Args:
            store: Attachment store to walk
            attachment_converter: Performs per-item convert/revert
            registry: Engine registry (default: the converter's)
            sanitizer: SVG sanitizer used by the sanitize kind
            batch_size: Items per chunk
            cadence: Seconds to sleep between chunks in run()
            logger: Optional logger instance
        """
        self.store = store
        self.converter = attachment_converter
        self.registry = registry or attachment_converter.registry
        self.sanitizer = sanitizer
        self.batch_size = max(1, int(batch_size))
        self.cadence = cadence
        self.logger = logger or logging.getLogger(__name__)
        self._stop_requested = False

    def stop(self) -> None:
        """Request run() to stop after the current chunk."""
        self._stop_requested = True

    def _raster_mime_types(self):
        return self.registry.union_of_input_formats() - {SVG_MIME}

    def _matching_ids(self, kind: BatchKind) -> Iterator[int]:
        if kind is BatchKind.SANITIZE:
            for attachment_id in self.store.iter_ids():
                if self.store.get_mime_type(attachment_id) == SVG_MIME:
                    yield attachment_id
            return

        mime_types = self._raster_mime_types()
        want_converted = kind is BatchKind.REVERT
        for attachment_id in self.store.iter_ids():
            if self.store.get_mime_type(attachment_id) not in mime_types:
                continue
            if self.converter.is_converted(attachment_id) == want_converted:
                yield attachment_id

    def fetch_chunk(self, kind, offset: int = 0, limit: Optional[int] = None) -> List[int]:
        """
        Ids of the items at [offset, offset + limit) matching kind, ascending.

        Repeated calls without intervening changes return the same ids.
        """
        kind = BatchKind(kind)
        limit = self.batch_size if limit is None else limit
        offset = max(0, int(offset))
        return list(islice(self._matching_ids(kind), offset, offset + limit))

    def process_chunk(self, kind, ids: List[int]) -> ChunkResult:
        """
        Run kind on each id, isolating per-item failures.

        Raises:
            AttachmentStoreError: If the store fails
        """
        kind = BatchKind(kind)
        result = ChunkResult(count_done=0, count_total=len(ids))

        for attachment_id in ids:
            try:
                item = self._process_item(kind, attachment_id)
            except AttachmentStoreError:
                raise
            except Exception as e:
                self.logger.exception(f"Unexpected error on attachment #{attachment_id}: {e}")
                item = AttachmentResult(attachment_id, False, FailureReason.ENCODE_FAILED, str(e))

            if item.ok:
                result.count_done += 1
                if item.record:
                    result.bytes_saved += item.record.bytes_saved
            else:
                result.errors.append(str(item))

        return result

    def _process_item(self, kind: BatchKind, attachment_id: int) -> AttachmentResult:
        if kind is BatchKind.CONVERT:
            return self.converter.convert_attachment(attachment_id)
        if kind is BatchKind.REVERT:
            return self.converter.revert_attachment(attachment_id)
        return self.sanitize_attachment(attachment_id)

    def sanitize_attachment(self, attachment_id: int) -> AttachmentResult:
        """Pass an SVG through the sanitizer and rewrite it if it changed."""
        if self.sanitizer is None:
            return AttachmentResult(attachment_id, False, message="No SVG sanitizer configured.")

        path = self.store.get_file_path(attachment_id)
        try:
            with open(path, 'rb') as f:
                original = f.read()
        except OSError as e:
            return AttachmentResult(
                attachment_id, False, FailureReason.SOURCE_UNREADABLE, f"Cannot read {path}: {e}"
            )

        try:
            cleaned = self.sanitizer(original)
        except SanitizeError as e:
            self.converter.log_error(attachment_id, f"Sanitize failed: {e}")
            return AttachmentResult(attachment_id, False, message=f"Sanitize failed: {e}")

        if cleaned == original:
            return AttachmentResult(attachment_id, True, message="Already clean.")

        tmp_path = os.path.join(os.path.dirname(path), f".{os.path.basename(path)}.part")
        try:
            with open(tmp_path, 'wb') as f:
                f.write(cleaned)
            os.replace(tmp_path, path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            return AttachmentResult(attachment_id, False, message=f"Cannot write {path}: {e}")

        return AttachmentResult(attachment_id, True, message="Sanitized.")

    def image_stats(self) -> dict:
        """Counts used to size the batches: total, converted, remaining, svg_total."""
        mime_types = self._raster_mime_types()
        total = converted = svg_total = 0
        for attachment_id in self.store.iter_ids():
            mime_type = self.store.get_mime_type(attachment_id)
            if mime_type == SVG_MIME:
                svg_total += 1
            elif mime_type in mime_types:
                total += 1
                if self.converter.is_converted(attachment_id):
                    converted += 1
        return {
            'total': total,
            'converted': converted,
            'remaining': total - converted,
            'svg_total': svg_total,
        }

    def total_for(self, kind) -> int:
        kind = BatchKind(kind)
        stats = self.image_stats()
        if kind is BatchKind.CONVERT:
            return stats['remaining']
        if kind is BatchKind.REVERT:
            return stats['converted']
        return stats['svg_total']

    def start(self, kind) -> BatchCursor:
        """Create a cursor for a new batch of kind."""
        kind = BatchKind(kind)
        return BatchCursor(kind=kind, total=self.total_for(kind))

    def handle_request(self, request: dict) -> dict:
        """
        Process one chunk.

        Args:
            request: {'action': 'convert'|'revert'|'sanitize', 'offset': int}

        Returns:
            {'processed', 'batch_size', 'next_offset'} plus 'errors' when
            items failed, 'message' when nothing was left, and 'failed'
            with 'message' when the store failed.
        """
        try:
            offset = max(0, int(request.get('offset') or 0))
        except (TypeError, ValueError):
            offset = 0

        try:
            kind = BatchKind(request.get('action'))
        except ValueError:
            return self._failed(offset, f"Unknown action: {request.get('action')!r}")

        if kind is BatchKind.SANITIZE and self.sanitizer is None:
            return self._failed(offset, "No SVG sanitizer configured.")

        try:
            ids = self.fetch_chunk(kind, offset)
            if not ids:
                return {
                    'processed': 0,
                    'batch_size': 0,
                    'next_offset': offset,
                    'message': 'No more images to process.',
                }
            result = self.process_chunk(kind, ids)
            self.store.flush()
        except AttachmentStoreError as e:
            self.logger.error(f"Batch {kind.value} failed at offset {offset}: {e}")
            return self._failed(offset, str(e))

        if kind is BatchKind.SANITIZE:
            next_offset = offset + len(ids)
        else:
            # Items that succeeded no longer match the filter.
            next_offset = offset + (len(ids) - result.count_done)

        response = {
            'processed': result.count_done,
            'batch_size': len(ids),
            'next_offset': next_offset,
        }
        if result.bytes_saved:
            response['bytes_saved'] = result.bytes_saved
        if result.errors:
            response['errors'] = result.errors

        self.logger.info(
            f"Batch {kind.value} @{offset}: {result.count_done}/{len(ids)} ok"
            + (f", {len(result.errors)} errors" if result.errors else "")
        )
        return response

    @staticmethod
    def _failed(offset: int, message: str) -> dict:
        return {
            'failed': True,
            'message': message,
            'processed': 0,
            'batch_size': 0,
            'next_offset': offset,
        }

    def run(
        self,
        kind,
        progress: Optional[BatchProgress] = None,
        limit: Optional[int] = None
    ) -> BatchStats:
        """
        Drive a whole batch in-process, one chunk request at a time.

        Args:
            kind: Batch kind
            progress: Optional progress tracker
            limit: Stop once this many items were attempted (checked between chunks)

        Returns:
            BatchStats with results
        """
        kind = BatchKind(kind)

        if self._stop_requested:
            self.logger.info("Stop was requested before the batch started")
            return BatchStats(kind=kind.value)

        cursor = self.start(kind)
        stats = BatchStats(kind=kind.value, total_to_process=cursor.total)
        if limit:
            stats.total_to_process = min(cursor.total, limit)

        limit_str = f" (limited to {limit})" if limit else ""
        self.logger.info(f"Starting {kind.value}: {cursor.total} items{limit_str}")

        while not cursor.is_finished:
            if self._stop_requested:
                self.logger.info("Stop requested, halting batch")
                break

            response = self.handle_request({'action': kind.value, 'offset': cursor.offset})
            cursor.advance(response)
            stats.record_chunk(response)

            if progress:
                progress.on_chunk_processed(response, stats)
                progress.on_progress_update(stats)

            if limit and stats.attempted >= limit:
                self.logger.info(f"Limit of {limit} reached, stopping batch")
                break

            if self.cadence > 0 and not cursor.is_finished:
                time.sleep(self.cadence)

        self.logger.info(
            f"Batch {kind.value} {cursor.state.value}: {stats.processed} ok, "
            f"{stats.errors} errors ({stats.elapsed_seconds:.1f}s)"
        )
        return stats
