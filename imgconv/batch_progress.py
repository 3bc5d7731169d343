"""
BatchProgress - Tracks and displays batch progress.
"""

import logging
from typing import Optional

from .batch_stats import BatchStats


DONE_LABELS = {'convert': 'converted', 'revert': 'reverted', 'sanitize': 'sanitized'}


class BatchProgress:
    """
    Tracks and displays batch progress with optional per-chunk output.
    """

    def __init__(
        self,
        show_chunks: bool = False,
        log_interval: int = 100,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize progress tracker.

        Args:
            show_chunks: If True, print each chunk and its errors
            log_interval: Log summary progress every N items (when not show_chunks)
            logger: Optional logger instance
        """
        self.show_chunks = show_chunks
        self.log_interval = log_interval
        self.logger = logger or logging.getLogger(__name__)
        self.last_logged = 0

    def on_chunk_processed(self, response: dict, stats: BatchStats) -> None:
        """
        Called after each chunk.

        Args:
            response: Chunk response from BatchProcessor.handle_request
            stats: Running statistics
        """
        if not self.show_chunks:
            return
        if response.get('failed'):
            print(f"  [FAILED] {response.get('message', '')}")
            return
        print(
            f"  [CHUNK {stats.chunks}] {response.get('processed', 0)}/"
            f"{response.get('batch_size', 0)} ok "
            f"({stats.attempted}/{stats.total_to_process})"
        )
        for error in response.get('errors') or []:
            print(f"    [ERROR] {error}")

    def on_progress_update(self, stats: BatchStats) -> None:
        """
        Called periodically to report overall progress.

        Args:
            stats: Current batch statistics
        """
        if self.show_chunks or stats.attempted - self.last_logged < self.log_interval:
            return
        self.last_logged = stats.attempted
        eta_minutes = stats.estimated_remaining_seconds / 60
        self.logger.info(
            f"Progress: {stats.processed} {DONE_LABELS.get(stats.kind, 'done')}, {stats.errors} errors "
            f"({stats.percent_complete:.0f}%, {stats.rate_per_minute:.1f}/min, "
            f"~{eta_minutes:.0f}m remaining, {stats.remaining_count} left)"
        )

    def __call__(self, stats: BatchStats) -> None:
        """Allow use as callback for stats updates."""
        self.on_progress_update(stats)
