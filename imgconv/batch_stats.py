"""
BatchStats - Statistics for a batch run.
"""

import time
from dataclasses import dataclass, field
from typing import List


@dataclass
class BatchStats:
    """
    Statistics for a batch run.

    Attributes:
        kind: Batch kind ('convert', 'revert' or 'sanitize')
        total_to_process: Items matching the kind when the run started
        processed: Items that succeeded
        attempted: Items handed to the processor (batch sizes summed)
        errors: Items that failed
        chunks: Chunks requested
        bytes_saved: Bytes saved by conversions
        start_time: Start timestamp
        error_details: List of error messages
        failed: True if the run stopped on a store failure
    """
    kind: str = ''
    total_to_process: int = 0
    processed: int = 0
    attempted: int = 0
    errors: int = 0
    chunks: int = 0
    bytes_saved: int = 0
    start_time: float = field(default_factory=time.time)
    error_details: List[str] = field(default_factory=list)
    failed: bool = False

    def record_chunk(self, response: dict) -> None:
        """Fold one chunk response into the totals."""
        self.chunks += 1
        self.processed += response.get('processed', 0)
        self.attempted += response.get('batch_size', 0)
        self.bytes_saved += response.get('bytes_saved', 0)
        chunk_errors = response.get('errors') or []
        self.errors += len(chunk_errors)
        self.error_details.extend(chunk_errors)
        if response.get('failed'):
            self.failed = True
            self.error_details.append(response.get('message', 'Batch failed'))

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed time in seconds."""
        return time.time() - self.start_time

    @property
    def rate_per_second(self) -> float:
        """Processing rate in items per second."""
        if self.elapsed_seconds > 0:
            return self.attempted / self.elapsed_seconds
        return 0.0

    @property
    def rate_per_minute(self) -> float:
        """Processing rate in items per minute."""
        return self.rate_per_second * 60

    @property
    def remaining_count(self) -> int:
        """Remaining to process."""
        return max(0, self.total_to_process - self.attempted)

    @property
    def estimated_remaining_seconds(self) -> float:
        """Estimated time remaining in seconds."""
        if self.rate_per_second > 0:
            return self.remaining_count / self.rate_per_second
        return 0.0

    @property
    def percent_complete(self) -> float:
        if self.total_to_process <= 0:
            return 100.0
        return min(100.0, self.attempted / self.total_to_process * 100)
