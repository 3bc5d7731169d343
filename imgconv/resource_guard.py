"""
MemoryGauge - Measures free memory headroom for the current process.
"""

import os
import resource
from typing import Optional


class MemoryGauge:
    """
    Reports how far the process is from its memory ceiling.

    The ceiling is an explicit limit when given, otherwise the soft
    address space rlimit. With neither, headroom is unlimited. An
    explicit limit is compared with resident memory; the address space
    rlimit is compared with the total program size, which is what the
    kernel counts against it.
    """

    STATM_PATH = '/proc/self/statm'

    # Fields of /proc/self/statm, in pages
    STATM_SIZE = 0
    STATM_RESIDENT = 1

    def __init__(self, limit_bytes: Optional[int] = None):
        self.limit_bytes = limit_bytes

    def ceiling(self) -> Optional[int]:
        """Memory ceiling in bytes, or None when unlimited."""
        if self.limit_bytes:
            return self.limit_bytes
        soft, _ = resource.getrlimit(resource.RLIMIT_AS)
        if soft == resource.RLIM_INFINITY or soft <= 0:
            return None
        return soft

    def usage(self, virtual: bool = False) -> int:
        """
        Current memory use in bytes.

        Args:
            virtual: Report the total program size instead of the resident set size
        """
        field = self.STATM_SIZE if virtual else self.STATM_RESIDENT
        try:
            with open(self.STATM_PATH) as f:
                pages = int(f.read().split()[field])
            return pages * os.sysconf('SC_PAGE_SIZE')
        except (OSError, ValueError, IndexError):
            # Peak RSS; kilobytes on Linux
            return resource.getrusage(resource.RUSAGE_SELF).ru_maxrss * 1024

    def headroom(self) -> Optional[int]:
        """Bytes left before the ceiling, or None when unlimited."""
        ceiling = self.ceiling()
        if ceiling is None:
            return None
        return ceiling - self.usage(virtual=not self.limit_bytes)
