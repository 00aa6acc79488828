"""
Process memory monitoring against total system memory.

The monitor is the safety gate every recovery strategy consults: a process
whose peak resident memory is at or above the threshold fraction of system
memory is considered unsafe to continue.
"""

import logging
import os
import sys

import psutil

from fault_recovery.error_handling.exceptions import ProbeError
from fault_recovery.models import ResourceSnapshot

try:
    import resource
except ImportError:  # Windows
    resource = None


class ResourceMonitor:
    """
    Reports process memory usage as a fraction of system memory.

    Snapshots are taken on every call; nothing is cached because system
    state changes between probes.
    """

    DEFAULT_TOTAL_MEMORY = 8 * 1024 * 1024 * 1024  # 8 GiB
    DEFAULT_THRESHOLD = 0.9

    def __init__(self, threshold: float = DEFAULT_THRESHOLD):
        """
        Initialize resource monitor.

        Args:
            threshold: Usage fraction at or above which the process is unsafe
        """
        if not (0.0 < threshold <= 1.0):
            raise ValueError("Threshold must be between 0 and 1")

        self.logger = logging.getLogger(__name__)
        self.threshold = threshold

    def snapshot(self) -> ResourceSnapshot:
        """Take a fresh resource snapshot."""
        return ResourceSnapshot(
            process_resident_memory=self._get_peak_resident_memory(),
            total_system_memory=self._get_total_system_memory()
        )

    def current_usage_fraction(self) -> float:
        """
        Get peak resident memory divided by total system memory.

        Raises:
            ProbeError: Process memory usage could not be read
        """
        return self.snapshot().usage_fraction

    def is_within_safe_threshold(self) -> bool:
        """Check whether usage is below the threshold; unreadable usage is unsafe."""
        try:
            usage = self.current_usage_fraction()
        except ProbeError as e:
            self.logger.warning(f"Resource verification failed: {e}")
            return False

        if usage >= self.threshold:
            self.logger.warning(f"Memory usage {usage:.1%} exceeds safe threshold {self.threshold:.0%}")
            return False

        self.logger.debug(f"Memory usage {usage:.1%} within safe threshold")
        return True

    def _get_peak_resident_memory(self) -> int:
        """Get peak resident memory of this process in bytes."""
        if resource is not None:
            try:
                max_rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
            except (OSError, ValueError) as e:
                raise ProbeError("Could not read process resource usage", e)

            # ru_maxrss is bytes on macOS, kilobytes elsewhere
            if sys.platform == 'darwin':
                return int(max_rss)
            return int(max_rss) * 1024

        try:
            memory_info = psutil.Process(os.getpid()).memory_info()
        except psutil.Error as e:
            raise ProbeError("Could not read process memory info", e)
        return int(getattr(memory_info, 'peak_wset', memory_info.rss))

    def _get_total_system_memory(self) -> int:
        """Get total system memory in bytes, assuming 8 GiB if unknown."""
        try:
            total = psutil.virtual_memory().total
        except Exception as e:
            self.logger.debug(f"Could not determine system memory, assuming 8 GiB: {e}")
            return self.DEFAULT_TOTAL_MEMORY

        return total if total else self.DEFAULT_TOTAL_MEMORY
