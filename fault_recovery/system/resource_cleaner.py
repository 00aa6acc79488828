"""
Last-resort resource cleanup.

This module provides the CleanupAction run by the dispatcher when recovery
fails completely, plus the lighter memory reclamation step used by memory
recovery.
"""

import gc
import logging
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from fault_recovery.models import ErrorKind
from .operations import SystemOperations


@dataclass
class CleanupStats:
    """Resource cleanup statistics."""
    runs: int = 0
    reclaims: int = 0
    descriptors_closed: int = 0
    ipc_segments_released: int = 0
    artifacts_removed: int = 0
    failed_callbacks: int = 0
    last_cleanup: Optional[datetime] = None


class CleanupAction:
    """
    Reclaims process resources after a failed recovery.

    Every step skips resources that are already gone, so running the
    action repeatedly is safe. A lock serializes concurrent runs because
    closing descriptors is destructive.
    """

    def __init__(self,
                 operations: Optional[SystemOperations] = None,
                 recorder=None,
                 temp_prefix: str = "fault_recovery_",
                 temp_dir: Optional[str] = None,
                 max_descriptor: int = 1024):
        """
        Initialize cleanup action.

        Args:
            operations: System operations capability (destructive steps disabled by default)
            recorder: Event recorder notified after each run
            temp_prefix: Filename prefix reserved for this package's temp artifacts
            temp_dir: Directory holding temp artifacts (system temp dir if None)
            max_descriptor: Upper bound (exclusive) for descriptor cleanup
        """
        self.logger = logging.getLogger(__name__)
        self.operations = operations or SystemOperations()
        self.recorder = recorder
        self.temp_prefix = temp_prefix
        self.temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())
        self.max_descriptor = max_descriptor

        self.stats = CleanupStats()
        self._lock = threading.Lock()
        self._release_callbacks: List[Callable[[], None]] = []

    def register_release_callback(self, callback: Callable[[], None]):
        """
        Register caller-owned resources to release under memory pressure.

        Args:
            callback: Function that frees the caller's resources
        """
        with self._lock:
            self._release_callbacks.append(callback)

    def remove_release_callback(self, callback: Callable[[], None]):
        """Remove a release callback."""
        with self._lock:
            if callback in self._release_callbacks:
                self._release_callbacks.remove(callback)

    def run(self):
        """Close descriptors, release IPC segments, remove temp artifacts and record the event."""
        with self._lock:
            self.logger.info("Cleaning up system resources...")

            closed = self.operations.close_descriptors(3, self.max_descriptor)
            released = self.operations.release_ipc_segments()
            removed = self._remove_temp_artifacts()

            self.stats.runs += 1
            self.stats.descriptors_closed += closed
            self.stats.ipc_segments_released += released
            self.stats.artifacts_removed += removed
            self.stats.last_cleanup = datetime.now()

        if self.recorder is not None:
            self.recorder.record(ErrorKind.UNKNOWN, "System resources cleanup performed", 0)

    def reclaim_memory(self) -> int:
        """
        Release caller resources, collect garbage and remove temp artifacts.

        Returns:
            Number of unreachable objects found by the garbage collector
        """
        with self._lock:
            for callback in list(self._release_callbacks):
                try:
                    callback()
                except Exception as e:
                    self.stats.failed_callbacks += 1
                    self.logger.error(f"Error in release callback: {e}")

            collected = gc.collect()
            self.stats.artifacts_removed += self._remove_temp_artifacts()
            self.stats.reclaims += 1

        self.logger.info(f"Memory reclamation collected {collected} objects")
        return collected

    def get_stats(self) -> CleanupStats:
        """Get a copy of the cleanup statistics."""
        with self._lock:
            return CleanupStats(**vars(self.stats))

    def _remove_temp_artifacts(self) -> int:
        """Delete files in the temp directory carrying the reserved prefix."""
        removed = 0
        try:
            candidates = list(self.temp_dir.glob(f"{self.temp_prefix}*"))
        except OSError as e:
            self.logger.warning(f"Cannot list temp directory {self.temp_dir}: {e}")
            return 0

        for path in candidates:
            if path.is_dir() and not path.is_symlink():
                continue
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                self.logger.warning(f"Failed to remove temp artifact {path}: {e}")

        if removed:
            self.logger.info(f"Removed {removed} temporary artifacts")
        return removed
