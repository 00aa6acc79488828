"""
Specific recovery strategies for each error kind.

This module provides one strategy per ErrorKind. Strategies that retry do so
through RetryManager.run_until; every strategy turns its failures into a
RecoveryOutcome at execute() so nothing is raised past it.
"""

import errno
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from fault_recovery.error_handling.exceptions import (
    ProbeError,
    RecoveryCancelled,
    RetryExhausted,
    UnexpectedCondition
)
from fault_recovery.error_handling.retry_manager import (
    CancellationToken,
    RetryManager,
    RetryPolicy
)
from fault_recovery.models import ErrorKind, RecoveryOutcome
from fault_recovery.system import (
    CleanupAction,
    DeviceProbe,
    FileProbe,
    ResourceMonitor,
    SystemOperations
)


@dataclass
class RecoveryContext:
    """Per-call inputs handed to a strategy."""
    target: Optional[str] = None
    token: CancellationToken = field(default_factory=CancellationToken)


class RecoveryStrategy(ABC):
    """Base class for recovery strategies."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self,
                 retry_manager: Optional[RetryManager] = None,
                 policy: Optional[RetryPolicy] = None,
                 recorder=None):
        self.logger = logging.getLogger(__name__)
        self.retry_manager = retry_manager or RetryManager()
        self.policy = policy or RetryPolicy()
        self.recorder = recorder

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def can_handle(self, kind: ErrorKind) -> bool:
        """Check if this strategy handles the given kind."""
        return kind == self.kind

    def execute(self, context: Optional[RecoveryContext] = None) -> RecoveryOutcome:
        """
        Run the strategy and classify its result.

        Returns:
            The strategy's outcome; FAILED for any error raised along the way
        """
        context = context or RecoveryContext()
        try:
            return self._recover(context)
        except UnexpectedCondition as e:
            self.logger.error(f"{self.name} aborted on unexpected condition: {e}")
        except RetryExhausted as e:
            self.logger.error(f"{self.name} failed to recover after {e.attempts} attempts")
        except RecoveryCancelled as e:
            self.logger.warning(f"{self.name} cancelled: {e}")
        except Exception as e:
            self.logger.error(f"Error in {self.name}: {e}")
        return RecoveryOutcome.FAILED

    @abstractmethod
    def _recover(self, context: RecoveryContext) -> RecoveryOutcome:
        pass

    def _record(self, message: str, code: int = 0):
        if self.recorder is not None:
            self.recorder.record(self.kind, message, code)


class FileAccessRecoveryStrategy(RecoveryStrategy):
    """Retries opening a file, accepting its `.backup` sibling as a fallback."""

    kind = ErrorKind.FILE_ACCESS

    def __init__(self,
                 default_target: str,
                 file_probe: Optional[FileProbe] = None,
                 **kwargs):
        super().__init__(**kwargs)
        self.default_target = default_target
        self.file_probe = file_probe or FileProbe()

    def _recover(self, context: RecoveryContext) -> RecoveryOutcome:
        target = context.target or self.default_target
        backup_path = f"{target}.backup"
        self.logger.info(f"Attempting to recover from file access error for {target}")

        def attempt(number: int) -> Optional[RecoveryOutcome]:
            if self.file_probe.can_read(target):
                self.logger.info(f"Successfully accessed file on attempt {number}")
                return RecoveryOutcome.SUCCESS
            if self.file_probe.can_read(backup_path):
                self.logger.info(f"Successfully accessed backup file {backup_path}")
                return RecoveryOutcome.PARTIAL
            return None

        return self.retry_manager.run_until(
            attempt, self.policy, f"file_access:{target}", context.token
        )


class MemoryRecoveryStrategy(RecoveryStrategy):
    """Reclaims memory once, then verifies resources with a trial allocation."""

    kind = ErrorKind.MEMORY
    TRIAL_ALLOCATION_SIZE = 1024

    def __init__(self,
                 cleanup: CleanupAction,
                 monitor: Optional[ResourceMonitor] = None,
                 **kwargs):
        super().__init__(**kwargs)
        self.cleanup = cleanup
        self.monitor = monitor or ResourceMonitor()

    def _recover(self, context: RecoveryContext) -> RecoveryOutcome:
        self.logger.info("Attempting to recover from memory error")
        self.cleanup.reclaim_memory()

        if not self.monitor.is_within_safe_threshold():
            self.logger.warning("System resources are still constrained")
            return RecoveryOutcome.FAILED

        if not self._trial_allocation():
            self.logger.warning("Memory allocation still failing")
            return RecoveryOutcome.FAILED

        self.logger.info("Memory recovery successful")
        return RecoveryOutcome.SUCCESS

    def _trial_allocation(self) -> bool:
        try:
            buffer = bytearray(self.TRIAL_ALLOCATION_SIZE)
        except MemoryError:
            return False
        del buffer
        return True


class NullReferenceRecoveryStrategy(RecoveryStrategy):
    """Verifies resources are still sound after a null reference fault."""

    kind = ErrorKind.NULL_REFERENCE

    def __init__(self, monitor: Optional[ResourceMonitor] = None, **kwargs):
        super().__init__(**kwargs)
        self.monitor = monitor or ResourceMonitor()

    def _recover(self, context: RecoveryContext) -> RecoveryOutcome:
        self.logger.info("Attempting to recover from null reference error")

        if not self.monitor.is_within_safe_threshold():
            self.logger.warning("System resources verification failed")
            return RecoveryOutcome.FAILED

        self._record("Recovered from null pointer error")
        return RecoveryOutcome.SUCCESS


class DeviceRecoveryStrategy(RecoveryStrategy):
    """
    Walks device candidates in priority order.

    Each candidate gets the full retry budget; the first one that is
    accessible or accepts a reset wins and no later candidate is probed.
    """

    kind = ErrorKind.DEVICE

    def __init__(self,
                 candidates: Sequence[str],
                 device_probe: Optional[DeviceProbe] = None,
                 **kwargs):
        super().__init__(**kwargs)
        if not candidates:
            raise ValueError("At least one device candidate is required")
        self.candidates: List[str] = list(candidates)
        self.device_probe = device_probe or DeviceProbe()

    def _recover(self, context: RecoveryContext) -> RecoveryOutcome:
        self.logger.info("Attempting to recover from device error")

        for path in self.candidates:
            if self._recover_candidate(path, context):
                return RecoveryOutcome.SUCCESS

        self._record("Failed to recover device after multiple attempts", errno.ENODEV)
        return RecoveryOutcome.FAILED

    def _recover_candidate(self, path: str, context: RecoveryContext) -> bool:
        def attempt(number: int) -> bool:
            self.logger.info(f"Attempting device reinitialization for {path} "
                             f"({number}/{self.policy.max_attempts})")
            if self.device_probe.is_accessible(path):
                self.logger.info(f"Device {path} is accessible")
                return True
            if self.device_probe.attempt_reset(path):
                self.logger.info(f"Device {path} reset successful")
                return True
            return False

        try:
            return self.retry_manager.run_until(
                attempt, self.policy, f"device:{path}", context.token
            )
        except RetryExhausted:
            self.logger.warning(f"Device {path} unavailable, trying next candidate")
            return False


class DeviceBusyRecoveryStrategy(RecoveryStrategy):
    """
    Waits for system load to drop, forcing the contended device free between attempts.

    Uses twice the base retry delay.
    """

    kind = ErrorKind.DEVICE_BUSY
    DELAY_FACTOR = 2.0

    def __init__(self,
                 operations: Optional[SystemOperations] = None,
                 monitor: Optional[ResourceMonitor] = None,
                 busy_device_path: Optional[str] = None,
                 load_threshold: float = 0.8,
                 **kwargs):
        super().__init__(**kwargs)
        self.operations = operations or SystemOperations()
        self.monitor = monitor or ResourceMonitor()
        self.busy_device_path = busy_device_path
        self.load_threshold = load_threshold

    def _recover(self, context: RecoveryContext) -> RecoveryOutcome:
        self.logger.info("Attempting to recover from device busy error")
        policy = self.policy.scaled(self.DELAY_FACTOR)

        def attempt(number: int) -> Optional[RecoveryOutcome]:
            self.logger.info(f"Waiting for device to become available ({number}/{policy.max_attempts})")
            if self._load_acceptable() and self.monitor.is_within_safe_threshold():
                self.logger.info("Device is now available")
                return RecoveryOutcome.SUCCESS

            target = context.target or self.busy_device_path
            if target:
                self.operations.terminate_holders(target)
            return None

        try:
            return self.retry_manager.run_until(attempt, policy, "device_busy", context.token)
        except RetryExhausted:
            self._record("Device remains busy after recovery attempts", errno.EBUSY)
            raise

    def _load_acceptable(self) -> bool:
        try:
            load = self.operations.load_average()
        except ProbeError as e:
            self.logger.warning(f"Load average unavailable: {e}")
            return False
        return load < self.load_threshold


class TextBusyRecoveryStrategy(RecoveryStrategy):
    """
    Waits for a busy executable file to become writable.

    Only ETXTBSY is worth retrying; any other errno aborts at once.
    """

    kind = ErrorKind.TEXT_BUSY

    def __init__(self,
                 default_target: str,
                 file_probe: Optional[FileProbe] = None,
                 **kwargs):
        super().__init__(**kwargs)
        self.default_target = default_target
        self.file_probe = file_probe or FileProbe()

    def _recover(self, context: RecoveryContext) -> RecoveryOutcome:
        target = context.target or self.default_target
        self.logger.info(f"Attempting to recover from text file busy error for {target}")

        def attempt(number: int) -> Optional[RecoveryOutcome]:
            self.logger.info(f"Checking file availability ({number}/{self.policy.max_attempts})")
            try:
                self.file_probe.open_read_write(target)
            except OSError as e:
                if e.errno == errno.ETXTBSY:
                    return None
                raise UnexpectedCondition(f"Unexpected error: {e.strerror or e}", e.errno or 0)

            self.logger.info("File is now available")
            return RecoveryOutcome.SUCCESS

        return self.retry_manager.run_until(
            attempt, self.policy, f"text_busy:{target}", context.token
        )
