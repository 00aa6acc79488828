"""
Tests for the per-kind recovery strategies.
"""

import errno
import threading
import time
from unittest.mock import Mock, patch

import pytest

from fault_recovery.error_handling import CancellationToken, RetryManager, RetryPolicy
from fault_recovery.models import ErrorKind, RecoveryOutcome
from fault_recovery.recovery import (
    DeviceBusyRecoveryStrategy,
    DeviceRecoveryStrategy,
    FileAccessRecoveryStrategy,
    MemoryRecoveryStrategy,
    NullReferenceRecoveryStrategy,
    RecoveryContext,
    TextBusyRecoveryStrategy
)
from fault_recovery.system import FileProbe
from .test_mocks import (
    MockCleanupAction,
    MockDeviceProbe,
    MockEventRecorder,
    MockResourceMonitor,
    MockSystemOperations
)


def fast_policy(max_attempts=3, delay=0.0):
    return RetryPolicy(max_attempts=max_attempts, delay=delay)


class TestFileAccessRecoveryStrategy:
    """Test FileAccessRecoveryStrategy."""

    def setup_method(self):
        self.file_probe = FileProbe()
        self.strategy = FileAccessRecoveryStrategy(
            default_target="/path/to/nonexistent/file.txt",
            file_probe=self.file_probe,
            policy=fast_policy()
        )

    def test_readable_target_is_success(self, tmp_path):
        target = tmp_path / "data.txt"
        target.write_text("payload")

        outcome = self.strategy.execute(RecoveryContext(target=str(target)))
        assert outcome == RecoveryOutcome.SUCCESS

    def test_only_backup_readable_is_partial(self, tmp_path):
        target = tmp_path / "data.txt"
        (tmp_path / "data.txt.backup").write_text("older payload")

        outcome = self.strategy.execute(RecoveryContext(target=str(target)))
        assert outcome == RecoveryOutcome.PARTIAL

    def test_neither_readable_fails_after_max_attempts(self, tmp_path):
        target = str(tmp_path / "data.txt")

        with patch.object(self.file_probe, 'can_read', wraps=self.file_probe.can_read) as can_read:
            outcome = self.strategy.execute(RecoveryContext(target=target))

        assert outcome == RecoveryOutcome.FAILED
        target_probes = [c for c in can_read.call_args_list if c.args[0] == target]
        assert len(target_probes) == 3

    def test_file_appears_on_later_attempt(self, tmp_path):
        target = tmp_path / "data.txt"
        probe = Mock()
        probe.can_read.side_effect = [False, False, True]
        strategy = FileAccessRecoveryStrategy(str(target), file_probe=probe, policy=fast_policy())

        assert strategy.execute() == RecoveryOutcome.SUCCESS

    def test_default_target_used_without_override(self):
        probe = Mock()
        probe.can_read.return_value = True
        strategy = FileAccessRecoveryStrategy("/srv/data.txt", file_probe=probe, policy=fast_policy())

        strategy.execute()
        probe.can_read.assert_called_with("/srv/data.txt")


class TestMemoryRecoveryStrategy:
    """Test MemoryRecoveryStrategy."""

    def setup_method(self):
        self.cleanup = MockCleanupAction()

    def test_safe_and_allocation_ok_is_success(self):
        strategy = MemoryRecoveryStrategy(cleanup=self.cleanup, monitor=MockResourceMonitor([True]))

        assert strategy.execute() == RecoveryOutcome.SUCCESS
        assert self.cleanup.reclaim_calls == 1
        assert self.cleanup.run_calls == 0

    def test_unsafe_after_reclaim_is_failed(self):
        monitor = MockResourceMonitor([False])
        strategy = MemoryRecoveryStrategy(cleanup=self.cleanup, monitor=monitor)

        assert strategy.execute() == RecoveryOutcome.FAILED
        assert self.cleanup.reclaim_calls == 1
        assert monitor.calls == 1

    def test_failed_trial_allocation_is_failed(self):
        strategy = MemoryRecoveryStrategy(cleanup=self.cleanup, monitor=MockResourceMonitor([True]))

        with patch.object(strategy, '_trial_allocation', return_value=False):
            assert strategy.execute() == RecoveryOutcome.FAILED

    def test_trial_allocation_handles_memory_error(self):
        strategy = MemoryRecoveryStrategy(cleanup=self.cleanup, monitor=MockResourceMonitor([True]))

        with patch('fault_recovery.recovery.recovery_strategies.bytearray',
                   side_effect=MemoryError, create=True):
            assert strategy._trial_allocation() is False


class TestNullReferenceRecoveryStrategy:
    """Test NullReferenceRecoveryStrategy."""

    def test_safe_records_and_succeeds(self):
        recorder = MockEventRecorder()
        strategy = NullReferenceRecoveryStrategy(monitor=MockResourceMonitor([True]), recorder=recorder)

        assert strategy.execute() == RecoveryOutcome.SUCCESS
        assert recorder.events == [(ErrorKind.NULL_REFERENCE, "Recovered from null pointer error", 0)]

    def test_unsafe_fails_without_recording(self):
        recorder = MockEventRecorder()
        strategy = NullReferenceRecoveryStrategy(monitor=MockResourceMonitor([False]), recorder=recorder)

        assert strategy.execute() == RecoveryOutcome.FAILED
        assert recorder.events == []


class TestDeviceRecoveryStrategy:
    """Test DeviceRecoveryStrategy candidate ordering."""

    CANDIDATES = ["/dev/first", "/dev/second", "/dev/third", "/dev/fourth"]

    def test_third_candidate_wins_and_stops(self):
        probe = MockDeviceProbe(accessible={"/dev/third", "/dev/fourth"})
        strategy = DeviceRecoveryStrategy(self.CANDIDATES, device_probe=probe, policy=fast_policy())

        assert strategy.execute() == RecoveryOutcome.SUCCESS
        assert "/dev/fourth" not in probe.probed
        assert probe.probed[-1] == "/dev/third"
        # Each failing candidate used its full budget
        assert probe.probed.count("/dev/first") == 3
        assert probe.probed.count("/dev/second") == 3

    def test_reset_counts_as_success(self):
        probe = MockDeviceProbe(resettable={"/dev/first"})
        strategy = DeviceRecoveryStrategy(self.CANDIDATES, device_probe=probe, policy=fast_policy())

        assert strategy.execute() == RecoveryOutcome.SUCCESS
        assert probe.reset_attempts == ["/dev/first"]
        assert probe.probed == ["/dev/first"]

    def test_no_candidate_fails_and_records(self):
        probe = MockDeviceProbe()
        recorder = MockEventRecorder()
        strategy = DeviceRecoveryStrategy(
            self.CANDIDATES, device_probe=probe, policy=fast_policy(max_attempts=2), recorder=recorder
        )

        assert strategy.execute() == RecoveryOutcome.FAILED
        assert len(probe.probed) == len(self.CANDIDATES) * 2
        assert recorder.events == [
            (ErrorKind.DEVICE, "Failed to recover device after multiple attempts", errno.ENODEV)
        ]

    def test_requires_candidates(self):
        with pytest.raises(ValueError):
            DeviceRecoveryStrategy([])


class TestDeviceBusyRecoveryStrategy:
    """Test DeviceBusyRecoveryStrategy."""

    def test_low_load_and_safe_is_success(self):
        operations = MockSystemOperations(load_averages=[0.2])
        strategy = DeviceBusyRecoveryStrategy(
            operations=operations, monitor=MockResourceMonitor([True]), policy=fast_policy()
        )

        assert strategy.execute() == RecoveryOutcome.SUCCESS
        assert operations.terminated == []

    def test_high_load_forces_release_then_succeeds(self):
        operations = MockSystemOperations(load_averages=[2.0, 0.5])
        strategy = DeviceBusyRecoveryStrategy(
            operations=operations,
            monitor=MockResourceMonitor([True]),
            busy_device_path="/dev/busy_device",
            policy=fast_policy()
        )

        assert strategy.execute() == RecoveryOutcome.SUCCESS
        assert operations.terminated == ["/dev/busy_device"]

    def test_unsafe_resources_never_succeed(self):
        operations = MockSystemOperations(load_averages=[0.1])
        recorder = MockEventRecorder()
        strategy = DeviceBusyRecoveryStrategy(
            operations=operations,
            monitor=MockResourceMonitor([False]),
            policy=fast_policy(),
            recorder=recorder
        )

        assert strategy.execute() == RecoveryOutcome.FAILED
        assert recorder.events == [
            (ErrorKind.DEVICE_BUSY, "Device remains busy after recovery attempts", errno.EBUSY)
        ]

    def test_unreadable_load_is_not_acceptable(self):
        operations = MockSystemOperations(load_averages=[])
        strategy = DeviceBusyRecoveryStrategy(
            operations=operations, monitor=MockResourceMonitor([True]), policy=fast_policy()
        )

        assert strategy.execute() == RecoveryOutcome.FAILED

    def test_attempts_spaced_by_doubled_delay(self):
        """Test consecutive attempts are at least twice the base delay apart."""
        base_delay = 0.05
        attempt_times = []
        operations = MockSystemOperations(load_averages=[5.0])
        original_load_average = operations.load_average

        def timed_load_average():
            attempt_times.append(time.monotonic())
            return original_load_average()

        operations.load_average = timed_load_average
        retry_manager = RetryManager()
        strategy = DeviceBusyRecoveryStrategy(
            operations=operations,
            monitor=MockResourceMonitor([True]),
            retry_manager=retry_manager,
            policy=fast_policy(max_attempts=3, delay=base_delay)
        )

        assert strategy.execute() == RecoveryOutcome.FAILED
        assert len(attempt_times) == 3
        gaps = [b - a for a, b in zip(attempt_times, attempt_times[1:])]
        assert all(gap >= 2 * base_delay for gap in gaps)

        delays = [a.delay for a in retry_manager.get_attempts("device_busy")]
        assert delays[:2] == [2 * base_delay, 2 * base_delay]

    def test_cancellation_aborts_doubled_wait(self):
        token = CancellationToken()
        operations = MockSystemOperations(load_averages=[5.0])
        strategy = DeviceBusyRecoveryStrategy(
            operations=operations,
            monitor=MockResourceMonitor([True]),
            policy=fast_policy(max_attempts=3, delay=30.0)
        )

        timer = threading.Timer(0.1, token.cancel)
        timer.start()
        start = time.monotonic()
        try:
            outcome = strategy.execute(RecoveryContext(token=token))
        finally:
            timer.cancel()

        assert outcome == RecoveryOutcome.FAILED
        assert time.monotonic() - start < 5.0
        assert operations.load_calls == 1


class TestTextBusyRecoveryStrategy:
    """Test TextBusyRecoveryStrategy."""

    def test_available_file_is_success(self, tmp_path):
        target = tmp_path / "example.lock"
        target.write_text("")
        strategy = TextBusyRecoveryStrategy(str(target), policy=fast_policy())

        assert strategy.execute() == RecoveryOutcome.SUCCESS

    def test_busy_then_available(self):
        probe = Mock()
        probe.open_read_write.side_effect = [
            OSError(errno.ETXTBSY, "Text file busy"),
            None
        ]
        strategy = TextBusyRecoveryStrategy("example.lock", file_probe=probe, policy=fast_policy())

        assert strategy.execute() == RecoveryOutcome.SUCCESS
        assert probe.open_read_write.call_count == 2

    def test_always_busy_exhausts_budget(self):
        probe = Mock()
        probe.open_read_write.side_effect = OSError(errno.ETXTBSY, "Text file busy")
        strategy = TextBusyRecoveryStrategy("example.lock", file_probe=probe, policy=fast_policy())

        assert strategy.execute() == RecoveryOutcome.FAILED
        assert probe.open_read_write.call_count == 3

    def test_non_busy_error_fails_immediately(self):
        """Test a different errno aborts with no further attempts and no delay."""
        probe = Mock()
        probe.open_read_write.side_effect = OSError(errno.EACCES, "Permission denied")
        strategy = TextBusyRecoveryStrategy(
            "example.lock", file_probe=probe, policy=fast_policy(delay=30.0)
        )

        start = time.monotonic()
        assert strategy.execute() == RecoveryOutcome.FAILED
        assert time.monotonic() - start < 1.0
        assert probe.open_read_write.call_count == 1

    def test_missing_file_is_unexpected(self, tmp_path):
        strategy = TextBusyRecoveryStrategy(str(tmp_path / "missing.lock"), policy=fast_policy(delay=30.0))
        assert strategy.execute() == RecoveryOutcome.FAILED


class TestStrategyBoundary:
    """Test that strategies never raise."""

    def test_unexpected_exception_becomes_failed(self):
        probe = Mock()
        probe.can_read.side_effect = RuntimeError("probe crashed")
        strategy = FileAccessRecoveryStrategy("/tmp/x", file_probe=probe, policy=fast_policy())

        assert strategy.execute() == RecoveryOutcome.FAILED

    def test_can_handle(self):
        strategy = NullReferenceRecoveryStrategy(monitor=MockResourceMonitor())
        assert strategy.can_handle(ErrorKind.NULL_REFERENCE)
        assert not strategy.can_handle(ErrorKind.MEMORY)
