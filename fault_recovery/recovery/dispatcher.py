"""
Central recovery dispatcher.

This module provides the RecoveryDispatcher, the single entry point for
recovering from a classified error: it selects the strategy for the error
kind, runs it, records the outcome, and runs last-resort cleanup when the
outcome is FAILED.
"""

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from fault_recovery.config import RecoverySettings
from fault_recovery.error_handling.error_reporter import (
    CompositeEventRecorder,
    JsonlEventRecorder,
    LoggingEventRecorder
)
from fault_recovery.error_handling.retry_manager import (
    CancellationToken,
    RetryManager,
    RetryPolicy
)
from fault_recovery.models import ErrorKind, RecoveryOutcome, RecoveryReport
from fault_recovery.system import (
    CleanupAction,
    DeviceProbe,
    FileProbe,
    ResourceMonitor,
    SystemOperations
)
from .recovery_strategies import (
    DeviceBusyRecoveryStrategy,
    DeviceRecoveryStrategy,
    FileAccessRecoveryStrategy,
    MemoryRecoveryStrategy,
    NullReferenceRecoveryStrategy,
    RecoveryContext,
    RecoveryStrategy,
    TextBusyRecoveryStrategy
)


class RecoveryDispatcher:
    """
    Maps error kinds to recovery strategies and runs them.

    recover() never raises: any error inside a strategy is logged and
    reported as FAILED.
    """

    def __init__(self,
                 settings: Optional[RecoverySettings] = None,
                 monitor: Optional[ResourceMonitor] = None,
                 operations: Optional[SystemOperations] = None,
                 cleanup: Optional[CleanupAction] = None,
                 recorder=None,
                 device_probe: Optional[DeviceProbe] = None,
                 file_probe: Optional[FileProbe] = None,
                 retry_manager: Optional[RetryManager] = None,
                 register_defaults: bool = True):
        """
        Initialize the dispatcher.

        Args:
            settings: Recovery settings (defaults if None)
            monitor: Resource monitor shared by strategies
            operations: System operations capability
            cleanup: Last-resort cleanup action
            recorder: Event sink
            device_probe: Device probe for device recovery
            file_probe: File probe for file access and text busy recovery
            retry_manager: Retry manager shared by strategies
            register_defaults: Register the built-in strategy for every kind
        """
        self.logger = logging.getLogger(__name__)
        self.settings = settings or RecoverySettings()
        self.policy = RetryPolicy.from_settings(self.settings)
        self.retry_manager = retry_manager or RetryManager(self.policy)
        self.monitor = monitor or ResourceMonitor(self.settings.memory_threshold)
        self.operations = operations or SystemOperations.from_settings(self.settings)
        self.recorder = recorder or self._create_default_recorder()
        self.cleanup = cleanup or CleanupAction(
            operations=self.operations,
            recorder=self.recorder,
            temp_prefix=self.settings.temp_prefix,
            max_descriptor=self.settings.max_descriptor
        )
        self.device_probe = device_probe or DeviceProbe()
        self.file_probe = file_probe or FileProbe()

        self._strategies: Dict[ErrorKind, RecoveryStrategy] = {}
        self._history: List[RecoveryReport] = []
        self._outcome_callbacks: List[Callable[[RecoveryReport], None]] = []
        self._lock = threading.RLock()

        self.max_history_size = 1000

        self._stats = {
            'total_recoveries': 0,
            'recoveries_by_kind': {},
            'outcomes': {outcome.value: 0 for outcome in RecoveryOutcome},
            'cleanups_performed': 0
        }

        if self.settings.destructive_actions_enabled:
            self.logger.warning("Destructive cleanup actions are enabled")

        if register_defaults:
            self._register_default_strategies()

    def register_strategy(self, strategy: RecoveryStrategy):
        """Register a strategy, replacing any existing one for the same kind."""
        if strategy.kind == ErrorKind.UNKNOWN:
            raise ValueError("Cannot register a strategy for unknown errors")

        with self._lock:
            self._strategies[strategy.kind] = strategy
            self.logger.debug(f"Registered recovery strategy: {strategy.name}")

    def remove_strategy(self, kind: ErrorKind):
        """Remove the strategy for a kind."""
        with self._lock:
            strategy = self._strategies.pop(kind, None)
            if strategy:
                self.logger.info(f"Removed recovery strategy: {strategy.name}")

    def get_strategy(self, kind: ErrorKind) -> Optional[RecoveryStrategy]:
        """Get the strategy registered for a kind."""
        with self._lock:
            return self._strategies.get(kind)

    def add_outcome_callback(self, callback: Callable[[RecoveryReport], None]):
        """Add callback to be notified of recovery outcomes."""
        with self._lock:
            self._outcome_callbacks.append(callback)

    def remove_outcome_callback(self, callback: Callable[[RecoveryReport], None]):
        """Remove outcome callback."""
        with self._lock:
            if callback in self._outcome_callbacks:
                self._outcome_callbacks.remove(callback)

    def register_release_callback(self, callback: Callable[[], None]):
        """Register caller-owned resources released during memory recovery."""
        self.cleanup.register_release_callback(callback)

    def recover(self,
                kind: Union[ErrorKind, str],
                target: Optional[str] = None,
                token: Optional[CancellationToken] = None) -> RecoveryOutcome:
        """
        Recover from a classified error.

        Args:
            kind: Error kind, or its name
            target: Path overriding the configured target for this call
            token: Cancellation token for aborting a long recovery

        Returns:
            SUCCESS, PARTIAL or FAILED
        """
        if not isinstance(kind, ErrorKind):
            kind = ErrorKind.parse(str(kind))

        strategy = None if kind == ErrorKind.UNKNOWN else self.get_strategy(kind)
        context = RecoveryContext(target=target, token=token or CancellationToken())

        start_time = time.monotonic()
        if strategy is None:
            self.logger.error(f"Unknown error type {kind.value}. Unable to recover.")
            outcome = RecoveryOutcome.FAILED
        else:
            outcome = self._run_strategy(strategy, context)

        report = RecoveryReport(
            kind=kind,
            outcome=outcome,
            strategy_name=strategy.name if strategy else None,
            duration=time.monotonic() - start_time
        )
        self._log_report(report)

        if outcome == RecoveryOutcome.FAILED:
            report.cleanup_performed = self._run_cleanup()

        with self._lock:
            self._history.append(report)
            self._cleanup_history()
            self._update_stats(report)

        self._notify_callbacks(report)
        return outcome

    def get_history(self,
                    kind: Optional[ErrorKind] = None,
                    outcome: Optional[RecoveryOutcome] = None,
                    since: Optional[datetime] = None) -> List[RecoveryReport]:
        """Get recovery history with optional filtering."""
        with self._lock:
            reports = self._history.copy()

        if kind:
            reports = [r for r in reports if r.kind == kind]

        if outcome:
            reports = [r for r in reports if r.outcome == outcome]

        if since:
            reports = [r for r in reports if r.timestamp >= since]

        return reports

    def get_recent_reports(self, minutes: int = 60) -> List[RecoveryReport]:
        """Get recovery reports from the last N minutes."""
        since = datetime.now() - timedelta(minutes=minutes)
        return self.get_history(since=since)

    def get_stats(self) -> Dict[str, Any]:
        """Get recovery statistics."""
        with self._lock:
            return {
                'total_recoveries': self._stats['total_recoveries'],
                'recoveries_by_kind': dict(self._stats['recoveries_by_kind']),
                'outcomes': dict(self._stats['outcomes']),
                'cleanups_performed': self._stats['cleanups_performed']
            }

    def clear_history(self):
        """Clear recovery history."""
        with self._lock:
            self._history.clear()
            self.logger.info("Recovery history cleared")

    def _register_default_strategies(self):
        """Register the built-in strategy for every known kind."""
        shared = {
            'retry_manager': self.retry_manager,
            'policy': self.policy,
            'recorder': self.recorder
        }
        self.register_strategy(FileAccessRecoveryStrategy(
            default_target=self.settings.file_target,
            file_probe=self.file_probe,
            **shared
        ))
        self.register_strategy(MemoryRecoveryStrategy(
            cleanup=self.cleanup,
            monitor=self.monitor,
            **shared
        ))
        self.register_strategy(NullReferenceRecoveryStrategy(
            monitor=self.monitor,
            **shared
        ))
        self.register_strategy(DeviceRecoveryStrategy(
            candidates=self.settings.device_candidates,
            device_probe=self.device_probe,
            **shared
        ))
        self.register_strategy(DeviceBusyRecoveryStrategy(
            operations=self.operations,
            monitor=self.monitor,
            busy_device_path=self.settings.busy_device_path,
            load_threshold=self.settings.load_threshold,
            **shared
        ))
        self.register_strategy(TextBusyRecoveryStrategy(
            default_target=self.settings.text_busy_target,
            file_probe=self.file_probe,
            **shared
        ))

    def _create_default_recorder(self):
        """Log events, and also append them to a JSON lines file when configured."""
        logging_recorder = LoggingEventRecorder()
        if not self.settings.event_log_dir:
            return logging_recorder
        return CompositeEventRecorder([
            logging_recorder,
            JsonlEventRecorder(self.settings.event_log_dir)
        ])

    def _run_strategy(self, strategy: RecoveryStrategy, context: RecoveryContext) -> RecoveryOutcome:
        """Run a strategy, mapping anything it raises to FAILED."""
        self.logger.debug(f"Running {strategy.name} for {strategy.kind.value}")
        try:
            outcome = strategy.execute(context)
        except Exception as e:
            self.logger.error(f"Error in strategy {strategy.name}: {e}")
            return RecoveryOutcome.FAILED

        if not isinstance(outcome, RecoveryOutcome):
            self.logger.error(f"Strategy {strategy.name} returned no decision: {outcome!r}")
            return RecoveryOutcome.FAILED
        return outcome

    def _run_cleanup(self) -> bool:
        """Run last-resort cleanup. Returns True if it completed."""
        try:
            self.cleanup.run()
            return True
        except Exception as e:
            self.logger.error(f"Error during resource cleanup: {e}")
            return False

    def _log_report(self, report: RecoveryReport):
        """Log the recovery summary with an appropriate level."""
        summary = report.get_summary_text()
        if report.outcome == RecoveryOutcome.SUCCESS:
            self.logger.info(summary)
        else:
            self.logger.warning(summary)

    def _update_stats(self, report: RecoveryReport):
        """Update recovery statistics."""
        self._stats['total_recoveries'] += 1

        kind_key = report.kind.value
        self._stats['recoveries_by_kind'][kind_key] = self._stats['recoveries_by_kind'].get(kind_key, 0) + 1
        self._stats['outcomes'][report.outcome.value] += 1

        if report.cleanup_performed:
            self._stats['cleanups_performed'] += 1

    def _notify_callbacks(self, report: RecoveryReport):
        """Notify outcome callbacks."""
        with self._lock:
            callbacks = list(self._outcome_callbacks)

        for callback in callbacks:
            try:
                callback(report)
            except Exception as e:
                self.logger.error(f"Error in outcome callback: {e}")

    def _cleanup_history(self):
        """Keep only the most recent history entries."""
        if len(self._history) > self.max_history_size:
            self._history = self._history[-self.max_history_size:]


# Global dispatcher instance
_global_dispatcher: Optional[RecoveryDispatcher] = None


def get_dispatcher() -> RecoveryDispatcher:
    """Get the global dispatcher instance, configured from the user config file."""
    global _global_dispatcher
    if _global_dispatcher is None:
        from fault_recovery.config import ConfigManager
        _global_dispatcher = RecoveryDispatcher(ConfigManager().load_settings())
    return _global_dispatcher


def recover(kind: Union[ErrorKind, str],
            target: Optional[str] = None,
            token: Optional[CancellationToken] = None) -> RecoveryOutcome:
    """Convenience function to recover using the global dispatcher."""
    return get_dispatcher().recover(kind, target=target, token=token)
