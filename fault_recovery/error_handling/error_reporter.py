"""
Event sinks that record recovery events.

Every recorder exposes record(kind, message, code). Recording is
fire-and-forget: a failing sink logs the problem and returns, it never
raises back into the strategy or dispatcher that called it.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Any

from fault_recovery.models import ErrorKind, RecoveryEvent


class EventRecorder(ABC):
    """Base class for event sinks."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def record(self, kind: ErrorKind, message: str, code: int = 0) -> None:
        """Record an event, swallowing sink failures."""
        event = RecoveryEvent(kind=kind, message=message, code=code)
        try:
            self._write(event)
        except Exception as e:
            self.logger.error(f"Failed to record event via {self.__class__.__name__}: {e}")

    @abstractmethod
    def _write(self, event: RecoveryEvent) -> None:
        pass


class LoggingEventRecorder(EventRecorder):
    """Writes events to the standard logging system."""

    def __init__(self, logger_name: str = "fault_recovery.events"):
        super().__init__()
        self.event_logger = logging.getLogger(logger_name)

    def _write(self, event: RecoveryEvent) -> None:
        log_message = f"[{event.kind.value.upper()}] {event.message}"
        if event.code:
            log_message += f" (code {event.code})"
        self.event_logger.warning(log_message)


class JsonlEventRecorder(EventRecorder):
    """
    Appends events to a JSON lines file and keeps per-kind counters.

    Provides:
    - File-based event logging (one JSON object per line)
    - Event statistics by kind and by day
    """

    def __init__(self, log_directory: Optional[Path] = None):
        """
        Initialize the recorder.

        Args:
            log_directory: Directory for event log files
        """
        super().__init__()

        if log_directory is None:
            log_directory = Path.cwd() / "logs" / "recovery"

        self.log_directory = Path(log_directory)
        self.event_log_file = self.log_directory / "recovery_events.jsonl"

        self._lock = threading.RLock()
        self._stats = {
            'total_events': 0,
            'events_by_kind': {kind.value: 0 for kind in ErrorKind},
            'events_by_day': {}
        }

    def _write(self, event: RecoveryEvent) -> None:
        with self._lock:
            self.log_directory.mkdir(parents=True, exist_ok=True)
            with open(self.event_log_file, 'a', encoding='utf-8') as f:
                f.write(json.dumps(event.to_dict()) + '\n')

            self._stats['total_events'] += 1
            self._stats['events_by_kind'][event.kind.value] += 1
            day_key = event.timestamp.strftime('%Y-%m-%d')
            self._stats['events_by_day'][day_key] = self._stats['events_by_day'].get(day_key, 0) + 1

    def get_statistics(self) -> Dict[str, Any]:
        """Get event statistics."""
        with self._lock:
            return {
                'total_events': self._stats['total_events'],
                'events_by_kind': dict(self._stats['events_by_kind']),
                'events_by_day': dict(self._stats['events_by_day'])
            }

    def read_events(self) -> List[Dict[str, Any]]:
        """Read back all events recorded in the log file."""
        if not self.event_log_file.exists():
            return []

        events = []
        with self._lock:
            with open(self.event_log_file, 'r', encoding='utf-8') as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        events.append(json.loads(line))
                    except json.JSONDecodeError as e:
                        self.logger.warning(f"Skipping malformed event line: {e}")
        return events


class CompositeEventRecorder(EventRecorder):
    """Fans events out to several recorders."""

    def __init__(self, recorders: Iterable[EventRecorder]):
        super().__init__()
        self.recorders = list(recorders)

    def _write(self, event: RecoveryEvent) -> None:
        for recorder in self.recorders:
            try:
                recorder.record(event.kind, event.message, event.code)
            except Exception as e:
                self.logger.error(f"Error in event recorder {recorder.__class__.__name__}: {e}")
