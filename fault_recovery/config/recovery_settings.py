"""
Recovery settings data model for retry budgets and opt-in system actions.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional
import json


def _default_device_candidates() -> List[str]:
    return ["/dev/tty0", "/dev/null", "/dev/zero"]


@dataclass
class RecoverySettings:
    """
    Represents recovery configuration.

    Attributes:
        max_attempts: Attempts per strategy retry loop
        retry_delay: Base delay between failed attempts (seconds)
        backoff: Backoff strategy name ("fixed" or "exponential")
        memory_threshold: Usage fraction at or above which memory is unsafe
        load_threshold: 1-minute load average below which a busy device is released
        file_target: Default path for file access recovery
        text_busy_target: Default path for text-file-busy recovery
        device_candidates: Device paths probed in priority order
        busy_device_path: Contended device whose holders may be terminated
        temp_prefix: Filename prefix reserved for this package's temp artifacts
        allow_close_descriptors: Permit closing descriptors >= 3 during cleanup
        allow_ipc_release: Permit removing IPC segments during cleanup
        allow_process_termination: Permit terminating holders of a busy device
        max_descriptor: Upper bound (exclusive) for descriptor cleanup
        event_log_dir: Directory for the JSON lines event log, None to disable
    """
    max_attempts: int = 3
    retry_delay: float = 2.0
    backoff: str = "fixed"
    memory_threshold: float = 0.9
    load_threshold: float = 0.8
    file_target: str = "/path/to/nonexistent/file.txt"
    text_busy_target: str = "example.lock"
    device_candidates: List[str] = field(default_factory=_default_device_candidates)
    busy_device_path: Optional[str] = None
    temp_prefix: str = "fault_recovery_"
    allow_close_descriptors: bool = False
    allow_ipc_release: bool = False
    allow_process_termination: bool = False
    max_descriptor: int = 1024
    event_log_dir: Optional[str] = None

    def __post_init__(self):
        """Validate settings after initialization."""
        self._validate()

    def _validate(self):
        """Validate recovery settings."""
        if (isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int)
                or self.max_attempts < 1):
            raise ValueError("Max attempts must be a positive integer")

        if self.retry_delay < 0:
            raise ValueError("Retry delay cannot be negative")

        valid_backoffs = {"fixed", "exponential"}
        if self.backoff not in valid_backoffs:
            raise ValueError(f"Invalid backoff: {self.backoff}")

        if not (0.0 < self.memory_threshold <= 1.0):
            raise ValueError("Memory threshold must be between 0 and 1")

        if self.load_threshold <= 0:
            raise ValueError("Load threshold must be positive")

        if not self.device_candidates:
            raise ValueError("At least one device candidate is required")

        if not self.temp_prefix or '/' in self.temp_prefix:
            raise ValueError(f"Invalid temp prefix: {self.temp_prefix!r}")

        if self.max_descriptor <= 3:
            raise ValueError("Max descriptor must be greater than 3")

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for serialization."""
        return {
            'max_attempts': self.max_attempts,
            'retry_delay': self.retry_delay,
            'backoff': self.backoff,
            'memory_threshold': self.memory_threshold,
            'load_threshold': self.load_threshold,
            'file_target': self.file_target,
            'text_busy_target': self.text_busy_target,
            'device_candidates': list(self.device_candidates),
            'busy_device_path': self.busy_device_path,
            'temp_prefix': self.temp_prefix,
            'allow_close_descriptors': self.allow_close_descriptors,
            'allow_ipc_release': self.allow_ipc_release,
            'allow_process_termination': self.allow_process_termination,
            'max_descriptor': self.max_descriptor,
            'event_log_dir': self.event_log_dir
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RecoverySettings':
        """Create settings from dictionary."""
        if not isinstance(data, dict):
            raise ValueError(f"Settings must be a JSON object, got {type(data).__name__}")

        known_keys = set(cls().to_dict().keys())
        filtered_data = {k: v for k, v in data.items() if k in known_keys}

        return cls(**filtered_data)

    def to_json(self) -> str:
        """Convert settings to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> 'RecoverySettings':
        """Create settings from JSON string."""
        data = json.loads(json_str)
        return cls.from_dict(data)

    @property
    def destructive_actions_enabled(self) -> bool:
        """Whether any process-wide destructive action is opted in."""
        return (self.allow_close_descriptors or
                self.allow_ipc_release or
                self.allow_process_termination)
