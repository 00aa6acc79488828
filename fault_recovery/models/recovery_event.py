"""
Records produced while recovering from errors.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from .error_kind import ErrorKind, RecoveryOutcome


@dataclass
class RecoveryEvent:
    """
    A single event handed to the event sink.

    Attributes:
        kind: Error kind the event relates to
        message: Human-readable description
        code: Auxiliary code, usually an errno value (0 when not applicable)
        timestamp: When the event was recorded
    """
    kind: ErrorKind
    message: str
    code: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization."""
        return {
            'kind': self.kind.value,
            'message': self.message,
            'code': self.code,
            'timestamp': self.timestamp.isoformat()
        }


@dataclass
class RecoveryReport:
    """
    Summary of one dispatcher invocation.

    Attributes:
        kind: Error kind that was recovered
        outcome: Final outcome
        strategy_name: Name of the strategy that ran, None if none was run
        duration: Wall-clock seconds spent in the strategy
        cleanup_performed: Whether last-resort cleanup ran
        timestamp: When the invocation finished
    """
    kind: ErrorKind
    outcome: RecoveryOutcome
    strategy_name: Optional[str] = None
    duration: float = 0.0
    cleanup_performed: bool = False
    timestamp: datetime = field(default_factory=datetime.now)

    def get_summary_text(self) -> str:
        """Get the human-readable recovery summary."""
        return f"Recovery {self.outcome.label} for error type {self.kind.value}"
