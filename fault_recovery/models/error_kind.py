"""
Error kinds and recovery outcomes.
"""

from enum import Enum


class ErrorKind(Enum):
    """Closed classification of the failure being recovered from."""
    MEMORY = "memory"
    FILE_ACCESS = "file_access"
    DEVICE = "device"
    DEVICE_BUSY = "device_busy"
    TEXT_BUSY = "text_busy"
    NULL_REFERENCE = "null_reference"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, name: str) -> 'ErrorKind':
        """
        Resolve a kind from its value or member name.

        Args:
            name: Kind name such as "file_access", "FILE_ACCESS" or "file-access"

        Returns:
            Matching ErrorKind, or UNKNOWN if nothing matches
        """
        normalized = (name or "").strip().lower().replace('-', '_')
        for kind in cls:
            if kind.value == normalized:
                return kind
        return cls.UNKNOWN


class RecoveryOutcome(Enum):
    """Result of a recovery attempt."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"

    @property
    def label(self) -> str:
        """Human-readable label used in recovery summaries."""
        return {
            RecoveryOutcome.SUCCESS: "successful",
            RecoveryOutcome.PARTIAL: "partial",
            RecoveryOutcome.FAILED: "failed",
        }[self]
