"""
Exceptions for the fault recovery system.

None of these escape the dispatcher; strategies translate them into a
RecoveryOutcome at their boundary.
"""

from typing import Optional


class RecoveryError(Exception):
    """Base exception for recovery system."""


class ProbeError(RecoveryError):
    """Raised when resource or device state could not be read."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class RetryExhausted(RecoveryError):
    """Raised when a retry budget is consumed without success."""

    def __init__(self, message: str, attempts: int, operation: Optional[str] = None):
        super().__init__(message)
        self.attempts = attempts
        self.operation = operation


class UnexpectedCondition(RecoveryError):
    """Raised when an error reason falls outside a strategy's expected set."""

    def __init__(self, message: str, errno: int = 0):
        super().__init__(message)
        self.errno = errno


class RecoveryCancelled(RecoveryError):
    """Raised when a caller cancels a recovery in progress."""

    def __init__(self, message: str, attempt: int = 0):
        super().__init__(message)
        self.attempt = attempt
