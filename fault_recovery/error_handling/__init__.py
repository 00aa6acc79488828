"""
Error handling building blocks for the fault recovery system.

This package provides the exception taxonomy, the shared retry routine with
cancellation, and the event sinks recovery events are recorded to.
"""

from .exceptions import (
    RecoveryError,
    ProbeError,
    RetryExhausted,
    UnexpectedCondition,
    RecoveryCancelled
)
from .retry_manager import (
    RetryManager,
    RetryPolicy,
    RetryAttempt,
    RetryResult,
    CancellationToken,
    BackoffStrategy,
    ExponentialBackoff,
    FixedBackoff
)
from .error_reporter import (
    EventRecorder,
    LoggingEventRecorder,
    JsonlEventRecorder,
    CompositeEventRecorder
)

__all__ = [
    'RecoveryError',
    'ProbeError',
    'RetryExhausted',
    'UnexpectedCondition',
    'RecoveryCancelled',
    'RetryManager',
    'RetryPolicy',
    'RetryAttempt',
    'RetryResult',
    'CancellationToken',
    'BackoffStrategy',
    'ExponentialBackoff',
    'FixedBackoff',
    'EventRecorder',
    'LoggingEventRecorder',
    'JsonlEventRecorder',
    'CompositeEventRecorder'
]
