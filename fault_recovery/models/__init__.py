"""
Data models for the fault recovery system.

This module contains the data structures shared by the strategies, the
dispatcher and the event sinks.
"""

from .error_kind import ErrorKind, RecoveryOutcome
from .resource_snapshot import ResourceSnapshot
from .recovery_event import RecoveryEvent, RecoveryReport

__all__ = [
    'ErrorKind',
    'RecoveryOutcome',
    'ResourceSnapshot',
    'RecoveryEvent',
    'RecoveryReport'
]
