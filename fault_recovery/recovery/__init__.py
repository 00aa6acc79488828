"""
Recovery strategies and the dispatcher that runs them.

recover() is the entry point callers use; the strategies are
implementation detail of the dispatcher and exported for customization
and testing.
"""

from .dispatcher import RecoveryDispatcher, get_dispatcher, recover
from .recovery_strategies import (
    RecoveryContext,
    RecoveryStrategy,
    FileAccessRecoveryStrategy,
    MemoryRecoveryStrategy,
    NullReferenceRecoveryStrategy,
    DeviceRecoveryStrategy,
    DeviceBusyRecoveryStrategy,
    TextBusyRecoveryStrategy
)

__all__ = [
    'RecoveryDispatcher',
    'get_dispatcher',
    'recover',
    'RecoveryContext',
    'RecoveryStrategy',
    'FileAccessRecoveryStrategy',
    'MemoryRecoveryStrategy',
    'NullReferenceRecoveryStrategy',
    'DeviceRecoveryStrategy',
    'DeviceBusyRecoveryStrategy',
    'TextBusyRecoveryStrategy'
]
