"""
System probes and cleanup for the fault recovery system.

This package inspects memory, devices and files, and performs the
process-wide cleanup used as a last resort.
"""

from .resource_monitor import ResourceMonitor
from .device_probe import DeviceProbe
from .file_probe import FileProbe
from .operations import SystemOperations
from .resource_cleaner import CleanupAction, CleanupStats

__all__ = [
    'ResourceMonitor',
    'DeviceProbe',
    'FileProbe',
    'SystemOperations',
    'CleanupAction',
    'CleanupStats'
]
