"""
Configuration management for the fault recovery system.

This module provides loading, saving, and validation of retry budgets,
recovery targets and the opt-in flags for destructive system actions.
"""

from .config_manager import ConfigManager
from .recovery_settings import RecoverySettings

__all__ = ['ConfigManager', 'RecoverySettings']
