"""
Configuration manager for loading and saving recovery settings.
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional
from .recovery_settings import RecoverySettings


class ConfigManager:
    """
    Manages loading and saving of recovery configuration.

    Handles settings persistence, default configuration creation,
    and configuration file validation.
    """

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_dir: Custom configuration directory path.
                       If None, uses default user config directory.
        """
        self.logger = logging.getLogger(__name__)

        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = self._get_default_config_dir()

        self.config_file = self.config_dir / "recovery_config.json"

    def _get_default_config_dir(self) -> Path:
        """Get the default configuration directory based on OS."""
        if os.name == 'nt':  # Windows
            config_base = os.environ.get('APPDATA', os.path.expanduser('~'))
        else:
            config_base = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
        return Path(config_base) / "fault-recovery"

    def _ensure_config_dir(self):
        """Ensure the configuration directory exists."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.logger.error(f"Failed to create config directory {self.config_dir}: {e}")
            raise

    def load_settings(self) -> RecoverySettings:
        """
        Load recovery settings from configuration file.

        Returns:
            RecoverySettings object with loaded or default settings.
        """
        if not self.config_file.exists():
            self.logger.info("Configuration file not found, using defaults")
            return RecoverySettings()

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            settings = RecoverySettings.from_dict(data)
            self.logger.info(f"Loaded settings from {self.config_file}")
            return settings

        except (json.JSONDecodeError, ValueError, TypeError, KeyError) as e:
            self.logger.error(f"Failed to load settings from {self.config_file}: {e}")
            self.logger.info("Using default settings")
            return RecoverySettings()
        except OSError as e:
            self.logger.error(f"Failed to read config file {self.config_file}: {e}")
            return RecoverySettings()

    def save_settings(self, settings: RecoverySettings) -> bool:
        """
        Save recovery settings to configuration file.

        Args:
            settings: RecoverySettings object to save.

        Returns:
            True if saved successfully, False otherwise.
        """
        try:
            self._ensure_config_dir()

            if self.config_file.exists():
                backup_file = self.config_file.with_suffix('.json.bak')
                self.config_file.replace(backup_file)

            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(settings.to_dict(), f, indent=2)

            self.logger.info(f"Saved settings to {self.config_file}")
            return True

        except OSError as e:
            self.logger.error(f"Failed to save settings to {self.config_file}: {e}")
            return False

    def reset_to_defaults(self) -> RecoverySettings:
        """
        Reset configuration to defaults and save.

        Returns:
            New RecoverySettings object with default values.
        """
        default_settings = RecoverySettings()

        if self.save_settings(default_settings):
            self.logger.info("Reset configuration to defaults")

        return default_settings
