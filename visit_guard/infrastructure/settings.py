"""Application Settings and Configuration.

This module provides application-wide settings that combine configuration
from the configuration manager with application-specific defaults.
"""

import os
from typing import Optional

from visit_guard.domain.policy import ValidationPolicy
from visit_guard.infrastructure.config_manager import ConfigManager, DatabaseConfig, parse_bool

# Application metadata
APP_NAME = "Visit-Guard"
APP_VERSION = "1.0.0"


class Settings:
    """Application settings loaded from configuration manager and environment.

    The validation policy and database configuration are loaded lazily on
    first access so that importing this module never fails on bad settings.
    """

    def __init__(self):
        """Initialize settings from environment."""
        self._config_manager: Optional[ConfigManager] = None

        self.app_name = os.getenv("VG_APP_NAME", APP_NAME)

        # Logging
        self.log_level = os.getenv("VG_LOG_LEVEL", "INFO")
        self.log_json = parse_bool(os.getenv("VG_LOG_JSON")) or False

    @property
    def config_manager(self) -> ConfigManager:
        """Get configuration manager instance."""
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    @property
    def validation_policy(self) -> ValidationPolicy:
        return self.config_manager.get_validation_policy()

    @property
    def db_config(self) -> DatabaseConfig:
        return self.config_manager.get_database_config()

    def get_db_path(self) -> str:
        """Get database path for DuckDB.

        Returns:
            Database path or ':memory:' for in-memory database
        """
        return self.db_config.db_path or ":memory:"


# Global settings instance
settings = Settings()
