"""Configuration Manager.

This module loads the validation policy and the visit store configuration
from environment variables or a JSON file.

Architecture:
    - Follows Hexagonal Architecture: Infrastructure layer isolated from domain
    - Type-safe configuration using Pydantic models
    - Fail-fast validation prevents runtime errors
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from visit_guard.domain.policy import ValidationPolicy

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool(value: Optional[str]) -> Optional[bool]:
    """Parse a boolean flag from its string form (None when unset)."""
    if value is None or value.strip() == "":
        return None
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


class DatabaseConfig(BaseModel):
    """Visit store configuration.

    Parameters:
        db_type: Type of database (only 'duckdb' is supported)
        db_path: Path to the database file, or ':memory:'
    """

    db_type: str = Field("duckdb", description="Database type")
    db_path: Optional[str] = Field(None, description="Path to database file (for DuckDB)")

    @field_validator("db_type")
    @classmethod
    def validate_db_type(cls, v: str) -> str:
        """Validate database type."""
        supported_types = ["duckdb"]
        if v.lower() not in supported_types:
            raise ValueError(f"Unsupported database type: {v}. Supported: {supported_types}")
        return v.lower()

    @field_validator("db_path")
    @classmethod
    def validate_db_path(cls, v: Optional[str]) -> Optional[str]:
        """Validate the database directory exists (the file may not exist yet)."""
        if v is None or v == ":memory:":
            return v

        db_path_obj = Path(v)
        if not db_path_obj.parent.exists():
            raise ValueError(f"Database directory does not exist: {db_path_obj.parent}")

        return str(db_path_obj)


class ConfigManager:
    """Configuration manager for the validation policy and the visit store.

    Example Usage:
        ```python
        # Load from environment variables
        config = ConfigManager.from_environment()
        policy = config.get_validation_policy()

        # Load from file
        config = ConfigManager.from_file("visit_guard.json")
        db_config = config.get_database_config()
        ```
    """

    def __init__(self, config_data: Dict[str, Any]):
        """Initialize configuration manager.

        Parameters:
            config_data: Configuration dictionary with optional "validation" and
                "database" sections
        """
        self._config_data = config_data
        self._validation_policy: Optional[ValidationPolicy] = None
        self._database_config: Optional[DatabaseConfig] = None

    @classmethod
    def from_environment(cls) -> 'ConfigManager':
        """Load configuration from environment variables.

        Environment Variables:
            - VG_ALLOW_OVERLAPPING_VISITS: Allow overlapping visits (default: false)
            - VG_VOID_REASON_MAX_LENGTH: Maximum void reason length (default: 255)
            - VG_ESTIMATED_BIRTHDATE_GRACE_RATIO: Share of the lifespan granted as grace
            - VG_MINIMUM_GRACE_YEARS: Minimum estimated-birthdate grace in years
            - VG_DB_TYPE: Database type (duckdb)
            - VG_DB_PATH: Path to the DuckDB file

        A .env file in the project root is loaded first when python-dotenv finds one.

        Returns:
            ConfigManager instance
        """
        env_path = Path(__file__).parent.parent.parent / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug(f"Loaded environment variables from {env_path}")

        validation: Dict[str, Any] = {}
        allow_overlap = parse_bool(os.getenv("VG_ALLOW_OVERLAPPING_VISITS"))
        if allow_overlap is not None:
            validation["allow_overlapping_visits"] = allow_overlap
        if os.getenv("VG_VOID_REASON_MAX_LENGTH"):
            validation["void_reason_max_length"] = int(os.getenv("VG_VOID_REASON_MAX_LENGTH"))
        if os.getenv("VG_ESTIMATED_BIRTHDATE_GRACE_RATIO"):
            validation["estimated_birthdate_grace_ratio"] = float(os.getenv("VG_ESTIMATED_BIRTHDATE_GRACE_RATIO"))
        if os.getenv("VG_MINIMUM_GRACE_YEARS"):
            validation["minimum_grace_years"] = int(os.getenv("VG_MINIMUM_GRACE_YEARS"))

        config_data = {
            "validation": validation,
            "database": {
                "db_type": os.getenv("VG_DB_TYPE", "duckdb"),
                "db_path": os.getenv("VG_DB_PATH"),
            },
        }

        return cls(config_data)

    @classmethod
    def from_file(cls, config_path: str) -> 'ConfigManager':
        """Load configuration from a JSON file.

        Parameters:
            config_path: Path to configuration file

        Returns:
            ConfigManager instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {str(e)}")

        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a JSON object")

        return cls(config_data)

    def get_validation_policy(self) -> ValidationPolicy:
        """Get the validation policy.

        Raises:
            ValueError: If the "validation" section holds invalid values
        """
        if self._validation_policy is None:
            try:
                self._validation_policy = ValidationPolicy(**self._config_data.get("validation", {}))
            except PydanticValidationError as e:
                raise ValueError(f"Invalid validation policy: {e}")
        return self._validation_policy

    def get_database_config(self) -> DatabaseConfig:
        """Get the visit store configuration."""
        if self._database_config is None:
            db_config_data = {
                k: v for k, v in self._config_data.get("database", {}).items() if v is not None
            }
            self._database_config = DatabaseConfig(**db_config_data)
        return self._database_config


# ============================================================================
# Convenience Functions
# ============================================================================

def get_database_config() -> DatabaseConfig:
    """Load the visit store configuration from environment variables.

    Defaults to an in-memory DuckDB database if no path is configured.
    """
    return ConfigManager.from_environment().get_database_config()
