"""Visit repository adapters for Visit-Guard.

This module contains the adapters implementing VisitRepositoryPort.
"""

import logging
from typing import Optional

from visit_guard.adapters.repositories.duckdb_repository import DuckDBVisitRepository
from visit_guard.adapters.repositories.in_memory import InMemoryVisitRepository
from visit_guard.domain.ports import VisitRepositoryPort
from visit_guard.infrastructure.config_manager import DatabaseConfig, get_database_config

logger = logging.getLogger(__name__)


def create_visit_repository(db_config: Optional[DatabaseConfig] = None) -> VisitRepositoryPort:
    """Create the visit repository described by the configuration.

    Parameters:
        db_config: Database configuration (loaded from the environment if None)

    Raises:
        ValueError: If database type is unsupported
    """
    db_config = db_config or get_database_config()

    if db_config.db_type == "duckdb":
        logger.info(f"Initializing DuckDB visit repository with path: {db_config.db_path or ':memory:'}")
        return DuckDBVisitRepository(db_config=db_config)
    raise ValueError(f"Unsupported database type: {db_config.db_type}")


__all__ = ["DuckDBVisitRepository", "InMemoryVisitRepository", "create_visit_repository"]
