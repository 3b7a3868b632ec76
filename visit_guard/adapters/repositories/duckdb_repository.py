"""DuckDB Visit Repository.

This adapter implements VisitRepositoryPort on top of DuckDB, an in-process
database. It stores the visit fields the validator inspects together with
the patient dates needed for the birthdate rule.

Architecture:
    - Implements VisitRepositoryPort (Hexagonal Architecture)
    - Isolated from domain core - only depends on ports and models
    - Query results are read through pandas DataFrames
"""

import logging
from pathlib import Path
from typing import Any, Optional

import duckdb
import pandas as pd

from visit_guard.domain.ports import RepositoryError, Result, VisitRepositoryPort
from visit_guard.domain.visit_models import Patient, Visit, VisitType
from visit_guard.infrastructure.config_manager import DatabaseConfig

logger = logging.getLogger(__name__)


def _value(v: Any) -> Any:
    """Convert a DataFrame cell to a plain Python value (NULL/NaN/NaT -> None)."""
    if v is None:
        return None
    try:
        if pd.isna(v):
            return None
    except (TypeError, ValueError):
        pass
    if isinstance(v, pd.Timestamp):
        return v.to_pydatetime()
    return v


def _int_or_none(v: Any) -> Optional[int]:
    v = _value(v)
    return None if v is None else int(v)


class DuckDBVisitRepository(VisitRepositoryPort):
    """DuckDB implementation of VisitRepositoryPort.

    Parameters:
        db_config: DatabaseConfig from configuration manager (preferred)
        db_path: Path to DuckDB database file (or ':memory:' for in-memory)

    Example Usage:
        ```python
        repository = DuckDBVisitRepository(db_path="data/visits.duckdb")
        repository.save_visit(visit)
        history = repository.find_visits_for_patient(42)
        repository.close()
        ```
    """

    def __init__(self, db_config: Optional[DatabaseConfig] = None, db_path: Optional[str] = None):
        if db_config:
            if db_config.db_type != "duckdb":
                raise RepositoryError(
                    f"DatabaseConfig type '{db_config.db_type}' does not match DuckDB repository",
                    operation="__init__"
                )
            self.db_path = db_config.db_path or ":memory:"
        else:
            self.db_path = db_path or ":memory:"

        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialized = False

        if self.db_path != ":memory:":
            db_path_obj = Path(self.db_path)
            if not db_path_obj.parent.exists():
                raise RepositoryError(
                    f"Database directory does not exist: {db_path_obj.parent}",
                    operation="__init__"
                )

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create the DuckDB connection."""
        if self._connection is None:
            try:
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"Connected to DuckDB database: {self.db_path}")
            except Exception as e:
                raise RepositoryError(
                    f"Failed to connect to DuckDB: {str(e)}",
                    operation="connect",
                    details={"db_path": self.db_path}
                )
        return self._connection

    def initialize_schema(self) -> Result[None]:
        """Create the patients and visits tables if they do not exist.

        Returns:
            Result[None]: Success or failure result
        """
        try:
            conn = self._get_connection()

            conn.execute("""
                CREATE TABLE IF NOT EXISTS patients (
                    patient_id INTEGER PRIMARY KEY,
                    birthdate DATE,
                    birthdate_estimated BOOLEAN NOT NULL DEFAULT FALSE,
                    death_date DATE
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS visits (
                    uuid VARCHAR PRIMARY KEY,
                    visit_id INTEGER,
                    patient_id INTEGER NOT NULL,
                    visit_type_id INTEGER,
                    visit_type_name VARCHAR,
                    start_datetime TIMESTAMP,
                    stop_datetime TIMESTAMP,
                    void_reason VARCHAR,
                    voided BOOLEAN NOT NULL DEFAULT FALSE
                )
            """)

            self._initialized = True
            logger.info("Visit schema initialized successfully")
            return Result.success_result(None)

        except Exception as e:
            error_msg = f"Failed to initialize schema: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                RepositoryError(error_msg, operation="initialize_schema"),
                error_type="RepositoryError"
            )

    def _ensure_schema(self) -> None:
        if not self._initialized:
            init_result = self.initialize_schema()
            if not init_result.is_success():
                raise RepositoryError(init_result.error, operation="initialize_schema")

    def save_visit(self, visit: Visit) -> Result[str]:
        """Insert or replace a visit and its patient.

        Parameters:
            visit: Visit to store; it must reference a patient with an identifier

        Returns:
            Result[str]: The visit uuid or error
        """
        if visit.patient is None or visit.patient.patient_id is None:
            return Result.failure_result(
                RepositoryError("Cannot store a visit without a patient identifier", operation="save_visit"),
                error_type="RepositoryError",
                error_details={"visit_uuid": visit.uuid}
            )

        try:
            self._ensure_schema()
            conn = self._get_connection()
            conn.begin()
            try:
                patient = visit.patient
                conn.execute(
                    "INSERT OR REPLACE INTO patients (patient_id, birthdate, birthdate_estimated, death_date) "
                    "VALUES (?, ?, ?, ?)",
                    [patient.patient_id, patient.birthdate, patient.birthdate_estimated, patient.death_date],
                )
                conn.execute(
                    """
                    INSERT OR REPLACE INTO visits (
                        uuid, visit_id, patient_id, visit_type_id, visit_type_name,
                        start_datetime, stop_datetime, void_reason, voided
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        visit.uuid,
                        visit.visit_id,
                        patient.patient_id,
                        visit.visit_type.visit_type_id if visit.visit_type else None,
                        visit.visit_type.name if visit.visit_type else None,
                        visit.start_datetime,
                        visit.stop_datetime,
                        visit.void_reason,
                        visit.voided,
                    ],
                )
                conn.commit()
            except Exception:
                conn.rollback()
                raise

            logger.debug(f"Stored visit {visit.uuid} for patient {visit.patient.patient_id}")
            return Result.success_result(visit.uuid)

        except Exception as e:
            error_msg = f"Failed to store visit {visit.uuid}: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return Result.failure_result(
                RepositoryError(error_msg, operation="save_visit"),
                error_type="RepositoryError",
                error_details={"visit_uuid": visit.uuid}
            )

    def find_visits_for_patient(self, patient_id: int, include_voided: bool = False) -> list[Visit]:
        """Return the visits of a patient ordered by start datetime.

        Raises:
            RepositoryError: If the query fails
        """
        try:
            self._ensure_schema()
            conn = self._get_connection()
            query = """
                SELECT v.uuid, v.visit_id, v.patient_id, v.visit_type_id, v.visit_type_name,
                       v.start_datetime, v.stop_datetime, v.void_reason, v.voided,
                       p.birthdate, p.birthdate_estimated, p.death_date
                FROM visits v
                LEFT JOIN patients p ON p.patient_id = v.patient_id
                WHERE v.patient_id = ?
            """
            if not include_voided:
                query += " AND NOT v.voided"
            query += " ORDER BY v.start_datetime NULLS LAST"
            df = conn.execute(query, [patient_id]).fetchdf()
        except RepositoryError:
            raise
        except Exception as e:
            raise RepositoryError(
                f"Failed to load visits for patient {patient_id}: {str(e)}",
                operation="find_visits_for_patient",
                details={"patient_id": patient_id}
            )

        return [self._row_to_visit(row) for row in df.to_dict(orient="records")]

    @staticmethod
    def _row_to_visit(row: dict) -> Visit:
        patient = Patient(
            patient_id=_int_or_none(row["patient_id"]),
            birthdate=_value(row["birthdate"]),
            birthdate_estimated=bool(_value(row["birthdate_estimated"]) or False),
            death_date=_value(row["death_date"]),
        )
        visit_type_name = _value(row["visit_type_name"])
        visit_type = None
        if visit_type_name is not None:
            visit_type = VisitType(visit_type_id=_int_or_none(row["visit_type_id"]), name=visit_type_name)
        return Visit(
            uuid=row["uuid"],
            visit_id=_int_or_none(row["visit_id"]),
            patient=patient,
            visit_type=visit_type,
            start_datetime=_value(row["start_datetime"]),
            stop_datetime=_value(row["stop_datetime"]),
            void_reason=_value(row["void_reason"]),
            voided=bool(_value(row["voided"]) or False),
        )

    def close(self) -> None:
        """Close the connection and release resources."""
        if self._connection is not None:
            try:
                self._connection.close()
                self._connection = None
                logger.info("Closed DuckDB connection")
            except Exception as e:
                logger.warning(f"Error closing connection: {str(e)}")
