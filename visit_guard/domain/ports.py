"""Domain Ports - Abstract Contracts and Error Types.

This module defines the Port interfaces (abstract contracts) that Adapters must
implement, the Result type used to report outcomes without exceptions, and the
exception hierarchy for fatal validation failures.

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Adapters (in-memory, DuckDB, ...) implement these ports
    - Domain Core is isolated from storage specifics
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union, TYPE_CHECKING

from visit_guard.domain.visit_models import Visit

if TYPE_CHECKING:
    from visit_guard.domain.errors import ValidationErrors

# Type variable for Result generic
T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error information (only present if success=False)
        error_type: Type of error (VisitValidationError, RepositoryError, etc.)
        error_details: Additional error context (field errors, visit uuid, etc.)

    Example:
        ```python
        result = service.check(visit)
        if result.is_success():
            save(result.value)
        else:
            report(result.error, result.error_details)
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result."""
        return cls(
            success=True,
            value=value,
            error=None,
            error_type=None,
            error_details=None
        )

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error (defaults to the exception class name)
            error_details: Additional context

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class VisitGuardError(Exception):
    """Base exception for all visit validation errors that abort an operation.

    Soft business-rule violations are never raised; they are collected in
    ``ValidationErrors``. Subclasses of this exception signal conditions the
    caller must treat as application errors.
    """
    pass


class RepositoryError(VisitGuardError):
    """Raised when the visit repository cannot answer a query.

    Attributes:
        operation: Repository operation that failed (e.g. "find_visits_for_patient")
        details: Additional error context
    """

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}


class AttributeValidationError(VisitGuardError):
    """Raised when the attributes attached to a visit are structurally invalid.

    Attributes:
        attribute_type: Name of the offending attribute type
        details: Additional error context
    """

    def __init__(self, message: str, attribute_type: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.attribute_type = attribute_type
        self.details = details or {}


class AttributeCardinalityError(AttributeValidationError):
    """Raised when a visit carries too few or too many attributes of one type."""

    def __init__(self, attribute_type: str, count: int, min_occurs: int, max_occurs: Optional[int]):
        bounds = f"{min_occurs}..{max_occurs if max_occurs is not None else '*'}"
        super().__init__(
            f"Visit has {count} attribute(s) of type '{attribute_type}', expected {bounds}",
            attribute_type=attribute_type,
            details={"count": count, "min_occurs": min_occurs, "max_occurs": max_occurs},
        )
        self.count = count
        self.min_occurs = min_occurs
        self.max_occurs = max_occurs


class InvalidAttributeValueError(AttributeValidationError):
    """Raised when an attribute value does not match its type's datatype."""

    def __init__(self, attribute_type: str, datatype: str, value):
        super().__init__(
            f"Value {value!r} is not a valid {datatype} for attribute type '{attribute_type}'",
            attribute_type=attribute_type,
            details={"datatype": datatype},
        )
        self.datatype = datatype
        self.value = value


class VisitValidationError(VisitGuardError):
    """Raised by whole-object validation when a visit has field errors.

    Attributes:
        errors: The collected ValidationErrors
    """

    def __init__(self, errors: "ValidationErrors", source: Optional[str] = None):
        fields = ", ".join(f"{field}: {', '.join(codes)}" for field, codes in errors.to_dict().items())
        super().__init__(f"Visit failed validation ({fields})")
        self.errors = errors
        self.source = source


# ============================================================================
# Ports
# ============================================================================

class VisitRepositoryPort(ABC):
    """Abstract contract for looking up a patient's visit history.

    The validator only reads from the repository. Adapters must raise
    RepositoryError (not return an empty list) when the lookup itself fails,
    so an unavailable store is never mistaken for a patient without visits.

    Example Usage:
        ```python
        class InMemoryVisitRepository(VisitRepositoryPort):
            def find_visits_for_patient(self, patient_id, include_voided=False):
                ...

        validator = VisitValidator(repository=InMemoryVisitRepository())
        ```
    """

    @abstractmethod
    def find_visits_for_patient(self, patient_id: int, include_voided: bool = False) -> list[Visit]:
        """Return the visits of a patient ordered by start datetime.

        Parameters:
            patient_id: Patient identifier
            include_voided: Whether voided visits are returned too

        Returns:
            list[Visit]: The patient's visits (possibly empty)

        Raises:
            RepositoryError: If the underlying store cannot be queried
        """
        pass

    def close(self) -> None:
        """Release resources held by the repository (no-op by default)."""
        return None
