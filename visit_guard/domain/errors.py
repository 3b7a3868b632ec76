"""Field-level Validation Errors.

This module defines the error collector the visit validator writes to.
Errors are soft: they accumulate during one validation pass and the caller
decides whether to abort persistence based on ``has_errors()``.

Message codes are stable keys (e.g. ``error.required``); rendering them into
localized text is left to the presentation layer.
"""

from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field


# Message codes
REQUIRED = "error.required"
EXCEEDED_MAX_LENGTH = "error.exceededMaxLengthOfField"
END_DATE_BEFORE_START_DATE = "Visit.error.endDateBeforeStartDate"
START_DATE_BEFORE_BIRTH_DATE = "Visit.startDateCannotFallBeforeTheBirthDateOfTheSamePatient"
VISIT_OVERLAP = "Visit.visitCannotOverlapAnotherVisitOfTheSamePatient"
ENCOUNTERS_BEFORE_START_DATE = "Visit.encountersCannotBeBeforeStartDate"
ENCOUNTERS_AFTER_STOP_DATE = "Visit.encountersCannotBeAfterStopDate"


class FieldError(BaseModel):
    """A single validation error.

    Parameters:
        field: Name of the offending field (None for object-level errors)
        code: Message code identifying the violated rule
        message: Optional default message for logs and CLI output
    """

    field: Optional[str] = Field(None, description="Offending field (None = whole object)")
    code: str = Field(..., description="Message code")
    message: Optional[str] = Field(None, description="Default message")

    model_config = ConfigDict(frozen=True)


class ValidationErrors:
    """Collector of validation errors for one object.

    Example:
        ```python
        errors = ValidationErrors("visit")
        validator.validate(visit, errors)
        if errors.has_field_error("startDatetime", VISIT_OVERLAP):
            ...
        ```
    """

    def __init__(self, object_name: str = "visit"):
        self.object_name = object_name
        self._errors: list[FieldError] = []

    def reject_value(self, field: str, code: str, message: Optional[str] = None) -> None:
        """Register an error against a field."""
        self._errors.append(FieldError(field=field, code=code, message=message))

    def reject(self, code: str, message: Optional[str] = None) -> None:
        """Register an error against the object as a whole."""
        self._errors.append(FieldError(field=None, code=code, message=message))

    def has_errors(self) -> bool:
        return bool(self._errors)

    def has_field_errors(self, field: Optional[str] = None) -> bool:
        """Check for field errors, optionally restricted to one field."""
        return any(
            e.field is not None and (field is None or e.field == field)
            for e in self._errors
        )

    def has_field_error(self, field: str, code: str) -> bool:
        """Check whether ``field`` carries an error with message code ``code``."""
        return any(e.field == field and e.code == code for e in self._errors)

    def get_field_errors(self, field: Optional[str] = None) -> list[FieldError]:
        return [
            e for e in self._errors
            if e.field is not None and (field is None or e.field == field)
        ]

    @property
    def field_errors(self) -> list[FieldError]:
        return self.get_field_errors()

    @property
    def global_errors(self) -> list[FieldError]:
        return [e for e in self._errors if e.field is None]

    @property
    def error_count(self) -> int:
        return len(self._errors)

    def to_dict(self) -> dict[str, list[str]]:
        """Group message codes by field name (``"*"`` for object-level errors)."""
        grouped: dict[str, list[str]] = {}
        for e in self._errors:
            grouped.setdefault(e.field or "*", []).append(e.code)
        return grouped

    def __iter__(self) -> Iterator[FieldError]:
        return iter(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def __repr__(self) -> str:
        return f"ValidationErrors(object_name={self.object_name!r}, errors={self.to_dict()!r})"
