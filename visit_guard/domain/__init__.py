"""Domain layer for Visit-Guard.

This module contains the visit models and the business rules that decide
whether a visit may be persisted. All domain models are pure Python with no
external dependencies beyond Pydantic.
"""

from .visit_models import (
    AttributeDatatype,
    Encounter,
    Patient,
    Visit,
    VisitAttribute,
    VisitAttributeType,
    VisitType,
)
from .errors import FieldError, ValidationErrors
from .policy import ValidationPolicy

__all__ = [
    "AttributeDatatype",
    "Encounter",
    "Patient",
    "Visit",
    "VisitAttribute",
    "VisitAttributeType",
    "VisitType",
    "FieldError",
    "ValidationErrors",
    "ValidationPolicy",
]
