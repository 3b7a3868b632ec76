"""Domain services for Visit-Guard."""

from visit_guard.domain.services.attribute_validator import validate_attributes
from visit_guard.domain.services.overlap_detector import (
    find_overlapping_visits,
    intervals_overlap,
    is_end_visit_update,
)
from visit_guard.domain.services.validation_service import VisitValidationService
from visit_guard.domain.services.visit_validator import VisitValidator, validate_visit

__all__ = [
    "validate_attributes",
    "find_overlapping_visits",
    "intervals_overlap",
    "is_end_visit_update",
    "VisitValidationService",
    "VisitValidator",
    "validate_visit",
]
