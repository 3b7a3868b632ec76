"""Visit Validator.

This module enforces the business rules a visit must satisfy before it can be
persisted. The rules are independent functions run in sequence against one
visit; each one registers field-scoped errors in a ValidationErrors collector.

Rules (in evaluation order):
    1. Required fields: patient, visit type and start datetime
    2. Stop datetime not before start datetime
    3. Start datetime not before the patient's birthdate (with a grace period
       for estimated birthdates)
    4. Encounters of the visit fall within its start and stop datetimes
    5. No overlap with another non-voided visit of the same patient
    6. Attribute occurrence bounds and datatypes (raises, see below)
    7. Field lengths

Error Handling:
    - Business-rule violations are collected, never raised
    - Attribute violations raise AttributeValidationError and abort validation
    - Repository failures raise RepositoryError

Architecture:
    - Pure domain service; the visit history is read through VisitRepositoryPort
    - The validation policy is an explicit parameter, not global state
    - Stateless across calls: one validator may be shared between threads
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Callable, Optional, Sequence

from visit_guard.domain import errors as codes
from visit_guard.domain.errors import ValidationErrors
from visit_guard.domain.policy import ValidationPolicy
from visit_guard.domain.ports import RepositoryError, VisitRepositoryPort
from visit_guard.domain.services.attribute_validator import validate_attributes
from visit_guard.domain.services.overlap_detector import find_overlapping_visits, is_end_visit_update
from visit_guard.domain.visit_models import Patient, Visit, VisitAttributeType

logger = logging.getLogger(__name__)

# Field names reported in ValidationErrors
PATIENT = "patient"
VISIT_TYPE = "visitType"
START_DATETIME = "startDatetime"
STOP_DATETIME = "stopDatetime"
VOID_REASON = "voidReason"


@dataclass(frozen=True)
class ValidationContext:
    """Collaborators shared by all rules during one validation."""
    policy: ValidationPolicy
    repository: Optional[VisitRepositoryPort] = None
    attribute_types: tuple[VisitAttributeType, ...] = field(default_factory=tuple)


Rule = Callable[[Visit, ValidationErrors, ValidationContext], None]


# ============================================================================
# Date helpers
# ============================================================================

def whole_years_between(start: date, end: date) -> int:
    """Number of complete years from ``start`` to ``end`` (never negative)."""
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return max(years, 0)


def subtract_years(d: date, years: int) -> date:
    """Move a date back by whole calendar years (Feb 29 falls back to Feb 28)."""
    try:
        return d.replace(year=d.year - years)
    except ValueError:
        return d.replace(year=d.year - years, day=28)


def earliest_start_date(patient: Patient, policy: ValidationPolicy) -> Optional[date]:
    """Compute the earliest date a visit of ``patient`` may start on.

    An exact birthdate is its own floor. An estimated birthdate is moved back by
    a grace period of ``policy.minimum_grace_years``, or by
    ``policy.estimated_birthdate_grace_ratio`` of the patient's lifespan in
    whole years when a death date is recorded and that is larger.

    Returns:
        The floor date, or None when the birthdate is unknown
    """
    if patient.birthdate is None:
        return None
    if not patient.birthdate_estimated:
        return patient.birthdate

    grace_years = policy.minimum_grace_years
    if patient.death_date is not None:
        lifespan = whole_years_between(patient.birthdate, patient.death_date)
        grace_years = max(grace_years, int(lifespan * policy.estimated_birthdate_grace_ratio))
    return subtract_years(patient.birthdate, grace_years)


# ============================================================================
# Rules
# ============================================================================

def check_required_fields(visit: Visit, errors: ValidationErrors, context: ValidationContext) -> None:
    if visit.patient is None:
        errors.reject_value(PATIENT, codes.REQUIRED, "Patient is required")
    if visit.visit_type is None:
        errors.reject_value(VISIT_TYPE, codes.REQUIRED, "Visit type is required")
    if visit.start_datetime is None:
        errors.reject_value(START_DATETIME, codes.REQUIRED, "Start datetime is required")


def check_stop_after_start(visit: Visit, errors: ValidationErrors, context: ValidationContext) -> None:
    if visit.start_datetime is None or visit.stop_datetime is None:
        return
    if visit.stop_datetime < visit.start_datetime:
        errors.reject_value(
            STOP_DATETIME,
            codes.END_DATE_BEFORE_START_DATE,
            "Stop datetime cannot be before start datetime",
        )


def check_start_after_birthdate(visit: Visit, errors: ValidationErrors, context: ValidationContext) -> None:
    """Reject visits starting before the patient was (plausibly) born."""
    if visit.patient is None or visit.start_datetime is None:
        return
    floor = earliest_start_date(visit.patient, context.policy)
    if floor is None:
        return
    floor_datetime = datetime.combine(floor, time.min)
    if visit.start_datetime < floor_datetime:
        errors.reject_value(
            START_DATETIME,
            codes.START_DATE_BEFORE_BIRTH_DATE,
            f"Start datetime cannot fall before {floor.isoformat()}",
        )


def check_encounters_within_visit(visit: Visit, errors: ValidationErrors, context: ValidationContext) -> None:
    encounters = visit.active_encounters()
    if not encounters:
        return
    earliest = min(e.encounter_datetime for e in encounters)
    latest = max(e.encounter_datetime for e in encounters)
    if visit.start_datetime is not None and earliest < visit.start_datetime:
        errors.reject_value(
            START_DATETIME,
            codes.ENCOUNTERS_BEFORE_START_DATE,
            "Visit cannot start after one of its encounters",
        )
    if visit.stop_datetime is not None and latest > visit.stop_datetime:
        errors.reject_value(
            STOP_DATETIME,
            codes.ENCOUNTERS_AFTER_STOP_DATE,
            "Visit cannot stop before one of its encounters",
        )


def check_no_overlap(visit: Visit, errors: ValidationErrors, context: ValidationContext) -> None:
    """Reject a visit overlapping another non-voided visit of the same patient.

    Ending an active visit (same identity and start, stop newly set) is never
    rejected, whatever the other visits look like.
    """
    if context.policy.allow_overlapping_visits:
        return
    if visit.voided or visit.patient is None or visit.start_datetime is None:
        return
    if visit.patient.patient_id is None:
        # An unsaved patient has no visit history
        return
    if context.repository is None:
        raise RepositoryError(
            "A visit repository is required to check for overlapping visits",
            operation="find_visits_for_patient",
        )

    log_context = {"visit_uuid": visit.uuid, "patient_id": visit.patient.patient_id}
    try:
        history = context.repository.find_visits_for_patient(visit.patient.patient_id, include_voided=False)
    except RepositoryError as e:
        logger.error(
            f"Failed to load visit history for patient {visit.patient.patient_id}: {e}",
            exc_info=True,
            extra=log_context,
        )
        raise

    persisted = next((v for v in history if v.same_identity(visit)), None)
    if persisted is not None and is_end_visit_update(persisted, visit):
        logger.debug(f"Visit {visit.uuid} is being ended, skipping overlap check")
        return

    conflicts = find_overlapping_visits(visit, history)
    if conflicts:
        logger.info(
            f"Visit {visit.uuid} overlaps {len(conflicts)} visit(s) of patient {visit.patient.patient_id}",
            extra=log_context,
        )
        errors.reject_value(
            START_DATETIME,
            codes.VISIT_OVERLAP,
            "Visit cannot overlap another visit of the same patient",
        )


def check_attributes(visit: Visit, errors: ValidationErrors, context: ValidationContext) -> None:
    validate_attributes(visit, context.attribute_types)


def check_field_lengths(visit: Visit, errors: ValidationErrors, context: ValidationContext) -> None:
    max_length = context.policy.void_reason_max_length
    if visit.void_reason is not None and len(visit.void_reason) > max_length:
        errors.reject_value(
            VOID_REASON,
            codes.EXCEEDED_MAX_LENGTH,
            f"Void reason exceeds {max_length} characters",
        )


RULES: tuple[Rule, ...] = (
    check_required_fields,
    check_stop_after_start,
    check_start_after_birthdate,
    check_encounters_within_visit,
    check_no_overlap,
    check_attributes,
    check_field_lengths,
)


# ============================================================================
# Validator
# ============================================================================

class VisitValidator:
    """Validates visits against the visit business rules.

    Parameters:
        repository: Source of the patient's visit history (needed for the overlap rule)
        policy: Validation policy (defaults disallow overlapping visits)
        attribute_types: All visit attribute types known to the system

    Example Usage:
        ```python
        validator = VisitValidator(repository=InMemoryVisitRepository(history))
        errors = ValidationErrors()
        validator.validate(visit, errors)
        if errors.has_errors():
            reject(visit, errors)
        ```
    """

    def __init__(
        self,
        repository: Optional[VisitRepositoryPort] = None,
        policy: Optional[ValidationPolicy] = None,
        attribute_types: Sequence[VisitAttributeType] = (),
    ):
        self.context = ValidationContext(
            policy=policy or ValidationPolicy(),
            repository=repository,
            attribute_types=tuple(attribute_types),
        )

    @property
    def policy(self) -> ValidationPolicy:
        return self.context.policy

    def supports(self, obj: object) -> bool:
        return isinstance(obj, Visit)

    def validate(self, visit: Visit, errors: ValidationErrors) -> None:
        """Run every rule against ``visit``, registering violations in ``errors``.

        Raises:
            TypeError: If ``visit`` is not a Visit
            AttributeValidationError: If the visit's attributes are structurally invalid
            RepositoryError: If the visit history cannot be loaded
        """
        if not self.supports(visit):
            raise TypeError(f"VisitValidator cannot validate {type(visit).__name__}")

        before = errors.error_count
        for rule in RULES:
            rule(visit, errors, self.context)

        found = errors.error_count - before
        if found:
            logger.debug(f"Visit {visit.uuid} failed validation with {found} error(s): {errors.to_dict()}")


def validate_visit(
    visit: Visit,
    repository: Optional[VisitRepositoryPort] = None,
    policy: Optional[ValidationPolicy] = None,
    attribute_types: Sequence[VisitAttributeType] = (),
) -> ValidationErrors:
    """Validate a visit and return the collected errors."""
    errors = ValidationErrors("visit")
    VisitValidator(repository, policy, attribute_types).validate(visit, errors)
    return errors
