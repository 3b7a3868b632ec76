"""Visit Validation Service.

Entry points used by the layer that persists visits. Two flavours are offered:

    - ``validate_or_raise``: whole-object validation that raises
      VisitValidationError when any field error was collected
    - ``check``: the same validation reported as a Result, so a rejected visit
      can be told apart from an application error without exception handling

Fatal errors (attribute violations, repository failures) always propagate.
"""

import logging
from typing import Optional, Sequence

from visit_guard.domain.errors import ValidationErrors
from visit_guard.domain.policy import ValidationPolicy
from visit_guard.domain.ports import Result, VisitRepositoryPort, VisitValidationError
from visit_guard.domain.services.visit_validator import VisitValidator
from visit_guard.domain.visit_models import Visit, VisitAttributeType

logger = logging.getLogger(__name__)


class VisitValidationService:
    """Validates visits before they are persisted.

    Parameters:
        repository: Source of the patient's visit history
        policy: Validation policy
        attribute_types: All visit attribute types known to the system
    """

    def __init__(
        self,
        repository: Optional[VisitRepositoryPort] = None,
        policy: Optional[ValidationPolicy] = None,
        attribute_types: Sequence[VisitAttributeType] = (),
    ):
        self.validator = VisitValidator(repository, policy, attribute_types)

    def collect_errors(self, visit: Visit) -> ValidationErrors:
        errors = ValidationErrors("visit")
        self.validator.validate(visit, errors)
        return errors

    def validate_or_raise(self, visit: Visit) -> Visit:
        """Validate ``visit`` and return it unchanged when valid.

        Raises:
            VisitValidationError: If any field error was collected
            AttributeValidationError: If the attributes are structurally invalid
            RepositoryError: If the visit history cannot be loaded
        """
        errors = self.collect_errors(visit)
        if errors.has_errors():
            raise VisitValidationError(errors, source=visit.uuid)
        return visit

    def check(self, visit: Visit) -> Result[Visit]:
        """Validate ``visit`` and report the outcome as a Result.

        Returns:
            Result[Visit]: Success with the visit, or failure with
                error_type="VisitValidationError" and the field errors in error_details
        """
        try:
            return Result.success_result(self.validate_or_raise(visit))
        except VisitValidationError as e:
            logger.info(f"Visit {visit.uuid} rejected: {e.errors.to_dict()}")
            return Result.failure_result(
                e,
                error_type="VisitValidationError",
                error_details={"visit_uuid": visit.uuid, "field_errors": e.errors.to_dict()},
            )
