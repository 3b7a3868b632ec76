"""Attribute Validation for Customizable Visits.

Checks the typed attributes attached to a visit against the configured
attribute types: occurrence bounds (``min_occurs``/``max_occurs``) and
value datatypes. Violations are structural and abort the whole operation,
so they are raised instead of being collected as field errors.
"""

import logging
from datetime import date, datetime
from typing import Any, Iterable

from visit_guard.domain.ports import AttributeCardinalityError, InvalidAttributeValueError
from visit_guard.domain.visit_models import AttributeDatatype, Visit, VisitAttributeType

logger = logging.getLogger(__name__)


def _is_date(value: Any) -> bool:
    if isinstance(value, (date, datetime)):
        return True
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value)
        except ValueError:
            return False
        return True
    return False


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_float(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


_DATATYPE_CHECKS = {
    AttributeDatatype.FREE_TEXT: lambda v: isinstance(v, str),
    AttributeDatatype.DATE: _is_date,
    AttributeDatatype.BOOLEAN: lambda v: isinstance(v, bool),
    AttributeDatatype.INTEGER: _is_integer,
    AttributeDatatype.FLOAT: _is_float,
}


def is_valid_value(attribute_type: VisitAttributeType, value: Any) -> bool:
    """Check whether ``value`` conforms to the datatype of ``attribute_type``."""
    if value is None:
        return False
    return _DATATYPE_CHECKS[attribute_type.datatype](value)


def count_attributes(visit: Visit, attribute_type: VisitAttributeType) -> int:
    """Count the non-voided attributes of one type on a visit."""
    return sum(1 for a in visit.active_attributes() if a.attribute_type.same_type(attribute_type))


def validate_attributes(visit: Visit, attribute_types: Iterable[VisitAttributeType]) -> None:
    """Validate the attributes of a visit.

    Every configured attribute type is checked, including types the visit
    carries no attribute of (that is how a missing mandatory attribute is
    detected).

    Parameters:
        visit: Visit whose attributes are checked
        attribute_types: All attribute types known to the system

    Raises:
        InvalidAttributeValueError: If an active attribute value does not match its datatype
        AttributeCardinalityError: If a type occurs fewer than min_occurs or more than max_occurs times
    """
    for attribute in visit.active_attributes():
        if not is_valid_value(attribute.attribute_type, attribute.value):
            logger.warning(
                f"Invalid value for attribute type '{attribute.attribute_type.name}' on visit {visit.uuid}",
                extra={"visit_uuid": visit.uuid},
            )
            raise InvalidAttributeValueError(
                attribute.attribute_type.name,
                attribute.attribute_type.datatype.value,
                attribute.value,
            )

    for attribute_type in attribute_types:
        count = count_attributes(visit, attribute_type)
        too_few = count < attribute_type.min_occurs
        too_many = attribute_type.max_occurs is not None and count > attribute_type.max_occurs
        if too_few or too_many:
            logger.warning(
                f"Visit {visit.uuid} has {count} attribute(s) of type '{attribute_type.name}'",
                extra={"visit_uuid": visit.uuid},
            )
            raise AttributeCardinalityError(
                attribute_type.name,
                count,
                attribute_type.min_occurs,
                attribute_type.max_occurs,
            )
