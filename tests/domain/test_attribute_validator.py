"""Tests for visit attribute validation."""

from datetime import date, datetime

import pytest

from visit_guard.domain.ports import (
    AttributeCardinalityError,
    AttributeValidationError,
    InvalidAttributeValueError,
)
from visit_guard.domain.services.attribute_validator import (
    count_attributes,
    is_valid_value,
    validate_attributes,
)
from visit_guard.domain.visit_models import (
    AttributeDatatype,
    Visit,
    VisitAttribute,
    VisitAttributeType,
)


@pytest.fixture
def audit_date():
    return VisitAttributeType(
        attribute_type_id=1, name="Audit Date", datatype=AttributeDatatype.DATE, min_occurs=2, max_occurs=3
    )


@pytest.fixture
def comment():
    return VisitAttributeType(attribute_type_id=2, name="Comment")


def _visit_with(attribute_type, *values, voided=False):
    visit = Visit(start_datetime=datetime(2014, 1, 4))
    for value in values:
        visit.add_attribute(VisitAttribute(attribute_type=attribute_type, value=value, voided=voided))
    return visit


class TestIsValidValue:
    """Test datatype checks for attribute values."""

    @pytest.mark.parametrize(
        "datatype, value, expected",
        [
            (AttributeDatatype.FREE_TEXT, "text", True),
            (AttributeDatatype.FREE_TEXT, 12, False),
            (AttributeDatatype.DATE, date(2014, 1, 4), True),
            (AttributeDatatype.DATE, "2014-01-04", True),
            (AttributeDatatype.DATE, "yesterday", False),
            (AttributeDatatype.BOOLEAN, True, True),
            (AttributeDatatype.BOOLEAN, "true", False),
            (AttributeDatatype.INTEGER, 3, True),
            (AttributeDatatype.INTEGER, True, False),
            (AttributeDatatype.INTEGER, 3.5, False),
            (AttributeDatatype.FLOAT, 3.5, True),
            (AttributeDatatype.FLOAT, 3, True),
            (AttributeDatatype.FLOAT, False, False),
        ],
    )
    def test_datatypes(self, datatype, value, expected):
        attribute_type = VisitAttributeType(name="Attr", datatype=datatype)
        assert is_valid_value(attribute_type, value) is expected

    def test_none_is_never_valid(self, comment):
        assert not is_valid_value(comment, None)


class TestCountAttributes:
    """Test occurrence counting."""

    def test_counts_only_active_attributes_of_the_type(self, audit_date, comment):
        visit = _visit_with(audit_date, "2014-01-01", "2014-01-02")
        visit.add_attribute(VisitAttribute(attribute_type=audit_date, value="2014-01-03", voided=True))
        visit.add_attribute(VisitAttribute(attribute_type=comment, value="note"))

        assert count_attributes(visit, audit_date) == 2
        assert count_attributes(visit, comment) == 1

    def test_types_without_id_match_by_name(self):
        configured = VisitAttributeType(name="Comment")
        attached = VisitAttributeType(name="Comment")
        visit = _visit_with(attached, "note")

        assert count_attributes(visit, configured) == 1


class TestValidateAttributes:
    """Test whole-visit attribute validation."""

    def test_right_number_of_occurrences(self, audit_date):
        validate_attributes(_visit_with(audit_date, "2014-01-01", "2014-01-02"), [audit_date])
        validate_attributes(_visit_with(audit_date, "2014-01-01", "2014-01-02", "2014-01-03"), [audit_date])

    def test_too_few_occurrences(self, audit_date):
        with pytest.raises(AttributeCardinalityError) as exc_info:
            validate_attributes(_visit_with(audit_date, "2014-01-01"), [audit_date])

        assert exc_info.value.attribute_type == "Audit Date"
        assert exc_info.value.details == {"count": 1, "min_occurs": 2, "max_occurs": 3}

    def test_missing_mandatory_attribute(self, audit_date):
        """Test that a configured type the visit does not carry is still checked."""
        with pytest.raises(AttributeCardinalityError):
            validate_attributes(Visit(), [audit_date])

    def test_too_many_occurrences(self, audit_date):
        visit = _visit_with(audit_date, "2014-01-01", "2014-01-02", "2014-01-03", "2014-01-04")

        with pytest.raises(AttributeCardinalityError) as exc_info:
            validate_attributes(visit, [audit_date])

        assert "expected 2..3" in str(exc_info.value)

    def test_unbounded_maximum(self, comment):
        validate_attributes(_visit_with(comment, *["note"] * 10), [comment])

    def test_invalid_value(self, audit_date):
        visit = _visit_with(audit_date, "2014-01-01", "not a date")

        with pytest.raises(InvalidAttributeValueError) as exc_info:
            validate_attributes(visit, [audit_date])

        assert exc_info.value.datatype == "date"
        assert exc_info.value.value == "not a date"

    def test_voided_invalid_value_is_ignored(self, comment):
        visit = _visit_with(comment, 42, voided=True)

        validate_attributes(visit, [comment])

    def test_errors_share_a_base_class(self, audit_date):
        with pytest.raises(AttributeValidationError):
            validate_attributes(Visit(), [audit_date])

    def test_no_attribute_types_configured(self, comment):
        validate_attributes(_visit_with(comment, "note"), [])
