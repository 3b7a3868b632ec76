"""Visit Domain Models.

This module defines the domain models inspected by the visit validator:
the visit itself, the patient it belongs to, its visit type, the typed
attributes attached to it and the encounters recorded during it.

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Models are validated by Pydantic V2 on construction
    - Follows Hexagonal Architecture: Domain Core is isolated from Adapters

Note:
    Required visit fields (patient, visit type, start datetime) are Optional
    here on purpose. A visit missing them must still be representable so the
    validator can report each missing field instead of failing construction.

    Timezone-aware datetimes are converted to naive UTC on construction and
    assignment, so visits, encounters and stored history always compare.
"""

from uuid import uuid4
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AttributeDatatype(str, Enum):
    """Datatypes a visit attribute value can be declared with."""
    FREE_TEXT = "free_text"
    DATE = "date"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"


def _truncate_to_date(v):
    """Accept datetimes for date fields by dropping the time of day."""
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, str) and "T" in v:
        try:
            return datetime.fromisoformat(v).date()
        except ValueError:
            # Let Pydantic report the malformed value
            return v
    return v


def _to_naive_utc(v):
    """Convert aware datetimes to naive UTC so all timestamps compare."""
    if isinstance(v, datetime) and v.tzinfo is not None:
        return v.astimezone(timezone.utc).replace(tzinfo=None)
    return v


class Patient(BaseModel):
    """Subset of the patient record relevant to visit validation.

    Parameters:
        patient_id: Persistence identifier (None for an unsaved patient)
        birthdate: Date of birth, if known
        birthdate_estimated: Whether the birthdate is an estimate
        death_date: Date of death, if recorded
    """

    patient_id: Optional[int] = Field(None, description="Patient identifier")
    birthdate: Optional[date] = Field(None, description="Date of birth")
    birthdate_estimated: bool = Field(False, description="Whether the birthdate is estimated")
    death_date: Optional[date] = Field(None, description="Date of death")

    @field_validator("birthdate", "death_date", mode="before")
    @classmethod
    def truncate_datetimes(cls, v):
        return _truncate_to_date(v)

    model_config = ConfigDict(frozen=True)


class VisitType(BaseModel):
    """Kind of visit (outpatient, inpatient, ...)."""

    visit_type_id: Optional[int] = Field(None, description="Visit type identifier")
    name: str = Field(..., description="Visit type name")
    retired: bool = Field(False, description="Whether the visit type is retired")

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class VisitAttributeType(BaseModel):
    """Definition of an extensible attribute that may be attached to a visit.

    Parameters:
        attribute_type_id: Attribute type identifier
        name: Human readable name
        datatype: Datatype every value of this type must conform to
        min_occurs: Minimum number of non-voided attributes of this type per visit
        max_occurs: Maximum number per visit (None means unbounded)
    """

    attribute_type_id: Optional[int] = Field(None, description="Attribute type identifier")
    name: str = Field(..., description="Attribute type name")
    datatype: AttributeDatatype = Field(
        AttributeDatatype.FREE_TEXT, description="Datatype of attribute values"
    )
    min_occurs: int = Field(0, ge=0, description="Minimum occurrences per visit")
    max_occurs: Optional[int] = Field(None, ge=0, description="Maximum occurrences per visit (None = unbounded)")

    def same_type(self, other: "VisitAttributeType") -> bool:
        """Compare by identifier when both have one, by name otherwise."""
        if self.attribute_type_id is not None and other.attribute_type_id is not None:
            return self.attribute_type_id == other.attribute_type_id
        return self.name == other.name

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class VisitAttribute(BaseModel):
    """A typed value attached to a visit."""

    attribute_type: VisitAttributeType = Field(..., description="Attribute type")
    value: Any = Field(None, description="Typed attribute value")
    voided: bool = Field(False, description="Whether the attribute is voided")

    model_config = ConfigDict(frozen=True)


class Encounter(BaseModel):
    """An encounter recorded during a visit."""

    encounter_id: Optional[int] = Field(None, description="Encounter identifier")
    encounter_datetime: datetime = Field(..., description="When the encounter took place")
    voided: bool = Field(False, description="Whether the encounter is voided")

    @field_validator("encounter_datetime")
    @classmethod
    def normalize_timezone(cls, v):
        return _to_naive_utc(v)

    model_config = ConfigDict(frozen=True)


class Visit(BaseModel):
    """A bounded or open-ended span of time during which a patient is under care.

    Visits are constructed by the service layer from user or API input,
    validated, then persisted or rejected. Attributes are added to the
    in-memory visit before validation, so the model is mutable.

    Parameters:
        visit_id: Persistence identifier (None until the visit is saved)
        uuid: Stable identity of the visit
        patient: Patient the visit belongs to (required for validity)
        visit_type: Kind of visit (required for validity)
        start_datetime: Start of the visit (required for validity)
        stop_datetime: End of the visit (None while the visit is active)
        void_reason: Reason the visit was voided
        voided: Whether the visit is voided (soft-deleted)
        attributes: Attributes attached to the visit
        encounters: Encounters recorded during the visit
    """

    visit_id: Optional[int] = Field(None, description="Visit identifier")
    uuid: str = Field(default_factory=lambda: str(uuid4()), description="Visit identity")
    patient: Optional[Patient] = Field(None, description="Patient of the visit")
    visit_type: Optional[VisitType] = Field(None, description="Visit type")
    start_datetime: Optional[datetime] = Field(None, description="Visit start")
    stop_datetime: Optional[datetime] = Field(None, description="Visit stop (None = active)")
    void_reason: Optional[str] = Field(None, description="Reason for voiding")
    voided: bool = Field(False, description="Whether the visit is voided")
    attributes: list[VisitAttribute] = Field(default_factory=list, description="Visit attributes")
    encounters: list[Encounter] = Field(default_factory=list, description="Encounters of the visit")

    @field_validator("start_datetime", "stop_datetime")
    @classmethod
    def normalize_timezone(cls, v):
        return _to_naive_utc(v)

    def add_attribute(self, attribute: VisitAttribute) -> None:
        """Attach an attribute to this visit."""
        self.attributes.append(attribute)

    def active_attributes(self) -> list[VisitAttribute]:
        """Return the non-voided attributes of this visit."""
        return [a for a in self.attributes if not a.voided]

    def active_encounters(self) -> list[Encounter]:
        """Return the non-voided encounters of this visit."""
        return [e for e in self.encounters if not e.voided]

    def is_active(self) -> bool:
        """A visit without a stop datetime is still active."""
        return self.stop_datetime is None

    def same_identity(self, other: "Visit") -> bool:
        """Check whether two visit objects represent the same stored visit.

        Visits are identified by uuid; a matching persistence id also counts,
        so a copy carrying only the id is still recognised.
        """
        if self.uuid == other.uuid:
            return True
        return self.visit_id is not None and self.visit_id == other.visit_id

    model_config = ConfigDict(validate_assignment=True)
