"""Validation Policy.

Process-wide switches that influence visit validation. The policy is an
explicit, immutable parameter of the validator rather than global state,
so two validators with different policies can coexist (and tests never
leak a flag into each other).
"""

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_VOID_REASON_MAX_LENGTH = 255


class ValidationPolicy(BaseModel):
    """Configurable limits applied by the visit validator.

    Parameters:
        allow_overlapping_visits: When False, a patient's non-voided visits may not overlap
        void_reason_max_length: Maximum length of ``Visit.void_reason``
        estimated_birthdate_grace_ratio: Share of the patient's recorded lifespan
            (in whole years) granted as grace before an estimated birthdate
        minimum_grace_years: Grace granted before an estimated birthdate at minimum
    """

    allow_overlapping_visits: bool = Field(
        False, description="Allow overlapping visits for the same patient"
    )
    void_reason_max_length: int = Field(
        DEFAULT_VOID_REASON_MAX_LENGTH, gt=0, description="Maximum void reason length"
    )
    estimated_birthdate_grace_ratio: float = Field(
        0.5, ge=0.0, description="Share of the lifespan used as estimated-birthdate grace"
    )
    minimum_grace_years: int = Field(
        1, ge=0, description="Minimum estimated-birthdate grace in years"
    )

    model_config = ConfigDict(frozen=True)
