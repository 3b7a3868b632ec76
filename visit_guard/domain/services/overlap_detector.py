"""Visit Overlap Detection.

Interval logic used to keep a patient's non-voided visits from overlapping.

A visit spans ``[start_datetime, stop_datetime]``; an active visit (no stop
datetime) extends to +infinity. Intervals are treated as closed: two visits
where one stops at exactly the instant the other starts DO overlap.

Architecture:
    - Pure domain functions with no infrastructure dependencies
    - Operates on Visit models supplied by the repository port
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from visit_guard.domain.visit_models import Visit

logger = logging.getLogger(__name__)


def intervals_overlap(
    start_a: datetime,
    stop_a: Optional[datetime],
    start_b: datetime,
    stop_b: Optional[datetime],
) -> bool:
    """Check whether two closed intervals intersect.

    A missing stop stands for +infinity. Shared boundaries count as overlap.

    Parameters:
        start_a: Start of the first interval
        stop_a: Stop of the first interval (None = open-ended)
        start_b: Start of the second interval
        stop_b: Stop of the second interval (None = open-ended)

    Returns:
        bool: True if the intervals share at least one instant
    """
    a_reaches_b = stop_a is None or start_b <= stop_a
    b_reaches_a = stop_b is None or start_a <= stop_b
    return a_reaches_b and b_reaches_a


def visits_overlap(candidate: Visit, other: Visit) -> bool:
    """Check whether two visits overlap. Visits without a start never do."""
    if candidate.start_datetime is None or other.start_datetime is None:
        return False
    return intervals_overlap(
        candidate.start_datetime,
        candidate.stop_datetime,
        other.start_datetime,
        other.stop_datetime,
    )


def same_instant(a: Optional[datetime], b: Optional[datetime]) -> bool:
    """Compare two timestamps at second precision."""
    if a is None or b is None:
        return a is None and b is None
    return a.replace(microsecond=0) == b.replace(microsecond=0)


def is_end_visit_update(persisted: Visit, candidate: Visit) -> bool:
    """Detect the "end visit" operation.

    Ending a visit keeps its identity and start datetime and only adds a
    stop datetime to a previously active visit.

    Parameters:
        persisted: The stored version of the visit
        candidate: The version about to be saved

    Returns:
        bool: True if the candidate only closes the persisted visit
    """
    return (
        persisted.same_identity(candidate)
        and persisted.stop_datetime is None
        and candidate.stop_datetime is not None
        and same_instant(persisted.start_datetime, candidate.start_datetime)
    )


def find_overlapping_visits(candidate: Visit, history: Iterable[Visit]) -> list[Visit]:
    """Return the visits of ``history`` overlapping ``candidate``.

    The candidate's own stored version and voided visits are skipped.

    Parameters:
        candidate: Visit being validated
        history: Visits of the same patient

    Returns:
        list[Visit]: Conflicting visits, in history order
    """
    conflicts = []
    for other in history:
        if other.voided or other.same_identity(candidate):
            continue
        if visits_overlap(candidate, other):
            logger.debug(
                f"Visit {candidate.uuid} overlaps visit {other.uuid} "
                f"({other.start_datetime} - {other.stop_datetime or 'active'})"
            )
            conflicts.append(other)
    return conflicts
