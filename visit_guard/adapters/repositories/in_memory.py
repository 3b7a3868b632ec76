"""In-memory Visit Repository.

Dictionary-backed implementation of VisitRepositoryPort, used by tests and
by the CLI when a visit history is supplied as a JSON file.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from visit_guard.domain.ports import VisitRepositoryPort
from visit_guard.domain.visit_models import Visit

logger = logging.getLogger(__name__)


def _start_sort_key(visit: Visit):
    # Visits without a start sort last
    return (visit.start_datetime is None, visit.start_datetime or datetime.min)


class InMemoryVisitRepository(VisitRepositoryPort):
    """Visit repository keeping visits in a dictionary keyed by uuid.

    Parameters:
        visits: Initial visits
    """

    def __init__(self, visits: Optional[Iterable[Visit]] = None):
        self._visits: dict[str, Visit] = {}
        for visit in visits or []:
            self.add(visit)

    def add(self, visit: Visit) -> Visit:
        """Store a visit, replacing any visit with the same uuid."""
        self._visits[visit.uuid] = visit
        return visit

    def get(self, uuid: str) -> Optional[Visit]:
        return self._visits.get(uuid)

    def find_visits_for_patient(self, patient_id: int, include_voided: bool = False) -> list[Visit]:
        visits = [
            v for v in self._visits.values()
            if v.patient is not None
            and v.patient.patient_id == patient_id
            and (include_voided or not v.voided)
        ]
        logger.debug(f"Found {len(visits)} visit(s) for patient {patient_id}")
        return sorted(visits, key=_start_sort_key)

    def __len__(self) -> int:
        return len(self._visits)
