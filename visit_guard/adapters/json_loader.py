"""JSON Loader for visits and attribute types.

Reads the JSON documents accepted by the CLI into domain models. The
documents use the field names of the domain models, e.g.::

    {
        "uuid": "c2639863-cbbe-44bb-986d-8a4820f8ae14",
        "patient": {"patient_id": 42, "birthdate": "1974-05-08"},
        "visit_type": {"visit_type_id": 1, "name": "Outpatient"},
        "start_datetime": "2014-01-04T10:00:00",
        "stop_datetime": null
    }
"""

import json
import logging
from pathlib import Path
from typing import Any, Union

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from visit_guard.domain.visit_models import Visit, VisitAttributeType

logger = logging.getLogger(__name__)

_VISIT_LIST = TypeAdapter(list[Visit])
_ATTRIBUTE_TYPE_LIST = TypeAdapter(list[VisitAttributeType])


class LoaderError(ValueError):
    """Raised when a JSON document cannot be read into domain models.

    Attributes:
        source: The file that failed to load
    """

    def __init__(self, message: str, source: str):
        super().__init__(message)
        self.source = source


def _read_json(path: Union[str, Path]) -> Any:
    source = Path(path)
    if not source.exists():
        raise LoaderError(f"File not found: {source}", source=str(source))
    try:
        with open(source, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise LoaderError(f"Invalid JSON in {source}: {e}", source=str(source))


def load_visit(path: Union[str, Path]) -> Visit:
    """Load a single visit from a JSON object."""
    data = _read_json(path)
    try:
        return Visit.model_validate(data)
    except PydanticValidationError as e:
        raise LoaderError(f"Invalid visit in {path}: {e}", source=str(path))


def load_visits(path: Union[str, Path]) -> list[Visit]:
    """Load a list of visits from a JSON array (or an object with a "visits" key)."""
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("visits", [])
    try:
        visits = _VISIT_LIST.validate_python(data)
    except PydanticValidationError as e:
        raise LoaderError(f"Invalid visit list in {path}: {e}", source=str(path))
    logger.debug(f"Loaded {len(visits)} visit(s) from {path}")
    return visits


def load_attribute_types(path: Union[str, Path]) -> list[VisitAttributeType]:
    """Load visit attribute types from a JSON array."""
    data = _read_json(path)
    try:
        return _ATTRIBUTE_TYPE_LIST.validate_python(data)
    except PydanticValidationError as e:
        raise LoaderError(f"Invalid attribute types in {path}: {e}", source=str(path))
