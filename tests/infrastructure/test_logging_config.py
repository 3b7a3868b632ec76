"""Tests for logging configuration."""

import io
import json
import logging
import sys
from datetime import date, datetime

import pytest

from visit_guard.adapters.repositories.in_memory import InMemoryVisitRepository
from visit_guard.domain.ports import AttributeCardinalityError
from visit_guard.domain.services.visit_validator import validate_visit
from visit_guard.domain.visit_models import Patient, Visit, VisitAttributeType, VisitType
from visit_guard.infrastructure.logging_config import StructuredFormatter, setup_logging


@pytest.fixture
def restore_root_logger():
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield root_logger
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


def _record(message, **extra):
    record = logging.LogRecord("visit_guard.test", logging.WARNING, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """Test JSON log formatting."""

    def test_formats_record_as_json(self):
        data = json.loads(StructuredFormatter().format(_record("Visit rejected")))

        assert data["level"] == "WARNING"
        assert data["logger"] == "visit_guard.test"
        assert data["message"] == "Visit rejected"
        assert "timestamp" in data

    def test_includes_visit_context(self):
        record = _record("Visit rejected", visit_uuid="abc", patient_id=42)

        data = json.loads(StructuredFormatter().format(record))

        assert data["visit_uuid"] == "abc"
        assert data["patient_id"] == 42

    def test_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord(
                "visit_guard.test", logging.ERROR, __file__, 10, "failed", None, sys.exc_info()
            )

        data = json.loads(StructuredFormatter().format(record))

        assert "ValueError: boom" in data["exception"]


class TestSetupLogging:
    """Test root logger setup."""

    def test_plain_text_logging(self, restore_root_logger):
        stream = io.StringIO()
        setup_logging(log_level="DEBUG", stream=stream)

        logging.getLogger("visit_guard.test").debug("checking visit")

        assert restore_root_logger.level == logging.DEBUG
        assert "visit_guard.test - DEBUG - checking visit" in stream.getvalue()

    def test_json_logging(self, restore_root_logger):
        stream = io.StringIO()
        setup_logging(use_json=True, stream=stream)

        logging.getLogger("visit_guard.test").info("visit stored")

        assert json.loads(stream.getvalue().strip())["message"] == "visit stored"

    def test_replaces_existing_handlers(self, restore_root_logger):
        setup_logging(stream=io.StringIO())
        setup_logging(stream=io.StringIO())

        assert len(restore_root_logger.handlers) == 1

    def test_unknown_level_falls_back_to_info(self, restore_root_logger):
        setup_logging(log_level="chatty", stream=io.StringIO())

        assert restore_root_logger.level == logging.INFO


class TestVisitContextInLogs:
    """Test that validation log records carry the visit context."""

    @pytest.fixture
    def patient(self):
        return Patient(patient_id=42, birthdate=date(1980, 1, 1))

    @pytest.fixture
    def repository(self, patient):
        return InMemoryVisitRepository([
            Visit(
                patient=patient,
                visit_type=VisitType(name="Outpatient"),
                start_datetime=datetime(2014, 1, 4, 10, 0),
                stop_datetime=datetime(2014, 1, 10, 14, 0),
            )
        ])

    def test_overlap_record_has_visit_and_patient(self, caplog, repository, patient):
        candidate = Visit(patient=patient, visit_type=VisitType(name="Outpatient"), start_datetime=datetime(2014, 1, 5))
        caplog.set_level(logging.INFO, logger="visit_guard")

        validate_visit(candidate, repository)

        record = next(r for r in caplog.records if "overlaps" in r.getMessage())
        data = json.loads(StructuredFormatter().format(record))
        assert data["visit_uuid"] == candidate.uuid
        assert data["patient_id"] == 42

    def test_attribute_record_has_visit(self, caplog, repository, patient):
        attribute_type = VisitAttributeType(name="Audit Date", min_occurs=1)
        candidate = Visit(patient=patient, visit_type=VisitType(name="Outpatient"), start_datetime=datetime(2014, 2, 1))
        caplog.set_level(logging.WARNING, logger="visit_guard")

        with pytest.raises(AttributeCardinalityError):
            validate_visit(candidate, repository, attribute_types=[attribute_type])

        record = next(r for r in caplog.records if "Audit Date" in r.getMessage())
        assert record.visit_uuid == candidate.uuid
