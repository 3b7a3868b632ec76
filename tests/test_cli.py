"""Tests for the visit-guard command line interface."""

import json

import pytest
from typer.testing import CliRunner

from visit_guard import cli
from visit_guard.cli import EXIT_FATAL, EXIT_REJECTED, app
from visit_guard.infrastructure.settings import Settings

runner = CliRunner()

PATIENT = {"patient_id": 42, "birthdate": "1980-01-01"}
VISIT_TYPE = {"visit_type_id": 1, "name": "Outpatient"}


def _visit(uuid, start, stop=None, **extra):
    data = {
        "uuid": uuid,
        "patient": PATIENT,
        "visit_type": VISIT_TYPE,
        "start_datetime": start,
        "stop_datetime": stop,
    }
    data.update(extra)
    return data


@pytest.fixture
def write_json(tmp_path):
    def _write(name, data):
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)
    return _write


@pytest.fixture
def history_file(write_json):
    return write_json("history.json", [
        _visit("existing", "2014-01-04T10:00:00", "2014-01-10T14:00:00"),
    ])


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch, tmp_path):
    for name in ("VG_ALLOW_OVERLAPPING_VISITS", "VG_VOID_REASON_MAX_LENGTH", "VG_LOG_JSON"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("VG_DB_PATH", str(tmp_path / "visits.duckdb"))
    monkeypatch.setattr(cli, "settings", Settings())


class TestValidateCommand:
    """Test the validate command."""

    def test_valid_visit(self, write_json, history_file):
        visit_file = write_json("visit.json", _visit("new", "2014-02-01T09:00:00"))

        result = runner.invoke(app, ["validate", visit_file, "--history", history_file])

        assert result.exit_code == 0
        assert "is valid" in result.stdout

    def test_overlapping_visit_is_rejected(self, write_json, history_file):
        visit_file = write_json("visit.json", _visit("new", "2014-01-05T09:00:00"))

        result = runner.invoke(app, ["validate", visit_file, "--history", history_file])

        assert result.exit_code == EXIT_REJECTED
        assert "rejected" in result.stdout

    def test_allow_overlap_flag(self, write_json, history_file):
        visit_file = write_json("visit.json", _visit("new", "2014-01-05T09:00:00"))

        result = runner.invoke(app, ["validate", visit_file, "--history", history_file, "--allow-overlap"])

        assert result.exit_code == 0

    def test_allow_overlap_from_environment(self, monkeypatch, write_json, history_file):
        monkeypatch.setenv("VG_ALLOW_OVERLAPPING_VISITS", "true")
        monkeypatch.setattr(cli, "settings", Settings())
        visit_file = write_json("visit.json", _visit("new", "2014-01-05T09:00:00"))

        assert runner.invoke(app, ["validate", visit_file, "--history", history_file]).exit_code == 0
        assert runner.invoke(
            app, ["validate", visit_file, "--history", history_file, "--no-allow-overlap"]
        ).exit_code == EXIT_REJECTED

    def test_missing_required_fields(self, write_json, history_file):
        visit_file = write_json("visit.json", {"start_datetime": "2014-02-01T09:00:00"})

        result = runner.invoke(app, ["validate", visit_file, "--history", history_file])

        assert result.exit_code == EXIT_REJECTED
        assert "error.required" in result.stdout

    def test_attribute_cardinality_is_fatal(self, write_json, history_file):
        visit_file = write_json("visit.json", _visit("new", "2014-02-01T09:00:00"))
        types_file = write_json("types.json", [{"name": "Audit Date", "min_occurs": 1}])

        result = runner.invoke(
            app, ["validate", visit_file, "--history", history_file, "--attribute-types", types_file]
        )

        assert result.exit_code == EXIT_FATAL
        assert "AttributeCardinalityError" in result.stdout

    def test_invalid_visit_file(self, write_json, history_file):
        visit_file = write_json("visit.json", {"start_datetime": "yesterday"})

        result = runner.invoke(app, ["validate", visit_file, "--history", history_file])

        assert result.exit_code == EXIT_FATAL

    def test_validate_against_configured_store(self, write_json):
        visit_file = write_json("visit.json", _visit("new", "2014-02-01T09:00:00"))

        result = runner.invoke(app, ["validate", visit_file])

        assert result.exit_code == 0


class TestImportAndHistoryCommands:
    """Test storing visits and listing them."""

    def test_import_stores_valid_visits(self, write_json):
        visits_file = write_json("visits.json", [
            _visit("first", "2014-01-04T10:00:00", "2014-01-10T14:00:00"),
            _visit("second", "2014-02-01T09:00:00", "2014-02-01T12:00:00"),
        ])

        result = runner.invoke(app, ["import-visits", visits_file])

        assert result.exit_code == 0
        assert "Stored:" in result.stdout

        history = runner.invoke(app, ["history", "42"])
        assert history.exit_code == 0
        assert "Outpatient" in history.stdout

    def test_import_rejects_overlapping_visits(self, write_json):
        visits_file = write_json("visits.json", [
            _visit("first", "2014-01-04T10:00:00", "2014-01-10T14:00:00"),
            _visit("overlap", "2014-01-05T10:00:00", "2014-01-06T14:00:00"),
        ])

        result = runner.invoke(app, ["import-visits", visits_file])

        assert result.exit_code == EXIT_REJECTED
        assert "rejected" in result.stdout

    def test_import_without_validation(self, write_json):
        visits_file = write_json("visits.json", [
            _visit("first", "2014-01-04T10:00:00", "2014-01-10T14:00:00"),
            _visit("overlap", "2014-01-05T10:00:00", "2014-01-06T14:00:00"),
        ])

        result = runner.invoke(app, ["import-visits", visits_file, "--skip-validation"])

        assert result.exit_code == 0

    def test_stored_history_is_used_by_validate(self, write_json):
        runner.invoke(app, ["import-visits", write_json("visits.json", [
            _visit("first", "2014-01-04T10:00:00", "2014-01-10T14:00:00"),
        ])])
        visit_file = write_json("visit.json", _visit("new", "2014-01-10T14:00:00"))

        result = runner.invoke(app, ["validate", visit_file])

        assert result.exit_code == EXIT_REJECTED

    def test_history_of_unknown_patient(self):
        result = runner.invoke(app, ["history", "99"])

        assert result.exit_code == 0
        assert "No visits found for patient 99" in result.stdout

    def test_history_hides_voided_visits(self, write_json):
        runner.invoke(app, ["import-visits", write_json("visits.json", [
            _visit("voided", "2014-01-04T10:00:00", "2014-01-10T14:00:00", voided=True, void_reason="error"),
        ])])

        assert "No visits found" in runner.invoke(app, ["history", "42"]).stdout
        assert "No visits found" not in runner.invoke(app, ["history", "42", "--include-voided"]).stdout


class TestTimezoneAwareInput:
    """Test visits carrying UTC offsets against naive history."""

    def test_aware_overlapping_visit_is_rejected(self, write_json, history_file):
        visit_file = write_json("visit.json", _visit("new", "2014-01-05T09:00:00Z"))

        result = runner.invoke(app, ["validate", visit_file, "--history", history_file])

        assert result.exit_code == EXIT_REJECTED
        assert "rejected" in result.stdout

    def test_aware_visit_after_history_is_valid(self, write_json, history_file):
        visit_file = write_json("visit.json", _visit("new", "2014-02-01T09:00:00+02:00"))

        result = runner.invoke(app, ["validate", visit_file, "--history", history_file])

        assert result.exit_code == 0

    def test_aware_import_then_validate(self, write_json):
        runner.invoke(app, ["import-visits", write_json("visits.json", [
            _visit("existing", "2014-01-04T10:00:00+00:00", "2014-01-10T14:00:00+00:00"),
        ])])
        visit_file = write_json("visit.json", _visit("new", "2014-01-05T09:00:00"))

        assert runner.invoke(app, ["validate", visit_file]).exit_code == EXIT_REJECTED


class TestStoreConfiguration:
    """Test commands that need a persistent visit store."""

    @pytest.fixture
    def no_store(self, monkeypatch):
        monkeypatch.delenv("VG_DB_PATH", raising=False)
        monkeypatch.setattr(cli, "settings", Settings())

    def test_import_without_store_is_refused(self, no_store, write_json):
        visits_file = write_json("visits.json", [_visit("a", "2014-01-04T10:00:00")])

        result = runner.invoke(app, ["import-visits", visits_file])

        assert result.exit_code == EXIT_FATAL
        assert "VG_DB_PATH" in result.stdout
        assert "Stored" not in result.stdout

    def test_history_without_store_is_refused(self, no_store):
        result = runner.invoke(app, ["history", "42"])

        assert result.exit_code == EXIT_FATAL
        assert "VG_DB_PATH" in result.stdout

    def test_validate_without_store_uses_empty_history(self, no_store, write_json):
        visit_file = write_json("visit.json", _visit("new", "2014-01-05T09:00:00"))

        assert runner.invoke(app, ["validate", visit_file]).exit_code == 0


class TestVersion:
    """Test the version option."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert "Visit-Guard v1.0.0" in result.stdout
