"""Command Line Interface for Visit-Guard.

This module provides a CLI using Typer for validating visits against a
patient's visit history and for managing the DuckDB visit store.

Exit codes:
    0: visit(s) valid
    1: visit(s) rejected by business rules
    2: fatal error (bad input, attribute violation, repository failure)
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from visit_guard.adapters.json_loader import LoaderError, load_attribute_types, load_visit, load_visits
from visit_guard.adapters.repositories import (
    DuckDBVisitRepository,
    InMemoryVisitRepository,
    create_visit_repository,
)
from visit_guard.domain.errors import ValidationErrors
from visit_guard.domain.policy import ValidationPolicy
from visit_guard.domain.ports import VisitGuardError, VisitRepositoryPort
from visit_guard.domain.services.validation_service import VisitValidationService
from visit_guard.infrastructure.logging_config import setup_logging
from visit_guard.infrastructure.settings import APP_VERSION, settings

EXIT_REJECTED = 1
EXIT_FATAL = 2

app = typer.Typer(
    name="visit-guard",
    help="Visit-Guard: business-rule validation for EMR visits",
    add_completion=False
)
console = Console()
logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        setup_logging(use_json=settings.log_json, log_level=settings.log_level)
    if verbose:
        root_logger.setLevel(logging.DEBUG)
        console.print("[dim]Verbose logging enabled[/dim]")


def _require_persistent_store() -> None:
    if settings.get_db_path() == ":memory:":
        console.print("[red]✗[/red] No visit store configured; set VG_DB_PATH to a DuckDB file")
        raise typer.Exit(code=EXIT_FATAL)


def _load_policy(allow_overlap: Optional[bool]) -> ValidationPolicy:
    policy = settings.validation_policy
    if allow_overlap is not None:
        policy = policy.model_copy(update={"allow_overlapping_visits": allow_overlap})
    return policy


def _print_errors(errors: ValidationErrors) -> None:
    table = Table(title="Validation errors")
    table.add_column("Field")
    table.add_column("Code")
    table.add_column("Message")
    for error in errors:
        table.add_row(error.field or "*", error.code, error.message or "")
    console.print(table)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{settings.app_name} v{APP_VERSION}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False, "--version", help="Show version information", callback=_version_callback, is_eager=True
    ),
) -> None:
    """Visit-Guard: business-rule validation for EMR visits."""


@app.command()
def validate(
    visit_file: Path = typer.Argument(..., help="Visit JSON file", exists=True, dir_okay=False),
    history: Optional[Path] = typer.Option(
        None, "--history", "-H", help="JSON file with the patient's visit history (default: configured DuckDB store)",
        exists=True, dir_okay=False
    ),
    attribute_types_file: Optional[Path] = typer.Option(
        None, "--attribute-types", "-a", help="JSON file with the visit attribute types", exists=True, dir_okay=False
    ),
    allow_overlap: Optional[bool] = typer.Option(
        None, "--allow-overlap/--no-allow-overlap", help="Override the overlapping-visits policy"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Validate a visit against the visit business rules.

    Examples:
        visit-guard validate visit.json --history visits.json
        visit-guard validate visit.json --attribute-types attribute_types.json --allow-overlap
    """
    _configure_logging(verbose)

    try:
        policy = _load_policy(allow_overlap)
        visit = load_visit(visit_file)
        attribute_types = load_attribute_types(attribute_types_file) if attribute_types_file else []
        if history is not None:
            repository: VisitRepositoryPort = InMemoryVisitRepository(load_visits(history))
        else:
            repository = create_visit_repository(settings.db_config)
    except (LoaderError, VisitGuardError, ValueError) as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(code=EXIT_FATAL)

    service = VisitValidationService(repository, policy, attribute_types)
    try:
        errors = service.collect_errors(visit)
    except VisitGuardError as e:
        logger.error(f"Validation of visit {visit.uuid} aborted: {e}")
        console.print(f"[red]✗[/red] {type(e).__name__}: {escape(str(e))}")
        raise typer.Exit(code=EXIT_FATAL)
    finally:
        repository.close()

    if errors.has_errors():
        _print_errors(errors)
        console.print(f"[red]✗[/red] Visit {visit.uuid} rejected with {errors.error_count} error(s)")
        raise typer.Exit(code=EXIT_REJECTED)

    console.print(f"[green]✓[/green] Visit {visit.uuid} is valid")


@app.command(name="import-visits")
def import_visits(
    visits_file: Path = typer.Argument(..., help="JSON file with a list of visits", exists=True, dir_okay=False),
    attribute_types_file: Optional[Path] = typer.Option(
        None, "--attribute-types", "-a", help="JSON file with the visit attribute types", exists=True, dir_okay=False
    ),
    skip_validation: bool = typer.Option(False, "--skip-validation", help="Store visits without validating them"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Validate visits and store the valid ones in the configured DuckDB store."""
    _configure_logging(verbose)

    try:
        visits = load_visits(visits_file)
        attribute_types = load_attribute_types(attribute_types_file) if attribute_types_file else []
        policy = _load_policy(None)
        _require_persistent_store()
        repository = DuckDBVisitRepository(db_config=settings.db_config)
    except (LoaderError, VisitGuardError, ValueError) as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(code=EXIT_FATAL)

    service = VisitValidationService(repository, policy, attribute_types)
    stored = 0
    rejected = 0
    try:
        for visit in visits:
            if not skip_validation:
                try:
                    result = service.check(visit)
                except VisitGuardError as e:
                    console.print(f"[red]✗[/red] Visit {visit.uuid}: {type(e).__name__}: {escape(str(e))}")
                    rejected += 1
                    continue
                if result.is_failure():
                    console.print(f"[yellow]⚠[/yellow] Visit {visit.uuid} rejected: {escape(str(result.error_details['field_errors']))}")
                    rejected += 1
                    continue

            save_result = repository.save_visit(visit)
            if save_result.is_success():
                stored += 1
            else:
                console.print(f"[red]✗[/red] Visit {visit.uuid}: {escape(save_result.error)}")
                rejected += 1
    finally:
        repository.close()

    summary_table = Table(show_header=False, box=None, padding=(0, 2))
    summary_table.add_row("Total visits:", f"[bold]{len(visits):,}[/bold]")
    summary_table.add_row("Stored:", f"[green]{stored:,}[/green]")
    summary_table.add_row("Rejected:", f"[red]{rejected:,}[/red]" if rejected > 0 else f"{rejected:,}")
    console.print(summary_table)

    if rejected > 0:
        raise typer.Exit(code=EXIT_REJECTED)


@app.command()
def history(
    patient_id: int = typer.Argument(..., help="Patient identifier"),
    include_voided: bool = typer.Option(False, "--include-voided", help="Also list voided visits"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """List the visits of a patient stored in the configured DuckDB store."""
    _configure_logging(verbose)

    try:
        _require_persistent_store()
        repository = DuckDBVisitRepository(db_config=settings.db_config)
        try:
            visits = repository.find_visits_for_patient(patient_id, include_voided=include_voided)
        finally:
            repository.close()
    except (VisitGuardError, ValueError) as e:
        console.print(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(code=EXIT_FATAL)

    if not visits:
        console.print(f"No visits found for patient {patient_id}")
        return

    table = Table(title=f"Visits of patient {patient_id}")
    table.add_column("UUID")
    table.add_column("Type")
    table.add_column("Start")
    table.add_column("Stop")
    table.add_column("Voided")
    for visit in visits:
        table.add_row(
            visit.uuid,
            visit.visit_type.name if visit.visit_type else "",
            str(visit.start_datetime or ""),
            str(visit.stop_datetime) if visit.stop_datetime else "active",
            "yes" if visit.voided else "no",
        )
    console.print(table)


if __name__ == "__main__":
    app()
