"""Command line interface for managing and running stepflow workflows."""

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, List, Optional

import typer

from . import persistence
from .config import load_config
from .errors import StepflowError
from .ids import WorkflowID, WorkflowRevisionID, parse_execution_id
from .logging import configure_logging
from .persistence.models import ExecutionStatus
from .revisions.documents import format_timestamp, parse_timestamp
from .runtime import Runtime, build_runtime

app = typer.Typer(help="CLI for stepflow workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for managing workflows")
revision_app = typer.Typer(help="Commands for managing workflow revisions")
execution_app = typer.Typer(help="Commands for running workflows and inspecting executions")

app.add_typer(workflow_app, name="workflow")
app.add_typer(revision_app, name="revision")
app.add_typer(execution_app, name="execution")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, help="Override the configured log level (DEBUG, INFO, WARNING, ...)"
    ),
) -> None:
    """stepflow CLI entry point."""
    config = load_config()
    configure_logging(log_level or config.logging.level, config.logging.json_output)


def _runtime() -> Runtime:
    return build_runtime(repository=persistence.current_repository())


@contextmanager
def _domain_errors() -> Iterator[None]:
    """Report domain errors in red and exit with code 1."""
    try:
        yield
    except (StepflowError, ValueError) as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _read(path: Path) -> str:
    if not path.exists():
        typer.secho(f"File not found: {path}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return path.read_text()


def _ts(value: Optional[datetime]) -> str:
    return format_timestamp(value) if value is not None else "-"


# ----------------------------------------------------------------------
# workflow


@workflow_app.command("create")
def workflow_create(path: Path) -> None:
    """
    Create a new workflow from a YAML or JSON document.

    The first revision is stored as version 1 and starts inactive.

    Example:
        stepflow workflow create ./hello.yaml
        # Output: Created revision demo:hello:1
    """
    text = _read(path)
    with _domain_errors():
        revision = _runtime().revisions.create_workflow(text)
    typer.echo(f"Created revision {revision.revision_id}")


@workflow_app.command("list")
def workflow_list(
    namespace: Optional[str] = typer.Option(None, help="Only list this namespace"),
) -> None:
    """List workflows that have at least one revision."""
    workflows = _runtime().revisions.list_workflows(namespace)
    if not workflows:
        typer.echo("No workflows found")
        return
    for workflow_id in workflows:
        typer.echo(str(workflow_id))


@workflow_app.command("show")
def workflow_show(workflow_id: str) -> None:
    """
    Show every revision of a workflow.

    Example:
        stepflow workflow show demo:hello
        # Output: demo:hello:1    Hello    active      2024-01-01T10:00:00Z
    """
    with _domain_errors():
        revisions = _runtime().revisions.list_revisions(WorkflowID.parse(workflow_id))
    typer.echo(f"Workflow {workflow_id}")
    for revision in revisions:
        state = "active" if revision.active else "inactive"
        typer.echo(
            f"{revision.revision_id}\t{revision.name}\t{state}\t{_ts(revision.updated_at)}"
        )


@workflow_app.command("delete")
def workflow_delete(workflow_id: str) -> None:
    """Delete every revision of a workflow. No revision may be active."""
    with _domain_errors():
        deleted = _runtime().revisions.delete_workflow(WorkflowID.parse(workflow_id))
    typer.echo(f"Deleted {deleted} revision(s) of {workflow_id}")


# ----------------------------------------------------------------------
# revision


@revision_app.command("create")
def revision_create(workflow_id: str, path: Path) -> None:
    """Add the next revision to an existing workflow."""
    text = _read(path)
    with _domain_errors():
        revision = _runtime().revisions.create_revision(WorkflowID.parse(workflow_id), text)
    typer.echo(f"Created revision {revision.revision_id}")


@revision_app.command("show")
def revision_show(revision_id: str) -> None:
    """Print a revision as its stored document."""
    with _domain_errors():
        runtime = _runtime()
        revision = runtime.revisions.get_revision(WorkflowRevisionID.parse(revision_id))
    typer.echo(revision.source or runtime.parser.dump(revision))


@revision_app.command("update")
def revision_update(
    revision_id: str,
    path: Path,
    expected_updated_at: Optional[str] = typer.Option(
        None,
        "--expected-updated-at",
        help="updatedAt last seen by the caller; defaults to the document's updatedAt",
    ),
) -> None:
    """
    Replace the content of an inactive revision.

    Fails when the revision changed since ``updatedAt`` was read.

    Example:
        stepflow revision update demo:hello:1 ./hello.yaml
    """
    text = _read(path)
    with _domain_errors():
        expected = (
            parse_timestamp(expected_updated_at, "expected-updated-at")
            if expected_updated_at
            else None
        )
        revision = _runtime().revisions.update_revision(
            WorkflowRevisionID.parse(revision_id), text, expected
        )
    typer.echo(f"Updated revision {revision.revision_id} (updatedAt {_ts(revision.updated_at)})")


@revision_app.command("activate")
def revision_activate(revision_id: str) -> None:
    """Mark a revision as active so it can be executed."""
    with _domain_errors():
        revision = _runtime().revisions.activate(WorkflowRevisionID.parse(revision_id))
    typer.echo(f"Activated revision {revision.revision_id}")


@revision_app.command("deactivate")
def revision_deactivate(revision_id: str) -> None:
    with _domain_errors():
        revision = _runtime().revisions.deactivate(WorkflowRevisionID.parse(revision_id))
    typer.echo(f"Deactivated revision {revision.revision_id}")


@revision_app.command("delete")
def revision_delete(revision_id: str) -> None:
    with _domain_errors():
        _runtime().revisions.delete_revision(WorkflowRevisionID.parse(revision_id))
    typer.echo(f"Deleted revision {revision_id}")


# ----------------------------------------------------------------------
# execution


def _parse_params(params: List[str], params_json: Optional[str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    if params_json:
        loaded = json.loads(params_json)
        if not isinstance(loaded, dict):
            raise ValueError("--params-json must be a JSON object")
        values.update(loaded)
    for item in params:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise ValueError(f"Invalid parameter '{item}' (expected name=value)")
        values[name] = value
    return values


@execution_app.command("run")
def execution_run(
    revision_id: str,
    param: List[str] = typer.Option([], "--param", "-p", help="Parameter as name=value"),
    params_json: Optional[str] = typer.Option(
        None, "--params-json", help="Parameters as a JSON object"
    ),
) -> None:
    """
    Execute an active revision and wait for it to finish.

    Exits with code 1 when the execution fails.

    Example:
        stepflow execution run demo:hello:1 -p name=World
        # Output: Execution V1StGXR8_Z5jdHi6B-myT: COMPLETED
    """
    with _domain_errors():
        parameters = _parse_params(param, params_json)
        execution = _runtime().executions.run(
            WorkflowRevisionID.parse(revision_id), parameters
        )
    typer.echo(f"Execution {execution.execution_id}: {execution.status.value}")
    if execution.status is ExecutionStatus.FAILED:
        typer.secho(f"Error: {execution.error_message}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


@execution_app.command("show")
def execution_show(execution_id: str) -> None:
    """Show an execution and the result of each step, in execution order."""
    with _domain_errors():
        executions = _runtime().executions
        execution = executions.get_execution(parse_execution_id(execution_id))
        results = executions.get_step_results(execution.execution_id)
    typer.echo(
        f"Execution {execution.execution_id} of {execution.revision_id}: "
        f"{execution.status.value}"
    )
    if execution.input_parameters:
        typer.echo(f"Parameters: {json.dumps(execution.input_parameters, default=str)}")
    if execution.error_message:
        typer.echo(f"Error: {execution.error_message}")
    for result in results:
        line = f"- [{result.step_index}] {result.step_id} ({result.step_type}): {result.status.value}"
        if result.error_message:
            line += f" - {result.error_message}"
        typer.echo(line)


@execution_app.command("list")
def execution_list(
    workflow_id: str,
    version: Optional[int] = typer.Option(None, help="Only this revision version"),
    status: Optional[ExecutionStatus] = typer.Option(None, help="Only this status"),
    limit: int = typer.Option(20, help="Page size (1-100)"),
    offset: int = typer.Option(0, help="Number of executions to skip"),
) -> None:
    """List past executions of a workflow, newest first."""
    with _domain_errors():
        history = _runtime().executions.history(
            WorkflowID.parse(workflow_id), version, status, limit, offset
        )
    if not history.executions:
        typer.echo("No executions found")
        return
    for execution in history.executions:
        typer.echo(
            f"{execution.execution_id}\t{execution.revision_id}\t"
            f"{execution.status.value}\t{_ts(execution.started_at)}"
        )
    typer.echo(f"Showing {len(history.executions)} of {history.total_count}")


# ----------------------------------------------------------------------
# types


@app.command("types")
def types() -> None:
    """List registered step types and parameter types."""
    runtime = _runtime()
    typer.echo("Step types:")
    for tag in sorted(runtime.step_types.all_tags()):
        typer.echo(f"  {tag}")
    typer.echo("Parameter types:")
    for type_id, param_type in sorted(runtime.parameter_types.all_types().items()):
        typer.echo(f"  {type_id}\t{param_type.display_name}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
