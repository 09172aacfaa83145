"""End to end runs against the SQLite repository, including a reopen."""

from conftest import PluginStepTypesProvider
from stepflow.ids import WorkflowID
from stepflow.parameters import ParameterTypeRegistry
from stepflow.persistence import SQLiteWorkflowRepository
from stepflow.persistence.models import ExecutionStatus
from stepflow.revisions import WorkflowDocumentParser, format_timestamp
from stepflow.runtime import build_runtime
from stepflow.steps import Sequence, StepStatus, StepTypeRegistry

BRANCHING_WORKFLOW = """\
namespace: shop
id: checkout
name: Checkout
parameters:
  - name: express
    type: BOOLEAN
    required: false
    default: false
  - name: region
    type: STRING
steps:
  - id: greet
    type: Echo
    parameter: region
  - type: If
    condition: "${region} == 'eu'"
    ifTrue:
      type: Sequence
      steps:
        - type: LogTask
          message: eu checkout
        - id: summary
          type: Echo
          parameter: express
          previous: greet
    ifFalse:
      type: Crash
"""


def _sqlite_runtime(path, offline_config):
    providers = [PluginStepTypesProvider()]
    # stored step trees are rebuilt with the plugin step types
    parser = WorkflowDocumentParser(StepTypeRegistry(providers), ParameterTypeRegistry())
    return build_runtime(
        config=offline_config,
        repository=SQLiteWorkflowRepository(path, parser=parser),
        step_providers=providers,
        parameter_providers=[],
    )


def test_branching_workflow_persists_across_restart(tmp_path, offline_config):
    path = tmp_path / "stepflow.db"
    runtime = _sqlite_runtime(path, offline_config)

    created = runtime.revisions.create_workflow(BRANCHING_WORKFLOW)
    revision_id = runtime.revisions.activate(created.revision_id).revision_id

    eu = runtime.executions.run(revision_id, {"region": "eu", "express": "true"})
    us = runtime.executions.run(revision_id, {"region": "us"})
    assert eu.status is ExecutionStatus.COMPLETED
    assert us.status is ExecutionStatus.FAILED
    assert us.error_message == "unexpected crash"

    restarted = _sqlite_runtime(path, offline_config)
    revision = restarted.revisions.get_revision(revision_id)
    assert revision.active
    assert isinstance(revision.steps, Sequence)
    assert revision.steps == created.steps
    assert f"updatedAt: {format_timestamp(revision.updated_at)}" in revision.source

    results = restarted.executions.get_step_results(eu.execution_id)
    by_id = {r.step_id: r for r in results}
    assert [r.step_index for r in results] == [0, 1, 2, 3, 4, 5]
    assert by_id["greet"].output_data == {"value": "eu"}
    assert by_id["summary"].output_data == {"value": True, "previous": {"value": "eu"}}
    assert "Crash#3" not in by_id

    failed = restarted.executions.get_step_results(us.execution_id)
    crash = next(r for r in failed if r.step_type == "Crash")
    assert crash.status is StepStatus.FAILED
    assert crash.step_id == "Crash#3"
    assert crash.error_details.error_type == "builtins.RuntimeError"
    assert "unexpected crash" in crash.error_details.stack_trace
    assert crash.error_details.step_inputs["parameters"] == {"express": False, "region": "us"}

    history = restarted.executions.history(WorkflowID("shop", "checkout"))
    assert history.total_count == 2
    assert {e.status for e in history.executions} == {
        ExecutionStatus.COMPLETED,
        ExecutionStatus.FAILED,
    }


def test_parser_is_independent_of_the_database(tmp_path, offline_config):
    runtime = _sqlite_runtime(tmp_path / "stepflow.db", offline_config)
    revision = runtime.revisions.create_workflow(BRANCHING_WORKFLOW)
    reparsed = runtime.parser.parse(revision.source)
    assert isinstance(runtime.parser, WorkflowDocumentParser)
    assert reparsed.steps == revision.steps
