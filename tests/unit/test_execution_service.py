import pytest

from conftest import HELLO_WORKFLOW, PluginStepTypesProvider
from stepflow.errors import (
    ExecutionNotFoundError,
    ParameterValidationError,
    RevisionNotActiveError,
    StorageError,
    WorkflowRevisionNotFoundError,
)
from stepflow.executions import ExecutionService
from stepflow.ids import WorkflowID, WorkflowRevisionID
from stepflow.persistence import InMemoryWorkflowRepository
from stepflow.persistence.models import ExecutionStatus
from stepflow.runtime import build_runtime
from stepflow.steps import StepStatus

WORKFLOW = WorkflowID("demo", "hello")
V1 = WorkflowRevisionID("demo", "hello", 1)

FAILING_WORKFLOW = """\
namespace: demo
id: failing
name: Failing
parameters:
  - name: attempts
    type: INTEGER
steps:
  - type: LogTask
    message: before
  - type: Fail
    reason: attempts exhausted
  - type: LogTask
    message: never
"""


def _active(runtime, text=HELLO_WORKFLOW):
    revision = runtime.revisions.create_workflow(text)
    return runtime.revisions.activate(revision.revision_id).revision_id


def test_run_completes(runtime):
    revision_id = _active(runtime)
    execution = runtime.executions.run(revision_id, {})

    assert execution.status is ExecutionStatus.COMPLETED
    assert execution.completed_at is not None
    assert execution.error_message is None
    assert execution.input_parameters == {"greeting": "hi"}
    assert runtime.executions.get_execution(execution.execution_id) == execution

    results = runtime.executions.get_step_results(execution.execution_id)
    assert [r.step_index for r in results] == [0, 1, 2]
    assert all(r.status is StepStatus.COMPLETED for r in results)


def test_run_fails_with_first_failure_message(runtime):
    revision_id = _active(runtime, FAILING_WORKFLOW)
    execution = runtime.executions.run(revision_id, {"attempts": "3"})

    assert execution.status is ExecutionStatus.FAILED
    assert execution.error_message == "attempts exhausted"
    assert execution.input_parameters == {"attempts": 3}
    results = runtime.executions.get_step_results(execution.execution_id)
    assert [r.step_id for r in results] == ["Sequence#0", "LogTask#1", "Fail#2"]


def test_run_requires_active_revision(runtime):
    runtime.revisions.create_workflow(HELLO_WORKFLOW)
    with pytest.raises(RevisionNotActiveError):
        runtime.executions.run(V1, {})


def test_run_missing_revision(runtime):
    with pytest.raises(WorkflowRevisionNotFoundError):
        runtime.executions.run(V1, {})


def test_invalid_parameters_write_nothing(runtime):
    revision_id = _active(runtime, FAILING_WORKFLOW)
    with pytest.raises(ParameterValidationError):
        runtime.executions.run(revision_id, {"attempts": 2.5})
    assert runtime.executions.history(revision_id.workflow_id).total_count == 0


class _FlakyRepository(InMemoryWorkflowRepository):
    def record_step_result(self, result):
        if result.step_index == 1:
            raise StorageError("disk full")
        return super().record_step_result(result)


def test_storage_error_marks_execution_failed(offline_config):
    repo = _FlakyRepository()
    runtime = build_runtime(
        config=offline_config,
        repository=repo,
        step_providers=[PluginStepTypesProvider()],
        parameter_providers=[],
    )
    revision_id = _active(runtime)
    with pytest.raises(StorageError):
        runtime.executions.run(revision_id, {})

    history = runtime.executions.history(WORKFLOW)
    (execution,) = history.executions
    assert execution.status is ExecutionStatus.FAILED
    assert execution.error_message == "disk full"


class _BuggyRepository(InMemoryWorkflowRepository):
    def record_step_result(self, result):
        raise RuntimeError("bookkeeping bug")


def test_unexpected_error_marks_execution_failed(offline_config):
    runtime = build_runtime(
        config=offline_config,
        repository=_BuggyRepository(),
        step_providers=[],
        parameter_providers=[],
    )
    revision_id = _active(runtime)
    with pytest.raises(RuntimeError):
        runtime.executions.run(revision_id, {})

    (execution,) = runtime.executions.history(WORKFLOW).executions
    assert execution.status is ExecutionStatus.FAILED
    assert execution.error_message == "bookkeeping bug"
    assert execution.completed_at is not None


def test_history_pagination_and_filters(runtime):
    revision_id = _active(runtime)
    ids = [runtime.executions.run(revision_id, {}).execution_id for _ in range(3)]

    page = runtime.executions.history(WORKFLOW, limit=2)
    assert page.total_count == 3
    assert len(page.executions) == 2
    rest = runtime.executions.history(WORKFLOW, limit=2, offset=2)
    assert len(rest.executions) == 1
    listed = {e.execution_id for e in page.executions + rest.executions}
    assert listed == set(ids)

    assert runtime.executions.history(WORKFLOW, version=2).total_count == 0
    assert (
        runtime.executions.history(WORKFLOW, status=ExecutionStatus.FAILED).total_count
        == 0
    )


@pytest.mark.parametrize("limit,offset", [(0, 0), (101, 0), (10, -1)])
def test_history_bounds(runtime, limit, offset):
    with pytest.raises(ValueError):
        runtime.executions.history(WORKFLOW, limit=limit, offset=offset)


def test_get_unknown_execution(runtime):
    with pytest.raises(ExecutionNotFoundError):
        runtime.executions.get_execution("V1StGXR8_Z5jdHi6B-myT")
    with pytest.raises(ExecutionNotFoundError):
        runtime.executions.get_step_results("V1StGXR8_Z5jdHi6B-myT")


def test_service_defaults(repository):
    service = ExecutionService(repository)
    with pytest.raises(WorkflowRevisionNotFoundError):
        service.run(V1)
