import pytest

from stepflow.errors import (
    MalformedExecutionIDError,
    MalformedWorkflowIDError,
    MalformedWorkflowRevisionIDError,
)
from stepflow.ids import (
    WorkflowID,
    WorkflowRevisionID,
    new_execution_id,
    parse_execution_id,
)


def test_workflow_id_round_trip():
    workflow_id = WorkflowID("payments", "refund")
    assert str(workflow_id) == "payments:refund"
    assert WorkflowID.parse(str(workflow_id)) == workflow_id
    assert hash(WorkflowID.parse("payments:refund")) == hash(workflow_id)


@pytest.mark.parametrize("text", ["noColon", "a:b:c", ":id", "ns:", " :id", "ns:  "])
def test_workflow_id_parse_failures(text):
    with pytest.raises(MalformedWorkflowIDError) as exc_info:
        WorkflowID.parse(text)
    assert exc_info.value.input == text
    assert exc_info.value.reason


def test_workflow_id_blank_construction_rejected():
    with pytest.raises(MalformedWorkflowIDError):
        WorkflowID("", "id")


def test_revision_id_round_trip_and_workflow_id():
    revision_id = WorkflowRevisionID.parse("payments:refund:3")
    assert revision_id == WorkflowRevisionID("payments", "refund", 3)
    assert str(revision_id) == "payments:refund:3"
    assert revision_id.workflow_id == WorkflowID("payments", "refund")
    assert WorkflowID("payments", "refund").with_version(3) == revision_id


@pytest.mark.parametrize(
    "text",
    ["ns:id", "ns:id:1:2", "ns:id:abc", "ns:id:0", "ns:id:-1", ":id:1", "ns::1"],
)
def test_revision_id_parse_failures(text):
    with pytest.raises(MalformedWorkflowRevisionIDError) as exc_info:
        WorkflowRevisionID.parse(text)
    assert exc_info.value.input == text


def test_revision_id_version_must_be_positive():
    with pytest.raises(MalformedWorkflowRevisionIDError):
        WorkflowRevisionID("ns", "id", 0)


def test_execution_ids():
    execution_id = new_execution_id()
    assert parse_execution_id(execution_id) == execution_id
    with pytest.raises(MalformedExecutionIDError):
        parse_execution_id("too-short")
    with pytest.raises(MalformedExecutionIDError):
        parse_execution_id("!" * 21)
