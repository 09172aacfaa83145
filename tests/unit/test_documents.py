import json
from datetime import datetime, timezone

import pytest
import yaml

from conftest import HELLO_WORKFLOW
from stepflow.errors import (
    InvalidParameterValueError,
    InvalidWorkflowRevisionError,
    UnknownStepTypeError,
    WorkflowRevisionParsingError,
)
from stepflow.ids import WorkflowRevisionID
from stepflow.parameters import ParameterTypeRegistry
from stepflow.revisions import WorkflowDocumentParser, stamp_metadata
from stepflow.steps import If, LogTask, Sequence, StepTypeRegistry


@pytest.fixture
def parser() -> WorkflowDocumentParser:
    return WorkflowDocumentParser(StepTypeRegistry(), ParameterTypeRegistry())


def test_parse_yaml_document(parser):
    revision = parser.parse(HELLO_WORKFLOW)
    assert revision.revision_id == WorkflowRevisionID("demo", "hello", 1)
    assert revision.name == "Hello"
    assert revision.description == "Greets twice"
    assert revision.active is False
    assert revision.source == HELLO_WORKFLOW
    assert revision.created_at is None and revision.updated_at is None
    assert isinstance(revision.steps, Sequence)
    assert [s.message for s in revision.steps.steps] == ["first", "second"]
    (greeting,) = revision.parameters
    assert greeting.type.type_id == "STRING"
    assert greeting.required is False
    assert greeting.default == "hi"


def test_parse_json_document_with_single_root(parser):
    text = json.dumps(
        {
            "namespace": "demo",
            "id": "gate",
            "version": 4,
            "name": "Gate",
            "updatedAt": "2024-05-01T12:00:00Z",
            "steps": {
                "type": "If",
                "condition": "enabled",
                "ifTrue": {"type": "LogTask", "message": "on"},
            },
        }
    )
    revision = parser.parse(text)
    assert revision.version == 4
    assert isinstance(revision.steps, If)
    assert revision.updated_at == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)


def test_unknown_step_reports_path(parser):
    text = HELLO_WORKFLOW.replace("type: LogTask\n    message: second", "type: Bogus")
    with pytest.raises(UnknownStepTypeError) as exc_info:
        parser.parse(text)
    assert exc_info.value.tag == "Bogus"
    assert exc_info.value.path == "steps[1]"


@pytest.mark.parametrize(
    "text",
    [
        "namespace: [unclosed",
        "- just\n- a list\n",
        "namespace: demo\nid: x\nname: X\n",
        "namespace: demo\nname: X\nsteps: {type: LogTask, message: hi}\n",
        "namespace: demo\nid: x\nname: X\nversion: one\nsteps: {type: LogTask, message: hi}\n",
        "namespace: demo\nid: x\nname: X\nsteps: {type: LogTask, message: hi}\n"
        "parameters:\n  - name: p\n    type: MISSING\n",
    ],
)
def test_malformed_documents(parser, text):
    with pytest.raises(WorkflowRevisionParsingError):
        parser.parse(text)


def test_field_rules_are_enforced(parser):
    with pytest.raises(InvalidWorkflowRevisionError) as exc_info:
        parser.parse("namespace: bad space\nid: x\nname: X\nsteps: {type: LogTask, message: hi}\n")
    assert exc_info.value.field == "namespace"


def test_parameter_default_converted_by_type(parser):
    text = (
        "namespace: demo\nid: x\nname: X\nsteps: {type: LogTask, message: hi}\n"
        "parameters:\n  - name: retries\n    type: INTEGER\n    required: false\n"
        "    default: '3'\n"
    )
    (retries,) = parser.parse(text).parameters
    assert retries.default == 3

    with pytest.raises(InvalidParameterValueError) as exc_info:
        parser.parse(text.replace("'3'", "2.5"))
    assert exc_info.value.parameter_name == "retries"


def test_dump_round_trips(parser):
    revision = parser.parse(HELLO_WORKFLOW)
    reparsed = parser.parse(parser.dump(revision))
    assert reparsed.steps == revision.steps
    assert reparsed.parameters == revision.parameters
    assert yaml.safe_load(parser.dump(revision))["namespace"] == "demo"


def test_stamp_metadata_inserts_fields_after_id():
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    updated = datetime(2024, 1, 2, 3, 4, 5, 600000, tzinfo=timezone.utc)
    stamped = stamp_metadata(HELLO_WORKFLOW, 2, created, updated)
    lines = stamped.splitlines()
    index = lines.index("id: hello")
    assert lines[index + 1 : index + 4] == [
        "version: 2",
        "createdAt: 2024-01-01T00:00:00Z",
        "updatedAt: 2024-01-02T03:04:05.600000Z",
    ]


def test_stamp_metadata_rewrites_existing_fields(parser):
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    first = stamp_metadata(HELLO_WORKFLOW, 1, created, created)
    later = datetime(2024, 3, 1, tzinfo=timezone.utc)
    second = stamp_metadata(first, 1, created, later)
    assert second.count("updatedAt:") == 1
    assert parser.parse(second).updated_at == later
    assert parser.parse(second).created_at == created


def test_stamp_metadata_json_source():
    source = json.dumps({"namespace": "demo", "id": "x"})
    moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
    stamped = json.loads(stamp_metadata(source, 3, moment, moment))
    assert stamped["version"] == 3
    assert stamped["updatedAt"] == "2024-01-01T00:00:00Z"


FLOW_WORKFLOW = "{namespace: demo, id: flow, name: Flow, steps: {type: LogTask, message: hi}}"


def test_stamp_metadata_flow_style_yaml_source(parser):
    moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
    stamped = stamp_metadata(FLOW_WORKFLOW, 1, moment, moment)
    revision = parser.parse(stamped)
    assert revision.version == 1
    assert revision.updated_at == moment
    assert revision.steps == LogTask(message="hi")


def test_steps_as_list_build_root_sequence(parser):
    revision = parser.parse(HELLO_WORKFLOW)
    assert revision.steps.id is None
    assert revision.steps.steps[0] == LogTask(message="first")
