from typing import ClassVar

import pytest

from conftest import EchoTask, FailTask, PluginStepTypesProvider
from stepflow.errors import (
    RegistryError,
    StepTypeNotFoundError,
    UnknownStepTypeError,
    WorkflowRevisionParsingError,
)
from stepflow.steps import (
    If,
    LogTask,
    Sequence,
    StepTypeRegistry,
    Task,
    evaluate_condition,
    is_truthy,
)


def test_core_step_types_registered():
    registry = StepTypeRegistry()
    assert registry.all_tags() == {"Sequence", "If", "LogTask"}
    assert registry.lookup("LogTask") is LogTask
    assert registry.get("Missing") is None
    assert not registry.is_registered("Missing")
    with pytest.raises(StepTypeNotFoundError) as exc_info:
        registry.lookup("Missing")
    assert exc_info.value.tag == "Missing"


def test_plugin_step_types_registered():
    registry = StepTypeRegistry([PluginStepTypesProvider()])
    assert registry.lookup("Fail") is FailTask
    assert {"Fail", "Crash", "Echo"} <= registry.all_tags()


class _Provider:
    def __init__(self, mapping):
        self._mapping = mapping

    def provide_step_types(self):
        return self._mapping


def test_duplicate_tag_rejected():
    class OtherLog(Task):
        type_name: ClassVar[str] = "LogTask"

    with pytest.raises(RegistryError):
        StepTypeRegistry([_Provider({"LogTask": OtherLog})])


def test_tag_must_match_type_name():
    with pytest.raises(RegistryError):
        StepTypeRegistry([_Provider({"Different": EchoTask})])


def test_non_step_class_rejected():
    with pytest.raises(RegistryError):
        StepTypeRegistry([_Provider({"Echo": dict})])


def test_parse_nested_tree():
    registry = StepTypeRegistry([PluginStepTypesProvider()])
    step = registry.parse_step(
        {
            "type": "Sequence",
            "steps": [
                {"type": "LogTask", "id": "greet", "message": "hello"},
                {
                    "type": "If",
                    "condition": "${env} == 'prod'",
                    "ifTrue": {"type": "Echo", "parameter": "env"},
                    "ifFalse": {"type": "LogTask", "message": "skipped"},
                },
            ],
        }
    )
    assert isinstance(step, Sequence)
    greet, branch = step.steps
    assert greet == LogTask(id="greet", message="hello")
    assert isinstance(branch, If)
    assert branch.if_true == EchoTask(parameter="env")
    assert branch.if_false == LogTask(message="skipped")


def test_parse_unknown_tag_names_tag_and_path():
    registry = StepTypeRegistry()
    with pytest.raises(UnknownStepTypeError) as exc_info:
        registry.parse_step(
            {"type": "Sequence", "steps": [{"type": "LogTask", "message": "ok"}, {"type": "Bogus"}]}
        )
    assert exc_info.value.tag == "Bogus"
    assert exc_info.value.path == "steps.steps[1]"


@pytest.mark.parametrize(
    "data",
    [
        "not a mapping",
        {"message": "no type"},
        {"type": "LogTask"},
        {"type": "LogTask", "message": "x", "unexpected": 1},
        {"type": "If", "condition": "flag"},
        {"type": "Sequence", "steps": "not a list"},
    ],
)
def test_parse_malformed_steps(data):
    with pytest.raises(WorkflowRevisionParsingError):
        StepTypeRegistry().parse_step(data)


def test_step_document_round_trip():
    registry = StepTypeRegistry()
    document = {
        "type": "If",
        "id": "gate",
        "condition": "enabled",
        "ifTrue": {"type": "Sequence", "steps": [{"type": "LogTask", "message": "on"}]},
    }
    step = registry.parse_step(document)
    assert step.to_document() == document
    assert step.snapshot() == {"condition": "enabled"}


@pytest.mark.parametrize(
    "value,expected",
    [
        (True, True),
        (False, False),
        ("yes", True),
        (" On ", True),
        ("1", True),
        ("TRUE", True),
        ("no", False),
        ("", False),
        (0, False),
        (2, True),
        (0.0, False),
        (None, False),
        ([], True),
    ],
)
def test_is_truthy(value, expected):
    assert is_truthy(value) is expected


def test_equality_condition():
    assert evaluate_condition("${env} == 'prod'", {"env": "prod"})
    assert evaluate_condition('${env}=="prod"', {"env": "prod"})
    assert not evaluate_condition("${env} == 'prod'", {"env": "dev"})
    assert not evaluate_condition("${env} == 'prod'", {})
    assert evaluate_condition("${flag} == 'true'", {"flag": True})
    assert evaluate_condition("${count} == '3'", {"count": 3})


def test_parameter_name_condition():
    assert evaluate_condition("enabled", {"enabled": "yes"})
    # the condition is used verbatim as the parameter name
    assert not evaluate_condition(" enabled ", {"enabled": "yes"})
    assert not evaluate_condition("enabled", {"enabled": "off"})
    assert not evaluate_condition("missing", {})
