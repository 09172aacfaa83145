import pytest

from stepflow.errors import (
    InvalidParameterValueError,
    ParameterTypeNotFoundError,
    ParameterValidationError,
    RegistryError,
)
from stepflow.ids import WorkflowRevisionID
from stepflow.parameters import (
    BOOLEAN,
    FLOAT,
    INTEGER,
    STRING,
    ParameterDefinition,
    ParameterTypeRegistry,
    ParameterValidator,
)

REVISION = WorkflowRevisionID("demo", "params", 1)


@pytest.mark.parametrize(
    "param_type,value,expected",
    [
        (STRING, "  padded  ", "padded"),
        (STRING, 42, "42"),
        (STRING, True, "true"),
        (INTEGER, 7, 7),
        (INTEGER, "42", 42),
        (INTEGER, " -5 ", -5),
        (INTEGER, 2**31 - 1, 2**31 - 1),
        (FLOAT, 2, 2.0),
        (FLOAT, "1.5", 1.5),
        (BOOLEAN, False, False),
        (BOOLEAN, " TRUE ", True),
        (BOOLEAN, "false", False),
    ],
)
def test_builtin_conversions(param_type, value, expected):
    result = param_type.validate_and_convert(value)
    assert result == expected
    assert type(result) is type(expected)


@pytest.mark.parametrize(
    "param_type,value,reason",
    [
        (INTEGER, 3.5, "must be an integer (floats not allowed)"),
        (INTEGER, 2**31, "integer value out of range"),
        (INTEGER, "2147483648", "integer value out of range"),
        (INTEGER, "4x", "must be an integer"),
        (INTEGER, True, "must be an integer"),
        (BOOLEAN, 1, "must be a boolean (integers not allowed)"),
        (FLOAT, "abc", "must be a float"),
        (FLOAT, True, "must be a float"),
        (FLOAT, 10**400, "value out of range"),
        (STRING, None, "value cannot be null"),
        (INTEGER, None, "value cannot be null"),
        (FLOAT, None, "value cannot be null"),
        (BOOLEAN, None, "value cannot be null"),
    ],
)
def test_builtin_rejections(param_type, value, reason):
    with pytest.raises(InvalidParameterValueError) as exc_info:
        param_type.validate_and_convert(value)
    assert exc_info.value.reason == reason
    assert exc_info.value.expected_type == param_type.type_id


class _EmailType:
    type_id = "EMAIL"
    display_name = "Email"

    def validate_and_convert(self, value):
        if "@" not in str(value):
            raise InvalidParameterValueError(self.type_id, value, "must be an email")
        return str(value)


class _Provider:
    def __init__(self, *types):
        self._types = types

    def provide_parameter_types(self):
        return list(self._types)


def test_registry_builtins_and_plugins():
    registry = ParameterTypeRegistry([_Provider(_EmailType())])
    assert registry.type_ids() == {"STRING", "INTEGER", "FLOAT", "BOOLEAN", "EMAIL"}
    assert registry.lookup("EMAIL").display_name == "Email"
    assert registry.get("MISSING") is None
    assert registry.has_type("STRING")
    with pytest.raises(ParameterTypeNotFoundError):
        registry.lookup("MISSING")


def test_registry_rejects_duplicates():
    with pytest.raises(RegistryError):
        ParameterTypeRegistry([_Provider(INTEGER)])


def test_registry_rejects_lowercase_ids():
    lower = _EmailType()
    lower.type_id = "email"
    with pytest.raises(RegistryError):
        ParameterTypeRegistry([_Provider(lower)])


def test_registry_is_read_only():
    registry = ParameterTypeRegistry()
    with pytest.raises(TypeError):
        registry.all_types()["NEW"] = STRING


SCHEMA = [
    ParameterDefinition(name="count", type=INTEGER),
    ParameterDefinition(name="verbose", type=BOOLEAN, required=False, default=False),
    ParameterDefinition(name="label", type=STRING, required=False),
]


def test_validator_converts_and_applies_defaults():
    result = ParameterValidator().validate({"count": "3"}, SCHEMA, REVISION)
    assert result == {"count": 3, "verbose": False}


def test_validator_collects_every_issue(caplog):
    with pytest.raises(ParameterValidationError) as exc_info:
        ParameterValidator().validate(
            {"verbose": 1, "secret": "hunter2"}, SCHEMA, REVISION
        )
    issues = {issue.name: issue.reason for issue in exc_info.value.errors}
    assert issues == {
        "count": "required parameter missing",
        "verbose": "must be a boolean (integers not allowed)",
        "secret": "parameter not defined in schema",
    }
    assert "hunter2" not in caplog.text
