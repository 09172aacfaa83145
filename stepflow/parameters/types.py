"""Built-in workflow parameter types."""

from __future__ import annotations

import re
from typing import Any, Protocol, runtime_checkable

from ..errors import InvalidParameterValueError

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

_INTEGER_RE = re.compile(r"^[+-]?\d+$")


@runtime_checkable
class ParameterType(Protocol):
    """A named type input parameters are validated and converted against.

    ``type_id`` must be unique and uppercase (``STRING``, ``CUSTOM_EMAIL``).
    """

    type_id: str
    display_name: str

    def validate_and_convert(self, value: Any) -> Any:
        """Return ``value`` converted to this type.

        Raises:
            InvalidParameterValueError: if the value cannot be converted.
        """


def _reject(type_id: str, value: Any, reason: str) -> InvalidParameterValueError:
    return InvalidParameterValueError(
        expected_type=type_id, provided_value=value, reason=reason
    )


def format_value(value: Any) -> str:
    """String form used by STRING conversion and condition comparisons."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class StringParameterType:
    """Accepts any non-null value as its trimmed string form."""

    type_id = "STRING"
    display_name = "String"

    def validate_and_convert(self, value: Any) -> str:
        if value is None:
            raise _reject(self.type_id, value, "value cannot be null")
        return format_value(value).strip()


class IntegerParameterType:
    """Signed 32-bit integers. Floats are rejected rather than truncated."""

    type_id = "INTEGER"
    display_name = "Integer"

    def validate_and_convert(self, value: Any) -> int:
        if value is None:
            raise _reject(self.type_id, value, "value cannot be null")
        if isinstance(value, bool):
            raise _reject(self.type_id, value, "must be an integer")
        if isinstance(value, int):
            return self._check_range(value, value)
        if isinstance(value, str):
            trimmed = value.strip()
            if not _INTEGER_RE.match(trimmed):
                raise _reject(self.type_id, value, "must be an integer")
            return self._check_range(int(trimmed), value)
        if isinstance(value, float):
            raise _reject(self.type_id, value, "must be an integer (floats not allowed)")
        raise _reject(self.type_id, value, "must be an integer")

    def _check_range(self, number: int, raw: Any) -> int:
        if INT32_MIN <= number <= INT32_MAX:
            return number
        raise _reject(self.type_id, raw, "integer value out of range")


class FloatParameterType:
    """Floats, with integers and numeric strings coerced."""

    type_id = "FLOAT"
    display_name = "Float"

    def validate_and_convert(self, value: Any) -> float:
        if value is None:
            raise _reject(self.type_id, value, "value cannot be null")
        if isinstance(value, bool):
            raise _reject(self.type_id, value, "must be a float")
        if isinstance(value, float):
            return value
        if isinstance(value, int):
            try:
                return float(value)
            except OverflowError:
                raise _reject(self.type_id, value, "value out of range") from None
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise _reject(self.type_id, value, "must be a float") from None
        raise _reject(self.type_id, value, "must be a float")


class BooleanParameterType:
    """Booleans and the strings ``true``/``false``. Integers are ambiguous."""

    type_id = "BOOLEAN"
    display_name = "Boolean"

    def validate_and_convert(self, value: Any) -> bool:
        if value is None:
            raise _reject(self.type_id, value, "value cannot be null")
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            trimmed = value.strip().lower()
            if trimmed == "true":
                return True
            if trimmed == "false":
                return False
            raise _reject(self.type_id, value, "must be a boolean (true or false)")
        if isinstance(value, int):
            raise _reject(self.type_id, value, "must be a boolean (integers not allowed)")
        raise _reject(self.type_id, value, "must be a boolean")


STRING = StringParameterType()
INTEGER = IntegerParameterType()
FLOAT = FloatParameterType()
BOOLEAN = BooleanParameterType()


class BuiltInParameterTypesProvider:
    """Provides the four standard parameter types."""

    def provide_parameter_types(self) -> list[ParameterType]:
        return [STRING, INTEGER, FLOAT, BOOLEAN]
