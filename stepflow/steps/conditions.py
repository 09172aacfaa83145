"""Condition evaluation for ``If`` steps.

Exactly two rules, tried in order:

1. ``${name} == 'literal'`` (or a double-quoted literal): the string form of
   parameter ``name`` equals the literal.
2. Otherwise the whole condition names a parameter whose value is coerced
   to a boolean by :func:`is_truthy`.
"""

from __future__ import annotations

import numbers
import re
from typing import Any, Mapping

from ..parameters.types import format_value

EQUALITY_PATTERN = re.compile(r"""\$\{(\w+)\}\s*==\s*['"]([^'"]+)['"]""")

TRUTHY_STRINGS = frozenset({"true", "1", "yes", "on"})


def is_truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_STRINGS
    if isinstance(value, numbers.Number):
        return value != 0
    return True


def evaluate_condition(condition: str, parameters: Mapping[str, Any]) -> bool:
    match = EQUALITY_PATTERN.search(condition)
    if match is not None:
        name, expected = match.group(1), match.group(2)
        actual = parameters.get(name)
        return actual is not None and format_value(actual) == expected
    return is_truthy(parameters.get(condition))
