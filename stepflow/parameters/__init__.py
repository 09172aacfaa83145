"""Workflow input parameter types, registry and validation."""

from .definitions import ParameterDefinition
from .registry import ParameterTypeRegistry, ParameterTypesProvider
from .types import (
    BOOLEAN,
    FLOAT,
    INTEGER,
    STRING,
    BooleanParameterType,
    BuiltInParameterTypesProvider,
    FloatParameterType,
    IntegerParameterType,
    ParameterType,
    StringParameterType,
)
from .validator import ParameterValidator

__all__ = [
    "BOOLEAN",
    "FLOAT",
    "INTEGER",
    "STRING",
    "BooleanParameterType",
    "BuiltInParameterTypesProvider",
    "FloatParameterType",
    "IntegerParameterType",
    "ParameterDefinition",
    "ParameterType",
    "ParameterTypeRegistry",
    "ParameterTypesProvider",
    "ParameterValidator",
    "StringParameterType",
]
