"""Registry of parameter types, built once at startup."""

from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Protocol

from ..errors import ParameterTypeNotFoundError, RegistryError
from .types import BuiltInParameterTypesProvider, ParameterType

logger = logging.getLogger(__name__)

_TYPE_ID_RE = re.compile(r"^[A-Z][A-Z0-9_]*$")


class ParameterTypesProvider(Protocol):
    """Contributes parameter types to the registry."""

    def provide_parameter_types(self) -> Iterable[ParameterType]:
        ...


class ParameterTypeRegistry:
    """Index of parameter types by ``type_id``.

    The built-in provider is always applied first. Providers are invoked
    exactly once, here; the resulting table is read-only.
    """

    def __init__(self, providers: Iterable[ParameterTypesProvider] = ()) -> None:
        types: dict[str, ParameterType] = {}
        for provider in [BuiltInParameterTypesProvider(), *providers]:
            provider_name = type(provider).__qualname__
            provided = list(provider.provide_parameter_types())
            logger.debug(
                f"Loading parameter types from {provider_name}: "
                f"{[t.type_id for t in provided]}"
            )
            for param_type in provided:
                type_id = param_type.type_id
                if not _TYPE_ID_RE.match(type_id):
                    raise RegistryError(
                        f"Parameter type id '{type_id}' from {provider_name} must be uppercase"
                    )
                if type_id in types:
                    raise RegistryError(
                        f"Duplicate parameter type '{type_id}' from {provider_name}"
                    )
                types[type_id] = param_type
        self._types: Mapping[str, ParameterType] = MappingProxyType(types)
        logger.info(f"Parameter type registry initialized with {len(types)} types")

    def get(self, type_id: str) -> Optional[ParameterType]:
        return self._types.get(type_id)

    def lookup(self, type_id: str) -> ParameterType:
        param_type = self._types.get(type_id)
        if param_type is None:
            raise ParameterTypeNotFoundError(type_id)
        return param_type

    def has_type(self, type_id: str) -> bool:
        return type_id in self._types

    def type_ids(self) -> frozenset[str]:
        return frozenset(self._types)

    def all_types(self) -> Mapping[str, ParameterType]:
        return self._types
