"""Registry mapping step tags to their implementations."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Protocol

from pydantic import ValidationError

from ..errors import (
    RegistryError,
    StepTypeNotFoundError,
    UnknownStepTypeError,
    WorkflowRevisionParsingError,
)
from .models import If, LogTask, Sequence, Step

logger = logging.getLogger(__name__)


class StepTypesProvider(Protocol):
    """Contributes step implementations keyed by tag."""

    def provide_step_types(self) -> Mapping[str, type[Step]]:
        ...


class CoreStepTypesProvider:
    def provide_step_types(self) -> Mapping[str, type[Step]]:
        return {
            Sequence.type_name: Sequence,
            If.type_name: If,
            LogTask.type_name: LogTask,
        }


class StepTypeRegistry:
    """Index of step implementations by tag.

    The core provider is always applied first. A tag contributed twice, a
    class that is not a :class:`Step`, or a class whose ``type_name`` does not
    match its tag is rejected with :class:`RegistryError`.
    """

    def __init__(self, providers: Iterable[StepTypesProvider] = ()) -> None:
        types: dict[str, type[Step]] = {}
        for provider in [CoreStepTypesProvider(), *providers]:
            provider_name = type(provider).__qualname__
            provided = dict(provider.provide_step_types())
            logger.debug(f"Loading step types from {provider_name}: {sorted(provided)}")
            for tag, step_cls in provided.items():
                if not isinstance(step_cls, type) or not issubclass(step_cls, Step):
                    raise RegistryError(
                        f"Step type '{tag}' from {provider_name} is not a Step subclass"
                    )
                if step_cls.type_name != tag:
                    raise RegistryError(
                        f"Step type '{tag}' from {provider_name} declares "
                        f"type_name '{step_cls.type_name}'"
                    )
                if tag in types:
                    raise RegistryError(
                        f"Duplicate step type '{tag}' from {provider_name} "
                        f"(already registered by {types[tag].__qualname__})"
                    )
                types[tag] = step_cls
        self._types: Mapping[str, type[Step]] = MappingProxyType(types)
        logger.info(f"Step type registry initialized with {len(types)} types")

    def get(self, tag: str) -> Optional[type[Step]]:
        return self._types.get(tag)

    def lookup(self, tag: str) -> type[Step]:
        step_cls = self._types.get(tag)
        if step_cls is None:
            raise StepTypeNotFoundError(tag)
        return step_cls

    def is_registered(self, tag: str) -> bool:
        return tag in self._types

    def all_tags(self) -> frozenset[str]:
        return frozenset(self._types)

    def parse_step(self, data: Any, path: str = "steps") -> Step:
        """Build a step tree from its document form.

        ``path`` locates the node in the document and is carried into errors.
        """
        if not isinstance(data, dict):
            raise WorkflowRevisionParsingError(f"Step at {path} must be a mapping")
        fields = dict(data)
        tag = fields.pop("type", None)
        if not isinstance(tag, str) or not tag:
            raise WorkflowRevisionParsingError(f"Step at {path} is missing 'type'")
        step_cls = self._types.get(tag)
        if step_cls is None:
            raise UnknownStepTypeError(tag, path)
        try:
            return step_cls.from_document(fields, self.parse_step, path)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc']) or tag}: {err['msg']}"
                for err in exc.errors()
            )
            raise WorkflowRevisionParsingError(
                f"Invalid {tag} step at {path}: {problems}"
            ) from exc
