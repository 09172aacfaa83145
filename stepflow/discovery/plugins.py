"""Discover plugin step and parameter type providers from entry points."""

from __future__ import annotations

import logging
from importlib.metadata import EntryPoint, entry_points
from typing import Any

from ..errors import RegistryError
from ..parameters.registry import ParameterTypesProvider
from ..steps.registry import StepTypesProvider

logger = logging.getLogger(__name__)

STEP_TYPES_GROUP = "stepflow.step_types"
PARAMETER_TYPES_GROUP = "stepflow.parameter_types"


def _load_providers(group: str, method: str) -> list[Any]:
    """Load every entry point of ``group`` as a provider.

    An entry point may name a provider class, instantiated with no
    arguments, or a ready provider instance.
    """

    providers: list[Any] = []
    discovered: list[EntryPoint] = sorted(entry_points(group=group), key=lambda ep: ep.name)
    for ep in discovered:
        try:
            target = ep.load()
            provider = target() if isinstance(target, type) else target
        except Exception as exc:
            logger.error(f"Failed to load {group} entry point '{ep.name}' ({ep.value}): {exc}")
            raise RegistryError(
                f"Failed to load {group} entry point '{ep.name}': {exc}"
            ) from exc
        if not callable(getattr(provider, method, None)):
            raise RegistryError(
                f"Entry point '{ep.name}' in {group} does not provide {method}()"
            )
        logger.info(f"Discovered {group} provider '{ep.name}' ({ep.value})")
        providers.append(provider)
    return providers


def discover_step_type_providers(group: str = STEP_TYPES_GROUP) -> list[StepTypesProvider]:
    return _load_providers(group, "provide_step_types")


def discover_parameter_type_providers(
    group: str = PARAMETER_TYPES_GROUP,
) -> list[ParameterTypesProvider]:
    return _load_providers(group, "provide_parameter_types")
