"""Startup wiring: registries, parser, services and storage."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .config import StepflowConfig, load_config
from .discovery import discover_parameter_type_providers, discover_step_type_providers
from .executions import ExecutionService
from .parameters.registry import ParameterTypeRegistry, ParameterTypesProvider
from .parameters.validator import ParameterValidator
from .persistence import WorkflowRepository, get_repository
from .revisions.documents import WorkflowDocumentParser
from .revisions.service import RevisionService
from .steps.registry import StepTypeRegistry, StepTypesProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Runtime:
    config: StepflowConfig
    step_types: StepTypeRegistry
    parameter_types: ParameterTypeRegistry
    parser: WorkflowDocumentParser
    repository: WorkflowRepository
    revisions: RevisionService
    executions: ExecutionService


def build_runtime(
    config: Optional[StepflowConfig] = None,
    repository: Optional[WorkflowRepository] = None,
    step_providers: Optional[Iterable[StepTypesProvider]] = None,
    parameter_providers: Optional[Iterable[ParameterTypesProvider]] = None,
) -> Runtime:
    """Build every component once, in dependency order.

    Explicit providers are used as given; otherwise, unless disabled in the
    configuration, they are discovered from entry points. Registries are
    read-only once this returns.
    """

    config = config or load_config()
    discovery = config.discovery

    if step_providers is None:
        step_providers = (
            discover_step_type_providers(discovery.step_types_group)
            if discovery.enabled
            else []
        )
    if parameter_providers is None:
        parameter_providers = (
            discover_parameter_type_providers(discovery.parameter_types_group)
            if discovery.enabled
            else []
        )

    step_types = StepTypeRegistry(step_providers)
    parameter_types = ParameterTypeRegistry(parameter_providers)
    parser = WorkflowDocumentParser(step_types, parameter_types)
    if repository is None:
        repository = get_repository(config=config, parser=parser)

    logger.info(
        f"Runtime ready: {len(step_types.all_tags())} step types, "
        f"{len(parameter_types.type_ids())} parameter types, "
        f"repository {type(repository).__name__}"
    )
    return Runtime(
        config=config,
        step_types=step_types,
        parameter_types=parameter_types,
        parser=parser,
        repository=repository,
        revisions=RevisionService(repository, parser),
        executions=ExecutionService(repository, ParameterValidator()),
    )
