"""Shared fixtures: plugin step types, a stepping clock and wired services."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar, Optional

import pytest

import stepflow.persistence as persistence
from stepflow.config import DiscoveryConfig, StepflowConfig
from stepflow.errors import StepFailedError
from stepflow.persistence import InMemoryWorkflowRepository
from stepflow.runtime import Runtime, build_runtime
from stepflow.steps import StepOutcome, StepStatus, Task

HELLO_WORKFLOW = """\
namespace: demo
id: hello
name: Hello
description: Greets twice
parameters:
  - name: greeting
    type: STRING
    required: false
    default: hi
steps:
  - type: LogTask
    message: first
  - type: LogTask
    message: second
"""


class FailTask(Task):
    """Always fails through the step's own logic."""

    type_name: ClassVar[str] = "Fail"

    reason: str = "boom"

    def execute(self, context):
        raise StepFailedError(self.reason, output={"reason": self.reason})


class CrashTask(Task):
    """Fails with an unexpected exception."""

    type_name: ClassVar[str] = "Crash"

    def execute(self, context):
        raise RuntimeError("unexpected crash")


class EchoTask(Task):
    """Outputs a parameter value, optionally together with an earlier output."""

    type_name: ClassVar[str] = "Echo"

    parameter: str
    previous: Optional[str] = None

    def execute(self, context):
        output: dict[str, Any] = {"value": context.get_parameter(self.parameter)}
        if self.previous is not None:
            output["previous"] = context.get_step_output(self.previous)
        return StepOutcome(StepStatus.COMPLETED, context, output)


class PluginStepTypesProvider:
    def provide_step_types(self):
        return {"Fail": FailTask, "Crash": CrashTask, "Echo": EchoTask}


class SteppingClock:
    """Returns a new instant, one second later, on every call."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture(autouse=True)
def _reset_repository_singleton():
    persistence._repository_instance = None
    yield
    persistence._repository_instance = None


@pytest.fixture
def repository() -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository()


@pytest.fixture
def offline_config() -> StepflowConfig:
    return StepflowConfig(discovery=DiscoveryConfig(enabled=False))


@pytest.fixture
def runtime(repository, offline_config) -> Runtime:
    return build_runtime(
        config=offline_config,
        repository=repository,
        step_providers=[PluginStepTypesProvider()],
        parameter_providers=[],
    )
