"""Step model, built-in steps and the step type registry."""

from .conditions import evaluate_condition, is_truthy
from .models import (
    If,
    LogTask,
    OrchestrationStep,
    Sequence,
    Step,
    StepOutcome,
    StepStatus,
    Task,
)
from .registry import CoreStepTypesProvider, StepTypeRegistry, StepTypesProvider

__all__ = [
    "CoreStepTypesProvider",
    "If",
    "LogTask",
    "OrchestrationStep",
    "Sequence",
    "Step",
    "StepOutcome",
    "StepStatus",
    "StepTypeRegistry",
    "StepTypesProvider",
    "Task",
    "evaluate_condition",
    "is_truthy",
]
