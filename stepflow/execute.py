"""Step execution engine for stepflow workflows."""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .errors import StepFailedError, StorageError
from .persistence.models import ErrorInfo, ExecutionStepResult
from .persistence.repository import ExecutionRepository
from .steps.conditions import evaluate_condition
from .steps.models import If, Sequence, Step, StepOutcome, StepStatus
from .utils import nanoid, utcnow

logger = logging.getLogger(__name__)


def _frozen(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ExecutionContext:
    """Immutable state threaded through one execution.

    Every ``with_*`` method returns a new context; the receiver is never
    modified.
    """

    execution_id: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    step_outputs: Mapping[str, Any] = field(default_factory=dict)
    executor: Optional[StepExecutor] = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", _frozen(self.parameters))
        object.__setattr__(self, "step_outputs", _frozen(self.step_outputs))

    def get_parameter(self, name: str) -> Any:
        return self.parameters.get(name)

    def get_step_output(self, step_id: str) -> Any:
        return self.step_outputs.get(step_id)

    def with_step_output(self, step_id: str, output: Any) -> ExecutionContext:
        return ExecutionContext(
            self.execution_id,
            self.parameters,
            {**self.step_outputs, step_id: output},
            self.executor,
        )

    def with_parameters(self, updates: Mapping[str, Any]) -> ExecutionContext:
        return ExecutionContext(
            self.execution_id,
            {**self.parameters, **updates},
            self.step_outputs,
            self.executor,
        )


class StepExecutor:
    """Run a step tree depth-first and persist one result per step.

    Indices are assigned in pre-order, before a step runs; results are written
    in post-order, after every child has been recorded. A step that raises
    anything but :class:`StorageError` is recorded as FAILED and the run
    continues according to its parent's semantics.
    """

    def __init__(self, execution_id: str, repository: ExecutionRepository) -> None:
        self.execution_id = execution_id
        self._repository = repository
        self._next_index = 0
        self.first_failure: Optional[str] = None

    @property
    def executed_count(self) -> int:
        return self._next_index

    def new_context(self, parameters: Mapping[str, Any]) -> ExecutionContext:
        return ExecutionContext(self.execution_id, parameters, {}, self)

    def execute_and_persist(
        self, step: Step, context: ExecutionContext
    ) -> tuple[StepStatus, ExecutionContext]:
        index = self._next_index
        self._next_index += 1
        tag = step.type_name
        step_id = step.id or f"{tag}#{index}"
        inputs: dict[str, Any] = {"parameters": dict(context.parameters)}
        started_at = utcnow()
        logger.debug(f"Execution {self.execution_id}: running step {index} ({step_id})")

        output: Optional[dict[str, Any]] = None
        error_message: Optional[str] = None
        error_details: Optional[ErrorInfo] = None
        try:
            inputs.update(step.snapshot())
            if tag == Sequence.type_name:
                outcome = self._run_sequence(step, context)
            elif tag == If.type_name:
                outcome = self._run_if(step, context)
            else:
                outcome = step.execute(context)
            status, context, output = outcome
            if output is not None:
                if not isinstance(output, Mapping):
                    raise TypeError(
                        f"Step output must be a mapping, got {type(output).__name__}"
                    )
                output = dict(output)
        except StorageError:
            raise
        except Exception as exc:
            status = StepStatus.FAILED
            error_message = str(exc) or type(exc).__name__
            output = exc.output if isinstance(exc, StepFailedError) else None
            error_details = ErrorInfo(
                error_type=f"{type(exc).__module__}.{type(exc).__qualname__}",
                stack_trace=traceback.format_exc(),
                step_inputs=inputs,
            )
            logger.warning(
                f"Execution {self.execution_id}: step {index} ({step_id}) failed: "
                f"{error_message}"
            )

        if status is StepStatus.FAILED and self.first_failure is None:
            self.first_failure = error_message or f"Step {step_id} failed"

        if output is not None:
            context = context.with_step_output(step_id, output)

        self._repository.record_step_result(
            ExecutionStepResult(
                result_id=nanoid.generate(),
                execution_id=self.execution_id,
                step_index=index,
                step_id=step_id,
                step_type=tag,
                status=status,
                input_data=inputs,
                output_data=output,
                error_message=error_message,
                error_details=error_details,
                started_at=started_at,
                completed_at=utcnow(),
            )
        )
        return status, context

    def _run_sequence(self, step: Sequence, context: ExecutionContext) -> StepOutcome:
        for child in step.steps:
            status, context = self.execute_and_persist(child, context)
            if status is StepStatus.FAILED:
                return StepOutcome(StepStatus.FAILED, context)
        return StepOutcome(StepStatus.COMPLETED, context)

    def _run_if(self, step: If, context: ExecutionContext) -> StepOutcome:
        if evaluate_condition(step.condition, context.parameters):
            branch: Optional[Step] = step.if_true
        else:
            branch = step.if_false
        if branch is None:
            return StepOutcome(StepStatus.COMPLETED, context)
        status, context = self.execute_and_persist(branch, context)
        return StepOutcome(status, context)
