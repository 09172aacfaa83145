"""Running workflow revisions and reading back their audit trail."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from .errors import (
    ExecutionNotFoundError,
    RevisionNotActiveError,
    StorageError,
    WorkflowRevisionNotFoundError,
)
from .execute import StepExecutor
from .ids import WorkflowID, WorkflowRevisionID
from .parameters.validator import ParameterValidator
from .persistence.models import (
    ExecutionHistory,
    ExecutionStatus,
    ExecutionStepResult,
    WorkflowExecution,
)
from .persistence.repository import WorkflowRepository
from .steps.models import StepStatus
from .utils import utcnow
from .utils.nanoid import NanoIDGenerator

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 100


class ExecutionService:
    """Execute revisions synchronously and query past executions."""

    def __init__(
        self,
        repository: WorkflowRepository,
        parameter_validator: Optional[ParameterValidator] = None,
        id_generator: Optional[NanoIDGenerator] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._validator = parameter_validator or ParameterValidator()
        self._ids = id_generator or NanoIDGenerator()
        self._clock = clock

    def run(
        self, revision_id: WorkflowRevisionID, parameters: Optional[Mapping[str, Any]] = None
    ) -> WorkflowExecution:
        """Execute an active revision to completion.

        Parameters are validated before anything is written. An exception
        escaping the executor, such as :class:`StorageError`, marks the
        execution FAILED, when that write still succeeds, and is re-raised.
        """
        revision = self._repository.find_by_id(revision_id)
        if revision is None:
            raise WorkflowRevisionNotFoundError(revision_id)
        if not revision.active:
            raise RevisionNotActiveError(revision_id)

        validated = self._validator.validate(
            parameters or {}, revision.parameters, revision_id
        )

        now = self._clock()
        execution = self._repository.create_execution(
            WorkflowExecution(
                execution_id=self._ids.generate(),
                revision_id=revision_id,
                status=ExecutionStatus.PENDING,
                input_parameters=validated,
                started_at=now,
                last_updated_at=now,
            )
        )
        execution_id = execution.execution_id
        logger.info(f"Starting execution {execution_id} of {revision_id}")
        self._repository.update_execution_status(execution_id, ExecutionStatus.RUNNING)

        executor = StepExecutor(execution_id, self._repository)
        try:
            status, _ = executor.execute_and_persist(
                revision.steps, executor.new_context(validated)
            )
        except Exception as exc:
            if isinstance(exc, StorageError):
                logger.error(f"Execution {execution_id} aborted by storage failure: {exc}")
            else:
                logger.exception(f"Execution {execution_id} aborted by unexpected error")
            try:
                self._repository.update_execution_status(
                    execution_id, ExecutionStatus.FAILED, str(exc) or type(exc).__name__
                )
            except StorageError:
                logger.exception(f"Could not mark execution {execution_id} as failed")
            raise

        if status is StepStatus.FAILED:
            result = self._repository.update_execution_status(
                execution_id,
                ExecutionStatus.FAILED,
                executor.first_failure or "Workflow execution failed",
            )
            logger.warning(
                f"Execution {execution_id} failed after {executor.executed_count} steps: "
                f"{result.error_message}"
            )
        else:
            result = self._repository.update_execution_status(
                execution_id, ExecutionStatus.COMPLETED
            )
            logger.info(
                f"Execution {execution_id} completed ({executor.executed_count} steps)"
            )
        return result

    def get_execution(self, execution_id: str) -> WorkflowExecution:
        execution = self._repository.find_execution(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(execution_id)
        return execution

    def get_step_results(self, execution_id: str) -> list[ExecutionStepResult]:
        self.get_execution(execution_id)
        return self._repository.find_step_results(execution_id)

    def history(
        self,
        workflow_id: WorkflowID,
        version: Optional[int] = None,
        status: Optional[ExecutionStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> ExecutionHistory:
        if not 1 <= limit <= MAX_HISTORY_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_HISTORY_LIMIT}, got: {limit}")
        if offset < 0:
            raise ValueError(f"offset must be non-negative, got: {offset}")
        executions = self._repository.find_executions(
            workflow_id, version, status, limit, offset
        )
        total = self._repository.count_executions(workflow_id, version, status)
        return ExecutionHistory(executions=executions, total_count=total)
