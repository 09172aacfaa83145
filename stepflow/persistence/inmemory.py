"""In-memory implementation of the workflow repository."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, Optional

from ..errors import (
    ExecutionNotFoundError,
    InvalidStatusTransitionError,
    OptimisticLockError,
    StorageError,
    WorkflowRevisionNotFoundError,
)
from ..ids import WorkflowID, WorkflowRevisionID
from ..revisions.models import WorkflowRevision
from ..utils import utcnow
from .models import ExecutionStatus, ExecutionStepResult, WorkflowExecution
from .repository import WorkflowRepository


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store revisions and executions in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._revisions: Dict[WorkflowRevisionID, WorkflowRevision] = {}
        self._executions: Dict[str, WorkflowExecution] = {}
        self._step_results: Dict[str, Dict[int, ExecutionStepResult]] = {}

    # ------------------------------------------------------------------
    # Revisions
    def save(self, revision: WorkflowRevision) -> WorkflowRevision:
        with self._lock:
            if revision.revision_id in self._revisions:
                raise StorageError(f"Revision already stored: {revision.revision_id}")
            self._revisions[revision.revision_id] = revision
        return revision

    def find_by_id(self, revision_id: WorkflowRevisionID) -> WorkflowRevision | None:
        return self._revisions.get(revision_id)

    def find_by_workflow_id(self, workflow_id: WorkflowID) -> list[WorkflowRevision]:
        with self._lock:
            revisions = [r for r in self._revisions.values() if r.workflow_id == workflow_id]
        return sorted(revisions, key=lambda r: r.version)

    def find_active_revisions(self, workflow_id: WorkflowID) -> list[WorkflowRevision]:
        return [r for r in self.find_by_workflow_id(workflow_id) if r.active]

    def find_max_version(self, workflow_id: WorkflowID) -> int | None:
        versions = [r.version for r in self.find_by_workflow_id(workflow_id)]
        return max(versions) if versions else None

    def exists(self, revision_id: WorkflowRevisionID) -> bool:
        return revision_id in self._revisions

    def list_workflows(self, namespace: Optional[str] = None) -> list[WorkflowID]:
        with self._lock:
            ids = {
                rid.workflow_id
                for rid in self._revisions
                if namespace is None or rid.namespace == namespace
            }
        return sorted(ids, key=str)

    def update(
        self, revision: WorkflowRevision, expected_updated_at: datetime
    ) -> WorkflowRevision:
        revision_id = revision.revision_id
        with self._lock:
            current = self._revisions.get(revision_id)
            if current is None:
                raise WorkflowRevisionNotFoundError(revision_id)
            if current.updated_at != expected_updated_at:
                raise OptimisticLockError(
                    revision_id, expected_updated_at, current.updated_at
                )
            self._revisions[revision_id] = revision
        return revision

    def delete_by_id(self, revision_id: WorkflowRevisionID) -> bool:
        with self._lock:
            return self._revisions.pop(revision_id, None) is not None

    def delete_by_workflow_id(self, workflow_id: WorkflowID) -> int:
        with self._lock:
            doomed = [rid for rid in self._revisions if rid.workflow_id == workflow_id]
            for rid in doomed:
                del self._revisions[rid]
        return len(doomed)

    # ------------------------------------------------------------------
    # Executions
    def create_execution(self, execution: WorkflowExecution) -> WorkflowExecution:
        with self._lock:
            if execution.execution_id in self._executions:
                raise StorageError(f"Execution already stored: {execution.execution_id}")
            self._executions[execution.execution_id] = execution
            self._step_results[execution.execution_id] = {}
        return execution

    def record_step_result(self, result: ExecutionStepResult) -> ExecutionStepResult:
        with self._lock:
            results = self._step_results.get(result.execution_id)
            if results is None:
                raise StorageError(
                    f"Cannot record step result for unknown execution {result.execution_id}"
                )
            if result.step_index in results:
                raise StorageError(
                    f"Step result {result.step_index} already recorded for "
                    f"execution {result.execution_id}"
                )
            results[result.step_index] = result
        return result

    def update_execution_status(
        self,
        execution_id: str,
        status: ExecutionStatus,
        error_message: Optional[str] = None,
    ) -> WorkflowExecution:
        with self._lock:
            current = self._executions.get(execution_id)
            if current is None:
                raise ExecutionNotFoundError(execution_id)
            if not current.status.can_transition_to(status):
                raise InvalidStatusTransitionError(
                    execution_id, current.status.value, status.value
                )
            now = utcnow()
            updated = current.model_copy(
                update={
                    "status": status,
                    "completed_at": now if status.is_terminal() else None,
                    "error_message": error_message
                    if status is ExecutionStatus.FAILED
                    else None,
                    "last_updated_at": now,
                }
            )
            self._executions[execution_id] = updated
        return updated

    def find_execution(self, execution_id: str) -> WorkflowExecution | None:
        return self._executions.get(execution_id)

    def find_step_results(self, execution_id: str) -> list[ExecutionStepResult]:
        with self._lock:
            results = list(self._step_results.get(execution_id, {}).values())
        return sorted(results, key=lambda r: r.step_index)

    def _matching(
        self,
        workflow_id: WorkflowID,
        version: Optional[int],
        status: Optional[ExecutionStatus],
    ) -> list[WorkflowExecution]:
        with self._lock:
            executions = list(self._executions.values())
        return [
            e
            for e in executions
            if e.revision_id.workflow_id == workflow_id
            and (version is None or e.revision_id.version == version)
            and (status is None or e.status == status)
        ]

    def find_executions(
        self,
        workflow_id: WorkflowID,
        version: Optional[int] = None,
        status: Optional[ExecutionStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[WorkflowExecution]:
        matching = sorted(
            self._matching(workflow_id, version, status),
            key=lambda e: e.started_at,
            reverse=True,
        )
        return matching[offset : offset + limit]

    def count_executions(
        self,
        workflow_id: WorkflowID,
        version: Optional[int] = None,
        status: Optional[ExecutionStatus] = None,
    ) -> int:
        return len(self._matching(workflow_id, version, status))
