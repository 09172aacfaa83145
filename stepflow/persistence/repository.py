"""Repository abstractions for workflow revisions and executions."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from ..ids import WorkflowID, WorkflowRevisionID
from ..revisions.models import WorkflowRevision
from .models import ExecutionStatus, ExecutionStepResult, WorkflowExecution


class RevisionRepository(Protocol):
    """Protocol for workflow revision storage."""

    def save(self, revision: WorkflowRevision) -> WorkflowRevision:
        """Insert a new revision."""

    def find_by_id(self, revision_id: WorkflowRevisionID) -> WorkflowRevision | None:
        """Return the revision or ``None``."""

    def find_by_workflow_id(self, workflow_id: WorkflowID) -> list[WorkflowRevision]:
        """Return every revision of a workflow, ordered by version."""

    def find_active_revisions(self, workflow_id: WorkflowID) -> list[WorkflowRevision]:
        """Return the active revisions of a workflow, ordered by version."""

    def find_max_version(self, workflow_id: WorkflowID) -> int | None:
        """Return the highest version stored for a workflow."""

    def exists(self, revision_id: WorkflowRevisionID) -> bool:
        """Whether the revision is stored."""

    def list_workflows(self, namespace: Optional[str] = None) -> list[WorkflowID]:
        """Return the distinct workflows, optionally within one namespace."""

    def update(
        self, revision: WorkflowRevision, expected_updated_at: datetime
    ) -> WorkflowRevision:
        """Replace a stored revision if its ``updated_at`` still matches.

        Raises ``OptimisticLockError`` when another writer got there first and
        ``WorkflowRevisionNotFoundError`` when the revision is gone.
        """

    def delete_by_id(self, revision_id: WorkflowRevisionID) -> bool:
        """Delete one revision; returns whether anything was deleted."""

    def delete_by_workflow_id(self, workflow_id: WorkflowID) -> int:
        """Delete every revision of a workflow; returns the count."""


class ExecutionRepository(Protocol):
    """Protocol for execution and step result storage."""

    def create_execution(self, execution: WorkflowExecution) -> WorkflowExecution:
        """Persist a new execution record."""

    def record_step_result(self, result: ExecutionStepResult) -> ExecutionStepResult:
        """Append one step result; ``(execution_id, step_index)`` is unique."""

    def update_execution_status(
        self,
        execution_id: str,
        status: ExecutionStatus,
        error_message: Optional[str] = None,
    ) -> WorkflowExecution:
        """Move an execution forward; raises on illegal transitions."""

    def find_execution(self, execution_id: str) -> WorkflowExecution | None:
        """Return the execution or ``None``."""

    def find_step_results(self, execution_id: str) -> list[ExecutionStepResult]:
        """Return step results ordered by ``step_index``."""

    def find_executions(
        self,
        workflow_id: WorkflowID,
        version: Optional[int] = None,
        status: Optional[ExecutionStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[WorkflowExecution]:
        """Return executions newest first."""

    def count_executions(
        self,
        workflow_id: WorkflowID,
        version: Optional[int] = None,
        status: Optional[ExecutionStatus] = None,
    ) -> int:
        """Count executions matching the filters."""


class WorkflowRepository(RevisionRepository, ExecutionRepository, Protocol):
    """A single backend storing both revisions and executions."""
