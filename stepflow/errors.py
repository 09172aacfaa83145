"""Error taxonomy shared by every stepflow component.

Each error carries the structured fields a boundary layer needs to render a
problem response (``type``, ``title``, ``status`` plus error specific data)
without re-deriving context. Nothing in the core retries on these errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .ids import WorkflowID, WorkflowRevisionID


class StepflowError(Exception):
    """Root of all domain errors."""

    type: str = "about:blank"
    title: str = "Stepflow Error"
    status: Optional[int] = None

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def extra(self) -> dict[str, Any]:
        """Structured, error specific fields."""
        return {}

    def to_problem(self) -> dict[str, Any]:
        problem: dict[str, Any] = {
            "type": self.type,
            "title": self.title,
            "status": self.status,
            "detail": self.detail,
        }
        problem.update(self.extra())
        return problem


# ----------------------------------------------------------------------
# Categories


class NotFoundError(StepflowError):
    status = 404


class AlreadyExistsError(StepflowError):
    status = 409


class ConflictError(StepflowError):
    status = 409


class WorkflowValidationError(StepflowError):
    status = 400


class ExecutionFailure(StepflowError):
    status = 500


class RegistryError(StepflowError):
    """Invalid registration during the startup discovery phase."""

    type = "/problems/registry-error"
    title = "Registry Error"


# ----------------------------------------------------------------------
# Not found


class WorkflowNotFoundError(NotFoundError):
    type = "/problems/workflow-not-found"
    title = "Workflow Not Found"

    def __init__(self, workflow_id: WorkflowID) -> None:
        super().__init__(f"Workflow not found: {workflow_id}")
        self.workflow_id = workflow_id

    def extra(self) -> dict[str, Any]:
        return {"workflowId": str(self.workflow_id)}


class WorkflowRevisionNotFoundError(NotFoundError):
    type = "/problems/workflow-revision-not-found"
    title = "Workflow Revision Not Found"

    def __init__(self, revision_id: WorkflowRevisionID) -> None:
        super().__init__(f"Workflow revision not found: {revision_id}")
        self.revision_id = revision_id

    def extra(self) -> dict[str, Any]:
        return {"revisionId": str(self.revision_id)}


class ExecutionNotFoundError(NotFoundError):
    type = "/problems/execution-not-found"
    title = "Workflow Execution Not Found"

    def __init__(self, execution_id: str) -> None:
        super().__init__(f"Workflow execution not found: {execution_id}")
        self.execution_id = execution_id

    def extra(self) -> dict[str, Any]:
        return {"executionId": self.execution_id}


class StepTypeNotFoundError(NotFoundError):
    type = "/problems/step-type-not-found"
    title = "Step Type Not Found"

    def __init__(self, tag: str) -> None:
        super().__init__(f"Step type not registered: {tag}")
        self.tag = tag

    def extra(self) -> dict[str, Any]:
        return {"tag": self.tag}


class ParameterTypeNotFoundError(NotFoundError):
    type = "/problems/parameter-type-not-found"
    title = "Parameter Type Not Found"

    def __init__(self, type_id: str) -> None:
        super().__init__(f"Parameter type not registered: {type_id}")
        self.type_id = type_id

    def extra(self) -> dict[str, Any]:
        return {"typeId": self.type_id}


# ----------------------------------------------------------------------
# Already exists / conflicts


class WorkflowAlreadyExistsError(AlreadyExistsError):
    type = "/problems/workflow-already-exists"
    title = "Workflow Already Exists"

    def __init__(self, workflow_id: WorkflowID) -> None:
        super().__init__(f"Workflow already exists: {workflow_id}")
        self.workflow_id = workflow_id

    def extra(self) -> dict[str, Any]:
        return {"workflowId": str(self.workflow_id)}


class ActiveRevisionConflictError(ConflictError):
    """Raised when an active revision would be updated or deleted."""

    type = "/problems/active-revision-conflict"
    title = "Active Revision Conflict"

    def __init__(self, revision_id: WorkflowRevisionID, operation: str) -> None:
        super().__init__(
            f"Cannot {operation} active revision: {revision_id}. Deactivate it first."
        )
        self.revision_id = revision_id
        self.operation = operation

    def extra(self) -> dict[str, Any]:
        return {"revisionId": str(self.revision_id), "operation": self.operation}


class OptimisticLockError(ConflictError):
    """The revision changed since the caller last read it.

    ``expected_updated_at`` is the stale value supplied by the caller and
    ``actual_updated_at`` the value currently stored. The caller must re-fetch
    the revision and retry with the fresh timestamp.
    """

    type = "/problems/optimistic-lock-conflict"
    title = "Optimistic Lock Conflict"

    def __init__(
        self,
        revision_id: WorkflowRevisionID,
        expected_updated_at: datetime,
        actual_updated_at: datetime,
    ) -> None:
        super().__init__(
            f"Workflow revision {revision_id} has been modified by another writer "
            f"(expected updatedAt {expected_updated_at.isoformat()}, "
            f"actual {actual_updated_at.isoformat()}). "
            "Refresh the revision and retry."
        )
        self.revision_id = revision_id
        self.expected_updated_at = expected_updated_at
        self.actual_updated_at = actual_updated_at

    def extra(self) -> dict[str, Any]:
        return {
            "revisionId": str(self.revision_id),
            "expectedUpdatedAt": self.expected_updated_at.isoformat(),
            "actualUpdatedAt": self.actual_updated_at.isoformat(),
        }


class RevisionNotActiveError(ConflictError):
    type = "/problems/revision-not-active"
    title = "Revision Not Active"

    def __init__(self, revision_id: WorkflowRevisionID) -> None:
        super().__init__(f"Workflow revision {revision_id} is not active")
        self.revision_id = revision_id

    def extra(self) -> dict[str, Any]:
        return {"revisionId": str(self.revision_id)}


class InvalidStatusTransitionError(ConflictError):
    type = "/problems/invalid-status-transition"
    title = "Invalid Execution Status Transition"

    def __init__(self, execution_id: str, current: str, requested: str) -> None:
        super().__init__(
            f"Execution {execution_id} cannot move from {current} to {requested}"
        )
        self.execution_id = execution_id
        self.current = current
        self.requested = requested

    def extra(self) -> dict[str, Any]:
        return {
            "executionId": self.execution_id,
            "currentStatus": self.current,
            "requestedStatus": self.requested,
        }


# ----------------------------------------------------------------------
# Validation


class _MalformedInputError(WorkflowValidationError):
    expected_format = ""

    def __init__(self, input: str, reason: Optional[str] = None) -> None:
        super().__init__(
            reason
            or f"Invalid {self.title.split()[-1]} format: {input} (expected {self.expected_format})"
        )
        self.input = input
        self.reason = self.detail

    def extra(self) -> dict[str, Any]:
        return {"input": self.input}


class MalformedWorkflowIDError(_MalformedInputError):
    type = "/problems/malformed-workflow-id"
    title = "Malformed WorkflowID"
    expected_format = "namespace:id"


class MalformedWorkflowRevisionIDError(_MalformedInputError):
    type = "/problems/malformed-workflow-revision-id"
    title = "Malformed WorkflowRevisionID"
    expected_format = "namespace:id:version"


class MalformedExecutionIDError(_MalformedInputError):
    type = "/problems/malformed-workflow-execution-id"
    title = "Malformed WorkflowExecutionID"
    expected_format = "NanoID of length 21"


class InvalidWorkflowRevisionError(WorkflowValidationError):
    type = "/problems/invalid-workflow-revision"
    title = "Invalid Workflow Revision"

    def __init__(self, message: str, field: str, rejected_value: Any = None) -> None:
        super().__init__(message)
        self.field = field
        self.rejected_value = rejected_value

    def extra(self) -> dict[str, Any]:
        return {"field": self.field, "rejectedValue": self.rejected_value}


class WorkflowRevisionParsingError(WorkflowValidationError):
    type = "/problems/workflow-revision-parsing-failed"
    title = "Workflow Revision Parsing Failed"


class UnknownStepTypeError(WorkflowRevisionParsingError):
    """A workflow document references a step tag missing from the registry."""

    type = "/problems/unrecognized-step-type"
    title = "Unrecognized Step Type"

    def __init__(self, tag: str, path: str) -> None:
        super().__init__(f"Unrecognized step type '{tag}' at {path}")
        self.tag = tag
        self.path = path

    def extra(self) -> dict[str, Any]:
        return {"tag": self.tag, "path": self.path}


class InvalidParameterValueError(WorkflowValidationError):
    type = "/problems/parameter-value-invalid"
    title = "Invalid Parameter Value"

    def __init__(
        self,
        expected_type: str,
        provided_value: Any,
        reason: str,
        parameter_name: Optional[str] = None,
    ) -> None:
        if parameter_name is not None:
            message = f"Parameter '{parameter_name}' of type {expected_type}: {reason}"
        else:
            message = f"Value for type {expected_type}: {reason}"
        super().__init__(message)
        self.expected_type = expected_type
        self.provided_value = provided_value
        self.reason = reason
        self.parameter_name = parameter_name

    def extra(self) -> dict[str, Any]:
        return {
            "parameter": self.parameter_name,
            "expectedType": self.expected_type,
            "providedValue": self.provided_value,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ParameterIssue:
    """A single input parameter that failed validation."""

    name: str
    reason: str
    provided: Any = None


class ParameterValidationError(WorkflowValidationError):
    type = "/problems/parameter-validation-failed"
    title = "Parameter Validation Failed"

    def __init__(
        self, revision_id: WorkflowRevisionID, errors: list[ParameterIssue]
    ) -> None:
        names = ", ".join(issue.name for issue in errors)
        super().__init__(
            f"Parameter validation failed for {revision_id}: {len(errors)} error(s) ({names})"
        )
        self.revision_id = revision_id
        self.errors = list(errors)

    def extra(self) -> dict[str, Any]:
        return {
            "revisionId": str(self.revision_id),
            "invalidParams": [
                {"name": e.name, "reason": e.reason, "provided": e.provided}
                for e in self.errors
            ],
        }


# ----------------------------------------------------------------------
# Execution failures


class StepFailedError(ExecutionFailure):
    """Raised by a step's own logic to fail the step and its execution."""

    type = "/problems/step-failed"
    title = "Step Failed"

    def __init__(self, message: str, output: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.output = output


class StorageError(ExecutionFailure):
    """A persistence write failed. Fatal to the running execution."""

    type = "/problems/storage-error"
    title = "Storage Error"
