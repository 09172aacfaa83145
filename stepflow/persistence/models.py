"""Data models for persisted execution state."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..ids import WorkflowRevisionID
from ..steps.models import StepStatus


class ExecutionStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    def is_terminal(self) -> bool:
        return self in _TERMINAL

    def can_transition_to(self, new_status: ExecutionStatus) -> bool:
        return new_status in _TRANSITIONS[self]


_TERMINAL = frozenset(
    {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
)

_TRANSITIONS: dict[ExecutionStatus, frozenset[ExecutionStatus]] = {
    ExecutionStatus.PENDING: frozenset(
        {ExecutionStatus.RUNNING, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
    ),
    ExecutionStatus.RUNNING: frozenset(
        {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
    ),
    ExecutionStatus.COMPLETED: frozenset(),
    ExecutionStatus.FAILED: frozenset(),
    ExecutionStatus.CANCELLED: frozenset(),
}


class WorkflowExecution(BaseModel):
    """One run of a workflow revision."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    execution_id: str
    revision_id: WorkflowRevisionID
    status: ExecutionStatus
    input_parameters: dict[str, Any] = Field(default_factory=dict)
    started_at: datetime
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    last_updated_at: datetime


class ErrorInfo(BaseModel):
    """Diagnostic details captured when a step raises."""

    model_config = ConfigDict(frozen=True)

    error_type: str
    stack_trace: str
    step_inputs: Optional[dict[str, Any]] = None


class ExecutionStepResult(BaseModel):
    """Audit record of a single step run; written once and never updated."""

    model_config = ConfigDict(frozen=True)

    result_id: str
    execution_id: str
    step_index: int
    step_id: str
    step_type: str
    status: StepStatus
    input_data: Optional[dict[str, Any]] = None
    output_data: Optional[dict[str, Any]] = None
    error_message: Optional[str] = None
    error_details: Optional[ErrorInfo] = None
    started_at: datetime
    completed_at: Optional[datetime] = None


class ExecutionHistory(BaseModel):
    model_config = ConfigDict(frozen=True)

    executions: list[WorkflowExecution] = Field(default_factory=list)
    total_count: int = 0
