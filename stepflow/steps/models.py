"""Step tree data model.

A workflow revision owns one finite, acyclic tree of steps. Leaves are
:class:`Task` instances doing one unit of work; composites are
:class:`OrchestrationStep` instances deciding the order of their children.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, ClassVar, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import WorkflowRevisionParsingError

if TYPE_CHECKING:
    from ..execute import ExecutionContext

logger = logging.getLogger(__name__)

ParseChild = Callable[[Any, str], "Step"]


class StepStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class StepOutcome(NamedTuple):
    """What a step hands back to the executor."""

    status: StepStatus
    context: ExecutionContext
    output: Optional[dict[str, Any]] = None


class Step(BaseModel):
    """Base class for every node of a step tree.

    ``type_name`` is the tag identifying the step in workflow documents.
    """

    type_name: ClassVar[str] = ""

    id: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def children(self) -> tuple[Step, ...]:
        return ()

    def snapshot(self) -> dict[str, Any]:
        """Scalar inputs of this step, recorded in the audit trail."""
        return self.model_dump(mode="json", exclude={"id"}, by_alias=True)

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {"type": self.type_name}
        if self.id is not None:
            document["id"] = self.id
        document.update(self.snapshot())
        return document

    @classmethod
    def from_document(
        cls, data: dict[str, Any], parse_child: ParseChild, path: str
    ) -> Step:
        """Build the step from its document fields (``type`` already removed)."""
        return cls.model_validate(data)


class Task(Step):
    """Leaf step performing a single unit of work."""

    def execute(self, context: ExecutionContext) -> StepOutcome:
        raise NotImplementedError


class OrchestrationStep(Step):
    """Composite step controlling the execution of its children.

    Plugin composites implement :meth:`execute` and run each child through
    ``context.executor.execute_and_persist`` so every node is recorded.
    """

    def execute(self, context: ExecutionContext) -> StepOutcome:
        raise NotImplementedError


class LogTask(Task):
    """Emit one message to the log."""

    type_name: ClassVar[str] = "LogTask"

    message: str

    def execute(self, context: ExecutionContext) -> StepOutcome:
        logger.info(self.message)
        return StepOutcome(StepStatus.COMPLETED, context, {"message": self.message})


class Sequence(OrchestrationStep):
    """Run children strictly in order, stopping at the first failure."""

    type_name: ClassVar[str] = "Sequence"

    steps: tuple[Step, ...] = ()

    def children(self) -> tuple[Step, ...]:
        return self.steps

    def snapshot(self) -> dict[str, Any]:
        return {"steps": len(self.steps)}

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {"type": self.type_name}
        if self.id is not None:
            document["id"] = self.id
        document["steps"] = [step.to_document() for step in self.steps]
        return document

    @classmethod
    def from_document(
        cls, data: dict[str, Any], parse_child: ParseChild, path: str
    ) -> Step:
        fields = dict(data)
        raw_steps = fields.pop("steps", [])
        if not isinstance(raw_steps, list):
            raise WorkflowRevisionParsingError(f"'steps' at {path} must be a list")
        children = tuple(
            parse_child(item, f"{path}.steps[{index}]")
            for index, item in enumerate(raw_steps)
        )
        return cls.model_validate({**fields, "steps": children})


class If(OrchestrationStep):
    """Run ``if_true`` or ``if_false`` depending on ``condition``."""

    type_name: ClassVar[str] = "If"

    condition: str
    if_true: Step = Field(alias="ifTrue")
    if_false: Optional[Step] = Field(default=None, alias="ifFalse")

    def children(self) -> tuple[Step, ...]:
        if self.if_false is None:
            return (self.if_true,)
        return (self.if_true, self.if_false)

    def snapshot(self) -> dict[str, Any]:
        return {"condition": self.condition}

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {"type": self.type_name}
        if self.id is not None:
            document["id"] = self.id
        document["condition"] = self.condition
        document["ifTrue"] = self.if_true.to_document()
        if self.if_false is not None:
            document["ifFalse"] = self.if_false.to_document()
        return document

    @classmethod
    def from_document(
        cls, data: dict[str, Any], parse_child: ParseChild, path: str
    ) -> Step:
        fields = dict(data)
        if "ifTrue" in fields:
            fields["ifTrue"] = parse_child(fields["ifTrue"], f"{path}.ifTrue")
        if fields.get("ifFalse") is not None:
            fields["ifFalse"] = parse_child(fields["ifFalse"], f"{path}.ifFalse")
        return cls.model_validate(fields)
