"""Identity types for workflows, revisions and executions."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import (
    MalformedExecutionIDError,
    MalformedWorkflowIDError,
    MalformedWorkflowRevisionIDError,
)
from .utils import nanoid

EXECUTION_ID_SIZE = nanoid.DEFAULT_SIZE


@dataclass(frozen=True)
class WorkflowID:
    """Identity of a workflow across all of its revisions.

    The canonical string form is ``namespace:id``; both halves are non-blank.
    """

    namespace: str
    id: str

    def __post_init__(self) -> None:
        if not self.namespace.strip():
            raise MalformedWorkflowIDError(str(self), "Namespace must not be blank")
        if not self.id.strip():
            raise MalformedWorkflowIDError(str(self), "ID must not be blank")

    def with_version(self, version: int) -> WorkflowRevisionID:
        return WorkflowRevisionID(self.namespace, self.id, version)

    def __str__(self) -> str:
        return f"{self.namespace}:{self.id}"

    @classmethod
    def parse(cls, value: str) -> WorkflowID:
        """Parse ``namespace:id``.

        Raises:
            MalformedWorkflowIDError: if the value is not exactly two parts
                separated by a single colon, or either part is blank.
        """
        parts = value.split(":")
        if len(parts) != 2:
            raise MalformedWorkflowIDError(
                value, f"Invalid WorkflowID format: {value} (expected namespace:id)"
            )
        namespace, id_ = parts
        if not namespace.strip():
            raise MalformedWorkflowIDError(
                value, f"Namespace must not be blank in WorkflowID: {value}"
            )
        if not id_.strip():
            raise MalformedWorkflowIDError(
                value, f"ID must not be blank in WorkflowID: {value}"
            )
        return cls(namespace=namespace, id=id_)


@dataclass(frozen=True)
class WorkflowRevisionID:
    """A single version of a workflow, ``namespace:id:version``."""

    namespace: str
    id: str
    version: int

    def __post_init__(self) -> None:
        if not self.namespace.strip():
            raise MalformedWorkflowRevisionIDError(str(self), "Namespace must not be blank")
        if not self.id.strip():
            raise MalformedWorkflowRevisionIDError(str(self), "ID must not be blank")
        if isinstance(self.version, bool) or not isinstance(self.version, int):
            raise MalformedWorkflowRevisionIDError(
                str(self), f"Version must be an integer, got: {self.version!r}"
            )
        if self.version <= 0:
            raise MalformedWorkflowRevisionIDError(
                str(self), f"Version must be positive, got: {self.version}"
            )

    @property
    def workflow_id(self) -> WorkflowID:
        return WorkflowID(self.namespace, self.id)

    def __str__(self) -> str:
        return f"{self.namespace}:{self.id}:{self.version}"

    @classmethod
    def parse(cls, value: str) -> WorkflowRevisionID:
        parts = value.split(":")
        if len(parts) != 3:
            raise MalformedWorkflowRevisionIDError(
                value,
                f"Invalid WorkflowRevisionID format: {value} (expected namespace:id:version)",
            )
        namespace, id_, version_str = parts
        if not namespace.strip():
            raise MalformedWorkflowRevisionIDError(
                value, f"Namespace must not be blank in WorkflowRevisionID: {value}"
            )
        if not id_.strip():
            raise MalformedWorkflowRevisionIDError(
                value, f"ID must not be blank in WorkflowRevisionID: {value}"
            )
        try:
            version = int(version_str)
        except ValueError:
            raise MalformedWorkflowRevisionIDError(
                value,
                f"Invalid version number in WorkflowRevisionID: {value} "
                f"(version must be a positive integer, got: {version_str})",
            ) from None
        if version <= 0:
            raise MalformedWorkflowRevisionIDError(
                value,
                f"Version must be positive in WorkflowRevisionID: {value} (got: {version})",
            )
        return cls(namespace=namespace, id=id_, version=version)


def new_execution_id() -> str:
    return nanoid.generate()


def parse_execution_id(value: str) -> str:
    """Validate an execution identifier and return it unchanged."""

    if not nanoid.is_valid(value, min_size=EXECUTION_ID_SIZE, max_size=EXECUTION_ID_SIZE):
        raise MalformedExecutionIDError(value)
    return value
