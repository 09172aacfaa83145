"""Workflow revision record."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import InvalidWorkflowRevisionError
from ..ids import WorkflowID, WorkflowRevisionID
from ..parameters.definitions import ParameterDefinition
from ..steps.models import Step

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z0-9_-]+$")

MAX_IDENTIFIER_LENGTH = 100
MAX_NAME_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 1000


class WorkflowRevision(BaseModel):
    """One immutable version of a workflow definition.

    ``active`` is only ever changed by activation and deactivation; content
    edits keep ``version``, ``created_at`` and ``active`` untouched. ``source``
    holds the verbatim document text when the revision came from one.
    Timestamps are only absent on revisions freshly parsed from a document
    that does not carry them; stored revisions always have both.
    """

    model_config = ConfigDict(frozen=True)

    namespace: str
    id: str
    version: int
    name: str
    description: Optional[str] = None
    parameters: tuple[ParameterDefinition, ...] = ()
    steps: Step
    active: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    source: Optional[str] = Field(default=None, repr=False)

    @property
    def revision_id(self) -> WorkflowRevisionID:
        return WorkflowRevisionID(self.namespace, self.id, self.version)

    @property
    def workflow_id(self) -> WorkflowID:
        return WorkflowID(self.namespace, self.id)

    def ensure_valid(self) -> WorkflowRevision:
        for field, value in (("namespace", self.namespace), ("id", self.id)):
            if not value or not value.strip():
                raise InvalidWorkflowRevisionError(
                    f"{field.capitalize()} must not be blank", field, value
                )
            if len(value) > MAX_IDENTIFIER_LENGTH:
                raise InvalidWorkflowRevisionError(
                    f"{field.capitalize()} must be at most {MAX_IDENTIFIER_LENGTH} characters",
                    field,
                    value,
                )
            if not _IDENTIFIER_RE.match(value):
                raise InvalidWorkflowRevisionError(
                    f"{field.capitalize()} must contain only letters, digits, "
                    "hyphens and underscores",
                    field,
                    value,
                )
        if self.version < 1:
            raise InvalidWorkflowRevisionError(
                "Version must be at least 1", "version", self.version
            )
        if not self.name or not self.name.strip():
            raise InvalidWorkflowRevisionError("Name must not be blank", "name", self.name)
        if len(self.name) > MAX_NAME_LENGTH:
            raise InvalidWorkflowRevisionError(
                f"Name must be at most {MAX_NAME_LENGTH} characters", "name", self.name
            )
        if self.description is not None and len(self.description) > MAX_DESCRIPTION_LENGTH:
            raise InvalidWorkflowRevisionError(
                f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters",
                "description",
                self.description,
            )
        names = [p.name for p in self.parameters]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise InvalidWorkflowRevisionError(
                f"Duplicate parameter names: {', '.join(duplicates)}",
                "parameters",
                duplicates,
            )
        return self
