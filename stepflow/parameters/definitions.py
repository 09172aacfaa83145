"""Parameter schema entries declared by a workflow revision."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from .types import ParameterType


class ParameterDefinition(BaseModel):
    """Schema for a single workflow input parameter.

    ``default`` only applies when ``required`` is false.
    """

    name: str
    type: ParameterType
    required: bool = True
    default: Optional[Any] = None
    description: Optional[str] = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "name": self.name,
            "type": self.type.type_id,
            "required": self.required,
        }
        if self.default is not None:
            document["default"] = self.default
        if self.description:
            document["description"] = self.description
        return document
