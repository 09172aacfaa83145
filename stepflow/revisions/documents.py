"""Reading and writing workflow documents.

A workflow document is YAML (or JSON, which the YAML loader also accepts)
with the top level fields ``namespace``, ``id``, ``version``, ``name``,
``description``, ``active``, ``parameters``, ``steps``, ``createdAt`` and
``updatedAt``. ``steps`` is either one step mapping, the root of the tree,
or a list of steps run in order by an implicit root ``Sequence``.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

import yaml

from ..errors import (
    InvalidParameterValueError,
    ParameterTypeNotFoundError,
    WorkflowRevisionParsingError,
)
from ..parameters.definitions import ParameterDefinition
from ..parameters.registry import ParameterTypeRegistry
from ..steps.models import Sequence, Step
from ..steps.registry import StepTypeRegistry
from .models import WorkflowRevision

logger = logging.getLogger(__name__)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with a ``Z`` suffix."""
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any, field: str) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise WorkflowRevisionParsingError(
                f"'{field}' must be an ISO-8601 timestamp, got: {value!r}"
            ) from None
    else:
        raise WorkflowRevisionParsingError(
            f"'{field}' must be an ISO-8601 timestamp, got: {value!r}"
        )
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class WorkflowDocumentParser:
    """Convert between workflow documents and :class:`WorkflowRevision`.

    Step tags and parameter types resolve through the registries given at
    construction; nothing is looked up globally.
    """

    def __init__(
        self, step_types: StepTypeRegistry, parameter_types: ParameterTypeRegistry
    ) -> None:
        self.step_types = step_types
        self.parameter_types = parameter_types

    def parse(self, text: str) -> WorkflowRevision:
        """Parse document text; the text is kept verbatim as ``source``."""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise WorkflowRevisionParsingError(
                f"Invalid workflow document syntax: {exc}"
            ) from exc
        revision = self.from_document(data)
        logger.debug(f"Parsed workflow revision {revision.revision_id}")
        return revision.model_copy(update={"source": text})

    def from_document(self, data: Any) -> WorkflowRevision:
        if not isinstance(data, dict):
            raise WorkflowRevisionParsingError("Workflow document must be a mapping")

        namespace = _required_str(data, "namespace")
        id_ = _required_str(data, "id")
        name = _required_str(data, "name")

        version = data.get("version", 1)
        if isinstance(version, bool) or not isinstance(version, int):
            raise WorkflowRevisionParsingError(
                f"'version' must be an integer, got: {version!r}"
            )

        description = data.get("description")
        if description is not None and not isinstance(description, str):
            raise WorkflowRevisionParsingError("'description' must be a string")

        active = data.get("active", False)
        if not isinstance(active, bool):
            raise WorkflowRevisionParsingError("'active' must be a boolean")

        if "steps" not in data or data["steps"] is None:
            raise WorkflowRevisionParsingError("Workflow document is missing 'steps'")

        revision = WorkflowRevision(
            namespace=namespace,
            id=id_,
            version=version,
            name=name,
            description=description,
            parameters=self._parse_parameters(data.get("parameters") or []),
            steps=self._parse_root(data["steps"]),
            active=active,
            created_at=parse_timestamp(data.get("createdAt"), "createdAt"),
            updated_at=parse_timestamp(data.get("updatedAt"), "updatedAt"),
        )
        return revision.ensure_valid()

    def _parse_root(self, raw: Any) -> Step:
        if isinstance(raw, list):
            return Sequence(
                steps=tuple(
                    self.step_types.parse_step(item, f"steps[{index}]")
                    for index, item in enumerate(raw)
                )
            )
        return self.step_types.parse_step(raw, "steps")

    def _parse_parameters(self, raw: Any) -> tuple[ParameterDefinition, ...]:
        if not isinstance(raw, list):
            raise WorkflowRevisionParsingError("'parameters' must be a list")
        definitions = []
        for index, item in enumerate(raw):
            path = f"parameters[{index}]"
            if not isinstance(item, dict):
                raise WorkflowRevisionParsingError(f"Parameter at {path} must be a mapping")
            name = item.get("name")
            if not isinstance(name, str) or not name.strip():
                raise WorkflowRevisionParsingError(f"Parameter at {path} is missing 'name'")
            type_id = item.get("type")
            if not isinstance(type_id, str):
                raise WorkflowRevisionParsingError(f"Parameter '{name}' is missing 'type'")
            try:
                param_type = self.parameter_types.lookup(type_id)
            except ParameterTypeNotFoundError as exc:
                raise WorkflowRevisionParsingError(
                    f"Unknown parameter type '{type_id}' for parameter '{name}'"
                ) from exc
            required = item.get("required", True)
            if not isinstance(required, bool):
                raise WorkflowRevisionParsingError(
                    f"'required' of parameter '{name}' must be a boolean"
                )
            default = item.get("default")
            if default is not None:
                try:
                    default = param_type.validate_and_convert(default)
                except InvalidParameterValueError as exc:
                    raise InvalidParameterValueError(
                        type_id, default, exc.reason, parameter_name=name
                    ) from exc
            definitions.append(
                ParameterDefinition(
                    name=name,
                    type=param_type,
                    required=required,
                    default=default,
                    description=item.get("description"),
                )
            )
        return tuple(definitions)

    def to_document(self, revision: WorkflowRevision) -> dict[str, Any]:
        document: dict[str, Any] = {
            "namespace": revision.namespace,
            "id": revision.id,
            "version": revision.version,
            "name": revision.name,
        }
        if revision.description is not None:
            document["description"] = revision.description
        document["active"] = revision.active
        if revision.created_at is not None:
            document["createdAt"] = format_timestamp(revision.created_at)
        if revision.updated_at is not None:
            document["updatedAt"] = format_timestamp(revision.updated_at)
        if revision.parameters:
            document["parameters"] = [p.to_document() for p in revision.parameters]
        document["steps"] = revision.steps.to_document()
        return document

    def dump(self, revision: WorkflowRevision) -> str:
        return yaml.safe_dump(
            self.to_document(revision), sort_keys=False, allow_unicode=True
        )


_METADATA_LINE = {
    field: re.compile(rf"^({field}[ \t]*:[ \t]*).*$", re.MULTILINE)
    for field in ("version", "createdAt", "updatedAt")
}
_BLOCK_ID_LINE = re.compile(r"^id[ \t]*:", re.MULTILINE)


def _insert_after(source: str, anchors: tuple[str, ...], line: str) -> str:
    for anchor in anchors:
        match = re.search(rf"^{anchor}[ \t]*:.*\n", source, re.MULTILINE)
        if match is not None:
            return source[: match.end()] + line + "\n" + source[match.end() :]
    if not source.endswith("\n"):
        source += "\n"
    return source + line + "\n"


def _set_metadata_line(
    source: str, field: str, value: str, anchors: tuple[str, ...]
) -> str:
    pattern = _METADATA_LINE[field]
    if pattern.search(source):
        return pattern.sub(lambda m: m.group(1) + value, source)
    return _insert_after(source, anchors, f"{field}: {value}")


def stamp_metadata(
    source: str, version: int, created_at: datetime, updated_at: datetime
) -> str:
    """Write the authoritative ``version``, ``createdAt`` and ``updatedAt``
    into the stored document text.

    Block style YAML is edited line by line so comments and layout survive;
    missing fields are inserted after ``id`` (then after each other). JSON
    text is re-serialized as JSON, flow style YAML as block style YAML.
    """
    created = format_timestamp(created_at)
    updated = format_timestamp(updated_at)
    metadata = {"version": version, "createdAt": created, "updatedAt": updated}
    try:
        data = json.loads(source)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict):
        data.update(metadata)
        return json.dumps(data, indent=2)
    if _BLOCK_ID_LINE.search(source) is None:
        data = yaml.safe_load(source)
        data.update(metadata)
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    stamped = _set_metadata_line(source, "version", str(version), ("id",))
    stamped = _set_metadata_line(stamped, "createdAt", created, ("version", "id"))
    return _set_metadata_line(
        stamped, "updatedAt", updated, ("createdAt", "version", "id")
    )


def _required_str(data: dict[str, Any], field: str) -> str:
    value = data.get(field)
    if value is None:
        raise WorkflowRevisionParsingError(f"Workflow document is missing '{field}'")
    if not isinstance(value, str):
        raise WorkflowRevisionParsingError(f"'{field}' must be a string")
    return value
