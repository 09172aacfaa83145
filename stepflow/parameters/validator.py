"""Validation of execution input parameters against a revision's schema."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from ..errors import InvalidParameterValueError, ParameterIssue, ParameterValidationError
from ..ids import WorkflowRevisionID
from .definitions import ParameterDefinition

logger = logging.getLogger(__name__)


class ParameterValidator:
    """Check required parameters, convert types and apply defaults.

    All issues are collected before failing so callers can report every
    problem at once.
    """

    def validate(
        self,
        parameters: Mapping[str, Any],
        schema: Sequence[ParameterDefinition],
        revision_id: WorkflowRevisionID,
    ) -> dict[str, Any]:
        errors: list[ParameterIssue] = []
        validated: dict[str, Any] = {}
        defined = {definition.name for definition in schema}

        for definition in schema:
            provided = parameters.get(definition.name)
            if provided is None:
                if definition.required:
                    errors.append(
                        ParameterIssue(definition.name, "required parameter missing")
                    )
                elif definition.default is not None:
                    validated[definition.name] = definition.default
                continue
            try:
                validated[definition.name] = definition.type.validate_and_convert(provided)
            except InvalidParameterValueError as exc:
                errors.append(ParameterIssue(definition.name, exc.reason, provided))

        for name in parameters:
            if name not in defined:
                errors.append(
                    ParameterIssue(name, "parameter not defined in schema", parameters[name])
                )

        if errors:
            # names only, values may be sensitive
            logger.warning(
                f"Parameter validation failed for workflow {revision_id}: "
                f"{len(errors)} errors (params: {', '.join(e.name for e in errors)})"
            )
            raise ParameterValidationError(revision_id, errors)
        return validated
