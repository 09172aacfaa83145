"""Revision lifecycle: create, update, activate, deactivate and delete."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from ..errors import (
    ActiveRevisionConflictError,
    InvalidWorkflowRevisionError,
    OptimisticLockError,
    WorkflowAlreadyExistsError,
    WorkflowNotFoundError,
    WorkflowRevisionNotFoundError,
)
from ..ids import WorkflowID, WorkflowRevisionID
from ..persistence.repository import RevisionRepository
from ..utils import next_timestamp, utcnow
from .documents import WorkflowDocumentParser, stamp_metadata
from .models import WorkflowRevision

logger = logging.getLogger(__name__)


class RevisionService:
    """Operations on workflow revisions.

    Every mutation of an existing revision is written with the ``updated_at``
    the service observed as the lock token, so concurrent writers cannot
    silently overwrite each other.
    """

    def __init__(
        self,
        repository: RevisionRepository,
        parser: WorkflowDocumentParser,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repository = repository
        self._parser = parser
        self._clock = clock

    # ------------------------------------------------------------------
    # Creation
    def create_workflow(self, text: str) -> WorkflowRevision:
        """Store the first revision (version 1, inactive) of a new workflow."""
        parsed = self._parser.parse(text)
        workflow_id = parsed.workflow_id
        logger.info(f"Creating workflow {workflow_id}")
        if self._repository.find_max_version(workflow_id) is not None:
            logger.warning(f"Workflow already exists: {workflow_id}")
            raise WorkflowAlreadyExistsError(workflow_id)
        revision = self._new_revision(parsed, workflow_id, 1, text)
        saved = self._repository.save(revision)
        logger.info(f"Created workflow revision {saved.revision_id}")
        return saved

    def create_revision(self, workflow_id: WorkflowID, text: str) -> WorkflowRevision:
        """Store the next version of an existing workflow.

        Namespace and id always come from ``workflow_id``, whatever the
        document says.
        """
        logger.info(f"Creating revision for workflow {workflow_id}")
        max_version = self._repository.find_max_version(workflow_id)
        if max_version is None:
            raise WorkflowNotFoundError(workflow_id)
        parsed = self._parser.parse(text)
        revision = self._new_revision(parsed, workflow_id, max_version + 1, text)
        saved = self._repository.save(revision)
        logger.info(f"Created workflow revision {saved.revision_id}")
        return saved

    def _new_revision(
        self, parsed: WorkflowRevision, workflow_id: WorkflowID, version: int, text: str
    ) -> WorkflowRevision:
        now = self._clock()
        return parsed.model_copy(
            update={
                "namespace": workflow_id.namespace,
                "id": workflow_id.id,
                "version": version,
                "active": False,
                "created_at": now,
                "updated_at": now,
                "source": stamp_metadata(text, version, now, now),
            }
        )

    # ------------------------------------------------------------------
    # Queries
    def get_revision(self, revision_id: WorkflowRevisionID) -> WorkflowRevision:
        revision = self._repository.find_by_id(revision_id)
        if revision is None:
            raise WorkflowRevisionNotFoundError(revision_id)
        return revision

    def list_revisions(self, workflow_id: WorkflowID) -> list[WorkflowRevision]:
        revisions = self._repository.find_by_workflow_id(workflow_id)
        if not revisions:
            raise WorkflowNotFoundError(workflow_id)
        return revisions

    def list_workflows(self, namespace: Optional[str] = None) -> list[WorkflowID]:
        return self._repository.list_workflows(namespace)

    # ------------------------------------------------------------------
    # Mutations
    def update_revision(
        self,
        revision_id: WorkflowRevisionID,
        text: str,
        expected_updated_at: Optional[datetime] = None,
    ) -> WorkflowRevision:
        """Replace the content of an inactive revision in place.

        ``expected_updated_at`` defaults to the ``updatedAt`` carried by the
        document itself. ``version``, ``created_at`` and ``active`` are kept.
        """
        logger.info(f"Updating revision {revision_id}")
        existing = self.get_revision(revision_id)
        if existing.active:
            logger.warning(f"Attempt to update active revision: {revision_id}")
            raise ActiveRevisionConflictError(revision_id, "update")

        parsed = self._parser.parse(text)
        for field, value, expected in (
            ("namespace", parsed.namespace, revision_id.namespace),
            ("id", parsed.id, revision_id.id),
            ("version", parsed.version, revision_id.version),
        ):
            if value != expected:
                raise InvalidWorkflowRevisionError(
                    f"{field.capitalize()} in document ({value}) must match target ({expected})",
                    field,
                    value,
                )

        expected = expected_updated_at or parsed.updated_at
        if expected is None:
            raise InvalidWorkflowRevisionError(
                "updatedAt is required to update a revision", "updatedAt"
            )
        if expected != existing.updated_at:
            logger.warning(
                f"Optimistic lock conflict on {revision_id}: "
                f"expected {expected.isoformat()}, actual {existing.updated_at.isoformat()}"
            )
            raise OptimisticLockError(revision_id, expected, existing.updated_at)

        now = next_timestamp(self._clock(), existing.updated_at)
        updated = existing.model_copy(
            update={
                "name": parsed.name,
                "description": parsed.description,
                "parameters": parsed.parameters,
                "steps": parsed.steps,
                "updated_at": now,
                "source": stamp_metadata(
                    text, existing.version, existing.created_at, now
                ),
            }
        )
        saved = self._repository.update(updated, expected)
        logger.info(f"Updated revision {revision_id}")
        return saved

    def activate(self, revision_id: WorkflowRevisionID) -> WorkflowRevision:
        logger.info(f"Activating revision {revision_id}")
        existing = self.get_revision(revision_id)
        others = [
            r.revision_id
            for r in self._repository.find_active_revisions(revision_id.workflow_id)
            if r.revision_id != revision_id
        ]
        if others:
            logger.warning(
                f"Activating {revision_id} while other revisions are active: "
                f"{', '.join(str(r) for r in others)}"
            )
        saved = self._set_active(existing, True)
        logger.info(f"Activated revision {revision_id}")
        return saved

    def deactivate(self, revision_id: WorkflowRevisionID) -> WorkflowRevision:
        logger.info(f"Deactivating revision {revision_id}")
        saved = self._set_active(self.get_revision(revision_id), False)
        logger.info(f"Deactivated revision {revision_id}")
        return saved

    def _set_active(self, existing: WorkflowRevision, active: bool) -> WorkflowRevision:
        now = next_timestamp(self._clock(), existing.updated_at)
        update: dict = {"active": active, "updated_at": now}
        if existing.source is not None:
            update["source"] = stamp_metadata(
                existing.source, existing.version, existing.created_at, now
            )
        return self._repository.update(existing.model_copy(update=update), existing.updated_at)

    def delete_revision(self, revision_id: WorkflowRevisionID) -> None:
        logger.info(f"Deleting revision {revision_id}")
        existing = self.get_revision(revision_id)
        if existing.active:
            logger.warning(f"Attempt to delete active revision: {revision_id}")
            raise ActiveRevisionConflictError(revision_id, "delete")
        self._repository.delete_by_id(revision_id)
        logger.info(f"Deleted revision {revision_id}")

    def delete_workflow(self, workflow_id: WorkflowID) -> int:
        """Delete every revision of a workflow; none may be active."""
        logger.info(f"Deleting workflow {workflow_id}")
        active = self._repository.find_active_revisions(workflow_id)
        if active:
            logger.warning(
                f"Attempt to delete workflow with active revisions: {workflow_id} "
                f"({len(active)} active)"
            )
            raise ActiveRevisionConflictError(active[0].revision_id, "delete workflow")
        deleted = self._repository.delete_by_workflow_id(workflow_id)
        if deleted == 0:
            raise WorkflowNotFoundError(workflow_id)
        logger.info(f"Deleted {deleted} revisions for workflow {workflow_id}")
        return deleted
