"""Workflow revisions: model, documents and lifecycle."""

from .documents import WorkflowDocumentParser, format_timestamp, stamp_metadata
from .models import WorkflowRevision
from .service import RevisionService

__all__ = [
    "RevisionService",
    "WorkflowDocumentParser",
    "WorkflowRevision",
    "format_timestamp",
    "stamp_metadata",
]
