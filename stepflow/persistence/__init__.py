"""Persistence layer for stepflow revisions and executions."""

from __future__ import annotations

import os
from typing import Optional

from ..config import StepflowConfig, load_config
from ..revisions.documents import WorkflowDocumentParser
from .inmemory import InMemoryWorkflowRepository
from .models import (
    ErrorInfo,
    ExecutionHistory,
    ExecutionStatus,
    ExecutionStepResult,
    WorkflowExecution,
)
from .repository import ExecutionRepository, RevisionRepository, WorkflowRepository
from .sqlite import SQLiteWorkflowRepository

_repository_instance: WorkflowRepository | None = None


def get_repository(
    database_url: Optional[str] = None,
    config: Optional[StepflowConfig] = None,
    parser: Optional[WorkflowDocumentParser] = None,
) -> WorkflowRepository:
    """Factory function to obtain a workflow repository.

    The backend is selected from ``database_url``, which can be given
    explicitly, via ``STEPFLOW_DATABASE_URL`` or ``DATABASE_URL``, or from
    the loaded configuration. With no database configured an in-memory
    repository is returned. ``parser`` rebuilds stored step trees and should
    know every step type in use.
    """

    global _repository_instance
    if (
        _repository_instance is not None
        and database_url is None
        and config is None
        and parser is None
    ):
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("STEPFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    if not database_url:
        _repository_instance = InMemoryWorkflowRepository()
        return _repository_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repository_instance = SQLiteWorkflowRepository(path, parser=parser)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repository_instance


def current_repository() -> WorkflowRepository | None:
    """The repository last returned by :func:`get_repository`, if any."""
    return _repository_instance


__all__ = [
    "ErrorInfo",
    "ExecutionHistory",
    "ExecutionRepository",
    "ExecutionStatus",
    "ExecutionStepResult",
    "InMemoryWorkflowRepository",
    "RevisionRepository",
    "SQLiteWorkflowRepository",
    "WorkflowExecution",
    "WorkflowRepository",
    "current_repository",
    "get_repository",
]
