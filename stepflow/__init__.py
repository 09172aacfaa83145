"""stepflow: versioned workflow definitions and a synchronous step execution engine."""

from .execute import ExecutionContext, StepExecutor
from .executions import ExecutionService
from .ids import WorkflowID, WorkflowRevisionID
from .persistence import get_repository
from .revisions import RevisionService, WorkflowDocumentParser, WorkflowRevision
from .runtime import Runtime, build_runtime

__version__ = "0.1.0"
__all__ = [
    "ExecutionContext",
    "ExecutionService",
    "RevisionService",
    "Runtime",
    "StepExecutor",
    "WorkflowDocumentParser",
    "WorkflowID",
    "WorkflowRevision",
    "WorkflowRevisionID",
    "build_runtime",
    "get_repository",
]
