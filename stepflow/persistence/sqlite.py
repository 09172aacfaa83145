"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from ..errors import (
    ExecutionNotFoundError,
    InvalidStatusTransitionError,
    OptimisticLockError,
    StorageError,
    WorkflowRevisionNotFoundError,
)
from ..ids import WorkflowID, WorkflowRevisionID
from ..parameters.registry import ParameterTypeRegistry
from ..revisions.documents import WorkflowDocumentParser
from ..revisions.models import WorkflowRevision
from ..steps.models import StepStatus
from ..steps.registry import StepTypeRegistry
from ..utils import utcnow
from .models import ErrorInfo, ExecutionStatus, ExecutionStepResult, WorkflowExecution
from .repository import WorkflowRepository

logger = logging.getLogger(__name__)

_REVISION_COLUMNS = (
    "namespace, id, version, name, description, active, "
    "created_at, updated_at, definition, source"
)
_EXECUTION_COLUMNS = (
    "execution_id, namespace, workflow_id, version, status, input_parameters, "
    "started_at, completed_at, error_message, last_updated_at"
)
_STEP_RESULT_COLUMNS = (
    "result_id, execution_id, step_index, step_id, step_type, status, input_data, "
    "output_data, error_message, error_details, started_at, completed_at"
)


def _to_db(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _dumps(value: Any) -> Optional[str]:
    return None if value is None else json.dumps(value, default=str)


def _loads(value: Optional[str]) -> Any:
    return json.loads(value) if value else None


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist revisions and executions using SQLite.

    Step trees are stored as their document form and rebuilt through
    ``parser``, so plugin step types must be registered with the parser's
    registry to be read back.
    """

    def __init__(
        self, db_path: str | Path, parser: Optional[WorkflowDocumentParser] = None
    ):
        self.db_path = str(db_path)
        self._parser = parser or WorkflowDocumentParser(
            StepTypeRegistry(), ParameterTypeRegistry()
        )
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_revisions (
                namespace TEXT NOT NULL,
                id TEXT NOT NULL,
                version INTEGER NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                active INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                definition TEXT NOT NULL,
                source TEXT,
                PRIMARY KEY (namespace, id, version)
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_executions (
                execution_id TEXT PRIMARY KEY,
                namespace TEXT NOT NULL,
                workflow_id TEXT NOT NULL,
                version INTEGER NOT NULL,
                status TEXT NOT NULL,
                input_parameters TEXT NOT NULL,
                started_at TEXT NOT NULL,
                completed_at TEXT,
                error_message TEXT,
                last_updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS execution_step_results (
                result_id TEXT PRIMARY KEY,
                execution_id TEXT NOT NULL REFERENCES workflow_executions(execution_id),
                step_index INTEGER NOT NULL,
                step_id TEXT NOT NULL,
                step_type TEXT NOT NULL,
                status TEXT NOT NULL,
                input_data TEXT,
                output_data TEXT,
                error_message TEXT,
                error_details TEXT,
                started_at TEXT NOT NULL,
                completed_at TEXT,
                UNIQUE (execution_id, step_index)
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_executions_workflow "
            "ON workflow_executions (namespace, workflow_id, version, started_at)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        """Run a write and return the affected row count."""
        with self._lock:
            try:
                cur = self._conn.cursor()
                cur.execute(query, params)
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                logger.error(f"SQLite write failed on {self.db_path}: {exc}")
                raise StorageError(f"Database write failed: {exc}") from exc
            return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Revisions
    def _row_to_revision(self, row: sqlite3.Row) -> WorkflowRevision:
        parsed = self._parser.from_document(json.loads(row["definition"]))
        return parsed.model_copy(
            update={
                "active": bool(row["active"]),
                "created_at": _from_db(row["created_at"]),
                "updated_at": _from_db(row["updated_at"]),
                "source": row["source"],
            }
        )

    def save(self, revision: WorkflowRevision) -> WorkflowRevision:
        self._execute(
            f"INSERT INTO workflow_revisions ({_REVISION_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            revision.namespace,
            revision.id,
            revision.version,
            revision.name,
            revision.description,
            int(revision.active),
            _to_db(revision.created_at),
            _to_db(revision.updated_at),
            json.dumps(self._parser.to_document(revision)),
            revision.source,
        )
        return revision

    def find_by_id(self, revision_id: WorkflowRevisionID) -> WorkflowRevision | None:
        row = self._fetchone(
            f"SELECT {_REVISION_COLUMNS} FROM workflow_revisions "
            "WHERE namespace = ? AND id = ? AND version = ?",
            revision_id.namespace,
            revision_id.id,
            revision_id.version,
        )
        return self._row_to_revision(row) if row else None

    def find_by_workflow_id(self, workflow_id: WorkflowID) -> list[WorkflowRevision]:
        rows = self._fetchall(
            f"SELECT {_REVISION_COLUMNS} FROM workflow_revisions "
            "WHERE namespace = ? AND id = ? ORDER BY version",
            workflow_id.namespace,
            workflow_id.id,
        )
        return [self._row_to_revision(r) for r in rows]

    def find_active_revisions(self, workflow_id: WorkflowID) -> list[WorkflowRevision]:
        rows = self._fetchall(
            f"SELECT {_REVISION_COLUMNS} FROM workflow_revisions "
            "WHERE namespace = ? AND id = ? AND active = 1 ORDER BY version",
            workflow_id.namespace,
            workflow_id.id,
        )
        return [self._row_to_revision(r) for r in rows]

    def find_max_version(self, workflow_id: WorkflowID) -> int | None:
        row = self._fetchone(
            "SELECT MAX(version) AS max_version FROM workflow_revisions "
            "WHERE namespace = ? AND id = ?",
            workflow_id.namespace,
            workflow_id.id,
        )
        return row["max_version"] if row else None

    def exists(self, revision_id: WorkflowRevisionID) -> bool:
        row = self._fetchone(
            "SELECT 1 FROM workflow_revisions WHERE namespace = ? AND id = ? AND version = ?",
            revision_id.namespace,
            revision_id.id,
            revision_id.version,
        )
        return row is not None

    def list_workflows(self, namespace: Optional[str] = None) -> list[WorkflowID]:
        if namespace is None:
            rows = self._fetchall(
                "SELECT DISTINCT namespace, id FROM workflow_revisions ORDER BY namespace, id"
            )
        else:
            rows = self._fetchall(
                "SELECT DISTINCT namespace, id FROM workflow_revisions "
                "WHERE namespace = ? ORDER BY id",
                namespace,
            )
        return [WorkflowID(r["namespace"], r["id"]) for r in rows]

    def update(
        self, revision: WorkflowRevision, expected_updated_at: datetime
    ) -> WorkflowRevision:
        revision_id = revision.revision_id
        with self._lock:
            updated = self._execute(
                """
                UPDATE workflow_revisions
                SET name = ?, description = ?, active = ?, updated_at = ?,
                    definition = ?, source = ?
                WHERE namespace = ? AND id = ? AND version = ? AND updated_at = ?
                """,
                revision.name,
                revision.description,
                int(revision.active),
                _to_db(revision.updated_at),
                json.dumps(self._parser.to_document(revision)),
                revision.source,
                revision_id.namespace,
                revision_id.id,
                revision_id.version,
                _to_db(expected_updated_at),
            )
            if updated == 0:
                current = self.find_by_id(revision_id)
                if current is None:
                    raise WorkflowRevisionNotFoundError(revision_id)
                raise OptimisticLockError(
                    revision_id, expected_updated_at, current.updated_at
                )
        return revision

    def delete_by_id(self, revision_id: WorkflowRevisionID) -> bool:
        deleted = self._execute(
            "DELETE FROM workflow_revisions WHERE namespace = ? AND id = ? AND version = ?",
            revision_id.namespace,
            revision_id.id,
            revision_id.version,
        )
        return deleted > 0

    def delete_by_workflow_id(self, workflow_id: WorkflowID) -> int:
        return self._execute(
            "DELETE FROM workflow_revisions WHERE namespace = ? AND id = ?",
            workflow_id.namespace,
            workflow_id.id,
        )

    # ------------------------------------------------------------------
    # Executions
    @staticmethod
    def _row_to_execution(row: sqlite3.Row) -> WorkflowExecution:
        return WorkflowExecution(
            execution_id=row["execution_id"],
            revision_id=WorkflowRevisionID(row["namespace"], row["workflow_id"], row["version"]),
            status=ExecutionStatus(row["status"]),
            input_parameters=json.loads(row["input_parameters"]),
            started_at=_from_db(row["started_at"]),
            completed_at=_from_db(row["completed_at"]),
            error_message=row["error_message"],
            last_updated_at=_from_db(row["last_updated_at"]),
        )

    @staticmethod
    def _row_to_step_result(row: sqlite3.Row) -> ExecutionStepResult:
        details = _loads(row["error_details"])
        return ExecutionStepResult(
            result_id=row["result_id"],
            execution_id=row["execution_id"],
            step_index=row["step_index"],
            step_id=row["step_id"],
            step_type=row["step_type"],
            status=StepStatus(row["status"]),
            input_data=_loads(row["input_data"]),
            output_data=_loads(row["output_data"]),
            error_message=row["error_message"],
            error_details=ErrorInfo(**details) if details else None,
            started_at=_from_db(row["started_at"]),
            completed_at=_from_db(row["completed_at"]),
        )

    def create_execution(self, execution: WorkflowExecution) -> WorkflowExecution:
        revision_id = execution.revision_id
        self._execute(
            f"INSERT INTO workflow_executions ({_EXECUTION_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            execution.execution_id,
            revision_id.namespace,
            revision_id.id,
            revision_id.version,
            execution.status.value,
            json.dumps(execution.input_parameters, default=str),
            _to_db(execution.started_at),
            _to_db(execution.completed_at),
            execution.error_message,
            _to_db(execution.last_updated_at),
        )
        return execution

    def record_step_result(self, result: ExecutionStepResult) -> ExecutionStepResult:
        self._execute(
            f"INSERT INTO execution_step_results ({_STEP_RESULT_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            result.result_id,
            result.execution_id,
            result.step_index,
            result.step_id,
            result.step_type,
            result.status.value,
            _dumps(result.input_data),
            _dumps(result.output_data),
            result.error_message,
            _dumps(result.error_details.model_dump() if result.error_details else None),
            _to_db(result.started_at),
            _to_db(result.completed_at),
        )
        return result

    def update_execution_status(
        self,
        execution_id: str,
        status: ExecutionStatus,
        error_message: Optional[str] = None,
    ) -> WorkflowExecution:
        with self._lock:
            current = self.find_execution(execution_id)
            if current is None:
                raise ExecutionNotFoundError(execution_id)
            if not current.status.can_transition_to(status):
                raise InvalidStatusTransitionError(
                    execution_id, current.status.value, status.value
                )
            now = utcnow()
            updated = current.model_copy(
                update={
                    "status": status,
                    "completed_at": now if status.is_terminal() else None,
                    "error_message": error_message
                    if status is ExecutionStatus.FAILED
                    else None,
                    "last_updated_at": now,
                }
            )
            self._execute(
                """
                UPDATE workflow_executions
                SET status = ?, completed_at = ?, error_message = ?, last_updated_at = ?
                WHERE execution_id = ? AND status = ?
                """,
                status.value,
                _to_db(updated.completed_at),
                updated.error_message,
                _to_db(now),
                execution_id,
                current.status.value,
            )
        return updated

    def find_execution(self, execution_id: str) -> WorkflowExecution | None:
        row = self._fetchone(
            f"SELECT {_EXECUTION_COLUMNS} FROM workflow_executions WHERE execution_id = ?",
            execution_id,
        )
        return self._row_to_execution(row) if row else None

    def find_step_results(self, execution_id: str) -> list[ExecutionStepResult]:
        rows = self._fetchall(
            f"SELECT {_STEP_RESULT_COLUMNS} FROM execution_step_results "
            "WHERE execution_id = ? ORDER BY step_index",
            execution_id,
        )
        return [self._row_to_step_result(r) for r in rows]

    @staticmethod
    def _execution_filter(
        workflow_id: WorkflowID,
        version: Optional[int],
        status: Optional[ExecutionStatus],
    ) -> tuple[str, list[Any]]:
        clauses = ["namespace = ?", "workflow_id = ?"]
        params: list[Any] = [workflow_id.namespace, workflow_id.id]
        if version is not None:
            clauses.append("version = ?")
            params.append(version)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        return " AND ".join(clauses), params

    def find_executions(
        self,
        workflow_id: WorkflowID,
        version: Optional[int] = None,
        status: Optional[ExecutionStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[WorkflowExecution]:
        where, params = self._execution_filter(workflow_id, version, status)
        rows = self._fetchall(
            f"SELECT {_EXECUTION_COLUMNS} FROM workflow_executions WHERE {where} "
            "ORDER BY started_at DESC, rowid DESC LIMIT ? OFFSET ?",
            *params,
            limit,
            offset,
        )
        return [self._row_to_execution(r) for r in rows]

    def count_executions(
        self,
        workflow_id: WorkflowID,
        version: Optional[int] = None,
        status: Optional[ExecutionStatus] = None,
    ) -> int:
        where, params = self._execution_filter(workflow_id, version, status)
        row = self._fetchone(
            f"SELECT COUNT(*) AS total FROM workflow_executions WHERE {where}", *params
        )
        return row["total"] if row else 0
