"""
Deferred task queues.

A deferred task queue schedules at most one future run per task id. The
continuation of an installation relies on that: arming the continuation
twice must never produce two runs.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol

import duckdb

from ..exceptions import StoreError
from ..utils import DatabaseConnectionManager

logger = logging.getLogger(__name__)


class TaskQueue(Protocol):
    def schedule_once(self, delay_seconds: float, task_id: str) -> bool: ...

    def clear(self, task_id: str) -> None: ...

    def pop_due(self, now: Optional[float] = None) -> List[str]: ...


class InMemoryTaskQueue:
    """Process-local queue, mainly for tests and the in-memory backend."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._tasks: Dict[str, float] = {}

    def schedule_once(self, delay_seconds: float, task_id: str) -> bool:
        """Schedule `task_id`; returns False when it is already scheduled."""
        if task_id in self._tasks:
            return False
        self._tasks[task_id] = self._clock() + delay_seconds
        return True

    def is_scheduled(self, task_id: str) -> bool:
        return task_id in self._tasks

    def scheduled_at(self, task_id: str) -> Optional[float]:
        return self._tasks.get(task_id)

    def clear(self, task_id: str) -> None:
        self._tasks.pop(task_id, None)

    def pop_due(self, now: Optional[float] = None) -> List[str]:
        now = self._clock() if now is None else now
        due = sorted(
            (run_at, task_id) for task_id, run_at in self._tasks.items() if run_at <= now
        )
        for _, task_id in due:
            del self._tasks[task_id]
        return [task_id for _, task_id in due]


class DuckDBTaskQueue:
    """Queue backed by the `bootguard_tasks` DuckDB table."""

    TABLE = "bootguard_tasks"

    def __init__(
        self,
        db_path: Path,
        *,
        clock: Callable[[], float] = time.time,
        retries: int = 3,
        backoff_seconds: float = 0.1,
    ):
        self.db_path = Path(db_path)
        self._clock = clock
        self._db = DatabaseConnectionManager(self.db_path, retries=retries, backoff_seconds=backoff_seconds)

    def _run(self, operation: str, task_id: Optional[str], fn):
        def _with_schema(conn: duckdb.DuckDBPyConnection):
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TABLE} (
                    task_id VARCHAR PRIMARY KEY,
                    run_at DOUBLE NOT NULL
                )
                """
            )
            return fn(conn)

        try:
            return self._db.execute_with_retry(_with_schema)
        except (duckdb.Error, OSError) as e:
            logger.error("Task queue %s failed for %s: %s", operation, task_id, e)
            raise StoreError(f"Task queue {operation} failed: {e}", key=task_id, original_exception=e) from e

    def schedule_once(self, delay_seconds: float, task_id: str) -> bool:
        run_at = self._clock() + delay_seconds

        def _schedule(conn: duckdb.DuckDBPyConnection) -> bool:
            existing = conn.execute(
                f"SELECT 1 FROM {self.TABLE} WHERE task_id = ?", [task_id]
            ).fetchone()
            if existing:
                return False
            conn.execute(f"INSERT INTO {self.TABLE} (task_id, run_at) VALUES (?, ?)", [task_id, run_at])
            return True

        return self._run("schedule", task_id, _schedule)

    def is_scheduled(self, task_id: str) -> bool:
        return self.scheduled_at(task_id) is not None

    def scheduled_at(self, task_id: str) -> Optional[float]:
        def _lookup(conn: duckdb.DuckDBPyConnection):
            row = conn.execute(f"SELECT run_at FROM {self.TABLE} WHERE task_id = ?", [task_id]).fetchone()
            return None if row is None else float(row[0])

        return self._run("lookup", task_id, _lookup)

    def clear(self, task_id: str) -> None:
        def _clear(conn: duckdb.DuckDBPyConnection):
            conn.execute(f"DELETE FROM {self.TABLE} WHERE task_id = ?", [task_id])

        self._run("clear", task_id, _clear)

    def pop_due(self, now: Optional[float] = None) -> List[str]:
        now = self._clock() if now is None else now

        def _pop(conn: duckdb.DuckDBPyConnection) -> List[str]:
            rows = conn.execute(
                f"SELECT task_id FROM {self.TABLE} WHERE run_at <= ? ORDER BY run_at, task_id", [now]
            ).fetchall()
            task_ids = [row[0] for row in rows]
            for task_id in task_ids:
                conn.execute(f"DELETE FROM {self.TABLE} WHERE task_id = ?", [task_id])
            return task_ids

        return self._run("pop", None, _pop)
