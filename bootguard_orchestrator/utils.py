"""
Utility helpers for Bootguard.

Includes:
- DatabaseConnectionManager: DuckDB connection/transaction helpers with retry
- time_block: context manager for timing code blocks
"""

from __future__ import annotations

import logging
import random
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Generator, Optional, TypeVar

import duckdb

T = TypeVar("T")

logger = logging.getLogger(__name__)


class DatabaseConnectionManager:
    """DuckDB connection helper opening one connection per operation.

    Bootstrap invocations are short-lived processes, so connections are never
    pooled; each operation opens, uses and closes its own connection which
    keeps the database file unlocked between invocations.
    """

    def __init__(self, db_path: Path, *, retries: int = 3, backoff_seconds: float = 0.1):
        self.db_path = Path(db_path)
        self.retries = retries
        self.backoff_seconds = backoff_seconds

    @contextmanager
    def get_connection(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        conn = duckdb.connect(str(self.db_path))
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """Create a database transaction context.

        Yields:
            DuckDB connection with active transaction
        """
        with self.get_connection() as conn:
            try:
                conn.begin()
                yield conn
                conn.commit()
            except Exception:
                try:
                    conn.rollback()
                except duckdb.Error:
                    # Rollback fails if the transaction already aborted
                    pass
                raise

    def execute_with_retry(
        self,
        fn: Callable[[duckdb.DuckDBPyConnection], T],
        *,
        retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
    ) -> T:
        """Execute a function inside a transaction with retry and jittered backoff.

        Args:
            fn: Function to execute with database connection
            retries: Maximum number of retry attempts
            backoff_seconds: Base backoff time between retries

        Returns:
            Result from the executed function
        """
        retries = self.retries if retries is None else retries
        backoff_seconds = self.backoff_seconds if backoff_seconds is None else backoff_seconds

        attempt = 0
        last_exc: Optional[Exception] = None
        while attempt <= retries:
            try:
                with self.transaction() as conn:
                    return fn(conn)
            except (duckdb.Error, OSError) as e:
                last_exc = e
                if attempt == retries:
                    break
                sleep_time = backoff_seconds * (2**attempt) * (0.5 + random.random() * 0.5)
                logger.debug(
                    "DuckDB operation failed (attempt %s/%s), retrying in %.2fs: %s",
                    attempt + 1, retries + 1, sleep_time, e,
                )
                time.sleep(sleep_time)
                attempt += 1
        assert last_exc is not None
        raise last_exc


@dataclass
class BlockTiming:
    label: str
    started: float = 0.0
    elapsed_ms: float = 0.0


@contextmanager
def time_block(label: str) -> Generator[BlockTiming, None, None]:
    """Measure execution time of a block.

    Example:
        with time_block("activate:bookings") as timing:
            activate()
        timing.elapsed_ms
    """
    timing = BlockTiming(label=label, started=time.perf_counter())
    try:
        yield timing
    finally:
        timing.elapsed_ms = (time.perf_counter() - timing.started) * 1000
        logger.debug("%s: %.1f ms", label, timing.elapsed_ms)
