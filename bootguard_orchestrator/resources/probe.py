"""
Environment probing for the current invocation.

An inspector accessor that fails or returns a value that makes no sense is
reported as its unlimited sentinel. Only interpreter-level failures escape
the probe.
"""

from __future__ import annotations

import logging
import os
import platform
from pathlib import Path
from typing import Optional, Protocol, Union

import psutil

from ..exceptions import RUNTIME_FAILURES
from .data_models import UNLIMITED_MEMORY, UNLIMITED_TIME, ResourceSnapshot

try:
    import resource as _resource
except ImportError:  # Windows
    _resource = None

logger = logging.getLogger(__name__)

MEMORY_LIMIT_ENV = "BOOTGUARD_MEMORY_LIMIT"
EXECUTION_TIME_ENV = "BOOTGUARD_MAX_EXECUTION_TIME"
CGROUP_MEMORY_MAX = Path("/sys/fs/cgroup/memory.max")

_UNITS = {"K": 1024, "M": 1024 ** 2, "G": 1024 ** 3, "T": 1024 ** 4}


def parse_memory_value(value: Union[str, int, None]) -> int:
    """Convert a memory setting such as '256M', '1G', '-1' or '1048576' to bytes.

    Returns -1 for unlimited ('-1', 'max', empty). Raises ValueError for
    anything else that cannot be read.
    """
    if value is None:
        return UNLIMITED_MEMORY
    if isinstance(value, int):
        return UNLIMITED_MEMORY if value < 0 else value

    text = str(value).strip().upper()
    if text in {"", "-1", "MAX", "UNLIMITED"}:
        return UNLIMITED_MEMORY
    if text.endswith("B") and len(text) > 1 and text[-2] in _UNITS:
        text = text[:-1]

    multiplier = 1
    if text[-1] in _UNITS:
        multiplier = _UNITS[text[-1]]
        text = text[:-1].strip()

    try:
        number = float(text)
    except ValueError:
        raise ValueError(f"Unrecognised memory value: {value!r}") from None
    if number < 0:
        return UNLIMITED_MEMORY
    return int(number * multiplier)


class EnvironmentInspector(Protocol):
    """Source of raw resource readings."""

    def memory_limit_bytes(self) -> int: ...

    def memory_used_bytes(self) -> int: ...

    def execution_time_limit_seconds(self) -> float: ...

    def runtime_version(self) -> str: ...


class ProcessEnvironmentInspector:
    """Reads the limits of the running Python process."""

    def __init__(self, environ: Optional[dict] = None, cgroup_path: Path = CGROUP_MEMORY_MAX):
        self._environ = environ if environ is not None else os.environ
        self._cgroup_path = cgroup_path
        self._process = psutil.Process()

    def memory_limit_bytes(self) -> int:
        override = self._environ.get(MEMORY_LIMIT_ENV)
        if override:
            return parse_memory_value(override)

        if self._cgroup_path.exists():
            return parse_memory_value(self._cgroup_path.read_text().strip())

        if _resource is not None:
            soft, _ = _resource.getrlimit(_resource.RLIMIT_AS)
            if soft != _resource.RLIM_INFINITY:
                return int(soft)
        return UNLIMITED_MEMORY

    def memory_used_bytes(self) -> int:
        return int(self._process.memory_info().rss)

    def execution_time_limit_seconds(self) -> float:
        override = self._environ.get(EXECUTION_TIME_ENV)
        if override:
            return max(float(override), UNLIMITED_TIME)

        if _resource is not None:
            soft, _ = _resource.getrlimit(_resource.RLIMIT_CPU)
            if soft != _resource.RLIM_INFINITY:
                return float(soft)
        return float(UNLIMITED_TIME)

    def runtime_version(self) -> str:
        return platform.python_version()

    def load_average(self) -> Optional[float]:
        try:
            return float(psutil.getloadavg()[0])
        except (AttributeError, OSError):
            return None


class StaticEnvironmentInspector:
    """Fixed readings, used by tests and simulated CLI probes."""

    def __init__(
        self,
        memory_limit_bytes: int = UNLIMITED_MEMORY,
        memory_used_bytes: int = 0,
        execution_time_limit_seconds: float = UNLIMITED_TIME,
        runtime_version: Optional[str] = None,
        load_average: Optional[float] = None,
    ):
        self._memory_limit = memory_limit_bytes
        self._memory_used = memory_used_bytes
        self._execution_limit = execution_time_limit_seconds
        self._runtime_version = runtime_version or platform.python_version()
        self._load_average = load_average

    def memory_limit_bytes(self) -> int:
        return self._memory_limit

    def memory_used_bytes(self) -> int:
        return self._memory_used

    def execution_time_limit_seconds(self) -> float:
        return self._execution_limit

    def runtime_version(self) -> str:
        return self._runtime_version

    def load_average(self) -> Optional[float]:
        return self._load_average


class EnvironmentProbe:
    """Builds a ResourceSnapshot from an inspector, tolerating any failure."""

    def __init__(self, inspector: Optional[EnvironmentInspector] = None):
        self.inspector = inspector or ProcessEnvironmentInspector()

    def snapshot(self) -> ResourceSnapshot:
        memory_limit = self._read_int("memory_limit_bytes", UNLIMITED_MEMORY)
        if memory_limit < 0 and memory_limit != UNLIMITED_MEMORY:
            memory_limit = UNLIMITED_MEMORY

        memory_used = self._read_int("memory_used_bytes", 0)
        if memory_used < 0:
            memory_used = 0

        execution_limit = self._read_float("execution_time_limit_seconds", float(UNLIMITED_TIME))
        if execution_limit < 0:
            execution_limit = float(UNLIMITED_TIME)

        runtime_version = self._read("runtime_version", "unknown")
        if not isinstance(runtime_version, str) or not runtime_version.strip():
            runtime_version = "unknown"

        load_average = None
        if hasattr(self.inspector, "load_average"):
            load_average = self._read("load_average", None)

        return ResourceSnapshot(
            memory_limit_bytes=memory_limit,
            memory_used_bytes=memory_used,
            execution_time_limit_seconds=execution_limit,
            runtime_version=runtime_version.strip(),
            load_average=load_average if isinstance(load_average, (int, float)) else None,
        )

    def _read(self, accessor: str, fallback):
        try:
            return getattr(self.inspector, accessor)()
        except RUNTIME_FAILURES:
            raise
        except Exception as e:
            logger.warning("Environment inspector %s failed, assuming %r: %s", accessor, fallback, e)
            return fallback

    def _read_int(self, accessor: str, fallback: int) -> int:
        value = self._read(accessor, fallback)
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            logger.warning("Environment inspector %s returned %r, assuming %r", accessor, value, fallback)
            return fallback

    def _read_float(self, accessor: str, fallback: float) -> float:
        value = self._read(accessor, fallback)
        try:
            result = float(value)
        except (TypeError, ValueError):
            logger.warning("Environment inspector %s returned %r, assuming %r", accessor, value, fallback)
            return fallback
        if result != result or result == float("inf"):
            return fallback
        return result
