"""
Structured JSON logging for Bootguard.

Every process invocation gets an invocation id; activation records, mode
decisions, downgrades and fatal trips are emitted as structured events
correlated by that id.
"""

import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


class JSONFormatter(logging.Formatter):
    """Custom formatter that outputs structured JSON logs"""

    def __init__(self, invocation_id: str):
        super().__init__()
        self.invocation_id = invocation_id

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "invocation_id": self.invocation_id,
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "process": record.process,
        }

        if record.exc_info:
            exc_info = (
                record.exc_info if isinstance(record.exc_info, tuple) else sys.exc_info()
            )
            if exc_info and isinstance(exc_info, tuple):
                log_data["exception"] = {
                    "type": exc_info[0].__name__ if exc_info[0] else None,
                    "message": str(exc_info[1]) if exc_info[1] else None,
                    "traceback": self.formatException(exc_info),
                }

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class BootstrapLogger:
    """
    Structured logger for one bootstrap process.

    Features:
    - JSON lines to a rotating file when a log directory is configured
    - Human-readable console output
    - Invocation id correlation across every event of a process
    """

    def __init__(
        self,
        invocation_id: Optional[str] = None,
        log_level: str = "INFO",
        log_dir: Optional[Path] = None,
        console: bool = True,
    ):
        self.invocation_id = invocation_id or self._generate_invocation_id()
        self.log_level = getattr(logging, log_level.upper())
        self.log_dir = Path(log_dir) if log_dir is not None else None
        self.console = console
        self._setup_logging()

    def _generate_invocation_id(self) -> str:
        """Generate unique invocation ID with timestamp and UUID"""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        unique_suffix = str(uuid.uuid4())[:8]
        return f"{timestamp}-{unique_suffix}"

    def _setup_logging(self) -> None:
        self.logger = logging.getLogger(f"bootguard.invocation.{self.invocation_id}")
        self.logger.setLevel(self.log_level)

        if self.logger.handlers:
            return

        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            # 5MB, keep 5 files
            json_handler = RotatingFileHandler(
                self.log_dir / "bootguard.log",
                maxBytes=5 * 1024 * 1024,
                backupCount=5,
            )
            json_handler.setFormatter(JSONFormatter(self.invocation_id))
            json_handler.setLevel(self.log_level)
            self.logger.addHandler(json_handler)

        if self.console:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(logging.Formatter(
                "%(asctime)s [%(levelname)s] [bootguard] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))
            console_handler.setLevel(self.log_level)
            self.logger.addHandler(console_handler)

        if not self.logger.handlers:
            self.logger.addHandler(logging.NullHandler())

        self.logger.propagate = False

    def log_event(self, level: str, message: str, **kwargs) -> None:
        """
        Log structured event with additional context

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            message: Human-readable log message
            **kwargs: Additional structured data to include in JSON
        """
        record = self.logger.makeRecord(
            name=self.logger.name,
            level=getattr(logging, level.upper()),
            fn="",
            lno=0,
            msg=message,
            args=(),
            exc_info=None,
        )
        record.extra_data = kwargs
        self.logger.handle(record)

    def debug(self, message: str, **kwargs) -> None:
        self.log_event("DEBUG", message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        self.log_event("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self.log_event("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        self.log_event("ERROR", message, **kwargs)

    def critical(self, message: str, **kwargs) -> None:
        self.log_event("CRITICAL", message, **kwargs)

    def close(self) -> None:
        """Close all handlers and cleanup"""
        for handler in self.logger.handlers[:]:
            handler.close()
            self.logger.removeHandler(handler)


def get_logger(
    invocation_id: Optional[str] = None,
    log_level: str = "INFO",
    log_dir: Optional[Path] = None,
    console: bool = True,
) -> BootstrapLogger:
    """Factory function to get a configured bootstrap logger"""
    return BootstrapLogger(
        invocation_id=invocation_id, log_level=log_level, log_dir=log_dir, console=console
    )


def emit_event(
    module_logger: logging.Logger,
    event_logger: Optional[BootstrapLogger],
    level: str,
    message: str,
    **kwargs,
) -> None:
    """Log to the module logger and, when one is configured, the structured event log."""
    getattr(module_logger, level)(message)
    if event_logger is not None:
        event_logger.log_event(level.upper(), message, **kwargs)
