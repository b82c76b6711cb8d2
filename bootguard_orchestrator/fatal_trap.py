"""
Fatal trap and circuit breaker.

The trap is armed before any other bootstrap step of an invocation. An
interpreter-level failure raised while it is armed (memory exhaustion,
unbounded recursion, SystemError, a feature exiting the process), or
interpreter shutdown while it is still armed, trips it:

1. the operator is notified,
2. a disabled flag is written to the configuration store (best effort),
3. no further bootstrap logic runs in this process.

Later invocations see the flag and skip bootstrap work entirely until an
operator reset clears it.
"""

from __future__ import annotations

import atexit
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Generator, Optional

from .error_catalog import get_error_catalog
from .exceptions import RUNTIME_FAILURES, StoreError
from .logger import BootstrapLogger
from .notifications import NotificationLevel, NotificationSink
from .state.stores import ConfigStore

logger = logging.getLogger(__name__)

DEFAULT_FLAG_KEY = "bootguard_disabled"


class FatalTrap:
    """Last-resort containment for failures nothing else can handle."""

    def __init__(
        self,
        store: ConfigStore,
        notifier: NotificationSink,
        *,
        flag_key: str = DEFAULT_FLAG_KEY,
        event_logger: Optional[BootstrapLogger] = None,
        register_exit_hook: bool = True,
    ):
        self.store = store
        self.notifier = notifier
        self.flag_key = flag_key
        self.event_logger = event_logger
        self.register_exit_hook = register_exit_hook
        self.invocation_id: Optional[str] = None
        self.armed = False
        self.tripped = False
        self._hook_registered = False

    def arm(self, invocation_id: Optional[str] = None) -> None:
        self.invocation_id = invocation_id
        self.armed = True
        if self.register_exit_hook and not self._hook_registered:
            atexit.register(self._on_exit)
            self._hook_registered = True

    def disarm(self) -> None:
        self.armed = False

    @contextmanager
    def guard(self, invocation_id: Optional[str] = None) -> Generator["FatalTrap", None, None]:
        """Arm the trap for the enclosed block, containing interpreter-level failures."""
        self.arm(invocation_id)
        try:
            yield self
        except RUNTIME_FAILURES as e:
            self.trip(e)
        except SystemExit as e:
            self.trip(e)
            raise
        finally:
            self.disarm()

    def disabled_flag(self) -> Optional[Dict[str, Any]]:
        """Return the stored disabled flag, if any.

        An unreadable store is treated as not disabled; the state repository
        reports the same store failure to the supervisor.
        """
        try:
            flag = self.store.get(self.flag_key)
        except StoreError as e:
            logger.warning("Could not read disabled flag: %s", e.message)
            return None
        return flag or None

    def is_disabled(self) -> bool:
        return self.tripped or self.disabled_flag() is not None

    def trip(self, error: Optional[BaseException] = None, reason: Optional[str] = None) -> None:
        """Disable bootstrap work; runs at most once per process."""
        if self.tripped:
            return
        self.tripped = True

        exception_type = type(error).__name__ if error is not None else None
        if reason is None:
            reason = f"{exception_type}: {error}" if error is not None else "unknown runtime failure"

        hints = get_error_catalog().find_resolution_hints(reason)
        flag = {
            "reason": reason,
            "exception_type": exception_type,
            "tripped_at": datetime.now(timezone.utc).isoformat(),
            "invocation_id": self.invocation_id,
            "resolution": [hint.title for hint in hints],
        }

        try:
            self.notifier.notify(
                NotificationLevel.ERROR,
                f"Bootstrap was disabled after a fatal runtime failure ({reason}). "
                "The host keeps running without bootstrap work until the installation is reset.",
                {"reason": reason, "resolution": flag["resolution"]},
            )
        except Exception as e:
            logger.error("Fatal trap notification failed: %s", e)

        try:
            self.store.set(self.flag_key, flag)
        except Exception as e:
            logger.error("Fatal trap could not persist disabled flag: %s", e)

        logger.critical("Fatal trap tripped: %s", reason)
        if self.event_logger is not None:
            try:
                self.event_logger.critical("Fatal trap tripped", event="fatal_trap", **flag)
            except Exception as e:
                logger.error("Fatal trap event logging failed: %s", e)

    def reset(self) -> None:
        """Clear the disabled flag (operator action)."""
        self.store.delete(self.flag_key)
        self.tripped = False

    def _on_exit(self) -> None:
        if self.armed:
            self.trip(reason="process exited while bootstrap work was running")
