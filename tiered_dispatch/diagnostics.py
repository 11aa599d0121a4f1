"""
Dispatch diagnostics.

Collects human-readable trace entries and the last error for a dispatcher
or a single call. Entries are mirrored to the structured logger.
"""

from typing import Optional

from .logging import get_logger
from .types import ErrorState

logger = get_logger(__name__)


class Diagnostics:
    """Append-only trace log plus a single last-error slot."""

    def __init__(self, enabled: bool = True, parent: Optional["Diagnostics"] = None):
        """
        Initialize diagnostics.

        Args:
            enabled: Whether trace entries are kept (errors always are)
            parent: Session diagnostics that also receive every entry
        """
        self.enabled = enabled
        self._parent = parent
        self._entries: list[str] = []
        self._last_error: ErrorState | None = None

    @property
    def entries(self) -> list[str]:
        return list(self._entries)

    @property
    def last_error(self) -> ErrorState | None:
        return self._last_error

    def record(self, message: str) -> None:
        """Append a trace entry."""
        if not self.enabled:
            return
        message = str(message)
        logger.debug(message)
        self._append(message)

    def _append(self, message: str) -> None:
        self._entries.append(message)
        if self._parent is not None:
            self._parent._append(message)

    def set_error(self, code: str, message: str) -> None:
        """Overwrite the last error and record it as a trace entry."""
        error = ErrorState(code=code, message=message)
        node = self
        while node is not None:
            node._last_error = error
            node = node._parent
        self.record(f"{code}|{message}")

    def child(self) -> "Diagnostics":
        """Create call-scoped diagnostics that feed into this log."""
        return Diagnostics(enabled=self.enabled, parent=self)
