"""
Owning-Context Checks
=====================

The telemetry engine is not thread safe. It must be driven from exactly one
execution context (one thread, typically the thread running the asyncio
event loop). ContextChecker captures that context as a token and every
public engine call compares against it.

A checker may be detached once, e.g. when an engine is built on one thread
and handed to another; it then binds to whichever thread calls next.
"""

import logging
import threading
from typing import Optional


logger = logging.getLogger(__name__)


class ContextViolationError(RuntimeError):
    """Raised when an object is used outside its owning context."""
    pass


class ContextChecker:
    """
    Owning-context token compared on every call.

    Example:
        checker = ContextChecker()
        checker.check("on_frame_event")  # OK on the constructing thread
    """

    def __init__(self) -> None:
        self._owner: Optional[int] = threading.get_ident()

    @property
    def owner(self) -> Optional[int]:
        """Ident of the owning thread, or None while detached."""
        return self._owner

    def detach(self) -> None:
        """Forget the owner; the next check() rebinds."""
        self._owner = None

    def called_on_valid_context(self) -> bool:
        current = threading.get_ident()
        if self._owner is None:
            self._owner = current
            logger.debug(f"Context bound to thread {current}")
        return self._owner == current

    def check(self, operation: str) -> None:
        """
        Assert the caller runs on the owning context.

        Raises:
            ContextViolationError: If called from another thread
        """
        if not self.called_on_valid_context():
            raise ContextViolationError(
                f"{operation}() called from thread {threading.get_ident()}, "
                f"owner is thread {self._owner}"
            )
