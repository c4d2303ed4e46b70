"""
Cooperative cancellation for concurrent pipeline phases.
"""

import threading
from typing import List, Optional

from .errors import CancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag shared by every task of a phase.

    A child token reports cancellation when either it or any of its ancestors
    has been cancelled, so a phase can cancel its own siblings without touching
    the token its caller supplied.
    """

    def __init__(self, parent: Optional["CancellationToken"] = None):
        self._event = threading.Event()
        self._parent = parent
        self._children: List["CancellationToken"] = []
        self._lock = threading.Lock()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def cancel(self, reason: Optional[str] = None) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            children = list(self._children)

        # Children share the reason so waiters wake up with the real cause
        for child in children:
            child.cancel(reason)

    def child(self) -> "CancellationToken":
        token = CancellationToken(parent=self)
        with self._lock:
            self._children.append(token)
            cancelled = self._event.is_set()
        if cancelled:
            token.cancel(self.reason)
        return token

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the token is cancelled or ``timeout`` seconds elapse.

        Returns:
            True if the token was cancelled
        """
        return self._event.wait(timeout) or self.cancelled

    def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first, then raise ``CancelledError``."""
        if self.wait(seconds):
            self.raise_if_cancelled()

    def raise_if_cancelled(self) -> None:
        """Raise ``CancelledError`` if this token or an ancestor was cancelled."""
        token = self
        while token is not None:
            if token._event.is_set():
                raise CancelledError(token.reason or "operation cancelled")
            token = token._parent
