"""
Cancellation token for abandoning in-flight work.

A screen that navigates away cancels its token; any network result that
resolves afterwards is dropped instead of mutating state.
"""

import threading

from .errors import OperationCancelled


class CancellationToken:
    """Thread-safe flag checked between external calls."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, what: str = "operation"):
        if self._event.is_set():
            raise OperationCancelled(f"{what} was cancelled")


def check_cancelled(token, what: str = "operation"):
    """Raise OperationCancelled when an optional token has been cancelled."""
    if token is not None:
        token.raise_if_cancelled(what)
