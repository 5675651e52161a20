"""Cooperative cancellation for long-running listings and deletes."""

import threading

from chuk_blob_fs.exceptions import OperationCancelledError


class CancellationToken:
    """A flag checked between remote calls; safe to set from any thread."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        if self._event.is_set():
            raise OperationCancelledError(f"{operation} was cancelled")


def check_cancelled(token: CancellationToken | None, operation: str) -> None:
    """Raise OperationCancelledError if ``token`` has been cancelled."""
    if token is not None:
        token.raise_if_cancelled(operation)
