"""
chuk_blob_fs/events.py - Change notification

Events are buffered for a short delay and delivered to listeners in one
batch, so a burst of writes produces a single callback per listener.
"""

import asyncio
import logging
from collections.abc import Callable

from chuk_blob_fs.models import FileChangeEvent

logger = logging.getLogger(__name__)

ChangeListener = Callable[[list[FileChangeEvent]], None]


class Subscription:
    """Handle returned by watch() and on_did_change_file()."""

    def __init__(self, on_cancel: Callable[[], None] | None = None) -> None:
        self._on_cancel = on_cancel
        self.cancelled = False

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()

    # Alias matching disposable-style callers
    dispose = cancel

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cancel()
        return False


class ChangeEmitter:
    """Buffers FileChangeEvents and flushes them after ``delay`` seconds."""

    def __init__(self, delay: float = 0.005) -> None:
        self.delay = delay
        self._listeners: list[ChangeListener] = []
        self._buffer: list[FileChangeEvent] = []
        self._timer: asyncio.TimerHandle | None = None

    def subscribe(self, listener: ChangeListener) -> Subscription:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(remove)

    def fire_soon(self, event: FileChangeEvent) -> None:
        """Queue ``event``; flushes immediately when no event loop is running."""
        self._buffer.append(event)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return

        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(self.delay, self.flush)

    def flush(self) -> None:
        """Deliver buffered events to every listener."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._buffer:
            return

        events, self._buffer = self._buffer, []
        for listener in list(self._listeners):
            try:
                listener(list(events))
            except Exception as e:
                logger.error(f"Change listener {listener!r} failed: {e}")

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def __len__(self) -> int:
        return len(self._listeners)
