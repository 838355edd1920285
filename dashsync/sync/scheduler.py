"""
Trailing-debounce scheduler for full-state saves.

Bursts of save requests collapse into one write. The body is taken when the
timer fires, not when the save was requested, so the write always carries
the latest state. `flush()` skips the wait and writes the current state now.

There is no retry and no queue: a failed write is the writer's problem, and
the next save request carries the still-unsaved state anyway.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 5.0

Snapshot = Callable[[], dict[str, Any]]
Writer = Callable[[dict[str, Any]], Awaitable[None]]


class DebouncedSaveScheduler:
    """
    One pending timer per owner; scheduling again replaces it.

    Must be used from inside a running event loop.
    """

    def __init__(
        self,
        snapshot: Snapshot,
        write: Writer,
        delay_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        *,
        name: str = "save",
        on_superseded: Callable[[], None] | None = None,
    ):
        """
        Args:
            snapshot: Returns the request body for the current state (sync)
            write: Sends a body to the server
            delay_seconds: Debounce window
            name: Label used in log messages
            on_superseded: Called when a pending timer is replaced or flushed over
        """
        self._snapshot = snapshot
        self._write = write
        self._delay_seconds = delay_seconds
        self._name = name
        self._on_superseded = on_superseded
        self._timer: asyncio.TimerHandle | None = None
        self._writes: set[asyncio.Task] = set()

    @property
    def delay_seconds(self) -> float:
        return self._delay_seconds

    @property
    def pending(self) -> bool:
        """True while a debounced save is waiting to fire."""
        return self._timer is not None

    @property
    def writing(self) -> bool:
        """True while any started write has not finished."""
        return bool(self._writes)

    def schedule(self) -> None:
        """Cancel any pending timer and start a fresh debounce window."""
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._delay_seconds, self._fire)

    def flush(self) -> asyncio.Task:
        """
        Cancel any pending timer and write the current state immediately.

        The body is captured before this returns; awaiting the returned task
        waits for the write itself.
        """
        self._cancel_timer()
        return self._start_write()

    def cancel(self) -> bool:
        """Cancel the pending timer without writing. Returns whether one was pending."""
        was_pending = self._timer is not None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        return was_pending

    async def drain(self) -> None:
        """Wait for every write started so far."""
        while self._writes:
            await asyncio.wait(set(self._writes))

    def _cancel_timer(self) -> None:
        if self.cancel():
            logger.debug(f"Pending {self._name} superseded")
            if self._on_superseded is not None:
                self._on_superseded()

    def _fire(self) -> None:
        self._timer = None
        self._start_write()

    def _start_write(self) -> asyncio.Task:
        body = self._snapshot()
        task = asyncio.ensure_future(self._write(body))
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)
        return task
