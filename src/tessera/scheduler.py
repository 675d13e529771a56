"""Throttled publishing of message snapshots to a renderer.

The assembler may apply many frames per network read.  The
:class:`RenderScheduler` batches those mutations and hands the renderer
a snapshot at most once per ``interval``, polling on the host's paint
cadence in between.  ``flush()`` always publishes the final state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from tessera.message import Message

logger = logging.getLogger(__name__)

PUBLISH_INTERVAL = 0.1
PAINT_INTERVAL = 1 / 60


@dataclass(frozen=True)
class Snapshot:
    """A copy of the message as of one publish.

    ``version`` increases by one with every publish, so a renderer can
    skip work when it has already drawn a version.
    """

    version: int
    message: Message
    final: bool = False


class PaintHandle(Protocol):
    def cancel(self) -> None: ...


NextPaint = Callable[[Callable[[], None]], PaintHandle]


def asyncio_next_paint(callback: Callable[[], None]) -> asyncio.TimerHandle:
    """Run *callback* on the current event loop one paint frame from now."""
    loop = asyncio.get_running_loop()
    return loop.call_later(PAINT_INTERVAL, callback)


class RenderScheduler:
    """Decouples message mutation from repaint.

    Args:
        source: Returns the message being assembled.
        publish: Receives each :class:`Snapshot`.
        interval: Minimum seconds between two non-final publishes.
        next_paint: Schedules a callback for the next paint and
            returns a cancellable handle.
        clock: Monotonic time source, in seconds.
    """

    def __init__(
        self,
        source: Callable[[], Message],
        publish: Callable[[Snapshot], None],
        interval: float = PUBLISH_INTERVAL,
        next_paint: NextPaint | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.publish = publish
        self.interval = interval
        self.next_paint = next_paint or asyncio_next_paint
        self.clock = clock
        self.version = 0
        self.closed = False
        self._last_published = float("-inf")
        self._pending: PaintHandle | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def mark_dirty(self) -> None:
        """Note that the message changed; schedule a publish if none is pending."""
        if self.closed or self._pending is not None:
            return
        self._pending = self.next_paint(self._on_paint)

    def flush(self) -> Snapshot | None:
        """Cancel any pending paint and publish the final state.

        Only the first call publishes; later calls return ``None``.
        """
        if self.closed:
            return None
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self.closed = True
        return self._emit(final=True)

    def _on_paint(self) -> None:
        self._pending = None
        if self.closed:
            return
        if self.clock() - self._last_published >= self.interval:
            self._emit(final=False)
        else:
            self._pending = self.next_paint(self._on_paint)

    def _emit(self, final: bool) -> Snapshot:
        self.version += 1
        self._last_published = self.clock()
        snapshot = Snapshot(
            version=self.version,
            message=self.source().model_copy(deep=True),
            final=final,
        )
        logger.debug(f"Publishing snapshot v{self.version} (final={final})")
        self.publish(snapshot)
        return snapshot
