"""Debounce aggregator for bursts of CSV change events.

Upstream exports often write many related files in a short burst. Events are
buffered until no new event has arrived for longer than the wait threshold,
then the whole buffer is released as one batch.
"""

import logging
import time
from enum import StrEnum

from csvship.schemas.shipper import ChangeEvent

logger = logging.getLogger(__name__)


class DebounceState(StrEnum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"


class DebounceAggregator:
    """Buffers change events and releases them after a quiet period.

    Timestamps default to ``time.monotonic()`` and may be passed explicitly.

    Usage::

        aggregator = DebounceAggregator(wait_seconds=5)
        aggregator.add(event)
        batch = aggregator.poll()  # None until 5s pass with no new events
    """

    def __init__(self, wait_seconds: float) -> None:
        if wait_seconds <= 0:
            raise ValueError("wait_seconds must be positive")
        self._wait_seconds = wait_seconds
        self._pending: list[ChangeEvent] = []
        self._last_event_time: float | None = None

    @property
    def state(self) -> DebounceState:
        if self._pending:
            return DebounceState.ACCUMULATING
        return DebounceState.IDLE

    @property
    def pending(self) -> list[ChangeEvent]:
        return list(self._pending)

    def add(self, event: ChangeEvent, now: float | None = None) -> None:
        """Buffer an event and restart the quiet-period clock."""
        self._pending.append(event)
        self._last_event_time = time.monotonic() if now is None else now
        logger.debug("Buffered %s (%s); %d pending", event.path, event.kind, len(self._pending))

    def poll(self, now: float | None = None) -> list[ChangeEvent] | None:
        """Release the buffered batch if the quiet period has elapsed.

        Returns:
            The pending events, oldest first, or None if nothing is due. A
            released batch empties the buffer.
        """
        if not self._pending or self._last_event_time is None:
            return None
        now = time.monotonic() if now is None else now
        if now - self._last_event_time <= self._wait_seconds:
            return None

        batch = self._pending
        self._pending = []
        self._last_event_time = None
        logger.info("Quiet for over %ss; releasing batch of %d event(s)", self._wait_seconds, len(batch))
        return batch
