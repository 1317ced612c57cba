"""Bounded capture of published messages for the admin debug view."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import Any

from .constants import DEBUG_CAPACITY
from .stats import TimingLedger

_LOGGER = logging.getLogger(__name__)

BATCH_SEPARATOR_TOPIC = "---"


@dataclass(frozen=True)
class DebugEntry:
    """One captured message."""

    topic: str
    message: str
    timestamp: int
    timeDelta: str
    sameDeviceDelta: str
    realTime: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class DebugLog:
    """Ring of the most recent captured messages.

    Capture only happens while :attr:`enabled` is set. The oldest entry
    is discarded once the ring is full. :meth:`drain` hands the entries
    to the reader and empties the ring.
    """

    def __init__(
        self,
        timing: TimingLedger,
        capacity: int = DEBUG_CAPACITY,
        enabled: bool = False,
    ) -> None:
        self._timing = timing
        self._entries: deque[DebugEntry] = deque(maxlen=capacity)
        self.enabled = enabled

    def __len__(self) -> int:
        return len(self._entries)

    def set_enabled(self, enabled: bool) -> None:
        """Turn capture on or off."""
        self.enabled = enabled
        _LOGGER.info("Debug capture %s", "enabled" if enabled else "disabled")

    def add(
        self,
        topic: str,
        message: str,
        time_delta: str = "",
        same_device_delta: str = "",
    ) -> DebugEntry | None:
        """Capture a message; returns None while capture is disabled."""
        if not self.enabled:
            return None
        entry = DebugEntry(
            topic=topic,
            message=message,
            timestamp=self._timing.elapsed_ms(),
            timeDelta=time_delta,
            sameDeviceDelta=same_device_delta,
            realTime=self._timing.elapsed_clock(),
        )
        self._entries.append(entry)
        _LOGGER.debug("DEBUG [%s]: %s (%s, same %s)", topic, message, time_delta, same_device_delta)
        return entry

    def add_separator(self, cycle: int) -> DebugEntry | None:
        """Mark the end of a poll cycle."""
        return self.add(BATCH_SEPARATOR_TOPIC, f"End of cycle {cycle}")

    def drain(self) -> list[dict[str, Any]]:
        """Return all captured entries, oldest first, and clear the ring."""
        entries = [entry.to_dict() for entry in self._entries]
        self._entries.clear()
        return entries

    def clear(self) -> None:
        """Discard all captured entries."""
        self._entries.clear()
