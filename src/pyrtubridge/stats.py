"""Per-slave health statistics and message timing.

:class:`StatsLedger` counts query outcomes per ``(id, name)`` and keeps a
three-character rolling history (newest first) so intermittent failures
show up without reading the counters. :class:`TimingLedger` tracks the
gap between consecutive publishes, both per device and across all
devices, for the debug view.

Both ledgers are bounded. Once full, new devices are silently not
tracked, while devices already present keep updating.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from .constants import STATS_CAPACITY, TIMING_CAPACITY

_LOGGER = logging.getLogger(__name__)

HISTORY_LENGTH = 3
EMPTY_HISTORY = " " * HISTORY_LENGTH


class Outcome(StrEnum):
    """Result of one Modbus exchange, as shown in the history string."""

    SUCCESS = "S"
    TIMEOUT = "T"
    FAILURE = "F"


@dataclass
class StatsEntry:
    """Counters for one slave."""

    slave_id: int
    name: str
    total: int = 0
    successes: int = 0
    timeouts: int = 0
    failures: int = 0
    history: str = EMPTY_HISTORY

    def record(self, outcome: Outcome) -> None:
        """Count ``outcome`` and push it onto the history."""
        self.total += 1
        if outcome is Outcome.SUCCESS:
            self.successes += 1
        elif outcome is Outcome.TIMEOUT:
            self.timeouts += 1
        else:
            self.failures += 1
        self.history = (outcome.value + self.history)[:HISTORY_LENGTH]

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON view used by the statistics endpoint."""
        return {
            "slaveId": self.slave_id,
            "slaveName": self.name,
            "totalQueries": self.total,
            "success": self.successes,
            "timeout": self.timeouts,
            "failed": self.failures,
            "history": self.history,
        }


class StatsLedger:
    """Bounded, insertion-ordered collection of :class:`StatsEntry`."""

    def __init__(self, capacity: int = STATS_CAPACITY) -> None:
        self._capacity = capacity
        self._entries: list[StatsEntry] = []

    @property
    def capacity(self) -> int:
        """Maximum number of tracked slaves."""
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, slave_id: int, name: str) -> StatsEntry | None:
        """Return the entry for ``(slave_id, name)``, if tracked."""
        for entry in self._entries:
            if entry.slave_id == slave_id and entry.name == name:
                return entry
        return None

    def record(self, slave_id: int, name: str, outcome: Outcome) -> StatsEntry | None:
        """Record an outcome, creating the entry on first observation.

        Returns:
            The updated entry, or None if the ledger is full or the key
            is not a valid slave
        """
        if slave_id == 0 or not name:
            return None

        entry = self.get(slave_id, name)
        if entry is None:
            if len(self._entries) >= self._capacity:
                _LOGGER.debug("Stats ledger full, not tracking %s (%d)", name, slave_id)
                return None
            entry = StatsEntry(slave_id=slave_id, name=name)
            self._entries.append(entry)

        entry.record(outcome)
        return entry

    def remove(self, slave_id: int, name: str) -> bool:
        """Forget one slave; returns False if it was not tracked."""
        entry = self.get(slave_id, name)
        if entry is None:
            return False
        self._entries.remove(entry)
        return True

    def clear(self) -> None:
        """Forget every slave."""
        self._entries.clear()

    def snapshot(self) -> list[dict[str, Any]]:
        """Return a JSON-serializable copy of all entries."""
        return [entry.to_dict() for entry in self._entries]


# =============================================================================
# TIMING
# =============================================================================


def format_delta(delta_ms: int) -> str:
    """Format a millisecond gap as ``+Nms`` or ``+N.Ns``.

    Example:
        >>> format_delta(250)
        '+250ms'
        >>> format_delta(1530)
        '+1.5s'
    """
    if delta_ms <= 0:
        return "+0ms"
    if delta_ms < 1000:
        return f"+{delta_ms}ms"
    return f"+{delta_ms / 1000:.1f}s"


@dataclass
class DeviceTiming:
    """Timing state of one device."""

    slave_id: int
    name: str
    last_seen: float
    is_first: bool = True
    message_count: int = 0


class TimingLedger:
    """Inter-message gaps per device and across all devices.

    Args:
        capacity: Maximum number of tracked devices
        clock: Monotonic clock in seconds
    """

    def __init__(
        self,
        capacity: int = TIMING_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._capacity = capacity
        self._clock = clock
        self._devices: list[DeviceTiming] = []
        self._last_sequence: float | None = None
        self._start = clock()

    def _find(self, slave_id: int, name: str) -> DeviceTiming | None:
        for device in self._devices:
            if device.slave_id == slave_id and device.name == name:
                return device
        return None

    def _track(self, slave_id: int, name: str, now: float) -> DeviceTiming | None:
        if len(self._devices) >= self._capacity:
            return None
        device = DeviceTiming(slave_id=slave_id, name=name, last_seen=now)
        self._devices.append(device)
        return device

    def same_device_delta(self, slave_id: int, name: str, reset: bool = False) -> str:
        """Return the gap since this device was last seen.

        Returns ``"First"`` until a reset has recorded a first sighting.
        With ``reset`` the device's last-seen time moves to now.
        """
        now = self._clock()
        device = self._find(slave_id, name)
        if device is None:
            device = self._track(slave_id, name, now)
            if device is None:
                return "+0ms"
            device.is_first = not reset
            return "First"

        if device.is_first:
            if reset:
                device.is_first = False
                device.last_seen = now
            return "First"

        delta_ms = round((now - device.last_seen) * 1000)
        if reset:
            device.last_seen = now
        return format_delta(delta_ms)

    def since_any_delta(self, slave_id: int, name: str) -> str:
        """Return the gap since the previous message from any device.

        Also counts the message against ``(slave_id, name)``.
        """
        now = self._clock()
        delta_ms = 0
        if self._last_sequence is not None:
            delta_ms = round((now - self._last_sequence) * 1000)
        self._last_sequence = now

        device = self._find(slave_id, name) or self._track(slave_id, name, now)
        if device is not None:
            device.message_count += 1
        return format_delta(delta_ms)

    def elapsed_ms(self) -> int:
        """Milliseconds since start or the last reset."""
        return int((self._clock() - self._start) * 1000)

    def elapsed_clock(self) -> str:
        """Time since start or the last reset as ``HH:MM:SS``."""
        seconds = self.elapsed_ms() // 1000
        hours = (seconds % 86400) // 3600
        minutes = (seconds % 3600) // 60
        return f"{hours:02d}:{minutes:02d}:{seconds % 60:02d}"

    def reset(self) -> None:
        """Forget all devices and restart the elapsed clock."""
        self._devices.clear()
        self._last_sequence = None
        self._start = self._clock()
        _LOGGER.info("Timing data reset")

    def snapshot(self) -> list[dict[str, Any]]:
        """Return per-device message counts."""
        return [
            {"slaveId": d.slave_id, "slaveName": d.name, "messageCount": d.message_count}
            for d in self._devices
        ]
