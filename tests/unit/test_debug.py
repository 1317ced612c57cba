"""Unit tests for the debug message ring."""

from __future__ import annotations

from pyrtubridge.debug import BATCH_SEPARATOR_TOPIC, DebugLog
from pyrtubridge.stats import TimingLedger


class TestDebugLog:
    """Tests for DebugLog."""

    def test_disabled_by_default(self, timing: TimingLedger) -> None:
        """Test nothing is captured while disabled."""
        log = DebugLog(timing)
        assert log.add("env/room1", "{}") is None
        assert len(log) == 0

    def test_capture(self, timing: TimingLedger) -> None:
        """Test a captured entry carries the timing fields."""
        log = DebugLog(timing, enabled=True)
        entry = log.add("env/room1", '{"id": 3}', "+250ms", "First")
        assert entry is not None
        assert entry.to_dict() == {
            "topic": "env/room1",
            "message": '{"id": 3}',
            "timestamp": 0,
            "timeDelta": "+250ms",
            "sameDeviceDelta": "First",
            "realTime": "00:00:00",
        }

    def test_ring_drops_oldest(self, timing: TimingLedger) -> None:
        """Test the oldest entries are discarded once full."""
        log = DebugLog(timing, capacity=3, enabled=True)
        for index in range(5):
            log.add(f"t/{index}", "{}")
        assert [entry["topic"] for entry in log.drain()] == ["t/2", "t/3", "t/4"]

    def test_drain_empties(self, timing: TimingLedger) -> None:
        """Test drain hands over and clears the entries."""
        log = DebugLog(timing, enabled=True)
        log.add("t", "{}")
        assert len(log.drain()) == 1
        assert log.drain() == []

    def test_separator(self, timing: TimingLedger) -> None:
        """Test the end-of-cycle marker."""
        log = DebugLog(timing, enabled=True)
        log.add_separator(4)
        (entry,) = log.drain()
        assert entry["topic"] == BATCH_SEPARATOR_TOPIC
        assert entry["message"] == "End of cycle 4"

    def test_toggle_and_clear(self, timing: TimingLedger) -> None:
        """Test enabling, disabling and clearing."""
        log = DebugLog(timing)
        log.set_enabled(True)
        log.add("t", "{}")
        log.set_enabled(False)
        log.add("t", "{}")
        assert len(log) == 1
        log.clear()
        assert len(log) == 0
