"""Unit tests for the cooperative core loop."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock, call

import pytest

from pyrtubridge.core import CoreLoop, NullLinkManager
from pyrtubridge.engine import PollEngine
from pyrtubridge.publisher import MqttPublisher
from pyrtubridge.stats import StatsLedger


class TestCoreLoop:
    """Tests for CoreLoop."""

    def test_tick_order(self) -> None:
        """Test each tick services link, MQTT and engine in that order."""
        manager = MagicMock()
        manager.engine.awaiting_response = False
        core = CoreLoop(manager.engine, manager.publisher, manager.link)
        core.tick()
        assert manager.mock_calls == [
            call.link.service(),
            call.publisher.service(connect=True),
            call.engine.tick(),
        ]
        assert core.ticks == 1

    def test_failure_isolated(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test a failing subsystem does not stop the others."""
        engine = MagicMock()
        publisher = MagicMock()
        publisher.service.side_effect = RuntimeError("socket exploded")
        core = CoreLoop(engine, publisher)

        with caplog.at_level(logging.ERROR, logger="pyrtubridge.core"):
            core.tick()

        engine.tick.assert_called_once()
        assert "MQTT publisher" in caplog.text

    def test_default_link_manager(self) -> None:
        """Test the null link manager does nothing."""
        assert NullLinkManager().service() is None
        CoreLoop(MagicMock(), MagicMock()).tick()

    def test_dial_postponed_while_awaiting_response(self) -> None:
        """Test the publisher may not dial while a query deadline runs."""
        engine = MagicMock()
        publisher = MagicMock()
        engine.awaiting_response = True
        core = CoreLoop(engine, publisher)
        core.tick()
        publisher.service.assert_called_once_with(connect=False)

        engine.awaiting_response = False
        core.tick()
        publisher.service.assert_called_with(connect=True)

    def test_link_manager_with_len_kept(self) -> None:
        """Test an empty-looking link manager is still serviced."""

        class QueueLink:
            def __init__(self) -> None:
                self.serviced = 0

            def __len__(self) -> int:
                return 0

            def service(self) -> None:
                self.serviced += 1

        link = QueueLink()
        CoreLoop(MagicMock(), MagicMock(), link).tick()
        assert link.serviced == 1

    async def test_run_until_stopped(self) -> None:
        """Test run ticks until stop is called."""
        engine = MagicMock()
        core = CoreLoop(engine, MagicMock(), tick_sleep=0)

        def tick() -> None:
            if core.ticks >= 2:
                core.stop()

        engine.tick.side_effect = tick
        await core.run()

        assert core.ticks == 3
        assert core.running is False


class TestBrokerDialDuringQuery:
    """Tests for a stalled broker dial while the bus is busy."""

    def test_buffered_reply_not_timed_out(
        self,
        engine: PollEngine,
        mqtt_publisher: MqttPublisher,
        mqtt_client: MagicMock,
        configure: Callable[..., None],
        slave_entry: Callable[..., dict[str, Any]],
        serial_port: Any,
        response_frame: Callable[[int, list[int]], bytes],
        clock: Any,
        stats: StatsLedger,
    ) -> None:
        """Test a reply that arrived in time is accepted despite a due reconnect."""
        configure([slave_entry(topic="env/room1")])
        engine.reload()
        for _ in range(20):
            engine.tick()
            if engine.awaiting_response:
                break
            clock.advance(0.25)
        assert engine.awaiting_response

        dialled_while_waiting: list[bool] = []

        def stalled_dial(*args: Any) -> None:
            dialled_while_waiting.append(engine.awaiting_response)
            clock.advance(5.0)
            raise OSError("timed out")

        mqtt_client.connect.side_effect = stalled_dial
        serial_port.feed(response_frame(3, [0x00FA, 0x01F4]))
        core = CoreLoop(engine, mqtt_publisher, tick_sleep=0)
        for _ in range(5):
            core.tick()

        entry = stats.get(3, "room1")
        assert entry is not None
        assert (entry.successes, entry.timeouts) == (1, 0)
        assert dialled_while_waiting == [False]
