"""Tests for gateway assembly and the end-to-end poll loop."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from pyrtubridge.config.settings import GatewayConfig
from pyrtubridge.config.store import ConfigStore
from pyrtubridge.constants import TEMPLATES_PATH
from pyrtubridge.gateway import Gateway

FrameFactory = Callable[[int, list[int]], bytes]


def make_gateway(
    tmp_path: Path, serial_port: Any, mqtt_client: MagicMock, clock: Any, **overrides: Any
) -> Gateway:
    """Build a gateway on the fake bus and mock broker."""
    config = GatewayConfig(
        serial_port="/dev/null",
        data_dir=str(tmp_path / "data"),
        admin_host="127.0.0.1",
        admin_port=0,
        mqtt_server="broker.local",
        query_interval=0.25,
        tick_sleep=0,
        **overrides,
    )
    return Gateway(config, port=serial_port, mqtt_client=mqtt_client, clock=clock)


class TestGateway:
    """Tests for Gateway."""

    def test_cli_endpoint_overrides_stored(
        self, tmp_path: Path, serial_port: Any, mqtt_client: MagicMock, clock: Any
    ) -> None:
        """Test the configured broker replaces the stored parameter."""
        ConfigStore(tmp_path / "data").save_params({"mqtt_server": "stored", "mqtt_port": 1884})
        gateway = make_gateway(tmp_path, serial_port, mqtt_client, clock)
        assert gateway.params.mqtt_server == "broker.local"
        assert gateway.params.mqtt_port == 1884
        assert gateway.publisher.server == "broker.local"

    def test_debug_capture_flag(
        self, tmp_path: Path, serial_port: Any, mqtt_client: MagicMock, clock: Any
    ) -> None:
        """Test the debug capture setting reaches the debug ring."""
        gateway = make_gateway(tmp_path, serial_port, mqtt_client, clock, debug_capture=True)
        assert gateway.debug.enabled is True

    async def test_start_and_stop(
        self, tmp_path: Path, serial_port: Any, mqtt_client: MagicMock, clock: Any
    ) -> None:
        """Test start writes default templates and stop releases the port."""
        gateway = make_gateway(tmp_path, serial_port, mqtt_client, clock)
        await gateway.start()
        try:
            assert gateway.store.exists(TEMPLATES_PATH)
            assert len(gateway.registry) == 0
        finally:
            await gateway.stop()
        assert serial_port.closed is True

    async def test_poll_and_publish(
        self,
        tmp_path: Path,
        serial_port: Any,
        mqtt_client: MagicMock,
        clock: Any,
        response_frame: FrameFactory,
    ) -> None:
        """Test a configured sensor is polled and its reading published."""
        store = ConfigStore(tmp_path / "data")
        store.save_slaves(
            [
                {
                    "id": 3,
                    "name": "room1",
                    "deviceType": "G01S",
                    "startReg": 0,
                    "numReg": 2,
                    "mqttTopic": "env/room1",
                }
            ]
        )
        serial_port.responses[3] = response_frame(3, [0x00FA, 0x01F4])

        gateway = make_gateway(tmp_path, serial_port, mqtt_client, clock)
        await gateway.start()
        try:
            gateway.core.tick()
            mqtt_client.on_connect(mqtt_client, None, None, MagicMock(is_failure=False), None)
            for _ in range(8):
                clock.advance(0.25)
                gateway.core.tick()
        finally:
            await gateway.stop()

        topic, payload = mqtt_client.publish.call_args.args
        assert topic == "env/room1"
        document = json.loads(payload)
        assert document["temperature_(C)"] == pytest.approx(25.0)
        assert document["humidity"] == pytest.approx(50.0)
        assert gateway.stats.snapshot()[0]["history"] == "S  "

    async def test_debug_toggle_reaches_engine(
        self,
        tmp_path: Path,
        serial_port: Any,
        mqtt_client: MagicMock,
        clock: Any,
        response_frame: FrameFactory,
    ) -> None:
        """Test the ring the admin surface toggles receives the engine's publishes."""
        ConfigStore(tmp_path / "data").save_slaves(
            [
                {
                    "id": 3,
                    "name": "room1",
                    "deviceType": "G01S",
                    "startReg": 0,
                    "numReg": 2,
                    "mqttTopic": "env/room1",
                }
            ]
        )
        serial_port.responses[3] = response_frame(3, [0x00FA, 0x01F4])

        gateway = make_gateway(tmp_path, serial_port, mqtt_client, clock)
        await gateway.start()
        try:
            gateway.debug.set_enabled(True)
            for _ in range(8):
                gateway.core.tick()
                clock.advance(0.25)
        finally:
            await gateway.stop()

        topics = [entry["topic"] for entry in gateway.debug.drain()]
        assert "env/room1" in topics
