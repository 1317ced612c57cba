"""Pytest configuration and fixtures for pyrtubridge tests."""

from __future__ import annotations

import struct
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import paho.mqtt.client as mqtt
import pytest
import serial
from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer

from pyrtubridge.admin import AdminAPI
from pyrtubridge.config.params import PersistentParams
from pyrtubridge.config.store import ConfigStore
from pyrtubridge.config.templates import TemplateStore
from pyrtubridge.debug import DebugLog
from pyrtubridge.engine import PollEngine
from pyrtubridge.publisher import MqttPublisher
from pyrtubridge.registry import SlaveRegistry
from pyrtubridge.stats import StatsLedger, TimingLedger
from pyrtubridge.transports import ModbusDriver
from pyrtubridge.transports.framing import append_crc

# Binary-exact step so deadline comparisons are not blurred by float error
QUERY_STEP = 0.25


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSerialPort:
    """In-memory stand-in for :class:`serial.Serial`.

    Requests are recorded in ``written``. When ``responses`` holds a frame
    for the addressed slave it is queued for reading as soon as the
    request is written.
    """

    def __init__(self) -> None:
        self.rts = False
        self.out_waiting = 0
        self.written: list[bytes] = []
        self.responses: dict[int, bytes] = {}
        self.fail_write = False
        self.closed = False
        self.input_resets = 0
        self._rx = bytearray()

    @property
    def in_waiting(self) -> int:
        return len(self._rx)

    def reset_input_buffer(self) -> None:
        self.input_resets += 1
        self._rx.clear()

    def write(self, data: bytes) -> int:
        if self.fail_write:
            raise serial.SerialException("write failed")
        self.written.append(bytes(data))
        reply = self.responses.get(data[0])
        if reply is not None:
            self._rx += reply
        return len(data)

    def feed(self, data: bytes) -> None:
        """Queue bytes as if the slave had sent them."""
        self._rx += data

    def read(self, size: int = 1) -> bytes:
        chunk = bytes(self._rx[:size])
        del self._rx[:size]
        return chunk

    def close(self) -> None:
        self.closed = True


class RecordingPublisher:
    """Publisher that keeps every document it is given."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, dict[str, Any]]] = []
        self.accept = True

    def publish(self, topic: str, document: dict[str, Any]) -> bool:
        self.messages.append((topic, document))
        return self.accept

    def for_slave(self, slave_id: int) -> list[dict[str, Any]]:
        return [document for _, document in self.messages if document.get("id") == slave_id]


def build_response(slave_id: int, words: list[int]) -> bytes:
    """Build a valid Read Holding Registers response frame."""
    body = struct.pack(">BBB", slave_id, 0x03, 2 * len(words))
    body += struct.pack(f">{len(words)}H", *words)
    return append_crc(body)


def build_entry(
    slave_id: int = 3,
    name: str = "room1",
    device_type: str = "G01S",
    start: int = 0,
    count: int = 2,
    topic: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build one slave-list entry."""
    entry: dict[str, Any] = {
        "id": slave_id,
        "name": name,
        "deviceType": device_type,
        "startReg": start,
        "numReg": count,
        "mqttTopic": topic or f"env/{name}",
    }
    entry.update(extra)
    return entry


# =============================================================================
# Bus and clock
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Fake monotonic clock starting at zero."""
    return FakeClock()


@pytest.fixture
def serial_port() -> FakeSerialPort:
    """Fake RS-485 serial port."""
    return FakeSerialPort()


@pytest.fixture
def response_frame() -> Callable[[int, list[int]], bytes]:
    """Factory for valid response frames."""
    return build_response


@pytest.fixture
def driver(serial_port: FakeSerialPort, clock: FakeClock) -> ModbusDriver:
    """Driver without settle delay on the fake port."""
    return ModbusDriver(serial_port, clock=clock)


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def store(tmp_path: Path) -> ConfigStore:
    """Configuration store in a temporary data directory."""
    return ConfigStore(tmp_path / "data")


@pytest.fixture
def templates(store: ConfigStore) -> TemplateStore:
    """Template store over the temporary configuration store."""
    return TemplateStore(store)


@pytest.fixture
def slave_entry() -> Callable[..., dict[str, Any]]:
    """Factory for slave-list entries."""
    return build_entry


@pytest.fixture
def configure(store: ConfigStore) -> Callable[..., None]:
    """Write the slave list and, optionally, the polling document."""

    def _configure(slaves: list[dict[str, Any]], polling: dict[str, Any] | None = None) -> None:
        store.save_slaves(slaves)
        if polling is not None:
            store.save_polling(polling)

    return _configure


@pytest.fixture
def registry(store: ConfigStore, templates: TemplateStore) -> SlaveRegistry:
    """Empty slave registry."""
    return SlaveRegistry(store, templates)


# =============================================================================
# Engine
# =============================================================================


@pytest.fixture
def publisher() -> RecordingPublisher:
    """Publisher recording every document."""
    return RecordingPublisher()


@pytest.fixture
def stats() -> StatsLedger:
    """Empty statistics ledger."""
    return StatsLedger()


@pytest.fixture
def timing(clock: FakeClock) -> TimingLedger:
    """Timing ledger on the fake clock."""
    return TimingLedger(clock=clock)


@pytest.fixture
def debug(timing: TimingLedger) -> DebugLog:
    """Debug ring, capture disabled."""
    return DebugLog(timing)


@pytest.fixture
def engine(
    registry: SlaveRegistry,
    driver: ModbusDriver,
    publisher: RecordingPublisher,
    stats: StatsLedger,
    timing: TimingLedger,
    debug: DebugLog,
    clock: FakeClock,
) -> PollEngine:
    """Poll engine wired to the fake bus and recording publisher."""
    return PollEngine(
        registry,
        driver,
        publisher,
        stats,
        timing=timing,
        debug=debug,
        clock=clock,
        query_interval=QUERY_STEP,
    )


# =============================================================================
# MQTT and admin surface
# =============================================================================


@pytest.fixture
def mqtt_client() -> MagicMock:
    """Mock paho-mqtt client whose calls all succeed."""
    client = MagicMock()
    client.loop.return_value = mqtt.MQTT_ERR_SUCCESS
    client.publish.return_value.rc = mqtt.MQTT_ERR_SUCCESS
    return client


@pytest.fixture
def mqtt_publisher(mqtt_client: MagicMock, clock: FakeClock) -> MqttPublisher:
    """MQTT publisher using the mock client."""
    return MqttPublisher("broker.local", 1883, client=mqtt_client, clock=clock)


@pytest.fixture
def params() -> PersistentParams:
    """Default network parameters."""
    return PersistentParams(mqtt_server="broker.local")


@pytest.fixture
def admin(
    store: ConfigStore,
    templates: TemplateStore,
    registry: SlaveRegistry,
    engine: PollEngine,
    stats: StatsLedger,
    timing: TimingLedger,
    debug: DebugLog,
    params: PersistentParams,
    mqtt_publisher: MqttPublisher,
) -> AdminAPI:
    """Admin API bound to the test gateway state."""
    return AdminAPI(
        store, templates, registry, engine, stats, timing, debug, params, mqtt_publisher
    )


@pytest.fixture
async def admin_client(
    admin: AdminAPI,
) -> AsyncGenerator[TestClient[web.Request, web.Application], None]:
    """Test client for the admin HTTP surface."""
    async with TestClient(TestServer(admin.app)) as client:
        yield client
