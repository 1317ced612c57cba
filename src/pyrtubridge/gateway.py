"""Gateway assembly: builds every component and runs them on one loop.

Example:
    config = GatewayConfig(serial_port="/dev/ttyUSB0", data_dir="/var/lib/rtu")
    gateway = Gateway(config)
    asyncio.run(gateway.run())
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import paho.mqtt.client as mqtt
from aiohttp import web

from .admin import AdminAPI
from .config.params import PersistentParams
from .config.settings import GatewayConfig
from .config.store import ConfigStore
from .config.templates import TemplateStore
from .core import CoreLoop, LinkManager
from .debug import DebugLog
from .engine import PollEngine
from .publisher import MqttPublisher
from .registry import SlaveRegistry
from .stats import StatsLedger, TimingLedger
from .transports import ModbusDriver, SerialPort, open_serial_port

_LOGGER = logging.getLogger(__name__)


class Gateway:
    """All gateway components wired together.

    Args:
        config: Process settings
        port: Open serial port; opened from ``config`` when omitted
        mqtt_client: Pre-built MQTT client (tests inject a mock here)
        link: Link manager serviced by the core loop
        clock: Monotonic clock in seconds

    Raises:
        TransportConnectionError: If the serial port cannot be opened
    """

    def __init__(
        self,
        config: GatewayConfig,
        *,
        port: SerialPort | None = None,
        mqtt_client: mqtt.Client | None = None,
        link: LinkManager | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        config.validate()
        self.config = config

        self.store = ConfigStore(config.data_dir)
        self.templates = TemplateStore(self.store)
        self.params = PersistentParams.load(self.store)
        if config.mqtt_server:
            self.params.mqtt_server = config.mqtt_server
        if config.mqtt_port:
            self.params.mqtt_port = config.mqtt_port

        self.registry = SlaveRegistry(self.store, self.templates)
        self.stats = StatsLedger()
        self.timing = TimingLedger(clock=clock)
        self.debug = DebugLog(self.timing, enabled=config.debug_capture)

        self.port = port if port is not None else open_serial_port(config.serial_port, config.baudrate)
        self.driver = ModbusDriver(self.port, settle_time=config.settle_time, clock=clock)
        self.publisher = MqttPublisher(
            self.params.mqtt_server,
            self.params.mqtt_port,
            client_id=config.mqtt_client_id,
            reconnect_interval=config.mqtt_reconnect_interval,
            clock=clock,
            client=mqtt_client,
        )
        self.engine = PollEngine(
            self.registry,
            self.driver,
            self.publisher,
            self.stats,
            timing=self.timing,
            debug=self.debug,
            clock=clock,
            query_interval=config.query_interval,
        )
        self.core = CoreLoop(self.engine, self.publisher, link, tick_sleep=config.tick_sleep)
        self.admin = AdminAPI(
            self.store,
            self.templates,
            self.registry,
            self.engine,
            self.stats,
            self.timing,
            self.debug,
            self.params,
            self.publisher,
        )
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Prepare configuration and start the admin HTTP surface."""
        self.templates.ensure_defaults()
        self.engine.reload()

        self._runner = web.AppRunner(self.admin.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.config.admin_host, self.config.admin_port)
        await site.start()
        _LOGGER.info(
            "Admin surface listening on %s:%d", self.config.admin_host, self.config.admin_port
        )

    async def stop(self) -> None:
        """Stop polling, release the bus and shut down the admin surface."""
        self.core.stop()
        self.driver.close()
        self.publisher.close()
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        _LOGGER.info("Gateway stopped")

    async def run(self) -> None:
        """Start and run the core loop until cancelled or stopped."""
        await self.start()
        try:
            await self.core.run()
        finally:
            await self.stop()
