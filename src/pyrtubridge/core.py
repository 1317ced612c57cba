"""Single-threaded cooperative scheduler.

Every tick services the link manager, the MQTT session and the poll
engine, in that order, and then yields to the event loop for a short
sleep. The admin HTTP surface runs on the same event loop and is served
during that sleep, so all gateway state is owned by one thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from .constants import TICK_SLEEP
from .engine import PollEngine
from .publisher import MqttPublisher

_LOGGER = logging.getLogger(__name__)


class LinkManager(Protocol):
    """Network link upkeep (station/AP management, firmware updates)."""

    def service(self) -> None: ...


class NullLinkManager:
    """Link manager for hosts whose network is managed by the OS."""

    def service(self) -> None:
        return None


class CoreLoop:
    """Runs the gateway's cooperative tick.

    Args:
        engine: Poll engine advanced once per tick
        publisher: MQTT session serviced once per tick
        link: Link manager serviced once per tick
        tick_sleep: Seconds to yield at the end of each tick
    """

    def __init__(
        self,
        engine: PollEngine,
        publisher: MqttPublisher,
        link: LinkManager | None = None,
        *,
        tick_sleep: float = TICK_SLEEP,
    ) -> None:
        self._engine = engine
        self._publisher = publisher
        self._link = link if link is not None else NullLinkManager()
        self._tick_sleep = tick_sleep
        self._running = False
        self._ticks = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def ticks(self) -> int:
        """Number of ticks run so far."""
        return self._ticks

    def tick(self) -> None:
        """Run one pass over every subsystem.

        A failure in one subsystem is logged and does not stop the others.
        Broker dials wait while a query deadline is running.
        """
        for name, step in (
            ("link manager", self._link.service),
            ("MQTT publisher", self._service_publisher),
            ("poll engine", self._engine.tick),
        ):
            try:
                step()
            except Exception:
                _LOGGER.exception("Unhandled error in %s", name)
        self._ticks += 1

    def _service_publisher(self) -> None:
        self._publisher.service(connect=not self._engine.awaiting_response)

    async def run(self) -> None:
        """Tick until :meth:`stop` is called."""
        self._running = True
        _LOGGER.info("Core loop started")
        try:
            while self._running:
                self.tick()
                await asyncio.sleep(self._tick_sleep)
        finally:
            self._running = False
            _LOGGER.info("Core loop stopped after %d tick(s)", self._ticks)

    def stop(self) -> None:
        """End :meth:`run` after the current tick."""
        self._running = False
