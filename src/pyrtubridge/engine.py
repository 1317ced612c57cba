"""Poll engine: the cooperative state machine that drives the bus.

Each call to :meth:`PollEngine.tick` does a bounded amount of work and
returns. One poll cycle queries every slave of the registry snapshot in
order, publishing either the decoded document or an error document for
each one, then waits ``poll_interval`` seconds before the next cycle.

States::

    IDLE ──► START_QUERY ──► WAIT_RESPONSE ──► PROCESS_DATA
                 ▲   │              │                │
                 │   └──── advance ◄┴────────────────┘
                 │              │
                 └── WAITING ◄──┘ (after the last slave)

Consecutive queries within a cycle are spaced by ``query_interval``. The
per-query deadline is judged here, before the driver is polled, so a
response that arrives after the deadline is a timeout even if its bytes
are already buffered.

Configuration changes arrive through :meth:`request_reload`; the flag is
applied at the top of the next tick, which aborts any in-flight
transaction and restarts from the first slave of the new registry.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from .constants import QUERY_INTERVAL
from .debug import DebugLog
from .decoder import decode, error_document
from .exceptions import CodecError, DecodeError
from .models import PollingConfig, Slave
from .publisher import Publisher
from .registry import SlaveRegistry
from .stats import Outcome, StatsLedger, TimingLedger
from .transports import ModbusDriver, PollStatus, TransportError

_LOGGER = logging.getLogger(__name__)

START_FAILED_MESSAGE = "Failed to start Modbus query"


class PollState(StrEnum):
    """Engine state."""

    IDLE = "idle"
    START_QUERY = "start_query"
    WAIT_RESPONSE = "wait_response"
    PROCESS_DATA = "process_data"
    WAITING = "waiting"


class PollEngine:
    """Multiplexes the Modbus driver across the registry's slaves.

    Args:
        registry: Source of the slave list and polling configuration
        driver: Owner of the RS-485 line
        publisher: Destination of decoded and error documents
        stats: Per-slave outcome ledger
        timing: Inter-message timing ledger
        debug: Captured-message ring for the admin debug view
        clock: Monotonic clock in seconds
        query_interval: Minimum spacing between queries within a cycle
    """

    def __init__(
        self,
        registry: SlaveRegistry,
        driver: ModbusDriver,
        publisher: Publisher,
        stats: StatsLedger,
        *,
        timing: TimingLedger | None = None,
        debug: DebugLog | None = None,
        clock: Callable[[], float] = time.monotonic,
        query_interval: float = QUERY_INTERVAL,
    ) -> None:
        self._registry = registry
        self._driver = driver
        self._publisher = publisher
        self._stats = stats
        self._timing = timing if timing is not None else TimingLedger(clock=clock)
        self._debug = debug if debug is not None else DebugLog(self._timing)
        self._clock = clock
        self._query_interval = query_interval

        polling = registry.polling
        self._poll_interval = polling.poll_interval
        self._timeout = polling.timeout

        self._state = PollState.IDLE
        self._slaves: tuple[Slave, ...] = ()
        self._index = 0
        self._last_action = 0.0
        self._query_start = 0.0
        self._words: tuple[int, ...] = ()
        self._cycle = 0
        self._reload_requested = False

    # =========================================================================
    # Observers
    # =========================================================================

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def index(self) -> int:
        """Position of the current slave within the cycle."""
        return self._index

    @property
    def cycle(self) -> int:
        """Number of completed poll cycles."""
        return self._cycle

    @property
    def poll_interval(self) -> int:
        return self._poll_interval

    @property
    def timeout(self) -> int:
        return self._timeout

    @property
    def reload_pending(self) -> bool:
        return self._reload_requested

    @property
    def awaiting_response(self) -> bool:
        """True while a query deadline is running."""
        return self._state is PollState.WAIT_RESPONSE

    @property
    def current_slave(self) -> Slave | None:
        """Slave being queried, or None between cycles."""
        if self._state in (PollState.IDLE, PollState.WAITING):
            return None
        if self._index < len(self._slaves):
            return self._slaves[self._index]
        return None

    def status(self) -> dict[str, Any]:
        """Consistent snapshot of the engine position."""
        slave = self.current_slave
        return {
            "state": self._state.value,
            "index": self._index,
            "cycle": self._cycle,
            "slaves": len(self._slaves),
            "slave": None if slave is None else {"id": slave.id, "name": slave.name},
            "pollInterval": self._poll_interval,
            "timeout": self._timeout,
        }

    # =========================================================================
    # Configuration
    # =========================================================================

    def request_reload(self) -> None:
        """Ask for a registry reload at the start of the next tick."""
        self._reload_requested = True

    def set_polling(self, polling: PollingConfig) -> None:
        """Apply new pacing; a running wait restarts from now."""
        self._poll_interval = polling.poll_interval
        self._timeout = polling.timeout
        if self._state is PollState.WAITING:
            self._last_action = self._clock()

    def reload(self) -> bool:
        """Abort the current transaction, reload the registry, restart.

        Returns:
            Result of :meth:`SlaveRegistry.reload`
        """
        self._reload_requested = False
        self._driver.abort()
        reloaded = self._registry.reload()
        self.set_polling(self._registry.polling)
        self._state = PollState.IDLE
        self._slaves = ()
        self._index = 0
        self._words = ()
        _LOGGER.info("Poll engine reset, %d slave(s) registered", len(self._registry))
        return reloaded

    # =========================================================================
    # State machine
    # =========================================================================

    def tick(self) -> None:
        """Advance the state machine by one step."""
        if self._reload_requested:
            self.reload()

        now = self._clock()
        if self._state is PollState.IDLE:
            self._start_cycle(now)
        elif self._state is PollState.START_QUERY:
            self._start_query(now)
        elif self._state is PollState.WAIT_RESPONSE:
            self._wait_response(now)
        elif self._state is PollState.PROCESS_DATA:
            self._process_data(now)
        elif self._state is PollState.WAITING:
            if now - self._last_action >= self._poll_interval:
                self._start_cycle(now)

    def _start_cycle(self, now: float) -> None:
        self._slaves = self._registry.list()
        self._index = 0
        self._last_action = now
        if self._slaves:
            self._state = PollState.START_QUERY
        else:
            self._state = PollState.WAITING

    def _start_query(self, now: float) -> None:
        if now - self._last_action < self._query_interval:
            return

        slave = self._slaves[self._index]
        try:
            self._driver.begin_transaction(slave.id, slave.start_register, slave.register_count)
        except (TransportError, ValueError) as err:
            _LOGGER.warning("Failed to start query for slave %d (%s): %s", slave.id, slave.name, err)
            self._fail(slave, Outcome.FAILURE, START_FAILED_MESSAGE)
            self._advance(now)
            return

        self._query_start = now
        self._state = PollState.WAIT_RESPONSE
        _LOGGER.debug(
            "Querying slave %d (%s): %d register(s) from %d",
            slave.id,
            slave.name,
            slave.register_count,
            slave.start_register,
        )

    def _wait_response(self, now: float) -> None:
        slave = self._slaves[self._index]

        if now - self._query_start > self._timeout:
            self._driver.abort()
            _LOGGER.warning("Slave %d (%s) timed out", slave.id, slave.name)
            self._fail(slave, Outcome.TIMEOUT, f"Modbus timeout after {self._timeout * 1000} ms")
            self._advance(now)
            return

        try:
            result = self._driver.poll()
        except TransportError as err:
            self._driver.abort()
            self._fail(slave, Outcome.FAILURE, str(err))
            self._advance(now)
            return

        if result.status is PollStatus.COMPLETE:
            self._words = result.words
            self._state = PollState.PROCESS_DATA
        elif result.status is PollStatus.PROTOCOL_ERROR:
            _LOGGER.warning(
                "Protocol error from slave %d (%s): %s", slave.id, slave.name, result.detail
            )
            self._fail(slave, Outcome.FAILURE, result.detail)
            self._advance(now)

    def _process_data(self, now: float) -> None:
        slave = self._slaves[self._index]
        try:
            topic, document = decode(slave, self._words)
        except (DecodeError, CodecError) as err:
            _LOGGER.warning("Failed to decode slave %d (%s): %s", slave.id, slave.name, err)
            self._fail(slave, Outcome.FAILURE, f"Decode failed: {err}")
            self._advance(now)
            return

        self._emit(slave, topic, document)
        self._stats.record(slave.id, slave.name, Outcome.SUCCESS)
        self._advance(now)

    def _advance(self, now: float) -> None:
        self._index += 1
        self._words = ()
        self._last_action = now
        if self._index < len(self._slaves):
            self._state = PollState.START_QUERY
            return

        self._state = PollState.WAITING
        self._cycle += 1
        self._debug.add_separator(self._cycle)
        _LOGGER.debug("Poll cycle %d complete", self._cycle)

    # =========================================================================
    # Output
    # =========================================================================

    def _fail(self, slave: Slave, outcome: Outcome, message: str) -> None:
        self._stats.record(slave.id, slave.name, outcome)
        self._emit(slave, slave.mqtt_topic, error_document(slave, message))

    def _emit(self, slave: Slave, topic: str, document: dict[str, Any]) -> None:
        if not self._publisher.publish(topic, document):
            _LOGGER.debug("Message for slave %d (%s) not delivered", slave.id, slave.name)

        same_device = self._timing.same_device_delta(slave.id, slave.name, reset=True)
        since_any = self._timing.since_any_delta(slave.id, slave.name)
        if self._debug.enabled:
            self._debug.add(topic, json.dumps(document), since_any, same_device)
