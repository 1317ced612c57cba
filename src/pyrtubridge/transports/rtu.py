"""Non-blocking Modbus RTU master over a half-duplex RS-485 line.

The driver owns the serial port and the transceiver direction. The RTS
line drives the DE/RE pin: it is asserted before a request is written
and released once the UART has drained, so the slave's answer can be
received.

At most one transaction is in flight. :meth:`ModbusDriver.poll` never
blocks: each call drains whatever bytes are available and reports
whether the response is still pending, complete, or malformed. Deadlines
are the caller's business.

Example:
    port = open_serial_port("/dev/ttyUSB0", 9600)
    driver = ModbusDriver(port)
    driver.begin_transaction(slave_id=3, start=0, count=2)
    while (result := driver.poll()).status is PollStatus.PENDING:
        ...
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Protocol

import serial

from .exceptions import BusBusyError, TransportConnectionError, TransportError, TransportWriteError
from .framing import (
    PollResult,
    PollStatus,
    ProtocolErrorKind,
    build_read_holding_request,
    parse_read_holding_response,
)

_LOGGER = logging.getLogger(__name__)


class SerialPort(Protocol):
    """Subset of :class:`serial.Serial` used by the driver."""

    rts: bool

    @property
    def in_waiting(self) -> int: ...

    @property
    def out_waiting(self) -> int: ...

    def reset_input_buffer(self) -> None: ...

    def write(self, data: bytes) -> int | None: ...

    def read(self, size: int = 1) -> bytes: ...

    def close(self) -> None: ...


def open_serial_port(port: str, baudrate: int) -> serial.Serial:
    """Open ``port`` for 8N1 non-blocking reads.

    Raises:
        TransportConnectionError: If the port cannot be opened
    """
    try:
        handle = serial.Serial(
            port=port,
            baudrate=baudrate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=0,
        )
    except (serial.SerialException, OSError) as err:
        raise TransportConnectionError(f"Failed to open serial port {port}: {err}") from err
    handle.rts = False
    _LOGGER.info("Opened serial port %s @ %d baud", port, baudrate)
    return handle


class DriverState(StrEnum):
    """Transaction phase of the driver."""

    IDLE = "idle"
    ARMING = "arming"
    RECEIVE = "receive"


class ModbusDriver:
    """Half-duplex Modbus RTU master for Read Holding Registers.

    Args:
        port: Open serial port (anything implementing :class:`SerialPort`)
        settle_time: Seconds between asserting DE and writing the request;
            0 writes immediately from :meth:`begin_transaction`
        clock: Monotonic clock in seconds
    """

    def __init__(
        self,
        port: SerialPort,
        *,
        settle_time: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._port = port
        self._settle_time = settle_time
        self._clock = clock
        self._state = DriverState.IDLE
        self._request = b""
        self._buffer = bytearray()
        self._slave_id = 0
        self._count = 0
        self._armed_at = 0.0
        self._transmitting = False

    @property
    def state(self) -> DriverState:
        """Current transaction phase."""
        return self._state

    @property
    def in_flight(self) -> bool:
        """True while a transaction has been started and not finished."""
        return self._state is not DriverState.IDLE

    def begin_transaction(self, slave_id: int, start: int, count: int) -> None:
        """Start a Read Holding Registers transaction.

        Raises:
            BusBusyError: If a transaction is already in flight
            ValueError: If an argument is outside the Modbus range
            TransportWriteError: If the request could not be written
        """
        if self.in_flight:
            raise BusBusyError(
                f"Transaction with slave {self._slave_id} still in flight"
            )

        self._request = build_read_holding_request(slave_id, start, count)
        self._slave_id = slave_id
        self._count = count
        self._buffer.clear()

        try:
            self._port.reset_input_buffer()
            self._port.rts = True
        except (serial.SerialException, OSError) as err:
            self._finish()
            raise TransportWriteError(f"Failed to prepare serial line: {err}") from err

        if self._settle_time > 0:
            self._state = DriverState.ARMING
            self._armed_at = self._clock()
            return
        self._transmit()

    def _transmit(self) -> None:
        try:
            self._port.write(self._request)
        except (serial.SerialException, OSError) as err:
            self._finish()
            raise TransportWriteError(f"Failed to write request: {err}") from err
        self._transmitting = True
        self._state = DriverState.RECEIVE
        _LOGGER.debug("TX slave %d: %s", self._slave_id, self._request.hex(" "))

    def poll(self) -> PollResult:
        """Advance the in-flight transaction without blocking.

        Raises:
            TransportError: If no transaction is in flight
        """
        if self._state is DriverState.IDLE:
            raise TransportError("No transaction in flight")

        if self._state is DriverState.ARMING:
            if self._clock() - self._armed_at < self._settle_time:
                return PollResult.pending()
            try:
                self._transmit()
            except TransportWriteError as err:
                return PollResult.error(ProtocolErrorKind.IO, str(err))
            return PollResult.pending()

        try:
            if self._transmitting and self._port.out_waiting == 0:
                self._port.rts = False
                self._transmitting = False
            waiting = self._port.in_waiting
            if waiting:
                self._buffer += self._port.read(waiting)
        except (serial.SerialException, OSError) as err:
            self._finish()
            return PollResult.error(ProtocolErrorKind.IO, f"Serial read failed: {err}")

        result = parse_read_holding_response(self._buffer, self._slave_id, self._count)
        if result.status is not PollStatus.PENDING:
            if result.status is PollStatus.COMPLETE:
                _LOGGER.debug("RX slave %d: %d register(s)", self._slave_id, len(result.words))
            else:
                _LOGGER.debug("RX slave %d: %s", self._slave_id, result.detail)
            self._finish()
        return result

    def _release_line(self) -> None:
        try:
            self._port.rts = False
        except (serial.SerialException, OSError) as err:
            _LOGGER.warning("Failed to release RS-485 driver enable: %s", err)

    def _finish(self) -> None:
        self._release_line()
        self._transmitting = False
        self._buffer.clear()
        self._state = DriverState.IDLE

    def abort(self) -> None:
        """Drop any in-flight transaction and release the line."""
        if self.in_flight:
            _LOGGER.debug("Aborting transaction with slave %d", self._slave_id)
        self._finish()

    def close(self) -> None:
        """Abort and close the serial port."""
        self.abort()
        self._port.close()
