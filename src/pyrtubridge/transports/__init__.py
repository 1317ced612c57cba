"""Serial transport: Modbus RTU framing and the non-blocking driver."""

from __future__ import annotations

from .exceptions import (
    BusBusyError,
    TransportConnectionError,
    TransportError,
    TransportWriteError,
)
from .framing import (
    PollResult,
    PollStatus,
    ProtocolErrorKind,
    build_read_holding_request,
    compute_crc16,
    parse_read_holding_response,
)
from .rtu import DriverState, ModbusDriver, SerialPort, open_serial_port

__all__ = [
    "BusBusyError",
    "DriverState",
    "ModbusDriver",
    "PollResult",
    "PollStatus",
    "ProtocolErrorKind",
    "SerialPort",
    "TransportConnectionError",
    "TransportError",
    "TransportWriteError",
    "build_read_holding_request",
    "compute_crc16",
    "open_serial_port",
    "parse_read_holding_response",
]
