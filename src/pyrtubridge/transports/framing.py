"""Modbus RTU framing for Read Holding Registers (function 0x03).

Request frame (8 bytes):
    slave(1) + function(1) + start(2, BE) + count(2, BE) + CRC(2, LE)

Normal response:
    slave(1) + function(1) + byte_count(1) + data(2 * count, BE words) + CRC(2, LE)

Exception response:
    slave(1) + function | 0x80 (1) + exception_code(1) + CRC(2, LE)
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import StrEnum

from pyrtubridge.constants import (
    FUNC_READ_HOLDING,
    MAX_READ_COUNT,
    MAX_REGISTER_ADDRESS,
    MAX_SLAVE_ID,
    MIN_SLAVE_ID,
)

EXCEPTION_FLAG = 0x80

MODBUS_EXCEPTION_NAMES: dict[int, str] = {
    0x01: "Illegal function",
    0x02: "Illegal data address",
    0x03: "Illegal data value",
    0x04: "Slave device failure",
    0x05: "Acknowledge",
    0x06: "Slave device busy",
    0x08: "Memory parity error",
    0x0A: "Gateway path unavailable",
    0x0B: "Gateway target device failed to respond",
}


def compute_crc16(data: bytes) -> int:
    """Compute CRC-16/Modbus checksum.

    Args:
        data: Bytes to compute CRC for

    Returns:
        16-bit CRC value
    """
    crc = 0xFFFF
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ 0xA001
            else:
                crc >>= 1
    return crc & 0xFFFF


def append_crc(frame: bytes) -> bytes:
    """Return ``frame`` followed by its CRC in little-endian order."""
    return frame + struct.pack("<H", compute_crc16(frame))


def build_read_holding_request(slave_id: int, start: int, count: int) -> bytes:
    """Build a Read Holding Registers request frame.

    Raises:
        ValueError: If an argument is outside the Modbus range
    """
    if not MIN_SLAVE_ID <= slave_id <= MAX_SLAVE_ID:
        raise ValueError(f"slave_id must be {MIN_SLAVE_ID}-{MAX_SLAVE_ID}, got {slave_id}")
    if not 0 <= start <= MAX_REGISTER_ADDRESS:
        raise ValueError(f"start must be 0-{MAX_REGISTER_ADDRESS}, got {start}")
    if not 1 <= count <= MAX_READ_COUNT:
        raise ValueError(f"count must be 1-{MAX_READ_COUNT}, got {count}")
    return append_crc(struct.pack(">BBHH", slave_id, FUNC_READ_HOLDING, start, count))


def response_length(count: int) -> int:
    """Length of a complete normal response for ``count`` registers."""
    return 3 + 2 * count + 2


# =============================================================================
# POLL RESULTS
# =============================================================================


class PollStatus(StrEnum):
    """State of an in-flight transaction after a poll."""

    PENDING = "pending"
    COMPLETE = "complete"
    PROTOCOL_ERROR = "protocol_error"


class ProtocolErrorKind(StrEnum):
    """Reason a transaction ended without data."""

    EXCEPTION = "exception"
    CRC = "crc"
    FRAMING = "framing"
    IO = "io"


@dataclass(frozen=True)
class PollResult:
    """Outcome of :meth:`ModbusDriver.poll`."""

    status: PollStatus
    words: tuple[int, ...] = ()
    error_kind: ProtocolErrorKind | None = None
    exception_code: int | None = None
    detail: str = ""

    @classmethod
    def pending(cls) -> PollResult:
        return _PENDING

    @classmethod
    def complete(cls, words: tuple[int, ...]) -> PollResult:
        return cls(status=PollStatus.COMPLETE, words=words)

    @classmethod
    def error(
        cls, kind: ProtocolErrorKind, detail: str, exception_code: int | None = None
    ) -> PollResult:
        return cls(
            status=PollStatus.PROTOCOL_ERROR,
            error_kind=kind,
            exception_code=exception_code,
            detail=detail,
        )


_PENDING = PollResult(status=PollStatus.PENDING)


def _crc_ok(frame: bytes | bytearray) -> bool:
    (received,) = struct.unpack("<H", frame[-2:])
    return compute_crc16(bytes(frame[:-2])) == received


def parse_read_holding_response(
    buffer: bytes | bytearray, slave_id: int, count: int
) -> PollResult:
    """Inspect the bytes received so far for a request.

    Returns PENDING while the frame is incomplete. Bytes past the end of a
    complete frame are ignored.
    """
    if len(buffer) < 2:
        return PollResult.pending()

    if buffer[0] != slave_id:
        return PollResult.error(
            ProtocolErrorKind.FRAMING,
            f"Unexpected slave address {buffer[0]} (expected {slave_id})",
        )

    function = buffer[1]
    if function == FUNC_READ_HOLDING | EXCEPTION_FLAG:
        if len(buffer) < 5:
            return PollResult.pending()
        if not _crc_ok(buffer[:5]):
            return PollResult.error(ProtocolErrorKind.CRC, "CRC mismatch in exception response")
        code = buffer[2]
        name = MODBUS_EXCEPTION_NAMES.get(code, "Unknown exception")
        return PollResult.error(
            ProtocolErrorKind.EXCEPTION,
            f"Modbus exception {code:#04x}: {name}",
            exception_code=code,
        )

    if function != FUNC_READ_HOLDING:
        return PollResult.error(
            ProtocolErrorKind.FRAMING,
            f"Unexpected function code {function:#04x}",
        )

    if len(buffer) < 3:
        return PollResult.pending()
    byte_count = buffer[2]
    if byte_count != 2 * count:
        return PollResult.error(
            ProtocolErrorKind.FRAMING,
            f"Unexpected byte count {byte_count} (expected {2 * count})",
        )

    total = response_length(count)
    if len(buffer) < total:
        return PollResult.pending()
    frame = bytes(buffer[:total])
    if not _crc_ok(frame):
        return PollResult.error(ProtocolErrorKind.CRC, "CRC mismatch in response")

    words = struct.unpack(f">{count}H", frame[3 : 3 + byte_count])
    return PollResult.complete(tuple(words))
