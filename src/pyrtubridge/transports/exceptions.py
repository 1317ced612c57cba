"""Transport-specific exceptions.

All transport exceptions inherit from
:class:`~pyrtubridge.exceptions.RtuBridgeError` so callers can use a
single ``except RtuBridgeError`` to catch both configuration and serial
line failures.

Malformed or exception responses are not raised; the non-blocking driver
reports them as poll results instead.
"""

from __future__ import annotations

from pyrtubridge.exceptions import RtuBridgeError


class TransportError(RtuBridgeError):
    """Base exception for all transport errors."""

    pass


class TransportConnectionError(TransportError):
    """Failed to open the serial port."""

    pass


class TransportWriteError(TransportError):
    """Failed to write a request frame to the serial port."""

    pass


class BusBusyError(TransportError):
    """A transaction was started while another one is in flight."""

    pass
