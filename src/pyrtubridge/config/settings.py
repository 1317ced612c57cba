"""Process-level gateway configuration.

Example:
    config = GatewayConfig(serial_port="/dev/ttyUSB0", data_dir="/var/lib/rtu")
    config.validate()

    data = config.to_dict()
    restored = GatewayConfig.from_dict(data)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any

from pyrtubridge.constants import (
    DEFAULT_ADMIN_HOST,
    DEFAULT_ADMIN_PORT,
    DEFAULT_BAUDRATE,
    DEFAULT_SETTLE_TIME,
    MQTT_RECONNECT_INTERVAL,
    QUERY_INTERVAL,
    TICK_SLEEP,
)


@dataclass
class GatewayConfig:
    """Settings for one gateway process.

    Attributes:
        serial_port: Serial device of the RS-485 adapter (e.g. /dev/ttyUSB0)
        baudrate: Serial baud rate, 8N1 framing
        data_dir: Directory holding the JSON configuration documents
        admin_host: Bind address of the admin HTTP surface
        admin_port: TCP port of the admin HTTP surface
        mqtt_server: Broker host; overrides the stored parameter when set
        mqtt_port: Broker port; overrides the stored parameter when set
        mqtt_client_id: MQTT client identifier
        mqtt_reconnect_interval: Seconds between broker reconnect attempts
        query_interval: Minimum spacing between slave queries in seconds
        settle_time: Delay between enabling the driver and transmitting
        debug_capture: Start with debug message capture enabled
        tick_sleep: Pause at the end of each core loop tick in seconds
    """

    serial_port: str
    baudrate: int = DEFAULT_BAUDRATE
    data_dir: str = "data"
    admin_host: str = DEFAULT_ADMIN_HOST
    admin_port: int = DEFAULT_ADMIN_PORT
    mqtt_server: str | None = None
    mqtt_port: int | None = None
    mqtt_client_id: str = "pyrtubridge"
    mqtt_reconnect_interval: float = MQTT_RECONNECT_INTERVAL
    query_interval: float = QUERY_INTERVAL
    settle_time: float = DEFAULT_SETTLE_TIME
    debug_capture: bool = False
    tick_sleep: float = TICK_SLEEP

    def validate(self) -> None:
        """Validate configuration completeness.

        Raises:
            ValueError: If configuration is invalid
        """
        if not self.serial_port:
            raise ValueError("serial_port is required")
        if self.baudrate <= 0:
            raise ValueError("baudrate must be positive")
        if not self.data_dir:
            raise ValueError("data_dir is required")
        if not 0 <= self.admin_port <= 65535:
            raise ValueError("admin_port must be between 0 and 65535")
        if self.mqtt_port is not None and not 1 <= self.mqtt_port <= 65535:
            raise ValueError("mqtt_port must be between 1 and 65535")
        if self.mqtt_reconnect_interval <= 0:
            raise ValueError("mqtt_reconnect_interval must be positive")
        if self.query_interval < 0:
            raise ValueError("query_interval must not be negative")
        if self.settle_time < 0:
            raise ValueError("settle_time must not be negative")
        if self.tick_sleep < 0:
            raise ValueError("tick_sleep must not be negative")

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GatewayConfig:
        """Create configuration from dictionary.

        Unknown keys are ignored.

        Raises:
            KeyError: If ``serial_port`` is missing
        """
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        if "serial_port" not in values:
            raise KeyError("serial_port")
        return cls(**values)
