"""Modbus-RTU polling gateway that republishes slave registers to MQTT.

Usage:
    Run the gateway:
        from pyrtubridge import Gateway, GatewayConfig

        config = GatewayConfig(serial_port="/dev/ttyUSB0", data_dir="/var/lib/rtu")
        asyncio.run(Gateway(config).run())

    Decode a register block:
        from pyrtubridge.decoder import decode

        topic, document = decode(slave, words)
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import ConfigStore, GatewayConfig, PersistentParams, TemplateStore
from .engine import PollEngine, PollState
from .exceptions import (
    ConfigError,
    ConfigInvalidError,
    ConfigMissingError,
    MergeTooDeepError,
    RtuBridgeError,
    StorageError,
    TemplateNotFoundError,
)
from .gateway import Gateway
from .models import DeviceType, PollingConfig, Slave
from .registry import SlaveRegistry
from .stats import Outcome, StatsLedger, TimingLedger

__all__ = [
    "ConfigError",
    "ConfigInvalidError",
    "ConfigMissingError",
    "ConfigStore",
    "DeviceType",
    "Gateway",
    "GatewayConfig",
    "MergeTooDeepError",
    "Outcome",
    "PersistentParams",
    "PollEngine",
    "PollState",
    "PollingConfig",
    "RtuBridgeError",
    "Slave",
    "SlaveRegistry",
    "StatsLedger",
    "StorageError",
    "TemplateNotFoundError",
    "TimingLedger",
]
