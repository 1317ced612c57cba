"""Data models for slaves, device classes and polling configuration.

A :class:`Slave` is the materialised, immutable view of one entry of the
slave list: template defaults merged with the slave's override and
validated. Its ``scales`` attribute is one of :class:`SensorScales`,
:class:`MeterScales`, :class:`VoltageScales` or :class:`EnergyScales`,
selected by the slave's :class:`DeviceType`.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar

from .codec import RegisterSize
from .constants import DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT
from .exceptions import ConfigInvalidError
from .registers import (
    ENERGY_CHANNELS,
    ENERGY_SECTION,
    METER_CHANNELS,
    METER_SECTION,
    SENSOR_CHANNELS,
    SENSOR_SECTION,
    VOLTAGE_CHANNELS,
    VOLTAGE_SECTION,
    ChannelDefinition,
)


class DeviceType(StrEnum):
    """Device class; selects the decode routine and the scale schema."""

    SENSOR = "sensor"
    POWER_METER = "power_meter"
    VOLTAGE_METER = "voltage_meter"
    ENERGY_METER = "energy_meter"


# Device model names as written in the slave list
MODEL_DEVICE_TYPES: dict[str, DeviceType] = {
    "G01S": DeviceType.SENSOR,
    "HeylaParam": DeviceType.POWER_METER,
    "HeylaVoltage": DeviceType.VOLTAGE_METER,
    "HeylaEnergy": DeviceType.ENERGY_METER,
}

DEVICE_CHANNELS: dict[DeviceType, tuple[ChannelDefinition, ...]] = {
    DeviceType.SENSOR: SENSOR_CHANNELS,
    DeviceType.POWER_METER: METER_CHANNELS,
    DeviceType.VOLTAGE_METER: VOLTAGE_CHANNELS,
    DeviceType.ENERGY_METER: ENERGY_CHANNELS,
}


def device_type_for(model: str) -> DeviceType | None:
    """Resolve a device model name, or None if the model is unknown."""
    return MODEL_DEVICE_TYPES.get(model)


def positive_number(value: Any, what: str) -> float:
    """Return ``value`` as a float, requiring a finite number > 0.

    Raises:
        ConfigInvalidError: If the value is missing, not numeric or not positive
    """
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ConfigInvalidError(f"{what} must be a number, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise ConfigInvalidError(f"{what} must be greater than zero, got {value!r}")
    return float(value)


# =============================================================================
# SCALES
# =============================================================================


@dataclass(frozen=True)
class ChannelScales:
    """Per-channel dividers of one device class as (template key, divider) pairs."""

    dividers: tuple[tuple[str, float], ...] = ()

    device_type: ClassVar[DeviceType]
    section: ClassVar[str]
    channels: ClassVar[tuple[ChannelDefinition, ...]]
    flat: ClassVar[bool] = False
    """Sensor templates store bare floats instead of ``{"divider": x}``."""

    def divider(self, key: str) -> float:
        """Return the divider for ``key`` (1.0 when not configured)."""
        return dict(self.dividers).get(key, 1.0)

    @classmethod
    def from_template(cls, document: Mapping[str, Any]) -> ChannelScales:
        """Build scales from a materialised template document.

        Missing sections or leaves fall back to a divider of 1.0.

        Raises:
            ConfigInvalidError: If a divider is not a positive number
        """
        section = document.get(cls.section) or {}
        if not isinstance(section, Mapping):
            raise ConfigInvalidError(f"Template section '{cls.section}' must be an object")

        dividers: dict[str, float] = {}
        for channel in cls.channels:
            key = channel.template_key
            leaf = section.get(key)
            if leaf is None:
                dividers[key] = 1.0
            elif cls.flat:
                dividers[key] = positive_number(leaf, f"{cls.section}.{key}")
            elif isinstance(leaf, Mapping):
                dividers[key] = positive_number(
                    leaf.get("divider", 1.0), f"{cls.section}.{key}.divider"
                )
            else:
                raise ConfigInvalidError(f"{cls.section}.{key} must be an object")
        return cls(dividers=tuple(dividers.items()))

    def to_template(self) -> dict[str, Any]:
        """Render the scales back into template shape."""
        if self.flat:
            return {self.section: dict(self.dividers)}
        return {self.section: {key: {"divider": value} for key, value in self.dividers}}


@dataclass(frozen=True)
class SensorScales(ChannelScales):
    """Scales for a temperature/humidity sensor."""

    device_type: ClassVar[DeviceType] = DeviceType.SENSOR
    section: ClassVar[str] = SENSOR_SECTION
    channels: ClassVar[tuple[ChannelDefinition, ...]] = SENSOR_CHANNELS
    flat: ClassVar[bool] = True


@dataclass(frozen=True)
class MeterScales(ChannelScales):
    """Scales for a three-phase power meter."""

    device_type: ClassVar[DeviceType] = DeviceType.POWER_METER
    section: ClassVar[str] = METER_SECTION
    channels: ClassVar[tuple[ChannelDefinition, ...]] = METER_CHANNELS


@dataclass(frozen=True)
class VoltageScales(ChannelScales):
    """Scales for a voltage meter."""

    device_type: ClassVar[DeviceType] = DeviceType.VOLTAGE_METER
    section: ClassVar[str] = VOLTAGE_SECTION
    channels: ClassVar[tuple[ChannelDefinition, ...]] = VOLTAGE_CHANNELS


@dataclass(frozen=True)
class EnergyScales(ChannelScales):
    """Scales for an energy meter."""

    device_type: ClassVar[DeviceType] = DeviceType.ENERGY_METER
    section: ClassVar[str] = ENERGY_SECTION
    channels: ClassVar[tuple[ChannelDefinition, ...]] = ENERGY_CHANNELS


SCALES_BY_TYPE: dict[DeviceType, type[ChannelScales]] = {
    DeviceType.SENSOR: SensorScales,
    DeviceType.POWER_METER: MeterScales,
    DeviceType.VOLTAGE_METER: VoltageScales,
    DeviceType.ENERGY_METER: EnergyScales,
}


# =============================================================================
# SLAVE
# =============================================================================


@dataclass(frozen=True)
class Slave:
    """Materialised slave configuration.

    Attributes:
        id: Modbus address (1-247)
        start_register: First holding register to read
        register_count: Number of holding registers to read
        name: Display name, also part of the statistics key
        mqtt_topic: Topic the decoded document is published on
        model: Device model name from the slave list (e.g. ``HeylaParam``)
        device_type: Device class resolved from ``model``
        scales: Per-channel dividers for ``device_type``
        register_size: Registers per logical value
        ct: Current transformer ratio
        pt: Potential transformer ratio
    """

    id: int
    start_register: int
    register_count: int
    name: str
    mqtt_topic: str
    model: str
    device_type: DeviceType
    scales: ChannelScales
    register_size: RegisterSize = RegisterSize.W16
    ct: float = 1.0
    pt: float = 1.0

    @property
    def value_count(self) -> int:
        """Number of logical values in one response."""
        return self.register_count // self.register_size

    @property
    def channels(self) -> tuple[ChannelDefinition, ...]:
        """Channel layout of the device class."""
        return DEVICE_CHANNELS[self.device_type]

    @property
    def key(self) -> tuple[int, str]:
        """Identity used by the statistics and timing ledgers."""
        return (self.id, self.name)

    def basic_fields(self) -> dict[str, Any]:
        """Return the slave-list fields of this slave (without override)."""
        return {
            "id": self.id,
            "name": self.name,
            "deviceType": self.model,
            "startReg": self.start_register,
            "numReg": self.register_count,
            "mqttTopic": self.mqtt_topic,
            "registerSize": int(self.register_size),
            "ct": self.ct,
            "pt": self.pt,
        }


# =============================================================================
# POLLING CONFIGURATION
# =============================================================================


def _whole_seconds(value: Any, what: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{what} must be a whole number of seconds")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise ValueError(f"{what} must be a whole number of seconds")
    if value <= 0:
        raise ValueError(f"{what} must be at least 1 second")
    return value


@dataclass
class PollingConfig:
    """Cycle pacing and per-query deadline, both in whole seconds."""

    poll_interval: int = DEFAULT_POLL_INTERVAL
    timeout: int = DEFAULT_TIMEOUT

    def validate(self) -> None:
        """Validate the configuration.

        Raises:
            ValueError: If either value is not a positive whole number
        """
        self.poll_interval = _whole_seconds(self.poll_interval, "pollInterval")
        self.timeout = _whole_seconds(self.timeout, "timeout")

    def to_dict(self) -> dict[str, int]:
        """Convert to the stored document shape."""
        return {"pollInterval": self.poll_interval, "timeout": self.timeout}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PollingConfig:
        """Create from a stored document; absent keys use the defaults.

        Raises:
            ValueError: If a present value is invalid
        """
        config = cls(
            poll_interval=data.get("pollInterval", DEFAULT_POLL_INTERVAL),
            timeout=data.get("timeout", DEFAULT_TIMEOUT),
        )
        config.validate()
        return config
