"""Register layout for G01S temperature/humidity sensors.

Register space layout (one logical value per register):
    0    Temperature (°C, signed, raw ÷10)
    1    Relative humidity (%, raw ÷10)

Template section ``sensor`` holds flat divider values
(``tempdivider``, ``humiddivider``) rather than ``{"divider": ...}``
objects.
"""

from __future__ import annotations

from pyrtubridge.codec import Formula
from pyrtubridge.registers.channels import ChannelDefinition

TEMPLATE_SECTION = "sensor"

FAHRENHEIT_FIELD = "temperature_(F)"
"""Derived field published alongside the Celsius temperature."""

SENSOR_CHANNELS: tuple[ChannelDefinition, ...] = (
    ChannelDefinition(
        index=0,
        field="temperature_(C)",
        template_key="tempdivider",
        formula=Formula.TEMPERATURE,
        signed=True,
        unit="°C",
        description="Ambient temperature.",
    ),
    ChannelDefinition(
        index=1,
        field="humidity",
        template_key="humiddivider",
        formula=Formula.HUMIDITY,
        unit="%",
        description="Relative humidity.",
    ),
)
