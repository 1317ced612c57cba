"""Decode raw register blocks into published documents.

Every document starts with the slave's identification fields, followed
by one field per channel of the device class in layout order::

    {"id": 3, "name": "room1", "mqtt_topic": "env/room1", "start_reg": 0,
     "num_reg": 2, "register_size": 1, "ct": 1.0, "pt": 1.0,
     "temperature_(C)": 25.0, "temperature_(F)": 77.0, "humidity": 50.0}
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from .codec import Formula, celsius_to_fahrenheit, scale, split_values, to_signed
from .exceptions import DecodeError
from .models import Slave
from .registers import FAHRENHEIT_FIELD


def header(slave: Slave) -> dict[str, Any]:
    """Identification fields common to every decoded document."""
    return {
        "id": slave.id,
        "name": slave.name,
        "mqtt_topic": slave.mqtt_topic,
        "start_reg": slave.start_register,
        "num_reg": slave.register_count,
        "register_size": int(slave.register_size),
        "ct": slave.ct,
        "pt": slave.pt,
    }


def error_document(slave: Slave, message: str) -> dict[str, Any]:
    """Document published on the slave's topic when a query fails."""
    return {
        "id": slave.id,
        "name": slave.name,
        "error": message,
        "mqtt_topic": slave.mqtt_topic,
    }


def decode_channels(slave: Slave, words: Sequence[int]) -> dict[str, Any]:
    """Decode ``words`` using the channel layout of the slave's device class.

    Raises:
        DecodeError: If ``words`` holds fewer values than the layout needs
    """
    if len(words) < slave.register_count:
        raise DecodeError(
            f"Expected {slave.register_count} register(s) from slave {slave.id}, got {len(words)}"
        )

    size = slave.register_size
    values = split_values(words[: slave.register_count], size)
    channels = slave.channels
    if len(values) < len(channels):
        raise DecodeError(
            f"{slave.model} needs {len(channels)} value(s), slave {slave.id} returned {len(values)}"
        )

    document = header(slave)
    for channel in channels:
        raw = values[channel.index]
        if channel.signed:
            raw = to_signed(raw, size)
        value = scale(
            channel.formula,
            raw,
            divider=slave.scales.divider(channel.template_key),
            ct=slave.ct,
            pt=slave.pt,
        )
        document[channel.field] = value
        if channel.formula is Formula.TEMPERATURE:
            document[FAHRENHEIT_FIELD] = celsius_to_fahrenheit(value)
    return document


def decode(slave: Slave, words: Sequence[int]) -> tuple[str, dict[str, Any]]:
    """Return the topic and document to publish for a completed read.

    Raises:
        DecodeError: If the register block does not fit the layout
    """
    return slave.mqtt_topic, decode_channels(slave, words)
