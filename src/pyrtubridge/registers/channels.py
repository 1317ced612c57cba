"""Channel definition shared by all device register layouts."""

from __future__ import annotations

from dataclasses import dataclass

from pyrtubridge.codec import Formula


@dataclass(frozen=True)
class ChannelDefinition:
    """One decoded quantity in a device's register block.

    The ``index`` counts logical values, not registers: with a register
    size of 2 the channel at index 3 starts at register offset 6.
    """

    index: int
    """Position of the logical value in the combined block."""

    field: str
    """Key of the decoded value in the published document."""

    template_key: str
    """Key of the channel's scale entry in the device template section."""

    formula: Formula
    """Scaling rule applied to the raw value."""

    signed: bool = False
    """Whether the raw value uses two's-complement representation."""

    unit: str | None = None
    """Engineering unit after scaling."""

    description: str = ""
    """Human-readable explanation of the channel."""


def template_keys(channels: tuple[ChannelDefinition, ...]) -> tuple[str, ...]:
    """Return the template keys of ``channels`` in layout order."""
    return tuple(channel.template_key for channel in channels)
