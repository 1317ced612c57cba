"""Register value codec.

Pure functions that turn raw 16-bit holding register words into
engineering values:

- :func:`combine` joins ``size`` consecutive words, high word first.
- :func:`to_signed` applies two's-complement interpretation over the
  ``16 * size`` bit field.
- The formula helpers apply the fixed scaling rules for each physical
  quantity using the per-slave CT/PT ratios and the per-channel divider.

Example:
    >>> combine([0x0001, 0x0002], RegisterSize.W32, 0)
    65538
    >>> to_signed(0xFFF6, RegisterSize.W16)
    -10
    >>> temperature(250)
    25.0
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import IntEnum, StrEnum

from .exceptions import CodecError


class RegisterSize(IntEnum):
    """Number of consecutive registers composing one logical value."""

    W16 = 1
    W32 = 2
    W48 = 3
    W64 = 4

    @property
    def bits(self) -> int:
        """Width of the combined value in bits."""
        return 16 * self.value


def combine(words: Sequence[int], size: int, index: int = 0) -> int:
    """Concatenate ``size`` words starting at ``index`` (high word first).

    Args:
        words: Raw 16-bit register values
        size: Number of words to combine (1-4)
        index: Position of the high word in ``words``

    Returns:
        Unsigned integer of ``16 * size`` bits

    Raises:
        CodecError: If ``size`` is not 1-4 or the slice runs past ``words``
    """
    if size not in (1, 2, 3, 4):
        raise CodecError(f"Register size must be 1-4, got {size}")
    if index < 0 or index + size > len(words):
        raise CodecError(
            f"Cannot combine {size} word(s) at index {index} from {len(words)} word(s)"
        )

    result = 0
    for word in words[index : index + size]:
        result = (result << 16) | (word & 0xFFFF)
    return result


def to_signed(value: int, size: int) -> int:
    """Interpret the low ``16 * size`` bits of ``value`` as two's complement."""
    bits = 16 * size
    value &= (1 << bits) - 1
    if value & (1 << (bits - 1)):
        return value - (1 << bits)
    return value


def split_values(words: Sequence[int], size: int) -> list[int]:
    """Combine a whole register block into unsigned logical values.

    Trailing words that do not fill a complete value are ignored.
    """
    return [combine(words, size, i) for i in range(0, len(words) - size + 1, size)]


# =============================================================================
# SCALING FORMULAS
# =============================================================================


def temperature(raw: int, divider: float = 1.0) -> float:
    """Temperature in degrees Celsius from a signed register value."""
    return (raw * 0.1) / divider


def celsius_to_fahrenheit(celsius: float) -> float:
    """Convert Celsius to Fahrenheit."""
    return celsius * 9.0 / 5.0 + 32.0


def humidity(raw: int, divider: float = 1.0) -> float:
    """Relative humidity in percent from an unsigned register value."""
    return (raw * 0.1) / divider


def current(raw: int, ct: float = 1.0, divider: float = 1.0) -> float:
    """Phase current in amperes."""
    return (raw * ct) / 10000.0 / divider


def single_phase_power(
    raw: int, ct: float = 1.0, pt: float = 1.0, divider: float = 1.0
) -> float:
    """Per-phase active, reactive or apparent power."""
    return (raw * pt * ct) / 100.0 / divider


def three_phase_power(
    raw: int, ct: float = 1.0, pt: float = 1.0, divider: float = 1.0
) -> float:
    """Total three-phase active, reactive or apparent power."""
    return (raw * pt * ct) / 10.0 / divider


def power_factor(raw: int, divider: float = 1.0) -> float:
    """Power factor from a signed register value."""
    return raw / 10000.0 / divider


def voltage(raw: int, pt: float = 1.0, divider: float = 1.0) -> float:
    """Voltage in volts."""
    return (raw * pt) / 100.0 / divider


def energy(raw: int, divider: float = 1.0) -> float:
    """Cumulative energy in kWh."""
    return raw / 100.0 / divider


class Formula(StrEnum):
    """Scaling rule applied to a decoded channel."""

    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    CURRENT = "current"
    SINGLE_PHASE_POWER = "single_phase_power"
    THREE_PHASE_POWER = "three_phase_power"
    POWER_FACTOR = "power_factor"
    VOLTAGE = "voltage"
    ENERGY = "energy"


def scale(
    formula: Formula,
    raw: int,
    divider: float = 1.0,
    ct: float = 1.0,
    pt: float = 1.0,
) -> float:
    """Apply ``formula`` to a raw (already sign-interpreted) value.

    Args:
        formula: Scaling rule for the channel
        raw: Combined register value
        divider: Per-channel post-scaling divider
        ct: Current transformer ratio of the slave
        pt: Potential transformer ratio of the slave

    Returns:
        Value in engineering units
    """
    if formula is Formula.TEMPERATURE:
        return temperature(raw, divider)
    if formula is Formula.HUMIDITY:
        return humidity(raw, divider)
    if formula is Formula.CURRENT:
        return current(raw, ct, divider)
    if formula is Formula.SINGLE_PHASE_POWER:
        return single_phase_power(raw, ct, pt, divider)
    if formula is Formula.THREE_PHASE_POWER:
        return three_phase_power(raw, ct, pt, divider)
    if formula is Formula.POWER_FACTOR:
        return power_factor(raw, divider)
    if formula is Formula.VOLTAGE:
        return voltage(raw, pt, divider)
    if formula is Formula.ENERGY:
        return energy(raw, divider)
    raise ValueError(f"Unknown formula: {formula}")
