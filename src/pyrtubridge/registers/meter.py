"""Register layout for HeylaParam three-phase power meters.

Register space layout (logical values, ``registerSize`` registers each):
    0-3      Phase currents A/B/C + zero-phase current (A, unsigned)
    4-7      Active power A/B/C + three-phase total (kW, signed)
    8-11     Reactive power A/B/C + three-phase total (kVar, signed)
    12-15    Apparent power A/B/C + three-phase total (kVA, signed)
    16-19    Power factor A/B/C + total (signed, raw ÷10000)

Per-phase powers use the single-phase formula (÷100), totals the
three-phase formula (÷10). CT and PT come from the slave; each channel
only carries a divider.
"""

from __future__ import annotations

from pyrtubridge.codec import Formula
from pyrtubridge.registers.channels import ChannelDefinition

TEMPLATE_SECTION = "meter"


def _current(index: int, phase: str, key: str) -> ChannelDefinition:
    return ChannelDefinition(
        index=index,
        field=f"{phase}_Current_(A)",
        template_key=key,
        formula=Formula.CURRENT,
        unit="A",
        description=f"{phase.replace('_', ' ')} current.",
    )


def _power(index: int, phase: str, kind: str, unit: str) -> ChannelDefinition:
    total = phase == "Total"
    key_prefix = "total" if total else phase.lower()
    return ChannelDefinition(
        index=index,
        field=f"{phase}_{kind}_Power_({unit})",
        template_key=f"{key_prefix}{kind}Power",
        formula=Formula.THREE_PHASE_POWER if total else Formula.SINGLE_PHASE_POWER,
        signed=True,
        unit=unit,
        description=f"{'Three-phase total' if total else phase + ' phase'} {kind.lower()} power.",
    )


def _power_factor(index: int, phase: str) -> ChannelDefinition:
    key_prefix = "total" if phase == "Total" else phase.lower()
    return ChannelDefinition(
        index=index,
        field=f"{phase}_Power_Factor",
        template_key=f"{key_prefix}PowerFactor",
        formula=Formula.POWER_FACTOR,
        signed=True,
        description=f"{phase} power factor.",
    )


METER_CHANNELS: tuple[ChannelDefinition, ...] = (
    # Currents (0-3)
    _current(0, "A", "aCurrent"),
    _current(1, "B", "bCurrent"),
    _current(2, "C", "cCurrent"),
    _current(3, "Zero_Phase", "zeroPhaseCurrent"),
    # Active power (4-7)
    _power(4, "A", "Active", "kW"),
    _power(5, "B", "Active", "kW"),
    _power(6, "C", "Active", "kW"),
    _power(7, "Total", "Active", "kW"),
    # Reactive power (8-11)
    _power(8, "A", "Reactive", "kVar"),
    _power(9, "B", "Reactive", "kVar"),
    _power(10, "C", "Reactive", "kVar"),
    _power(11, "Total", "Reactive", "kVar"),
    # Apparent power (12-15)
    _power(12, "A", "Apparent", "kVA"),
    _power(13, "B", "Apparent", "kVA"),
    _power(14, "C", "Apparent", "kVA"),
    _power(15, "Total", "Apparent", "kVA"),
    # Power factor (16-19)
    _power_factor(16, "A"),
    _power_factor(17, "B"),
    _power_factor(18, "C"),
    _power_factor(19, "Total"),
)
