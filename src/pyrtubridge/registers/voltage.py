"""Register layout for HeylaVoltage voltage meters.

Register space layout (logical values, unsigned, raw × PT ÷100):
    0-2    Line voltages A/B/C (V)
    3      Mean phase voltage (V)
    4      Zero-sequence voltage (V)
"""

from __future__ import annotations

from pyrtubridge.codec import Formula
from pyrtubridge.registers.channels import ChannelDefinition

TEMPLATE_SECTION = "voltage"

VOLTAGE_CHANNELS: tuple[ChannelDefinition, ...] = (
    ChannelDefinition(0, "A_Voltage_(V)", "aVoltage", Formula.VOLTAGE, unit="V"),
    ChannelDefinition(1, "B_Voltage_(V)", "bVoltage", Formula.VOLTAGE, unit="V"),
    ChannelDefinition(2, "C_Voltage_(V)", "cVoltage", Formula.VOLTAGE, unit="V"),
    ChannelDefinition(
        3,
        "Phase_Voltage_Mean_(V)",
        "phaseVoltageMean",
        Formula.VOLTAGE,
        unit="V",
        description="Mean of the three phase voltages.",
    ),
    ChannelDefinition(
        4,
        "Zero_Sequence_Voltage_(V)",
        "zeroSequenceVoltage",
        Formula.VOLTAGE,
        unit="V",
        description="Zero-sequence (residual) voltage.",
    ),
)
