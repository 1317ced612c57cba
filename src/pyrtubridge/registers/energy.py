"""Register layout for HeylaEnergy energy meters.

Each cumulative counter is a 32-bit value, so slaves of this type must
use ``registerSize >= 2``.

Register space layout (logical values, unsigned, raw ÷100):
    0    Total active energy (kWh)
    1    Imported active energy (kWh)
    2    Exported active energy (kWh)
"""

from __future__ import annotations

from pyrtubridge.codec import Formula, RegisterSize
from pyrtubridge.registers.channels import ChannelDefinition

TEMPLATE_SECTION = "energy"

MIN_REGISTER_SIZE = RegisterSize.W32

ENERGY_CHANNELS: tuple[ChannelDefinition, ...] = (
    ChannelDefinition(
        0, "Total_Active_Energy_(kWh)", "totalActiveEnergy", Formula.ENERGY, unit="kWh"
    ),
    ChannelDefinition(
        1, "Import_Active_Energy_(kWh)", "importActiveEnergy", Formula.ENERGY, unit="kWh"
    ),
    ChannelDefinition(
        2, "Export_Active_Energy_(kWh)", "exportActiveEnergy", Formula.ENERGY, unit="kWh"
    ),
)
