"""Register layouts for every supported device class.

Each module covers one device class:

- sensor: G01S temperature/humidity sensor
- meter: HeylaParam three-phase power meter (20 channels)
- voltage: HeylaVoltage voltage meter
- energy: HeylaEnergy energy meter (32-bit counters)
"""

from pyrtubridge.registers.channels import ChannelDefinition, template_keys
from pyrtubridge.registers.energy import ENERGY_CHANNELS
from pyrtubridge.registers.energy import MIN_REGISTER_SIZE as ENERGY_MIN_REGISTER_SIZE
from pyrtubridge.registers.energy import TEMPLATE_SECTION as ENERGY_SECTION
from pyrtubridge.registers.meter import METER_CHANNELS
from pyrtubridge.registers.meter import TEMPLATE_SECTION as METER_SECTION
from pyrtubridge.registers.sensor import FAHRENHEIT_FIELD, SENSOR_CHANNELS
from pyrtubridge.registers.sensor import TEMPLATE_SECTION as SENSOR_SECTION
from pyrtubridge.registers.voltage import TEMPLATE_SECTION as VOLTAGE_SECTION
from pyrtubridge.registers.voltage import VOLTAGE_CHANNELS

__all__ = [
    "ChannelDefinition",
    "ENERGY_CHANNELS",
    "ENERGY_MIN_REGISTER_SIZE",
    "ENERGY_SECTION",
    "FAHRENHEIT_FIELD",
    "METER_CHANNELS",
    "METER_SECTION",
    "SENSOR_CHANNELS",
    "SENSOR_SECTION",
    "VOLTAGE_CHANNELS",
    "VOLTAGE_SECTION",
    "template_keys",
]
