"""Constants shared across the gateway."""

from __future__ import annotations

# Configuration store paths (relative to the data directory)
SLAVES_PATH = "/slaves.json"
POLLING_PATH = "/polling.json"
TEMPLATES_PATH = "/templates.json"
PARAMS_PATH = "/params.json"

# Poll engine pacing (seconds)
DEFAULT_POLL_INTERVAL = 10
DEFAULT_TIMEOUT = 1
QUERY_INTERVAL = 0.2
DEFAULT_SETTLE_TIME = 0.0
TICK_SLEEP = 0.01

# Modbus limits
MIN_SLAVE_ID = 1
MAX_SLAVE_ID = 247
MAX_REGISTER_ADDRESS = 0xFFFF
MAX_READ_COUNT = 125
FUNC_READ_HOLDING = 0x03

# Ledger capacities
STATS_CAPACITY = 20
TIMING_CAPACITY = 20
DEBUG_CAPACITY = 30

# MQTT session
DEFAULT_MQTT_PORT = 1883
MQTT_KEEPALIVE = 60
MQTT_RECONNECT_INTERVAL = 20.0
# Bound on one blocking broker dial; below the shortest query deadline
MQTT_CONNECT_TIMEOUT = 0.5

# Admin HTTP surface
DEFAULT_ADMIN_HOST = "0.0.0.0"
DEFAULT_ADMIN_PORT = 8080

# Serial line
DEFAULT_BAUDRATE = 9600

# Template merge recursion limit
MAX_MERGE_DEPTH = 10
