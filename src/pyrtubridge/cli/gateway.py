"""Command-line entry point for running the gateway.

Usage:
    pyrtubridge --port /dev/ttyUSB0 --data-dir /var/lib/pyrtubridge
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pyrtubridge import __version__
from pyrtubridge.config.settings import GatewayConfig
from pyrtubridge.constants import (
    DEFAULT_ADMIN_HOST,
    DEFAULT_ADMIN_PORT,
    DEFAULT_BAUDRATE,
    DEFAULT_SETTLE_TIME,
    QUERY_INTERVAL,
)
from pyrtubridge.gateway import Gateway
from pyrtubridge.transports import TransportConnectionError

_LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="pyrtubridge",
        description="Poll Modbus RTU slaves and publish their readings to MQTT.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pyrtubridge --port /dev/ttyUSB0
      Poll the slaves configured in ./data and publish to the stored broker

  pyrtubridge --port /dev/ttyUSB0 --mqtt-server 192.168.1.10 --debug-capture
      Override the broker and start with debug message capture enabled
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    serial_group = parser.add_argument_group("Serial Options")
    serial_group.add_argument(
        "--port",
        "-p",
        required=True,
        help="Serial device of the RS-485 adapter (e.g. /dev/ttyUSB0, COM3)",
    )
    serial_group.add_argument(
        "--baudrate",
        "-b",
        type=int,
        default=DEFAULT_BAUDRATE,
        help=f"Serial baud rate (default: {DEFAULT_BAUDRATE})",
    )
    serial_group.add_argument(
        "--query-interval",
        type=float,
        default=QUERY_INTERVAL,
        help=f"Seconds between slave queries within a cycle (default: {QUERY_INTERVAL})",
    )
    serial_group.add_argument(
        "--settle-time",
        type=float,
        default=DEFAULT_SETTLE_TIME,
        help="Seconds between enabling the RS-485 driver and sending (default: 0)",
    )

    config_group = parser.add_argument_group("Configuration Options")
    config_group.add_argument(
        "--data-dir",
        "-d",
        default="data",
        help="Directory holding slaves.json, polling.json and templates.json (default: ./data)",
    )
    config_group.add_argument(
        "--admin-host",
        default=DEFAULT_ADMIN_HOST,
        help=f"Admin HTTP bind address (default: {DEFAULT_ADMIN_HOST})",
    )
    config_group.add_argument(
        "--admin-port",
        type=int,
        default=DEFAULT_ADMIN_PORT,
        help=f"Admin HTTP port (default: {DEFAULT_ADMIN_PORT})",
    )

    mqtt_group = parser.add_argument_group("MQTT Options")
    mqtt_group.add_argument(
        "--mqtt-server",
        help="Broker host (overrides the stored parameter)",
    )
    mqtt_group.add_argument(
        "--mqtt-port",
        type=int,
        help="Broker port (overrides the stored parameter)",
    )
    mqtt_group.add_argument(
        "--client-id",
        default="pyrtubridge",
        help="MQTT client identifier (default: pyrtubridge)",
    )

    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    output_group.add_argument(
        "--debug-capture",
        action="store_true",
        help="Start with debug message capture enabled",
    )

    return parser


def build_config(args: argparse.Namespace) -> GatewayConfig:
    """Translate parsed arguments into a validated configuration.

    Raises:
        ValueError: If the arguments describe an invalid configuration
    """
    config = GatewayConfig(
        serial_port=args.port,
        baudrate=args.baudrate,
        data_dir=args.data_dir,
        admin_host=args.admin_host,
        admin_port=args.admin_port,
        mqtt_server=args.mqtt_server,
        mqtt_port=args.mqtt_port,
        mqtt_client_id=args.client_id,
        query_interval=args.query_interval,
        settle_time=args.settle_time,
        debug_capture=args.debug_capture,
    )
    config.validate()
    return config


async def run_gateway(config: GatewayConfig) -> int:
    """Run the gateway until interrupted."""
    try:
        gateway = Gateway(config)
    except TransportConnectionError as err:
        _LOGGER.error("%s", err)
        return 1
    await gateway.run()
    return 0


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    try:
        config = build_config(args)
    except ValueError as err:
        parser.error(str(err))

    try:
        return asyncio.run(run_gateway(config))
    except KeyboardInterrupt:
        _LOGGER.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
