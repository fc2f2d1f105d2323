"""
Run configured BLE switches until interrupted.

    python -m bleswitch --config config.json [--debug]
    python -m bleswitch --scan
"""
import argparse
import asyncio
import logging
import sys

from pubsub import pub

from bleswitch.accessory import SwitchPlatform
from bleswitch.interfaces.ble import (
    TOPIC_CONNECTION_STATUS,
    TOPIC_STATE_CHANGED,
    BLEConfig,
    ConfigError,
    get_scan_coordinator,
    load_platform_config,
)

logger = logging.getLogger(__name__)


def on_state_changed(value, session):
    """Log every value a device reports."""
    logger.info("%s is %s", session.name, "ON" if value else "OFF")


def on_connection_change(session, connected):
    """
    Log a session's connection status change.

    Parameters:
        session: The PeripheralSession whose link changed.
        connected (bool): `True` when the link came up, `False` when it dropped.
    """
    logger.info(
        "Connection changed for %s: %s",
        session.name,
        "Connected" if connected else "Disconnected",
    )


async def scan(timeout: float) -> None:
    """Print every peripheral advertising within ``timeout`` seconds."""
    devices = await get_scan_coordinator().discover(timeout)
    if not devices:
        print("No BLE devices found")
        return
    for device in sorted(devices, key=lambda d: d.address):
        print(f"{device.address}  {device.name or '(unknown)'}")


async def run(config_path: str) -> None:
    """Start every configured accessory and keep them running until cancelled."""
    platform = SwitchPlatform(load_platform_config(config_path))
    if not platform.accessories:
        logger.warning("No accessories configured in %s", config_path)
        return
    platform.start()
    try:
        await asyncio.Event().wait()
    finally:
        await platform.shutdown()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="bleswitch",
        description="Expose BLE peripherals as on/off switches.",
    )
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--config", help="Path to the JSON platform configuration.")
    group.add_argument(
        "--scan", action="store_true", help="List nearby BLE peripherals and exit."
    )
    parser.add_argument(
        "--scan-timeout",
        type=float,
        default=BLEConfig.BLE_SCAN_TIMEOUT,
        help="Seconds to scan for with --scan (default: %(default)s).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    pub.subscribe(on_state_changed, TOPIC_STATE_CHANGED)
    pub.subscribe(on_connection_change, TOPIC_CONNECTION_STATUS)

    try:
        if args.scan:
            asyncio.run(scan(args.scan_timeout))
        else:
            asyncio.run(run(args.config))
    except ConfigError as exc:
        logger.error("Config validation failed: %s", exc)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
