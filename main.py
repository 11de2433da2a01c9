import argparse
import asyncio
import logging
import signal
import sys

from battery import ReadError
from battery_monitor import BatteryMonitor, LOOP_WAIT_TIME
from notify import Notifier
from upower_api import UPowerWrapper

logger = logging.getLogger("battery-monitor")


class SignalSetupError(Exception):
    """Exception raised when the stop signal handlers cannot be installed."""

    pass


def positive_float(value):
    seconds = float(value)
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"{value} is not a positive number")
    return seconds


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Battery Monitor polls UPower over dbus_next and sends notifications on charging state changes and critically low charge"
    )

    parser.add_argument("--debug", action="store_true", help="Enable debugging mode")
    parser.add_argument(
        "-i",
        "--interval",
        type=positive_float,
        default=LOOP_WAIT_TIME,
        help=f"Seconds between battery reads (default: {LOOP_WAIT_TIME})",
    )
    return parser.parse_args(argv)


def configure_logging(debug=False):
    logging.basicConfig(level="DEBUG" if debug else "INFO")


def install_signal_handlers(loop, callback):
    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, callback)
    except (NotImplementedError, RuntimeError, ValueError) as e:
        raise SignalSetupError(f"failed to set stop signal trap: {e}") from e


async def main(argv=None):
    args = parse_args(argv)
    configure_logging(args.debug)

    upower = UPowerWrapper()
    notifier = Notifier()
    monitor = BatteryMonitor(upower, notifier, poll_interval=args.interval)

    # 1. Initial state is required, there is nothing to compare against otherwise
    try:
        await upower.connect()
        await monitor.initialize()
    except ReadError as e:
        logger.error(f"System: {e}")
        return 1

    # 2. Notifications are best effort
    if not await notifier.connect():
        logger.warning("Warning: Notification service unavailable.")

    try:
        install_signal_handlers(asyncio.get_running_loop(), monitor.stop)
    except SignalSetupError as e:
        logger.error(f"System: {e}")
        return 1

    await monitor.run()
    logger.info("Service stopped by user")
    return 0


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
