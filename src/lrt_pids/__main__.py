"""
LRT PIDS command-line entry point.

Run a station-control publisher or a platform display subscriber.

Usage::

    python -m lrt_pids subscribe --port 4510
    python -m lrt_pids publish --host 127.0.0.1 --port 4510
    python -m lrt_pids publish --host 127.0.0.1 --destination "Dukuh Atas" --key-log ssl-key.log

Commands:
    publish     Send the arrival and departure of one train to a display
    subscribe   Listen for train events and announce them

Options:
    --host          Display address (publish) or bind address (subscribe)
    --port          UDP port (default: 4510)
    --key-log       Append TLS secrets to this file for traffic inspection
    --legacy-wire   Use the byte-per-flag wire profile of early displays
    --timeout       Seconds to wait for each acknowledgment (publish only)
    --destination   Destination station announced for the train (publish only)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from lrt_pids.config import setup_logging
from lrt_pids.node import (
    DEFAULT_PORT,
    Publisher,
    PublisherConfig,
    Subscriber,
    SubscriberConfig,
    default_events,
)
from lrt_pids.node.publisher import DEFAULT_DESTINATION, DEFAULT_TRAIN_NUMBER
from lrt_pids.protocol import TransportError, WireProfile
from lrt_pids.protocol.exchange import EXCHANGE_TIMEOUT_SECONDS
from lrt_pids.types import Uint16

logger = logging.getLogger(__name__)


async def run_publisher(
    host: str,
    port: int,
    destination: str,
    train_number: int,
    key_log_path: Path | None,
    profile: WireProfile,
    timeout: float | None,
) -> int:
    """
    Publish one train's events and report the result.

    Returns:
        Process exit code: 0 when every event was acknowledged, 1 otherwise.
    """
    config = PublisherConfig(
        host=host,
        port=port,
        key_log_path=key_log_path,
        profile=profile,
        exchange_timeout=timeout,
    )
    publisher = Publisher(config=config)
    try:
        outcomes = await publisher.run(default_events(destination, train_number))
    except TransportError as e:
        logger.error("Could not reach display at %s:%d: %s", host, port, e)
        return 1

    failed = [outcome for outcome in outcomes if not outcome.ok]
    if failed:
        logger.error("%d of %d transactions failed", len(failed), len(outcomes))
        return 1

    logger.info("All %d transactions acknowledged", len(outcomes))
    return 0


async def run_subscriber(
    host: str,
    port: int,
    key_log_path: Path | None,
    profile: WireProfile,
) -> int:
    """Serve displays until interrupted."""
    config = SubscriberConfig(
        host=host,
        port=port,
        key_log_path=key_log_path,
        profile=profile,
    )
    await Subscriber(config=config).serve()
    return 0


def _train_number(value: str) -> int:
    """Parse a train number, which must fit the 16-bit wire field."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid train number: {value!r}") from None
    if not 0 <= number <= Uint16.max_value():
        raise argparse.ArgumentTypeError(
            f"train number must be between 0 and {Uint16.max_value()}, got {number}"
        )
    return number


def _add_common_arguments(parser: argparse.ArgumentParser, default_host: str) -> None:
    """Arguments shared by both commands."""
    parser.add_argument(
        "--host",
        default=default_host,
        help=f"Address to use (default: {default_host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"UDP port (default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--key-log",
        type=Path,
        default=None,
        dest="key_log",
        help="Append TLS secrets to this file (e.g. ssl-key.log)",
    )
    parser.add_argument(
        "--legacy-wire",
        action="store_true",
        help="Use the byte-per-flag wire profile without padding",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for both commands."""
    parser = argparse.ArgumentParser(
        prog="lrt-pids",
        description="LRT passenger information display protocol",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    publish = commands.add_parser("publish", help="Send train events to a display")
    _add_common_arguments(publish, default_host="127.0.0.1")
    publish.add_argument(
        "--destination",
        default=DEFAULT_DESTINATION,
        help=f"Destination station (default: {DEFAULT_DESTINATION})",
    )
    publish.add_argument(
        "--train",
        type=_train_number,
        default=DEFAULT_TRAIN_NUMBER,
        help=f"Train number (default: {DEFAULT_TRAIN_NUMBER})",
    )
    publish.add_argument(
        "--timeout",
        type=float,
        default=EXCHANGE_TIMEOUT_SECONDS,
        help=f"Seconds to wait for each acknowledgment (default: {EXCHANGE_TIMEOUT_SECONDS:g})",
    )

    subscribe = commands.add_parser("subscribe", help="Announce train events from publishers")
    _add_common_arguments(subscribe, default_host="0.0.0.0")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(args.verbose, args.no_color)

    profile = WireProfile.LEGACY if args.legacy_wire else WireProfile.PACKED

    if args.command == "publish":
        coro = run_publisher(
            args.host,
            args.port,
            args.destination,
            args.train,
            args.key_log,
            profile,
            args.timeout,
        )
    else:
        coro = run_subscriber(args.host, args.port, args.key_log, profile)

    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        # asyncio.run() handles task cancellation, but we log for clarity.
        logger.info("Shutting down...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
