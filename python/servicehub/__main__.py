"""Run a ServiceHub from the command line and print its event log.

Usage:
    python -m servicehub --service LocalNode=http://localhost:4000,socket \\
                         --discover http://svc1.local --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Callable, Dict, List, Optional, Sequence

from servicehub.capabilities import LOCAL_SERVICES
from servicehub.context import create_hub_context
from servicehub.dispatch import format_event
from servicehub.hub import ServiceHub
from servicehub.logging import configure_logging, create_logger, set_current_logger
from servicehub.protocols import Transport
from servicehub.settings import get_settings


class StaticServices:
    """localServices source that reports a fixed list of addresses."""

    def __init__(self, addresses: Sequence[str]) -> None:
        self._addresses = list(addresses)
        self._found: List[Callable[[str], None]] = []
        self._closed: List[Callable[[str], None]] = []

    def on_found(self, callback: Callable[[str], None]) -> None:
        self._found.append(callback)

    def on_closed(self, callback: Callable[[str], None]) -> None:
        self._closed.append(callback)

    def get(self) -> None:
        for address in self._addresses:
            for callback in self._found:
                callback(address)


def parse_service(value: str) -> Dict[str, str]:
    """Parse ``LABEL=URL[,socket]`` into a label and service entry."""
    label, sep, rest = value.partition("=")
    if not sep or not label or not rest:
        raise argparse.ArgumentTypeError(f"expected LABEL=URL[,socket], got {value!r}")

    url, _, transport = rest.partition(",")
    entry = {"label": label.strip(), "url": url.strip()}
    if transport:
        if transport.strip() != "socket":
            raise argparse.ArgumentTypeError(f"unknown transport {transport!r}")
        entry["transport"] = Transport.SOCKET.value
    return entry


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="servicehub",
        description="Aggregate locally discovered services into one event log",
    )
    parser.add_argument(
        "--service",
        action="append",
        type=parse_service,
        default=[],
        metavar="LABEL=URL[,socket]",
        help="Host service table entry (repeatable)",
    )
    parser.add_argument(
        "--discover",
        action="append",
        default=[],
        metavar="URL",
        help="Address reported as found by local discovery (repeatable)",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default from settings)")
    parser.add_argument("--json", action="store_true", help="Render logs as JSON lines")
    return parser


async def run(args: argparse.Namespace) -> None:
    settings = get_settings()
    services = {
        entry["label"]: {k: v for k, v in entry.items() if k != "label"}
        for entry in args.service
    }
    capabilities = {LOCAL_SERVICES: StaticServices(args.discover)} if args.discover else {}

    logger = create_logger("servicehub")
    set_current_logger(logger)

    context = create_hub_context(
        settings,
        services=services,
        capabilities=capabilities,
        logger=logger,
    )

    hub = ServiceHub(context)
    hub.dispatcher.observe(lambda event: print(format_event(event), flush=True))

    async with hub:
        await hub.wait_idle()
        # Keep socket channels running until interrupted
        await asyncio.Event().wait()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(
        args.log_level or settings.log_level,
        json_output=args.json or settings.log_json,
    )

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
