#!/usr/bin/env python3
"""
onionnet CLI - run and drive the nodes of an onion relay network.

Commands:
  onionnet registry                    Start the node registry
  onionnet router --id N               Start onion router N
  onionnet user --id N                 Start user N
  onionnet launch --routers N --users M
                                       Start a whole network in one process
  onionnet send --from U --to V MSG    Ask user U to send MSG to user V
  onionnet status URL                  Check whether a node is live

Examples:
  # Demo network: registry on 8080, routers on 4000+, users on 3000+
  onionnet launch --routers 5 --users 2

  # Send a message from user 0 to user 1 through three relays
  onionnet send --from 0 --to 1 "hello"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from onionnet.core.config import get_settings
from onionnet.core.exceptions import OnionError
from onionnet.core.logging import configure_logging
from onionnet.network.launcher import launch_network
from onionnet.network.registry import create_registry_node
from onionnet.network.router import OnionRouter
from onionnet.network.transport import HttpTransport
from onionnet.network.user import UserNode

logger = logging.getLogger(__name__)


async def _serve_until_signal(start: Callable[[], Awaitable[Any]], stop: Callable[[], Awaitable[Any]]) -> int:
    """Run ``start``, block until SIGINT/SIGTERM, then run ``stop``."""
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        logger.info("Received shutdown signal")
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await start()
        print("Press Ctrl+C to stop")
        await shutdown_event.wait()
    except OSError as e:
        logger.error(f"Cannot start: {e}")
        return 1
    finally:
        await stop()

    return 0


# =============================================================================
# COMMANDS
# =============================================================================


async def cmd_registry(args: argparse.Namespace) -> int:
    """Start the node registry."""
    settings = get_settings()
    registry = create_registry_node(settings, **({"port": args.port} if args.port else {}))
    return await _serve_until_signal(registry.start, registry.stop)


async def cmd_router(args: argparse.Namespace) -> int:
    """Start one onion router."""
    router = OnionRouter(args.id, port=args.port)
    return await _serve_until_signal(router.start, router.stop)


async def cmd_user(args: argparse.Namespace) -> int:
    """Start one user node."""
    user = UserNode(args.id, port=args.port)
    return await _serve_until_signal(user.start, user.stop)


async def cmd_launch(args: argparse.Namespace) -> int:
    """Start a registry, routers and users in this process."""
    network = None

    async def start() -> None:
        nonlocal network
        network = await launch_network(args.routers, args.users)
        settings = get_settings()
        print(f"Registry:  {settings.registry_url}")
        for router in network.routers:
            print(f"Router {router.node_id}:  {settings.router_url(router.node_id)}")
        for user in network.users:
            print(f"User {user.user_id}:    {settings.user_url(user.user_id)}")

    async def stop() -> None:
        if network is not None:
            await network.stop()

    return await _serve_until_signal(start, stop)


async def cmd_send(args: argparse.Namespace) -> int:
    """Ask a running user node to send a message."""
    settings = get_settings()
    url = f"{settings.user_url(args.sender)}/sendMessage"
    body = {"message": args.message, "destinationUserId": args.recipient}

    async with HttpTransport(timeout=args.timeout) as transport:
        try:
            result = await transport.post_json(url, body)
            circuit = await transport.get_json(f"{settings.user_url(args.sender)}/getLastCircuit")
        except OnionError as e:
            print(f"❌ Send failed: {e.message}", file=sys.stderr)
            return 1

    if args.json:
        print(json.dumps({"response": result, "circuit": circuit.get("result")}, indent=2))
    else:
        path = " -> ".join(str(node_id) for node_id in circuit.get("result") or [])
        print(f"✅ Sent from user {args.sender} to user {args.recipient} via relays {path}")
    return 0


async def cmd_status(args: argparse.Namespace) -> int:
    """Check that a node answers /status."""
    url = args.url if args.url.startswith("http") else f"http://{args.url}"
    url = url.rstrip("/")

    async with HttpTransport(timeout=args.timeout) as transport:
        try:
            status = await transport.get_json(f"{url}/status")
        except OnionError as e:
            print(f"❌ {url} is down: {e.message}", file=sys.stderr)
            return 1

    if args.json:
        print(json.dumps({"url": url, "status": status}))
    else:
        print(f"✅ {url}: {status}")
    return 0


# =============================================================================
# ARGUMENT PARSING
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="onionnet",
        description="onionnet - layered-encryption message relay network",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  ONIONNET_HOST                     Host used in node addresses (default: localhost)
  ONIONNET_REGISTRY_PORT            Registry port (default: 8080)
  ONIONNET_BASE_ONION_ROUTER_PORT   Router N listens on this + N (default: 4000)
  ONIONNET_BASE_USER_PORT           User N listens on this + N (default: 3000)
  ONIONNET_PATH_LENGTH              Relays per message (default: 3)
        """,
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    registry_parser = subparsers.add_parser("registry", help="Start the node registry")
    registry_parser.add_argument(
        "--port",
        "-p",
        type=int,
        default=None,
        help="Listen port (default: ONIONNET_REGISTRY_PORT)",
    )

    for name, help_text in (("router", "Start an onion router"), ("user", "Start a user node")):
        node_parser = subparsers.add_parser(name, help=help_text)
        node_parser.add_argument("--id", type=int, required=True, help=f"{name.capitalize()} id")
        node_parser.add_argument(
            "--port",
            "-p",
            type=int,
            default=None,
            help="Listen port (default: derived from the id)",
        )

    launch_parser = subparsers.add_parser("launch", help="Start a whole network in one process")
    launch_parser.add_argument("--routers", type=int, default=5, help="Number of onion routers (default: 5)")
    launch_parser.add_argument("--users", type=int, default=2, help="Number of users (default: 2)")

    send_parser = subparsers.add_parser("send", help="Ask a user node to send a message")
    send_parser.add_argument("--from", dest="sender", type=int, required=True, help="Sending user id")
    send_parser.add_argument("--to", dest="recipient", type=int, required=True, help="Receiving user id")
    send_parser.add_argument("message", help="Message text")
    send_parser.add_argument("--timeout", type=float, default=10, help="Request timeout in seconds (default: 10)")

    status_parser = subparsers.add_parser("status", help="Check whether a node is live")
    status_parser.add_argument("url", help="Node base URL, e.g. localhost:4001")
    status_parser.add_argument("--timeout", type=float, default=5, help="Request timeout in seconds (default: 5)")

    return parser


COMMANDS: dict[str, Callable[[argparse.Namespace], Awaitable[int]]] = {
    "registry": cmd_registry,
    "router": cmd_router,
    "user": cmd_user,
    "launch": cmd_launch,
    "send": cmd_send,
    "status": cmd_status,
}


async def async_main(args: argparse.Namespace) -> int:
    """Async main entry point."""
    configure_logging(level="DEBUG" if args.verbose else None)
    return await COMMANDS[args.command](args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    return asyncio.run(async_main(args))


if __name__ == "__main__":
    sys.exit(main())
