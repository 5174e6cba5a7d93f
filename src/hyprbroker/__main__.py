"""Entry point for the broker daemon and its client modes."""

import argparse
import asyncio
import contextlib
import json
import signal
import sys

import structlog

from hyprbroker.client import subscribe
from hyprbroker.config import Settings
from hyprbroker.errors import BrokerAlreadyRunningError, QueryError, UpstreamClosedError
from hyprbroker.events import BrokerHub, SubscriptionRegistry
from hyprbroker.lifecycle import GracefulShutdown
from hyprbroker.logging import configure_logging
from hyprbroker.query import (
    query_active_client,
    query_active_workspace,
    query_clients,
    query_workspaces,
)
from hyprbroker.watch import ActiveWindowWatcher, WorkspacesWatcher, run_watcher

logger = structlog.get_logger()

QUERIES = ("clients", "workspaces", "activewindow", "activeworkspace")
WATCHERS = {
    "activewindow": ActiveWindowWatcher,
    "workspaces": WorkspacesWatcher,
}


async def serve(settings: Settings) -> int:
    """Run the broker until a signal arrives or the upstream is lost.

    Args:
        settings: Broker configuration.

    Returns:
        Process exit status: 0 after a signal, 1 after upstream loss.

    Raises:
        BrokerAlreadyRunningError: If another broker owns the listen socket.
        OSError: If the upstream or the listen socket is unusable.
    """
    registry = SubscriptionRegistry(
        queue_size=settings.queue_size,
        overflow=settings.overflow_policy,
    )
    hub = BrokerHub(
        registry,
        socket_path=settings.resolved_client_socket_path,
        upstream_path=settings.resolved_event_socket_path,
        socket_mode=settings.socket_mode,
        handshake_timeout=settings.handshake_timeout_seconds,
    )
    shutdown = GracefulShutdown(timeout=settings.shutdown_timeout)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.trigger, sig.name)

    tasks: list[asyncio.Task[None]] = []
    exit_code = 0
    try:
        await hub.start()
        ingest = asyncio.create_task(hub.run())
        stop = asyncio.create_task(shutdown.wait_for_trigger())
        tasks = [ingest, stop]

        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        if ingest.done():
            try:
                ingest.result()
            except UpstreamClosedError as e:
                logger.error("upstream_lost", error=str(e))
                exit_code = 1
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await hub.shutdown(timeout=shutdown.timeout)
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)

    return exit_code


async def listen(settings: Settings, subscription: str) -> int:
    """Print every event the broker delivers, one JSON line each."""
    try:
        path = settings.resolved_client_socket_path
        async for event in subscribe(path, subscription):
            print(event.model_dump_json(by_alias=True), flush=True)
    except OSError as e:
        print(f"Failed to connect to broker: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Unreadable event from broker: {e}", file=sys.stderr)
        return 1
    return 0


async def snapshot(settings: Settings, what: str) -> int:
    """Print one snapshot from Hyprland's request socket as JSON."""
    try:
        path = settings.resolved_request_socket_path
        if what == "clients":
            clients = await query_clients(path)
            payload = [c.model_dump(by_alias=True) for c in clients.values()]
        elif what == "workspaces":
            payload = [w.model_dump(by_alias=True) for w in await query_workspaces(path)]
        elif what == "activewindow":
            payload = (await query_active_client(path)).model_dump(by_alias=True)
        else:
            payload = (await query_active_workspace(path)).model_dump(by_alias=True)
    except (OSError, ValueError, QueryError) as e:
        print(f"Query {what} failed: {e}", file=sys.stderr)
        return 1
    print(json.dumps(payload))
    return 0


async def watch(settings: Settings, what: str) -> int:
    """Print a fresh snapshot each time a relevant event arrives."""
    try:
        watcher = WATCHERS[what](settings.resolved_request_socket_path)
        async for state in run_watcher(watcher, settings.resolved_client_socket_path):
            print(json.dumps(state), flush=True)
    except (OSError, ValueError, QueryError) as e:
        print(f"Watching {what} failed: {e}", file=sys.stderr)
        return 1
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="hyprbroker",
        description="Fan out Hyprland events to filtered subscribers",
    )
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("daemon", help="Run the broker in the foreground")

    listen_parser = commands.add_parser("listen", help="Subscribe and print events")
    listen_parser.add_argument(
        "filter",
        nargs="?",
        default="all",
        help="'all' or comma-separated event tags (default: all)",
    )

    query_parser = commands.add_parser("query", help="Print a Hyprland snapshot")
    query_parser.add_argument("what", choices=QUERIES)

    watch_parser = commands.add_parser(
        "watch",
        help="Print a snapshot every time it changes",
    )
    watch_parser.add_argument("what", choices=sorted(WATCHERS))

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "listen"
        args.filter = "all"
    return args


def main(argv: list[str] | None = None) -> None:
    """Entry point for python -m hyprbroker."""
    args = parse_args(argv)
    settings = Settings()
    configure_logging(
        debug=settings.debug,
        log_format=settings.log_format,
        component=args.command,
    )

    exit_code = 0
    with contextlib.suppress(KeyboardInterrupt):
        if args.command == "daemon":
            try:
                exit_code = asyncio.run(serve(settings))
            except (BrokerAlreadyRunningError, OSError, ValueError) as e:
                logger.error("broker_start_failed", error=str(e))
                exit_code = 1
        elif args.command == "listen":
            exit_code = asyncio.run(listen(settings, args.filter))
        elif args.command == "watch":
            exit_code = asyncio.run(watch(settings, args.what))
        else:
            exit_code = asyncio.run(snapshot(settings, args.what))

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
