"""Broker hub wiring the upstream loop, the listen socket and sessions."""

import asyncio
import contextlib
import os
import stat
from pathlib import Path

import structlog

from hyprbroker.errors import BrokerAlreadyRunningError
from hyprbroker.events.broker import connect_upstream, run_broker_loop
from hyprbroker.events.registry import SubscriptionRegistry
from hyprbroker.events.session import HANDSHAKE_LIMIT, ClientSession

logger = structlog.get_logger()


async def prepare_socket_path(path: Path) -> None:
    """Make a listen socket path bindable.

    Creates missing parent directories and removes a stale socket file
    left by a previous broker. A socket that still accepts connections
    belongs to a live broker and is left alone.

    Args:
        path: Listen socket path.

    Raises:
        BrokerAlreadyRunningError: If another broker is listening on path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        mode = path.stat().st_mode
    except FileNotFoundError:
        return
    if not stat.S_ISSOCK(mode):
        return

    try:
        _, writer = await asyncio.open_unix_connection(str(path))
    except (ConnectionRefusedError, FileNotFoundError):
        logger.info("stale_socket_removed", path=str(path))
        path.unlink(missing_ok=True)
        return

    writer.close()
    with contextlib.suppress(ConnectionError, OSError):
        await writer.wait_closed()
    raise BrokerAlreadyRunningError(f"A broker is already listening on {path}")


class BrokerHub:
    """Runs the broker: one upstream reader, one session per subscriber.

    Attributes:
        registry: Subscriber registry shared by the loop and sessions.
        socket_path: Listen socket for subscribers.
        upstream_path: Hyprland event socket.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        socket_path: Path,
        upstream_path: Path,
        socket_mode: int = 0o600,
        handshake_timeout: float | None = None,
    ) -> None:
        """Initialize broker hub.

        Args:
            registry: Registry to dispatch into.
            socket_path: Path to bind the listen socket on.
            upstream_path: Path of the Hyprland event socket.
            socket_mode: Permission bits for the listen socket.
            handshake_timeout: Seconds a client has to send its subscription.
        """
        self.registry = registry
        self.socket_path = socket_path
        self.upstream_path = upstream_path
        self._socket_mode = socket_mode
        self._handshake_timeout = handshake_timeout
        self._server: asyncio.Server | None = None
        self._upstream: tuple[asyncio.StreamReader, asyncio.StreamWriter] | None = None
        self._sessions: set[asyncio.Task[None]] = set()

    @property
    def active_connections(self) -> int:
        """Number of client sessions currently running."""
        return len(self._sessions)

    async def start(self) -> None:
        """Connect upstream and start accepting subscribers.

        Raises:
            OSError: If the upstream socket cannot be reached or the listen
                socket cannot be bound.
            BrokerAlreadyRunningError: If another broker owns socket_path.
        """
        self._upstream = await connect_upstream(str(self.upstream_path))

        await prepare_socket_path(self.socket_path)
        self._server = await asyncio.start_unix_server(
            self._handle_client,
            path=str(self.socket_path),
            limit=HANDSHAKE_LIMIT,
        )
        os.chmod(self.socket_path, self._socket_mode)
        logger.info(
            "broker_listening",
            path=str(self.socket_path),
            mode=oct(self._socket_mode),
        )

    async def run(self) -> None:
        """Ingest upstream events until the upstream fails.

        Raises:
            UpstreamClosedError: When the upstream stream ends.
        """
        if self._upstream is None:
            raise RuntimeError("BrokerHub.start() must be called before run()")
        reader, _ = self._upstream
        await run_broker_loop(reader, self.registry)

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        task = asyncio.current_task()
        assert task is not None
        self._sessions.add(task)
        logger.debug("client_connected", active_connections=self.active_connections)

        session = ClientSession(
            reader,
            writer,
            self.registry,
            handshake_timeout=self._handshake_timeout,
        )
        try:
            await session.run()
        finally:
            self._sessions.discard(task)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Stop accepting, end all sessions and release the sockets.

        Args:
            timeout: Seconds to wait for cancelled sessions to finish.
        """
        if self._server is not None:
            self._server.close()

        sessions = list(self._sessions)
        for task in sessions:
            task.cancel()
        if sessions:
            _, pending = await asyncio.wait(sessions, timeout=timeout)
            if pending:
                logger.warning("sessions_shutdown_timeout", pending=len(pending))

        if self._server is not None:
            with contextlib.suppress(OSError, TimeoutError):
                await asyncio.wait_for(self._server.wait_closed(), timeout=timeout)
            self._server = None
            self.socket_path.unlink(missing_ok=True)

        if self._upstream is not None:
            _, upstream_writer = self._upstream
            upstream_writer.close()
            with contextlib.suppress(ConnectionError, OSError):
                await upstream_writer.wait_closed()
            self._upstream = None

        logger.info(
            "broker_shutdown",
            active_connections=self.active_connections,
            subscriber_count=self.registry.subscriber_count,
            dropped_events=self.registry.dropped_events,
        )
