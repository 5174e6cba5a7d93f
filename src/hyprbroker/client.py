"""Subscriber client for a running broker."""
import asyncio
import contextlib
from collections.abc import AsyncIterator
from pathlib import Path

import structlog

from hyprbroker.events.broker import UPSTREAM_LINE_LIMIT
from hyprbroker.events.types import HyprEvent

logger = structlog.get_logger()

# JSON escaping turns one control character into six bytes.
EVENT_LINE_LIMIT = 8 * UPSTREAM_LINE_LIMIT


async def subscribe(
    path: str | Path,
    subscription: str = "all",
) -> AsyncIterator[HyprEvent]:
    """Connect to the broker and yield events as they arrive.

    Args:
        path: Broker listen socket.
        subscription: Handshake line, ``all`` or comma-separated tags.

    Yields:
        Decoded events, until the broker closes the connection.

    Raises:
        OSError: If the broker cannot be reached.
        ValueError: If the broker sends a line that is too long or is not
            an event.
    """
    reader, writer = await asyncio.open_unix_connection(
        str(path), limit=EVENT_LINE_LIMIT
    )
    try:
        writer.write(f"{subscription.strip()}\n".encode("utf-8"))
        await writer.drain()
        logger.debug("subscribed", path=str(path), subscription=subscription)

        async for raw in reader:
            line = raw.decode("utf-8", errors="replace").strip()
            if line:
                yield HyprEvent.model_validate_json(line)
    finally:
        writer.close()
        with contextlib.suppress(ConnectionError, OSError):
            await writer.wait_closed()
