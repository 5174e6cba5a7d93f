"""Ingestion loop reading Hyprland's event socket."""
import asyncio

import structlog

from hyprbroker.errors import EventParseError, UpstreamClosedError
from hyprbroker.events.parser import parse_line
from hyprbroker.events.registry import SubscriptionRegistry

logger = structlog.get_logger()

# socket2 lines carry window titles; allow generous lengths.
UPSTREAM_LINE_LIMIT = 1024 * 1024


async def connect_upstream(
    path: str,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open the Hyprland event socket for reading.

    Args:
        path: Filesystem path of ``.socket2.sock``.

    Returns:
        Reader and writer for the connection. Nothing is sent upstream,
        but the writer owns the transport and must be kept until close.

    Raises:
        OSError: If the socket cannot be connected.
    """
    reader, writer = await asyncio.open_unix_connection(path, limit=UPSTREAM_LINE_LIMIT)
    logger.info("upstream_connected", path=path)
    return reader, writer


async def _discard_line(reader: asyncio.StreamReader) -> None:
    """Drop input up to and including the next newline.

    The rest of an overlong line may still be in flight when the limit is
    hit, so it is consumed here instead of being parsed as a new line.
    """
    while True:
        try:
            await reader.readuntil(b"\n")
            return
        except asyncio.LimitOverrunError as e:
            await reader.readexactly(e.consumed)


async def run_broker_loop(
    reader: asyncio.StreamReader,
    registry: SubscriptionRegistry,
) -> None:
    """Parse upstream lines and dispatch each event to the registry.

    Runs until the upstream stream ends. Malformed lines are logged and
    skipped, and so are lines longer than the reader's limit.

    Args:
        reader: Upstream event stream.
        registry: Registry receiving parsed events.

    Raises:
        UpstreamClosedError: When the upstream reaches end of stream or a
            read fails.
    """
    lines_total = 0
    parse_errors = 0

    while True:
        try:
            raw = await reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            # Final line without a newline, or b"" at end of stream.
            raw = e.partial
        except asyncio.LimitOverrunError as e:
            logger.warning("upstream_line_too_long", buffered=e.consumed)
            try:
                await _discard_line(reader)
            except asyncio.IncompleteReadError:
                raw = b""
            else:
                continue
        except (ConnectionError, OSError) as e:
            raise UpstreamClosedError(f"Upstream read failed: {e}") from e

        if not raw:
            logger.error(
                "upstream_eof",
                lines_total=lines_total,
                parse_errors=parse_errors,
            )
            raise UpstreamClosedError("Upstream event socket closed")

        line = raw.decode("utf-8", errors="replace").rstrip("\n")
        lines_total += 1
        if not line.strip():
            continue

        try:
            event = parse_line(line)
        except EventParseError as e:
            parse_errors += 1
            logger.warning("event_parse_failed", tag=e.tag, line=line, error=str(e))
            continue

        delivered = await registry.dispatch(event)
        logger.debug(
            "event_dispatched",
            tag=event.tag.value,
            delivered_to=delivered,
        )
