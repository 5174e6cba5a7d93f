"""Per-connection subscriber session."""
import asyncio
import contextlib
from enum import Enum

import structlog

from hyprbroker.events.registry import Subscriber, SubscriptionRegistry
from hyprbroker.events.types import Subscription

logger = structlog.get_logger()

HANDSHAKE_LIMIT = 64 * 1024


class SessionState(str, Enum):
    """Lifecycle of a client session."""

    CONNECTED = "connected"
    AWAITING_SUBSCRIPTION = "awaiting_subscription"
    ACTIVE = "active"
    CLOSED = "closed"


class ClientSession:
    """Relays registry deliveries to one subscriber connection.

    The peer sends a single subscription line, then only receives. The
    session ends on the first write failure or when the registry closes
    the subscriber's sink; either way the subscriber is deregistered.

    Attributes:
        state: Current lifecycle state.
        subscriber: Registry handle once the handshake has completed.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        registry: SubscriptionRegistry,
        handshake_timeout: float | None = None,
    ) -> None:
        """Initialize session.

        Args:
            reader: Connection read side.
            writer: Connection write side.
            registry: Registry to subscribe to.
            handshake_timeout: Seconds to wait for the subscription line,
                None to wait indefinitely.
        """
        self._reader = reader
        self._writer = writer
        self._registry = registry
        self._handshake_timeout = handshake_timeout
        self.state = SessionState.CONNECTED
        self.subscriber: Subscriber | None = None
        self.events_sent = 0

    async def run(self) -> None:
        """Drive the session until the connection or the sink ends."""
        try:
            self.state = SessionState.AWAITING_SUBSCRIPTION
            subscription = await self._read_subscription()
            if subscription is None:
                return

            self.subscriber = await self._registry.register(subscription)
            self.state = SessionState.ACTIVE
            unknown = subscription.unknown_tags()
            if unknown:
                logger.warning(
                    "subscription_unknown_tags",
                    subscriber_id=self.subscriber.id,
                    tags=sorted(unknown),
                )
            logger.info(
                "client_subscribed",
                subscriber_id=self.subscriber.id,
                subscription=str(subscription),
            )

            await self._relay()
        finally:
            await self._close()

    async def _read_subscription(self) -> Subscription | None:
        """Read and parse the handshake line.

        Returns:
            Parsed subscription, or None if the peer went away first.
        """
        try:
            raw = await asyncio.wait_for(
                self._reader.readuntil(b"\n"),
                timeout=self._handshake_timeout,
            )
        except asyncio.IncompleteReadError:
            logger.info("client_handshake_aborted", reason="eof")
            return None
        except asyncio.LimitOverrunError:
            logger.warning("client_handshake_aborted", reason="line_too_long")
            return None
        except TimeoutError:
            logger.warning(
                "client_handshake_aborted",
                reason="timeout",
                timeout_seconds=self._handshake_timeout,
            )
            return None
        except (ConnectionError, OSError) as e:
            logger.error("client_handshake_failed", error=str(e))
            return None

        return Subscription.parse(raw.decode("utf-8", errors="replace"))

    async def _relay(self) -> None:
        assert self.subscriber is not None
        async for event in self.subscriber.sink:
            try:
                self._writer.write(event.to_wire().encode("utf-8"))
                await self._writer.drain()
            except (ConnectionError, OSError) as e:
                logger.info(
                    "client_write_failed",
                    subscriber_id=self.subscriber.id,
                    error=str(e),
                )
                return
            self.events_sent += 1

        logger.info("client_sink_closed", subscriber_id=self.subscriber.id)

    async def _close(self) -> None:
        self.state = SessionState.CLOSED
        if self.subscriber is not None:
            await self._registry.deregister(self.subscriber.id)
            logger.info(
                "client_disconnected",
                subscriber_id=self.subscriber.id,
                events_sent=self.events_sent,
            )

        self._writer.close()
        with contextlib.suppress(ConnectionError, OSError):
            await self._writer.wait_closed()
