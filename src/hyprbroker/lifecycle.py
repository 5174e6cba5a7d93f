"""Graceful shutdown coordinator for the broker's async tasks."""
import asyncio

import structlog

logger = structlog.get_logger()


class GracefulShutdown:
    """Coordinates shutdown between signal handlers and the broker.

    Attributes:
        is_triggered: Whether shutdown has been triggered.
        reason: What triggered shutdown, once triggered.
        timeout: Seconds the broker may spend closing sessions.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        """Initialize shutdown coordinator.

        Args:
            timeout: Seconds to allow for closing sessions.
        """
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._timeout = timeout

    @property
    def is_triggered(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    @property
    def timeout(self) -> float:
        return self._timeout

    def trigger(self, reason: str = "signal") -> None:
        """Signal all waiting tasks to begin shutdown.

        Idempotent; the first reason wins.

        Args:
            reason: Short description of the trigger.
        """
        if self._event.is_set():
            return
        logger.info("shutdown_triggered", reason=reason)
        self._reason = reason
        self._event.set()

    async def wait_for_trigger(self) -> None:
        """Block until trigger() is called."""
        await self._event.wait()
