"""Watchers that turn broker events into fresh Hyprland snapshots.

A watcher subscribes to the events that can change one piece of compositor
state, keeps a cached snapshot of it and re-queries the request socket
only when an event cannot be applied from the cache.
"""
import contextlib
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import structlog

from hyprbroker.client import subscribe
from hyprbroker.errors import QueryError
from hyprbroker.events.types import EventTag, HyprEvent, Subscription
from hyprbroker.query import (
    WindowClient,
    Workspace,
    query_active_client,
    query_active_workspace,
    query_clients,
    query_workspaces,
)

logger = structlog.get_logger()


class Watcher:
    """Base class for snapshot watchers.

    Attributes:
        tags: Events the watcher subscribes to.
        socket_path: Hyprland request socket used for re-queries.
    """

    tags: tuple[EventTag, ...] = ()

    def __init__(self, socket_path: str | Path) -> None:
        self.socket_path = socket_path

    @property
    def subscription(self) -> Subscription:
        return Subscription(tags=frozenset(tag.value for tag in self.tags))

    async def refresh(self) -> None:
        """Reload the cached snapshot from the request socket."""
        raise NotImplementedError

    async def handle(self, event: HyprEvent) -> Any:
        """Apply one event and return the snapshot to report, if any."""
        raise NotImplementedError


class ActiveWindowWatcher(Watcher):
    """Reports the focused window whenever window state may have changed.

    ``activewindowv2`` is answered from the cached client list, which is
    reloaded once when the address is not in it. Every other event reloads
    the clients and asks Hyprland for the active window.

    Attributes:
        clients: Last known windows keyed by address.
    """

    tags = (
        EventTag.ACTIVE_WINDOW_V2,
        EventTag.FULLSCREEN,
        EventTag.CLOSE_WINDOW,
        EventTag.MOVE_WINDOW,
        EventTag.CHANGE_FLOATING_MODE,
        EventTag.MOVE_INTO_GROUP,
        EventTag.MOVE_OUT_OF_GROUP,
        EventTag.TOGGLE_GROUP,
        EventTag.PIN,
        EventTag.WINDOW_TITLE,
    )

    def __init__(self, socket_path: str | Path) -> None:
        super().__init__(socket_path)
        self.clients: dict[str, WindowClient] = {}

    async def refresh(self) -> None:
        self.clients = await query_clients(self.socket_path)

    async def handle(self, event: HyprEvent) -> dict[str, Any] | None:
        if event.tag is EventTag.ACTIVE_WINDOW_V2:
            raw_address = event.data["window_address"]
            if not raw_address:
                # Focus moved to an empty workspace.
                return None
            client = await self._find(f"0x{raw_address}")
        else:
            await self.refresh()
            try:
                client = await query_active_client(self.socket_path)
            except QueryError:
                logger.debug("no_active_window", tag=event.tag.value)
                return None

        if client is None:
            return None
        return client.model_dump(by_alias=True)

    async def _find(self, address: str) -> WindowClient | None:
        client = self.clients.get(address)
        if client is None:
            await self.refresh()
            client = self.clients.get(address)
        if client is None:
            logger.warning("window_not_found", address=address)
        return client


class WorkspacesWatcher(Watcher):
    """Reports all workspaces, sorted by id, with the focused one marked.

    Focus changes (``workspacev2``, ``focusedmonv2``) only move the marker.
    Any other workspace event reloads the list and the active workspace.

    Attributes:
        workspaces: Last known workspaces, sorted by id.
        active_id: Id of the focused workspace, None before the first refresh.
    """

    tags = (
        EventTag.WORKSPACE_V2,
        EventTag.FOCUSED_MON_V2,
        EventTag.CREATE_WORKSPACE_V2,
        EventTag.DESTROY_WORKSPACE_V2,
        EventTag.MOVE_WORKSPACE_V2,
        EventTag.RENAME_WORKSPACE,
        EventTag.ACTIVE_SPECIAL,
    )

    def __init__(self, socket_path: str | Path) -> None:
        super().__init__(socket_path)
        self.workspaces: list[Workspace] = []
        self.active_id: int | None = None

    async def refresh(self) -> None:
        self.workspaces = await query_workspaces(self.socket_path)
        self.active_id = (await query_active_workspace(self.socket_path)).id

    async def handle(self, event: HyprEvent) -> list[dict[str, Any]]:
        if event.tag in (EventTag.WORKSPACE_V2, EventTag.FOCUSED_MON_V2):
            self.active_id = event.data["workspace_id"]
        else:
            await self.refresh()
        return self.render()

    def render(self) -> list[dict[str, Any]]:
        return [
            {**workspace.model_dump(by_alias=True), "active": workspace.id == self.active_id}
            for workspace in self.workspaces
        ]


async def run_watcher(watcher: Watcher, broker_path: str | Path) -> AsyncIterator[Any]:
    """Subscribe for a watcher's events and yield each snapshot it reports.

    Args:
        watcher: Watcher to drive.
        broker_path: Broker listen socket.

    Yields:
        Snapshots, until the broker closes the connection.

    Raises:
        OSError: If the broker or the request socket cannot be reached.
        QueryError: If a re-query returns an unusable response.
    """
    await watcher.refresh()
    events = subscribe(broker_path, str(watcher.subscription))
    async with contextlib.aclosing(events):
        async for event in events:
            snapshot = await watcher.handle(event)
            if snapshot is not None:
                yield snapshot
