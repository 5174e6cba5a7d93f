"""Snapshot queries against Hyprland's request socket."""
import asyncio
import contextlib
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from hyprbroker.errors import QueryError

logger = structlog.get_logger()


class WorkspaceRef(BaseModel):
    """Workspace reference embedded in a client entry."""

    id: int
    name: str


class Workspace(BaseModel):
    """Workspace as reported by ``j/workspaces``.

    Attributes:
        id: Workspace id; special workspaces are negative.
        name: Workspace name.
        monitor: Monitor the workspace lives on.
        monitor_id: Numeric monitor id.
        windows: Number of windows on the workspace.
        has_fullscreen: Whether a window is fullscreen there.
        last_window: Address of the last focused window.
        last_window_title: Title of the last focused window.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    monitor: str | None = None
    monitor_id: int | None = Field(default=None, alias="monitorID")
    windows: int | None = None
    has_fullscreen: bool | None = Field(default=None, alias="hasfullscreen")
    last_window: str | None = Field(default=None, alias="lastwindow")
    last_window_title: str | None = Field(default=None, alias="lastwindowtitle")


class WindowClient(BaseModel):
    """Window as reported by ``j/clients`` and ``j/activewindow``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    address: str
    mapped: bool = True
    hidden: bool = False
    at: tuple[int, int] = (0, 0)
    size: tuple[int, int] = (0, 0)
    workspace: WorkspaceRef
    floating: bool = False
    pseudo: bool = False
    monitor: int = 0
    window_class: str = Field(default="", alias="class")
    title: str = ""
    initial_class: str = ""
    initial_title: str = ""
    pid: int = 0
    xwayland: bool = False
    pinned: bool = False
    fullscreen: int = 0
    fullscreen_client: int = 0
    grouped: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    swallowing: str = ""
    focus_history_id: int = Field(default=0, alias="focusHistoryID")
    inhibiting_idle: bool = False


_CLIENTS = TypeAdapter(list[WindowClient])
_WORKSPACES = TypeAdapter(list[Workspace])


async def query(command: str, socket_path: str | Path) -> str:
    """Send one JSON request to Hyprland and read the full reply.

    Hyprland answers one request per connection and closes it afterwards.

    Args:
        command: Request name without the ``j/`` prefix, e.g. ``clients``.
        socket_path: Path of the request socket (``.socket.sock``).

    Returns:
        Raw response text.

    Raises:
        OSError: If the socket cannot be reached.
    """
    request = f"j/{command}"
    logger.debug("query_sent", request=request, path=str(socket_path))

    reader, writer = await asyncio.open_unix_connection(str(socket_path))
    try:
        writer.write(request.encode("utf-8"))
        await writer.drain()
        response = await reader.read()
    finally:
        writer.close()
        with contextlib.suppress(ConnectionError, OSError):
            await writer.wait_closed()

    return response.decode("utf-8", errors="replace")


async def _query_json(
    command: str,
    socket_path: str | Path,
    model: type[BaseModel] | TypeAdapter[Any],
) -> Any:
    response = await query(command, socket_path)
    try:
        if isinstance(model, TypeAdapter):
            return model.validate_json(response)
        return model.model_validate_json(response)
    except ValidationError as e:
        raise QueryError(f"Unexpected response to j/{command}: {e}") from e


async def query_clients(socket_path: str | Path) -> dict[str, WindowClient]:
    """Fetch all windows keyed by address.

    Args:
        socket_path: Path of the request socket.

    Returns:
        Mapping of window address (``0x...``) to window.
    """
    clients = await _query_json("clients", socket_path, _CLIENTS)
    return {client.address: client for client in clients}


async def query_active_client(socket_path: str | Path) -> WindowClient:
    return await _query_json("activewindow", socket_path, WindowClient)


async def query_workspaces(socket_path: str | Path) -> list[Workspace]:
    """Fetch all workspaces, sorted by id."""
    workspaces = await _query_json("workspaces", socket_path, _WORKSPACES)
    return sorted(workspaces, key=lambda w: w.id)


async def query_active_workspace(socket_path: str | Path) -> Workspace:
    return await _query_json("activeworkspace", socket_path, Workspace)
