"""Pytest configuration and fixtures."""

import asyncio
import contextlib
import os
import shutil
import sys
import tempfile
from collections.abc import AsyncIterator, Callable, Iterator
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
import structlog

from hyprbroker.config import Settings
from hyprbroker.events.registry import SubscriptionRegistry


class FakeHyprland:
    """Unix socket server standing in for Hyprland's event socket."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.connected = asyncio.Event()
        self.disconnected = asyncio.Event()
        self._writers: list[asyncio.StreamWriter] = []
        self._server: asyncio.Server | None = None

    async def start(self) -> None:
        self._server = await asyncio.start_unix_server(self._on_connect, path=str(self.path))

    async def _on_connect(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        self._writers.append(writer)
        self.connected.set()
        with contextlib.suppress(ConnectionError, OSError):
            await reader.read()
        self.disconnected.set()

    async def send(self, *lines: str) -> None:
        payload = "".join(f"{line}\n" for line in lines).encode("utf-8")
        for writer in self._writers:
            writer.write(payload)
            await writer.drain()

    async def hang_up(self) -> None:
        for writer in self._writers:
            writer.close()
            with contextlib.suppress(ConnectionError, OSError):
                await writer.wait_closed()
        self._writers.clear()

    async def stop(self) -> None:
        await self.hang_up()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate holds, failing the test on timeout."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


@pytest.fixture(autouse=True)
def captured_logs() -> Iterator[list[dict]]:
    """Capture structlog entries so stdout stays clean for client output."""
    with structlog.testing.capture_logs() as entries:
        yield entries


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep the user's config file and HYPRBROKER_* variables out of tests."""
    for name in list(os.environ):
        if name.upper().startswith("HYPRBROKER_"):
            monkeypatch.delenv(name)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))


@pytest.fixture
def sock_dir() -> Iterator[Path]:
    """Short temporary directory for Unix socket paths."""
    path = Path(tempfile.mkdtemp(prefix="hb-", dir="/tmp"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def settings(sock_dir: Path) -> Settings:
    """Create test settings with sockets under sock_dir."""
    return Settings(
        client_socket_path=str(sock_dir / "broker.sock"),
        event_socket_path=str(sock_dir / "socket2.sock"),
        request_socket_path=str(sock_dir / "socket.sock"),
        queue_size=16,
        debug=True,
    )


@pytest.fixture
def registry() -> SubscriptionRegistry:
    return SubscriptionRegistry(queue_size=16)


@pytest.fixture
async def fake_hyprland(sock_dir: Path) -> AsyncIterator[FakeHyprland]:
    """Running fake event socket at sock_dir/socket2.sock."""
    server = FakeHyprland(sock_dir / "socket2.sock")
    await server.start()
    yield server
    await server.stop()
