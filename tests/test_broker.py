"""Broker ingestion loop tests."""

import asyncio

import pytest

from hyprbroker.errors import UpstreamClosedError
from hyprbroker.events.broker import run_broker_loop
from hyprbroker.events.registry import SubscriptionRegistry
from hyprbroker.events.types import Subscription, tag_of


def _reader_with(*lines: str) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data("".join(f"{line}\n" for line in lines).encode("utf-8"))
    reader.feed_eof()
    return reader


@pytest.mark.asyncio
async def test_malformed_lines_are_skipped(registry: SubscriptionRegistry) -> None:
    subscriber = await registry.register(Subscription.all_events())
    reader = _reader_with(
        "workspace>>1",
        "nosuchevent>>x",
        "fullscreen>>300",
        "",
        "workspacev2>>2,two",
        "fullscreen>>1",
    )

    with pytest.raises(UpstreamClosedError):
        await run_broker_loop(reader, registry)

    received = []
    while subscriber.sink.qsize():
        received.append(await subscriber.sink.receive())
    assert [tag_of(e) for e in received] == ["workspace", "workspacev2", "fullscreen"]


@pytest.mark.asyncio
async def test_eof_is_fatal(registry: SubscriptionRegistry) -> None:
    with pytest.raises(UpstreamClosedError):
        await run_broker_loop(_reader_with(), registry)


@pytest.mark.asyncio
async def test_overlong_line_is_skipped(registry: SubscriptionRegistry) -> None:
    subscriber = await registry.register(Subscription.all_events())
    reader = asyncio.StreamReader(limit=64)
    reader.feed_data(b"openlayer>>" + b"x" * 200 + b"\nworkspace>>3\n")
    reader.feed_eof()

    with pytest.raises(UpstreamClosedError):
        await run_broker_loop(reader, registry)

    event = await subscriber.sink.receive()
    assert event is not None
    assert event.data == {"workspace_name": "3"}


@pytest.mark.asyncio
async def test_undecodable_bytes_are_replaced(registry: SubscriptionRegistry) -> None:
    subscriber = await registry.register(Subscription.parse("windowtitlev2"))
    reader = asyncio.StreamReader()
    reader.feed_data(b"windowtitlev2>>0x1,caf\xe9\n")
    reader.feed_eof()

    with pytest.raises(UpstreamClosedError):
        await run_broker_loop(reader, registry)

    event = await subscriber.sink.receive()
    assert event is not None
    assert event.data["window_title"] == "caf\ufffd"


@pytest.mark.asyncio
async def test_overlong_line_arriving_in_chunks_is_skipped_whole(
    registry: SubscriptionRegistry,
) -> None:
    subscriber = await registry.register(Subscription.all_events())
    reader = asyncio.StreamReader(limit=64)
    reader.feed_data(b"windowtitlev2>>0x1," + b"x" * 80)
    loop = asyncio.create_task(run_broker_loop(reader, registry))

    # The limit is hit before the rest of the title arrives.
    await asyncio.sleep(0.05)
    reader.feed_data(b"workspace>>hijacked\n")
    await asyncio.sleep(0.05)
    reader.feed_data(b"workspace>>3\n")
    reader.feed_eof()

    with pytest.raises(UpstreamClosedError):
        await asyncio.wait_for(loop, timeout=2.0)

    received = []
    while subscriber.sink.qsize():
        received.append(await subscriber.sink.receive())
    assert [e.data for e in received] == [{"workspace_name": "3"}]


@pytest.mark.asyncio
async def test_overlong_final_line_reaches_eof(registry: SubscriptionRegistry) -> None:
    reader = asyncio.StreamReader(limit=64)
    reader.feed_data(b"openlayer>>" + b"x" * 200)
    reader.feed_eof()

    with pytest.raises(UpstreamClosedError):
        await asyncio.wait_for(run_broker_loop(reader, registry), timeout=2.0)


@pytest.mark.asyncio
async def test_last_line_without_newline_is_dispatched(
    registry: SubscriptionRegistry,
) -> None:
    subscriber = await registry.register(Subscription.all_events())
    reader = asyncio.StreamReader()
    reader.feed_data(b"workspace>>9")
    reader.feed_eof()

    with pytest.raises(UpstreamClosedError):
        await run_broker_loop(reader, registry)

    event = await subscriber.sink.receive()
    assert event is not None
    assert event.data == {"workspace_name": "9"}
