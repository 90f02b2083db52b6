"""Tests for the SSE relay."""

import asyncio
import json

import pytest

from chatrelay.api.streaming import sse_stream
from chatrelay.chat.registry import SessionRegistry
from chatrelay.chat.turns import TurnController
from chatrelay.models.events import RelayEvent
from chatrelay.models.messages import TextPart

from conftest import FakeGenerator


async def _events(*items: RelayEvent, delay: float = 0.0):
    for item in items:
        if delay:
            await asyncio.sleep(delay)
        yield item


def test_event_encoding() -> None:
    frame = RelayEvent.text("héllo").encode()

    assert frame.startswith("event: text\n")
    assert frame.endswith("\n\n")
    data_line = frame.splitlines()[1]
    assert json.loads(data_line.removeprefix("data: ")) == {"delta": "héllo"}


@pytest.mark.asyncio
async def test_frames_follow_event_order() -> None:
    events = [
        RelayEvent.status("Generating..."),
        RelayEvent.text("a"),
        RelayEvent.image("image/png", "AAAA"),
        RelayEvent.text("b"),
        RelayEvent.done(),
    ]

    frames = [frame async for frame in sse_stream(_events(*events), keepalive=5)]

    assert frames == [event.encode() for event in events]


@pytest.mark.asyncio
async def test_keepalive_pings_while_source_is_quiet() -> None:
    source = _events(RelayEvent.done(), delay=0.05)

    frames = [frame async for frame in sse_stream(source, keepalive=0.01)]

    assert frames[-1] == RelayEvent.done().encode()
    assert any(frame.startswith(": ping") for frame in frames[:-1])


async def _start_blocked_turn(
    controller: TurnController, generator: FakeGenerator
) -> str:
    document = await controller.create_session()
    await controller.accept_message(document.id, text="hello")
    generator.gate = asyncio.Event()
    generator.chunks = [[TextPart(text="never sent")]]
    return document.id


@pytest.mark.asyncio
async def test_client_close_releases_generation_lock(
    controller: TurnController,
    registry: SessionRegistry,
    generator: FakeGenerator,
) -> None:
    session_id = await _start_blocked_turn(controller, generator)
    relay = sse_stream(controller.stream_turn(session_id), keepalive=0.01)

    first = await relay.__anext__()
    second = await relay.__anext__()
    assert first.startswith("event: status")
    assert second.startswith(": ping")
    assert registry.get(session_id).generating is True

    await relay.aclose()

    session = registry.get(session_id)
    assert session.generating is False
    assert len(session.history) == 1
    assert session.turn == 0


@pytest.mark.asyncio
async def test_disconnect_probe_stops_the_stream(
    controller: TurnController,
    registry: SessionRegistry,
    generator: FakeGenerator,
) -> None:
    session_id = await _start_blocked_turn(controller, generator)

    async def disconnected() -> bool:
        return True

    frames = [
        frame
        async for frame in sse_stream(
            controller.stream_turn(session_id),
            keepalive=0.01,
            is_disconnected=disconnected,
        )
    ]

    assert len(frames) == 1
    assert frames[0].startswith("event: status")
    assert registry.get(session_id).generating is False
    assert len(registry.get(session_id).history) == 1
