"""End-to-end tests for the HTTP endpoints."""

import base64
import json

import pytest
from httpx import AsyncClient

from chatrelay.models.messages import InlineImagePart, TextPart

from conftest import PNG_BYTES, FakeGenerator


def parse_sse(body: str) -> list[tuple[str, dict]]:
    """Split an SSE body into (event, data) pairs, ignoring comments."""
    events = []
    for frame in body.split("\n\n"):
        name, data = None, None
        for line in frame.splitlines():
            if line.startswith("event: "):
                name = line.removeprefix("event: ")
            elif line.startswith("data: "):
                data = json.loads(line.removeprefix("data: "))
        if name is not None:
            events.append((name, data))
    return events


async def _create(client: AsyncClient) -> str:
    response = await client.post("/api/sessions")
    assert response.status_code == 200
    return response.json()["session_id"]


@pytest.mark.asyncio
async def test_full_turn_over_http(
    client: AsyncClient, generator: FakeGenerator
) -> None:
    session_id = await _create(client)
    generator.chunks = [
        [TextPart(text="Here's a cat")],
        [InlineImagePart(mime_type="image/png", data=PNG_BYTES)],
    ]

    accepted = await client.post(
        "/api/messages", data={"session_id": session_id, "text": "draw a cat"}
    )
    assert accepted.status_code == 200
    assert accepted.json() == {"session_id": session_id, "turn": 1}

    stream = await client.get(f"/api/stream/sessions/{session_id}")
    assert stream.status_code == 200
    assert stream.headers["content-type"].startswith("text/event-stream")

    events = parse_sse(stream.text)
    assert [name for name, _ in events] == ["status", "text", "image", "done"]
    assert events[1][1] == {"delta": "Here's a cat"}
    assert base64.b64decode(events[2][1]["data"]) == PNG_BYTES

    document = (await client.get(f"/api/sessions/{session_id}")).json()
    assert document["title"] == "draw a cat"
    assert [m["role"] for m in document["history"]] == ["user", "model"]

    listing = (await client.get("/api/sessions")).json()["items"]
    assert listing[0]["id"] == session_id
    assert listing[0]["turns"] == 1


@pytest.mark.asyncio
async def test_upload_images(client: AsyncClient, generator: FakeGenerator) -> None:
    session_id = await _create(client)

    response = await client.post(
        "/api/messages",
        data={"session_id": session_id},
        files=[
            ("image", ("a.png", PNG_BYTES, "image/png")),
            ("image", ("b.png", PNG_BYTES, "image/png")),
        ],
    )

    assert response.status_code == 200
    generator.chunks = [[TextPart(text="two nice pictures")]]
    await client.get(f"/api/stream/sessions/{session_id}")
    assert generator.calls[0][1] == ["IMAGE", "TEXT"]
    document = (await client.get(f"/api/sessions/{session_id}")).json()
    assert document["title"] == "2 images"


@pytest.mark.asyncio
async def test_empty_message_is_400(client: AsyncClient) -> None:
    session_id = await _create(client)

    response = await client.post(
        "/api/messages", data={"session_id": session_id, "text": "   "}
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_message_to_unknown_session_is_404(client: AsyncClient) -> None:
    response = await client.post(
        "/api/messages", data={"session_id": "nope", "text": "hi"}
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_stream_unknown_session_sends_error_event(client: AsyncClient) -> None:
    response = await client.get("/api/stream/sessions/nope")

    assert parse_sse(response.text) == [("error", {"message": "Invalid sessionId"})]


@pytest.mark.asyncio
async def test_upstream_error_is_streamed(
    client: AsyncClient, generator: FakeGenerator
) -> None:
    session_id = await _create(client)
    await client.post("/api/messages", data={"session_id": session_id, "text": "hi"})
    generator.chunks = [[TextPart(text="half")]]
    generator.error = RuntimeError("quota exceeded")

    response = await client.get(f"/api/stream/sessions/{session_id}")

    events = parse_sse(response.text)
    assert [name for name, _ in events] == ["status", "text", "error"]
    assert events[-1][1]["message"] == "quota exceeded"
    document = (await client.get(f"/api/sessions/{session_id}")).json()
    assert document["history"] == []


@pytest.mark.asyncio
async def test_rename_delete_flow(client: AsyncClient) -> None:
    session_id = await _create(client)

    renamed = await client.post(
        f"/api/sessions/{session_id}/rename", json={"title": "Holiday pics"}
    )
    assert renamed.json() == {"ok": True, "title": "Holiday pics"}

    blank = await client.post(f"/api/sessions/{session_id}/rename", json={"title": ""})
    assert blank.status_code == 400

    first = await client.delete(f"/api/sessions/{session_id}")
    second = await client.delete(f"/api/sessions/{session_id}")
    assert first.json() == {"ok": True}
    assert second.status_code == 200

    missing = await client.get(f"/api/sessions/{session_id}")
    assert missing.status_code == 404

    renamed_missing = await client.post(
        f"/api/sessions/{session_id}/rename", json={"title": "x"}
    )
    assert renamed_missing.status_code == 404
