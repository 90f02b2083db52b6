"""Shared test fixtures for the chat relay."""

import asyncio
from collections.abc import AsyncGenerator, AsyncIterator, Sequence
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from chatrelay.chat.registry import SessionRegistry
from chatrelay.chat.turns import TurnController
from chatrelay.dependencies import get_turn_controller
from chatrelay.main import app
from chatrelay.models.events import RelayEvent
from chatrelay.models.messages import Message, Part
from chatrelay.storage.artifacts import ArtifactStore
from chatrelay.storage.sessions import SessionRepository

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class FakeGenerator:
    """Scripted stand-in for the remote model.

    Yields ``chunks`` in order, optionally waiting on ``gate`` before each,
    then raises ``error`` if one is set. ``closed`` records that the stream
    was finalized, whether exhausted or closed early.
    """

    def __init__(self) -> None:
        self.chunks: list[list[Part]] = []
        self.error: Optional[BaseException] = None
        self.gate: Optional[asyncio.Event] = None
        self.calls: list[tuple[list[Message], list[str]]] = []
        self.closed = False

    async def stream(
        self, history: Sequence[Message], modalities: Sequence[str]
    ) -> AsyncIterator[list[Part]]:
        self.calls.append((list(history), list(modalities)))
        try:
            for chunk in self.chunks:
                if self.gate is not None:
                    await self.gate.wait()
                yield chunk
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


async def collect(events: AsyncIterator[RelayEvent]) -> list[RelayEvent]:
    return [event async for event in events]


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def repository(tmp_path) -> SessionRepository:
    return SessionRepository(tmp_path / "data" / "sessions")


@pytest.fixture
def artifacts(tmp_path) -> ArtifactStore:
    return ArtifactStore(tmp_path / "artifacts")


@pytest.fixture
def controller(
    registry: SessionRegistry,
    repository: SessionRepository,
    artifacts: ArtifactStore,
    generator: FakeGenerator,
) -> TurnController:
    return TurnController(registry, repository, artifacts, generator)


@pytest_asyncio.fixture
async def client(controller: TurnController) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    app.dependency_overrides[get_turn_controller] = lambda: controller
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
