"""Turn controller: session lifecycle and the streaming generation turn.

A turn is a user message followed by one model reply. Accepting the message
and streaming the reply are two separate calls so the HTTP layer can upload
images with one request and keep an SSE connection open with another.

Per session, generation is single-writer: ``ChatSession.generating`` is set
for exactly the duration of one ``stream_turn`` and any other attempt to
submit or stream while it is set is rejected, never queued.
"""

from __future__ import annotations

import logging
import secrets
from contextlib import aclosing
from typing import AsyncIterator, Awaitable, Sequence

from chatrelay.agent.generator import ContentGenerator
from chatrelay.chat.registry import ChatSession, SessionRegistry
from chatrelay.chat.titles import default_title, derive_title
from chatrelay.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    RelayError,
)
from chatrelay.models.events import RelayEvent
from chatrelay.models.messages import (
    ImageUpload,
    InlineImagePart,
    Message,
    MessageRole,
    Part,
    TextPart,
)
from chatrelay.models.sessions import SessionDocument, SessionListItem
from chatrelay.storage.artifacts import ArtifactStore, artifact_name
from chatrelay.storage.sessions import SessionRepository

logger = logging.getLogger(__name__)

IMAGE_AND_TEXT = ["IMAGE", "TEXT"]
TEXT_ONLY = ["TEXT"]


def response_modalities(history: Sequence[Message], policy: str = "auto") -> list[str]:
    """Pick the response modalities to request.

    With ``auto`` images are requested only when the latest user message
    contains one. This is a heuristic about what the model is being asked
    to do, not something the generation API requires.
    """
    if policy == "always":
        return list(IMAGE_AND_TEXT)
    if policy == "never":
        return list(TEXT_ONLY)

    for message in reversed(history):
        if message.role == MessageRole.USER:
            return list(IMAGE_AND_TEXT) if message.has_image() else list(TEXT_ONLY)
    return list(TEXT_ONLY)


def new_session_id() -> str:
    return secrets.token_urlsafe(8)[:10]


async def _best_effort(action: Awaitable[object], what: str, session_id: str) -> bool:
    """Await a non-critical side effect, logging instead of raising.

    Used for writes whose failure must never abort the user-visible flow:
    image artifacts, auto-naming and the post-turn document save.
    """
    try:
        await action
    except Exception as exc:
        logger.warning("%s failed for session %s: %s", what, session_id, exc)
        return False
    return True


class TurnController:
    """Owns every mutation of live sessions.

    Lifecycle:
        controller = TurnController(registry, repository, artifacts, generator)
        session = await controller.create_session()
        turn = await controller.accept_message(session.id, text="hi")
        async for event in controller.stream_turn(session.id):
            ...
    """

    def __init__(
        self,
        registry: SessionRegistry,
        repository: SessionRepository,
        artifacts: ArtifactStore,
        generator: ContentGenerator,
        *,
        image_output: str = "auto",
        max_title_length: int = 200,
    ) -> None:
        self._registry = registry
        self._repository = repository
        self._artifacts = artifacts
        self._generator = generator
        self._image_output = image_output
        self._max_title_length = max_title_length

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def create_session(self) -> SessionDocument:
        session_id = new_session_id()
        document = await self._repository.create(session_id, default_title())
        self._registry.put(
            ChatSession(
                id=session_id, title=document.title, created_at=document.created_at
            )
        )
        logger.info("Session created: session_id=%s", session_id)
        return document

    async def list_sessions(self) -> list[SessionListItem]:
        return await self._repository.list()

    async def load_session(self, session_id: str) -> SessionDocument:
        """Return the stored document and warm the registry from it."""
        document = await self._repository.load(session_id)
        self._registry.warm(document)
        return document

    async def rename_session(self, session_id: str, title: str) -> SessionDocument:
        title = (title or "").strip()[: self._max_title_length]
        if not title:
            raise InvalidInputError("Title must not be empty")
        session = await self.get_live(session_id)
        async with session.write_lock:
            document = await self._repository.rename(session_id, title)
            session.title = document.title
        logger.info("Session renamed: session_id=%s", session_id)
        return document

    async def delete_session(self, session_id: str) -> None:
        self._registry.evict(session_id)
        await self._repository.remove(session_id)
        logger.info("Session deleted: session_id=%s", session_id)

    async def get_live(self, session_id: str) -> ChatSession:
        """Return the live session, loading it from disk on first access.

        Raises:
            NotFoundError: Unknown in memory and on disk.
        """
        session = self._registry.get(session_id)
        if session is not None:
            return session
        document = await self._repository.load(session_id)
        return self._registry.warm(document)

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def accept_message(
        self,
        session_id: str,
        text: str | None = None,
        images: Sequence[ImageUpload] = (),
    ) -> int:
        """Append a user message to the live history.

        Returns:
            The turn number the upcoming stream will answer.

        Raises:
            NotFoundError: Unknown session.
            InvalidInputError: No text and no images.
            ConflictError: A generation is in flight for the session.
        """
        session = await self.get_live(session_id)
        text = (text or "").strip()
        if not text and not images:
            raise InvalidInputError("Empty message")
        if session.generating:
            raise ConflictError("Generation in progress, please wait")

        turn = session.turn + 1
        parts: list[Part] = []
        if text:
            parts.append(TextPart(text=text))
        for index, image in enumerate(images):
            name = artifact_name(session_id, "user", turn, index, image.mime_type)
            await _best_effort(
                self._artifacts.save(name, image.data), "Saving uploaded image", session_id
            )
            parts.append(InlineImagePart(mime_type=image.mime_type, data=image.data))

        # The artifact writes above suspend; a stream may have started meanwhile.
        if session.generating:
            raise ConflictError("Generation in progress, please wait")

        session.history.append(Message(role=MessageRole.USER, parts=parts))
        logger.info(
            "Message received: session_id=%s turn=%d images=%d has_text=%s mime_types=%s",
            session_id,
            turn,
            len(images),
            bool(text),
            [image.mime_type for image in images],
        )

        if session.turn == 0:
            title = derive_title(text, len(images))
            session.title = title
            async with session.write_lock:
                if await _best_effort(
                    self._repository.rename(session_id, title), "Auto-naming", session_id
                ):
                    logger.info(
                        "Session auto-named: session_id=%s title=%r", session_id, title
                    )

        return turn

    async def stream_turn(self, session_id: str) -> AsyncIterator[RelayEvent]:
        """Generate the model reply for the pending user message.

        Yields relay events ending in exactly one ``done`` or ``error``. The
        reply is committed to history and to disk only when the upstream
        stream is exhausted; closing this generator early discards it.
        """
        try:
            session = await self.get_live(session_id)
        except NotFoundError:
            yield RelayEvent.error("Invalid sessionId")
            return
        if session.generating:
            yield RelayEvent.error("Already generating")
            return
        if not session.awaiting_reply:
            yield RelayEvent.error("No pending message to answer")
            return

        session.generating = True
        turn = session.turn + 1
        out_images = 0
        out_text_chars = 0
        try:
            yield RelayEvent.status("Generating...")

            modalities = response_modalities(session.history, self._image_output)
            logger.info(
                "Stream start: session_id=%s turn=%d modalities=%s",
                session_id,
                turn,
                modalities,
            )

            accumulated: list[Part] = []
            async with aclosing(
                self._generator.stream(list(session.history), modalities)
            ) as chunks:
                async for chunk in chunks:
                    for part in chunk:
                        if isinstance(part, InlineImagePart):
                            yield RelayEvent.image(part.mime_type, part.as_base64())
                            name = artifact_name(
                                session_id, "assistant", turn, out_images, part.mime_type
                            )
                            out_images += 1
                            await _best_effort(
                                self._artifacts.save(name, part.data),
                                "Saving generated image",
                                session_id,
                            )
                            accumulated.append(part)
                        elif part.text:
                            yield RelayEvent.text(part.text)
                            out_text_chars += len(part.text)
                            accumulated.append(TextPart(text=part.text))

            session.history.append(Message(role=MessageRole.MODEL, parts=accumulated))
            session.turn = turn
            await _best_effort(self._commit(session), "Saving session", session_id)

            logger.info(
                "Stream end: session_id=%s turn=%d images=%d text_chars=%d",
                session_id,
                turn,
                out_images,
                out_text_chars,
            )
            yield RelayEvent.done(turn=turn)
        except Exception as exc:
            logger.exception("Stream error: session_id=%s turn=%d", session_id, turn)
            message = exc.message if isinstance(exc, RelayError) else str(exc)
            yield RelayEvent.error(message or "Generation failed")
        finally:
            session.generating = False

    async def _commit(self, session: ChatSession) -> None:
        """Write the live session back as the stored document."""
        if self._registry.get(session.id) is not session:
            logger.info("Session %s was deleted during generation, not saving", session.id)
            return
        async with session.write_lock:
            await self._repository.save(session.to_document())
