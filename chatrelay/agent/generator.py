"""Remote content generation backed by the Google GenAI SDK.

The turn controller only depends on the :class:`ContentGenerator` protocol:
given the ordered history and the requested response modalities, produce an
async stream of chunks, each a list of parts. :class:`GeminiGenerator` is the
production implementation.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Protocol, Sequence

from google import genai
from google.genai import types

from chatrelay.config import Settings
from chatrelay.exceptions import UpstreamError
from chatrelay.models.messages import InlineImagePart, Message, Part, TextPart

logger = logging.getLogger(__name__)


class ContentGenerator(Protocol):
    """Anything that can stream a model reply for a history."""

    def stream(
        self,
        history: Sequence[Message],
        modalities: Sequence[str],
    ) -> AsyncIterator[list[Part]]: ...


def to_content(message: Message) -> types.Content:
    """Convert a history message to the SDK's ``Content``."""
    parts: list[types.Part] = []
    for part in message.parts:
        if isinstance(part, InlineImagePart):
            parts.append(
                types.Part(
                    inline_data=types.Blob(mime_type=part.mime_type, data=part.data)
                )
            )
        else:
            parts.append(types.Part(text=part.text))
    return types.Content(role=message.role.value, parts=parts)


def from_chunk(chunk: types.GenerateContentResponse) -> list[Part]:
    """Extract text and inline image parts from one streamed chunk."""
    candidates = chunk.candidates or []
    if not candidates or candidates[0].content is None:
        return []

    parts: list[Part] = []
    for part in candidates[0].content.parts or []:
        if part.inline_data is not None and part.inline_data.data:
            parts.append(
                InlineImagePart(
                    mime_type=part.inline_data.mime_type or "image/png",
                    data=part.inline_data.data,
                )
            )
        elif part.text:
            parts.append(TextPart(text=part.text))
    return parts


class GeminiGenerator:
    """Streams replies from a Gemini model."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.gemini_api_key
        self._model = settings.genai_model
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if not self._api_key:
            raise UpstreamError("GEMINI_API_KEY is not set")
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
            logger.info("GenAI client initialised with model=%s", self._model)
        return self._client

    async def stream(
        self,
        history: Sequence[Message],
        modalities: Sequence[str],
    ) -> AsyncIterator[list[Part]]:
        """Yield the parts of each chunk as the model produces them.

        Args:
            history: The entire ordered conversation, ending with the user
                message to answer.
            modalities: Requested response modalities, e.g. ``["TEXT"]``.
        """
        client = self._get_client()
        config = types.GenerateContentConfig(response_modalities=list(modalities))
        contents = [to_content(message) for message in history]

        try:
            response = await client.aio.models.generate_content_stream(
                model=self._model,
                contents=contents,
                config=config,
            )
            async for chunk in response:
                yield from_chunk(chunk)
        except UpstreamError:
            raise
        except Exception as exc:
            raise UpstreamError(f"Generation failed: {exc}") from exc
