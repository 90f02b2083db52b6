"""Server-Sent Events relay with keep-alive.

``sse_stream`` turns an async iterator of :class:`RelayEvent` into SSE
frames. While the source is quiet it emits comment pings so proxies do not
drop the idle connection. When the client goes away the pending read is
cancelled and the source is closed, which is what releases the session's
generation lock in the turn controller.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

from fastapi.responses import StreamingResponse

from chatrelay.models.events import RelayEvent, ping_frame

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable buffering for nginx
}


async def _next_event(iterator: AsyncIterator[RelayEvent]) -> RelayEvent:
    return await iterator.__anext__()


async def sse_stream(
    events: AsyncIterator[RelayEvent],
    *,
    keepalive: float = 15.0,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
) -> AsyncIterator[str]:
    """Yield SSE frames for ``events`` in order, with pings in between.

    Args:
        events: Source of relay events; closed when this generator ends.
        keepalive: Seconds of silence before a ping frame is sent.
        is_disconnected: Optional probe, checked on every keep-alive tick.
    """
    iterator = events.__aiter__()
    pending: Optional[asyncio.Task[RelayEvent]] = None
    try:
        while True:
            if pending is None:
                pending = asyncio.create_task(_next_event(iterator))

            done, _ = await asyncio.wait({pending}, timeout=keepalive)
            if not done:
                if is_disconnected is not None and await is_disconnected():
                    logger.info("Client disconnected, aborting stream")
                    break
                yield ping_frame()
                continue

            task, pending = pending, None
            try:
                event = task.result()
            except StopAsyncIteration:
                break
            yield event.encode()
    finally:
        if pending is not None:
            pending.cancel()
            with contextlib.suppress(asyncio.CancelledError, StopAsyncIteration):
                await pending
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()


def sse_response(
    events: AsyncIterator[RelayEvent],
    *,
    keepalive: float = 15.0,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
) -> StreamingResponse:
    """Wrap ``events`` in a ``text/event-stream`` response."""
    return StreamingResponse(
        sse_stream(events, keepalive=keepalive, is_disconnected=is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
