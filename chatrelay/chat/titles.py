"""Session title derivation."""

from __future__ import annotations

import re
from datetime import datetime

TITLE_MAX_LENGTH = 30
ELLIPSIS = "…"

_WHITESPACE = re.compile(r"\s+")


def default_title(now: datetime | None = None) -> str:
    """Timestamp label used when nothing better is known."""
    now = now or datetime.now()
    return f"Chat {now.strftime('%Y-%m-%d %H:%M:%S')}"


def derive_title(
    text: str | None,
    image_count: int = 0,
    now: datetime | None = None,
) -> str:
    """Derive a title from a session's first user message.

    Text wins over images: it is collapsed to a single line and capped at
    ``TITLE_MAX_LENGTH`` characters, with an ellipsis when cut.
    """
    if text and text.strip():
        one_line = _WHITESPACE.sub(" ", text).strip()
        if len(one_line) > TITLE_MAX_LENGTH:
            return one_line[:TITLE_MAX_LENGTH] + ELLIPSIS
        return one_line
    if image_count > 0:
        return f"{image_count} image" if image_count == 1 else f"{image_count} images"
    return default_title(now)
