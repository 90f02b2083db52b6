"""Local file system store for image artifacts.

Input images and generated images are written next to each other in one
directory. Names are chosen by the caller; ``artifact_name`` builds the
collision-resistant ones used by the turn controller.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from pathlib import Path

from chatrelay.exceptions import ArtifactError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "png"

# mimetypes has several candidates for these; pin the common ones
_PREFERRED_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


def extension_for(mime_type: str | None) -> str:
    """Return a file extension (without dot) for a MIME type."""
    if not mime_type:
        return DEFAULT_EXTENSION
    normalized = mime_type.split(";", 1)[0].strip().lower()
    if normalized in _PREFERRED_EXTENSIONS:
        return _PREFERRED_EXTENSIONS[normalized]
    guessed = mimetypes.guess_extension(normalized)
    if not guessed:
        return DEFAULT_EXTENSION
    return guessed.lstrip(".")


def artifact_name(
    session_id: str,
    source: str,
    turn: int,
    index: int,
    mime_type: str | None,
) -> str:
    """Build ``session-{id}-{source}-{turn}-{index}.{ext}``.

    Args:
        session_id: Owning session.
        source: ``"user"`` for uploads, ``"assistant"`` for generated images.
        turn: Turn number the image belongs to (1-based).
        index: Position of the image within that turn.
        mime_type: Used to pick the extension.
    """
    return f"session-{session_id}-{source}-{turn}-{index}.{extension_for(mime_type)}"


class ArtifactStore:
    """Writes binary blobs under a single base directory."""

    def __init__(self, base_path: Path | str) -> None:
        self.base_path = Path(base_path)

    async def save(self, name: str, data: bytes) -> Path:
        """Write ``data`` as ``name``, overwriting any existing file."""
        try:
            return await asyncio.to_thread(self._write, name, data)
        except OSError as exc:
            raise ArtifactError(f"Failed to save artifact {name}: {exc}") from exc

    def _write(self, name: str, data: bytes) -> Path:
        self.base_path.mkdir(parents=True, exist_ok=True)
        file_path = self.base_path / Path(name).name
        file_path.write_bytes(data)
        logger.debug("Artifact written: %s (%d bytes)", file_path, len(data))
        return file_path
