"""JSON file session repository: one document per session.

The repository is the system of record for conversations. Each session is
stored as ``{sessions_dir}/{session_id}.json``::

    {
        "id": "V1StGXR8_Z",
        "title": "draw a cat",
        "created_at": "2026-02-08T10:30:00Z",
        "updated_at": "2026-02-08T11:00:00Z",
        "history": [
            {"role": "user", "parts": [{"kind": "text", "text": "draw a cat"}]},
            {
                "role": "model",
                "parts": [
                    {"kind": "text", "text": "Here's a cat"},
                    {"kind": "image", "mime_type": "image/png", "data": "iVBORw0..."}
                ]
            }
        ]
    }

Image parts are embedded as base64, so documents can grow large.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import tempfile
from pathlib import Path

from pydantic import ValidationError

from chatrelay.exceptions import NotFoundError, PersistenceError
from chatrelay.models.sessions import SessionDocument, SessionListItem, utcnow

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class SessionRepository:
    """CRUD over session documents stored as JSON files.

    Blocking file I/O is pushed to a worker thread so the event loop only
    suspends on it.
    """

    def __init__(self, sessions_dir: Path | str) -> None:
        self.sessions_dir = Path(sessions_dir)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ensure(self) -> None:
        """Create the sessions directory if needed."""
        await asyncio.to_thread(self.sessions_dir.mkdir, parents=True, exist_ok=True)

    async def create(self, session_id: str, title: str) -> SessionDocument:
        """Write a fresh, empty document. Overwrites an existing one."""
        now = utcnow()
        document = SessionDocument(
            id=session_id, title=title, created_at=now, updated_at=now, history=[]
        )
        await asyncio.to_thread(self._write, document)
        return document

    async def load(self, session_id: str) -> SessionDocument:
        """Return the stored document.

        Raises:
            NotFoundError: No readable document exists for ``session_id``.
        """
        path = self._path(session_id)
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError as exc:
            raise NotFoundError(f"Session {session_id} not found") from exc
        except OSError as exc:
            raise NotFoundError(
                f"Session {session_id} could not be read", details=str(exc)
            ) from exc

        try:
            return SessionDocument.model_validate_json(raw)
        except ValidationError as exc:
            raise NotFoundError(
                f"Session {session_id} is corrupt", details=str(exc)
            ) from exc

    async def save(self, document: SessionDocument) -> SessionDocument:
        """Overwrite the stored document, refreshing ``updated_at``."""
        document.updated_at = utcnow()
        await asyncio.to_thread(self._write, document)
        return document

    async def rename(self, session_id: str, title: str) -> SessionDocument:
        document = await self.load(session_id)
        document.title = title
        return await self.save(document)

    async def remove(self, session_id: str) -> None:
        """Delete the document. Missing documents are ignored."""
        try:
            path = self._path(session_id)
        except NotFoundError:
            return
        await asyncio.to_thread(path.unlink, missing_ok=True)

    async def list(self) -> list[SessionListItem]:
        """Return summaries of all readable documents, most recent first."""
        await self.ensure()
        return await asyncio.to_thread(self._list_sync)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _path(self, session_id: str) -> Path:
        if not SESSION_ID_PATTERN.match(session_id or ""):
            raise NotFoundError(f"Session {session_id!r} not found")
        return self.sessions_dir / f"{session_id}.json"

    def _write(self, document: SessionDocument) -> None:
        path = self._path(document.id)
        try:
            self.sessions_dir.mkdir(parents=True, exist_ok=True)
            # Write-then-rename keeps the previous document intact on failure
            fd, tmp_name = tempfile.mkstemp(
                dir=self.sessions_dir, prefix=f".{document.id}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(document.model_dump_json(indent=2))
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(
                f"Failed to write session {document.id}: {exc}"
            ) from exc

    def _list_sync(self) -> list[SessionListItem]:
        items: list[SessionListItem] = []
        for path in self.sessions_dir.glob("*.json"):
            try:
                document = SessionDocument.model_validate_json(
                    path.read_text(encoding="utf-8")
                )
            except (OSError, ValidationError) as exc:
                logger.warning("Skipping unreadable session file %s: %s", path.name, exc)
                continue
            items.append(document.summary())

        items.sort(key=lambda item: item.updated_at, reverse=True)
        return items
