"""In-memory registry of live chat sessions.

The registry is a cache over the session repository. It owns the state
that never reaches disk (the ``generating`` flag and the document write
lock) and the turn counter, and is warmed from a document the first time a
session is touched.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from chatrelay.models.messages import Message, MessageRole
from chatrelay.models.sessions import SessionDocument, utcnow

logger = logging.getLogger(__name__)


@dataclass
class ChatSession:
    """Live handle for one conversation.

    ``title`` and ``created_at`` mirror the document so a commit can write
    it back without reading it first. ``write_lock`` serializes document
    writes for the session; ``generating`` alone guards generation.
    """

    id: str
    title: str = ""
    created_at: datetime = field(default_factory=utcnow)
    history: list[Message] = field(default_factory=list)
    generating: bool = False
    turn: int = 0
    write_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @classmethod
    def from_document(cls, document: SessionDocument) -> "ChatSession":
        return cls(
            id=document.id,
            title=document.title,
            created_at=document.created_at,
            history=list(document.history),
            turn=document.turns,
        )

    def to_document(self) -> SessionDocument:
        return SessionDocument(
            id=self.id,
            title=self.title,
            created_at=self.created_at,
            history=list(self.history),
        )

    @property
    def awaiting_reply(self) -> bool:
        return bool(self.history) and self.history[-1].role == MessageRole.USER


class SessionRegistry:
    """Process-scoped mapping of session id to :class:`ChatSession`."""

    def __init__(self) -> None:
        self._sessions: dict[str, ChatSession] = {}

    def get(self, session_id: str) -> ChatSession | None:
        return self._sessions.get(session_id)

    def put(self, session: ChatSession) -> ChatSession:
        self._sessions[session.id] = session
        return session

    def warm(self, document: SessionDocument) -> ChatSession:
        """Return the live entry, building it from ``document`` if absent.

        An existing entry always wins: it may hold a pending user message or
        a turn whose save failed, and the document is behind it.
        """
        current = self._sessions.get(document.id)
        if current is not None:
            return current
        logger.debug("Warming session %s from disk", document.id)
        return self.put(ChatSession.from_document(document))

    def evict(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
