"""Session models for conversation management."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from chatrelay.models.messages import Message, MessageRole


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionDocument(BaseModel):
    """Durable session: metadata plus the full message history."""

    id: str
    title: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    history: list[Message] = Field(default_factory=list)

    @property
    def turns(self) -> int:
        return sum(1 for message in self.history if message.role == MessageRole.MODEL)

    def summary(self) -> "SessionListItem":
        return SessionListItem(
            id=self.id,
            title=self.title,
            created_at=self.created_at,
            updated_at=self.updated_at,
            turns=self.turns,
        )


class SessionListItem(BaseModel):
    """Summary of a session for list views."""

    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    turns: int = 0


class SessionListResponse(BaseModel):
    """Response for listing sessions."""

    items: list[SessionListItem]


class SessionCreated(BaseModel):
    session_id: str
    title: str


class RenameRequest(BaseModel):
    title: str = ""


class RenameResponse(BaseModel):
    ok: bool = True
    title: str


class MessageAccepted(BaseModel):
    """Returned by the message endpoint; ``turn`` correlates with the stream."""

    session_id: str
    turn: int
