"""Relay events sent from the server to the client over SSE."""

import json
import time
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """SSE event name discriminator."""

    STATUS = "status"
    TEXT = "text"
    IMAGE = "image"
    ERROR = "error"
    DONE = "done"


class RelayEvent(BaseModel):
    """One server-to-client notification."""

    event: EventType
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def status(cls, message: str) -> "RelayEvent":
        return cls(event=EventType.STATUS, data={"message": message})

    @classmethod
    def text(cls, delta: str) -> "RelayEvent":
        return cls(event=EventType.TEXT, data={"delta": delta})

    @classmethod
    def image(cls, mime_type: str, data: str) -> "RelayEvent":
        return cls(event=EventType.IMAGE, data={"mime_type": mime_type, "data": data})

    @classmethod
    def error(cls, message: str) -> "RelayEvent":
        return cls(event=EventType.ERROR, data={"message": message})

    @classmethod
    def done(cls, **data: Any) -> "RelayEvent":
        return cls(event=EventType.DONE, data=data)

    def encode(self) -> str:
        """Serialize as an SSE frame."""
        payload = json.dumps(self.data, ensure_ascii=False)
        return f"event: {self.event.value}\ndata: {payload}\n\n"


def ping_frame() -> str:
    """SSE comment frame used as keep-alive; ignored by EventSource clients."""
    return f": ping {int(time.time() * 1000)}\n\n"
