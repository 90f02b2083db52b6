"""Conversation message models.

A message is an ordered list of parts. Each part is either a text fragment
or an inline image; the union is closed and discriminated by ``kind`` so a
document is validated once at load time and never re-inspected afterwards.
"""

import base64
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_serializer, field_validator


class MessageRole(str, Enum):
    """Message sender role, as understood by the generation API."""

    USER = "user"
    MODEL = "model"


class TextPart(BaseModel):
    """A text fragment."""

    kind: Literal["text"] = "text"
    text: str


class InlineImagePart(BaseModel):
    """An image carried inline. Stored as base64 text in JSON documents."""

    kind: Literal["image"] = "image"
    mime_type: str = "image/png"
    data: bytes

    @field_validator("data", mode="before")
    @classmethod
    def _decode_base64(cls, value: object) -> object:
        if isinstance(value, str):
            return base64.b64decode(value)
        return value

    @field_serializer("data")
    def _encode_base64(self, value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")

    def as_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


Part = Annotated[Union[TextPart, InlineImagePart], Field(discriminator="kind")]


class Message(BaseModel):
    """One entry of a session history."""

    role: MessageRole
    parts: list[Part] = Field(default_factory=list)

    def has_image(self) -> bool:
        return any(isinstance(part, InlineImagePart) for part in self.parts)


class ImageUpload(BaseModel):
    """An image received from the client, before it becomes a part."""

    mime_type: str = "image/png"
    data: bytes
