"""Storage module - JSON session documents and image artifacts on local disk."""

from .artifacts import ArtifactStore
from .sessions import SessionRepository

__all__ = ["ArtifactStore", "SessionRepository"]
