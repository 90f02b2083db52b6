"""
Custom exceptions for the chat relay.
"""

from typing import Any, Optional


class RelayError(Exception):
    """Base exception for chatrelay."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class InvalidInputError(RelayError):
    """Submitted message or request body is empty or malformed."""

    pass


class ConflictError(RelayError):
    """A generation is already in flight for the session."""

    pass


class NotFoundError(RelayError):
    """Session not found."""

    pass


class UpstreamError(RelayError):
    """The remote generation call failed or is not configured."""

    pass


class PersistenceError(RelayError):
    """Writing a session document failed."""

    pass


class ArtifactError(RelayError):
    """Writing an image artifact failed."""

    pass
