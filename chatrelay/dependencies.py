"""Dependency injection providers for FastAPI."""

from chatrelay.agent.generator import GeminiGenerator
from chatrelay.chat.registry import SessionRegistry
from chatrelay.chat.turns import TurnController
from chatrelay.config import settings
from chatrelay.storage.artifacts import ArtifactStore
from chatrelay.storage.sessions import SessionRepository

# Process-scoped singletons; the event loop is single-threaded
_registry: SessionRegistry | None = None
_repository: SessionRepository | None = None
_artifact_store: ArtifactStore | None = None
_generator: GeminiGenerator | None = None
_turn_controller: TurnController | None = None


def get_registry() -> SessionRegistry:
    """Return singleton SessionRegistry instance."""
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


def get_repository() -> SessionRepository:
    """Return singleton SessionRepository instance."""
    global _repository
    if _repository is None:
        _repository = SessionRepository(settings.sessions_dir)
    return _repository


def get_artifact_store() -> ArtifactStore:
    """Return singleton ArtifactStore instance."""
    global _artifact_store
    if _artifact_store is None:
        _artifact_store = ArtifactStore(settings.artifact_dir)
    return _artifact_store


def get_generator() -> GeminiGenerator:
    """Return singleton GeminiGenerator instance."""
    global _generator
    if _generator is None:
        _generator = GeminiGenerator(settings)
    return _generator


def get_turn_controller() -> TurnController:
    """Return singleton TurnController wired to the other singletons."""
    global _turn_controller
    if _turn_controller is None:
        _turn_controller = TurnController(
            get_registry(),
            get_repository(),
            get_artifact_store(),
            get_generator(),
            image_output=settings.image_output,
            max_title_length=settings.max_title_length,
        )
    return _turn_controller
