"""Session management endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from chatrelay.chat.turns import TurnController
from chatrelay.dependencies import get_turn_controller
from chatrelay.exceptions import InvalidInputError, NotFoundError
from chatrelay.models.sessions import (
    RenameRequest,
    RenameResponse,
    SessionCreated,
    SessionDocument,
    SessionListResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=SessionCreated)
async def create_session(
    controller: TurnController = Depends(get_turn_controller),
) -> SessionCreated:
    """Start a new, empty conversation."""
    document = await controller.create_session()
    return SessionCreated(session_id=document.id, title=document.title)


@router.get("", response_model=SessionListResponse)
async def list_sessions(
    controller: TurnController = Depends(get_turn_controller),
) -> SessionListResponse:
    """Return all sessions, most recently active first."""
    return SessionListResponse(items=await controller.list_sessions())


@router.get("/{session_id}", response_model=SessionDocument)
async def get_session(
    session_id: str,
    controller: TurnController = Depends(get_turn_controller),
) -> SessionDocument:
    """Return the full session document.

    Also loads the session into memory so it can be continued.
    """
    try:
        return await controller.load_session(session_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")


@router.post("/{session_id}/rename", response_model=RenameResponse)
async def rename_session(
    session_id: str,
    body: RenameRequest,
    controller: TurnController = Depends(get_turn_controller),
) -> RenameResponse:
    try:
        document = await controller.rename_session(session_id, body.title)
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    return RenameResponse(title=document.title)


@router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    controller: TurnController = Depends(get_turn_controller),
) -> dict[str, bool]:
    """Delete a session and its history. Deleting twice is not an error."""
    await controller.delete_session(session_id)
    return {"ok": True}
