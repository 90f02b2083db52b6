"""Chat endpoints: submit a user message, then stream the model's reply."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import StreamingResponse

from chatrelay.api.streaming import sse_response
from chatrelay.chat.turns import TurnController
from chatrelay.config import Settings, get_settings
from chatrelay.dependencies import get_turn_controller
from chatrelay.exceptions import ConflictError, InvalidInputError, NotFoundError
from chatrelay.models.messages import ImageUpload
from chatrelay.models.sessions import MessageAccepted

router = APIRouter()

DEFAULT_UPLOAD_MIME = "image/png"


@router.post("/messages", response_model=MessageAccepted)
async def post_message(
    session_id: str = Form(...),
    text: Optional[str] = Form(None),
    image: Optional[list[UploadFile]] = File(None),
    controller: TurnController = Depends(get_turn_controller),
    settings: Settings = Depends(get_settings),
) -> MessageAccepted:
    """Accept a user message (text and/or images) for the next turn.

    Multipart fields:
        session_id: Target session.
        text: Optional message text.
        image: Zero or more image files.

    Returns the turn number to correlate with the stream request.
    """
    files = [upload for upload in image or [] if upload is not None]
    if len(files) > settings.max_upload_images:
        raise HTTPException(
            status_code=400,
            detail=f"At most {settings.max_upload_images} images per message",
        )

    uploads = [
        ImageUpload(
            mime_type=upload.content_type or DEFAULT_UPLOAD_MIME,
            data=await upload.read(),
        )
        for upload in files
    ]

    try:
        turn = await controller.accept_message(session_id, text, uploads)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Invalid sessionId")
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=exc.message)

    return MessageAccepted(session_id=session_id, turn=turn)


@router.get("/stream/sessions/{session_id}")
async def stream_session(
    session_id: str,
    request: Request,
    controller: TurnController = Depends(get_turn_controller),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    """Stream the reply to the pending message as Server-Sent Events.

    Events: ``status``, ``text`` (``delta``), ``image`` (``mime_type``,
    base64 ``data``), then ``done`` or ``error``.
    """
    return sse_response(
        controller.stream_turn(session_id),
        keepalive=settings.keepalive_seconds,
        is_disconnected=request.is_disconnected,
    )
