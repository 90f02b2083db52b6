"""Health check endpoint for infrastructure monitoring."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from chatrelay.config import Settings, get_settings

router = APIRouter()


@router.get("")
async def health_check(
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Liveness probe. Reports whether a generation key is configured."""
    return {
        "status": "ok",
        "model": settings.genai_model,
        "api_key_configured": bool(settings.gemini_api_key),
    }
