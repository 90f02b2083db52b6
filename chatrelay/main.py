"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatrelay.api.router import api_router
from chatrelay.config import settings
from chatrelay.dependencies import get_artifact_store, get_repository

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    logger.info("Starting chat relay...")

    await get_repository().ensure()
    logger.info(
        "Session store ready at %s, artifacts at %s",
        settings.sessions_dir,
        get_artifact_store().base_path,
    )
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; streams will fail until it is")

    yield

    logger.info("Chat relay shut down cleanly")


app = FastAPI(
    title="Chat Relay API",
    description="Multi-turn text and image chat with Gemini, streamed over SSE",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount API routes
app.include_router(api_router, prefix="/api")

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
