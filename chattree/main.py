"""chattree FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chattree.config import load_settings
from chattree.conversations.router import get_conversation_service
from chattree.conversations.router import router as conversations_router
from chattree.conversations.service import ConversationService

settings = load_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Wire the conversation service for the lifetime of the app."""
    service = ConversationService(history_limit=settings.history_limit)
    app.dependency_overrides[get_conversation_service] = lambda: service
    logger.info("chattree started (history limit %d)", settings.history_limit)
    yield
    app.dependency_overrides.pop(get_conversation_service, None)


app = FastAPI(
    title="chattree",
    description="Branching conversation store: every edit and regeneration kept as an alternative",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(conversations_router)


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}


if __name__ == "__main__":
    uvicorn.run("chattree.main:app", host=settings.host, port=settings.port)
