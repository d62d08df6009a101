"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import board_socket_router, boards_router, moves_router, users_router
from app.config import settings
from app.db import engine
from app.services.board_broadcaster import board_broadcaster
from app.services.board_event_relay import BoardEventRelay

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    relay = None
    if settings.broadcast_relay_enabled:
        relay = BoardEventRelay()
        await relay.connect(board_broadcaster.deliver_local)
        board_broadcaster.relay = relay

    yield

    if relay is not None:
        board_broadcaster.relay = None
        await relay.disconnect()
    await engine.dispose()


app = FastAPI(
    title="Board Service",
    description="Shared boards with concurrent list and card reordering",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware (can't use allow_origins=["*"] with allow_credentials=True)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(boards_router, prefix="/api/v1")
app.include_router(moves_router, prefix="/api/v1")
app.include_router(board_socket_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "board-service",
        "rooms": board_broadcaster.room_count(),
        "relay": board_broadcaster.relay is not None and board_broadcaster.relay.is_connected,
    }


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {
        "service": "Board Service",
        "version": "0.1.0",
        "docs": "/docs",
    }
