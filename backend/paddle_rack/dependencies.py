"""FastAPI dependencies for collaborators built once at startup (see main.on_startup)."""

from typing import Callable, Optional

from fastapi import Header, HTTPException, Request
from sqlmodel import Session

from paddle_rack.services.queue_engine import QueueEngine


def get_queue_engine(request: Request) -> QueueEngine:
    engine = getattr(request.app.state, "queue_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Queue engine not initialized")
    return engine


def get_session_factory(request: Request) -> Callable[[], Session]:
    """Short-lived sessions for long-running readers (the queue stream)."""
    factory = getattr(request.app.state, "session_factory", None)
    if factory is None:
        raise HTTPException(status_code=503, detail="Database not initialized")
    return factory


def get_player_id(x_player_id: Optional[str] = Header(default=None)) -> str:
    """Identity verified upstream; we only require that it is present."""
    if not x_player_id or not x_player_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-Player-Id header")
    return x_player_id.strip()
