"""Queue routes: join, leave, status and a Server-Sent Events stream of snapshots."""

import json
from datetime import datetime
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session

from paddle_rack.database import get_session
from paddle_rack.dependencies import get_player_id, get_queue_engine, get_session_factory
from paddle_rack.services.errors import QueueEngineError
from paddle_rack.services.queue_engine import QueueEngine
from paddle_rack.services.queue_store import QueueSnapshot

router = APIRouter()


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class JoinQueueRequest(BaseModel):
    display_name: Optional[str] = None


class WaitEstimateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    minutes: int
    raw_minutes: float
    games_until_turn: int
    players_per_rotation: int
    average_game_minutes: float
    effective_courts: float
    confidence: str  # low|medium|high
    source: str
    sample_count: int


class JoinQueueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    queue_id: int
    player_id: str
    position: int
    queue_length: int
    estimate: WaitEstimateResponse


class LeaveQueueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    ok: bool
    queue_id: int
    player_id: str
    previous_position: int
    queue_length: int


class QueueEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: str
    display_name: str
    position: int
    joined_at: datetime
    notified_tier: Optional[str] = None


class QueueStatusResponse(BaseModel):
    queue_id: int
    facility_id: int
    name: str
    skill_level: str
    version: int
    player_count: int
    entries: List[QueueEntryResponse]


def _status_response(snapshot: QueueSnapshot) -> QueueStatusResponse:
    return QueueStatusResponse(
        queue_id=snapshot.queue_id,
        facility_id=snapshot.facility_id,
        name=snapshot.name,
        skill_level=snapshot.skill_level,
        version=snapshot.version,
        player_count=snapshot.player_count,
        entries=[QueueEntryResponse.model_validate(e) for e in snapshot.entries],
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/queues/{queue_id}/join", response_model=JoinQueueResponse, status_code=201)
def join_queue(
    queue_id: int,
    body: Optional[JoinQueueRequest] = None,
    player_id: str = Depends(get_player_id),
    engine: QueueEngine = Depends(get_queue_engine),
    session: Session = Depends(get_session),
):
    """Append the calling player to the tail of the queue."""
    display_name = body.display_name if body else None
    try:
        result = engine.join_queue(session, queue_id, player_id, display_name)
    except QueueEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    return JoinQueueResponse.model_validate(result)


@router.delete("/queues/{queue_id}/leave", response_model=LeaveQueueResponse)
def leave_queue(
    queue_id: int,
    player_id: str = Depends(get_player_id),
    engine: QueueEngine = Depends(get_queue_engine),
    session: Session = Depends(get_session),
):
    try:
        result = engine.leave_queue(session, queue_id, player_id)
    except QueueEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    return LeaveQueueResponse.model_validate(result)


@router.get("/queues/{queue_id}", response_model=QueueStatusResponse)
def get_queue_status(
    queue_id: int,
    engine: QueueEngine = Depends(get_queue_engine),
    session: Session = Depends(get_session),
):
    try:
        snapshot = engine.queue_status(session, queue_id)
    except QueueEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    return _status_response(snapshot)


@router.get("/queues/{queue_id}/stream")
def stream_queue(
    queue_id: int,
    poll_interval: float = Query(1.0, gt=0, le=30),
    max_polls: Optional[int] = Query(None, ge=1),
    engine: QueueEngine = Depends(get_queue_engine),
    session: Session = Depends(get_session),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
):
    """
    Server-Sent Events: one `snapshot` event per queue version change.

    `max_polls` bounds the stream (mostly for tests and kiosk refresh loops).
    """
    try:
        engine.queue_status(session, queue_id)
    except QueueEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    def event_source():
        for snapshot in engine.subscribe(session_factory, queue_id, poll_interval, max_polls):
            payload = _status_response(snapshot).model_dump(mode="json")
            yield f"event: snapshot\ndata: {json.dumps(payload)}\n\n"

    return StreamingResponse(
        event_source(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
