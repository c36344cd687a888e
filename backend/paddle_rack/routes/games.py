"""
Game routes: start a game on a court, end it with a score.

Ending a game returns the rotation decision (who leaves the court, who stays,
who is next up from the queue).
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from paddle_rack.database import get_session
from paddle_rack.dependencies import get_queue_engine
from paddle_rack.services.errors import QueueEngineError
from paddle_rack.services.queue_engine import QueueEngine

router = APIRouter()


class StartGameRequest(BaseModel):
    court_id: int
    queue_id: int
    team_a: List[str]
    team_b: List[str]


class EndGameRequest(BaseModel):
    score_a: int = Field(..., ge=0)
    score_b: int = Field(..., ge=0)


class GameResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    court_id: int
    queue_id: int
    facility_id: int
    team_a: List[str]
    team_b: List[str]
    status: str  # in_progress|completed
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    winner: Optional[str] = None


class RotationResponse(BaseModel):
    rotation_type: str  # FULL|PARTIAL
    players_off: List[str]
    players_stay: List[str]
    reason: str
    next_up: List[str]


class EndGameResponse(BaseModel):
    game_id: int
    duration_seconds: int
    winner: str
    score_a: int
    score_b: int
    winning_team: List[str]
    losing_team: List[str]
    winner_consecutive_wins: int
    queue_length: int
    remaining_queue_length: int
    rotation: RotationResponse


@router.post("/games", response_model=GameResponse, status_code=201)
def start_game(
    body: StartGameRequest,
    engine: QueueEngine = Depends(get_queue_engine),
    session: Session = Depends(get_session),
):
    try:
        game = engine.start_game(session, body.court_id, body.queue_id, body.team_a, body.team_b)
    except QueueEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    return GameResponse.model_validate(game)


@router.patch("/games/{game_id}/end", response_model=EndGameResponse)
def end_game(
    game_id: int,
    body: EndGameRequest,
    engine: QueueEngine = Depends(get_queue_engine),
    session: Session = Depends(get_session),
):
    """Record the final score. Tied scores are rejected and the game stays in progress."""
    try:
        result = engine.end_game(session, game_id, body.score_a, body.score_b)
    except QueueEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    return EndGameResponse(**result.to_dict())


@router.get("/games/{game_id}", response_model=GameResponse)
def get_game(
    game_id: int,
    engine: QueueEngine = Depends(get_queue_engine),
    session: Session = Depends(get_session),
):
    try:
        game = engine.get_game(session, game_id)
    except QueueEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    return GameResponse.model_validate(game)
