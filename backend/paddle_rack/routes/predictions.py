"""Wait-time prediction, game-duration stats and the facility analytics view."""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session

from paddle_rack.database import get_session
from paddle_rack.dependencies import get_queue_engine
from paddle_rack.models.facility import Facility
from paddle_rack.routes.games import GameResponse
from paddle_rack.routes.queues import WaitEstimateResponse
from paddle_rack.services import game_ledger, wait_predictor
from paddle_rack.services.errors import QueueEngineError
from paddle_rack.services.queue_engine import QueueEngine

router = APIRouter()

RECENT_GAMES_SHOWN = 20


class GameStatsResponse(BaseModel):
    total_games: int
    avg_minutes: int
    by_hour: Dict[int, int]
    by_day: Dict[int, int]  # 0=Monday
    period_days: int


class FacilityAnalyticsResponse(BaseModel):
    games: int  # completed in the last `days`
    active_games: List[GameResponse]
    stats: GameStatsResponse
    recent_games: List[GameResponse]  # newest first, at most RECENT_GAMES_SHOWN


@router.get("/predictions/wait-time", response_model=WaitEstimateResponse)
def get_wait_time(
    queue_id: int = Query(...),
    position: Optional[int] = Query(None, description="Omit to estimate for a new joiner"),
    engine: QueueEngine = Depends(get_queue_engine),
    session: Session = Depends(get_session),
):
    try:
        estimate = engine.predict_wait(session, queue_id, position)
    except QueueEngineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    return WaitEstimateResponse.model_validate(estimate)


@router.get("/predictions/stats/{facility_id}", response_model=GameStatsResponse)
def get_game_stats(
    facility_id: int,
    days: int = Query(30, ge=1, le=365),
    session: Session = Depends(get_session),
):
    return GameStatsResponse(**wait_predictor.game_stats(session, facility_id, days=days))


@router.get("/admin/analytics/{facility_id}", response_model=FacilityAnalyticsResponse)
def get_facility_analytics(
    facility_id: int,
    days: Optional[int] = Query(None, ge=1, le=365),
    session: Session = Depends(get_session),
):
    """
    Front-desk overview: games on court right now, games completed over
    `days` (default 7) and duration stats over `days` (default 30).
    """
    if not session.get(Facility, facility_id):
        raise HTTPException(status_code=404, detail="Facility not found")

    recent = game_ledger.recent_games(session, facility_id, days=days or 7)
    stats = wait_predictor.game_stats(session, facility_id, days=days or 30)
    return FacilityAnalyticsResponse(
        games=len(recent),
        active_games=[
            GameResponse.model_validate(g) for g in game_ledger.active_games(session, facility_id)
        ],
        stats=GameStatsResponse(**stats),
        recent_games=[GameResponse.model_validate(g) for g in recent[:RECENT_GAMES_SHOWN]],
    )
