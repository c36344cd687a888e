"""
Game Ledger: game lifecycle on a court.

- start_game: 2 vs 2, court must be free
- end_game: score must not tie; completes the game, frees the court and
  writes the GameMetric sample used for wait prediction
- consecutive_wins: streak of the same winning pair on a court

Like queue_store, nothing here commits.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlmodel import Session, select

from paddle_rack.models.court import Court
from paddle_rack.models.facility import Facility
from paddle_rack.models.game import GAME_COMPLETED, GAME_IN_PROGRESS, TEAM_A, TEAM_B, Game
from paddle_rack.models.game_metric import GameMetric
from paddle_rack.models.queue import Queue
from paddle_rack.services.errors import (
    AlreadyEnded,
    CourtBusy,
    CourtNotFound,
    GameNotFound,
    InvalidScore,
    InvalidTeamSize,
    QueueNotFound,
    TiedScore,
)
from paddle_rack.utils.clock import to_local, utcnow
from paddle_rack.utils.transactions import compare_and_swap_version

logger = logging.getLogger(__name__)

PLAYERS_PER_TEAM = 2
PLAYERS_PER_GAME = 4


def validate_teams(team_a: Sequence[str], team_b: Sequence[str]) -> None:
    if len(team_a) != PLAYERS_PER_TEAM or len(team_b) != PLAYERS_PER_TEAM:
        raise InvalidTeamSize(
            f"Each team needs exactly {PLAYERS_PER_TEAM} players "
            f"(got {len(team_a)} and {len(team_b)})"
        )
    if len(set(team_a) | set(team_b)) != PLAYERS_PER_GAME:
        raise InvalidTeamSize(f"A game needs {PLAYERS_PER_GAME} distinct players")


def validate_score(score_a: int, score_b: int) -> None:
    if score_a < 0 or score_b < 0:
        raise InvalidScore(f"Scores must be non-negative (got {score_a}-{score_b})")
    if score_a == score_b:
        raise TiedScore(f"Score {score_a}-{score_b} is a tie; games cannot end tied")


def get_game(session: Session, game_id: int) -> Game:
    game = session.exec(
        select(Game).where(Game.id == game_id).execution_options(populate_existing=True)
    ).first()
    if not game:
        raise GameNotFound(f"Game {game_id} not found")
    return game


def _get_court(session: Session, court_id: int) -> Court:
    court = session.exec(
        select(Court).where(Court.id == court_id).execution_options(populate_existing=True)
    ).first()
    if not court:
        raise CourtNotFound(f"Court {court_id} not found")
    return court


def start_game(
    session: Session,
    court_id: int,
    queue_id: int,
    team_a: Sequence[str],
    team_b: Sequence[str],
    started_at: Optional[datetime] = None,
) -> Game:
    """Create an in_progress game and mark the court busy."""
    validate_teams(team_a, team_b)

    court = _get_court(session, court_id)
    if not session.get(Queue, queue_id):
        raise QueueNotFound(f"Queue {queue_id} not found")

    in_progress = session.exec(
        select(Game).where(Game.court_id == court_id, Game.status == GAME_IN_PROGRESS)
    ).first()
    if court.current_game_id is not None or in_progress is not None:
        busy_id = court.current_game_id or in_progress.id
        raise CourtBusy(f"Court {court.name} already has game {busy_id} in progress")

    game = Game(
        court_id=court_id,
        queue_id=queue_id,
        facility_id=court.facility_id,
        team_a=list(team_a),
        team_b=list(team_b),
        status=GAME_IN_PROGRESS,
        started_at=started_at or utcnow(),
    )
    session.add(game)
    session.flush()

    court.current_game_id = game.id
    session.add(court)
    compare_and_swap_version(session, court)
    session.flush()

    logger.info(f"Game {game.id} started on court {court_id}: {list(team_a)} vs {list(team_b)}")
    return game


def end_game(
    session: Session,
    game_id: int,
    score_a: int,
    score_b: int,
    ended_at: Optional[datetime] = None,
) -> Game:
    """Complete a game. Validation happens before anything is written."""
    game = get_game(session, game_id)
    if game.status == GAME_COMPLETED:
        raise AlreadyEnded(f"Game {game_id} already ended")
    validate_score(score_a, score_b)

    ended_at = ended_at or utcnow()
    game.ended_at = ended_at
    game.duration_seconds = max(0, int((ended_at - game.started_at).total_seconds()))
    game.score_a = score_a
    game.score_b = score_b
    game.winner = TEAM_A if score_a > score_b else TEAM_B
    game.status = GAME_COMPLETED
    session.add(game)

    court = _get_court(session, game.court_id)
    if court.current_game_id == game.id:
        court.current_game_id = None
        session.add(court)
    compare_and_swap_version(session, court)

    record_metric(session, game)
    session.flush()

    logger.info(
        f"Game {game_id} ended {score_a}-{score_b} after {game.duration_seconds}s, "
        f"winner {game.winner}"
    )
    return game


def record_metric(session: Session, game: Game) -> GameMetric:
    """Append the duration sample for a completed game (hour/day in facility time)."""
    facility = session.get(Facility, game.facility_id)
    queue = session.get(Queue, game.queue_id)
    local_end = to_local(game.ended_at, facility.timezone if facility else "UTC")

    metric = GameMetric(
        game_id=game.id,
        facility_id=game.facility_id,
        court_id=game.court_id,
        queue_id=game.queue_id,
        skill_level=queue.skill_level if queue else "intermediate",
        duration_seconds=game.duration_seconds,
        hour_of_day=local_end.hour,
        day_of_week=local_end.weekday(),
        created_at=game.ended_at,
    )
    session.add(metric)
    return metric


def consecutive_wins(
    session: Session, player_pair: Sequence[str], court_id: int, lookback: int = 3
) -> int:
    """
    Count back-to-back wins of exactly this pair on this court.

    Scans the newest `lookback` completed games newest-first and stops at the
    first game this pair did not win.
    """
    pair = set(player_pair)
    recent = session.exec(
        select(Game)
        .where(Game.court_id == court_id, Game.status == GAME_COMPLETED)
        .order_by(Game.ended_at.desc(), Game.id.desc())
        .limit(lookback)
    ).all()

    streak = 0
    for game in recent:
        if set(game.winning_team) == pair:
            streak += 1
        else:
            break
    return streak


def active_games(session: Session, facility_id: int) -> List[Game]:
    return list(
        session.exec(
            select(Game)
            .where(Game.facility_id == facility_id, Game.status == GAME_IN_PROGRESS)
            .order_by(Game.started_at)
        ).all()
    )


def recent_games(
    session: Session, facility_id: int, days: int = 7, limit: int = 500
) -> List[Game]:
    cutoff = utcnow() - timedelta(days=days)
    return list(
        session.exec(
            select(Game)
            .where(
                Game.facility_id == facility_id,
                Game.status == GAME_COMPLETED,
                Game.ended_at >= cutoff,
            )
            .order_by(Game.ended_at.desc())
            .limit(limit)
        ).all()
    )
