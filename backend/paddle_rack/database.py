from pathlib import Path
from typing import Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from paddle_rack.config import get_settings

_settings = get_settings()
DATABASE_URL = _settings.database_url

_is_sqlite = DATABASE_URL.startswith("sqlite")
_connect_args = {"check_same_thread": False} if _is_sqlite else {}

if _is_sqlite and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.replace("sqlite:///", "", 1)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine: Engine = create_engine(
    DATABASE_URL,
    echo=_settings.sql_echo,
    connect_args=_connect_args,
)


def get_session() -> Generator[Session, None, None]:
    """Get database session"""
    with Session(engine) as session:
        yield session


def init_db(bind: Engine = engine) -> None:
    """Initialize database - create all tables"""
    # Import all models to ensure they're registered with SQLModel metadata
    from paddle_rack.models.court import Court  # noqa: F401
    from paddle_rack.models.facility import Facility  # noqa: F401
    from paddle_rack.models.game import Game  # noqa: F401
    from paddle_rack.models.game_metric import GameMetric  # noqa: F401
    from paddle_rack.models.notification_log import NotificationLog  # noqa: F401
    from paddle_rack.models.player_contact import PlayerContact  # noqa: F401
    from paddle_rack.models.queue import Queue, QueueEntry  # noqa: F401
    from paddle_rack.models.webhook import Webhook, WebhookDelivery  # noqa: F401

    SQLModel.metadata.create_all(bind)
