"""Runtime configuration read from the environment (and an optional .env file)."""

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./paddle_rack.db"
    sql_echo: bool = False
    log_level: str = "INFO"

    # Rotation policy
    rotation_threshold: int = 8  # 8+ waiting: all 4 rotate off
    max_consecutive_wins: int = 3  # winners limited to 3 straight games

    # Wait prediction
    min_samples: int = 10
    court_efficiency: float = 0.7
    metric_retention_days: int = 90

    # Store
    transaction_attempts: int = 3

    # Collaborators
    webhook_timeout_seconds: float = 5.0
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from_number: str = ""
    cors_origins: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            sql_echo=_env_bool("SQL_ECHO"),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            rotation_threshold=int(os.getenv("ROTATION_THRESHOLD", cls.rotation_threshold)),
            max_consecutive_wins=int(os.getenv("MAX_CONSECUTIVE_WINS", cls.max_consecutive_wins)),
            min_samples=int(os.getenv("MIN_SAMPLES", cls.min_samples)),
            court_efficiency=float(os.getenv("COURT_EFFICIENCY", cls.court_efficiency)),
            metric_retention_days=int(os.getenv("METRIC_RETENTION_DAYS", cls.metric_retention_days)),
            transaction_attempts=int(os.getenv("TRANSACTION_ATTEMPTS", cls.transaction_attempts)),
            webhook_timeout_seconds=float(
                os.getenv("WEBHOOK_TIMEOUT_SECONDS", cls.webhook_timeout_seconds)
            ),
            twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID", ""),
            twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN", ""),
            twilio_from_number=os.getenv("TWILIO_FROM_NUMBER", ""),
            cors_origins=_env_list("CORS_ORIGINS"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings are read once per process."""
    return Settings.from_env()
