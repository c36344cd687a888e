import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo so everything is stored naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_local(ts: datetime, tz_name: str) -> datetime:
    """Convert a naive-UTC timestamp to facility-local wall time."""
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{tz_name}', using UTC")
        tz = timezone.utc
    return ts.replace(tzinfo=timezone.utc).astimezone(tz)
