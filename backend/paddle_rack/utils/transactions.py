"""
Transaction runner with optimistic-concurrency retries.

Every mutating engine operation is a unit of work `work(session) -> result`:
read state, compute, write. The runner commits once at the end. Lost races
(version compare-and-swap misses, unique-constraint collisions, locked databases)
roll back and re-run the whole unit against fresh state.
"""

import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import Session, SQLModel

from paddle_rack.services.errors import StaleWriteError, TransientStoreError
from paddle_rack.utils.clock import utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (StaleWriteError, IntegrityError, OperationalError)


def run_in_transaction(session: Session, work: Callable[[Session], T], attempts: int = 3) -> T:
    """
    Run `work` inside a single transaction, retrying on contention.

    Domain errors (validation, conflict, not-found) roll back and propagate
    immediately. Contention errors are retried up to `attempts` times, then
    surface as TransientStoreError.
    """
    last_error: Optional[Exception] = None
    for attempt in range(1, max(1, attempts) + 1):
        try:
            result = work(session)
            session.commit()
            return result
        except RETRYABLE_ERRORS as e:
            session.rollback()
            last_error = e
            logger.warning(f"Transaction conflict on attempt {attempt}/{attempts}: {e}")
        except Exception:
            session.rollback()
            raise

    raise TransientStoreError(
        f"Transaction failed after {attempts} attempts: {last_error}"
    ) from last_error


def compare_and_swap_version(session: Session, instance: SQLModel) -> int:
    """
    Bump `instance.version` only if nobody else has since the instance was read.

    Returns the new version. Raises StaleWriteError when the row moved.
    """
    model = type(instance)
    row_id = instance.id
    expected_version = instance.version

    values = {"version": expected_version + 1}
    if hasattr(model, "updated_at"):
        values["updated_at"] = utcnow()

    result = session.execute(
        update(model)
        .where(model.id == row_id, model.version == expected_version)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise StaleWriteError(
            f"{model.__name__} {row_id} changed concurrently (expected version {expected_version})"
        )
    # Keep the loaded instance in step without marking it dirty
    set_committed_value(instance, "version", expected_version + 1)
    return expected_version + 1
