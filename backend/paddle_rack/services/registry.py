"""
Facility/Court registry lookups (read-only).

Facilities, courts and queues are provisioned outside the engine; these
helpers only read the court-to-queue mapping and active-court counts.
"""

from typing import List

from sqlmodel import Session, func, select

from paddle_rack.models.court import Court


def court_ids_for_queue(session: Session, queue_id: int) -> List[int]:
    """All courts fed by this queue, active or not (history still counts)."""
    return list(session.exec(select(Court.id).where(Court.queue_id == queue_id)).all())


def active_court_count(session: Session, queue_id: int) -> int:
    return session.exec(
        select(func.count(Court.id)).where(Court.queue_id == queue_id, Court.is_active == True)  # noqa: E712
    ).one()
