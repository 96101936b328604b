from datetime import datetime

from celery.utils.log import get_task_logger
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from skilltracker.celery_app import celery_app
from skilltracker.db.session import SessionLocal
from skilltracker.models.entities import InstrumentType, ScoreAttempt, SkillHistorySnapshot
from skilltracker.services.aggregation import recompute_snapshots
from skilltracker.services.ingest import batch_timestamp
from skilltracker.services.skill_view import get_profile

logger = get_task_logger(__name__)


def _played_instruments(db: Session, user_id: int) -> list[InstrumentType]:
    rows = db.execute(
        select(ScoreAttempt.instrument_type).where(ScoreAttempt.user_id == user_id).distinct()
    ).scalars().all()
    return [i for i in InstrumentType if i in set(rows)]


def recompute_user_history_sync(
    db: Session, user_id: int, instruments: list[str] | None = None, now: datetime | None = None
) -> list[SkillHistorySnapshot]:
    """Append a snapshot per instrument reflecting everything stored up to now."""
    get_profile(db, user_id)
    targets = [InstrumentType(i) for i in instruments] if instruments else _played_instruments(db, user_id)
    snapshots = recompute_snapshots(db, user_id, targets, batch_timestamp(now))
    logger.info("Recomputed %s snapshots for user %s", len(snapshots), user_id)
    return snapshots


@celery_app.task(bind=True, autoretry_for=(OperationalError,), retry_backoff=5, retry_kwargs={"max_retries": 3})
def recompute_skill_history_task(self, user_id: int, instruments: list[str] | None = None):
    db = SessionLocal()
    try:
        snapshots = recompute_user_history_sync(db, user_id, instruments)
        return {"status": "ok", "user_id": user_id, "snapshot_ids": [s.id for s in snapshots]}
    finally:
        db.close()
