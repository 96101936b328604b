import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from skilltracker.models.entities import InstrumentType, ScoreAttempt, SkillHistorySnapshot
from skilltracker.services.errors import AggregationError
from skilltracker.services.locks import aggregation_lock

logger = logging.getLogger(__name__)

# best 25 hot charts + best 25 other charts make up total skill in-game
SKILL_POOL_SIZE = 25


@dataclass(frozen=True)
class SkillTotals:
    hot_skill: float
    other_skill: float
    total_skill: float
    hot_records: list[ScoreAttempt]
    other_records: list[ScoreAttempt]


def chart_key(attempt: ScoreAttempt) -> tuple:
    return (attempt.song_title, attempt.instrument_type, attempt.difficulty, attempt.is_hot)


def latest_per_chart(attempts: Iterable[ScoreAttempt]) -> list[ScoreAttempt]:
    """Keep the most recently played attempt for each chart and pool.

    Recency wins over score: a later report supersedes an earlier one even
    when it is lower. Equal played_at falls back to the later insert (id).
    """
    latest: dict[tuple, ScoreAttempt] = {}
    for attempt in attempts:
        key = chart_key(attempt)
        current = latest.get(key)
        if current is None or (attempt.played_at, attempt.id) > (current.played_at, current.id):
            latest[key] = attempt
    return list(latest.values())


def top_pool(attempts: Iterable[ScoreAttempt], hot: bool) -> list[ScoreAttempt]:
    pool = [a for a in attempts if a.is_hot is hot]
    pool.sort(key=lambda a: (-a.skill_score, a.id))
    return pool[:SKILL_POOL_SIZE]


def compute_skill_totals(attempts: Iterable[ScoreAttempt]) -> SkillTotals:
    latest = latest_per_chart(attempts)
    hot_records = top_pool(latest, hot=True)
    other_records = top_pool(latest, hot=False)
    hot_skill = sum(a.skill_score for a in hot_records)
    other_skill = sum(a.skill_score for a in other_records)
    return SkillTotals(
        hot_skill=hot_skill,
        other_skill=other_skill,
        total_skill=hot_skill + other_skill,
        hot_records=hot_records,
        other_records=other_records,
    )


def load_attempts(
    db: Session,
    user_id: int,
    instrument: InstrumentType,
    as_of: datetime | None = None,
    version_id: int | None = None,
) -> list[ScoreAttempt]:
    stmt = select(ScoreAttempt).where(ScoreAttempt.user_id == user_id, ScoreAttempt.instrument_type == instrument)
    if as_of is not None:
        stmt = stmt.where(ScoreAttempt.played_at <= as_of)
    if version_id is not None:
        stmt = stmt.where(ScoreAttempt.version_id == version_id)
    return db.execute(stmt.order_by(ScoreAttempt.played_at, ScoreAttempt.id)).scalars().all()


def record_skill_snapshot(
    db: Session, user_id: int, instrument: InstrumentType, as_of: datetime
) -> SkillHistorySnapshot:
    """Append a snapshot of the user's skill for ``instrument`` as known at ``as_of``."""
    try:
        with aggregation_lock(db, user_id, instrument):
            totals = compute_skill_totals(load_attempts(db, user_id, instrument, as_of=as_of))
            snapshot = SkillHistorySnapshot(
                user_id=user_id,
                instrument_type=instrument,
                hot_skill=totals.hot_skill,
                other_skill=totals.other_skill,
                total_skill=totals.total_skill,
                recorded_at=as_of,
            )
            db.add(snapshot)
            db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise AggregationError(f"snapshot for user {user_id} {instrument.value} failed") from exc
    db.refresh(snapshot)
    return snapshot


def recompute_snapshots(
    db: Session, user_id: int, instruments: Iterable[InstrumentType], as_of: datetime
) -> list[SkillHistorySnapshot]:
    snapshots: list[SkillHistorySnapshot] = []
    for instrument in instruments:
        try:
            snapshots.append(record_skill_snapshot(db, user_id, instrument, as_of))
        except AggregationError:
            logger.exception("Skill history creation failed for user %s instrument %s", user_id, instrument.value)
    return snapshots
