from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from skilltracker.models.entities import InstrumentType, PlayerProfile, SkillHistorySnapshot
from skilltracker.services.aggregation import SkillTotals, compute_skill_totals, load_attempts
from skilltracker.services.catalog import find_version_by_name
from skilltracker.services.errors import NotFoundError


@dataclass(frozen=True)
class SkillView:
    user_id: int
    instrument: InstrumentType
    as_of: datetime | None
    totals: SkillTotals
    history: list[SkillHistorySnapshot]


@dataclass(frozen=True)
class RankingEntry:
    rank: int
    user_id: int
    ingame_name: str | None
    title: str | None
    total_skill: float
    instrument: InstrumentType


def get_profile(db: Session, user_id: int) -> PlayerProfile:
    profile = db.get(PlayerProfile, user_id)
    if profile is None:
        raise NotFoundError(f"User not found: {user_id}")
    return profile


def _history_cutoff(db: Session, user_id: int, history_id: int | None) -> datetime | None:
    if history_id is None:
        return None
    snapshot = db.get(SkillHistorySnapshot, history_id)
    if snapshot is None or snapshot.user_id != user_id:
        return None
    return snapshot.recorded_at


def recent_history(db: Session, user_id: int, instrument: InstrumentType, limit: int) -> list[SkillHistorySnapshot]:
    stmt = (
        select(SkillHistorySnapshot)
        .where(SkillHistorySnapshot.user_id == user_id, SkillHistorySnapshot.instrument_type == instrument)
        .order_by(SkillHistorySnapshot.recorded_at.desc(), SkillHistorySnapshot.id.desc())
        .limit(limit)
    )
    return db.execute(stmt).scalars().all()


def build_skill_view(
    db: Session,
    user_id: int,
    instrument: InstrumentType,
    history_id: int | None = None,
    version_name: str | None = None,
    history_limit: int = 100,
) -> SkillView:
    """Rebuild a user's skill board from stored attempts.

    With ``history_id`` the board is rebuilt as it stood when that snapshot
    was recorded; an id that does not belong to the user is ignored.
    """
    get_profile(db, user_id)
    as_of = _history_cutoff(db, user_id, history_id)
    version_id = find_version_by_name(db, version_name).id if version_name else None
    attempts = load_attempts(db, user_id, instrument, as_of=as_of, version_id=version_id)
    return SkillView(
        user_id=user_id,
        instrument=instrument,
        as_of=as_of,
        totals=compute_skill_totals(attempts),
        history=recent_history(db, user_id, instrument, history_limit),
    )


def latest_snapshots(db: Session, instrument: InstrumentType) -> list[SkillHistorySnapshot]:
    """Most recent snapshot per user for ``instrument``, one row each."""
    recency = (
        func.row_number()
        .over(
            partition_by=SkillHistorySnapshot.user_id,
            order_by=(SkillHistorySnapshot.recorded_at.desc(), SkillHistorySnapshot.id.desc()),
        )
        .label("recency")
    )
    ranked = (
        select(SkillHistorySnapshot.id, recency)
        .where(SkillHistorySnapshot.instrument_type == instrument)
        .subquery()
    )
    stmt = (
        select(SkillHistorySnapshot)
        .join(ranked, SkillHistorySnapshot.id == ranked.c.id)
        .where(ranked.c.recency == 1)
    )
    return db.execute(stmt).scalars().all()


def skill_ranking(db: Session, instrument: InstrumentType) -> list[RankingEntry]:
    """Rank users by their most recent snapshot for ``instrument``."""
    scored = [s for s in latest_snapshots(db, instrument) if s.total_skill > 0]
    if not scored:
        return []
    profiles = {
        p.id: p
        for p in db.execute(select(PlayerProfile).where(PlayerProfile.id.in_([s.user_id for s in scored]))).scalars()
    }
    scored.sort(key=lambda s: (-s.total_skill, s.user_id))
    return [
        RankingEntry(
            rank=index,
            user_id=s.user_id,
            ingame_name=profiles[s.user_id].ingame_name,
            title=profiles[s.user_id].title,
            total_skill=s.total_skill,
            instrument=instrument,
        )
        for index, s in enumerate(scored, start=1)
    ]
