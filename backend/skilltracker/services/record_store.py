import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from skilltracker.models.entities import InstrumentType, ScoreAttempt
from skilltracker.services.errors import StorageError
from skilltracker.services.validation import AcceptedRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageFailure:
    item: AcceptedRecord
    error: StorageError


@dataclass
class StoreResult:
    created: list[ScoreAttempt] = field(default_factory=list)
    failures: list[StorageFailure] = field(default_factory=list)

    @property
    def instruments(self) -> list[InstrumentType]:
        return list(dict.fromkeys(attempt.instrument_type for attempt in self.created))


def _insert_attempt(db: Session, user_id: int, version_id: int, item: AcceptedRecord) -> ScoreAttempt:
    record = item.record
    attempt = ScoreAttempt(
        user_id=user_id,
        song_title=record.song_title,
        instrument_type=record.instrument_type,
        difficulty=record.difficulty,
        achievement=record.achievement,
        skill_score=record.skill_score,
        level=record.level,
        is_hot=record.is_hot,
        version_id=version_id,
        played_at=record.played_at,
    )
    try:
        db.add(attempt)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError(str(exc.orig) if getattr(exc, "orig", None) else str(exc)) from exc
    db.refresh(attempt)
    return attempt


def store_attempts(db: Session, user_id: int, version_id: int, items: list[AcceptedRecord]) -> StoreResult:
    """Append every accepted record as a new attempt row.

    Each insert commits on its own so one failing row never discards the rows
    before or after it. Existing attempts are never read or updated here.
    """
    result = StoreResult()
    for item in items:
        try:
            result.created.append(_insert_attempt(db, user_id, version_id, item))
        except StorageError as exc:
            logger.exception("Failed to store attempt #%s for user %s", item.index, user_id)
            result.failures.append(StorageFailure(item=item, error=exc))
    return result
