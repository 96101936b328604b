import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session

from skilltracker.core.config import get_settings
from skilltracker.models.entities import SkillHistorySnapshot
from skilltracker.services.aggregation import recompute_snapshots
from skilltracker.services.catalog import find_version_by_name, missing_song_titles
from skilltracker.services.identity import IdentityResolutionStrategy, ProfileInfo, SessionIdentity
from skilltracker.services.record_store import store_attempts
from skilltracker.services.validation import validate_records

logger = logging.getLogger(__name__)

ERROR_KIND_VALIDATION = "validation"
ERROR_KIND_STORAGE = "storage"


@dataclass(frozen=True)
class SkillBatch:
    profile: ProfileInfo
    records: list[Any] | None = None
    version_name: str | None = None
    session: SessionIdentity | None = None


@dataclass(frozen=True)
class RecordError:
    index: int
    record: Any
    error: str
    kind: str


@dataclass
class IngestResult:
    user_id: int
    created: int = 0
    errors: list[RecordError] = field(default_factory=list)
    snapshots: list[SkillHistorySnapshot] = field(default_factory=list)
    success: bool = True


def batch_timestamp(now: datetime | None = None) -> datetime:
    """Minute-precision UTC time shared by every attempt of one upload."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    return now.replace(second=0, microsecond=0)


def ingest_batch(
    db: Session,
    batch: SkillBatch,
    strategy: IdentityResolutionStrategy,
    now: datetime | None = None,
) -> IngestResult:
    """Resolve identity, store attempts and append skill snapshots for one upload.

    Identity and version failures raise before anything is written. Past that
    point every failure is per record or per instrument and is reported in
    the result instead of raised.
    """
    strategy.require(batch.profile)
    version_name = batch.version_name or get_settings().default_version_name
    version = find_version_by_name(db, version_name)
    profile = strategy.resolve(db, batch.profile, batch.session)
    user_id = profile.id

    result = IngestResult(user_id=user_id)
    records = batch.records or []
    if not records:
        logger.info("User %s updated, but no records provided", user_id)
        return result

    batch_time = batch_timestamp(now)
    validation = validate_records(records, batch_time)
    for rejected in validation.rejected:
        logger.warning("Rejected record #%s for user %s: %s", rejected.index, user_id, rejected.reason)
        result.errors.append(
            RecordError(index=rejected.index, record=rejected.raw, error=rejected.reason, kind=ERROR_KIND_VALIDATION)
        )

    missing = missing_song_titles(db, [item.record.song_title for item in validation.accepted])
    if missing:
        logger.warning("Some songs are not found in database (stored anyway): user=%s count=%s", user_id, len(missing))

    logger.info("Processing %s records for user %s", len(records), user_id)
    stored = store_attempts(db, user_id, version.id, validation.accepted)
    for failure in stored.failures:
        result.errors.append(
            RecordError(
                index=failure.item.index, record=failure.item.raw, error=str(failure.error), kind=ERROR_KIND_STORAGE
            )
        )
    result.errors.sort(key=lambda e: e.index)
    result.created = len(stored.created)

    result.snapshots = recompute_snapshots(db, user_id, stored.instruments, batch_time)
    logger.info(
        "Batch for user %s done: received=%s created=%s errors=%s snapshots=%s",
        user_id,
        len(records),
        result.created,
        len(result.errors),
        len(result.snapshots),
    )
    return result
