import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from dateutil import parser as date_parser

from skilltracker.models.entities import Difficulty, InstrumentType

INSTRUMENT_VALUES = tuple(i.value for i in InstrumentType)
DIFFICULTY_VALUES = tuple(d.value for d in Difficulty)


@dataclass(frozen=True)
class NormalizedRecord:
    song_title: str
    instrument_type: InstrumentType
    difficulty: Difficulty
    achievement: float
    skill_score: float
    level: float
    is_hot: bool
    played_at: datetime


@dataclass(frozen=True)
class AcceptedRecord:
    index: int
    raw: Any
    record: NormalizedRecord


@dataclass(frozen=True)
class RejectedRecord:
    index: int
    raw: Any
    reason: str


@dataclass(frozen=True)
class ValidationResult:
    accepted: list[AcceptedRecord]
    rejected: list[RejectedRecord]


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    return "object"


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range
        return False


def parse_played_at(value: str) -> datetime:
    dt = date_parser.isoparse(value)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_record(raw: Any, batch_time: datetime, index: int = 0) -> AcceptedRecord | RejectedRecord:
    """Classify one raw upload entry; never raises for bad input."""

    def reject(reason: str) -> RejectedRecord:
        return RejectedRecord(index=index, raw=raw, reason=reason)

    if not isinstance(raw, dict):
        return reject(f"record must be an object. Got: {_type_name(raw)}")

    title = raw.get("songTitle")
    if not isinstance(title, str) or not title.strip():
        return reject("songTitle is required and must be a string")

    instrument = raw.get("instrumentType")
    if instrument not in INSTRUMENT_VALUES:
        return reject(
            f"instrumentType is required and must be one of: {', '.join(INSTRUMENT_VALUES)}. Got: {instrument}"
        )

    difficulty = raw.get("difficulty")
    if difficulty not in DIFFICULTY_VALUES:
        return reject(
            f"difficulty is required and must be one of: {', '.join(DIFFICULTY_VALUES)}. Got: {difficulty}"
        )

    achievement = raw.get("achievement")
    if not _is_finite_number(achievement):
        return reject(f"achievement must be a number. Got: {_type_name(achievement)}")

    skill_score = raw.get("skillScore")
    if not _is_finite_number(skill_score):
        return reject(f"skillScore must be a number. Got: {_type_name(skill_score)}")

    level = raw.get("level")
    if level is None:
        level = 0.0
    elif not _is_finite_number(level):
        return reject(f"level must be a number. Got: {_type_name(level)}")

    is_hot = raw.get("isHot")
    if not isinstance(is_hot, bool):
        return reject(f"isHot must be a boolean. Got: {_type_name(is_hot)}")

    played_at_raw = raw.get("playedAt")
    if played_at_raw is None or played_at_raw == "":
        played_at = batch_time
    elif isinstance(played_at_raw, str):
        try:
            played_at = parse_played_at(played_at_raw)
        except (ValueError, OverflowError):
            return reject(f"playedAt must be an ISO-8601 timestamp. Got: {played_at_raw}")
    else:
        return reject(f"playedAt must be an ISO-8601 timestamp. Got: {_type_name(played_at_raw)}")

    return AcceptedRecord(
        index=index,
        raw=raw,
        record=NormalizedRecord(
            song_title=title.strip(),
            instrument_type=InstrumentType(instrument),
            difficulty=Difficulty(difficulty),
            achievement=float(achievement),
            skill_score=float(skill_score),
            level=float(level),
            is_hot=is_hot,
            played_at=played_at,
        ),
    )


def validate_records(raw_records: Iterable[Any], batch_time: datetime) -> ValidationResult:
    accepted: list[AcceptedRecord] = []
    rejected: list[RejectedRecord] = []
    for index, raw in enumerate(raw_records):
        result = parse_record(raw, batch_time, index=index)
        if isinstance(result, AcceptedRecord):
            accepted.append(result)
        else:
            rejected.append(result)
    return ValidationResult(accepted=accepted, rejected=rejected)
