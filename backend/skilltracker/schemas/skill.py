from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from skilltracker.models.entities import Difficulty, InstrumentType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ProfileInfoIn(CamelModel):
    gitadora_id: str | None = None
    name: str | None = None
    title: str | None = None


class SkillUploadIn(CamelModel):
    # entries stay raw so a malformed one is rejected alone instead of failing the request
    records: list[Any] | None = None
    profile_info: ProfileInfoIn | None = None
    version: str | None = None


class RecordErrorOut(CamelModel):
    index: int
    record: Any
    error: str
    kind: str


class SkillUploadOut(CamelModel):
    success: bool
    created: int
    errors: list[RecordErrorOut] | None = None
    game_user_id: int
    message: str | None = None


class SkillRecordOut(CamelModel):
    id: int
    song_title: str
    instrument_type: InstrumentType
    difficulty: Difficulty
    achievement: float
    skill_score: float
    level: float
    is_hot: bool
    played_at: datetime


class SkillHistoryOut(CamelModel):
    id: int
    total_skill: float
    hot_skill: float
    other_skill: float
    instrument_type: InstrumentType
    recorded_at: datetime


class SkillViewOut(CamelModel):
    total_skill: float
    hot_skill: float
    other_skill: float
    instrument_type: InstrumentType
    hot_records: list[SkillRecordOut]
    other_records: list[SkillRecordOut]
    history: list[SkillHistoryOut]
    # recorded_at of the requested historyId, None for the current board
    as_of: datetime | None = None


class RankingEntryOut(CamelModel):
    rank: int
    user_id: int
    ingame_name: str | None
    title: str | None
    total_skill: float
    instrument_type: InstrumentType


class ProfileOut(CamelModel):
    id: int
    gitadora_id: str | None
    name: str
    ingame_name: str | None
    title: str | None
    linked: bool


class VersionOut(CamelModel):
    id: int
    name: str
    started_at: datetime


class RecomputeOut(CamelModel):
    mode: str
    task_id: str | None = None
    snapshot_ids: list[int] | None = None
