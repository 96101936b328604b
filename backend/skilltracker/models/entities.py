import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from skilltracker.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InstrumentType(str, enum.Enum):
    GUITAR = "GUITAR"
    BASS = "BASS"
    DRUM = "DRUM"
    OPEN = "OPEN"


class Difficulty(str, enum.Enum):
    BASIC = "BASIC"
    ADVANCED = "ADVANCED"
    EXTREME = "EXTREME"
    MASTER = "MASTER"


INSTRUMENT_ENUM = Enum(InstrumentType, name="instrument_type")
DIFFICULTY_ENUM = Enum(Difficulty, name="difficulty")
GITADORA_ID_MAX_LENGTH = 64


class PlayerProfile(Base):
    __tablename__ = "player_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gitadora_id: Mapped[str | None] = mapped_column(String(GITADORA_ID_MAX_LENGTH), unique=True, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    ingame_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    social_user_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class GameVersion(Base):
    __tablename__ = "game_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Song(Base):
    __tablename__ = "songs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False, index=True)


class ScoreAttempt(Base):
    __tablename__ = "score_attempts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("player_profiles.id"), nullable=False)
    song_title: Mapped[str] = mapped_column(String(512), nullable=False)
    instrument_type: Mapped[InstrumentType] = mapped_column(INSTRUMENT_ENUM, nullable=False)
    difficulty: Mapped[Difficulty] = mapped_column(DIFFICULTY_ENUM, nullable=False)
    achievement: Mapped[float] = mapped_column(Float, nullable=False)
    skill_score: Mapped[float] = mapped_column(Float, nullable=False)
    level: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_hot: Mapped[bool] = mapped_column(Boolean, nullable=False)
    version_id: Mapped[int] = mapped_column(ForeignKey("game_versions.id"), nullable=False)
    played_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (Index("ix_score_attempts_user_instrument_played", "user_id", "instrument_type", "played_at"),)


class SkillHistorySnapshot(Base):
    __tablename__ = "skill_history_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("player_profiles.id"), nullable=False)
    instrument_type: Mapped[InstrumentType] = mapped_column(INSTRUMENT_ENUM, nullable=False)
    hot_skill: Mapped[float] = mapped_column(Float, nullable=False)
    other_skill: Mapped[float] = mapped_column(Float, nullable=False)
    total_skill: Mapped[float] = mapped_column(Float, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (Index("ix_skill_history_user_instrument_recorded", "user_id", "instrument_type", "recorded_at"),)
