from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from skilltracker.db.base import Base
from skilltracker.models.entities import (
    Difficulty,
    GameVersion,
    InstrumentType,
    PlayerProfile,
    ScoreAttempt,
)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def version(db):
    row = GameVersion(name="V1")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def profile(db):
    row = PlayerProfile(gitadora_id="ABC123", name="User-ABC123")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def add_attempt(db, profile, version):
    def _add(
        song_title: str,
        skill_score: float,
        played_at: datetime,
        is_hot: bool = True,
        instrument: InstrumentType = InstrumentType.GUITAR,
        difficulty: Difficulty = Difficulty.MASTER,
        user_id: int | None = None,
    ) -> ScoreAttempt:
        attempt = ScoreAttempt(
            user_id=user_id or profile.id,
            song_title=song_title,
            instrument_type=instrument,
            difficulty=difficulty,
            achievement=90.0,
            skill_score=skill_score,
            level=8.5,
            is_hot=is_hot,
            version_id=version.id,
            played_at=played_at,
        )
        db.add(attempt)
        db.commit()
        db.refresh(attempt)
        return attempt

    return _add
