import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from skilltracker.core.config import get_settings
from skilltracker.core.logging import configure_logging
from skilltracker.db.session import SessionLocal
from skilltracker.models.entities import GameVersion

logger = logging.getLogger(__name__)


def seed_versions(db: Session, names: list[str]) -> int:
    created = 0
    for name in names:
        exists = db.execute(select(GameVersion).where(GameVersion.name == name)).scalar_one_or_none()
        if exists:
            continue
        db.add(GameVersion(name=name))
        created += 1
        logger.info("Created version: %s", name)
    db.commit()
    return created


def run() -> None:
    configure_logging()
    db = SessionLocal()
    try:
        seed_versions(db, [get_settings().default_version_name])
    finally:
        db.close()


if __name__ == "__main__":
    run()
