from sqlalchemy import select
from sqlalchemy.orm import Session

from skilltracker.models.entities import GameVersion, Song
from skilltracker.services.errors import NotFoundError


def find_version_by_name(db: Session, name: str) -> GameVersion:
    version = db.execute(select(GameVersion).where(GameVersion.name == name)).scalar_one_or_none()
    if version is None:
        raise NotFoundError(f"Version not found: {name}")
    return version


def find_songs_by_titles(db: Session, titles: list[str]) -> list[Song]:
    if not titles:
        return []
    return db.execute(select(Song).where(Song.title.in_(titles))).scalars().all()


def missing_song_titles(db: Session, titles: list[str]) -> list[str]:
    unique_titles = list(dict.fromkeys(titles))
    known = {song.title for song in find_songs_by_titles(db, unique_titles)}
    return [title for title in unique_titles if title not in known]
