"""Resolve the player profile a skill upload belongs to.

Two strategies share the same linkage rules: one finds-or-creates the profile
from the in-game gitadoraId (the bookmarklet path), the other starts from a
known internal user id. Both enforce that a session identity maps to at most
one profile and a gitadoraId to at most one profile.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from skilltracker.models.entities import GITADORA_ID_MAX_LENGTH, PlayerProfile
from skilltracker.services.errors import (
    ALREADY_MAPPED_TO_DIFFERENT_DATA,
    DUPLICATE_MAPPING_OTHER_ACCOUNT,
    ConflictError,
    InvalidIdentityError,
    MissingIdentityError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionIdentity:
    social_user_id: str


@dataclass(frozen=True)
class ProfileInfo:
    gitadora_id: str | None = None
    name: str | None = None
    title: str | None = None


class IdentityResolutionStrategy(Protocol):
    def require(self, profile: ProfileInfo) -> None: ...

    def resolve(self, db: Session, profile: ProfileInfo, session: SessionIdentity | None) -> PlayerProfile: ...


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _check_gitadora_id_length(gitadora_id: str | None) -> None:
    if gitadora_id and len(gitadora_id) > GITADORA_ID_MAX_LENGTH:
        raise InvalidIdentityError(f"gitadoraId must be at most {GITADORA_ID_MAX_LENGTH} characters")


def _find_by_gitadora_id(db: Session, gitadora_id: str) -> PlayerProfile | None:
    return db.execute(select(PlayerProfile).where(PlayerProfile.gitadora_id == gitadora_id)).scalar_one_or_none()


def _find_by_social_user_id(db: Session, social_user_id: str) -> PlayerProfile | None:
    return db.execute(
        select(PlayerProfile).where(PlayerProfile.social_user_id == social_user_id)
    ).scalar_one_or_none()


def _check_session_linkage(db: Session, target: PlayerProfile | None, session: SessionIdentity) -> PlayerProfile | None:
    """Raise when linking ``session`` to ``target`` would break the one-to-one mapping.

    Returns the profile the session is currently linked to, if any.
    """
    if target is not None and target.social_user_id and target.social_user_id != session.social_user_id:
        raise ConflictError("This gitadoraId is linked to another account", code=DUPLICATE_MAPPING_OTHER_ACCOUNT)

    linked = _find_by_social_user_id(db, session.social_user_id)
    if linked is not None and (target is None or linked.id != target.id):
        # a linked profile still waiting for its gitadoraId may adopt a brand new one
        if target is None and linked.gitadora_id is None:
            return linked
        raise ConflictError(
            "This account is already mapped to different gitadora data", code=ALREADY_MAPPED_TO_DIFFERENT_DATA
        )
    return linked


def _refresh_metadata(profile: PlayerProfile, info: ProfileInfo) -> bool:
    changed = False
    name = _clean(info.name)
    title = _clean(info.title)
    if name and profile.ingame_name != name:
        profile.ingame_name = name
        changed = True
    if title and profile.title != title:
        profile.title = title
        changed = True
    return changed


def _link_session(profile: PlayerProfile, session: SessionIdentity | None) -> bool:
    if session is None or profile.social_user_id == session.social_user_id:
        return False
    profile.social_user_id = session.social_user_id
    logger.info("Linked profile %s to session identity", profile.id)
    return True


class GitadoraIdResolver:
    """Find-or-create by gitadoraId, linking the session identity when eligible."""

    def require(self, profile: ProfileInfo) -> None:
        gitadora_id = _clean(profile.gitadora_id)
        if not gitadora_id:
            raise MissingIdentityError()
        _check_gitadora_id_length(gitadora_id)

    def resolve(self, db: Session, profile: ProfileInfo, session: SessionIdentity | None) -> PlayerProfile:
        self.require(profile)
        gitadora_id = _clean(profile.gitadora_id)
        try:
            return self._resolve(db, gitadora_id, profile, session)
        except IntegrityError:
            # a concurrent upload created or linked the same profile first
            db.rollback()
            logger.info("Retrying identity resolution for gitadoraId %s after concurrent write", gitadora_id)
            return self._resolve(db, gitadora_id, profile, session)

    def _resolve(
        self, db: Session, gitadora_id: str, info: ProfileInfo, session: SessionIdentity | None
    ) -> PlayerProfile:
        existing = _find_by_gitadora_id(db, gitadora_id)
        adopted = False
        if session is not None:
            linked = _check_session_linkage(db, existing, session)
            if existing is None and linked is not None:
                existing = linked
                existing.gitadora_id = gitadora_id
                adopted = True

        if existing is None:
            name = _clean(info.name)
            created = PlayerProfile(
                gitadora_id=gitadora_id,
                name=name or f"User-{gitadora_id}",
                ingame_name=name,
                title=_clean(info.title),
                social_user_id=session.social_user_id if session else None,
            )
            db.add(created)
            db.commit()
            db.refresh(created)
            logger.info("Created profile %s for gitadoraId %s", created.id, gitadora_id)
            return created

        changed = _refresh_metadata(existing, info) or adopted
        changed = _link_session(existing, session) or changed
        if changed:
            db.commit()
            db.refresh(existing)
        return existing


class KnownUserResolver:
    """Resolve an upload addressed to an existing internal user id."""

    def __init__(self, user_id: int):
        self.user_id = user_id

    def require(self, profile: ProfileInfo) -> None:
        _check_gitadora_id_length(_clean(profile.gitadora_id))

    def resolve(self, db: Session, profile: ProfileInfo, session: SessionIdentity | None) -> PlayerProfile:
        self.require(profile)
        existing = db.get(PlayerProfile, self.user_id)
        if existing is None:
            raise NotFoundError(f"User not found: {self.user_id}")

        if session is not None:
            _check_session_linkage(db, existing, session)

        changed = False
        gitadora_id = _clean(profile.gitadora_id)
        if gitadora_id and existing.gitadora_id != gitadora_id:
            if existing.gitadora_id:
                raise ConflictError(
                    "This profile is already mapped to a different gitadoraId", code=ALREADY_MAPPED_TO_DIFFERENT_DATA
                )
            owner = _find_by_gitadora_id(db, gitadora_id)
            if owner is not None:
                raise ConflictError(
                    "This gitadoraId is already mapped to another profile", code=ALREADY_MAPPED_TO_DIFFERENT_DATA
                )
            existing.gitadora_id = gitadora_id
            changed = True

        changed = _refresh_metadata(existing, profile) or changed
        changed = _link_session(existing, session) or changed
        if changed:
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise ConflictError(
                    "This gitadoraId is already mapped to another profile", code=ALREADY_MAPPED_TO_DIFFERENT_DATA
                ) from exc
            db.refresh(existing)
        return existing
