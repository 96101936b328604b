from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from skilltracker.core.config import get_settings
from skilltracker.db.session import get_db
from skilltracker.models.entities import GameVersion, InstrumentType
from skilltracker.schemas.skill import (
    ProfileOut,
    RankingEntryOut,
    RecomputeOut,
    RecordErrorOut,
    SkillHistoryOut,
    SkillRecordOut,
    SkillUploadIn,
    SkillUploadOut,
    SkillViewOut,
    VersionOut,
)
from skilltracker.services.identity import (
    GitadoraIdResolver,
    IdentityResolutionStrategy,
    KnownUserResolver,
    ProfileInfo,
    SessionIdentity,
)
from skilltracker.services.ingest import SkillBatch, ingest_batch
from skilltracker.services.skill_view import build_skill_view, get_profile, skill_ranking
from skilltracker.tasks.jobs import recompute_skill_history_task, recompute_user_history_sync

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


def _require_admin(request: Request) -> None:
    settings = get_settings()
    if not settings.admin_token:
        return
    token = request.headers.get("X-Admin-Token", "")
    if token != settings.admin_token:
        raise HTTPException(status_code=401, detail="invalid admin token")


def get_session_identity(request: Request) -> SessionIdentity | None:
    """Identity forwarded by the upstream session provider, if the caller is logged in."""
    value = request.headers.get(get_settings().session_header, "").strip()
    return SessionIdentity(social_user_id=value) if value else None


def _upload(
    db: Session,
    payload: SkillUploadIn,
    strategy: IdentityResolutionStrategy,
    session: SessionIdentity | None,
) -> SkillUploadOut:
    info = payload.profile_info
    batch = SkillBatch(
        profile=ProfileInfo(
            gitadora_id=info.gitadora_id if info else None,
            name=info.name if info else None,
            title=info.title if info else None,
        ),
        records=payload.records,
        version_name=payload.version,
        session=session,
    )
    result = ingest_batch(db, batch, strategy)
    return SkillUploadOut(
        success=result.success,
        created=result.created,
        errors=[
            RecordErrorOut(index=e.index, record=e.record, error=e.error, kind=e.kind) for e in result.errors
        ]
        or None,
        game_user_id=result.user_id,
        message=None if payload.records else "User updated, but no records provided",
    )


@router.post("/skill-records", response_model=SkillUploadOut, response_model_exclude_none=True)
def upload_skill_records(
    payload: SkillUploadIn,
    db: Session = Depends(get_db),
    session: SessionIdentity | None = Depends(get_session_identity),
):
    return _upload(db, payload, GitadoraIdResolver(), session)


@router.post("/users/{user_id}/skill-records", response_model=SkillUploadOut, response_model_exclude_none=True)
def upload_user_skill_records(
    user_id: int,
    payload: SkillUploadIn,
    db: Session = Depends(get_db),
    session: SessionIdentity | None = Depends(get_session_identity),
):
    return _upload(db, payload, KnownUserResolver(user_id), session)


@router.get("/users/ranking", response_model=list[RankingEntryOut])
def ranking(
    instrument_type: InstrumentType = Query(InstrumentType.GUITAR, alias="instrumentType"),
    db: Session = Depends(get_db),
):
    return [
        RankingEntryOut(
            rank=e.rank,
            user_id=e.user_id,
            ingame_name=e.ingame_name,
            title=e.title,
            total_skill=e.total_skill,
            instrument_type=e.instrument,
        )
        for e in skill_ranking(db, instrument_type)
    ]


@router.get("/users/{user_id}", response_model=ProfileOut)
def get_user(user_id: int, db: Session = Depends(get_db)):
    profile = get_profile(db, user_id)
    return ProfileOut(
        id=profile.id,
        gitadora_id=profile.gitadora_id,
        name=profile.name,
        ingame_name=profile.ingame_name,
        title=profile.title,
        linked=profile.social_user_id is not None,
    )


@router.get("/users/{user_id}/skill", response_model=SkillViewOut)
def user_skill(
    user_id: int,
    instrument_type: InstrumentType = Query(InstrumentType.DRUM, alias="instrumentType"),
    history_id: int | None = Query(None, alias="historyId"),
    version: str | None = None,
    db: Session = Depends(get_db),
):
    view = build_skill_view(
        db,
        user_id,
        instrument_type,
        history_id=history_id,
        version_name=version,
        history_limit=get_settings().history_limit,
    )
    return SkillViewOut(
        total_skill=view.totals.total_skill,
        hot_skill=view.totals.hot_skill,
        other_skill=view.totals.other_skill,
        instrument_type=view.instrument,
        hot_records=[SkillRecordOut.model_validate(a) for a in view.totals.hot_records],
        other_records=[SkillRecordOut.model_validate(a) for a in view.totals.other_records],
        history=[SkillHistoryOut.model_validate(h) for h in view.history],
        as_of=view.as_of,
    )


@router.get("/versions", response_model=list[VersionOut])
def list_versions(db: Session = Depends(get_db)):
    return db.execute(select(GameVersion).order_by(GameVersion.started_at)).scalars().all()


@router.post("/admin/users/{user_id}/recompute", response_model=RecomputeOut, response_model_exclude_none=True)
def recompute_user_history(
    user_id: int,
    request: Request,
    instrument_type: InstrumentType | None = Query(None, alias="instrumentType"),
    db: Session = Depends(get_db),
):
    _require_admin(request)
    instruments = [instrument_type.value] if instrument_type else None
    if get_settings().celery_task_always_eager:
        snapshots = recompute_user_history_sync(db, user_id, instruments)
        return RecomputeOut(mode="sync", snapshot_ids=[s.id for s in snapshots])
    get_profile(db, user_id)
    task = recompute_skill_history_task.delay(user_id, instruments)
    return RecomputeOut(mode="async", task_id=task.id)
