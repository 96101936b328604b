from datetime import datetime, timedelta

import pytest

from skilltracker.models.entities import GameVersion, InstrumentType, PlayerProfile
from skilltracker.services.aggregation import record_skill_snapshot
from skilltracker.services.errors import NotFoundError
from skilltracker.services.skill_view import build_skill_view, latest_snapshots, skill_ranking

T0 = datetime(2026, 9, 1, 21, 0)


def test_history_id_rebuilds_board_as_of_snapshot(db, profile, add_attempt):
    add_attempt("Song A", 50.0, T0)
    first = record_skill_snapshot(db, profile.id, InstrumentType.GUITAR, T0)
    add_attempt("Song A", 65.0, T0 + timedelta(days=3))
    add_attempt("Song B", 20.0, T0 + timedelta(days=3), is_hot=False)
    record_skill_snapshot(db, profile.id, InstrumentType.GUITAR, T0 + timedelta(days=3))

    past = build_skill_view(db, profile.id, InstrumentType.GUITAR, history_id=first.id)
    current = build_skill_view(db, profile.id, InstrumentType.GUITAR)

    assert past.as_of == T0
    assert (past.totals.hot_skill, past.totals.other_skill) == (50.0, 0)
    assert (current.totals.hot_skill, current.totals.other_skill) == (65.0, 20.0)
    assert [h.recorded_at for h in current.history] == [T0 + timedelta(days=3), T0]


def test_foreign_history_id_is_ignored(db, profile, add_attempt):
    other = PlayerProfile(gitadora_id="OTHER", name="Other")
    db.add(other)
    db.commit()
    foreign = record_skill_snapshot(db, other.id, InstrumentType.GUITAR, T0 - timedelta(days=30))
    add_attempt("Song A", 50.0, T0)

    view = build_skill_view(db, profile.id, InstrumentType.GUITAR, history_id=foreign.id)
    assert view.as_of is None
    assert view.totals.total_skill == 50.0


def test_version_filter(db, profile, add_attempt, version):
    newer = GameVersion(name="V2")
    db.add(newer)
    db.commit()
    add_attempt("Song A", 50.0, T0)
    attempt = add_attempt("Song B", 30.0, T0)
    attempt.version_id = newer.id
    db.commit()

    assert build_skill_view(db, profile.id, InstrumentType.GUITAR, version_name="V2").totals.total_skill == 30.0
    with pytest.raises(NotFoundError):
        build_skill_view(db, profile.id, InstrumentType.GUITAR, version_name="V9")


def test_ranking_uses_latest_snapshot_and_breaks_ties_by_user(db, profile, add_attempt):
    rival = PlayerProfile(gitadora_id="RIVAL", name="Rival", ingame_name="RIVAL", title="Legend")
    db.add(rival)
    db.commit()

    add_attempt("Song A", 90.0, T0)
    record_skill_snapshot(db, profile.id, InstrumentType.GUITAR, T0)
    add_attempt("Song A", 40.0, T0 + timedelta(days=1))
    record_skill_snapshot(db, profile.id, InstrumentType.GUITAR, T0 + timedelta(days=1))
    add_attempt("Song A", 40.0, T0, user_id=rival.id)
    record_skill_snapshot(db, rival.id, InstrumentType.GUITAR, T0)

    ranking = skill_ranking(db, InstrumentType.GUITAR)

    assert [(e.rank, e.user_id, e.total_skill) for e in ranking] == [(1, profile.id, 40.0), (2, rival.id, 40.0)]
    assert ranking[1].title == "Legend"


def test_latest_snapshots_returns_one_row_per_user(db, profile, add_attempt):
    rival = PlayerProfile(gitadora_id="RIVAL", name="Rival")
    db.add(rival)
    db.commit()

    add_attempt("Song A", 30.0, T0)
    record_skill_snapshot(db, profile.id, InstrumentType.GUITAR, T0)
    add_attempt("Song B", 10.0, T0)
    # same recorded_at: the later row wins
    newest = record_skill_snapshot(db, profile.id, InstrumentType.GUITAR, T0)
    add_attempt("Song A", 5.0, T0, user_id=rival.id)
    rival_snapshot = record_skill_snapshot(db, rival.id, InstrumentType.GUITAR, T0 - timedelta(days=2))
    record_skill_snapshot(db, rival.id, InstrumentType.DRUM, T0)

    latest = sorted(latest_snapshots(db, InstrumentType.GUITAR), key=lambda s: s.user_id)

    assert [s.id for s in latest] == [newest.id, rival_snapshot.id]
    assert latest[0].total_skill == 40.0
