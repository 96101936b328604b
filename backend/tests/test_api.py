import pytest
from fastapi.testclient import TestClient

from skilltracker.core.config import get_settings
from skilltracker.db.session import get_db
from skilltracker.main import app
from skilltracker.models.entities import GameVersion


@pytest.fixture
def client(session_factory):
    with session_factory() as db:
        db.add(GameVersion(name="V1"))
        db.add(GameVersion(name=get_settings().default_version_name))
        db.commit()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _payload(records, gitadora_id="ABC123", **extra):
    body = {"records": records, "profileInfo": {"gitadoraId": gitadora_id, "name": "PLAYER", "title": "Rookie"}}
    body.update(extra)
    return body


SONG_A = {
    "songTitle": "Song A",
    "instrumentType": "GUITAR",
    "difficulty": "MASTER",
    "achievement": 97.5,
    "skillScore": 52.3,
    "isHot": True,
}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_upload_creates_profile_and_snapshot(client):
    response = client.post("/skill-records", json=_payload([SONG_A], version="V1"))
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["created"] == 1
    assert "errors" not in body

    user_id = body["gameUserId"]
    profile = client.get(f"/users/{user_id}").json()
    assert profile["gitadoraId"] == "ABC123"
    assert profile["ingameName"] == "PLAYER"
    assert profile["linked"] is False

    skill = client.get(f"/users/{user_id}/skill", params={"instrumentType": "GUITAR"}).json()
    assert skill["hotSkill"] == 52.3
    assert skill["otherSkill"] == 0
    assert skill["totalSkill"] == 52.3
    assert [r["songTitle"] for r in skill["hotRecords"]] == ["Song A"]
    assert len(skill["history"]) == 1
    assert skill["history"][0]["totalSkill"] == 52.3


def test_upload_defaults_version(client):
    response = client.post("/skill-records", json=_payload([SONG_A]))
    assert response.json()["created"] == 1


def test_upload_reports_partial_failures(client):
    bad = dict(SONG_A, achievement="n/a")
    response = client.post("/skill-records", json=_payload([SONG_A, bad, "junk"], version="V1"))
    body = response.json()
    assert response.status_code == 200
    assert body["created"] == 1
    assert [e["index"] for e in body["errors"]] == [1, 2]
    assert body["errors"][0]["kind"] == "validation"
    assert body["errors"][0]["record"]["achievement"] == "n/a"


def test_oversized_number_rejects_only_its_record(client):
    bad = dict(SONG_A, songTitle="Song B", achievement=10**400)
    response = client.post("/skill-records", json=_payload([SONG_A, bad], version="V1"))
    assert response.status_code == 200
    body = response.json()
    assert body["created"] == 1
    assert [(e["index"], e["kind"]) for e in body["errors"]] == [(1, "validation")]

    skill = client.get(f"/users/{body['gameUserId']}/skill", params={"instrumentType": "GUITAR"}).json()
    assert [r["songTitle"] for r in skill["hotRecords"]] == ["Song A"]


def test_upload_without_gitadora_id_is_400(client):
    response = client.post("/skill-records", json={"records": [SONG_A], "profileInfo": {"name": "X"}})
    assert response.status_code == 400
    assert response.json() == {"message": "gitadoraId is required"}


def test_upload_with_overlong_gitadora_id_is_400(client):
    response = client.post("/skill-records", json=_payload([SONG_A], gitadora_id="9" * 65))
    assert response.status_code == 400
    assert response.json() == {"message": "gitadoraId must be at most 64 characters"}
    assert client.get("/users/1").status_code == 404


def test_upload_with_unknown_version_is_404(client):
    response = client.post("/skill-records", json=_payload([SONG_A], version="NOPE"))
    assert response.status_code == 404
    assert response.json()["message"] == "Version not found: NOPE"


def test_upload_conflict_is_409_with_code(client):
    header = get_settings().session_header
    client.post("/skill-records", json=_payload([]), headers={header: "social-a"})
    response = client.post("/skill-records", json=_payload([SONG_A]), headers={header: "social-b"})
    assert response.status_code == 409
    assert response.json()["code"] == "DUPLICATE_MAPPING_OTHER_ACCOUNT"


def test_empty_upload_reports_message(client):
    body = client.post("/skill-records", json=_payload([])).json()
    assert body["success"] is True
    assert body["created"] == 0
    assert body["message"] == "User updated, but no records provided"


def test_upload_by_known_user_id(client):
    user_id = client.post("/skill-records", json=_payload([])).json()["gameUserId"]
    response = client.post(f"/users/{user_id}/skill-records", json={"records": [SONG_A]})
    assert response.status_code == 200
    assert response.json()["gameUserId"] == user_id
    assert client.post("/users/999/skill-records", json={"records": [SONG_A]}).status_code == 404


def test_skill_view_lists_history_newest_first(client):
    user_id = client.post("/skill-records", json=_payload([dict(SONG_A, playedAt="2026-01-01T00:00:00Z")])).json()[
        "gameUserId"
    ]
    first_history = client.get(f"/users/{user_id}/skill", params={"instrumentType": "GUITAR"}).json()["history"][0]
    client.post(
        "/skill-records",
        json=_payload([dict(SONG_A, songTitle="Song B", skillScore=70.0, playedAt="2026-01-02T00:00:00Z")]),
    )

    current = client.get(f"/users/{user_id}/skill", params={"instrumentType": "GUITAR"}).json()
    past = client.get(
        f"/users/{user_id}/skill", params={"instrumentType": "GUITAR", "historyId": first_history["id"]}
    ).json()
    assert current["hotSkill"] == pytest.approx(122.3)
    assert len(current["history"]) == 2
    # both attempts were played before the first snapshot was recorded
    assert past["hotSkill"] == pytest.approx(122.3)
    assert past["asOf"] == first_history["recordedAt"]
    assert current["asOf"] is None
    assert current["history"][0]["id"] > current["history"][1]["id"]


def test_skill_view_unknown_user_is_404(client):
    assert client.get("/users/42/skill").status_code == 404


def test_ranking_orders_by_latest_total(client):
    first = client.post("/skill-records", json=_payload([SONG_A], gitadora_id="P1")).json()["gameUserId"]
    second = client.post(
        "/skill-records", json=_payload([dict(SONG_A, skillScore=80.0)], gitadora_id="P2")
    ).json()["gameUserId"]
    client.post("/skill-records", json=_payload([], gitadora_id="P3"))

    ranking = client.get("/users/ranking", params={"instrumentType": "GUITAR"}).json()
    assert [(r["rank"], r["userId"]) for r in ranking] == [(1, second), (2, first)]
    assert ranking[0]["totalSkill"] == 80.0
    assert client.get("/users/ranking", params={"instrumentType": "DRUM"}).json() == []


def test_versions_listing(client):
    names = [v["name"] for v in client.get("/versions").json()]
    assert "V1" in names


def test_admin_recompute_sync(client, monkeypatch):
    monkeypatch.setattr(get_settings(), "celery_task_always_eager", True)
    user_id = client.post("/skill-records", json=_payload([SONG_A])).json()["gameUserId"]

    response = client.post(f"/admin/users/{user_id}/recompute")
    assert response.status_code == 200
    body = response.json()
    assert body["mode"] == "sync"
    assert len(body["snapshotIds"]) == 1
    assert client.post("/admin/users/999/recompute").status_code == 404
