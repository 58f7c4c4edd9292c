from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.db.base import Base
import app.models  # noqa: F401
from app.main import app
from app.models.registration import Registration
from app.models.tournament import Tournament

ADMIN = {"X-User-Id": "organizer-1", "X-User-Email": "org@example.in", "X-User-Name": "Org"}


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _tournament(session_factory, **kw) -> str:
    values = {"name": "Valorant Cup", "game": "Valorant", "team_size": 5, "max_teams": 16}
    values.update(kw)
    with session_factory() as db:
        t = Tournament(**values)
        db.add(t)
        db.commit()
        return t.id


def _future(days: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def _new_tournament(**kw) -> dict:
    body = {
        "name": "Mumbai BGMI Open",
        "game": "BGMI",
        "startDate": _future(10),
        "endDate": _future(12),
        "registrationDeadline": _future(5),
        "prizePool": "₹25,000",
        "teamSize": 4,
        "maxTeams": 32,
        "registrationFee": 200,
    }
    body.update(kw)
    return body


def test_empty_list_serves_fallback(client):
    r = client.get("/api/tournaments")
    assert r.status_code == 200
    body = r.json()
    assert body["isFallback"] is True
    assert len(body["tournaments"]) == 2


def test_list_filters_and_sorts(client, session_factory):
    _tournament(session_factory, name="Cup A", game="Valorant", current_teams=3)
    _tournament(session_factory, name="Cup B", game="Valorant", current_teams=9)
    _tournament(session_factory, name="Cup C", game="BGMI", team_size=4)

    r = client.get("/api/tournaments", params={"game": "Valorant", "sortBy": "popularity"})
    assert r.status_code == 200
    body = r.json()
    assert "isFallback" not in body
    assert [t["name"] for t in body["tournaments"]] == ["Cup B", "Cup A"]

    by_size = client.get("/api/tournaments", params={"teamSize": 4}).json()["tournaments"]
    assert [t["name"] for t in by_size] == ["Cup C"]
    assert by_size[0]["organizer"]["name"] == "Unknown"


def test_detail_short_id_serves_fallback(client):
    r = client.get("/api/tournaments/abc")
    assert r.status_code == 200
    body = r.json()
    assert body["isFallback"] is True
    assert body["error"] == "Invalid tournament ID format"
    assert body["tournament"]["name"] == "Sample Tournament"


def test_detail_missing_serves_fallback(client):
    r = client.get("/api/tournaments/00000000-0000-0000-0000-000000000000")
    assert r.status_code == 200
    assert r.json()["isFallback"] is True
    assert r.json()["error"] == "Tournament not found"


def test_detail_corrects_and_persists_team_count(client, session_factory):
    tid = _tournament(session_factory, current_teams=7)
    with session_factory() as db:
        db.add_all(
            [
                Registration(tournament_id=tid, user_id="a", status="registered", payment_status="free"),
                Registration(tournament_id=tid, user_id="b", status="confirmed", payment_status="paid"),
                Registration(tournament_id=tid, user_id="c", status="pending", payment_status="pending"),
                Registration(tournament_id=tid, user_id="d", status="cancelled", payment_status="pending"),
            ]
        )
        db.commit()

    r = client.get(f"/api/tournaments/{tid}")
    assert r.status_code == 200
    assert "isFallback" not in r.json()
    assert r.json()["tournament"]["currentTeams"] == 2

    with session_factory() as db:
        assert db.get(Tournament, tid).current_teams == 2


def test_create_tournament(client):
    r = client.post(
        "/api/tournaments",
        json=_new_tournament(organizer={"name": "Mumbai Esports", "verified": True}),
        headers=ADMIN,
    )
    assert r.status_code == 201
    body = r.json()
    assert body["message"] == "Tournament created successfully"
    t = body["tournament"]
    assert t["currentTeams"] == 0
    assert t["status"] == "upcoming"
    assert t["registrationFee"] == 200
    assert t["organizer"] == {"name": "Mumbai Esports", "verified": True, "contact": "org@example.in"}


@pytest.mark.parametrize(
    ("patch", "message"),
    [
        ({"name": None}, "Tournament name is required"),
        ({"prizePool": ""}, "Prize pool is required"),
        ({"teamSize": 0}, "Team size must be a positive number"),
        ({"status": "paused"}, "Invalid tournament status"),
        ({"registrationDeadline": _future(-1)}, "Registration deadline cannot be in the past"),
        ({"endDate": _future(9)}, "End date cannot be before start date"),
        ({"registrationDeadline": _future(11)}, "Registration deadline must be before the start date"),
    ],
)
def test_create_tournament_validation(client, patch, message):
    r = client.post("/api/tournaments", json=_new_tournament(**patch), headers=ADMIN)
    assert r.status_code == 400
    assert r.json()["error"] == message


def test_update_tournament(client, session_factory):
    tid = _tournament(session_factory)

    r = client.put(f"/api/tournaments/{tid}", json={"status": "ongoing", "prizePool": "₹10,000"}, headers=ADMIN)
    assert r.status_code == 200
    t = r.json()["tournament"]
    assert t["status"] == "ongoing"
    assert t["prizePool"] == "₹10,000"
    assert t["name"] == "Valorant Cup"

    assert client.put("/api/tournaments/abc", json={}, headers=ADMIN).status_code == 400
    missing = client.put("/api/tournaments/00000000-0000-0000-0000-000000000000", json={}, headers=ADMIN)
    assert missing.status_code == 404


@pytest.mark.parametrize(
    ("body", "message"),
    [
        ({"name": None}, "Tournament name is required"),
        ({"name": "  "}, "Tournament name is required"),
        ({"teamSize": None}, "Team size must be a positive number"),
        ({"maxTeams": 0}, "Maximum teams must be a positive number"),
        ({"registrationFee": -1}, "Registration fee cannot be negative"),
        ({"status": None}, "Invalid tournament status"),
        ({"status": "paused"}, "Invalid tournament status"),
    ],
)
def test_update_rejects_cleared_or_out_of_range_fields(client, session_factory, body, message):
    tid = _tournament(session_factory)

    r = client.put(f"/api/tournaments/{tid}", json=body, headers=ADMIN)
    assert r.status_code == 400
    assert r.json()["error"] == message

    with session_factory() as db:
        t = db.get(Tournament, tid)
        assert (t.name, t.team_size, t.max_teams, t.status) == ("Valorant Cup", 5, 16, "upcoming")


def test_delete_tournament(client, session_factory):
    tid = _tournament(session_factory)

    assert client.delete("/api/tournaments/abc", headers=ADMIN).status_code == 400

    r = client.delete(f"/api/tournaments/{tid}", headers=ADMIN)
    assert r.status_code == 200
    assert r.json() == {"message": "Tournament deleted successfully"}

    with session_factory() as db:
        assert db.get(Tournament, tid) is None


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "database": "ok"}
