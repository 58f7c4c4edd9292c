from datetime import datetime, timedelta, timezone

from fastapi import HTTPException
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.core.identity import normalize_user_id
from app.db.base import Base
import app.models  # noqa: F401
from app.main import app
from app.models.player import PlayerProfile
from app.models.registration import Registration
from app.models.tournament import Tournament
from app.services.registrations import insert_registration

TEAM = {
    "teamName": "Night Owls",
    "teamMembers": [{"name": "Asha", "email": "asha@example.in", "gameId": "asha#001"}],
    "captain": {"name": "Asha", "email": "asha@example.in"},
    "contactInfo": {"email": "asha@example.in", "phone": "+91 98765 43210"},
}


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
    values = {"name": "Valorant Cup", "game": "Valorant", "team_size": 5, "max_teams": 16, "registration_fee": 500}
    values.update(kw)
    with session_factory() as db:
        t = Tournament(**values)
        db.add(t)
        db.commit()
        return t.id


def _registrations(session_factory, tournament_id: str) -> list[Registration]:
    with session_factory() as db:
        return db.execute(select(Registration).where(Registration.tournament_id == tournament_id)).scalars().all()


def test_paid_registration_is_pending_payment(client, session_factory):
    tid = _tournament(session_factory)

    r = client.post(f"/api/tournaments/{tid}/register", json=TEAM, headers={"X-User-Id": "u1"})
    assert r.status_code == 201
    body = r.json()
    assert body["requiresPayment"] is True
    assert body["amount"] == 500
    assert body["registration"]["status"] == "pending_payment"
    assert body["registration"]["paymentStatus"] == "pending"
    assert body["registration"]["userId"] == normalize_user_id("u1")


def test_free_registration_is_registered_without_payment(client, session_factory):
    tid = _tournament(session_factory, registration_fee=0)

    r = client.post(f"/api/tournaments/{tid}/register", json=TEAM, headers={"X-User-Id": "u1"})
    assert r.status_code == 201
    body = r.json()
    assert "requiresPayment" not in body
    assert body["registration"]["status"] == "registered"
    assert body["registration"]["paymentStatus"] == "free"

    with session_factory() as db:
        assert db.get(Tournament, tid).current_teams == 1


def test_second_registration_by_same_caller_conflicts(client, session_factory):
    tid = _tournament(session_factory)

    first = client.post(f"/api/tournaments/{tid}/register", json=TEAM, headers={"X-User-Id": "u1"})
    assert first.status_code == 201

    second = client.post(f"/api/tournaments/{tid}/register", json=TEAM, headers={"X-User-Id": "u1"})
    assert second.status_code == 409
    assert second.json()["error"] == "You have already registered for this tournament"
    assert len(_registrations(session_factory, tid)) == 1


def test_full_tournament_conflicts_without_inserting(client, session_factory):
    tid = _tournament(session_factory, max_teams=2, current_teams=2)

    r = client.post(f"/api/tournaments/{tid}/register", json=TEAM, headers={"X-User-Id": "u1"})
    assert r.status_code == 409
    assert r.json()["error"] == "Tournament is full"
    assert _registrations(session_factory, tid) == []


def test_register_rejects_closed_and_missing_tournaments(client, session_factory):
    tid = _tournament(session_factory, status="ongoing")

    closed = client.post(f"/api/tournaments/{tid}/register", json=TEAM, headers={"X-User-Id": "u1"})
    assert closed.status_code == 400
    assert closed.json()["error"] == "Tournament is not open for registration"

    missing = client.post("/api/tournaments/does-not-exist/register", json=TEAM, headers={"X-User-Id": "u1"})
    assert missing.status_code == 404


def test_register_requires_identity(client, session_factory):
    tid = _tournament(session_factory)
    r = client.post(f"/api/tournaments/{tid}/register", json=TEAM)
    assert r.status_code == 401
    assert r.json() == {"error": "Authentication required"}


@pytest.mark.parametrize(
    ("patch", "message"),
    [
        ({"teamName": "NO"}, "Team name must be at least 3 characters"),
        ({"teamMembers": []}, "At least one team member is required"),
        ({"teamMembers": [{"name": "Asha", "email": "asha@example.in"}]}, "Team member 1 game ID is required"),
        ({"captain": {"name": "Asha", "email": "not-an-email"}}, "Invalid captain email format"),
        ({"contactInfo": {"email": "asha@example.in", "phone": "12"}}, "Invalid phone number format"),
    ],
)
def test_register_validation_messages(client, session_factory, patch, message):
    tid = _tournament(session_factory)
    r = client.post(f"/api/tournaments/{tid}/register", json={**TEAM, **patch}, headers={"X-User-Id": "u1"})
    assert r.status_code == 400
    assert r.json()["error"] == message


def test_list_own_registrations_for_tournament(client, session_factory):
    tid = _tournament(session_factory)
    client.post(f"/api/tournaments/{tid}/register", json=TEAM, headers={"X-User-Id": "u1"})
    client.post(f"/api/tournaments/{tid}/register", json=TEAM, headers={"X-User-Id": "u2"})

    r = client.get(f"/api/tournaments/{tid}/register", headers={"X-User-Id": "u1"})
    assert r.status_code == 200
    regs = r.json()["registrations"]
    assert len(regs) == 1
    assert regs[0]["userId"] == normalize_user_id("u1")


def test_quick_registration_creates_profile_and_pending_row(client, session_factory):
    tid = _tournament(session_factory)
    headers = {"X-User-Id": "u1", "X-User-Email": "asha@example.in", "X-User-Name": "Asha"}

    r = client.post(
        "/api/tournaments/registration",
        json={"tournamentId": tid, "teamName": "Night Owls"},
        headers=headers,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["registration"]["status"] == "pending"
    assert body["registration"]["paymentStatus"] == "pending"

    with session_factory() as db:
        profile = db.execute(select(PlayerProfile)).scalars().one()
        assert profile.username == "asha"
        assert profile.user_id == normalize_user_id("u1")
        # Pending rows don't take a slot yet.
        assert db.get(Tournament, tid).current_teams == 0

    again = client.post("/api/tournaments/registration", json={"tournamentId": tid}, headers=headers)
    assert again.status_code == 409
    assert again.json()["details"]["status"] == "pending"


def test_quick_registration_replaces_stale_pending_row(client, session_factory):
    tid = _tournament(session_factory)
    with session_factory() as db:
        stale = Registration(
            tournament_id=tid,
            user_id=normalize_user_id("u1"),
            status="pending",
            payment_status="pending",
            created_at=datetime.now(timezone.utc) - timedelta(hours=2),
        )
        db.add(stale)
        db.commit()
        stale_id = stale.id

    r = client.post("/api/tournaments/registration", json={"tournamentId": tid}, headers={"X-User-Id": "u1"})
    assert r.status_code == 200
    assert r.json()["registration"]["id"] != stale_id

    regs = _registrations(session_factory, tid)
    assert len(regs) == 1
    assert regs[0].id != stale_id


def test_quick_registration_for_free_tournament_takes_a_slot(client, session_factory):
    tid = _tournament(session_factory, registration_fee=0)

    r = client.post("/api/tournaments/registration", json={"tournamentId": tid}, headers={"X-User-Id": "u1"})
    assert r.status_code == 200
    assert r.json()["registration"]["paymentStatus"] == "free"

    with session_factory() as db:
        assert db.get(Tournament, tid).current_teams == 1


def test_quick_registration_at_capacity_conflicts_without_inserting(client, session_factory):
    tid = _tournament(session_factory, registration_fee=0, max_teams=2, current_teams=2)

    r = client.post("/api/tournaments/registration", json={"tournamentId": tid}, headers={"X-User-Id": "u1"})
    assert r.status_code == 409
    assert r.json()["error"] == "Tournament is full"
    assert _registrations(session_factory, tid) == []

    with session_factory() as db:
        assert db.get(Tournament, tid).current_teams == 2


@pytest.mark.parametrize("status", ["ongoing", "completed"])
def test_quick_registration_rejects_closed_tournament(client, session_factory, status):
    tid = _tournament(session_factory, registration_fee=0, status=status)

    r = client.post("/api/tournaments/registration", json={"tournamentId": tid}, headers={"X-User-Id": "u1"})
    assert r.status_code == 400
    assert r.json()["error"] == "Tournament is not open for registration"
    assert _registrations(session_factory, tid) == []


def test_quick_registration_requires_tournament_id(client):
    r = client.post("/api/tournaments/registration", json={}, headers={"X-User-Id": "u1"})
    assert r.status_code == 400
    assert r.json()["error"] == "Tournament ID is required"


def test_caller_registrations_include_tournament_summary(client, session_factory):
    tid = _tournament(session_factory)
    client.post(f"/api/tournaments/{tid}/register", json=TEAM, headers={"X-User-Id": "u1"})

    r = client.get("/api/tournaments/registration", headers={"X-User-Id": "u1"})
    assert r.status_code == 200
    regs = r.json()["registrations"]
    assert len(regs) == 1
    assert regs[0]["tournament"]["name"] == "Valorant Cup"
    assert regs[0]["tournament"]["registrationFee"] == 500


def test_unique_index_blocks_concurrent_duplicate(session_factory):
    tid = _tournament(session_factory)
    with session_factory() as db:
        insert_registration(db, Registration(tournament_id=tid, user_id="same-user"))

        with pytest.raises(HTTPException) as exc:
            insert_registration(db, Registration(tournament_id=tid, user_id="same-user"))
        assert exc.value.status_code == 409
        assert exc.value.detail["code"] == "DUPLICATE_REGISTRATION"

        count = db.execute(select(func.count(Registration.id))).scalar_one()
        assert count == 1


def test_cancelled_registration_does_not_block_a_new_one(session_factory):
    tid = _tournament(session_factory)
    with session_factory() as db:
        insert_registration(db, Registration(tournament_id=tid, user_id="same-user", status="cancelled"))
        insert_registration(db, Registration(tournament_id=tid, user_id="same-user"))

        count = db.execute(select(func.count(Registration.id))).scalar_one()
        assert count == 2
