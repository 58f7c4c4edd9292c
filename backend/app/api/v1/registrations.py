from datetime import datetime
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.api.deps import get_current_identity, get_db
from app.api.schemas import CamelModel, RegistrationOut, dump
from app.core.identity import Identity
from app.core.settings import settings
from app.models.registration import ACTIVE_STATUSES, PENDING, PENDING_PAYMENT, Registration
from app.models.tournament import Tournament
from app.services.registrations import (
    ensure_accepting_registrations,
    ensure_player_profile,
    find_existing_registration,
    increment_team_count,
    initial_statuses,
    insert_registration,
    is_free,
    is_stale_pending,
    list_caller_registrations,
)
from app.services.validation import validate_registration

router = APIRouter()
logger = logging.getLogger(__name__)


class TeamRegistrationIn(CamelModel):
    team_name: str | None = None
    team_members: Any = None
    captain: Any = None
    contact_info: Any = None


class QuickRegistrationIn(CamelModel):
    tournament_id: str | None = None
    team_name: str | None = None
    leader_name: str | None = None
    leader_email: str | None = None


class TournamentSummaryOut(CamelModel):
    id: str
    name: str
    game: str
    start_date: datetime | None
    end_date: datetime | None
    status: str
    registration_fee: int


class CallerRegistrationOut(RegistrationOut):
    tournament: TournamentSummaryOut | None = None


def _open_tournament(db: Session, tournament_id: str) -> Tournament:
    t = db.get(Tournament, tournament_id)
    if not t:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return t


# Declared before the /tournaments/{tournament_id} routes so "registration" is not read as an id.
@router.get("/tournaments/registration")
def list_my_registrations(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    try:
        rows = db.execute(
            select(Registration)
            .options(joinedload(Registration.tournament))
            .where(Registration.user_id.in_(identity.candidate_ids))
            .order_by(Registration.created_at.desc())
        ).scalars().all()
    except SQLAlchemyError:
        logger.exception("Error fetching registrations for %s", identity.user_id)
        raise HTTPException(status_code=500, detail="Failed to fetch registrations")

    return {"registrations": [dump(CallerRegistrationOut.model_validate(r)) for r in rows]}


@router.post("/tournaments/registration")
def quick_register(
    payload: QuickRegistrationIn,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    """Lightweight registration: leader only, no roster.

    Creates the caller's player profile on first use. A pending registration
    that was abandoned before payment for longer than STALE_PENDING_MINUTES is
    replaced instead of blocking the new attempt.
    """
    if not payload.tournament_id:
        raise HTTPException(status_code=400, detail="Tournament ID is required")

    t = _open_tournament(db, payload.tournament_id)
    ensure_accepting_registrations(t)

    existing = find_existing_registration(db, t.id, identity)
    if existing is not None:
        if is_stale_pending(existing, settings.STALE_PENDING_MINUTES):
            logger.info("Replacing stale pending registration %s", existing.id)
            db.delete(existing)
            db.commit()
        else:
            raise HTTPException(
                status_code=409,
                detail={
                    "error": "You are already registered for this tournament",
                    "details": {
                        "registrationId": existing.id,
                        "status": existing.status,
                        "paymentStatus": existing.payment_status,
                        "registeredAt": existing.created_at.isoformat() if existing.created_at else None,
                    },
                },
            )

    try:
        ensure_player_profile(db, identity)
    except SQLAlchemyError:
        # The registration does not depend on the profile row.
        logger.warning("Continuing registration for %s without a player profile", identity.user_id)

    status, payment_status = initial_statuses(t, PENDING)
    reg = insert_registration(
        db,
        Registration(
            tournament_id=t.id,
            user_id=identity.user_id,
            player_name=payload.leader_name or identity.name or "Player",
            email=payload.leader_email or identity.email or "",
            team_name=payload.team_name,
            status=status,
            payment_status=payment_status,
        ),
    )

    if reg.status in ACTIVE_STATUSES:
        try:
            increment_team_count(db, t.id)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Error updating tournament count for %s", t.id)

    return {
        "success": True,
        "message": "Successfully registered for tournament",
        "registration": {
            "id": reg.id,
            "tournamentId": t.id,
            "teamName": payload.team_name or "Individual Entry",
            "status": reg.status,
            "paymentStatus": reg.payment_status,
            "registeredAt": reg.created_at.isoformat() if reg.created_at else None,
        },
    }


@router.post("/tournaments/{tournament_id}/register", status_code=201)
def register_team(
    tournament_id: str,
    payload: TeamRegistrationIn,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    t = _open_tournament(db, tournament_id)
    ensure_accepting_registrations(t)

    if find_existing_registration(db, t.id, identity) is not None:
        raise HTTPException(status_code=409, detail="You have already registered for this tournament")

    error = validate_registration(
        team_name=payload.team_name,
        team_members=payload.team_members,
        captain=payload.captain,
        contact_info=payload.contact_info,
    )
    if error:
        raise HTTPException(status_code=400, detail=error)

    status, payment_status = initial_statuses(t, PENDING_PAYMENT)
    reg = insert_registration(
        db,
        Registration(
            tournament_id=t.id,
            user_id=identity.user_id,
            team_name=payload.team_name,
            player_name=payload.captain.get("name"),
            email=payload.contact_info.get("email"),
            team_members=payload.team_members,
            captain=payload.captain,
            contact_info=payload.contact_info,
            status=status,
            payment_status=payment_status,
        ),
    )

    if is_free(t):
        try:
            increment_team_count(db, t.id)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Error updating tournament count for %s", t.id)
        return {"message": "Registration successful", "registration": dump(RegistrationOut.model_validate(reg))}

    return {
        "message": "Registration pending payment confirmation",
        "registration": dump(RegistrationOut.model_validate(reg)),
        "requiresPayment": True,
        "amount": t.registration_fee,
    }


@router.get("/tournaments/{tournament_id}/register")
def list_team_registrations(
    tournament_id: str,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    t = _open_tournament(db, tournament_id)
    rows = list_caller_registrations(db, identity, tournament_id=t.id)
    return {"registrations": [dump(RegistrationOut.model_validate(r)) for r in rows]}
