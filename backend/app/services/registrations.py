from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.identity import Identity
from app.db import errors
from app.models.player import PlayerProfile
from app.models.registration import (
    ACTIVE_STATUSES,
    CANCELLED,
    PAYMENT_FREE,
    PAYMENT_PENDING,
    PENDING,
    REGISTERED,
    Registration,
)
from app.models.tournament import Tournament

logger = logging.getLogger(__name__)


def is_free(tournament: Tournament) -> bool:
    return not tournament.registration_fee


def initial_statuses(tournament: Tournament, paid_status: str) -> tuple[str, str]:
    """(status, payment_status) for a new registration."""
    if is_free(tournament):
        return REGISTERED, PAYMENT_FREE
    return paid_status, PAYMENT_PENDING


def ensure_accepting_registrations(tournament: Tournament) -> None:
    """400 unless the tournament is upcoming, 409 once it is at capacity."""
    if tournament.status != "upcoming":
        raise HTTPException(status_code=400, detail="Tournament is not open for registration")
    if tournament.current_teams >= tournament.max_teams:
        logger.info("Tournament %s is full (%s/%s)", tournament.id, tournament.current_teams, tournament.max_teams)
        raise HTTPException(status_code=409, detail="Tournament is full")


def find_existing_registration(db: Session, tournament_id: str, identity: Identity) -> Registration | None:
    return db.execute(
        select(Registration)
        .where(
            Registration.tournament_id == tournament_id,
            Registration.user_id.in_(identity.candidate_ids),
            Registration.status != CANCELLED,
        )
        .order_by(Registration.created_at.desc())
        .limit(1)
    ).scalars().first()


def list_caller_registrations(
    db: Session, identity: Identity, tournament_id: str | None = None
) -> list[Registration]:
    q = select(Registration).where(Registration.user_id.in_(identity.candidate_ids))
    if tournament_id is not None:
        q = q.where(Registration.tournament_id == tournament_id)
    return db.execute(q.order_by(Registration.created_at.desc())).scalars().all()


def is_stale_pending(registration: Registration, minutes: int, now: datetime | None = None) -> bool:
    if registration.status != PENDING or registration.payment_status != PAYMENT_PENDING:
        return False
    created = registration.created_at
    if created is None:
        return False
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return now - created > timedelta(minutes=minutes)


def count_active_registrations(db: Session, tournament_id: str) -> int:
    return int(
        db.execute(
            select(func.count(Registration.id)).where(
                Registration.tournament_id == tournament_id,
                Registration.status.in_(ACTIVE_STATUSES),
            )
        ).scalar_one()
    )


def reconcile_team_count(db: Session, tournament: Tournament) -> int:
    """Recount active registrations and persist the count if the cache drifted."""
    count = count_active_registrations(db, tournament.id)
    if tournament.current_teams != count:
        logger.info(
            "Updating tournament %s current_teams from %s to %s",
            tournament.id,
            tournament.current_teams,
            count,
        )
        tournament.current_teams = count
        db.commit()
    return count


def increment_team_count(db: Session, tournament_id: str) -> None:
    # Optimistic; the next detail read corrects any drift.
    t = db.get(Tournament, tournament_id)
    if not t:
        return
    t.current_teams = (t.current_teams or 0) + 1
    db.commit()
    logger.info("Tournament %s team count incremented to %s", tournament_id, t.current_teams)


def insert_registration(db: Session, registration: Registration) -> Registration:
    db.add(registration)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        code = errors.sqlstate(exc)
        logger.warning("Registration insert rejected (%s): %s", code, exc.orig)
        if code == errors.UNIQUE_VIOLATION:
            raise HTTPException(
                status_code=409,
                detail={
                    "error": "You have already registered for this tournament.",
                    "details": "Each player can only register once per tournament.",
                    "code": "DUPLICATE_REGISTRATION",
                },
            )
        if code == errors.NOT_NULL_VIOLATION:
            raise HTTPException(
                status_code=400,
                detail={"error": "Missing required field in registration data.", "details": str(exc.orig)},
            )
        raise HTTPException(
            status_code=errors.http_status_for(code),
            detail={"error": "Failed to create registration", "details": errors.message_for(code)},
        )
    db.refresh(registration)
    logger.info(
        "Registration %s created: tournament=%s user=%s status=%s payment_status=%s",
        registration.id,
        registration.tournament_id,
        registration.user_id,
        registration.status,
        registration.payment_status,
    )
    return registration


def _free_username(db: Session, base: str, suffix: str) -> str:
    candidate = base
    n = 0
    while db.execute(select(PlayerProfile.id).where(PlayerProfile.username == candidate)).first():
        n += 1
        candidate = f"{base}_{suffix}" if n == 1 else f"{base}_{suffix}{n}"
    return candidate


def ensure_player_profile(db: Session, identity: Identity) -> PlayerProfile:
    """Find the caller's profile by user id, then email; create it if neither matches."""
    profile = db.execute(
        select(PlayerProfile).where(PlayerProfile.user_id.in_(identity.candidate_ids)).limit(1)
    ).scalars().first()
    if profile is None and identity.email:
        profile = db.execute(
            select(PlayerProfile).where(PlayerProfile.email == identity.email).limit(1)
        ).scalars().first()
        if profile is not None:
            logger.info("Found existing player profile by email: %s", profile.id)
    if profile is not None:
        return profile

    short = identity.user_id[:8]
    base = identity.email.split("@")[0] if identity.email else f"user_{short}"
    profile = PlayerProfile(
        user_id=identity.user_id,
        username=_free_username(db, base, short),
        display_name=identity.name or "Player",
        email=identity.email,
        main_game="unknown",
    )
    db.add(profile)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating player profile for %s", identity.user_id)
        raise
    db.refresh(profile)
    logger.info("Created player profile %s for user %s", profile.id, identity.user_id)
    return profile
