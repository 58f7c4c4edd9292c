"""Matching a captured payment to the registration it pays for.

The client does not always send the registration id, so the registration is
located by a first-match-wins cascade:

1. the explicit registration id;
2. the latest pending registration under any of the caller's ids;
3. the latest pending registration under the caller's email, retried once
   after a short delay to ride out read-after-write lag;
4. a registration already carrying this payment id (webhook replay);
5. a new "emergency" registration with no tournament, so the payment is
   never lost.

There is no rollback once the gateway has captured the money: if the final
write fails the error is logged and surfaced, and the payment stays with the
gateway for manual follow-up.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
import time

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.identity import Identity
from app.models.registration import CONFIRMED, PAYMENT_PAID, PAYMENT_PENDING, Registration
from app.models.tournament import Tournament
from app.services.registrations import reconcile_team_count

logger = logging.getLogger(__name__)

CONFIRMED_OUTCOME = "confirmed"
ALREADY_VERIFIED = "already_verified"
REPLAYED = "replayed"
EMERGENCY = "emergency"

EMERGENCY_NOTE = "Registration created during payment verification - tournament ID unknown"


@dataclass
class Reconciliation:
    registration: Registration
    outcome: str
    strategy: str


def _latest_pending(db: Session, clause) -> Registration | None:
    return db.execute(
        select(Registration)
        .where(clause, Registration.payment_status == PAYMENT_PENDING)
        .order_by(Registration.created_at.desc())
        .limit(1)
    ).scalars().first()


def find_by_transaction(db: Session, payment_id: str, exclude_id: str | None = None) -> Registration | None:
    q = select(Registration).where(Registration.transaction_id == payment_id)
    if exclude_id is not None:
        q = q.where(Registration.id != exclude_id)
    return db.execute(q.limit(1)).scalars().first()


def locate_pending_registration(
    db: Session,
    identity: Identity,
    *,
    retry_delay: float,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[Registration | None, str | None]:
    reg = _latest_pending(db, Registration.user_id.in_(identity.candidate_ids))
    if reg is not None:
        logger.info("Found pending registration %s by user id", reg.id)
        return reg, "user_id"

    if not identity.email:
        return None, None

    reg = _latest_pending(db, Registration.email == identity.email)
    if reg is not None:
        logger.info("Found pending registration %s by email", reg.id)
        return reg, "email"

    logger.info("Registration not found immediately, retrying by email in %ss", retry_delay)
    sleep(retry_delay)
    db.expire_all()
    reg = _latest_pending(db, Registration.email == identity.email)
    if reg is not None:
        logger.info("Found pending registration %s on retry", reg.id)
        return reg, "email_retry"
    return None, None


def confirm_payment(
    db: Session, registration: Registration, *, payment_id: str, order_id: str | None
) -> Registration:
    registration.status = CONFIRMED
    registration.payment_status = PAYMENT_PAID
    registration.transaction_id = payment_id
    registration.razorpay_payment_id = payment_id
    if order_id:
        registration.razorpay_order_id = order_id
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Payment %s captured but registration %s could not be confirmed", payment_id, registration.id
        )
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to confirm registration", "paymentId": payment_id},
        )
    db.refresh(registration)
    logger.info("Payment %s confirmed registration %s", payment_id, registration.id)

    if registration.tournament_id:
        try:
            t = db.get(Tournament, registration.tournament_id)
            if t:
                reconcile_team_count(db, t)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to update team count for tournament %s", registration.tournament_id)
    return registration


def create_emergency_registration(
    db: Session, identity: Identity, *, payment_id: str, order_id: str | None
) -> Registration:
    logger.warning(
        "No registration found for payment %s (user=%s email=%s); creating emergency registration",
        payment_id,
        identity.user_id,
        identity.email,
    )
    reg = Registration(
        tournament_id=None,
        user_id=identity.user_id,
        player_name=identity.name or "Player",
        email=identity.email or "",
        team_name="Emergency Registration",
        status=CONFIRMED,
        payment_status=PAYMENT_PAID,
        transaction_id=payment_id,
        razorpay_payment_id=payment_id,
        razorpay_order_id=order_id,
        notes=EMERGENCY_NOTE,
    )
    db.add(reg)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create emergency registration for payment %s", payment_id)
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Could not find or create registration for this payment",
                "details": "Please ensure you have completed the registration process before making payment, or contact support",
                "userInfo": {"userId": identity.user_id, "userEmail": identity.email},
                "paymentId": payment_id,
            },
        )
    db.refresh(reg)
    logger.warning("Emergency registration %s created for payment %s", reg.id, payment_id)
    return reg


def reconcile_payment(
    db: Session,
    identity: Identity,
    *,
    payment_id: str,
    order_id: str | None = None,
    registration_id: str | None = None,
    retry_delay: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Reconciliation:
    if registration_id:
        reg = db.get(Registration, registration_id)
        if reg is None:
            logger.error("Registration %s not found for payment %s", registration_id, payment_id)
            replay = find_by_transaction(db, payment_id)
            if replay is not None:
                return Reconciliation(replay, REPLAYED, "transaction_id")
            raise HTTPException(
                status_code=404,
                detail="Registration not found - payment successful but registration may have been removed",
            )
        if reg.status == CONFIRMED and reg.payment_status == PAYMENT_PAID:
            logger.info("Registration %s already confirmed", reg.id)
            return Reconciliation(reg, ALREADY_VERIFIED, "registration_id")
        strategy = "registration_id"
    else:
        reg, strategy = locate_pending_registration(db, identity, retry_delay=retry_delay, sleep=sleep)

    # Never attach one payment to two registrations.
    replay = find_by_transaction(db, payment_id, exclude_id=reg.id if reg is not None else None)
    if replay is not None:
        logger.info("Payment %s already recorded on registration %s", payment_id, replay.id)
        return Reconciliation(replay, REPLAYED, "transaction_id")

    if reg is not None:
        return Reconciliation(
            confirm_payment(db, reg, payment_id=payment_id, order_id=order_id),
            CONFIRMED_OUTCOME,
            strategy or "registration_id",
        )

    return Reconciliation(
        create_emergency_registration(db, identity, payment_id=payment_id, order_id=order_id),
        EMERGENCY,
        "emergency",
    )
