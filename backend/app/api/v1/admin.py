from dataclasses import dataclass
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_mailer, require_admin
from app.api.schemas import CamelModel
from app.core.identity import Identity
from app.models.notification import PlayerNotification
from app.models.player import PlayerProfile
from app.models.registration import CONFIRMED, PENDING, REGISTERED, Registration
from app.models.tournament import Tournament
from app.services.mailer import Mailer, custom_notification

router = APIRouter(prefix="/admin")
logger = logging.getLogger(__name__)

# Pending rows are included so unpaid teams still hear about schedule changes.
NOTIFY_STATUSES = (PENDING, CONFIRMED, REGISTERED)


class NotifyPlayersIn(CamelModel):
    subject: str = Field(min_length=1)
    message: str = Field(min_length=1)
    tournament_id: str | None = None
    send_to_all: bool = False


@dataclass
class Recipient:
    id: str
    name: str
    email: str


def _all_players(db: Session) -> list[Recipient]:
    rows = db.execute(select(PlayerProfile).where(PlayerProfile.email.is_not(None))).scalars().all()
    return [Recipient(p.id, p.display_name or p.username or "Player", p.email) for p in rows if p.email]


def _tournament_players(db: Session, tournament_id: str) -> list[Recipient]:
    rows = db.execute(
        select(Registration).where(
            Registration.tournament_id == tournament_id,
            Registration.status.in_(NOTIFY_STATUSES),
        )
    ).scalars().all()
    return [Recipient(r.id, r.player_name or r.team_name or "Player", r.email) for r in rows if r.email]


@router.post("/notify-players")
def notify_players(
    payload: NotifyPlayersIn,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
    mailer: Mailer = Depends(get_mailer),
):
    try:
        if payload.send_to_all:
            recipients = _all_players(db)
        elif payload.tournament_id:
            recipients = _tournament_players(db, payload.tournament_id)
        else:
            recipients = []
    except SQLAlchemyError:
        logger.exception("Error fetching players to notify")
        raise HTTPException(status_code=500, detail="Failed to fetch players")

    if not recipients:
        raise HTTPException(status_code=400, detail="No players found to notify")

    tournament_name = ""
    if payload.tournament_id:
        t = db.get(Tournament, payload.tournament_id)
        tournament_name = t.name if t else "Tournament"

    notifications = [
        PlayerNotification(
            player_id=r.id,
            player_email=r.email,
            player_name=r.name,
            subject=payload.subject,
            message=payload.message,
            tournament_id=payload.tournament_id,
            sent_by=admin.email or admin.user_id,
            status="sent",
        )
        for r in recipients
    ]
    db.add_all(notifications)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error saving notifications")
        raise HTTPException(status_code=500, detail="Failed to save notifications to database")

    email_results = []
    sent = failed = 0
    for recipient, notification in zip(recipients, notifications):
        content = custom_notification(recipient.name, payload.subject, payload.message, tournament_name)
        result = mailer.send(recipient.email, content)
        if result.success:
            sent += 1
            email_results.append(
                {
                    "player": recipient.name,
                    "email": recipient.email,
                    "status": "sent",
                    "messageId": result.message_id or "unknown",
                }
            )
        else:
            failed += 1
            notification.status = "failed"
            email_results.append(
                {"player": recipient.name, "email": recipient.email, "status": "failed", "error": result.error}
            )

    if failed:
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Error recording failed notification deliveries")

    logger.info("Notified players: %s sent, %s failed (by %s)", sent, failed, admin.email or admin.user_id)
    return {
        "success": True,
        "message": f"Emails sent to {sent} players. {failed} failed.",
        "playersNotified": sent,
        "emailResults": email_results,
        "stats": {"total": len(recipients), "successful": sent, "failed": failed},
    }
