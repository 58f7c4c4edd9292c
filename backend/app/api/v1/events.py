from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_current_identity, get_db
from app.api.schemas import CamelModel, dump
from app.core.identity import Identity
from app.db import errors
from app.models.event import Event, EventRegistration

router = APIRouter()
logger = logging.getLogger(__name__)


class EventOut(CamelModel):
    id: str
    title: str
    type: str | None = None
    date: datetime | None = None
    time: str | None = None
    location: str | None = None
    description: str | None = None
    image_url: str | None = None
    banner_image: str | None = None
    ticket_price: int = 0
    vip_ticket_price: int = 0
    is_public: bool = True
    featured: bool = False


class EventListOut(CamelModel):
    events: list[EventOut]
    is_fallback: bool | None = None
    error: str | None = None


class EventIn(CamelModel):
    title: str | None = None
    type: str | None = None
    date: str | None = None
    time: str | None = None
    location: str | None = None
    description: str | None = None
    image_url: str | None = None
    banner_image: str | None = None
    ticket_price: int = 0
    vip_ticket_price: int = 0
    is_public: bool = True
    featured: bool = False


class EventSignupIn(CamelModel):
    event_id: str | None = None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    ticket_type: str | None = None


class EventRegistrationOut(CamelModel):
    id: str
    event_id: str
    user_id: str
    name: str | None
    email: str | None
    phone: str | None
    ticket_type: str | None
    payment_status: str
    created_at: datetime


FALLBACK_EVENTS = [
    EventOut(
        id="1",
        title="EpicEsports Community Tournament",
        date=datetime(2023, 8, 15, tzinfo=timezone.utc),
        time="14:00",
        location="Online",
        description="Join our monthly community tournament and show your skills.",
        image_url="/images/events/community-tournament.jpg",
        type="tournament",
    ),
    EventOut(
        id="2",
        title="Valorant Pro Workshop",
        date=datetime(2023, 9, 1, tzinfo=timezone.utc),
        time="16:00",
        location="Delhi, India",
        description="Learn from professional Valorant players in this exclusive workshop.",
        image_url="/images/events/valorant-workshop.jpg",
        type="workshop",
    ),
]


def _event_out(e: Event) -> EventOut:
    return EventOut(
        id=e.id,
        title=e.name,
        type=e.event_type,
        date=e.start_date,
        time=e.time,
        location=e.location,
        description=e.description,
        image_url=e.image_url,
        banner_image=e.banner_image,
        ticket_price=e.ticket_price,
        vip_ticket_price=e.vip_ticket_price,
        is_public=e.is_public,
        featured=e.featured,
    )


def _parse_date(value: str | None) -> datetime:
    if value:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            logger.warning("Failed to parse event date %r, using now", value)
        else:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


@router.get("/events", response_model=EventListOut, response_model_exclude_none=True)
def list_events(
    type: str | None = None,
    sortBy: str = "date",
    featured: bool = False,
    db: Session = Depends(get_db),
):
    q = select(Event)
    if type and type != "all":
        q = q.where(Event.event_type == type)
    if featured:
        q = q.where(Event.featured.is_(True))
    q = q.order_by(Event.name.asc() if sortBy == "title" else Event.start_date.asc())

    try:
        rows = db.execute(q).scalars().all()
    except SQLAlchemyError:
        logger.exception("Error fetching events")
        return EventListOut(
            events=FALLBACK_EVENTS, is_fallback=True, error="Database connection error, showing sample data"
        )

    if not rows:
        logger.warning("No events found in database, using fallback data")
        return EventListOut(events=FALLBACK_EVENTS, is_fallback=True)
    return EventListOut(events=[_event_out(e) for e in rows])


@router.post("/events", status_code=201)
def create_event(
    payload: EventIn,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    if not payload.title:
        raise HTTPException(status_code=400, detail={"error": "Missing required fields", "details": "title is required"})

    e = Event(
        name=payload.title,
        event_type=payload.type,
        start_date=_parse_date(payload.date),
        time=payload.time,
        location=payload.location,
        description=payload.description,
        image_url=payload.image_url,
        banner_image=payload.banner_image,
        ticket_price=payload.ticket_price,
        vip_ticket_price=payload.vip_ticket_price,
        is_public=payload.is_public,
        featured=payload.featured,
    )
    db.add(e)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        code = errors.sqlstate(exc)
        raise HTTPException(
            status_code=400 if code else 500,
            detail={"error": errors.message_for(code, "Failed to create event"), "details": str(exc.orig)},
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error creating event %r", payload.title)
        raise HTTPException(status_code=500, detail="Failed to create event. Please try again later.")
    db.refresh(e)

    logger.info("Event %s created by %s", e.id, identity.user_id)
    return {"message": "Event created successfully", "event": dump(_event_out(e))}


@router.patch("/events")
def register_for_event(
    payload: EventSignupIn,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
):
    if not payload.event_id:
        raise HTTPException(status_code=400, detail="Event ID is required")

    event = db.get(Event, payload.event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")

    reg = EventRegistration(
        event_id=event.id,
        user_id=identity.user_id,
        name=payload.name or identity.name,
        email=payload.email or identity.email,
        phone=payload.phone,
        ticket_type=payload.ticket_type or "standard",
        payment_status="free" if not event.ticket_price else "pending",
    )
    db.add(reg)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error registering %s for event %s", identity.user_id, event.id)
        raise HTTPException(status_code=500, detail="Failed to register for event. Please try again later.")
    db.refresh(reg)

    logger.info("User %s registered for event %s", identity.user_id, event.id)
    return {"message": "Successfully registered for event", "registration": dump(EventRegistrationOut.model_validate(reg))}
