from datetime import datetime
import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field, field_validator
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_optional_identity
from app.api.schemas import CamelModel
from app.core.identity import Identity
from app.models.player import PlayerProfile
from app.services.validation import is_email

router = APIRouter()
logger = logging.getLogger(__name__)


class SocialLink(CamelModel):
    platform: str
    url: str


class PlayerOut(CamelModel):
    id: str
    user_id: str | None
    username: str
    display_name: str | None
    email: str | None
    bio: str | None
    location: str | None
    profile_image: str | None
    main_game: str | None
    experience_level: str
    social_links: list[SocialLink] | None
    win_rate: float
    total_matches: int
    wins: int
    losses: int
    created_at: datetime


class PaginationOut(CamelModel):
    page: int
    limit: int
    total: int
    pages: int


class PlayerPageOut(CamelModel):
    players: list[PlayerOut]
    pagination: PaginationOut


class PlayerCreateIn(CamelModel):
    username: str = Field(min_length=3)
    display_name: str | None = None
    main_game: str | None = None
    email: str | None = None
    profile_image: str | None = None
    win_rate: float = 0
    total_matches: int = 0
    wins: int = 0
    losses: int = 0
    bio: str | None = None
    location: str | None = None
    social_links: list[SocialLink] = []

    @field_validator("email")
    @classmethod
    def _valid_email(cls, v: str | None) -> str | None:
        if v is not None and not is_email(v):
            raise ValueError("Invalid email")
        return v


@router.get("/players", response_model=PlayerPageOut)
def list_players(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    game: str | None = None,
    username: str | None = None,
    db: Session = Depends(get_db),
):
    q = select(PlayerProfile)
    if game:
        q = q.where(PlayerProfile.main_game == game)
    if username:
        q = q.where(PlayerProfile.username.ilike(f"%{username}%"))

    total = db.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    rows = db.execute(
        q.order_by(PlayerProfile.win_rate.desc(), PlayerProfile.username.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()

    return PlayerPageOut(
        players=[PlayerOut.model_validate(p) for p in rows],
        pagination=PaginationOut(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.post("/players", response_model=PlayerOut, status_code=201)
def create_player(
    payload: PlayerCreateIn,
    db: Session = Depends(get_db),
    identity: Identity | None = Depends(get_optional_identity),
):
    username = payload.username.strip()
    exists = db.execute(select(PlayerProfile.id).where(PlayerProfile.username == username)).first()
    if exists:
        raise HTTPException(status_code=409, detail="Player with this username already exists")

    p = PlayerProfile(
        user_id=identity.user_id if identity else None,
        username=username,
        display_name=payload.display_name,
        email=payload.email,
        bio=payload.bio,
        location=payload.location,
        profile_image=payload.profile_image,
        main_game=payload.main_game,
        social_links=[link.model_dump() for link in payload.social_links],
        win_rate=payload.win_rate,
        total_matches=payload.total_matches,
        wins=payload.wins,
        losses=payload.losses,
    )
    db.add(p)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race on the username.
        db.rollback()
        raise HTTPException(status_code=409, detail="Player with this username already exists")
    db.refresh(p)

    logger.info("Player profile %s created (%s)", p.id, username)
    return p


@router.get("/players/username/{username}", response_model=PlayerOut)
def get_player_by_username(username: str, db: Session = Depends(get_db)):
    p = db.execute(select(PlayerProfile).where(PlayerProfile.username == username)).scalars().first()
    if not p:
        raise HTTPException(status_code=404, detail="Player not found")
    return p


@router.get("/players/{player_id}", response_model=PlayerOut)
def get_player(player_id: str, db: Session = Depends(get_db)):
    p = db.get(PlayerProfile, player_id)
    if not p:
        raise HTTPException(status_code=404, detail="Player not found")
    return p
