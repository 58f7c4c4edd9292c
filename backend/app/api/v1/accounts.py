import logging
from uuid import uuid4

import bcrypt
from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_optional_identity
from app.api.schemas import CamelModel
from app.core.identity import Identity
from app.models.player import PlayerProfile, UserCredential
from app.services.validation import is_email

router = APIRouter()
logger = logging.getLogger(__name__)

BCRYPT_ROUNDS = 12
# bcrypt ignores everything past 72 bytes; newer releases raise instead.
BCRYPT_MAX_BYTES = 72


class AccountIn(CamelModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None
    gamertag: str | None = None
    primary_game: str | None = None
    bio: str | None = None
    # Clients send "isOAuthUser", which to_camel would spell "isOauthUser".
    is_oauth_user: bool = Field(default=False, alias="isOAuthUser")


def hash_password(password: str) -> str:
    raw = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


@router.post("/register", status_code=201)
def register_account(
    payload: AccountIn,
    db: Session = Depends(get_db),
    identity: Identity | None = Depends(get_optional_identity),
):
    if not payload.name or not payload.email or not payload.gamertag:
        raise HTTPException(status_code=400, detail="Missing required fields")
    if not payload.is_oauth_user and not payload.password:
        raise HTTPException(status_code=400, detail="Password is required for email registration")
    if not is_email(payload.email):
        raise HTTPException(status_code=400, detail="Invalid email format")

    taken = db.execute(select(PlayerProfile.id).where(PlayerProfile.username == payload.gamertag)).first()
    if taken:
        raise HTTPException(status_code=409, detail="This username is already taken")

    credential = None
    if payload.is_oauth_user:
        if identity is None:
            raise HTTPException(status_code=400, detail="OAuth user not found. Please sign in first.")
        user_id = identity.user_id
    else:
        existing = db.execute(select(UserCredential.id).where(UserCredential.email == payload.email)).first()
        if existing:
            raise HTTPException(status_code=409, detail="User with this email already exists")
        user_id = str(uuid4())
        credential = UserCredential(
            email=payload.email,
            password_hash=hash_password(payload.password),
            user_id=user_id,
        )
        db.add(credential)

    profile = PlayerProfile(
        user_id=user_id,
        username=payload.gamertag,
        display_name=payload.name,
        email=payload.email,
        bio=payload.bio,
        main_game=payload.primary_game,
        experience_level="beginner",
    )
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Account registration for %s lost a uniqueness race", payload.email)
        raise HTTPException(status_code=409, detail="This username or email is already registered")

    logger.info("Account created: user=%s username=%s oauth=%s", user_id, payload.gamertag, payload.is_oauth_user)
    return {
        "success": True,
        "message": "Registration successful!",
        "user": {
            "id": user_id,
            "email": payload.email,
            "username": payload.gamertag,
            "display_name": payload.name,
            "hasPassword": credential is not None,
        },
    }
