from __future__ import annotations

from collections.abc import Generator
import json
import logging
import time
import urllib.request

from fastapi import Depends, Header, HTTPException
from jose import jwt
from jose.exceptions import JWTError
from sqlalchemy.orm import Session

from app.core.identity import Identity
from app.core.settings import settings
from app.db.session import SessionLocal
from app.services.mailer import Mailer
from app.services.payments import PaymentGateway

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_payment_gateway() -> PaymentGateway:
    return PaymentGateway.from_settings(settings)


def get_mailer() -> Mailer:
    return Mailer.from_settings(settings)


_JWKS_CACHE: dict | None = None
_JWKS_CACHE_UNTIL: float = 0


def _get_jwks() -> dict:
    global _JWKS_CACHE, _JWKS_CACHE_UNTIL

    if _JWKS_CACHE and time.time() < _JWKS_CACHE_UNTIL:
        return _JWKS_CACHE

    if not settings.AUTH_DOMAIN:
        raise RuntimeError("AUTH_DOMAIN not configured")

    url = f"https://{settings.AUTH_DOMAIN}/.well-known/jwks.json"
    with urllib.request.urlopen(url, timeout=5) as resp:
        data = json.loads(resp.read().decode("utf-8"))

    _JWKS_CACHE = data
    _JWKS_CACHE_UNTIL = time.time() + 3600
    return data


def _decode_bearer(authorization: str) -> dict:
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization header")

    token = parts[1]

    try:
        unverified_header = jwt.get_unverified_header(token)
        kid = unverified_header.get("kid")
        jwks = _get_jwks()
        key = next((k for k in jwks.get("keys", []) if k.get("kid") == kid), None)
        if not key:
            raise HTTPException(status_code=401, detail="Unable to find signing key")

        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=settings.AUTH_AUDIENCE,
            issuer=f"https://{settings.AUTH_DOMAIN}/",
        )
    except HTTPException:
        raise
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


def _is_admin(email: str | None, role: str | None) -> bool:
    if (role or "").lower() == "admin":
        return True
    admins = {e.strip().lower() for e in settings.ADMIN_EMAILS}
    return bool(email and email.strip().lower() in admins)


def get_optional_identity(
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
    x_user_name: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Identity | None:
    # Dev fallback until the identity provider is configured.
    provider_configured = bool(settings.AUTH_DOMAIN and settings.AUTH_AUDIENCE)
    if not provider_configured:
        subject = (x_user_id or x_user_email or "").strip()
        if not subject:
            return None
        return Identity.resolve(
            subject,
            email=x_user_email,
            name=x_user_name,
            is_admin=_is_admin(x_user_email, x_user_role),
        )

    if not authorization:
        return None

    payload = _decode_bearer(authorization)
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Token missing sub")

    email = payload.get("email")
    return Identity.resolve(
        str(sub),
        email=email,
        name=payload.get("name"),
        is_admin=_is_admin(email, payload.get("role")),
    )


def get_current_identity(identity: Identity | None = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return identity


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        logger.warning("Admin endpoint refused for %s", identity.email or identity.subject)
        raise HTTPException(status_code=403, detail="Admin access required")
    return identity
