from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base

# status values
PENDING_PAYMENT = "pending_payment"
PENDING = "pending"
REGISTERED = "registered"
CONFIRMED = "confirmed"
CANCELLED = "cancelled"

# payment_status values
PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_FREE = "free"

# Registrations that occupy a slot in the tournament.
ACTIVE_STATUSES = (REGISTERED, CONFIRMED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Registration(Base):
    __tablename__ = "registrations"
    __table_args__ = (
        # One live registration per caller per tournament; cancelled rows don't count.
        Index(
            "uq_registration_tournament_user",
            "tournament_id",
            "user_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    # Nullable: emergency registrations are created before the tournament is known.
    tournament_id: Mapped[str | None] = mapped_column(
        ForeignKey("tournaments.id", ondelete="SET NULL"), index=True
    )
    # Normalized caller id; legacy rows may hold a raw subject or an email.
    user_id: Mapped[str] = mapped_column(String(320), nullable=False, index=True)

    team_name: Mapped[str | None] = mapped_column(String(128))
    player_name: Mapped[str | None] = mapped_column(String(128))
    email: Mapped[str | None] = mapped_column(String(320), index=True)
    team_members: Mapped[list | None] = mapped_column(JSON)
    captain: Mapped[dict | None] = mapped_column(JSON)
    contact_info: Mapped[dict | None] = mapped_column(JSON)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default=PENDING)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default=PAYMENT_PENDING)
    transaction_id: Mapped[str | None] = mapped_column(String(128), index=True)
    razorpay_order_id: Mapped[str | None] = mapped_column(String(128))
    razorpay_payment_id: Mapped[str | None] = mapped_column(String(128))
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
        nullable=False,
    )

    tournament = relationship("Tournament")
