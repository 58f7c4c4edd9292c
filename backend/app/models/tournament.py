from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Tournament(Base):
    __tablename__ = "tournaments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    game: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    game_image: Mapped[str | None] = mapped_column(String(512))
    banner_image: Mapped[str | None] = mapped_column(String(512))

    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    registration_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    prize_pool: Mapped[str | None] = mapped_column(String(64))
    team_size: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_teams: Mapped[int] = mapped_column(Integer, nullable=False, default=16)
    # Cached COUNT of active registrations; corrected on detail reads.
    current_teams: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Entry fee in rupees. 0 means free.
    registration_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    location: Mapped[str | None] = mapped_column(String(128))
    # upcoming/ongoing/completed
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="upcoming", index=True)
    format: Mapped[str | None] = mapped_column(String(64))
    description: Mapped[str | None] = mapped_column(Text)
    rules: Mapped[str | None] = mapped_column(Text)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    organizer_name: Mapped[str | None] = mapped_column(String(128))
    organizer_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    organizer_contact: Mapped[str | None] = mapped_column(String(320))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
