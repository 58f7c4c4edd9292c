from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class PlayerNotification(Base):
    __tablename__ = "player_notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Profile id or registration id, depending on how the recipient was selected.
    player_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    player_email: Mapped[str] = mapped_column(String(320), nullable=False)
    player_name: Mapped[str | None] = mapped_column(String(128))
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    tournament_id: Mapped[str | None] = mapped_column(String(36), index=True)
    sent_by: Mapped[str] = mapped_column(String(320), nullable=False)
    # sent/failed
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="sent")

    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
