"""
In-app notification model.
"""
from datetime import datetime, timezone
from uuid import uuid4, UUID
import enum

from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from petcare.lib.db import Base


class NotificationType(str, enum.Enum):
    RECURRING_CREATED = "recurring_created"
    BOOKING_CANCELLED = "booking_cancelled"


class Notification(Base):
    """
    Notification shown in a user's bell. `type` is free text in storage so
    other parts of the system can add their own kinds.
    """
    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    recipient_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(String(2000), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<Notification(recipient_id={self.recipient_id}, type={self.type})>"
