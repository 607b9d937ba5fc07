"""
Cancellation policy model - refund rules selectable per booking.
"""
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import CheckConstraint, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from petcare.lib.db import Base


class CancellationPolicy(Base):
    """
    Refund rule: cancelling at least `hours_before` hours ahead refunds
    `refund_percentage` of the booking price, otherwise nothing.
    """
    __tablename__ = "cancellation_policies"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    hours_before: Mapped[int] = mapped_column(Integer, nullable=False)
    refund_percentage: Mapped[float] = mapped_column(
        Numeric(5, 2, asdecimal=False),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "refund_percentage >= 0 AND refund_percentage <= 100",
            name="policy_refund_percentage_range",
        ),
        CheckConstraint("hours_before >= 0", name="policy_hours_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<CancellationPolicy(name={self.name}, hours_before={self.hours_before})>"
