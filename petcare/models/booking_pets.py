"""
Booking/pet many-to-many link rows.
"""
from uuid import uuid4, UUID

from sqlalchemy import Uuid
from sqlalchemy.orm import Mapped, mapped_column

from petcare.lib.db import Base


class BookingPet(Base):
    """
    Link between a pet and a booking.

    booking_id carries no foreign key: recurring series creation may key the
    rows by series id (see Settings.link_pets_to_bookings).
    """
    __tablename__ = "booking_pets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    booking_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    pet_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<BookingPet(booking_id={self.booking_id}, pet_id={self.pet_id})>"
