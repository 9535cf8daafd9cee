# Bookings Feature - Service

from typing import Optional
from bson import ObjectId
from carechat.features.bookings.models import Booking


class BookingService:
    """Booking lookups the chat core depends on."""

    @staticmethod
    async def find_shared_booking(
        patient_id: Optional[str] = None,
        lab_id: Optional[str] = None,
        phlebotomist_id: Optional[str] = None,
    ) -> Optional[Booking]:
        """
        Most recent booking joining every given party.

        Args:
            patient_id: Patient that must be on the booking
            lab_id: Lab that must be on the booking
            phlebotomist_id: Phlebotomist that must be on the booking

        Returns:
            The newest matching booking, or None
        """
        criteria = []
        if patient_id is not None:
            criteria.append(Booking.patient == patient_id)
        if lab_id is not None:
            criteria.append(Booking.lab == lab_id)
        if phlebotomist_id is not None:
            criteria.append(Booking.phlebotomist == phlebotomist_id)
        if len(criteria) < 2:
            raise ValueError("A shared booking needs at least two parties")

        bookings = await Booking.find(*criteria).sort([("created_at", -1)]).limit(1).to_list()
        return bookings[0] if bookings else None

    @staticmethod
    async def get_booking(booking_id: str) -> Optional[Booking]:
        """Load a booking by id; malformed ids simply do not exist."""
        if not ObjectId.is_valid(booking_id):
            return None
        return await Booking.get(ObjectId(booking_id))

    @staticmethod
    async def is_report_uploaded(booking_id: Optional[str]) -> bool:
        """Whether the booking's report has been uploaded (the conversation lock)."""
        if not booking_id:
            return False
        booking = await BookingService.get_booking(booking_id)
        return bool(booking and booking.report_uploaded_at)
