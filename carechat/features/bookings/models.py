# Bookings Feature - Models

from typing import Optional
from datetime import datetime
from beanie import Document, Indexed
from carechat.shared.models import TimestampMixin


class Booking(Document, TimestampMixin):
    """
    Read model of a booking owned by the booking service.
    The chat core only reads it: to authorize conversations and to derive
    whether a conversation is locked (report uploaded).
    """

    patient: Indexed(str)
    lab: Indexed(str)
    phlebotomist: Optional[str] = None

    status: str = "pending"

    # Set by the booking service when the lab uploads the report
    report_uploaded_at: Optional[datetime] = None

    class Settings:
        name = "bookings"
        indexes = [
            [("patient", 1), ("lab", 1)],
            [("patient", 1), ("phlebotomist", 1)],
            [("lab", 1), ("phlebotomist", 1)],
        ]
