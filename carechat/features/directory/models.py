# Directory Feature - Models
#
# Read-only projections of the account collections owned by the auth and
# onboarding services. The chat core only needs display names.

from typing import Optional
from beanie import Document


class Patient(Document):
    """Patient account (display fields only)."""

    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    class Settings:
        name = "patients"


class Lab(Document):
    """Lab account (display fields only)."""

    lab_name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    class Settings:
        name = "labs"


class Phlebotomist(Document):
    """Phlebotomist account (display fields only)."""

    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    class Settings:
        name = "phlebotomists"
