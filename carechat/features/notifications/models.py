# Notifications Feature - Models

from typing import Optional, Dict, Any
from datetime import datetime
from beanie import Document, Indexed
from pydantic import Field
from carechat.shared.models import TimestampMixin


class Notification(Document, TimestampMixin):
    """In-app notification shown in the recipient's notification center."""

    user: Indexed(str)
    user_type: str  # patient | lab | phlebotomist | admin
    type: str  # e.g. "new_message"
    title: str
    message: str
    related_booking: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    is_read: bool = False
    read_at: Optional[datetime] = None

    class Settings:
        name = "notifications"
        indexes = [
            [("user", 1), ("created_at", -1)],
            [("user", 1), ("is_read", 1)],
        ]


class PushSubscription(Document, TimestampMixin):
    """
    Push notification subscription document model.
    Stores Web Push API subscriptions for any chat account.
    """

    user_id: Indexed(str)
    user_type: str

    # Push subscription data
    endpoint: Indexed(str)
    p256dh: str  # Public key
    auth: str  # Auth secret

    # Status
    is_active: bool = True

    class Settings:
        name = "push_subscriptions"
        use_state_management = True
