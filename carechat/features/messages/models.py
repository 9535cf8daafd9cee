# Messages Feature - Models

from enum import Enum
from typing import Optional, List
from datetime import datetime
from beanie import Document, Indexed
from bson import ObjectId
from pydantic import BaseModel, Field, field_validator
from pymongo import IndexModel
from carechat.shared.models import TimestampMixin, utc_now


class ChatRole(str, Enum):
    """Account types that can take part in a conversation."""

    PATIENT = "patient"
    LAB = "lab"
    PHLEBOTOMIST = "phlebotomist"


class MessageStatus(str, Enum):
    """Delivery state of a message (one scalar per message, not per recipient)."""

    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


class UnreadCount(BaseModel):
    """Per-role unread counters, one slot for every chat role."""

    patient: int = 0
    lab: int = 0
    phlebotomist: int = 0

    def for_role(self, role: ChatRole) -> int:
        return getattr(self, role.value)


class Conversation(Document, TimestampMixin):
    """
    Conversation document model.
    A chat thread opened between two of {patient, lab, phlebotomist}, always
    anchored to a patient. `participants` records the pair that opened it;
    every filled role slot (the anchor patient included) may read, post and
    receive unread counts.
    """

    # Anchor patient (always present)
    patient: Indexed(str)

    # Other parties
    lab: Optional[str] = None
    phlebotomist: Optional[str] = None

    # Booking that justifies this conversation; its report upload locks it
    booking: Optional[str] = None

    # The two roles that opened the thread
    participants: List[ChatRole]

    # "<role>:<id>|<role>:<id>" of the opening pair; unique per pair
    pair_key: Optional[str] = None

    # Last message preview for conversation list
    last_message: Optional[str] = None
    last_message_at: datetime = Field(default_factory=utc_now)

    unread_count: UnreadCount = Field(default_factory=UnreadCount)

    # Status
    is_active: bool = True

    class Settings:
        name = "conversations"
        use_state_management = True
        indexes = [
            [("patient", 1), ("lab", 1)],
            [("patient", 1), ("phlebotomist", 1)],
            [("lab", 1), ("phlebotomist", 1)],
            [("booking", 1)],
            [("last_message_at", -1)],
            IndexModel([("pair_key", 1)], unique=True, sparse=True),
        ]

    def reference_for(self, role: ChatRole) -> Optional[str]:
        """Stored account id for a role slot."""
        return getattr(self, role.value)

    def filled_roles(self) -> List[ChatRole]:
        """Role slots holding an account reference."""
        return [role for role in ChatRole if self.reference_for(role)]

    def is_participant(self, user_id: str, role: ChatRole) -> bool:
        """True when the account occupies the role slot."""
        return bool(user_id) and self.reference_for(role) == user_id

    def recipients_of(self, sender_role: ChatRole) -> List[ChatRole]:
        """Filled role slots other than the sender's."""
        return [role for role in self.filled_roles() if role != sender_role]


class Attachment(BaseModel):
    """A file embedded in a message. `data` is only ever served by the attachment endpoint."""

    id: str = Field(default_factory=lambda: str(ObjectId()))
    filename: str
    content_type: str
    size: int
    data: bytes

    @field_validator("data")
    @classmethod
    def plain_bytes(cls, value: bytes) -> bytes:
        # Drivers may hand back bson.Binary
        return bytes(value)


class Message(Document, TimestampMixin):
    """
    Message document model.
    Append-only: only `status` changes after creation.
    """

    # Reference to the conversation
    conversation: Indexed(str)

    # Sender information
    sender: ChatRole
    sender_id: str

    # Message content (may be empty when attachments are present)
    content: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)

    status: MessageStatus = MessageStatus.SENT

    class Settings:
        name = "messages"
        use_state_management = True
        indexes = [
            # Index for fetching messages in a conversation (sorted by time)
            [("conversation", 1), ("created_at", 1)],
            # Index for read-receipt bulk updates
            [("conversation", 1), ("status", 1)],
        ]
