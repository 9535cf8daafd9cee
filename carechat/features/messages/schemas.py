# Messages Feature - Schemas

from typing import Optional, List
from datetime import datetime
from pydantic import Field
from carechat.features.messages.models import ChatRole, MessageStatus
from carechat.shared.schemas import CamelModel


# ============== Message Schemas ==============

class AttachmentResponse(CamelModel):
    """Attachment metadata; the binary payload is never part of JSON."""
    id: str
    filename: str
    content_type: str
    size: int


class MessageResponse(CamelModel):
    """Response schema for a message."""
    id: str
    conversation: str
    sender: ChatRole
    sender_id: str
    content: Optional[str] = None
    attachments: List[AttachmentResponse] = Field(default_factory=list)
    status: MessageStatus
    created_at: datetime
    updated_at: datetime


class MessageListResponse(CamelModel):
    """Response schema for list of messages."""
    messages: List[MessageResponse]
    total: int


class MarkReadResponse(CamelModel):
    """Result of a read-receipt update."""
    success: bool = True
    updated: int


# ============== Conversation Schemas ==============

class ConversationCreate(CamelModel):
    """Request schema for opening a conversation with another account."""
    target_user_id: str = Field(..., min_length=1, description="Account to chat with")
    target_user_type: str = Field(..., description="patient, lab or phlebotomist")


class ParticipantSummary(CamelModel):
    """Display fields of a referenced account."""
    id: str
    name: Optional[str] = None


class UnreadCountResponse(CamelModel):
    patient: int = 0
    lab: int = 0
    phlebotomist: int = 0


class ConversationResponse(CamelModel):
    """Response schema for a conversation."""
    id: str
    patient: ParticipantSummary
    lab: Optional[ParticipantSummary] = None
    phlebotomist: Optional[ParticipantSummary] = None
    booking: Optional[str] = None
    participants: List[ChatRole]
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: UnreadCountResponse
    is_active: bool = True
    is_locked: bool = False
    created_at: datetime
    updated_at: datetime


class ConversationListResponse(CamelModel):
    """Response schema for list of conversations."""
    conversations: List[ConversationResponse]
    total: int


class UnreadTotalResponse(CamelModel):
    unread_count: int


# ============== Socket.IO Event Schemas ==============

class MessagesReadEvent(CamelModel):
    """Payload of the messages_read event."""
    conversation_id: str
    reader_id: str


class ConversationLockedEvent(CamelModel):
    """Payload of the conversation_locked event."""
    conversation_id: str
    booking_id: str
    message: str = "Report has been uploaded. This conversation is now read-only."
