from pydantic import BaseModel
from carechat.features.messages.models import ChatRole


class CurrentIdentity(BaseModel):
    """Authenticated account as asserted by the access token."""
    id: str
    user_type: str


class ChatIdentity(BaseModel):
    """Authenticated account acting in one of the chat roles."""
    id: str
    role: ChatRole
