# Messages Feature - Dependencies

from fastapi import Request
from carechat.features.messages.locks import ConversationLockService
from carechat.features.messages.service import MessageService


def get_message_service(request: Request) -> MessageService:
    """MessageService wired at startup with the room broadcaster and notifier."""
    return request.app.state.message_service


def get_lock_service(request: Request) -> ConversationLockService:
    return request.app.state.lock_service
