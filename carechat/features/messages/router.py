# Messages Feature - Router

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from typing import List, Optional
from carechat.features.messages.schemas import (
    ConversationCreate,
    ConversationResponse,
    ConversationListResponse,
    MessageResponse,
    MessageListResponse,
    MarkReadResponse,
    UnreadTotalResponse,
)
from carechat.features.messages.attachments import inline_disposition
from carechat.features.messages.dependencies import get_message_service
from carechat.features.messages.service import ConversationService, MessageService
from carechat.features.auth.dependencies import get_chat_identity
from carechat.features.auth.schemas import ChatIdentity


router = APIRouter(prefix="/chat", tags=["Chat"])


# ============== Conversation Endpoints ==============

@router.post("/conversation", response_model=ConversationResponse)
async def resolve_conversation(
    request: ConversationCreate,
    identity: ChatIdentity = Depends(get_chat_identity),
):
    """
    Get or create the conversation with another account.

    Allowed pairings: patient-lab, patient-phlebotomist and lab-phlebotomist,
    each backed by a booking joining the two.
    """
    conversation = await ConversationService.resolve_or_create(
        caller=identity,
        target_user_id=request.target_user_id,
        target_user_type=request.target_user_type,
    )
    return ConversationService.to_response(conversation)


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(identity: ChatIdentity = Depends(get_chat_identity)):
    """List the caller's conversations, most recent activity first."""
    conversations = await ConversationService.list_for_identity(identity)
    return ConversationListResponse(conversations=conversations, total=len(conversations))


@router.get("/unread-count", response_model=UnreadTotalResponse)
async def get_unread_count(identity: ChatIdentity = Depends(get_chat_identity)):
    """Total unread messages across the caller's conversations."""
    total = await ConversationService.get_unread_total(identity)
    return UnreadTotalResponse(unread_count=total)


# ============== Message Endpoints ==============

@router.post("/messages", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def post_message(
    conversation_id: str = Form(..., alias="conversationId"),
    content: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    identity: ChatIdentity = Depends(get_chat_identity),
    service: MessageService = Depends(get_message_service),
):
    """
    Post a message with optional attachments (multipart/form-data).

    Up to 5 JPEG, PNG, WEBP or PDF files of at most 10MB each.
    """
    return await service.post_message(
        conversation_id=conversation_id,
        sender=identity,
        content=content,
        files=files or [],
    )


@router.get("/messages/{conversation_id}", response_model=MessageListResponse)
async def list_messages(
    conversation_id: str,
    identity: ChatIdentity = Depends(get_chat_identity),
    service: MessageService = Depends(get_message_service),
):
    """Messages of a conversation, oldest first. Attachment payloads are omitted."""
    messages = await service.list_messages(conversation_id, identity)
    return MessageListResponse(messages=messages, total=len(messages))


@router.put("/messages/{conversation_id}/read", response_model=MarkReadResponse)
async def mark_messages_read(
    conversation_id: str,
    identity: ChatIdentity = Depends(get_chat_identity),
    service: MessageService = Depends(get_message_service),
):
    """Mark everything the caller has not authored as read."""
    updated = await service.mark_read(conversation_id, identity)
    return MarkReadResponse(updated=updated)


@router.get("/messages/{message_id}/attachments/{attachment_index}")
async def get_attachment(
    message_id: str,
    attachment_index: int,
    identity: ChatIdentity = Depends(get_chat_identity),
    service: MessageService = Depends(get_message_service),
):
    """Raw bytes of one attachment, rendered inline."""
    attachment = await service.get_attachment(message_id, attachment_index, identity)
    return Response(
        content=attachment.data,
        media_type=attachment.content_type,
        headers={"Content-Disposition": inline_disposition(attachment.filename)},
    )
