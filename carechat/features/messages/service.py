# Messages Feature - Service

import asyncio
from typing import Any, Dict, List, Optional, Protocol, Set
from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from beanie.operators import In
from fastapi import UploadFile
from carechat.features.auth.schemas import ChatIdentity
from carechat.features.bookings.models import Booking
from carechat.features.bookings.service import BookingService
from carechat.features.directory.service import DirectoryService
from carechat.features.messages.access import ensure_participant, resolve_participants
from carechat.features.messages.attachments import message_to_response, read_attachments
from carechat.features.messages.models import (
    Attachment,
    ChatRole,
    Conversation,
    Message,
    MessageStatus,
)
from carechat.features.messages.schemas import (
    ConversationResponse,
    MessageResponse,
    MessagesReadEvent,
    ParticipantSummary,
    UnreadCountResponse,
)
from carechat.core.logging import logger
from carechat.shared.exceptions import (
    BadRequestException,
    ConversationLockedException,
    NotFoundException,
)
from carechat.shared.models import utc_now


ATTACHMENT_PREVIEW = "Attachment"


class Broadcaster(Protocol):
    """Room fan-out used for realtime pushes."""

    async def broadcast(self, conversation_id: str, event: str, payload: Dict[str, Any]) -> None:
        ...


class Notifier(Protocol):
    """Notification collaborator."""

    async def create_notification(
        self,
        user_id: str,
        user_type: str,
        type: str,
        title: str,
        message: str,
        related_booking: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Any:
        ...


class ConversationService:
    """Identity, lookup and listing of conversations."""

    @staticmethod
    async def resolve_or_create(
        caller: ChatIdentity,
        target_user_id: str,
        target_user_type: str,
    ) -> Conversation:
        """
        Get the conversation between the caller and a target account, creating
        it on first contact.

        Args:
            caller: Authenticated account opening the conversation
            target_user_id: Account to chat with
            target_user_type: Role of that account

        Returns:
            Conversation document

        Raises:
            ForbiddenException: invalid pairing or no booking history
        """
        resolved = await resolve_participants(caller, target_user_id, target_user_type)

        conversation = await Conversation.find_one(*resolved.lookup_criteria())
        if conversation:
            return conversation

        conversation = Conversation(
            patient=resolved.patient,
            lab=resolved.lab,
            phlebotomist=resolved.phlebotomist,
            booking=resolved.booking,
            participants=resolved.participants,
            pair_key=resolved.pair_key(),
        )
        try:
            await conversation.insert()
        except DuplicateKeyError:
            # A concurrent first contact created it between lookup and insert
            existing = await Conversation.find_one(*resolved.lookup_criteria())
            if existing is None:
                raise
            return existing

        logger.info(
            f"Created conversation {conversation.id} "
            f"({'-'.join(r.value for r in resolved.participants)}) for booking {resolved.booking}"
        )
        return conversation

    @staticmethod
    async def get_conversation(conversation_id: str) -> Conversation:
        """
        Load a conversation by id.

        Raises:
            NotFoundException: If the id is malformed or no such conversation exists
        """
        if not conversation_id or not ObjectId.is_valid(conversation_id):
            raise NotFoundException("Conversation not found")

        conversation = await Conversation.get(ObjectId(conversation_id))
        if not conversation:
            raise NotFoundException("Conversation not found")

        return conversation

    @staticmethod
    async def get_for_participant(conversation_id: str, identity: ChatIdentity) -> Conversation:
        """Load a conversation holding the identity in its role slot (404 / 403 otherwise)."""
        conversation = await ConversationService.get_conversation(conversation_id)
        ensure_participant(conversation, identity)
        return conversation

    @staticmethod
    def _participant_query(identity: ChatIdentity) -> Dict[str, Any]:
        return {identity.role.value: identity.id}

    @staticmethod
    async def list_for_identity(identity: ChatIdentity) -> List[ConversationResponse]:
        """
        All conversations holding the identity in its role slot, most recent
        activity first.

        References are expanded to display names and each row carries the
        lock state derived from its booking.
        """
        conversations = await Conversation.find(
            ConversationService._participant_query(identity)
        ).sort([("last_message_at", -1), ("_id", -1)]).to_list()

        names: Dict[ChatRole, Dict[str, str]] = {}
        for role in ChatRole:
            ids = [c.reference_for(role) for c in conversations if c.reference_for(role)]
            names[role] = await DirectoryService.display_names(role, ids)

        locked = await ConversationService._locked_bookings(conversations)

        return [
            ConversationService.to_response(conv, names, conv.booking in locked)
            for conv in conversations
        ]

    @staticmethod
    async def _locked_bookings(conversations: List[Conversation]) -> Set[str]:
        """Ids of the referenced bookings whose report has been uploaded."""
        booking_ids = list({
            ObjectId(c.booking) for c in conversations
            if c.booking and ObjectId.is_valid(c.booking)
        })
        if not booking_ids:
            return set()

        bookings = await Booking.find(
            In(Booking.id, booking_ids),
            Booking.report_uploaded_at != None,
        ).to_list()
        return {str(b.id) for b in bookings}

    @staticmethod
    def to_response(
        conversation: Conversation,
        names: Optional[Dict[ChatRole, Dict[str, str]]] = None,
        is_locked: bool = False,
    ) -> ConversationResponse:
        """Convert Conversation document to response schema."""
        names = names or {}

        def summary(role: ChatRole) -> Optional[ParticipantSummary]:
            ref = conversation.reference_for(role)
            if not ref:
                return None
            return ParticipantSummary(id=ref, name=names.get(role, {}).get(ref))

        return ConversationResponse(
            id=str(conversation.id),
            patient=summary(ChatRole.PATIENT),
            lab=summary(ChatRole.LAB),
            phlebotomist=summary(ChatRole.PHLEBOTOMIST),
            booking=conversation.booking,
            participants=conversation.participants,
            last_message=conversation.last_message,
            last_message_at=conversation.last_message_at,
            unread_count=UnreadCountResponse(**conversation.unread_count.model_dump()),
            is_active=conversation.is_active,
            is_locked=is_locked,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )

    @staticmethod
    async def get_unread_total(identity: ChatIdentity) -> int:
        """Total unread messages for the identity across its conversations."""
        result = await Conversation.find(
            ConversationService._participant_query(identity)
        ).sum(f"unread_count.{identity.role.value}")

        return int(result or 0)


class MessageService:
    """
    Posting, listing and read receipts for messages.

    The realtime broadcaster and the notification collaborator are injected
    at construction; both are best-effort and never fail a request.
    Notifications are delivered in background tasks so a slow push service
    never delays the response.
    """

    def __init__(self, broadcaster: Broadcaster, notifier: Notifier):
        self.broadcaster = broadcaster
        self.notifier = notifier
        self._pending: Set[asyncio.Task] = set()

    async def _broadcast(self, conversation_id: str, event: str, payload: Dict[str, Any]) -> None:
        try:
            await self.broadcaster.broadcast(conversation_id, event, payload)
        except Exception as e:
            logger.error(f"Failed to broadcast {event} to conversation {conversation_id}: {e}")

    def _notification_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Failed to create message notification ({task.get_name()}): {error}")

    def _notify_recipients(self, conversation: Conversation, sender: ChatIdentity) -> None:
        for role in conversation.recipients_of(sender.role):
            recipient_id = conversation.reference_for(role)
            task = asyncio.create_task(
                self.notifier.create_notification(
                    user_id=recipient_id,
                    user_type=role.value,
                    type="new_message",
                    title="New Message",
                    message=f"You have a new message from {sender.role.value}.",
                    related_booking=conversation.booking,
                    metadata={
                        "conversationId": str(conversation.id),
                        "senderType": sender.role.value,
                    },
                ),
                name=f"notify {role.value} {recipient_id}",
            )
            self._pending.add(task)
            task.add_done_callback(self._notification_done)

    async def flush_notifications(self) -> None:
        """Wait for scheduled notification deliveries (used on shutdown)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def post_message(
        self,
        conversation_id: str,
        sender: ChatIdentity,
        content: Optional[str],
        files: Optional[List[UploadFile]] = None,
    ) -> MessageResponse:
        """
        Validate, persist and fan out a new message.

        Args:
            conversation_id: Target conversation
            sender: Authenticated author
            content: Optional text
            files: Uploaded attachment parts

        Returns:
            The created message without attachment payloads

        Raises:
            NotFoundException: Conversation does not exist
            ForbiddenException: Sender is not a participant
            ConversationLockedException: The booking's report has been uploaded
            BadRequestException: Empty message or invalid attachments
        """
        conversation = await ConversationService.get_conversation(conversation_id)
        ensure_participant(conversation, sender)

        if await BookingService.is_report_uploaded(conversation.booking):
            raise ConversationLockedException()

        content = (content or "").strip()
        files = [f for f in files or [] if f is not None and f.filename]
        if not content and not files:
            raise BadRequestException("Message must contain text or at least one attachment.")

        # Everything is read before the single write below
        attachments = await read_attachments(files)

        message = Message(
            conversation=str(conversation.id),
            sender=sender.role,
            sender_id=sender.id,
            content=content or None,
            attachments=attachments,
            status=MessageStatus.SENT,
        )
        await message.insert()

        logger.info(
            f"Message {message.id} saved in conversation {conversation.id} "
            f"by {sender.role.value} ({len(attachments)} attachments)"
        )

        recipients = conversation.recipients_of(sender.role)
        update: Dict[str, Any] = {
            "$set": {
                "last_message": content or ATTACHMENT_PREVIEW,
                "last_message_at": message.created_at,
                "updated_at": message.created_at,
            }
        }
        if recipients:
            update["$inc"] = {f"unread_count.{role.value}": 1 for role in recipients}
        await Conversation.find_one(Conversation.id == conversation.id).update(update)

        self._notify_recipients(conversation, sender)

        response = message_to_response(message)
        await self._broadcast(
            str(conversation.id),
            "new_message",
            response.model_dump(mode="json", by_alias=True),
        )

        return response

    async def list_messages(self, conversation_id: str, identity: ChatIdentity) -> List[MessageResponse]:
        """All messages of a conversation, oldest first, without attachment payloads."""
        conversation = await ConversationService.get_for_participant(conversation_id, identity)

        messages = await Message.find(
            Message.conversation == str(conversation.id)
        ).sort([("created_at", 1), ("_id", 1)]).to_list()

        logger.debug(f"Fetched {len(messages)} messages for conversation {conversation.id}")
        return [message_to_response(m) for m in messages]

    async def mark_read(self, conversation_id: str, reader: ChatIdentity) -> int:
        """
        Mark the reader's unread backlog as read and reset their counter.

        Every message not authored by the reader becomes `read`. Calling it
        again changes nothing.

        Returns:
            Number of messages marked as read
        """
        conversation = await ConversationService.get_for_participant(conversation_id, reader)
        conversation_key = str(conversation.id)

        result = await Message.find(
            Message.conversation == conversation_key,
            Message.sender_id != reader.id,
            Message.status != MessageStatus.READ,
        ).update_many({"$set": {"status": MessageStatus.READ.value, "updated_at": utc_now()}})

        await Conversation.find_one(Conversation.id == conversation.id).update(
            {"$set": {f"unread_count.{reader.role.value}": 0}}
        )

        count = result.modified_count if result else 0
        logger.info(f"Marked {count} messages as read in conversation {conversation_key} for {reader.role.value}")

        event = MessagesReadEvent(conversation_id=conversation_key, reader_id=reader.id)
        await self._broadcast(conversation_key, "messages_read", event.model_dump(by_alias=True))

        return count

    async def get_attachment(self, message_id: str, index: int, identity: ChatIdentity) -> Attachment:
        """
        Load one attachment, binary included.

        Raises:
            NotFoundException: Message, attachment index or conversation missing
            ForbiddenException: Requester is not a participant of the conversation
        """
        if not message_id or not ObjectId.is_valid(message_id):
            raise NotFoundException("Attachment not found")

        message = await Message.get(ObjectId(message_id))
        if not message or index < 0 or index >= len(message.attachments):
            raise NotFoundException("Attachment not found")

        await ConversationService.get_for_participant(message.conversation, identity)

        return message.attachments[index]
