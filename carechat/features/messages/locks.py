# Messages Feature - Lock trigger

from carechat.features.bookings.service import BookingService
from carechat.features.messages.models import Conversation
from carechat.features.messages.schemas import ConversationLockedEvent
from carechat.features.messages.service import Broadcaster
from carechat.core.logging import logger
from carechat.shared.exceptions import BadRequestException, NotFoundException


class ConversationLockService:
    """Tells open clients that a booking's conversations became read-only."""

    def __init__(self, broadcaster: Broadcaster):
        self.broadcaster = broadcaster

    async def handle_report_uploaded(self, booking_id: str) -> int:
        """
        Announce the lock on every conversation tied to a booking.

        Nothing is written; posting is refused from the booking's report
        timestamp on.

        Args:
            booking_id: Booking whose report has been uploaded

        Returns:
            Number of conversations notified

        Raises:
            NotFoundException: Booking does not exist
            BadRequestException: Booking has no uploaded report
        """
        booking = await BookingService.get_booking(booking_id)
        if not booking:
            raise NotFoundException("Booking not found")

        if booking.report_uploaded_at is None:
            raise BadRequestException("Report has not been uploaded for this booking")

        booking_key = str(booking.id)
        conversations = await Conversation.find(Conversation.booking == booking_key).to_list()

        for conversation in conversations:
            event = ConversationLockedEvent(conversation_id=str(conversation.id), booking_id=booking_key)
            try:
                await self.broadcaster.broadcast(
                    str(conversation.id),
                    "conversation_locked",
                    event.model_dump(by_alias=True),
                )
            except Exception as e:
                logger.error(f"Failed to broadcast lock for conversation {conversation.id}: {e}")

        logger.info(f"Booking {booking_key} report uploaded; locked {len(conversations)} conversations")
        return len(conversations)
