import pytest

from carechat.features.messages.models import Conversation
from carechat.features.messages.service import ConversationService
from carechat.shared.exceptions import BadRequestException, NotFoundException

from chat_utils import identity, mark_report_uploaded


async def test_report_upload_announces_every_booking_conversation(accounts, booking, lock_service, broadcaster):
    patient = identity("patient", accounts["patient"])
    with_lab = await ConversationService.resolve_or_create(patient, accounts["lab"], "lab")
    with_phlebotomist = await ConversationService.resolve_or_create(
        patient, accounts["phlebotomist"], "phlebotomist"
    )
    await mark_report_uploaded(booking)

    count = await lock_service.handle_report_uploaded(str(booking.id))

    assert count == 2
    events = broadcaster.of("conversation_locked")
    assert {e["room"] for e in events} == {str(with_lab.id), str(with_phlebotomist.id)}
    assert events[0]["payload"]["bookingId"] == str(booking.id)
    assert events[0]["payload"]["message"] == "Report has been uploaded. This conversation is now read-only."


async def test_lock_does_not_write_conversations(accounts, booking, lock_service):
    conversation = await ConversationService.resolve_or_create(
        identity("patient", accounts["patient"]), accounts["lab"], "lab"
    )
    await mark_report_uploaded(booking)

    await lock_service.handle_report_uploaded(str(booking.id))

    stored = await Conversation.get(conversation.id)
    assert stored.is_active is True
    assert stored.last_message is None
    assert stored.unread_count.patient == 0


async def test_lock_requires_uploaded_report(booking, lock_service):
    with pytest.raises(BadRequestException):
        await lock_service.handle_report_uploaded(str(booking.id))


async def test_lock_for_unknown_booking(lock_service):
    with pytest.raises(NotFoundException):
        await lock_service.handle_report_uploaded("64b7f0f0f0f0f0f0f0f0f0f0")
