import asyncio
import time

import pytest

from carechat.features.messages.models import Conversation, Message, MessageStatus
from carechat.features.messages.service import ConversationService, MessageService
from carechat.shared.exceptions import (
    BadRequestException,
    ConversationLockedException,
    ForbiddenException,
    NotFoundException,
)

from chat_utils import (
    FakeBroadcaster,
    FakeNotifier,
    SlowNotifier,
    identity,
    mark_report_uploaded,
    png_bytes,
    upload,
)


@pytest.fixture
async def patient_lab(accounts, booking) -> Conversation:
    return await ConversationService.resolve_or_create(
        identity("patient", accounts["patient"]), accounts["lab"], "lab"
    )


async def reload(conversation: Conversation) -> Conversation:
    return await Conversation.get(conversation.id)


async def test_hello_then_read(accounts, patient_lab, message_service):
    patient = identity("patient", accounts["patient"])
    lab = identity("lab", accounts["lab"])

    await message_service.post_message(str(patient_lab.id), patient, "Hello")

    conversation = await reload(patient_lab)
    assert conversation.last_message == "Hello"
    assert conversation.unread_count.lab == 1
    assert conversation.unread_count.patient == 0

    updated = await message_service.mark_read(str(patient_lab.id), lab)

    conversation = await reload(patient_lab)
    message = await Message.find_one(Message.conversation == str(patient_lab.id))
    assert updated == 1
    assert conversation.unread_count.lab == 0
    assert message.status == MessageStatus.READ


async def test_attachment_only_message_preview(accounts, patient_lab, message_service):
    patient = identity("patient", accounts["patient"])

    response = await message_service.post_message(
        str(patient_lab.id), patient, None, [upload("scan.png", png_bytes(), "image/png")]
    )

    conversation = await reload(patient_lab)
    assert conversation.last_message == "Attachment"
    assert response.content is None
    assert response.attachments[0].filename == "scan.png"


async def test_unread_counters_follow_alternating_senders(accounts, patient_lab, message_service):
    patient = identity("patient", accounts["patient"])
    lab = identity("lab", accounts["lab"])
    conversation_id = str(patient_lab.id)

    for sender in (patient, lab, patient, patient, lab):
        await message_service.post_message(conversation_id, sender, f"from {sender.role.value}")

    conversation = await reload(patient_lab)
    assert conversation.unread_count.lab == 3
    assert conversation.unread_count.patient == 2
    assert conversation.unread_count.phlebotomist == 0

    await message_service.mark_read(conversation_id, lab)
    await message_service.post_message(conversation_id, patient, "one more")

    conversation = await reload(patient_lab)
    assert conversation.unread_count.lab == 1
    assert conversation.unread_count.patient == 2


async def test_whitespace_only_message_is_rejected(accounts, patient_lab, message_service):
    with pytest.raises(BadRequestException):
        await message_service.post_message(
            str(patient_lab.id), identity("patient", accounts["patient"]), "   ", []
        )

    assert await Message.count() == 0


async def test_content_is_trimmed(accounts, patient_lab, message_service):
    response = await message_service.post_message(
        str(patient_lab.id), identity("patient", accounts["patient"]), "  see you at 9  "
    )

    assert response.content == "see you at 9"


async def test_outsiders_cannot_post(accounts, patient_lab, message_service):
    with pytest.raises(ForbiddenException):
        await message_service.post_message(
            str(patient_lab.id), identity("phlebotomist", accounts["phlebotomist"]), "hi"
        )
    with pytest.raises(NotFoundException):
        await message_service.post_message(
            "64b7f0f0f0f0f0f0f0f0f0f0", identity("patient", accounts["patient"]), "hi"
        )

    assert await Message.count() == 0


async def test_anchor_patient_can_post_in_lab_phlebotomist_thread(
    accounts, booking, message_service, notifier
):
    conversation = await ConversationService.resolve_or_create(
        identity("lab", accounts["lab"]), accounts["phlebotomist"], "phlebotomist"
    )

    await message_service.post_message(
        str(conversation.id), identity("patient", accounts["patient"]), "when is my draw?"
    )
    await message_service.flush_notifications()

    conversation = await reload(conversation)
    assert conversation.unread_count.patient == 0
    assert conversation.unread_count.lab == 1
    assert conversation.unread_count.phlebotomist == 1
    assert sorted(call["user_type"] for call in notifier.calls) == ["lab", "phlebotomist"]


async def test_lab_phlebotomist_thread_counts_every_other_role_slot(
    accounts, booking, message_service, notifier
):
    conversation = await ConversationService.resolve_or_create(
        identity("lab", accounts["lab"]), accounts["phlebotomist"], "phlebotomist"
    )

    await message_service.post_message(str(conversation.id), identity("lab", accounts["lab"]), "sample ready")
    await message_service.flush_notifications()

    conversation = await reload(conversation)
    assert conversation.unread_count.phlebotomist == 1
    assert conversation.unread_count.patient == 1
    assert conversation.unread_count.lab == 0
    assert sorted(call["user_id"] for call in notifier.calls) == sorted(
        [accounts["patient"], accounts["phlebotomist"]]
    )


async def test_locked_conversation_refuses_every_sender(accounts, booking, patient_lab, message_service):
    await mark_report_uploaded(booking)

    for sender in (identity("patient", accounts["patient"]), identity("lab", accounts["lab"])):
        for _ in range(2):
            with pytest.raises(ConversationLockedException) as exc_info:
                await message_service.post_message(str(patient_lab.id), sender, "still there?")
            assert exc_info.value.status_code == 403
            assert exc_info.value.headers["X-Conversation-Locked"] == "true"

    assert await Message.count() == 0


async def test_recipient_is_notified_and_room_receives_message(
    accounts, patient_lab, message_service, notifier, broadcaster
):
    response = await message_service.post_message(
        str(patient_lab.id), identity("patient", accounts["patient"]), "Hello"
    )

    await message_service.flush_notifications()
    assert len(notifier.calls) == 1
    call = notifier.calls[0]
    assert call["user_id"] == accounts["lab"]
    assert call["user_type"] == "lab"
    assert call["type"] == "new_message"
    assert call["title"] == "New Message"
    assert call["message"] == "You have a new message from patient."
    assert call["metadata"] == {"conversationId": str(patient_lab.id), "senderType": "patient"}

    events = broadcaster.of("new_message")
    assert len(events) == 1
    assert events[0]["room"] == str(patient_lab.id)
    assert events[0]["payload"]["id"] == response.id
    assert events[0]["payload"]["senderId"] == accounts["patient"]


async def test_fanout_failures_do_not_fail_the_post(accounts, patient_lab):
    service = MessageService(broadcaster=FakeBroadcaster(fail=True), notifier=FakeNotifier(fail=True))

    response = await service.post_message(
        str(patient_lab.id), identity("patient", accounts["patient"]), "Hello"
    )

    assert response.content == "Hello"
    assert await Message.count() == 1
    assert (await reload(patient_lab)).unread_count.lab == 1

    await service.flush_notifications()


async def test_messages_are_listed_oldest_first(accounts, patient_lab, message_service):
    patient = identity("patient", accounts["patient"])
    lab = identity("lab", accounts["lab"])
    for text in ("one", "two", "three"):
        await message_service.post_message(str(patient_lab.id), patient, text)

    messages = await message_service.list_messages(str(patient_lab.id), lab)

    assert [m.content for m in messages] == ["one", "two", "three"]

    with pytest.raises(ForbiddenException):
        await message_service.list_messages(
            str(patient_lab.id), identity("phlebotomist", accounts["phlebotomist"])
        )


async def test_unread_total_sums_every_conversation(accounts, booking, message_service):
    patient = identity("patient", accounts["patient"])
    with_lab = await ConversationService.resolve_or_create(patient, accounts["lab"], "lab")
    with_phlebotomist = await ConversationService.resolve_or_create(
        patient, accounts["phlebotomist"], "phlebotomist"
    )

    await message_service.post_message(str(with_lab.id), identity("lab", accounts["lab"]), "a")
    await message_service.post_message(str(with_lab.id), identity("lab", accounts["lab"]), "b")
    await message_service.post_message(
        str(with_phlebotomist.id), identity("phlebotomist", accounts["phlebotomist"]), "c"
    )

    assert await ConversationService.get_unread_total(patient) == 3
    assert await ConversationService.get_unread_total(identity("lab", accounts["lab"])) == 0


async def test_slow_notifications_do_not_delay_the_post(accounts, patient_lab, broadcaster):
    notifier = SlowNotifier(delay=1.0)
    service = MessageService(broadcaster=broadcaster, notifier=notifier)

    started = time.monotonic()
    response = await service.post_message(
        str(patient_lab.id), identity("patient", accounts["patient"]), "Hello"
    )
    elapsed = time.monotonic() - started

    assert elapsed < 0.5
    assert response.content == "Hello"
    assert len(broadcaster.of("new_message")) == 1
    assert notifier.delivered == []

    await asyncio.wait_for(service.flush_notifications(), timeout=5)

    assert [call["user_id"] for call in notifier.delivered] == [accounts["lab"]]
