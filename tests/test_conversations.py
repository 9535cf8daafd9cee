from datetime import timedelta

import pytest
from pymongo.errors import DuplicateKeyError

from carechat.features.bookings.models import Booking
from carechat.features.messages.access import (
    INVALID_PARTICIPANTS,
    NO_BOOKING_HISTORY,
    NO_COMMON_BOOKING,
)
from carechat.features.messages.models import ChatRole, Conversation
from carechat.features.messages.service import ConversationService
from carechat.shared.exceptions import ForbiddenException, NotFoundException

from chat_utils import identity, mark_report_uploaded


async def test_patient_and_lab_get_the_same_conversation_twice(accounts, booking):
    patient = identity("patient", accounts["patient"])

    first = await ConversationService.resolve_or_create(patient, accounts["lab"], "lab")
    second = await ConversationService.resolve_or_create(patient, accounts["lab"], "lab")

    assert first.id == second.id
    assert await Conversation.count() == 1
    assert first.participants == [ChatRole.PATIENT, ChatRole.LAB]
    assert first.phlebotomist is None
    assert first.booking == str(booking.id)
    assert first.unread_count.patient == 0
    assert first.unread_count.lab == 0
    assert first.unread_count.phlebotomist == 0


async def test_caller_and_target_order_does_not_matter(accounts, booking):
    from_patient = await ConversationService.resolve_or_create(
        identity("patient", accounts["patient"]), accounts["lab"], "lab"
    )
    from_lab = await ConversationService.resolve_or_create(
        identity("lab", accounts["lab"]), accounts["patient"], "patient"
    )

    assert from_patient.id == from_lab.id


async def test_patient_lab_and_patient_phlebotomist_are_separate_threads(accounts, booking):
    patient = identity("patient", accounts["patient"])

    with_lab = await ConversationService.resolve_or_create(patient, accounts["lab"], "lab")
    with_phlebotomist = await ConversationService.resolve_or_create(
        patient, accounts["phlebotomist"], "phlebotomist"
    )

    assert with_lab.id != with_phlebotomist.id
    assert with_phlebotomist.lab is None
    assert with_phlebotomist.participants == [ChatRole.PATIENT, ChatRole.PHLEBOTOMIST]


async def test_lab_and_phlebotomist_are_anchored_to_the_booking_patient(accounts, booking):
    conversation = await ConversationService.resolve_or_create(
        identity("lab", accounts["lab"]), accounts["phlebotomist"], "phlebotomist"
    )

    assert conversation.patient == accounts["patient"]
    assert conversation.participants == [ChatRole.LAB, ChatRole.PHLEBOTOMIST]
    assert conversation.booking == str(booking.id)


async def test_lab_and_phlebotomist_without_shared_booking_are_refused(accounts):
    await Booking(patient=accounts["patient"], lab=accounts["lab"]).insert()

    with pytest.raises(ForbiddenException) as exc_info:
        await ConversationService.resolve_or_create(
            identity("lab", accounts["lab"]), accounts["phlebotomist"], "phlebotomist"
        )

    assert exc_info.value.detail == NO_COMMON_BOOKING
    assert await Conversation.count() == 0


@pytest.mark.parametrize("caller_role,target_role", [
    ("patient", "lab"),
    ("lab", "patient"),
    ("patient", "phlebotomist"),
])
async def test_pairs_without_booking_history_are_refused(accounts, caller_role, target_role):
    with pytest.raises(ForbiddenException) as exc_info:
        await ConversationService.resolve_or_create(
            identity(caller_role, accounts[caller_role]), accounts[target_role], target_role
        )

    assert exc_info.value.detail == NO_BOOKING_HISTORY
    assert await Conversation.count() == 0


@pytest.mark.parametrize("caller_role,target_type", [
    ("patient", "patient"),
    ("lab", "lab"),
    ("patient", "admin"),
    ("lab", "doctor"),
])
async def test_invalid_role_pairs_are_refused(accounts, booking, caller_role, target_type):
    with pytest.raises(ForbiddenException) as exc_info:
        await ConversationService.resolve_or_create(
            identity(caller_role, accounts[caller_role]), "someone", target_type
        )

    assert exc_info.value.detail == INVALID_PARTICIPANTS


async def test_newest_shared_booking_is_recorded(accounts, booking):
    newer = await Booking(
        patient=accounts["patient"],
        lab=accounts["lab"],
        created_at=booking.created_at + timedelta(minutes=5),
    ).insert()

    conversation = await ConversationService.resolve_or_create(
        identity("patient", accounts["patient"]), accounts["lab"], "lab"
    )

    assert conversation.booking == str(newer.id)


async def test_list_shows_names_and_lock_state(accounts, booking):
    patient = identity("patient", accounts["patient"])
    await ConversationService.resolve_or_create(patient, accounts["lab"], "lab")
    await mark_report_uploaded(booking)

    conversations = await ConversationService.list_for_identity(patient)

    assert len(conversations) == 1
    row = conversations[0]
    assert row.patient.name == "Ada Patient"
    assert row.lab.name == "Central Lab"
    assert row.phlebotomist is None
    assert row.is_locked is True


async def test_anchor_patient_sees_lab_phlebotomist_thread(accounts, booking):
    await ConversationService.resolve_or_create(
        identity("lab", accounts["lab"]), accounts["phlebotomist"], "phlebotomist"
    )

    patient_rows = await ConversationService.list_for_identity(identity("patient", accounts["patient"]))
    lab_rows = await ConversationService.list_for_identity(identity("lab", accounts["lab"]))

    assert len(patient_rows) == 1
    assert patient_rows[0].participants == [ChatRole.LAB, ChatRole.PHLEBOTOMIST]
    assert len(lab_rows) == 1


async def test_get_for_participant_rejects_outsiders_and_unknown_ids(accounts, booking):
    conversation = await ConversationService.resolve_or_create(
        identity("patient", accounts["patient"]), accounts["lab"], "lab"
    )

    with pytest.raises(ForbiddenException):
        await ConversationService.get_for_participant(
            str(conversation.id), identity("phlebotomist", accounts["phlebotomist"])
        )
    with pytest.raises(ForbiddenException):
        await ConversationService.get_for_participant(
            str(conversation.id), identity("patient", "another-patient")
        )
    with pytest.raises(NotFoundException):
        await ConversationService.get_for_participant("not-an-id", identity("lab", accounts["lab"]))


async def test_pair_key_is_unique(accounts, booking):
    conversation = await ConversationService.resolve_or_create(
        identity("patient", accounts["patient"]), accounts["lab"], "lab"
    )
    assert conversation.pair_key == f"patient:{accounts['patient']}|lab:{accounts['lab']}"

    with pytest.raises(DuplicateKeyError):
        await Conversation(
            patient=accounts["patient"],
            lab=accounts["lab"],
            participants=[ChatRole.PATIENT, ChatRole.LAB],
            pair_key=conversation.pair_key,
        ).insert()


async def test_concurrent_first_contact_reuses_the_stored_conversation(accounts, booking, monkeypatch):
    existing = await ConversationService.resolve_or_create(
        identity("patient", accounts["patient"]), accounts["lab"], "lab"
    )

    original_find_one = Conversation.find_one
    lookups = []

    async def missed():
        return None

    def find_one_after_race(*args, **kwargs):
        # The first lookup runs before the other request's insert lands
        lookups.append(args)
        if len(lookups) == 1:
            return missed()
        return original_find_one(*args, **kwargs)

    monkeypatch.setattr(Conversation, "find_one", find_one_after_race)

    conversation = await ConversationService.resolve_or_create(
        identity("lab", accounts["lab"]), accounts["patient"], "patient"
    )

    assert conversation.id == existing.id
    assert len(lookups) == 2
    assert await Conversation.count() == 1
