# Messages Feature - Authorization gate
#
# Decides whether two accounts may converse and computes the canonical
# patient/lab/phlebotomist triple for their conversation.

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional
from carechat.features.auth.schemas import ChatIdentity
from carechat.features.bookings.service import BookingService
from carechat.features.messages.models import ChatRole, Conversation
from carechat.shared.exceptions import ForbiddenException


INVALID_PARTICIPANTS = "Invalid conversation participants"
NO_BOOKING_HISTORY = "You can only chat if there is a booking history."
NO_COMMON_BOOKING = "No common booking found between lab and phlebotomist."
NOT_A_PARTICIPANT = "Not authorized to access this conversation"


@dataclass(frozen=True)
class ResolvedParticipants:
    """Canonical references for a conversation between two accounts."""

    participants: List[ChatRole]
    patient: str
    lab: Optional[str] = None
    phlebotomist: Optional[str] = None
    booking: Optional[str] = None

    def pair_key(self) -> str:
        """Unique key of the opening pair, in canonical role order."""
        return "|".join(f"{role.value}:{getattr(self, role.value)}" for role in self.participants)

    def lookup_criteria(self) -> list:
        """Query that identifies the existing conversation for this pair."""
        if self.participants == [ChatRole.LAB, ChatRole.PHLEBOTOMIST]:
            return [
                Conversation.lab == self.lab,
                Conversation.phlebotomist == self.phlebotomist,
            ]
        if self.participants == [ChatRole.PATIENT, ChatRole.LAB]:
            return [
                Conversation.patient == self.patient,
                Conversation.lab == self.lab,
                Conversation.phlebotomist == None,
            ]
        return [
            Conversation.patient == self.patient,
            Conversation.phlebotomist == self.phlebotomist,
            Conversation.lab == None,
        ]


async def _patient_and_lab(ids: Dict[ChatRole, str]) -> ResolvedParticipants:
    patient_id, lab_id = ids[ChatRole.PATIENT], ids[ChatRole.LAB]
    booking = await BookingService.find_shared_booking(patient_id=patient_id, lab_id=lab_id)
    if not booking:
        raise ForbiddenException(NO_BOOKING_HISTORY)
    return ResolvedParticipants(
        participants=[ChatRole.PATIENT, ChatRole.LAB],
        patient=patient_id,
        lab=lab_id,
        booking=str(booking.id),
    )


async def _patient_and_phlebotomist(ids: Dict[ChatRole, str]) -> ResolvedParticipants:
    patient_id, phlebotomist_id = ids[ChatRole.PATIENT], ids[ChatRole.PHLEBOTOMIST]
    booking = await BookingService.find_shared_booking(
        patient_id=patient_id, phlebotomist_id=phlebotomist_id
    )
    if not booking:
        raise ForbiddenException(NO_BOOKING_HISTORY)
    return ResolvedParticipants(
        participants=[ChatRole.PATIENT, ChatRole.PHLEBOTOMIST],
        patient=patient_id,
        phlebotomist=phlebotomist_id,
        booking=str(booking.id),
    )


async def _lab_and_phlebotomist(ids: Dict[ChatRole, str]) -> ResolvedParticipants:
    lab_id, phlebotomist_id = ids[ChatRole.LAB], ids[ChatRole.PHLEBOTOMIST]
    booking = await BookingService.find_shared_booking(lab_id=lab_id, phlebotomist_id=phlebotomist_id)
    if not booking:
        raise ForbiddenException(NO_COMMON_BOOKING)
    # The shared booking's patient anchors the thread as context
    return ResolvedParticipants(
        participants=[ChatRole.LAB, ChatRole.PHLEBOTOMIST],
        patient=booking.patient,
        lab=lab_id,
        phlebotomist=phlebotomist_id,
        booking=str(booking.id),
    )


Resolver = Callable[[Dict[ChatRole, str]], Awaitable[ResolvedParticipants]]

ROLE_PAIRS: Dict[FrozenSet[ChatRole], Resolver] = {
    frozenset({ChatRole.PATIENT, ChatRole.LAB}): _patient_and_lab,
    frozenset({ChatRole.PATIENT, ChatRole.PHLEBOTOMIST}): _patient_and_phlebotomist,
    frozenset({ChatRole.LAB, ChatRole.PHLEBOTOMIST}): _lab_and_phlebotomist,
}


async def resolve_participants(
    caller: ChatIdentity,
    target_id: str,
    target_type: str,
) -> ResolvedParticipants:
    """
    Authorize a conversation between the caller and a target account.

    Caller/target order does not matter.

    Raises:
        ForbiddenException: invalid role pairing, or no booking joining the two
    """
    try:
        target_role = ChatRole(target_type)
    except ValueError:
        raise ForbiddenException(INVALID_PARTICIPANTS)

    resolver = ROLE_PAIRS.get(frozenset({caller.role, target_role}))
    if resolver is None or not target_id:
        raise ForbiddenException(INVALID_PARTICIPANTS)

    return await resolver({caller.role: caller.id, target_role: target_id})


def ensure_participant(conversation: Conversation, identity: ChatIdentity) -> None:
    """Raise unless the identity occupies its role slot on the conversation."""
    if not conversation.is_participant(identity.id, identity.role):
        raise ForbiddenException(NOT_A_PARTICIPANT)
