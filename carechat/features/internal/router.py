# Internal Feature - Router
#
# Events pushed by collaborator services (the booking service), never by
# end-user clients.

from fastapi import APIRouter, Depends
from carechat.features.internal.dependencies import verify_internal_key
from carechat.features.messages.dependencies import get_lock_service
from carechat.features.messages.locks import ConversationLockService
from carechat.shared.schemas import StatusResponse


router = APIRouter(
    prefix="/internal",
    tags=["Internal"],
    dependencies=[Depends(verify_internal_key)],
)


@router.post("/bookings/{booking_id}/report-uploaded", response_model=StatusResponse)
async def report_uploaded(
    booking_id: str,
    service: ConversationLockService = Depends(get_lock_service),
):
    """Lock the booking's conversations and tell connected clients."""
    count = await service.handle_report_uploaded(booking_id)
    return StatusResponse(message=f"Locked {count} conversations")
