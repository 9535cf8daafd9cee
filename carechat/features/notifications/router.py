# Notifications Feature - Router

from fastapi import APIRouter, Depends
from carechat.features.notifications.schemas import PushSubscriptionRequest, PushSubscriptionResponse
from carechat.features.notifications.service import NotificationService
from carechat.features.auth.dependencies import get_current_identity
from carechat.features.auth.schemas import CurrentIdentity


router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post("/push-subscriptions", response_model=PushSubscriptionResponse)
async def register_push_subscription(
    request: PushSubscriptionRequest,
    identity: CurrentIdentity = Depends(get_current_identity),
):
    """Register or refresh the caller's browser push subscription."""
    await NotificationService.register_push_subscription(
        user_id=identity.id,
        user_type=identity.user_type,
        request=request,
    )
    return PushSubscriptionResponse(message="Push subscription saved")
