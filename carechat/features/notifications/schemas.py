# Notifications Feature - Schemas

from carechat.shared.schemas import CamelModel


class PushSubscriptionKeys(CamelModel):
    """Push subscription keys."""
    p256dh: str
    auth: str


class PushSubscriptionRequest(CamelModel):
    """Request schema for push subscription (the browser's PushSubscription.toJSON())."""
    endpoint: str
    keys: PushSubscriptionKeys


class PushSubscriptionResponse(CamelModel):
    """Response schema for push subscription."""
    message: str
    success: bool = True
