# Notifications Feature - Service

from typing import Optional, Dict, Any
from carechat.features.notifications.models import Notification, PushSubscription
from carechat.features.notifications.schemas import PushSubscriptionRequest
from carechat.core.push_notifications import PushNotificationService
from carechat.core.logging import logger


class NotificationService:
    """Creates in-app notifications and mirrors them as web push."""

    async def create_notification(
        self,
        user_id: str,
        user_type: str,
        type: str,
        title: str,
        message: str,
        related_booking: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Notification:
        """
        Store a notification for one recipient and push it to their devices.

        Push delivery is best-effort; storage failures propagate so the
        caller decides whether the notification matters.
        """
        notification = Notification(
            user=user_id,
            user_type=user_type,
            type=type,
            title=title,
            message=message,
            related_booking=related_booking,
            metadata=metadata or {},
        )
        await notification.insert()

        logger.info(f"In-app notification created for {user_type} {user_id} ({type})")

        try:
            await PushNotificationService.send_to_user(
                user_id,
                title=title,
                body=message,
                data={"type": type, **(metadata or {})},
            )
        except Exception as e:
            logger.error(f"Push delivery failed for {user_type} {user_id}: {e}")

        return notification

    @staticmethod
    async def register_push_subscription(
        user_id: str,
        user_type: str,
        request: PushSubscriptionRequest,
    ) -> PushSubscription:
        """Save or refresh a browser push subscription for an account."""
        subscription = await PushSubscription.find_one(PushSubscription.endpoint == request.endpoint)

        if subscription:
            subscription.user_id = user_id
            subscription.user_type = user_type
            subscription.p256dh = request.keys.p256dh
            subscription.auth = request.keys.auth
            subscription.is_active = True
            subscription.update_timestamp()
            await subscription.save()
            return subscription

        subscription = PushSubscription(
            user_id=user_id,
            user_type=user_type,
            endpoint=request.endpoint,
            p256dh=request.keys.p256dh,
            auth=request.keys.auth,
        )
        await subscription.insert()

        logger.info(f"Registered push subscription for {user_type} {user_id}")
        return subscription
