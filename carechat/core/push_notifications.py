# Push Notification Service
import asyncio
import json
from typing import Optional
from pywebpush import webpush, WebPushException
from carechat.features.notifications.models import PushSubscription
from carechat.core.logging import logger
from carechat.config import settings


class PushNotificationService:
    """Service for sending web push notifications."""

    @staticmethod
    def is_configured() -> bool:
        """VAPID keys are required to sign push requests."""
        return bool(settings.VAPID_PUBLIC_KEY and settings.VAPID_PRIVATE_KEY)

    @staticmethod
    async def send_push_notification(
        subscription: PushSubscription,
        title: str,
        body: str,
        data: Optional[dict] = None
    ) -> bool:
        """
        Send a push notification to a subscription.

        Args:
            subscription: PushSubscription model instance
            title: Notification title
            body: Notification body
            data: Optional additional data

        Returns:
            bool: True if sent successfully, False otherwise
        """
        if not PushNotificationService.is_configured():
            return False

        subscription_info = {
            "endpoint": subscription.endpoint,
            "keys": {
                "p256dh": subscription.p256dh,
                "auth": subscription.auth
            }
        }

        payload = {
            "title": title,
            "body": body,
            "tag": data.get("tag", "message") if data else "message",
            "data": data or {}
        }

        try:
            # webpush is a blocking HTTP call
            await asyncio.to_thread(
                webpush,
                subscription_info=subscription_info,
                data=json.dumps(payload),
                vapid_private_key=settings.VAPID_PRIVATE_KEY,
                vapid_claims={"sub": f"mailto:{settings.VAPID_CLAIMS_EMAIL}"},
            )
            logger.info(f"Push notification sent to {subscription.user_type} {subscription.user_id}")
            return True
        except WebPushException as e:
            logger.error(f"WebPush error: {e}")
            # Subscription expired or was revoked by the browser
            if e.response is not None and e.response.status_code in (404, 410):
                subscription.is_active = False
                await subscription.save()
                logger.info(f"Marked subscription as inactive due to {e.response.status_code}")
            return False

    @staticmethod
    async def send_to_user(user_id: str, title: str, body: str, data: Optional[dict] = None) -> int:
        """
        Push to every active subscription of an account.

        Returns:
            Number of subscriptions that accepted the push
        """
        if not PushNotificationService.is_configured():
            return 0

        subscriptions = await PushSubscription.find(
            PushSubscription.user_id == user_id,
            PushSubscription.is_active == True
        ).to_list()

        sent = 0
        for subscription in subscriptions:
            if await PushNotificationService.send_push_notification(subscription, title, body, data):
                sent += 1

        logger.debug(f"Sent push notifications to {sent}/{len(subscriptions)} subscriptions for {user_id}")
        return sent
