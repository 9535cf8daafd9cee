"""MongoDB database connection manager."""

from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from typing import Optional

from carechat.config import settings
from carechat.core.logging import logger
from carechat.features.bookings.models import Booking
from carechat.features.directory.models import Patient, Lab, Phlebotomist
from carechat.features.messages.models import Conversation, Message
from carechat.features.notifications.models import Notification, PushSubscription


# Every Beanie document the service reads or writes
DOCUMENT_MODELS = [
    Conversation,
    Message,
    Booking,
    Patient,
    Lab,
    Phlebotomist,
    Notification,
    PushSubscription,
]


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB and initialize Beanie."""
        cls.client = AsyncIOMotorClient(settings.MONGODB_URL)

        await init_beanie(
            database=cls.client[settings.DATABASE_NAME],
            document_models=DOCUMENT_MODELS,
        )

        logger.info(f"Connected to MongoDB database: {settings.DATABASE_NAME}")

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection."""
        if cls.client:
            cls.client.close()
            cls.client = None
            logger.info("Closed MongoDB connection")
