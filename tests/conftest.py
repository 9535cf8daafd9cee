from typing import Dict

import pytest
from beanie import init_beanie
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from carechat.database import DOCUMENT_MODELS
from carechat.features.bookings.models import Booking
from carechat.features.directory.models import Lab, Patient, Phlebotomist
from carechat.features.messages.locks import ConversationLockService
from carechat.features.messages.service import MessageService

from chat_utils import FakeBroadcaster, FakeNotifier


@pytest.fixture(autouse=True)
async def db():
    """Fresh in-memory database for every test."""
    client = AsyncMongoMockClient()
    database = client["carechat_test"]
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    yield database


@pytest.fixture
def broadcaster() -> FakeBroadcaster:
    return FakeBroadcaster()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
async def message_service(broadcaster, notifier):
    service = MessageService(broadcaster=broadcaster, notifier=notifier)
    yield service
    await service.flush_notifications()


@pytest.fixture
def lock_service(broadcaster) -> ConversationLockService:
    return ConversationLockService(broadcaster=broadcaster)


@pytest.fixture
async def accounts() -> Dict[str, str]:
    """One patient, lab and phlebotomist in the directory, keyed by role."""
    patient = await Patient(full_name="Ada Patient").insert()
    lab = await Lab(lab_name="Central Lab").insert()
    phlebotomist = await Phlebotomist(full_name="Phil Bot").insert()
    return {
        "patient": str(patient.id),
        "lab": str(lab.id),
        "phlebotomist": str(phlebotomist.id),
    }


@pytest.fixture
async def booking(accounts) -> Booking:
    """A booking joining all three accounts, report not yet uploaded."""
    return await Booking(
        patient=accounts["patient"],
        lab=accounts["lab"],
        phlebotomist=accounts["phlebotomist"],
        status="confirmed",
    ).insert()


@pytest.fixture
async def api(broadcaster, notifier):
    """HTTP client against the FastAPI app with the recording fakes wired in."""
    from carechat.main import app

    original_message_service = app.state.message_service
    original_lock_service = app.state.lock_service
    app.state.message_service = MessageService(broadcaster=broadcaster, notifier=notifier)
    app.state.lock_service = ConversationLockService(broadcaster=broadcaster)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    await app.state.message_service.flush_notifications()
    app.state.message_service = original_message_service
    app.state.lock_service = original_lock_service
