import os
from collections.abc import AsyncGenerator
from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

# Settings are read at import time; keep test runs off any real services
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from jose import jwt

load_dotenv()

from app.config import settings
from app.dependencies import get_booking_service
from app.main import app
from app.services.booking_service import BookingService
from app.services.slot_calculator import BusinessHours
from tests.fakes import InMemoryAppointmentStore, InMemoryDirectory

# A Monday morning, before the clinic opens
NOW = datetime(2030, 1, 14, 8, 0)
DAY = NOW.date()


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    """Clinic wall-clock time on ``day``."""
    return datetime.combine(day, time(hour, minute))


def make_token(user_id: UUID, role: str) -> str:
    """Access token as the auth service would issue it."""
    payload = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "exp": datetime.now(UTC) + timedelta(minutes=30),
        "iat": datetime.now(UTC),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture
def store() -> InMemoryAppointmentStore:
    return InMemoryAppointmentStore()


@pytest.fixture
def directory() -> InMemoryDirectory:
    return InMemoryDirectory()


@pytest.fixture
def doctor_id(directory: InMemoryDirectory) -> UUID:
    return directory.add_doctor()


@pytest.fixture
def patient_id(directory: InMemoryDirectory) -> UUID:
    return directory.add_patient()


@pytest.fixture
def service(store: InMemoryAppointmentStore, directory: InMemoryDirectory) -> BookingService:
    return BookingService(
        store,
        directory,
        business_hours=BusinessHours(start=time(9), end=time(17)),
        duration=timedelta(minutes=30),
        clock=lambda: NOW,
    )


@pytest_asyncio.fixture
async def client(service: BookingService) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose booking service runs on the in-memory fakes."""
    app.dependency_overrides[get_booking_service] = lambda: service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def patient_headers(patient_id: UUID) -> dict:
    return {"Authorization": f"Bearer {make_token(patient_id, 'patient')}"}


@pytest.fixture
def doctor_headers(doctor_id: UUID) -> dict:
    return {"Authorization": f"Bearer {make_token(doctor_id, 'doctor')}"}


@pytest.fixture
def admin_headers() -> dict:
    return {"Authorization": f"Bearer {make_token(UUID(int=1), 'admin')}"}
