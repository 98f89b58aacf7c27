"""Practitioner directory: read-only eligibility lookups over the user tables."""

from typing import Any, Protocol
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.redis_client import CacheManager
from app.models.doctor_profiles import doctor_profiles
from app.models.users import users

logger = structlog.get_logger(__name__)


class PractitionerDirectory(Protocol):
    """Read-only oracle over the people an appointment can reference."""

    async def practitioner_exists(self, doctor_id: UUID) -> bool: ...

    async def patient_exists(self, patient_id: UUID) -> bool: ...

    async def is_active(self, doctor_id: UUID) -> bool: ...

    async def is_accepting_bookings(self, doctor_id: UUID) -> bool: ...


class SqlPractitionerDirectory:
    """Directory backed by the ``users`` and ``doctor_profiles`` tables."""

    def __init__(
        self,
        db: AsyncSession,
        cache_manager: CacheManager | None = None,
        cache_ttl: int = 60,
    ):
        """Initialize directory with database session and optional cache."""
        self.db = db
        self.cache = cache_manager
        self.cache_ttl = cache_ttl

    @staticmethod
    def _get_practitioner_cache_key(doctor_id: UUID) -> str:
        """Generate cache key for a practitioner's eligibility."""
        return f"practitioner:{doctor_id}"

    async def _get_practitioner(self, doctor_id: UUID) -> dict[str, Any] | None:
        """Eligibility flags for a doctor, or None if no such doctor."""
        if self.cache:
            cached = self.cache.get_json(self._get_practitioner_cache_key(doctor_id))
            if cached:
                return cached

        query = (
            select(
                users.c.id,
                users.c.is_active,
                doctor_profiles.c.is_available,
            )
            .select_from(users.outerjoin(doctor_profiles, doctor_profiles.c.user_id == users.c.id))
            .where(users.c.id == doctor_id, users.c.role == "doctor")
        )
        result = await self.db.execute(query)
        row = result.mappings().first()

        if not row:
            return None

        practitioner = {
            "id": str(row["id"]),
            "is_active": bool(row["is_active"]),
            # A doctor without a profile has never been set up to take bookings
            "is_available": bool(row["is_available"]),
        }

        if self.cache:
            self.cache.set_json(
                self._get_practitioner_cache_key(doctor_id),
                practitioner,
                ttl=self.cache_ttl,
            )

        return practitioner

    async def practitioner_exists(self, doctor_id: UUID) -> bool:
        """Whether a user with the doctor role has this id."""
        return await self._get_practitioner(doctor_id) is not None

    async def patient_exists(self, patient_id: UUID) -> bool:
        """Whether a user with the patient role has this id."""
        query = select(users.c.id).where(users.c.id == patient_id, users.c.role == "patient")
        result = await self.db.execute(query)
        return result.first() is not None

    async def is_active(self, doctor_id: UUID) -> bool:
        """Whether the doctor's account is active."""
        practitioner = await self._get_practitioner(doctor_id)
        return bool(practitioner and practitioner["is_active"])

    async def is_accepting_bookings(self, doctor_id: UUID) -> bool:
        """Whether the doctor has marked themselves available for new bookings."""
        practitioner = await self._get_practitioner(doctor_id)
        return bool(practitioner and practitioner["is_available"])
