"""Appointment store: persistence for appointments and clinical records."""

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException
from app.models.appointments import NO_OVERLAP_CONSTRAINT, appointments
from app.models.clinical_records import clinical_records
from app.schemas.appointments import AppointmentFilters, AppointmentStatus

logger = structlog.get_logger(__name__)

# SQLSTATEs raised by PostgreSQL for an exclusion constraint violation and
# for a lock wait exceeding lock_timeout
EXCLUSION_VIOLATION = "23P01"
LOCK_NOT_AVAILABLE = "55P03"


class AppointmentStore(Protocol):
    """Operations the scheduling engine needs from appointment storage."""

    def transaction(
        self, doctor_id: UUID | None = None
    ) -> AbstractAsyncContextManager[None]: ...

    async def get_appointment(
        self, appointment_id: UUID, *, for_update: bool = False
    ) -> dict[str, Any] | None: ...

    async def find_overlapping(
        self,
        doctor_id: UUID,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> list[dict[str, Any]]: ...

    async def insert_appointment(self, values: dict[str, Any]) -> dict[str, Any]: ...

    async def update_appointment(
        self,
        appointment_id: UUID,
        values: dict[str, Any],
        expected_status: AppointmentStatus | None = None,
    ) -> dict[str, Any] | None: ...

    async def insert_clinical_record(self, values: dict[str, Any]) -> dict[str, Any]: ...

    async def get_clinical_record(self, appointment_id: UUID) -> dict[str, Any] | None: ...

    async def find_for_day(
        self, doctor_id: UUID, day_start: datetime, day_end: datetime
    ) -> list[dict[str, Any]]: ...

    async def list_appointments(
        self, filters: AppointmentFilters
    ) -> tuple[int, list[dict[str, Any]]]: ...


def practitioner_lock_key(doctor_id: UUID) -> int:
    """Map a practitioner id onto the signed 64-bit advisory lock space."""
    return int.from_bytes(doctor_id.bytes[:8], "big", signed=True)


def _is_overlap_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == EXCLUSION_VIOLATION:
        return True
    return NO_OVERLAP_CONSTRAINT in str(orig)


def _is_lock_timeout(exc: DBAPIError) -> bool:
    orig = exc.orig
    if getattr(orig, "sqlstate", None) == LOCK_NOT_AVAILABLE:
        return True
    return "lock timeout" in str(orig)


class SqlAppointmentStore:
    """PostgreSQL-backed appointment store."""

    def __init__(self, db: AsyncSession):
        """Initialize store with database session."""
        self.db = db

    @asynccontextmanager
    async def transaction(self, doctor_id: UUID | None = None) -> AsyncIterator[None]:
        """
        Run the enclosed statements as one unit of work.

        When ``doctor_id`` is given a transaction-scoped advisory lock is taken
        for that practitioner first, so concurrent bookings for the same doctor
        queue behind each other while other doctors proceed independently.

        Raises:
            ConflictException: If the no-overlap exclusion constraint rejects
                the write, or a lock (the practitioner's, or an appointment row's)
                cannot be acquired within ``lock_timeout``
        """
        try:
            if doctor_id is not None:
                await self.db.execute(
                    select(func.pg_advisory_xact_lock(practitioner_lock_key(doctor_id)))
                )
            yield
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if _is_overlap_violation(e):
                logger.info("booking_rejected_by_constraint", doctor_id=str(doctor_id))
                raise ConflictException("Time slot is not available") from e
            logger.error("database_error", error=str(e.orig))
            raise
        except DBAPIError as e:
            await self.db.rollback()
            if _is_lock_timeout(e):
                if doctor_id is not None:
                    logger.warning("practitioner_lock_timeout", doctor_id=str(doctor_id))
                    raise ConflictException("Schedule is busy, please retry") from e
                logger.warning("appointment_lock_timeout")
                raise ConflictException(
                    "Appointment is being updated by another request, please retry"
                ) from e
            logger.error("database_error", error=str(e.orig))
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("database_error", error=str(e))
            raise
        except BaseException:
            await self.db.rollback()
            raise

    async def get_appointment(
        self, appointment_id: UUID, *, for_update: bool = False
    ) -> dict[str, Any] | None:
        """Fetch one appointment, optionally locking its row."""
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        row = result.mappings().first()
        return dict(row) if row else None

    async def find_overlapping(
        self,
        doctor_id: UUID,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> list[dict[str, Any]]:
        """
        Scheduled appointments of a doctor intersecting ``[start_time, end_time)``.

        Args:
            doctor_id: Practitioner ID
            start_time: Interval start (inclusive)
            end_time: Interval end (exclusive)
            exclude_appointment_id: Appointment to leave out of the result

        Returns:
            Matching appointments ordered by start time
        """
        conditions = [
            appointments.c.doctor_id == doctor_id,
            appointments.c.status == AppointmentStatus.SCHEDULED.value,
            appointments.c.start_time < end_time,
            appointments.c.end_time > start_time,
        ]
        if exclude_appointment_id is not None:
            conditions.append(appointments.c.id != exclude_appointment_id)

        stmt = select(appointments).where(and_(*conditions)).order_by(appointments.c.start_time)
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def insert_appointment(self, values: dict[str, Any]) -> dict[str, Any]:
        """Insert an appointment row and return it."""
        stmt = insert(appointments).values(**values).returning(appointments)
        result = await self.db.execute(stmt)
        return dict(result.mappings().one())

    async def update_appointment(
        self,
        appointment_id: UUID,
        values: dict[str, Any],
        expected_status: AppointmentStatus | None = None,
    ) -> dict[str, Any] | None:
        """
        Update an appointment row.

        Args:
            appointment_id: Appointment ID
            values: Column values to set
            expected_status: If given, only update while the row still has
                this status

        Returns:
            Updated row, or None when no row matched
        """
        conditions = [appointments.c.id == appointment_id]
        if expected_status is not None:
            conditions.append(appointments.c.status == expected_status.value)

        stmt = update(appointments).where(and_(*conditions)).values(**values).returning(appointments)
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        return dict(row) if row else None

    async def insert_clinical_record(self, values: dict[str, Any]) -> dict[str, Any]:
        """Insert a clinical record and return it."""
        stmt = insert(clinical_records).values(**values).returning(clinical_records)
        result = await self.db.execute(stmt)
        return dict(result.mappings().one())

    async def get_clinical_record(self, appointment_id: UUID) -> dict[str, Any] | None:
        """Clinical record produced by an appointment, if any."""
        stmt = select(clinical_records).where(clinical_records.c.appointment_id == appointment_id)
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        return dict(row) if row else None

    async def find_for_day(
        self, doctor_id: UUID, day_start: datetime, day_end: datetime
    ) -> list[dict[str, Any]]:
        """Every appointment of a doctor starting in ``[day_start, day_end)``, earliest first."""
        stmt = (
            select(appointments)
            .where(
                appointments.c.doctor_id == doctor_id,
                appointments.c.start_time >= day_start,
                appointments.c.start_time < day_end,
            )
            .order_by(appointments.c.start_time, appointments.c.created_at)
        )
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def list_appointments(
        self, filters: AppointmentFilters
    ) -> tuple[int, list[dict[str, Any]]]:
        """
        List appointments with filtering and pagination.

        Returns:
            Total number of matches and the requested page, newest first
        """
        conditions = []

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.from_date:
            conditions.append(appointments.c.start_time >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.start_time < filters.to_date)

        count_stmt = select(func.count()).select_from(appointments).where(*conditions)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        offset = (filters.page - 1) * filters.page_size
        stmt = (
            select(appointments)
            .where(*conditions)
            .order_by(appointments.c.start_time.desc())
            .limit(filters.page_size)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        return total, [dict(row) for row in result.mappings().all()]
