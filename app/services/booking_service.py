"""Booking orchestration: the public entry points of the scheduling engine."""

from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from typing import Any
from uuid import UUID

import structlog

from app.core.exceptions import (
    ConflictException,
    NotFoundException,
    UnavailableException,
    ValidationException,
)
from app.repositories.appointments import AppointmentStore
from app.repositories.practitioners import PractitionerDirectory
from app.schemas.appointments import AppointmentFilters, AppointmentStatus
from app.services.appointment_lifecycle import (
    AppointmentLifecycle,
    ClinicalFields,
    plan_transition,
)
from app.services.conflict_resolver import ConflictResolver
from app.services.slot_calculator import BusinessHours, Slot, generate_slots

logger = structlog.get_logger(__name__)


def to_clinic_time(moment: datetime) -> datetime:
    """
    Express a timestamp as naive clinic wall-clock time.

    Offset-aware values are converted to the server's local zone; naive
    values are taken as already local.
    """
    if moment.tzinfo is not None:
        return moment.astimezone().replace(tzinfo=None)
    return moment


def _local_now() -> datetime:
    return datetime.now()


class BookingService:
    """Books appointments and drives them through their lifecycle."""

    def __init__(
        self,
        store: AppointmentStore,
        directory: PractitionerDirectory,
        business_hours: BusinessHours | None = None,
        duration: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] = _local_now,
    ):
        """
        Initialize service with its collaborators and scheduling policy.

        Args:
            store: Appointment storage
            directory: Practitioner and patient lookups
            business_hours: Window appointments must start in
            duration: Fixed appointment length
            clock: Source of the current clinic wall-clock time
        """
        if duration <= timedelta(0):
            raise ValidationException("Appointment duration must be positive")

        self.store = store
        self.directory = directory
        self.business_hours = business_hours or BusinessHours()
        self.duration = duration
        self.clock = clock
        self.resolver = ConflictResolver(store, directory)
        self.lifecycle = AppointmentLifecycle(store)

    async def book_appointment(
        self,
        patient_id: UUID,
        doctor_id: UUID,
        start_time: datetime,
        notes: str | None = None,
    ) -> dict[str, Any]:
        """
        Book a new appointment.

        Checks run in order and the first failure wins: business hours and
        future start, patient and practitioner eligibility, then overlap. The
        overlap check and the insert share one transaction holding the
        practitioner's lock, and eligibility is checked again once it is held.

        Args:
            patient_id: Patient the appointment is for
            doctor_id: Practitioner being booked
            start_time: Requested start
            notes: Optional free text

        Returns:
            Created appointment

        Raises:
            ValidationException: Start outside business hours or not in the future
            NotFoundException: Unknown patient or practitioner
            UnavailableException: Practitioner inactive or not taking bookings
            ConflictException: Requested interval overlaps a scheduled booking
        """
        start_time = to_clinic_time(start_time)
        now = self.clock()

        if not self.business_hours.contains_start(start_time):
            raise ValidationException(
                f"Appointments must start within business hours ({self.business_hours.describe()})"
            )

        if start_time <= now:
            raise ValidationException("Appointment time must be in the future")

        if not await self.directory.patient_exists(patient_id):
            raise NotFoundException("Patient not found")

        if not await self.directory.practitioner_exists(doctor_id):
            raise NotFoundException("Doctor not found")

        if not await self.resolver.practitioner_can_accept(doctor_id):
            raise UnavailableException("Doctor is not available for appointments")

        end_time = start_time + self.duration

        async with self.store.transaction(doctor_id):
            # Eligibility may have changed while waiting for the lock
            if not await self.resolver.practitioner_can_accept(doctor_id):
                raise UnavailableException("Doctor is not available for appointments")

            if await self.resolver.has_conflict(doctor_id, start_time, end_time):
                logger.info(
                    "booking_conflict",
                    doctor_id=str(doctor_id),
                    start_time=start_time.isoformat(),
                )
                raise ConflictException("Time slot is not available")

            appointment = await self.store.insert_appointment(
                {
                    "patient_id": patient_id,
                    "doctor_id": doctor_id,
                    "start_time": start_time,
                    "end_time": end_time,
                    "status": AppointmentStatus.SCHEDULED.value,
                    "notes": notes,
                    "created_at": now,
                    "updated_at": now,
                }
            )

        logger.info(
            "appointment_booked",
            appointment_id=str(appointment["id"]),
            doctor_id=str(doctor_id),
            patient_id=str(patient_id),
            start_time=start_time.isoformat(),
        )
        return appointment

    async def change_status(
        self,
        appointment_id: UUID,
        new_status: AppointmentStatus | str,
        clinical_fields: ClinicalFields | None = None,
    ) -> tuple[dict[str, Any], dict[str, Any] | None]:
        """
        Move an appointment to a new status.

        Completing requires a diagnosis and creates exactly one clinical
        record in the same transaction as the status change.

        Args:
            appointment_id: Appointment ID
            new_status: Requested status
            clinical_fields: Diagnosis, prescription and notes

        Returns:
            Updated appointment and the clinical record created, if any

        Raises:
            ValidationException: Unknown status, or completing without a diagnosis
            NotFoundException: Unknown appointment
            IllegalTransitionException: Move not allowed from the current status
        """
        try:
            new_status = AppointmentStatus(new_status)
        except ValueError:
            raise ValidationException(f"Invalid appointment status: {new_status!r}")

        async with self.store.transaction():
            appointment = await self.store.get_appointment(appointment_id, for_update=True)
            if appointment is None:
                raise NotFoundException("Appointment not found")

            plan = plan_transition(appointment, new_status, clinical_fields, now=self.clock())
            updated, record = await self.lifecycle.apply(plan)

        logger.info(
            "appointment_status_changed",
            appointment_id=str(appointment_id),
            from_status=plan.from_status.value,
            to_status=plan.to_status.value,
        )
        if record is not None:
            logger.info(
                "clinical_record_created",
                record_id=str(record["id"]),
                appointment_id=str(appointment_id),
            )
        return updated, record

    async def list_slots(self, doctor_id: UUID, day: date | str) -> list[Slot]:
        """
        Bookable start times for a practitioner on a day.

        Raises:
            NotFoundException: Unknown practitioner
            ValidationException: Malformed date
        """
        if not await self.directory.practitioner_exists(doctor_id):
            raise NotFoundException("Doctor not found")

        candidates = generate_slots(
            doctor_id,
            day,
            self.business_hours,
            self.duration,
            now=self.clock(),
        )
        return await self.resolver.mark_availability(doctor_id, candidates, self.duration)

    async def get_appointment(
        self, appointment_id: UUID
    ) -> tuple[dict[str, Any], dict[str, Any] | None]:
        """
        Fetch an appointment and its clinical record.

        Raises:
            NotFoundException: Unknown appointment
        """
        appointment = await self.store.get_appointment(appointment_id)
        if appointment is None:
            raise NotFoundException("Appointment not found")

        record = await self.store.get_clinical_record(appointment_id)
        return appointment, record

    async def get_schedule(self, doctor_id: UUID, day: date) -> list[dict[str, Any]]:
        """All of a practitioner's appointments on a day, any status, earliest first."""
        start = datetime.combine(day, time.min)
        return await self.store.find_for_day(doctor_id, start, start + timedelta(days=1))

    async def list_appointments(
        self, filters: AppointmentFilters
    ) -> tuple[int, list[dict[str, Any]]]:
        """Filtered, paginated appointments."""
        return await self.store.list_appointments(filters)
