"""Overlap detection between a requested interval and existing bookings."""

from collections.abc import Sequence
from datetime import datetime, timedelta
from uuid import UUID

from app.core.exceptions import ValidationException
from app.repositories.appointments import AppointmentStore
from app.repositories.practitioners import PractitionerDirectory
from app.services.slot_calculator import Slot


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """Half-open overlap test: ``[a)`` and ``[b)`` share at least one instant."""
    return start_a < end_b and start_b < end_a


class ConflictResolver:
    """Decides whether a practitioner is free over a given interval.

    Booking checks and slot listings both go through ``intervals_overlap`` so
    that an advertised slot and a booking attempt for it always agree.
    """

    def __init__(self, store: AppointmentStore, directory: PractitionerDirectory):
        """Initialize resolver with its collaborators."""
        self.store = store
        self.directory = directory

    async def practitioner_can_accept(self, doctor_id: UUID) -> bool:
        """Whether the practitioner is active and taking bookings."""
        return await self.directory.is_active(doctor_id) and (
            await self.directory.is_accepting_bookings(doctor_id)
        )

    async def has_conflict(
        self,
        doctor_id: UUID,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> bool:
        """
        Whether ``[start_time, end_time)`` cannot be granted to a new booking.

        An inactive or unavailable practitioner conflicts with everything.

        Args:
            doctor_id: Practitioner ID
            start_time: Requested start
            end_time: Requested end, exclusive
            exclude_appointment_id: Booking to ignore, e.g. the one being edited

        Returns:
            True if the interval is not free

        Raises:
            ValidationException: If the interval is empty or reversed
        """
        if end_time <= start_time:
            raise ValidationException("Appointment must end after it starts")

        if not await self.practitioner_can_accept(doctor_id):
            return True

        booked = await self.store.find_overlapping(
            doctor_id,
            start_time,
            end_time,
            exclude_appointment_id=exclude_appointment_id,
        )
        return any(
            intervals_overlap(start_time, end_time, b["start_time"], b["end_time"]) for b in booked
        )

    async def mark_availability(
        self,
        doctor_id: UUID,
        candidates: Sequence[datetime],
        duration: timedelta,
    ) -> list[Slot]:
        """
        Pair each candidate start time with its availability.

        Existing bookings are fetched once for the span the candidates cover.
        """
        if not candidates:
            return []

        if not await self.practitioner_can_accept(doctor_id):
            return [Slot(time=start, available=False) for start in candidates]

        booked = await self.store.find_overlapping(
            doctor_id,
            min(candidates),
            max(candidates) + duration,
        )
        return [
            Slot(
                time=start,
                available=not any(
                    intervals_overlap(start, start + duration, b["start_time"], b["end_time"])
                    for b in booked
                ),
            )
            for start in candidates
        ]
