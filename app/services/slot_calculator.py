"""Enumerate candidate appointment start times within business hours."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from uuid import UUID

from app.core.exceptions import ValidationException


@dataclass(frozen=True)
class BusinessHours:
    """Daily window, ``[start, end)``, during which appointments may start."""

    start: time = time(9, 0)
    end: time = time(17, 0)

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValidationException("Business hours must close after they open")

    def contains_start(self, moment: datetime) -> bool:
        """Whether an appointment may begin at ``moment``'s wall-clock time."""
        return self.start <= moment.time() < self.end

    def closing_on(self, day: date) -> datetime:
        """Closing moment on ``day``; an ``end`` of ``time.max`` means midnight."""
        if self.end == time.max:
            return datetime.combine(day + timedelta(days=1), time.min)
        return datetime.combine(day, self.end)

    def describe(self) -> str:
        """Human-readable window, e.g. ``09:00-17:00``."""
        closing = "24:00" if self.end == time.max else f"{self.end:%H:%M}"
        return f"{self.start:%H:%M}-{closing}"


@dataclass(frozen=True)
class Slot:
    """A candidate start time and whether it can currently be booked."""

    time: datetime
    available: bool


def _coerce_day(day: date | str) -> date:
    if isinstance(day, datetime):
        return day.date()
    if isinstance(day, date):
        return day
    try:
        return date.fromisoformat(day)
    except (TypeError, ValueError):
        raise ValidationException(f"Invalid date: {day!r}")


def generate_slots(
    practitioner_id: UUID,
    day: date | str,
    business_hours: BusinessHours,
    duration: timedelta,
    now: datetime,
) -> tuple[datetime, ...]:
    """
    Candidate start times for one practitioner on one day.

    Slots are laid end to end from opening time at ``duration`` steps; a slot
    is produced only if it finishes by closing time and starts strictly after
    ``now``. The result does not depend on existing bookings, and every
    practitioner shares the same grid, so ``practitioner_id`` only identifies
    whose day is being laid out.

    Args:
        practitioner_id: Practitioner the slots are for
        day: Calendar date, as a ``date`` or ISO ``YYYY-MM-DD`` string
        business_hours: Daily window appointments must fit in
        duration: Length of one appointment
        now: Current wall-clock time

    Returns:
        Start times in ascending order

    Raises:
        ValidationException: If ``duration`` is not positive or ``day`` is
            malformed
    """
    if duration <= timedelta(0):
        raise ValidationException("Appointment duration must be positive")

    day = _coerce_day(day)
    cursor = datetime.combine(day, business_hours.start)
    closing = business_hours.closing_on(day)

    slots = []
    while cursor + duration <= closing:
        if cursor > now:
            slots.append(cursor)
        cursor += duration

    return tuple(slots)
