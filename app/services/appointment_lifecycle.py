"""Appointment lifecycle: legal status transitions and their side effects.

``plan_transition`` is a pure decision over an appointment snapshot;
``AppointmentLifecycle.apply`` performs the writes it describes. Callers run
``apply`` inside a store transaction so the status change and the clinical
record land together or not at all.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from app.core.exceptions import IllegalTransitionException, ValidationException
from app.repositories.appointments import AppointmentStore
from app.schemas.appointments import AppointmentStatus

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)


@dataclass(frozen=True)
class ClinicalFields:
    """Clinical details supplied alongside a status change."""

    diagnosis: str | None = None
    prescription: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class TransitionPlan:
    """Writes needed to move one appointment to a new status."""

    appointment_id: UUID
    from_status: AppointmentStatus
    to_status: AppointmentStatus
    appointment_values: dict[str, Any] = field(default_factory=dict)
    clinical_record: dict[str, Any] | None = None


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """Whether ``current -> target`` is a legal move."""
    return target in ALLOWED_TRANSITIONS[current]


def plan_transition(
    appointment: dict[str, Any],
    new_status: AppointmentStatus,
    clinical_fields: ClinicalFields | None,
    now: datetime,
) -> TransitionPlan:
    """
    Decide what a status change writes, without writing anything.

    Args:
        appointment: Current appointment row
        new_status: Requested status
        clinical_fields: Diagnosis, prescription and notes, if supplied
        now: Timestamp for ``updated_at`` and the clinical record

    Returns:
        Plan for ``AppointmentLifecycle.apply``

    Raises:
        IllegalTransitionException: If the move is not allowed from the
            current status
        ValidationException: If completing without a diagnosis
    """
    current = AppointmentStatus(appointment["status"])
    if not can_transition(current, new_status):
        raise IllegalTransitionException(current.value, new_status.value)

    clinical_fields = clinical_fields or ClinicalFields()
    values: dict[str, Any] = {"status": new_status.value, "updated_at": now}
    if clinical_fields.notes is not None:
        values["notes"] = clinical_fields.notes

    record = None
    if new_status == AppointmentStatus.COMPLETED:
        diagnosis = (clinical_fields.diagnosis or "").strip()
        if not diagnosis:
            raise ValidationException("A diagnosis is required to complete an appointment")
        record = {
            "patient_id": appointment["patient_id"],
            "doctor_id": appointment["doctor_id"],
            "appointment_id": appointment["id"],
            "diagnosis": diagnosis,
            "prescription": clinical_fields.prescription,
            "notes": clinical_fields.notes,
            "created_at": now,
            "updated_at": now,
        }

    return TransitionPlan(
        appointment_id=appointment["id"],
        from_status=current,
        to_status=new_status,
        appointment_values=values,
        clinical_record=record,
    )


class AppointmentLifecycle:
    """Applies transition plans against the appointment store."""

    def __init__(self, store: AppointmentStore):
        """Initialize lifecycle with the store it writes to."""
        self.store = store

    async def apply(
        self, plan: TransitionPlan
    ) -> tuple[dict[str, Any], dict[str, Any] | None]:
        """
        Write a planned transition.

        The update only matches while the row still has ``plan.from_status``;
        a concurrent change in between surfaces as an illegal transition.

        Returns:
            Updated appointment and the clinical record created, if any
        """
        updated = await self.store.update_appointment(
            plan.appointment_id,
            plan.appointment_values,
            expected_status=plan.from_status,
        )
        if updated is None:
            raise IllegalTransitionException(plan.from_status.value, plan.to_status.value)

        record = None
        if plan.clinical_record is not None:
            record = await self.store.insert_clinical_record(plan.clinical_record)

        return updated, record
