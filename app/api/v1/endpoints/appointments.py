"""Appointment endpoints."""

from datetime import date
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.core.exceptions import ForbiddenException
from app.dependencies import BookingServiceDep, CurrentUser, require_roles
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentDetailResponse,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    SlotResponse,
)
from app.services.appointment_lifecycle import ClinicalFields

router = APIRouter()

PatientOrAdmin = Annotated[dict[str, Any], Depends(require_roles("patient", "admin"))]
DoctorOrAdmin = Annotated[dict[str, Any], Depends(require_roles("doctor", "admin"))]
PatientOnly = Annotated[dict[str, Any], Depends(require_roles("patient"))]
DoctorOnly = Annotated[dict[str, Any], Depends(require_roles("doctor"))]
AdminOnly = Annotated[dict[str, Any], Depends(require_roles("admin"))]


def _ensure_participant(current_user: dict[str, Any], appointment: dict[str, Any]) -> None:
    """Admins see everything; patients and doctors only their own appointments."""
    role = current_user["role"]
    if role == "admin":
        return
    owner = appointment["patient_id"] if role == "patient" else appointment["doctor_id"]
    if owner != current_user["id"]:
        raise ForbiddenException("Access denied to this appointment")


def _page(
    total: int, filters: AppointmentFilters, items: list[dict[str, Any]]
) -> AppointmentListResponse:
    return AppointmentListResponse(
        total=total,
        page=filters.page,
        page_size=filters.page_size,
        items=[AppointmentResponse.model_validate(item) for item in items],
    )


@router.post(
    "",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book an appointment",
)
async def book_appointment(
    data: AppointmentCreate,
    current_user: PatientOrAdmin,
    service: BookingServiceDep,
) -> AppointmentResponse:
    """
    Book a 30-minute appointment with a doctor.

    Patients may only book for themselves.

    Args:
        data: Patient, doctor, start time and notes
        current_user: Authenticated patient or admin
        service: Booking service

    Returns:
        Created appointment
    """
    if current_user["role"] == "patient" and data.patient_id != current_user["id"]:
        raise ForbiddenException("Patients can only book appointments for themselves")

    appointment = await service.book_appointment(
        patient_id=data.patient_id,
        doctor_id=data.doctor_id,
        start_time=data.start_time,
        notes=data.notes,
    )
    return AppointmentResponse.model_validate(appointment)


@router.get(
    "/slots",
    response_model=list[SlotResponse],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List a doctor's slots for a date",
)
async def list_available_slots(
    current_user: CurrentUser,
    service: BookingServiceDep,
    doctor_id: UUID = Query(..., alias="doctorId"),
    day: date = Query(..., alias="date"),
) -> list[SlotResponse]:
    """
    List the remaining start times on a date and whether each can be booked.

    Args:
        current_user: Authenticated user
        service: Booking service
        doctor_id: Doctor ID
        day: Calendar date (YYYY-MM-DD)

    Returns:
        Slots in time order
    """
    slots = await service.list_slots(doctor_id, day)
    return [SlotResponse(time=slot.time.strftime("%H:%M"), available=slot.available) for slot in slots]


@router.get(
    "/schedule",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="View a doctor's schedule for a date",
)
async def view_schedule(
    admin_user: AdminOnly,
    service: BookingServiceDep,
    doctor_id: UUID = Query(..., alias="doctorId"),
    day: date = Query(..., alias="date"),
) -> list[AppointmentResponse]:
    """
    Every appointment a doctor has on a date, in any status.

    Requires admin role.
    """
    schedule = await service.get_schedule(doctor_id, day)
    return [AppointmentResponse.model_validate(item) for item in schedule]


@router.get(
    "/patient",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List my appointments as a patient",
)
async def list_patient_appointments(
    current_user: PatientOnly,
    service: BookingServiceDep,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """List the authenticated patient's appointments."""
    filters = AppointmentFilters(
        status=status_filter,
        patient_id=current_user["id"],
        page=page,
        page_size=page_size,
    )
    total, items = await service.list_appointments(filters)
    return _page(total, filters, items)


@router.get(
    "/doctor",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List my appointments as a doctor",
)
async def list_doctor_appointments(
    current_user: DoctorOnly,
    service: BookingServiceDep,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """List the authenticated doctor's appointments."""
    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=current_user["id"],
        page=page,
        page_size=page_size,
    )
    total, items = await service.list_appointments(filters)
    return _page(total, filters, items)


@router.get(
    "",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List all appointments",
)
async def list_appointments(
    admin_user: AdminOnly,
    service: BookingServiceDep,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor_id: UUID | None = Query(None, alias="doctorId"),
    patient_id: UUID | None = Query(None, alias="patientId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List all appointments with filtering.

    Requires admin role.
    """
    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=doctor_id,
        patient_id=patient_id,
        page=page,
        page_size=page_size,
    )
    total, items = await service.list_appointments(filters)
    return _page(total, filters, items)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentDetailResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    service: BookingServiceDep,
) -> AppointmentDetailResponse:
    """
    Get an appointment and the clinical record it produced, if any.

    Raises:
        NotFoundException: If appointment not found
        ForbiddenException: If the caller is not a participant
    """
    appointment, record = await service.get_appointment(appointment_id)
    _ensure_participant(current_user, appointment)
    return AppointmentDetailResponse.model_validate({**appointment, "clinical_record": record})


@router.put(
    "/{appointment_id}/status",
    response_model=AppointmentDetailResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def change_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    current_user: DoctorOrAdmin,
    service: BookingServiceDep,
) -> AppointmentDetailResponse:
    """
    Complete, cancel or mark an appointment as a no-show.

    Completing requires a diagnosis and creates the clinical record returned
    alongside the appointment.

    Args:
        appointment_id: Appointment ID
        data: New status and clinical details
        current_user: Authenticated doctor or admin
        service: Booking service

    Returns:
        Updated appointment with its clinical record

    Raises:
        NotFoundException: If appointment not found
        IllegalTransitionException: If the move is not allowed (400)
        ValidationException: If completing without a diagnosis (400)
        ConflictException: If another request holds the appointment past the
            lock timeout (409)
    """
    if current_user["role"] == "doctor":
        appointment, _ = await service.get_appointment(appointment_id)
        _ensure_participant(current_user, appointment)

    updated, record = await service.change_status(
        appointment_id,
        data.status,
        ClinicalFields(
            diagnosis=data.diagnosis,
            prescription=data.prescription,
            notes=data.notes,
        ),
    )
    return AppointmentDetailResponse.model_validate({**updated, "clinical_record": record})
