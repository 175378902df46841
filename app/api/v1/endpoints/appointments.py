"""Appointment endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentPatient, CurrentUser, DatabaseSession, SlotCache
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
)
from app.schemas.users import UserRole
from app.services.appointment_service import AppointmentService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book an appointment",
)
async def book_appointment(
    data: AppointmentCreate,
    current_user: CurrentPatient,
    db: DatabaseSession,
    cache: SlotCache,
) -> AppointmentResponse:
    """
    Book a slot with a provider for the authenticated patient.

    The appointment starts out pending until the provider accepts it. A 409
    response means the slot was taken in the meantime and carries the
    refreshed free slots for that day.
    """
    service = AppointmentService(db, cache)
    return await service.book_appointment(
        patient_id=current_user["id"],
        provider_id=data.provider_id,
        day=data.date,
        slot=data.time,
        appointment_type=data.appointment_type,
        consultation_type=data.consultation_type,
        notes=data.notes,
    )


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    current_user: CurrentUser,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    upcoming: bool | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List the authenticated user's appointments, earliest first.

    Args:
        current_user: Authenticated patient or provider
        db: Database session
        status_filter: Filter by status
        upcoming: Only future (true) or only past (false) appointments
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        upcoming=upcoming,
        page=page,
        page_size=page_size,
    )

    service = AppointmentService(db)
    return await service.list_appointments(
        current_user["id"], UserRole(current_user["role"]), filters
    )


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """Get a specific appointment the user is a party to."""
    service = AppointmentService(db)
    return await service.get_appointment(appointment_id, current_user["id"])


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: SlotCache,
) -> AppointmentResponse:
    """
    Accept, decline, cancel or complete an appointment.

    Providers accept or decline pending requests and complete accepted ones;
    patients cancel accepted upcoming appointments.

    Args:
        appointment_id: Appointment ID
        data: Requested status
        current_user: Authenticated user
        db: Database session
        cache: Slot cache to invalidate

    Returns:
        Updated appointment
    """
    service = AppointmentService(db, cache)
    return await service.update_appointment_status(appointment_id, data.status, current_user["id"])
