"""Provider availability and dashboard endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import CurrentProvider, CurrentUser, DatabaseSession, SlotCache
from app.schemas.appointments import ProviderStatsResponse
from app.schemas.scheduling import AvailableSlots
from app.services.appointment_service import AppointmentService
from app.services.availability_service import AvailabilityService

router = APIRouter()


@router.get(
    "/me/stats",
    response_model=ProviderStatsResponse,
    status_code=status.HTTP_200_OK,
    summary="Provider dashboard counts",
)
async def get_my_stats(
    current_user: CurrentProvider,
    db: DatabaseSession,
) -> ProviderStatsResponse:
    """Today's appointments, pending requests and distinct patients."""
    service = AppointmentService(db)
    return await service.get_provider_stats(current_user["id"])


@router.get(
    "/{provider_id}/availability",
    response_model=AvailableSlots,
    status_code=status.HTTP_200_OK,
    summary="Free time slots for a provider",
)
async def get_availability(
    provider_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: SlotCache,
    day: date = Query(..., alias="date"),
) -> AvailableSlots:
    """
    Free slots for a provider on a date.

    Call again whenever the provider or the date changes. When the store
    cannot be read every slot is returned with ``degraded`` set.

    Args:
        provider_id: Provider to inspect
        current_user: Authenticated user
        db: Database session
        cache: Slot cache
        day: Calendar day, ISO format

    Returns:
        Free slots in template order
    """
    service = AvailabilityService(db, cache)
    return await service.get_available_slots(provider_id, day)
