"""Tests for the booking transaction and status changes at the service level."""

from datetime import date, datetime, time, timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from app.core.exceptions import (
    ForbiddenException,
    NotFoundException,
    SlotUnavailableException,
    TransitionException,
    ValidationException,
)
from app.models.appointments import appointments
from app.schemas.appointments import (
    AppointmentFilters,
    AppointmentStatus,
    AppointmentType,
    ConsultationType,
)
from app.schemas.users import UserRole
from app.services.appointment_service import AppointmentService
from app.services.availability_service import AvailabilityService

MONDAY = date(2025, 6, 2)


async def count_appointments(db_session) -> int:
    return (await db_session.execute(select(func.count()).select_from(appointments))).scalar()


@pytest.fixture
def service(db_session, fixed_now) -> AppointmentService:
    return AppointmentService(db_session, now=lambda: fixed_now)


async def book(service: AppointmentService, patient: dict, provider: dict, slot: time, day=MONDAY):
    return await service.book_appointment(
        patient_id=patient["id"],
        provider_id=provider["id"],
        day=day,
        slot=slot,
        appointment_type=AppointmentType.INITIAL_CONSULTATION,
        consultation_type=ConsultationType.IN_PERSON,
        notes="Lower back pain",
    )


@pytest.mark.asyncio
async def test_booking_creates_pending_appointment(service, patient, provider) -> None:
    """Patient books Dr. Smith on Monday 2025-06-02 at 10:00."""
    appointment = await book(service, patient, provider, time(10, 0))

    assert appointment.status == AppointmentStatus.PENDING
    assert appointment.appointment_date == datetime(2025, 6, 2, 10, 0)
    assert appointment.patient_id == patient["id"]
    assert appointment.provider_id == provider["id"]
    assert appointment.appointment_type == AppointmentType.INITIAL_CONSULTATION
    assert appointment.consultation_type == ConsultationType.IN_PERSON
    assert appointment.notes == "Lower back pain"


@pytest.mark.asyncio
async def test_booked_slot_disappears_from_availability(
    db_session, service, patient, provider
) -> None:
    await book(service, patient, provider, time(14, 0))

    result = await AvailabilityService(db_session).get_available_slots(provider["id"], MONDAY)

    assert time(14, 0) not in result.slots
    assert len(result.slots) == 7


@pytest.mark.asyncio
async def test_second_booking_of_same_slot_conflicts(
    db_session, service, patient, second_patient, provider
) -> None:
    await book(service, patient, provider, time(10, 0))

    with pytest.raises(SlotUnavailableException) as exc_info:
        await book(service, second_patient, provider, time(10, 0))

    assert await count_appointments(db_session) == 1
    # The conflict carries a fresh view of the day
    assert "10:00" not in exc_info.value.available_slots
    assert len(exc_info.value.available_slots) == 7
    assert exc_info.value.status_code == 409
    assert "no longer available" in exc_info.value.message


@pytest.mark.asyncio
async def test_unique_index_stops_racing_bookings(
    db_session, service, patient, second_patient, provider
) -> None:
    """
    Two bookings that both pass the re-check before either inserts.

    The application check alone cannot prevent this; the partial unique
    index on (provider_id, appointment_date) must reject the second insert.
    """
    service._find_conflict = AsyncMock(return_value=None)

    await book(service, patient, provider, time(11, 0))
    with pytest.raises(SlotUnavailableException):
        await book(service, second_patient, provider, time(11, 0))

    assert await count_appointments(db_session) == 1


@pytest.mark.asyncio
async def test_released_slot_can_be_booked_again(
    db_session, service, patient, second_patient, provider, make_appointment
) -> None:
    await make_appointment(
        patient["id"], provider["id"], datetime(2025, 6, 2, 9, 0), status="cancelled"
    )
    await make_appointment(
        patient["id"], provider["id"], datetime(2025, 6, 2, 9, 0), status="declined"
    )

    appointment = await book(service, second_patient, provider, time(9, 0))

    assert appointment.status == AppointmentStatus.PENDING
    assert await count_appointments(db_session) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field", ["provider_id", "day", "slot", "appointment_type", "consultation_type"]
)
async def test_missing_required_field(service, patient, provider, field: str) -> None:
    values = {
        "provider_id": provider["id"],
        "day": MONDAY,
        "slot": time(10, 0),
        "appointment_type": "Follow-up",
        "consultation_type": "Virtual",
    }
    values[field] = "" if field.endswith("_type") else None

    with pytest.raises(ValidationException) as exc_info:
        await service.book_appointment(patient_id=patient["id"], **values)

    assert exc_info.value.status_code == 422
    assert exc_info.value.details["fields"]


@pytest.mark.asyncio
async def test_off_template_time_rejected(service, patient, provider) -> None:
    with pytest.raises(ValidationException, match="not a bookable time slot"):
        await book(service, patient, provider, time(10, 30))

    with pytest.raises(ValidationException):
        await book(service, patient, provider, time(17, 0))

    # Seconds are not rounded away
    with pytest.raises(ValidationException, match="10:00:45"):
        await book(service, patient, provider, time(10, 0, 45))


@pytest.mark.asyncio
async def test_weekend_and_past_dates_rejected(service, patient, provider) -> None:
    with pytest.raises(ValidationException, match="weekdays"):
        await book(service, patient, provider, time(10, 0), day=date(2025, 6, 7))

    with pytest.raises(ValidationException, match="weekdays"):
        await book(service, patient, provider, time(10, 0), day=date(2025, 5, 30))


@pytest.mark.asyncio
async def test_elapsed_slot_today_rejected(db_session, patient, provider) -> None:
    service = AppointmentService(db_session, now=lambda: datetime(2025, 6, 2, 12, 30))

    with pytest.raises(ValidationException, match="already passed"):
        await book(service, patient, provider, time(11, 0))

    appointment = await book(service, patient, provider, time(13, 0))
    assert appointment.status == AppointmentStatus.PENDING


@pytest.mark.asyncio
async def test_unknown_type_rejected(service, patient, provider) -> None:
    with pytest.raises(ValidationException):
        await service.book_appointment(
            patient_id=patient["id"],
            provider_id=provider["id"],
            day=MONDAY,
            slot=time(10, 0),
            appointment_type="Surgery",
            consultation_type="Virtual",
        )


@pytest.mark.asyncio
async def test_booking_requires_existing_provider(service, patient, second_patient) -> None:
    with pytest.raises(NotFoundException):
        await book(service, patient, {"id": uuid4()}, time(10, 0))

    # Patients cannot be booked as providers
    with pytest.raises(NotFoundException):
        await book(service, patient, second_patient, time(10, 0))


@pytest.mark.asyncio
async def test_booking_invalidates_cached_slots(db_session, fixed_now, patient, provider) -> None:
    cache = MagicMock()
    cache.get_json.return_value = None
    service = AppointmentService(db_session, cache, now=lambda: fixed_now)

    await book(service, patient, provider, time(15, 0))

    cache.delete.assert_called_with(f"availability:{provider['id']}:2025-06-02")


@pytest.mark.asyncio
async def test_accept_then_complete(service, patient, provider) -> None:
    appointment = await book(service, patient, provider, time(10, 0))

    accepted = await service.update_appointment_status(
        appointment.id, AppointmentStatus.ACCEPTED, provider["id"]
    )
    assert accepted.status == AppointmentStatus.ACCEPTED

    # Completion while still upcoming is what the legacy rule allows
    completed = await service.update_appointment_status(
        appointment.id, AppointmentStatus.COMPLETED, provider["id"]
    )
    assert completed.status == AppointmentStatus.COMPLETED


@pytest.mark.asyncio
async def test_accept_succeeds_exactly_once(service, patient, provider) -> None:
    appointment = await book(service, patient, provider, time(10, 0))

    await service.update_appointment_status(
        appointment.id, AppointmentStatus.ACCEPTED, provider["id"]
    )
    with pytest.raises(TransitionException):
        await service.update_appointment_status(
            appointment.id, AppointmentStatus.ACCEPTED, provider["id"]
        )


@pytest.mark.asyncio
async def test_declined_cannot_be_accepted(service, patient, provider) -> None:
    appointment = await book(service, patient, provider, time(10, 0))

    await service.update_appointment_status(
        appointment.id, AppointmentStatus.DECLINED, provider["id"]
    )
    with pytest.raises(TransitionException):
        await service.update_appointment_status(
            appointment.id, AppointmentStatus.ACCEPTED, provider["id"]
        )


@pytest.mark.asyncio
async def test_patient_cancels_accepted_appointment(
    db_session, service, patient, second_patient, provider
) -> None:
    appointment = await book(service, patient, provider, time(10, 0))
    await service.update_appointment_status(
        appointment.id, AppointmentStatus.ACCEPTED, provider["id"]
    )

    cancelled = await service.update_appointment_status(
        appointment.id, AppointmentStatus.CANCELLED, patient["id"]
    )
    assert cancelled.status == AppointmentStatus.CANCELLED

    # The slot is free again
    rebooked = await book(service, second_patient, provider, time(10, 0))
    assert rebooked.status == AppointmentStatus.PENDING


@pytest.mark.asyncio
async def test_patient_cannot_accept(service, patient, provider) -> None:
    appointment = await book(service, patient, provider, time(10, 0))

    with pytest.raises(TransitionException, match="only the provider"):
        await service.update_appointment_status(
            appointment.id, AppointmentStatus.ACCEPTED, patient["id"]
        )


@pytest.mark.asyncio
async def test_stranger_cannot_change_status(service, patient, second_patient, provider) -> None:
    appointment = await book(service, patient, provider, time(10, 0))

    with pytest.raises(ForbiddenException):
        await service.update_appointment_status(
            appointment.id, AppointmentStatus.CANCELLED, second_patient["id"]
        )


@pytest.mark.asyncio
async def test_unknown_appointment(service, provider) -> None:
    with pytest.raises(NotFoundException):
        await service.update_appointment_status(uuid4(), AppointmentStatus.ACCEPTED, provider["id"])


@pytest.mark.asyncio
async def test_completion_rule_can_be_flipped(
    db_session, patient, provider, make_appointment
) -> None:
    appointment_id = await make_appointment(
        patient["id"], provider["id"], datetime(2025, 6, 2, 10, 0), status="accepted"
    )

    before = AppointmentService(
        db_session, now=lambda: datetime(2025, 6, 2, 9, 0), completion_requires_upcoming=False
    )
    with pytest.raises(TransitionException):
        await before.update_appointment_status(
            appointment_id, AppointmentStatus.COMPLETED, provider["id"]
        )

    after = AppointmentService(
        db_session, now=lambda: datetime(2025, 6, 2, 11, 0), completion_requires_upcoming=False
    )
    completed = await after.update_appointment_status(
        appointment_id, AppointmentStatus.COMPLETED, provider["id"]
    )
    assert completed.status == AppointmentStatus.COMPLETED


@pytest.mark.asyncio
async def test_list_appointments_per_role(
    service, patient, second_patient, provider, other_provider, make_appointment
) -> None:
    later = await make_appointment(patient["id"], provider["id"], datetime(2025, 6, 4, 9, 0))
    earlier = await make_appointment(patient["id"], provider["id"], datetime(2025, 6, 3, 9, 0))
    await make_appointment(second_patient["id"], provider["id"], datetime(2025, 6, 3, 10, 0))
    elsewhere = await make_appointment(
        patient["id"], other_provider["id"], datetime(2025, 6, 3, 11, 0)
    )

    mine = await service.list_appointments(patient["id"], UserRole.PATIENT, AppointmentFilters())
    assert mine.total == 3
    assert [a.id for a in mine.items] == [earlier, elsewhere, later]

    theirs = await service.list_appointments(
        provider["id"], UserRole.PROVIDER, AppointmentFilters()
    )
    assert theirs.total == 3
    assert theirs.items[-1].id == later


@pytest.mark.asyncio
async def test_appointments_name_both_parties(
    service, patient, provider, make_appointment
) -> None:
    """Providers see who booked, patients see who they booked with."""
    appointment_id = await make_appointment(
        patient["id"], provider["id"], datetime(2025, 6, 3, 9, 0)
    )

    theirs = await service.list_appointments(
        provider["id"], UserRole.PROVIDER, AppointmentFilters()
    )
    assert theirs.items[0].patient.full_name == "Alex Patient"
    assert theirs.items[0].patient.email == patient["email"]

    mine = await service.list_appointments(patient["id"], UserRole.PATIENT, AppointmentFilters())
    assert mine.items[0].provider.full_name == "Jane Smith"
    assert mine.items[0].provider.email == provider["email"]

    single = await service.get_appointment(appointment_id, patient["id"])
    assert single.patient.id == patient["id"]
    assert single.provider.full_name == "Jane Smith"

@pytest.mark.asyncio
async def test_list_filters(service, patient, provider, make_appointment) -> None:
    await make_appointment(
        patient["id"], provider["id"], datetime(2025, 5, 30, 9, 0), status="completed"
    )
    await make_appointment(patient["id"], provider["id"], datetime(2025, 6, 3, 9, 0))

    upcoming = await service.list_appointments(
        patient["id"], UserRole.PATIENT, AppointmentFilters(upcoming=True)
    )
    assert upcoming.total == 1
    assert upcoming.items[0].status == AppointmentStatus.PENDING

    completed = await service.list_appointments(
        patient["id"], UserRole.PATIENT, AppointmentFilters(status=AppointmentStatus.COMPLETED)
    )
    assert completed.total == 1
    assert completed.items[0].appointment_date == datetime(2025, 5, 30, 9, 0)


@pytest.mark.asyncio
async def test_provider_stats(
    service, fixed_now, patient, second_patient, provider, make_appointment
) -> None:
    today = fixed_now.date()
    await make_appointment(patient["id"], provider["id"], datetime.combine(today, time(9, 0)))
    await make_appointment(
        second_patient["id"],
        provider["id"],
        datetime.combine(today, time(10, 0)),
        status="accepted",
    )
    await make_appointment(
        patient["id"], provider["id"], datetime.combine(today, time(11, 0)), status="cancelled"
    )
    await make_appointment(
        patient["id"], provider["id"], datetime.combine(today + timedelta(days=1), time(9, 0))
    )

    stats = await service.get_provider_stats(provider["id"])

    assert stats.today_appointments == 2
    assert stats.pending_requests == 2
    assert stats.total_patients == 2
