"""Appointment service for business logic."""

from collections.abc import Callable
from datetime import date, datetime, time
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import Select, and_, func, insert, select, update
from sqlalchemy.engine import Row
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    ForbiddenException,
    NotFoundException,
    SlotUnavailableException,
    StorageException,
    TransitionException,
    ValidationException,
)
from app.core.redis_client import CacheManager
from app.models.appointments import INACTIVE_STATUSES, appointments
from app.models.users import users
from app.schemas.appointments import (
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentParty,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentType,
    ConsultationType,
    ProviderStatsResponse,
)
from app.schemas.users import UserRole
from app.services.appointment_lifecycle import check_transition
from app.services.availability_service import SLOT_TEMPLATE, AvailabilityService, day_bounds
from app.services.calendar_service import is_eligible_date

logger = structlog.get_logger()

SLOT_INDEX_NAME = "uq_appointments_provider_slot_active"

patient_users = users.alias("patient_users")
provider_users = users.alias("provider_users")


def _is_slot_collision(error: IntegrityError) -> bool:
    """Tell a double-booking apart from other integrity failures."""
    message = str(error.orig) if error.orig is not None else str(error)
    if SLOT_INDEX_NAME in message:
        return True
    # SQLite reports the columns instead of the index name
    return "UNIQUE constraint failed" in message and "appointment_date" in message


def _with_parties() -> Select:
    """Appointments joined with the patient and provider they belong to."""
    return select(
        appointments,
        patient_users.c.full_name.label("patient_full_name"),
        patient_users.c.email.label("patient_email"),
        provider_users.c.full_name.label("provider_full_name"),
        provider_users.c.email.label("provider_email"),
    ).select_from(
        appointments.join(patient_users, appointments.c.patient_id == patient_users.c.id).join(
            provider_users, appointments.c.provider_id == provider_users.c.id
        )
    )


def _detailed_response(row: Row) -> AppointmentResponse:
    data = dict(row._mapping)
    return AppointmentResponse(
        **{column.name: data[column.name] for column in appointments.columns},
        patient=AppointmentParty(
            id=data["patient_id"],
            full_name=data["patient_full_name"],
            email=data["patient_email"],
        ),
        provider=AppointmentParty(
            id=data["provider_id"],
            full_name=data["provider_full_name"],
            email=data["provider_email"],
        ),
    )


class AppointmentService:
    """Service for booking appointments and moving them through their lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        cache: CacheManager | None = None,
        now: Callable[[], datetime] | None = None,
        completion_requires_upcoming: bool | None = None,
    ):
        """
        Initialize service.

        Args:
            db: Database session
            cache: Optional slot cache to invalidate on changes
            now: Clock returning clinic-local naive time
            completion_requires_upcoming: Override for the completion rule
        """
        self.db = db
        self.cache = cache
        self.now = now or datetime.now
        self.completion_requires_upcoming = (
            settings.completion_requires_upcoming
            if completion_requires_upcoming is None
            else completion_requires_upcoming
        )
        self.availability = AvailabilityService(db, cache)

    async def book_appointment(
        self,
        patient_id: UUID,
        provider_id: UUID | None,
        day: date | None,
        slot: time | None,
        appointment_type: AppointmentType | str | None,
        consultation_type: ConsultationType | str | None,
        notes: str | None = None,
    ) -> AppointmentResponse:
        """
        Book a slot with a provider.

        The slot is re-checked against the store right before the insert since
        another patient may have taken it after availability was displayed.
        Two bookings racing past that check are stopped by the partial unique
        index on (provider_id, appointment_date), so the second insert fails
        atomically and is reported the same way.

        Args:
            patient_id: Booking patient
            provider_id: Provider to book
            day: Calendar day
            slot: Time of day from the slot template
            appointment_type: Kind of visit
            consultation_type: In-person or virtual
            notes: Optional free text for the provider

        Returns:
            Created appointment in pending status

        Raises:
            ValidationException: If required fields are missing or invalid
            NotFoundException: If the provider does not exist
            SlotUnavailableException: If the slot is already taken
            StorageException: If the store fails
        """
        required = {
            "provider_id": provider_id,
            "date": day,
            "time": slot,
            "appointment_type": appointment_type,
            "consultation_type": consultation_type,
        }
        missing = [name for name, value in required.items() if value is None or value == ""]
        if missing:
            raise ValidationException("Please fill in all required fields", fields=missing)

        try:
            appointment_type = AppointmentType(appointment_type)
            consultation_type = ConsultationType(consultation_type)
        except ValueError as e:
            raise ValidationException(str(e)) from e

        if slot not in SLOT_TEMPLATE:
            shown = slot.isoformat(timespec="seconds" if slot.second else "minutes")
            raise ValidationException(f"{shown} is not a bookable time slot", ["time"])

        now = self.now()
        if not is_eligible_date(day, now.date()):
            raise ValidationException(
                "Appointments can only be booked on weekdays from today onward", ["date"]
            )

        appointment_at = datetime.combine(day, slot)
        if appointment_at <= now:
            raise ValidationException("This time has already passed", ["time"])

        await self._ensure_provider(provider_id)

        try:
            if await self._find_conflict(provider_id, appointment_at) is not None:
                logger.info(
                    "booking_conflict",
                    provider_id=str(provider_id),
                    appointment_date=appointment_at.isoformat(),
                    detected_by="recheck",
                )
                raise await self._slot_unavailable(provider_id, day)

            stmt = (
                insert(appointments)
                .values(
                    patient_id=patient_id,
                    provider_id=provider_id,
                    appointment_date=appointment_at,
                    appointment_type=appointment_type.value,
                    consultation_type=consultation_type.value,
                    status=AppointmentStatus.PENDING.value,
                    notes=notes or None,
                )
                .returning(appointments)
            )
            result = await self.db.execute(stmt)
            row = result.fetchone()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if not _is_slot_collision(e):
                raise ValidationException("Appointment could not be saved") from e
            logger.info(
                "booking_conflict",
                provider_id=str(provider_id),
                appointment_date=appointment_at.isoformat(),
                detected_by="unique_index",
            )
            raise await self._slot_unavailable(provider_id, day) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("booking_failed", provider_id=str(provider_id), error=str(e))
            raise StorageException() from e

        self.availability.invalidate(provider_id, day)

        appointment = AppointmentResponse.model_validate(dict(row._mapping))
        logger.info(
            "appointment_booked",
            appointment_id=str(appointment.id),
            provider_id=str(provider_id),
            appointment_date=appointment_at.isoformat(),
        )
        return appointment

    async def get_appointment(
        self,
        appointment_id: UUID,
        user_id: UUID,
    ) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If user is not a party to it
        """
        stmt = _with_parties().where(appointments.c.id == appointment_id)
        row = (await self.db.execute(stmt)).fetchone()
        if not row:
            raise NotFoundException("Appointment not found")
        if user_id not in (row.patient_id, row.provider_id):
            raise ForbiddenException("Access denied to this appointment")

        return _detailed_response(row)

    async def list_appointments(
        self,
        user_id: UUID,
        role: UserRole,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List the user's appointments, earliest first.

        Patients see what they booked, providers see what was booked with them.
        Each item carries the name and email of both parties.

        Args:
            user_id: ID of requesting user
            role: Role of requesting user
            filters: Filter and pagination parameters

        Returns:
            Paginated list of appointments
        """
        if role == UserRole.PROVIDER:
            owner = appointments.c.provider_id
        else:
            owner = appointments.c.patient_id
        conditions: list[Any] = [owner == user_id]

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.upcoming is True:
            conditions.append(appointments.c.appointment_date > self.now())
        elif filters.upcoming is False:
            conditions.append(appointments.c.appointment_date <= self.now())

        count_stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        offset = (filters.page - 1) * filters.page_size
        stmt = (
            _with_parties()
            .where(and_(*conditions))
            .order_by(appointments.c.appointment_date.asc())
            .limit(filters.page_size)
            .offset(offset)
        )
        rows = (await self.db.execute(stmt)).fetchall()

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=[_detailed_response(row) for row in rows],
        )

    async def update_appointment_status(
        self,
        appointment_id: UUID,
        new_status: AppointmentStatus,
        actor_id: UUID,
    ) -> AppointmentResponse:
        """
        Move an appointment to a new status.

        The actor's role comes from their side of the appointment. The update
        only applies if the stored status is still the one that was validated.

        Args:
            appointment_id: Appointment ID
            new_status: Requested status
            actor_id: User asking for the change

        Returns:
            Updated appointment

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the actor is not a party to it
            TransitionException: If the change is not permitted
        """
        row = await self._get_row(appointment_id)

        if actor_id == row.provider_id:
            actor_role = UserRole.PROVIDER
        elif actor_id == row.patient_id:
            actor_role = UserRole.PATIENT
        else:
            raise ForbiddenException("Access denied to this appointment")

        current = AppointmentStatus(row.status)
        check_transition(
            current,
            new_status,
            actor_role,
            row.appointment_date,
            self.now(),
            self.completion_requires_upcoming,
        )

        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.status == current.value,
                )
            )
            .values(status=new_status.value, updated_at=func.now())
            .returning(appointments)
        )

        try:
            result = await self.db.execute(stmt)
            updated = result.fetchone()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("status_update_failed", appointment_id=str(appointment_id), error=str(e))
            raise StorageException() from e

        if updated is None:
            raise TransitionException(
                current.value, new_status.value, "the appointment was changed by someone else"
            )

        self.availability.invalidate(row.provider_id, row.appointment_date.date())

        logger.info(
            "appointment_status_changed",
            appointment_id=str(appointment_id),
            old_status=current.value,
            new_status=new_status.value,
            actor=actor_role.value,
        )
        return AppointmentResponse.model_validate(dict(updated._mapping))

    async def get_provider_stats(self, provider_id: UUID) -> ProviderStatsResponse:
        """Dashboard counts for a provider."""
        start, end = day_bounds(self.now().date())
        mine = appointments.c.provider_id == provider_id

        today_stmt = (
            select(func.count())
            .select_from(appointments)
            .where(
                and_(
                    mine,
                    appointments.c.appointment_date >= start,
                    appointments.c.appointment_date < end,
                    appointments.c.status.notin_(INACTIVE_STATUSES),
                )
            )
        )
        pending_stmt = (
            select(func.count())
            .select_from(appointments)
            .where(and_(mine, appointments.c.status == AppointmentStatus.PENDING.value))
        )
        patients_stmt = select(func.count(func.distinct(appointments.c.patient_id))).where(mine)

        return ProviderStatsResponse(
            provider_id=provider_id,
            today_appointments=(await self.db.execute(today_stmt)).scalar() or 0,
            pending_requests=(await self.db.execute(pending_stmt)).scalar() or 0,
            total_patients=(await self.db.execute(patients_stmt)).scalar() or 0,
        )

    async def _get_row(self, appointment_id: UUID) -> Row:
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        result = await self.db.execute(stmt)
        row = result.fetchone()
        if not row:
            raise NotFoundException("Appointment not found")
        return row

    async def _ensure_provider(self, provider_id: UUID) -> None:
        stmt = select(users.c.id).where(
            and_(
                users.c.id == provider_id,
                users.c.role == UserRole.PROVIDER.value,
                users.c.is_active.is_(True),
            )
        )
        if (await self.db.execute(stmt)).first() is None:
            raise NotFoundException("Provider not found")

    async def _find_conflict(self, provider_id: UUID, appointment_at: datetime) -> UUID | None:
        stmt = (
            select(appointments.c.id)
            .where(
                and_(
                    appointments.c.provider_id == provider_id,
                    appointments.c.appointment_date == appointment_at,
                    appointments.c.status.notin_(INACTIVE_STATUSES),
                )
            )
            .limit(1)
        )
        return (await self.db.execute(stmt)).scalar()

    async def _slot_unavailable(self, provider_id: UUID, day: date) -> SlotUnavailableException:
        self.availability.invalidate(provider_id, day)
        refreshed = await self.availability.get_available_slots(provider_id, day)
        return SlotUnavailableException([slot.strftime("%H:%M") for slot in refreshed.slots])
