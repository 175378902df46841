"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class AppointmentType(str, Enum):
    """Kind of visit requested by the patient."""

    INITIAL_CONSULTATION = "Initial Consultation"
    FOLLOW_UP = "Follow-up"
    PHYSICAL_THERAPY = "Physical Therapy"
    ASSESSMENT = "Assessment"
    TREATMENT = "Treatment"
    REVIEW = "Review"


class ConsultationType(str, Enum):
    """How the consultation takes place."""

    IN_PERSON = "In-person"
    VIRTUAL = "Virtual"


class AppointmentCreate(BaseModel):
    """Schema for booking a slot with a provider."""

    provider_id: UUID
    date: date
    time: time
    appointment_type: AppointmentType
    consultation_type: ConsultationType
    notes: str | None = Field(None, max_length=1000)


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus


class AppointmentParty(BaseModel):
    """Who is on the other side of an appointment."""

    id: UUID
    full_name: str | None = None
    email: str


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    provider_id: UUID
    appointment_date: datetime
    appointment_type: AppointmentType
    consultation_type: ConsultationType
    status: AppointmentStatus
    notes: str | None = None
    created_at: datetime
    updated_at: datetime
    patient: AppointmentParty | None = None
    provider: AppointmentParty | None = None

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    upcoming: bool | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class ProviderStatsResponse(BaseModel):
    """Counts shown on the provider dashboard."""

    provider_id: UUID
    today_appointments: int
    pending_requests: int
    total_patients: int
