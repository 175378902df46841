"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from app.models.users import metadata

# Statuses that release a slot back to the provider's calendar
INACTIVE_STATUSES = ("cancelled", "declined")

_ACTIVE_SLOT_PREDICATE = text("status NOT IN ('cancelled', 'declined')")

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Parties
    Column("patient_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("provider_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    # Clinic-local wall clock time; the clinic runs in a single timezone
    Column("appointment_date", DateTime(timezone=False), nullable=False),
    Column("appointment_type", Text, nullable=False),
    Column("consultation_type", Text, nullable=False),
    Column("status", Text, nullable=False, server_default=text("'pending'")),
    Column("notes", Text, nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "status IN ('pending', 'accepted', 'declined', 'cancelled', 'completed')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "appointment_type IN ('Initial Consultation', 'Follow-up', 'Physical Therapy', "
        "'Assessment', 'Treatment', 'Review')",
        name="appointments_type_check",
    ),
    CheckConstraint(
        "consultation_type IN ('In-person', 'Virtual')",
        name="appointments_consultation_type_check",
    ),
    Index("idx_appointments_patient_id", "patient_id"),
    Index("idx_appointments_provider_date", "provider_id", "appointment_date"),
    # One live booking per provider and timestamp; the insert fails atomically on collision
    Index(
        "uq_appointments_provider_slot_active",
        "provider_id",
        "appointment_date",
        unique=True,
        postgresql_where=_ACTIVE_SLOT_PREDICATE,
        sqlite_where=_ACTIVE_SLOT_PREDICATE,
    ),
)
