"""Create users and appointments tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_SLOT_PREDICATE = sa.text("status NOT IN ('cancelled', 'declined')")


def upgrade() -> None:
    """Create users and appointments with the double-booking guard."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), nullable=False, server_default=sa.text("'patient'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint("role IN ('patient', 'provider')", name="users_role_check"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "appointments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "patient_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "provider_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("appointment_date", sa.DateTime(timezone=False), nullable=False),
        sa.Column("appointment_type", sa.Text(), nullable=False),
        sa.Column("consultation_type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'declined', 'cancelled', 'completed')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "appointment_type IN ('Initial Consultation', 'Follow-up', 'Physical Therapy', "
            "'Assessment', 'Treatment', 'Review')",
            name="appointments_type_check",
        ),
        sa.CheckConstraint(
            "consultation_type IN ('In-person', 'Virtual')",
            name="appointments_consultation_type_check",
        ),
    )

    op.create_index("idx_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index(
        "idx_appointments_provider_date", "appointments", ["provider_id", "appointment_date"]
    )

    # Partial unique index: cancelled/declined rows release the slot
    op.create_index(
        "uq_appointments_provider_slot_active",
        "appointments",
        ["provider_id", "appointment_date"],
        unique=True,
        postgresql_where=ACTIVE_SLOT_PREDICATE,
        sqlite_where=ACTIVE_SLOT_PREDICATE,
    )


def downgrade() -> None:
    """Drop scheduling tables."""
    op.drop_index("uq_appointments_provider_slot_active", table_name="appointments")
    op.drop_index("idx_appointments_provider_date", table_name="appointments")
    op.drop_index("idx_appointments_patient_id", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
