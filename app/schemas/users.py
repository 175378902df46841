"""User schemas."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class UserRole(str, Enum):
    """Role of an authenticated user."""

    PATIENT = "patient"
    PROVIDER = "provider"


class UserResponse(BaseModel):
    """Identity of the acting user."""

    id: UUID
    email: str
    full_name: str | None = None
    role: UserRole
    is_active: bool

    model_config = {"from_attributes": True}
