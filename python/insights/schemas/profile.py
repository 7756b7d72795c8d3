"""Profile-related Pydantic schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

ProfileRoleValue = Literal["admin", "user"]

__all__ = [
    "MeOut",
    "ProfileOut",
    "ProfileRoleValue",
    "UpdateProfileRequest",
]

# =============================================================================
# Request Schemas
# =============================================================================


class UpdateProfileRequest(BaseModel):
    """Request body for updating a profile. Omitted fields are left unchanged."""

    full_name: str | None = Field(default=None, max_length=200)
    avatar_url: str | None = Field(default=None, max_length=2048)
    role: ProfileRoleValue | None = Field(default=None, description="Admin only")

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# Response Schemas
# =============================================================================


class ProfileOut(BaseModel):
    """Response schema for a profile. The security answer hash is never exposed."""

    id: UUID
    email: str
    full_name: str | None
    avatar_url: str | None
    role: ProfileRoleValue
    security_question: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MeOut(BaseModel):
    """The caller's resolved identity, plus its profile when it has one."""

    kind: Literal["anonymous", "user", "admin", "service"]
    user_id: UUID | None
    profile: ProfileOut | None = None
