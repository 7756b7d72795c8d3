"""Schemas for the authorization endpoint."""

from uuid import UUID

from pydantic import BaseModel, Field

from insights.policy import Action

__all__ = ["AuthorizeOut", "AuthorizeRequest"]


class AuthorizeRequest(BaseModel):
    """A (action, entity, row) request to evaluate for the calling principal."""

    action: Action
    entity_type: str = Field(..., min_length=1, max_length=64)
    entity_id: UUID | int | None = Field(default=None, description="Existing row id")
    owner_id: UUID | None = Field(default=None, description="Proposed owner (insert)")
    notebook_id: UUID | None = Field(default=None, description="Proposed notebook (insert)")
    changes: list[str] = Field(default_factory=list, description="Columns modified (update)")


class AuthorizeOut(BaseModel):
    """Decision for a dispatcher.

    code is set only when the denial is a self-protection violation; every
    other denial is indistinguishable to the caller.
    """

    allowed: bool
    code: str | None = None
