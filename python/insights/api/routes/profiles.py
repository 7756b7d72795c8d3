"""Profile routes.

Routes are transport-only: resolve the principal, call one service
function, wrap the result. Authorization happens in the service layer.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from insights.api.deps import get_db, get_policy_engine
from insights.auth.middleware import require_authenticated
from insights.auth.principal import Principal
from insights.policy import PolicyEngine
from insights.responses import success_response
from insights.schemas.profile import ProfileOut, UpdateProfileRequest
from insights.services import profiles as profiles_service

router = APIRouter()


@router.get("/profiles")
def list_profiles(
    principal: Annotated[Principal, Depends(require_authenticated)],
    db: Annotated[Session, Depends(get_db)],
    engine: Annotated[PolicyEngine, Depends(get_policy_engine)],
) -> dict:
    """List visible profiles: all of them for admins, only the caller's own otherwise."""
    profiles = profiles_service.list_profiles(db, engine, principal)
    return success_response(
        [ProfileOut.model_validate(p).model_dump(mode="json") for p in profiles]
    )


@router.get("/profiles/{profile_id}")
def get_profile(
    profile_id: UUID,
    principal: Annotated[Principal, Depends(require_authenticated)],
    db: Annotated[Session, Depends(get_db)],
    engine: Annotated[PolicyEngine, Depends(get_policy_engine)],
) -> dict:
    profile = profiles_service.get_profile(db, engine, principal, profile_id)
    return success_response(ProfileOut.model_validate(profile).model_dump(mode="json"))


@router.patch("/profiles/{profile_id}")
def update_profile(
    profile_id: UUID,
    body: UpdateProfileRequest,
    principal: Annotated[Principal, Depends(require_authenticated)],
    db: Annotated[Session, Depends(get_db)],
    engine: Annotated[PolicyEngine, Depends(get_policy_engine)],
) -> dict:
    """Update name, avatar or (admins, on other users only) role."""
    profile = profiles_service.update_profile(
        db, engine, principal, profile_id, body.model_dump(exclude_unset=True)
    )
    return success_response(ProfileOut.model_validate(profile).model_dump(mode="json"))


@router.delete("/profiles/{profile_id}", status_code=204)
def delete_profile(
    profile_id: UUID,
    principal: Annotated[Principal, Depends(require_authenticated)],
    db: Annotated[Session, Depends(get_db)],
    engine: Annotated[PolicyEngine, Depends(get_policy_engine)],
) -> Response:
    """Delete another user's profile and everything it owns. Admin only."""
    profiles_service.delete_profile(db, engine, principal, profile_id)
    return Response(status_code=204)
