"""Current principal endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from insights.api.deps import get_db, get_policy_engine
from insights.auth.middleware import get_principal, require_authenticated
from insights.auth.principal import Principal
from insights.errors import InvalidRequestError
from insights.policy import PolicyEngine
from insights.responses import success_response
from insights.schemas.profile import MeOut, ProfileOut
from insights.schemas.recovery import SetSecurityQuestionRequest
from insights.services import profiles as profiles_service
from insights.services import recovery as recovery_service

router = APIRouter()


@router.get("/me")
def get_me(
    principal: Annotated[Principal, Depends(get_principal)],
    db: Annotated[Session, Depends(get_db)],
    engine: Annotated[PolicyEngine, Depends(get_policy_engine)],
) -> dict:
    """Return the caller's identity, and its profile for user/admin callers."""
    profile = None
    if principal.id is not None:
        profile = ProfileOut.model_validate(
            profiles_service.get_profile(db, engine, principal, principal.id)
        )
    me = MeOut(kind=principal.kind, user_id=principal.id, profile=profile)
    return success_response(me.model_dump(mode="json"))


@router.put("/me/security-question", status_code=204)
def put_security_question(
    body: SetSecurityQuestionRequest,
    principal: Annotated[Principal, Depends(require_authenticated)],
    db: Annotated[Session, Depends(get_db)],
    engine: Annotated[PolicyEngine, Depends(get_policy_engine)],
) -> Response:
    """Set or replace the caller's recovery question and answer."""
    if principal.id is None:
        raise InvalidRequestError(message="Service principal has no profile")
    recovery_service.set_security_answer(
        db, engine, principal, principal.id, body.question, body.answer
    )
    return Response(status_code=204)
