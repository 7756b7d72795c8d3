"""Policy decision endpoint for request dispatchers.

Answers "may the calling principal do this?" without performing the
action. Denials are reported uniformly; only self-protection gets a code.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from insights.api.deps import get_policy_engine
from insights.auth.middleware import get_principal
from insights.auth.principal import Principal
from insights.errors import ApiErrorCode
from insights.policy import DecisionReason, EntityRef, PolicyEngine
from insights.responses import success_response
from insights.schemas.policy import AuthorizeOut, AuthorizeRequest

router = APIRouter()


@router.post("/authorize")
def authorize_request(
    body: AuthorizeRequest,
    principal: Annotated[Principal, Depends(get_principal)],
    engine: Annotated[PolicyEngine, Depends(get_policy_engine)],
) -> dict:
    """Evaluate one request. LookupTimeout surfaces as a retryable 503."""
    decision = engine.evaluate(
        principal,
        body.action,
        body.entity_type,
        EntityRef(
            entity_id=body.entity_id,
            owner_id=body.owner_id,
            notebook_id=body.notebook_id,
            changes=frozenset(body.changes),
        ),
    )
    code = None
    if decision.reason is DecisionReason.self_protection:
        code = ApiErrorCode.E_SELF_PROTECTION.value
    return success_response(AuthorizeOut(allowed=decision.allowed, code=code).model_dump())
