"""Password recovery routes (security question challenge).

Both routes are callable anonymously. Answer checks are rate limited per
user through the attempt ledger.
"""

import ipaddress
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from insights.api.deps import get_attempt_ledger, get_db
from insights.responses import success_response
from insights.schemas.recovery import (
    SecurityAnswerOut,
    SecurityAnswerRequest,
    SecurityQuestionOut,
    SecurityQuestionRequest,
)
from insights.services import recovery as recovery_service
from insights.services.ledger import AttemptLedger

router = APIRouter()


def _client_ip(request: Request) -> str | None:
    """Peer address when it is a real IP (test transports report a hostname)."""
    if request.client is None:
        return None
    try:
        return str(ipaddress.ip_address(request.client.host))
    except ValueError:
        return None


@router.post("/recovery/question")
def get_security_question(
    body: SecurityQuestionRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    user_id, question = recovery_service.get_security_question(db, body.email)
    return success_response(
        SecurityQuestionOut(user_id=user_id, question=question).model_dump(mode="json")
    )


@router.post("/recovery/answer")
def check_security_answer(
    body: SecurityAnswerRequest,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    ledger: Annotated[AttemptLedger, Depends(get_attempt_ledger)],
) -> dict:
    """Check an answer. 429 once the failure limit is reached, even if correct."""
    valid = recovery_service.check_security_answer(
        db,
        ledger,
        body.user_id,
        body.answer,
        ip_address=_client_ip(request),
    )
    return success_response(SecurityAnswerOut(valid=valid).model_dump())
