"""Security-question password recovery.

Flow:
1. get_security_question(email) -> (user_id, question), or (None, None)
   without saying whether the account or the question is missing
2. check_security_answer(user_id, answer) -> bool, rate limited through the
   attempt ledger. Every evaluated attempt is recorded before the result is
   returned; an attempt blocked by the limit is rejected without evaluation
   and without a record.

Answers are normalized (strip + lower) and stored as bcrypt hashes. Neither
answers nor hashes are ever logged.
"""

from uuid import UUID

import bcrypt
from sqlalchemy import select
from sqlalchemy.orm import Session

from insights.auth.principal import Principal
from insights.db.models import Profile
from insights.db.session import transaction
from insights.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from insights.logging import get_logger
from insights.policy import Action, EntityRef, EntityType, PolicyEngine, authorize
from insights.services.ledger import AttemptLedger

logger = get_logger(__name__)

MAX_QUESTION_LENGTH = 500
MAX_ANSWER_LENGTH = 200


def normalize_answer(answer: str) -> str:
    return answer.strip().lower()


def hash_answer(answer: str) -> str:
    """bcrypt hash of the normalized answer, as a str for storage."""
    return bcrypt.hashpw(normalize_answer(answer).encode("utf-8"), bcrypt.gensalt()).decode(
        "utf-8"
    )


def _matches(answer: str, answer_hash: str | None) -> bool:
    if not answer_hash:
        return False
    try:
        return bcrypt.checkpw(normalize_answer(answer).encode("utf-8"), answer_hash.encode("utf-8"))
    except ValueError:
        # Corrupt hash in storage
        logger.error("security_answer.invalid_hash")
        return False


def set_security_answer(
    db: Session,
    engine: PolicyEngine,
    principal: Principal,
    user_id: UUID,
    question: str,
    answer: str,
) -> None:
    """Store a security question and the hash of its answer on a profile.

    Raises:
        InvalidRequestError: Empty or oversized question or answer.
        ForbiddenError: The principal may not update this profile.
        NotFoundError: No profile for user_id.
    """
    question = question.strip()
    if not question or len(question) > MAX_QUESTION_LENGTH:
        raise InvalidRequestError(message="Security question is required")
    if not normalize_answer(answer) or len(answer) > MAX_ANSWER_LENGTH:
        raise InvalidRequestError(message="Security answer is required")

    authorize(
        engine,
        principal,
        Action.update,
        EntityType.profile,
        EntityRef(entity_id=user_id, changes={"security_question", "security_answer_hash"}),
    )

    with transaction(db):
        profile = db.get(Profile, user_id)
        if profile is None:
            raise NotFoundError(ApiErrorCode.E_PROFILE_NOT_FOUND, "Profile not found")
        profile.security_question = question
        profile.security_answer_hash = hash_answer(answer)

    logger.info("security_answer.set", user_id=str(user_id))


def get_security_question(db: Session, email: str) -> tuple[UUID | None, str | None]:
    """Look up the security question for an email address.

    Returns (None, None) both when no profile matches and when the profile
    has no question configured.
    """
    row = db.execute(
        select(Profile.id, Profile.security_question).where(Profile.email == email.strip())
    ).first()
    if row is None or not row.security_question:
        return None, None
    return row.id, row.security_question


def check_security_answer(
    db: Session,
    ledger: AttemptLedger,
    user_id: UUID,
    answer: str,
    *,
    ip_address: str | None = None,
) -> bool:
    """Verify a recovery answer.

    Raises:
        RateLimitExceeded: The user already has max_attempts failures in the
            window. Raised even when the answer is correct.
    """
    row = db.execute(
        select(Profile.id, Profile.security_answer_hash).where(Profile.id == user_id)
    ).first()
    if row is None:
        # Attempts reference profiles; there is nothing to record against
        return False

    try:
        return ledger.record_if_allowed(
            user_id,
            lambda: _matches(answer, row.security_answer_hash),
            ip_address=ip_address,
        )
    except NotFoundError:
        # Profile deleted between the lookup and the attempt
        return False
