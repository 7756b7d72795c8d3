"""Attempt ledger for the security-question recovery flow.

Append-only log of answer attempts with a rolling failure window:
- record() is a single INSERT committed in its own transaction, so the
  attempt is durable before the caller learns the outcome and independent
  of whatever the request session does afterwards
- count_recent_failures() counts failed attempts newer than now - window
- check_allowed() raises RateLimitExceeded at max_attempts failures
- record_if_allowed() does the check, the evaluation and the insert as one
  step per user: the profile row is locked FOR UPDATE (PostgreSQL) and an
  in-process lock stripe covers backends without row locks, so concurrent
  attempts cannot all pass the check before any of them is recorded

There is no update or delete API.
"""

import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from insights.db.models import Profile, SecurityAttempt
from insights.db.session import get_session_factory, transaction
from insights.errors import ApiErrorCode, NotFoundError, RateLimitExceeded
from insights.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_WINDOW = timedelta(minutes=15)
LOCK_STRIPES = 64

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class AttemptLedger:
    """Sliding-window attempt ledger backed by security_question_attempts."""

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window: timedelta = DEFAULT_WINDOW,
        clock: Clock = utc_now,
    ):
        """Initialize the ledger.

        Args:
            session_factory: Factory for the short-lived sessions each call
                opens. Defaults to the process-wide factory.
            max_attempts: Failures inside the window that block further attempts.
            window: Length of the rolling window.
            clock: Returns the current time; tests inject a fake.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._session_factory = session_factory
        self.max_attempts = max_attempts
        self.window = window
        self.clock = clock
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

    @classmethod
    def from_settings(cls, settings, session_factory=None) -> "AttemptLedger":
        return cls(
            session_factory=session_factory,
            max_attempts=settings.security_max_attempts,
            window=timedelta(seconds=settings.security_attempt_window_seconds),
        )

    def _session(self) -> Session:
        factory = self._session_factory or get_session_factory()
        return factory()

    def _lock_for(self, user_id: UUID) -> threading.Lock:
        return self._locks[user_id.int % LOCK_STRIPES]

    def _failures_since(self, db: Session, user_id: UUID, since: datetime) -> int:
        return db.execute(
            select(func.count())
            .select_from(SecurityAttempt)
            .where(
                SecurityAttempt.user_id == user_id,
                SecurityAttempt.success.is_(False),
                SecurityAttempt.attempted_at > since,
            )
        ).scalar_one()

    def _reject(self, user_id: UUID, failures: int) -> RateLimitExceeded:
        logger.warning(
            "security_attempt.rate_limited",
            user_id=str(user_id),
            failures=failures,
            max_attempts=self.max_attempts,
        )
        return RateLimitExceeded()

    def record(self, user_id: UUID, outcome: bool, *, ip_address: str | None = None) -> None:
        """Persist one attempt. Commits before returning."""
        db = self._session()
        try:
            with transaction(db):
                db.add(
                    SecurityAttempt(
                        user_id=user_id,
                        success=outcome,
                        ip_address=ip_address,
                        attempted_at=self.clock(),
                    )
                )
        finally:
            db.close()

        logger.info("security_attempt.recorded", user_id=str(user_id), success=outcome)

    def count_recent_failures(self, user_id: UUID, window: timedelta | None = None) -> int:
        """Count failed attempts for user_id inside the window ending now."""
        since = self.clock() - (window if window is not None else self.window)
        db = self._session()
        try:
            return self._failures_since(db, user_id, since)
        finally:
            db.close()

    def check_allowed(self, user_id: UUID) -> None:
        """Raise RateLimitExceeded once max_attempts failures fall inside the window."""
        failures = self.count_recent_failures(user_id)
        if failures >= self.max_attempts:
            raise self._reject(user_id, failures)

    def record_if_allowed(
        self,
        user_id: UUID,
        evaluate: Callable[[], bool],
        *,
        ip_address: str | None = None,
    ) -> bool:
        """Check the limit, run evaluate() and record its outcome atomically.

        Attempts for the same user are serialized from the failure count
        through the commit of the new row. A blocked attempt runs nothing
        and records nothing.

        Returns:
            The outcome of evaluate(), after it has been committed.

        Raises:
            RateLimitExceeded: max_attempts failures already fall inside the window.
            NotFoundError: No profile exists for user_id.
        """
        with self._lock_for(user_id):
            db = self._session()
            try:
                with transaction(db):
                    locked = db.execute(
                        select(Profile.id).where(Profile.id == user_id).with_for_update()
                    ).first()
                    if locked is None:
                        raise NotFoundError(ApiErrorCode.E_PROFILE_NOT_FOUND, "Profile not found")

                    now = self.clock()
                    failures = self._failures_since(db, user_id, now - self.window)
                    if failures >= self.max_attempts:
                        raise self._reject(user_id, failures)

                    outcome = bool(evaluate())
                    db.add(
                        SecurityAttempt(
                            user_id=user_id,
                            success=outcome,
                            ip_address=ip_address,
                            attempted_at=now,
                        )
                    )
            finally:
                db.close()

        logger.info("security_attempt.recorded", user_id=str(user_id), success=outcome)
        return outcome
