"""FastAPI dependencies for route handlers.

The policy table and attempt ledger are process-wide and live on app.state;
the policy engine is built per request around a registry that reads through
the request's own session.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from insights.config import get_settings
from insights.db.session import get_db
from insights.policy import PolicyEngine
from insights.registry.sql import SqlSubjectRegistry
from insights.services.ledger import AttemptLedger

__all__ = ["get_attempt_ledger", "get_db", "get_policy_engine"]


def get_policy_engine(
    request: Request, db: Annotated[Session, Depends(get_db)]
) -> PolicyEngine:
    return PolicyEngine(
        SqlSubjectRegistry(db),
        request.app.state.policy_table,
        default_timeout=get_settings().lookup_timeout_seconds,
    )


def get_attempt_ledger(request: Request) -> AttemptLedger:
    return request.app.state.attempt_ledger
