"""Authentication module.

This module provides:
- Principal / Role: the resolved request identity
- Token verification (Supabase JWKS verifier)
- PrincipalResolver: credential -> Principal

The FastAPI middleware lives in insights.auth.middleware and is imported
by the app factory only.
"""

from insights.auth.principal import ANONYMOUS, SERVICE, Principal, Role
from insights.auth.resolver import PrincipalResolver
from insights.auth.verifier import SupabaseJwksVerifier, TokenVerifier

__all__ = [
    "ANONYMOUS",
    "SERVICE",
    "Principal",
    "PrincipalResolver",
    "Role",
    "SupabaseJwksVerifier",
    "TokenVerifier",
]
