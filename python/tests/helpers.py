"""Test helpers for authentication.

Provides:
- Token minting for test authentication
- Header generation for test requests
"""

import time
from uuid import UUID, uuid4

import jwt

from tests.support.mock_verifier import TEST_AUDIENCE, TEST_ISSUER, MockJwtVerifier

DEFAULT_EXPIRES_IN = 3600  # 1 hour
TEST_SERVICE_KEY = "test-service-key"


def mint_test_token(
    user_id: UUID | str,
    expires_in: int = DEFAULT_EXPIRES_IN,
    issuer: str = TEST_ISSUER,
    audience: str = TEST_AUDIENCE,
    **extra_claims,
) -> str:
    """Mint a signed RS256 test JWT for user_id."""
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iss": issuer,
        "aud": audience,
        "iat": now,
        "exp": now + expires_in,
        **extra_claims,
    }
    return jwt.encode(payload, MockJwtVerifier.get_private_key(), algorithm="RS256")


def mint_expired_token(user_id: UUID | str) -> str:
    """Mint a token that expired an hour ago (well past the clock skew)."""
    return mint_test_token(user_id, expires_in=-3600)


def auth_headers(user_id: UUID | str, **extra_claims) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_test_token(user_id, **extra_claims)}"}


def service_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {TEST_SERVICE_KEY}"}


def create_test_user_id() -> UUID:
    return uuid4()
