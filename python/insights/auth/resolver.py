"""Principal resolution: credential in, Principal out.

Three identity classes are distinguished unambiguously:
- anonymous: no valid credential (resolve() raises AuthenticationError,
  resolve_or_anonymous() returns ANONYMOUS)
- user/admin: a verified JWT whose sub has a profile; the role is loaded
  exactly once here, never re-queried during policy evaluation
- service: the backend-only service key, compared in constant time
"""

import hmac
from collections.abc import Callable
from typing import Any
from uuid import UUID

from insights.auth.principal import ANONYMOUS, SERVICE, Principal, Role
from insights.auth.verifier import TokenVerifier
from insights.errors import AuthenticationError
from insights.logging import get_logger

logger = get_logger(__name__)

# role_loader(user_id, claims) -> Role. Production wiring bootstraps the
# profile on first sign-in; it may raise LookupTimeout.
RoleLoader = Callable[[UUID, dict[str, Any]], Role]


class PrincipalResolver:
    """Resolve request credentials into a Principal."""

    def __init__(
        self,
        verifier: TokenVerifier,
        role_loader: RoleLoader,
        service_key: str | None = None,
    ):
        """Initialize the resolver.

        Args:
            verifier: TokenVerifier used for user JWTs.
            role_loader: Callback returning the stored role for a verified user.
            service_key: Backend-only credential. If None, no token resolves
                to the service principal.
        """
        self.verifier = verifier
        self.role_loader = role_loader
        self.service_key = service_key

    def _is_service_key(self, token: str) -> bool:
        if not self.service_key:
            return False
        return hmac.compare_digest(token.encode(), self.service_key.encode())

    def resolve(self, token: str | None) -> Principal:
        """Resolve a bearer credential.

        Raises:
            AuthenticationError: Token absent, invalid or expired.
            AuthUnavailableError: Token verification infrastructure is down.
            LookupTimeout: The role lookup timed out.
        """
        if token is None or not token.strip():
            raise AuthenticationError(message="Authentication required")
        token = token.strip()

        if self._is_service_key(token):
            return SERVICE

        claims = self.verifier.verify(token)
        user_id = UUID(claims["sub"])

        role = self.role_loader(user_id, claims)
        if role is Role.anonymous:
            # Stored profiles only carry user/admin
            logger.warning("auth_failure", reason="anonymous_role_loaded")
            raise AuthenticationError(message="Invalid account state")

        return Principal(id=user_id, role=role)

    def resolve_or_anonymous(self, token: str | None) -> Principal:
        """Resolve a credential, mapping authentication failures to ANONYMOUS."""
        try:
            return self.resolve(token)
        except AuthenticationError:
            return ANONYMOUS
