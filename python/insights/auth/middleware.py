"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: resolves a Principal for every request
- get_principal / require_authenticated: route dependencies

Unlike a hard auth gate, the middleware never rejects a request for a bad
or missing credential: the request continues as ANONYMOUS and the policy
engine decides. It does reject when the decision cannot be made at all:
- JWKS unreachable -> 503 E_AUTH_UNAVAILABLE
- role lookup timed out -> 503 E_LOOKUP_TIMEOUT
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from insights.auth.principal import ANONYMOUS, Principal
from insights.auth.resolver import PrincipalResolver
from insights.errors import ApiError, ApiErrorCode, AuthenticationError
from insights.logging import get_logger, set_principal_context
from insights.responses import api_error_json, error_response

logger = get_logger(__name__)

AUTHORIZATION_HEADER = "authorization"

# Paths that never need a principal
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}


def extract_bearer_token(header: str | None) -> str | None:
    """Return the token from an Authorization header, or None if absent/malformed."""
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        logger.warning("auth_failure", reason="invalid_header_format")
        return None
    token = token.strip()
    return token or None


class AuthMiddleware(BaseHTTPMiddleware):
    """Attach request.state.principal to every non-public request.

    Order of checks:
    1. Skip if public path
    2. Extract bearer token (missing or malformed -> anonymous)
    3. Resolve via PrincipalResolver (invalid -> anonymous)
    4. Attach Principal to request state and log context
    """

    def __init__(self, app: ASGIApp, resolver: PrincipalResolver):
        super().__init__(app)
        self.resolver = resolver

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        token = extract_bearer_token(request.headers.get(AUTHORIZATION_HEADER))

        try:
            principal = self.resolver.resolve_or_anonymous(token) if token else ANONYMOUS
        except ApiError as e:
            # AuthUnavailableError, LookupTimeout
            return api_error_json(e)
        except Exception:
            logger.exception("principal_resolution_failed")
            return JSONResponse(
                status_code=500,
                content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
            )

        request.state.principal = principal
        set_principal_context(str(principal.id) if principal.id else None, principal.kind)

        return await call_next(request)


def get_principal(request: Request) -> Principal:
    """FastAPI dependency returning the request's Principal.

    Returns ANONYMOUS when the middleware did not attach one.
    """
    return getattr(request.state, "principal", ANONYMOUS)


def require_authenticated(request: Request) -> Principal:
    """FastAPI dependency that rejects anonymous callers with 401."""
    principal = get_principal(request)
    if principal.is_anonymous:
        raise AuthenticationError()
    return principal
