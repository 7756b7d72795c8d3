"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures every response (including 503s from auth) gets X-Request-ID

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. AuthMiddleware (resolves Principal, anonymous on bad credentials)
3. Route handler (policy checks in the service layer)
4. AuthMiddleware (returns response)
5. RequestIDMiddleware (logs, sets response header)

App state:
- policy_table: loaded once from POLICY_TABLE_PATH or the built-in default
- attempt_ledger: AttemptLedger configured from settings
"""

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from insights.api.routes import create_api_router
from insights.auth.middleware import AuthMiddleware
from insights.auth.resolver import PrincipalResolver
from insights.auth.verifier import SupabaseJwksVerifier, TokenVerifier
from insights.config import Settings, get_settings
from insights.db.session import configure_session_factory, get_session_factory
from insights.errors import ApiError
from insights.logging import configure_logging, get_logger
from insights.middleware.request_id import RequestIDMiddleware
from insights.policy import PolicyTable, load_policy_table
from insights.responses import (
    api_error_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from insights.services.ledger import AttemptLedger
from insights.services.profiles import create_role_loader

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


def create_token_verifier(settings: Settings) -> SupabaseJwksVerifier:
    """Create the Supabase JWKS verifier from settings."""
    return SupabaseJwksVerifier(
        jwks_url=settings.supabase_jwks_url,  # type: ignore[arg-type]
        issuer=settings.normalized_issuer,  # type: ignore[arg-type]
        audiences=settings.audience_list,
    )


def create_principal_resolver(
    settings: Settings, token_verifier: TokenVerifier | None = None
) -> PrincipalResolver:
    """Wire verifier, profile-bootstrap role loader and service key."""
    return PrincipalResolver(
        verifier=token_verifier or create_token_verifier(settings),
        role_loader=create_role_loader(
            get_session_factory(), timeout=settings.lookup_timeout_seconds
        ),
        service_key=settings.supabase_service_key,
    )


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier: TokenVerifier | None = None,
    resolver: PrincipalResolver | None = None,
    db_engine: Engine | None = None,
    policy_table: PolicyTable | None = None,
    attempt_ledger: AttemptLedger | None = None,
    log_requests: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, no principal is resolved and every
            request is anonymous (for testing).
        token_verifier: Custom token verifier (tests pass a mock).
        resolver: Fully custom PrincipalResolver; overrides token_verifier.
        db_engine: Engine to bind the session factory to (tests pass SQLite).
        policy_table: Policy table; defaults to POLICY_TABLE_PATH or the built-in table.
        attempt_ledger: Ledger for the recovery flow; defaults to one built from settings.
        log_requests: Emit one access log entry per request.
    """
    settings = get_settings()

    if db_engine is not None:
        configure_session_factory(db_engine)

    app = FastAPI(
        title="Insights API",
        description="Authorization and profile service for the Insights notebook platform",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.policy_table = policy_table or load_policy_table(settings.policy_table_path)
    app.state.attempt_ledger = attempt_ledger or AttemptLedger.from_settings(
        settings, get_session_factory()
    )

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(create_api_router())

    if not skip_auth_middleware:
        app.add_middleware(
            AuthMiddleware,
            resolver=resolver or create_principal_resolver(settings, token_verifier),
        )
        logger.info(
            "auth_middleware_enabled",
            env=settings.insights_env.value,
            service_key_configured=bool(settings.supabase_service_key),
        )

    # Added last so it runs first
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)

    logger.info(
        "app_created",
        policy_entities=sorted(app.state.policy_table.entity_types),
        custom_policy_table=settings.policy_table_path is not None,
    )
    return app
