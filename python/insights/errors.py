"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
The authorization core raises the same hierarchy so callers can map
failures to responses without translating exception types.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"
    E_SELF_PROTECTION = "E_SELF_PROTECTION"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_PROFILE_NOT_FOUND = "E_PROFILE_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"

    # Rate limiting (429)
    E_RATE_LIMITED = "E_RATE_LIMITED"

    # Server errors
    E_AUTH_UNAVAILABLE = "E_AUTH_UNAVAILABLE"  # 503
    E_LOOKUP_TIMEOUT = "E_LOOKUP_TIMEOUT"  # 503
    E_INTERNAL = "E_INTERNAL"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_SELF_PROTECTION: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_PROFILE_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_RATE_LIMITED: 429,
    ApiErrorCode.E_AUTH_UNAVAILABLE: 503,
    ApiErrorCode.E_LOOKUP_TIMEOUT: 503,
    ApiErrorCode.E_INTERNAL: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
        retryable: Whether the caller may retry the same request unchanged
    """

    retryable = False

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class AuthenticationError(ApiError):
    """Credential missing, malformed, expired or otherwise invalid.

    Callers resolving a principal map this to the anonymous principal.
    """

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_UNAUTHENTICATED,
        message: str = "Authentication required",
    ):
        super().__init__(code, message)


class AuthUnavailableError(ApiError):
    """Token verification infrastructure (JWKS) could not be reached."""

    retryable = True

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_AUTH_UNAVAILABLE,
        message: str = "Authentication service unavailable",
    ):
        super().__init__(code, message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error.

    The message is generic: a denial never says why.
    """

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Not authorized"
    ):
        super().__init__(code, message)


class SelfProtectionViolation(ForbiddenError):
    """A principal tried to change its own role or delete its own profile."""

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_SELF_PROTECTION,
        message: str = "You cannot change your own role or delete your own account",
    ):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class LookupTimeout(ApiError):
    """Backing store did not answer an ownership/role lookup in time.

    Distinct from a denial: the decision could not be determined.
    """

    retryable = True

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_LOOKUP_TIMEOUT,
        message: str = "Lookup timed out, please retry",
    ):
        super().__init__(code, message)


class RateLimitExceeded(ApiError):
    """Too many failed attempts inside the rolling window."""

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_RATE_LIMITED,
        message: str = "Too many failed attempts. Please try again later.",
    ):
        super().__init__(code, message)
