"""Auth service error classes.

A small closed set of error kinds. Each carries a machine-readable code,
a client-safe message, and the HTTP status it maps to. The FastAPI
exception handler in main.py is the only place that turns them into
responses.

Server-side failures (store, mail delivery) keep their detail in the
exception chain for logging; the message sent to clients is always generic.
"""


class AuthServiceError(Exception):
    """Base class for auth service errors.

    Attributes:
        code: Machine-readable error code (e.g., "INVALID_INPUT").
        message: Client-safe error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class InvalidInputError(AuthServiceError):
    """Malformed email or request body (400)."""

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="INVALID_INPUT",
            message=message,
            status_code=400,
            details=details,
        )


class InvalidOrExpiredError(AuthServiceError):
    """Sign-in artifact not found, expired, or already consumed (401).

    Security: The message never varies. Callers must not be able to tell a
    wrong code from an expired one or from an unknown email.
    """

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_OR_EXPIRED",
            message="Invalid or expired sign-in code",
            status_code=401,
        )


class UnauthenticatedError(AuthServiceError):
    """Missing or invalid session credential (401).

    Read endpoints treat this as "no user"; endpoints that need a user
    surface it as 401.
    """

    def __init__(self) -> None:
        super().__init__(
            code="UNAUTHENTICATED",
            message="Authentication required",
            status_code=401,
        )


class RateLimitedError(AuthServiceError):
    """Too many sign-in attempts for one email (429).

    Args:
        retry_after: Seconds until the current window resets.
    """

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(
            code="RATE_LIMITED",
            message="Too many attempts. Please try again later.",
            status_code=429,
        )


class UpstreamStoreError(AuthServiceError):
    """Database failure while serving an auth request (500)."""

    def __init__(self) -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message="An unexpected error occurred",
            status_code=500,
        )


class DeliveryFailedError(AuthServiceError):
    """Sign-in email could not be handed to the mail provider (500).

    The stored artifact is kept; the user may request a new email.
    """

    def __init__(self) -> None:
        super().__init__(
            code="DELIVERY_FAILED",
            message="Unable to send sign-in email. Please try again.",
            status_code=500,
        )
