"""Exception hierarchy for the token pipeline.

Every failure the pipeline can report is a distinct subclass of
``AppTokenError`` so the CLI can render a specific message and exit code.
None of these messages may contain the private key, the JWT or the
installation token.
"""

from __future__ import annotations

from apptoken.models import FailureKind


class AppTokenError(Exception):
    """Base class for all errors raised by apptoken."""


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class ClockError(AppTokenError):
    """The system clock cannot be used to date a JWT."""


class ClockUnavailable(ClockError):
    """The OS time facility could not be queried at all."""


class ClockImplausible(ClockError):
    """The clock answered, but with a value outside the sane epoch window."""

    def __init__(self, value: float, message: str) -> None:
        super().__init__(message)
        self.value = value


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------


class SigningError(AppTokenError):
    """The private key is unusable or the RSA primitive failed."""


# ---------------------------------------------------------------------------
# Exchange
# ---------------------------------------------------------------------------


class ExchangeError(AppTokenError):
    """The installation-token request failed.

    Attributes:
        kind: Classification of the failure.
        http_status: Response status, or None when no response arrived.
        message: Human-readable explanation, remote text included when
            GitHub supplied one.
        attempts: How many requests were made before giving up.
    """

    kind: FailureKind = FailureKind.UNEXPECTED_RESPONSE
    retryable: bool = False

    def __init__(self, message: str, *, http_status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.attempts = 1


class AuthenticationRejected(ExchangeError):
    """HTTP 401: GitHub did not accept the JWT (bad key, wrong app id, or skew)."""

    kind = FailureKind.AUTHENTICATION_REJECTED

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = 401,
        iat: int | None = None,
        exp: int | None = None,
    ) -> None:
        super().__init__(message, http_status=http_status)
        self.iat = iat
        self.exp = exp
        self.observed_at: int | None = None

    def __str__(self) -> str:
        timing = f"iat={self.iat}, exp={self.exp}"
        if self.observed_at is not None:
            timing += f", now={self.observed_at}"
        return f"{self.message} ({timing})"


class InstallationNotFound(ExchangeError):
    """HTTP 404: the installation id does not belong to this app."""

    kind = FailureKind.INSTALLATION_NOT_FOUND


class ScopeRejected(ExchangeError):
    """HTTP 403: the requested permissions exceed what the installation grants."""

    kind = FailureKind.SCOPE_REJECTED

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = 403,
        requested: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message, http_status=http_status)
        self.requested = dict(requested or {})


class MalformedPermissionRequest(ExchangeError):
    """HTTP 422: GitHub could not process the permissions body."""

    kind = FailureKind.MALFORMED_PERMISSION_REQUEST


class TemporarilyUnavailable(ExchangeError):
    """HTTP 429 or 503: worth exactly one more try."""

    kind = FailureKind.TEMPORARILY_UNAVAILABLE
    retryable = True


class NetworkFailure(ExchangeError):
    """No HTTP response was received (DNS, connect, TLS, or timeout)."""

    kind = FailureKind.NETWORK_FAILURE


class UnexpectedResponse(ExchangeError):
    """Any other status, or a success response that could not be parsed."""

    kind = FailureKind.UNEXPECTED_RESPONSE


# ---------------------------------------------------------------------------
# Outer layer
# ---------------------------------------------------------------------------


class InputError(AppTokenError):
    """A step input is missing or malformed."""


class ExportError(AppTokenError):
    """The token could not be handed to the invoking environment."""
