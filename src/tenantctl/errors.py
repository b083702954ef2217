"""Library error types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TenantCtlError(RuntimeError):
    """Base library error."""


class PlatformUnavailableError(TenantCtlError):
    """Platform could not be reached."""


class PlatformRequestError(PlatformUnavailableError):
    """Platform returned a structured HTTP error response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: object | None = None,
        body: object | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail
        self.body = body


class AuthenticationError(TenantCtlError):
    """Credentials were rejected or no token could be obtained."""


class UnsupportedDeploymentError(TenantCtlError):
    """Operation is not available for the session's deployment type."""


class ExportError(TenantCtlError):
    """Export data could not be built or written."""


class ServiceAccountKeyError(AuthenticationError):
    """Service account JWK is missing or malformed."""


class FailureKind(str, Enum):
    USAGE = "usage"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    OPERATION = "operation"


@dataclass(frozen=True)
class Failure:
    """Failed resolution or operation, reported once by the command dispatcher."""

    kind: FailureKind
    message: str
