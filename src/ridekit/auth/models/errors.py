"""Exception hierarchy and error codes for ride authentication.

Every failure that reaches a login completion is an ``AuthenticationError``
carrying one ``AuthenticationErrorType``. The string values of that enum are
stable across platforms and are what callers should compare against.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

ERROR_DOMAIN = "com.uber.rides-python-sdk.ridesAuthenticationError"


class AuthenticationErrorType(str, Enum):
    """Closed set of authentication failures."""

    USER_CANCELLED = "cancelled"
    ACCESS_DENIED = "access_denied"
    INVALID_RESPONSE = "invalid_response"
    INVALID_CLIENT_ID = "invalid_client_id"
    INVALID_REDIRECT_URI = "invalid_redirect_uri"
    SERVER_ERROR = "server_error"
    UNAVAILABLE = "temporarily_unavailable"
    NETWORK_ERROR = "network_error"
    INVALID_REQUEST = "invalid_request"
    MISMATCHING_REDIRECT = "mismatching_redirect_uri"
    NOT_SUPPORTED = "not_supported"
    TOKEN_EXPIRED = "unauthorized"
    UNKNOWN = "unknown"


# Provider error strings. Anything not listed falls through to UNKNOWN.
PROVIDER_ERROR_CODES: Mapping[str, AuthenticationErrorType] = {
    "access_denied": AuthenticationErrorType.ACCESS_DENIED,
    "invalid_client_id": AuthenticationErrorType.INVALID_CLIENT_ID,
    "invalid_client": AuthenticationErrorType.INVALID_CLIENT_ID,
    "invalid_redirect_uri": AuthenticationErrorType.INVALID_REDIRECT_URI,
    "invalid_request": AuthenticationErrorType.INVALID_REQUEST,
    "invalid_response": AuthenticationErrorType.INVALID_RESPONSE,
    "mismatching_redirect_uri": AuthenticationErrorType.MISMATCHING_REDIRECT,
    "server_error": AuthenticationErrorType.SERVER_ERROR,
    "temporarily_unavailable": AuthenticationErrorType.UNAVAILABLE,
    "unauthorized": AuthenticationErrorType.TOKEN_EXPIRED,
    "cancelled": AuthenticationErrorType.USER_CANCELLED,
}


def error_type_for_code(
    code: str | None, unauthorized_is_token_expired: bool = True
) -> AuthenticationErrorType:
    """Map a provider error string onto the closed error set.

    Args:
        code: Value of the ``error`` parameter from a redirect or token response
        unauthorized_is_token_expired: When False, ``unauthorized`` is treated
            like any other unrecognized code and maps to UNKNOWN
    """
    if not code:
        return AuthenticationErrorType.UNKNOWN

    normalized = code.strip().lower()
    if normalized == "unauthorized" and not unauthorized_is_token_expired:
        return AuthenticationErrorType.UNKNOWN

    return PROVIDER_ERROR_CODES.get(normalized, AuthenticationErrorType.UNKNOWN)


class RidesError(Exception):
    """Base exception for all ridekit errors."""

    pass


class AuthenticationError(RidesError):
    """Raised (or delivered to a login completion) when authentication fails."""

    domain = ERROR_DOMAIN
    default_type = AuthenticationErrorType.UNKNOWN

    def __init__(
        self,
        message: str = "",
        error_type: AuthenticationErrorType | None = None,
    ):
        self.error_type = error_type or self.default_type
        super().__init__(message or self.error_type.value)

    @property
    def code(self) -> str:
        """Stable string code for this error."""
        return self.error_type.value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.error_type.name}: {self})"


class ConfigurationError(AuthenticationError):
    """Raised when client id, app name or a callback URI is missing."""

    default_type = AuthenticationErrorType.INVALID_REQUEST


class ClassificationError(AuthenticationError):
    """Raised when a navigation targets a scheme the SDK cannot handle."""

    default_type = AuthenticationErrorType.NOT_SUPPORTED


class RedirectError(AuthenticationError):
    """Raised when the provider reports an error in a redirect or response."""

    def __init__(
        self,
        provider_code: str | None,
        error_type: AuthenticationErrorType | None = None,
        description: str | None = None,
    ):
        self.provider_code = provider_code
        self.description = description
        message = f"Authorization failed: {provider_code}"
        if description:
            message += f" ({description})"
        super().__init__(message, error_type or error_type_for_code(provider_code))


class NetworkError(AuthenticationError):
    """Raised when a token endpoint request fails at the transport level."""

    default_type = AuthenticationErrorType.NETWORK_ERROR


class StateError(AuthenticationError):
    """Raised when login is requested while another flow is in flight."""

    default_type = AuthenticationErrorType.INVALID_REQUEST


class RideRequestViewErrorType(str, Enum):
    """Errors surfaced by the ride request widget."""

    ACCESS_TOKEN_EXPIRED = "unauthorized"
    ACCESS_TOKEN_MISSING = "no_access_token"
    NETWORK_ERROR = "network_error"
    NOT_SUPPORTED = "not_supported"
    UNKNOWN = "unknown"


RIDE_REQUEST_VIEW_ERROR_DOMAIN = "com.uber.rides-python-sdk.rideRequestViewError"


class RideRequestViewError(RidesError):
    """Raised (or reported to the widget's error handler) by the ride widget."""

    domain = RIDE_REQUEST_VIEW_ERROR_DOMAIN

    def __init__(self, error_type: RideRequestViewErrorType, message: str = ""):
        self.error_type = error_type
        super().__init__(message or error_type.value)

    @property
    def code(self) -> str:
        return self.error_type.value

    @classmethod
    def from_code(cls, code: str | None) -> RideRequestViewError:
        """Build a widget error from the ``error`` string of a widget redirect."""
        if code and code.strip().lower() == "unauthorized":
            return cls(RideRequestViewErrorType.ACCESS_TOKEN_EXPIRED)
        return cls(RideRequestViewErrorType.UNKNOWN, f"Unknown widget error: {code}")
