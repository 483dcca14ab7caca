"""Ride request web widget.

Builds the authenticated URL of the ride request widget and interprets the
navigations the widget triggers. The widget reports problems through its own
error type; an expired token surfaces as ACCESS_TOKEN_EXPIRED so the app can
send the user back through login.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import parse_qs, quote, urlencode, urlparse

from ridekit.auth.models.configuration import Configuration
from ridekit.auth.models.errors import RideRequestViewError, RideRequestViewErrorType
from ridekit.auth.models.flow import NavigationDecision
from ridekit.auth.models.tokens import AccessToken
from ridekit.auth.primitives.redirects import WEB_SCHEMES
from ridekit.auth.services.token_store import TokenStore
from ridekit.version import SDK_VERSION

logger = logging.getLogger(__name__)

WIDGET_SOURCE = "ride_request_widget"
# Where the widget sends its own errors, e.g. uberConnect://oauth#error=unauthorized
WIDGET_REDIRECT_SCHEME = "uberconnect"
WIDGET_REDIRECT_HOST = "oauth"


def source_string(source: str = WIDGET_SOURCE) -> str:
    """User agent fragment identifying this SDK to the widget."""
    return f"rides-python-v{SDK_VERSION}-{source}"


@dataclass(frozen=True)
class RideParameters:
    """Optional ride details used to pre-fill the widget."""

    product_id: str | None = None
    pickup_latitude: float | None = None
    pickup_longitude: float | None = None
    pickup_nickname: str | None = None
    pickup_address: str | None = None
    dropoff_latitude: float | None = None
    dropoff_longitude: float | None = None
    dropoff_nickname: str | None = None
    dropoff_address: str | None = None
    payment_method: str | None = None
    source: str = WIDGET_SOURCE

    def to_query_parameters(self) -> dict[str, str]:
        values = {
            "product_id": self.product_id,
            "pickup[latitude]": self.pickup_latitude,
            "pickup[longitude]": self.pickup_longitude,
            "pickup[nickname]": self.pickup_nickname,
            "pickup[formatted_address]": self.pickup_address,
            "dropoff[latitude]": self.dropoff_latitude,
            "dropoff[longitude]": self.dropoff_longitude,
            "dropoff[nickname]": self.dropoff_nickname,
            "dropoff[formatted_address]": self.dropoff_address,
            "payment_method": self.payment_method,
        }
        return {key: str(value) for key, value in values.items() if value is not None}


class WidgetSurface(Protocol):
    """Web view hosting the widget."""

    def load(self, url: str) -> None: ...


ErrorHandler = Callable[[RideRequestViewError], None]


class RideRequestWidget:
    """Loads the ride request widget and routes its navigation events."""

    def __init__(
        self,
        configuration: Configuration,
        ride_parameters: RideParameters | None = None,
        access_token: AccessToken | None = None,
        token_store: TokenStore | None = None,
        access_token_identifier: str | None = None,
        access_group: str | None = None,
        on_error: ErrorHandler | None = None,
    ):
        self.configuration = configuration
        self.ride_parameters = ride_parameters or RideParameters()
        self.token_store = token_store or TokenStore()
        self.access_token_identifier = access_token_identifier
        self.access_group = access_group
        self.on_error = on_error
        self._access_token = access_token

    @property
    def access_token(self) -> AccessToken | None:
        """Explicit token if one was given, otherwise the stored token."""
        if self._access_token is not None:
            return self._access_token
        return self.token_store.fetch(self.access_token_identifier, self.access_group)

    @access_token.setter
    def access_token(self, token: AccessToken | None) -> None:
        self._access_token = token

    def build_url(self, token: AccessToken) -> str:
        params = {
            "access_token": token.token_string,
            "user-agent": source_string(self.ride_parameters.source),
        }
        if self.configuration.sandbox:
            params["env"] = "sandbox"
        params.update(self.ride_parameters.to_query_parameters())

        return f"{self.configuration.widget_url}?{urlencode(params, quote_via=quote)}"

    def load(self, surface: WidgetSurface) -> bool:
        """Load the widget into ``surface``.

        Returns False (after reporting ACCESS_TOKEN_MISSING) when there is no
        token to authorize the widget with.
        """
        token = self.access_token
        if token is None:
            self._report(
                RideRequestViewError(
                    RideRequestViewErrorType.ACCESS_TOKEN_MISSING,
                    "No access token available for the ride request widget",
                )
            )
            return False

        surface.load(self.build_url(token))
        return True

    def handle_navigation(self, url: str) -> NavigationDecision:
        """Decide whether the widget's web view may follow ``url``."""
        parsed = urlparse(url)
        scheme = parsed.scheme.lower()

        if scheme in WEB_SCHEMES:
            return NavigationDecision.ALLOW

        if scheme == WIDGET_REDIRECT_SCHEME and parsed.netloc.lower() == WIDGET_REDIRECT_HOST:
            params = parse_qs(parsed.fragment) or parse_qs(parsed.query)
            error_code = params.get("error", [None])[0]
            self._report(RideRequestViewError.from_code(error_code))
            return NavigationDecision.CANCEL

        self._report(
            RideRequestViewError(
                RideRequestViewErrorType.NOT_SUPPORTED,
                f"Unsupported URL scheme: {scheme or url}",
            )
        )
        return NavigationDecision.CANCEL

    def on_load_failed(self, reason: Exception) -> None:
        """Report a failed page load as a widget network error."""
        self._report(
            RideRequestViewError(RideRequestViewErrorType.NETWORK_ERROR, str(reason))
        )

    def _report(self, error: RideRequestViewError) -> None:
        logger.warning(f"Ride request widget error: {error.code}")
        if self.on_error is not None:
            self.on_error(error)
