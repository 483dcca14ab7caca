"""Authorization URL construction.

Builds the URL a presentation surface opens to start a login, for each of
the four flow types.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from urllib.parse import quote, urlencode

from ridekit.auth.models.configuration import Configuration
from ridekit.auth.models.errors import AuthenticationErrorType, ConfigurationError
from ridekit.auth.models.flow import AuthenticationFlowType
from ridekit.auth.models.scopes import Scope, serialize_scopes
from ridekit.version import SDK_VERSION

logger = logging.getLogger(__name__)

SCOPES_KEY = "scope"
CLIENT_ID_KEY = "client_id"
APP_NAME_KEY = "app_name"
CALLBACK_URI_KEY = "redirect_uri"
LOGIN_TYPE_KEY = "login_type"
SDK_KEY = "sdk"
SDK_VERSION_KEY = "sdk_version"
RESPONSE_TYPE_KEY = "response_type"

_RESPONSE_TYPES = {
    AuthenticationFlowType.AUTHORIZATION_CODE: "code",
    AuthenticationFlowType.IMPLICIT: "token",
}


class AuthenticationURLBuilder:
    """Builds authorization URLs from a Configuration."""

    def __init__(self, configuration: Configuration):
        self.configuration = configuration

    def build_query_parameters(
        self, flow_type: AuthenticationFlowType, scopes: Iterable[Scope]
    ) -> dict[str, str]:
        """Build the authorization query parameters for a flow.

        Raises:
            ConfigurationError: If client id, app name or the flow's callback
                URI is not configured
        """
        config = self.configuration

        if not config.client_id:
            raise ConfigurationError(
                "Client ID is not configured", AuthenticationErrorType.INVALID_CLIENT_ID
            )
        if not config.app_name:
            raise ConfigurationError("App name is not configured")

        callback_uri = config.callback_uri(flow_type)
        if not callback_uri:
            raise ConfigurationError(
                f"No callback URI registered for {flow_type.value} flow",
                AuthenticationErrorType.INVALID_REDIRECT_URI,
            )

        params = {
            SCOPES_KEY: serialize_scopes(scopes),
            CLIENT_ID_KEY: config.client_id,
            APP_NAME_KEY: config.app_name,
            CALLBACK_URI_KEY: callback_uri,
            LOGIN_TYPE_KEY: config.login_type,
            SDK_KEY: config.sdk,
            SDK_VERSION_KEY: SDK_VERSION,
        }

        response_type = _RESPONSE_TYPES.get(flow_type)
        if response_type:
            params[RESPONSE_TYPE_KEY] = response_type

        return params

    def build_authorization_url(
        self, flow_type: AuthenticationFlowType, scopes: Iterable[Scope]
    ) -> str:
        """Build the complete authorization URL for a flow."""
        params = self.build_query_parameters(flow_type, scopes)

        if flow_type is AuthenticationFlowType.NATIVE:
            base = self.configuration.native_login_url
        else:
            base = self.configuration.authorize_endpoint

        # Spaces encode as %20, never '+'
        query = urlencode(params, safe="", quote_via=quote)
        url = f"{base}?{query}"

        logger.debug(
            f"Built {flow_type.value} authorization URL for client "
            f"{params[CLIENT_ID_KEY]} with scopes '{params[SCOPES_KEY]}'"
        )
        return url
