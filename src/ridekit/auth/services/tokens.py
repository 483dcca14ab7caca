"""Token endpoint client.

Exchanges authorization codes for access tokens and refreshes expired
tokens (RFC 6749 Sections 4.1.3 and 6). Requests are form encoded.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import httpx
from pydantic import ValidationError

from ridekit.auth.models.configuration import Configuration
from ridekit.auth.models.errors import (
    AuthenticationError,
    AuthenticationErrorType,
    NetworkError,
    RedirectError,
    error_type_for_code,
)
from ridekit.auth.models.flow import AuthenticationFlowType
from ridekit.auth.models.scopes import Scope, serialize_scopes
from ridekit.auth.models.tokens import AccessToken, TokenResponse

logger = logging.getLogger(__name__)

_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


class TokenExchangeClient:
    """Talks to the rides token endpoint.

    Owns an ``httpx.AsyncClient``; call ``close()`` when done.
    """

    def __init__(self, configuration: Configuration, timeout: float = 30.0):
        """Initialize the token client.

        Args:
            configuration: Provides client id, callback URI and login host
            timeout: HTTP request timeout in seconds
        """
        self.configuration = configuration
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_token(
        self, code: str, scopes: Iterable[Scope] | None = None
    ) -> AccessToken:
        """Exchange an authorization code for an access token.

        Args:
            code: Authorization code from the redirect
            scopes: Requested scopes, used if the response omits ``scope``

        Raises:
            NetworkError: If the request fails at the transport level
            RedirectError: If the token endpoint returns an OAuth error
            AuthenticationError: If the response cannot be parsed
        """
        scopes = frozenset(scopes or ())
        form_data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.configuration.client_id or "",
            "redirect_uri": self.configuration.callback_uri(
                AuthenticationFlowType.AUTHORIZATION_CODE
            )
            or "",
        }
        if scopes:
            form_data["scope"] = serialize_scopes(scopes)

        logger.debug(
            f"Exchanging authorization code at {self.configuration.token_endpoint} "
            f"for client_id={form_data['client_id']}"
        )

        response = await self._post(form_data, "token exchange")
        return self._to_access_token(self._parse_token_response(response), scopes)

    async def refresh_access_token(self, token: AccessToken) -> AccessToken:
        """Refresh ``token`` using its refresh token.

        The refreshed token keeps the old refresh token when the endpoint
        does not issue a new one, and the old scopes when none are returned.

        Raises:
            AuthenticationError: If ``token`` has no refresh token (INVALID_REQUEST)
            NetworkError: If the request fails at the transport level
            RedirectError: If the token endpoint returns an OAuth error
        """
        if not token.can_refresh():
            raise AuthenticationError(
                "Access token has no refresh token",
                AuthenticationErrorType.INVALID_REQUEST,
            )

        form_data = {
            "grant_type": "refresh_token",
            "refresh_token": token.refresh_token,
            "client_id": self.configuration.client_id or "",
        }

        logger.debug(f"Refreshing access token at {self.configuration.token_endpoint}")

        response = await self._post(form_data, "token refresh")
        refreshed = self._to_access_token(
            self._parse_token_response(response), token.granted_scopes
        )

        if refreshed.refresh_token is None:
            refreshed = refreshed.model_copy(
                update={"refresh_token": token.refresh_token}
            )
        return refreshed

    async def _post(self, form_data: dict[str, str], action: str) -> httpx.Response:
        try:
            return await self._http_client.post(
                self.configuration.token_endpoint,
                data=form_data,
                headers=_HEADERS,
            )
        except httpx.HTTPError as e:
            logger.error(f"HTTP error during {action}: {e}")
            raise NetworkError(f"HTTP error during {action}: {e}") from e

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Parse a token endpoint response.

        Raises:
            RedirectError: For OAuth error responses (RFC 6749 Section 5.2)
            AuthenticationError: For unparseable bodies (INVALID_RESPONSE)
        """
        try:
            token_response = TokenResponse(**response.json())
        except (ValueError, TypeError, ValidationError) as e:
            raise AuthenticationError(
                f"Invalid token response format: {e}",
                AuthenticationErrorType.INVALID_RESPONSE,
            ) from e

        if response.status_code == 200 and token_response.is_success():
            logger.info("Token exchange successful")
            return token_response

        if token_response.is_error():
            logger.warning(
                f"Token request failed with {response.status_code}: "
                f"{token_response.error} - "
                f"{token_response.error_description or 'No description provided'}"
            )
            raise RedirectError(
                token_response.error,
                error_type_for_code(
                    token_response.error,
                    self.configuration.unauthorized_is_token_expired,
                ),
                token_response.error_description,
            )

        if response.status_code >= 500:
            raise AuthenticationError(
                f"Token endpoint returned {response.status_code}",
                AuthenticationErrorType.SERVER_ERROR,
            )

        raise AuthenticationError(
            "Token response missing required access_token",
            AuthenticationErrorType.INVALID_RESPONSE,
        )

    def _to_access_token(
        self, token_response: TokenResponse, scopes: Iterable[Scope]
    ) -> AccessToken:
        try:
            return token_response.to_access_token(scopes)
        except ValueError as e:
            logger.warning(f"Token response could not be converted: {e}")
            raise AuthenticationError(
                f"Invalid token response: {e}",
                AuthenticationErrorType.INVALID_RESPONSE,
            ) from e

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
