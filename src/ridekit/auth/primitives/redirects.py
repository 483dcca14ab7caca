"""Redirect URL classification and parsing.

Decides whether a URL seen by a presentation surface is the callback of a
given flow, and turns matched callbacks into either an authorization
artifact or a typed error.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from urllib.parse import parse_qs, urlparse

from ridekit.auth.models.configuration import Configuration
from ridekit.auth.models.errors import (
    AuthenticationError,
    AuthenticationErrorType,
    ClassificationError,
    RedirectError,
    error_type_for_code,
)
from ridekit.auth.models.flow import (
    AuthenticationFlowType,
    AuthorizationArtifact,
    NavigationDecision,
    NavigationOutcome,
)
from ridekit.auth.models.scopes import Scope
from ridekit.auth.models.tokens import AccessToken

logger = logging.getLogger(__name__)

WEB_SCHEMES = frozenset({"http", "https"})

# Flows whose callback carries the token itself in the URL fragment
TOKEN_FLOWS = frozenset({AuthenticationFlowType.IMPLICIT, AuthenticationFlowType.NATIVE})


def _single_values(raw: str) -> dict[str, str]:
    """Parse a query/fragment string keeping the first value of each key."""
    return {
        key: values[0]
        for key, values in parse_qs(raw, keep_blank_values=True).items()
        if values
    }


def _matches(url: str, callback_uri: str) -> bool:
    received = urlparse(url)
    expected = urlparse(callback_uri)
    return (
        received.scheme.lower() == expected.scheme.lower()
        and received.netloc.lower() == expected.netloc.lower()
        and received.path == expected.path
    )


class RedirectClassifier:
    """Matches and parses redirect URLs against a Configuration's callbacks."""

    def __init__(self, configuration: Configuration):
        self.configuration = configuration

    def should_handle_redirect_url(
        self, url: str, flow_type: AuthenticationFlowType
    ) -> bool:
        """Check if ``url`` is the registered callback for ``flow_type``.

        Scheme, host and path must match the callback URI registered for this
        flow type; query and fragment are ignored. A callback registered only
        for a different flow type never matches.
        """
        callback_uri = self.configuration.callback_uri(flow_type)
        if not callback_uri:
            return False

        try:
            return _matches(url, callback_uri)
        except ValueError:
            return False

    def parse_redirect(
        self,
        url: str,
        flow_type: AuthenticationFlowType,
        requested_scopes: Iterable[Scope] | None = None,
    ) -> AuthorizationArtifact:
        """Parse a matched callback URL.

        Args:
            url: Callback URL received by the presentation surface
            flow_type: Flow the callback belongs to
            requested_scopes: Scopes from the authorization request, used when
                the callback does not echo granted scopes

        Returns:
            AuthorizationArtifact holding a code or a token

        Raises:
            RedirectError: If the provider reported an error
            AuthenticationError: If the callback carries neither a result nor
                an error (INVALID_RESPONSE)
        """
        parsed = urlparse(url)
        query = _single_values(parsed.query)
        fragment = _single_values(parsed.fragment)

        if flow_type in TOKEN_FLOWS:
            params = {**query, **fragment}
        else:
            params = {**fragment, **query}

        if "error" in params:
            error_code = params["error"]
            error_type = error_type_for_code(
                error_code, self.configuration.unauthorized_is_token_expired
            )
            logger.warning(
                f"Redirect for {flow_type.value} flow contained error: {error_code}"
            )
            raise RedirectError(error_code, error_type, params.get("error_description"))

        if flow_type in TOKEN_FLOWS:
            try:
                token = AccessToken.from_parameters(params, requested_scopes)
            except ValueError as e:
                raise AuthenticationError(
                    f"Invalid token redirect: {e}",
                    AuthenticationErrorType.INVALID_RESPONSE,
                ) from e
            logger.debug(f"Parsed access token from {flow_type.value} redirect")
            return AuthorizationArtifact(token=token)

        code = params.get("code")
        if not code:
            raise AuthenticationError(
                "Redirect missing authorization code",
                AuthenticationErrorType.INVALID_RESPONSE,
            )
        logger.debug(f"Parsed authorization code from {flow_type.value} redirect")
        return AuthorizationArtifact(code=code)

    def classify_navigation(
        self, url: str, flow_type: AuthenticationFlowType
    ) -> NavigationOutcome:
        """Decide how a presentation surface should treat a navigation.

        - The flow's callback: cancel, and mark as handled.
        - http(s) or a scheme of any registered callback: allow.
        - Anything else (``tel:``, ``mailto:``...): cancel with NOT_SUPPORTED.
        """
        if self.should_handle_redirect_url(url, flow_type):
            return NavigationOutcome(NavigationDecision.CANCEL, handled=True)

        try:
            scheme = urlparse(url).scheme.lower()
        except ValueError:
            scheme = ""

        if scheme in WEB_SCHEMES or scheme in self._callback_schemes():
            return NavigationOutcome(NavigationDecision.ALLOW)

        logger.warning(f"Blocked navigation to unsupported scheme '{scheme}'")
        return NavigationOutcome(
            NavigationDecision.CANCEL,
            error=ClassificationError(f"Unsupported URL scheme: {scheme or url}"),
        )

    def _callback_schemes(self) -> set[str]:
        return {
            urlparse(uri).scheme.lower()
            for uri in self.configuration.callback_uris.values()
            if uri
        }
