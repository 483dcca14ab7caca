"""High-level login entry point for apps.

Wraps a flow controller, a token store and a token client behind the
operations a sign-in button needs: current state, toggle, login, logout and
token refresh.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from enum import Enum

from ridekit.auth.models.configuration import Configuration
from ridekit.auth.models.errors import AuthenticationError
from ridekit.auth.models.flow import AuthenticationFlowType, FlowState
from ridekit.auth.models.scopes import Scope
from ridekit.auth.models.tokens import AccessToken
from ridekit.auth.services.flow import (
    AuthenticationFlowController,
    LoginCompletion,
    PresentationSurface,
)
from ridekit.auth.services.token_store import (
    DEFAULT_ACCESS_GROUP,
    DEFAULT_ACCESS_TOKEN_IDENTIFIER,
    TokenStore,
    TokenStoreEvent,
)
from ridekit.auth.services.tokens import TokenExchangeClient

logger = logging.getLogger(__name__)


class LoginState(str, Enum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"


LoginObserver = Callable[[LoginState], None]


class LoginManager:
    """Manages the signed-in state of one token slot.

    Observers added with ``add_observer`` are told the new LoginState
    whenever a token is saved to or deleted from this manager's slot.
    """

    def __init__(
        self,
        configuration: Configuration,
        flow_type: AuthenticationFlowType = AuthenticationFlowType.IMPLICIT,
        token_store: TokenStore | None = None,
        access_token_identifier: str | None = None,
        access_group: str | None = None,
        token_client: TokenExchangeClient | None = None,
    ):
        self.configuration = configuration
        self.token_store = token_store or TokenStore()
        self.access_token_identifier = (
            access_token_identifier or DEFAULT_ACCESS_TOKEN_IDENTIFIER
        )
        self.access_group = access_group or DEFAULT_ACCESS_GROUP
        self._token_client = token_client

        self.controller = AuthenticationFlowController(
            configuration,
            flow_type=flow_type,
            token_store=self.token_store,
            token_client=token_client,
            access_token_identifier=self.access_token_identifier,
            access_group=self.access_group,
        )

        self._observers: list[LoginObserver] = []
        self.token_store.add_listener(self._on_token_store_event)

    @property
    def token_client(self) -> TokenExchangeClient:
        """Token endpoint client, created on first use.

        Implicit and native logins never touch the token endpoint, so no HTTP
        client is opened for them until a refresh is needed.
        """
        if self._token_client is None:
            self._token_client = self.controller.token_client or TokenExchangeClient(
                self.configuration
            )
        return self._token_client

    @property
    def flow_type(self) -> AuthenticationFlowType:
        return self.controller.flow_type

    @property
    def access_token(self) -> AccessToken | None:
        return self.token_store.fetch(self.access_token_identifier, self.access_group)

    @property
    def state(self) -> LoginState:
        if self.access_token is not None:
            return LoginState.SIGNED_IN
        return LoginState.SIGNED_OUT

    @property
    def flow_state(self) -> FlowState:
        return self.controller.state

    def add_observer(self, observer: LoginObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: LoginObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def login(
        self,
        scopes: Iterable[Scope],
        presentation: PresentationSurface,
        completion: LoginCompletion,
    ) -> None:
        """Start a login with the configured flow type."""
        self.controller.login(scopes, presentation, completion)

    def logout(self) -> bool:
        """Delete the stored token. Returns True if one existed."""
        success = self.controller.logout()
        logger.info(f"Logout {'succeeded' if success else 'found no token'}")
        return success

    def toggle(
        self,
        scopes: Iterable[Scope],
        presentation: PresentationSurface,
        completion: LoginCompletion,
        on_logout: Callable[[bool], None] | None = None,
    ) -> None:
        """Log out when signed in, otherwise start a login."""
        if self.state is LoginState.SIGNED_IN:
            success = self.logout()
            if on_logout is not None:
                on_logout(success)
        else:
            self.login(scopes, presentation, completion)

    async def refresh_if_needed(self, buffer_seconds: float = 30.0) -> AccessToken | None:
        """Refresh the stored token if it is expired or about to expire.

        Returns:
            The current (possibly refreshed) token, or None when there is no
            token or it expired and could not be refreshed
        """
        token = self.access_token
        if token is None:
            return None

        if not token.is_expired(buffer_seconds):
            return token

        if not token.can_refresh():
            logger.warning("Token expired and cannot be refreshed")
            return None

        try:
            refreshed = await self.token_client.refresh_access_token(token)
        except AuthenticationError as e:
            logger.error(f"Token refresh failed: {e}")
            return None

        self.token_store.save(refreshed, self.access_token_identifier, self.access_group)
        logger.info("Successfully refreshed access token")
        return refreshed

    async def close(self) -> None:
        """Detach from the token store and close the token client, if one was opened."""
        self.token_store.remove_listener(self._on_token_store_event)
        client = self._token_client or self.controller.token_client
        if client is not None:
            await client.close()

    def _on_token_store_event(
        self, event: TokenStoreEvent, identifier: str, access_group: str
    ) -> None:
        if identifier != self.access_token_identifier or access_group != self.access_group:
            return

        state = LoginState.SIGNED_IN if event is TokenStoreEvent.SAVED else LoginState.SIGNED_OUT
        for observer in list(self._observers):
            observer(state)
