"""Authentication flow orchestration.

Drives a single login attempt from building the authorization URL to a
terminal completion. Presentation (web view or system browser) is supplied
by the caller and reports navigation and dismissal back to the controller.

States::

    IDLE -> PRESENTING -> AWAITING_REDIRECT -> SUCCEEDED | FAILED | CANCELLED
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Protocol

from ridekit.auth.models.configuration import Configuration
from ridekit.auth.models.errors import (
    AuthenticationError,
    AuthenticationErrorType,
    StateError,
)
from ridekit.auth.models.flow import (
    AuthenticationFlowType,
    FlowState,
    NavigationDecision,
)
from ridekit.auth.models.scopes import Scope
from ridekit.auth.models.tokens import AccessToken
from ridekit.auth.primitives.redirects import RedirectClassifier
from ridekit.auth.primitives.urls import AuthenticationURLBuilder
from ridekit.auth.services.token_store import TokenStore
from ridekit.auth.services.tokens import TokenExchangeClient

logger = logging.getLogger(__name__)

LoginCompletion = Callable[[AccessToken | None, AuthenticationError | None], None]


class PresentationSurface(Protocol):
    """Web view or browser that shows the authorization page.

    The surface forwards navigations to ``handle_navigation`` before
    following them and calls ``on_dismissed`` when the user closes it.
    """

    def load(self, url: str) -> None: ...

    def dismiss(self) -> None: ...


class CodeExchanger(Protocol):
    async def exchange_code_for_token(
        self, code: str, scopes: Iterable[Scope] | None = None
    ) -> AccessToken: ...


class AuthenticationFlowController:
    """Runs login attempts for one flow type, one at a time.

    Each ``login()`` call receives exactly one completion, with either a
    token or an error.
    """

    def __init__(
        self,
        configuration: Configuration,
        flow_type: AuthenticationFlowType = AuthenticationFlowType.IMPLICIT,
        token_store: TokenStore | None = None,
        token_client: CodeExchanger | None = None,
        access_token_identifier: str | None = None,
        access_group: str | None = None,
    ):
        self.configuration = configuration
        self.flow_type = flow_type
        self.token_store = token_store or TokenStore()
        self.access_token_identifier = access_token_identifier
        self.access_group = access_group

        if token_client is None and flow_type is AuthenticationFlowType.AUTHORIZATION_CODE:
            token_client = TokenExchangeClient(configuration)
        self.token_client = token_client

        self._url_builder = AuthenticationURLBuilder(configuration)
        self._classifier = RedirectClassifier(configuration)

        self._state = FlowState.IDLE
        self._completion: LoginCompletion | None = None
        self._presentation: PresentationSurface | None = None
        self._scopes: frozenset[Scope] = frozenset()
        self._exchange_task: asyncio.Task | None = None

    @property
    def state(self) -> FlowState:
        return self._state

    def login(
        self,
        scopes: Iterable[Scope],
        presentation: PresentationSurface,
        completion: LoginCompletion,
    ) -> None:
        """Start a login attempt.

        If another attempt is still in flight, ``completion`` is called
        immediately with a StateError and nothing is presented.
        """
        if self._state.is_in_flight:
            logger.warning(
                f"Rejected {self.flow_type.value} login: a flow is already "
                f"{self._state.value}"
            )
            completion(None, StateError("A login flow is already in progress"))
            return

        self._completion = completion
        self._presentation = presentation
        self._scopes = frozenset(scopes)
        self._exchange_task = None

        try:
            url = self._url_builder.build_authorization_url(self.flow_type, self._scopes)
        except AuthenticationError as e:
            logger.error(f"Cannot start {self.flow_type.value} login: {e}")
            self._finish(FlowState.FAILED, error=e)
            return

        self._state = FlowState.PRESENTING
        logger.info(f"Presenting {self.flow_type.value} login")
        presentation.load(url)

    def on_load_started(self) -> None:
        """Signal from the surface that the authorization page began loading."""
        if self._state is FlowState.PRESENTING:
            self._state = FlowState.AWAITING_REDIRECT

    def handle_navigation(self, url: str) -> NavigationDecision:
        """Decide whether the surface may follow a navigation to ``url``.

        Callback URLs are intercepted (CANCEL) and resolve the flow; plain
        web navigation is allowed; unsupported schemes are cancelled and fail
        the flow with NOT_SUPPORTED.
        """
        outcome = self._classifier.classify_navigation(url, self.flow_type)

        if not self._state.is_in_flight or self._exchange_task is not None:
            return outcome.decision

        self.on_load_started()

        if outcome.error is not None:
            self._finish(FlowState.FAILED, error=outcome.error)
            return outcome.decision

        if not outcome.handled:
            return outcome.decision

        try:
            artifact = self._classifier.parse_redirect(url, self.flow_type, self._scopes)
        except AuthenticationError as e:
            self._finish(FlowState.FAILED, error=e)
            return NavigationDecision.CANCEL

        if artifact.needs_exchange:
            self._start_exchange(artifact.code)
        else:
            self._succeed(artifact.token)

        return NavigationDecision.CANCEL

    def on_dismissed(self) -> None:
        """Signal that the user closed the surface.

        Before a terminal state this cancels any in-flight code exchange and
        completes the attempt as USER_CANCELLED.
        """
        if not self._state.is_in_flight:
            return

        if self._exchange_task is not None and not self._exchange_task.done():
            self._exchange_task.cancel()

        logger.info(f"{self.flow_type.value} login cancelled by user")
        self._finish(
            FlowState.CANCELLED,
            error=AuthenticationError(
                "User cancelled the login", AuthenticationErrorType.USER_CANCELLED
            ),
        )

    async def join(self) -> None:
        """Wait for an in-flight code exchange, if any, to finish."""
        if self._exchange_task is not None:
            await asyncio.wait({self._exchange_task})

    def logout(self) -> bool:
        """Delete the stored token. Returns True if one existed."""
        return self.token_store.delete(self.access_token_identifier, self.access_group)

    def _start_exchange(self, code: str) -> None:
        if self.token_client is None:
            self._finish(
                FlowState.FAILED,
                error=AuthenticationError(
                    "No token client configured for code exchange",
                    AuthenticationErrorType.INVALID_REQUEST,
                ),
            )
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error("Authorization code received outside a running event loop")
            self._finish(
                FlowState.FAILED,
                error=StateError(
                    "Authorization code exchange requires a running event loop"
                ),
            )
            return

        logger.debug("Received authorization code, starting token exchange")
        self._exchange_task = loop.create_task(self._exchange(code))

    async def _exchange(self, code: str) -> None:
        try:
            token = await self.token_client.exchange_code_for_token(code, self._scopes)
        except AuthenticationError as e:
            if self._state.is_in_flight:
                self._finish(FlowState.FAILED, error=e)
            return
        except Exception as e:
            logger.error(f"Unexpected error during token exchange: {e}")
            if self._state.is_in_flight:
                self._finish(
                    FlowState.FAILED,
                    error=AuthenticationError(
                        f"Unexpected error during token exchange: {e}",
                        AuthenticationErrorType.UNKNOWN,
                    ),
                )
            return

        if self._state.is_in_flight:
            self._succeed(token)

    def _succeed(self, token: AccessToken) -> None:
        if not self.token_store.save(
            token, self.access_token_identifier, self.access_group
        ):
            logger.warning("Login succeeded but the access token could not be saved")
        logger.info(f"{self.flow_type.value} login succeeded")
        self._finish(FlowState.SUCCEEDED, token=token)

    def _finish(
        self,
        state: FlowState,
        token: AccessToken | None = None,
        error: AuthenticationError | None = None,
    ) -> None:
        self._state = state
        completion, self._completion = self._completion, None
        presentation, self._presentation = self._presentation, None

        if presentation is not None and state is not FlowState.CANCELLED:
            presentation.dismiss()

        if completion is not None:
            completion(token, error)
