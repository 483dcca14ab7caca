"""Authorization flow models.

Contains the flow types, controller states and the values produced when a
redirect or navigation is classified.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ridekit.auth.models.errors import AuthenticationError
from ridekit.auth.models.tokens import AccessToken


class AuthenticationFlowType(str, Enum):
    """Supported authorization mechanisms."""

    GENERAL = "general"
    NATIVE = "native"
    AUTHORIZATION_CODE = "authorization_code"
    IMPLICIT = "implicit"


class FlowState(str, Enum):
    IDLE = "idle"
    PRESENTING = "presenting"
    AWAITING_REDIRECT = "awaiting_redirect"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowState.SUCCEEDED, FlowState.FAILED, FlowState.CANCELLED)

    @property
    def is_in_flight(self) -> bool:
        return self in (FlowState.PRESENTING, FlowState.AWAITING_REDIRECT)


class NavigationDecision(str, Enum):
    """Answer a presentation surface needs before following a navigation."""

    ALLOW = "allow"
    CANCEL = "cancel"


@dataclass(frozen=True)
class AuthorizationArtifact:
    """Successful result of parsing a redirect.

    Exactly one of ``code`` (code-exchange flows) or ``token`` (token-in-
    fragment flows) is set.
    """

    code: str | None = None
    token: AccessToken | None = None

    def __post_init__(self) -> None:
        if (self.code is None) == (self.token is None):
            raise ValueError("AuthorizationArtifact needs exactly one of code or token")

    @property
    def needs_exchange(self) -> bool:
        return self.code is not None


@dataclass(frozen=True)
class NavigationOutcome:
    """How a single navigation event should be treated."""

    decision: NavigationDecision
    handled: bool = False
    error: AuthenticationError | None = None

    @property
    def is_allowed(self) -> bool:
        return self.decision is NavigationDecision.ALLOW
