"""SDK configuration.

Settings are read from ``RIDEKIT_*`` environment variables and can be
overridden with keyword arguments::

    export RIDEKIT_CLIENT_ID=abc123
    export RIDEKIT_APP_NAME="My Awesome App"
    export RIDEKIT_CALLBACK_URIS='{"implicit": "myapp://oauth/callback"}'

A Configuration is an ordinary object passed to each component; there is no
process-wide instance.
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ridekit.auth.models.flow import AuthenticationFlowType


class Region(str, Enum):
    DEFAULT = "default"
    CHINA = "china"


class Configuration(BaseSettings):
    """Client identity, callback URIs and environment selection."""

    model_config = SettingsConfigDict(
        env_prefix="RIDEKIT_",
        extra="ignore",
        validate_assignment=True,
    )

    client_id: str | None = None
    # Display name shown on the provider's consent screen
    app_name: str | None = None
    callback_uris: dict[AuthenticationFlowType, str] = Field(default_factory=dict)
    region: Region = Region.DEFAULT
    sandbox: bool = False

    # Platform identifier sent as the ``sdk`` query parameter
    sdk: str = "python"
    login_host: str = "https://login.uber.com"
    native_login_url: str = "uber://connect"
    widget_url: str = "https://components.uber.com/rides/"

    # Whether an ``unauthorized`` redirect error means an expired token (True)
    # or is treated as an unrecognized error (False)
    unauthorized_is_token_expired: bool = True

    def callback_uri(self, flow_type: AuthenticationFlowType) -> str | None:
        """Callback URI registered for ``flow_type``, if any."""
        return self.callback_uris.get(flow_type) or None

    def set_callback_uri(
        self, uri: str | None, flow_type: AuthenticationFlowType
    ) -> None:
        """Register (or with ``None`` unregister) the callback for a flow type."""
        updated = dict(self.callback_uris)
        if uri:
            updated[flow_type] = uri
        else:
            updated.pop(flow_type, None)
        self.callback_uris = updated

    def set_region(self, region: Region) -> None:
        self.region = region

    def set_sandbox_enabled(self, enabled: bool) -> None:
        self.sandbox = enabled

    @property
    def login_type(self) -> str:
        """Value of the ``login_type`` authorization parameter."""
        return self.region.value

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.login_host.rstrip('/')}/oauth/authorize"

    @property
    def token_endpoint(self) -> str:
        return f"{self.login_host.rstrip('/')}/oauth/v2/token"
