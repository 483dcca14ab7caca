import pytest

from ridekit.auth.models.configuration import Configuration
from ridekit.auth.models.flow import AuthenticationFlowType
from ridekit.auth.services.token_store import TokenStore


class FakePresentationSurface:
    """Records what the flow controller asks the surface to do."""

    def __init__(self):
        self.loaded_urls: list[str] = []
        self.dismiss_count = 0

    def load(self, url: str) -> None:
        self.loaded_urls.append(url)

    def dismiss(self) -> None:
        self.dismiss_count += 1


class CompletionRecorder:
    """Login completion that remembers every call it receives."""

    def __init__(self):
        self.calls = []

    def __call__(self, token, error) -> None:
        self.calls.append((token, error))

    @property
    def token(self):
        return self.calls[-1][0]

    @property
    def error(self):
        return self.calls[-1][1]


@pytest.fixture
def configuration() -> Configuration:
    """Fresh configuration per test, registered for every flow type."""
    return Configuration(
        client_id="testClientID",
        app_name="My Awesome App",
        callback_uris={
            AuthenticationFlowType.GENERAL: "testURI://uberConnect",
            AuthenticationFlowType.NATIVE: "testURI://uberConnectNative",
            AuthenticationFlowType.AUTHORIZATION_CODE: "https://myapp.com/oauth/callback",
            AuthenticationFlowType.IMPLICIT: "uberConnect://oauth",
        },
    )


@pytest.fixture
def token_store() -> TokenStore:
    return TokenStore()


@pytest.fixture
def presentation() -> FakePresentationSurface:
    return FakePresentationSurface()


@pytest.fixture
def completion() -> CompletionRecorder:
    return CompletionRecorder()
