"""Tests for the ride request widget URL and navigation handling."""

from urllib.parse import parse_qsl, urlparse

import pytest

from ridekit.auth.models.errors import RideRequestViewErrorType
from ridekit.auth.models.flow import NavigationDecision
from ridekit.auth.models.tokens import AccessToken
from ridekit.rides.request_view import (
    RideParameters,
    RideRequestWidget,
    source_string,
)
from ridekit.version import SDK_VERSION


class FakeWidgetSurface:
    def __init__(self):
        self.loaded_urls = []

    def load(self, url: str) -> None:
        self.loaded_urls.append(url)


class TestWidgetLoading:
    def setup_method(self):
        self.errors = []
        self.surface = FakeWidgetSurface()
        self.token = AccessToken(token_string="widget-token")

    def test_load_builds_authorized_url(self, configuration):
        # Arrange
        widget = RideRequestWidget(
            configuration, access_token=self.token, on_error=self.errors.append
        )

        # Act
        loaded = widget.load(self.surface)

        # Assert
        assert loaded
        url = self.surface.loaded_urls[0]
        assert url.startswith("https://components.uber.com/rides/?")
        query = dict(parse_qsl(urlparse(url).query))
        assert query["access_token"] == "widget-token"
        assert query["user-agent"] == f"rides-python-v{SDK_VERSION}-ride_request_widget"
        assert "env" not in query
        assert self.errors == []

    def test_sandbox_adds_env(self, configuration):
        configuration.set_sandbox_enabled(True)
        widget = RideRequestWidget(configuration, access_token=self.token)

        query = dict(parse_qsl(urlparse(widget.build_url(self.token)).query))

        assert query["env"] == "sandbox"

    def test_ride_parameters_are_included(self, configuration):
        # Arrange
        params = RideParameters(
            product_id="a1111c8c-c720-46c3-8534-2fcdd730040d",
            pickup_latitude=37.775,
            pickup_longitude=-122.418,
            dropoff_address="1 Market St, San Francisco",
            source="button",
        )
        widget = RideRequestWidget(configuration, ride_parameters=params)

        # Act
        query = dict(parse_qsl(urlparse(widget.build_url(self.token)).query))

        # Assert
        assert query["product_id"] == "a1111c8c-c720-46c3-8534-2fcdd730040d"
        assert query["pickup[latitude]"] == "37.775"
        assert query["pickup[longitude]"] == "-122.418"
        assert query["dropoff[formatted_address]"] == "1 Market St, San Francisco"
        assert "dropoff[latitude]" not in query
        assert query["user-agent"] == source_string("button")

    def test_falls_back_to_stored_token(self, configuration, token_store):
        token_store.save(AccessToken(token_string="stored-token"))
        widget = RideRequestWidget(configuration, token_store=token_store)

        assert widget.load(self.surface)
        assert "access_token=stored-token" in self.surface.loaded_urls[0]

    def test_missing_token_reports_error(self, configuration, token_store):
        widget = RideRequestWidget(
            configuration, token_store=token_store, on_error=self.errors.append
        )

        assert not widget.load(self.surface)
        assert self.surface.loaded_urls == []
        assert len(self.errors) == 1
        assert self.errors[0].error_type is RideRequestViewErrorType.ACCESS_TOKEN_MISSING

    def test_explicit_token_can_be_replaced(self, configuration):
        widget = RideRequestWidget(configuration, access_token=self.token)

        widget.access_token = AccessToken(token_string="replacement")

        assert widget.access_token.token_string == "replacement"


class TestWidgetNavigation:
    @pytest.fixture(autouse=True)
    def setup_widget(self, configuration):
        self.errors = []
        self.widget = RideRequestWidget(
            configuration,
            access_token=AccessToken(token_string="widget-token"),
            on_error=self.errors.append,
        )

    def test_web_navigation_is_allowed(self):
        decision = self.widget.handle_navigation("https://components.uber.com/rides/confirm")

        assert decision is NavigationDecision.ALLOW
        assert self.errors == []

    def test_unauthorized_redirect_is_token_expired(self):
        decision = self.widget.handle_navigation("uberConnect://oauth#error=unauthorized")

        assert decision is NavigationDecision.CANCEL
        assert self.errors[0].error_type is RideRequestViewErrorType.ACCESS_TOKEN_EXPIRED

    def test_unknown_redirect_error(self):
        decision = self.widget.handle_navigation("uberConnect://oauth#error=on_fire")

        assert decision is NavigationDecision.CANCEL
        assert self.errors[0].error_type is RideRequestViewErrorType.UNKNOWN

    def test_tel_link_is_not_supported(self):
        decision = self.widget.handle_navigation("tel:5555555555")

        assert decision is NavigationDecision.CANCEL
        assert self.errors[0].error_type is RideRequestViewErrorType.NOT_SUPPORTED

    def test_load_failure_is_network_error(self):
        self.widget.on_load_failed(ConnectionError("offline"))

        assert self.errors[0].error_type is RideRequestViewErrorType.NETWORK_ERROR
        assert str(self.errors[0]) == "offline"
