from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from ridekit.auth.models.scopes import Scope
from ridekit.auth.models.tokens import AccessToken, TokenResponse


class TestAccessToken:
    def test_equality_is_by_token_string(self) -> None:
        # Arrange
        first = AccessToken(token_string="abc", refresh_token="r1")
        second = AccessToken(
            token_string="abc",
            refresh_token="r2",
            granted_scopes=frozenset({Scope.PROFILE}),
        )
        other = AccessToken(token_string="xyz", refresh_token="r1")

        # Assert
        assert first == second
        assert hash(first) == hash(second)
        assert first != other
        assert len({first, second, other}) == 2

    def test_token_is_immutable(self) -> None:
        token = AccessToken(token_string="abc")

        with pytest.raises(ValidationError):
            token.token_string = "changed"

    def test_repr_hides_token(self) -> None:
        token = AccessToken(token_string="super-secret", refresh_token="also-secret")

        assert "super-secret" not in repr(token)
        assert "also-secret" not in repr(token)

    def test_expiry(self) -> None:
        past = datetime.now(timezone.utc) - timedelta(minutes=5)
        future = datetime.now(timezone.utc) + timedelta(hours=1)

        assert AccessToken(token_string="a", expiration_date=past).is_expired()
        assert not AccessToken(token_string="a", expiration_date=future).is_expired()
        assert AccessToken(token_string="a", expiration_date=future).is_expired(
            buffer_seconds=7200
        )
        assert not AccessToken(token_string="a").is_expired()

    def test_from_parameters_with_all_fields(self) -> None:
        # Act
        token = AccessToken.from_parameters(
            {
                "access_token": "token123",
                "refresh_token": "refresh456",
                "expires_in": "2592000",
                "scope": "profile history",
            }
        )

        # Assert
        assert token.token_string == "token123"
        assert token.refresh_token == "refresh456"
        assert token.granted_scopes == {Scope.PROFILE, Scope.HISTORY}
        remaining = token.expiration_date - datetime.now(timezone.utc)
        assert timedelta(days=29) < remaining <= timedelta(days=30)

    def test_from_parameters_uses_requested_scopes_without_scope(self) -> None:
        token = AccessToken.from_parameters(
            {"access_token": "token123"}, [Scope.RIDE_WIDGETS]
        )

        assert token.granted_scopes == {Scope.RIDE_WIDGETS}
        assert token.expiration_date is None
        assert token.refresh_token is None

    def test_from_parameters_requires_access_token(self) -> None:
        with pytest.raises(ValueError, match="access_token"):
            AccessToken.from_parameters({"refresh_token": "r"})

    def test_from_parameters_rejects_bad_expiry(self) -> None:
        with pytest.raises(ValueError):
            AccessToken.from_parameters({"access_token": "t", "expires_in": "soon"})

    def test_from_parameters_rejects_out_of_range_expiry(self) -> None:
        with pytest.raises(ValueError, match="expires_in"):
            AccessToken.from_parameters(
                {"access_token": "t", "expires_in": "99999999999999999999"}
            )

    def test_json_round_trip(self) -> None:
        token = AccessToken.from_parameters(
            {"access_token": "t", "refresh_token": "r", "expires_in": "60"},
            [Scope.PROFILE, Scope.PLACES],
        )

        restored = AccessToken.model_validate_json(token.model_dump_json())

        assert restored == token
        assert restored.refresh_token == "r"
        assert restored.expiration_date == token.expiration_date
        assert restored.granted_scopes == {Scope.PROFILE, Scope.PLACES}


class TestTokenResponse:
    def test_success_response_converts_to_token(self) -> None:
        response = TokenResponse(
            access_token="access-token-xyz",
            expires_in=3600,
            refresh_token="refresh-token-abc",
            scope="request",
        )

        token = response.to_access_token()

        assert response.is_success()
        assert token.token_string == "access-token-xyz"
        assert token.refresh_token == "refresh-token-abc"
        assert token.granted_scopes == {Scope.REQUEST}

    def test_error_response_cannot_convert(self) -> None:
        response = TokenResponse(error="invalid_grant")

        assert response.is_error()
        assert not response.is_success()
        with pytest.raises(ValueError):
            response.to_access_token()
