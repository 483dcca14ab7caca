"""Access token value and token endpoint response models."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ridekit.auth.models.scopes import Scope, parse_scopes


class AccessToken(BaseModel):
    """Immutable OAuth access token.

    Two tokens are equal when their token strings are equal; refresh token,
    expiry and scopes do not take part in comparison.
    """

    model_config = ConfigDict(frozen=True)

    token_string: str = Field(min_length=1)
    refresh_token: str | None = None
    expiration_date: datetime | None = None
    granted_scopes: frozenset[Scope] = frozenset()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccessToken):
            return NotImplemented
        return self.token_string == other.token_string

    def __hash__(self) -> int:
        return hash(self.token_string)

    def __repr__(self) -> str:
        # Keep the secret out of logs and tracebacks
        return (
            f"AccessToken(token_string='***', expiration_date={self.expiration_date!r}, "
            f"granted_scopes={sorted(s.value for s in self.granted_scopes)})"
        )

    def is_expired(self, buffer_seconds: float = 0.0) -> bool:
        """Check whether the token is past its expiry (minus a buffer)."""
        if self.expiration_date is None:
            return False
        now = datetime.now(timezone.utc)
        return now >= self.expiration_date - timedelta(seconds=buffer_seconds)

    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    @classmethod
    def from_parameters(
        cls,
        params: Mapping[str, str],
        requested_scopes: Iterable[Scope] | None = None,
    ) -> AccessToken:
        """Build a token from redirect fragment or JSON response parameters.

        Falls back to ``requested_scopes`` when the parameters carry no
        ``scope`` value.

        Raises:
            ValueError: If ``access_token`` is missing or a value is malformed
        """
        token_string = params.get("access_token")
        if not token_string:
            raise ValueError("Missing access_token")

        expiration_date = None
        expires_in = params.get("expires_in")
        if expires_in not in (None, ""):
            try:
                expiration_date = datetime.now(timezone.utc) + timedelta(
                    seconds=int(expires_in)
                )
            except (ValueError, OverflowError) as e:
                raise ValueError(f"Invalid expires_in: {expires_in!r}") from e

        scope_text = params.get("scope")
        if scope_text:
            scopes = parse_scopes(scope_text)
        else:
            scopes = frozenset(requested_scopes or ())

        try:
            return cls(
                token_string=token_string,
                refresh_token=params.get("refresh_token") or None,
                expiration_date=expiration_date,
                granted_scopes=scopes,
            )
        except ValidationError as e:
            raise ValueError(f"Invalid access token parameters: {e}") from e


class TokenResponse(BaseModel):
    """Token endpoint response, success or error (RFC 6749 Section 5)."""

    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None

    error: str | None = None
    error_description: str | None = None

    def is_success(self) -> bool:
        """Check if token response indicates success."""
        return self.error is None and self.access_token is not None

    def is_error(self) -> bool:
        """Check if token response indicates an error."""
        return self.error is not None

    def to_access_token(
        self, requested_scopes: Iterable[Scope] | None = None
    ) -> AccessToken:
        """Convert a successful response to an AccessToken.

        Raises:
            ValueError: If response is not successful
        """
        if not self.is_success():
            raise ValueError("Cannot convert error response to AccessToken")

        params = {"access_token": self.access_token}
        if self.refresh_token:
            params["refresh_token"] = self.refresh_token
        if self.expires_in is not None:
            params["expires_in"] = str(self.expires_in)
        if self.scope:
            params["scope"] = self.scope

        return AccessToken.from_parameters(params, requested_scopes)
