"""Auth-related data models."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from wallet_bind.exceptions import ParseError

# Assume a short-lived token when the server sends an unusable expires_in
DEFAULT_EXPIRES_IN = 3600


def _to_int(value: Any) -> int | None:
    """Accept a native int or a numeric string, anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


class TokenResponse(BaseModel):
    """Response from the backend token endpoint."""
    access_token: str = Field(min_length=1)
    refresh_token: str = Field(min_length=1)
    expires_in: int = DEFAULT_EXPIRES_IN
    token_type: str = "Bearer"
    scope: str | None = None
    user_id: int | None = None
    wallet_address: str | None = None
    is_new_user: bool | None = None

    @field_validator("expires_in", mode="before")
    @classmethod
    def _lenient_expires_in(cls, value: Any) -> int:
        coerced = _to_int(value)
        return DEFAULT_EXPIRES_IN if coerced is None else coerced

    @field_validator("user_id", mode="before")
    @classmethod
    def _lenient_user_id(cls, value: Any) -> int | None:
        return _to_int(value)

    @field_validator("token_type", mode="before")
    @classmethod
    def _default_token_type(cls, value: Any) -> str:
        if isinstance(value, str) and value:
            return value
        return "Bearer"

    @field_validator("is_new_user", mode="before")
    @classmethod
    def _lenient_is_new_user(cls, value: Any) -> bool | None:
        if isinstance(value, bool):
            return value
        if value in (1, "1", "true", "True"):
            return True
        if value in (0, "0", "false", "False"):
            return False
        return None


def parse_token(data: Any) -> TokenResponse:
    """Decode a token payload, raising ParseError when required fields are bad."""
    if not isinstance(data, dict):
        raise ParseError(f"Token response is not an object: {type(data).__name__}")
    try:
        return TokenResponse.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ParseError(f"Malformed token response ({fields})") from e


class TokenStatus(BaseModel):
    """Current state of the stored access token."""
    has_token: bool
    is_expired: bool
    expires_at: datetime | None = None
    seconds_remaining: int | None = None
    wallet_address: str | None = None


class StoredCredentials(BaseModel):
    """Token grant as persisted by the credential store."""
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_at: datetime | None = None
    scope: str | None = None
    wallet_address: str | None = None
    user_id: int | None = None
    is_new_user: bool = False

    @classmethod
    def from_token(
        cls,
        token: TokenResponse,
        wallet_address: str | None = None,
        now: datetime | None = None,
    ) -> StoredCredentials:
        issued = now or datetime.now()
        return cls(
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            token_type=token.token_type,
            expires_at=issued + timedelta(seconds=token.expires_in),
            scope=token.scope,
            wallet_address=token.wallet_address or wallet_address,
            user_id=token.user_id,
            is_new_user=bool(token.is_new_user),
        )
