"""Binding session and deep-link event models."""

from __future__ import annotations

import secrets
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from wallet_bind.exceptions import BindingError


class BindingState(str, Enum):
    IDLE = "idle"
    CONNECT_REQUESTED = "connect_requested"
    CONNECTED = "connected"
    NONCE_REQUESTED = "nonce_requested"
    SIGNING_REQUESTED = "signing_requested"
    SIGNED = "signed"
    EXCHANGING_TOKEN = "exchanging_token"
    BOUND = "bound"
    FAILED = "failed"


# States reached after the wallet reported its address
CONNECTED_STATES = frozenset({
    BindingState.CONNECTED,
    BindingState.NONCE_REQUESTED,
    BindingState.SIGNING_REQUESTED,
    BindingState.SIGNED,
    BindingState.EXCHANGING_TOKEN,
    BindingState.BOUND,
})


class LinkKind(str, Enum):
    WALLET_CONNECT = "wallet_connect_callback"
    WALLET_SIGN = "wallet_sign_callback"
    UNRECOGNIZED = "unrecognized"


class LinkOrigin(str, Enum):
    COLD_START = "cold_start"
    LIVE = "live"


class ErrorInfo(BaseModel):
    """Serializable descriptor of the error that failed a session."""
    kind: str
    message: str
    status_code: int | None = None
    error_code: str | None = None

    @field_validator("message", "error_code", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @classmethod
    def from_exception(cls, error: BindingError) -> ErrorInfo:
        return cls(
            kind=error.kind,
            message=error.message,
            status_code=error.status_code,
            error_code=error.error_code,
        )


def _new_attempt_id() -> str:
    return secrets.token_hex(8)


class BindingSession(BaseModel):
    """One wallet-binding attempt, persisted across process restarts."""
    state: BindingState = BindingState.IDLE
    attempt_id: str = Field(default_factory=_new_attempt_id)
    wallet_address: str | None = None
    wallet_name: str | None = None
    nonce: str | None = None
    challenge_message: str | None = None
    signature: str | None = None
    pending_connect_result: bool = False
    pending_sign_result: bool = False
    pending_since: float | None = None
    last_error: ErrorInfo | None = None
    failed_from: BindingState | None = None
    # Attempt the user abandoned; its late callbacks are ignored
    cancelled_attempt: str | None = None
    retired_nonces: list[str] = Field(default_factory=list)
    updated_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.pending_connect_result or self.pending_sign_result


class DeepLinkEvent(BaseModel):
    """A classified OS-delivered URI."""
    kind: LinkKind
    uri: str
    origin: LinkOrigin = LinkOrigin.LIVE
    params: dict[str, str] = Field(default_factory=dict)

    @property
    def wallet_address(self) -> str | None:
        for key in ("public_key", "address", "wallet_address"):
            if self.params.get(key):
                return self.params[key]
        return None

    @property
    def signature(self) -> str | None:
        return self.params.get("signature") or None

    @property
    def bind_nonce(self) -> str | None:
        return self.params.get("bind_nonce") or None

    @property
    def error_code(self) -> str | None:
        return self.params.get("errorCode") or None

    @property
    def error_message(self) -> str | None:
        return self.params.get("errorMessage") or None

    @property
    def has_error(self) -> bool:
        return self.error_code is not None or self.error_message is not None
