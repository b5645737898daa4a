"""Error taxonomy for the wallet-binding flow.

Every failure the flow can hit maps onto one of these classes. The state
machine records them on the session as ``last_error``; only ``StateConflict``
raised by ``request_connect`` ever escapes to the caller.
"""

from __future__ import annotations


class BindingError(RuntimeError):
    """Base error for the binding flow."""

    kind = "runtime"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code


class WalletError(BindingError):
    """The wallet reported a failure or the user cancelled in the wallet."""

    kind = "wallet"


class CallbackTimeout(BindingError):
    """No wallet callback arrived within the configured bound."""

    kind = "timeout"


class NetworkError(BindingError):
    """Transport failure talking to the backend."""

    kind = "network"


class ServerError(BindingError):
    """The backend rejected the request (expired nonce, bad signature, ...)."""

    kind = "server"


class ParseError(BindingError):
    """A backend response could not be decoded into the expected shape."""

    kind = "parse"


class StateConflict(BindingError):
    """An event or action does not fit the current session."""

    kind = "state_conflict"


_USER_MESSAGES = {
    "wallet": "The wallet did not approve the request",
    "timeout": "The wallet did not respond in time",
    "network": "Could not reach the game server",
    "server": "The game server rejected the binding",
    "parse": "The game server sent an unexpected response",
    "state_conflict": "Another binding attempt is already in progress",
}


def user_message(kind: str, detail: str | None = None) -> str:
    """Human-readable reason for a failed binding."""
    base = _USER_MESSAGES.get(kind, "Binding failed")
    if detail:
        return f"{base}: {detail}"
    return base
