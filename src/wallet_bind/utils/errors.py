"""Structured error reporting for the CLI."""

from __future__ import annotations

import json
import sys

from rich.console import Console

from wallet_bind.exceptions import BindingError

console = Console(stderr=True)

_ERROR_CODES = {
    "wallet": "WALLET_ERROR",
    "timeout": "TIMEOUT",
    "network": "NETWORK_ERROR",
    "server": "SERVER_ERROR",
    "parse": "PARSE_ERROR",
    "state_conflict": "STATE_CONFLICT",
}

_KIND_HINTS = {
    "network": "Could not reach the backend, check network connectivity",
    "timeout": "The wallet did not answer, run `wallet-bind bind retry`",
}

# Actionable hints keyed by error substring
_ERROR_HINTS: list[tuple[str, str]] = [
    ("nonce", "The challenge expired or was already used, run `wallet-bind bind retry`"),
    ("signature", "The wallet signature was rejected, run `wallet-bind bind retry`"),
    ("invalid_grant", "The session was revoked, bind the wallet again"),
    ("401", "Token may be expired, run `wallet-bind auth token --refresh`"),
    ("already pending", "Finish or cancel the pending request with `wallet-bind bind cancel`"),
    ("cannot start binding", "Run `wallet-bind bind retry` or `wallet-bind bind reset` first"),
    ("unknown wallet", "Check config/wallets.yaml"),
    ("timeout", "Request timed out, try again or check network connectivity"),
    ("timed out", "Request timed out, try again or check network connectivity"),
    ("connect", "Connection error, check network connectivity"),
]


def _get_hint(error_message: str) -> str | None:
    """Match an error message to an actionable hint."""
    lower = error_message.lower()
    for pattern, hint in _ERROR_HINTS:
        if pattern.lower() in lower:
            return hint
    return None


def error_code(error: Exception) -> str:
    if isinstance(error, BindingError):
        return _ERROR_CODES.get(error.kind, "RUNTIME_ERROR")
    return "RUNTIME_ERROR"


def handle_error(error: Exception) -> None:
    """Report an error as JSON on stdout and as readable text on stderr.

    stdout gets ``{"error": true, "code": "...", "message": "...", "hint": "..."}``.
    """
    message = str(error)
    hint = None
    if isinstance(error, BindingError):
        hint = _KIND_HINTS.get(error.kind)
    hint = hint or _get_hint(message)

    error_obj: dict[str, object] = {
        "error": True,
        "code": error_code(error),
        "message": message,
    }
    if isinstance(error, BindingError) and error.status_code is not None:
        error_obj["status_code"] = error.status_code
    if hint:
        error_obj["hint"] = hint

    json.dump(error_obj, sys.stdout)
    sys.stdout.write("\n")

    console.print(f"[red]Error:[/red] {message}")
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")
