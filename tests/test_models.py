"""Tests for models — token parsing leniency, challenge rendering, session defaults."""
from datetime import datetime, timedelta

import pytest

from wallet_bind.exceptions import ParseError, ServerError
from wallet_bind.models.auth import (
    DEFAULT_EXPIRES_IN, StoredCredentials, TokenResponse, parse_token,
)
from wallet_bind.models.challenge import ChallengeTemplate, parse_challenge
from wallet_bind.models.session import BindingSession, BindingState, ErrorInfo


# ── parse_token ──────────────────────────────────────────────────────

def test_token_expires_in_numeric_string():
    token = parse_token({"access_token": "a", "refresh_token": "b", "expires_in": "120"})
    assert token.expires_in == 120


def test_token_expires_in_bogus_falls_back():
    token = parse_token({"access_token": "a", "refresh_token": "b", "expires_in": "bogus"})
    assert token.expires_in == 3600


def test_token_expires_in_wrong_shape_falls_back():
    for value in (None, 12.5, [], {"s": 1}, True):
        token = parse_token({"access_token": "a", "refresh_token": "b", "expires_in": value})
        assert token.expires_in == DEFAULT_EXPIRES_IN


def test_token_expires_in_missing_defaults():
    token = parse_token({"access_token": "a", "refresh_token": "b"})
    assert token.expires_in == 3600


def test_token_expires_in_int():
    token = parse_token({"access_token": "a", "refresh_token": "b", "expires_in": 7200})
    assert token.expires_in == 7200


def test_token_missing_refresh_token():
    with pytest.raises(ParseError):
        parse_token({"access_token": "a", "expires_in": 3600})


def test_token_missing_access_token():
    with pytest.raises(ParseError, match="access_token"):
        parse_token({"refresh_token": "b"})


def test_token_non_string_access_token():
    with pytest.raises(ParseError):
        parse_token({"access_token": 123, "refresh_token": "b"})


def test_token_not_an_object():
    with pytest.raises(ParseError):
        parse_token(["access_token", "a"])


def test_parse_error_is_not_server_error():
    with pytest.raises(ParseError) as exc_info:
        parse_token({})
    assert not isinstance(exc_info.value, ServerError)
    assert exc_info.value.kind == "parse"


def test_token_type_defaults_to_bearer():
    assert parse_token({"access_token": "a", "refresh_token": "b"}).token_type == "Bearer"
    assert parse_token(
        {"access_token": "a", "refresh_token": "b", "token_type": None}
    ).token_type == "Bearer"


def test_token_type_kept():
    token = parse_token({"access_token": "a", "refresh_token": "b", "token_type": "mac"})
    assert token.token_type == "mac"


def test_user_id_int_or_string():
    assert parse_token({"access_token": "a", "refresh_token": "b", "user_id": 42}).user_id == 42
    assert parse_token({"access_token": "a", "refresh_token": "b", "user_id": "42"}).user_id == 42


def test_user_id_unparseable_is_none():
    assert parse_token({"access_token": "a", "refresh_token": "b", "user_id": "abc"}).user_id is None
    assert parse_token({"access_token": "a", "refresh_token": "b"}).user_id is None


def test_optional_descriptors():
    token = parse_token({
        "access_token": "a",
        "refresh_token": "b",
        "scope": "wallet:read",
        "wallet_address": "W1",
        "is_new_user": True,
    })
    assert token.scope == "wallet:read"
    assert token.wallet_address == "W1"
    assert token.is_new_user is True


def test_is_new_user_lenient():
    assert parse_token({"access_token": "a", "refresh_token": "b", "is_new_user": "1"}).is_new_user is True
    assert parse_token({"access_token": "a", "refresh_token": "b", "is_new_user": "maybe"}).is_new_user is None


# ── StoredCredentials ────────────────────────────────────────────────

def test_stored_credentials_expiry():
    now = datetime(2026, 1, 1, 12, 0, 0)
    token = TokenResponse(access_token="a", refresh_token="b", expires_in=120)
    creds = StoredCredentials.from_token(token, "W1", now=now)
    assert creds.expires_at == now + timedelta(seconds=120)
    assert creds.wallet_address == "W1"
    assert creds.is_new_user is False


def test_stored_credentials_prefers_server_wallet():
    token = TokenResponse(access_token="a", refresh_token="b", wallet_address="SERVER")
    assert StoredCredentials.from_token(token, "LOCAL").wallet_address == "SERVER"


# ── ChallengeTemplate ────────────────────────────────────────────────

def test_challenge_aliases():
    challenge = parse_challenge({
        "nonce": "N1",
        "messageTemplate": "Bind {walletAddress}/{nonce}",
        "issuedAt": "T1",
        "expireAt": "T2",
        "domain": "game.test",
    })
    assert challenge.message_template == "Bind {walletAddress}/{nonce}"
    assert challenge.issued_at == "T1"
    assert challenge.expire_at == "T2"


def test_challenge_renders_template():
    challenge = ChallengeTemplate(nonce="N1", messageTemplate="Bind {walletAddress}/{nonce}")
    assert challenge.render_for("W1") == "Bind W1/N1"


def test_challenge_literal_message_verbatim():
    challenge = ChallengeTemplate(nonce="N1", message="Literal", messageTemplate="Bind {nonce}")
    assert challenge.render_for("W1") == "Literal"


def test_challenge_numeric_timestamps():
    challenge = parse_challenge({"nonce": "N1", "messageTemplate": "{issuedAt}", "issuedAt": 1700000000})
    assert challenge.render_for("W1") == "1700000000"


def test_challenge_without_message_or_template():
    with pytest.raises(ParseError):
        ChallengeTemplate(nonce="N1").render_for("W1")


def test_challenge_missing_nonce():
    with pytest.raises(ParseError, match="nonce"):
        parse_challenge({"messageTemplate": "x"})


def test_challenge_not_an_object():
    with pytest.raises(ParseError):
        parse_challenge("N1")


# ── BindingSession ───────────────────────────────────────────────────

def test_session_defaults():
    session = BindingSession()
    assert session.state is BindingState.IDLE
    assert session.is_pending is False
    assert session.nonce is None
    assert len(session.attempt_id) == 16


def test_session_attempt_ids_differ():
    assert BindingSession().attempt_id != BindingSession().attempt_id


def test_session_json_roundtrip_keeps_enums():
    session = BindingSession(
        state=BindingState.FAILED,
        failed_from=BindingState.NONCE_REQUESTED,
        last_error=ErrorInfo(kind="server", message="nonce expired", status_code=400),
    )
    restored = BindingSession(**session.model_dump(mode="json"))
    assert restored.state is BindingState.FAILED
    assert restored.failed_from is BindingState.NONCE_REQUESTED
    assert restored.last_error.status_code == 400


def test_error_info_stringifies_numeric_code():
    info = ErrorInfo.from_exception(ServerError("wallet banned", error_code=1001))
    assert info.error_code == "1001"
    assert info.message == "wallet banned"
