"""Tests for auth.py — grant storage, expiry buffer, refresh, unbind."""
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from wallet_bind.auth import EXPIRY_BUFFER, AuthManager
from wallet_bind.exceptions import NetworkError, ParseError, ServerError
from wallet_bind.models.auth import StoredCredentials, TokenResponse


def _token(access="A", refresh="B", expires_in=3600):
    return TokenResponse(access_token=access, refresh_token=refresh, expires_in=expires_in)


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def auth(client, credential_store):
    return AuthManager(client, credential_store)


def _seed(store, expires_at, wallet="W1"):
    store.save(StoredCredentials(
        access_token="old", refresh_token="r-old", expires_at=expires_at, wallet_address=wallet,
    ))


# ── store_grant ──────────────────────────────────────────────────────

def test_store_grant_persists(auth, credential_store):
    auth.store_grant(_token(), "W1")
    loaded = credential_store.load()
    assert loaded.access_token == "A"
    assert loaded.wallet_address == "W1"
    assert auth.is_bound is True


def test_store_grant_supersedes(auth, credential_store):
    auth.store_grant(TokenResponse(access_token="A", refresh_token="B", user_id=5), "W1")
    auth.store_grant(_token("A2", "B2"), "W1")
    loaded = credential_store.load()
    assert loaded.access_token == "A2"
    assert loaded.user_id is None


def test_not_bound_initially(auth):
    assert auth.is_bound is False
    assert auth.get_access_token() is None


def test_loads_existing_grant(client, credential_store):
    _seed(credential_store, datetime.now() + timedelta(hours=1))
    auth = AuthManager(client, credential_store)
    assert auth.is_bound is True
    assert auth.get_access_token() == "old"
    client.refresh_token.assert_not_called()


# ── refresh ──────────────────────────────────────────────────────────

def test_token_within_buffer_triggers_refresh(client, credential_store):
    _seed(credential_store, datetime.now() + EXPIRY_BUFFER - timedelta(minutes=1))
    client.refresh_token.return_value = _token("fresh", "r-new")
    auth = AuthManager(client, credential_store)

    assert auth.get_access_token() == "fresh"
    client.refresh_token.assert_called_once_with("r-old")
    assert credential_store.load().refresh_token == "r-new"
    assert credential_store.load().wallet_address == "W1"


def test_force_refresh(client, credential_store):
    _seed(credential_store, datetime.now() + timedelta(hours=1))
    client.refresh_token.return_value = _token("forced")
    auth = AuthManager(client, credential_store)
    assert auth.get_access_token(force_refresh=True) == "forced"


def test_no_expiry_assumed_valid(client, credential_store):
    _seed(credential_store, None)
    auth = AuthManager(client, credential_store)
    assert auth.get_access_token() == "old"


def test_revoked_refresh_unbinds(client, credential_store):
    _seed(credential_store, datetime.now() - timedelta(minutes=1))
    client.refresh_token.side_effect = ServerError("revoked", status_code=400, error_code="invalid_grant")
    auth = AuthManager(client, credential_store)

    assert auth.get_access_token() is None
    assert auth.is_bound is False
    assert credential_store.load() is None


def test_unauthorized_refresh_unbinds(client, credential_store):
    _seed(credential_store, datetime.now() - timedelta(minutes=1))
    client.refresh_token.side_effect = ServerError("nope", status_code=401)
    auth = AuthManager(client, credential_store)
    assert auth.get_access_token() is None
    assert credential_store.load() is None


def test_other_refresh_failure_keeps_grant(client, credential_store):
    _seed(credential_store, datetime.now() - timedelta(minutes=1))
    client.refresh_token.side_effect = ServerError("maintenance", status_code=503)
    auth = AuthManager(client, credential_store)
    assert auth.get_access_token() is None
    assert credential_store.load() is not None


def test_network_failure_keeps_grant(client, credential_store):
    _seed(credential_store, datetime.now() - timedelta(minutes=1))
    client.refresh_token.side_effect = NetworkError("offline")
    auth = AuthManager(client, credential_store)
    assert auth.get_access_token() is None
    assert credential_store.load() is not None
    assert auth.get_status().has_token is True


def test_malformed_refresh_response_keeps_grant(client, credential_store):
    _seed(credential_store, datetime.now() - timedelta(minutes=1))
    client.refresh_token.side_effect = ParseError("Malformed token response (access_token)")
    auth = AuthManager(client, credential_store)
    assert auth.get_access_token() is None
    assert credential_store.load() is not None


# ── status / unbind ──────────────────────────────────────────────────

def test_status_no_token(auth):
    status = auth.get_status()
    assert status.has_token is False
    assert status.is_expired is True
    assert status.seconds_remaining is None


def test_status_valid_token(client, credential_store):
    _seed(credential_store, datetime.now() + timedelta(hours=1))
    status = AuthManager(client, credential_store).get_status()
    assert status.has_token is True
    assert status.is_expired is False
    assert status.seconds_remaining > 0
    assert status.wallet_address == "W1"


def test_status_expired_token(client, credential_store):
    _seed(credential_store, datetime.now() - timedelta(hours=1))
    status = AuthManager(client, credential_store).get_status()
    assert status.is_expired is True


def test_unbind(auth, credential_store):
    auth.store_grant(_token(), "W1")
    auth.unbind()
    assert auth.is_bound is False
    assert credential_store.load() is None
