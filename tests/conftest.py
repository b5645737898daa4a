"""Shared fixtures for the wallet-bind test suite."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from wallet_bind.config import Config, Settings, WalletProfile
from wallet_bind.models.auth import TokenResponse
from wallet_bind.models.challenge import ChallengeTemplate
from wallet_bind.services.credential_store import CredentialStore
from wallet_bind.services.session_store import SessionStore
from wallet_bind.services.wallet_links import WalletLinkBuilder


@pytest.fixture
def fake_settings(tmp_path) -> Settings:
    return Settings(
        api_base_url="https://api.test.local",
        client_id="test-client",
        scope="wallet:read wallet:write",
        app_url="https://game.test.local",
        redirect_scheme="testgame",
        cluster="devnet",
        state_dir=str(tmp_path / "state"),
        http_timeout=5.0,
        callback_timeout=0,
        cold_start_grace_ms=500,
        default_wallet="phantom",
    )


@pytest.fixture
def fake_wallets() -> dict[str, WalletProfile]:
    return {
        "phantom": WalletProfile(
            name="phantom",
            connect_url="https://wallet.test/phantom/v1/connect",
            sign_url="https://wallet.test/phantom/v1/signMessage",
            provider_name="Phantom",
        ),
        "solflare": WalletProfile(
            name="solflare",
            connect_url="https://wallet.test/solflare/v1/connect",
            sign_url="https://wallet.test/solflare/v1/signMessage",
            provider_name="Solflare",
        ),
    }


@pytest.fixture
def fake_config(fake_settings, fake_wallets) -> Config:
    return Config(settings=fake_settings, wallets=fake_wallets)


@pytest.fixture
def links(fake_config) -> WalletLinkBuilder:
    return WalletLinkBuilder(fake_config)


@pytest.fixture
def session_store(fake_settings) -> SessionStore:
    return SessionStore(fake_settings.state_dir)


@pytest.fixture
def credential_store(fake_settings) -> CredentialStore:
    return CredentialStore(fake_settings.state_dir)


@pytest.fixture
def mock_client():
    """MagicMock standing in for BackendAuthClient."""
    client = MagicMock()
    client.request_nonce.return_value = ChallengeTemplate(
        nonce="N1", messageTemplate="Bind {walletAddress}/{nonce}"
    )
    client.exchange_signature.return_value = TokenResponse(
        access_token="A", refresh_token="B", expires_in=3600
    )
    client.close = MagicMock()
    return client
