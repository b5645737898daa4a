"""Configuration management for the wallet-bind client.

Loads settings from .env / environment and wallet profiles from wallets.yaml.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from dotenv import load_dotenv


class WalletProfile(BaseModel):
    """Deep-link endpoints of one wallet application."""
    name: str
    connect_url: str
    sign_url: str
    provider_name: str


class Settings(BaseModel):
    """Application settings loaded from environment variables."""
    api_base_url: str = Field(default="https://api.cyberblockx.com", description="Game backend base URL")
    client_id: str = Field(default="cyberblockx_game", description="OAuth client ID of the game")
    scope: str = Field(default="wallet:read wallet:write", description="Scope requested on token exchange")
    app_url: str = Field(default="https://cyberblockx.com", description="App URL shown by the wallet")
    redirect_scheme: str = Field(default="cyberblockx", description="URI scheme wallet callbacks return on")
    cluster: str = Field(default="mainnet-beta", description="Chain cluster passed to the wallet")
    state_dir: str = Field(default="./data", description="Directory for session and credential files")
    http_timeout: float = Field(default=30.0, description="Backend request timeout in seconds")
    callback_timeout: int = Field(default=0, description="Seconds to wait for a wallet callback, 0 disables")
    cold_start_grace_ms: int = Field(default=500, description="Grace period for unclaimed cold-start links")
    default_wallet: str = Field(default="phantom", description="Wallet profile used when none is given")


class Config(BaseModel):
    """Full application configuration."""
    settings: Settings
    wallets: dict[str, WalletProfile]

    def get_wallet(self, name: str | None = None) -> WalletProfile:
        """Get a wallet profile by name (case-insensitive)."""
        key = (name or self.settings.default_wallet).lower()
        if key not in self.wallets:
            available = ", ".join(sorted(self.wallets.keys()))
            raise ValueError(f"Unknown wallet '{key}'. Available: {available}")
        return self.wallets[key]

    @property
    def all_wallets(self) -> list[str]:
        """List all configured wallet names."""
        return sorted(self.wallets.keys())


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (where config/ lives)."""
    current = Path(__file__).resolve().parent
    for parent in [current, *current.parents]:
        if (parent / "config" / "wallets.yaml").exists():
            return parent
    # Fallback: cwd
    return Path.cwd()


def _load_wallets(project_root: Path) -> dict[str, WalletProfile]:
    """Load wallet profiles from wallets.yaml."""
    wallets_path = project_root / "config" / "wallets.yaml"
    if not wallets_path.exists():
        raise FileNotFoundError(f"Wallet config not found at {wallets_path}")

    with open(wallets_path) as f:
        data = yaml.safe_load(f) or {}

    wallets = {}
    for name, profile_data in data.get("wallets", {}).items():
        wallets[name.lower()] = WalletProfile(name=name.lower(), **profile_data)
    return wallets


def _env(*keys: str, default: str = "") -> str:
    """Try multiple env var names, return the first one found."""
    for key in keys:
        val = os.environ.get(key, "")
        if val:
            return val.strip().strip('"')
    return default


def _load_settings() -> Settings:
    """Load settings from environment variables.

    Supports both WALLET_BIND_* and the game's CYBERBLOCKX_* names.
    """
    return Settings(
        api_base_url=_env("WALLET_BIND_API_BASE_URL", "CYBERBLOCKX_API_BASE_URL", default="https://api.cyberblockx.com"),
        client_id=_env("WALLET_BIND_CLIENT_ID", "CYBERBLOCKX_CLIENT_ID", default="cyberblockx_game"),
        scope=_env("WALLET_BIND_SCOPE", default="wallet:read wallet:write"),
        app_url=_env("WALLET_BIND_APP_URL", default="https://cyberblockx.com"),
        redirect_scheme=_env("WALLET_BIND_REDIRECT_SCHEME", default="cyberblockx"),
        cluster=_env("WALLET_BIND_CLUSTER", default="mainnet-beta"),
        state_dir=_env("WALLET_BIND_STATE_DIR", default="./data"),
        http_timeout=float(_env("WALLET_BIND_HTTP_TIMEOUT", default="30")),
        callback_timeout=int(_env("WALLET_BIND_CALLBACK_TIMEOUT", default="0")),
        cold_start_grace_ms=int(_env("WALLET_BIND_COLD_START_GRACE_MS", default="500")),
        default_wallet=_env("WALLET_BIND_DEFAULT_WALLET", default="phantom").lower(),
    )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Load and cache the full application configuration."""
    project_root = _find_project_root()

    # Load .env from project root if it exists
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    settings = _load_settings()
    wallets = _load_wallets(project_root)

    return Config(settings=settings, wallets=wallets)
