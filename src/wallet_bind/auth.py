"""Token lifecycle for a bound wallet account.

Handles storing the grant, expiry tracking and proactive refresh.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from wallet_bind.client import BackendAuthClient
from wallet_bind.exceptions import BindingError, ServerError
from wallet_bind.models.auth import StoredCredentials, TokenResponse, TokenStatus
from wallet_bind.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


# Refresh when the access token has less than this left
EXPIRY_BUFFER = timedelta(minutes=5)


class AuthManager:
    """Manages the backend session grant of the bound wallet."""

    def __init__(self, client: BackendAuthClient, store: CredentialStore) -> None:
        self._client = client
        self._store = store
        self._credentials: StoredCredentials | None = store.load()

    @property
    def is_bound(self) -> bool:
        return self._credentials is not None and bool(self._credentials.wallet_address)

    @property
    def credentials(self) -> StoredCredentials | None:
        return self._credentials

    def store_grant(self, token: TokenResponse, wallet_address: str | None = None) -> StoredCredentials:
        """Replace the stored grant with a freshly issued one."""
        self._credentials = StoredCredentials.from_token(token, wallet_address)
        self._store.save(self._credentials)
        logger.info(f"Stored grant for {self._credentials.wallet_address}")
        return self._credentials

    def get_access_token(self, force_refresh: bool = False) -> str | None:
        """Get a valid access token, refreshing if needed.

        Returns:
            The access token, or None when not bound or the refresh failed.
        """
        if self._credentials is None:
            return None
        if not force_refresh and self._is_token_valid():
            return self._credentials.access_token
        if not self._refresh():
            return None
        return self._credentials.access_token

    def get_status(self) -> TokenStatus:
        """Get the current token status."""
        creds = self._credentials
        if creds is None:
            return TokenStatus(has_token=False, is_expired=True)

        now = datetime.now()
        is_expired = creds.expires_at is not None and now > creds.expires_at
        seconds_remaining = None
        if creds.expires_at and not is_expired:
            seconds_remaining = int((creds.expires_at - now).total_seconds())

        return TokenStatus(
            has_token=True,
            is_expired=is_expired,
            expires_at=creds.expires_at,
            seconds_remaining=seconds_remaining,
            wallet_address=creds.wallet_address,
        )

    def unbind(self) -> None:
        """Forget the grant."""
        self._store.clear()
        self._credentials = None

    def _is_token_valid(self) -> bool:
        """Check if the current token is valid with a safety buffer."""
        if self._credentials is None:
            return False
        # No expiry info, assume valid
        if self._credentials.expires_at is None:
            return True
        return datetime.now() + EXPIRY_BUFFER < self._credentials.expires_at

    def _refresh(self) -> bool:
        """Refresh the access token using the refresh token flow."""
        if self._credentials is None:
            return False
        wallet_address = self._credentials.wallet_address
        try:
            token = self._client.refresh_token(self._credentials.refresh_token)
        except ServerError as e:
            logger.warning(f"Token refresh rejected: {e}")
            if e.status_code == 401 or e.error_code == "invalid_grant":
                self.unbind()
            return False
        except BindingError as e:
            # Transient: keep the grant for the next attempt
            logger.warning(f"Token refresh failed: {e}")
            return False
        self.store_grant(token, wallet_address)
        return True
