"""Outbound deep links that hand control to the wallet application."""

from __future__ import annotations

import base64
from urllib.parse import urlencode

from wallet_bind.config import Config, WalletProfile

CONNECT_CALLBACK = "onconnect"
SIGN_CALLBACK = "onsignmessage"


class WalletLinkBuilder:
    """Builds connect and sign-message links for one wallet profile.

    The wallet answers by opening ``redirect_link`` with its result appended as
    query parameters. The sign redirect carries the challenge nonce so the
    callback can be matched to the attempt that asked for it. Parameters are
    plaintext on both legs; ``config/wallets.yaml`` lists the full contract.
    """

    def __init__(self, config: Config, wallet: str | None = None) -> None:
        self._settings = config.settings
        self._profile = config.get_wallet(wallet)

    @property
    def profile(self) -> WalletProfile:
        return self._profile

    def callback_uri(self, action: str, **params: str) -> str:
        uri = f"{self._settings.redirect_scheme}://{action}"
        if params:
            uri += "?" + urlencode(params)
        return uri

    def connect_link(self) -> str:
        query = {
            "app_url": self._settings.app_url,
            "cluster": self._settings.cluster,
            "redirect_link": self.callback_uri(CONNECT_CALLBACK),
        }
        return f"{self._profile.connect_url}?{urlencode(query)}"

    def sign_link(self, message: str, nonce: str, wallet_address: str) -> str:
        encoded = base64.urlsafe_b64encode(message.encode("utf-8")).decode("ascii")
        query = {
            "app_url": self._settings.app_url,
            "cluster": self._settings.cluster,
            "public_key": wallet_address,
            "display": "utf8",
            "message": encoded,
            "redirect_link": self.callback_uri(SIGN_CALLBACK, bind_nonce=nonce),
        }
        return f"{self._profile.sign_url}?{urlencode(query)}"


def decode_message(encoded: str) -> str:
    """Inverse of the message encoding used in sign links."""
    padded = encoded + "=" * (-len(encoded) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
