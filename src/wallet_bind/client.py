"""HTTP client for the game backend's wallet auth endpoints.

Single-shot calls: no retries and no caching. Transport failures, rejected
requests and undecodable bodies surface as distinct exception types.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from wallet_bind.config import Config
from wallet_bind.exceptions import NetworkError, ParseError, ServerError
from wallet_bind.models.auth import TokenResponse, parse_token
from wallet_bind.models.challenge import ChallengeTemplate, parse_challenge

logger = logging.getLogger(__name__)

NONCE_PATH = "/Api/Wallet/GetBindNonce"
TOKEN_PATH = "/oauth/token"


def _is_success_envelope(body: dict[str, Any]) -> bool:
    return body.get("ret") == 1 or body.get("success") is True


def _error_detail(body: dict[str, Any], fallback: str) -> str:
    detail = body.get("msg") or body.get("message") or body.get("error_description") or fallback
    return str(detail)


def _error_code(body: dict[str, Any]) -> str | None:
    # Some endpoints send numeric codes
    code = body.get("error")
    return None if code is None else str(code)


class BackendAuthClient:
    """Nonce request and token exchange against the game backend."""

    def __init__(self, config: Config, verbose: bool = False) -> None:
        self._config = config
        self._verbose = verbose
        self._http = httpx.Client(timeout=config.settings.http_timeout)

    def request_nonce(self, wallet_address: str) -> ChallengeTemplate:
        """Ask the backend for a fresh challenge scoped to a wallet.

        Raises:
            NetworkError: Transport failure.
            ServerError: HTTP error or a failure envelope.
            ParseError: Body is not the expected JSON shape.
        """
        logger.info(f"Requesting bind nonce for {wallet_address}")
        body = self._post(
            NONCE_PATH,
            {
                "client_id": self._config.settings.client_id,
                "wallet_address": wallet_address,
            },
        )
        if _is_success_envelope(body) and body.get("data") is not None:
            return parse_challenge(body["data"])
        raise ServerError(
            _error_detail(body, "Failed to get nonce"),
            error_code=_error_code(body),
        )

    def exchange_signature(
        self,
        wallet_address: str,
        nonce: str,
        signature: str,
        *,
        message: str | None = None,
        wallet_provider: str | None = None,
    ) -> TokenResponse:
        """Trade a signed challenge for a token grant.

        Args:
            wallet_address: Address the wallet reported on connect.
            nonce: Nonce the signed message was rendered from.
            signature: Signature returned by the wallet.
            message: The exact signed text, sent so the server can verify it.
            wallet_provider: Display name of the wallet (e.g. "Phantom").

        Returns:
            The parsed token grant.
        """
        logger.info(f"Exchanging signature for {wallet_address}")
        data = {
            "grant_type": "wallet_signature",
            "client_id": self._config.settings.client_id,
            "wallet_address": wallet_address,
            "nonce": nonce,
            "signature": signature,
            "scope": self._config.settings.scope,
        }
        if message is not None:
            data["message"] = message
        if wallet_provider:
            data["wallet_provider"] = wallet_provider
        return self._token_from(self._post(TOKEN_PATH, data), "Token request failed")

    def refresh_token(self, refresh_token: str) -> TokenResponse:
        """Exchange a refresh token for a new grant."""
        body = self._post(
            TOKEN_PATH,
            {
                "grant_type": "refresh_token",
                "client_id": self._config.settings.client_id,
                "refresh_token": refresh_token,
            },
        )
        return self._token_from(body, "Token refresh failed")

    def _token_from(self, body: dict[str, Any], fallback: str) -> TokenResponse:
        """Accept both the {ret, data} envelope and a bare OAuth body."""
        if body.get("ret") == 1 and body.get("data") is not None:
            return parse_token(body["data"])
        if "access_token" in body:
            return parse_token(body)
        raise ServerError(_error_detail(body, fallback), error_code=_error_code(body))

    def _post(self, path: str, data: dict[str, str]) -> dict[str, Any]:
        url = self._config.settings.api_base_url.rstrip("/") + path

        try:
            response = self._http.post(
                url,
                data=data,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Request to {path} failed: {e}") from e

        if self._verbose:
            logger.info(f"POST {path} -> {response.status_code}")

        if response.status_code >= 400:
            error_detail = response.text
            error_code = None
            try:
                error_json = response.json()
                error_detail = _error_detail(error_json, response.text)
                error_code = _error_code(error_json)
            except Exception:
                pass
            raise ServerError(
                f"API error (HTTP {response.status_code}): {error_detail}",
                status_code=response.status_code,
                error_code=error_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ParseError(f"Response from {path} is not JSON") from e
        if not isinstance(body, dict):
            raise ParseError(f"Response from {path} is not a JSON object")
        logger.debug(f"POST {path} body keys: {sorted(body.keys())}")
        return body

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()
