"""Wallet-binding state machine.

Drives one binding attempt from the "bind wallet" action to a stored token
grant:

    idle -> connect_requested -> connected -> nonce_requested
         -> signing_requested -> signed -> exchanging_token -> bound

Any step can end in ``failed``. The wallet is reached only through outbound
deep links and answers through inbound ones, so every wallet step is split in
two: emit a link and mark the round trip pending, then advance when the
matching callback event arrives. The challenge nonce is embedded in the sign
redirect and doubles as the correlation token for sign callbacks.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Callable

from wallet_bind.auth import AuthManager
from wallet_bind.client import BackendAuthClient
from wallet_bind.exceptions import (
    BindingError,
    CallbackTimeout,
    ServerError,
    StateConflict,
    WalletError,
    user_message,
)
from wallet_bind.models.auth import TokenResponse
from wallet_bind.models.session import (
    CONNECTED_STATES,
    BindingSession,
    BindingState,
    DeepLinkEvent,
    ErrorInfo,
    LinkKind,
)
from wallet_bind.services.session_store import SessionStore
from wallet_bind.services.wallet_links import WalletLinkBuilder

logger = logging.getLogger(__name__)

Launcher = Callable[[str], None]

MAX_RETIRED_NONCES = 32


def _short(value: str | None) -> str:
    if not value:
        return "<none>"
    if len(value) <= 10:
        return value
    return f"{value[:4]}...{value[-4:]}"


def _log_launch(uri: str) -> None:
    logger.info(f"Outbound wallet link: {uri}")


class WalletBindingStateMachine:
    """Owns the single binding session and every mutation of it."""

    def __init__(
        self,
        client: BackendAuthClient,
        links: WalletLinkBuilder,
        *,
        store: SessionStore | None = None,
        auth: AuthManager | None = None,
        launcher: Launcher | None = None,
        callback_timeout: int = 0,
        clock: Callable[[], float] = time.time,
        on_bind_success: Callable[[TokenResponse], None] | None = None,
        on_bind_failure: Callable[[BindingError], None] | None = None,
    ) -> None:
        self._client = client
        self._links = links
        self._store = store
        self._auth = auth
        self._launcher = launcher or _log_launch
        self._callback_timeout = callback_timeout
        self._clock = clock
        self._session = store.load() if store else BindingSession()
        self.on_bind_success: list[Callable[[TokenResponse], None]] = []
        self.on_bind_failure: list[Callable[[BindingError], None]] = []
        if on_bind_success:
            self.on_bind_success.append(on_bind_success)
        if on_bind_failure:
            self.on_bind_failure.append(on_bind_failure)

    # ── queries ───────────────────────────────────────────────────────

    @property
    def session(self) -> BindingSession:
        """A copy of the current session."""
        return self._session.model_copy(deep=True)

    @property
    def state(self) -> BindingState:
        return self._session.state

    @property
    def has_pending_connect_result(self) -> bool:
        return self._session.pending_connect_result

    @property
    def has_pending_sign_result(self) -> bool:
        return self._session.pending_sign_result

    @property
    def is_connected(self) -> bool:
        return self._session.state in CONNECTED_STATES and self._session.wallet_address is not None

    @property
    def failure_reason(self) -> str | None:
        """Human-readable reason for a failed session."""
        error = self._session.last_error
        if self._session.state is not BindingState.FAILED or error is None:
            return None
        return user_message(error.kind, error.message)

    # ── user actions ──────────────────────────────────────────────────

    def request_connect(self) -> str:
        """Start a binding attempt by asking the wallet to connect.

        Returns:
            The outbound link handed to the launcher.

        Raises:
            StateConflict: A wallet round trip is pending, or the session is
                not idle.
        """
        session = self._session
        if session.is_pending:
            raise StateConflict("A wallet request is already pending")
        if session.state is not BindingState.IDLE:
            raise StateConflict(f"Cannot start binding from state '{session.state.value}'")

        link = self._links.connect_link()
        self._transition(
            BindingState.CONNECT_REQUESTED,
            wallet_name=self._links.profile.name,
            pending_connect_result=True,
            pending_since=self._clock(),
            cancelled_attempt=None,
        )
        self._launch(link)
        return link

    def retry(self) -> None:
        """Start a new attempt after a failure.

        A failed nonce request resumes from the known wallet address with a
        fresh nonce; every other failure starts over from idle.
        """
        session = self._session
        if session.state is not BindingState.FAILED:
            raise StateConflict(f"Nothing to retry from state '{session.state.value}'")

        resume_address = None
        if session.failed_from is BindingState.NONCE_REQUESTED:
            resume_address = session.wallet_address

        self._session = BindingSession(
            wallet_name=session.wallet_name,
            retired_nonces=list(session.retired_nonces),
        )
        logger.info(f"Retrying binding as attempt {self._session.attempt_id}")
        if resume_address:
            self._connected(resume_address)
        else:
            self._save()

    def cancel(self) -> None:
        """Abandon the current attempt and return to idle.

        Links already handed to the wallet cannot be recalled. Late sign
        callbacks fail the nonce check; late connect callbacks are ignored
        until the next ``request_connect``.
        """
        session = self._session
        if session.state is BindingState.BOUND:
            logger.info("Binding already complete, nothing to cancel")
            return
        if session.state is BindingState.IDLE:
            return

        if session.nonce:
            self._retire(session.nonce)
        logger.info(f"Binding attempt {session.attempt_id} cancelled in state {session.state.value}")
        self._session = BindingSession(
            wallet_name=session.wallet_name,
            cancelled_attempt=session.attempt_id,
            retired_nonces=list(session.retired_nonces),
        )
        self._save()

    def reset(self) -> None:
        """Drop the session entirely (sign-out)."""
        self._session = BindingSession()
        if self._store is not None:
            self._store.clear()

    # ── events ────────────────────────────────────────────────────────

    def handle_event(self, event: DeepLinkEvent) -> None:
        """Apply a classified deep-link event."""
        if event.kind is LinkKind.WALLET_CONNECT:
            self._on_connect_callback(event)
        elif event.kind is LinkKind.WALLET_SIGN:
            self._on_sign_callback(event)
        else:
            logger.debug(f"Ignoring {event.kind.value} event")

    def check_timeout(self, now: float | None = None) -> bool:
        """Timer event: fail the session if its wallet round trip overran.

        Returns True if the session was failed.
        """
        session = self._session
        if self._callback_timeout <= 0 or not session.is_pending or session.pending_since is None:
            return False
        current = self._clock() if now is None else now
        if current - session.pending_since < self._callback_timeout:
            return False
        self._fail(CallbackTimeout(f"No wallet callback within {self._callback_timeout}s"))
        return True

    def _on_connect_callback(self, event: DeepLinkEvent) -> None:
        session = self._session
        address = event.wallet_address

        if session.state is BindingState.CONNECT_REQUESTED:
            if event.has_error:
                self._fail(WalletError(
                    event.error_message or "Wallet rejected the connection",
                    error_code=event.error_code,
                ))
            elif not address:
                self._fail(WalletError("Wallet returned no address"))
            else:
                self._connected(address)
            return

        if session.state is BindingState.IDLE:
            if session.cancelled_attempt:
                self._discard(f"connect callback after attempt {session.cancelled_attempt} was cancelled", event)
            elif address and not event.has_error:
                # Restarted without a session; an address is enough to resume
                logger.info(f"Accepting unsolicited connect callback for {_short(address)}")
                self._connected(address)
            else:
                self._discard("connect callback with no request outstanding", event)
            return

        if session.state in CONNECTED_STATES and address == session.wallet_address:
            logger.debug(f"Duplicate connect callback for {_short(address)}")
            return

        self._discard(
            f"connect callback for {_short(address)} in state {session.state.value}",
            event,
        )

    def _on_sign_callback(self, event: DeepLinkEvent) -> None:
        session = self._session

        if session.state is not BindingState.SIGNING_REQUESTED or session.nonce is None:
            if session.nonce is not None and event.bind_nonce == session.nonce:
                logger.debug(f"Duplicate sign callback in state {session.state.value}")
            else:
                self._discard(f"no signature request in flight ({session.state.value})", event)
            return

        if event.bind_nonce != session.nonce:
            self._discard(
                f"nonce mismatch (callback {_short(event.bind_nonce)}, "
                f"session {_short(session.nonce)})",
                event,
            )
            return

        if event.has_error:
            self._fail(WalletError(
                event.error_message or "Wallet declined to sign",
                error_code=event.error_code,
            ))
            return
        if not event.signature:
            self._fail(WalletError("Wallet returned no signature"))
            return

        self._transition(
            BindingState.SIGNED,
            signature=event.signature,
            pending_sign_result=False,
            pending_since=None,
        )
        self._exchange()

    # ── automatic steps ───────────────────────────────────────────────

    def _connected(self, address: str) -> None:
        self._transition(
            BindingState.CONNECTED,
            wallet_address=address,
            pending_connect_result=False,
            pending_since=None,
        )
        self._request_challenge()

    def _request_challenge(self) -> None:
        session = self._session
        if session.nonce:
            self._retire(session.nonce)
        self._transition(BindingState.NONCE_REQUESTED, nonce=None, challenge_message=None, signature=None)

        address = session.wallet_address
        if not address:
            self._fail(StateConflict("No wallet address to request a nonce for"))
            return
        try:
            challenge = self._client.request_nonce(address)
            if challenge.nonce in session.retired_nonces:
                raise ServerError("Server issued a nonce that was already used")
            message = challenge.render_for(address)
        except BindingError as e:
            self._fail(e)
            return

        link = self._links.sign_link(message, challenge.nonce, address)
        self._transition(
            BindingState.SIGNING_REQUESTED,
            nonce=challenge.nonce,
            challenge_message=message,
            pending_sign_result=True,
            pending_since=self._clock(),
        )
        self._launch(link)

    def _exchange(self) -> None:
        session = self._session
        self._transition(BindingState.EXCHANGING_TOKEN)

        if not (session.wallet_address and session.nonce and session.signature):
            self._fail(StateConflict("Signed session is missing its address, nonce or signature"))
            return
        try:
            token = self._client.exchange_signature(
                session.wallet_address,
                session.nonce,
                session.signature,
                message=session.challenge_message,
                wallet_provider=self._links.profile.provider_name,
            )
        except BindingError as e:
            self._fail(e)
            return

        if self._auth is not None:
            self._auth.store_grant(token, session.wallet_address)
        self._retire(session.nonce)
        self._transition(BindingState.BOUND, last_error=None, failed_from=None)
        for callback in self.on_bind_success:
            callback(token)

    # ── internals ─────────────────────────────────────────────────────

    def _launch(self, link: str) -> None:
        try:
            self._launcher(link)
        except Exception as e:
            self._fail(WalletError(f"Could not open wallet: {e}"))

    def _fail(self, error: BindingError) -> None:
        session = self._session
        logger.warning(f"Binding failed in state {session.state.value}: [{error.kind}] {error}")
        if session.nonce:
            self._retire(session.nonce)
        self._transition(
            BindingState.FAILED,
            last_error=ErrorInfo.from_exception(error),
            failed_from=session.state,
            pending_connect_result=False,
            pending_sign_result=False,
            pending_since=None,
        )
        for callback in self.on_bind_failure:
            callback(error)

    def _discard(self, reason: str, event: DeepLinkEvent) -> None:
        logger.warning(f"Discarding {event.kind.value} ({event.origin.value}): {reason}")

    def _retire(self, nonce: str) -> None:
        retired = self._session.retired_nonces
        if nonce not in retired:
            retired.append(nonce)
            del retired[:-MAX_RETIRED_NONCES]

    def _transition(self, state: BindingState, **changes: Any) -> None:
        previous = self._session.state
        for field, value in changes.items():
            setattr(self._session, field, value)
        self._session.state = state
        self._session.updated_at = datetime.now()
        if previous is not state:
            logger.info(f"Binding {self._session.attempt_id}: {previous.value} -> {state.value}")
        self._save()

    def _save(self) -> None:
        if self._store is not None:
            self._store.save(self._session)
