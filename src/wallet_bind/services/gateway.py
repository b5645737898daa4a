"""Deep-link gateway: turns OS-delivered URIs into domain events.

The OS hands the app a link in two ways: once at process start (the link that
launched the app) and as a live stream while running. The gateway classifies
both and forwards wallet callbacks to a single handler, normally the binding
state machine. It does no business filtering of its own.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Protocol
from urllib.parse import parse_qsl, urlsplit

from wallet_bind.models.session import DeepLinkEvent, LinkKind, LinkOrigin
from wallet_bind.services.wallet_links import CONNECT_CALLBACK, SIGN_CALLBACK

logger = logging.getLogger(__name__)

Handler = Callable[[DeepLinkEvent], None]

DEFAULT_COLD_START_GRACE = 0.5


class LinkSource(Protocol):
    """OS integration point delivering deep links."""

    def initial_link(self) -> str | None:
        ...

    def link_stream(self) -> Iterable[str]:
        ...


class StaticLinkSource:
    """Link source backed by a fixed initial link and any iterable of URIs."""

    def __init__(self, initial: str | None = None, stream: Iterable[str] = ()) -> None:
        self._initial = initial
        self._stream = stream

    def initial_link(self) -> str | None:
        return self._initial

    def link_stream(self) -> Iterable[str]:
        for line in self._stream:
            uri = line.strip()
            if uri:
                yield uri


def _params(query: str, fragment: str) -> dict[str, str]:
    params = dict(parse_qsl(query, keep_blank_values=True))
    if "=" in fragment:
        for key, value in parse_qsl(fragment, keep_blank_values=True):
            params.setdefault(key, value)
    return params


def classify(uri: str, origin: LinkOrigin = LinkOrigin.LIVE) -> DeepLinkEvent:
    """Classify a URI by its host or path (case-insensitive)."""
    try:
        parts = urlsplit(uri.strip())
        hostname = parts.hostname
    except ValueError as e:
        logger.debug(f"Unparseable deep link {uri!r}: {e}")
        return DeepLinkEvent(kind=LinkKind.UNRECOGNIZED, uri=uri, origin=origin)
    targets = {(hostname or "").lower(), parts.path.strip("/").lower()}

    if CONNECT_CALLBACK in targets:
        kind = LinkKind.WALLET_CONNECT
    elif SIGN_CALLBACK in targets:
        kind = LinkKind.WALLET_SIGN
    else:
        return DeepLinkEvent(kind=LinkKind.UNRECOGNIZED, uri=uri, origin=origin)

    return DeepLinkEvent(
        kind=kind,
        uri=uri,
        origin=origin,
        params=_params(parts.query, parts.fragment),
    )


class DeepLinkGateway:
    """Receives links from a LinkSource and forwards wallet callbacks.

    Events that arrive before a handler is attached (the usual cold-start case,
    where the UI is not built yet) are buffered and flushed in order by
    ``attach``. They are never dropped.
    """

    def __init__(
        self,
        source: LinkSource,
        cold_start_grace: float = DEFAULT_COLD_START_GRACE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._grace = cold_start_grace
        self._clock = clock
        self._handler: Handler | None = None
        self._buffer: list[DeepLinkEvent] = []
        self._started_at: float | None = None
        self._initial_polled = False
        self._warned = False

    @property
    def pending_events(self) -> list[DeepLinkEvent]:
        return list(self._buffer)

    def attach(self, handler: Handler) -> None:
        """Set the event handler and flush anything buffered."""
        self._handler = handler
        buffered, self._buffer = self._buffer, []
        if buffered:
            logger.info(f"Flushing {len(buffered)} deferred deep link(s)")
        for event in buffered:
            handler(event)

    def detach(self) -> None:
        self._handler = None

    def start(self) -> DeepLinkEvent | None:
        """Poll the cold-start link. Only the first call reaches the source."""
        if self._initial_polled:
            return None
        self._initial_polled = True
        if self._started_at is None:
            self._started_at = self._clock()

        uri = self._source.initial_link()
        if not uri:
            return None
        return self.deliver(uri, LinkOrigin.COLD_START)

    def listen(self) -> int:
        """Consume the live stream until it ends. Returns the number of links seen."""
        count = 0
        for uri in self._source.link_stream():
            self.deliver(uri, LinkOrigin.LIVE)
            count += 1
        return count

    def deliver(self, uri: str, origin: LinkOrigin = LinkOrigin.LIVE) -> DeepLinkEvent:
        """Classify one URI and forward it if it is a wallet callback."""
        event = classify(uri, origin)
        if event.kind is LinkKind.UNRECOGNIZED:
            logger.debug(f"Ignoring unrelated deep link: {uri}")
            return event

        if self._handler is None:
            logger.info(f"Deferring {event.kind.value} until a listener attaches")
            if self._started_at is None:
                self._started_at = self._clock()
            self._buffer.append(event)
            return event

        logger.info(f"Dispatching {event.kind.value} ({origin.value})")
        self._handler(event)
        return event

    def check_listeners(self, now: float | None = None) -> bool:
        """Report whether buffered links can still expect a listener.

        Returns False (and warns once) when links have been waiting longer
        than the cold-start grace period with no handler attached.
        """
        if self._handler is not None or not self._buffer or self._started_at is None:
            return True
        elapsed = (self._clock() if now is None else now) - self._started_at
        if elapsed < self._grace:
            return True
        if not self._warned:
            logger.warning(
                f"{len(self._buffer)} deep link(s) unclaimed after {self._grace:.3f}s; "
                "keeping them until a listener attaches"
            )
            self._warned = True
        return False
