"""interceptors.py
~~~~~~~~~~~~~~~~~~
Side-channel inspection of the page's outbound HTTP traffic.

Two primitives are covered:

* **fetch-style** – any ``async`` callable returning an
  :class:`httpx.Response`. :meth:`NetworkInterceptor.wrap_fetch` returns a
  new callable: await the original, schedule inspection, hand back the very
  same response object.
* **event-driven** – an :class:`httpx.Client` / :class:`httpx.AsyncClient`.
  :meth:`NetworkInterceptor.install` adds a ``response`` event hook. Hooks
  fire before the body is read, so the response stream is swapped for a tee
  that forwards every chunk unchanged and inspects the collected bytes once
  the stream is exhausted (the "load" moment).

Only URLs containing one of the configured keywords are inspected. The body
goes through the free-text matcher and a hit is written to the sink tagged
``NETWORK``. Any failure while inspecting is logged at DEBUG and dropped:
the caller's response is never altered, failed or held back.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import functools
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Iterator

import httpx

from .config import MAX_INSPECT_BYTES, NETWORK_KEYWORDS
from .matchers import match_free_text
from .models import Coordinate, Source, utcnow

LOG = logging.getLogger("interceptors")

Sink = Callable[[Coordinate], None]
Fetch = Callable[..., Awaitable[httpx.Response]]


# ── Tee streams ───────────────────────────────────────────────────────────
class _Capture:
    """Collect raw chunks up to *limit* bytes, then hand them over once."""

    def __init__(self, limit: int, on_complete: Callable[[bytes], None]) -> None:
        self._limit = limit
        self._on_complete = on_complete
        self._chunks: list[bytes] = []
        self._size = 0
        self._overflow = False

    def feed(self, chunk: bytes) -> None:
        if self._overflow:
            return
        self._size += len(chunk)
        if self._size > self._limit:
            self._overflow = True
            self._chunks.clear()
            return
        self._chunks.append(chunk)

    def finish(self) -> None:
        if self._overflow:
            LOG.debug("[tee] body over %d bytes, not inspected", self._limit)
            return
        self._on_complete(b"".join(self._chunks))


class _SyncTeeStream(httpx.SyncByteStream):
    def __init__(self, inner: httpx.SyncByteStream, capture: _Capture) -> None:
        self._inner = inner
        self._capture = capture

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self._inner:
            self._capture.feed(chunk)
            yield chunk
        self._capture.finish()

    def close(self) -> None:
        self._inner.close()


class _AsyncTeeStream(httpx.AsyncByteStream):
    def __init__(self, inner: httpx.AsyncByteStream, capture: _Capture) -> None:
        self._inner = inner
        self._capture = capture

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._inner:
            self._capture.feed(chunk)
            yield chunk
        self._capture.finish()

    async def aclose(self) -> None:
        await self._inner.aclose()


def _decode_raw(response: httpx.Response, raw: bytes) -> str:
    """Decode raw wire bytes the way *response* itself would."""
    shadow = httpx.Response(
        response.status_code,
        headers=response.headers,
        stream=httpx.ByteStream(raw),
    )
    shadow.read()
    return shadow.text


# ── Installation handle ───────────────────────────────────────────────────
class InterceptorHandle:
    """Record of one hook installed on one client."""

    def __init__(self, client: httpx.Client | httpx.AsyncClient, hook: Callable) -> None:
        self.client = client
        self.hook = hook
        self.installed = True

    def uninstall(self) -> None:
        if not self.installed:
            return
        hooks = self.client.event_hooks
        hooks["response"] = [h for h in hooks.get("response", []) if h != self.hook]
        self.client.event_hooks = hooks
        self.installed = False


# ── Interceptor ───────────────────────────────────────────────────────────
class NetworkInterceptor:
    """
    Inspect responses for coordinates without touching them.

    Args:
        sink:            Receives every accepted ``NETWORK`` coordinate.
        keywords:        URL substrings that mark mapping/location endpoints.
        clock:           Timestamp source.
        max_body_bytes:  Larger bodies are passed through uninspected.
    """

    def __init__(
        self,
        sink: Sink,
        *,
        keywords: Iterable[str] = NETWORK_KEYWORDS,
        clock: Callable[[], dt.datetime] = utcnow,
        max_body_bytes: int = MAX_INSPECT_BYTES,
    ) -> None:
        self._sink = sink
        self.keywords = tuple(keywords)
        self._clock = clock
        self._max_body_bytes = max_body_bytes

    def wants(self, url: str) -> bool:
        return any(keyword in url for keyword in self.keywords)

    # ── inspection ───────────────────────────────────────────────────────
    def inspect_text(self, url: str, text: str, label: str) -> Coordinate | None:
        """Run the free-text matcher over *text*; store and return a hit."""
        try:
            pair = match_free_text(text)
            if pair is None:
                return None
            coord = Coordinate.from_pair(
                pair, Source.NETWORK, label=label, observed_at=self._clock()
            )
            self._sink(coord)
        except Exception as exc:  # noqa: BLE001 – interception fails open
            LOG.debug("[%s] inspection failed for %s: %s", label, url, exc)
            return None
        LOG.info("[%s] location found %s,%s via %s", label, coord.lat, coord.lng, url)
        return coord

    def _inspect_buffered(self, url: str, response: httpx.Response, label: str) -> None:
        try:
            text = response.text
        except Exception as exc:  # noqa: BLE001 – unreadable / undecodable body
            LOG.debug("[%s] body unreadable for %s: %s", label, url, exc)
            return
        self.inspect_text(url, text, label)

    def _inspect_raw(self, url: str, response: httpx.Response, raw: bytes, label: str) -> None:
        try:
            text = _decode_raw(response, raw)
        except Exception as exc:  # noqa: BLE001 – unknown encoding, bad gzip…
            LOG.debug("[%s] body undecodable for %s: %s", label, url, exc)
            return
        self.inspect_text(url, text, label)

    def _observe(self, url: str, response: httpx.Response, label: str, *, is_async: bool) -> None:
        """Arrange for *response* to be inspected without delaying it."""
        if not self.wants(url):
            return
        try:
            response.content
        except httpx.ResponseNotRead:
            capture = _Capture(
                self._max_body_bytes,
                functools.partial(self._inspect_raw, url, response, label=label),
            )
            if is_async:
                response.stream = _AsyncTeeStream(response.stream, capture)
            else:
                response.stream = _SyncTeeStream(response.stream, capture)
            return

        if is_async:
            asyncio.get_running_loop().call_soon(self._inspect_buffered, url, response, label)
        else:
            self._inspect_buffered(url, response, label)

    # ── fetch-style primitive ────────────────────────────────────────────
    def wrap_fetch(self, fetch: Fetch) -> Fetch:
        """
        Return a fetch that behaves exactly like *fetch* plus inspection.

        >>> client = httpx.AsyncClient()
        >>> fetch = interceptor.wrap_fetch(client.get)
        >>> resp = await fetch("https://maps.example/api")  # doctest: +SKIP
        """

        @functools.wraps(fetch)
        async def wrapped(*args: Any, **kwargs: Any) -> httpx.Response:
            response = await fetch(*args, **kwargs)
            try:
                url = _request_url(response, args, kwargs)
                self._observe(url, response, "fetch", is_async=True)
            except Exception as exc:  # noqa: BLE001 – never fail the caller
                LOG.debug("[fetch] interception skipped: %s", exc)
            return response

        return wrapped

    # ── event-driven primitive ───────────────────────────────────────────
    def on_response(self, response: httpx.Response) -> None:
        """``response`` event hook for :class:`httpx.Client`."""
        try:
            self._observe(str(response.request.url), response, "hook", is_async=False)
        except Exception as exc:  # noqa: BLE001
            LOG.debug("[hook] interception skipped: %s", exc)

    async def on_response_async(self, response: httpx.Response) -> None:
        """``response`` event hook for :class:`httpx.AsyncClient`."""
        try:
            self._observe(str(response.request.url), response, "hook", is_async=True)
        except Exception as exc:  # noqa: BLE001
            LOG.debug("[hook] interception skipped: %s", exc)

    def install(self, client: httpx.Client | httpx.AsyncClient) -> InterceptorHandle:
        """Attach the matching response hook to *client*."""
        hook = self.on_response_async if isinstance(client, httpx.AsyncClient) else self.on_response
        hooks = client.event_hooks
        hooks["response"] = [*hooks.get("response", []), hook]
        client.event_hooks = hooks
        LOG.debug("[install] response hook on %s", type(client).__name__)
        return InterceptorHandle(client, hook)


def _request_url(response: httpx.Response, args: tuple, kwargs: dict) -> str:
    try:
        return str(response.request.url)
    except RuntimeError:  # response built without a request
        target = args[0] if args else kwargs.get("url", "")
        return str(target.url) if isinstance(target, httpx.Request) else str(target)


__all__ = ["InterceptorHandle", "NetworkInterceptor"]
