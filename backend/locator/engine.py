"""engine.py
~~~~~~~~~~~~
Decide which reading counts as the page's **current location**.

Precedence
----------
* A live passive scan, when it finds anything, always wins and replaces
  the cached value, even a newer ``NETWORK`` reading.
* Otherwise the cached value is returned unchanged. It may come from an
  interceptor or an earlier watcher callback and never expires; callers
  judge staleness from ``observed_at``.

Every producer writes through :meth:`LocationCache.store`, a single
attribute replacement, so a query never sees a half-written value. With one
event loop there is nothing to lock; concurrent producers are resolved by
last-write-wins.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, Iterable

import httpx

from .config import NETWORK_KEYWORDS
from .interceptors import Fetch, InterceptorHandle, NetworkInterceptor
from .models import Coordinate, utcnow
from .page import PageDocument
from .scanner import scan_embedded_sources
from .watcher import MutationWatcher

LOG = logging.getLogger("engine")


class LocationCache:
    """Holder of the single current coordinate."""

    def __init__(self) -> None:
        self._current: Coordinate | None = None

    @property
    def current(self) -> Coordinate | None:
        return self._current

    def store(self, coord: Coordinate) -> None:
        self._current = coord

    def clear(self) -> None:
        self._current = None


class LocationEngine:
    """
    Owns the cache, the interceptors and the watcher for one page.

    Args:
        document:  Page model to scan and observe.
        clients:   httpx clients whose responses should be inspected.
        keywords:  URL substrings marking mapping/location endpoints.
        clock:     Timestamp source for every produced reading.
    """

    def __init__(
        self,
        document: PageDocument,
        *,
        clients: Iterable[httpx.Client | httpx.AsyncClient] = (),
        keywords: Iterable[str] = NETWORK_KEYWORDS,
        clock: Callable[[], dt.datetime] = utcnow,
    ) -> None:
        self.document = document
        self.cache = LocationCache()
        self._clients = list(clients)
        self._clock = clock
        self.interceptor = NetworkInterceptor(self.cache.store, keywords=keywords, clock=clock)
        self.watcher = MutationWatcher(document, self.scan, self.cache.store)
        self.installations: list[InterceptorHandle] = []
        self.initialized = False

    @property
    def current(self) -> Coordinate | None:
        return self.cache.current

    def scan(self) -> Coordinate | None:
        return scan_embedded_sources(self.document, clock=self._clock)

    # ── lifecycle ────────────────────────────────────────────────────────
    def initialize(self) -> None:
        """Install interceptors and start the watcher (once)."""
        if self.initialized:
            LOG.debug("[engine] already initialized")
            return
        LOG.info("[engine] initializing location extractor")
        hooked = {id(h.client) for h in self.installations if h.installed}
        for client in self._clients:
            if id(client) not in hooked:
                self.installations.append(self.interceptor.install(client))
        self.watcher.start()
        self.initialized = True

    def attach_client(self, client: httpx.Client | httpx.AsyncClient) -> InterceptorHandle:
        """Intercept a client created after :meth:`initialize`."""
        handle = self.interceptor.install(client)
        self.installations.append(handle)
        return handle

    def wrap_fetch(self, fetch: Fetch) -> Fetch:
        return self.interceptor.wrap_fetch(fetch)

    def teardown(self, *, restore_network: bool = False) -> None:
        """
        Stop observing the document.

        Response hooks stay installed so that an in-flight request never
        loses its stream wrapper mid-read; pass ``restore_network=True`` to
        remove them as well.
        """
        self.watcher.stop()
        if restore_network:
            for handle in self.installations:
                handle.uninstall()
            self.installations.clear()
        self.initialized = False
        LOG.info("[engine] teardown (network hooks %s)", "removed" if restore_network else "kept")

    # ── query ────────────────────────────────────────────────────────────
    def get_current_location(self) -> Coordinate | None:
        """
        Return the freshest trustworthy coordinate, or *None* if unknown.

        Never raises: a failing live scan degrades to the cached value.
        """
        try:
            live = self.scan()
        except Exception as exc:  # noqa: BLE001 – query must not raise
            LOG.warning("[engine] live scan failed: %s", exc)
            live = None

        cached = self.cache.current
        if live is None:
            return cached
        # same frame seen again: keep the first observation time
        if cached is not None and cached.same_place(live) and cached.label == live.label:
            return cached
        self.cache.store(live)
        return live


__all__ = ["LocationCache", "LocationEngine"]
