"""watcher.py
~~~~~~~~~~~~~
Re-scan the page whenever a map frame is inserted.

Embedded sources are treated as authoritative the moment they appear, so a
successful scan overwrites whatever the cache held.
"""

from __future__ import annotations

import logging
from typing import Callable

from bs4 import Tag

from .models import Coordinate
from .page import PageDocument, Subscription
from .scanner import is_map_bearing

LOG = logging.getLogger("watcher")


class MutationWatcher:
    """
    Subscribe to *document* insertions and feed scan results to *sink*.

    Args:
        document:  Page to observe.
        scan:      Zero-arg callable returning the live scan result.
        sink:      Receives every coordinate the scan produces.
    """

    def __init__(
        self,
        document: PageDocument,
        scan: Callable[[], Coordinate | None],
        sink: Callable[[Coordinate], None],
    ) -> None:
        self._document = document
        self._scan = scan
        self._sink = sink
        self._pending: Subscription | None = None
        self._subscription: Subscription | None = None

    @property
    def active(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def start(self) -> None:
        """Subscribe once the document has a body; later calls are no-ops."""
        if self._pending is not None or self._subscription is not None:
            return
        if not self._document.ready:
            LOG.debug("[watcher] body not ready, deferring")
        handle = self._document.when_ready(self._subscribe)
        if self._subscription is None:
            self._pending = handle

    def _subscribe(self) -> None:
        self._pending = None
        self._subscription = self._document.subscribe(self._on_inserted)
        LOG.info("[watcher] observing document")

    def stop(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
            LOG.info("[watcher] stopped")

    def _on_inserted(self, nodes: list[Tag]) -> None:
        if not any(is_map_bearing(node) for node in nodes):
            return
        coord = self._scan()
        if coord is None:
            return
        self._sink(coord)
        LOG.info("[watcher] %s location %s,%s", coord.label, coord.lat, coord.lng)


__all__ = ["MutationWatcher"]
