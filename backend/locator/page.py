"""page.py
~~~~~~~~~
Live model of the host page the overlay sits on.

The document is a BeautifulSoup tree that grows as fragments are attached.
Structural changes are published to subscribers as batches of newly
inserted element nodes; a subscription is a handle that can be cancelled.

The body may not exist yet when collaborators start up; ``when_ready``
queues a callback until :meth:`PageDocument.open_body` (or the first
:meth:`PageDocument.attach`) creates it.
"""

from __future__ import annotations

import logging
from typing import Callable

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

LOG = logging.getLogger("page")

PARSER = "html.parser"

InsertCallback = Callable[[list[Tag]], None]


class InvalidSelector(LookupError):
    """CSS selector the parser cannot read."""

    def __init__(self, selector: str) -> None:
        super().__init__(f"bad selector: {selector!r}")
        self.selector = selector


class Subscription:
    """Cancellable registration returned by :class:`PageDocument`."""

    def __init__(self, release: Callable[["Subscription"], None]) -> None:
        self._release: Callable[["Subscription"], None] | None = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def cancel(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release(self)


class PageDocument:
    """HTML document with insertion notifications."""

    def __init__(self, html: str = "") -> None:
        self.soup = BeautifulSoup(html, PARSER)
        self._subscribers: dict[Subscription, InsertCallback] = {}
        self._pending_ready: dict[Subscription, Callable[[], None]] = {}

    # ── state ────────────────────────────────────────────────────────────
    @property
    def body(self) -> Tag | None:
        return self.soup.body

    @property
    def ready(self) -> bool:
        return self.body is not None

    def select(self, selector: str) -> list[Tag]:
        try:
            return self.soup.select(selector)
        except SelectorSyntaxError as exc:
            raise InvalidSelector(selector) from exc

    # ── lifecycle ────────────────────────────────────────────────────────
    def when_ready(self, callback: Callable[[], None]) -> Subscription:
        """
        Run *callback* once a ``<body>`` exists.

        Runs immediately when the body is already there; otherwise the
        returned handle can cancel the pending call.
        """
        handle = Subscription(lambda h: self._pending_ready.pop(h, None))
        if self.ready:
            handle.cancel()
            callback()
        else:
            self._pending_ready[handle] = callback
        return handle

    def open_body(self) -> Tag:
        """Create ``<body>`` if missing and flush ``when_ready`` callbacks."""
        body = self.body
        if body is None:
            root = self.soup.html
            if root is None:
                root = self.soup.new_tag("html")
                self.soup.append(root)
            body = self.soup.new_tag("body")
            root.append(body)
            LOG.debug("[page] body opened")

        pending, self._pending_ready = self._pending_ready, {}
        for handle, callback in pending.items():
            handle._release = None
            callback()
        return body

    # ── observation ──────────────────────────────────────────────────────
    def subscribe(self, callback: InsertCallback) -> Subscription:
        """Call *callback* with every batch of inserted element nodes."""
        handle = Subscription(lambda h: self._subscribers.pop(h, None))
        self._subscribers[handle] = callback
        return handle

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _notify(self, inserted: list[Tag]) -> None:
        for handle, callback in list(self._subscribers.items()):
            if not handle.active:
                continue
            try:
                callback(inserted)
            except Exception as exc:  # noqa: BLE001 – observers never break the page
                LOG.warning("[page] subscriber failed: %s", exc)

    # ── mutation ─────────────────────────────────────────────────────────
    def attach(self, html: str, parent: str | Tag | None = None) -> list[Tag]:
        """
        Parse *html* and append its top-level nodes under *parent*.

        Args:
            html:    Markup fragment.
            parent:  CSS selector (first match), a Tag, or *None* for body.

        Returns:
            The inserted element nodes, in document order.

        Raises:
            LookupError: *parent* selector matches nothing.
        """
        target = self._resolve_parent(parent)
        fragment = BeautifulSoup(html, PARSER)
        nodes = list(fragment.contents)
        for node in nodes:
            target.append(node.extract())

        inserted = [n for n in nodes if isinstance(n, Tag)]
        if inserted:
            LOG.debug("[page] %d node(s) inserted under <%s>", len(inserted), target.name)
            self._notify(inserted)
        return inserted

    def detach(self, selector: str) -> int:
        """Remove every element matching *selector*; return how many."""
        matched = self.select(selector)
        for tag in matched:
            tag.decompose()
        return len(matched)

    def _resolve_parent(self, parent: str | Tag | None) -> Tag:
        if isinstance(parent, Tag):
            return parent
        if parent is None:
            body = self.body
            return body if body is not None else self.open_body()
        try:
            found = self.soup.select_one(parent)
        except SelectorSyntaxError as exc:
            raise InvalidSelector(parent) from exc
        if found is None:
            raise LookupError(f"no element matches {parent!r}")
        return found


__all__ = ["InvalidSelector", "PageDocument", "Subscription"]
