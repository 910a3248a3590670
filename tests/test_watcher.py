"""
tests/test_watcher.py
~~~~~~~~~~~~~~~~~~~~~
Mutation watcher: deferred start, rescans on map insertion, teardown.
"""

from __future__ import annotations

from conftest import location_frame, pb_frame

from locator.engine import LocationCache
from locator.models import Coordinate, Source
from locator.page import PageDocument
from locator.scanner import scan_embedded_sources
from locator.watcher import MutationWatcher


def _watcher(doc: PageDocument, cache: LocationCache, clock, scans: list | None = None):
    def scan():
        if scans is not None:
            scans.append(1)
        return scan_embedded_sources(doc, clock=clock)

    return MutationWatcher(doc, scan, cache.store)


def test_inserted_map_frame_updates_cache(page: PageDocument, clock) -> None:
    cache = LocationCache()
    watcher = _watcher(page, cache, clock)
    watcher.start()

    page.attach(f"<div class='round'>{pb_frame(48.8566, 2.3522)}</div>", "#game")

    assert watcher.active
    assert cache.current.source is Source.PASSIVE_PRIMARY
    assert (cache.current.lat, cache.current.lng) == (48.8566, 2.3522)


def test_unrelated_insertions_do_not_scan(page: PageDocument, clock) -> None:
    cache = LocationCache()
    scans: list[int] = []
    _watcher(page, cache, clock, scans).start()

    page.attach("<div><p>scoreboard</p></div>")
    page.attach("<iframe src='https://ads.example.test/frame'></iframe>")

    assert scans == []
    assert cache.current is None


def test_passive_insertion_overwrites_network_value(page: PageDocument, clock) -> None:
    cache = LocationCache()
    cache.store(Coordinate(10.0, 10.0, Source.NETWORK, clock(), "fetch"))
    _watcher(page, cache, clock).start()

    page.attach(location_frame(-12.5, 130.25))

    assert cache.current.source is Source.PASSIVE_SECONDARY
    assert (cache.current.lat, cache.current.lng) == (-12.5, 130.25)


def test_failed_scan_keeps_previous_value(page: PageDocument, clock) -> None:
    cache = LocationCache()
    previous = Coordinate(40.0, -75.0, Source.PASSIVE_PRIMARY, clock(), "iframe-pb")
    cache.store(previous)
    _watcher(page, cache, clock).start()

    page.attach('<iframe src="https://www.google.com/maps/embed?pb=!1m2!5e0"></iframe>')

    assert cache.current is previous


def test_start_deferred_until_body_exists(clock) -> None:
    doc = PageDocument("<html><head></head></html>")
    cache = LocationCache()
    watcher = _watcher(doc, cache, clock)

    watcher.start()
    assert not watcher.active
    assert doc.subscriber_count == 0

    doc.attach(pb_frame(1.5, 2.5))  # opens the body, then inserts

    assert watcher.active
    assert (cache.current.lat, cache.current.lng) == (1.5, 2.5)


def test_start_is_idempotent(page: PageDocument, clock) -> None:
    watcher = _watcher(page, LocationCache(), clock)
    watcher.start()
    watcher.start()
    assert page.subscriber_count == 1


def test_stop_detaches(page: PageDocument, clock) -> None:
    cache = LocationCache()
    watcher = _watcher(page, cache, clock)
    watcher.start()
    watcher.stop()

    page.attach(pb_frame(1.5, 2.5))

    assert not watcher.active
    assert page.subscriber_count == 0
    assert cache.current is None


def test_stop_cancels_pending_start(clock) -> None:
    doc = PageDocument("")
    watcher = _watcher(doc, LocationCache(), clock)
    watcher.start()
    watcher.stop()

    doc.open_body()

    assert not watcher.active
    assert doc.subscriber_count == 0
