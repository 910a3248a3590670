"""
tests/test_engine.py
~~~~~~~~~~~~~~~~~~~~
Reconciler precedence and engine lifecycle:

* a live passive scan always wins (precedence over recency);
* a scan that finds nothing falls back to the cached value, which never
  expires;
* nothing raises across ``get_current_location``.
"""

from __future__ import annotations

import asyncio
import datetime as dt

import httpx
import pytest
from conftest import FIXED_NOW, location_frame, pb_frame

from locator.engine import LocationCache, LocationEngine
from locator.models import Coordinate, Source
from locator.page import PageDocument

MAPS_URL = "https://api.example.test/maps/v1/metadata"


def test_unknown_location_is_none(page: PageDocument, clock) -> None:
    engine = LocationEngine(page, clock=clock)
    engine.initialize()
    assert engine.get_current_location() is None


def test_paris_structured_parameter(page: PageDocument, clock) -> None:
    page.attach(pb_frame(48.8566, 2.3522))
    engine = LocationEngine(page, clock=clock)

    coord = engine.get_current_location()

    assert coord == Coordinate(48.8566, 2.3522, Source.PASSIVE_PRIMARY, FIXED_NOW, "iframe-pb")
    assert engine.current is coord


def test_live_scan_beats_newer_network_value(page: PageDocument, clock) -> None:
    engine = LocationEngine(page, clock=clock)
    later = FIXED_NOW + dt.timedelta(hours=1)
    engine.cache.store(Coordinate(10.0, 20.0, Source.NETWORK, later, "fetch"))
    page.attach(location_frame(-1.25, 36.8))

    coord = engine.get_current_location()

    assert coord.source is Source.PASSIVE_SECONDARY
    assert (coord.lat, coord.lng) == (-1.25, 36.8)
    assert engine.current is coord


def test_falls_back_to_cached_value_when_scan_finds_nothing(page: PageDocument, clock) -> None:
    engine = LocationEngine(page, clock=clock)
    engine.initialize()
    page.attach(pb_frame(40.0, -75.0))  # watcher caches it
    assert engine.current.source is Source.PASSIVE_PRIMARY

    page.detach("iframe")  # live scan now finds nothing

    coord = engine.get_current_location()
    assert (coord.lat, coord.lng) == (40.0, -75.0)
    assert coord.source is Source.PASSIVE_PRIMARY


def test_network_value_returned_without_expiry(page: PageDocument, clock) -> None:
    engine = LocationEngine(page, clock=clock)
    stale = Coordinate(1.0, 2.0, Source.NETWORK, FIXED_NOW - dt.timedelta(days=30), "hook")
    engine.cache.store(stale)
    assert engine.get_current_location() is stale


def test_repeated_queries_return_equal_values(page: PageDocument) -> None:
    ticks = iter(FIXED_NOW + dt.timedelta(seconds=i) for i in range(10))
    engine = LocationEngine(page, clock=lambda: next(ticks))
    page.attach(pb_frame(35.6762, 139.6503))

    first = engine.get_current_location()
    second = engine.get_current_location()

    assert first == second
    assert second.observed_at == FIXED_NOW


def test_new_frame_position_replaces_previous(page: PageDocument, clock) -> None:
    engine = LocationEngine(page, clock=clock)
    page.attach(pb_frame(1.0, 1.0))
    engine.get_current_location()
    page.detach("iframe")
    page.attach(pb_frame(2.0, 2.0))

    assert (engine.get_current_location().lat, engine.current.lat) == (2.0, 2.0)


def test_scan_failure_degrades_to_cache(page: PageDocument, clock, monkeypatch) -> None:
    engine = LocationEngine(page, clock=clock)
    cached = Coordinate(5.0, 6.0, Source.NETWORK, FIXED_NOW, "hook")
    engine.cache.store(cached)

    def broken_scan():
        raise RuntimeError("parser exploded")

    monkeypatch.setattr(engine, "scan", broken_scan)
    assert engine.get_current_location() is cached


def test_initialize_is_idempotent(page: PageDocument, clock) -> None:
    client = httpx.Client()
    engine = LocationEngine(page, clients=[client], clock=clock)

    engine.initialize()
    engine.initialize()

    assert client.event_hooks["response"] == [engine.interceptor.on_response]
    assert page.subscriber_count == 1
    assert len(engine.installations) == 1
    client.close()


def test_teardown_keeps_network_hooks_by_default(page: PageDocument, clock) -> None:
    client = httpx.Client()
    engine = LocationEngine(page, clients=[client], clock=clock)
    engine.initialize()

    engine.teardown()

    assert not engine.watcher.active
    assert page.subscriber_count == 0
    assert client.event_hooks["response"] == [engine.interceptor.on_response]

    engine.initialize()  # kept hook is not installed twice
    assert client.event_hooks["response"] == [engine.interceptor.on_response]
    assert engine.watcher.active
    client.close()


def test_teardown_can_restore_network(page: PageDocument, clock) -> None:
    client = httpx.AsyncClient()
    engine = LocationEngine(page, clients=[client], clock=clock)
    engine.initialize()

    engine.teardown(restore_network=True)

    assert client.event_hooks["response"] == []
    assert engine.installations == []


@pytest.mark.asyncio
async def test_network_reading_served_until_page_has_a_map(httpx_mock, page: PageDocument, clock) -> None:
    httpx_mock.add_response(url=MAPS_URL, text='{"c":"-22.9519,-43.2105"}')

    async with httpx.AsyncClient() as client:
        engine = LocationEngine(page, clients=[client], clock=clock)
        engine.initialize()
        resp = await client.get(MAPS_URL)
        await asyncio.sleep(0)

        assert resp.text == '{"c":"-22.9519,-43.2105"}'
        network = engine.get_current_location()
        assert network.source is Source.NETWORK
        assert (network.lat, network.lng) == (-22.9519, -43.2105)

        page.attach(pb_frame(48.8566, 2.3522))
        assert engine.get_current_location().source is Source.PASSIVE_PRIMARY


def test_attach_client_after_initialize(page: PageDocument, clock) -> None:
    engine = LocationEngine(page, clock=clock)
    engine.initialize()
    with httpx.Client() as client:
        handle = engine.attach_client(client)
        assert handle in engine.installations
        assert client.event_hooks["response"] == [engine.interceptor.on_response]


def test_engines_are_independent(clock) -> None:
    doc_a = PageDocument("<html><body></body></html>")
    doc_b = PageDocument("<html><body></body></html>")
    a, b = LocationEngine(doc_a, clock=clock), LocationEngine(doc_b, clock=clock)
    a.initialize()
    b.initialize()

    doc_a.attach(pb_frame(1.0, 2.0))

    assert a.current is not None
    assert b.current is None
    assert isinstance(a.cache, LocationCache) and a.cache is not b.cache
