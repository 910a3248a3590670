"""
tests/conftest.py
~~~~~~~~~~~~~~~~~
Global pytest fixtures.

`isolate_history_tmp` ensures that *history* writes its JSON file into a
per-test temporary directory, so nothing is left behind under
`local_data/` after the suite runs.
"""

from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest
from dateutil import tz

from locator import history
from locator.page import PageDocument

pytest_plugins = ["pytest_asyncio"]

UTC = tz.UTC
FIXED_NOW = dt.datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def isolate_history_tmp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Redirect ``history.FILE`` & ``history.DIR`` to *tmp_path* for every test.

    ``history`` computes those globals at *import time*, so the module
    attributes are patched after import and before each test executes.
    """
    history_dir = tmp_path / "history"
    history_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("PERSIST_DIR", str(history_dir))
    monkeypatch.setattr(history, "DIR", history_dir)
    monkeypatch.setattr(history, "FILE", history_dir / "location_history.json")


@pytest.fixture
def clock():
    """Deterministic clock returning FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def page() -> PageDocument:
    return PageDocument("<html><head></head><body><div id='game'></div></body></html>")


def pb_frame(lat: float, lng: float) -> str:
    """Embedded map iframe carrying the packed ``pb`` parameter."""
    return (
        '<iframe src="https://www.google.com/maps/embed?pb=!1m18!1m12!1m3'
        f'!1d3000!2d{lng}!3d{lat}!2m3!1f0!2f0!3f0!3m2!1i1024!2i768!4f13.1'
        f'!3m3!1m2!1s0x0%3A0x0!2zMzU!5e0!3m2!1sen!2sus!4v1!3d{lat}!4d{lng}"></iframe>'
    )


def location_frame(lat: float, lng: float) -> str:
    """Embedded map iframe carrying ``location=lat,lng``."""
    return f'<iframe src="https://www.google.com/maps/embed/v1/streetview?key=k&location={lat},{lng}"></iframe>'
