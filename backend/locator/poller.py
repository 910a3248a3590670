"""poller.py
~~~~~~~~~~~~
Fixed-cadence consumer of :meth:`LocationEngine.get_current_location`.

Each tick compares the reading with the last one handed to listeners and
notifies only when lat/lng changed. Unknown readings (*None*) are skipped
so a momentary gap never "forgets" the last location.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable

from .config import UPDATE_INTERVAL
from .engine import LocationEngine
from .models import Coordinate

LOG = logging.getLogger("poller")

Listener = Callable[[Coordinate], None]


class LocationPoller:
    def __init__(self, engine: LocationEngine, *, interval: float = UPDATE_INTERVAL) -> None:
        self.engine = engine
        self.interval = interval
        self.last: Coordinate | None = None
        self._listeners: list[Listener] = []
        self._task: asyncio.Task | None = None

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def poll_once(self) -> Coordinate | None:
        """Return the new coordinate when it differs from the last one."""
        location = self.engine.get_current_location()
        if location is None or location.same_place(self.last):
            return None

        LOG.info("[poll] location updated %s,%s (%s)", location.lat, location.lng, location.label)
        self.last = location
        for listener in list(self._listeners):
            try:
                listener(location)
            except Exception as exc:  # noqa: BLE001 – one bad listener must not stop polling
                LOG.error("[poll] listener failed: %s", exc, exc_info=True)
        return location

    async def _loop(self) -> None:
        while True:
            self.poll_once()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None


__all__ = ["LocationPoller"]
