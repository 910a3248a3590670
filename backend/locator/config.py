# backend/locator/config.py

"""
Settings read once from the environment (and a local ``.env`` file).

Every value has a working default so the engine runs unconfigured.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _csv(name: str, default: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in os.getenv(name, default).split(",") if part.strip())


DEBUG_MODE = _flag("LOCATOR_DEBUG")

# Poll cadence of the overlay (seconds)
UPDATE_INTERVAL = float(os.getenv("UPDATE_INTERVAL", "0.5"))

DEFAULT_ZOOM = int(os.getenv("DEFAULT_ZOOM", "4"))
MAP_TYPE = os.getenv("MAP_TYPE", "satellite")  # satellite, roadmap, hybrid, terrain

MAX_HISTORY = int(os.getenv("MAX_HISTORY", "50"))

# URL substrings that mark mapping/location endpoints worth inspecting
NETWORK_KEYWORDS = _csv("NETWORK_KEYWORDS", "maps,location,coordinates")
MAX_INSPECT_BYTES = int(os.getenv("MAX_INSPECT_BYTES", str(2 * 1024 * 1024)))

PERSIST_DIR = Path(os.getenv("PERSIST_DIR", "local_data")).expanduser()

# Hosts the /relay endpoint may fetch from
RELAY_ALLOWED_HOSTS = _csv(
    "RELAY_ALLOWED_HOSTS", "openguessr.com,www.openguessr.com,maps.googleapis.com"
)

USER_AGENT = "openguessr-locator/0.1"
