# pogonode/providers/walker.py
# -*- coding: utf-8 -*-
"""
pogonode — Walker
-----------------
Simulated walking between pokestops.

Responsibilities:
- Geometry: straight-line (haversine) distance between positions.
- Path: when idle, head for the closest pokestop not visited yet.
- Walk: advance the position along the path at `speed_kmh`, one step per
  position update cycle.
- Position noise: tiny jitter on what we report to the server.
- Altitude: Google elevation API (via requests), cached per ~100 m cell,
  with a plausible random value when the lookup is not possible.

The walker only touches `state.pos` and `state.path`.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
from typing import Any, Dict, Mapping, Optional, Tuple

import requests

from pogonode.core.config import Settings, settings as default_settings
from pogonode.runtime_state import PathState, Position, SessionState

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000.0

# ~0.3 m of noise on reported positions
FUZZ_DEGREES = 0.0000025


class AltitudeLookupError(Exception):
    """Raised when the elevation API cannot give us an altitude."""


def haversine(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in meters."""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dp = p2 - p1
    dl = math.radians(lng2 - lng1)
    a = math.sin(dp / 2) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(dl / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))


class Walker:
    """
    Parameters
    ----------
    state:
        Shared session state (position and path are read and written).
    settings:
        Speed, walk delay (step length) and elevation API settings.
    """

    def __init__(self, state: SessionState, settings: Optional[Settings] = None) -> None:
        self.state = state
        self.settings = settings or default_settings
        self._altitudes: Dict[Tuple[float, float], float] = {}

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def distance(self, from_pos: Optional[Position]) -> float:
        """Meters between `from_pos` and the current position (0 if None)."""
        if from_pos is None:
            return 0.0
        return haversine(from_pos.lat, from_pos.lng, self.state.pos.lat, self.state.pos.lng)

    def distance_to(self, obj: Mapping[str, Any]) -> float:
        """Meters between the current position and a map object."""
        return haversine(
            self.state.pos.lat,
            self.state.pos.lng,
            float(obj.get("latitude", 0.0)),
            float(obj.get("longitude", 0.0)),
        )

    def fuzzed_location(self, pos: Position) -> Position:
        return Position(
            lat=pos.lat + random.uniform(-FUZZ_DEGREES, FUZZ_DEGREES),
            lng=pos.lng + random.uniform(-FUZZ_DEGREES, FUZZ_DEGREES),
            altitude=pos.altitude,
        )

    # ------------------------------------------------------------------
    # Path + walking
    # ------------------------------------------------------------------

    async def check_path(self) -> Optional[PathState]:
        """
        Pick a new target if we have none.

        Returns the new path when one was generated (so the UI can draw it),
        None when the current path is still valid or nothing is reachable.
        """
        path = self.state.path
        if path.waypoints:
            return None

        snapshot = self.state.map
        if snapshot is None:
            return None

        candidates = [s for s in snapshot.pokestops if s.get("id") not in path.visited_pokestops]
        if not candidates:
            if not snapshot.pokestops:
                return None
            # everything visited, start over
            logger.info("All %d pokestops visited, resetting path.", len(snapshot.pokestops))
            path.visited_pokestops = []
            candidates = list(snapshot.pokestops)

        target = min(candidates, key=self.distance_to)
        path.waypoints = [Position(lat=float(target["latitude"]), lng=float(target["longitude"]))]
        logger.debug("New path toward pokestop %s (%.0f m)", target.get("id"), self.distance_to(target))
        return path

    async def walk(self) -> None:
        """Advance one step along the path."""
        path = self.state.path
        if not path.waypoints:
            return

        step_m = self.settings.speed_kmh / 3.6 * max(self.settings.delay_walk_s, 0.1)
        target = path.waypoints[0]
        remaining = self.distance(target)

        if remaining <= step_m:
            self.state.pos = Position(lat=target.lat, lng=target.lng, altitude=self.state.pos.altitude)
            path.waypoints.pop(0)
            return

        ratio = step_m / remaining
        pos = self.state.pos
        self.state.pos = Position(
            lat=pos.lat + (target.lat - pos.lat) * ratio,
            lng=pos.lng + (target.lng - pos.lng) * ratio,
            altitude=pos.altitude,
        )

    # ------------------------------------------------------------------
    # Altitude
    # ------------------------------------------------------------------

    def _lookup_altitude(self, pos: Position, key: str) -> float:
        try:
            resp = requests.get(
                self.settings.elevation_url,
                params={"locations": f"{pos.lat},{pos.lng}", "key": key},
                timeout=5.0,
            )
        except requests.RequestException as exc:
            raise AltitudeLookupError(f"Elevation HTTP error: {exc}") from exc

        if resp.status_code != 200:
            raise AltitudeLookupError(f"Elevation HTTP {resp.status_code}")

        try:
            data = resp.json()
            return float(data["results"][0]["elevation"])
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AltitudeLookupError("Elevation response has no results[0].elevation") from exc

    async def get_altitude(self, pos: Position) -> float:
        """Altitude of `pos` in meters (cached; random fallback)."""
        cell = (round(pos.lat, 3), round(pos.lng, 3))
        if cell in self._altitudes:
            return self._altitudes[cell]

        key = self.settings.gmap_key or self.state.api.gmapkey
        altitude: Optional[float] = None
        if key:
            try:
                altitude = await asyncio.to_thread(self._lookup_altitude, pos, key)
            except AltitudeLookupError as exc:
                logger.warning("Altitude lookup failed: %s", exc)

        if altitude is None:
            altitude = random.uniform(0.0, 20.0)

        self._altitudes[cell] = altitude
        return altitude
