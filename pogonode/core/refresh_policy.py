# pogonode/core/refresh_policy.py
# -*- coding: utf-8 -*-
"""
pogonode — Map refresh policy
-----------------------------
Decides whether the current position update cycle issues a getMapObjects().

Hysteresis between the two server-advertised intervals:

    never refreshed                  -> refresh
    elapsed > max interval           -> refresh
    elapsed > min interval
        and moved > min distance     -> refresh
    otherwise                        -> wait

Comparisons are strict; an elapsed time exactly equal to a threshold does
not trigger.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pogonode.models.settings_model import MapSettings


def should_refresh_map(
    last_gmo: Optional[datetime],
    now: datetime,
    distance_m: float,
    map_settings: Optional[MapSettings] = None,
) -> bool:
    """
    Return True if a map refresh is due.

    Parameters
    ----------
    last_gmo:
        When the previous getMapObjects() was issued (None if never).
    now:
        Current time, same timezone awareness as `last_gmo`.
    distance_m:
        Straight-line distance moved since the previous refresh.
    map_settings:
        Server tunables; defaults (10 s / 30 s / 10 m) when not received yet.
    """
    if last_gmo is None:
        return True

    tunables = map_settings or MapSettings()
    elapsed = (now - last_gmo).total_seconds()

    if elapsed > tunables.get_map_objects_max_refresh_seconds:
        return True
    if elapsed > tunables.get_map_objects_min_refresh_seconds:
        return distance_m > tunables.get_map_objects_min_distance_meters
    return False
