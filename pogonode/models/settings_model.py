# pogonode/models/settings_model.py
# -*- coding: utf-8 -*-
"""
pogonode — Download settings
----------------------------
Server-supplied tunables returned by downloadSettings(). Only the fields the
agent uses are declared; everything else the server sends is kept as extra
fields so it still shows up in the state snapshot.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MapSettings(BaseModel):
    """Map refresh tunables (seconds / meters)."""

    model_config = ConfigDict(extra="allow")

    get_map_objects_min_refresh_seconds: float = Field(
        default=10.0,
        description="Never refresh the map more often than this.",
    )
    get_map_objects_max_refresh_seconds: float = Field(
        default=30.0,
        description="Always refresh the map after this long.",
    )
    get_map_objects_min_distance_meters: float = Field(
        default=10.0,
        description="Between min and max, refresh only if we moved this far.",
    )
    google_maps_api_key: Optional[str] = None


class DownloadSettings(BaseModel):
    """The `settings` block of a downloadSettings() payload."""

    model_config = ConfigDict(extra="allow")

    minimum_client_version: Optional[str] = None
    map_settings: MapSettings = Field(default_factory=MapSettings)
