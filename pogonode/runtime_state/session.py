# pogonode/runtime_state/session.py
# -*- coding: utf-8 -*-
"""
pogonode — Session State
------------------------

This module holds the single mutable aggregate the whole agent works on.

Purpose
~~~~~~~
- Track where we are (position, walking path), who we are (player profile),
  what we hold (inventory), what is around us (map snapshot) and the
  protocol bookkeeping the server expects back (timestamps, hashes).
- Queue user-requested actions (`todo`) for the controller.
- Snapshot all of it to a JSON file for debugging.

Design notes
~~~~~~~~~~~~
- One SessionState per process, created at start-up and passed by reference
  to the reconciler, the controller and the collaborators.
- Mutations are immediate; there is no transaction. Only the controller's
  event loop mutates it, one batch at a time.
- The snapshot is a best-effort debugging aid, never used to resume.
  Bulk reference data (item templates, asset digest) is left out of it.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from pogonode.models.inventory_model import Inventory
from pogonode.models.map_model import MapSnapshot
from pogonode.models.settings_model import DownloadSettings
from pogonode.models.todo_model import TodoAction
from pogonode.utils import get_logger, write_json_atomic


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

logger = get_logger("pogonode.runtime_state")


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class Position(BaseModel):
    """A point on the globe (degrees, meters)."""

    lat: float
    lng: float
    altitude: float = 0.0


class ApiBookkeeping(BaseModel):
    """
    Protocol bookkeeping echoed back to the server.

    Attributes
    ----------
    inventory_timestamp:
        Watermark of the last applied inventory delta (ms). Sent with every
        getInventory() so the server only returns newer changes.
    settings_hash:
        Opaque hash from downloadSettings(); sent back on the next one.
    item_templates_timestamp:
        Server-side item templates watermark from downloadRemoteConfigVersion().
    last_gmo / last_pos:
        When and where the last getMapObjects() was issued.
    gmapkey:
        Google Maps key the server hands out with the settings.
    item_templates / asset_digest:
        Bulk reference data, stored verbatim, not snapshotted.
    """

    inventory_timestamp: Optional[int] = None
    settings_hash: Optional[str] = None
    item_templates_timestamp: Optional[int] = None
    last_gmo: Optional[datetime] = None
    last_pos: Optional[Position] = None
    gmapkey: Optional[str] = None
    item_templates: List[Dict[str, Any]] = Field(default_factory=list)
    asset_digest: List[Dict[str, Any]] = Field(default_factory=list)


class PathState(BaseModel):
    """Walking path (see providers.walker)."""

    visited_pokestops: List[str] = Field(default_factory=list)
    waypoints: List[Position] = Field(default_factory=list)


class SessionState(BaseModel):
    """
    Everything the agent knows about its session.

    `inventory`, `map` and `download_settings` stay None until the first
    matching payload arrives.
    """

    pos: Position
    player: Dict[str, Any] = Field(default_factory=dict)
    inventory: Optional[Inventory] = None
    api: ApiBookkeeping = Field(default_factory=ApiBookkeeping)
    map: Optional[MapSnapshot] = None
    download_settings: Optional[DownloadSettings] = None
    todo: List[TodoAction] = Field(default_factory=list)
    path: PathState = Field(default_factory=PathState)
    encountered: List[Any] = Field(default_factory=list)

    @classmethod
    def create(cls, lat: float, lng: float) -> "SessionState":
        """Fresh, empty state positioned at (lat, lng)."""
        return cls(pos=Position(lat=lat, lng=lng))

    def remember_encounter(self, encounter_id: Any, limit: int = 200) -> None:
        """Record an encounter id, keeping only the last `limit` of them."""
        self.encountered.append(encounter_id)
        if len(self.encountered) > limit:
            self.encountered = self.encountered[-limit:]

    def snapshot(self) -> Dict[str, Any]:
        """Light JSON view of the state (no bulk reference data)."""
        return self.model_dump(
            mode="json",
            exclude={"api": {"item_templates", "asset_digest"}},
        )


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def save_state(state: SessionState, path: Union[Path, str]) -> bool:
    """
    Write the light snapshot of `state` to `path`.

    Best effort: any failure is logged and swallowed, the agent never stops
    because a debug file could not be written. Returns True on success.
    """
    try:
        write_json_atomic(Path(path), state.snapshot(), indent=4)
    except Exception as exc:  # noqa: BLE001
        logger.warning("[SessionState] Failed to save state to %s: %s", path, exc)
        return False
    return True
