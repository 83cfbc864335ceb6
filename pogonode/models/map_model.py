# pogonode/models/map_model.py
# -*- coding: utf-8 -*-
"""
pogonode — Map snapshot
-----------------------
What getMapObjects() told us about the surroundings, flattened across all
S2 cells of the request. The whole snapshot is replaced on every successful
map refresh; nothing is merged between two refreshes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# Fort type discriminant sent by the server.
FORT_TYPE_GYM = 0
FORT_TYPE_CHECKPOINT = 1  # pokestop


class MapSnapshot(BaseModel):
    """Flattened map objects around the player."""

    pokestops: List[Dict[str, Any]] = Field(default_factory=list)
    gyms: List[Dict[str, Any]] = Field(default_factory=list)
    wild_pokemons: List[Dict[str, Any]] = Field(default_factory=list)
    catchable_pokemons: List[Dict[str, Any]] = Field(default_factory=list)
    nearby_pokemons: List[Dict[str, Any]] = Field(default_factory=list)

    def find_pokestop(self, fort_id: str) -> Optional[Dict[str, Any]]:
        for stop in self.pokestops:
            if stop.get("id") == fort_id:
                return stop
        return None
