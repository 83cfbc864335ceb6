# pogonode/models/inventory_model.py
# -*- coding: utf-8 -*-
"""
pogonode — Inventory Model
--------------------------
Client-side view of the player's inventory, built from getInventory()
payloads by core.reconciler.

Partitions
----------
- items          : bag items (item_id -> count, unseen flag)
- pokemon        : creature records that are NOT eggs
- eggs           : creature records flagged `is_egg`
- player         : player stats record (level, experience, ...)
- egg_incubators : incubator records (used to dispatch eggs)
- candies        : candy per family

A creature id lives in exactly one of `pokemon` / `eggs` and is unique
across both lists. Creature records are kept as the server sent them
(plain dicts) since their shape changes with every protocol revision.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


class InventoryItem(BaseModel):
    """One bag item stack."""

    model_config = ConfigDict(extra="allow")

    item_id: int = Field(..., description="Item identifier (e.g. 1 = Poke Ball).")
    count: int = Field(default=0, description="How many the player holds.")
    unseen: bool = Field(default=False, description="New item flag for the UI.")


class Inventory(BaseModel):
    """Partitioned inventory snapshot (mutated in place by delta merges)."""

    model_config = ConfigDict(validate_assignment=False)

    items: List[InventoryItem] = Field(default_factory=list)
    pokemon: List[Dict[str, Any]] = Field(default_factory=list)
    eggs: List[Dict[str, Any]] = Field(default_factory=list)
    player: Dict[str, Any] = Field(default_factory=dict)
    egg_incubators: List[Dict[str, Any]] = Field(default_factory=list)
    candies: List[Dict[str, Any]] = Field(default_factory=list)

    # ----------------------------------------------------------------------
    # Convenience helpers
    # ----------------------------------------------------------------------
    def find_item(self, item_id: int) -> Optional[InventoryItem]:
        """Return the stack for `item_id`, or None if the item is not tracked."""
        for item in self.items:
            if item.item_id == item_id:
                return item
        return None

    def item_count(self, item_id: int) -> int:
        item = self.find_item(item_id)
        return item.count if item else 0

    def creature_ids(self) -> Set[Any]:
        """Ids of every creature record (pokemon and eggs)."""
        return {p.get("id") for p in self.pokemon} | {e.get("id") for e in self.eggs}

    def find_pokemon(self, pokemon_id: Any) -> Optional[Dict[str, Any]]:
        for pkm in self.pokemon:
            if pkm.get("id") == pokemon_id:
                return pkm
        return None

    @property
    def level(self) -> int:
        return int(self.player.get("level") or 1)
