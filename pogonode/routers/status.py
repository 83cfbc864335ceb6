# pogonode/routers/status.py
# -*- coding: utf-8 -*-
"""
pogonode — /status router
-------------------------
Read-only views of the live session state:

- /status/player     player profile + position
- /status/inventory  items, pokemon, eggs, incubators, candies
- /status/map        last map snapshot
- /status/todo       queued user actions

The state is the in-memory SessionState the controller is mutating; these
endpoints only read it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request

from pogonode.runtime_state import SessionState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/status", tags=["status"])


def _state(request: Request) -> SessionState:
    return request.app.state.session


@router.get("/player", summary="Player profile and position")
async def get_player_status(request: Request) -> Dict[str, Any]:
    state = _state(request)
    return {
        "player": state.player,
        "pos": state.pos.model_dump(mode="json"),
        "level": state.inventory.level if state.inventory else None,
        "visited_pokestops": len(state.path.visited_pokestops),
    }


@router.get("/inventory", summary="Current inventory")
async def get_inventory_status(request: Request) -> Dict[str, Any]:
    """
    Return the inventory as last reconciled.

    503 until the first getInventory() answer arrived.
    """
    state = _state(request)
    if state.inventory is None:
        raise HTTPException(status_code=503, detail="Inventory not loaded yet.")
    return {
        "timestamp_ms": state.api.inventory_timestamp,
        **state.inventory.model_dump(mode="json"),
    }


@router.get("/map", summary="Last map snapshot")
async def get_map_status(request: Request) -> Dict[str, Any]:
    state = _state(request)
    if state.map is None:
        raise HTTPException(status_code=503, detail="No map refresh yet.")
    return {
        "last_gmo": state.api.last_gmo.isoformat() if state.api.last_gmo else None,
        **state.map.model_dump(mode="json"),
    }


@router.get("/todo", summary="Queued actions")
async def get_todo_status(request: Request) -> Dict[str, Any]:
    state = _state(request)
    return {"todo": [t.model_dump(mode="json", exclude_none=True) for t in state.todo]}
