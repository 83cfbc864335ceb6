# pogonode/routers/ws.py
# -*- coding: utf-8 -*-
"""
pogonode — WebSocket router
---------------------------
Live UI channel:

- /ws/ui
    Server -> client pushes (position, pokestops, route, visited stop,
    caught pokemon, initialized) and client -> server action requests.

Message format (both directions):
---------------------------------
{
  "type": "position" | "pokestops" | "ping" | "release_pokemon" | ...,
  "payload": { ... }   # depends on type
}

Client -> server types:
  - "ping"               -> {"type": "ack", "kind": "ping", "ok": true}
  - "level_up"           -> queue a levelUpRewards()
  - "release_pokemon"    -> payload {"pokemons": [id, ...]}
  - "evolve_pokemon"     -> payload {"pokemon": id}
  - "drop_items"         -> payload {"item_id": n, "count": n}
  - "inventory_request"  -> reply with the current inventory

Actions are validated as TodoAction and appended to state.todo; the
controller runs them one per position update cycle.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from pogonode.models.todo_model import TODO_CALLS, TodoAction
from pogonode.runtime_state import SessionState

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


# ---------------------------------------------------------------------------
# Broadcaster
# ---------------------------------------------------------------------------


class UiBroadcaster:
    """
    Fire-and-forget pushes to every connected UI client.

    The send_* methods are plain functions: they schedule the actual sends
    on the running loop and return immediately, so the controller never
    waits on a slow (or dead) browser.
    """

    def __init__(self, state: SessionState, username: str = "") -> None:
        self.state = state
        self.username = username
        self.is_ready = False
        self.clients: Set[WebSocket] = set()
        self._tasks: Set[asyncio.Task] = set()

    # -- connections -----------------------------------------------------

    def register(self, websocket: WebSocket) -> None:
        self.clients.add(websocket)

    def unregister(self, websocket: WebSocket) -> None:
        self.clients.discard(websocket)

    # -- frames ----------------------------------------------------------

    def initialized_frame(self) -> Dict[str, Any]:
        state = self.state
        return {
            "type": "initialized",
            "payload": {
                "username": self.username,
                "player": state.player,
                "pos": state.pos.model_dump(mode="json"),
                "inventory": state.inventory.model_dump(mode="json") if state.inventory else None,
            },
        }

    def inventory_frame(self) -> Dict[str, Any]:
        inventory = self.state.inventory
        return {
            "type": "inventory_list",
            "payload": inventory.model_dump(mode="json") if inventory else None,
        }

    async def _send(self, websocket: WebSocket, frame: Dict[str, Any]) -> None:
        try:
            await websocket.send_json(frame)
        except Exception:  # noqa: BLE001
            logger.debug("UI push failed, dropping client", exc_info=True)
            self.unregister(websocket)

    def broadcast(self, msg_type: str, payload: Any) -> None:
        if not self.clients:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, UI push %r skipped", msg_type)
            return

        frame = {"type": msg_type, "payload": payload}
        for websocket in list(self.clients):
            task = loop.create_task(self._send(websocket, frame))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    # -- pushes used by the controller -----------------------------------

    def ready(self) -> None:
        self.is_ready = True
        frame = self.initialized_frame()
        self.broadcast(frame["type"], frame["payload"])

    def send_position(self) -> None:
        self.broadcast("position", {"lat": self.state.pos.lat, "lng": self.state.pos.lng})

    def send_pokestops(self) -> None:
        stops = self.state.map.pokestops if self.state.map else []
        self.broadcast("pokestops", stops)

    def send_route(self, waypoints: Sequence[Any]) -> None:
        route = [w.model_dump() if hasattr(w, "model_dump") else w for w in waypoints]
        self.broadcast("route", route)

    def send_visited_pokestop(self, stop: Any) -> None:
        self.broadcast("pokestop_visited", stop)

    def send_pokemon_caught(self, pokemon: Any) -> None:
        self.broadcast("pokemon_caught", pokemon)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _send_error(
    websocket: WebSocket,
    code: str,
    message: str,
    details: Optional[Any] = None,
) -> None:
    """Send a structured error frame to the client."""
    payload: Dict[str, Any] = {
        "type": "error",
        "code": code,
        "message": message,
    }
    if details is not None:
        payload["details"] = details
    try:
        await websocket.send_json(payload)
    except Exception:  # noqa: BLE001
        logger.debug("Failed to send error frame over WebSocket", exc_info=True)


# ---------------------------------------------------------------------------
# /ws/ui
# ---------------------------------------------------------------------------


@router.websocket("/ws/ui")
async def websocket_ui(websocket: WebSocket) -> None:
    """Live UI: pushes from the agent, action requests from the user."""
    ui: UiBroadcaster = websocket.app.state.ui
    state: SessionState = websocket.app.state.session

    await websocket.accept()
    ui.register(websocket)
    logger.info("WebSocket /ws/ui connected (%d clients)", len(ui.clients))

    try:
        if ui.is_ready:
            await websocket.send_json(ui.initialized_frame())

        while True:
            data = await websocket.receive_json()
            if not isinstance(data, dict) or not data.get("type"):
                await _send_error(
                    websocket,
                    code="missing_type",
                    message='UI frame must include a "type" field.',
                )
                continue

            msg_type = str(data["type"]).lower().strip()
            payload = data.get("payload") or {}

            # PING ----------------------------------------------------------------
            if msg_type == "ping":
                await websocket.send_json({"type": "ack", "kind": "ping", "ok": True})
                continue

            # INVENTORY -----------------------------------------------------------
            if msg_type == "inventory_request":
                await websocket.send_json(ui.inventory_frame())
                continue

            # ACTIONS -------------------------------------------------------------
            if msg_type in TODO_CALLS:
                if not isinstance(payload, dict):
                    await _send_error(
                        websocket,
                        code="invalid_payload",
                        message='Action "payload" must be an object.',
                    )
                    continue
                try:
                    todo = TodoAction(**{**payload, "call": msg_type})
                except ValidationError as exc:
                    logger.warning("Invalid %s request over WS: %s", msg_type, exc)
                    await _send_error(
                        websocket,
                        code="invalid_action",
                        message=f"Payload does not match the {msg_type} action.",
                        details=exc.errors(include_url=False, include_context=False),
                    )
                    continue

                state.todo.append(todo)
                logger.info("Queued %s (%d pending)", todo.call, len(state.todo))
                await websocket.send_json(
                    {"type": "ack", "kind": msg_type, "ok": True, "queued": len(state.todo)}
                )
                continue

            # UNKNOWN TYPE -------------------------------------------------------
            logger.warning("Unknown UI message type received: %r", msg_type)
            await _send_error(
                websocket,
                code="unknown_type",
                message=f"Unknown message type: {msg_type!r}",
            )

    except WebSocketDisconnect:
        logger.info("WebSocket /ws/ui disconnected")
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error in WS /ws/ui: %s", exc)
        try:
            await websocket.close(code=1011)
        except Exception:  # noqa: BLE001
            pass
    finally:
        ui.unregister(websocket)
