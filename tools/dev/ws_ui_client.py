#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
pogonode — Dev WebSocket UI Client (/ws/ui)
-------------------------------------------
Console tool that connects to the agent's live UI channel.

Features:
- Prints every push (position, pokestops, route, caught pokemon, ...).
- Optionally queues one action on connect:
      --level-up
      --release ID [ID ...]
      --evolve ID
      --drop ITEM_ID COUNT
      --inventory          (asks for the inventory)
- AUTO-RECONNECT when the connection drops (with backoff). The action is
  only sent on the first successful connection.

Example:

    python3 tools/dev/ws_ui_client.py --release 1234567890 --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed

DEFAULT_SERVER = "ws://127.0.0.1:8000/ws/ui"

# Pushes that are too chatty to print in full unless --verbose.
QUIET_TYPES = {"position", "pokestops", "route"}


# ---------------------------------------------------------------------------
# CLI argument parsing
# ---------------------------------------------------------------------------


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="pogonode — Dev WebSocket UI Client (/ws/ui)",
    )
    parser.add_argument(
        "--server",
        type=str,
        default=DEFAULT_SERVER,
        help=f"WebSocket server URL (default: {DEFAULT_SERVER})",
    )
    parser.add_argument("--verbose", action="store_true", help="Print position/route/pokestops pushes in full.")

    action = parser.add_mutually_exclusive_group()
    action.add_argument("--level-up", action="store_true", help="Queue a levelUpRewards().")
    action.add_argument("--release", nargs="+", metavar="ID", help="Queue a release of these pokemon ids.")
    action.add_argument("--evolve", metavar="ID", help="Queue an evolution of this pokemon id.")
    action.add_argument("--drop", nargs=2, type=int, metavar=("ITEM_ID", "COUNT"), help="Queue an item recycle.")
    action.add_argument("--inventory", action="store_true", help="Ask for the current inventory.")
    return parser.parse_args()


def build_action(args: argparse.Namespace) -> Optional[Dict[str, Any]]:
    """Frame for the action requested on the command line, if any."""
    if args.level_up:
        return {"type": "level_up", "payload": {}}
    if args.release:
        return {"type": "release_pokemon", "payload": {"pokemons": args.release}}
    if args.evolve:
        return {"type": "evolve_pokemon", "payload": {"pokemon": args.evolve}}
    if args.drop:
        item_id, count = args.drop
        return {"type": "drop_items", "payload": {"item_id": item_id, "count": count}}
    if args.inventory:
        return {"type": "inventory_request"}
    return None


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def show(data: Any, verbose: bool) -> None:
    if not isinstance(data, dict):
        print(f"Raw frame: {data}")
        return

    msg_type = data.get("type")
    payload = data.get("payload")

    if msg_type == "error":
        print(f"Server error: {data.get('code')} - {data.get('message')}")
        if data.get("details"):
            print(f"  details: {data['details']}")
        return

    if msg_type == "ack":
        print(f"[ack] {data.get('kind')} ok={data.get('ok')} queued={data.get('queued', '-')}")
        return

    if msg_type == "position" and not verbose:
        print(f"[position] {payload.get('lat'):.6f}, {payload.get('lng'):.6f}")
        return

    if msg_type in QUIET_TYPES and not verbose:
        size = len(payload) if isinstance(payload, list) else "?"
        print(f"[{msg_type}] {size} entries")
        return

    print(f"[{msg_type}] {json.dumps(payload, indent=2, ensure_ascii=False)}")


# ---------------------------------------------------------------------------
# One connection
# ---------------------------------------------------------------------------


async def run_single_session(args: argparse.Namespace, pending: List[Dict[str, Any]]) -> None:
    """Connect, send the pending action (once), print frames until closed."""
    async with websockets.connect(args.server, ping_interval=None, ping_timeout=None) as ws:
        print("Connected. Ctrl+C to quit.\n")

        if pending:
            action = pending.pop()
            await ws.send(json.dumps(action))
            print(f"[client] sent {action['type']}")

        async for raw in ws:
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                print(f"Raw frame (not JSON): {raw}")
                continue
            show(data, args.verbose)


# ---------------------------------------------------------------------------
# Auto-reconnect wrapper
# ---------------------------------------------------------------------------


async def run_with_reconnect(args: argparse.Namespace) -> None:
    """
    Backoff: 3s, 6s, 9s, ... capped at 30s. Ctrl+C at any time to exit.
    """
    attempt = 0
    base_delay = 3  # seconds
    action = build_action(args)
    pending = [action] if action is not None else []

    while True:
        attempt += 1
        try:
            print(f"Connecting to '{args.server}' (attempt {attempt}) ...")
            await run_single_session(args, pending)
            print("Server closed the connection.")
        except ConnectionClosed as exc:
            print(f"\nConnection closed: {exc}")
        except OSError as exc:
            print(f"\nConnection error: {exc}")

        delay = min(base_delay * attempt, 30)
        print(f"Reconnecting in {delay} seconds... (Ctrl+C to stop)")
        await asyncio.sleep(delay)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    args = parse_args()
    try:
        asyncio.run(run_with_reconnect(args))
    except KeyboardInterrupt:
        print("\nBye.")
        sys.exit(0)


if __name__ == "__main__":
    main()
