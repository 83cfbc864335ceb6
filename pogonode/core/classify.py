# pogonode/core/classify.py
# -*- coding: utf-8 -*-
"""
classify.py
-----------
This module decides what kind of response a decoded payload is.

Response payloads carry no explicit type tag: a getPlayer() answer is
recognised because it has `player_data`, a fortSearch() answer because it
has `cooldown_complete_timestamp_ms`, and so on. Some shapes overlap
(a fortSearch answer also carries `items_awarded`, like levelUpRewards), so
the probes are tried in a FIXED order and the first match wins:

    PLAYER > HATCHED_EGGS > INVENTORY > AWARDED_BADGES > DOWNLOAD_SETTINGS
    > REMOTE_CONFIG_VERSION > CHECK_CHALLENGE > ASSET_DIGEST > ITEM_TEMPLATES
    > FORT_SEARCH > LEVEL_UP_REWARDS > BUDDY_WALKED > PLAYER_PROFILE
    > MAP_OBJECTS > VERIFY_CHALLENGE > ENCOUNTER > CATCH_POKEMON
    > EVOLVE_POKEMON > RELEASE_POKEMON > RECYCLE_ITEM > USE_INCUBATOR
    > TUTORIAL > UNHANDLED

Three flavours of probe are used:
    present : key exists and is not None (empty lists still count)
    has     : key exists, whatever its value
    truthy  : key exists with a truthy value (non-empty hash, non-zero ms)
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Tuple

from pogonode.core.types import ResponseKind

Probe = Callable[[Mapping[str, Any]], bool]


# -------------------------------------------------------------------------
# Probe builders
# -------------------------------------------------------------------------


def _present(key: str) -> Probe:
    return lambda p: p.get(key) is not None


def _has(*keys: str) -> Probe:
    return lambda p: any(k in p for k in keys)


def _truthy(key: str) -> Probe:
    return lambda p: bool(p.get(key))


# -------------------------------------------------------------------------
# Priority table
# Keep the first fourteen rows in this exact order; new shapes go at the end.
# -------------------------------------------------------------------------

CLASSIFICATION_ORDER: Tuple[Tuple[ResponseKind, Probe], ...] = (
    (ResponseKind.PLAYER, _present("player_data")),
    (ResponseKind.HATCHED_EGGS, _present("egg_km_walked")),
    (ResponseKind.INVENTORY, _present("inventory_delta")),
    (ResponseKind.AWARDED_BADGES, _present("awarded_badges")),
    (ResponseKind.DOWNLOAD_SETTINGS, _truthy("hash")),
    (ResponseKind.REMOTE_CONFIG_VERSION, _truthy("item_templates_timestamp_ms")),
    (ResponseKind.CHECK_CHALLENGE, _has("show_challenge")),
    (ResponseKind.ASSET_DIGEST, _has("digest")),
    (ResponseKind.ITEM_TEMPLATES, _present("item_templates")),
    (ResponseKind.FORT_SEARCH, _has("cooldown_complete_timestamp_ms")),
    (ResponseKind.LEVEL_UP_REWARDS, _present("items_awarded")),
    (ResponseKind.BUDDY_WALKED, _has("candy_earned_count")),
    (ResponseKind.PLAYER_PROFILE, _present("badges")),
    (ResponseKind.MAP_OBJECTS, _present("map_cells")),
    (ResponseKind.VERIFY_CHALLENGE, _has("success")),
    (ResponseKind.ENCOUNTER, _has("wild_pokemon")),
    (ResponseKind.CATCH_POKEMON, _has("captured_pokemon_id", "miss_percent")),
    (ResponseKind.EVOLVE_POKEMON, _has("evolved_pokemon_data")),
    (ResponseKind.RELEASE_POKEMON, _has("candy_awarded")),
    (ResponseKind.RECYCLE_ITEM, _has("new_count")),
    (ResponseKind.USE_INCUBATOR, _has("egg_incubator")),
    (ResponseKind.TUTORIAL, _has("codename", "capture_award")),
)


def classify_response(payload: Any) -> ResponseKind:
    """
    Return the ResponseKind of one decoded payload.

    Anything that is not a mapping, or matches no probe, is UNHANDLED.
    """
    if not isinstance(payload, Mapping):
        return ResponseKind.UNHANDLED

    for kind, probe in CLASSIFICATION_ORDER:
        if probe(payload):
            return kind
    return ResponseKind.UNHANDLED
