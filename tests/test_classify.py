from __future__ import annotations

import pytest

from pogonode.core.classify import CLASSIFICATION_ORDER, classify_response
from pogonode.core.types import ResponseKind


@pytest.mark.parametrize(
    "payload, kind",
    [
        ({"success": True, "player_data": {"username": "x"}}, ResponseKind.PLAYER),
        ({"success": True, "egg_km_walked": []}, ResponseKind.HATCHED_EGGS),
        ({"success": True, "inventory_delta": {"inventory_items": []}}, ResponseKind.INVENTORY),
        ({"success": True, "awarded_badges": []}, ResponseKind.AWARDED_BADGES),
        ({"hash": "abc"}, ResponseKind.DOWNLOAD_SETTINGS),
        ({"result": 1, "item_templates_timestamp_ms": 1500}, ResponseKind.REMOTE_CONFIG_VERSION),
        ({"show_challenge": False, "challenge_url": " "}, ResponseKind.CHECK_CHALLENGE),
        ({"digest": [], "timestamp_ms": 1}, ResponseKind.ASSET_DIGEST),
        ({"success": True, "item_templates": []}, ResponseKind.ITEM_TEMPLATES),
        ({"result": 1, "items_awarded": [], "cooldown_complete_timestamp_ms": 5}, ResponseKind.FORT_SEARCH),
        ({"result": 1, "items_awarded": []}, ResponseKind.LEVEL_UP_REWARDS),
        ({"success": True, "candy_earned_count": 0}, ResponseKind.BUDDY_WALKED),
        ({"result": 1, "badges": []}, ResponseKind.PLAYER_PROFILE),
        ({"status": 1, "map_cells": []}, ResponseKind.MAP_OBJECTS),
        ({"success": False}, ResponseKind.VERIFY_CHALLENGE),
        ({"status": 1, "wild_pokemon": {}}, ResponseKind.ENCOUNTER),
        ({"status": 1, "captured_pokemon_id": 5}, ResponseKind.CATCH_POKEMON),
        ({"result": 1, "evolved_pokemon_data": {}}, ResponseKind.EVOLVE_POKEMON),
        ({"result": 1, "candy_awarded": 1}, ResponseKind.RELEASE_POKEMON),
        ({"result": 1, "new_count": 3}, ResponseKind.RECYCLE_ITEM),
        ({"result": 1, "egg_incubator": {}}, ResponseKind.USE_INCUBATOR),
        ({"result": 1, "codename": "me"}, ResponseKind.TUTORIAL),
    ],
)
def test_classify_known_shapes(payload, kind) -> None:
    assert classify_response(payload) is kind


def test_player_wins_over_everything() -> None:
    payload = {"player_data": {}, "inventory_delta": {}, "hash": "h", "map_cells": []}
    assert classify_response(payload) is ResponseKind.PLAYER


def test_fort_search_wins_over_level_up_rewards() -> None:
    # both carry items_awarded; the cooldown key decides
    payload = {"result": 1, "items_awarded": [{"item_id": 1, "item_count": 3}], "cooldown_complete_timestamp_ms": 1}
    assert classify_response(payload) is ResponseKind.FORT_SEARCH


def test_empty_hash_is_not_download_settings() -> None:
    assert classify_response({"hash": ""}) is ResponseKind.UNHANDLED


def test_zero_templates_timestamp_is_not_remote_config() -> None:
    assert classify_response({"item_templates_timestamp_ms": 0}) is ResponseKind.UNHANDLED


def test_none_valued_key_is_not_present() -> None:
    assert classify_response({"player_data": None}) is ResponseKind.UNHANDLED


@pytest.mark.parametrize("payload", [{}, {"foo": 1}, None, "text", 42, ["player_data"]])
def test_unknown_payloads_are_unhandled(payload) -> None:
    assert classify_response(payload) is ResponseKind.UNHANDLED


def test_priority_table_starts_with_the_fixed_order() -> None:
    kinds = [kind for kind, _ in CLASSIFICATION_ORDER]
    assert kinds[:14] == [
        ResponseKind.PLAYER,
        ResponseKind.HATCHED_EGGS,
        ResponseKind.INVENTORY,
        ResponseKind.AWARDED_BADGES,
        ResponseKind.DOWNLOAD_SETTINGS,
        ResponseKind.REMOTE_CONFIG_VERSION,
        ResponseKind.CHECK_CHALLENGE,
        ResponseKind.ASSET_DIGEST,
        ResponseKind.ITEM_TEMPLATES,
        ResponseKind.FORT_SEARCH,
        ResponseKind.LEVEL_UP_REWARDS,
        ResponseKind.BUDDY_WALKED,
        ResponseKind.PLAYER_PROFILE,
        ResponseKind.MAP_OBJECTS,
    ]
