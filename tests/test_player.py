from __future__ import annotations

import asyncio

import pytest
from conftest import FakeTransport, FakeUi

from pogonode.core.player import PlayerActions
from pogonode.core.reconciler import Reconciler
from pogonode.models.inventory_model import Inventory, InventoryItem
from pogonode.models.map_model import MapSnapshot
from pogonode.providers.walker import Walker


@pytest.fixture
def make_player(state, settings):
    def factory(transport: FakeTransport, ui: FakeUi = None) -> PlayerActions:
        return PlayerActions(
            state,
            Reconciler(state, settings),
            lambda: transport,
            Walker(state, settings),
            ui or FakeUi(),
            settings,
        )

    return factory


def _stop(stop_id: str, lat: float, lng: float, **extra):
    return {"id": stop_id, "type": 1, "latitude": lat, "longitude": lng, **extra}


# =============================================================================
# Pokestops
# =============================================================================


def test_find_spinnable_filters_distance_cooldown_and_disabled(make_player, state) -> None:
    here = (state.pos.lat, state.pos.lng)
    state.map = MapSnapshot(
        pokestops=[
            _stop("near", *here),
            _stop("cooling", *here, cooldown_complete_timestamp_ms=2_000),
            _stop("cooled", *here, cooldown_complete_timestamp_ms=500),
            _stop("disabled", *here, enabled=False),
            _stop("far", here[0] + 0.01, here[1]),
        ]
    )
    player = make_player(FakeTransport())
    ids = [s["id"] for s in player.find_spinnable_pokestops(now_ms=1_000)]
    assert ids == ["near", "cooled"]


def test_find_spinnable_without_map(make_player) -> None:
    assert make_player(FakeTransport()).find_spinnable_pokestops() == []


def test_spin_updates_cooldown_visited_and_ui(make_player, state) -> None:
    state.inventory = Inventory(items=[InventoryItem(item_id=1, count=7)])
    state.map = MapSnapshot(pokestops=[_stop("s1", state.pos.lat, state.pos.lng)])
    transport = FakeTransport(
        {
            "fort_search": {
                "result": 1,
                "items_awarded": [{"item_id": 1, "item_count": 3}],
                "cooldown_complete_timestamp_ms": 999_999,
            }
        }
    )
    ui = FakeUi()
    player = make_player(transport, ui)

    spun = asyncio.run(player.spin_pokestops(player.find_spinnable_pokestops()))

    assert spun == 1
    assert state.map.find_pokestop("s1")["cooldown_complete_timestamp_ms"] == 999_999
    assert state.path.visited_pokestops == ["s1"]
    assert state.inventory.item_count(1) == 10
    assert ui.kinds() == ["pokestop_visited"]
    name, args = transport.batches[0].calls[0]
    assert name == "fort_search" and args[0] == "s1"
    assert transport.batches[0].names[-1] == "get_buddy_walked"


def test_spins_are_sequential_one_batch_per_stop(make_player, state) -> None:
    state.map = MapSnapshot(pokestops=[_stop(f"s{i}", state.pos.lat, state.pos.lng) for i in range(3)])
    transport = FakeTransport({"fort_search": {"result": 1, "items_awarded": [], "cooldown_complete_timestamp_ms": 1}})
    player = make_player(transport)

    asyncio.run(player.spin_pokestops(player.find_spinnable_pokestops()))

    assert [b.calls[0][1][0] for b in transport.batches] == ["s0", "s1", "s2"]


def test_failed_spin_keeps_cooldown_and_notifies_nothing(make_player, state) -> None:
    state.map = MapSnapshot(pokestops=[_stop("s1", state.pos.lat, state.pos.lng)])
    transport = FakeTransport({"fort_search": {"result": 3, "cooldown_complete_timestamp_ms": 0}})
    ui = FakeUi()

    spun = asyncio.run(make_player(transport, ui).spin_pokestops(state.map.pokestops))

    assert spun == 0
    assert "cooldown_complete_timestamp_ms" not in state.map.find_pokestop("s1")
    assert ui.events == []
    assert state.path.visited_pokestops == ["s1"]


# =============================================================================
# Creatures
# =============================================================================


def _catchable(encounter_id=42):
    return {"encounter_id": encounter_id, "spawn_point_id": "sp1", "pokemon_id": 16, "latitude": 0, "longitude": 0}


def test_encounter_and_catch_with_cheapest_ball(make_player, state) -> None:
    state.inventory = Inventory(items=[InventoryItem(item_id=1, count=0), InventoryItem(item_id=2, count=4)])
    state.map = MapSnapshot(catchable_pokemons=[_catchable()])
    transport = FakeTransport(
        {
            "encounter": {"status": 1, "wild_pokemon": {"encounter_id": 42}},
            "catch_pokemon": {"status": 1, "captured_pokemon_id": 777, "miss_percent": 0},
        }
    )
    ui = FakeUi()

    caught = asyncio.run(make_player(transport, ui).encounter_pokemons())

    assert caught == 1
    assert transport.primary_calls == ["encounter", "catch_pokemon"]
    assert transport.batches[1].calls[0] == ("catch_pokemon", (42, 2, "sp1"))
    assert ui.kinds() == ["pokemon_caught"]
    assert state.encountered == [42]


def test_escaped_creature_gets_more_throws(make_player, state) -> None:
    state.inventory = Inventory(items=[InventoryItem(item_id=1, count=10)])
    state.map = MapSnapshot(catchable_pokemons=[_catchable()])
    transport = FakeTransport(
        {
            "encounter": {"status": 1, "wild_pokemon": {}},
            "catch_pokemon": [{"status": 2, "miss_percent": 0}, {"status": 1, "captured_pokemon_id": 5}],
        }
    )
    assert asyncio.run(make_player(transport).encounter_pokemons()) == 1
    assert transport.primary_calls == ["encounter", "catch_pokemon", "catch_pokemon"]


def test_creature_is_encountered_only_once(make_player, state) -> None:
    state.inventory = Inventory(items=[InventoryItem(item_id=1, count=10)])
    state.map = MapSnapshot(catchable_pokemons=[_catchable()])
    transport = FakeTransport({"encounter": {"status": 1, "wild_pokemon": {}}, "catch_pokemon": {"status": 1, "captured_pokemon_id": 5}})
    player = make_player(transport)

    asyncio.run(player.encounter_pokemons())
    asyncio.run(player.encounter_pokemons())

    assert transport.primary_calls.count("encounter") == 1


def test_no_ball_no_catch(make_player, state) -> None:
    state.inventory = Inventory(items=[])
    state.map = MapSnapshot(catchable_pokemons=[_catchable()])
    transport = FakeTransport({"encounter": {"status": 1, "wild_pokemon": {}}})
    assert asyncio.run(make_player(transport).encounter_pokemons()) == 0
    assert transport.primary_calls == ["encounter"]


def test_failed_encounter_skips_catch(make_player, state) -> None:
    state.inventory = Inventory(items=[InventoryItem(item_id=1, count=10)])
    state.map = MapSnapshot(catchable_pokemons=[_catchable()])
    transport = FakeTransport({"encounter": {"status": 2, "wild_pokemon": None}})
    assert asyncio.run(make_player(transport).encounter_pokemons()) == 0
    assert transport.primary_calls == ["encounter"]


# =============================================================================
# Eggs
# =============================================================================


def test_dispatch_pairs_free_incubators_with_shortest_eggs(make_player, state) -> None:
    state.inventory = Inventory(
        eggs=[
            {"id": 1, "is_egg": True, "egg_km_walked_target": 10.0},
            {"id": 2, "is_egg": True, "egg_km_walked_target": 2.0},
            {"id": 3, "is_egg": True, "egg_km_walked_target": 5.0, "egg_incubator_id": "busy"},
            {"id": 4, "is_egg": True, "egg_km_walked_target": 5.0},
        ],
        egg_incubators=[
            {"id": "busy", "item_id": 902, "pokemon_id": 3},
            {"id": "limited", "item_id": 902},
            {"id": "infinite", "item_id": 901},
        ],
    )
    transport = FakeTransport({"use_item_egg_incubator": {"result": 1, "egg_incubator": {}}})

    dispatched = asyncio.run(make_player(transport).dispatch_incubators())

    assert dispatched == 2
    assert [b.calls[0][1] for b in transport.batches] == [("infinite", 2), ("limited", 4)]


def test_dispatch_without_free_incubator(make_player, state) -> None:
    state.inventory = Inventory(
        eggs=[{"id": 1, "is_egg": True, "egg_km_walked_target": 2.0}],
        egg_incubators=[{"id": "busy", "item_id": 901, "pokemon_id": 9}],
    )
    transport = FakeTransport()
    assert asyncio.run(make_player(transport).dispatch_incubators()) == 0
    assert transport.batches == []
