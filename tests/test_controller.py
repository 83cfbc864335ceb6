from __future__ import annotations

import asyncio
import logging

from conftest import FakeProxy, FakeResolver, FakeTransport, FakeUi

from pogonode.core.controller import EXIT_CHALLENGE, EXIT_FATAL, EXIT_NETWORK, EXIT_OK
from pogonode.core.errors import AccountBanned, ChallengeRequired, NetworkFailure, SoftActionFailure
from pogonode.models.todo_model import TodoAction
from pogonode.utils import read_json_safely, write_json_atomic

TUTORIAL_DONE = [0, 1, 3, 4, 7]


def _bootstrap_responses(**overrides):
    responses = {
        "get_player": {"success": True, "player_data": {"username": "tester", "tutorial_state": TUTORIAL_DONE}},
        "download_remote_config_version": {"result": 1, "item_templates_timestamp_ms": 1000},
        "get_asset_digest": {"digest": [{"asset_id": "a1"}], "timestamp_ms": 5},
        "download_item_templates": {"success": True, "item_templates": [{"template_id": "T1"}], "timestamp_ms": 1000},
        "get_player_profile": {"result": 1, "badges": []},
        "level_up_rewards": {"result": 2, "items_awarded": []},
        "get_store_items": {"items": []},
        "get_map_objects": {"status": 1, "map_cells": []},
    }
    responses.update(overrides)
    return responses


# =============================================================================
# Full run
# =============================================================================


def test_run_performs_login_and_bootstrap_in_order(make_controller, state, settings) -> None:
    transport = FakeTransport(_bootstrap_responses())
    ui = FakeUi()
    controller = make_controller(transport=transport, ui=ui)

    code = asyncio.run(controller.run(max_cycles=0))

    assert code == EXIT_OK
    assert transport.initialized
    assert transport.positions
    assert transport.primary_calls == [
        None,
        "get_player",
        "download_remote_config_version",
        "get_asset_digest",
        "download_item_templates",
        "get_player_profile",
        "level_up_rewards",
        "get_store_items",
        "get_map_objects",
    ]

    handshake = ["check_challenge", "get_hatched_eggs", "get_inventory", "check_awarded_badges", "download_settings"]
    assert transport.batches[1].names == ["get_player"]
    assert transport.batches[2].names == ["download_remote_config_version"] + handshake
    assert transport.batches_for("get_player_profile")[0].names == ["get_player_profile"] + handshake + ["get_buddy_walked"]
    assert transport.batches_for("get_store_items")[0].names == ["get_store_items"]

    assert state.player["username"] == "tester"
    assert state.api.settings_hash == "settings-hash"
    assert state.api.item_templates == [{"template_id": "T1"}]
    assert state.map is not None
    assert "ready" in ui.kinds()
    assert settings.state_path.is_file()


def test_watermark_is_echoed_on_following_batches(make_controller, state) -> None:
    transport = FakeTransport(_bootstrap_responses())
    asyncio.run(make_controller(transport=transport).run(max_cycles=0))

    sent = [dict(b.calls)["get_inventory"][0] for b in transport.batches if "get_inventory" in b.names]
    # each answer moves the watermark by one; every request carries the last one
    assert sent == list(range(len(sent)))


def test_item_templates_cached_after_download(make_controller, settings) -> None:
    transport = FakeTransport(_bootstrap_responses())
    asyncio.run(make_controller(transport=transport).run(max_cycles=0))

    cache = read_json_safely(settings.item_templates_path)
    assert cache == {"timestamp_ms": 1000, "item_templates": [{"template_id": "T1"}]}


def test_item_templates_not_downloaded_when_cache_is_current(make_controller, state, settings) -> None:
    write_json_atomic(settings.item_templates_path, {"timestamp_ms": 1000, "item_templates": [{"template_id": "cached"}]})
    transport = FakeTransport(_bootstrap_responses())
    controller = make_controller(transport=transport)
    state.api.item_templates_timestamp = 1000

    asyncio.run(controller.load_item_templates())

    assert transport.batches == []
    assert state.api.item_templates == [{"template_id": "cached"}]


def test_item_templates_downloaded_when_cache_is_older(make_controller, state, settings) -> None:
    write_json_atomic(settings.item_templates_path, {"timestamp_ms": 500, "item_templates": [{"template_id": "old"}]})
    transport = FakeTransport(_bootstrap_responses())
    state.api.item_templates_timestamp = 1000

    asyncio.run(make_controller(transport=transport).load_item_templates())

    assert transport.primary_calls == ["download_item_templates"]
    assert state.api.item_templates == [{"template_id": "T1"}]


def test_tutorial_steps_replace_player_profile(make_controller, state) -> None:
    responses = _bootstrap_responses(
        get_player={"player_data": {"username": "tester", "tutorial_state": [0, 1]}},
    )
    transport = FakeTransport(responses)
    asyncio.run(make_controller(transport=transport).run(max_cycles=0))

    assert "get_player_profile" not in transport.primary_calls
    assert transport.batches_for("encounter_tutorial_complete")
    codename = transport.batches_for("claim_codename")[0]
    assert codename.calls[0] == ("claim_codename", ("tester",))
    assert ("mark_tutorial_complete", ([4],)) in codename.calls
    assert ("mark_tutorial_complete", ([7],)) in transport.batches_for("mark_tutorial_complete")[-1].calls


def test_complete_tutorial_returns_false_when_done(make_controller, state) -> None:
    state.player = {"tutorial_state": TUTORIAL_DONE}
    transport = FakeTransport()
    assert asyncio.run(make_controller(transport=transport).complete_tutorial()) is False
    assert transport.batches == []


def test_banned_account_stops_during_bootstrap(make_controller) -> None:
    responses = _bootstrap_responses(get_player={"player_data": {"username": "tester"}, "banned": True})
    transport = FakeTransport(responses)

    code = asyncio.run(make_controller(transport=transport).run())

    assert code == EXIT_FATAL
    assert transport.primary_calls == [None, "get_player"]


def test_invalid_proxy_rotates_and_exits(make_controller, settings) -> None:
    cfg = settings.model_copy(update={"proxy_url": "http://10.0.0.1:3128"})
    proxy = FakeProxy(valid=False, proxy="http://10.0.0.1:3128")
    transport = FakeTransport()

    code = asyncio.run(make_controller(transport=transport, proxy=proxy, cfg=cfg).run())

    assert code == EXIT_NETWORK
    assert proxy.bad_calls == 1
    assert not transport.initialized


def test_missing_username_is_fatal(make_controller, settings) -> None:
    cfg = settings.model_copy(update={"username": ""})
    transport = FakeTransport()
    assert asyncio.run(make_controller(transport=transport, cfg=cfg).run()) == EXIT_FATAL
    assert transport.batches == []


def test_unexpected_error_during_login_exits(make_controller) -> None:
    class BrokenTransport(FakeTransport):
        async def init(self) -> None:
            raise RuntimeError("boom")

    assert asyncio.run(make_controller(transport=BrokenTransport()).run()) == EXIT_FATAL


# =============================================================================
# Steady state
# =============================================================================


def test_position_cycle_walks_pushes_and_refreshes(make_controller, state) -> None:
    state.map = None
    transport = FakeTransport(
        _bootstrap_responses(
            get_map_objects={
                "status": 1,
                "map_cells": [{"forts": [{"id": "far", "type": 1, "latitude": 48.8466, "longitude": 2.3364526}]}],
            }
        )
    )
    ui = FakeUi()
    controller = make_controller(transport=transport, ui=ui)

    asyncio.run(controller.map_refresh())
    start = (state.pos.lat, state.pos.lng)
    asyncio.run(controller.position_update_cycle())

    assert (state.pos.lat, state.pos.lng) != start
    assert ui.kinds()[:2] == ["pokestops", "route"]
    assert "position" in ui.kinds()
    # just refreshed: no second getMapObjects
    assert transport.primary_calls.count("get_map_objects") == 1


def test_map_refresh_records_time_and_position_first(make_controller, state) -> None:
    class FailingTransport(FakeTransport):
        async def batch_call(self, batch):
            raise NetworkFailure("socket hang up")

    controller = make_controller(transport=FailingTransport())
    try:
        asyncio.run(controller.map_refresh())
    except NetworkFailure:
        pass
    assert state.api.last_gmo is not None
    assert state.api.last_pos.lat == state.pos.lat


def test_steady_state_continues_after_soft_errors(make_controller, state) -> None:
    transport = FakeTransport(_bootstrap_responses())
    controller = make_controller(transport=transport)
    state.todo = [TodoAction(call="release_pokemon", pokemons=[1]), TodoAction(call="release_pokemon", pokemons=[2])]
    transport.responses["release_pokemon"] = {"result": 0, "candy_awarded": 0}

    code = asyncio.run(controller.steady_state(max_cycles=2))

    assert code == EXIT_OK
    assert state.todo == []
    assert len(transport.batches_for("release_pokemon")) == 2


def test_steady_state_exits_on_network_failure(make_controller) -> None:
    class FailingTransport(FakeTransport):
        async def batch_call(self, batch):
            raise ConnectionResetError("ECONNRESET")

    proxy = FakeProxy(proxy="http://p")
    code = asyncio.run(make_controller(transport=FailingTransport(), proxy=proxy).steady_state(max_cycles=3))
    assert code == EXIT_NETWORK
    assert proxy.bad_calls == 1


# =============================================================================
# Todo queue
# =============================================================================


def test_perform_todo_is_fifo_one_per_call(make_controller, state) -> None:
    transport = FakeTransport({"release_pokemon": {"result": 1, "candy_awarded": 1}})
    controller = make_controller(transport=transport)
    first = TodoAction(call="release_pokemon", pokemons=[5, 6])
    second = TodoAction(call="evolve_pokemon", pokemon=9)
    state.todo = [first, second]

    done = asyncio.run(controller.perform_todo())

    assert done is first
    assert state.todo == [second]
    assert transport.batches[0].calls[0] == ("release_pokemon", ([5, 6],))


def test_perform_todo_empty_queue(make_controller) -> None:
    transport = FakeTransport()
    assert asyncio.run(make_controller(transport=transport).perform_todo()) is None
    assert transport.batches == []


def test_failed_action_is_logged_and_dropped(make_controller, state, caplog) -> None:
    transport = FakeTransport({"recycle_inventory_item": {"result": 0, "new_count": 10}})
    state.todo = [TodoAction(call="drop_items", item_id=1, count=3)]

    with caplog.at_level(logging.WARNING, logger="pogonode.core.controller"):
        asyncio.run(make_controller(transport=transport).perform_todo())

    assert state.todo == []
    assert transport.batches[0].calls[0] == ("recycle_inventory_item", (1, 3))
    assert any("drop_items() returned 0" in r.getMessage() for r in caplog.records)


def test_level_up_uses_inventory_level(make_controller, state) -> None:
    transport = FakeTransport({"level_up_rewards": {"result": 1, "items_awarded": []}})
    state.todo = [TodoAction(call="level_up")]
    asyncio.run(make_controller(transport=transport).perform_todo())
    assert transport.batches[0].calls[0] == ("level_up_rewards", (1,))


def test_unknown_todo_is_logged(make_controller, state, caplog) -> None:
    transport = FakeTransport()
    state.todo = [TodoAction(call="dance")]
    with caplog.at_level(logging.WARNING, logger="pogonode.core.controller"):
        asyncio.run(make_controller(transport=transport).perform_todo())
    assert transport.batches == []
    assert any("Unhandled todo" in r.getMessage() for r in caplog.records)


# =============================================================================
# Failure handling
# =============================================================================


def test_handle_failure_fatal(make_controller) -> None:
    proxy = FakeProxy()
    controller = make_controller(transport=FakeTransport(), proxy=proxy)
    assert asyncio.run(controller.handle_failure(AccountBanned(), "steady_state")) == EXIT_FATAL
    assert proxy.bad_calls == 0


def test_handle_failure_network_marks_proxy(make_controller) -> None:
    proxy = FakeProxy(proxy="http://p")
    controller = make_controller(transport=FakeTransport(), proxy=proxy)
    code = asyncio.run(controller.handle_failure(Exception("tunneling socket could not be established"), "login"))
    assert code == EXIT_NETWORK
    assert proxy.bad_calls == 1


def test_handle_failure_challenge_resolves_and_exits(make_controller) -> None:
    transport = FakeTransport({"verify_challenge": {"success": True}})
    resolver = FakeResolver(token="tok")
    controller = make_controller(transport=transport, resolver=resolver)

    code = asyncio.run(controller.handle_failure(ChallengeRequired("https://captcha"), "steady_state"))

    assert code == EXIT_CHALLENGE
    assert resolver.urls == ["https://captcha"]
    assert transport.batches[0].calls[0] == ("verify_challenge", ("tok",))


def test_challenge_without_token_sends_nothing(make_controller) -> None:
    transport = FakeTransport()
    controller = make_controller(transport=transport, resolver=FakeResolver(token=None))
    code = asyncio.run(controller.handle_failure(ChallengeRequired("https://captcha"), "bootstrap"))
    assert code == EXIT_CHALLENGE
    assert transport.batches == []


def test_wrong_captcha_token_is_reported(make_controller, caplog) -> None:
    transport = FakeTransport({"verify_challenge": {"success": False}})
    controller = make_controller(transport=transport)
    with caplog.at_level(logging.WARNING, logger="pogonode.core.controller"):
        asyncio.run(controller.resolve_challenge("https://captcha"))
    assert any("Incorrect captcha token" in r.getMessage() for r in caplog.records)


def test_handle_failure_soft_depends_on_phase(make_controller) -> None:
    controller = make_controller(transport=FakeTransport())
    soft = SoftActionFailure("evolve_pokemon", 3)
    assert asyncio.run(controller.handle_failure(soft, "steady_state")) is None
    assert asyncio.run(controller.handle_failure(soft, "bootstrap")) == EXIT_FATAL
    assert asyncio.run(controller.handle_failure(ValueError("odd"), "steady_state")) is None
