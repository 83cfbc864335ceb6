"""
Shared pytest fixtures for the pogonode test suite.

Fakes stand in for the collaborators the agent talks to:

    FakeBatch      records chained calls (any method name)
    FakeTransport  answers each recorded call from a response table
    FakeUi         records UI pushes
    FakeProxy      scripted proxy check, counts bad_proxy() calls
    FakeResolver   returns a fixed captcha token

Fixtures:
    settings    Settings with zero delays and paths under tmp_path
    state       fresh SessionState at the default start position
    transport   FakeTransport with the default companion answers
    make_controller  factory wiring a Controller to the fakes
"""
from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from pogonode.core.config import Settings
from pogonode.core.controller import Controller
from pogonode.runtime_state import SessionState


# =============================================================================
# TRANSPORT FAKES
# =============================================================================


class FakeBatch:
    """Chainable builder that records every call made on it."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, tuple]] = []

    def __getattr__(self, name: str) -> Callable[..., "FakeBatch"]:
        if name.startswith("_"):
            raise AttributeError(name)

        def call(*args: Any, **kwargs: Any) -> "FakeBatch":
            self.calls.append((name, args + tuple(kwargs.values())))
            return self

        return call

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.calls]


def _inventory_answer(last_timestamp_ms: int = 0) -> Dict[str, Any]:
    return {"inventory_delta": {"new_timestamp_ms": int(last_timestamp_ms) + 1, "inventory_items": []}}


# Answers to the companion calls; an entry may be a payload, a callable
# taking the call arguments, or a list used as a queue of payloads.
DEFAULT_RESPONSES: Dict[str, Any] = {
    "check_challenge": {"show_challenge": False, "challenge_url": " "},
    "get_hatched_eggs": {"success": True, "egg_km_walked": []},
    "get_inventory": _inventory_answer,
    "check_awarded_badges": {"success": True, "awarded_badges": []},
    "download_settings": {"hash": "settings-hash"},
    "get_buddy_walked": {"success": True, "candy_earned_count": 0},
}


class FakeTransport:
    def __init__(self, responses: Optional[Dict[str, Any]] = None) -> None:
        self.responses: Dict[str, Any] = {**DEFAULT_RESPONSES, **(responses or {})}
        self.batches: List[FakeBatch] = []
        self.positions: List[Tuple[float, float, float]] = []
        self.initialized = False

    async def init(self) -> None:
        self.initialized = True

    def set_position(self, lat: float, lng: float, altitude: float) -> None:
        self.positions.append((lat, lng, altitude))

    def batch_start(self) -> FakeBatch:
        return FakeBatch()

    async def batch_call(self, batch: FakeBatch) -> List[Dict[str, Any]]:
        self.batches.append(batch)
        answers = []
        for name, args in batch.calls:
            answer = self.responses.get(name)
            if isinstance(answer, list):
                answer = answer.pop(0) if answer else None
            elif callable(answer):
                answer = answer(*args)
            if answer is not None:
                answers.append(copy.deepcopy(answer))
        return answers

    def get_cell_ids(self, lat: float, lng: float) -> List[int]:
        return [101, 102, 103]

    @property
    def primary_calls(self) -> List[Optional[str]]:
        """First call of every batch sent (None for the empty batch)."""
        return [b.names[0] if b.calls else None for b in self.batches]

    def batches_for(self, name: str) -> List[FakeBatch]:
        return [b for b in self.batches if b.calls and b.names[0] == name]


# =============================================================================
# COLLABORATOR FAKES
# =============================================================================


class FakeUi:
    def __init__(self) -> None:
        self.events: List[Tuple[str, Any]] = []

    def send_position(self) -> None:
        self.events.append(("position", None))

    def send_pokestops(self) -> None:
        self.events.append(("pokestops", None))

    def send_route(self, waypoints: Any) -> None:
        self.events.append(("route", list(waypoints)))

    def send_visited_pokestop(self, stop: Any) -> None:
        self.events.append(("pokestop_visited", stop))

    def send_pokemon_caught(self, pokemon: Any) -> None:
        self.events.append(("pokemon_caught", pokemon))

    def ready(self) -> None:
        self.events.append(("ready", None))

    def kinds(self) -> List[str]:
        return [kind for kind, _ in self.events]


class FakeProxy:
    def __init__(self, valid: bool = True, proxy: Optional[str] = None) -> None:
        self.valid = valid
        self.proxy = proxy
        self.bad_calls = 0

    async def check_proxy(self) -> bool:
        return self.valid

    def bad_proxy(self) -> None:
        self.bad_calls += 1


class FakeResolver:
    def __init__(self, token: Optional[str] = "captcha-token") -> None:
        self.token = token
        self.urls: List[str] = []

    async def solve_captcha_manual(self, url: str) -> Optional[str]:
        self.urls.append(url)
        return self.token


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings for tests: no delays, no network checks, files in tmp_path."""
    return Settings(
        _env_file=None,
        username="tester",
        password="secret",
        check_version=False,
        gmap_key=None,
        proxy_url=None,
        delay_walk_s=0,
        delay_spin_s=0,
        delay_encounter_s=0,
        delay_catch_s=0,
        delay_level_up_s=0,
        delay_release_s=0,
        delay_evolve_s=0,
        delay_recycle_s=0,
        delay_incubator_s=0,
        incubator_dispatch_chance=0.0,
        ui_enabled=False,
        data_dir=tmp_path,
        state_path=tmp_path / "state.json",
        item_templates_path=tmp_path / "item_templates.json",
        proxy_list_path=tmp_path / "proxies.json",
        bad_proxies_path=tmp_path / "bad.proxies.json",
        log_file=None,
    )


@pytest.fixture
def state() -> SessionState:
    return SessionState.create(48.8456222, 2.3364526)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_controller(state, settings):
    """Build a Controller wired to fakes; keyword overrides allowed."""

    def factory(
        transport: Optional[FakeTransport] = None,
        ui: Optional[FakeUi] = None,
        proxy: Optional[FakeProxy] = None,
        resolver: Optional[FakeResolver] = None,
        cfg: Optional[Settings] = None,
    ) -> Controller:
        return Controller(
            state,
            ui=ui or FakeUi(),
            transport=transport,
            proxy=proxy or FakeProxy(),
            resolver=resolver or FakeResolver(),
            settings=cfg or settings,
        )

    return factory
