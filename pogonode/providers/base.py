# pogonode/providers/base.py
# -*- coding: utf-8 -*-
"""
pogonode — Collaborator interfaces
----------------------------------
The core only talks to the outside world through these interfaces.

- BatchBuilder / Transport : the RPC client executing batched calls.
  It owns authentication, request signing, wire encoding, retries at the
  socket level and timeouts. It hands back decoded payloads (mappings),
  one per sub-call, in call order.
- ChallengeResolver        : gets a captcha token for a challenge URL.
- AssetFetcher             : downloads assets for newly seen creatures.
- Broadcaster              : fire-and-forget UI pushes.

No implementation of Transport ships with the agent; one is plugged in
through settings.transport_factory ("package.module:callable"), which is
called with the Settings and must return a Transport.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, List, Mapping, Optional, Protocol, Sequence

from pogonode.core.config import Settings
from pogonode.core.errors import ConfigError

logger = logging.getLogger(__name__)


class BatchBuilder(Protocol):
    """Chainable builder for one batch. Every call returns the builder."""

    # companion calls
    def check_challenge(self) -> "BatchBuilder": ...
    def get_hatched_eggs(self) -> "BatchBuilder": ...
    def get_inventory(self, last_timestamp_ms: int = 0) -> "BatchBuilder": ...
    def check_awarded_badges(self) -> "BatchBuilder": ...
    def download_settings(self, settings_hash: Optional[str] = None) -> "BatchBuilder": ...
    def get_buddy_walked(self) -> "BatchBuilder": ...

    # bootstrap
    def get_player(self, country: str, language: str, timezone: str) -> "BatchBuilder": ...
    def download_remote_config_version(self, platform: str, app_version: int) -> "BatchBuilder": ...
    def get_asset_digest(self, platform: str, app_version: int) -> "BatchBuilder": ...
    def download_item_templates(self) -> "BatchBuilder": ...
    def get_player_profile(self, player_name: str = "") -> "BatchBuilder": ...
    def level_up_rewards(self, level: int) -> "BatchBuilder": ...
    def get_store_items(self) -> "BatchBuilder": ...

    # tutorial
    def mark_tutorial_complete(self, steps: Sequence[int]) -> "BatchBuilder": ...
    def set_avatar(self, avatar: Mapping[str, Any]) -> "BatchBuilder": ...
    def encounter_tutorial_complete(self, pokemon_id: int) -> "BatchBuilder": ...
    def claim_codename(self, codename: str) -> "BatchBuilder": ...

    # map and actions
    def get_map_objects(self, cell_ids: Sequence[int], since_timestamps: Sequence[int]) -> "BatchBuilder": ...
    def fort_search(self, fort_id: str, fort_latitude: float, fort_longitude: float) -> "BatchBuilder": ...
    def encounter(self, encounter_id: Any, spawn_point_id: str) -> "BatchBuilder": ...
    def catch_pokemon(self, encounter_id: Any, pokeball: int, spawn_point_id: str) -> "BatchBuilder": ...
    def release_pokemon(self, pokemon_ids: Sequence[Any]) -> "BatchBuilder": ...
    def evolve_pokemon(self, pokemon_id: Any) -> "BatchBuilder": ...
    def recycle_inventory_item(self, item_id: int, count: int) -> "BatchBuilder": ...
    def use_item_egg_incubator(self, item_id: str, pokemon_id: Any) -> "BatchBuilder": ...
    def verify_challenge(self, token: str) -> "BatchBuilder": ...


class Transport(Protocol):
    """The RPC client."""

    async def init(self) -> None:
        """Authenticate and open the session (no call issued yet)."""

    def set_position(self, lat: float, lng: float, altitude: float) -> None: ...

    def batch_start(self) -> BatchBuilder: ...

    async def batch_call(self, batch: BatchBuilder) -> List[Mapping[str, Any]]:
        """Execute `batch`; return decoded payloads in call order."""

    def get_cell_ids(self, lat: float, lng: float) -> List[int]: ...


class ChallengeResolver(Protocol):
    async def solve_captcha_manual(self, url: str) -> Optional[str]:
        """Return the captcha token, or None if nothing was solved."""


class AssetFetcher(Protocol):
    async def get_assets_for_pokemons(self, pokemons: Sequence[Mapping[str, Any]]) -> None: ...


class Broadcaster(Protocol):
    def send_position(self) -> None: ...
    def send_pokestops(self) -> None: ...
    def send_route(self, waypoints: Sequence[Any]) -> None: ...
    def send_visited_pokestop(self, stop: Mapping[str, Any]) -> None: ...
    def send_pokemon_caught(self, pokemon: Mapping[str, Any]) -> None: ...
    def ready(self) -> None: ...


# ---------------------------------------------------------------------------
# Transport loading
# ---------------------------------------------------------------------------


def load_transport(settings: Settings, proxy: Optional[str] = None) -> Transport:
    """
    Build the transport named by settings.transport_factory.

    The factory is called as factory(settings, proxy=proxy).

    Raises
    ------
    ConfigError
        If no factory is configured or it cannot be imported.
    """
    target = settings.transport_factory
    if not target or ":" not in target:
        raise ConfigError(
            "No transport configured. Set POGONODE_TRANSPORT_FACTORY=package.module:callable."
        )

    module_name, _, attr = target.partition(":")
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise ConfigError(f"Cannot load transport factory {target!r}: {exc}") from exc

    logger.info("Using transport %s", target)
    return factory(settings, proxy=proxy)
