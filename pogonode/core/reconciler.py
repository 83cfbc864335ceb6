# pogonode/core/reconciler.py
# -*- coding: utf-8 -*-
"""
pogonode — Response reconciler
------------------------------
Folds a batch of decoded response payloads into the session state:

    [payload, payload, ...] -> classify_response() -> handler -> SessionState

One payload per sub-call of the originating batch, in the same order.
Payloads are applied one after the other; when a handler raises
(AccountBanned, ChallengeRequired, UnsupportedVersion) the remaining
payloads of the batch are NOT applied and the exception reaches the
controller.

Handlers only mutate state for the kinds that carry state. Egg hatching,
badge awards and buddy candy are logged but not applied: their reward
bookkeeping is an extension point.

IMPORTANT:
- Inventory: the first getInventory() payload bootstraps the whole
  inventory; later ones are deltas merged by id. A creature id is always
  in exactly one of `pokemon` / `eggs`.
- `api.inventory_timestamp` follows the watermark of every inventory
  payload, empty deltas included, and never goes backwards.
- Awards (fort search, level-up rewards) INCREMENT tracked item counts; a
  repeated award counts twice. Untracked item ids are ignored.
- The map snapshot is replaced, never merged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pogonode.core.classify import classify_response
from pogonode.core.config import Settings, settings as default_settings
from pogonode.core.errors import AccountBanned, ChallengeRequired
from pogonode.core.types import RESULT_SUCCESS, ParseInfo, Payload, ResponseKind
from pogonode.core.versioning import verify_minimum_version
from pogonode.models.inventory_model import Inventory, InventoryItem
from pogonode.models.map_model import FORT_TYPE_CHECKPOINT, MapSnapshot
from pogonode.models.settings_model import DownloadSettings
from pogonode.runtime_state import SessionState

logger = logging.getLogger(__name__)

Handler = Callable[[Payload, ParseInfo], None]

# Species seen everywhere; a map showing only these hints at a shadow ban.
COMMON_POKEMON = frozenset({
    16, 19, 23, 27, 29, 32, 41, 43, 46, 52, 54, 60, 69, 72, 74, 77, 81, 98,
    118, 120, 129, 161, 165, 167, 177, 183, 187, 191, 194, 198, 209, 218,
})

CATCH_SUCCESS = 1
ENCOUNTER_SUCCESS = 1


# ---------------------------------------------------------------------------
# Inventory split
# ---------------------------------------------------------------------------


@dataclass
class InventorySplit:
    """getInventory() payload sorted by what each entry holds."""

    items: List[InventoryItem] = field(default_factory=list)
    pokemon: List[Dict[str, Any]] = field(default_factory=list)
    eggs: List[Dict[str, Any]] = field(default_factory=list)
    player: Optional[Dict[str, Any]] = None
    egg_incubators: Optional[List[Dict[str, Any]]] = None
    candies: List[Dict[str, Any]] = field(default_factory=list)
    removed_pokemon: List[Any] = field(default_factory=list)

    @property
    def creatures(self) -> List[Dict[str, Any]]:
        return self.pokemon + self.eggs


def _to_item(raw: Mapping[str, Any]) -> InventoryItem:
    data = dict(raw)
    if "item_id" not in data and "id" in data:
        data["item_id"] = data.pop("id")
    return InventoryItem.model_validate(data)


def split_inventory(payload: Payload) -> InventorySplit:
    """
    Partition `inventory_delta.inventory_items` of a getInventory() payload.

    Each entry holds one of: pokemon_data (creature or egg), item,
    player_stats, egg_incubators, candy; or a deleted_item marker for a
    creature that no longer exists.
    """
    split = InventorySplit()
    delta = payload.get("inventory_delta") or {}

    for entry in delta.get("inventory_items") or []:
        deleted = entry.get("deleted_item")
        if deleted and deleted.get("pokemon_id") is not None:
            split.removed_pokemon.append(deleted["pokemon_id"])

        data = entry.get("inventory_item_data") or {}

        pokemon = data.get("pokemon_data")
        if pokemon:
            target = split.eggs if pokemon.get("is_egg") else split.pokemon
            target.append(dict(pokemon))

        item = data.get("item")
        if item:
            split.items.append(_to_item(item))

        if data.get("player_stats"):
            split.player = dict(data["player_stats"])

        incubators = data.get("egg_incubators")
        if incubators is not None:
            records = incubators.get("egg_incubator", []) if isinstance(incubators, Mapping) else incubators
            split.egg_incubators = (split.egg_incubators or []) + [dict(i) for i in records]

        if data.get("candy"):
            split.candies.append(dict(data["candy"]))

    return split


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------


class Reconciler:
    """
    Applies response batches to a SessionState.

    Parameters
    ----------
    state:
        The session state to mutate.
    settings:
        Used for the minimum client version gate and the shadow ban
        heuristic. Defaults to the global settings.
    """

    def __init__(self, state: SessionState, settings: Optional[Settings] = None) -> None:
        self.state = state
        self.settings = settings or default_settings

        self._handlers: Dict[ResponseKind, Handler] = {
            ResponseKind.PLAYER: self._on_player,
            ResponseKind.HATCHED_EGGS: self._on_hatched_eggs,
            ResponseKind.INVENTORY: self._on_inventory,
            ResponseKind.AWARDED_BADGES: self._on_awarded_badges,
            ResponseKind.DOWNLOAD_SETTINGS: self._on_download_settings,
            ResponseKind.REMOTE_CONFIG_VERSION: self._on_remote_config_version,
            ResponseKind.CHECK_CHALLENGE: self._on_check_challenge,
            ResponseKind.ASSET_DIGEST: self._on_asset_digest,
            ResponseKind.ITEM_TEMPLATES: self._on_item_templates,
            ResponseKind.FORT_SEARCH: self._on_fort_search,
            ResponseKind.LEVEL_UP_REWARDS: self._on_level_up_rewards,
            ResponseKind.BUDDY_WALKED: self._on_buddy_walked,
            ResponseKind.PLAYER_PROFILE: self._on_player_profile,
            ResponseKind.MAP_OBJECTS: self._on_map_objects,
            ResponseKind.VERIFY_CHALLENGE: self._on_verify_challenge,
            ResponseKind.ENCOUNTER: self._on_encounter,
            ResponseKind.CATCH_POKEMON: self._on_catch_pokemon,
            ResponseKind.EVOLVE_POKEMON: self._on_action_result,
            ResponseKind.RELEASE_POKEMON: self._on_action_result,
            ResponseKind.RECYCLE_ITEM: self._on_action_result,
            ResponseKind.USE_INCUBATOR: self._on_action_result,
            ResponseKind.TUTORIAL: self._on_tutorial,
            ResponseKind.UNHANDLED: self._on_unhandled,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse(self, responses: Union[None, Payload, Sequence[Payload]]) -> Optional[ParseInfo]:
        """
        Apply a response batch to the state.

        Returns None for an empty batch, otherwise a ParseInfo with the
        values the caller needs right away (cooldown, result, success...).
        """
        if not responses:
            return None
        if isinstance(responses, Mapping):
            responses = [responses]

        info = ParseInfo()
        for payload in responses:
            kind = classify_response(payload)
            info.kinds.append(kind)
            self._handlers[kind](payload, info)
        return info

    def maybe_shadow_banned(self) -> bool:
        """
        Heuristic: True when the map shows enough creatures and every one of
        them is a common species. Shadow-banned accounts only see those.
        """
        snapshot = self.state.map
        if snapshot is None:
            return False

        species: List[Any] = []
        for pkm in snapshot.catchable_pokemons + snapshot.nearby_pokemons:
            species.append(pkm.get("pokemon_id"))
        for pkm in snapshot.wild_pokemons:
            species.append((pkm.get("pokemon_data") or {}).get("pokemon_id"))

        if len(species) < self.settings.shadow_ban_min_sightings:
            return False
        return all(_as_int(s) in COMMON_POKEMON for s in species)

    # ------------------------------------------------------------------
    # Inventory helpers
    # ------------------------------------------------------------------

    def _ensure_inventory(self) -> Inventory:
        if self.state.inventory is None:
            self.state.inventory = Inventory()
        return self.state.inventory

    def _remove_creature(self, inventory: Inventory, creature_id: Any) -> None:
        inventory.pokemon = [p for p in inventory.pokemon if p.get("id") != creature_id]
        inventory.eggs = [e for e in inventory.eggs if e.get("id") != creature_id]

    def _put_creature(self, inventory: Inventory, record: Dict[str, Any]) -> None:
        # remove-then-append: the new record replaces any older one, in
        # whichever partition it was
        self._remove_creature(inventory, record.get("id"))
        if record.get("is_egg"):
            inventory.eggs.append(record)
        else:
            inventory.pokemon.append(record)

    def _merge_items(self, inventory: Inventory, items: Iterable[InventoryItem]) -> None:
        for new in items:
            current = inventory.find_item(new.item_id)
            if current is not None:
                current.count = new.count
                current.unseen = new.unseen
            else:
                inventory.items.append(new)

    def _award_items(self, awards: Iterable[Mapping[str, Any]]) -> None:
        inventory = self.state.inventory
        if inventory is None:
            return
        for award in awards:
            item = inventory.find_item(_as_int(award.get("item_id")))
            if item is not None:
                item.count += int(award.get("item_count") or 0)

    def _apply_split(self, inventory: Inventory, split: InventorySplit) -> None:
        if split.player:
            inventory.player = split.player
        self._merge_items(inventory, split.items)
        for record in split.creatures:
            self._put_creature(inventory, record)
        for creature_id in split.removed_pokemon:
            self._remove_creature(inventory, creature_id)
        if split.egg_incubators is not None:
            inventory.egg_incubators = split.egg_incubators
        for candy in split.candies:
            family = candy.get("family_id")
            inventory.candies = [c for c in inventory.candies if c.get("family_id") != family]
            inventory.candies.append(candy)

    def _advance_watermark(self, new_timestamp: Any) -> None:
        if new_timestamp is None:
            return
        ts = int(new_timestamp)
        current = self.state.api.inventory_timestamp
        if current is not None and ts < current:
            logger.warning("Inventory watermark went backwards (%s < %s), keeping %s", ts, current, current)
            return
        self.state.api.inventory_timestamp = ts

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _on_player(self, payload: Payload, info: ParseInfo) -> None:
        player = dict(payload["player_data"])
        player["banned"] = bool(payload.get("banned"))
        player["warn"] = bool(payload.get("warn"))
        self.state.player = player

        if player["banned"]:
            raise AccountBanned()
        if player["warn"]:
            logger.error("Ban warning.")

    def _on_hatched_eggs(self, payload: Payload, info: ParseInfo) -> None:
        rewards = ("egg_km_walked", "stardust_awarded", "candy_awarded", "experience_awarded", "pokemon_id")
        if any(payload.get(key) for key in rewards):
            # Rewards arrive with the next inventory delta; nothing applied here.
            logger.info(
                "Eggs hatched: pokemon=%s xp=%s stardust=%s candy=%s",
                payload.get("pokemon_id"),
                payload.get("experience_awarded"),
                payload.get("stardust_awarded"),
                payload.get("candy_awarded"),
            )

    def _on_inventory(self, payload: Payload, info: ParseInfo) -> None:
        delta = payload["inventory_delta"]
        split = split_inventory(payload)

        if self.state.inventory is None:
            inventory = self._ensure_inventory()
            self._apply_split(inventory, split)
            logger.debug(
                "Inventory loaded: %d items, %d pokemon, %d eggs",
                len(inventory.items),
                len(inventory.pokemon),
                len(inventory.eggs),
            )
        elif delta.get("inventory_items"):
            logger.debug("Inventory delta: %r", delta)
            self._apply_split(self.state.inventory, split)

        self._advance_watermark(delta.get("new_timestamp_ms"))

    def _on_awarded_badges(self, payload: Payload, info: ParseInfo) -> None:
        if payload.get("awarded_badges") or payload.get("awarded_badge_levels"):
            logger.info(
                "Badges awarded: %s (levels %s)",
                payload.get("awarded_badges"),
                payload.get("awarded_badge_levels"),
            )

    def _on_download_settings(self, payload: Payload, info: ParseInfo) -> None:
        self.state.api.settings_hash = payload["hash"]

        raw = payload.get("settings")
        if not raw:
            return

        download_settings = DownloadSettings.model_validate(raw)
        verify_minimum_version(download_settings.minimum_client_version, self.settings)

        self.state.download_settings = download_settings
        self.state.api.gmapkey = download_settings.map_settings.google_maps_api_key

    def _on_remote_config_version(self, payload: Payload, info: ParseInfo) -> None:
        self.state.api.item_templates_timestamp = int(payload["item_templates_timestamp_ms"])

    def _on_check_challenge(self, payload: Payload, info: ParseInfo) -> None:
        if payload.get("show_challenge"):
            url = payload.get("challenge_url") or ""
            logger.error("Challenge! challenge_url=%s", url)
            raise ChallengeRequired(url)

    def _on_asset_digest(self, payload: Payload, info: ParseInfo) -> None:
        digest = payload.get("digest")
        if digest:
            self.state.api.asset_digest = list(digest)

    def _on_item_templates(self, payload: Payload, info: ParseInfo) -> None:
        templates = payload.get("item_templates")
        if templates:
            self.state.api.item_templates = list(templates)

    def _on_fort_search(self, payload: Payload, info: ParseInfo) -> None:
        result = payload.get("result")
        info.result = result
        if result != RESULT_SUCCESS:
            logger.warning("fortSearch() returned %s", result)
            return

        self._award_items(payload.get("items_awarded") or [])

        egg = payload.get("pokemon_data_egg")
        if egg:
            self._put_creature(self._ensure_inventory(), {**egg, "is_egg": True})

        xp = int(payload.get("experience_awarded") or 0)
        self.state.player["experience"] = int(self.state.player.get("experience") or 0) + xp
        info.cooldown = payload.get("cooldown_complete_timestamp_ms")

    def _on_level_up_rewards(self, payload: Payload, info: ParseInfo) -> None:
        result = payload.get("result")
        info.result = result
        if result == RESULT_SUCCESS:
            logger.info("Level up rewards: %s", payload.get("items_awarded"))
            self._award_items(payload.get("items_awarded") or [])
        else:
            logger.debug("levelUpRewards() returned %s", result)

    def _on_buddy_walked(self, payload: Payload, info: ParseInfo) -> None:
        if payload.get("family_candy_id") or payload.get("candy_earned_count"):
            logger.info(
                "Buddy walked: %s candy for family %s",
                payload.get("candy_earned_count"),
                payload.get("family_candy_id"),
            )

    def _on_player_profile(self, payload: Payload, info: ParseInfo) -> None:
        logger.debug("Player profile: %d badges", len(payload.get("badges") or []))

    def _on_map_objects(self, payload: Payload, info: ParseInfo) -> None:
        cells = payload["map_cells"]

        def flatten(key: str) -> List[Dict[str, Any]]:
            return [dict(obj) for cell in cells for obj in (cell.get(key) or [])]

        forts = flatten("forts")
        self.state.map = MapSnapshot(
            pokestops=[f for f in forts if f.get("type") == FORT_TYPE_CHECKPOINT],
            gyms=[f for f in forts if f.get("type") != FORT_TYPE_CHECKPOINT],
            wild_pokemons=flatten("wild_pokemons"),
            catchable_pokemons=flatten("catchable_pokemons"),
            nearby_pokemons=flatten("nearby_pokemons"),
        )

    def _on_verify_challenge(self, payload: Payload, info: ParseInfo) -> None:
        info.success = bool(payload.get("success"))

    def _on_encounter(self, payload: Payload, info: ParseInfo) -> None:
        info.status = payload.get("status")
        if info.status == ENCOUNTER_SUCCESS:
            info.encounter = payload.get("wild_pokemon")
        else:
            logger.warning("encounter() returned status %s", info.status)

    def _on_catch_pokemon(self, payload: Payload, info: ParseInfo) -> None:
        info.status = payload.get("status")
        if info.status == CATCH_SUCCESS:
            logger.info("Pokemon caught: %s", payload.get("captured_pokemon_id"))
        else:
            logger.debug("catchPokemon() status %s", info.status)

    def _on_action_result(self, payload: Payload, info: ParseInfo) -> None:
        info.result = payload.get("result")

    def _on_tutorial(self, payload: Payload, info: ParseInfo) -> None:
        logger.debug("Tutorial step answered: %r", payload)

    def _on_unhandled(self, payload: Any, info: ParseInfo) -> None:
        logger.warning("unhandled response: %r", payload)


def _as_int(value: Any) -> Any:
    try:
        return int(value)
    except (TypeError, ValueError):
        return value
