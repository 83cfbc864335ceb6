# pogonode/core/player.py
# -*- coding: utf-8 -*-
"""
pogonode — Player actions
-------------------------
The in-game actions performed after each map refresh:

- find_spinnable_pokestops : stops in range whose cooldown is over
- spin_pokestops           : fortSearch() each of them, one by one
- encounter_pokemons       : encounter() + catchPokemon() catchable creatures
- dispatch_incubators      : put un-incubated eggs into free incubators

Everything is strictly sequential with a human-like delay after each call.
Spins in particular must never run concurrently: the delay between them is
a deliberate rate limit.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Mapping, Optional

from pogonode.core.companion import always
from pogonode.core.config import Settings, settings as default_settings
from pogonode.core.reconciler import CATCH_SUCCESS, Reconciler
from pogonode.core.types import RESULT_SUCCESS, ParseInfo
from pogonode.providers.base import BatchBuilder, Broadcaster, Transport
from pogonode.providers.walker import Walker
from pogonode.runtime_state import SessionState
from pogonode.utils import Stopwatch, human_delay

logger = logging.getLogger(__name__)

# Ball item ids, cheapest first.
POKE_BALL = 1
GREAT_BALL = 2
ULTRA_BALL = 3
BALLS = (POKE_BALL, GREAT_BALL, ULTRA_BALL)

CATCH_ESCAPE = 2
CATCH_MISSED = 4
MAX_THROWS = 3

INFINITE_INCUBATOR = 901


class PlayerActions:
    """
    Parameters
    ----------
    state, reconciler:
        Shared session state and the reconciler applying responses to it.
    transport:
        RPC client; read through a callable because the controller only
        creates it during login.
    walker:
        For distances to map objects.
    ui:
        UI broadcaster (fire-and-forget pushes).
    """

    def __init__(
        self,
        state: SessionState,
        reconciler: Reconciler,
        transport_getter,
        walker: Walker,
        ui: Broadcaster,
        settings: Optional[Settings] = None,
    ) -> None:
        self.state = state
        self.reconciler = reconciler
        self._transport_getter = transport_getter
        self.walker = walker
        self.ui = ui
        self.settings = settings or default_settings

    @property
    def transport(self) -> Transport:
        return self._transport_getter()

    async def _call(self, batch: BatchBuilder, label: str) -> Optional[ParseInfo]:
        with Stopwatch(label, logger, logging.DEBUG):
            responses = await self.transport.batch_call(always(batch, self.state))
        return self.reconciler.parse(responses)

    # ------------------------------------------------------------------
    # Pokestops
    # ------------------------------------------------------------------

    def find_spinnable_pokestops(self, now_ms: Optional[int] = None) -> List[Dict[str, Any]]:
        """Pokestops close enough to spin and not in cooldown."""
        if self.state.map is None:
            return []

        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        stops = []
        for stop in self.state.map.pokestops:
            if stop.get("enabled") is False:
                continue
            if int(stop.get("cooldown_complete_timestamp_ms") or 0) > now_ms:
                continue
            if self.walker.distance_to(stop) > self.settings.spin_distance_m:
                continue
            stops.append(stop)
        return stops

    async def spin_pokestops(self, stops: List[Mapping[str, Any]]) -> int:
        """Spin `stops` one after the other. Returns how many succeeded."""
        spun = 0
        for stop in stops:
            fort_id = stop.get("id")
            logger.debug("spin %s", fort_id)

            batch = self.transport.batch_start().fort_search(
                fort_id,
                float(stop.get("latitude", 0.0)),
                float(stop.get("longitude", 0.0)),
            )
            info = await self._call(batch, "fortSearch")

            if fort_id not in self.state.path.visited_pokestops:
                self.state.path.visited_pokestops.append(fort_id)

            if info is not None and info.result == RESULT_SUCCESS:
                spun += 1
                current = self.state.map.find_pokestop(fort_id) if self.state.map else None
                if current is not None:
                    current["cooldown_complete_timestamp_ms"] = info.cooldown
                    self.ui.send_visited_pokestop(current)

            await human_delay(self.settings.delay_spin_s)

        if stops:
            logger.info("Spun %d/%d pokestops", spun, len(stops))
        return spun

    # ------------------------------------------------------------------
    # Creatures
    # ------------------------------------------------------------------

    def _pick_ball(self) -> Optional[int]:
        inventory = self.state.inventory
        if inventory is None:
            return None
        for ball in BALLS:
            if inventory.item_count(ball) > 0:
                return ball
        return None

    async def encounter_pokemons(self) -> int:
        """Encounter and try to catch every catchable creature not seen yet."""
        if self.state.map is None:
            return 0

        caught = 0
        for pkm in list(self.state.map.catchable_pokemons):
            encounter_id = pkm.get("encounter_id")
            if encounter_id in self.state.encountered:
                continue
            self.state.remember_encounter(encounter_id, self.settings.max_encountered_memory)

            spawn_point = pkm.get("spawn_point_id", "")
            batch = self.transport.batch_start().encounter(encounter_id, spawn_point)
            info = await self._call(batch, "encounter")
            await human_delay(self.settings.delay_encounter_s)
            if info is None or info.encounter is None:
                continue

            for _ in range(MAX_THROWS):
                ball = self._pick_ball()
                if ball is None:
                    logger.warning("No pokeball left, skipping catches.")
                    return caught

                batch = self.transport.batch_start().catch_pokemon(encounter_id, ball, spawn_point)
                info = await self._call(batch, "catchPokemon")
                await human_delay(self.settings.delay_catch_s)

                status = info.status if info else None
                if status == CATCH_SUCCESS:
                    caught += 1
                    self.ui.send_pokemon_caught(pkm)
                    break
                if status not in (CATCH_ESCAPE, CATCH_MISSED):
                    # fled or error, no second chance
                    break
        return caught

    # ------------------------------------------------------------------
    # Eggs
    # ------------------------------------------------------------------

    async def dispatch_incubators(self) -> int:
        """Put eggs (shortest first) into free incubators."""
        inventory = self.state.inventory
        if inventory is None:
            return 0

        free = [i for i in inventory.egg_incubators if not i.get("pokemon_id") or str(i.get("pokemon_id")) == "0"]
        eggs = sorted(
            (e for e in inventory.eggs if not e.get("egg_incubator_id")),
            key=lambda e: float(e.get("egg_km_walked_target") or 0.0),
        )
        # the infinite incubator gets the shortest egg, limited ones the longer
        free.sort(key=lambda i: 0 if i.get("item_id") == INFINITE_INCUBATOR else 1)

        dispatched = 0
        for incubator, egg in zip(free, eggs):
            batch = self.transport.batch_start().use_item_egg_incubator(incubator.get("id"), egg.get("id"))
            info = await self._call(batch, "useItemEggIncubator")
            if info is not None and info.result == RESULT_SUCCESS:
                dispatched += 1
                logger.info("Egg %s (%s km) put in incubator %s", egg.get("id"), egg.get("egg_km_walked_target"), incubator.get("id"))
            else:
                logger.warning("useItemEggIncubator() returned %s", info.result if info else None)
            await human_delay(self.settings.delay_incubator_s)
        return dispatched
