# pogonode/core/controller.py
# -*- coding: utf-8 -*-
"""
pogonode — Call-sequencing controller
-------------------------------------
Drives the whole session, one batch at a time:

    login()       -> proxy check, version gate, position, transport init
    bootstrap()   -> the same handshake the official client performs
    steady_state()-> map refresh, then position update cycles forever

The controller is single-flight: it never has more than one batch on the
wire and every batch goes through the reconciler before the next one is
built. All state changes happen on this task.

Failures bubble up to handle_failure(), which asks core.recovery what to do
and returns the process exit code when the session must end.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pogonode.core.companion import always, always_init
from pogonode.core.config import Settings, settings as default_settings
from pogonode.core.errors import ChallengeRequired, ConfigError, NetworkFailure, SoftActionFailure
from pogonode.core.player import PlayerActions
from pogonode.core.reconciler import Reconciler
from pogonode.core.recovery import INVALID_PROXY_MESSAGE, classify_failure
from pogonode.core.refresh_policy import should_refresh_map
from pogonode.core.types import RESULT_SUCCESS, ParseInfo, RecoveryAction
from pogonode.core.versioning import fetch_minimum_version, verify_minimum_version
from pogonode.models.todo_model import TodoAction
from pogonode.providers.base import AssetFetcher, BatchBuilder, Broadcaster, ChallengeResolver, Transport, load_transport
from pogonode.providers.captcha import ConsoleChallengeResolver
from pogonode.providers.proxy import ProxyHelper
from pogonode.providers.walker import Walker
from pogonode.runtime_state import Position, SessionState, save_state
from pogonode.utils import Stopwatch, human_delay, read_json_safely, write_json_atomic

logger = logging.getLogger(__name__)

# Process exit codes returned by run().
EXIT_OK = 0
EXIT_FATAL = 1
EXIT_NETWORK = 2
EXIT_CHALLENGE = 3

PLATFORM = "IOS"

# Tutorial steps the server expects to see completed.
TUTORIAL_LEGAL_SCREEN = 0
TUTORIAL_AVATAR_SELECTION = 1
TUTORIAL_POKEMON_CAPTURE = 3
TUTORIAL_NAME_SELECTION = 4
TUTORIAL_FIRST_TIME_EXPERIENCE = 7
TUTORIAL_STEPS = (
    TUTORIAL_LEGAL_SCREEN,
    TUTORIAL_AVATAR_SELECTION,
    TUTORIAL_POKEMON_CAPTURE,
    TUTORIAL_NAME_SELECTION,
    TUTORIAL_FIRST_TIME_EXPERIENCE,
)

# Starters offered by the capture tutorial.
STARTERS = (1, 4, 7)

STARTUP_PHASES = ("login", "bootstrap")


class Controller:
    """
    Parameters
    ----------
    state:
        The session state; the reconciler is built on it.
    transport:
        RPC client. When None it is built during login() from
        settings.transport_factory, once the proxy is known.
    walker, proxy, resolver:
        Collaborators; defaults are built from `settings`.
    ui:
        UI broadcaster, required (pushes are fire-and-forget).
    assets:
        Optional asset fetcher called after each map refresh.
    """

    def __init__(
        self,
        state: SessionState,
        *,
        ui: Broadcaster,
        transport: Optional[Transport] = None,
        walker: Optional[Walker] = None,
        proxy: Optional[ProxyHelper] = None,
        resolver: Optional[ChallengeResolver] = None,
        assets: Optional[AssetFetcher] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.state = state
        self.settings = settings or default_settings
        self.transport = transport
        self.walker = walker or Walker(state, self.settings)
        self.proxy = proxy or ProxyHelper(self.settings)
        self.ui = ui
        self.resolver = resolver or ConsoleChallengeResolver()
        self.assets = assets

        self.reconciler = Reconciler(state, self.settings)
        self.player = PlayerActions(
            state,
            self.reconciler,
            lambda: self.transport,
            self.walker,
            self.ui,
            self.settings,
        )

    # ------------------------------------------------------------------
    # Batch helpers
    # ------------------------------------------------------------------

    def _batch(self) -> BatchBuilder:
        if self.transport is None:
            raise ConfigError("Transport not initialised; call login() first.")
        return self.transport.batch_start()

    async def _call(self, batch: BatchBuilder, label: str) -> Optional[ParseInfo]:
        with Stopwatch(label, logger, logging.DEBUG):
            responses = await self.transport.batch_call(batch)
        return self.reconciler.parse(responses)

    def save(self) -> None:
        save_state(self.state, self.settings.state_path)

    async def _push_position(self) -> None:
        altitude = await self.walker.get_altitude(self.state.pos)
        self.state.pos.altitude = altitude
        pos = self.walker.fuzzed_location(self.state.pos)
        self.transport.set_position(pos.lat, pos.lng, altitude)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(self) -> None:
        logger.info("App starting...")
        if not self.settings.username:
            raise ConfigError("Invalid credentials. Please set POGONODE_USERNAME and POGONODE_PASSWORD.")
        if self.settings.hashserver_active and not self.settings.hashserver_key:
            raise ConfigError("Please enter a valid hashserver key in config.")

        valid = await self.proxy.check_proxy()
        if self.settings.proxy_url and not valid:
            raise NetworkFailure(INVALID_PROXY_MESSAGE)

        if self.settings.check_version:
            minimum = await asyncio.to_thread(fetch_minimum_version, self.settings, self.proxy.proxy)
            logger.info("Minimum client version: %s", minimum)
            verify_minimum_version(minimum, self.settings)

        if self.transport is None:
            self.transport = load_transport(self.settings, proxy=self.proxy.proxy)

        await self._push_position()

        logger.info("Init api...")
        await self.transport.init()

        logger.debug("First empty request.")
        await self._call(self._batch(), "empty request")
        logger.info("Logged In.")

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def bootstrap(self) -> None:
        """The handshake sequence, strictly one batch after the other."""
        logger.info("Starting initial flow...")
        cfg = self.settings
        app_version = int(cfg.api_version)

        await self._call(self._batch().get_player(cfg.country, cfg.language, cfg.timezone), "getPlayer")

        batch = self._batch().download_remote_config_version(PLATFORM, app_version)
        await self._call(always_init(batch, self.state), "downloadRemoteConfigVersion")

        batch = self._batch().get_asset_digest(PLATFORM, app_version)
        await self._call(always_init(batch, self.state), "getAssetDigest")

        await self.load_item_templates()

        if not await self.complete_tutorial():
            batch = self._batch().get_player_profile("")
            await self._call(always(batch, self.state), "getPlayerProfile")

        level = self.state.inventory.level if self.state.inventory else 1
        await self._call(always(self._batch().level_up_rewards(level), self.state), "levelUpRewards")

        # the official client asks for the store; nothing in the answer is used
        await self.transport.batch_call(self._batch().get_store_items())
        logger.info("Initial flow done.")

    async def load_item_templates(self) -> None:
        """Download item templates only when the cached copy is outdated."""
        path = self.settings.item_templates_path
        cache: Dict[str, Any] = read_json_safely(path, default={}) or {}
        cached_ts = int(cache.get("timestamp_ms") or 0)
        server_ts = self.state.api.item_templates_timestamp or 0

        if cached_ts >= server_ts and cache.get("item_templates"):
            logger.debug("Item templates up to date (%s).", cached_ts)
            self.state.api.item_templates = list(cache["item_templates"])
            return

        logger.info("Downloading new item templates...")
        await self._call(always_init(self._batch().download_item_templates(), self.state), "downloadItemTemplates")
        try:
            write_json_atomic(
                path,
                {"timestamp_ms": server_ts, "item_templates": self.state.api.item_templates},
                indent=None,
            )
        except OSError as exc:
            logger.warning("Failed to cache item templates: %s", exc)

    async def complete_tutorial(self) -> bool:
        """
        Send the tutorial steps the player has not completed yet.

        Returns True if at least one step was sent.
        """
        done = set(self.state.player.get("tutorial_state") or [])
        missing = [step for step in TUTORIAL_STEPS if step not in done]
        if not missing:
            return False

        logger.info("Completing tutorial steps %s", missing)
        for step in missing:
            batch = self._batch()
            if step == TUTORIAL_AVATAR_SELECTION:
                batch = batch.set_avatar(_random_avatar()).mark_tutorial_complete([step])
            elif step == TUTORIAL_POKEMON_CAPTURE:
                batch = batch.encounter_tutorial_complete(random.choice(STARTERS))
            elif step == TUTORIAL_NAME_SELECTION:
                batch = batch.claim_codename(self.settings.username).mark_tutorial_complete([step])
            else:
                batch = batch.mark_tutorial_complete([step])

            await self._call(always(batch, self.state), f"tutorial step {step}")
            await human_delay(self.settings.delay_walk_s)
        return True

    # ------------------------------------------------------------------
    # Steady state
    # ------------------------------------------------------------------

    async def steady_state(self, max_cycles: Optional[int] = None) -> int:
        """
        Initial map refresh, then position update cycles until a failure
        ends the session (or `max_cycles` cycles ran).
        """
        try:
            await human_delay(self.settings.delay_walk_s)
            await self.map_refresh()
        except Exception as exc:  # noqa: BLE001
            code = await self.handle_failure(exc, "steady_state")
            if code is not None:
                return code

        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            cycles += 1
            await human_delay(self.settings.delay_walk_s)
            try:
                await self.position_update_cycle()
            except Exception as exc:  # noqa: BLE001
                code = await self.handle_failure(exc, "steady_state")
                if code is not None:
                    return code
        return EXIT_OK

    async def position_update_cycle(self) -> None:
        path = await self.walker.check_path()
        if path is not None:
            self.ui.send_route(path.waypoints)

        await self.walker.walk()
        await self._push_position()
        self.ui.send_position()

        await self.perform_todo()

        if self.map_refresh_due():
            await self.map_refresh()

    def map_refresh_due(self, now: Optional[datetime] = None) -> bool:
        map_settings = self.state.download_settings.map_settings if self.state.download_settings else None
        return should_refresh_map(
            self.state.api.last_gmo,
            now or datetime.now(timezone.utc),
            self.walker.distance(self.state.api.last_pos),
            map_settings,
        )

    async def perform_todo(self) -> Optional[TodoAction]:
        """Run the oldest queued action, if any. Returns it."""
        if not self.state.todo:
            return None

        todo = self.state.todo.pop(0)
        cfg = self.settings

        if todo.call == "level_up":
            level = self.state.inventory.level if self.state.inventory else 1
            info = await self._call(always(self._batch().level_up_rewards(level), self.state), "levelUpRewards")
            self._report(todo, info)
            await human_delay(cfg.delay_level_up_s)
        elif todo.call == "release_pokemon":
            info = await self._call(always(self._batch().release_pokemon(todo.pokemons), self.state), "releasePokemon")
            self._report(todo, info)
            await human_delay(cfg.delay_release_s)
        elif todo.call == "evolve_pokemon":
            info = await self._call(always(self._batch().evolve_pokemon(todo.pokemon), self.state), "evolvePokemon")
            self._report(todo, info)
            await human_delay(cfg.delay_evolve_s)
        elif todo.call == "drop_items":
            batch = self._batch().recycle_inventory_item(todo.item_id, todo.count)
            info = await self._call(always(batch, self.state), "recycleInventoryItem")
            self._report(todo, info)
            await human_delay(cfg.delay_recycle_s)
        else:
            logger.warning("Unhandled todo: %s", todo.call)
        return todo

    def _report(self, todo: TodoAction, info: Optional[ParseInfo]) -> bool:
        result = info.result if info else None
        if result == RESULT_SUCCESS:
            logger.info("%s done: %s", todo.call, todo.model_dump(exclude_none=True, exclude={"call"}))
            return True
        # dropped, not requeued
        logger.warning("%s", SoftActionFailure(todo.call, result))
        return False

    async def map_refresh(self) -> None:
        pos = self.state.pos
        logger.info("Map Refresh (%.6f, %.6f)", pos.lat, pos.lng)

        # recorded before the call so a failing refresh is not retried at once
        self.state.api.last_gmo = datetime.now(timezone.utc)
        self.state.api.last_pos = Position(lat=pos.lat, lng=pos.lng, altitude=pos.altitude)

        cell_ids = self.transport.get_cell_ids(pos.lat, pos.lng)
        batch = self._batch().get_map_objects(cell_ids, [0] * len(cell_ids))
        await self._call(always(batch, self.state), "getMapObjects")

        if self.reconciler.maybe_shadow_banned():
            logger.warning("Only common pokemon around. Account may be shadow banned.")
        self.save()

        snapshot = self.state.map
        if snapshot is None:
            return

        if self.assets is not None:
            await self.assets.get_assets_for_pokemons(snapshot.catchable_pokemons)

        self.ui.send_pokestops()

        await self.player.spin_pokestops(self.player.find_spinnable_pokestops())
        await self.player.encounter_pokemons()

        if random.random() < self.settings.incubator_dispatch_chance:
            logger.debug("Dispatching incubators...")
            await self.player.dispatch_incubators()

        self.save()

    # ------------------------------------------------------------------
    # Failures
    # ------------------------------------------------------------------

    async def resolve_challenge(self, url: str) -> Optional[str]:
        """Get a captcha token from the resolver and send it once."""
        token = await self.resolver.solve_captcha_manual(url)
        if not token:
            logger.error("No captcha token, cannot verify the challenge.")
            return None

        info = await self._call(always(self._batch().verify_challenge(token), self.state), "verifyChallenge")
        if not info or not info.success:
            logger.warning("Incorrect captcha token sent.")
        return token

    async def handle_failure(self, exc: BaseException, phase: str) -> Optional[int]:
        """
        Apply the recovery policy to `exc`.

        Returns the exit code when the session must end, None to continue.
        """
        action = classify_failure(exc)

        if action is RecoveryAction.LOG_AND_CONTINUE:
            logger.error("%s failed: %s", phase, exc, exc_info=not isinstance(exc, SoftActionFailure))
            if phase in STARTUP_PHASES:
                logger.error("Exiting.")
                return EXIT_FATAL
            return None

        if action is RecoveryAction.CHALLENGE_ESCALATE:
            url = exc.url if isinstance(exc, ChallengeRequired) else ""
            try:
                await self.resolve_challenge(url)
            except Exception as err:  # noqa: BLE001
                logger.error("Challenge verification failed: %s", err)
            logger.warning("Captcha handled. Please restart the agent.")
            return EXIT_CHALLENGE

        logger.error("%s", exc)
        if action is RecoveryAction.NETWORK_ROTATE:
            self.proxy.bad_proxy()
            logger.error("Exiting.")
            return EXIT_NETWORK

        logger.error("Exiting.")
        return EXIT_FATAL

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, max_cycles: Optional[int] = None) -> int:
        """login -> bootstrap -> steady state. Returns the exit code."""
        phase = "login"
        try:
            await self.login()
            phase = "bootstrap"
            await self.bootstrap()
        except Exception as exc:  # noqa: BLE001
            code = await self.handle_failure(exc, phase)
            return EXIT_FATAL if code is None else code

        self.save()
        self.ui.ready()
        return await self.steady_state(max_cycles)


def _random_avatar() -> Dict[str, int]:
    return {
        "skin": random.randint(0, 3),
        "hair": random.randint(0, 5),
        "shirt": random.randint(0, 3),
        "pants": random.randint(0, 2),
        "hat": random.randint(0, 4),
        "shoes": random.randint(0, 6),
        "avatar": random.randint(0, 1),
        "eyes": random.randint(0, 4),
        "backpack": random.randint(0, 5),
    }
