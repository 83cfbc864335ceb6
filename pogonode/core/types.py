# pogonode/core/types.py
# -*- coding: utf-8 -*-
"""
pogonode — Shared type helpers
------------------------------
Central place for small shared type definitions used across the core:

- ResponseKind   : every response shape the reconciler knows about
- RecoveryAction : what to do after a failure
- ParseInfo      : auxiliary result of parsing one response batch
- Payload        : a decoded response object (a plain mapping)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

# A decoded response object as handed over by the transport.
Payload = Mapping[str, Any]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ResponseKind(str, Enum):
    """
    Kinds of response payloads, in classification priority order.

    The order of members matches the order in which
    core.classify.classify_response() probes a payload.
    """

    PLAYER = "PLAYER"                                # getPlayer()
    HATCHED_EGGS = "HATCHED_EGGS"                    # getHatchedEggs()
    INVENTORY = "INVENTORY"                          # getInventory()
    AWARDED_BADGES = "AWARDED_BADGES"                # checkAwardedBadges()
    DOWNLOAD_SETTINGS = "DOWNLOAD_SETTINGS"          # downloadSettings()
    REMOTE_CONFIG_VERSION = "REMOTE_CONFIG_VERSION"  # downloadRemoteConfigVersion()
    CHECK_CHALLENGE = "CHECK_CHALLENGE"              # checkChallenge()
    ASSET_DIGEST = "ASSET_DIGEST"                    # getAssetDigest()
    ITEM_TEMPLATES = "ITEM_TEMPLATES"                # downloadItemTemplates()
    FORT_SEARCH = "FORT_SEARCH"                      # fortSearch()
    LEVEL_UP_REWARDS = "LEVEL_UP_REWARDS"            # levelUpRewards()
    BUDDY_WALKED = "BUDDY_WALKED"                    # getBuddyWalked()
    PLAYER_PROFILE = "PLAYER_PROFILE"                # getPlayerProfile()
    MAP_OBJECTS = "MAP_OBJECTS"                      # getMapObjects()
    VERIFY_CHALLENGE = "VERIFY_CHALLENGE"            # verifyChallenge()
    ENCOUNTER = "ENCOUNTER"                          # encounter()
    CATCH_POKEMON = "CATCH_POKEMON"                  # catchPokemon()
    RELEASE_POKEMON = "RELEASE_POKEMON"              # releasePokemon()
    EVOLVE_POKEMON = "EVOLVE_POKEMON"                # evolvePokemon()
    RECYCLE_ITEM = "RECYCLE_ITEM"                    # recycleInventoryItem()
    USE_INCUBATOR = "USE_INCUBATOR"                  # useItemEggIncubator()
    TUTORIAL = "TUTORIAL"                            # markTutorialComplete() & co
    UNHANDLED = "UNHANDLED"


class RecoveryAction(str, Enum):
    """What the controller does with a failure."""

    FATAL = "FATAL"                            # log and terminate
    NETWORK_ROTATE = "NETWORK_ROTATE"          # mark proxy bad, terminate
    CHALLENGE_ESCALATE = "CHALLENGE_ESCALATE"  # manual captcha, verify, terminate
    LOG_AND_CONTINUE = "LOG_AND_CONTINUE"      # soft failure


# Result code the server uses for "success" on action calls.
RESULT_SUCCESS = 1


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class ParseInfo:
    """
    Auxiliary result of Reconciler.parse() for immediate use by the caller.

    Attributes
    ----------
    cooldown:
        cooldown_complete_timestamp_ms from a successful fort search.
    success:
        success flag from verifyChallenge().
    result:
        result code of the last action payload (release, evolve, recycle,
        fort search, incubator, level-up rewards).
    status:
        catch status from catchPokemon().
    encounter:
        wild_pokemon record from a successful encounter().
    kinds:
        kinds of the payloads applied, in batch order.
    """

    cooldown: Optional[int] = None
    success: Optional[bool] = None
    result: Optional[int] = None
    status: Optional[int] = None
    encounter: Optional[Dict[str, Any]] = None
    kinds: List[ResponseKind] = field(default_factory=list)
