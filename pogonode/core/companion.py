# pogonode/core/companion.py
# -*- coding: utf-8 -*-
"""
pogonode — Companion calls
--------------------------
The official client never sends a request on its own: nearly every batch
carries the same few "piggyback" sub-requests after its main call. The
server expects them, so we add them too.

- always_init(batch, state) : used during the login/bootstrap sequence
      checkChallenge, getHatchedEggs, getInventory(watermark),
      checkAwardedBadges, downloadSettings(hash)
- always(batch, state)      : used once the session is running
      the same, plus getBuddyWalked

Both return the builder so calls can be chained:

    responses = await transport.batch_call(always(batch.get_map_objects(...), state))
"""

from __future__ import annotations

from pogonode.providers.base import BatchBuilder
from pogonode.runtime_state import SessionState


def always_init(batch: BatchBuilder, state: SessionState) -> BatchBuilder:
    """Append the handshake companion calls to `batch`."""
    return (
        batch.check_challenge()
        .get_hatched_eggs()
        .get_inventory(state.api.inventory_timestamp or 0)
        .check_awarded_badges()
        .download_settings(state.api.settings_hash)
    )


def always(batch: BatchBuilder, state: SessionState, *, buddy: bool = True) -> BatchBuilder:
    """Append the steady-state companion calls to `batch`."""
    batch = always_init(batch, state)
    if buddy:
        batch = batch.get_buddy_walked()
    return batch
