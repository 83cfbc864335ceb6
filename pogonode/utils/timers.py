# pogonode/utils/timers.py
# -*- coding: utf-8 -*-
"""
pogonode — timing utilities
---------------------------
Lightweight helpers for measuring and pacing calls:

- Stopwatch   : log how long a batch round-trip took.
- jittered    : +/-10% random spread around a base delay.
- human_delay : await a jittered delay between calls, so the agent does not
                hammer the remote service at machine speed.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from contextlib import ContextDecorator
from typing import Optional


class Stopwatch(ContextDecorator):
    """
    Simple stopwatch context manager.

    Example:
        from pogonode.utils import Stopwatch, get_logger

        logger = get_logger(__name__)

        with Stopwatch("getMapObjects", logger, logging.DEBUG):
            responses = await transport.batch_call(batch)

    This will log something like:
        getMapObjects took 0.237 s
    """

    def __init__(
        self,
        label: str,
        logger: Optional[logging.Logger] = None,
        level: int = logging.INFO,
    ) -> None:
        self.label = label
        self.logger = logger or logging.getLogger(__name__)
        self.level = level
        self._start: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Stopwatch":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:  # type: ignore[override]
        self.elapsed = time.perf_counter() - self._start
        self.logger.log(self.level, "%s took %.3f s", self.label, self.elapsed)


def jittered(seconds: float, spread: float = 0.1) -> float:
    """Return `seconds` scaled by a random factor in [1 - spread, 1 + spread]."""
    if seconds <= 0:
        return 0.0
    return seconds * random.uniform(1.0 - spread, 1.0 + spread)


async def human_delay(seconds: float) -> None:
    """Sleep for a jittered version of `seconds`."""
    await asyncio.sleep(jittered(seconds))
