# pogonode/providers/captcha.py
# -*- coding: utf-8 -*-
"""
pogonode — Manual challenge resolution
--------------------------------------
When checkChallenge() reports a captcha, somebody has to solve it in a
browser and paste the resulting token back. This resolver prints the URL and
waits for the token on stdin (in a worker thread, so the event loop and the
UI server keep running).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ConsoleChallengeResolver:
    """
    Parameters
    ----------
    prompt:
        Callable used to read the token; `input` by default.
    """

    def __init__(self, prompt: Callable[[str], str] = input) -> None:
        self.prompt = prompt

    async def solve_captcha_manual(self, url: str) -> Optional[str]:
        logger.warning("Captcha required. Open this url, solve it and paste the token: %s", url)
        try:
            token = await asyncio.to_thread(self.prompt, "captcha token> ")
        except EOFError:
            logger.error("No console attached, cannot read the captcha token.")
            return None

        token = (token or "").strip()
        return token or None
