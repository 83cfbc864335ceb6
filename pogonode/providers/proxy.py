# pogonode/providers/proxy.py
# -*- coding: utf-8 -*-
"""
pogonode — Proxy helper
-----------------------
Chooses and validates the network egress point.

- proxy_url unset      : direct connection, always valid.
- proxy_url = "<url>"  : use that proxy.
- proxy_url = "auto"   : pick a random proxy from data/proxies.json that is
                         not listed in data/bad.proxies.json.

A proxy is valid when the public IP seen through it differs from the one
seen without it (so it is actually proxying). When the controller decides
the egress point is burnt it calls bad_proxy(), which records it so that
"auto" will not pick it again on the next start.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import List, Optional

import requests

from pogonode.core.config import Settings, settings as default_settings
from pogonode.utils import read_json_safely, write_json_atomic

logger = logging.getLogger(__name__)


class ProxyError(Exception):
    """Raised when the public IP cannot be determined."""


class ProxyHelper:
    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or default_settings
        self.proxy: Optional[str] = None
        self.clear_ip: Optional[str] = None
        self.proxied_ip: Optional[str] = None

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def bad_proxies(self) -> List[str]:
        return list(read_json_safely(self.settings.bad_proxies_path, default=[]) or [])

    def _pick_auto_proxy(self) -> Optional[str]:
        candidates = read_json_safely(self.settings.proxy_list_path, default=[], log_missing=True) or []
        bad = set(self.bad_proxies())
        usable = [p for p in candidates if p not in bad]
        if not usable:
            logger.error("No usable proxy left in %s", self.settings.proxy_list_path)
            return None
        return random.choice(usable)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _public_ip(self, proxy: Optional[str]) -> str:
        proxies = {"http": proxy, "https": proxy} if proxy else None
        try:
            resp = requests.get(
                self.settings.proxy_check_url,
                proxies=proxies,
                timeout=self.settings.proxy_timeout_s,
            )
        except requests.RequestException as exc:
            raise ProxyError(f"IP check failed through {proxy or 'direct'}: {exc}") from exc

        if resp.status_code != 200:
            raise ProxyError(f"IP check failed: Status code {resp.status_code}")
        return resp.text.strip()

    async def check_proxy(self) -> bool:
        """
        Resolve the configured proxy and test it.

        Returns True when no proxy is configured or the proxy works.
        """
        wanted = self.settings.proxy_url
        if not wanted:
            self.proxy = None
            return True

        self.proxy = self._pick_auto_proxy() if wanted == "auto" else wanted
        if not self.proxy:
            return False

        try:
            self.clear_ip = await asyncio.to_thread(self._public_ip, None)
            self.proxied_ip = await asyncio.to_thread(self._public_ip, self.proxy)
        except ProxyError as exc:
            logger.warning("Proxy %s failed validation: %s", self.proxy, exc)
            return False

        valid = self.clear_ip != self.proxied_ip
        logger.info(
            "Proxy %s: clear ip=%s proxied ip=%s valid=%s",
            self.proxy,
            self.clear_ip,
            self.proxied_ip,
            valid,
        )
        return valid

    def bad_proxy(self) -> None:
        """Record the current proxy as unusable."""
        if not self.proxy:
            logger.warning("Connection problem without proxy; nothing to rotate.")
            return

        logger.warning("Bad proxy: %s", self.proxy)
        bad = self.bad_proxies()
        if self.proxy not in bad:
            bad.append(self.proxy)
            try:
                write_json_atomic(self.settings.bad_proxies_path, bad)
            except OSError as exc:
                logger.error("Failed to record bad proxy: %s", exc)
