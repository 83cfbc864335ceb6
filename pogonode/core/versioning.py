# pogonode/core/versioning.py
# -*- coding: utf-8 -*-
"""
pogonode — Client version gate
------------------------------
The server refuses clients older than a published minimum version. We check
it twice:

- before login, against the public RPC version endpoint
  (fetch_minimum_version + verify_minimum_version),
- on every downloadSettings() payload carrying `minimum_client_version`
  (done by the reconciler through verify_minimum_version).

Both raise UnsupportedVersion so the controller can stop before speaking a
protocol generation it does not know.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

import requests

from pogonode.core.config import Settings, settings as default_settings
from pogonode.core.errors import NetworkFailure, UnsupportedVersion

logger = logging.getLogger(__name__)

_NON_VERSION_CHARS_RE = re.compile(r"[^\d.]")


def _parts(version: str) -> List[int]:
    parts: List[int] = []
    for chunk in str(version).strip().split("."):
        digits = re.match(r"\d+", chunk)
        parts.append(int(digits.group(0)) if digits else 0)
    return parts


def compare_versions(a: str, b: str) -> int:
    """
    Compare dotted versions numerically.

    Returns -1 if a < b, 0 if equal, 1 if a > b. Missing components count
    as 0, so "0.57" == "0.57.0".
    """
    pa, pb = _parts(a), _parts(b)
    width = max(len(pa), len(pb))
    pa += [0] * (width - len(pa))
    pb += [0] * (width - len(pb))
    if pa < pb:
        return -1
    if pa > pb:
        return 1
    return 0


def verify_minimum_version(
    minimum: Optional[str],
    settings: Optional[Settings] = None,
) -> None:
    """
    Raise UnsupportedVersion if the configured client version is older
    than `minimum`. No-op when the check is disabled or `minimum` is empty.
    """
    cfg = settings or default_settings
    if not cfg.check_version or not minimum:
        return
    if compare_versions(cfg.client_version, minimum) < 0:
        raise UnsupportedVersion(minimum, cfg.client_version)


def fetch_minimum_version(
    settings: Optional[Settings] = None,
    proxy: Optional[str] = None,
    timeout: float = 10.0,
) -> str:
    """
    Ask the public version endpoint for the minimum client version.

    The endpoint answers with a tiny protobuf blob such as b"\\x06\\n0.57.4";
    everything that is not a digit or a dot is stripped.

    Raises
    ------
    NetworkFailure
        If the endpoint cannot be reached or answers with a non-200 status.
    """
    cfg = settings or default_settings
    proxies = {"http": proxy, "https": proxy} if proxy else None

    try:
        resp = requests.get(cfg.version_url, proxies=proxies, timeout=timeout)
    except requests.RequestException as exc:
        raise NetworkFailure(f"Version check failed: {exc}") from exc

    if resp.status_code != 200:
        raise NetworkFailure(f"Version check failed: Status code {resp.status_code}")

    version = _NON_VERSION_CHARS_RE.sub("", resp.text).strip(".")
    logger.debug("Version endpoint answered %r -> %s", resp.text[:32], version)
    return version
