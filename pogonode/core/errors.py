# pogonode/core/errors.py
# -*- coding: utf-8 -*-
"""
pogonode — Error taxonomy
-------------------------
Exceptions raised by the reconciler and the controller.

- AccountBanned      : fatal, the account is flagged; no retry.
- ChallengeRequired  : the server wants a captcha solved; carries the URL.
- UnsupportedVersion : the server mandates a newer client; fatal.
- NetworkFailure     : transport-level failure; rotate proxy, then exit.
- SoftActionFailure  : an action answered with a non-success result code.
- ConfigError        : the local configuration cannot work (fatal).

How each one is handled is decided by core.recovery.classify_failure().
"""

from __future__ import annotations

from typing import Any, Optional


class PogoError(Exception):
    """Base class for all agent errors."""


class AccountBanned(PogoError):
    """Raised when a player payload carries the ban flag."""

    def __init__(self, message: str = "Account Banned") -> None:
        super().__init__(message)


class ChallengeRequired(PogoError):
    """Raised when checkChallenge reports an active challenge."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Challenge detected: {url}")
        self.url = url


class UnsupportedVersion(PogoError):
    """Raised when the configured client version is below the server minimum."""

    def __init__(self, minimum: str, current: Optional[str] = None) -> None:
        super().__init__(f"Minimum client version={minimum}")
        self.minimum = minimum
        self.current = current


class NetworkFailure(PogoError):
    """Transport could not reach the remote service (or was refused)."""


class SoftActionFailure(PogoError):
    """An action call came back with a non-success result code."""

    def __init__(self, call: str, result: Any) -> None:
        super().__init__(f"{call}() returned {result}")
        self.call = call
        self.result = result


class ConfigError(PogoError):
    """Local configuration is missing or invalid."""
