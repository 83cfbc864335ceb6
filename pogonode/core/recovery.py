# pogonode/core/recovery.py
# -*- coding: utf-8 -*-
"""
pogonode — Recovery policy
--------------------------
Maps a failure to what the controller should do about it.

This function is *pure* (no network, no I/O) so it is easy to test:

    FATAL              : account banned, client too old, bad configuration
    CHALLENGE_ESCALATE : captcha required
    NETWORK_ROTATE     : the current proxy / egress point looks unusable
    LOG_AND_CONTINUE   : soft failures and everything not recognised

Network failures are recognised by exception type first, then by the
message fragments the transports are known to produce. Those fragments are
part of the contract with the transports; keep them verbatim.
"""

from __future__ import annotations

import errno
from typing import Tuple

from pogonode.core.errors import (
    AccountBanned,
    ChallengeRequired,
    ConfigError,
    NetworkFailure,
    SoftActionFailure,
    UnsupportedVersion,
)
from pogonode.core.types import RecoveryAction

# Message fragments meaning "this egress point is bad".
NETWORK_MESSAGE_FRAGMENTS: Tuple[str, ...] = (
    "tunneling socket could not be established",     # no connection
    "Unexpected response received from PTC login",   # proxy blocked
    "Status code 403",                               # ip probably banned
    "socket hang up",                                # no connection
    "ECONNRESET",                                    # connection reset
    "ECONNREFUSED",                                  # connection refused
)

INVALID_PROXY_MESSAGE = "Invalid proxy."

_RESET_CODES = ("ECONNRESET", errno.ECONNRESET)


def classify_failure(exc: BaseException) -> RecoveryAction:
    """Return the RecoveryAction for `exc`."""
    if isinstance(exc, (AccountBanned, UnsupportedVersion, ConfigError)):
        return RecoveryAction.FATAL

    if isinstance(exc, ChallengeRequired):
        return RecoveryAction.CHALLENGE_ESCALATE

    if isinstance(exc, SoftActionFailure):
        return RecoveryAction.LOG_AND_CONTINUE

    if isinstance(exc, (NetworkFailure, ConnectionResetError, ConnectionRefusedError)):
        return RecoveryAction.NETWORK_ROTATE

    code = getattr(exc, "code", None) or getattr(exc, "errno", None)
    if code in _RESET_CODES:
        return RecoveryAction.NETWORK_ROTATE

    message = str(exc)
    if message == INVALID_PROXY_MESSAGE:
        return RecoveryAction.NETWORK_ROTATE
    if any(fragment in message for fragment in NETWORK_MESSAGE_FRAGMENTS):
        return RecoveryAction.NETWORK_ROTATE

    return RecoveryAction.LOG_AND_CONTINUE
