# pogonode/utils/logging.py
# -*- coding: utf-8 -*-
"""
pogonode — logging utilities
----------------------------
Central logging configuration for the agent.

We try to:
- Use a consistent format across all modules.
- Honour settings.debug / settings.log_level.
- Mirror console output into a log file (pogonode.log by default).
- Keep uvicorn / urllib3 chatter out of the way.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    *,
    debug: bool = False,
    level: Optional[Union[int, str]] = None,
    log_file: Optional[Path] = None,
) -> None:
    """
    Configure root logging for the process.

    Parameters
    ----------
    debug:
        If True, default log level becomes DEBUG, otherwise INFO.
        This is typically wired from settings.debug.
    level:
        Optional explicit logging level (overrides debug flag) such as
        logging.DEBUG or "warning".
    log_file:
        Optional path of a plain-text log file written next to the console.

    This function is idempotent: calling it multiple times is safe.
    """
    if level is not None:
        base_level = level.upper() if isinstance(level, str) else level
    else:
        base_level = logging.DEBUG if debug else logging.INFO

    root = logging.getLogger()
    if root.handlers:
        root.setLevel(base_level)
        for h in root.handlers:
            h.setLevel(base_level)
        return

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as exc:
            # Console logging still works, which is all we really need.
            print(f"setup_logging: cannot open log file {log_file}: {exc}")

    logging.basicConfig(
        level=base_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
    )

    for noisy in ("uvicorn.access", "uvicorn.error", "urllib3", "websockets"):
        logging.getLogger(noisy).setLevel(os.getenv("POGONODE_NOISY_LOG_LEVEL", "WARNING"))


def get_logger(name: str) -> logging.Logger:
    """
    Small convenience wrapper around logging.getLogger.

    Usage:
        from pogonode.utils import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)
