# pogonode/utils/__init__.py
# -*- coding: utf-8 -*-
"""
pogonode — Utility toolbox
--------------------------
Shared helper functions that are used across the agent:

- file_io   : safe JSON read/write helpers
- logging   : central logging configuration
- timers    : stopwatch and human-like delays

Import from here when it makes sense, for a clean public API, e.g.:

    from pogonode.utils import setup_logging, read_json_safely
"""

from __future__ import annotations

from .file_io import (  # noqa: F401
    read_json_safely,
    write_json_atomic,
)

from .logging import (  # noqa: F401
    setup_logging,
    get_logger,
)

from .timers import (  # noqa: F401
    Stopwatch,
    jittered,
    human_delay,
)
