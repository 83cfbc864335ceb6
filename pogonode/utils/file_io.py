# pogonode/utils/file_io.py
# -*- coding: utf-8 -*-
"""
pogonode — file_io utilities
----------------------------
Safe helpers for reading/writing small JSON files:

- the state snapshot (data/state.json),
- the item templates cache (data/item_templates.json),
- the proxy lists (data/proxies.json, data/bad.proxies.json).

Goals:
- Avoid duplicated ad-hoc JSON handling everywhere.
- Use atomic writes (temp file + rename) to prevent half-written files.
- Be tolerant: on read errors, log and return a default instead of crashing.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def read_json_safely(
    path: Path,
    default: Optional[T] = None,
    *,
    log_missing: bool = False,
) -> Optional[T]:
    """
    Read JSON from a file and return the parsed object.

    Behaviour:
    - If the file does not exist:
        - returns `default`
        - optionally logs at INFO level when log_missing=True
    - If parsing fails:
        - logs at WARNING level
        - returns `default`
    """
    path = Path(path)
    if not path.is_file():
        if log_missing:
            logger.info("read_json_safely: file not found: %s", path)
        return default

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("read_json_safely: failed to read %s: %s", path, exc)
        return default

    try:
        return json.loads(text)  # type: ignore[return-value]
    except json.JSONDecodeError as exc:
        logger.warning("read_json_safely: invalid JSON in %s: %s", path, exc)
        return default


def write_json_atomic(path: Path, data: Any, *, indent: Optional[int] = 2) -> None:
    """
    Write JSON to disk in a safe, atomic-ish way:

    - ensures parent directory exists
    - writes to a temporary file next to the target
    - renames the temp file to the final path

    Values json cannot encode (datetimes, paths) are written with str().
    If anything fails, an exception is raised so the caller can decide
    how to respond (the state snapshot just logs it).
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("write_json_atomic: failed to create dir %s: %s", path.parent, exc)
        raise

    tmp_path = path.with_suffix(path.suffix + ".tmp")

    try:
        json_text = json.dumps(data, ensure_ascii=False, indent=indent, default=str)
        tmp_path.write_text(json_text, encoding="utf-8")
        tmp_path.replace(path)
    except OSError as exc:
        logger.error("write_json_atomic: failed to write %s: %s", path, exc)
        raise
