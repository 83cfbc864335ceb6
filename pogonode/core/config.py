# pogonode/core/config.py
# -*- coding: utf-8 -*-
"""
pogonode — Configuration
------------------------
Central configuration for the agent, including:

- account credentials and device identity,
- start position and walking speed,
- API / client version and the minimum-version gate,
- proxy and hashing server options,
- human-like delays between calls,
- UI websocket server,
- filesystem paths (state snapshot, item templates cache, logs).

Values are read from environment variables (or a `.env` file at the project
root). Field names map to upper-case env vars with a `POGONODE_` prefix,
e.g. `POGONODE_USERNAME`, `POGONODE_START_LAT`, `POGONODE_PROXY_URL`.
"""

from __future__ import annotations

import secrets
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

# This file is: pogonode/core/config.py
PACKAGE_DIR: Path = Path(__file__).resolve().parents[1]   # .../pogonode
ROOT_DIR: Path = PACKAGE_DIR.parent                        # project root

DATA_DIR: Path = ROOT_DIR / "data"


# ---------------------------------------------------------------------------
# Settings model
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """
    Global configuration for the agent.

    This class is instantiated once at import time as `settings`
    and used as the default everywhere in the codebase. Tests build
    their own instance and pass it explicitly.
    """

    model_config = SettingsConfigDict(
        env_file=ROOT_DIR / ".env",
        env_file_encoding="utf-8",
        env_prefix="POGONODE_",
        extra="ignore",
    )

    # --- Credentials ----------------------------------------------------------
    username: str = ""
    password: str = ""
    auth_type: Literal["ptc", "google"] = "ptc"

    # --- Position / walking -------------------------------------------------
    start_lat: float = 48.8456222
    start_lng: float = 2.3364526
    speed_kmh: float = 5.0

    # Google Maps key for the elevation lookup; the key handed out by
    # downloadSettings() is used when this is empty.
    gmap_key: Optional[str] = None
    elevation_url: str = "https://maps.googleapis.com/maps/api/elevation/json"

    # Empty means "generate one at start-up".
    device_id: str = ""

    # --- API ----------------------------------------------------------------
    api_version: str = "5704"
    client_version: str = "0.57.4"
    check_version: bool = True
    country: str = "US"
    language: str = "en"
    timezone: str = "Europe/Paris"
    version_url: str = "https://pgorelease.nianticlabs.com/plfe/version"

    # Dotted path "package.module:callable" building the RPC transport.
    # ENV: POGONODE_TRANSPORT_FACTORY=mytransport.client:build
    transport_factory: Optional[str] = Field(
        default=None,
        description="module:callable that returns a Transport for these settings.",
    )

    # --- Proxy --------------------------------------------------------------
    # None (direct), an explicit URL, or "auto" to pick one from proxy_list_path.
    proxy_url: Optional[str] = None
    proxy_check_url: str = "https://api.ipify.org"
    proxy_timeout_s: float = 5.0

    # --- Hashing server -----------------------------------------------------
    hashserver_active: bool = False
    hashserver_key: Optional[str] = None

    # --- Delays (seconds, jittered by +/-10% when used) ---------------------
    delay_walk_s: float = 1.0
    delay_spin_s: float = 1.5
    delay_encounter_s: float = 1.5
    delay_catch_s: float = 2.0
    delay_level_up_s: float = 1.0
    delay_release_s: float = 0.5
    delay_evolve_s: float = 3.0
    delay_recycle_s: float = 0.5
    delay_incubator_s: float = 1.5

    # --- Behaviour ----------------------------------------------------------
    incubator_dispatch_chance: float = 0.3
    spin_distance_m: float = 40.0
    shadow_ban_min_sightings: int = 5
    max_encountered_memory: int = 200

    # --- UI (websocket push) ------------------------------------------------
    ui_enabled: bool = True
    ui_host: str = "0.0.0.0"
    ui_port: int = 8000

    # --- Filesystem paths ---------------------------------------------------
    data_dir: Path = DATA_DIR
    state_path: Path = DATA_DIR / "state.json"
    item_templates_path: Path = DATA_DIR / "item_templates.json"
    proxy_list_path: Path = DATA_DIR / "proxies.json"
    bad_proxies_path: Path = DATA_DIR / "bad.proxies.json"
    log_file: Optional[Path] = ROOT_DIR / "pogonode.log"

    # --- Logging ------------------------------------------------------------
    debug: bool = False
    log_level: Optional[str] = None

    @field_validator("device_id", mode="after")
    @classmethod
    def _ensure_device_id(cls, value: str) -> str:
        # 32 hex chars, same shape as the official client
        return value or secrets.token_hex(16)


# Single global settings instance used by the rest of the app.
settings = Settings()


if __name__ == "__main__":
    # Minimal self-test so you can quickly verify config loading.
    print("pogonode — Settings self-test")
    print(f"ROOT_DIR        : {ROOT_DIR}")
    print(f"DATA_DIR        : {settings.data_dir}")
    print(f"State path      : {settings.state_path}")
    print(f"User set        : {bool(settings.username)} ({settings.auth_type})")
    print(f"Start position  : {settings.start_lat}, {settings.start_lng}")
    print(f"Client version  : {settings.client_version} (check={settings.check_version})")
    print(f"Proxy           : {settings.proxy_url!r}")
    print(f"Transport       : {settings.transport_factory!r}")
    print(f"UI              : enabled={settings.ui_enabled} {settings.ui_host}:{settings.ui_port}")
