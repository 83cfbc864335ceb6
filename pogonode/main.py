# pogonode/main.py
# -*- coding: utf-8 -*-
"""
pogonode — application entrypoint
---------------------------------
This file wires everything together:

- Sets up central logging (console + pogonode.log).
- Builds the session state and the collaborators (walker, proxy helper,
  captcha resolver, UI broadcaster, transport).
- Creates the FastAPI app for the live UI:
    * /ws/ui      (WebSocket) -> pushes + action requests
    * /status/*   (HTTP)      -> read-only state views
    * /health     (HTTP)
- Serves it with uvicorn on the same event loop as the controller, so the
  routers read the very SessionState the controller mutates.
- Runs the controller and exits with its code.

Typical run command:

    POGONODE_USERNAME=me POGONODE_PASSWORD=secret \\
    POGONODE_TRANSPORT_FACTORY=mytransport.client:build pogonode
"""

from __future__ import annotations

import asyncio
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pogonode.core.config import Settings, settings as default_settings
from pogonode.core.controller import EXIT_FATAL, Controller
from pogonode.providers.captcha import ConsoleChallengeResolver
from pogonode.providers.proxy import ProxyHelper
from pogonode.providers.walker import Walker
from pogonode.routers.status import router as status_router
from pogonode.routers.ws import UiBroadcaster, router as ws_router
from pogonode.runtime_state import SessionState
from pogonode.utils import get_logger, setup_logging

logger = get_logger(__name__)

__version__ = "0.1.0"


def create_app(state: SessionState, ui: UiBroadcaster) -> FastAPI:
    """
    Application factory for the UI server.

    `state` and `ui` are stored on app.state, where the routers pick them up.
    """
    app = FastAPI(title="pogonode", version=__version__, docs_url="/docs", redoc_url=None)

    # The UI is a local browser page; any origin is fine.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.session = state
    app.state.ui = ui

    # Read-only views: /status/player, /status/inventory, /status/map, /status/todo
    app.include_router(status_router)

    # Live UI: /ws/ui
    app.include_router(ws_router)

    @app.get("/health", tags=["meta"])
    async def health_check():
        """Lightweight health check."""
        return {
            "status": "ok",
            "ready": ui.is_ready,
            "ui_clients": len(ui.clients),
            "pending_todo": len(state.todo),
        }

    return app


async def run_agent(settings: Optional[Settings] = None) -> int:
    """Build everything, run the controller, return its exit code."""
    cfg = settings or default_settings

    state = SessionState.create(cfg.start_lat, cfg.start_lng)
    ui = UiBroadcaster(state, username=cfg.username)
    controller = Controller(
        state,
        ui=ui,
        walker=Walker(state, cfg),
        proxy=ProxyHelper(cfg),
        resolver=ConsoleChallengeResolver(),
        settings=cfg,
    )

    server: Optional[uvicorn.Server] = None
    server_task: Optional[asyncio.Task] = None
    if cfg.ui_enabled:
        config = uvicorn.Config(
            create_app(state, ui),
            host=cfg.ui_host,
            port=cfg.ui_port,
            log_level="warning",
        )
        server = uvicorn.Server(config)
        server_task = asyncio.create_task(server.serve())
        logger.info("UI listening on ws://%s:%d/ws/ui", cfg.ui_host, cfg.ui_port)

    try:
        return await controller.run()
    finally:
        if server is not None and server_task is not None:
            server.should_exit = True
            try:
                await server_task
            except Exception:  # noqa: BLE001
                logger.debug("UI server stopped with an error", exc_info=True)


def main() -> None:
    """Console entry point (`pogonode`)."""
    cfg = default_settings
    setup_logging(debug=cfg.debug, level=cfg.log_level, log_file=cfg.log_file)
    logger.info(
        "pogonode %s starting (user set=%s, proxy=%r, ui=%s)",
        __version__,
        bool(cfg.username),
        cfg.proxy_url,
        cfg.ui_enabled,
    )

    try:
        code = asyncio.run(run_agent(cfg))
    except KeyboardInterrupt:
        logger.info("Interrupted. Bye.")
        code = 0
    except Exception:  # noqa: BLE001
        logger.exception("Fatal error")
        code = EXIT_FATAL
    raise SystemExit(code)


if __name__ == "__main__":
    main()
