"""FastAPI control API: configuration, run control, logs and a WebSocket
feed of update events.
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from .config import RunConfig, Settings, load_run_config, save_run_config
from .models import EventType, UpdateEvent
from .orchestrator import Orchestrator
from .updates import Broadcaster

logger = structlog.get_logger()

PASSWORD_MASK = "**********"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: make sure the config file and log directory exist.
    Shutdown: cancel any run in progress (which closes the browser).
    """
    settings: Settings = app.state.settings
    if not settings.config_file.exists():
        save_run_config(settings.config_file, RunConfig())
        logger.info("config_file_created", path=str(settings.config_file))
    settings.output_log.parent.mkdir(parents=True, exist_ok=True)
    settings.output_log.touch(exist_ok=True)
    yield
    task: asyncio.Task | None = app.state.run_task
    if task is not None and not task.done():
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    logger.info("shutdown_complete")


def _public_config(config: RunConfig) -> dict[str, Any]:
    data = config.model_dump(mode="json", by_alias=True, exclude_none=True)
    data["emailConfig"]["password"] = PASSWORD_MASK if config.email_config.password else ""
    return data


def create_app(settings: Settings | None = None, orchestrator: Orchestrator | None = None) -> FastAPI:
    """Build and return the FastAPI application."""
    if settings is None:
        settings = Settings()

    broadcaster = Broadcaster()
    if orchestrator is None:
        orchestrator = Orchestrator(settings, broadcaster)

    app = FastAPI(title="formwatch", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.broadcaster = broadcaster
    app.state.orchestrator = orchestrator
    app.state.run_task = None

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "formwatch"}

    # --- Configuration --------------------------------------------------

    @app.get("/api/config")
    async def get_config():
        return _public_config(load_run_config(settings.config_file))

    @app.post("/api/config")
    async def post_config(request: Request):
        payload = await request.json()
        email = payload.get("emailConfig", payload.get("email_config")) or {}
        if email.get("password") in (None, "", PASSWORD_MASK):
            # The UI only ever sees the masked password; keep the stored one.
            current = load_run_config(settings.config_file)
            email["password"] = current.email_config.password.get_secret_value()
            payload["emailConfig"] = email
            payload.pop("email_config", None)
        try:
            config = RunConfig.model_validate(payload)
        except ValidationError as exc:
            return JSONResponse(status_code=422, content={"detail": exc.errors(include_url=False)})
        try:
            save_run_config(settings.config_file, config)
        except OSError as exc:
            logger.error("config_save_failed", error=str(exc))
            broadcaster(UpdateEvent(type=EventType.ERROR, message="Failed to save configuration."))
            return JSONResponse(
                status_code=500, content={"message": "Failed to save configuration."}
            )
        broadcaster(
            UpdateEvent(type=EventType.CONFIG_SAVED, message="Configuration saved successfully.")
        )
        return {"message": "Configuration saved."}

    # --- Run control ----------------------------------------------------

    @app.post("/api/start")
    async def start():
        config = load_run_config(settings.config_file)
        if not config.target_url:
            return JSONResponse(
                status_code=400,
                content={"message": "Configuration is incomplete. Please set it up first."},
            )
        task: asyncio.Task | None = app.state.run_task
        view = orchestrator.status()
        if view.is_running or (task is not None and not task.done()):
            return {"message": "Bot is already running.", "state": view}
        app.state.run_task = asyncio.create_task(orchestrator.start(config))
        return {"message": "Bot started."}

    @app.post("/api/stop")
    async def stop():
        view = await orchestrator.request_stop()
        return {"message": "Bot stop requested.", "state": view}

    @app.post("/api/reset")
    async def reset():
        view = await orchestrator.reset()
        return {"message": "Bot reset.", "state": view}

    @app.get("/api/status")
    async def status():
        return orchestrator.status()

    @app.get("/api/logs", response_class=PlainTextResponse)
    async def logs():
        text = await orchestrator.run_log.outcome_log.read_text()
        return text if text is not None else "Log file not found."

    # --- Update feed ----------------------------------------------------

    @app.websocket("/ws")
    async def updates(websocket: WebSocket):
        await websocket.accept()
        queue = broadcaster.subscribe()
        logger.info("ws_client_connected", clients=broadcaster.subscriber_count)
        try:
            while True:
                event = await queue.get()
                await websocket.send_text(event.model_dump_json())
        except WebSocketDisconnect:
            pass
        finally:
            broadcaster.unsubscribe(queue)
            logger.info("ws_client_disconnected", clients=broadcaster.subscriber_count)

    return app
