"""WebCNC HTTP and WebSocket server.

Exposes:
  WS   /  and  /ws                 machine connection channel
  POST /send/{uuid}                push a command to a connected machine
  GET  /api/connected              machines with a live session
  GET  /health                     liveness check
  /api/...                         machine, job, design and user records

Start with::

    python -m webcnc.server
    # or
    uvicorn webcnc.server:app --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from webcnc import __version__
from webcnc.api import router as records_router
from webcnc.config import Settings, load_settings
from webcnc.db import set_db_path
from webcnc.devices import CommandDispatcher, DeviceRegistry, DeviceSupervisor, InboundRouter
from webcnc.errors import DeliveryError, NotConnectedError
from webcnc.storage import DesignStore

logger = logging.getLogger(__name__)

control = APIRouter(tags=["control"])


# ──────────────────────────────────────────────────────────────────
# Request models / dependencies
# ──────────────────────────────────────────────────────────────────

class CommandRequest(BaseModel):
    command: Any = None


def _registry(request: Request) -> DeviceRegistry:
    return request.app.state.registry


def _dispatcher(request: Request) -> CommandDispatcher:
    return request.app.state.dispatcher


# ──────────────────────────────────────────────────────────────────
# Endpoints
# ──────────────────────────────────────────────────────────────────

@control.get("/", response_class=PlainTextResponse)
async def index():
    return "WebCNC server running"


@control.get("/health")
async def health(registry: DeviceRegistry = Depends(_registry)):
    return {"status": "ok", "connected": len(registry)}


@control.get("/api/connected")
async def list_connected(registry: DeviceRegistry = Depends(_registry)):
    devices = [
        {
            "uuid": uuid,
            "session_id": session.session_id,
            "connected_at": session.connected_at,
            "last_status": session.last_status,
        }
        for uuid, session in sorted(registry.entries())
    ]
    return {"devices": devices, "total": len(devices)}


@control.post("/send/{uuid}")
async def send_command(
    uuid: str,
    req: CommandRequest,
    dispatcher: CommandDispatcher = Depends(_dispatcher),
):
    try:
        await dispatcher.dispatch(uuid, req.command)
    except NotConnectedError:
        return JSONResponse(status_code=404, content={"message": "not connected"})
    except DeliveryError as exc:
        return JSONResponse(
            status_code=502,
            content={"message": "delivery failed", "detail": exc.reason},
        )
    return {"message": f"command sent to {uuid}"}


async def device_socket(websocket: WebSocket) -> None:
    await websocket.app.state.supervisor.run(websocket)


control.add_api_websocket_route("/", device_socket)
control.add_api_websocket_route("/ws", device_socket)


# ──────────────────────────────────────────────────────────────────
# FastAPI app
# ──────────────────────────────────────────────────────────────────

def create_app(
    settings: Settings | None = None,
    registry: DeviceRegistry | None = None,
) -> FastAPI:
    """Build the application with its own registry and collaborators."""
    settings = settings or load_settings()
    registry = registry if registry is not None else DeviceRegistry()

    app = FastAPI(title="WebCNC", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.dispatcher = CommandDispatcher(registry)
    app.state.supervisor = DeviceSupervisor(registry, InboundRouter(registry))
    app.state.design_store = DesignStore(settings.designs_dir)
    set_db_path(settings.db_path)

    app.include_router(control)
    app.include_router(records_router)
    return app


app = create_app()


# ──────────────────────────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────────────────────────

def main():
    import uvicorn
    settings = app.state.settings
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.info("Starting WebCNC server on %s:%d", settings.host, settings.port)
    uvicorn.run(
        "webcnc.server:app",
        host=settings.host,
        port=settings.port,
        ws_ping_interval=settings.ws_ping_interval,
        ws_ping_timeout=settings.ws_ping_timeout,
        reload=False,
    )


if __name__ == "__main__":
    main()
