"""FastAPI application exposing an :class:`AxiDraw` over HTTP."""
from __future__ import annotations

import logging
from concurrent.futures import CancelledError
from typing import Any, Dict

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from ..config import AxiDrawSettings
from ..controller import AxiDraw
from ..device import EiBotBoard, MockEiBotBoard
from ..errors import (
    AxiDrawError,
    ChannelNotEnabledError,
    DriverError,
    InvalidArgumentError,
    NotConnectedError,
)

logger = logging.getLogger(__name__)


def create_controller() -> AxiDraw:
    """Build a controller for the configured port, or a mock without one."""

    settings = AxiDrawSettings.from_env()
    if settings.port:
        return AxiDraw(device=EiBotBoard(settings), settings=settings)
    logger.info("AXIPLOT_PORT not set; serving a mock EBB")
    return AxiDraw(device=MockEiBotBoard(), settings=settings)


def _http_error(exc: AxiDrawError) -> HTTPException:
    if isinstance(exc, InvalidArgumentError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (NotConnectedError, ChannelNotEnabledError)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, DriverError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _float(payload: Dict[str, Any], key: str) -> float:
    try:
        return float(payload[key])
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"{key} is required") from exc


def create_app(axi: AxiDraw) -> FastAPI:
    app = FastAPI(title="AxiDraw Control Server")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def call(fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except AxiDrawError as exc:
            raise _http_error(exc) from exc
        except CancelledError as exc:
            raise HTTPException(status_code=409, detail="Command dropped by stop") from exc

    @app.get("/api/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/status")
    def status() -> Dict[str, Any]:
        return {
            "connected": axi.connected,
            "busy": axi.is_busy(),
            "mm_per_sec": axi.mm_per_sec,
            "target_pos": list(axi.target_pos),
            "last_commanded_pos": list(axi.last_commanded_pos),
            "pen_is_down": axi.pen_is_down,
        }

    @app.post("/api/device/connect")
    def device_connect() -> Dict[str, Any]:
        call(axi.connect)
        return {"ok": True}

    @app.post("/api/device/disconnect")
    def device_disconnect() -> Dict[str, Any]:
        call(axi.disconnect)
        return {"ok": True}

    @app.post("/api/device/enable")
    def device_enable() -> Dict[str, Any]:
        call(axi.enable)
        return {"ok": True}

    @app.post("/api/device/disable")
    def device_disable() -> Dict[str, Any]:
        call(axi.disable)
        return {"ok": True}

    @app.get("/api/device/position")
    def device_position() -> Dict[str, Any]:
        x, y = call(axi.current_position)
        return {"x": x, "y": y}

    @app.post("/api/device/pen")
    def device_pen(payload: Dict[str, Any]) -> Dict[str, Any]:
        if "height" in payload:
            call(axi.set_pen_height, _float(payload, "height"))
        elif payload.get("state") == "up":
            call(axi.pen_up)
        elif payload.get("state") == "down":
            call(axi.pen_down)
        else:
            raise HTTPException(status_code=400, detail="state ('up'/'down') or height is required")
        return {"ok": True}

    @app.post("/api/device/speed")
    def device_speed(payload: Dict[str, Any]) -> Dict[str, Any]:
        axi.set_speed(_float(payload, "mm_per_sec"))
        return {"ok": True, "mm_per_sec": axi.mm_per_sec}

    @app.post("/api/device/move")
    def device_move(payload: Dict[str, Any]) -> Dict[str, Any]:
        x, y = _float(payload, "x"), _float(payload, "y")
        call(axi.move_to, x, y, wait=bool(payload.get("wait", False)))
        return {"ok": True, "last_commanded_pos": list(axi.last_commanded_pos)}

    @app.post("/api/device/stop")
    def device_stop() -> Dict[str, Any]:
        dropped = call(axi.stop)
        return {"ok": True, "dropped": dropped}

    @app.post("/api/device/analog/{channel}")
    def device_analog_configure(channel: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        call(axi.analog_configure, channel, bool(payload.get("enabled", True)))
        return {"ok": True}

    @app.get("/api/device/analog/{channel}")
    def device_analog_read(channel: int) -> Dict[str, Any]:
        return {"channel": channel, "value": call(axi.analog_read, channel)}

    @app.get("/api/device/memory/{address}")
    def device_memory_read(address: int) -> Dict[str, Any]:
        return {"address": address, "value": call(axi.memory_read, address)}

    return app


controller = create_controller()
app = create_app(controller)


__all__ = ["app", "controller", "create_app", "create_controller"]
