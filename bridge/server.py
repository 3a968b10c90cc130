"""
FastAPI server for simulator-planner communication bridge.
Receives telemetry over a WebSocket and answers with planned trajectories.
"""

import json
import logging
import time
from pathlib import Path
from typing import Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse
from pydantic import ValidationError

from bridge.messages import (
    TelemetryMessage, encode_control, encode_manual, has_data, is_event_frame, parse_event
)
from data.formats.data_format import VehicleState

app = FastAPI(title="Highway Planner Bridge Server")

# Log ticks that take longer than one simulator period.
SLOW_TICK_SECONDS = 0.02
DEFAULT_VEHICLE_ID = "ego"


def _get_bridge_logger() -> logging.Logger:
    log_path = Path(__file__).resolve().parents[1] / "tmp" / "logs" / "planner_bridge.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)

    bridge_logger = logging.getLogger("planner_bridge")
    bridge_logger.setLevel(logging.INFO)

    if not any(isinstance(h, logging.FileHandler) and h.baseFilename == str(log_path)
               for h in bridge_logger.handlers):
        handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
        handler.setFormatter(formatter)
        bridge_logger.addHandler(handler)
        bridge_logger.propagate = False

    return bridge_logger


logger = _get_bridge_logger()

# Global state
planner = None  # HighwayPlanner, set by configure()
vehicle_states: Dict[str, VehicleState] = {}
tick_count: int = 0


def configure(highway_planner) -> None:
    """Attach the planner used for every connection and reset vehicle states."""
    global planner, tick_count
    planner = highway_planner
    vehicle_states.clear()
    tick_count = 0


def get_vehicle_state(vehicle_id: str) -> VehicleState:
    """Per-vehicle planner memory (created on first use)."""
    if vehicle_id not in vehicle_states:
        vehicle_states[vehicle_id] = VehicleState()
    return vehicle_states[vehicle_id]


def handle_frame(raw: str, vehicle_id: str = DEFAULT_VEHICLE_ID) -> Optional[str]:
    """
    Process one text frame from the simulator.

    Returns:
        Reply frame, or None when the frame is not an event and needs no answer
    """
    global tick_count
    if not is_event_frame(raw):
        return None

    payload = has_data(raw)
    if not payload:
        return encode_manual()

    try:
        event, data = parse_event(payload)
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning("[BAD_FRAME] vehicle=%s error=%s", vehicle_id, e)
        return encode_manual()

    if event != "telemetry":
        return None
    if planner is None:
        logger.error("[NO_PLANNER] telemetry received before configure()")
        return encode_manual()

    try:
        message = TelemetryMessage.model_validate(data)
    except ValidationError as e:
        logger.warning("[BAD_TELEMETRY] vehicle=%s errors=%d", vehicle_id, e.error_count())
        return encode_manual()

    start_time = time.time()
    result = planner.plan(
        message.to_telemetry(), get_vehicle_state(vehicle_id), vehicle_id=vehicle_id
    )
    duration = time.time() - start_time
    if duration > SLOW_TICK_SECONDS:
        logger.warning("[SLOW] tick vehicle=%s duration=%.3fs", vehicle_id, duration)
    tick_count += 1
    return encode_control(result.next_x, result.next_y)


async def _serve_simulator(websocket: WebSocket) -> None:
    vehicle_id = websocket.query_params.get("vehicle_id", DEFAULT_VEHICLE_ID)
    await websocket.accept()
    logger.info("Connected vehicle=%s", vehicle_id)
    try:
        while True:
            raw = await websocket.receive_text()
            reply = handle_frame(raw, vehicle_id)
            if reply is not None:
                await websocket.send_text(reply)
    except WebSocketDisconnect:
        logger.info("Disconnected vehicle=%s", vehicle_id)


@app.websocket("/")
async def simulator_root(websocket: WebSocket):
    """Simulator connection on the root path."""
    await _serve_simulator(websocket)


@app.websocket("/socket.io/")
async def simulator_socketio(websocket: WebSocket):
    """Simulator connection on the socket.io path."""
    await _serve_simulator(websocket)


@app.get("/", response_class=HTMLResponse)
async def index():
    return "<h1>Hello world!</h1>"


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "has_planner": planner is not None,
        "map_waypoints": len(planner.map) if planner is not None else 0,
        "vehicles": sorted(vehicle_states),
        "ticks": tick_count,
    }


@app.get("/api/vehicle/{vehicle_id}/state")
async def get_state(vehicle_id: str):
    """Current lane/speed memory of a vehicle."""
    if vehicle_id not in vehicle_states:
        raise HTTPException(status_code=404, detail=f"Unknown vehicle: {vehicle_id}")
    state = vehicle_states[vehicle_id]
    return {"vehicle_id": vehicle_id, "lane": state.lane, "speed": state.speed}


def run_server(host: str = "0.0.0.0", port: int = 4567):
    """Run the bridge server."""
    print(f"Starting Highway Planner Bridge Server on {host}:{port}")
    print("Endpoints:")
    print("  WS   /           - Simulator telemetry/control")
    print("  WS   /socket.io/ - Simulator telemetry/control")
    print("  GET  /api/health - Health check")

    uvicorn.run(app, host=host, port=port)
