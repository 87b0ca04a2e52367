import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from flask import Flask, jsonify, request

from api import ui_bridge
from core.game_state import GameSession
from core.scheduler import SimulationLoop, ensure_tick_loop

logger = logging.getLogger(__name__)


def _generate_request_metadata() -> tuple[str, str]:
    request_id = str(uuid.uuid4())
    server_time = datetime.now(timezone.utc).isoformat()
    return request_id, server_time


def _enrich_payload(payload: dict, request_id: str, server_time: str) -> dict:
    body = dict(payload or {})
    body["request_id"] = request_id
    body["server_time"] = server_time
    nested_state = body.get("state")
    if isinstance(nested_state, dict):
        nested_copy = dict(nested_state)
        nested_copy.setdefault("request_id", request_id)
        nested_copy.setdefault("server_time", server_time)
        body["state"] = nested_copy
    return body


def _json_response(payload: dict, status: Optional[int] = None):
    request_id, server_time = _generate_request_metadata()
    body = _enrich_payload(payload, request_id, server_time)
    if status is None:
        status = int(body.get("http_status") or (200 if body.get("ok", True) else 400))
    response = jsonify(body)
    response.status_code = status
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
    return response


def create_app(session: Optional[GameSession] = None, start_loop: bool = True) -> Flask:
    """Build the Flask app around ``session``.

    With ``start_loop`` the production and disaster ticks run on a background
    event loop and every request is dispatched onto it.
    """

    app = Flask(__name__)
    game = session or GameSession()
    app.config["GAME_SESSION"] = game
    holder: dict = {"loop": ensure_tick_loop(game) if start_loop else None}

    def dispatch(func, *args):
        simulation: Optional[SimulationLoop] = holder["loop"]
        if simulation is None:
            return func(game, *args)
        return simulation.call(func, game, *args)

    @app.get("/api/state")
    def api_state():
        """Return the current snapshot of the session."""

        return _json_response(dispatch(ui_bridge.get_state))

    @app.get("/api/catalog")
    def api_catalog():
        return _json_response(dispatch(ui_bridge.get_catalog))

    @app.get("/api/resources")
    def api_resources():
        return _json_response(dispatch(ui_bridge.get_resources))

    @app.get("/api/tiles")
    def api_tiles():
        return _json_response(dispatch(ui_bridge.get_tiles))

    @app.post("/api/init")
    def api_init():
        """Initialise the session, optionally forcing a reset."""

        reset_flag = request.args.get("reset")
        if reset_flag is None:
            payload = request.get_json(silent=True) or {}
            if "reset" in payload:
                reset_flag = payload["reset"]
            else:
                reset_flag = payload.get("force_reset")
        response = dispatch(ui_bridge.init_game, reset_flag)
        if start_loop:
            holder["loop"] = ensure_tick_loop(game)
        return _json_response(response)

    @app.post("/api/tick")
    def api_tick():
        """Run one production tick right away."""

        return _json_response(dispatch(ui_bridge.tick))

    @app.post("/api/mode")
    def api_mode():
        payload = request.get_json(silent=True) or {}
        mode = payload.get("mode")
        if mode == "upgrade":
            return _json_response(dispatch(ui_bridge.enter_upgrade_mode))
        return _json_response(dispatch(ui_bridge.set_mode, mode))

    @app.post("/api/select")
    def api_select():
        payload = request.get_json(silent=True) or {}
        return _json_response(dispatch(ui_bridge.select_building_type, payload.get("type")))

    @app.post("/api/tiles/<int:tile_index>/build")
    def api_build(tile_index: int):
        payload = request.get_json(silent=True) or {}
        start = time.perf_counter()
        response = dispatch(ui_bridge.build_on_tile, tile_index, payload.get("type"))
        logger.info(
            "Build handler tile=%s type=%s ok=%s duration_ms=%.2f",
            tile_index,
            payload.get("type"),
            response.get("ok"),
            (time.perf_counter() - start) * 1000.0,
        )
        return _json_response(response)

    @app.post("/api/buildings/<building_id>/upgrade")
    def api_upgrade(building_id: str):
        response = dispatch(ui_bridge.upgrade_building, building_id)
        logger.info("Upgrade handler building=%s ok=%s", building_id, response.get("ok"))
        return _json_response(response)

    @app.post("/api/pointer")
    def api_pointer():
        payload = request.get_json(silent=True) or {}
        try:
            pointer = (float(payload["x"]), float(payload["z"]))
        except (KeyError, TypeError, ValueError):
            return _json_response(
                {
                    "ok": False,
                    "error_code": "invalid_pointer",
                    "error_message": "Pointer needs numeric x and z",
                },
                400,
            )
        return _json_response(dispatch(ui_bridge.pointer_click, pointer))

    @app.post("/api/disasters/<kind>")
    def api_disaster(kind: str):
        return _json_response(dispatch(ui_bridge.trigger_disaster, kind))

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_app().run(debug=False)
