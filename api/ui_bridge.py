"""Public API between the GUI panel and the simulation core.

Every function takes the session explicitly and returns a JSON-ready
payload using the ``ok`` / ``error_code`` envelope.
"""
from __future__ import annotations

from typing import Dict, Optional, Tuple

from core.commands import CommandResult
from core.errors import PreconditionViolation
from core.game_state import GameSession


# ---------------------------------------------------------------------------
# Response helpers


def _success_response(**payload: object) -> Dict[str, object]:
    response: Dict[str, object] = {"ok": True}
    response.update(payload)
    return response


def _error_response(
    code: str, message: str, *, http_status: int | None = None
) -> Dict[str, object]:
    payload: Dict[str, object] = {
        "ok": False,
        "error_code": code,
        "error_message": message,
        "error": message,
    }
    if http_status is not None:
        payload["http_status"] = int(http_status)
    return payload


_STATUS_BY_CODE = {
    "tile_not_found": 404,
    "building_not_found": 404,
    "invalid_building_type": 404,
    "invalid_disaster": 404,
    "tile_occupied": 409,
    "insufficient_resources": 409,
    "max_level": 409,
    "main_building_protected": 409,
    "game_over": 409,
}


def _violation_response(session: GameSession, exc: PreconditionViolation) -> Dict[str, object]:
    error = _error_response(exc.code, exc.message, http_status=_STATUS_BY_CODE.get(exc.code, 400))
    requirements = getattr(exc, "requirements", None)
    if requirements:
        error["requires"] = {
            getattr(resource, "value", str(resource)): int(amount)
            for resource, amount in requirements.items()
        }
    error.update(session.response_metadata())
    return error


def _command_response(session: GameSession, result: CommandResult) -> Dict[str, object]:
    if not result.ok and result.error is not None:
        error = _violation_response(session, result.error)
        error["state"] = session.snapshot_state()
        return error
    payload = result.to_payload()
    payload.pop("ok", None)
    payload["state"] = session.snapshot_state()
    payload["http_status"] = 200
    payload.update(session.response_metadata())
    return _success_response(**payload)


def _should_reset(flag: object) -> bool:
    if flag is None:
        return True
    if isinstance(flag, str):
        return flag.strip().lower() not in {"0", "false", "no"}
    return bool(flag)


# ---------------------------------------------------------------------------
# Initialisation and state


def init_game(session: GameSession, force_reset: object = None) -> Dict[str, object]:
    """Initialise or reset the session using configuration defaults."""

    if _should_reset(force_reset):
        session.reset()
    return _success_response(catalog=session.snapshot_catalog(), **session.snapshot_state())


def get_state(session: GameSession) -> Dict[str, object]:
    return _success_response(**session.snapshot_state())


def get_resources(session: GameSession) -> Dict[str, object]:
    return _success_response(resources=session.ledger.snapshot(), version=session.version)


def get_catalog(session: GameSession) -> Dict[str, object]:
    return _success_response(catalog=session.snapshot_catalog())


def get_tiles(session: GameSession) -> Dict[str, object]:
    """Every tile with its island coordinates and occupant."""

    return _success_response(
        tiles=[tile.to_snapshot() for tile in session.grid.all_tiles()],
        version=session.version,
    )


def tick(session: GameSession) -> Dict[str, object]:
    """Run one production tick immediately."""

    produced = session.economy.fire()
    return _success_response(
        produced={resource.value: amount for resource, amount in produced.items()},
        **session.snapshot_state(),
    )


# ---------------------------------------------------------------------------
# Mode and selection


def set_mode(session: GameSession, mode: str) -> Dict[str, object]:
    try:
        session.commands.set_mode(mode)
    except PreconditionViolation as exc:
        return _violation_response(session, exc)
    return _success_response(commands=session.commands.snapshot())


def select_building_type(session: GameSession, type_id: str) -> Dict[str, object]:
    try:
        session.commands.select_building_type(type_id)
    except PreconditionViolation as exc:
        return _violation_response(session, exc)
    return _success_response(commands=session.commands.snapshot())


def enter_upgrade_mode(session: GameSession) -> Dict[str, object]:
    session.commands.enter_upgrade_mode()
    return _success_response(commands=session.commands.snapshot())


# ---------------------------------------------------------------------------
# Building interactions


def build_on_tile(
    session: GameSession, tile_index: int, type_id: Optional[str] = None
) -> Dict[str, object]:
    """Build on ``tile_index`` using ``type_id`` or the currently selected type."""

    try:
        tile = session.grid.get(tile_index)
    except PreconditionViolation as exc:
        return _violation_response(session, exc)
    chosen = type_id or session.commands.selected_type
    if not chosen:
        error = _error_response(
            "no_building_selected", "Select a building type first", http_status=400
        )
        error.update(session.response_metadata())
        return error
    result = session.commands.resolve_build_command(tile, chosen)
    return _command_response(session, result)


def upgrade_building(session: GameSession, building_id: str) -> Dict[str, object]:
    try:
        building = session.get_building(building_id)
    except PreconditionViolation as exc:
        return _violation_response(session, exc)
    result = session.commands.resolve_upgrade_command(building)
    return _command_response(session, result)


def pointer_click(session: GameSession, pointer: Tuple[float, float]) -> Dict[str, object]:
    """Resolve a click at world coordinates ``pointer`` in the current mode."""

    result = session.commands.handle_pointer(pointer)
    if result is None:
        return _success_response(
            action=None,
            commands=session.commands.snapshot(),
            **session.response_metadata(),
        )
    return _command_response(session, result)


# ---------------------------------------------------------------------------
# Disasters


def trigger_disaster(session: GameSession, kind: str) -> Dict[str, object]:
    """Manually start ``kind`` (the GUI's disaster folder)."""

    try:
        tasks = session.disasters.trigger(str(kind).strip().lower())
    except PreconditionViolation as exc:
        return _violation_response(session, exc)
    return _success_response(
        disaster=kind,
        tasks=[task.to_snapshot() for task in tasks],
        **session.response_metadata(),
    )
